"""Player commands.

Each command is a small frozen dataclass carrying its payload.  ``TAG`` is the
name used in tagged JSON records (``{"type": "SELL", "item_id": ...}``), which
is how command scripts and front-ends describe commands.
"""
from __future__ import annotations

from dataclasses import asdict, dataclass, fields
from typing import Any, ClassVar, Dict, Optional, Tuple, Type, Union


@dataclass(frozen=True)
class AdvanceTick:
    TAG: ClassVar[str] = "ADVANCE_TICK"


@dataclass(frozen=True)
class BuildMachine:
    TAG: ClassVar[str] = "BUILD_MACHINE"
    x: int
    y: int


@dataclass(frozen=True)
class RemoveMachine:
    TAG: ClassVar[str] = "REMOVE_MACHINE"
    machine_id: str


@dataclass(frozen=True)
class AssignRecipe:
    TAG: ClassVar[str] = "ASSIGN_RECIPE"
    machine_id: str
    recipe_id: Optional[str] = None


@dataclass(frozen=True)
class BuildGenerator:
    TAG: ClassVar[str] = "BUILD_GENERATOR"
    generator_type: str
    x: int
    y: int


@dataclass(frozen=True)
class RemoveGenerator:
    TAG: ClassVar[str] = "REMOVE_GENERATOR"
    generator_id: str


@dataclass(frozen=True)
class ExpandFloor:
    TAG: ClassVar[str] = "EXPAND_FLOOR"


@dataclass(frozen=True)
class Sell:
    TAG: ClassVar[str] = "SELL"
    item_id: str
    quantity: int


@dataclass(frozen=True)
class ToggleResearch:
    TAG: ClassVar[str] = "TOGGLE_RESEARCH"
    active: bool


@dataclass(frozen=True)
class UnlockRecipe:
    TAG: ClassVar[str] = "UNLOCK_RECIPE"
    recipe_id: str


@dataclass(frozen=True)
class UnblockMachine:
    TAG: ClassVar[str] = "UNBLOCK_MACHINE"
    machine_id: str


@dataclass(frozen=True)
class ToggleMachine:
    TAG: ClassVar[str] = "TOGGLE_MACHINE"
    machine_id: str


@dataclass(frozen=True)
class ExpandStorage:
    TAG: ClassVar[str] = "EXPAND_STORAGE"


Command = Union[
    AdvanceTick,
    BuildMachine,
    RemoveMachine,
    AssignRecipe,
    BuildGenerator,
    RemoveGenerator,
    ExpandFloor,
    Sell,
    ToggleResearch,
    UnlockRecipe,
    UnblockMachine,
    ToggleMachine,
    ExpandStorage,
]

COMMAND_TYPES: Tuple[Type, ...] = (
    AdvanceTick,
    BuildMachine,
    RemoveMachine,
    AssignRecipe,
    BuildGenerator,
    RemoveGenerator,
    ExpandFloor,
    Sell,
    ToggleResearch,
    UnlockRecipe,
    UnblockMachine,
    ToggleMachine,
    ExpandStorage,
)

COMMANDS_BY_TAG: Dict[str, Type] = {command_type.TAG: command_type for command_type in COMMAND_TYPES}


def command_to_dict(command: Command) -> Dict[str, Any]:
    return {"type": command.TAG, **asdict(command)}


def command_from_dict(raw: Any) -> Command:
    """Parse a tagged record.  Raises ``ValueError`` for unknown tags or payloads."""
    if not isinstance(raw, dict):
        raise ValueError(f"Unrecognized command: {raw!r}")
    tag = raw.get("type")
    command_type = COMMANDS_BY_TAG.get(tag) if isinstance(tag, str) else None
    if command_type is None:
        raise ValueError(f"Unrecognized command: {tag!r}")

    payload = {}
    for field_def in fields(command_type):
        if field_def.name in raw:
            payload[field_def.name] = raw[field_def.name]
    try:
        return command_type(**payload)
    except TypeError as exc:
        raise ValueError(f"Malformed {tag} command: {exc}") from exc
