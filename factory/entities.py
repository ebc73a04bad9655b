"""Core dataclasses for the factory simulation.

Every record is frozen.  Transitions build new records with
:func:`dataclasses.replace`; mappings are stored as read-only views over
insertion-ordered dicts so a snapshot handed to a caller can never change
underneath another one.
"""
from __future__ import annotations

from dataclasses import dataclass, field
from types import MappingProxyType
from typing import Mapping, Optional, Tuple

from config import IDLE


def frozen_map(values: Mapping[str, float] | None = None) -> Mapping[str, float]:
    """Return a read-only copy of ``values`` that keeps insertion order."""
    return MappingProxyType(dict(values or {}))


@dataclass(frozen=True)
class Placement:
    """Footprint of a built structure: a square anchored at ``(x, y)``."""

    structure_id: str
    x: int
    y: int
    size: int
    kind: str


@dataclass(frozen=True)
class FloorSpace:
    width: int
    height: int
    placements: Tuple[Placement, ...] = ()


@dataclass(frozen=True)
class EnergySnapshot:
    produced: int = 0
    consumed: int = 0

    @property
    def spare(self) -> int:
        return self.produced - self.consumed


@dataclass(frozen=True)
class Machine:
    """A production machine.

    ``buffer`` holds inputs pulled from inventory for the assigned recipe that
    have not been consumed yet.
    """

    id: str
    x: int
    y: int
    space_used: int
    energy_draw: int
    recipe_id: Optional[str] = None
    buffer: Mapping[str, int] = field(default_factory=frozen_map)
    status: str = IDLE
    enabled: bool = True


@dataclass(frozen=True)
class Generator:
    id: str
    type: str
    x: int
    y: int
    energy_output: int
    space_used: int


@dataclass(frozen=True)
class ExtractionNode:
    id: str
    resource_id: str
    rate: int
    active: bool = True


@dataclass(frozen=True)
class ResearchToggle:
    active: bool = False
    energy_cost: int = 0


@dataclass(frozen=True)
class State:
    """The whole game state.  Replaced, never mutated, on every transition."""

    tick: int
    seed: int
    credits: int
    floor_space: FloorSpace
    energy: EnergySnapshot
    inventory_space: int
    inventory: Mapping[str, int] = field(default_factory=frozen_map)
    machines: Tuple[Machine, ...] = ()
    generators: Tuple[Generator, ...] = ()
    extraction_nodes: Tuple[ExtractionNode, ...] = ()
    discovered_recipes: Tuple[str, ...] = ()
    unlocked_recipes: Tuple[str, ...] = ()
    research: ResearchToggle = ResearchToggle()
    market_popularity: Mapping[str, float] = field(default_factory=frozen_map)

    def find_machine(self, machine_id: str) -> Machine | None:
        for machine in self.machines:
            if machine.id == machine_id:
                return machine
        return None

    def find_generator(self, generator_id: str) -> Generator | None:
        for generator in self.generators:
            if generator.id == generator_id:
                return generator
        return None

    def popularity(self, item_id: str) -> float:
        return self.market_popularity.get(item_id, 1.0)
