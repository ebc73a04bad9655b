"""Single entry point: route a command to the tick pipeline or its handler."""
from __future__ import annotations

from typing import Callable, Dict, Iterable, List, Tuple, Type

from factory import handlers
from factory.commands import (
    COMMAND_TYPES,
    AdvanceTick,
    AssignRecipe,
    BuildGenerator,
    BuildMachine,
    Command,
    ExpandFloor,
    ExpandStorage,
    RemoveGenerator,
    RemoveMachine,
    Sell,
    ToggleMachine,
    ToggleResearch,
    UnblockMachine,
    UnlockRecipe,
)
from factory.entities import State
from factory.handlers import StepResult
from factory.simulation import advance_tick
from rules_catalog import Rules

Handler = Callable[[State, Rules, Command], StepResult]


def _advance(state: State, rules: Rules, command: AdvanceTick) -> StepResult:
    return StepResult(advance_tick(state, rules))


HANDLERS: Dict[Type, Handler] = {
    AdvanceTick: _advance,
    BuildMachine: handlers.build_machine,
    RemoveMachine: handlers.remove_machine,
    AssignRecipe: handlers.assign_recipe,
    BuildGenerator: handlers.build_generator,
    RemoveGenerator: handlers.remove_generator,
    ExpandFloor: handlers.expand_floor,
    Sell: handlers.sell_goods,
    ToggleResearch: handlers.toggle_research,
    UnlockRecipe: handlers.unlock_recipe,
    UnblockMachine: handlers.unblock_machine,
    ToggleMachine: handlers.toggle_machine,
    ExpandStorage: handlers.expand_storage,
}

_missing = set(COMMAND_TYPES) - set(HANDLERS)
if _missing:
    raise RuntimeError(f"commands without handlers: {sorted(t.__name__ for t in _missing)}")


def apply_command(state: State, rules: Rules, command: Command) -> StepResult:
    handler = HANDLERS.get(type(command))
    if handler is None:
        return handlers.reject(state, f"Unrecognized command: {command!r}")
    return handler(state, rules, command)


def replay(state: State, rules: Rules, commands: Iterable[Command]) -> Tuple[State, List[Tuple[Command, str]]]:
    """Apply ``commands`` in order; rejected ones are collected and skipped."""
    rejected: List[Tuple[Command, str]] = []
    for command in commands:
        result = apply_command(state, rules, command)
        if result.error is not None:
            rejected.append((command, result.error))
        state = result.state
    return state, rejected


def run_ticks(state: State, rules: Rules, ticks: int) -> State:
    for _ in range(ticks):
        state = advance_tick(state, rules)
    return state
