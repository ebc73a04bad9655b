"""Replaceable Parts simulation package.

Public API:
    from factory import State, apply_command, advance_tick, create_initial_state
"""
from factory.engine import apply_command, replay, run_ticks
from factory.entities import State
from factory.handlers import StepResult
from factory.simulation import advance_tick
from factory.state import create_initial_state, load_state, save_state, state_from_dict, state_to_dict

__all__ = [
    "State",
    "StepResult",
    "advance_tick",
    "apply_command",
    "create_initial_state",
    "load_state",
    "replay",
    "run_ticks",
    "save_state",
    "state_from_dict",
    "state_to_dict",
]
