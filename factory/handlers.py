"""Command handlers.

Every handler takes ``(state, rules, command)`` and returns a
:class:`StepResult`.  A handler either applies the whole effect or rejects
with a reason and returns the state it was given; nothing is half-applied.
"""
from __future__ import annotations

import logging
import math
from dataclasses import dataclass, replace
from typing import Mapping, Optional

from config import BLOCKED, GENERATOR, IDLE, MACHINE, WORKING
from factory.commands import (
    AssignRecipe,
    BuildGenerator,
    BuildMachine,
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
from factory.entities import Generator, Machine, Placement, State, frozen_map
from factory.inventory import add_items, can_store_all, remove_items
from factory.market import decay_popularity, sale_value
from factory.placement import (
    NON_SQUARE_FOOTPRINT,
    add_placement,
    check_placement,
    footprint_size,
    next_expansion_chunk,
    remove_placement,
)
from factory.power import calculate_energy
from rules_catalog import Rules

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class StepResult:
    state: State
    error: Optional[str] = None

    @property
    def ok(self) -> bool:
        return self.error is None


def accept(state: State) -> StepResult:
    return StepResult(state)


def reject(state: State, reason: str) -> StepResult:
    logger.debug("Command rejected at tick %d: %s", state.tick, reason)
    return StepResult(state, reason)


def structure_id(kind: str, tick: int, x: int, y: int) -> str:
    """Deterministic id; footprints never overlap, so live ids never clash."""
    return f"{kind}-{tick}-{x}-{y}"


def storage_upgrade_cost(state: State, rules: Rules) -> int:
    tuning = rules.inventory_space
    level = state.inventory_space // tuning.upgrade_amount
    return math.floor(tuning.base_cost * tuning.cost_growth ** level)


def _is_coordinate(value: object) -> bool:
    return isinstance(value, int) and not isinstance(value, bool)


def _with_energy(state: State) -> State:
    return replace(state, energy=calculate_energy(state.machines, state.generators))


def _replace_machine(state: State, machine: Machine) -> State:
    machines = tuple(machine if existing.id == machine.id else existing for existing in state.machines)
    return replace(state, machines=machines)


def _consume_build_item(state: State, rules: Rules, item_id: str, what: str) -> StepResult:
    if state.inventory.get(item_id, 0) < 1:
        return reject(state, f"Need 1 {rules.display_name(item_id)} in inventory to deploy {what}")
    inventory = dict(state.inventory)
    remove_items(inventory, item_id, 1)
    return accept(replace(state, inventory=frozen_map(inventory)))


def _return_buffer(state: State, rules: Rules, buffer: Mapping[str, int]) -> StepResult:
    if not buffer:
        return accept(state)
    if not can_store_all(state.inventory, buffer, state.inventory_space, rules):
        return reject(state, "Not enough storage to return buffered items")
    inventory = dict(state.inventory)
    for item_id, quantity in buffer.items():
        add_items(inventory, item_id, quantity)
    return accept(replace(state, inventory=frozen_map(inventory)))


# ---------------------------------------------------------------------------
# Structures
# ---------------------------------------------------------------------------

def build_machine(state: State, rules: Rules, command: BuildMachine) -> StepResult:
    x, y = command.x, command.y
    if not _is_coordinate(x) or not _is_coordinate(y):
        return reject(state, "Position (x, y) is required")

    tuning = rules.machines
    size = footprint_size(tuning.space_cost)
    if size is None:
        return reject(state, NON_SQUARE_FOOTPRINT)
    problem = check_placement(state.floor_space, x, y, size)
    if problem:
        return reject(state, problem)

    paid = _consume_build_item(state, rules, tuning.item_id, "a machine")
    if not paid.ok:
        return reject(state, paid.error)

    machine_id = structure_id(MACHINE, state.tick, x, y)
    machine = Machine(
        id=machine_id,
        x=x,
        y=y,
        space_used=tuning.space_cost,
        energy_draw=tuning.energy_draw,
    )
    placement = Placement(structure_id=machine_id, x=x, y=y, size=size, kind=MACHINE)
    built = replace(
        paid.state,
        machines=state.machines + (machine,),
        floor_space=add_placement(state.floor_space, placement),
    )
    return accept(_with_energy(built))


def remove_machine(state: State, rules: Rules, command: RemoveMachine) -> StepResult:
    machine = state.find_machine(command.machine_id)
    if machine is None:
        return reject(state, "Machine not found")

    returned = _return_buffer(state, rules, machine.buffer)
    if not returned.ok:
        return reject(state, returned.error)

    removed = replace(
        returned.state,
        machines=tuple(m for m in state.machines if m.id != machine.id),
        floor_space=remove_placement(state.floor_space, machine.id),
    )
    return accept(_with_energy(removed))


def build_generator(state: State, rules: Rules, command: BuildGenerator) -> StepResult:
    x, y = command.x, command.y
    if not _is_coordinate(x) or not _is_coordinate(y):
        return reject(state, "Position (x, y) is required")

    generator_type = rules.generator_type(command.generator_type)
    if generator_type is None:
        return reject(state, "Generator type not found")

    size = footprint_size(generator_type.space_cost)
    if size is None:
        return reject(state, NON_SQUARE_FOOTPRINT)
    problem = check_placement(state.floor_space, x, y, size)
    if problem:
        return reject(state, problem)

    paid = _consume_build_item(state, rules, generator_type.item_id, "this generator")
    if not paid.ok:
        return reject(state, paid.error)

    generator_id = structure_id(GENERATOR, state.tick, x, y)
    generator = Generator(
        id=generator_id,
        type=generator_type.key,
        x=x,
        y=y,
        energy_output=generator_type.energy_output,
        space_used=generator_type.space_cost,
    )
    placement = Placement(structure_id=generator_id, x=x, y=y, size=size, kind=GENERATOR)
    built = replace(
        paid.state,
        generators=state.generators + (generator,),
        floor_space=add_placement(state.floor_space, placement),
    )
    return accept(_with_energy(built))


def remove_generator(state: State, rules: Rules, command: RemoveGenerator) -> StepResult:
    if state.find_generator(command.generator_id) is None:
        return reject(state, "Generator not found")

    removed = replace(
        state,
        generators=tuple(g for g in state.generators if g.id != command.generator_id),
        floor_space=remove_placement(state.floor_space, command.generator_id),
    )
    return accept(_with_energy(removed))


# ---------------------------------------------------------------------------
# Machines
# ---------------------------------------------------------------------------

def assign_recipe(state: State, rules: Rules, command: AssignRecipe) -> StepResult:
    machine = state.find_machine(command.machine_id)
    if machine is None:
        return reject(state, "Machine not found")

    recipe_id = command.recipe_id
    if recipe_id is not None:
        if rules.recipe(recipe_id) is None:
            return reject(state, "Recipe not found")
        if recipe_id not in state.unlocked_recipes:
            return reject(state, "Recipe not unlocked")

    returned = _return_buffer(state, rules, machine.buffer)
    if not returned.ok:
        return reject(state, returned.error)

    # A persisting shortage re-blocks the machine on the next tick.
    status = WORKING if recipe_id is not None else IDLE
    updated = replace(machine, recipe_id=recipe_id, buffer=frozen_map(), status=status)
    return accept(_with_energy(_replace_machine(returned.state, updated)))


def toggle_machine(state: State, rules: Rules, command: ToggleMachine) -> StepResult:
    machine = state.find_machine(command.machine_id)
    if machine is None:
        return reject(state, "Machine not found")

    updated = replace(machine, enabled=not machine.enabled)
    return accept(_with_energy(_replace_machine(state, updated)))


def unblock_machine(state: State, rules: Rules, command: UnblockMachine) -> StepResult:
    machine = state.find_machine(command.machine_id)
    if machine is None:
        return reject(state, "Machine not found")
    if machine.status != BLOCKED:
        return reject(state, "Machine is not blocked")

    # The next tick blocks it again if the shortage persists.
    updated = replace(machine, status=WORKING if machine.recipe_id else IDLE)
    return accept(_with_energy(_replace_machine(state, updated)))


# ---------------------------------------------------------------------------
# Economy and research
# ---------------------------------------------------------------------------

def sell_goods(state: State, rules: Rules, command: Sell) -> StepResult:
    item_id, quantity = command.item_id, command.quantity
    if isinstance(quantity, bool) or not isinstance(quantity, int) or quantity < 1:
        return reject(state, "Quantity must be a positive whole number")

    material = rules.material(item_id)
    if material is None:
        return reject(state, "Item not found in materials list")
    if state.inventory.get(item_id, 0) < quantity:
        return reject(state, "Not enough items in inventory")

    earned = sale_value(material.base_price, state.popularity(item_id), quantity)
    inventory = dict(state.inventory)
    remove_items(inventory, item_id, quantity)
    popularity = decay_popularity(state.market_popularity, item_id, quantity, rules.market)
    return accept(
        replace(
            state,
            credits=state.credits + earned,
            inventory=frozen_map(inventory),
            market_popularity=frozen_map(popularity),
        )
    )


def toggle_research(state: State, rules: Rules, command: ToggleResearch) -> StepResult:
    if not isinstance(command.active, bool):
        return reject(state, "Research toggle must be true or false")
    research = replace(state.research, active=command.active)
    return accept(_with_energy(replace(state, research=research)))


def unlock_recipe(state: State, rules: Rules, command: UnlockRecipe) -> StepResult:
    recipe_id = command.recipe_id
    if recipe_id not in state.discovered_recipes:
        return reject(state, "Recipe not discovered yet")
    if recipe_id in state.unlocked_recipes:
        return reject(state, "Recipe already unlocked")

    return accept(replace(state, unlocked_recipes=state.unlocked_recipes + (recipe_id,)))


def expand_floor(state: State, rules: Rules, command: ExpandFloor) -> StepResult:
    expansion = next_expansion_chunk(state.floor_space, rules)
    if state.credits < expansion.cost:
        return reject(state, f"Not enough credits (need {expansion.cost})")

    floor = replace(state.floor_space, width=expansion.new_width, height=expansion.new_height)
    return accept(replace(state, credits=state.credits - expansion.cost, floor_space=floor))


def expand_storage(state: State, rules: Rules, command: ExpandStorage) -> StepResult:
    cost = storage_upgrade_cost(state, rules)
    if state.credits < cost:
        return reject(state, f"Not enough credits (need {cost})")

    return accept(
        replace(
            state,
            credits=state.credits - cost,
            inventory_space=state.inventory_space + rules.inventory_space.upgrade_amount,
        )
    )
