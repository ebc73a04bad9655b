"""Tick pipeline: one call advances the factory by one discrete step.

Phases always run in the same order: power allocation, extraction, machine
production, research, market recovery, then the tick counter and the
generator seed advance.  The input state is never modified.
"""
from __future__ import annotations

import logging
from dataclasses import replace
from typing import Collection, Dict, Iterable

from config import BLOCKED, IDLE, WORKING
from factory.entities import ExtractionNode, Machine, State, frozen_map
from factory.inventory import add_items, can_store_all, remove_items, space_left
from factory.market import recover_popularity
from factory.power import allocate_power
from factory.research import roll_discovery
from factory.rng import Mulberry32
from rules_catalog import Rules

logger = logging.getLogger(__name__)


def _extract(nodes: Iterable[ExtractionNode], inventory: Dict[str, int], capacity: int, rules: Rules) -> None:
    for node in nodes:
        if not node.active:
            continue
        # Anything beyond the stack limit is lost, not queued.
        to_add = min(node.rate, space_left(inventory, node.resource_id, capacity, rules))
        add_items(inventory, node.resource_id, to_add)


def _run_machine(
    machine: Machine, inventory: Dict[str, int], capacity: int, unlocked: Collection[str], rules: Rules
) -> Machine:
    if not machine.enabled or machine.recipe_id is None or machine.status == BLOCKED:
        return machine

    recipe = rules.recipe(machine.recipe_id)
    if recipe is None:
        logger.warning("Machine %s references unknown recipe %s; idling", machine.id, machine.recipe_id)
        return replace(machine, status=IDLE)
    if recipe.key not in unlocked:
        return replace(machine, status=IDLE)

    buffer = dict(machine.buffer)
    for item_id, needed in recipe.inputs.items():
        still_needed = needed - buffer.get(item_id, 0)
        to_pull = min(still_needed, inventory.get(item_id, 0))
        if to_pull > 0:
            buffer[item_id] = buffer.get(item_id, 0) + to_pull
            remove_items(inventory, item_id, to_pull)

    complete = all(buffer.get(item_id, 0) >= needed for item_id, needed in recipe.inputs.items())
    # Outputs are all-or-nothing; without room the pulled inputs stay buffered.
    if complete and can_store_all(inventory, recipe.outputs, capacity, rules):
        for item_id, needed in recipe.inputs.items():
            remove_items(buffer, item_id, needed)
        for item_id, quantity in recipe.outputs.items():
            add_items(inventory, item_id, quantity)

    return replace(machine, buffer=frozen_map(buffer), status=WORKING)


def advance_tick(state: State, rules: Rules) -> State:
    rng = Mulberry32(state.seed)

    machines, energy = allocate_power(state.machines, state.generators)

    inventory = dict(state.inventory)
    _extract(state.extraction_nodes, inventory, state.inventory_space, rules)

    unlocked = set(state.unlocked_recipes)
    processed = []
    for machine in machines:
        processed.append(_run_machine(machine, inventory, state.inventory_space, unlocked, rules))
    machines = tuple(processed)

    discovered = state.discovered_recipes
    if state.research.active and energy.spare >= rules.research.energy_cost:
        found = roll_discovery(rng, rules, discovered, inventory)
        if found is not None:
            discovered = discovered + (found,)

    # Sales are commands applied between ticks, so nothing counts as sold
    # during the tick itself and every tracked item recovers.
    popularity = recover_popularity(state.market_popularity, rules.market, sold_this_tick=frozenset())

    return replace(
        state,
        tick=state.tick + 1,
        seed=rng.seed(),
        energy=energy,
        inventory=frozen_map(inventory),
        machines=machines,
        discovered_recipes=discovered,
        market_popularity=frozen_map(popularity),
    )
