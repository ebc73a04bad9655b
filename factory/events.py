"""Human-readable summary of what changed during a tick."""
from __future__ import annotations

from typing import List

from config import BLOCKED
from factory.entities import State
from factory.inventory import max_stack
from rules_catalog import Rules


def describe_tick(previous: State, current: State, rules: Rules) -> List[str]:
    events: List[str] = []

    for node in current.extraction_nodes:
        if not node.active:
            continue
        name = rules.display_name(node.resource_id)
        before = previous.inventory.get(node.resource_id, 0)
        extracted = current.inventory.get(node.resource_id, 0) - before
        if extracted > 0:
            events.append(f"Extracted {extracted} {name}")
        elif node.rate > 0:
            limit = max_stack(node.resource_id, current.inventory_space, rules)
            if before >= limit:
                events.append(f"{name} storage full ({limit} max)")

    for item_id, quantity in current.inventory.items():
        material = rules.material(item_id)
        if material is None or material.category == "raw":
            continue
        produced = quantity - previous.inventory.get(item_id, 0)
        if produced > 0:
            events.append(f"Produced {produced} {material.display_name}")

    for recipe_id in current.discovered_recipes:
        if recipe_id not in previous.discovered_recipes:
            events.append(f"Discovered recipe: {recipe_id.replace('_', ' ')}")

    for machine in current.machines:
        before = previous.find_machine(machine.id)
        if before is not None and before.status != BLOCKED and machine.status == BLOCKED:
            events.append(f"Machine {machine.id} blocked (energy shortage)")

    return events
