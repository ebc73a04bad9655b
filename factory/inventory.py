"""Weight-based storage helpers.

Storage is a single weight budget: an item can be stacked up to
``capacity // weight`` units regardless of what else is stored.
"""
from __future__ import annotations

from typing import Dict, Mapping

from rules_catalog import Rules


def item_weight(item_id: str, rules: Rules) -> int:
    material = rules.material(item_id)
    return material.weight if material else 1


def max_stack(item_id: str, capacity: int, rules: Rules) -> int:
    return capacity // item_weight(item_id, rules)


def space_left(inventory: Mapping[str, int], item_id: str, capacity: int, rules: Rules) -> int:
    return max_stack(item_id, capacity, rules) - inventory.get(item_id, 0)


def add_items(inventory: Dict[str, int], item_id: str, quantity: int) -> None:
    if quantity > 0:
        inventory[item_id] = inventory.get(item_id, 0) + quantity


def remove_items(inventory: Dict[str, int], item_id: str, quantity: int) -> None:
    remaining = inventory.get(item_id, 0) - quantity
    if remaining > 0:
        inventory[item_id] = remaining
    else:
        inventory.pop(item_id, None)


def can_store_all(inventory: Mapping[str, int], items: Mapping[str, int], capacity: int, rules: Rules) -> bool:
    """True when every ``items`` entry fits on top of ``inventory``."""
    return all(space_left(inventory, item_id, capacity, rules) >= quantity for item_id, quantity in items.items())
