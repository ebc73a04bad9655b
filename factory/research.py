"""Recipe discovery rolls."""
from __future__ import annotations

import logging
from typing import Collection, List, Mapping, Tuple

from factory.rng import Mulberry32
from rules_catalog import RecipeDefinition, Rules

logger = logging.getLogger(__name__)


def discovery_weight(recipe: RecipeDefinition, inventory: Mapping[str, int], proximity_weight: float) -> float:
    """Recipes whose inputs are already in stock are likelier to be found."""
    in_stock = sum(1 for item_id in recipe.inputs if inventory.get(item_id, 0) > 0)
    return 1 + proximity_weight * in_stock


def undiscovered_recipes(rules: Rules, discovered: Collection[str]) -> List[RecipeDefinition]:
    return [recipe for recipe in rules.recipes if recipe.key not in discovered]


def roll_discovery(
    rng: Mulberry32, rules: Rules, discovered: Collection[str], inventory: Mapping[str, int]
) -> str | None:
    """Draw for a discovery; return the discovered recipe id, if any.

    One draw decides whether anything is found; a second, only when it is,
    picks the recipe by weight, walking the rule table in order.
    """
    roll = rng.next()
    candidates = undiscovered_recipes(rules, discovered)
    if not candidates or roll >= rules.research.discovery_chance:
        return None

    weighted: List[Tuple[RecipeDefinition, float]] = [
        (recipe, discovery_weight(recipe, inventory, rules.research.proximity_weight)) for recipe in candidates
    ]
    selection = rng.next() * sum(weight for _, weight in weighted)
    for recipe, weight in weighted:
        selection -= weight
        if selection <= 0:
            logger.info("Recipe discovered: %s", recipe.key)
            return recipe.key
    return None
