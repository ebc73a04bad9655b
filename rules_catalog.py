"""Static rule tables: materials, recipes, generators and tuning constants.

The simulation never mutates a :class:`Rules` value.  ``load_rules`` reads an
optional JSON override; any table that is missing or fails validation falls
back to the built-in defaults.
"""
from __future__ import annotations

import json
import math
import re
from dataclasses import dataclass
from pathlib import Path
from types import MappingProxyType
from typing import Any, Dict, Mapping, Tuple

from config import RULES_FILE

ITEM_ID_RE = re.compile(r"^[a-z][a-z0-9_]*$")
MATERIAL_CATEGORIES: Tuple[str, ...] = ("raw", "intermediate", "final", "equipment")


@dataclass(frozen=True)
class MaterialDefinition:
    key: str
    display_name: str
    base_price: int
    category: str
    weight: int


@dataclass(frozen=True)
class RecipeDefinition:
    key: str
    inputs: Mapping[str, int]
    outputs: Mapping[str, int]
    tier: int = 1


@dataclass(frozen=True)
class GeneratorType:
    key: str
    display_name: str
    item_id: str
    energy_output: int
    space_cost: int


@dataclass(frozen=True)
class MachineTuning:
    item_id: str = "production_machine"
    space_cost: int = 4
    energy_draw: int = 2


@dataclass(frozen=True)
class MarketTuning:
    decay_rate: float = 0.05
    recovery_rate: float = 0.02
    min_popularity: float = 0.5
    max_popularity: float = 2.0


@dataclass(frozen=True)
class ResearchTuning:
    energy_cost: int = 3
    discovery_chance: float = 0.15
    proximity_weight: float = 0.5


@dataclass(frozen=True)
class FloorTuning:
    initial_width: int = 8
    initial_chunk_size: int = 8
    cost_per_cell: int = 10


@dataclass(frozen=True)
class StorageTuning:
    base_cost: int = 50
    cost_growth: float = 1.5
    upgrade_amount: int = 50


@dataclass(frozen=True)
class Rules:
    """Immutable rule set handed to every engine call."""

    materials: Tuple[MaterialDefinition, ...]
    recipes: Tuple[RecipeDefinition, ...]
    generator_types: Tuple[GeneratorType, ...]
    machines: MachineTuning = MachineTuning()
    market: MarketTuning = MarketTuning()
    research: ResearchTuning = ResearchTuning()
    floor_space: FloorTuning = FloorTuning()
    inventory_space: StorageTuning = StorageTuning()

    def material(self, item_id: str) -> MaterialDefinition | None:
        for material in self.materials:
            if material.key == item_id:
                return material
        return None

    def recipe(self, recipe_id: str) -> RecipeDefinition | None:
        for recipe in self.recipes:
            if recipe.key == recipe_id:
                return recipe
        return None

    def generator_type(self, key: str) -> GeneratorType | None:
        for generator in self.generator_types:
            if generator.key == key:
                return generator
        return None

    def display_name(self, item_id: str) -> str:
        material = self.material(item_id)
        return material.display_name if material else item_id


def _material(key: str, name: str, price: int, category: str, weight: int) -> MaterialDefinition:
    return MaterialDefinition(key, name, price, category, weight)


def _recipe(key: str, inputs: Dict[str, int], outputs: Dict[str, int], tier: int) -> RecipeDefinition:
    return RecipeDefinition(key, MappingProxyType(dict(inputs)), MappingProxyType(dict(outputs)), tier)


# Weight bands: raw=1, intermediate=1-4, final=5-12, equipment=8-25
DEFAULT_MATERIALS: Tuple[MaterialDefinition, ...] = (
    _material("wood", "Wood", 2, "raw", 1),
    _material("stone", "Stone", 2, "raw", 1),
    _material("iron_ore", "Iron Ore", 3, "raw", 1),
    _material("copper_ore", "Copper Ore", 3, "raw", 1),
    _material("coal", "Coal", 2, "raw", 1),
    _material("clay", "Clay", 2, "raw", 1),
    _material("sand", "Sand", 1, "raw", 1),
    _material("planks", "Planks", 5, "intermediate", 2),
    _material("charcoal", "Charcoal", 4, "intermediate", 1),
    _material("stone_bricks", "Stone Bricks", 6, "intermediate", 3),
    _material("gravel", "Gravel", 3, "intermediate", 1),
    _material("iron_ingot", "Iron Ingot", 10, "intermediate", 3),
    _material("copper_ingot", "Copper Ingot", 10, "intermediate", 3),
    _material("bricks", "Bricks", 8, "intermediate", 3),
    _material("glass", "Glass", 7, "intermediate", 2),
    _material("iron_plate", "Iron Plate", 15, "intermediate", 4),
    _material("iron_rod", "Iron Rod", 12, "intermediate", 2),
    _material("iron_gear", "Iron Gear", 20, "intermediate", 3),
    _material("copper_wire", "Copper Wire", 14, "intermediate", 1),
    _material("copper_plate", "Copper Plate", 15, "intermediate", 4),
    _material("wooden_beam", "Wooden Beam", 8, "intermediate", 3),
    _material("wooden_crate", "Wooden Crate", 12, "intermediate", 4),
    _material("tool_handle", "Tool Handle", 25, "final", 5),
    _material("basic_tools", "Basic Tools", 45, "final", 6),
    _material("simple_motor", "Simple Motor", 40, "final", 8),
    _material("window_frame", "Window Frame", 30, "final", 6),
    _material("foundation_block", "Foundation Block", 35, "final", 10),
    _material("reinforced_wall", "Reinforced Wall", 40, "final", 10),
    _material("mechanical_arm", "Mechanical Arm", 80, "final", 12),
    _material("production_machine", "Production Machine", 100, "equipment", 20),
    _material("manual_crank", "Manual Crank", 30, "equipment", 8),
    _material("water_wheel", "Water Wheel", 80, "equipment", 15),
    _material("steam_engine", "Steam Engine", 150, "equipment", 25),
)

DEFAULT_RECIPES: Tuple[RecipeDefinition, ...] = (
    _recipe("planks", {"wood": 2}, {"planks": 1}, 1),
    _recipe("charcoal", {"wood": 3}, {"charcoal": 2}, 1),
    _recipe("stone_bricks", {"stone": 2}, {"stone_bricks": 1}, 1),
    _recipe("gravel", {"stone": 1}, {"gravel": 2}, 1),
    _recipe("bricks", {"clay": 2}, {"bricks": 1}, 1),
    _recipe("glass", {"sand": 2}, {"glass": 1}, 1),
    _recipe("iron_ingot", {"iron_ore": 2, "coal": 1}, {"iron_ingot": 1}, 1),
    _recipe("copper_ingot", {"copper_ore": 2, "coal": 1}, {"copper_ingot": 1}, 1),
    _recipe("iron_plate", {"iron_ingot": 1}, {"iron_plate": 1}, 2),
    _recipe("iron_rod", {"iron_ingot": 1}, {"iron_rod": 2}, 2),
    _recipe("iron_gear", {"iron_ingot": 2}, {"iron_gear": 1}, 2),
    _recipe("copper_wire", {"copper_ingot": 1}, {"copper_wire": 3}, 2),
    _recipe("copper_plate", {"copper_ingot": 1}, {"copper_plate": 1}, 2),
    _recipe("wooden_beam", {"planks": 2}, {"wooden_beam": 1}, 2),
    _recipe("wooden_crate", {"planks": 4}, {"wooden_crate": 1}, 2),
    _recipe("iron_ingot_charcoal", {"iron_ore": 2, "charcoal": 1}, {"iron_ingot": 1}, 2),
    _recipe("copper_ingot_charcoal", {"copper_ore": 2, "charcoal": 1}, {"copper_ingot": 1}, 2),
    _recipe("tool_handle", {"wooden_beam": 1, "iron_rod": 1}, {"tool_handle": 1}, 3),
    _recipe("basic_tools", {"tool_handle": 1, "iron_plate": 2}, {"basic_tools": 1}, 3),
    _recipe("simple_motor", {"copper_wire": 3, "iron_plate": 1, "iron_gear": 1}, {"simple_motor": 1}, 3),
    _recipe("window_frame", {"glass": 2, "wooden_beam": 1}, {"window_frame": 1}, 3),
    _recipe("foundation_block", {"stone_bricks": 2, "wooden_beam": 1}, {"foundation_block": 1}, 3),
    _recipe("reinforced_wall", {"bricks": 2, "iron_rod": 2}, {"reinforced_wall": 1}, 3),
    _recipe("mechanical_arm", {"simple_motor": 1, "iron_gear": 2, "iron_plate": 1}, {"mechanical_arm": 1}, 3),
    _recipe("production_machine", {"iron_plate": 4, "iron_gear": 3, "wooden_beam": 2}, {"production_machine": 1}, 4),
    _recipe("manual_crank", {"wood": 5, "iron_rod": 2}, {"manual_crank": 1}, 4),
    _recipe("water_wheel", {"wooden_beam": 4, "iron_gear": 2, "iron_rod": 3}, {"water_wheel": 1}, 4),
    _recipe(
        "steam_engine",
        {"iron_plate": 6, "copper_plate": 3, "iron_gear": 4, "simple_motor": 1},
        {"steam_engine": 1},
        4,
    ),
)

DEFAULT_GENERATOR_TYPES: Tuple[GeneratorType, ...] = (
    GeneratorType("manual_crank", "Manual Crank", "manual_crank", energy_output=3, space_cost=1),
    GeneratorType("water_wheel", "Water Wheel", "water_wheel", energy_output=8, space_cost=4),
    GeneratorType("steam_engine", "Steam Engine", "steam_engine", energy_output=15, space_cost=9),
)

DEFAULT_RULES = Rules(
    materials=DEFAULT_MATERIALS,
    recipes=DEFAULT_RECIPES,
    generator_types=DEFAULT_GENERATOR_TYPES,
)


# ---------------------------------------------------------------------------
# Validation helpers
# ---------------------------------------------------------------------------

def _is_valid_item_id(value: Any) -> bool:
    return isinstance(value, str) and bool(ITEM_ID_RE.fullmatch(value))


def _coerce_int(value: Any, *, minimum: int | None = None) -> int | None:
    if isinstance(value, bool):
        return None
    if isinstance(value, int):
        result = value
    elif isinstance(value, float) and value.is_integer():
        result = int(value)
    else:
        return None

    if minimum is not None and result < minimum:
        return None
    return result


def _coerce_fraction(value: Any, *, allow_zero: bool = True) -> float | None:
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        return None
    if not math.isfinite(value) or value < 0 or (value == 0 and not allow_zero):
        return None
    return float(value)


def _is_perfect_square(value: int) -> bool:
    return value > 0 and math.isqrt(value) ** 2 == value


def _parse_quantities(raw: Any, known_items: set[str]) -> Mapping[str, int] | None:
    if not isinstance(raw, dict) or not raw:
        return None
    quantities: Dict[str, int] = {}
    for item_id, amount in raw.items():
        quantity = _coerce_int(amount, minimum=1)
        if item_id not in known_items or quantity is None:
            return None
        quantities[item_id] = quantity
    return MappingProxyType(quantities)


# ---------------------------------------------------------------------------
# Table parsers
# ---------------------------------------------------------------------------

def _parse_material_entry(key: str, entry: Dict[str, Any]) -> MaterialDefinition | None:
    if not _is_valid_item_id(key):
        return None

    display_name = entry.get("display_name")
    base_price = _coerce_int(entry.get("base_price"), minimum=0)
    category = entry.get("category", "raw")
    weight = _coerce_int(entry.get("weight", 1), minimum=1)

    if not isinstance(display_name, str) or not display_name.strip():
        return None
    if base_price is None or weight is None:
        return None
    if category not in MATERIAL_CATEGORIES:
        return None

    return MaterialDefinition(key, display_name.strip(), base_price, category, weight)


def _parse_recipe_entry(key: str, entry: Dict[str, Any], known_items: set[str]) -> RecipeDefinition | None:
    if not _is_valid_item_id(key):
        return None

    inputs = _parse_quantities(entry.get("inputs"), known_items)
    outputs = _parse_quantities(entry.get("outputs"), known_items)
    tier = _coerce_int(entry.get("tier", 1), minimum=0)
    if inputs is None or outputs is None or tier is None:
        return None

    return RecipeDefinition(key, inputs, outputs, tier)


def _parse_generator_entry(key: str, entry: Dict[str, Any], known_items: set[str]) -> GeneratorType | None:
    if not _is_valid_item_id(key):
        return None

    display_name = entry.get("display_name")
    item_id = entry.get("item_id", key)
    energy_output = _coerce_int(entry.get("energy_output"), minimum=1)
    space_cost = _coerce_int(entry.get("space_cost"), minimum=1)

    if not isinstance(display_name, str) or not display_name.strip():
        return None
    if item_id not in known_items:
        return None
    if energy_output is None or space_cost is None or not _is_perfect_square(space_cost):
        return None

    return GeneratorType(key, display_name.strip(), item_id, energy_output, space_cost)


def _parse_machine_tuning(raw: Any, known_items: set[str]) -> MachineTuning | None:
    if not isinstance(raw, dict):
        return None
    defaults = MachineTuning()
    item_id = raw.get("item_id", defaults.item_id)
    space_cost = _coerce_int(raw.get("space_cost", defaults.space_cost), minimum=1)
    energy_draw = _coerce_int(raw.get("energy_draw", defaults.energy_draw), minimum=0)
    if item_id not in known_items:
        return None
    if space_cost is None or energy_draw is None or not _is_perfect_square(space_cost):
        return None
    return MachineTuning(item_id, space_cost, energy_draw)


def _parse_market_tuning(raw: Any) -> MarketTuning | None:
    if not isinstance(raw, dict):
        return None
    defaults = MarketTuning()
    decay_rate = _coerce_fraction(raw.get("decay_rate", defaults.decay_rate))
    recovery_rate = _coerce_fraction(raw.get("recovery_rate", defaults.recovery_rate))
    min_popularity = _coerce_fraction(raw.get("min_popularity", defaults.min_popularity), allow_zero=False)
    max_popularity = _coerce_fraction(raw.get("max_popularity", defaults.max_popularity), allow_zero=False)
    if None in (decay_rate, recovery_rate, min_popularity, max_popularity):
        return None
    if min_popularity > max_popularity:
        return None
    return MarketTuning(decay_rate, recovery_rate, min_popularity, max_popularity)


def _parse_research_tuning(raw: Any) -> ResearchTuning | None:
    if not isinstance(raw, dict):
        return None
    defaults = ResearchTuning()
    energy_cost = _coerce_int(raw.get("energy_cost", defaults.energy_cost), minimum=0)
    discovery_chance = _coerce_fraction(raw.get("discovery_chance", defaults.discovery_chance))
    proximity_weight = _coerce_fraction(raw.get("proximity_weight", defaults.proximity_weight))
    if energy_cost is None or discovery_chance is None or proximity_weight is None:
        return None
    if discovery_chance > 1:
        return None
    return ResearchTuning(energy_cost, discovery_chance, proximity_weight)


def _parse_floor_tuning(raw: Any) -> FloorTuning | None:
    if not isinstance(raw, dict):
        return None
    defaults = FloorTuning()
    initial_width = _coerce_int(raw.get("initial_width", defaults.initial_width), minimum=1)
    initial_chunk_size = _coerce_int(raw.get("initial_chunk_size", defaults.initial_chunk_size), minimum=1)
    cost_per_cell = _coerce_int(raw.get("cost_per_cell", defaults.cost_per_cell), minimum=0)
    if initial_width is None or initial_chunk_size is None or cost_per_cell is None:
        return None
    return FloorTuning(initial_width, initial_chunk_size, cost_per_cell)


def _parse_storage_tuning(raw: Any) -> StorageTuning | None:
    if not isinstance(raw, dict):
        return None
    defaults = StorageTuning()
    base_cost = _coerce_int(raw.get("base_cost", defaults.base_cost), minimum=0)
    cost_growth = _coerce_fraction(raw.get("cost_growth", defaults.cost_growth), allow_zero=False)
    upgrade_amount = _coerce_int(raw.get("upgrade_amount", defaults.upgrade_amount), minimum=1)
    if base_cost is None or cost_growth is None or upgrade_amount is None:
        return None
    return StorageTuning(base_cost, cost_growth, upgrade_amount)


def _parse_table(raw: Any, parser, *extra) -> Tuple[Any, ...]:
    if not isinstance(raw, dict):
        return ()
    parsed = []
    for key, entry in raw.items():
        if not isinstance(key, str) or not isinstance(entry, dict):
            continue
        definition = parser(key, entry, *extra)
        if definition is not None:
            parsed.append(definition)
    return tuple(parsed)


def parse_rules(raw: Any) -> Rules:
    """Build a :class:`Rules` from a decoded JSON object.

    Each table is validated independently; a table that is absent or has no
    valid entries keeps its default.  Recipes and generators are checked
    against the final material table.
    """
    if not isinstance(raw, dict):
        return DEFAULT_RULES

    materials = _parse_table(raw.get("materials"), _parse_material_entry) or DEFAULT_RULES.materials
    known_items = {material.key for material in materials}

    recipes = _parse_table(raw.get("recipes"), _parse_recipe_entry, known_items)
    if not recipes:
        recipes = tuple(
            recipe
            for recipe in DEFAULT_RULES.recipes
            if set(recipe.inputs) <= known_items and set(recipe.outputs) <= known_items
        )

    generator_types = _parse_table(raw.get("generators"), _parse_generator_entry, known_items)
    if not generator_types:
        generator_types = tuple(g for g in DEFAULT_RULES.generator_types if g.item_id in known_items)

    return Rules(
        materials=materials,
        recipes=recipes,
        generator_types=generator_types,
        machines=_parse_machine_tuning(raw.get("machines"), known_items) or DEFAULT_RULES.machines,
        market=_parse_market_tuning(raw.get("market")) or DEFAULT_RULES.market,
        research=_parse_research_tuning(raw.get("research")) or DEFAULT_RULES.research,
        floor_space=_parse_floor_tuning(raw.get("floor_space")) or DEFAULT_RULES.floor_space,
        inventory_space=_parse_storage_tuning(raw.get("inventory_space")) or DEFAULT_RULES.inventory_space,
    )


def load_rules(path: Path = RULES_FILE) -> Rules:
    if not path.exists():
        return DEFAULT_RULES

    try:
        raw = json.loads(path.read_text())
    except (json.JSONDecodeError, OSError):
        return DEFAULT_RULES

    return parse_rules(raw)
