import json
import unittest
from pathlib import Path

from rules_catalog import (
    DEFAULT_RULES,
    GeneratorType,
    MarketTuning,
    load_rules,
    parse_rules,
)


class RulesCatalogTests(unittest.TestCase):
    def test_default_rules_have_expected_scale(self):
        self.assertEqual(len(DEFAULT_RULES.materials), 33)
        self.assertEqual(len(DEFAULT_RULES.recipes), 28)
        tiers = {recipe.tier for recipe in DEFAULT_RULES.recipes}
        self.assertEqual(tiers, {1, 2, 3, 4})

        known = {material.key for material in DEFAULT_RULES.materials}
        for recipe in DEFAULT_RULES.recipes:
            self.assertLessEqual(set(recipe.inputs), known)
            self.assertLessEqual(set(recipe.outputs), known)

    def test_every_footprint_is_square(self):
        for generator in DEFAULT_RULES.generator_types:
            root = int(generator.space_cost ** 0.5)
            self.assertEqual(root * root, generator.space_cost, generator.key)

    def test_lookup_helpers(self):
        self.assertEqual(DEFAULT_RULES.material("planks").weight, 2)
        self.assertIsNone(DEFAULT_RULES.material("mithril"))
        self.assertEqual(dict(DEFAULT_RULES.recipe("planks").inputs), {"wood": 2})
        self.assertEqual(DEFAULT_RULES.generator_type("manual_crank").energy_output, 3)
        self.assertEqual(DEFAULT_RULES.display_name("iron_ore"), "Iron Ore")
        self.assertEqual(DEFAULT_RULES.display_name("mystery"), "mystery")

    def test_loads_defaults_when_file_missing(self):
        self.assertIs(load_rules(Path("does_not_exist.json")), DEFAULT_RULES)

    def test_non_object_payload_uses_defaults(self):
        self.assertIs(parse_rules(["wood"]), DEFAULT_RULES)


def test_invalid_json_uses_defaults(tmp_path):
    path = tmp_path / "rules.json"
    path.write_text("{not json")
    assert load_rules(path) is DEFAULT_RULES


def test_override_tables_are_validated_independently(tmp_path):
    path = tmp_path / "rules.json"
    path.write_text(
        json.dumps(
            {
                "market": {"decay_rate": 0.1, "recovery_rate": 0.01},
                "research": {"discovery_chance": 2.0},
                "generators": {
                    "treadmill": {
                        "display_name": "Treadmill",
                        "item_id": "manual_crank",
                        "energy_output": 2,
                        "space_cost": 4,
                    },
                    "windmill": {
                        "display_name": "Windmill",
                        "item_id": "water_wheel",
                        "energy_output": 6,
                        "space_cost": 6,
                    },
                },
            }
        )
    )

    rules = load_rules(path)

    assert rules.market == MarketTuning(decay_rate=0.1, recovery_rate=0.01)
    assert rules.research == DEFAULT_RULES.research
    assert rules.generator_types == (GeneratorType("treadmill", "Treadmill", "manual_crank", 2, 4),)
    assert rules.materials == DEFAULT_RULES.materials
    assert rules.recipes == DEFAULT_RULES.recipes


def test_recipes_must_reference_known_materials():
    rules = parse_rules(
        {
            "recipes": {
                "alchemy": {"inputs": {"lead": 1}, "outputs": {"gold": 1}},
                "bundle": {"inputs": {"wood": 4}, "outputs": {"planks": 1}, "tier": 2},
            }
        }
    )
    assert [recipe.key for recipe in rules.recipes] == ["bundle"]
    assert rules.recipe("bundle").tier == 2


def test_custom_materials_filter_default_recipes():
    rules = parse_rules(
        {
            "materials": {
                "wood": {"display_name": "Wood", "base_price": 2, "category": "raw"},
                "planks": {"display_name": "Planks", "base_price": 5, "category": "intermediate", "weight": 2},
                "bad item": {"display_name": "Bad", "base_price": 1},
                "negative": {"display_name": "Negative", "base_price": -3},
            }
        }
    )
    assert [material.key for material in rules.materials] == ["wood", "planks"]
    assert [recipe.key for recipe in rules.recipes] == ["planks"]
    assert rules.generator_types == ()


def test_machine_tuning_rejects_non_square_footprint():
    rules = parse_rules({"machines": {"space_cost": 6}})
    assert rules.machines == DEFAULT_RULES.machines

    rules = parse_rules({"machines": {"space_cost": 9, "energy_draw": 4}})
    assert (rules.machines.space_cost, rules.machines.energy_draw) == (9, 4)
