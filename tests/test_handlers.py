import unittest
from dataclasses import replace

from config import BLOCKED, IDLE, WORKING
from factory import advance_tick, apply_command
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
from factory.entities import (
    EnergySnapshot,
    FloorSpace,
    Generator,
    Machine,
    Placement,
    State,
    frozen_map,
)
from factory.handlers import storage_upgrade_cost, structure_id
from factory.placement import COLLISION, NON_SQUARE_FOOTPRINT, OUT_OF_BOUNDS
from rules_catalog import DEFAULT_RULES, GeneratorType, MachineTuning


def make_state(inventory=None, popularity=None, **overrides) -> State:
    base = State(
        tick=0,
        seed=12345,
        credits=0,
        floor_space=FloorSpace(8, 8),
        energy=EnergySnapshot(),
        inventory_space=100,
        inventory=frozen_map(inventory),
        market_popularity=frozen_map(popularity),
    )
    return replace(base, **overrides)


def placed_machine(machine_id="m1", x=4, y=4, **overrides):
    machine = replace(Machine(id=machine_id, x=x, y=y, space_used=4, energy_draw=2), **overrides)
    placement = Placement(machine_id, x, y, 2, "machine")
    return machine, placement


class HandlerTestCase(unittest.TestCase):
    rules = DEFAULT_RULES

    def apply(self, state, command):
        return apply_command(state, self.rules, command)

    def assertRejected(self, state, command, message):
        result = self.apply(state, command)
        self.assertEqual(result.error, message)
        self.assertFalse(result.ok)
        self.assertIs(result.state, state)
        return result


class BuildStructureTests(HandlerTestCase):
    def test_machine_then_generator_collision_scenario(self):
        state = make_state(inventory={"production_machine": 1, "water_wheel": 2})

        built = self.apply(state, BuildMachine(x=0, y=0))
        self.assertTrue(built.ok)
        state = built.state
        self.assertEqual(len(state.machines), 1)
        self.assertEqual(state.floor_space.placements[0].size, 2)

        self.assertRejected(state, BuildGenerator("water_wheel", x=1, y=1), COLLISION)

        placed = self.apply(state, BuildGenerator("water_wheel", x=2, y=0))
        self.assertTrue(placed.ok)
        self.assertEqual(len(placed.state.generators), 1)
        self.assertEqual(placed.state.energy, EnergySnapshot(produced=8, consumed=0))
        self.assertEqual(dict(placed.state.inventory), {"water_wheel": 1})

    def test_build_machine_consumes_item_and_uses_deterministic_id(self):
        state = make_state(inventory={"production_machine": 1}, tick=7)
        state = self.apply(state, BuildMachine(x=3, y=5)).state

        machine = state.machines[0]
        self.assertEqual(machine.id, structure_id("machine", 7, 3, 5))
        self.assertEqual(machine.id, "machine-7-3-5")
        self.assertEqual((machine.status, machine.recipe_id, machine.enabled), (IDLE, None, True))
        self.assertEqual(machine.space_used, 4)
        self.assertEqual(machine.energy_draw, 2)
        self.assertNotIn("production_machine", state.inventory)
        self.assertEqual(state.floor_space.placements[0].structure_id, machine.id)

    def test_build_machine_rejections(self):
        stocked = make_state(inventory={"production_machine": 1})
        self.assertRejected(make_state(), BuildMachine(x=0, y=0), "Need 1 Production Machine in inventory to deploy a machine")
        self.assertRejected(stocked, BuildMachine(x=7, y=7), OUT_OF_BOUNDS)
        self.assertRejected(stocked, BuildMachine(x=-1, y=0), OUT_OF_BOUNDS)
        self.assertRejected(stocked, BuildMachine(x="1", y=0), "Position (x, y) is required")
        self.assertRejected(stocked, BuildMachine(x=None, y=None), "Position (x, y) is required")

    def test_build_generator_rejections(self):
        self.assertRejected(make_state(), BuildGenerator("nuclear", x=0, y=0), "Generator type not found")
        self.assertRejected(
            make_state(), BuildGenerator("water_wheel", x=0, y=0), "Need 1 Water Wheel in inventory to deploy this generator"
        )
        stocked = make_state(inventory={"steam_engine": 1})
        self.assertRejected(stocked, BuildGenerator("steam_engine", x=6, y=0), OUT_OF_BOUNDS)

    def test_steam_engine_has_three_by_three_footprint(self):
        state = make_state(inventory={"steam_engine": 1})
        state = self.apply(state, BuildGenerator("steam_engine", x=5, y=5)).state
        self.assertEqual(state.floor_space.placements[0].size, 3)
        self.assertEqual(state.energy.produced, 15)

    def test_non_square_footprints_are_rejected(self):
        rules = replace(
            DEFAULT_RULES,
            machines=MachineTuning(space_cost=6),
            generator_types=(GeneratorType("windmill", "Windmill", "water_wheel", energy_output=6, space_cost=6),),
        )
        state = make_state(inventory={"production_machine": 1, "water_wheel": 1})

        for command in (BuildMachine(x=0, y=0), BuildGenerator("windmill", x=0, y=0)):
            result = apply_command(state, rules, command)
            self.assertEqual(result.error, NON_SQUARE_FOOTPRINT)
            self.assertIs(result.state, state)

    def test_remove_generator_frees_cell_and_power(self):
        crank = Generator("crank", "manual_crank", 0, 0, energy_output=3, space_used=1)
        state = make_state(
            generators=(crank,),
            floor_space=FloorSpace(8, 8, (Placement("crank", 0, 0, 1, "generator"),)),
            energy=EnergySnapshot(3, 0),
        )
        state = self.apply(state, RemoveGenerator("crank")).state
        self.assertEqual(state.generators, ())
        self.assertEqual(state.floor_space.placements, ())
        self.assertEqual(state.energy, EnergySnapshot(0, 0))
        self.assertRejected(state, RemoveGenerator("crank"), "Generator not found")


class MachineCommandTests(HandlerTestCase):
    def setUp(self):
        machine, placement = placed_machine()
        self.state = make_state(
            machines=(machine,),
            floor_space=FloorSpace(8, 8, (placement,)),
            generators=(Generator("crank", "manual_crank", 0, 0, energy_output=3, space_used=1),),
            discovered_recipes=("planks", "charcoal", "glass"),
            unlocked_recipes=("planks", "charcoal"),
        )

    def with_machine(self, **overrides):
        machine = replace(self.state.machines[0], **overrides)
        return replace(self.state, machines=(machine,))

    def test_remove_machine_returns_buffer(self):
        state = self.with_machine(recipe_id="planks", buffer=frozen_map({"wood": 1}))
        state = self.apply(state, RemoveMachine("m1")).state
        self.assertEqual(dict(state.inventory), {"wood": 1})
        self.assertEqual(state.machines, ())
        self.assertEqual(state.floor_space.placements, ())

    def test_remove_machine_refuses_to_overfill_storage(self):
        state = self.with_machine(recipe_id="planks", buffer=frozen_map({"wood": 1}))
        state = replace(state, inventory=frozen_map({"wood": 100}))
        self.assertRejected(state, RemoveMachine("m1"), "Not enough storage to return buffered items")

    def test_remove_unknown_machine(self):
        self.assertRejected(self.state, RemoveMachine("nope"), "Machine not found")

    def test_assign_recipe_starts_work(self):
        state = self.apply(self.state, AssignRecipe("m1", "planks")).state
        machine = state.machines[0]
        self.assertEqual((machine.recipe_id, machine.status), ("planks", WORKING))
        self.assertEqual(state.energy, EnergySnapshot(produced=3, consumed=2))

    def test_reassign_returns_buffer(self):
        state = self.with_machine(recipe_id="planks", status=WORKING, buffer=frozen_map({"wood": 1}))
        state = self.apply(state, AssignRecipe("m1", "charcoal")).state
        self.assertEqual(dict(state.machines[0].buffer), {})
        self.assertEqual(dict(state.inventory), {"wood": 1})
        self.assertEqual(state.machines[0].recipe_id, "charcoal")

    def test_assign_resumes_blocked_machine(self):
        state = self.with_machine(recipe_id="planks", status=BLOCKED)
        result = self.apply(state, AssignRecipe("m1", "charcoal"))
        self.assertIsNone(result.error)
        self.assertEqual(result.state.machines[0].status, WORKING)
        self.assertEqual(result.state.energy.consumed, 2)

    def test_reassigned_machine_is_blocked_again_when_power_is_short(self):
        state = self.with_machine(recipe_id="planks", status=BLOCKED)
        state = replace(state, generators=())
        state = self.apply(state, AssignRecipe("m1", "charcoal")).state
        state = advance_tick(state, self.rules)
        self.assertEqual(state.machines[0].status, BLOCKED)

    def test_clearing_recipe_idles_machine(self):
        state = self.with_machine(recipe_id="planks", status=WORKING)
        state = self.apply(state, AssignRecipe("m1", None)).state
        self.assertEqual((state.machines[0].recipe_id, state.machines[0].status), (None, IDLE))
        self.assertEqual(state.energy.consumed, 0)

    def test_assign_rejections(self):
        self.assertRejected(self.state, AssignRecipe("nope", "planks"), "Machine not found")
        self.assertRejected(self.state, AssignRecipe("m1", "unobtainium"), "Recipe not found")
        self.assertRejected(self.state, AssignRecipe("m1", "glass"), "Recipe not unlocked")

    def test_toggle_machine_flips_enabled_and_energy(self):
        state = self.with_machine(recipe_id="planks", status=WORKING)
        state = self.apply(state, ToggleMachine("m1")).state
        self.assertFalse(state.machines[0].enabled)
        self.assertEqual(state.energy.consumed, 0)
        state = self.apply(state, ToggleMachine("m1")).state
        self.assertTrue(state.machines[0].enabled)
        self.assertEqual(state.energy.consumed, 2)
        self.assertRejected(state, ToggleMachine("nope"), "Machine not found")

    def test_unblock_machine(self):
        state = self.with_machine(recipe_id="planks", status=BLOCKED)
        unblocked = self.apply(state, UnblockMachine("m1")).state
        self.assertEqual(unblocked.machines[0].status, WORKING)
        self.assertRejected(unblocked, UnblockMachine("m1"), "Machine is not blocked")
        self.assertRejected(unblocked, UnblockMachine("nope"), "Machine not found")

    def test_unblock_without_recipe_idles(self):
        state = self.with_machine(status=BLOCKED)
        self.assertEqual(self.apply(state, UnblockMachine("m1")).state.machines[0].status, IDLE)


class EconomyTests(HandlerTestCase):
    def test_sell_scenario(self):
        state = make_state(inventory={"wood": 5}, popularity={"wood": 1.0})
        state = self.apply(state, Sell("wood", 5)).state
        self.assertEqual(state.credits, 10)
        self.assertNotIn("wood", state.inventory)
        self.assertAlmostEqual(state.market_popularity["wood"], 0.75)

    def test_sale_value_is_floored(self):
        state = make_state(inventory={"planks": 3}, popularity={"planks": 0.75})
        self.assertEqual(self.apply(state, Sell("planks", 3)).state.credits, 11)

    def test_first_sale_tracks_from_maximum(self):
        state = make_state(inventory={"wood": 5})
        state = self.apply(state, Sell("wood", 5)).state
        self.assertEqual(state.credits, 10)
        self.assertAlmostEqual(state.market_popularity["wood"], 1.75)

    def test_popularity_floor(self):
        state = make_state(inventory={"wood": 5}, popularity={"wood": 0.6})
        state = self.apply(state, Sell("wood", 5)).state
        self.assertEqual(state.market_popularity["wood"], 0.5)

    def test_sell_rejections(self):
        state = make_state(inventory={"wood": 2})
        self.assertRejected(state, Sell("wood", 3), "Not enough items in inventory")
        self.assertRejected(state, Sell("mithril", 1), "Item not found in materials list")
        self.assertRejected(state, Sell("wood", 0), "Quantity must be a positive whole number")
        self.assertRejected(state, Sell("wood", 1.5), "Quantity must be a positive whole number")
        self.assertRejected(state, Sell("wood", True), "Quantity must be a positive whole number")

    def test_storage_upgrade(self):
        state = make_state(credits=500)
        self.assertEqual(storage_upgrade_cost(state, self.rules), 112)
        state = self.apply(state, ExpandStorage()).state
        self.assertEqual((state.credits, state.inventory_space), (388, 150))
        self.assertEqual(storage_upgrade_cost(state, self.rules), 168)
        self.assertRejected(make_state(credits=111), ExpandStorage(), "Not enough credits (need 112)")

    def test_floor_expansion_sequence(self):
        state = make_state(credits=6400)
        sizes = []
        for _ in range(4):
            result = self.apply(state, ExpandFloor())
            self.assertTrue(result.ok)
            state = result.state
            sizes.append((state.floor_space.width, state.floor_space.height))
        self.assertEqual(sizes, [(16, 8), (16, 16), (32, 16), (32, 32)])
        self.assertEqual(state.credits, 0)
        self.assertRejected(state, ExpandFloor(), "Not enough credits (need 10240)")

    def test_expansion_keeps_placements(self):
        placement = Placement("crank", 0, 0, 1, "generator")
        state = make_state(credits=640, floor_space=FloorSpace(8, 8, (placement,)))
        state = self.apply(state, ExpandFloor()).state
        self.assertEqual(state.floor_space.placements, (placement,))


class ResearchCommandTests(HandlerTestCase):
    def test_toggle_research(self):
        state = self.apply(make_state(), ToggleResearch(True)).state
        self.assertTrue(state.research.active)
        state = self.apply(state, ToggleResearch(False)).state
        self.assertFalse(state.research.active)
        self.assertRejected(state, ToggleResearch("yes"), "Research toggle must be true or false")

    def test_unlock_recipe(self):
        state = make_state(discovered_recipes=("planks", "glass"), unlocked_recipes=("planks",))
        unlocked = self.apply(state, UnlockRecipe("glass")).state
        self.assertEqual(unlocked.unlocked_recipes, ("planks", "glass"))
        self.assertRejected(unlocked, UnlockRecipe("glass"), "Recipe already unlocked")
        self.assertRejected(unlocked, UnlockRecipe("gravel"), "Recipe not discovered yet")


if __name__ == "__main__":
    unittest.main()
