"""Starting state, JSON-compatible snapshots, and save/load helpers."""
from __future__ import annotations

import json
from dataclasses import asdict
from pathlib import Path
from typing import Any, Dict, Optional

from config import (
    EXTRACTION_NODES,
    GENERATOR,
    IDLE,
    MACHINE,
    MACHINE_STATUSES,
    SAVE_FILE,
    STARTER_GENERATORS,
    STARTING_CREDITS,
    STARTING_INVENTORY_SPACE,
    STARTING_RECIPES,
    STARTING_SEED,
    STRUCTURE_KINDS,
)
from factory.entities import (
    EnergySnapshot,
    ExtractionNode,
    FloorSpace,
    Generator,
    Machine,
    Placement,
    ResearchToggle,
    State,
    frozen_map,
)
from factory.placement import structure_size
from factory.power import calculate_energy
from factory.rng import to_int32
from rules_catalog import Rules


def create_initial_state(rules: Rules, seed: Optional[int] = None) -> State:
    """Fresh game: starter generators, the fixed extraction nodes, tier 1 recipes."""
    generators = []
    placements = []
    for generator_id, type_key, x, y in STARTER_GENERATORS:
        generator_type = rules.generator_type(type_key)
        if generator_type is None:
            continue
        generators.append(
            Generator(
                id=generator_id,
                type=type_key,
                x=x,
                y=y,
                energy_output=generator_type.energy_output,
                space_used=generator_type.space_cost,
            )
        )
        placements.append(Placement(generator_id, x, y, structure_size(generator_type.space_cost), GENERATOR))

    known_recipes = {recipe.key for recipe in rules.recipes}
    starting_recipes = tuple(key for key in STARTING_RECIPES if key in known_recipes)
    side = rules.floor_space.initial_width

    return State(
        tick=0,
        seed=to_int32(STARTING_SEED if seed is None else seed),
        credits=STARTING_CREDITS,
        floor_space=FloorSpace(width=side, height=side, placements=tuple(placements)),
        energy=calculate_energy((), generators),
        inventory_space=STARTING_INVENTORY_SPACE,
        generators=tuple(generators),
        extraction_nodes=tuple(ExtractionNode(node_id, resource, rate) for node_id, resource, rate in EXTRACTION_NODES),
        discovered_recipes=starting_recipes,
        unlocked_recipes=starting_recipes,
        research=ResearchToggle(active=False, energy_cost=rules.research.energy_cost),
    )


# ---------------------------------------------------------------------------
# Serialisation
# ---------------------------------------------------------------------------

def state_to_dict(state: State) -> Dict[str, Any]:
    return {
        "tick": state.tick,
        "seed": state.seed,
        "credits": state.credits,
        "floor_space": {
            "width": state.floor_space.width,
            "height": state.floor_space.height,
            "placements": [asdict(p) for p in state.floor_space.placements],
        },
        "energy": asdict(state.energy),
        "inventory_space": state.inventory_space,
        "inventory": dict(state.inventory),
        "machines": [_machine_to_dict(m) for m in state.machines],
        "generators": [asdict(g) for g in state.generators],
        "extraction_nodes": [asdict(n) for n in state.extraction_nodes],
        "discovered_recipes": list(state.discovered_recipes),
        "unlocked_recipes": list(state.unlocked_recipes),
        "research": asdict(state.research),
        "market_popularity": dict(state.market_popularity),
    }


def _machine_to_dict(machine: Machine) -> Dict[str, Any]:
    return {
        "id": machine.id,
        "x": machine.x,
        "y": machine.y,
        "space_used": machine.space_used,
        "energy_draw": machine.energy_draw,
        "recipe_id": machine.recipe_id,
        "buffer": dict(machine.buffer),
        "status": machine.status,
        "enabled": machine.enabled,
    }


def _quantities(raw: Any) -> Dict[str, int]:
    if not isinstance(raw, dict):
        return {}
    return {str(key): int(value) for key, value in raw.items() if int(value) > 0}


def _normalize_placement(raw: Dict) -> Placement:
    kind = str(raw.get("kind", MACHINE))
    if kind not in STRUCTURE_KINDS:
        raise ValueError(f"unknown placement kind {kind!r}")
    return Placement(
        structure_id=str(raw["structure_id"]),
        x=int(raw.get("x", 0)),
        y=int(raw.get("y", 0)),
        size=int(raw.get("size", 1)),
        kind=kind,
    )


def _normalize_machine(raw: Dict) -> Machine:
    status = str(raw.get("status", IDLE))
    if status not in MACHINE_STATUSES:
        status = IDLE
    recipe_id = raw.get("recipe_id")
    return Machine(
        id=str(raw["id"]),
        x=int(raw.get("x", 0)),
        y=int(raw.get("y", 0)),
        space_used=int(raw.get("space_used", 1)),
        energy_draw=int(raw.get("energy_draw", 0)),
        recipe_id=None if recipe_id is None else str(recipe_id),
        buffer=frozen_map(_quantities(raw.get("buffer"))),
        status=status,
        enabled=bool(raw.get("enabled", True)),
    )


def _normalize_generator(raw: Dict) -> Generator:
    return Generator(
        id=str(raw["id"]),
        type=str(raw.get("type", "")),
        x=int(raw.get("x", 0)),
        y=int(raw.get("y", 0)),
        energy_output=int(raw.get("energy_output", 0)),
        space_used=int(raw.get("space_used", 1)),
    )


def _normalize_node(raw: Dict) -> ExtractionNode:
    return ExtractionNode(
        id=str(raw["id"]),
        resource_id=str(raw["resource_id"]),
        rate=int(raw.get("rate", 0)),
        active=bool(raw.get("active", True)),
    )


def state_from_dict(data: Dict[str, Any]) -> State:
    """Rebuild a :class:`State` from :func:`state_to_dict` output.

    Raises ``ValueError`` when the record is not a snapshot.
    """
    if not isinstance(data, dict):
        raise ValueError("state snapshot must be a JSON object")
    try:
        floor = data.get("floor_space", {})
        energy = data.get("energy", {})
        research = data.get("research", {})
        popularity = data.get("market_popularity", {})
        return State(
            tick=int(data.get("tick", 0)),
            seed=to_int32(int(data.get("seed", STARTING_SEED))),
            credits=int(data.get("credits", STARTING_CREDITS)),
            floor_space=FloorSpace(
                width=int(floor["width"]),
                height=int(floor["height"]),
                placements=tuple(_normalize_placement(p) for p in floor.get("placements", [])),
            ),
            energy=EnergySnapshot(
                produced=int(energy.get("produced", 0)),
                consumed=int(energy.get("consumed", 0)),
            ),
            inventory_space=int(data.get("inventory_space", STARTING_INVENTORY_SPACE)),
            inventory=frozen_map(_quantities(data.get("inventory"))),
            machines=tuple(_normalize_machine(m) for m in data.get("machines", [])),
            generators=tuple(_normalize_generator(g) for g in data.get("generators", [])),
            extraction_nodes=tuple(_normalize_node(n) for n in data.get("extraction_nodes", [])),
            discovered_recipes=tuple(str(r) for r in data.get("discovered_recipes", [])),
            unlocked_recipes=tuple(str(r) for r in data.get("unlocked_recipes", [])),
            research=ResearchToggle(
                active=bool(research.get("active", False)),
                energy_cost=int(research.get("energy_cost", 0)),
            ),
            market_popularity=frozen_map({str(k): float(v) for k, v in popularity.items()}),
        )
    except (KeyError, TypeError, AttributeError) as exc:
        raise ValueError(f"malformed state snapshot: {exc}") from exc


def save_state(state: State, path: Path = SAVE_FILE) -> None:
    path.write_text(json.dumps(state_to_dict(state), indent=2))


def load_state(path: Path = SAVE_FILE) -> State:
    return state_from_dict(json.loads(path.read_text()))
