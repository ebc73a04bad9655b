"""Centralised configuration constants for Replaceable Parts."""
from __future__ import annotations

from pathlib import Path

# ---------------------------------------------------------------------------
# File paths
# ---------------------------------------------------------------------------
SAVE_FILE: Path = Path("factory_save.json")
RULES_FILE: Path = Path("data/rules.json")

# ---------------------------------------------------------------------------
# Display (pygame front-end only)
# ---------------------------------------------------------------------------
FLOOR_VIEW_PX: int = 640
MAX_CELL_PX: int = 64
PANEL_W: int = 380
AUTO_ADVANCE_INTERVAL: float = 0.5     # seconds between auto-advanced ticks
EVENT_LOG_LIMIT: int = 100             # tick summaries kept by the front-ends

# ---------------------------------------------------------------------------
# Structure kinds (placement owners)
# ---------------------------------------------------------------------------
MACHINE: str = "machine"
GENERATOR: str = "generator"
STRUCTURE_KINDS: tuple[str, ...] = (MACHINE, GENERATOR)

# ---------------------------------------------------------------------------
# Machine status values
# ---------------------------------------------------------------------------
IDLE: str = "idle"
WORKING: str = "working"
BLOCKED: str = "blocked"
MACHINE_STATUSES: tuple[str, ...] = (IDLE, WORKING, BLOCKED)

# ---------------------------------------------------------------------------
# Starting state
# ---------------------------------------------------------------------------
STARTING_SEED: int = 12345
STARTING_CREDITS: int = 500
STARTING_INVENTORY_SPACE: int = 100    # total weight capacity

# (structure id, generator type, x, y)
STARTER_GENERATORS: list[tuple[str, str, int, int]] = [
    ("starter_crank", "manual_crank", 0, 0),
]

# (node id, resource id, rate per tick)
EXTRACTION_NODES: list[tuple[str, str, int]] = [
    ("node_wood_1", "wood", 2),
    ("node_stone_1", "stone", 2),
    ("node_iron_ore_1", "iron_ore", 1),
    ("node_copper_ore_1", "copper_ore", 1),
    ("node_coal_1", "coal", 2),
    ("node_clay_1", "clay", 1),
    ("node_sand_1", "sand", 1),
]

# Tier 1 plus the equipment recipes, so machines and generators can be
# manufactured from the first tick.
STARTING_RECIPES: list[str] = [
    "planks",
    "charcoal",
    "stone_bricks",
    "gravel",
    "bricks",
    "glass",
    "iron_ingot",
    "copper_ingot",
    "production_machine",
    "manual_crank",
    "water_wheel",
    "steam_engine",
]
