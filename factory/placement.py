"""Floor grid placement: bounds, square overlap and expansion chunks.

Coordinate system: ``(0, 0)`` is the top-left cell, x grows right and y grows
down.  A structure of side ``size`` anchored at ``(x, y)`` covers cells
``x .. x+size-1`` by ``y .. y+size-1``.
"""
from __future__ import annotations

import math
from dataclasses import dataclass, replace
from typing import Iterable

from factory.entities import FloorSpace, Placement
from rules_catalog import Rules

OUT_OF_BOUNDS = "Position out of bounds"
COLLISION = "Position collides with existing structure"
NON_SQUARE_FOOTPRINT = "Structure footprint is not a square"


def footprint_size(space_cost: int) -> int | None:
    """Side length of a square footprint of ``space_cost`` cells, or ``None``."""
    if space_cost < 1:
        return None
    size = math.isqrt(space_cost)
    return size if size * size == space_cost else None


def structure_size(space_cost: int) -> int:
    size = footprint_size(space_cost)
    if size is None:
        raise ValueError(f"space cost {space_cost} is not a perfect square")
    return size


def is_within_bounds(x: int, y: int, size: int, width: int, height: int) -> bool:
    return x >= 0 and y >= 0 and x + size <= width and y + size <= height


def overlaps(x: int, y: int, size: int, placement: Placement) -> bool:
    no_overlap = (
        x + size <= placement.x
        or placement.x + placement.size <= x
        or y + size <= placement.y
        or placement.y + placement.size <= y
    )
    return not no_overlap


def is_colliding(x: int, y: int, size: int, placements: Iterable[Placement]) -> bool:
    return any(overlaps(x, y, size, placement) for placement in placements)


def check_placement(floor: FloorSpace, x: int, y: int, size: int) -> str | None:
    """Return the reason a footprint cannot go at ``(x, y)``, or ``None``."""
    if not is_within_bounds(x, y, size, floor.width, floor.height):
        return OUT_OF_BOUNDS
    if is_colliding(x, y, size, floor.placements):
        return COLLISION
    return None


def can_place_at(floor: FloorSpace, x: int, y: int, size: int) -> bool:
    return check_placement(floor, x, y, size) is None


def add_placement(floor: FloorSpace, placement: Placement) -> FloorSpace:
    return replace(floor, placements=floor.placements + (placement,))


def remove_placement(floor: FloorSpace, structure_id: str) -> FloorSpace:
    return replace(floor, placements=tuple(p for p in floor.placements if p.structure_id != structure_id))


@dataclass(frozen=True)
class ExpansionChunk:
    chunk_size: int
    new_width: int
    new_height: int
    cells_added: int
    cost: int
    expand_width: bool


def next_expansion_chunk(floor: FloorSpace, rules: Rules) -> ExpansionChunk:
    """Work out the next floor growth step.

    The chunk and the target square double each time the floor reaches the
    target square; width grows first, then height completes the square:
    8x8 -> 16x8 -> 16x16 -> 32x16 -> 32x32.
    """
    tuning = rules.floor_space
    chunk_size = tuning.initial_chunk_size
    target = tuning.initial_width * 2
    while floor.width >= target and floor.height >= target:
        chunk_size *= 2
        target *= 2

    expand_width = floor.width < target
    new_width = floor.width + chunk_size if expand_width else floor.width
    new_height = floor.height if expand_width else floor.height + chunk_size
    cells_added = chunk_size * chunk_size
    return ExpansionChunk(
        chunk_size=chunk_size,
        new_width=new_width,
        new_height=new_height,
        cells_added=cells_added,
        cost=cells_added * tuning.cost_per_cell,
        expand_width=expand_width,
    )
