"""Board geometry: which cells a ship occupies and whether they fit the grid.

Coordinates are ``(x, y)`` with ``x`` the column and ``y`` the row, both
zero-based.  A horizontal ship grows along ``x``, a vertical one along ``y``.
"""

from __future__ import annotations

import random
import uuid
from dataclasses import dataclass
from enum import Enum
from typing import Iterable

Cell = tuple[int, int]


class Orientation(str, Enum):
    HORIZONTAL = "horizontal"
    VERTICAL = "vertical"


@dataclass(frozen=True, slots=True)
class ShipPlacement:
    """A ship as submitted by a client, before it belongs to a fleet."""

    id: str
    start_x: int
    start_y: int
    length: int
    orientation: Orientation

    def cells(self) -> list[Cell]:
        return occupied_cells(self.start_x, self.start_y, self.length, self.orientation)


def occupied_cells(start_x: int, start_y: int, length: int, orientation: Orientation) -> list[Cell]:
    """Return the ``length`` contiguous cells starting at the origin."""
    if orientation is Orientation.HORIZONTAL:
        return [(start_x + i, start_y) for i in range(length)]
    return [(start_x, start_y + i) for i in range(length)]


def in_bounds(cell: Cell, size: int) -> bool:
    x, y = cell
    return 0 <= x < size and 0 <= y < size


def fits(cells: Iterable[Cell], size: int) -> bool:
    """True if every cell lies on a *size* x *size* grid."""
    return all(in_bounds(cell, size) for cell in cells)


def covers(start_x: int, start_y: int, length: int, orientation: Orientation, cell: Cell) -> bool:
    """True if the ship described by the first four arguments sits on *cell*."""
    x, y = cell
    if orientation is Orientation.HORIZONTAL:
        return y == start_y and start_x <= x < start_x + length
    return x == start_x and start_y <= y < start_y + length


MAX_PLACEMENT_TRIES = 1000


def random_fleet(
    manifest: dict[int, int],
    size: int,
    rng: random.Random | None = None,
    *,
    max_tries: int = MAX_PLACEMENT_TRIES,
) -> list[ShipPlacement]:
    """Randomly position every ship of *manifest* without collisions.

    Longest ships go first so that crowded grids still converge quickly.
    Raises ``ValueError`` when a ship finds no free spot in *max_tries* draws.
    """
    rng = rng or random.Random()
    taken: set[Cell] = set()
    fleet: list[ShipPlacement] = []
    for length in sorted(manifest, reverse=True):
        for _ in range(manifest[length]):
            for _ in range(max_tries):
                orientation = rng.choice((Orientation.HORIZONTAL, Orientation.VERTICAL))
                x = rng.randrange(size)
                y = rng.randrange(size)
                cells = occupied_cells(x, y, length, orientation)
                if fits(cells, size) and taken.isdisjoint(cells):
                    taken.update(cells)
                    fleet.append(ShipPlacement(uuid.uuid4().hex[:8], x, y, length, orientation))
                    break
            else:
                raise ValueError(f"Cannot fit a ship of length {length} on a {size}x{size} grid")
    return fleet
