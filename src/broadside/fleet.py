"""Fleet manifest and fleet validation.

A submission is accepted as a whole or not at all: either every ship is
legal and together they match the manifest exactly, or a
:class:`~broadside.errors.ValidationError` names the first rule that failed.
"""

from __future__ import annotations

from collections import Counter
from dataclasses import dataclass
from typing import Sequence

from . import config as _cfg
from .errors import ValidationError
from .geometry import Cell, ShipPlacement, fits
from .models import Ship


@dataclass(frozen=True)
class FleetManifest:
    """Required ship lengths and how many of each."""

    counts: tuple[tuple[int, int], ...]

    @classmethod
    def from_dict(cls, counts: dict[int, int]) -> "FleetManifest":
        return cls(tuple(sorted(counts.items(), reverse=True)))

    @property
    def total_ships(self) -> int:
        return sum(count for _, count in self.counts)

    @property
    def total_cells(self) -> int:
        return sum(length * count for length, count in self.counts)

    def as_dict(self) -> dict[int, int]:
        return dict(self.counts)


DEFAULT_MANIFEST = FleetManifest.from_dict(_cfg.FLEET)


def validate_fleet(
    placements: Sequence[ShipPlacement],
    manifest: FleetManifest = DEFAULT_MANIFEST,
    grid_size: int = _cfg.GRID_SIZE,
) -> list[Ship]:
    """Check *placements* against *manifest* and return them as fresh ships.

    Rules, checked in order: ship count, length multiset (and unique ids),
    grid bounds, pairwise overlap.
    """
    if len(placements) != manifest.total_ships:
        raise ValidationError(
            "size_mismatch",
            f"Expected {manifest.total_ships} ships, got {len(placements)}",
        )

    lengths = Counter(p.length for p in placements)
    if lengths != Counter(manifest.as_dict()):
        raise ValidationError("shape_mismatch", "Ship lengths do not match the required fleet")
    if len({p.id for p in placements}) != len(placements):
        raise ValidationError("shape_mismatch", "Ship ids must be unique")

    occupied: set[Cell] = set()
    for placement in placements:
        cells = placement.cells()
        if not fits(cells, grid_size):
            raise ValidationError(
                "out_of_bounds",
                f"Ship {placement.id} does not fit on a {grid_size}x{grid_size} grid",
            )
        if not occupied.isdisjoint(cells):
            raise ValidationError("overlap", f"Ship {placement.id} overlaps another ship")
        occupied.update(cells)

    return [Ship.from_placement(p) for p in placements]
