"""Shot resolution and turn order.

Everything here is pure: the caller passes in the defender's fleet and the
relevant shot histories and gets back what happened.  The only randomness in
the whole game is :func:`pick_first_turn`.
"""

from __future__ import annotations

import random
from dataclasses import dataclass
from typing import Sequence

from .errors import IllegalActionError
from .geometry import Cell
from .models import Ship, Shot

COIN_FLIP_THRESHOLD = 0.5


@dataclass(frozen=True, slots=True)
class ShotOutcome:
    hit: bool
    sunk: bool = False
    ship_id: str | None = None


def already_fired(shooter_shots: Sequence[Shot], cell: Cell) -> bool:
    return any(s.cell == cell for s in shooter_shots)


def resolve_shot(
    ships: Sequence[Ship],
    shots_against_defender: Sequence[Shot],
    shooter_shots: Sequence[Shot],
    cell: Cell,
) -> ShotOutcome:
    """Decide hit / miss / sink for a new shot at *cell*.

    *shooter_shots* must be the shooter's own history against this defender;
    firing twice at the same cell raises :class:`IllegalActionError`.
    """
    if already_fired(shooter_shots, cell):
        x, y = cell
        raise IllegalActionError("duplicate_shot", f"Already fired at ({x}, {y})")

    ship = next((s for s in ships if s.covers(cell)), None)
    if ship is None:
        return ShotOutcome(hit=False)

    previous_hits = sum(1 for s in shots_against_defender if s.hit and ship.covers(s.cell))
    sunk = previous_hits + 1 == ship.length
    return ShotOutcome(hit=True, sunk=sunk, ship_id=ship.id)


def apply_outcome(ships: Sequence[Ship], outcome: ShotOutcome) -> tuple[Ship, ...]:
    """Return the fleet with the ship sunk by *outcome* flagged."""
    if not outcome.sunk:
        return tuple(ships)
    return tuple(s.mark_sunk() if s.id == outcome.ship_id else s for s in ships)


def fleet_destroyed(ships: Sequence[Ship], expected_count: int) -> bool:
    """True once a complete fleet has every ship sunk."""
    return len(ships) == expected_count and all(s.sunk for s in ships)


def next_turn(shooter_id: str, defender_id: str, outcome: ShotOutcome) -> str:
    """A hit that does not sink keeps the turn; anything else passes it."""
    if outcome.hit and not outcome.sunk:
        return shooter_id
    return defender_id


def pick_first_turn(owner_id: str, friend_id: str, rng: random.Random | None = None) -> str:
    roll = (rng or random).random()
    return owner_id if roll < COIN_FLIP_THRESHOLD else friend_id
