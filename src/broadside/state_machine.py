"""Session lifecycle as pure transition functions.

Each public function takes the current :class:`~broadside.models.Session`
snapshot, validates that the action is legal in the current status and
returns a :class:`Transition` holding the new snapshot plus the events the
router should translate into pushes.  No function here performs I/O.

    waiting_for_opponent --join--> waiting_for_boat_placements
    waiting_for_boat_placements --both fleets placed--> ready_to_start --> playing
    playing --shot--> playing | game_over
    game_over --owner rematch--> waiting_for_boat_placements
    any --friend leaves--> waiting_for_opponent
"""

from __future__ import annotations

import random
import time
import uuid
from dataclasses import dataclass, field, replace
from typing import Callable, Sequence

from .errors import CorruptSessionError, IllegalActionError, ValidationError
from .events import Category, Event
from .fleet import DEFAULT_MANIFEST, FleetManifest, validate_fleet
from .geometry import ShipPlacement, in_bounds
from . import config as _cfg
from .models import LastShot, Player, Session, SessionStatus, Shot
from .shots import apply_outcome, fleet_destroyed, next_turn, pick_first_turn, resolve_shot


@dataclass
class Transition:
    session: Session | None
    events: list[Event] = field(default_factory=list)

    @property
    def discarded(self) -> bool:
        return self.session is None


def _require_status(session: Session, *allowed: SessionStatus) -> None:
    if session.status not in allowed:
        raise IllegalActionError(
            "invalid_state",
            f"Action not allowed while session is {session.status.value}",
        )


def _require_player(session: Session, player_id: str) -> None:
    if not session.has_player(player_id):
        raise IllegalActionError("not_in_session", f"Player {player_id} is not part of this session")


def _cleared(session: Session, status: SessionStatus) -> Session:
    return replace(session, status=status, current_turn=None, winner=None, ships={}, shots=())


# ---------------------------------------------------------------------------
# Pairing
# ---------------------------------------------------------------------------


def join(session: Session, friend: Player) -> Transition:
    if session.has_player(friend.id):
        raise IllegalActionError("already_joined", "Player is already in this session")
    if session.friend is not None:
        raise IllegalActionError("session_full", "Session already has two players")
    _require_status(session, SessionStatus.WAITING_FOR_OPPONENT)
    updated = replace(
        session,
        friend=replace(friend, is_owner=False),
        status=SessionStatus.WAITING_FOR_BOAT_PLACEMENTS,
    )
    return Transition(updated, [Event(Category.LOBBY, "joined", {"player_id": friend.id})])


def leave(session: Session, player_id: str) -> Transition:
    """Remove *player_id* from the session.

    The owner leaving an unpaired session discards it.  Otherwise the remaining
    player becomes (or stays) the owner and waits for a new opponent.
    """
    _require_player(session, player_id)
    remaining = session.opponent_of(player_id)
    if remaining is None:
        return Transition(None, [Event(Category.SESSION, "discarded", {"player_id": player_id})])

    updated = _cleared(
        replace(session, owner=replace(remaining, is_owner=True), friend=None),
        SessionStatus.WAITING_FOR_OPPONENT,
    )
    return Transition(
        updated,
        [Event(Category.LOBBY, "left", {"player_id": player_id, "remaining_id": remaining.id})],
    )


# ---------------------------------------------------------------------------
# Placement
# ---------------------------------------------------------------------------


def place_boats(
    session: Session,
    player_id: str,
    placements: Sequence[ShipPlacement],
    *,
    manifest: FleetManifest = DEFAULT_MANIFEST,
    grid_size: int = _cfg.GRID_SIZE,
    rng: random.Random | None = None,
) -> Transition:
    _require_player(session, player_id)
    _require_status(session, SessionStatus.WAITING_FOR_BOAT_PLACEMENTS)
    fleet = validate_fleet(placements, manifest, grid_size)

    ships = {**session.ships, player_id: tuple(fleet)}
    updated = replace(session, ships=ships)
    events = [Event(Category.PLACEMENT, "placed", {"player_id": player_id})]

    if len(session.player_ids) == 2 and all(ships.get(pid) for pid in session.player_ids):
        updated = replace(updated, status=SessionStatus.READY_TO_START)
        started = start(updated, rng)
        return Transition(started.session, events + started.events)
    return Transition(updated, events)


def start(session: Session, rng: random.Random | None = None) -> Transition:
    _require_status(session, SessionStatus.READY_TO_START)
    if session.friend is None:
        raise CorruptSessionError(f"Session {session.id} ready to start without a friend")
    first = pick_first_turn(session.owner.id, session.friend.id, rng)
    updated = replace(session, status=SessionStatus.PLAYING, current_turn=first)
    return Transition(updated, [Event(Category.TURN, "start", {"first_player_id": first})])


# ---------------------------------------------------------------------------
# Play
# ---------------------------------------------------------------------------


def fire_shot(
    session: Session,
    player_id: str,
    x: int,
    y: int,
    *,
    manifest: FleetManifest = DEFAULT_MANIFEST,
    grid_size: int = _cfg.GRID_SIZE,
    clock: Callable[[], float] = time.time,
) -> Transition:
    _require_player(session, player_id)
    _require_status(session, SessionStatus.PLAYING)
    if session.current_turn != player_id:
        raise IllegalActionError("not_your_turn", "Cannot shoot at this time")
    if not in_bounds((x, y), grid_size):
        raise ValidationError("out_of_bounds", f"({x}, {y}) is outside the {grid_size}x{grid_size} grid")

    defender = session.opponent_of(player_id)
    if defender is None:
        raise CorruptSessionError(f"Session {session.id} is playing without an opponent")

    defender_ships = session.ships_of(defender.id)
    outcome = resolve_shot(
        defender_ships,
        session.shots_against(defender.id),
        session.shots_by(player_id),
        (x, y),
    )
    shot = Shot(
        id=uuid.uuid4().hex,
        created_at=clock(),
        shooter_id=player_id,
        target_id=defender.id,
        x=x,
        y=y,
        hit=outcome.hit,
    )
    defender_ships = apply_outcome(defender_ships, outcome)
    last_shot = LastShot(shot, sunk_boat=outcome.sunk)
    updated = replace(
        session,
        ships={**session.ships, defender.id: defender_ships},
        shots=session.shots + (shot,),
    )

    if fleet_destroyed(defender_ships, manifest.total_ships):
        winner = session.player(player_id)
        winner = replace(winner, wins=winner.wins + 1)
        if winner.is_owner:
            updated = replace(updated, owner=winner)
        else:
            updated = replace(updated, friend=winner)
        updated = replace(updated, status=SessionStatus.GAME_OVER, current_turn=None, winner=player_id)
        return Transition(updated, [Event(Category.TURN, "end", {"winner_id": player_id, "last_shot": last_shot})])

    updated = replace(updated, current_turn=next_turn(player_id, defender.id, outcome))
    return Transition(updated, [Event(Category.TURN, "shot", {"last_shot": last_shot})])


# ---------------------------------------------------------------------------
# Rematch
# ---------------------------------------------------------------------------


def request_new_game(session: Session, player_id: str) -> Transition:
    _require_player(session, player_id)
    if session.owner.id != player_id:
        raise IllegalActionError("not_owner", "Only the session owner can request a new game")
    if session.status is SessionStatus.PLAYING:
        raise IllegalActionError("game_in_progress", "Session is still in progress")
    _require_status(session, SessionStatus.GAME_OVER)
    updated = _cleared(session, SessionStatus.WAITING_FOR_BOAT_PLACEMENTS)
    return Transition(updated, [Event(Category.SESSION, "new_game", {"player_id": player_id})])


# ---------------------------------------------------------------------------
# Integrity
# ---------------------------------------------------------------------------


def check_consistency(session: Session, manifest: FleetManifest = DEFAULT_MANIFEST) -> None:
    """Raise :class:`CorruptSessionError` when status and data disagree."""
    status = session.status
    if session.friend is None and status is not SessionStatus.WAITING_FOR_OPPONENT:
        raise CorruptSessionError(f"Session {session.id} is {status.value} without a friend")
    if status in (SessionStatus.WAITING_FOR_OPPONENT, SessionStatus.WAITING_FOR_BOAT_PLACEMENTS):
        if session.shots or session.current_turn or session.winner:
            raise CorruptSessionError(f"Session {session.id} has game data while {status.value}")
    if status in (SessionStatus.PLAYING, SessionStatus.GAME_OVER):
        for pid in session.player_ids:
            if len(session.ships_of(pid)) != manifest.total_ships:
                raise CorruptSessionError(f"Session {session.id} is {status.value} with an incomplete fleet")
    if status is SessionStatus.PLAYING and not session.has_player(session.current_turn or ""):
        raise CorruptSessionError(f"Session {session.id} is playing without a current turn")
    if status is SessionStatus.GAME_OVER and not session.has_player(session.winner or ""):
        raise CorruptSessionError(f"Session {session.id} is over without a winner")
