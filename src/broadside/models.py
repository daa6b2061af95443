"""Immutable snapshots of the session aggregate.

A :class:`Session` owns its players, ships and shot log.  Nothing here is
mutated in place; :mod:`broadside.state_machine` derives new snapshots with
:func:`dataclasses.replace`.
"""

from __future__ import annotations

from dataclasses import dataclass, field, replace
from enum import Enum
from typing import Any

from .geometry import Cell, Orientation, ShipPlacement, covers, occupied_cells


class SessionStatus(str, Enum):
    WAITING_FOR_OPPONENT = "waiting_for_opponent"
    WAITING_FOR_BOAT_PLACEMENTS = "waiting_for_boat_placements"
    READY_TO_START = "ready_to_start"
    PLAYING = "playing"
    GAME_OVER = "game_over"


@dataclass(frozen=True, slots=True)
class Player:
    id: str
    username: str
    is_owner: bool = False
    wins: int = 0

    def to_dict(self) -> dict[str, Any]:
        return {"id": self.id, "username": self.username, "isOwner": self.is_owner, "wins": self.wins}


@dataclass(frozen=True, slots=True)
class Ship:
    id: str
    start_x: int
    start_y: int
    length: int
    orientation: Orientation
    sunk: bool = False

    @classmethod
    def from_placement(cls, placement: ShipPlacement) -> "Ship":
        return cls(placement.id, placement.start_x, placement.start_y, placement.length, placement.orientation)

    def cells(self) -> list[Cell]:
        return occupied_cells(self.start_x, self.start_y, self.length, self.orientation)

    def covers(self, cell: Cell) -> bool:
        return covers(self.start_x, self.start_y, self.length, self.orientation, cell)

    def mark_sunk(self) -> "Ship":
        return self if self.sunk else replace(self, sunk=True)

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "startX": self.start_x,
            "startY": self.start_y,
            "length": self.length,
            "orientation": self.orientation.value,
            "sunk": self.sunk,
        }


@dataclass(frozen=True, slots=True)
class Shot:
    id: str
    created_at: float
    shooter_id: str
    target_id: str
    x: int
    y: int
    hit: bool

    @property
    def cell(self) -> Cell:
        return (self.x, self.y)

    def to_dict(self) -> dict[str, Any]:
        # Deliberately no ship id: a shot only reveals hit or miss.
        return {
            "id": self.id,
            "createdAt": self.created_at,
            "shooterId": self.shooter_id,
            "targetId": self.target_id,
            "x": self.x,
            "y": self.y,
            "hit": self.hit,
        }


@dataclass(frozen=True, slots=True)
class LastShot:
    """The most recently resolved shot, annotated with whether it sank a ship."""

    shot: Shot
    sunk_boat: bool

    def to_dict(self) -> dict[str, Any]:
        return {**self.shot.to_dict(), "sunkBoat": self.sunk_boat}


@dataclass(frozen=True)
class Session:
    id: str
    slug: str
    owner: Player
    friend: Player | None = None
    status: SessionStatus = SessionStatus.WAITING_FOR_OPPONENT
    current_turn: str | None = None
    winner: str | None = None
    ships: dict[str, tuple[Ship, ...]] = field(default_factory=dict)
    shots: tuple[Shot, ...] = ()

    # -------------------- lookups --------------------
    @property
    def player_ids(self) -> tuple[str, ...]:
        if self.friend is None:
            return (self.owner.id,)
        return (self.owner.id, self.friend.id)

    def has_player(self, player_id: str) -> bool:
        return player_id in self.player_ids

    def player(self, player_id: str) -> Player:
        if player_id == self.owner.id:
            return self.owner
        if self.friend is not None and player_id == self.friend.id:
            return self.friend
        raise KeyError(player_id)

    def opponent_of(self, player_id: str) -> Player | None:
        if player_id == self.owner.id:
            return self.friend
        return self.owner

    def ships_of(self, player_id: str) -> tuple[Ship, ...]:
        return self.ships.get(player_id, ())

    def shots_by(self, player_id: str) -> tuple[Shot, ...]:
        return tuple(s for s in self.shots if s.shooter_id == player_id)

    def shots_against(self, player_id: str) -> tuple[Shot, ...]:
        return tuple(s for s in self.shots if s.target_id == player_id)

    def summary(self) -> dict[str, Any]:
        """Status plus players, as exposed by the lobby."""
        return {
            "id": self.id,
            "slug": self.slug,
            "status": self.status.value,
            "owner": self.owner.to_dict(),
            "friend": self.friend.to_dict() if self.friend else None,
        }
