"""Translate state-machine events into per-recipient server messages.

The router lives *outside* the state machine so that translation rules are
declared in a single place and can evolve without touching core game logic.
It is also straight-forward to unit-test by feeding synthetic Event objects.
"""

from __future__ import annotations

import logging
from typing import Any

from .connections import ConnectionManager
from .events import Category, Event
from .io_utils import message
from .models import Session
from .projection import project, project_pair

logger = logging.getLogger(__name__)


def session_state(session: Session, player_id: str) -> dict[str, Any]:
    """Pre-game status for one player: who is seated and whether their fleet is in."""
    opponent = session.opponent_of(player_id)
    return message(
        "session_state",
        {
            "session": {"status": session.status.value, "slug": session.slug},
            "player": session.player(player_id).to_dict(),
            "opponent": opponent.to_dict() if opponent else None,
            "fleetPlaced": bool(session.ships_of(player_id)),
        },
    )


def replay_message(session: Session, player_id: str) -> dict[str, Any]:
    """The single message that brings a (re)connecting client up to date."""
    view = project(session, player_id)
    if view is None:
        return session_state(session, player_id)
    return message("game_update", view)


class EventRouter:
    """Session-scoped helper that converts `Event` → `ConnectionManager.send()` calls."""

    def __init__(self, connections: ConnectionManager) -> None:
        self._conns = connections

    # ------------------------------------------------------------------
    # Public dispatch entry
    # ------------------------------------------------------------------
    def route(self, session: Session, events: list[Event]) -> None:
        """Push every message produced by *events*; every send is attempted."""
        for ev in events:
            logger.debug("Routing %s/%s for session %s", ev.category.name, ev.type, session.id)
            for player_id, obj in self.translate(session, ev):
                self._conns.send(session.id, player_id, obj)

    def translate(self, session: Session, ev: Event) -> list[tuple[str, dict[str, Any]]]:
        cat = ev.category
        if cat is Category.LOBBY:
            return self._lobby(session, ev)
        if cat is Category.PLACEMENT:
            return [(ev.payload["player_id"], session_state(session, ev.payload["player_id"]))]
        if cat is Category.TURN:
            return self._turn(session, ev)
        if cat is Category.SESSION:
            return self._session(session, ev)
        logger.debug("Ignoring event %s", ev)  # pragma: no cover – unknown category
        return []

    # ------------------------------------------------------------------
    # Category handlers
    # ------------------------------------------------------------------
    def _lobby(self, session: Session, ev: Event) -> list[tuple[str, dict[str, Any]]]:
        status = {"status": session.status.value}
        if ev.type == "joined":
            friend = session.player(ev.payload["player_id"])
            payload = {"session": status, "opponent": friend.to_dict()}
            return [(session.owner.id, message("opponent_joined", payload))]
        if ev.type == "left":
            return [(ev.payload["remaining_id"], message("opponent_disconnected", {"session": status}))]
        logger.debug("Unhandled LOBBY event: %s", ev)
        return []

    def _turn(self, session: Session, ev: Event) -> list[tuple[str, dict[str, Any]]]:
        last_shot = ev.payload.get("last_shot")
        if ev.type == "end":
            logger.info("Session %s over – winner %s", session.id, ev.payload["winner_id"])
        views = project_pair(session, last_shot)
        return [(pid, message("game_update", view)) for pid, view in views.items()]

    def _session(self, session: Session, ev: Event) -> list[tuple[str, dict[str, Any]]]:
        if ev.type == "new_game":
            payload = {"session": {"status": session.status.value}}
            return [(pid, message("new_game_started", payload)) for pid in session.player_ids]
        return []
