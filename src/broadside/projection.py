"""Per-viewer projection of the session: the only game state ever pushed.

A viewer sees their own fleet in full, the shots they fired, the opponent's
*sunk* ships, and the opponent's shots against their own board.  Unsunk enemy
ships never leave the server.
"""

from __future__ import annotations

from typing import Any, Optional

from typing_extensions import Literal, TypedDict

from .models import LastShot, Session, SessionStatus

Relative = Literal["player", "opponent"]


class PlayerSection(TypedDict):
    boats: list[dict[str, Any]]
    shots: list[dict[str, Any]]
    wins: int


class OpponentSection(TypedDict):
    sunkBoats: list[dict[str, Any]]
    shotsAgainstPlayer: list[dict[str, Any]]
    wins: int


class GameState(TypedDict, total=False):
    status: Literal["in_progress", "over"]
    turn: Relative
    winner: Relative
    lastShot: Optional[dict[str, Any]]
    session: dict[str, str]
    player: PlayerSection
    opponent: OpponentSection


def _relative(session_player_id: str, viewer_id: str) -> Relative:
    return "player" if session_player_id == viewer_id else "opponent"


def project(session: Session, viewer_id: str, last_shot: LastShot | None = None) -> GameState | None:
    """Build *viewer_id*'s ``game_update`` payload, or ``None`` before play starts."""
    if session.status not in (SessionStatus.PLAYING, SessionStatus.GAME_OVER):
        return None
    opponent = session.opponent_of(viewer_id)
    if opponent is None:
        return None
    viewer = session.player(viewer_id)

    state: GameState = {
        "lastShot": last_shot.to_dict() if last_shot else None,
        "session": {"status": session.status.value},
        "player": {
            "boats": [s.to_dict() for s in session.ships_of(viewer_id)],
            "shots": [s.to_dict() for s in session.shots_by(viewer_id)],
            "wins": viewer.wins,
        },
        "opponent": {
            "sunkBoats": [s.to_dict() for s in session.ships_of(opponent.id) if s.sunk],
            "shotsAgainstPlayer": [s.to_dict() for s in session.shots_against(viewer_id)],
            "wins": opponent.wins,
        },
    }
    if session.status is SessionStatus.GAME_OVER:
        state["status"] = "over"
        state["winner"] = _relative(session.winner or "", viewer_id)
    else:
        state["status"] = "in_progress"
        state["turn"] = _relative(session.current_turn or "", viewer_id)
    return state


def project_pair(session: Session, last_shot: LastShot | None = None) -> dict[str, GameState]:
    """Project for both seated players; empty before play starts."""
    views: dict[str, GameState] = {}
    for pid in session.player_ids:
        view = project(session, pid, last_shot)
        if view is not None:
            views[pid] = view
    return views
