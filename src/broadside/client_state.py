"""Client-side view of the game as one canonical state machine.

States form a closed set (:class:`Disconnected`, :class:`Loading`,
:class:`Failed`, :class:`Online`).  Each server message kind has a pure
reducer returning a new frozen snapshot; :class:`ClientStore` holds the
current snapshot and notifies subscribers (the UI) after every change.
"""

from __future__ import annotations

import logging
import threading
from dataclasses import dataclass, replace
from typing import Any, Callable, Mapping, Union

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class PlayerInfo:
    id: str
    username: str
    is_owner: bool
    wins: int = 0

    @classmethod
    def from_dict(cls, raw: Mapping[str, Any]) -> "PlayerInfo":
        return cls(str(raw["id"]), str(raw["username"]), bool(raw.get("isOwner")), int(raw.get("wins", 0)))


@dataclass(frozen=True)
class SessionInfo:
    slug: str
    status: str
    player: PlayerInfo
    opponent: PlayerInfo | None = None


@dataclass(frozen=True)
class Disconnected:
    status: str = "disconnected"


@dataclass(frozen=True)
class Loading:
    status: str = "loading"


@dataclass(frozen=True)
class Failed:
    error: str
    status: str = "error"


@dataclass(frozen=True)
class Online:
    session: SessionInfo
    game: Mapping[str, Any] | None = None
    last_error: Mapping[str, str] | None = None
    status: str = "online"


State = Union[Disconnected, Loading, Failed, Online]


def online_from_hello(hello: Mapping[str, Any]) -> Online:
    """Initial online state from the server's handshake reply."""
    raw = hello["session"]
    player_id = hello["playerId"]
    seats = [PlayerInfo.from_dict(p) for p in (raw.get("owner"), raw.get("friend")) if p]
    player = next(p for p in seats if p.id == player_id)
    opponent = next((p for p in seats if p.id != player_id), None)
    return Online(SessionInfo(raw["slug"], raw["status"], player, opponent))


# ---------------------------------------------------------------------------
# Reducers: (Online, data) -> Online
# ---------------------------------------------------------------------------


def _with_status(state: Online, status: str) -> SessionInfo:
    return replace(state.session, status=status)


def on_opponent_joined(state: Online, data: Mapping[str, Any]) -> Online:
    session = replace(
        _with_status(state, data["session"]["status"]),
        opponent=PlayerInfo.from_dict(data["opponent"]),
    )
    return replace(state, session=session, last_error=None)


def on_game_update(state: Online, data: Mapping[str, Any]) -> Online:
    return replace(state, session=_with_status(state, data["session"]["status"]), game=data, last_error=None)


def on_new_game_started(state: Online, data: Mapping[str, Any]) -> Online:
    return replace(state, session=_with_status(state, data["session"]["status"]), game=None, last_error=None)


def on_opponent_disconnected(state: Online, data: Mapping[str, Any]) -> Online:
    # The remaining player is (or becomes) the owner of a session waiting for someone new
    session = replace(
        _with_status(state, data["session"]["status"]),
        opponent=None,
        player=replace(state.session.player, is_owner=True),
    )
    return replace(state, session=session, game=None)


def on_session_state(state: Online, data: Mapping[str, Any]) -> Online:
    opponent = data.get("opponent")
    session = replace(
        _with_status(state, data["session"]["status"]),
        player=PlayerInfo.from_dict(data["player"]),
        opponent=PlayerInfo.from_dict(opponent) if opponent else None,
    )
    return replace(state, session=session, game=None)


def on_error(state: Online, data: Mapping[str, Any]) -> Online:
    return replace(state, last_error=dict(data))


REDUCERS: dict[str, Callable[[Online, Mapping[str, Any]], Online]] = {
    "opponent_joined": on_opponent_joined,
    "game_update": on_game_update,
    "new_game_started": on_new_game_started,
    "opponent_disconnected": on_opponent_disconnected,
    "session_state": on_session_state,
    "error": on_error,
}


def reduce(state: State, msg: Any) -> State:
    """Apply one server message; protocol violations become a :class:`Failed` state."""
    if not isinstance(state, Online):
        return Failed("Received message before store was online")
    if not isinstance(msg, dict) or msg.get("type") not in REDUCERS:
        return Failed(f"Unknown server message: {msg!r}")
    try:
        return REDUCERS[msg["type"]](state, msg.get("data") or {})
    except (KeyError, TypeError, ValueError, StopIteration) as exc:
        return Failed(f"Malformed {msg['type']} message: {exc}")


class ClientStore:
    """Observable holder of the current :data:`State`."""

    def __init__(self, initial: State | None = None) -> None:
        self._state: State = initial or Disconnected()
        self._subs: list[Callable[[State], None]] = []
        self._lock = threading.Lock()

    @property
    def state(self) -> State:
        return self._state

    def subscribe(self, cb: Callable[[State], None]) -> Callable[[], None]:
        """Register *cb*; the returned callable unsubscribes it."""
        self._subs.append(cb)

        def _unsubscribe() -> None:
            if cb in self._subs:
                self._subs.remove(cb)

        return _unsubscribe

    def set(self, state: State) -> None:
        with self._lock:
            self._state = state
        self._notify(state)

    def dispatch(self, msg: Any) -> State:
        with self._lock:
            self._state = reduce(self._state, msg)
            state = self._state
        self._notify(state)
        return state

    def _notify(self, state: State) -> None:
        for cb in tuple(self._subs):
            try:
                cb(state)
            except Exception:
                # Don't let a misbehaving subscriber break message handling
                logger.exception("Store subscriber failed")
