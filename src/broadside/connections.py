"""Registry of live connections, keyed by (session id, player id).

At most one transport is live per key: registering a new one closes the
previous.  A missing transport is never an error; the player simply gets the
current state replayed when they reconnect.
"""

from __future__ import annotations

import logging
import threading
from typing import Any, Protocol

from .common import PacketType

logger = logging.getLogger(__name__)

Key = tuple[str, str]


class Transport(Protocol):
    def send(self, obj: Any, ptype: PacketType = PacketType.GAME) -> bool: ...

    def close(self) -> None: ...


class ConnectionManager:
    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._routes: dict[Key, Transport] = {}

    def register(self, session_id: str, player_id: str, transport: Transport) -> None:
        """Route pushes for the player to *transport*, superseding any older one."""
        with self._lock:
            previous = self._routes.get((session_id, player_id))
            self._routes[(session_id, player_id)] = transport
        if previous is not None and previous is not transport:
            logger.info("Superseding connection for player %s in session %s", player_id, session_id)
            previous.close()
        logger.info(
            "Connection registered for player %s in session %s (%d live)",
            player_id,
            session_id,
            len(self.players(session_id)),
        )

    def remove(self, session_id: str, player_id: str, transport: Transport | None = None) -> bool:
        """Drop the route; with *transport* given, only if it is still the live one."""
        with self._lock:
            current = self._routes.get((session_id, player_id))
            if current is None or (transport is not None and current is not transport):
                return False
            del self._routes[(session_id, player_id)]
        logger.info("Connection removed for player %s in session %s", player_id, session_id)
        return True

    def get(self, session_id: str, player_id: str) -> Transport | None:
        with self._lock:
            return self._routes.get((session_id, player_id))

    def players(self, session_id: str) -> list[str]:
        with self._lock:
            return [pid for (sid, pid) in self._routes if sid == session_id]

    def send(self, session_id: str, player_id: str, obj: Any, ptype: PacketType = PacketType.GAME) -> bool:
        """Push *obj* to the player; False (logged) when nobody is listening."""
        transport = self.get(session_id, player_id)
        if transport is None:
            logger.warning(
                "Cannot send %s to player %s: not connected, state will be replayed on reconnect",
                obj.get("type") if isinstance(obj, dict) else obj,
                player_id,
            )
            return False
        if not transport.send(obj, ptype):
            logger.warning("Send to player %s in session %s failed, dropping connection", player_id, session_id)
            # A failed write may leave half a frame on the wire; the client must reconnect
            self.remove(session_id, player_id, transport)
            transport.close()
            return False
        return True

    def close_session(self, session_id: str) -> None:
        """Close and forget every transport attached to *session_id*."""
        with self._lock:
            doomed = [(key, t) for key, t in self._routes.items() if key[0] == session_id]
            for key, _ in doomed:
                del self._routes[key]
        for _, transport in doomed:
            transport.close()
