"""In-memory session store: the durable record as far as this process is concerned.

Every read-modify-write of a session must happen inside :meth:`SessionStore.locked`,
which serialises all actions for one session while leaving other sessions
free to proceed in parallel.
"""

from __future__ import annotations

import contextlib
import logging
import secrets
import threading
import uuid
from typing import Iterator

from .errors import NotFoundError
from .models import Player, Session

logger = logging.getLogger(__name__)

SLUG_PREFIX = "s"
SLUG_BYTES = 3


def generate_slug(prefix: str = SLUG_PREFIX) -> str:
    return f"{prefix}_{secrets.token_hex(SLUG_BYTES)}"


def new_player_id() -> str:
    return uuid.uuid4().hex


class SessionStore:
    def __init__(self) -> None:
        self._guard = threading.Lock()
        self._sessions: dict[str, Session] = {}
        self._by_slug: dict[str, str] = {}
        self._locks: dict[str, threading.RLock] = {}

    # -------------------- creation --------------------
    def create(self, owner: Player) -> Session:
        with self._guard:
            slug = generate_slug()
            while slug in self._by_slug:
                slug = generate_slug()
            session = Session(id=uuid.uuid4().hex, slug=slug, owner=owner)
            self._sessions[session.id] = session
            self._by_slug[slug] = session.id
            self._locks[session.id] = threading.RLock()
        logger.info("Session %s created (slug %s) by %s", session.id, slug, owner.username)
        return session

    # -------------------- lookups --------------------
    def get(self, session_id: str) -> Session:
        with self._guard:
            session = self._sessions.get(session_id)
        if session is None:
            raise NotFoundError(f"Session {session_id} not found")
        return session

    def id_for_slug(self, slug: str) -> str:
        with self._guard:
            session_id = self._by_slug.get(slug)
        if session_id is None:
            raise NotFoundError(f"No session with slug {slug!r}")
        return session_id

    def __contains__(self, session_id: object) -> bool:
        with self._guard:
            return session_id in self._sessions

    def __len__(self) -> int:
        with self._guard:
            return len(self._sessions)

    # -------------------- mutation --------------------
    @contextlib.contextmanager
    def locked(self, session_id: str) -> Iterator[Session]:
        """Hold the session's lock and yield its current snapshot."""
        with self._guard:
            lock = self._locks.get(session_id)
        if lock is None:
            raise NotFoundError(f"Session {session_id} not found")
        with lock:
            # Re-read under the lock: the session may have been deleted meanwhile
            yield self.get(session_id)

    def save(self, session: Session) -> None:
        with self._guard:
            if session.id not in self._sessions:
                raise NotFoundError(f"Session {session.id} not found")
            self._sessions[session.id] = session

    def delete(self, session_id: str) -> None:
        with self._guard:
            session = self._sessions.pop(session_id, None)
            self._locks.pop(session_id, None)
            if session is not None:
                self._by_slug.pop(session.slug, None)
        if session is not None:
            logger.info("Session %s discarded", session_id)
