"""Session bootstrapping: create, join, look up and leave.

This is the in-process version of the account/session surface that sits in
front of the game connection.  Create and join hand back a signed credential;
every later call (and the game connection itself) is authenticated by it.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass

from . import config as _cfg
from . import credentials
from .credentials import Claims
from .errors import NotFoundError, ValidationError
from .models import Player, Session
from .session import SessionService
from .store import new_player_id

logger = logging.getLogger(__name__)

MAX_USERNAME_LENGTH = 32


@dataclass(frozen=True)
class Seat:
    """What a player gets back from create/join."""

    session: Session
    player_id: str
    credential: str

    def to_dict(self) -> dict:
        return {"token": self.credential, "playerId": self.player_id, "session": self.session.summary()}


def _clean_username(username: object) -> str:
    if not isinstance(username, str) or not username.strip():
        raise ValidationError("malformed", "Username must be a non-empty string")
    name = username.strip()
    if len(name) > MAX_USERNAME_LENGTH:
        raise ValidationError("malformed", f"Username longer than {MAX_USERNAME_LENGTH} characters")
    return name


class Lobby:
    def __init__(self, service: SessionService, *, key: bytes = _cfg.SECRET_KEY) -> None:
        self.service = service
        self._key = key

    def _issue(self, session: Session, player_id: str) -> str:
        return credentials.issue(session.id, player_id, key=self._key)

    def authenticate(self, token: str) -> Claims:
        return credentials.verify(token, key=self._key)

    def create_session(self, username: str) -> Seat:
        owner = Player(new_player_id(), _clean_username(username), is_owner=True)
        session = self.service.store.create(owner)
        return Seat(session, owner.id, self._issue(session, owner.id))

    def join_session(self, slug: str, username: str) -> Seat:
        if not isinstance(slug, str) or not slug:
            raise ValidationError("malformed", "Slug must be a non-empty string")
        friend = Player(new_player_id(), _clean_username(username))
        session = self.service.join(slug, friend)
        logger.info("%s joined session %s", friend.username, session.id)
        return Seat(session, friend.id, self._issue(session, friend.id))

    def get_session(self, token: str) -> Session | None:
        """The caller's session, or None once it is gone or they were removed."""
        claims = self.authenticate(token)
        try:
            session = self.service.store.get(claims.session_id)
        except NotFoundError:
            return None
        return session if session.has_player(claims.player_id) else None

    def disconnect_session(self, token: str) -> None:
        claims = self.authenticate(token)
        self.service.leave(claims.session_id, claims.player_id)
