"""Action dispatcher: the single writer for every session.

Client messages arrive here already bound to an authenticated
``(session_id, player_id)``.  For each one the dispatcher

1. takes the session's lock,
2. parses the payload and runs the matching pure transition,
3. saves (or discards) the new snapshot,
4. pushes the resulting per-player messages to both participants,
5. releases the lock.

Because both pushes happen before the lock is released, the next action for
the same session always sees clients that were already told the new turn.
Game errors are reported to the actor only and never mutate state.
"""

from __future__ import annotations

import logging
import random
import time
from typing import Any, Callable

from . import config as _cfg
from . import state_machine as sm
from .common import PacketType
from .connections import ConnectionManager, Transport
from .credentials import Claims
from .errors import BroadsideError, CorruptSessionError, IllegalActionError, NotFoundError
from .fleet import DEFAULT_MANIFEST, FleetManifest
from .io_utils import message
from .messages import (
    FireShotCommand,
    LeaveSessionCommand,
    PlaceBoatsCommand,
    RequestNewGameCommand,
    parse_command,
)
from .models import Player, Session
from .router import EventRouter, replay_message
from .store import SessionStore

logger = logging.getLogger(__name__)


class SessionService:
    """Serialised read-modify-write of sessions plus fan-out of the results."""

    def __init__(
        self,
        store: SessionStore | None = None,
        connections: ConnectionManager | None = None,
        *,
        manifest: FleetManifest = DEFAULT_MANIFEST,
        grid_size: int = _cfg.GRID_SIZE,
        rng: random.Random | None = None,
        clock: Callable[[], float] = time.time,
    ) -> None:
        self.store = store or SessionStore()
        self.connections = connections or ConnectionManager()
        self.router = EventRouter(self.connections)
        self.manifest = manifest
        self.grid_size = grid_size
        self.rng = rng or random.Random()
        self.clock = clock

    # ------------------------------------------------------------------
    # Connection lifecycle
    # ------------------------------------------------------------------
    def connect(self, claims: Claims, transport: Transport) -> None:
        """Attach *transport* for the claimed player and replay the current state."""
        with self.store.locked(claims.session_id) as session:
            if not session.has_player(claims.player_id):
                raise NotFoundError(f"Player {claims.player_id} is not in session {claims.session_id}")
            self.connections.register(session.id, claims.player_id, transport)
            self.connections.send(session.id, claims.player_id, replay_message(session, claims.player_id))

    def disconnect(self, claims: Claims, transport: Transport) -> None:
        """Forget the route; a dropped connection is not a forfeit."""
        self.connections.remove(claims.session_id, claims.player_id, transport)

    # ------------------------------------------------------------------
    # Actions
    # ------------------------------------------------------------------
    def handle(self, session_id: str, player_id: str, obj: Any) -> bool:
        """Process one client message; return True if it changed the session."""
        try:
            command = parse_command(obj)
            return self._apply(session_id, player_id, lambda s: self._transition(s, player_id, command))
        except BroadsideError as exc:
            logger.info("Rejected action from %s in session %s: %s", player_id, session_id, exc)
            self.connections.send(session_id, player_id, message("error", exc.to_payload()), PacketType.ERROR)
            return False

    def join(self, slug: str, friend: Player) -> Session:
        session_id = self.store.id_for_slug(slug)
        transition = self._commit(session_id, lambda s: sm.join(s, friend))
        assert transition.session is not None
        return transition.session

    def leave(self, session_id: str, player_id: str) -> None:
        self._apply(session_id, player_id, lambda s: sm.leave(s, player_id))

    # ------------------------------------------------------------------
    # Internals
    # ------------------------------------------------------------------
    def _transition(self, session: Session, player_id: str, command: Any) -> sm.Transition:
        if isinstance(command, PlaceBoatsCommand):
            return sm.place_boats(
                session,
                player_id,
                command.boats,
                manifest=self.manifest,
                grid_size=self.grid_size,
                rng=self.rng,
            )
        if isinstance(command, FireShotCommand):
            return sm.fire_shot(
                session,
                player_id,
                command.x,
                command.y,
                manifest=self.manifest,
                grid_size=self.grid_size,
                clock=self.clock,
            )
        if isinstance(command, RequestNewGameCommand):
            return sm.request_new_game(session, player_id)
        if isinstance(command, LeaveSessionCommand):
            return sm.leave(session, player_id)
        raise IllegalActionError("unsupported", f"Unsupported command {command!r}")

    def _apply(self, session_id: str, player_id: str, step: Callable[[Session], sm.Transition]) -> bool:
        def guarded(session: Session) -> sm.Transition:
            if not session.has_player(player_id):
                raise NotFoundError(f"Player {player_id} is not in session {session_id}")
            return step(session)

        self._commit(session_id, guarded)
        return True

    def _commit(
        self,
        session_id: str,
        step: Callable[[Session], sm.Transition],
    ) -> sm.Transition:
        with self.store.locked(session_id) as session:
            try:
                sm.check_consistency(session, self.manifest)
                transition = step(session)
                if transition.session is not None:
                    sm.check_consistency(transition.session, self.manifest)
            except CorruptSessionError:
                logger.exception("Session %s is corrupt – aborting it", session_id)
                self.store.delete(session_id)
                self.connections.close_session(session_id)
                raise NotFoundError(f"Session {session_id} was aborted") from None

            if transition.discarded:
                self.store.delete(session_id)
                self.connections.close_session(session_id)
                return transition

            self.store.save(transition.session)
            self.router.route(transition.session, transition.events)
            self._drop_departed(session, transition.session)
            return transition

    def _drop_departed(self, before: Session, after: Session) -> None:
        for pid in before.player_ids:
            if not after.has_player(pid):
                transport = self.connections.get(after.id, pid)
                if transport is not None:
                    self.connections.remove(after.id, pid, transport)
                    transport.close()
