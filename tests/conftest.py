import logging
import random
import socket
import threading
import time
from typing import Any, Callable

import pytest

from broadside import state_machine as sm
from broadside.common import PacketType
from broadside.connections import ConnectionManager
from broadside.credentials import Claims
from broadside.geometry import Orientation, ShipPlacement
from broadside.io_utils import SocketTransport
from broadside.lobby import Lobby
from broadside.models import Player, Session
from broadside.session import SessionService
from broadside.store import SessionStore

# Suppress INFO & DEBUG logs from server threads during tests
logging.basicConfig(level=logging.WARNING)

TEST_KEY = b"\x01" * 32

# Five ships stacked along the left edge of the board: 17 cells on rows 0-4.
STACKED_FLEET = [
    ShipPlacement("carrier", 0, 0, 5, Orientation.HORIZONTAL),
    ShipPlacement("battleship", 0, 1, 4, Orientation.HORIZONTAL),
    ShipPlacement("cruiser-1", 0, 2, 3, Orientation.HORIZONTAL),
    ShipPlacement("cruiser-2", 0, 3, 3, Orientation.HORIZONTAL),
    ShipPlacement("destroyer", 0, 4, 2, Orientation.HORIZONTAL),
]

# Bottom-right corner stays empty with STACKED_FLEET, so these always miss.
MISS_CELLS = [(x, y) for y in range(6, 9) for x in range(6, 9)]


class StubRandom(random.Random):
    """``random()`` always returns *value*: 0.0 makes the owner shoot first."""

    def __init__(self, value: float = 0.0) -> None:
        super().__init__(0)
        self.value = value

    def random(self) -> float:
        return self.value


class FakeTransport:
    """Records every push instead of writing to a socket."""

    def __init__(self) -> None:
        self.sent: list[tuple[Any, PacketType]] = []
        self.closed = False

    def send(self, obj: Any, ptype: PacketType = PacketType.GAME) -> bool:
        if self.closed:
            return False
        self.sent.append((obj, ptype))
        return True

    def close(self) -> None:
        self.closed = True

    @property
    def types(self) -> list[str]:
        return [obj["type"] for obj, _ in self.sent]

    def last(self, kind: str) -> dict[str, Any]:
        return next(obj for obj, _ in reversed(self.sent) if obj["type"] == kind)

    def clear(self) -> None:
        self.sent.clear()


def wait_for(predicate: Callable[[], bool], timeout: float = 5.0) -> bool:
    deadline = time.monotonic() + timeout
    while time.monotonic() < deadline:
        if predicate():
            return True
        time.sleep(0.01)
    return predicate()


@pytest.fixture
def owner() -> Player:
    return Player("owner-id", "alice", is_owner=True)


@pytest.fixture
def friend() -> Player:
    return Player("friend-id", "bob")


@pytest.fixture
def fleet() -> list[ShipPlacement]:
    return list(STACKED_FLEET)


@pytest.fixture
def rng() -> StubRandom:
    return StubRandom(0.0)


@pytest.fixture
def clock() -> Callable[[], float]:
    return lambda: 1_700_000_000.0


@pytest.fixture
def waiting_session(owner: Player) -> Session:
    return Session(id="sess-1", slug="s_abc123", owner=owner)


@pytest.fixture
def paired_session(waiting_session: Session, friend: Player) -> Session:
    return sm.join(waiting_session, friend).session


@pytest.fixture
def playing_session(paired_session: Session, owner: Player, friend: Player, fleet, rng) -> Session:
    """Both fleets placed, owner to move."""
    s = sm.place_boats(paired_session, owner.id, fleet, rng=rng).session
    return sm.place_boats(s, friend.id, fleet, rng=rng).session


def play_to_win(session: Session, winner_id: str, clock, targets=None) -> sm.Transition:
    """Have *winner_id* sink the opponent's whole STACKED_FLEET; the loser only misses."""
    loser_id = session.opponent_of(winner_id).id
    targets = list(targets or [c for p in STACKED_FLEET for c in p.cells()])
    misses = iter(MISS_CELLS)
    transition = sm.Transition(session)
    while targets:
        if session.current_turn == winner_id:
            x, y = targets.pop(0)
            transition = sm.fire_shot(session, winner_id, x, y, clock=clock)
        else:
            x, y = next(misses)
            transition = sm.fire_shot(session, loser_id, x, y, clock=clock)
        session = transition.session
    return transition


@pytest.fixture
def service(rng, clock) -> SessionService:
    return SessionService(SessionStore(), ConnectionManager(), rng=rng, clock=clock)


@pytest.fixture
def lobby(service: SessionService) -> Lobby:
    return Lobby(service, key=TEST_KEY)


@pytest.fixture
def seated(service: SessionService, owner: Player, friend: Player):
    """A paired session in the service with a FakeTransport connected for each player."""
    session = service.store.create(owner)
    service.join(session.slug, friend)
    transports = {owner.id: FakeTransport(), friend.id: FakeTransport()}
    for pid, transport in transports.items():
        service.connect(Claims(session.id, pid, 0.0), transport)
    return session.id, transports


@pytest.fixture
def transport_pair():
    """A SocketTransport on each end of a connected socketpair."""
    a, b = socket.socketpair()
    left, right = SocketTransport(a), SocketTransport(b)
    yield left, right
    left.close()
    right.close()


def serve_over_socketpairs(server) -> Callable[..., socket.socket]:
    """Client-socket factory; each socket is served by *server*.handle_client in a thread."""

    def _connect(host: str = "", port: int = 0) -> socket.socket:
        srv, cli = socket.socketpair()
        threading.Thread(target=server.handle_client, args=(srv, "socketpair"), daemon=True).start()
        return cli

    return _connect


@pytest.fixture
def socket_server(lobby: Lobby):
    from broadside.server import GameServer

    return serve_over_socketpairs(GameServer(lobby.service, lobby))
