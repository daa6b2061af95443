"""CLI client: connect, keep a local store in sync, and send commands."""

from __future__ import annotations

import argparse
import logging
import os
import random
import socket
import sys
import threading
from typing import Any, Callable

from . import config as _cfg
from .client_state import ClientStore, Failed, Loading, Online, State, online_from_hello
from .common import FrameError, IncompleteError, PacketType
from .errors import TransportError
from .geometry import ShipPlacement, random_fleet
from .io_utils import SocketTransport, message
from .reconnect import ExponentialBackoff, ReconnectController

HOST = _cfg.DEFAULT_HOST
PORT = _cfg.DEFAULT_PORT

logger = logging.getLogger(__name__)


# ---------------------------- outgoing -----------------------------


def place_boats_message(placements: list[ShipPlacement]) -> dict[str, Any]:
    boats = [
        {
            "id": p.id,
            "startX": p.start_x,
            "startY": p.start_y,
            "length": p.length,
            "orientation": p.orientation.value,
        }
        for p in placements
    ]
    return message("place_boats", {"boats": boats})


def fire_shot_message(x: int, y: int) -> dict[str, Any]:
    return message("fire_shot", {"x": x, "y": y})


def request_new_game_message() -> dict[str, Any]:
    return message("request_new_game")


def leave_session_message() -> dict[str, Any]:
    return message("leave_session")


# ---------------------------- connection -----------------------------


class GameClient:
    """One logical player: survives socket drops by reconnecting with its credential."""

    def __init__(
        self,
        host: str = HOST,
        port: int = PORT,
        *,
        store: ClientStore | None = None,
        strategy: ExponentialBackoff | None = None,
        sock_factory: Callable[[str, int], socket.socket] | None = None,
    ) -> None:
        self.host = host
        self.port = port
        self.store = store or ClientStore()
        self.token: str | None = None
        # Replaced by the server's rules on every handshake
        self.grid_size = _cfg.GRID_SIZE
        self.fleet: dict[int, int] = dict(_cfg.FLEET)
        self.transport: SocketTransport | None = None
        self._sock_factory = sock_factory or (lambda h, p: socket.create_connection((h, p)))
        self._reconnect = ReconnectController(self._open, strategy)
        self._stopping = threading.Event()

    # -------------------- handshake --------------------
    def _hello(self, request: dict[str, Any]) -> SocketTransport:
        transport = SocketTransport(self._sock_factory(self.host, self.port))
        try:
            transport.send(request, PacketType.HELLO)
            ptype, _, obj = transport.recv()
        except (FrameError, OSError) as exc:
            transport.close()
            raise TransportError(f"Handshake failed: {exc}") from exc
        if ptype == PacketType.ERROR:
            transport.close()
            data = obj.get("data", {}) if isinstance(obj, dict) else {}
            raise TransportError(f"Server refused: {data.get('message', obj)}")
        if "token" in obj:
            self.token = obj["token"]
        rules = obj.get("rules")
        if isinstance(rules, dict):
            self.grid_size = int(rules["gridSize"])
            self.fleet = {int(length): int(count) for length, count in rules["fleet"].items()}
        self.store.set(online_from_hello(obj))
        return transport

    def _open(self) -> SocketTransport:
        if self.token is None:
            raise TransportError("No credential to reconnect with")
        return self._hello({"token": self.token})

    def create(self, username: str) -> None:
        self.store.set(Loading())
        self._attach(self._hello({"create": {"username": username}}))

    def join(self, slug: str, username: str) -> None:
        self.store.set(Loading())
        self._attach(self._hello({"join": {"slug": slug, "username": username}}))

    def resume(self, token: str) -> None:
        self.token = token
        self.store.set(Loading())
        self._attach(self._reconnect.run())

    def _attach(self, transport: SocketTransport) -> None:
        self.transport = transport
        threading.Thread(target=self._recv_loop, args=(transport,), daemon=True).start()

    # -------------------- receiver --------------------
    def _recv_loop(self, transport: SocketTransport) -> None:
        while True:
            try:
                _, _, obj = transport.recv()
            except IncompleteError:
                logger.info("Server closed the connection")
                break
            except (FrameError, OSError, ValueError) as exc:
                logger.warning("Receive failed: %s", exc)
                break
            self.store.dispatch(obj)
        transport.close()
        if self._stopping.is_set() or transport is not self.transport:
            return
        try:
            self._attach(self._reconnect.run())
        except TransportError as exc:
            logger.error("%s", exc)
            self.store.set(Failed(str(exc)))

    # -------------------- commands --------------------
    def send(self, obj: dict[str, Any]) -> bool:
        if self.transport is None:
            return False
        return self.transport.send(obj)

    def place_random_fleet(self, rng: random.Random | None = None) -> bool:
        return self.send(place_boats_message(random_fleet(self.fleet, self.grid_size, rng)))

    def fire(self, x: int, y: int) -> bool:
        return self.send(fire_shot_message(x, y))

    def rematch(self) -> bool:
        return self.send(request_new_game_message())

    def leave(self) -> bool:
        # The server drops us right after; that close must not trigger a reconnect
        self._stopping.set()
        return self.send(leave_session_message())

    def close(self) -> None:
        self._stopping.set()
        if self.transport is not None:
            self.transport.close()


# ---------------------------- rendering -----------------------------


def _print_board(player: dict[str, Any], opponent: dict[str, Any], size: int) -> None:
    own = {}
    for boat in player["boats"]:
        for i in range(boat["length"]):
            x = boat["startX"] + (i if boat["orientation"] == "horizontal" else 0)
            y = boat["startY"] + (i if boat["orientation"] == "vertical" else 0)
            own[(x, y)] = "S"
    for shot in opponent["shotsAgainstPlayer"]:
        own[(shot["x"], shot["y"])] = "X" if shot["hit"] else "o"
    target = {(s["x"], s["y"]): "X" if s["hit"] else "o" for s in player["shots"]}

    header = "   " + " ".join(f"{i:>2}" for i in range(size))
    print(f"\n{'[Opponent]'.center(len(header))}   {'[You]'.center(len(header))}")
    print(f"{header}   {header}")
    for y in range(size):
        left = " ".join(f"{target.get((x, y), '.'):>2}" for x in range(size))
        right = " ".join(f"{own.get((x, y), '.'):>2}" for x in range(size))
        print(f"{y:>2} {left}   {y:>2} {right}")


def render(state: State, size: int = _cfg.GRID_SIZE) -> None:  # pragma: no cover – terminal output
    if isinstance(state, Failed):
        print(f"[ERROR] {state.error}")
        return
    if not isinstance(state, Online):
        return
    if state.last_error:
        print(f"[ERR] {state.last_error.get('message')}")
        return
    session = state.session
    game = state.game
    if game is None:
        opponent = session.opponent.username if session.opponent else "nobody yet"
        print(f"[INFO] Session {session.slug}: {session.status} (opponent: {opponent})")
        return
    _print_board(game["player"], game["opponent"], size)
    if game["status"] == "over":
        print("YOU WON" if game["winner"] == "player" else "YOU LOST")
    else:
        print("YOUR TURN" if game["turn"] == "player" else "Waiting for opponent...")


# ----------------------------- main -------------------------------

HELP = "Commands: place | fire X Y | rematch | leave | quit"


def _command_loop(client: GameClient) -> None:  # pragma: no cover – interactive
    print(HELP)
    for line in sys.stdin:
        parts = line.split()
        if not parts:
            continue
        cmd = parts[0].lower()
        if cmd == "quit":
            break
        elif cmd == "place":
            try:
                client.place_random_fleet()
            except ValueError as exc:
                print(f"[ERROR] {exc}")
        elif cmd == "fire" and len(parts) == 3:
            try:
                client.fire(int(parts[1]), int(parts[2]))
            except ValueError:
                print("Usage: fire X Y")
        elif cmd == "rematch":
            client.rematch()
        elif cmd == "leave":
            client.leave()
            break
        else:
            print(HELP)


def main() -> None:  # pragma: no cover – CLI entry
    """Interactive CLI client."""

    parser = argparse.ArgumentParser(description="Broadside CLI client")
    parser.add_argument("--host", default=HOST)
    parser.add_argument("--port", type=int, default=PORT)
    group = parser.add_mutually_exclusive_group(required=True)
    group.add_argument("--create", metavar="NAME", help="Create a new session")
    group.add_argument("--join", nargs=2, metavar=("SLUG", "NAME"), help="Join a session by slug")
    group.add_argument("--token", help="Resume with a credential from an earlier run")
    parser.add_argument(
        "--debug",
        action="store_true",
        help="Enable debug logging.",
    )
    parser.add_argument(
        "-v",
        "--verbose",
        action="count",
        default=0,
        help="Increase verbosity (stackable)",
    )
    args = parser.parse_args()

    if args.debug:
        os.environ["BROADSIDE_DEBUG"] = "1"
    level = logging.DEBUG if args.debug or _cfg.DEBUG else (logging.INFO if args.verbose else logging.WARNING)
    logging.basicConfig(level=level, format=_cfg.LOG_FORMAT)

    client = GameClient(args.host, args.port)
    client.store.subscribe(lambda state: render(state, client.grid_size))
    try:
        if args.create:
            client.create(args.create)
        elif args.join:
            client.join(*args.join)
        else:
            client.resume(args.token)
    except (TransportError, OSError) as exc:
        print(f"[ERROR] {exc}")
        sys.exit(1)

    print(f"[INFO] Credential (use --token to resume): {client.token}")
    try:
        _command_loop(client)
    except KeyboardInterrupt:
        logger.info("Client exiting")
    finally:
        client.close()


if __name__ == "__main__":  # pragma: no cover
    main()
