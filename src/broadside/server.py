"""TCP game server.

One daemon thread per connection.  The first frame on every connection is a
``HELLO`` handshake carrying either an existing credential (``{"token": ...}``)
or a lobby request (``{"create": {...}}`` / ``{"join": {...}}``).  The reply
carries the credential, the session summary and the ``rules`` (grid size and
fleet) clients must place against.  Once authenticated, the connection is
registered with the dispatcher, receives the current state, and every
following ``GAME`` frame is handed to :meth:`SessionService.handle` in
arrival order.
"""

from __future__ import annotations

import argparse
import logging
import os
import signal
import socket
import sys
import threading
from typing import Any

from . import config as _cfg
from .common import FrameError, PacketType
from .credentials import Claims
from .errors import BroadsideError, ValidationError
from .io_utils import SocketTransport, message
from .lobby import Lobby, Seat
from .session import SessionService

HOST = _cfg.DEFAULT_HOST
PORT = _cfg.DEFAULT_PORT

# Initialize module-level logger
logger = logging.getLogger(__name__)


class GameServer:
    """Accept loop plus per-connection reader threads."""

    def __init__(self, service: SessionService | None = None, lobby: Lobby | None = None) -> None:
        self.service = service or SessionService()
        self.lobby = lobby or Lobby(self.service)
        self._sock: socket.socket | None = None
        self._stopping = threading.Event()

    # -------------------- handshake --------------------
    def rules(self) -> dict[str, Any]:
        """Board size and fleet this server enforces, sent with every HELLO reply."""
        fleet = {str(length): count for length, count in self.service.manifest.counts}
        return {"gridSize": self.service.grid_size, "fleet": fleet}

    def _handshake(self, transport: SocketTransport) -> tuple[Claims, Seat | None]:
        ptype, _, obj = transport.recv()
        if ptype != PacketType.HELLO or not isinstance(obj, dict):
            raise ValidationError("malformed", "Expected a HELLO frame")
        logger.debug("Received handshake %r", {k: v for k, v in obj.items() if k != "token"})

        if "token" in obj:
            return self.lobby.authenticate(obj["token"]), None
        if isinstance(obj.get("create"), dict):
            seat = self.lobby.create_session(obj["create"].get("username"))
        elif isinstance(obj.get("join"), dict):
            req: dict[str, Any] = obj["join"]
            seat = self.lobby.join_session(req.get("slug"), req.get("username"))
        else:
            raise ValidationError("malformed", "HELLO must carry 'token', 'create' or 'join'")
        return self.lobby.authenticate(seat.credential), seat

    def handle_client(self, sock: socket.socket, addr: Any = None) -> None:
        """Serve one connection until it closes."""
        transport = SocketTransport(sock)
        try:
            claims, seat = self._handshake(transport)
            if seat is None:
                session = self.service.store.get(claims.session_id)
                if not session.has_player(claims.player_id):
                    raise ValidationError("unauthorized", "You are no longer part of this session")
                hello = {"playerId": claims.player_id, "session": session.summary()}
            else:
                hello = seat.to_dict()
            hello["rules"] = self.rules()
            transport.send(hello, PacketType.HELLO)
            self.service.connect(claims, transport)
        except BroadsideError as exc:
            logger.info("Handshake from %s rejected: %s", addr, exc)
            transport.send(message("error", exc.to_payload()), PacketType.ERROR)
            transport.close()
            return
        except (FrameError, OSError) as exc:
            logger.info("Handshake from %s failed: %s", addr, exc)
            transport.close()
            return

        logger.info("Player %s connected to session %s from %s", claims.player_id, claims.session_id, addr)
        try:
            self._read_loop(claims, transport)
        finally:
            self.service.disconnect(claims, transport)
            transport.close()
            logger.info("Player %s disconnected from session %s", claims.player_id, claims.session_id)

    def _read_loop(self, claims: Claims, transport: SocketTransport) -> None:
        while not transport.closed:
            try:
                ptype, _, obj = transport.recv()
            except (FrameError, OSError, ValueError) as exc:
                # ValueError: read on a file closed by a superseding connection
                logger.debug("Reader for %s stopped: %s", claims.player_id, exc)
                return
            if ptype != PacketType.GAME:
                logger.debug("Ignoring %s frame from %s", ptype.name, claims.player_id)
                continue
            self.service.handle(claims.session_id, claims.player_id, obj)

    # -------------------- accept loop --------------------
    def serve_forever(self, host: str = HOST, port: int = PORT) -> None:  # pragma: no cover – blocking loop
        with socket.socket(socket.AF_INET, socket.SOCK_STREAM) as server_sock:
            server_sock.setsockopt(socket.SOL_SOCKET, socket.SO_REUSEADDR, 1)
            server_sock.bind((host, port))
            server_sock.listen()
            self._sock = server_sock
            logger.info("Broadside server listening on %s:%d", host, port)
            while not self._stopping.is_set():
                try:
                    conn, addr = server_sock.accept()
                except OSError:
                    if self._stopping.is_set():
                        break
                    raise
                logger.info("Connection from %s", addr)
                conn.setsockopt(socket.SOL_SOCKET, socket.SO_KEEPALIVE, 1)
                threading.Thread(target=self.handle_client, args=(conn, addr), daemon=True).start()

    def shutdown(self) -> None:
        self._stopping.set()
        if self._sock is not None:
            self._sock.close()


def main() -> None:  # pragma: no cover – side-effect entrypoint
    parser = argparse.ArgumentParser(description="Broadside game server")
    parser.add_argument("--host", default=HOST, help="Address to bind.")
    parser.add_argument("--port", type=int, default=PORT, help="Port to listen on.")
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
        help="Increase verbosity.",
    )
    parser.add_argument(
        "-s",
        "--silent",
        "-q",
        "--quiet",
        dest="silent",
        action="store_true",
        help="Suppress all output.",
    )
    args = parser.parse_args()

    if args.debug:
        os.environ["BROADSIDE_DEBUG"] = "1"

    # Determine log level from CLI flags:
    if args.silent:
        level = logging.ERROR
    elif args.debug or _cfg.DEBUG:
        level = logging.DEBUG
    elif args.verbose >= 1:
        level = logging.INFO
    else:
        level = logging.WARNING
    logging.basicConfig(level=level, format=_cfg.LOG_FORMAT)

    server = GameServer()

    def _shutdown(signum, frame):
        # ensure the "^C" echo doesn't get stuck on our log line
        sys.stderr.write("\n")
        logger.info("Received signal %s, shutting down", signum)
        server.shutdown()

    signal.signal(signal.SIGINT, _shutdown)
    signal.signal(signal.SIGTERM, _shutdown)
    server.serve_forever(args.host, args.port)


if __name__ == "__main__":  # pragma: no cover
    main()
