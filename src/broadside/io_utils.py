# io_utils.py
"""
Low-level helpers shared by the server, the dispatcher and the client
–––––––––––––––––––––––––––––––––––––––––––––––––––––––––––––––––––––
• send()          – frame + flush a payload, report success instead of raising
• message()       – build a ``{"type": ..., "data": ...}`` envelope
• SocketTransport – one live connection: framed writes with a private seq counter
• set_send_timeout() – bound how long a write may stall on a peer that stopped reading
"""

from __future__ import annotations

import contextlib
import logging
import socket
import struct
import sys
import threading
from typing import Any, BinaryIO

from . import config as _cfg
from .common import PacketType, recv_pkt, send_pkt

logger = logging.getLogger("broadside.io_utils")


def message(kind: str, data: Any | None = None) -> dict[str, Any]:
    return {"type": kind, "data": data if data is not None else {}}


def send(w: BinaryIO, seq: int, ptype: PacketType = PacketType.GAME, *, obj: Any) -> bool:
    """Write one frame to *w*; return False when the peer is gone."""
    logger.debug("send() start – ptype=%s seq=%d obj=%r", ptype, seq, obj)
    try:
        send_pkt(w, ptype, seq, obj)  # type: ignore[arg-type]
        return True
    except (BrokenPipeError, ConnectionResetError, ConnectionAbortedError):
        logger.debug("send() peer closed – seq=%d", seq)
        return False
    except (BlockingIOError, TimeoutError):
        # SO_SNDTIMEO expired: the peer stopped reading
        logger.warning("send() timed out – seq=%d ptype=%s", seq, ptype)
        return False
    except (OSError, ValueError):
        # ValueError: write to a closed file object
        logger.warning("send() failed – seq=%d ptype=%s", seq, ptype, exc_info=True)
        return False


def set_send_timeout(sock: socket.socket, seconds: float) -> None:
    """Bound blocking writes on *sock* without touching its reads.

    ``settimeout`` would also make idle reads fail, so this uses SO_SNDTIMEO:
    a write stalled for *seconds* fails with EAGAIN, which :func:`send`
    reports as a failed delivery.
    """
    if sys.platform == "win32":
        value = struct.pack("I", int(seconds * 1000))
    else:
        whole = int(seconds)
        value = struct.pack("ll", whole, int((seconds - whole) * 1_000_000))
    try:
        sock.setsockopt(socket.SOL_SOCKET, socket.SO_SNDTIMEO, value)
    except OSError:
        logger.warning("Could not set a send timeout on %r; writes may block", sock, exc_info=True)


class SocketTransport:
    """A connected client socket with framed, thread-safe writes."""

    def __init__(self, sock: socket.socket, *, send_timeout: float = _cfg.SEND_TIMEOUT) -> None:
        self.sock = sock
        set_send_timeout(sock, send_timeout)
        self.reader = sock.makefile("rb")
        self.writer = sock.makefile("wb")
        self._seq = 0
        self._lock = threading.Lock()
        self._close_guard = threading.Lock()
        self.closed = False

    def send(self, obj: Any, ptype: PacketType = PacketType.GAME) -> bool:
        with self._lock:
            if self.closed:
                return False
            ok = send(self.writer, self._seq, ptype, obj=obj)
            self._seq += 1
            return ok

    def recv(self) -> tuple[PacketType, int, Any]:
        return recv_pkt(self.reader)

    def close(self) -> None:
        with self._close_guard:
            if self.closed:
                return
            self.closed = True
        # Shut down first: it wakes a writer stuck on a full buffer, which holds _lock
        with contextlib.suppress(OSError):
            self.sock.shutdown(socket.SHUT_RDWR)
        with self._lock:
            for f in (self.reader, self.writer):
                with contextlib.suppress(OSError, ValueError):
                    f.close()
            self.sock.close()

    def __repr__(self) -> str:
        return f"<SocketTransport fd={self.sock.fileno()} closed={self.closed}>"
