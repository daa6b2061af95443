"""Low-level packet framing utilities.

Frame layout (16-byte header + JSON payload):
0-1  : 0xB5DE       magic bytes
2    : version (1)
3    : PacketType (enum)
4-7  : seq u32 (big-endian)
8-11 : len u32 (payload length)
12-15: CRC-32 over header[0:12]+payload
16-  : UTF-8 JSON payload
"""

from __future__ import annotations

import enum
import json
import struct
import zlib
from io import BufferedReader, BufferedWriter
from typing import Any, Final, Tuple

MAGIC: Final[int] = 0xB5DE
VERSION: Final[int] = 1
MAX_PAYLOAD: Final[int] = 1024 * 1024

_HEADER = struct.Struct(">HBBII")
_CRC = struct.Struct(">I")
HEADER_LEN: Final[int] = _HEADER.size + _CRC.size


class PacketType(int, enum.Enum):
    """Enumerate wire-protocol packet categories."""

    GAME = 0  # client actions and server pushes
    ERROR = 1  # error acknowledgment to the actor only
    HELLO = 2  # connection handshake (credential / create / join)


class FrameError(Exception):
    """Base for framing problems."""


class CrcError(FrameError):
    """Raised when a CRC-32 check fails while decoding a frame."""


class IncompleteError(FrameError):
    """Raised when the stream closes before a full frame could be read."""


def _crc(header: bytes, payload: bytes) -> int:
    return zlib.crc32(header + payload) & 0xFFFFFFFF


def pack(ptype: PacketType, seq: int, obj: Any) -> bytes:
    """Serialize *obj* as JSON into a single frame."""
    payload = json.dumps(obj, separators=(",", ":")).encode("utf-8")
    if len(payload) > MAX_PAYLOAD:
        raise FrameError(f"Payload too large: {len(payload)} bytes")
    header = _HEADER.pack(MAGIC, VERSION, int(ptype), seq & 0xFFFFFFFF, len(payload))
    return header + _CRC.pack(_crc(header, payload)) + payload


def _read_exact(r: BufferedReader, n: int) -> bytes:
    data = r.read(n)
    if data is None or len(data) < n:
        raise IncompleteError(f"Expected {n} bytes, got {0 if data is None else len(data)}")
    return data


def unpack(r: BufferedReader) -> Tuple[PacketType, int, Any]:
    """Read one frame from *r* and return ``(ptype, seq, obj)``."""
    head = _read_exact(r, HEADER_LEN)
    header = head[: _HEADER.size]
    magic, version, ptype_val, seq, length = _HEADER.unpack(header)
    if magic != MAGIC or version != VERSION:
        raise FrameError("magic/version mismatch")
    if length > MAX_PAYLOAD:
        raise FrameError(f"Payload too large: {length} bytes")
    (crc_expected,) = _CRC.unpack(head[_HEADER.size :])
    payload = _read_exact(r, length)
    if _crc(header, payload) != crc_expected:
        raise CrcError(f"CRC mismatch on seq {seq}")
    try:
        ptype = PacketType(ptype_val)
    except ValueError as exc:
        raise FrameError(f"Unknown packet type {ptype_val}") from exc
    try:
        obj = json.loads(payload.decode("utf-8"))
    except (UnicodeDecodeError, json.JSONDecodeError) as exc:
        raise FrameError("Payload is not valid JSON") from exc
    return ptype, seq, obj


def send_pkt(w: BufferedWriter, ptype: PacketType, seq: int, obj: Any) -> None:
    """Write a single framed packet to buffered writer *w* and flush."""
    w.write(pack(ptype, seq, obj))
    w.flush()


def recv_pkt(r: BufferedReader) -> Tuple[PacketType, int, Any]:
    """Blocking helper that returns the next ``(ptype, seq, obj)`` tuple from *r*."""
    return unpack(r)


__all__ = [
    "PacketType",
    "FrameError",
    "CrcError",
    "IncompleteError",
    "HEADER_LEN",
    "pack",
    "unpack",
    "send_pkt",
    "recv_pkt",
]
