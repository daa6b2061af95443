"""Signed session credentials binding a connection to (session, player).

A credential is ``<claims>.<signature>``, both base64url without padding;
the claims are compact JSON and the signature is HMAC-SHA256 over the encoded
claims.  The server never trusts a player id sent in a message body, only the
one recovered here.
"""

from __future__ import annotations

import base64
import json
import time
from dataclasses import dataclass

from cryptography.exceptions import InvalidSignature
from cryptography.hazmat.primitives import hashes, hmac

from . import config as _cfg
from .errors import CredentialError


@dataclass(frozen=True, slots=True)
class Claims:
    session_id: str
    player_id: str
    issued_at: float


def _b64encode(raw: bytes) -> str:
    return base64.urlsafe_b64encode(raw).rstrip(b"=").decode("ascii")


def _b64decode(text: str) -> bytes:
    return base64.urlsafe_b64decode(text + "=" * (-len(text) % 4))


def _mac(key: bytes, data: bytes) -> hmac.HMAC:
    h = hmac.HMAC(key, hashes.SHA256())
    h.update(data)
    return h


def issue(session_id: str, player_id: str, *, key: bytes = _cfg.SECRET_KEY, now: float | None = None) -> str:
    claims = {"sessionId": session_id, "playerId": player_id, "iat": time.time() if now is None else now}
    body = _b64encode(json.dumps(claims, separators=(",", ":")).encode("utf-8"))
    signature = _b64encode(_mac(key, body.encode("ascii")).finalize())
    return f"{body}.{signature}"


def verify(
    token: str,
    *,
    key: bytes = _cfg.SECRET_KEY,
    max_age: float = _cfg.CREDENTIAL_MAX_AGE,
    now: float | None = None,
) -> Claims:
    """Return the claims carried by *token* or raise :class:`CredentialError`."""
    if not isinstance(token, str) or token.count(".") != 1:
        raise CredentialError("Malformed credential")
    body, signature = token.split(".")
    try:
        _mac(key, body.encode("ascii")).verify(_b64decode(signature))
    except (InvalidSignature, ValueError, UnicodeEncodeError):
        raise CredentialError("Invalid credential signature") from None

    try:
        claims = json.loads(_b64decode(body))
        parsed = Claims(str(claims["sessionId"]), str(claims["playerId"]), float(claims["iat"]))
    except (ValueError, KeyError, TypeError):
        raise CredentialError("Malformed credential claims") from None

    current = time.time() if now is None else now
    if current - parsed.issued_at > max_age:
        raise CredentialError("Credential expired")
    return parsed
