"""Error taxonomy shared by the game core and the connection layer.

Every error except :class:`CorruptSessionError` is recovered per message by the
dispatcher and reported back to the client that caused it.
"""

from __future__ import annotations


class BroadsideError(Exception):
    """Base class for all recoverable game errors."""

    kind = "error"

    def to_payload(self) -> dict[str, str]:
        return {"kind": self.kind, "message": str(self)}


class ValidationError(BroadsideError):
    """Malformed input: bad fleet, out-of-range cell, unparseable message."""

    def __init__(self, kind: str, message: str) -> None:
        super().__init__(message)
        self.kind = kind


class IllegalActionError(BroadsideError):
    """Well-formed action that the current session state does not allow."""

    def __init__(self, reason: str, message: str) -> None:
        super().__init__(message)
        self.reason = reason
        self.kind = reason


class NotFoundError(BroadsideError):
    """The session or player an action refers to does not exist."""

    kind = "not_found"


class TransportError(BroadsideError):
    """A push could not be delivered; resolved by replay on reconnect."""

    kind = "transport"


class CredentialError(BroadsideError):
    """A session credential was malformed, tampered with or expired."""

    kind = "unauthorized"


class CorruptSessionError(Exception):
    """The stored session record contradicts itself (a bug, not a user error)."""
