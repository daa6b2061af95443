"""Lightweight event model used by the state machine to decouple game logic from transport.

Transitions emit strongly-typed events that the router translates into
per-recipient server messages; other subscribers (e.g. logging) can consume
them without parsing wire payloads.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum, auto
from typing import Any, Dict


class Category(Enum):
    """High-level event categories."""

    LOBBY = auto()  # players joining or leaving
    PLACEMENT = auto()  # fleet submissions
    TURN = auto()  # per-turn lifecycle (start, shot, end)
    SESSION = auto()  # rematch, discard


@dataclass(slots=True)
class Event:
    """Immutable event emitted by a state transition."""

    category: Category
    type: str  # finer-grained identifier, e.g. "shot", "end", "joined"
    payload: Dict[str, Any] = field(default_factory=dict)
