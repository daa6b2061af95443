"""Parse raw client payloads into typed commands.

Only the shape is checked here (types, required keys, ship length range);
whether a cell is on the board is a game rule, left to the state machine.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Union

from . import config as _cfg
from .errors import ValidationError
from .geometry import Orientation, ShipPlacement


class CommandParseError(ValidationError):
    """Raised when a payload cannot be parsed as a valid command."""

    def __init__(self, message: str) -> None:
        super().__init__("malformed", message)


@dataclass(frozen=True)
class PlaceBoatsCommand:
    boats: tuple[ShipPlacement, ...]


@dataclass(frozen=True)
class FireShotCommand:
    x: int
    y: int


@dataclass(frozen=True)
class RequestNewGameCommand:
    pass


@dataclass(frozen=True)
class LeaveSessionCommand:
    pass


Command = Union[PlaceBoatsCommand, FireShotCommand, RequestNewGameCommand, LeaveSessionCommand]


def _int(data: dict[str, Any], key: str, *, lo: int | None = None, hi: int | None = None) -> int:
    value = data.get(key)
    # bool is an int subclass; reject it explicitly
    if not isinstance(value, int) or isinstance(value, bool):
        raise CommandParseError(f"'{key}' must be an integer")
    if lo is not None and hi is not None and not lo <= value <= hi:
        raise CommandParseError(f"'{key}' must be between {lo} and {hi}")
    return value


def _placement(raw: Any) -> ShipPlacement:
    if not isinstance(raw, dict):
        raise CommandParseError("Each boat must be an object")
    boat_id = raw.get("id")
    if not isinstance(boat_id, str) or not boat_id:
        raise CommandParseError("Boat 'id' must be a non-empty string")
    try:
        orientation = Orientation(raw.get("orientation"))
    except ValueError:
        raise CommandParseError("Boat 'orientation' must be 'horizontal' or 'vertical'") from None
    return ShipPlacement(
        id=boat_id,
        start_x=_int(raw, "startX"),
        start_y=_int(raw, "startY"),
        length=_int(raw, "length", lo=_cfg.MIN_SHIP_LENGTH, hi=_cfg.MAX_SHIP_LENGTH),
        orientation=orientation,
    )


def parse_command(obj: Any) -> Command:
    if not isinstance(obj, dict):
        raise CommandParseError("Message must be a JSON object")
    kind = obj.get("type")
    data = obj.get("data", {})
    if data is None:
        data = {}
    if not isinstance(data, dict):
        raise CommandParseError("'data' must be an object")

    if kind == "place_boats":
        boats = data.get("boats")
        if not isinstance(boats, list):
            raise CommandParseError("'boats' must be a list")
        return PlaceBoatsCommand(tuple(_placement(b) for b in boats))
    elif kind == "fire_shot":
        return FireShotCommand(x=_int(data, "x"), y=_int(data, "y"))
    elif kind == "request_new_game":
        return RequestNewGameCommand()
    elif kind == "leave_session":
        return LeaveSessionCommand()
    else:
        raise CommandParseError(f"Unknown message type: {kind!r}")
