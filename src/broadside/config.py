"""Central configuration for runtime-tunable parameters.

All constants can be overridden via environment variables so that the
production server runs with sensible defaults, while the automated test-suite
can shrink timeouts or pin the credential key if necessary.
"""

from __future__ import annotations

import os
import secrets


def _parse_fleet(spec: str) -> dict[int, int]:
    """Turn ``"5:1,4:1,3:2,2:1"`` into ``{5: 1, 4: 1, 3: 2, 2: 1}``."""
    fleet: dict[int, int] = {}
    for part in spec.split(","):
        part = part.strip()
        if not part:
            continue
        length, _, count = part.partition(":")
        fleet[int(length)] = fleet.get(int(length), 0) + int(count or "1")
    return fleet


# ===========================================================================
# Network Defaults
# ===========================================================================
# BROADSIDE_HOST: Default host address for the server to bind to and clients to connect to.
#   Defaults to "127.0.0.1".
#   Example: export BROADSIDE_HOST=0.0.0.0
DEFAULT_HOST: str = os.getenv("BROADSIDE_HOST", "127.0.0.1")

# BROADSIDE_PORT: Default port for the server to listen on and clients to connect to.
#   Defaults to 61440.
#   Example: export BROADSIDE_PORT=5001
DEFAULT_PORT: int = int(os.getenv("BROADSIDE_PORT", "61440"))

# BROADSIDE_SEND_TIMEOUT: Seconds a single socket write may stall before the push counts as failed.
#   Defaults to 5. The player catches up through the replay on reconnect.
#   Example: export BROADSIDE_SEND_TIMEOUT=1.5
SEND_TIMEOUT: float = float(os.getenv("BROADSIDE_SEND_TIMEOUT", "5.0"))


# ===========================================================================
# Game Constants
# ===========================================================================
# BROADSIDE_GRID_SIZE: Width and height of the square board.
#   Defaults to 9 (for a 9x9 grid).
#   Example: export BROADSIDE_GRID_SIZE=10
GRID_SIZE: int = int(os.getenv("BROADSIDE_GRID_SIZE", "9"))

# BROADSIDE_FLEET: Required fleet as comma-separated "<length>:<count>" pairs.
#   Defaults to one carrier (5), one battleship (4), two cruisers (3), one destroyer (2).
#   Example: export BROADSIDE_FLEET="5:1,2:2"
FLEET: dict[int, int] = _parse_fleet(os.getenv("BROADSIDE_FLEET", "5:1,4:1,3:2,2:1"))

# Shortest and longest ships accepted on the wire, whatever the manifest says.
MIN_SHIP_LENGTH = 2
MAX_SHIP_LENGTH = 5


# ===========================================================================
# Credentials
# ===========================================================================
# BROADSIDE_SECRET: HMAC key (hex) used to sign session credentials.
#   Defaults to a fresh random key per process, which invalidates credentials
#   across restarts (sessions do not survive a restart either).
#   Example: export BROADSIDE_SECRET=00112233445566778899aabbccddeeff
SECRET_KEY: bytes = bytes.fromhex(os.getenv("BROADSIDE_SECRET", "")) or secrets.token_bytes(32)

# BROADSIDE_CREDENTIAL_MAX_AGE: Seconds a credential stays valid.
#   Defaults to one day.
CREDENTIAL_MAX_AGE: float = float(os.getenv("BROADSIDE_CREDENTIAL_MAX_AGE", str(24 * 60 * 60)))


# ===========================================================================
# Client Reconnect Policy
# ===========================================================================
# BROADSIDE_RECONNECT_ATTEMPTS: Attempts before the client gives up.
RECONNECT_ATTEMPTS: int = int(os.getenv("BROADSIDE_RECONNECT_ATTEMPTS", "5"))

# BROADSIDE_RECONNECT_BASE_DELAY: Delay (seconds) before the first retry; doubles each attempt.
RECONNECT_BASE_DELAY: float = float(os.getenv("BROADSIDE_RECONNECT_BASE_DELAY", "1.0"))

# BROADSIDE_RECONNECT_MAX_DELAY: Upper bound (seconds) for a single backoff delay.
RECONNECT_MAX_DELAY: float = float(os.getenv("BROADSIDE_RECONNECT_MAX_DELAY", "30.0"))


# ===========================================================================
# Debugging and Logging
# ===========================================================================
# BROADSIDE_DEBUG: If "1", enables detailed debug logging across modules.
#   Defaults to "0" (disabled).
DEBUG: bool = os.getenv("BROADSIDE_DEBUG", "0") == "1"

LOG_FORMAT = "%(asctime)s [%(levelname)s] %(name)s: %(message)s"
