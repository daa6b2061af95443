"""Client-side reconnection: a pure backoff policy and the loop that applies it.

The policy only maps "attempts so far" to "retry?" and "how long to wait",
so it can be tested without sockets.  :class:`ReconnectController` drives an
injected ``connect`` callable with an injected ``sleep``.
"""

from __future__ import annotations

import logging
import time
from dataclasses import dataclass
from typing import Callable, Generic, TypeVar

from . import config as _cfg
from .errors import TransportError

logger = logging.getLogger(__name__)

T = TypeVar("T")


@dataclass(frozen=True)
class ExponentialBackoff:
    """``delay(n) = min(max_delay, base_delay * 2**n)`` for ``n < max_attempts``."""

    max_attempts: int = _cfg.RECONNECT_ATTEMPTS
    base_delay: float = _cfg.RECONNECT_BASE_DELAY
    max_delay: float = _cfg.RECONNECT_MAX_DELAY

    def should_retry(self, attempts: int) -> bool:
        return attempts < self.max_attempts

    def delay(self, attempts: int) -> float:
        return min(self.max_delay, self.base_delay * (2 ** attempts))


class ReconnectController(Generic[T]):
    """
    Retries *connect* until it succeeds or the strategy gives up.
    """

    def __init__(
        self,
        connect: Callable[[], T],
        strategy: ExponentialBackoff | None = None,
        sleep: Callable[[float], None] = time.sleep,
    ) -> None:
        self.connect = connect
        self.strategy = strategy or ExponentialBackoff()
        self.sleep = sleep
        self.attempts = 0

    def reset(self) -> None:
        self.attempts = 0

    def run(self) -> T:
        """Return the first successful connection, raising TransportError when out of attempts."""
        last_error: Exception | None = None
        while self.strategy.should_retry(self.attempts):
            if self.attempts:
                delay = self.strategy.delay(self.attempts - 1)
                logger.info("Reconnect attempt %d in %.1fs", self.attempts + 1, delay)
                self.sleep(delay)
            try:
                conn = self.connect()
            except (OSError, TransportError) as exc:
                last_error = exc
                self.attempts += 1
                logger.warning("Connection attempt %d failed: %s", self.attempts, exc)
                continue
            self.reset()
            return conn
        raise TransportError(f"Failed to reconnect after {self.attempts} attempts: {last_error}")
