"""Short-TTL in-memory gate in front of the pipeline."""

import logging
import threading
from datetime import datetime, timedelta, timezone
from typing import Callable, Generic, Optional, TypeVar

logger = logging.getLogger(__name__)

T = TypeVar("T")


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


class CacheGate(Generic[T]):
    """
    Holds one computed value and the time it was computed.

    ``get`` hands back the held value while it is younger than ``ttl``.
    Otherwise one caller recomputes under a lock; callers arriving during
    the recomputation wait and reuse its result. The held value is only
    ever replaced wholesale.

    Attributes:
        ttl: How long a value stays fresh
        clock: Returns the current time; injectable for tests
    """

    def __init__(self, ttl: timedelta = timedelta(minutes=5), clock: Callable[[], datetime] = utc_now):
        self.ttl = ttl
        self.clock = clock
        self._value: Optional[T] = None
        self._computed_at: Optional[datetime] = None
        self._lock = threading.Lock()

    def _is_fresh(self) -> bool:
        if self._computed_at is None:
            return False
        return self.clock() - self._computed_at < self.ttl

    @property
    def computed_at(self) -> Optional[datetime]:
        return self._computed_at

    def peek(self) -> Optional[T]:
        """Return the held value regardless of age."""
        return self._value

    def invalidate(self):
        with self._lock:
            self._value = None
            self._computed_at = None

    def get(self, compute: Callable[[], T]) -> T:
        """
        Return the cached value, recomputing it when stale or empty.

        Exceptions from ``compute`` propagate and leave the previous value
        in place.
        """
        if self._is_fresh():
            logger.debug("Returning cached value")
            return self._value

        with self._lock:
            # Another caller may have refreshed while we waited.
            if self._is_fresh():
                return self._value

            logger.info("Cache stale or empty, recomputing")
            # The TTL window starts when the computation starts.
            started = self.clock()
            value = compute()
            self._value = value
            self._computed_at = started
            return value
