"""
Single-value read cache with a freshness window.

One instance per remote read endpoint, created at start-up and handed to the
client that owns it.  The clock is injectable so tests can move time.
"""
from __future__ import annotations

import time
from typing import Callable, Generic, Optional, TypeVar

T = TypeVar("T")


class TimedCache(Generic[T]):
    """
    Holds the last successful read and when it happened.

    Parameters
    ----------
    ttl   : freshness window in seconds
    clock : monotonic time source (seconds)
    """

    def __init__(self, ttl: float, clock: Callable[[], float] = time.monotonic) -> None:
        self._ttl   = ttl
        self._clock = clock
        # (value, stored_at), replaced as one unit
        self._entry: Optional[tuple[T, float]] = None

    @property
    def ttl(self) -> float:
        return self._ttl

    def fresh(self) -> Optional[T]:
        """Return the cached value if it is younger than the window, else None."""
        if self._entry is None:
            return None
        value, stored_at = self._entry
        if self._clock() - stored_at < self._ttl:
            return value
        return None

    def last(self) -> Optional[T]:
        """Return the cached value regardless of age."""
        return self._entry[0] if self._entry is not None else None

    def store(self, value: T) -> None:
        self._entry = (value, self._clock())

    def clear(self) -> None:
        self._entry = None

    def __bool__(self) -> bool:
        return self._entry is not None
