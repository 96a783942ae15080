from __future__ import annotations

import time
from threading import Lock
from typing import Callable, Generic, Optional, TypeVar

T = TypeVar("T")


class TimedCache(Generic[T]):
    """In-memory keeper for one fetched value and the time it was stored."""

    def __init__(self, ttl_seconds: float, clock: Callable[[], float] = time.monotonic) -> None:
        self.ttl_seconds = ttl_seconds
        self._clock = clock
        self._value: Optional[T] = None
        self._stored_at: Optional[float] = None
        self._lock = Lock()

    def get_fresh(self) -> Optional[T]:
        """Return the value if it was stored less than ``ttl_seconds`` ago."""
        with self._lock:
            if self._stored_at is None:
                return None
            if self._clock() - self._stored_at >= self.ttl_seconds:
                return None
            return self._value

    def get_any(self) -> Optional[T]:
        """Return the cached value regardless of age."""
        with self._lock:
            return self._value if self._stored_at is not None else None

    def set(self, value: T) -> None:
        with self._lock:
            self._value = value
            self._stored_at = self._clock()

    def clear(self) -> None:
        with self._lock:
            self._value = None
            self._stored_at = None

    @property
    def is_empty(self) -> bool:
        with self._lock:
            return self._stored_at is None
