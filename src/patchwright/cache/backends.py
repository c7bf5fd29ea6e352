"""
Cache backends.

SessionCache talks to a CacheBackend: a string key/value store with
per-key expiry. InMemoryCacheBackend is the in-process implementation.
"""

import fnmatch
import threading
import time
from abc import ABC, abstractmethod
from typing import Callable, Dict, List, Optional, Tuple

from patchwright.exceptions import CacheUnavailableError


class CacheBackend(ABC):
    """Key/value store with TTL. Methods raise CacheUnavailableError when down."""

    @abstractmethod
    def get(self, key: str) -> Optional[str]:
        ...

    @abstractmethod
    def set(self, key: str, value: str, ttl: Optional[float] = None) -> None:
        ...

    @abstractmethod
    def exists(self, key: str) -> bool:
        ...

    @abstractmethod
    def expire(self, key: str, ttl: float) -> bool:
        """Reset a key's expiry. Returns False if the key is absent."""

    @abstractmethod
    def delete(self, *keys: str) -> int:
        ...

    @abstractmethod
    def keys(self, pattern: str = "*") -> List[str]:
        """Live keys matching a glob pattern."""

    @abstractmethod
    def ping(self) -> bool:
        ...


class InMemoryCacheBackend(CacheBackend):
    """
    Thread-safe in-process cache.

    The clock is injectable so expiry can be tested without sleeping, and
    `connected` can be switched off to simulate an outage.
    """

    def __init__(self, clock: Callable[[], float] = time.monotonic):
        self._data: Dict[str, Tuple[str, Optional[float]]] = {}
        self._lock = threading.Lock()
        self._clock = clock
        self.connected = True

    def _check(self):
        if not self.connected:
            raise CacheUnavailableError("in-memory cache is disconnected")

    def _live(self, key: str) -> Optional[Tuple[str, Optional[float]]]:
        entry = self._data.get(key)
        if entry is None:
            return None
        expires_at = entry[1]
        if expires_at is not None and self._clock() >= expires_at:
            del self._data[key]
            return None
        return entry

    def get(self, key: str) -> Optional[str]:
        with self._lock:
            self._check()
            entry = self._live(key)
            return entry[0] if entry else None

    def set(self, key: str, value: str, ttl: Optional[float] = None) -> None:
        with self._lock:
            self._check()
            expires_at = self._clock() + ttl if ttl is not None else None
            self._data[key] = (value, expires_at)

    def exists(self, key: str) -> bool:
        with self._lock:
            self._check()
            return self._live(key) is not None

    def expire(self, key: str, ttl: float) -> bool:
        with self._lock:
            self._check()
            entry = self._live(key)
            if entry is None:
                return False
            self._data[key] = (entry[0], self._clock() + ttl)
            return True

    def delete(self, *keys: str) -> int:
        with self._lock:
            self._check()
            removed = 0
            for key in keys:
                if self._data.pop(key, None) is not None:
                    removed += 1
            return removed

    def keys(self, pattern: str = "*") -> List[str]:
        with self._lock:
            self._check()
            return [key for key in list(self._data) if self._live(key) and fnmatch.fnmatchcase(key, pattern)]

    def ping(self) -> bool:
        return self.connected

    def cleanup_expired(self) -> int:
        """Drop expired entries. Returns the number removed."""
        with self._lock:
            before = len(self._data)
            for key in list(self._data):
                self._live(key)
            return before - len(self._data)
