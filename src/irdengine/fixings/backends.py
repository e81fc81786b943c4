"""
Storage backends for index fixings.

A backend stores fixings keyed by (index, date). Any object with
``get``/``put``/``invalidate`` satisfies the CacheBackend protocol, so a
shared or remote store can be injected into IndexFixingCache without
subclassing anything here.
"""

from datetime import date
from threading import Lock
from typing import Dict, Hashable, List, Optional, Protocol, Tuple, runtime_checkable
import logging

logger = logging.getLogger(__name__)

FixingKey = Tuple[str, date]


@runtime_checkable
class CacheBackend(Protocol):
    """Storage capability for (index, date) -> fixing."""

    def get(self, index: str, fixing_date: date) -> Optional[float]:
        ...

    def put(self, index: str, fixing_date: date, value: float) -> None:
        ...

    def invalidate(self, index: str) -> None:
        ...


class StripedLocks:
    """
    Fixed pool of locks selected by key hash.

    Two keys share a lock only when their hashes collide modulo the
    stripe count; no operation ever holds more than one stripe.
    """

    def __init__(self, stripes: int = 64):
        if stripes < 1:
            raise ValueError(f"Need at least one lock stripe, got {stripes}")
        self._locks = [Lock() for _ in range(stripes)]

    def __len__(self) -> int:
        return len(self._locks)

    def for_key(self, key: Hashable) -> Lock:
        return self._locks[hash(key) % len(self._locks)]


class InMemoryCacheBackend:
    """
    Process-local fixing store.

    Reads are plain dict lookups and never take a lock. Writes and
    removals for a key are serialized on that key's lock stripe only.
    """

    def __init__(self, stripes: int = 64):
        self._data: Dict[FixingKey, float] = {}
        self._locks = StripedLocks(stripes)

    def get(self, index: str, fixing_date: date) -> Optional[float]:
        return self._data.get((index, fixing_date))

    def put(self, index: str, fixing_date: date, value: float) -> None:
        key = (index, fixing_date)
        with self._locks.for_key(key):
            self._data[key] = float(value)

    def invalidate(self, index: str) -> None:
        """Drop every fixing stored for an index."""
        removed = 0
        for key in [k for k in list(self._data) if k[0] == index]:
            with self._locks.for_key(key):
                if self._data.pop(key, None) is not None:
                    removed += 1
        logger.debug("Removed %d cached fixings for %s", removed, index)

    def discard(self, index: str, fixing_date: date) -> None:
        key = (index, fixing_date)
        with self._locks.for_key(key):
            self._data.pop(key, None)

    def keys(self) -> List[FixingKey]:
        return list(self._data)

    def __contains__(self, key: FixingKey) -> bool:
        return key in self._data

    def __len__(self) -> int:
        return len(self._data)


class NullCacheBackend:
    """Backend that stores nothing; every lookup goes to the source."""

    def get(self, index: str, fixing_date: date) -> Optional[float]:
        return None

    def put(self, index: str, fixing_date: date, value: float) -> None:
        pass

    def invalidate(self, index: str) -> None:
        pass


__all__ = [
    "CacheBackend",
    "FixingKey",
    "InMemoryCacheBackend",
    "NullCacheBackend",
    "StripedLocks",
]
