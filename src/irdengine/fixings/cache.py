"""
Concurrent read-through cache for index fixings.

IndexFixingCache sits between pricing code and a slow external fixing
source. On a miss the first caller for an (index, date) key registers a
Future in the in-flight registry and submits the fetch to a worker pool;
every later caller for the same key waits on that Future instead of
fetching again. When the fetch resolves, the value is stored, the key is
released from the registry and all waiters see the same outcome.

Registry access is guarded by striped per-key locks. Unrelated keys
never wait on each other.
"""

from concurrent.futures import Future, ThreadPoolExecutor
from concurrent.futures import TimeoutError as FutureTimeout
from dataclasses import asdict, dataclass
from datetime import date
from typing import Any, Dict, Iterable, List, Optional
import logging
import time

from ..errors import CacheFetchFailed, TimedOut
from .backends import CacheBackend, FixingKey, InMemoryCacheBackend, StripedLocks
from .sources import FixingSource

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class FixingCacheConfig:
    """
    Retry, timeout and pool settings of an IndexFixingCache.

    Attributes:
        max_attempts: Fetch attempts per miss before giving up
        backoff_base: Delay after the first failed attempt (seconds)
        backoff_cap: Upper bound on any single delay (seconds)
        default_timeout: Waiter timeout when get_fixing gets none (None waits forever)
        max_workers: Size of the fetch thread pool
        lock_stripes: Number of registry lock stripes
    """
    max_attempts: int = 3
    backoff_base: float = 0.05
    backoff_cap: float = 2.0
    default_timeout: Optional[float] = None
    max_workers: int = 4
    lock_stripes: int = 64

    def __post_init__(self):
        if self.max_attempts < 1:
            raise ValueError(f"max_attempts must be at least 1, got {self.max_attempts}")
        if self.backoff_base < 0 or self.backoff_cap < 0:
            raise ValueError("Backoff delays must be non-negative")
        if self.default_timeout is not None and self.default_timeout < 0:
            raise ValueError(f"default_timeout must be non-negative, got {self.default_timeout}")
        if self.max_workers < 1:
            raise ValueError(f"max_workers must be at least 1, got {self.max_workers}")

    def backoff(self, attempt: int) -> float:
        """Delay after failed attempt number ``attempt`` (1-based)."""
        return min(self.backoff_cap, self.backoff_base * (2 ** (attempt - 1)))

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "FixingCacheConfig":
        known = {k: data[k] for k in cls.__dataclass_fields__ if k in data}
        return cls(**known)

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


class IndexFixingCache:
    """
    Fixing lookups with single-flight fetching, retries and timeouts.

    At most one external fetch is outstanding per (index, date) key.
    A fetch that exhausts its retries raises CacheFetchFailed to every
    waiter and caches nothing, so the next lookup starts afresh. A waiter
    whose timeout elapses gets TimedOut; the fetch carries on and still
    populates the backend.

    Args:
        source: External fixing source
        backend: Fixing store (defaults to InMemoryCacheBackend)
        config: Retry/timeout/pool settings
        executor: Pool to run fetches on; owned and shut down by close() if omitted

    Example:
        >>> with IndexFixingCache(CallableFixingSource(feed.lookup)) as cache:
        ...     rate = cache.get_fixing("EUR-EURIBOR-6M", date(2024, 3, 1), timeout=5.0)
    """

    def __init__(
        self,
        source: FixingSource,
        backend: Optional[CacheBackend] = None,
        config: Optional[FixingCacheConfig] = None,
        executor: Optional[ThreadPoolExecutor] = None,
    ):
        self.source = source
        self.backend = backend if backend is not None else InMemoryCacheBackend()
        self.config = config or FixingCacheConfig()
        self._in_flight: Dict[FixingKey, Future] = {}
        self._locks = StripedLocks(self.config.lock_stripes)
        self._owns_executor = executor is None
        self._executor = executor or ThreadPoolExecutor(
            max_workers=self.config.max_workers, thread_name_prefix="fixing-fetch"
        )
        self._closed = False

    def get_fixing(self, index: str, fixing_date: date, timeout: Optional[float] = None) -> float:
        """
        Fixing for (index, date), fetching it on a miss.

        Args:
            index: Index identifier
            fixing_date: Fixing date
            timeout: Seconds to wait for an in-flight fetch (default from config)

        Returns:
            The fixing

        Raises:
            CacheFetchFailed: The fetch failed on every attempt
            TimedOut: The timeout elapsed before the fetch resolved
        """
        value = self.backend.get(index, fixing_date)
        if value is not None:
            logger.debug("Cache hit for %s on %s", index, fixing_date)
            return value
        logger.debug("Cache miss for %s on %s", index, fixing_date)
        return self._wait(self._attach((index, fixing_date)), index, fixing_date, timeout)

    def get_fixings(
        self,
        index: str,
        fixing_dates: Iterable[date],
        timeout: Optional[float] = None,
    ) -> Dict[date, float]:
        """
        Fixings for several dates; misses are fetched concurrently.
        """
        pending: Dict[date, Future] = {}
        result: Dict[date, float] = {}
        for d in fixing_dates:
            value = self.backend.get(index, d)
            if value is not None:
                result[d] = value
            elif d not in pending:
                pending[d] = self._attach((index, d))
        deadline = None if timeout is None else time.monotonic() + timeout
        for d, future in pending.items():
            remaining = None if deadline is None else max(0.0, deadline - time.monotonic())
            result[d] = self._wait(future, index, d, remaining)
        return result

    def _wait(self, future: Future, index: str, fixing_date: date, timeout: Optional[float]) -> float:
        if timeout is None:
            timeout = self.config.default_timeout
        try:
            return future.result(timeout=timeout)
        except FutureTimeout:
            if not future.done():
                logger.warning("Gave up waiting %.3fs for %s fixing on %s",
                               timeout, index, fixing_date)
                raise TimedOut(index, fixing_date, timeout) from None
            # Completed between the timeout and the check
            return future.result()

    def _attach(self, key: FixingKey) -> Future:
        """Return the in-flight Future for key, starting a fetch if there is none."""
        with self._locks.for_key(key):
            future = self._in_flight.get(key)
            if future is not None:
                logger.debug("Joining in-flight fetch for %s on %s", *key)
                return future
            # A fetch may have completed between the miss and taking the lock
            value = self.backend.get(*key)
            if value is not None:
                future = Future()
                future.set_result(value)
                return future
            if self._closed:
                raise RuntimeError("Fixing cache is closed")
            future = Future()
            self._in_flight[key] = future

        logger.info("Fetching %s fixing for %s", *key)
        try:
            self._executor.submit(self._run_fetch, key, future)
        except RuntimeError as exc:
            self._release(key)
            future.set_exception(exc)
        return future

    def _release(self, key: FixingKey) -> None:
        with self._locks.for_key(key):
            self._in_flight.pop(key, None)

    def _run_fetch(self, key: FixingKey, future: Future) -> None:
        index, fixing_date = key
        try:
            value = self._fetch_with_retry(index, fixing_date)
            self.backend.put(index, fixing_date, value)
        except Exception as exc:
            self._release(key)
            future.set_exception(exc)
        else:
            self._release(key)
            future.set_result(value)

    def _fetch_with_retry(self, index: str, fixing_date: date) -> float:
        attempts = self.config.max_attempts
        last_error: Optional[Exception] = None
        for attempt in range(1, attempts + 1):
            try:
                return float(self.source.fetch(index, fixing_date))
            except Exception as exc:
                last_error = exc
                if attempt < attempts:
                    delay = self.config.backoff(attempt)
                    logger.warning(
                        "Fetch of %s fixing for %s failed (attempt %d/%d): %s; retrying in %.3fs",
                        index, fixing_date, attempt, attempts, exc, delay,
                    )
                    time.sleep(delay)
        logger.error("Fetch of %s fixing for %s failed after %d attempts: %s",
                     index, fixing_date, attempts, last_error)
        raise CacheFetchFailed(index, fixing_date, attempts, last_error) from last_error

    def invalidate(self, index: str) -> None:
        """
        Drop stored fixings of an index.

        Fetches already in flight are not cancelled and store their
        result when they complete.
        """
        self.backend.invalidate(index)
        logger.info("Invalidated cached fixings for %s", index)

    def in_flight(self) -> List[FixingKey]:
        """Keys with an outstanding fetch."""
        return list(self._in_flight)

    def close(self, wait: bool = True) -> None:
        """Stop accepting fetches and shut down an owned worker pool."""
        self._closed = True
        if self._owns_executor:
            self._executor.shutdown(wait=wait)

    def __enter__(self) -> "IndexFixingCache":
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.close()


__all__ = [
    "FixingCacheConfig",
    "IndexFixingCache",
]
