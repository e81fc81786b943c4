"""
Fixings package - index definitions and the concurrent fixing cache.

Provides:
- TermRateIndex: Term index with past fixings and curve projection
- CompoundingRateIndex: Daily compounded overnight index with lookback,
  lockout and missing-fixing handling
- CacheBackend: Storage protocol, with in-memory and null implementations
- FixingSource: External source protocol
- IndexFixingCache: Single-flight read-through cache with retries and timeouts
"""

from .index import TermRateIndex
from .compounding import CompoundingRateIndex, DailyAccrual, FixingConvention, MissingFixing
from .backends import CacheBackend, InMemoryCacheBackend, NullCacheBackend, StripedLocks
from .sources import FixingSource, CallableFixingSource, CurveFixingSource
from .cache import FixingCacheConfig, IndexFixingCache

__all__ = [
    "TermRateIndex",
    "CompoundingRateIndex",
    "DailyAccrual",
    "FixingConvention",
    "MissingFixing",
    "CacheBackend",
    "InMemoryCacheBackend",
    "NullCacheBackend",
    "StripedLocks",
    "FixingSource",
    "CallableFixingSource",
    "CurveFixingSource",
    "FixingCacheConfig",
    "IndexFixingCache",
]
