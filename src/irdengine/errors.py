"""
Exception hierarchy for the rates engine.

Computational errors (bad schedule parameters, unknown conventions,
pricing precondition violations) subclass ValueError so callers that
already guard with ``except ValueError`` keep working. Cache errors are
raised from the fixing cache after its own retry policy is exhausted.
"""

from datetime import date
from typing import Any, Optional


class RatesEngineError(Exception):
    """Base class for every error raised by irdengine."""


class InvalidScheduleParameters(RatesEngineError, ValueError):
    """Schedule or option-date inputs that cannot produce a schedule."""


class InvalidDateRange(RatesEngineError, ValueError):
    """End date before start date in a day count or forward calculation."""


class InvalidCalendar(RatesEngineError, ValueError):
    """Calendar definition that is internally inconsistent or unknown."""


class UnsupportedConvention(RatesEngineError, ValueError):
    """Convention name or member the engine does not implement."""


class NegativeVolatility(RatesEngineError, ValueError):
    """Implied volatility looked up for pricing is not strictly positive."""

    def __init__(self, vol: float, message: Optional[str] = None):
        self.vol = vol
        super().__init__(message or f"Volatility must be positive, got {vol}")


class NonPositiveAnnuity(RatesEngineError, ValueError):
    """Fixed leg annuity is zero or negative."""

    def __init__(self, annuity: float):
        self.annuity = annuity
        super().__init__(f"Annuity must be positive, got {annuity}")


class StaleCurve(RatesEngineError):
    """Curve snapshot does not belong to the requested valuation date."""

    def __init__(self, snapshot_date: date, valuation_date: date):
        self.snapshot_date = snapshot_date
        self.valuation_date = valuation_date
        super().__init__(
            f"Curve snapshot {snapshot_date.isoformat()} does not match "
            f"valuation date {valuation_date.isoformat()}"
        )


class CacheFetchFailed(RatesEngineError):
    """External fixing fetch failed after all retry attempts."""

    def __init__(self, index: str, fixing_date: date, attempts: int, cause: Any = None):
        self.index = index
        self.fixing_date = fixing_date
        self.attempts = attempts
        self.cause = cause
        super().__init__(
            f"Fetch of {index} fixing for {fixing_date.isoformat()} failed "
            f"after {attempts} attempt(s): {cause!r}"
        )


class TimedOut(RatesEngineError, TimeoutError):
    """A waiter gave up on an in-flight fetch before it resolved."""

    def __init__(self, index: str, fixing_date: date, timeout: float):
        self.index = index
        self.fixing_date = fixing_date
        self.timeout = timeout
        super().__init__(
            f"Timed out after {timeout}s waiting for {index} fixing "
            f"on {fixing_date.isoformat()}"
        )


__all__ = [
    "RatesEngineError",
    "InvalidScheduleParameters",
    "InvalidDateRange",
    "InvalidCalendar",
    "UnsupportedConvention",
    "NegativeVolatility",
    "NonPositiveAnnuity",
    "StaleCurve",
    "CacheFetchFailed",
    "TimedOut",
]
