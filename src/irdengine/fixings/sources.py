"""
External sources of index fixings.

The fixing cache calls ``fetch(index, fixing_date)`` on a miss. A source
may be slow or fail; the cache handles coalescing and retries, so a
source only has to return a rate or raise.
"""

from datetime import date
from typing import Callable, Dict, Mapping, Optional, Protocol, Union, runtime_checkable

from .compounding import CompoundingRateIndex
from .index import TermRateIndex

RateIndex = Union[TermRateIndex, CompoundingRateIndex]


@runtime_checkable
class FixingSource(Protocol):
    """Capability to fetch one fixing."""

    def fetch(self, index: str, fixing_date: date) -> float:
        ...


class CallableFixingSource:
    """Adapt a plain ``fn(index, fixing_date) -> float`` to FixingSource."""

    def __init__(self, fn: Callable[[str, date], float]):
        self._fn = fn

    def fetch(self, index: str, fixing_date: date) -> float:
        return float(self._fn(index, fixing_date))


class CurveFixingSource:
    """
    Fixings from registered rate indices and a forward curve.

    Past dates resolve against each index's published fixings; later
    dates are projected off the curve.

    Args:
        curve: Forward curve exposing discount_factor(date) and snapshot_date
        indices: Term or overnight compounding indices by name
        horizon: Pricing horizon (defaults to the curve snapshot date)
        estimate_horizon: Project the fixing on the horizon date itself
    """

    def __init__(
        self,
        curve,
        indices: Mapping[str, RateIndex],
        horizon: Optional[date] = None,
        estimate_horizon: bool = False,
    ):
        self.curve = curve
        self.indices: Dict[str, RateIndex] = dict(indices)
        self.horizon = horizon or curve.snapshot_date
        self.estimate_horizon = estimate_horizon

    def fetch(self, index: str, fixing_date: date) -> float:
        if index not in self.indices:
            raise KeyError(f"Unknown index: {index}")
        rate = self.indices[index].fixing_rate(
            fixing_date, self.curve, self.horizon, self.estimate_horizon
        )
        if rate is None:
            raise LookupError(f"No published {index} fixing for {fixing_date.isoformat()}")
        return rate


__all__ = [
    "FixingSource",
    "CallableFixingSource",
    "CurveFixingSource",
]
