"""
Interest rate curve representation.

The InterestRateCurve class provides:
- Discount factor P(0,t)
- Zero rate z(t)
- Forward rate f(t1, t2) under a day count and compounding convention

A curve belongs to one valuation snapshot: it is built once from its
nodes, never mutated, and rejects use for any other valuation date.
"""

from dataclasses import dataclass
from datetime import date
from typing import Iterable, List, Mapping, Sequence, Union
import logging

import numpy as np
import pandas as pd

from ..conventions import CompoundingConvention, DayCount, year_fraction
from ..dates import Tenor, add_tenor
from ..errors import InvalidDateRange, StaleCurve
from .interpolation import InterpolationPolicy, create_interpolator

logger = logging.getLogger(__name__)

PillarKey = Union[str, Tenor, date]


@dataclass(frozen=True)
class CurveNode:
    """A single pillar of the curve."""
    date: date
    time: float  # Year fraction from snapshot date
    discount_factor: float
    zero_rate: float  # Continuously compounded

    @classmethod
    def from_discount_factor(cls, d: date, time: float, df: float) -> "CurveNode":
        if df <= 0:
            raise ValueError(f"Invalid discount factor: {df}")
        zr = -np.log(df) / time if time > 0 else 0.0
        return cls(date=d, time=time, discount_factor=float(df), zero_rate=float(zr))

    @classmethod
    def from_zero_rate(cls, d: date, time: float, zr: float) -> "CurveNode":
        df = np.exp(-zr * time)
        return cls(date=d, time=time, discount_factor=float(df), zero_rate=float(zr))


def _pillar_date(snapshot_date: date, key: PillarKey) -> date:
    if isinstance(key, date):
        return key
    return add_tenor(snapshot_date, key)


class InterestRateCurve:
    """
    Discount curve for a single valuation snapshot.

    Attributes:
        snapshot_date: Valuation date the curve was built for (time 0)
        policy: Interpolation policy
        day_count: Day count for converting dates to curve time
        currency: Currency code
        name: Curve identifier (e.g. "USD-SOFR")

    Conventions:
        - Zero rates are continuously compounded
        - Times are year fractions from the snapshot date
        - Discount factor at t=0 is 1.0
    """

    def __init__(
        self,
        snapshot_date: date,
        nodes: Sequence[CurveNode],
        policy: InterpolationPolicy = InterpolationPolicy.LOG_LINEAR_DISCOUNT,
        day_count: DayCount = DayCount.ACT_365F,
        currency: str = "USD",
        name: str = ""
    ):
        pillars = sorted((n for n in nodes if n.time > 0), key=lambda n: n.time)
        if not pillars:
            raise ValueError("Curve needs at least one node after the snapshot date")
        times = [n.time for n in pillars]
        if len(set(times)) != len(times):
            raise ValueError("Curve nodes must have distinct dates")

        self._snapshot_date = snapshot_date
        self._nodes = tuple(pillars)
        self._policy = policy
        self._day_count = day_count
        self._currency = currency
        self._name = name or f"{currency}-CURVE"

        self._interpolator = create_interpolator(policy)
        if policy.on_discount_factors:
            self._interpolator.fit(
                np.array([0.0] + times),
                np.array([1.0] + [n.discount_factor for n in pillars]),
            )
        elif len(pillars) == 1:
            # Single pillar: flat zero curve
            self._interpolator.fit(
                np.array([times[0], times[0] + 1.0]),
                np.array([pillars[0].zero_rate] * 2),
            )
        else:
            self._interpolator.fit(np.array(times), np.array([n.zero_rate for n in pillars]))
        logger.debug("Built curve %s on %s with %d nodes (%s)",
                     self._name, snapshot_date, len(pillars), policy.value)

    @classmethod
    def from_discount_factors(
        cls,
        snapshot_date: date,
        pillars: Mapping[PillarKey, float],
        policy: InterpolationPolicy = InterpolationPolicy.LOG_LINEAR_DISCOUNT,
        day_count: DayCount = DayCount.ACT_365F,
        currency: str = "USD",
        name: str = ""
    ) -> "InterestRateCurve":
        """Build from {tenor or date: discount factor}."""
        nodes = []
        for key, df in pillars.items():
            d = _pillar_date(snapshot_date, key)
            t = year_fraction(snapshot_date, d, day_count)
            nodes.append(CurveNode.from_discount_factor(d, t, df))
        return cls(snapshot_date, nodes, policy, day_count, currency, name)

    @classmethod
    def from_zero_rates(
        cls,
        snapshot_date: date,
        pillars: Mapping[PillarKey, float],
        policy: InterpolationPolicy = InterpolationPolicy.LINEAR_ZERO,
        day_count: DayCount = DayCount.ACT_365F,
        currency: str = "USD",
        name: str = ""
    ) -> "InterestRateCurve":
        """Build from {tenor or date: continuously compounded zero rate}."""
        nodes = []
        for key, zr in pillars.items():
            d = _pillar_date(snapshot_date, key)
            t = year_fraction(snapshot_date, d, day_count)
            nodes.append(CurveNode.from_zero_rate(d, t, zr))
        return cls(snapshot_date, nodes, policy, day_count, currency, name)

    @classmethod
    def flat(
        cls,
        snapshot_date: date,
        rate: float,
        tenors: Iterable[str] = ("3M", "6M", "1Y", "2Y", "5Y", "10Y", "20Y", "30Y"),
        policy: InterpolationPolicy = InterpolationPolicy.LOG_LINEAR_DISCOUNT,
        day_count: DayCount = DayCount.ACT_365F,
        currency: str = "USD",
        name: str = ""
    ) -> "InterestRateCurve":
        """Flat continuously compounded curve."""
        return cls.from_zero_rates(
            snapshot_date, {t: rate for t in tenors}, policy, day_count, currency, name
        )

    @property
    def snapshot_date(self) -> date:
        return self._snapshot_date

    @property
    def policy(self) -> InterpolationPolicy:
        return self._policy

    @property
    def day_count(self) -> DayCount:
        return self._day_count

    @property
    def currency(self) -> str:
        return self._currency

    @property
    def name(self) -> str:
        return self._name

    @property
    def nodes(self) -> List[CurveNode]:
        return list(self._nodes)

    def check_snapshot(self, valuation_date: date) -> None:
        """
        Raise StaleCurve unless the curve belongs to valuation_date.
        """
        if valuation_date != self._snapshot_date:
            raise StaleCurve(self._snapshot_date, valuation_date)

    def time(self, d: date) -> float:
        """Curve time of a date; dates before the snapshot are rejected."""
        if d < self._snapshot_date:
            raise InvalidDateRange(
                f"{d.isoformat()} precedes curve snapshot {self._snapshot_date.isoformat()}"
            )
        return year_fraction(self._snapshot_date, d, self._day_count)

    def _to_time(self, t: Union[float, date]) -> float:
        return self.time(t) if isinstance(t, date) else float(t)

    def discount_factor(self, t: Union[float, date]) -> float:
        """
        Get discount factor P(0,t).

        Args:
            t: Year fraction or date

        Returns:
            Discount factor
        """
        t = self._to_time(t)
        if t <= 0:
            return 1.0
        if self._policy.on_discount_factors:
            return self._interpolator.interpolate(t)
        return float(np.exp(-self._interpolator.interpolate(t) * t))

    def zero_rate(
        self,
        t: Union[float, date],
        compounding: CompoundingConvention = CompoundingConvention.CONTINUOUS
    ) -> float:
        """
        Get zero rate z(t).

        Args:
            t: Year fraction or date
            compounding: Compounding convention for output

        Returns:
            Zero rate (default continuously compounded)
        """
        t = self._to_time(t)
        if t <= 0:
            # Short end: rate of the first pillar
            t = self._nodes[0].time
        return compounding.implied_rate(1.0 / self.discount_factor(t), t)

    def forward_rate(
        self,
        start: date,
        end: date,
        day_count: DayCount = DayCount.ACT_360,
        compounding: CompoundingConvention = CompoundingConvention.SIMPLE
    ) -> float:
        """
        Get forward rate between two dates.

        Args:
            start: Accrual start
            end: Accrual end
            day_count: Accrual day count
            compounding: Compounding convention of the quoted rate

        Returns:
            Forward rate

        Raises:
            InvalidDateRange: If end <= start
        """
        if end <= start:
            raise InvalidDateRange(
                f"Forward end {end.isoformat()} must be after start {start.isoformat()}"
            )
        tau = year_fraction(start, end, day_count)
        growth = self.discount_factor(start) / self.discount_factor(end)
        return compounding.implied_rate(growth, tau)

    def parallel_bump(self, bp: float) -> "InterestRateCurve":
        """
        New curve with every zero rate shifted by bp basis points.
        """
        bump = bp / 10000.0
        nodes = [CurveNode.from_zero_rate(n.date, n.time, n.zero_rate + bump) for n in self._nodes]
        return InterestRateCurve(
            self._snapshot_date, nodes, self._policy, self._day_count,
            self._currency, self._name,
        )

    def to_frame(self) -> pd.DataFrame:
        """Nodes as a DataFrame."""
        return pd.DataFrame(
            [(n.date, n.time, n.discount_factor, n.zero_rate) for n in self._nodes],
            columns=["date", "time", "discount_factor", "zero_rate"],
        )

    def __repr__(self) -> str:
        return (f"InterestRateCurve(name={self._name}, snapshot={self._snapshot_date}, "
                f"nodes={len(self._nodes)}, policy={self._policy.value})")


__all__ = [
    "CurveNode",
    "InterestRateCurve",
]
