"""
Daily compounded overnight rate index.

An overnight index (SOFR, SONIA, ESTR) publishes one rate per business
day. A floating coupon on it compounds the daily rates over the accrual
period:

    factor = prod(1 + r_i * tau_i)
    rate = implied_rate(factor, sum(tau_i))

where ``tau_i`` runs from accrual business day ``d_i`` to the next one
(or the period end). Observation conventions shift which published rate
``r_i`` is used for ``d_i``:

- lookback_days: fixing date = d_i shifted back n fixing-calendar days
- lockout_days: the last n accrual days reuse the rate of the day before
- ARREAR: fixing date is d_{i+1} instead of d_i

With no lookback, no lockout and ADVANCE fixing the product telescopes
to DF(start) / DF(end), which is used for fully projected periods.
"""

from dataclasses import dataclass
from datetime import date, timedelta
from enum import Enum
from typing import Dict, List, Mapping, Optional
import bisect
import logging

from ..calendars import HolidayCalendar
from ..conventions import CompoundingConvention, DayCount, year_fraction
from ..dates import Tenor
from ..errors import InvalidDateRange, InvalidScheduleParameters, UnsupportedConvention

logger = logging.getLogger(__name__)

ONE_DAY = timedelta(days=1)


class FixingConvention(Enum):
    """Whether an accrual day observes its own rate or the next day's."""
    ADVANCE = "Advance"
    ARREAR = "Arrear"

    @classmethod
    def from_string(cls, s: str) -> "FixingConvention":
        for member in cls:
            if member.value.upper() == str(s).strip().upper():
                return member
        raise UnsupportedConvention(f"Unknown fixing convention: {s}")


class MissingFixing(Enum):
    """Handling of a past date with no published fixing."""
    NULL = "Null"
    PREVIOUS = "Previous"

    @classmethod
    def from_string(cls, s: str) -> "MissingFixing":
        for member in cls:
            if member.value.upper() == str(s).strip().upper():
                return member
        raise UnsupportedConvention(f"Unknown missing fixing handler: {s}")


@dataclass(frozen=True)
class DailyAccrual:
    """One compounding step: the accrual day, its observed fixing and its fraction."""
    accrual_date: date
    fixing_date: date
    year_fraction: float


class CompoundingRateIndex:
    """
    Overnight index compounded daily over an accrual period.

    Exposes the same ``fixing_rate`` interface as TermRateIndex, so a
    CurveFixingSource can serve its daily fixings to the fixing cache.

    Attributes:
        name: Index identifier, also the fixing cache key
        calendar: Accrual calendar
        fixing_calendar: Calendar for lookback shifts (defaults to calendar)
        day_count: Daily accrual day count
        compounding: Quotation convention of the compounded period rate
        lookback_days: Fixing-calendar days each observation is shifted back
        lockout_days: Trailing accrual days frozen at the last unlocked rate
        fixing_convention: ADVANCE observes d_i, ARREAR observes d_{i+1}
        missing_fixing: NULL leaves a gap, PREVIOUS uses the latest earlier fixing
    """

    tenor = Tenor(1, "D")

    def __init__(
        self,
        name: str,
        calendar: HolidayCalendar,
        day_count: DayCount = DayCount.ACT_360,
        compounding: CompoundingConvention = CompoundingConvention.SIMPLE,
        lookback_days: int = 0,
        lockout_days: int = 0,
        fixing_convention: FixingConvention = FixingConvention.ADVANCE,
        missing_fixing: MissingFixing = MissingFixing.NULL,
        past_fixings: Optional[Mapping[date, float]] = None,
        fixing_calendar: Optional[HolidayCalendar] = None,
    ):
        if lookback_days < 0:
            raise InvalidScheduleParameters(f"Lookback must be non-negative, got {lookback_days}")
        if lockout_days < 0:
            raise InvalidScheduleParameters(f"Lockout must be non-negative, got {lockout_days}")
        self.name = name
        self.calendar = calendar
        self.fixing_calendar = fixing_calendar or calendar
        self.day_count = day_count
        self.compounding = compounding
        self.lookback_days = lookback_days
        self.lockout_days = lockout_days
        self.fixing_convention = fixing_convention
        self.missing_fixing = missing_fixing
        self._past_fixings: Dict[date, float] = dict(past_fixings or {})
        self._past_dates: List[date] = sorted(self._past_fixings)

    @classmethod
    def from_conventions(
        cls,
        conventions,
        calendar: HolidayCalendar,
        past_fixings: Optional[Mapping[date, float]] = None,
    ) -> "CompoundingRateIndex":
        """Index for an overnight IndexConventions (USD-SOFR, GBP-SONIA)."""
        if not conventions.is_overnight:
            raise UnsupportedConvention(
                f"{conventions.index_id} has tenor {conventions.tenor}, not 1D"
            )
        return cls(
            conventions.index_id, calendar,
            day_count=conventions.day_count,
            lookback_days=conventions.lookback_days,
            lockout_days=conventions.lockout_days,
            past_fixings=past_fixings,
        )

    @property
    def past_fixings(self) -> Dict[date, float]:
        return dict(self._past_fixings)

    @property
    def arbitrage_free_applicable(self) -> bool:
        return (self.lookback_days == 0 and self.lockout_days == 0
                and self.fixing_convention == FixingConvention.ADVANCE)

    def accrual_dates(self, start: date, end: date) -> List[date]:
        """Business days in [start, end)."""
        dates = []
        d = start
        while d < end:
            if self.calendar.is_business_day(d):
                dates.append(d)
            d += ONE_DAY
        return dates

    def daily_accruals(self, start: date, end: date) -> List[DailyAccrual]:
        """
        Compounding steps of an accrual period.

        Raises:
            InvalidDateRange: If end <= start or the period has no business day
        """
        if end <= start:
            raise InvalidDateRange(
                f"Accrual end {end.isoformat()} must be after start {start.isoformat()}"
            )
        days = self.accrual_dates(start, end)
        if not days:
            raise InvalidDateRange(
                f"No {self.name} accrual day in {start.isoformat()} -> {end.isoformat()}"
            )
        n = len(days)
        steps = []
        for i, d in enumerate(days):
            next_d = days[i + 1] if i + 1 < n else end
            steps.append(DailyAccrual(d, self._fixing_date(days, i, end),
                                      year_fraction(d, next_d, self.day_count)))
        return steps

    def _fixing_date(self, days: List[date], i: int, end: date) -> date:
        n = len(days)
        if 0 < self.lockout_days < n:
            i = min(i, n - self.lockout_days - 1)
        if self.fixing_convention == FixingConvention.ADVANCE:
            observed = days[i]
        else:
            observed = days[i + 1] if i + 1 < n else end
        if self.lookback_days:
            observed = self.fixing_calendar.shift_business_days(observed, -self.lookback_days)
        return observed

    def fixing_dates(self, start: date, end: date) -> List[date]:
        """Distinct fixing dates observed over a period, sorted."""
        return sorted({a.fixing_date for a in self.daily_accruals(start, end)})

    def projected_rate(self, fixing_date: date, curve) -> float:
        """Overnight forward from the fixing date to the next fixing business day."""
        next_d = self.fixing_calendar.next_business_day(fixing_date)
        tau = year_fraction(fixing_date, next_d, self.day_count)
        return (curve.discount_factor(fixing_date) / curve.discount_factor(next_d) - 1.0) / tau

    def past_fixing(self, fixing_date: date) -> Optional[float]:
        """Published fixing, falling back to the latest earlier one under PREVIOUS."""
        if fixing_date in self._past_fixings:
            return self._past_fixings[fixing_date]
        if self.missing_fixing == MissingFixing.PREVIOUS:
            pos = bisect.bisect_left(self._past_dates, fixing_date)
            if pos > 0:
                previous = self._past_dates[pos - 1]
                logger.debug("No %s fixing on %s, using %s", self.name, fixing_date, previous)
                return self._past_fixings[previous]
        return None

    def is_past(self, fixing_date: date, horizon: date, estimate_horizon: bool = False) -> bool:
        return fixing_date < horizon or (fixing_date == horizon and not estimate_horizon)

    def fixing_rate(
        self,
        fixing_date: date,
        curve=None,
        horizon: Optional[date] = None,
        estimate_horizon: bool = False,
    ) -> Optional[float]:
        """
        Daily fixing for a date: published if past, projected otherwise.

        Returns:
            The rate, or None for a past date with no usable fixing
        """
        if horizon is None:
            if curve is None:
                raise ValueError("Either a curve or a horizon is required")
            horizon = curve.snapshot_date
        if self.is_past(fixing_date, horizon, estimate_horizon):
            return self.past_fixing(fixing_date)
        if curve is None:
            raise ValueError(f"No curve to project {self.name} fixing for {fixing_date}")
        return self.projected_rate(fixing_date, curve)

    def compound_factor(self, accruals: List[DailyAccrual], fixings: Mapping[date, float]) -> float:
        """
        Growth factor prod(1 + r_i * tau_i) from fixings keyed by fixing date.

        Raises:
            KeyError: If a fixing date has no rate
        """
        factor = 1.0
        for a in accruals:
            factor *= 1.0 + fixings[a.fixing_date] * a.year_fraction
        return factor

    def compounded_rate(self, start: date, end: date, fixings: Mapping[date, float]) -> float:
        """Period rate under the index compounding convention."""
        accruals = self.daily_accruals(start, end)
        tau = sum(a.year_fraction for a in accruals)
        return self.compounding.implied_rate(self.compound_factor(accruals, fixings), tau)

    def projected_compounded_rate(self, start: date, end: date, curve) -> float:
        """
        Period rate with every fixing projected off a curve.

        Uses DF(start) / DF(end) when the observation conventions allow it,
        otherwise compounds the projected daily rates.
        """
        accruals = self.daily_accruals(start, end)
        tau = sum(a.year_fraction for a in accruals)
        if self.arbitrage_free_applicable:
            factor = (curve.discount_factor(accruals[0].accrual_date)
                      / curve.discount_factor(end))
        else:
            fixings = {a.fixing_date: self.projected_rate(a.fixing_date, curve) for a in accruals}
            factor = self.compound_factor(accruals, fixings)
        return self.compounding.implied_rate(factor, tau)

    def __repr__(self) -> str:
        return (f"CompoundingRateIndex(name={self.name}, lookback={self.lookback_days}, "
                f"lockout={self.lockout_days}, {self.fixing_convention.value})")


__all__ = [
    "CompoundingRateIndex",
    "DailyAccrual",
    "FixingConvention",
    "MissingFixing",
]
