"""
Term rate index.

A term rate index (e.g. EURIBOR 6M, Term SOFR 3M) fixes on a fixing date
for an accrual period starting ``start_lag`` business days later and
running for the index tenor. Fixings on or after the pricing horizon are
projected off a forward curve; earlier fixings come from the published
history.
"""

from datetime import date
from typing import Dict, Mapping, Optional, Union

from ..calendars import HolidayCalendar
from ..conventions import BusinessDayConvention, CompoundingConvention, DayCount, year_fraction
from ..dates import Tenor
from ..errors import InvalidScheduleParameters
from ..option_dates import roll_tenor


class TermRateIndex:
    """
    Rate index fixing once per period for a fixed tenor.

    Attributes:
        name: Index identifier, also the fixing cache key
        tenor: Accrual tenor of one fixing
        calendar: Fixing and accrual calendar
        start_lag: Business days from fixing date to accrual start
        convention: Adjustment of the accrual end date
        day_count: Accrual day count
        compounding: Quotation convention of the rate
        end_of_month: Month-end starts roll to month-end ends
    """

    def __init__(
        self,
        name: str,
        tenor: Union[str, Tenor],
        calendar: HolidayCalendar,
        start_lag: int = 2,
        convention: BusinessDayConvention = BusinessDayConvention.MODIFIED_FOLLOWING,
        day_count: DayCount = DayCount.ACT_360,
        compounding: CompoundingConvention = CompoundingConvention.SIMPLE,
        past_fixings: Optional[Mapping[date, float]] = None,
        end_of_month: bool = False,
    ):
        self.name = name
        self.tenor = Tenor.parse(tenor)
        if not self.tenor.is_positive:
            raise InvalidScheduleParameters(f"Index tenor must be positive, got {self.tenor}")
        if start_lag < 0:
            raise InvalidScheduleParameters(f"Start lag must be non-negative, got {start_lag}")
        self.calendar = calendar
        self.start_lag = start_lag
        self.convention = convention
        self.day_count = day_count
        self.compounding = compounding
        self.end_of_month = end_of_month
        self._past_fixings: Dict[date, float] = dict(past_fixings or {})

    @property
    def past_fixings(self) -> Dict[date, float]:
        return dict(self._past_fixings)

    def start_date(self, fixing_date: date) -> date:
        return self.calendar.shift_business_days(fixing_date, self.start_lag)

    def end_date(self, fixing_date: date) -> date:
        return roll_tenor(
            self.start_date(fixing_date), self.tenor, self.calendar,
            self.convention, self.end_of_month,
        )

    def projected_rate(self, fixing_date: date, curve) -> float:
        """
        Forward rate of the index period implied by a curve.

        Args:
            fixing_date: Fixing date
            curve: Forward curve exposing discount_factor(date)

        Returns:
            Projected fixing under the index compounding convention
        """
        start = self.start_date(fixing_date)
        end = self.end_date(fixing_date)
        tau = year_fraction(start, end, self.day_count)
        growth = curve.discount_factor(start) / curve.discount_factor(end)
        return self.compounding.implied_rate(growth, tau)

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
        Fixing for a date: published if past, projected otherwise.

        Args:
            fixing_date: Fixing date
            curve: Forward curve for projection
            horizon: Pricing horizon (defaults to the curve snapshot date)
            estimate_horizon: Project the fixing on the horizon date itself

        Returns:
            The rate, or None for a past date with no published fixing
        """
        if horizon is None:
            if curve is None:
                raise ValueError("Either a curve or a horizon is required")
            horizon = curve.snapshot_date
        if self.is_past(fixing_date, horizon, estimate_horizon):
            return self._past_fixings.get(fixing_date)
        if curve is None:
            raise ValueError(f"No curve to project {self.name} fixing for {fixing_date}")
        return self.projected_rate(fixing_date, curve)

    def __repr__(self) -> str:
        return f"TermRateIndex(name={self.name}, tenor={self.tenor}, start_lag={self.start_lag})"


__all__ = ["TermRateIndex"]
