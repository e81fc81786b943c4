"""
Option expiry and delivery date generation.

An option on a rate index is quoted by tenor ("1Y into 5Y"). The expiry
is derived from the trade date under the index's own roll and
adjustment rules; the delivery (settlement) date follows expiry by the
index's settlement lag. The delivery date is then the effective date of
the underlying swap.

Two market rules are supported:
- EXPIRY_TO_DELIVERY: expiry = trade date + tenor, delivery = expiry + lag
- DELIVERY_TO_EXPIRY: delivery = spot + tenor, expiry = delivery - lag
"""

from dataclasses import dataclass
from datetime import date
from enum import Enum
from typing import FrozenSet, Iterable, Optional, Tuple, Union

from .calendars import HolidayCalendar
from .conventions import BusinessDayConvention, DayCount, adjust
from .dates import Tenor, add_tenor
from .errors import InvalidScheduleParameters, UnsupportedConvention


class ExpiryRule(Enum):
    """Order in which expiry and delivery dates are fixed."""
    EXPIRY_TO_DELIVERY = "ExpiryToDelivery"
    DELIVERY_TO_EXPIRY = "DeliveryToExpiry"

    @classmethod
    def from_string(cls, s: str) -> "ExpiryRule":
        key = str(s).upper().replace("_", "").replace(" ", "")
        for member in cls:
            if member.value.upper() == key:
                return member
        raise UnsupportedConvention(f"Unknown expiry rule: {s}")


@dataclass(frozen=True)
class IndexConventions:
    """
    Conventions of the rate index an option is written on.

    Attributes:
        index_id: Index name (e.g. "USD-SOFR", "EUR-EURIBOR-6M")
        business_day: Adjustment applied to tenor-stepped dates
        end_of_month: Month-end dates roll to month-end dates
        settlement_lag: Business days from expiry to delivery
        tenor: Index tenor; "1D" indices are compounded daily
        day_count: Index accrual day count
        lookback_days: Observation shift of a compounded overnight index
        lockout_days: Trailing days frozen on a compounded overnight index
    """
    index_id: str
    business_day: BusinessDayConvention = BusinessDayConvention.MODIFIED_FOLLOWING
    end_of_month: bool = False
    settlement_lag: int = 2
    tenor: str = "1D"
    day_count: DayCount = DayCount.ACT_360
    lookback_days: int = 0
    lockout_days: int = 0

    @property
    def is_overnight(self) -> bool:
        return Tenor.parse(self.tenor) == Tenor(1, "D")

    @classmethod
    def usd_sofr(cls) -> "IndexConventions":
        return cls(index_id="USD-SOFR", settlement_lag=2, tenor="1D")

    @classmethod
    def eur_euribor_6m(cls) -> "IndexConventions":
        return cls(index_id="EUR-EURIBOR-6M", settlement_lag=2, tenor="6M",
                   end_of_month=True)

    @classmethod
    def gbp_sonia(cls) -> "IndexConventions":
        return cls(index_id="GBP-SONIA", settlement_lag=0, tenor="1D",
                   day_count=DayCount.ACT_365F)


def roll_tenor(
    start: date,
    tenor: Union[str, Tenor],
    calendar: HolidayCalendar,
    convention: BusinessDayConvention,
    end_of_month: bool = False
) -> date:
    """
    Step a tenor from start and adjust the result.

    With the EOM rule, a start on the last business day of its month
    maps to the last business day of the target month.
    """
    t = Tenor.parse(tenor)
    if (end_of_month and t.is_month_based
            and start == calendar.last_business_day_of_month(start.year, start.month)):
        target = add_tenor(start, t, end_of_month_rule=True)
        return calendar.last_business_day_of_month(target.year, target.month)
    return adjust(add_tenor(start, t), calendar, convention)


def _validate(option_tenor: Tenor, settlement_lag: int) -> None:
    if not option_tenor.is_positive:
        raise InvalidScheduleParameters(f"Option tenor must be positive, got {option_tenor}")
    if settlement_lag < 0:
        raise InvalidScheduleParameters(
            f"Settlement lag must be non-negative, got {settlement_lag}"
        )


def expiry_and_delivery(
    trade_date: date,
    option_tenor: Union[str, Tenor],
    calendar: HolidayCalendar,
    index_conventions: IndexConventions,
    expiry_rule: ExpiryRule = ExpiryRule.EXPIRY_TO_DELIVERY,
    convention: Optional[BusinessDayConvention] = None,
) -> Tuple[date, date]:
    """
    Compute option expiry and delivery dates.

    Args:
        trade_date: Trade (horizon) date
        option_tenor: Option tenor, e.g. "1Y"
        calendar: Calendar for expiry and settlement
        index_conventions: Index roll, EOM and settlement lag
        expiry_rule: Which of expiry/delivery is fixed first
        convention: Override of the index business day convention

    Returns:
        Tuple of (expiry_date, delivery_date)

    Raises:
        InvalidScheduleParameters: non-positive tenor or negative lag
    """
    tenor = Tenor.parse(option_tenor)
    lag = index_conventions.settlement_lag
    _validate(tenor, lag)
    bdc = convention or index_conventions.business_day
    eom = index_conventions.end_of_month

    if expiry_rule == ExpiryRule.EXPIRY_TO_DELIVERY:
        expiry = roll_tenor(trade_date, tenor, calendar, bdc, eom)
        delivery = calendar.shift_business_days(expiry, lag)
    elif expiry_rule == ExpiryRule.DELIVERY_TO_EXPIRY:
        spot = calendar.shift_business_days(trade_date, lag)
        delivery = roll_tenor(spot, tenor, calendar, bdc, eom)
        expiry = calendar.shift_business_days(delivery, -lag)
    else:
        raise UnsupportedConvention(f"Unknown expiry rule: {expiry_rule}")

    return expiry, delivery


class OptionDateGenerator:
    """
    Expiry/delivery generator with separate short- and long-dated rules.

    Short-dated tenors (by default day and week tenors) and long-dated
    tenors can follow different expiry rules and business day
    conventions, as FX and rates desks quote them differently.
    """

    def __init__(
        self,
        calendar: HolidayCalendar,
        index_conventions: IndexConventions,
        short_term_rule: ExpiryRule = ExpiryRule.EXPIRY_TO_DELIVERY,
        short_term_convention: BusinessDayConvention = BusinessDayConvention.FOLLOWING,
        long_term_rule: ExpiryRule = ExpiryRule.EXPIRY_TO_DELIVERY,
        long_term_convention: Optional[BusinessDayConvention] = None,
        short_term_units: Iterable[str] = ("D", "W"),
    ):
        self.calendar = calendar
        self.index_conventions = index_conventions
        self.short_term_rule = short_term_rule
        self.short_term_convention = short_term_convention
        self.long_term_rule = long_term_rule
        self.long_term_convention = long_term_convention or index_conventions.business_day
        self.short_term_units: FrozenSet[str] = frozenset(u.upper() for u in short_term_units)

    def is_short_term(self, tenor: Union[str, Tenor]) -> bool:
        return Tenor.parse(tenor).unit in self.short_term_units

    def generate(self, trade_date: date, option_tenor: Union[str, Tenor]) -> Tuple[date, date]:
        """Return (expiry_date, delivery_date) for the tenor."""
        if self.is_short_term(option_tenor):
            rule, bdc = self.short_term_rule, self.short_term_convention
        else:
            rule, bdc = self.long_term_rule, self.long_term_convention
        return expiry_and_delivery(
            trade_date, option_tenor, self.calendar, self.index_conventions,
            expiry_rule=rule, convention=bdc,
        )

    def expiry(self, trade_date: date, option_tenor: Union[str, Tenor]) -> date:
        return self.generate(trade_date, option_tenor)[0]

    def delivery(self, trade_date: date, option_tenor: Union[str, Tenor]) -> date:
        return self.generate(trade_date, option_tenor)[1]


__all__ = [
    "ExpiryRule",
    "IndexConventions",
    "OptionDateGenerator",
    "expiry_and_delivery",
    "roll_tenor",
]
