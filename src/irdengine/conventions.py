"""
Day count conventions and business day adjustments for rates instruments.

Supported Day Counts:
- ACT/360: Actual days / 360 (money markets, OIS)
- ACT/365F: Actual days / 365
- ACT/ACT ISDA: Actual days split by calendar year / 365 or 366
- ACT/ACT ICMA: Actual days / (frequency x days in the coupon period)
- 30/360: Bond basis, ISDA 2006 4.16(f)
- 30/360 US: Bond basis plus the February end-of-month rules
- 30E/360: Eurobond basis
- 30E/360 ISDA: German basis, February termination date exception
- ACT/365 NL: Actual days excluding Feb 29 / 365
- 1/1

Business Day Conventions:
- Following: Move to next business day
- Modified Following: Move to next business day, unless it falls in next month (then previous)
- Preceding: Move to previous business day
- Modified Preceding: Move to previous business day, unless it falls in previous month (then next)
- Half-Month Modified Following: Modified Following that also never crosses the 15th
- Nearest: Closest business day, preceding on a tie
- Unadjusted: No adjustment
"""

from dataclasses import dataclass
from datetime import date
from enum import Enum
from typing import Optional
import calendar
import math

from .calendars import HolidayCalendar
from .dates import Frequency, add_months, is_end_of_month
from .errors import InvalidDateRange, UnsupportedConvention


def _normalize(s: str) -> str:
    return str(s).upper().replace(" ", "").replace("_", "").replace("-", "")


class DayCount(Enum):
    """Day count convention enumeration."""
    ACT_360 = "ACT/360"
    ACT_365F = "ACT/365F"
    ACT_ACT_ISDA = "ACT/ACT ISDA"
    ACT_ACT_ICMA = "ACT/ACT ICMA"
    THIRTY_360 = "30/360"
    THIRTY_360_US = "30/360 US"
    THIRTY_E_360 = "30E/360"
    THIRTY_E_360_ISDA = "30E/360 ISDA"
    ACT_365_NL = "ACT/365 NL"
    ONE_ONE = "1/1"

    @classmethod
    def from_string(cls, s: str) -> "DayCount":
        """Parse day count from string representation."""
        mapping = {
            "ACT/360": cls.ACT_360,
            "ACT360": cls.ACT_360,
            "ACT/365": cls.ACT_365F,
            "ACT/365F": cls.ACT_365F,
            "ACT365F": cls.ACT_365F,
            "ACT/365FIXED": cls.ACT_365F,
            "ACT/ACT": cls.ACT_ACT_ISDA,
            "ACT/ACTISDA": cls.ACT_ACT_ISDA,
            "ACTACT": cls.ACT_ACT_ISDA,
            "ACT/ACTICMA": cls.ACT_ACT_ICMA,
            "ACT/ACTISMA": cls.ACT_ACT_ICMA,
            "ISMA99": cls.ACT_ACT_ICMA,
            "30/360": cls.THIRTY_360,
            "30360": cls.THIRTY_360,
            "30/360ISDA": cls.THIRTY_360,
            "BONDBASIS": cls.THIRTY_360,
            "30/360US": cls.THIRTY_360_US,
            "30U/360": cls.THIRTY_360_US,
            "30E/360": cls.THIRTY_E_360,
            "EUROBONDBASIS": cls.THIRTY_E_360,
            "30E/360ISDA": cls.THIRTY_E_360_ISDA,
            "ACT/365NL": cls.ACT_365_NL,
            "NL/365": cls.ACT_365_NL,
            "1/1": cls.ONE_ONE,
        }
        key = _normalize(s)
        if key in mapping:
            return mapping[key]
        raise UnsupportedConvention(f"Unknown day count convention: {s}")

    @property
    def uses_unadjusted_dates(self) -> bool:
        """30/360-family conventions and ACT/ACT ICMA accrue on unadjusted period dates."""
        return self in (
            DayCount.ACT_ACT_ICMA,
            DayCount.THIRTY_360,
            DayCount.THIRTY_360_US,
            DayCount.THIRTY_E_360,
            DayCount.THIRTY_E_360_ISDA,
        )


class BusinessDayConvention(Enum):
    """Business day adjustment convention."""
    UNADJUSTED = "Unadjusted"
    FOLLOWING = "Following"
    MODIFIED_FOLLOWING = "ModifiedFollowing"
    PRECEDING = "Preceding"
    MODIFIED_PRECEDING = "ModifiedPreceding"
    HALF_MONTH_MODIFIED_FOLLOWING = "HalfMonthModifiedFollowing"
    NEAREST = "Nearest"

    @classmethod
    def from_string(cls, s: str) -> "BusinessDayConvention":
        key = _normalize(s)
        aliases = {
            "NONE": cls.UNADJUSTED,
            "F": cls.FOLLOWING,
            "MF": cls.MODIFIED_FOLLOWING,
            "MODFOLLOWING": cls.MODIFIED_FOLLOWING,
            "P": cls.PRECEDING,
            "MP": cls.MODIFIED_PRECEDING,
        }
        if key in aliases:
            return aliases[key]
        for member in cls:
            if _normalize(member.value) == key or _normalize(member.name) == key:
                return member
        raise UnsupportedConvention(f"Unknown business day convention: {s}")


class CompoundingConvention(Enum):
    """Interest rate compounding convention."""
    SIMPLE = "Simple"
    CONTINUOUS = "Continuous"
    ANNUAL = "Annual"
    SEMI_ANNUAL = "SemiAnnual"
    QUARTERLY = "Quarterly"
    MONTHLY = "Monthly"

    @property
    def periods_per_year(self) -> int:
        return {
            CompoundingConvention.ANNUAL: 1,
            CompoundingConvention.SEMI_ANNUAL: 2,
            CompoundingConvention.QUARTERLY: 4,
            CompoundingConvention.MONTHLY: 12,
        }.get(self, 0)

    def future_value(self, rate: float, tau: float) -> float:
        """Growth factor of 1 unit over tau years at rate."""
        if self == CompoundingConvention.SIMPLE:
            return 1.0 + rate * tau
        if self == CompoundingConvention.CONTINUOUS:
            return math.exp(rate * tau)
        freq = self.periods_per_year
        return (1.0 + rate / freq) ** (tau * freq)

    def implied_rate(self, future_value: float, tau: float) -> float:
        """Rate that grows 1 unit to future_value over tau years."""
        if tau <= 0:
            raise InvalidDateRange(f"Accrual period must be positive, got {tau}")
        if self == CompoundingConvention.SIMPLE:
            return (future_value - 1.0) / tau
        if self == CompoundingConvention.CONTINUOUS:
            return math.log(future_value) / tau
        freq = self.periods_per_year
        return (future_value ** (1.0 / (tau * freq)) - 1.0) * freq

    @classmethod
    def from_string(cls, s: str) -> "CompoundingConvention":
        key = _normalize(s)
        for member in cls:
            if _normalize(member.value) == key or _normalize(member.name) == key:
                return member
        raise UnsupportedConvention(f"Unknown compounding convention: {s}")


@dataclass(frozen=True)
class Conventions:
    """
    Container for swap leg conventions.

    Attributes:
        day_count: Day count convention for accrual
        business_day: Business day adjustment rule
        frequency: Regular payment frequency
        settlement_days: Business days from trade date to effective date
        calendar_id: Calendar used for adjustment
        end_of_month: Whether the EOM rule applies to generated dates
    """
    day_count: DayCount = DayCount.ACT_360
    business_day: BusinessDayConvention = BusinessDayConvention.MODIFIED_FOLLOWING
    frequency: Frequency = Frequency.ANNUAL
    settlement_days: int = 2
    calendar_id: str = "USNY"
    end_of_month: bool = False

    @classmethod
    def usd_swap_fixed(cls) -> "Conventions":
        """USD SOFR swap fixed leg: annual ACT/360."""
        return cls(
            day_count=DayCount.ACT_360,
            business_day=BusinessDayConvention.MODIFIED_FOLLOWING,
            frequency=Frequency.ANNUAL,
            settlement_days=2,
            calendar_id="USNY",
        )

    @classmethod
    def usd_swap_fixed_semi(cls) -> "Conventions":
        """Legacy USD LIBOR swap fixed leg: semi-annual 30/360."""
        return cls(
            day_count=DayCount.THIRTY_360,
            business_day=BusinessDayConvention.MODIFIED_FOLLOWING,
            frequency=Frequency.SEMI_ANNUAL,
            settlement_days=2,
            calendar_id="USNY",
        )

    @classmethod
    def eur_swap_fixed(cls) -> "Conventions":
        """EUR swap fixed leg: annual 30E/360 on TARGET."""
        return cls(
            day_count=DayCount.THIRTY_E_360,
            business_day=BusinessDayConvention.MODIFIED_FOLLOWING,
            frequency=Frequency.ANNUAL,
            settlement_days=2,
            calendar_id="TARGET",
        )

    @classmethod
    def gbp_swap_fixed(cls) -> "Conventions":
        """GBP SONIA swap fixed leg: annual ACT/365F."""
        return cls(
            day_count=DayCount.ACT_365F,
            business_day=BusinessDayConvention.MODIFIED_FOLLOWING,
            frequency=Frequency.ANNUAL,
            settlement_days=0,
            calendar_id="GBLO",
        )


def adjust(
    d: date,
    calendar: HolidayCalendar,
    convention: BusinessDayConvention
) -> date:
    """
    Adjust a date according to business day convention.

    Business days are returned unchanged by every convention.

    Args:
        d: Date to adjust
        calendar: Holiday calendar
        convention: Business day adjustment rule

    Returns:
        Adjusted date
    """
    if convention == BusinessDayConvention.UNADJUSTED:
        return d

    if calendar.is_business_day(d):
        return d

    if convention == BusinessDayConvention.FOLLOWING:
        return calendar.next_business_day(d)

    elif convention == BusinessDayConvention.PRECEDING:
        return calendar.previous_business_day(d)

    elif convention == BusinessDayConvention.MODIFIED_FOLLOWING:
        adjusted = calendar.next_business_day(d)
        # If we crossed into next month, go preceding instead
        if adjusted.month != d.month:
            adjusted = calendar.previous_business_day(d)
        return adjusted

    elif convention == BusinessDayConvention.MODIFIED_PRECEDING:
        adjusted = calendar.previous_business_day(d)
        if adjusted.month != d.month:
            adjusted = calendar.next_business_day(d)
        return adjusted

    elif convention == BusinessDayConvention.HALF_MONTH_MODIFIED_FOLLOWING:
        adjusted = calendar.next_business_day(d)
        if adjusted.month != d.month or (d.day <= 15 < adjusted.day):
            adjusted = calendar.previous_business_day(d)
        return adjusted

    elif convention == BusinessDayConvention.NEAREST:
        following = calendar.next_business_day(d)
        preceding = calendar.previous_business_day(d)
        if (following - d).days < (d - preceding).days:
            return following
        return preceding

    raise UnsupportedConvention(f"Unknown business day convention: {convention}")


def is_business_day(d: date, calendar: HolidayCalendar) -> bool:
    return calendar.is_business_day(d)


def _is_last_day_of_february(d: date) -> bool:
    return d.month == 2 and d.day == calendar.monthrange(d.year, 2)[1]


def _thirty_360_days(y1: int, m1: int, d1: int, y2: int, m2: int, d2: int) -> int:
    return 360 * (y2 - y1) + 30 * (m2 - m1) + (d2 - d1)


def _act_act_isda(start: date, end: date) -> float:
    total = 0.0
    for year in range(start.year, end.year + 1):
        seg_start = max(start, date(year, 1, 1))
        seg_end = min(end, date(year + 1, 1, 1))
        if seg_end <= seg_start:
            continue
        days_in_year = 366 if calendar.isleap(year) else 365
        total += (seg_end - seg_start).days / days_in_year
    return total


def _act_act_icma(
    start: date,
    end: date,
    reference_start: Optional[date],
    reference_end: Optional[date],
    frequency: Optional[Frequency],
) -> float:
    ref_start = reference_start or start
    ref_end = reference_end or end
    if ref_end <= ref_start:
        raise InvalidDateRange(
            f"Reference period {ref_start.isoformat()} -> {ref_end.isoformat()} is empty"
        )
    if frequency is None:
        months = round((ref_end - ref_start).days * 12 / 365.25)
        try:
            frequency = Frequency(months)
        except ValueError:
            raise UnsupportedConvention(
                f"Cannot infer a coupon frequency from a {months}M reference period"
            ) from None
    per_year = frequency.per_year

    def portion(q_start: date, q_end: date) -> float:
        overlap = (min(end, q_end) - max(start, q_start)).days
        if overlap <= 0:
            return 0.0
        return overlap / (per_year * (q_end - q_start).days)

    total = portion(ref_start, ref_end)

    # Quasi-coupon periods before and after the reference period
    eom = is_end_of_month(ref_start)
    q_end, k = ref_start, 1
    while q_end > start:
        q_start = add_months(ref_start, -frequency.months * k, eom)
        total += portion(q_start, q_end)
        q_end, k = q_start, k + 1

    eom = is_end_of_month(ref_end)
    q_start, k = ref_end, 1
    while q_start < end:
        q_end = add_months(ref_end, frequency.months * k, eom)
        total += portion(q_start, q_end)
        q_start, k = q_end, k + 1

    return total


def _no_leap_days(start: date, end: date) -> int:
    days = (end - start).days
    for year in range(start.year, end.year + 1):
        if calendar.isleap(year):
            feb29 = date(year, 2, 29)
            if start < feb29 <= end:
                days -= 1
    return days


def day_count_fraction(
    start: date,
    end: date,
    day_count: DayCount,
    termination: Optional[date] = None,
    reference_start: Optional[date] = None,
    reference_end: Optional[date] = None,
    frequency: Optional[Frequency] = None,
) -> float:
    """
    Calculate year fraction between two dates using specified day count convention.

    Args:
        start: Start date
        end: End date (must not precede start)
        day_count: Day count convention
        termination: Final schedule date, used only by 30E/360 ISDA
        reference_start: Start of the regular coupon period containing the
            accrual, used only by ACT/ACT ICMA (defaults to start)
        reference_end: End of that coupon period (defaults to end)
        frequency: Coupon frequency for ACT/ACT ICMA; inferred from the
            reference period length when omitted

    Returns:
        Year fraction as float

    Raises:
        InvalidDateRange: If end < start or the reference period is empty

    Conventions:
        ACT/360: (end - start).days / 360
        ACT/365F: (end - start).days / 365
        ACT/ACT ISDA: days in each calendar year / days in that year
        ACT/ACT ICMA: days / (frequency * reference period days); an
            accrual outside the reference period is split across the
            quasi-coupon periods stepped from it
        30/360: D1 capped at 30; D2 capped at 30 only when D1 was 30 or 31
        30/360 US: as 30/360, with last-of-February treated as the 30th
        30E/360: both D1 and D2 capped at 30
        30E/360 ISDA: month-end days set to 30, except a February
            termination date for D2
    """
    if end < start:
        raise InvalidDateRange(
            f"End date {end.isoformat()} precedes start date {start.isoformat()}"
        )
    if start == end:
        return 0.0

    actual_days = (end - start).days

    if day_count == DayCount.ACT_360:
        return actual_days / 360.0

    elif day_count == DayCount.ACT_365F:
        return actual_days / 365.0

    elif day_count == DayCount.ACT_ACT_ISDA:
        return _act_act_isda(start, end)

    elif day_count == DayCount.ACT_ACT_ICMA:
        return _act_act_icma(start, end, reference_start, reference_end, frequency)

    elif day_count == DayCount.THIRTY_360:
        d1 = min(start.day, 30)
        d2 = min(end.day, 30) if d1 == 30 else end.day
        return _thirty_360_days(start.year, start.month, d1,
                                end.year, end.month, d2) / 360.0

    elif day_count == DayCount.THIRTY_360_US:
        d1, d2 = start.day, end.day
        if _is_last_day_of_february(start) and _is_last_day_of_february(end):
            d2 = 30
        if _is_last_day_of_february(start):
            d1 = 30
        if d2 == 31 and d1 >= 30:
            d2 = 30
        if d1 == 31:
            d1 = 30
        return _thirty_360_days(start.year, start.month, d1,
                                end.year, end.month, d2) / 360.0

    elif day_count == DayCount.THIRTY_E_360:
        d1 = min(start.day, 30)
        d2 = min(end.day, 30)
        return _thirty_360_days(start.year, start.month, d1,
                                end.year, end.month, d2) / 360.0

    elif day_count == DayCount.THIRTY_E_360_ISDA:
        d1 = 30 if start.day == calendar.monthrange(start.year, start.month)[1] else start.day
        end_is_month_end = end.day == calendar.monthrange(end.year, end.month)[1]
        if end_is_month_end and not (end.month == 2 and end == termination):
            d2 = 30
        else:
            d2 = end.day
        return _thirty_360_days(start.year, start.month, d1,
                                end.year, end.month, d2) / 360.0

    elif day_count == DayCount.ACT_365_NL:
        return _no_leap_days(start, end) / 365.0

    elif day_count == DayCount.ONE_ONE:
        return 1.0

    raise UnsupportedConvention(f"Unknown day count: {day_count}")


year_fraction = day_count_fraction


__all__ = [
    "DayCount",
    "BusinessDayConvention",
    "CompoundingConvention",
    "Conventions",
    "adjust",
    "day_count_fraction",
    "year_fraction",
    "is_business_day",
]
