"""
Holiday calendars for business day arithmetic.

Provides:
- HolidayCalendar: weekend rule + explicit holiday dates + recurring rules
- Recurring holiday rules: fixed date with weekend observance, nth and
  last weekday of a month, Easter-related
- JointCalendar: intersection of business days across calendars
- CalendarRegistry: immutable lookup of calendars by identifier

Calendars are immutable once built and hold no mutable state, so a
single instance can be shared across threads without locking.
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass
from datetime import date, datetime, timedelta
from enum import Enum
from functools import lru_cache
from typing import Dict, FrozenSet, Iterable, Iterator, List, Mapping, Optional, Tuple
import calendar as _calendar

from .errors import InvalidCalendar

ONE_DAY = timedelta(days=1)

# Saturday, Sunday (Monday = 0)
DEFAULT_WEEKEND: Tuple[int, ...] = (5, 6)


class WeekendAdjustment(Enum):
    """Move applied to a fixed-date holiday that falls on a given weekday."""
    UNADJUSTED = "Unadjusted"
    NEXT_WEEKDAY = "NextWeekday"
    PREVIOUS_WEEKDAY = "PreviousWeekday"


class EasterType(Enum):
    WESTERN = "Western"
    ORTHODOX = "Orthodox"


# Both Easter computations are valid for Gregorian years in this range
EASTER_YEARS = range(1583, 4100)


def easter_sunday(year: int, easter_type: EasterType = EasterType.WESTERN) -> date:
    """
    Easter Sunday of a year as a Gregorian date.

    Raises:
        InvalidCalendar: If the year is outside 1583-4099
    """
    if year not in EASTER_YEARS:
        raise InvalidCalendar(f"Easter is only computed for 1583-4099, got {year}")
    g = year % 19
    if easter_type == EasterType.WESTERN:
        c = year // 100
        h = (c - c // 4 - (8 * c + 13) // 25 + 19 * g + 15) % 30
        i = h - (h // 28) * (1 - (h // 28) * (29 // (h + 1)) * ((21 - g) // 11))
        j = (year + year // 4 + i + 2 - c + c // 4) % 7
        p = i - j
    else:
        i = (19 * g + 15) % 30
        j = (year + year // 4 + i) % 7
        # Julian to Gregorian offset
        e = 10 if year <= 1600 else 10 + year // 100 - 16 - (year // 100 - 16) // 4
        p = i - j + e
    day = 1 + (p + 27 + (p + 6) // 40) % 31
    month = 3 + (p + 26) // 30
    return date(year, month, day)


class RecurringHoliday(ABC):
    """A holiday rule that yields dates year by year."""

    @abstractmethod
    def dates(self, year: int) -> FrozenSet[date]:
        """Holiday dates falling in a calendar year."""

    def is_holiday(self, d: date) -> bool:
        return d in _rule_dates(self, d.year)


@lru_cache(maxsize=4096)
def _rule_dates(rule: RecurringHoliday, year: int) -> FrozenSet[date]:
    return rule.dates(year)


@dataclass(frozen=True)
class FixedDateHoliday(RecurringHoliday):
    """
    Same month and day every year, moved off configured weekdays.

    ``weekend_adjustment`` maps a weekday number (Monday = 0) to the move
    applied when the date falls on it. Moves repeat while the result
    still lands on a mapped weekday, so {Sat: previous, Sun: next}
    observes a Saturday holiday on Friday and a Sunday one on Monday.
    An observed date may cross into the adjacent year (New Year's Day on
    a Saturday observed on December 31).
    """
    month: int
    day: int
    weekend_adjustment: Tuple[Tuple[int, WeekendAdjustment], ...] = ()

    def __post_init__(self):
        if isinstance(self.weekend_adjustment, Mapping):
            object.__setattr__(self, "weekend_adjustment",
                               tuple(sorted(self.weekend_adjustment.items())))
        try:
            date(2000, self.month, self.day)
        except (TypeError, ValueError) as e:
            raise InvalidCalendar(f"Invalid fixed holiday {self.month}/{self.day}: {e}") from None
        for weekday, _ in self.weekend_adjustment:
            if not 0 <= weekday <= 6:
                raise InvalidCalendar(f"Weekday {weekday!r} is not a weekday number 0-6")

    def _observed(self, year: int) -> Optional[date]:
        # Feb 29 only exists in leap years
        if not _calendar.isleap(year) and (self.month, self.day) == (2, 29):
            return None
        adjustments = dict(self.weekend_adjustment)
        d = date(year, self.month, self.day)
        for _ in range(7):
            move = adjustments.get(d.weekday(), WeekendAdjustment.UNADJUSTED)
            if move == WeekendAdjustment.UNADJUSTED:
                break
            d += ONE_DAY if move == WeekendAdjustment.NEXT_WEEKDAY else -ONE_DAY
        return d

    def dates(self, year: int) -> FrozenSet[date]:
        observed = (self._observed(y) for y in (year - 1, year, year + 1))
        return frozenset(d for d in observed if d is not None and d.year == year)


@dataclass(frozen=True)
class NthWeekdayHoliday(RecurringHoliday):
    """The nth (1-5) given weekday of a month, e.g. fourth Thursday of November."""
    month: int
    n: int
    weekday: int

    def __post_init__(self):
        if not 1 <= self.month <= 12 or not 1 <= self.n <= 5 or not 0 <= self.weekday <= 6:
            raise InvalidCalendar(
                f"Invalid nth weekday holiday: month={self.month}, n={self.n}, weekday={self.weekday}"
            )

    def dates(self, year: int) -> FrozenSet[date]:
        first = date(year, self.month, 1)
        d = first + timedelta(days=(self.weekday - first.weekday()) % 7 + 7 * (self.n - 1))
        # A fifth weekday does not exist in every month
        return frozenset([d]) if d.month == self.month else frozenset()


@dataclass(frozen=True)
class LastWeekdayHoliday(RecurringHoliday):
    """The last given weekday of a month, e.g. last Monday of May."""
    month: int
    weekday: int

    def __post_init__(self):
        if not 1 <= self.month <= 12 or not 0 <= self.weekday <= 6:
            raise InvalidCalendar(
                f"Invalid last weekday holiday: month={self.month}, weekday={self.weekday}"
            )

    def dates(self, year: int) -> FrozenSet[date]:
        last = date(year, self.month, _calendar.monthrange(year, self.month)[1])
        return frozenset([last - timedelta(days=(last.weekday() - self.weekday) % 7)])


@dataclass(frozen=True)
class EasterRelatedHoliday(RecurringHoliday):
    """A fixed number of days from Easter Sunday (Good Friday is -2)."""
    shift_days: int
    easter_type: EasterType = EasterType.WESTERN

    def dates(self, year: int) -> FrozenSet[date]:
        result = set()
        # The shift may move the holiday across a year boundary
        span = abs(self.shift_days) // 366 + 1
        for y in range(year - span, year + span + 1):
            if y in EASTER_YEARS:
                d = easter_sunday(y, self.easter_type) + timedelta(days=self.shift_days)
                if d.year == year:
                    result.add(d)
        return frozenset(result)


def _as_date(d: object, identifier: str) -> date:
    if isinstance(d, datetime):
        return d.date()
    if not isinstance(d, date):
        raise InvalidCalendar(f"Calendar {identifier}: {d!r} is not a date")
    return d


class HolidayCalendar:
    """
    Business day calendar.

    Attributes:
        identifier: Calendar code (e.g. "USNY", "TARGET")
        weekend: Weekday numbers treated as non-business days (Monday = 0)
        holidays: Explicit non-business dates (datetimes are truncated
            to their date)
        recurring_holidays: Rules generating holidays for any year
        extra_business_days: Dates forced to be business days, overriding
            both the weekend rule and the holiday list
    """

    def __init__(
        self,
        identifier: str,
        holidays: Iterable[date] = (),
        weekend: Iterable[int] = DEFAULT_WEEKEND,
        extra_business_days: Iterable[date] = (),
        recurring_holidays: Iterable[RecurringHoliday] = (),
    ):
        weekend_set = frozenset(weekend)
        for day in weekend_set:
            if not isinstance(day, int) or not 0 <= day <= 6:
                raise InvalidCalendar(
                    f"Calendar {identifier}: weekend day {day!r} is not a weekday number 0-6"
                )

        holiday_set = frozenset(_as_date(d, identifier) for d in holidays)
        extra_set = frozenset(_as_date(d, identifier) for d in extra_business_days)
        rules = tuple(recurring_holidays)
        for rule in rules:
            if not isinstance(rule, RecurringHoliday):
                raise InvalidCalendar(f"Calendar {identifier}: {rule!r} is not a holiday rule")

        # Without any override dates, a seven-day weekend has no business day at all
        if len(weekend_set) == 7 and not extra_set:
            raise InvalidCalendar(
                f"Calendar {identifier}: weekend rule leaves no business days"
            )

        self._identifier = identifier
        self._weekend = weekend_set
        self._holidays = holiday_set
        self._extra_business_days = extra_set
        self._recurring = rules

    @property
    def identifier(self) -> str:
        return self._identifier

    @property
    def weekend(self) -> FrozenSet[int]:
        return self._weekend

    @property
    def holidays(self) -> FrozenSet[date]:
        return self._holidays

    @property
    def extra_business_days(self) -> FrozenSet[date]:
        return self._extra_business_days

    @property
    def recurring_holidays(self) -> Tuple[RecurringHoliday, ...]:
        return self._recurring

    def is_weekend(self, d: date) -> bool:
        return d.weekday() in self._weekend

    def is_holiday(self, d: date) -> bool:
        """True if d is not a business day (weekend or holiday)."""
        if d in self._extra_business_days:
            return False
        if self.is_weekend(d):
            return True
        if d in self._holidays:
            return True
        return any(rule.is_holiday(d) for rule in self._recurring)

    def is_business_day(self, d: date) -> bool:
        return not self.is_holiday(d)

    def shift_business_days(self, d: date, n: int) -> date:
        """
        Move n business days from d.

        Positive n moves forward, negative n backward. The starting date
        itself is never counted, so shifting a holiday by 0 returns it
        unchanged.

        Args:
            d: Starting date
            n: Number of business days

        Returns:
            Shifted date
        """
        step = ONE_DAY if n >= 0 else -ONE_DAY
        remaining = abs(n)
        result = d
        while remaining > 0:
            result += step
            if self.is_business_day(result):
                remaining -= 1
        return result

    def next_business_day(self, d: date) -> date:
        """First business day strictly after d."""
        return self.shift_business_days(d, 1)

    def previous_business_day(self, d: date) -> date:
        """Last business day strictly before d."""
        return self.shift_business_days(d, -1)

    def last_business_day_of_month(self, year: int, month: int) -> date:
        d = date(year, month, _calendar.monthrange(year, month)[1])
        while self.is_holiday(d):
            d -= ONE_DAY
        return d

    def first_business_day_of_month(self, year: int, month: int) -> date:
        d = date(year, month, 1)
        while self.is_holiday(d):
            d += ONE_DAY
        return d

    def business_days_between(self, start: date, end: date) -> int:
        """Count business days in (start, end]."""
        if end <= start:
            return 0
        count = 0
        d = start
        while d < end:
            d += ONE_DAY
            if self.is_business_day(d):
                count += 1
        return count

    def holidays_in_year(self, year: int) -> List[date]:
        """All non-business days of a year, weekends included, sorted."""
        d = date(year, 1, 1)
        result = []
        while d.year == year:
            if self.is_holiday(d):
                result.append(d)
            d += ONE_DAY
        return result

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, HolidayCalendar):
            return NotImplemented
        return (
            self._identifier == other._identifier
            and self._weekend == other._weekend
            and self._holidays == other._holidays
            and self._extra_business_days == other._extra_business_days
            and self._recurring == other._recurring
        )

    def __hash__(self) -> int:
        return hash((self._identifier, self._weekend, self._holidays,
                     self._extra_business_days, self._recurring))

    def __repr__(self) -> str:
        return (f"HolidayCalendar(id={self._identifier}, weekend={sorted(self._weekend)}, "
                f"holidays={len(self._holidays)}, rules={len(self._recurring)})")


class JointCalendar(HolidayCalendar):
    """
    Calendar whose business days are business days in every member.

    Used for instruments settling across two centres (e.g. USNY + TARGET).
    """

    def __init__(self, identifier: str, calendars: Iterable[HolidayCalendar]):
        members = tuple(calendars)
        if not members:
            raise InvalidCalendar(f"Joint calendar {identifier} needs at least one member")

        self._members = members
        self._identifier = identifier
        self._weekend = frozenset().union(*(c.weekend for c in members))
        self._holidays = frozenset().union(*(c.holidays for c in members))
        self._extra_business_days = frozenset()
        self._recurring = ()

        if len(self._weekend) == 7 and not any(c.extra_business_days for c in members):
            raise InvalidCalendar(
                f"Calendar {identifier}: combined weekend rule leaves no business days"
            )

    @property
    def members(self) -> Tuple[HolidayCalendar, ...]:
        return self._members

    def is_holiday(self, d: date) -> bool:
        return any(c.is_holiday(d) for c in self._members)

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, JointCalendar):
            return NotImplemented
        return self._identifier == other._identifier and self._members == other._members

    def __hash__(self) -> int:
        return hash((self._identifier, self._members))

    def __repr__(self) -> str:
        ids = ", ".join(c.identifier for c in self._members)
        return f"JointCalendar(id={self._identifier}, members=[{ids}])"


def weekends_only(identifier: str = "WEEKENDS") -> HolidayCalendar:
    """Calendar with Saturday/Sunday weekends and no holidays."""
    return HolidayCalendar(identifier)


class CalendarRegistry:
    """
    Read-only mapping from calendar identifier to calendar.

    Built once from externally loaded calendar definitions and passed by
    reference to whatever needs to resolve a calendar id.
    """

    def __init__(self, calendars: Optional[Iterable[HolidayCalendar]] = None):
        entries: Dict[str, HolidayCalendar] = {}
        for cal in calendars or ():
            if cal.identifier in entries:
                raise InvalidCalendar(f"Duplicate calendar identifier: {cal.identifier}")
            entries[cal.identifier] = cal
        self._calendars: Mapping[str, HolidayCalendar] = entries

    def get(self, identifier: str) -> HolidayCalendar:
        """
        Resolve a calendar by identifier.

        Identifiers joined with "+" (e.g. "USNY+TARGET") resolve to a
        JointCalendar of the named members.
        """
        if identifier in self._calendars:
            return self._calendars[identifier]
        if "+" in identifier:
            parts = [p.strip() for p in identifier.split("+")]
            return JointCalendar(identifier, [self.get(p) for p in parts])
        raise InvalidCalendar(f"Unknown calendar: {identifier}")

    def __contains__(self, identifier: object) -> bool:
        return identifier in self._calendars

    def __iter__(self) -> Iterator[str]:
        return iter(self._calendars)

    def __len__(self) -> int:
        return len(self._calendars)


__all__ = [
    "HolidayCalendar",
    "JointCalendar",
    "CalendarRegistry",
    "weekends_only",
    "DEFAULT_WEEKEND",
    "RecurringHoliday",
    "FixedDateHoliday",
    "NthWeekdayHoliday",
    "LastWeekdayHoliday",
    "EasterRelatedHoliday",
    "EasterType",
    "WeekendAdjustment",
    "easter_sunday",
]
