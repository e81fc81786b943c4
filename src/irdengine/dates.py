"""
Date utilities for rates calculations.

Provides:
- Tenor parsing and calendar-day tenor arithmetic
- Frequency (regular period length of a schedule)
- Month-end helpers

All arithmetic here is calendar arithmetic only; business day rolling
lives in the conventions module.
"""

from dataclasses import dataclass
from datetime import date, timedelta
from enum import Enum
from typing import Optional, Tuple, Union
import calendar
import re

from .errors import InvalidScheduleParameters, UnsupportedConvention


# Tenor regex pattern: optional sign + number + unit (D/W/M/Y)
TENOR_PATTERN = re.compile(r'^([+-]?\d+)([DWMY])$', re.IGNORECASE)


def days_in_month(year: int, month: int) -> int:
    """Return number of days in a month."""
    return calendar.monthrange(year, month)[1]


def end_of_month(d: date) -> date:
    """Last calendar day of d's month."""
    return date(d.year, d.month, days_in_month(d.year, d.month))


def is_end_of_month(d: date) -> bool:
    return d.day == days_in_month(d.year, d.month)


def add_months(
    start: date,
    months: int,
    end_of_month_rule: bool = False,
    roll_day: Optional[int] = None
) -> date:
    """
    Add calendar months to a date.

    The day of month (or ``roll_day`` when given) is preserved where
    possible and clamped to the target month's length otherwise
    (Jan 31 + 1M = Feb 28/29). With ``end_of_month_rule`` the result is
    always the last day of the target month.
    """
    total = start.month - 1 + months
    year = start.year + total // 12
    month = total % 12 + 1
    last = days_in_month(year, month)
    if end_of_month_rule:
        return date(year, month, last)
    return date(year, month, min(roll_day or start.day, last))


@dataclass(frozen=True)
class Tenor:
    """
    A signed period such as 3M, 2Y or -2D.

    Attributes:
        amount: Number of units (may be negative or zero)
        unit: One of D/W/M/Y
    """
    amount: int
    unit: str

    def __post_init__(self):
        if self.unit not in ("D", "W", "M", "Y"):
            raise InvalidScheduleParameters(f"Unknown tenor unit: {self.unit}")

    @classmethod
    def parse(cls, tenor: Union[str, "Tenor"]) -> "Tenor":
        """
        Parse a tenor string into a Tenor.

        Args:
            tenor: Tenor string like "1D", "3M", "2Y"

        Returns:
            Tenor

        Raises:
            InvalidScheduleParameters: If tenor format is invalid
        """
        if isinstance(tenor, Tenor):
            return tenor
        match = TENOR_PATTERN.match(str(tenor).upper().strip())
        if not match:
            raise InvalidScheduleParameters(
                f"Invalid tenor format: {tenor}. Expected format like '3M', '2Y'"
            )
        return cls(int(match.group(1)), match.group(2).upper())

    @property
    def is_positive(self) -> bool:
        return self.amount > 0

    @property
    def months(self) -> int:
        """Length in months; only defined for M and Y tenors."""
        if self.unit == "M":
            return self.amount
        if self.unit == "Y":
            return 12 * self.amount
        raise InvalidScheduleParameters(f"Tenor {self} has no whole-month length")

    @property
    def is_month_based(self) -> bool:
        return self.unit in ("M", "Y")

    def to_years(self) -> float:
        """Approximate length in years (D = 1/365, W = 7/365)."""
        if self.unit == "D":
            return self.amount / 365.0
        if self.unit == "W":
            return self.amount * 7 / 365.0
        if self.unit == "M":
            return self.amount / 12.0
        return float(self.amount)

    def __neg__(self) -> "Tenor":
        return Tenor(-self.amount, self.unit)

    def __mul__(self, n: int) -> "Tenor":
        return Tenor(self.amount * n, self.unit)

    __rmul__ = __mul__

    def __str__(self) -> str:
        return f"{self.amount}{self.unit}"


def add_tenor(
    start: date,
    tenor: Union[str, "Tenor"],
    end_of_month_rule: bool = False,
    roll_day: Optional[int] = None
) -> date:
    """
    Add a tenor to a date using calendar days.

    Args:
        start: Starting date
        tenor: Tenor string or Tenor (e.g. "1W", "3M", "2Y")
        end_of_month_rule: Snap month/year results to the end of month
        roll_day: Day of month for month/year results, clamped to the
            month length (defaults to the start day)

    Returns:
        End date (not business-day adjusted)
    """
    t = Tenor.parse(tenor)
    if t.unit == "D":
        return start + timedelta(days=t.amount)
    if t.unit == "W":
        return start + timedelta(weeks=t.amount)
    return add_months(start, t.months, end_of_month_rule, roll_day)


def parse_tenor(tenor: str) -> Tuple[int, str]:
    """Parse a tenor string into (amount, unit)."""
    t = Tenor.parse(tenor)
    return t.amount, t.unit


def tenor_to_years(tenor: Union[str, "Tenor"]) -> float:
    return Tenor.parse(tenor).to_years()


class Frequency(Enum):
    """Regular schedule period length, in months."""
    MONTHLY = 1
    QUARTERLY = 3
    SEMI_ANNUAL = 6
    ANNUAL = 12

    @property
    def months(self) -> int:
        return self.value

    @property
    def per_year(self) -> int:
        return 12 // self.value

    @property
    def tenor(self) -> Tenor:
        return Tenor(self.value, "M")

    @classmethod
    def from_string(cls, s: str) -> "Frequency":
        """Parse "3M", "1Y", "QUARTERLY", "SEMI" and similar."""
        key = str(s).upper().replace(" ", "").replace("-", "_")
        names = {
            "MONTHLY": cls.MONTHLY,
            "QUARTERLY": cls.QUARTERLY,
            "SEMI": cls.SEMI_ANNUAL,
            "SEMIANNUAL": cls.SEMI_ANNUAL,
            "SEMI_ANNUAL": cls.SEMI_ANNUAL,
            "ANNUAL": cls.ANNUAL,
        }
        if key in names:
            return names[key]
        try:
            t = Tenor.parse(key)
        except InvalidScheduleParameters:
            raise UnsupportedConvention(f"Unknown frequency: {s}") from None
        if t.is_month_based:
            for member in cls:
                if member.value == t.months:
                    return member
        raise UnsupportedConvention(f"Unknown frequency: {s}")

    @classmethod
    def from_per_year(cls, n: int) -> "Frequency":
        """From payments per year (1, 2, 4, 12)."""
        for member in cls:
            if member.per_year == n and 12 % n == 0:
                return member
        raise UnsupportedConvention(f"Unsupported payments per year: {n}")


__all__ = [
    "Tenor",
    "Frequency",
    "add_tenor",
    "add_months",
    "parse_tenor",
    "tenor_to_years",
    "days_in_month",
    "end_of_month",
    "is_end_of_month",
]
