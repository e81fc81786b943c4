"""
Schedule generation for swap legs.

Provides:
- StubConvention / GenerationDirection enumerations
- SchedulePeriod and Schedule containers
- generate(): accrual/payment date sequence with stub, EOM and
  business day handling
- ScheduleConfig: the externally supplied schedule parameters

Regular boundaries are always computed as ``anchor + k * frequency``
from the anchor date, never by chaining period ends, so month-end
clamping (Jan 31 -> Feb 28) does not drift into later periods.
"""

from dataclasses import dataclass
from datetime import date
from enum import Enum
from typing import Any, Dict, Iterator, List, Mapping, Optional, Tuple, Union
import logging

import pandas as pd

from .calendars import CalendarRegistry, HolidayCalendar
from .conventions import BusinessDayConvention, DayCount, adjust, day_count_fraction
from .dates import Frequency, Tenor, add_tenor, is_end_of_month
from .errors import InvalidScheduleParameters, UnsupportedConvention

logger = logging.getLogger(__name__)


class StubConvention(Enum):
    """Placement and length of the irregular period."""
    SHORT_FRONT = "ShortFront"
    SHORT_BACK = "ShortBack"
    LONG_FRONT = "LongFront"
    LONG_BACK = "LongBack"
    NONE = "None"

    @classmethod
    def from_string(cls, s: str) -> "StubConvention":
        key = str(s).upper().replace(" ", "").replace("_", "")
        for member in cls:
            if member.value.upper() == key or member.name.replace("_", "") == key:
                return member
        raise UnsupportedConvention(f"Unknown stub convention: {s}")

    @property
    def is_front(self) -> bool:
        return self in (StubConvention.SHORT_FRONT, StubConvention.LONG_FRONT)

    @property
    def is_back(self) -> bool:
        return self in (StubConvention.SHORT_BACK, StubConvention.LONG_BACK)

    @property
    def is_long(self) -> bool:
        return self in (StubConvention.LONG_FRONT, StubConvention.LONG_BACK)


class GenerationDirection(Enum):
    """Which end of the schedule regular periods are stepped from."""
    FORWARD = "Forward"
    BACKWARD = "Backward"

    @classmethod
    def from_string(cls, s: str) -> "GenerationDirection":
        key = str(s).strip().upper()
        for member in cls:
            if member.name == key:
                return member
        raise UnsupportedConvention(f"Unknown generation direction: {s}")


@dataclass(frozen=True)
class SchedulePeriod:
    """One accrual period of a schedule."""
    unadjusted_start: date
    unadjusted_end: date
    adjusted_start: date
    adjusted_end: date
    payment_date: date
    year_fraction: float
    is_stub: bool = False

    def to_dict(self) -> Dict[str, Any]:
        return {
            "unadjusted_start": self.unadjusted_start,
            "unadjusted_end": self.unadjusted_end,
            "adjusted_start": self.adjusted_start,
            "adjusted_end": self.adjusted_end,
            "payment_date": self.payment_date,
            "year_fraction": self.year_fraction,
            "is_stub": self.is_stub,
        }


@dataclass(frozen=True)
class Schedule:
    """
    Ordered accrual periods.

    Attributes:
        periods: Contiguous periods, earliest first
        day_count: Day count used for the period fractions
        stub_convention: Stub convention the schedule was built with
    """
    periods: Tuple[SchedulePeriod, ...]
    day_count: DayCount
    stub_convention: StubConvention = StubConvention.NONE

    def __iter__(self) -> Iterator[SchedulePeriod]:
        return iter(self.periods)

    def __len__(self) -> int:
        return len(self.periods)

    def __getitem__(self, i: int) -> SchedulePeriod:
        return self.periods[i]

    @property
    def stub_index(self) -> Optional[int]:
        for i, p in enumerate(self.periods):
            if p.is_stub:
                return i
        return None

    @property
    def has_stub(self) -> bool:
        return self.stub_index is not None

    @property
    def unadjusted_dates(self) -> List[date]:
        return [self.periods[0].unadjusted_start] + [p.unadjusted_end for p in self.periods]

    @property
    def adjusted_dates(self) -> List[date]:
        return [self.periods[0].adjusted_start] + [p.adjusted_end for p in self.periods]

    @property
    def payment_dates(self) -> List[date]:
        return [p.payment_date for p in self.periods]

    @property
    def year_fractions(self) -> List[float]:
        return [p.year_fraction for p in self.periods]

    @property
    def total_year_fraction(self) -> float:
        return sum(p.year_fraction for p in self.periods)

    @property
    def start_date(self) -> date:
        return self.periods[0].adjusted_start

    @property
    def end_date(self) -> date:
        return self.periods[-1].adjusted_end

    def to_frame(self) -> pd.DataFrame:
        """Schedule as a DataFrame, one row per period."""
        return pd.DataFrame([p.to_dict() for p in self.periods])


FrequencyLike = Union[Frequency, Tenor, str]


def _as_tenor(frequency: FrequencyLike) -> Tenor:
    if isinstance(frequency, Frequency):
        tenor = frequency.tenor
    elif isinstance(frequency, Tenor):
        tenor = frequency
    else:
        try:
            tenor = Tenor.parse(frequency)
        except InvalidScheduleParameters:
            tenor = Frequency.from_string(frequency).tenor
    if not tenor.is_positive:
        raise InvalidScheduleParameters(f"Frequency must be positive, got {tenor}")
    return tenor


def _resolve_direction(
    stub_convention: StubConvention,
    generation_direction: GenerationDirection
) -> GenerationDirection:
    """Front stubs come from backward generation, back stubs from forward."""
    if stub_convention.is_front:
        return GenerationDirection.BACKWARD
    if stub_convention.is_back:
        return GenerationDirection.FORWARD
    return generation_direction


def _roll_day(anchor: date, other: date, tenor: Tenor, eom: bool) -> Optional[int]:
    """
    Day of month regular boundaries roll on when stepping from ``anchor``.

    A month-end anchor stands in for the longer day of the opposite
    anchor (Nov 30 stepped from an Aug 31 start rolls on the 31st).
    """
    if eom or not tenor.is_month_based:
        return None
    if is_end_of_month(anchor) and other.day > anchor.day:
        return other.day
    return None


def _unadjusted_boundaries(
    effective_date: date,
    termination_date: date,
    tenor: Tenor,
    direction: GenerationDirection,
    stub_convention: StubConvention,
    end_of_month: bool,
) -> Tuple[List[date], bool]:
    """
    Unadjusted period boundaries and whether a stub was needed.

    Returns dates in ascending order, both anchors included.
    """
    eom = end_of_month and tenor.is_month_based
    regular: List[date] = []
    k = 1

    if direction == GenerationDirection.FORWARD:
        roll = _roll_day(effective_date, termination_date, tenor, eom)
        while True:
            d = add_tenor(effective_date, tenor * k, eom, roll)
            if d >= termination_date:
                break
            regular.append(d)
            k += 1
        has_stub = d != termination_date
        if has_stub and stub_convention.is_long and regular:
            # Fold the short remainder into the last regular period
            regular.pop()
        dates = [effective_date] + regular + [termination_date]
    else:
        roll = _roll_day(termination_date, effective_date, tenor, eom)
        while True:
            d = add_tenor(termination_date, tenor * -k, eom, roll)
            if d <= effective_date:
                break
            regular.append(d)
            k += 1
        has_stub = d != effective_date
        if has_stub and stub_convention.is_long and regular:
            regular.pop()
        regular.reverse()
        dates = [effective_date] + regular + [termination_date]

    return dates, has_stub


def _drop_collisions(
    unadjusted: List[date],
    adjusted: List[date]
) -> Tuple[List[date], List[date]]:
    """Remove interior boundaries whose adjusted date does not advance."""
    keep_u = [unadjusted[0]]
    keep_a = [adjusted[0]]
    last = len(unadjusted) - 1
    for i in range(1, len(unadjusted)):
        if adjusted[i] > keep_a[-1]:
            keep_u.append(unadjusted[i])
            keep_a.append(adjusted[i])
        elif i == last and len(keep_u) > 1:
            # Termination wins over the interior boundary it collided with
            keep_u[-1] = unadjusted[i]
            keep_a[-1] = adjusted[i]
    return keep_u, keep_a


def _icma_frequency(tenor: Tenor) -> Frequency:
    if not tenor.is_month_based:
        raise UnsupportedConvention(f"ACT/ACT ICMA needs a month-based frequency, got {tenor}")
    try:
        return Frequency(tenor.months)
    except ValueError:
        raise UnsupportedConvention(
            f"ACT/ACT ICMA needs a frequency dividing the year, got {tenor}"
        ) from None


def _reference_period(
    start: date,
    end: date,
    tenor: Tenor,
    is_stub: bool,
    direction: GenerationDirection,
    eom: bool,
) -> Tuple[date, date]:
    """Regular coupon period a (possibly stub) accrual period is measured against."""
    if not is_stub:
        return start, end
    if direction == GenerationDirection.BACKWARD:
        return add_tenor(end, -tenor, eom), end
    return start, add_tenor(start, tenor, eom)


def generate(
    effective_date: date,
    termination_date: date,
    frequency: FrequencyLike,
    roll_convention: BusinessDayConvention,
    stub_convention: StubConvention,
    generation_direction: GenerationDirection,
    calendar: HolidayCalendar,
    day_count: DayCount = DayCount.ACT_360,
    end_of_month: bool = False,
    payment_lag: int = 0,
    payment_convention: Optional[BusinessDayConvention] = None,
) -> Schedule:
    """
    Generate an accrual schedule between two dates.

    Args:
        effective_date: Unadjusted schedule start
        termination_date: Unadjusted schedule end
        frequency: Regular period length (Frequency, Tenor or "3M")
        roll_convention: Business day adjustment of period boundaries
        stub_convention: Placement and length of the irregular period
        generation_direction: Step direction when stub_convention is NONE
        calendar: Holiday calendar for adjustments
        day_count: Day count for period year fractions
        end_of_month: Force generated boundaries to month end
        payment_lag: Business days from period end to payment
        payment_convention: Adjustment of payment dates (defaults to
            roll_convention)

    Returns:
        Schedule

    Raises:
        InvalidScheduleParameters: termination <= effective, bad frequency
            or negative payment lag
    """
    if termination_date <= effective_date:
        raise InvalidScheduleParameters(
            f"Termination date {termination_date.isoformat()} must be after "
            f"effective date {effective_date.isoformat()}"
        )
    if payment_lag < 0:
        raise InvalidScheduleParameters(f"Payment lag must be non-negative, got {payment_lag}")

    tenor = _as_tenor(frequency)
    direction = _resolve_direction(stub_convention, generation_direction)
    pay_conv = payment_convention or roll_convention

    unadjusted, has_stub = _unadjusted_boundaries(
        effective_date, termination_date, tenor, direction, stub_convention, end_of_month
    )
    adjusted = [adjust(d, calendar, roll_convention) for d in unadjusted]
    unadjusted, adjusted = _drop_collisions(unadjusted, adjusted)

    if len(adjusted) < 2:
        raise InvalidScheduleParameters(
            f"Effective {effective_date.isoformat()} and termination "
            f"{termination_date.isoformat()} adjust onto the same business day"
        )

    n_periods = len(adjusted) - 1
    stub_at = None
    if has_stub:
        stub_at = 0 if direction == GenerationDirection.BACKWARD else n_periods - 1

    use_unadjusted = day_count.uses_unadjusted_dates
    icma = day_count == DayCount.ACT_ACT_ICMA
    icma_frequency = _icma_frequency(tenor) if icma else None
    eom = end_of_month and tenor.is_month_based
    periods = []
    for i in range(n_periods):
        if icma:
            ref_start, ref_end = _reference_period(
                unadjusted[i], unadjusted[i + 1], tenor, i == stub_at, direction, eom
            )
            yf = day_count_fraction(unadjusted[i], unadjusted[i + 1], day_count,
                                    reference_start=ref_start, reference_end=ref_end,
                                    frequency=icma_frequency)
        elif use_unadjusted:
            yf = day_count_fraction(unadjusted[i], unadjusted[i + 1], day_count,
                                    termination=unadjusted[-1])
        else:
            yf = day_count_fraction(adjusted[i], adjusted[i + 1], day_count,
                                    termination=adjusted[-1])
        payment = calendar.shift_business_days(adjusted[i + 1], payment_lag)
        payment = adjust(payment, calendar, pay_conv)
        periods.append(SchedulePeriod(
            unadjusted_start=unadjusted[i],
            unadjusted_end=unadjusted[i + 1],
            adjusted_start=adjusted[i],
            adjusted_end=adjusted[i + 1],
            payment_date=payment,
            year_fraction=yf,
            is_stub=(i == stub_at),
        ))

    logger.debug(
        "Generated %d periods %s -> %s every %s (%s, stub=%s)",
        n_periods, effective_date, termination_date, tenor,
        direction.value, stub_at,
    )
    return Schedule(periods=tuple(periods), day_count=day_count, stub_convention=stub_convention)


def _as_date(value: Union[date, str]) -> date:
    if isinstance(value, date):
        return value
    return date.fromisoformat(str(value))


def _enum(enum_cls, value):
    if isinstance(value, enum_cls):
        return value
    return enum_cls.from_string(value)


@dataclass(frozen=True)
class ScheduleConfig:
    """
    Schedule parameters as supplied by external configuration.

    ``roll_convention`` adjusts period boundaries and
    ``business_day_convention`` adjusts payment dates.
    """
    effective_date: date
    termination_date: date
    frequency: Frequency
    roll_convention: BusinessDayConvention
    stub_convention: StubConvention
    generation_direction: GenerationDirection
    calendar_id: str
    day_count_convention: DayCount
    business_day_convention: BusinessDayConvention
    end_of_month: bool = False
    payment_lag: int = 0

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "ScheduleConfig":
        """
        Build from a plain mapping of strings (as parsed by the loader).

        Raises:
            InvalidScheduleParameters: If a required key is missing
            UnsupportedConvention: If a convention name is unknown
        """
        required = (
            "effective_date", "termination_date", "frequency", "roll_convention",
            "stub_convention", "generation_direction", "calendar_id",
            "day_count_convention", "business_day_convention",
        )
        missing = [k for k in required if k not in data]
        if missing:
            raise InvalidScheduleParameters(f"Missing schedule configuration keys: {missing}")

        return cls(
            effective_date=_as_date(data["effective_date"]),
            termination_date=_as_date(data["termination_date"]),
            frequency=_enum(Frequency, data["frequency"]),
            roll_convention=_enum(BusinessDayConvention, data["roll_convention"]),
            stub_convention=_enum(StubConvention, data["stub_convention"]),
            generation_direction=_enum(GenerationDirection, data["generation_direction"]),
            calendar_id=str(data["calendar_id"]),
            day_count_convention=_enum(DayCount, data["day_count_convention"]),
            business_day_convention=_enum(BusinessDayConvention, data["business_day_convention"]),
            end_of_month=bool(data.get("end_of_month", False)),
            payment_lag=int(data.get("payment_lag", 0)),
        )

    def to_dict(self) -> Dict[str, Any]:
        return {
            "effective_date": self.effective_date.isoformat(),
            "termination_date": self.termination_date.isoformat(),
            "frequency": self.frequency.name,
            "roll_convention": self.roll_convention.value,
            "stub_convention": self.stub_convention.value,
            "generation_direction": self.generation_direction.value,
            "calendar_id": self.calendar_id,
            "day_count_convention": self.day_count_convention.value,
            "business_day_convention": self.business_day_convention.value,
            "end_of_month": self.end_of_month,
            "payment_lag": self.payment_lag,
        }

    def generate(self, calendars: CalendarRegistry) -> Schedule:
        """Generate the schedule, resolving calendar_id in the registry."""
        return generate(
            effective_date=self.effective_date,
            termination_date=self.termination_date,
            frequency=self.frequency,
            roll_convention=self.roll_convention,
            stub_convention=self.stub_convention,
            generation_direction=self.generation_direction,
            calendar=calendars.get(self.calendar_id),
            day_count=self.day_count_convention,
            end_of_month=self.end_of_month,
            payment_lag=self.payment_lag,
            payment_convention=self.business_day_convention,
        )


__all__ = [
    "StubConvention",
    "GenerationDirection",
    "SchedulePeriod",
    "Schedule",
    "ScheduleConfig",
    "generate",
]
