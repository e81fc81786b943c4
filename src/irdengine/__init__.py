"""
irdengine: Interest Rate Derivatives Scheduling & Pricing Engine

A modular library for:
- Holiday calendars with recurring holiday rules, business day and day
  count conventions
- Accrual schedule generation with stub, direction and EOM rules
- Option expiry/delivery date generation
- Discount curves, term and daily compounded overnight indices, and a
  concurrent, single-flight index fixing cache
- European swaption pricing (Black'76 / Bachelier) with greeks

The library is pure computation over immutable snapshots; loading market
data, persistence and transport belong to the embedding application.
"""

__version__ = "0.1.0"

# Errors
from .errors import (
    RatesEngineError,
    InvalidScheduleParameters,
    InvalidDateRange,
    InvalidCalendar,
    UnsupportedConvention,
    NegativeVolatility,
    NonPositiveAnnuity,
    StaleCurve,
    CacheFetchFailed,
    TimedOut,
)

# Core modules
from .calendars import (
    HolidayCalendar,
    JointCalendar,
    CalendarRegistry,
    weekends_only,
    FixedDateHoliday,
    NthWeekdayHoliday,
    LastWeekdayHoliday,
    EasterRelatedHoliday,
    EasterType,
    WeekendAdjustment,
)
from .conventions import (
    DayCount,
    BusinessDayConvention,
    CompoundingConvention,
    Conventions,
    adjust,
    day_count_fraction,
    year_fraction,
)
from .dates import Tenor, Frequency, add_tenor
from .schedule import (
    StubConvention,
    GenerationDirection,
    SchedulePeriod,
    Schedule,
    ScheduleConfig,
    generate,
)
from .option_dates import ExpiryRule, IndexConventions, OptionDateGenerator, expiry_and_delivery

# Curves
from .curves import InterestRateCurve, CurveNode, InterpolationPolicy

# Fixings
from .fixings import (
    TermRateIndex,
    CompoundingRateIndex,
    FixingConvention,
    MissingFixing,
    CacheBackend,
    InMemoryCacheBackend,
    NullCacheBackend,
    FixingSource,
    CallableFixingSource,
    CurveFixingSource,
    FixingCacheConfig,
    IndexFixingCache,
)

# Options
from .options import (
    VolType,
    VolatilitySurface,
    FlatVolatilitySurface,
    ExerciseStyle,
    PayerReceiver,
    PricingModel,
    PricingResult,
    Swaption,
    SwaptionPricingEngine,
)

__all__ = [
    "__version__",
    # Errors
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
    # Core
    "HolidayCalendar",
    "JointCalendar",
    "CalendarRegistry",
    "weekends_only",
    "FixedDateHoliday",
    "NthWeekdayHoliday",
    "LastWeekdayHoliday",
    "EasterRelatedHoliday",
    "EasterType",
    "WeekendAdjustment",
    "DayCount",
    "BusinessDayConvention",
    "CompoundingConvention",
    "Conventions",
    "adjust",
    "day_count_fraction",
    "year_fraction",
    "Tenor",
    "Frequency",
    "add_tenor",
    "StubConvention",
    "GenerationDirection",
    "SchedulePeriod",
    "Schedule",
    "ScheduleConfig",
    "generate",
    "ExpiryRule",
    "IndexConventions",
    "OptionDateGenerator",
    "expiry_and_delivery",
    # Curves
    "InterestRateCurve",
    "CurveNode",
    "InterpolationPolicy",
    # Fixings
    "TermRateIndex",
    "CompoundingRateIndex",
    "FixingConvention",
    "MissingFixing",
    "CacheBackend",
    "InMemoryCacheBackend",
    "NullCacheBackend",
    "FixingSource",
    "CallableFixingSource",
    "CurveFixingSource",
    "FixingCacheConfig",
    "IndexFixingCache",
    # Options
    "VolType",
    "VolatilitySurface",
    "FlatVolatilitySurface",
    "ExerciseStyle",
    "PayerReceiver",
    "PricingModel",
    "PricingResult",
    "Swaption",
    "SwaptionPricingEngine",
]
