"""
Swaption pricing engine.

A swaption is an option to enter into an interest rate swap.
- Payer swaption: right to pay fixed, receive floating
- Receiver swaption: right to receive fixed, pay floating

Pricing:
    V_swaption = Notional * Annuity * BaseModel(S, K, T, sigma)

where:
    - Annuity = sum of fixed leg accrual fractions times payment date
      discount factors (PV01 per unit notional)
    - S = forward swap rate = (DF(start) - DF(maturity)) / Annuity
    - K = strike (fixed rate)
    - T = time to option expiry, ACT/365F from the valuation date
    - sigma = implied volatility from the surface

The forward uses DF(start) rather than 1 in the numerator. The two agree
only when the swap starts on the curve snapshot date; for the forward
starting underlying of a swaption DF(start) is what makes S the rate at
which the swap has zero value.

Option expiry and delivery follow the index conventions; the underlying
swap starts on the delivery date and its fixed leg comes from the
schedule generator. The underlying NPV compounds daily fixings when
the index is overnight (tenor 1D).
"""

from dataclasses import asdict, dataclass, field
from datetime import date
from enum import Enum
from typing import Any, Dict, List, Optional
import logging

from ..calendars import HolidayCalendar
from ..conventions import BusinessDayConvention, Conventions, DayCount, year_fraction
from ..dates import Frequency, Tenor, add_tenor
from ..errors import NegativeVolatility, NonPositiveAnnuity, UnsupportedConvention
from ..fixings.compounding import CompoundingRateIndex
from ..option_dates import ExpiryRule, IndexConventions, expiry_and_delivery
from ..schedule import GenerationDirection, Schedule, SchedulePeriod, StubConvention, generate
from .base_models import (
    bachelier_greeks, bachelier_price,
    black76_greeks, black76_price,
    shifted_black76_greeks, shifted_black76_price,
)
from .volatility import VolatilitySurface, VolType

logger = logging.getLogger(__name__)


class PayerReceiver(Enum):
    PAYER = "PAYER"
    RECEIVER = "RECEIVER"

    @classmethod
    def from_string(cls, s: str) -> "PayerReceiver":
        key = str(s).upper()
        if key in ("PAY", "PAYER"):
            return cls.PAYER
        if key in ("REC", "RECEIVE", "RECEIVER"):
            return cls.RECEIVER
        raise UnsupportedConvention(f"Unknown payer/receiver flag: {s}")

    @property
    def is_call(self) -> bool:
        return self == PayerReceiver.PAYER


class ExerciseStyle(Enum):
    EUROPEAN = "European"
    BERMUDAN = "Bermudan"
    AMERICAN = "American"

    @classmethod
    def from_string(cls, s: str) -> "ExerciseStyle":
        for member in cls:
            if member.value.upper() == str(s).upper():
                return member
        raise UnsupportedConvention(f"Unknown exercise style: {s}")


class PricingModel(Enum):
    """Closed-form model used for the premium and greeks."""
    BLACK76 = "Black76"
    BACHELIER = "Bachelier"

    @classmethod
    def from_string(cls, s: str) -> "PricingModel":
        key = str(s).upper().replace("_", "").replace("'", "").replace("-", "")
        if key in ("BLACK", "BLACK76", "LOGNORMAL"):
            return cls.BLACK76
        if key in ("BACHELIER", "NORMAL"):
            return cls.BACHELIER
        raise UnsupportedConvention(f"Unknown pricing model: {s}")

    @classmethod
    def for_vol_type(cls, vol_type: VolType) -> "PricingModel":
        return cls.BLACK76 if vol_type == VolType.LOGNORMAL else cls.BACHELIER

    @property
    def vol_type(self) -> VolType:
        return VolType.LOGNORMAL if self == PricingModel.BLACK76 else VolType.NORMAL


@dataclass(frozen=True)
class Swaption:
    """
    European swaption terms.

    Attributes:
        notional: Swap notional
        fixed_rate: Strike, the fixed rate of the underlying swap
        option_tenor: Time from trade date to expiry (e.g. "1Y")
        swap_tenor: Underlying swap length from delivery (e.g. "5Y")
        trade_date: Trade date
        payer_receiver: PAYER or RECEIVER
        exercise_style: Only EUROPEAN is priced
        currency: Currency code
        expiry_date: Explicit expiry, overriding option_tenor
        fixed_frequency: Fixed leg payment frequency
        fixed_day_count: Fixed leg accrual day count
        roll_convention: Fixed leg business day convention
        stub_convention: Fixed leg stub placement
        generation_direction: Fixed leg generation direction
        end_of_month: EOM rule on the fixed leg
        payment_lag: Business days from accrual end to payment
        float_frequency: Floating leg frequency (underlying NPV only)
        index_conventions: Conventions of the floating index
    """
    notional: float
    fixed_rate: float
    option_tenor: str
    swap_tenor: str
    trade_date: date
    payer_receiver: PayerReceiver = PayerReceiver.PAYER
    exercise_style: ExerciseStyle = ExerciseStyle.EUROPEAN
    currency: str = "USD"
    expiry_date: Optional[date] = None
    fixed_frequency: Frequency = Frequency.ANNUAL
    fixed_day_count: DayCount = DayCount.ACT_360
    roll_convention: BusinessDayConvention = BusinessDayConvention.MODIFIED_FOLLOWING
    stub_convention: StubConvention = StubConvention.SHORT_FRONT
    generation_direction: GenerationDirection = GenerationDirection.BACKWARD
    end_of_month: bool = False
    payment_lag: int = 0
    float_frequency: Frequency = Frequency.QUARTERLY
    index_conventions: IndexConventions = field(default_factory=IndexConventions.usd_sofr)

    def __post_init__(self):
        if self.notional <= 0:
            raise ValueError(f"Notional must be positive, got {self.notional}")
        if not Tenor.parse(self.swap_tenor).is_positive:
            raise ValueError(f"Swap tenor must be positive, got {self.swap_tenor}")

    @classmethod
    def from_conventions(
        cls,
        conventions: Conventions,
        index_conventions: IndexConventions,
        **terms
    ) -> "Swaption":
        """Swaption whose fixed leg follows a Conventions preset."""
        return cls(
            fixed_frequency=conventions.frequency,
            fixed_day_count=conventions.day_count,
            roll_convention=conventions.business_day,
            end_of_month=conventions.end_of_month,
            index_conventions=index_conventions,
            **terms,
        )

    @property
    def is_payer(self) -> bool:
        return self.payer_receiver.is_call


@dataclass
class PricingResult:
    """Result from swaption pricing. Greeks are per the full notional."""
    value: float
    forward_rate: float
    annuity: float
    delta: float
    vega: float
    gamma: float
    theta: float
    implied_vol: float
    model: PricingModel
    expiry_date: date
    delivery_date: date
    maturity_date: date
    time_to_expiry: float
    underlying_npv: Optional[float] = None

    def to_dict(self) -> Dict[str, Any]:
        d = asdict(self)
        d["model"] = self.model.value
        return d


class SwaptionPricingEngine:
    """
    Prices European swaptions off a curve snapshot and a vol surface.

    Checks run in a fixed order and fail fast: exercise style, option
    dates, volatility (before any curve or fixing access), curve
    snapshot, fixed leg schedule, annuity.

    Args:
        calendar: Calendar for option dates and the underlying schedule
        model: Pricing model; inferred from the surface vol type when None
        fixing_cache: Fixing cache used to value the underlying swap
        expiry_rule: Expiry/delivery ordering for tenor-quoted options
    """

    def __init__(
        self,
        calendar: HolidayCalendar,
        model: Optional[PricingModel] = None,
        fixing_cache=None,
        expiry_rule: ExpiryRule = ExpiryRule.EXPIRY_TO_DELIVERY,
    ):
        self.calendar = calendar
        self.model = model
        self.fixing_cache = fixing_cache
        self.expiry_rule = expiry_rule

    def option_dates(self, swaption: Swaption):
        """Return (expiry_date, delivery_date)."""
        lag = swaption.index_conventions.settlement_lag
        if swaption.expiry_date is not None:
            return swaption.expiry_date, self.calendar.shift_business_days(swaption.expiry_date, lag)
        return expiry_and_delivery(
            swaption.trade_date, swaption.option_tenor, self.calendar,
            swaption.index_conventions, expiry_rule=self.expiry_rule,
        )

    def fixed_leg(self, swaption: Swaption, delivery_date: date) -> Schedule:
        maturity = add_tenor(delivery_date, swaption.swap_tenor, swaption.end_of_month)
        return generate(
            delivery_date, maturity, swaption.fixed_frequency, swaption.roll_convention,
            swaption.stub_convention, swaption.generation_direction, self.calendar,
            day_count=swaption.fixed_day_count, end_of_month=swaption.end_of_month,
            payment_lag=swaption.payment_lag,
        )

    def _resolve_model(self, surface: VolatilitySurface) -> PricingModel:
        if self.model is None:
            return PricingModel.for_vol_type(surface.vol_type)
        if self.model.vol_type != surface.vol_type:
            raise UnsupportedConvention(
                f"{self.model.value} model cannot use {surface.vol_type.value} vols"
            )
        return self.model

    def price(
        self,
        swaption: Swaption,
        curve,
        volatility_surface: VolatilitySurface,
        valuation_date: date
    ) -> PricingResult:
        """
        Price a swaption.

        Args:
            swaption: Trade terms
            curve: Discount curve snapshot for valuation_date
            volatility_surface: Implied vol surface
            valuation_date: Valuation date

        Returns:
            PricingResult

        Raises:
            UnsupportedConvention: Non-European exercise or model/vol mismatch
            NegativeVolatility: Looked-up vol is not strictly positive
            StaleCurve: Curve snapshot differs from valuation_date
            NonPositiveAnnuity: Fixed leg annuity <= 0
        """
        if swaption.exercise_style != ExerciseStyle.EUROPEAN:
            raise UnsupportedConvention(
                f"{swaption.exercise_style.value} exercise is not supported"
            )
        model = self._resolve_model(volatility_surface)

        expiry, delivery = self.option_dates(swaption)
        T = year_fraction(valuation_date, expiry, DayCount.ACT_365F)

        K = swaption.fixed_rate
        vol = volatility_surface.vol(expiry, swaption.swap_tenor, K)
        if not vol > 0:
            raise NegativeVolatility(vol)

        curve.check_snapshot(valuation_date)

        schedule = self.fixed_leg(swaption, delivery)
        annuity = sum(p.year_fraction * curve.discount_factor(p.payment_date) for p in schedule)
        if not annuity > 0:
            raise NonPositiveAnnuity(annuity)

        S = (curve.discount_factor(schedule.start_date)
             - curve.discount_factor(schedule.end_date)) / annuity

        logger.debug(
            "Pricing %s %sx%s K=%.6f: expiry=%s T=%.6f F=%.6f annuity=%.6f vol=%.6f (%s)",
            swaption.payer_receiver.value, swaption.option_tenor, swaption.swap_tenor,
            K, expiry, T, S, annuity, vol, model.value,
        )

        is_call = swaption.is_payer
        shift = volatility_surface.shift
        if model == PricingModel.BACHELIER:
            unit_price = bachelier_price(S, K, T, vol, annuity, is_call)
            greeks = bachelier_greeks(S, K, T, vol, annuity, is_call)
        elif shift > 0:
            unit_price = shifted_black76_price(S, K, T, vol, shift, annuity, is_call)
            greeks = shifted_black76_greeks(S, K, T, vol, shift, annuity, is_call)
        else:
            unit_price = black76_price(S, K, T, vol, annuity, is_call)
            greeks = black76_greeks(S, K, T, vol, annuity, is_call)

        notional = swaption.notional
        underlying_npv = None
        if self.fixing_cache is not None:
            underlying_npv = self.underlying_npv(swaption, curve, schedule)

        return PricingResult(
            value=notional * unit_price,
            forward_rate=S,
            annuity=annuity,
            delta=notional * greeks['delta'],
            vega=notional * greeks['vega'],
            gamma=notional * greeks['gamma'],
            theta=notional * greeks['theta'],
            implied_vol=vol,
            model=model,
            expiry_date=expiry,
            delivery_date=delivery,
            maturity_date=schedule.end_date,
            time_to_expiry=T,
            underlying_npv=underlying_npv,
        )

    def floating_fixings(self, swaption: Swaption, fixed_leg: Schedule) -> List[date]:
        """
        Fixing dates the floating leg observes.

        A term index fixes once per period, in period order. An overnight
        index observes every accrual business day, returned sorted.
        """
        periods = self._floating_periods(swaption, fixed_leg)
        if swaption.index_conventions.is_overnight:
            index = self._overnight_index(swaption)
            return sorted({a.fixing_date for fp in periods
                           for a in index.daily_accruals(fp.period.adjusted_start,
                                                         fp.period.adjusted_end)})
        return [fp.fixing_date for fp in periods]

    def _overnight_index(self, swaption: Swaption) -> CompoundingRateIndex:
        return CompoundingRateIndex.from_conventions(swaption.index_conventions, self.calendar)

    def _floating_periods(self, swaption: Swaption, fixed_leg: Schedule):
        idx = swaption.index_conventions
        float_leg = generate(
            fixed_leg.periods[0].unadjusted_start, fixed_leg.periods[-1].unadjusted_end,
            swaption.float_frequency, swaption.roll_convention,
            swaption.stub_convention, swaption.generation_direction, self.calendar,
            day_count=idx.day_count, end_of_month=swaption.end_of_month,
            payment_lag=swaption.payment_lag,
        )
        return [
            _FloatingPeriod(p, self.calendar.shift_business_days(p.adjusted_start, -idx.settlement_lag))
            for p in float_leg
        ]

    def underlying_npv(self, swaption: Swaption, curve, fixed_leg: Schedule) -> float:
        """
        NPV of the underlying forward swap from the holder's side.

        Floating coupons use fixings from the fixing cache, keyed by the
        index id and fixing date. A term index contributes one fixing per
        period; an overnight index compounds its daily fixings over each
        accrual period.
        """
        index_id = swaption.index_conventions.index_id
        periods = self._floating_periods(swaption, fixed_leg)

        if swaption.index_conventions.is_overnight:
            index = self._overnight_index(swaption)
            accruals = [index.daily_accruals(fp.period.adjusted_start, fp.period.adjusted_end)
                        for fp in periods]
            dates = sorted({a.fixing_date for steps in accruals for a in steps})
            fixings = self.fixing_cache.get_fixings(index_id, dates)
            # Compounded coupon per unit notional is factor - 1
            float_pv = sum(
                (index.compound_factor(steps, fixings) - 1.0)
                * curve.discount_factor(fp.period.payment_date)
                for fp, steps in zip(periods, accruals)
            )
        else:
            fixings = self.fixing_cache.get_fixings(index_id, [fp.fixing_date for fp in periods])
            float_pv = sum(
                fixings[fp.fixing_date] * fp.period.year_fraction
                * curve.discount_factor(fp.period.payment_date)
                for fp in periods
            )

        fixed_pv = swaption.fixed_rate * sum(
            p.year_fraction * curve.discount_factor(p.payment_date) for p in fixed_leg
        )
        sign = 1.0 if swaption.is_payer else -1.0
        return sign * swaption.notional * (float_pv - fixed_pv)


@dataclass(frozen=True)
class _FloatingPeriod:
    period: SchedulePeriod
    fixing_date: date


__all__ = [
    "PayerReceiver",
    "ExerciseStyle",
    "PricingModel",
    "Swaption",
    "PricingResult",
    "SwaptionPricingEngine",
]
