"""
Tests for the European swaption pricing engine.
"""

from datetime import date

import numpy as np
import pytest
from scipy.stats import norm

from irdengine.calendars import weekends_only
from irdengine.curves import InterestRateCurve
from irdengine.errors import (
    NegativeVolatility,
    NonPositiveAnnuity,
    StaleCurve,
    UnsupportedConvention,
)
from irdengine.fixings import (
    CompoundingRateIndex,
    CurveFixingSource,
    FixingCacheConfig,
    IndexFixingCache,
    TermRateIndex,
)
from irdengine.option_dates import IndexConventions
from irdengine.options import (
    ExerciseStyle,
    FlatVolatilitySurface,
    PayerReceiver,
    PricingModel,
    Swaption,
    SwaptionPricingEngine,
    VolType,
)

VALUATION = date(2024, 1, 15)
NOTIONAL = 10_000_000


class CountingCurve:
    """Wraps a curve and counts every attribute lookup on it."""

    def __init__(self, curve):
        self._curve = curve
        self.calls = 0

    def __getattr__(self, name):
        self.calls += 1
        return getattr(self._curve, name)


class ZeroDiscountCurve:
    """Curve whose discount factors are all zero."""

    snapshot_date = VALUATION

    def check_snapshot(self, valuation_date):
        pass

    def discount_factor(self, t):
        return 0.0


class CountingFixingCache:
    def __init__(self):
        self.calls = 0

    def get_fixings(self, index, fixing_dates, timeout=None):
        self.calls += 1
        return {d: 0.04 for d in fixing_dates}


@pytest.fixture
def cal():
    return weekends_only()


@pytest.fixture
def curve():
    return InterestRateCurve.flat(VALUATION, 0.04)


@pytest.fixture
def engine(cal):
    return SwaptionPricingEngine(cal)


def make_swaption(strike=0.04, **terms):
    params = dict(
        notional=NOTIONAL,
        fixed_rate=strike,
        option_tenor="1Y",
        swap_tenor="5Y",
        trade_date=VALUATION,
    )
    params.update(terms)
    return Swaption(**params)


def atm_strike(engine, curve, **terms):
    result = engine.price(make_swaption(**terms), curve, FlatVolatilitySurface(0.20), VALUATION)
    return result.forward_rate


class TestSwaptionDates:
    """Option dates and underlying schedule."""

    def test_dates(self, engine, curve):
        result = engine.price(make_swaption(), curve, FlatVolatilitySurface(0.20), VALUATION)
        assert result.expiry_date == date(2025, 1, 15)
        assert result.delivery_date == date(2025, 1, 17)
        assert result.maturity_date == date(2030, 1, 17)
        assert result.time_to_expiry == pytest.approx(366 / 365)

    def test_explicit_expiry(self, engine, curve):
        swaption = make_swaption(expiry_date=date(2024, 7, 12))
        result = engine.price(swaption, curve, FlatVolatilitySurface(0.20), VALUATION)
        assert result.expiry_date == date(2024, 7, 12)
        assert result.delivery_date == date(2024, 7, 16)

    def test_annuity_and_forward(self, engine, curve):
        """Annuity sums accruals times payment discount factors."""
        swaption = make_swaption()
        result = engine.price(swaption, curve, FlatVolatilitySurface(0.20), VALUATION)
        schedule = engine.fixed_leg(swaption, result.delivery_date)

        annuity = sum(p.year_fraction * curve.discount_factor(p.payment_date) for p in schedule)
        forward = (curve.discount_factor(schedule.start_date)
                   - curve.discount_factor(schedule.end_date)) / annuity
        assert len(schedule) == 5
        np.testing.assert_allclose(result.annuity, annuity, rtol=1e-14)
        np.testing.assert_allclose(result.forward_rate, forward, rtol=1e-14)

    def test_forward_starting_swap_at_the_money(self, engine, curve):
        """Payer and receiver agree at K = F, and F exceeds the spot-start formula."""
        K = atm_strike(engine, curve)
        surface = FlatVolatilitySurface(0.20)
        payer = engine.price(make_swaption(K), curve, surface, VALUATION)
        receiver = engine.price(make_swaption(K, payer_receiver=PayerReceiver.RECEIVER),
                                curve, surface, VALUATION)
        np.testing.assert_allclose(payer.value, receiver.value, rtol=1e-10)

        schedule = engine.fixed_leg(make_swaption(K), payer.delivery_date)
        spot_start = (1.0 - curve.discount_factor(schedule.end_date)) / payer.annuity
        assert spot_start > payer.forward_rate


class TestBlackPricing:
    """Black'76 pricing."""

    def test_atm_payer_matches_closed_form(self, engine, curve):
        K = atm_strike(engine, curve)
        result = engine.price(make_swaption(K), curve, FlatVolatilitySurface(0.20), VALUATION)

        F, A, T, vol = result.forward_rate, result.annuity, result.time_to_expiry, 0.20
        d1 = (np.log(F / K) + 0.5 * vol**2 * T) / (vol * np.sqrt(T))
        d2 = d1 - vol * np.sqrt(T)
        expected = NOTIONAL * A * (F * norm.cdf(d1) - K * norm.cdf(d2))

        np.testing.assert_allclose(result.value, expected, rtol=1e-8)
        np.testing.assert_allclose(result.delta, NOTIONAL * A * norm.cdf(d1), rtol=1e-8)
        np.testing.assert_allclose(result.vega, NOTIONAL * A * F * np.sqrt(T) * norm.pdf(d1), rtol=1e-8)
        assert result.model == PricingModel.BLACK76
        assert result.implied_vol == 0.20

    def test_payer_receiver_parity(self, engine, curve):
        """Payer - receiver = notional * annuity * (F - K)."""
        surface = FlatVolatilitySurface(0.25)
        payer = engine.price(make_swaption(0.035), curve, surface, VALUATION)
        receiver = engine.price(
            make_swaption(0.035, payer_receiver=PayerReceiver.RECEIVER), curve, surface, VALUATION
        )
        np.testing.assert_allclose(
            payer.value - receiver.value,
            NOTIONAL * payer.annuity * (payer.forward_rate - 0.035),
            rtol=1e-10,
        )

    def test_shifted_surface(self, engine, curve):
        shifted = engine.price(make_swaption(), curve, FlatVolatilitySurface(0.20, shift=0.02), VALUATION)
        plain = engine.price(make_swaption(), curve, FlatVolatilitySurface(0.20), VALUATION)
        assert shifted.value > plain.value


class TestBachelierPricing:
    """Normal-vol pricing."""

    def test_atm_value(self, engine, curve):
        K = atm_strike(engine, curve)
        surface = FlatVolatilitySurface(0.0080, VolType.NORMAL)
        result = engine.price(make_swaption(K), curve, surface, VALUATION)

        expected = NOTIONAL * result.annuity * 0.0080 * np.sqrt(result.time_to_expiry) * norm.pdf(0.0)
        np.testing.assert_allclose(result.value, expected, rtol=1e-8)
        assert result.model == PricingModel.BACHELIER

    def test_model_vol_type_mismatch(self, cal, curve):
        engine = SwaptionPricingEngine(cal, model=PricingModel.BACHELIER)
        with pytest.raises(UnsupportedConvention):
            engine.price(make_swaption(), curve, FlatVolatilitySurface(0.20), VALUATION)


class TestPricingFailures:
    """Precondition failures."""

    @pytest.mark.parametrize("vol", [0.0, -0.05])
    def test_non_positive_vol_before_curve_access(self, cal, curve, vol):
        """A bad vol fails before the curve or the fixing cache is touched."""
        spy_curve = CountingCurve(curve)
        spy_cache = CountingFixingCache()
        engine = SwaptionPricingEngine(cal, fixing_cache=spy_cache)

        with pytest.raises(NegativeVolatility):
            engine.price(make_swaption(), spy_curve, FlatVolatilitySurface(vol), VALUATION)
        assert spy_curve.calls == 0
        assert spy_cache.calls == 0

    def test_stale_curve(self, engine, curve):
        with pytest.raises(StaleCurve):
            engine.price(make_swaption(), curve, FlatVolatilitySurface(0.20), date(2024, 1, 16))

    def test_non_positive_annuity(self, engine):
        with pytest.raises(NonPositiveAnnuity) as exc_info:
            engine.price(make_swaption(), ZeroDiscountCurve(), FlatVolatilitySurface(0.20), VALUATION)
        assert exc_info.value.annuity == 0.0

    @pytest.mark.parametrize("style", [ExerciseStyle.BERMUDAN, ExerciseStyle.AMERICAN])
    def test_non_european_exercise(self, engine, curve, style):
        with pytest.raises(UnsupportedConvention):
            engine.price(make_swaption(exercise_style=style), curve,
                         FlatVolatilitySurface(0.20), VALUATION)

    def test_invalid_terms(self):
        with pytest.raises(ValueError):
            make_swaption(notional=0)
        with pytest.raises(ValueError):
            make_swaption(swap_tenor="0Y")


class TestUnderlyingNpv:
    """Underlying swap valuation through the fixing cache."""

    INDEX = IndexConventions(index_id="USD-TERM-SOFR-3M", settlement_lag=2, tenor="3M")

    @pytest.fixture
    def fixing_cache(self, cal, curve):
        index = TermRateIndex(self.INDEX.index_id, "3M", cal, start_lag=2)
        source = CurveFixingSource(curve, {index.name: index})
        with IndexFixingCache(source, config=FixingCacheConfig(backoff_base=0.0)) as cache:
            yield cache

    def test_no_cache_no_npv(self, engine, curve):
        result = engine.price(make_swaption(), curve, FlatVolatilitySurface(0.20), VALUATION)
        assert result.underlying_npv is None

    def test_atm_swap_is_near_zero(self, cal, curve, fixing_cache):
        engine = SwaptionPricingEngine(cal, fixing_cache=fixing_cache)
        K = atm_strike(engine, curve, index_conventions=self.INDEX)
        result = engine.price(make_swaption(K, index_conventions=self.INDEX), curve,
                              FlatVolatilitySurface(0.20), VALUATION)

        assert abs(result.underlying_npv) < 1e-4 * NOTIONAL
        assert len(fixing_cache.backend) == 20

    def test_in_the_money_payer(self, cal, curve, fixing_cache):
        engine = SwaptionPricingEngine(cal, fixing_cache=fixing_cache)
        F = atm_strike(engine, curve, index_conventions=self.INDEX)
        payer = engine.price(make_swaption(F - 0.01, index_conventions=self.INDEX), curve,
                             FlatVolatilitySurface(0.20), VALUATION)
        receiver = engine.price(
            make_swaption(F - 0.01, index_conventions=self.INDEX,
                          payer_receiver=PayerReceiver.RECEIVER),
            curve, FlatVolatilitySurface(0.20), VALUATION,
        )

        np.testing.assert_allclose(payer.underlying_npv, NOTIONAL * 0.01 * payer.annuity, rtol=1e-2)
        np.testing.assert_allclose(receiver.underlying_npv, -payer.underlying_npv, rtol=1e-14)

    def test_fixing_dates(self, cal, curve):
        engine = SwaptionPricingEngine(cal)
        swaption = make_swaption(index_conventions=self.INDEX)
        fixed_leg = engine.fixed_leg(swaption, date(2025, 1, 17))
        fixings = engine.floating_fixings(swaption, fixed_leg)
        assert len(fixings) == 20
        assert fixings[0] == date(2025, 1, 15)
        assert fixings == sorted(fixings)


class TestOvernightUnderlyingNpv:
    """Underlying swap on a daily compounded overnight index."""

    @pytest.fixture
    def sloped(self):
        return InterestRateCurve.from_zero_rates(VALUATION, {"1Y": 0.02, "10Y": 0.06})

    @pytest.fixture
    def sofr_cache(self, cal, sloped):
        source = CurveFixingSource(sloped, {"USD-SOFR": CompoundingRateIndex("USD-SOFR", cal)})
        config = FixingCacheConfig(backoff_base=0.0, max_workers=8)
        with IndexFixingCache(source, config=config) as cache:
            yield cache

    def test_atm_sofr_swap_is_zero_on_sloped_curve(self, cal, sloped, sofr_cache):
        """Compounded daily fixings reprice the forward swap rate exactly."""
        engine = SwaptionPricingEngine(cal, fixing_cache=sofr_cache)
        K = atm_strike(engine, sloped)
        result = engine.price(make_swaption(K), sloped, FlatVolatilitySurface(0.20), VALUATION)
        assert abs(result.underlying_npv) < 1e-6 * NOTIONAL

    def test_off_market_sofr_swap(self, cal, sloped, sofr_cache):
        engine = SwaptionPricingEngine(cal, fixing_cache=sofr_cache)
        F = atm_strike(engine, sloped)
        result = engine.price(make_swaption(F - 0.01), sloped, FlatVolatilitySurface(0.20), VALUATION)
        np.testing.assert_allclose(result.underlying_npv, NOTIONAL * 0.01 * result.annuity,
                                   rtol=1e-8)

    def test_daily_fixing_dates(self, cal):
        engine = SwaptionPricingEngine(cal)
        swaption = make_swaption()
        fixed_leg = engine.fixed_leg(swaption, date(2025, 1, 17))
        fixings = engine.floating_fixings(swaption, fixed_leg)
        assert fixings[0] == date(2025, 1, 17)
        assert fixings[-1] == date(2030, 1, 16)
        assert len(fixings) == cal.business_days_between(date(2025, 1, 16), date(2030, 1, 16))

    def test_lookback_fixing_dates(self, cal):
        engine = SwaptionPricingEngine(cal)
        sofr = IndexConventions(index_id="USD-SOFR", lookback_days=2)
        swaption = make_swaption(index_conventions=sofr)
        fixed_leg = engine.fixed_leg(swaption, date(2025, 1, 17))
        fixings = engine.floating_fixings(swaption, fixed_leg)
        assert fixings[0] == date(2025, 1, 15)
        assert fixings[-1] == date(2030, 1, 14)


class TestPricingResult:
    def test_to_dict(self, engine, curve):
        result = engine.price(make_swaption(), curve, FlatVolatilitySurface(0.20), VALUATION)
        d = result.to_dict()
        assert d["model"] == "Black76"
        assert d["expiry_date"] == date(2025, 1, 15)
        assert d["underlying_npv"] is None
