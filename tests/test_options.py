"""
Tests for options pricing module.
"""

import pytest
import numpy as np
import pandas as pd
from datetime import date
from scipy.stats import norm

from irdengine.errors import NegativeVolatility, UnsupportedConvention
from irdengine.options.base_models import (
    bachelier_price,
    bachelier_greeks,
    black76_price,
    black76_greeks,
    shifted_black76_price,
    shifted_black76_greeks,
    implied_vol_bachelier,
    implied_vol_black,
)
from irdengine.options.volatility import FlatVolatilitySurface, VolatilitySurface, VolType


class TestBachelierModel:
    """Tests for Bachelier (normal) model."""

    def test_bachelier_call_atm(self):
        """ATM price is annuity * vol * sqrt(T) * n(0)."""
        F, K, T, vol, annuity = 0.04, 0.04, 1.0, 0.005, 4.2

        price = bachelier_price(F, K, T, vol, annuity)

        expected = annuity * vol * np.sqrt(T) / np.sqrt(2 * np.pi)
        np.testing.assert_allclose(price, expected, rtol=1e-12)

    def test_bachelier_put_call_parity(self):
        """C - P = annuity * (F - K)."""
        F, K, T, vol, annuity = 0.04, 0.035, 1.0, 0.005, 4.2

        call = bachelier_price(F, K, T, vol, annuity, is_call=True)
        put = bachelier_price(F, K, T, vol, annuity, is_call=False)

        np.testing.assert_allclose(call - put, annuity * (F - K), rtol=1e-10)

    def test_bachelier_negative_forward(self):
        """Normal model prices negative forwards."""
        price = bachelier_price(-0.002, 0.0, 2.0, 0.006, 1.0, is_call=True)
        assert price > 0

    def test_bachelier_greeks(self):
        """Delta matches a central finite difference."""
        F, K, T, vol, annuity = 0.04, 0.038, 1.5, 0.007, 3.1
        greeks = bachelier_greeks(F, K, T, vol, annuity, is_call=True)

        h = 1e-6
        fd = (bachelier_price(F + h, K, T, vol, annuity) - bachelier_price(F - h, K, T, vol, annuity)) / (2 * h)
        np.testing.assert_allclose(greeks['delta'], fd, rtol=1e-6)
        assert greeks['gamma'] > 0
        assert greeks['vega'] > 0
        assert greeks['theta'] < 0

    def test_bachelier_call_intrinsic(self):
        """Expired option pays intrinsic value."""
        assert bachelier_price(0.05, 0.04, 0.0, 0.01, 2.0) == pytest.approx(0.02)
        assert bachelier_price(0.03, 0.04, 0.0, 0.01, 2.0) == 0.0


class TestBlack76Model:
    """Tests for Black'76 (lognormal) model."""

    def test_black76_call_atm(self):
        """ATM price is annuity * F * (2 N(sigma sqrt(T) / 2) - 1)."""
        F, T, vol, annuity = 0.04, 2.0, 0.2, 4.5

        price = black76_price(F, F, T, vol, annuity)

        expected = annuity * F * (2 * norm.cdf(0.5 * vol * np.sqrt(T)) - 1)
        np.testing.assert_allclose(price, expected, rtol=1e-12)

    def test_black76_put_call_parity(self):
        F, K, T, vol, annuity = 0.04, 0.045, 1.0, 0.25, 4.5

        call = black76_price(F, K, T, vol, annuity, is_call=True)
        put = black76_price(F, K, T, vol, annuity, is_call=False)

        np.testing.assert_allclose(call - put, annuity * (F - K), rtol=1e-10)

    def test_black76_greeks(self):
        """Delta and vega match finite differences."""
        F, K, T, vol, annuity = 0.04, 0.042, 1.0, 0.2, 4.5
        greeks = black76_greeks(F, K, T, vol, annuity, is_call=True)

        h = 1e-6
        fd_delta = (black76_price(F + h, K, T, vol, annuity)
                    - black76_price(F - h, K, T, vol, annuity)) / (2 * h)
        fd_vega = (black76_price(F, K, T, vol + h, annuity)
                   - black76_price(F, K, T, vol - h, annuity)) / (2 * h)
        np.testing.assert_allclose(greeks['delta'], fd_delta, rtol=1e-6)
        np.testing.assert_allclose(greeks['vega'], fd_vega, rtol=1e-6)

    def test_black76_put_delta_negative(self):
        greeks = black76_greeks(0.04, 0.04, 1.0, 0.2, 1.0, is_call=False)
        assert -1.0 < greeks['delta'] < 0.0

    def test_black76_negative_rates_fail(self):
        with pytest.raises(ValueError):
            black76_price(-0.001, 0.01, 1.0, 0.2)

    @pytest.mark.parametrize("vol", [0.0, -0.1])
    def test_non_positive_vol(self, vol):
        with pytest.raises(NegativeVolatility) as exc_info:
            black76_price(0.04, 0.04, 1.0, vol)
        assert exc_info.value.vol == vol
        with pytest.raises(NegativeVolatility):
            bachelier_price(0.04, 0.04, 1.0, vol)

    def test_shifted_black_negative_rates(self):
        price = shifted_black76_price(-0.002, 0.0, 1.0, 0.15, shift=0.03)
        assert price > 0

    def test_shifted_black_is_black_on_shifted_rates(self):
        shift = 0.02
        np.testing.assert_allclose(
            shifted_black76_price(0.01, 0.012, 1.0, 0.3, shift, 2.0),
            black76_price(0.03, 0.032, 1.0, 0.3, 2.0),
            rtol=1e-14,
        )
        greeks = shifted_black76_greeks(0.01, 0.012, 1.0, 0.3, shift, 2.0)
        assert greeks == black76_greeks(0.03, 0.032, 1.0, 0.3, 2.0)

    def test_shifted_black_rejects_shifted_negative(self):
        with pytest.raises(ValueError):
            shifted_black76_price(-0.05, 0.0, 1.0, 0.2, shift=0.03)


class TestImpliedVol:
    """Implied volatility inversion."""

    def test_implied_vol_black(self):
        price = black76_price(0.04, 0.045, 2.0, 0.37, 4.0)
        vol = implied_vol_black(price, 0.04, 0.045, 2.0, 4.0)
        np.testing.assert_allclose(vol, 0.37, rtol=1e-8)

    def test_implied_vol_black_high_vol(self):
        """Root bracket widens beyond the initial guess."""
        price = black76_price(0.04, 0.04, 1.0, 2.5)
        np.testing.assert_allclose(implied_vol_black(price, 0.04, 0.04, 1.0), 2.5, rtol=1e-8)

    def test_implied_vol_bachelier(self):
        price = bachelier_price(0.02, 0.025, 1.0, 0.0085, 3.0, is_call=False)
        vol = implied_vol_bachelier(price, 0.02, 0.025, 1.0, 3.0, is_call=False)
        np.testing.assert_allclose(vol, 0.0085, rtol=1e-8)

    def test_price_below_intrinsic(self):
        with pytest.raises(ValueError):
            implied_vol_black(0.001, 0.05, 0.04, 1.0)


class TestVolatilitySurface:
    """Tests for vol surfaces."""

    @pytest.fixture
    def surface(self):
        return VolatilitySurface(
            as_of=date(2024, 1, 15),
            expiries=[1.0, 2.0],
            tenors=[5.0, 10.0],
            vols=[[0.20, 0.30], [0.40, 0.50]],
        )

    def test_grid_points(self, surface):
        assert surface.vol(1.0, 5.0) == pytest.approx(0.20)
        assert surface.vol("2Y", "10Y") == pytest.approx(0.50)

    def test_bilinear(self, surface):
        assert surface.vol(1.5, 7.5) == pytest.approx(0.35)

    def test_flat_extrapolation(self, surface):
        assert surface.vol(0.25, 2.0) == pytest.approx(0.20)
        assert surface.vol(10.0, 30.0) == pytest.approx(0.50)

    def test_expiry_as_date(self, surface):
        """Dates are converted with ACT/365F from the as-of date."""
        t = 366 / 365
        expected = 0.20 + (t - 1.0) * 0.20
        assert surface.vol(date(2025, 1, 15), 5.0) == pytest.approx(expected)

    def test_strike_axis(self):
        surface = VolatilitySurface(
            date(2024, 1, 15), [1.0], [5.0],
            [[[0.30, 0.20, 0.25]]], strikes=[0.02, 0.04, 0.06],
        )
        assert surface.vol(1.0, 5.0, 0.03) == pytest.approx(0.25)
        assert surface.vol(1.0, 5.0, 0.10) == pytest.approx(0.25)
        with pytest.raises(ValueError):
            surface.vol(1.0, 5.0)

    def test_shape_validation(self):
        with pytest.raises(ValueError):
            VolatilitySurface(date(2024, 1, 15), [1.0, 2.0], [5.0], [[0.2, 0.3]])
        with pytest.raises(ValueError):
            VolatilitySurface(date(2024, 1, 15), [2.0, 1.0], [5.0], [[0.2], [0.3]])

    def test_from_frame(self):
        quotes = pd.DataFrame({
            "expiry": ["1Y", "1Y", "2Y", "2Y"],
            "tenor": ["5Y", "10Y", "5Y", "10Y"],
            "vol": [0.0080, 0.0085, 0.0090, 0.0095],
        })
        surface = VolatilitySurface.from_frame(date(2024, 1, 15), quotes, VolType.NORMAL)
        assert surface.vol_type == VolType.NORMAL
        assert surface.vol(2.0, 5.0) == pytest.approx(0.0090)
        assert len(surface.to_frame()) == 4

    def test_from_frame_incomplete_grid(self):
        quotes = pd.DataFrame({
            "expiry": ["1Y", "1Y", "2Y"],
            "tenor": ["5Y", "10Y", "5Y"],
            "vol": [0.2, 0.21, 0.22],
        })
        with pytest.raises(ValueError):
            VolatilitySurface.from_frame(date(2024, 1, 15), quotes)

    def test_flat_surface(self):
        surface = FlatVolatilitySurface(0.0075, VolType.NORMAL)
        assert surface.vol(date(2030, 1, 1), "30Y", 0.05) == 0.0075
        assert surface.vol_type == VolType.NORMAL

    def test_vol_type_parsing(self):
        assert VolType.from_string("Black") == VolType.LOGNORMAL
        assert VolType.from_string("normal") == VolType.NORMAL
        with pytest.raises(UnsupportedConvention):
            VolType.from_string("SABR")
