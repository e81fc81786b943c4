"""
Unit tests for conventions module.
"""

from datetime import date
import math
import pytest

from irdengine.calendars import HolidayCalendar, weekends_only
from irdengine.conventions import (
    DayCount,
    BusinessDayConvention,
    CompoundingConvention,
    Conventions,
    adjust,
    day_count_fraction,
    is_business_day,
    year_fraction,
)
from irdengine.dates import Frequency
from irdengine.errors import InvalidDateRange, UnsupportedConvention


@pytest.fixture
def cal():
    return weekends_only()


class TestDayCount:
    """Tests for day count conventions."""

    def test_act_360(self):
        """Test ACT/360 day count."""
        start = date(2024, 1, 15)
        end = date(2024, 4, 15)  # 91 days

        yf = day_count_fraction(start, end, DayCount.ACT_360)
        assert abs(yf - 91 / 360) < 1e-10

    def test_act_365f(self):
        """Test ACT/365F day count."""
        yf = year_fraction(date(2024, 1, 15), date(2024, 4, 15), DayCount.ACT_365F)
        assert abs(yf - 91 / 365) < 1e-10

    def test_act_act_isda_splits_years(self):
        """ACT/ACT ISDA weights each calendar year by its own length."""
        yf = day_count_fraction(date(2023, 7, 1), date(2024, 7, 1), DayCount.ACT_ACT_ISDA)
        assert abs(yf - (184 / 365 + 182 / 366)) < 1e-12

    def test_thirty_360_month_capping(self):
        """30/360 from Feb 28 to Mar 31 2023 is 33 days, not 31."""
        yf = day_count_fraction(date(2023, 2, 28), date(2023, 3, 31), DayCount.THIRTY_360)
        assert abs(yf - 33 / 360) < 1e-12

    def test_thirty_360_us_february_rule(self):
        """30/360 US treats the last day of February as the 30th."""
        yf = day_count_fraction(date(2023, 2, 28), date(2023, 3, 31), DayCount.THIRTY_360_US)
        assert abs(yf - 30 / 360) < 1e-12

    def test_thirty_e_360(self):
        """30E/360 caps both day numbers at 30."""
        yf = day_count_fraction(date(2023, 2, 28), date(2023, 3, 31), DayCount.THIRTY_E_360)
        assert abs(yf - 32 / 360) < 1e-12

    def test_thirty_e_360_isda(self):
        """30E/360 ISDA moves month-end days to 30."""
        yf = day_count_fraction(date(2023, 2, 28), date(2023, 3, 31), DayCount.THIRTY_E_360_ISDA)
        assert abs(yf - 30 / 360) < 1e-12

    def test_thirty_e_360_isda_february_termination(self):
        """A February termination date keeps its actual day."""
        start, end = date(2023, 8, 31), date(2024, 2, 29)
        yf = day_count_fraction(start, end, DayCount.THIRTY_E_360_ISDA, termination=end)
        assert abs(yf - (360 * 1 + 30 * (2 - 8) + (29 - 30)) / 360) < 1e-12

    def test_thirty_360_regular_quarter(self):
        """Three whole months are 90/360."""
        yf = day_count_fraction(date(2024, 1, 15), date(2024, 4, 15), DayCount.THIRTY_360)
        assert abs(yf - 0.25) < 1e-12

    def test_act_365_nl_skips_leap_day(self):
        """ACT/365 NL ignores Feb 29."""
        yf = day_count_fraction(date(2024, 1, 1), date(2025, 1, 1), DayCount.ACT_365_NL)
        assert abs(yf - 1.0) < 1e-12

    def test_act_act_icma_regular_period(self):
        """A regular coupon period accrues exactly 1 / frequency."""
        yf = day_count_fraction(date(2024, 1, 15), date(2024, 7, 15), DayCount.ACT_ACT_ICMA,
                                frequency=Frequency.SEMI_ANNUAL)
        assert yf == pytest.approx(0.5, abs=1e-15)
        # Frequency inferred from a 91-day reference period
        yf = day_count_fraction(date(2024, 1, 15), date(2024, 4, 15), DayCount.ACT_ACT_ICMA)
        assert yf == pytest.approx(0.25, abs=1e-15)

    def test_act_act_icma_short_stub(self):
        """A short stub is a fraction of its reference period."""
        yf = day_count_fraction(date(2024, 3, 15), date(2024, 7, 15), DayCount.ACT_ACT_ICMA,
                                reference_start=date(2024, 1, 15),
                                reference_end=date(2024, 7, 15),
                                frequency=Frequency.SEMI_ANNUAL)
        assert yf == pytest.approx(122 / (2 * 182), abs=1e-15)

    def test_act_act_icma_long_stub(self):
        """A long stub adds the overlap with the preceding quasi-coupon period."""
        yf = day_count_fraction(date(2023, 11, 15), date(2024, 7, 15), DayCount.ACT_ACT_ICMA,
                                reference_start=date(2024, 1, 15),
                                reference_end=date(2024, 7, 15),
                                frequency=Frequency.SEMI_ANNUAL)
        assert yf == pytest.approx(0.5 + 61 / (2 * 184), abs=1e-15)

    def test_act_act_icma_long_back_stub(self):
        yf = day_count_fraction(date(2024, 1, 15), date(2024, 9, 15), DayCount.ACT_ACT_ICMA,
                                reference_start=date(2024, 1, 15),
                                reference_end=date(2024, 7, 15),
                                frequency=Frequency.SEMI_ANNUAL)
        # Quasi-coupon period 2024-07-15 -> 2025-01-15 has 184 days
        assert yf == pytest.approx(0.5 + 62 / (2 * 184), abs=1e-15)

    def test_act_act_icma_uninferable_frequency(self):
        with pytest.raises(UnsupportedConvention):
            day_count_fraction(date(2024, 1, 15), date(2024, 6, 1), DayCount.ACT_ACT_ICMA)

    def test_act_act_icma_from_string(self):
        assert DayCount.from_string("ACT/ACT ICMA") == DayCount.ACT_ACT_ICMA
        assert DayCount.from_string("ISMA-99") == DayCount.ACT_ACT_ICMA

    def test_one_one(self):
        yf = day_count_fraction(date(2024, 1, 1), date(2024, 2, 1), DayCount.ONE_ONE)
        assert yf == 1.0

    def test_same_date_is_zero(self):
        """Test year fraction for same date returns 0."""
        d = date(2024, 1, 15)
        for dc in DayCount:
            assert day_count_fraction(d, d, dc) == 0.0

    def test_end_before_start_raises(self):
        """Reversed dates raise InvalidDateRange."""
        with pytest.raises(InvalidDateRange):
            day_count_fraction(date(2024, 2, 1), date(2024, 1, 1), DayCount.ACT_360)

    def test_from_string(self):
        """Day counts parse from common spellings."""
        assert DayCount.from_string("ACT/360") == DayCount.ACT_360
        assert DayCount.from_string("act/365") == DayCount.ACT_365F
        assert DayCount.from_string("30/360") == DayCount.THIRTY_360
        assert DayCount.from_string("30E/360") == DayCount.THIRTY_E_360
        with pytest.raises(UnsupportedConvention):
            DayCount.from_string("BUS/252")

    def test_unadjusted_date_family(self):
        """The 30/360 family and ACT/ACT ICMA accrue on unadjusted dates."""
        assert DayCount.THIRTY_360.uses_unadjusted_dates
        assert DayCount.ACT_ACT_ICMA.uses_unadjusted_dates
        assert DayCount.THIRTY_E_360.uses_unadjusted_dates
        assert not DayCount.ACT_360.uses_unadjusted_dates


class TestBusinessDayAdjustment:
    """Tests for business day conventions."""

    def test_business_day_unchanged(self, cal):
        """Business days are never moved."""
        d = date(2024, 3, 28)
        for conv in BusinessDayConvention:
            assert adjust(d, cal, conv) == d

    def test_following(self, cal):
        """Saturday rolls to Monday."""
        assert adjust(date(2024, 3, 30), cal, BusinessDayConvention.FOLLOWING) == date(2024, 4, 1)

    def test_modified_following_rolls_back_at_month_end(self, cal):
        """Saturday 30 March would roll into April, so it rolls back to Friday 29th."""
        adjusted = adjust(date(2024, 3, 30), cal, BusinessDayConvention.MODIFIED_FOLLOWING)
        assert adjusted == date(2024, 3, 29)

    def test_modified_following_with_holiday(self):
        """With Good Friday closed, MF lands on Thursday 28th."""
        cal = HolidayCalendar("GF", holidays=[date(2024, 3, 29)])
        adjusted = adjust(date(2024, 3, 30), cal, BusinessDayConvention.MODIFIED_FOLLOWING)
        assert adjusted == date(2024, 3, 28)

    def test_modified_following_mid_month(self, cal):
        """Mid-month MF behaves like Following."""
        adjusted = adjust(date(2024, 6, 15), cal, BusinessDayConvention.MODIFIED_FOLLOWING)
        assert adjusted == date(2024, 6, 17)

    def test_preceding(self, cal):
        """Sunday rolls back to Friday."""
        assert adjust(date(2024, 6, 2), cal, BusinessDayConvention.PRECEDING) == date(2024, 5, 31)

    def test_modified_preceding_rolls_forward_at_month_start(self, cal):
        """Sunday 1 September 2024 would roll into August, so it rolls forward."""
        adjusted = adjust(date(2024, 9, 1), cal, BusinessDayConvention.MODIFIED_PRECEDING)
        assert adjusted == date(2024, 9, 2)

    def test_half_month_modified_following(self, cal):
        """Saturday 15 June 2024 must not cross the 15th."""
        adjusted = adjust(date(2024, 6, 15), cal,
                          BusinessDayConvention.HALF_MONTH_MODIFIED_FOLLOWING)
        assert adjusted == date(2024, 6, 14)

    def test_nearest(self, cal):
        """Saturday goes back to Friday, Sunday forward to Monday."""
        assert adjust(date(2024, 6, 15), cal, BusinessDayConvention.NEAREST) == date(2024, 6, 14)
        assert adjust(date(2024, 6, 16), cal, BusinessDayConvention.NEAREST) == date(2024, 6, 17)

    def test_unadjusted(self, cal):
        """Unadjusted may return a weekend."""
        assert adjust(date(2024, 6, 15), cal, BusinessDayConvention.UNADJUSTED) == date(2024, 6, 15)

    def test_is_business_day_helper(self, cal):
        assert is_business_day(date(2024, 6, 14), cal)
        assert not is_business_day(date(2024, 6, 15), cal)

    def test_from_string_aliases(self):
        """Conventions parse from names and abbreviations."""
        assert BusinessDayConvention.from_string("MF") == BusinessDayConvention.MODIFIED_FOLLOWING
        assert BusinessDayConvention.from_string("Modified Following") == \
            BusinessDayConvention.MODIFIED_FOLLOWING
        assert BusinessDayConvention.from_string("following") == BusinessDayConvention.FOLLOWING
        with pytest.raises(UnsupportedConvention):
            BusinessDayConvention.from_string("Sideways")


class TestCompounding:
    """Tests for compounding conventions."""

    def test_simple_round_trip(self):
        growth = CompoundingConvention.SIMPLE.future_value(0.05, 0.5)
        assert abs(growth - 1.025) < 1e-12
        assert abs(CompoundingConvention.SIMPLE.implied_rate(growth, 0.5) - 0.05) < 1e-12

    def test_continuous(self):
        growth = CompoundingConvention.CONTINUOUS.future_value(0.05, 2.0)
        assert abs(growth - math.exp(0.1)) < 1e-12

    def test_annual(self):
        rate = CompoundingConvention.ANNUAL.implied_rate(1.05 ** 2, 2.0)
        assert abs(rate - 0.05) < 1e-12

    def test_zero_accrual_raises(self):
        with pytest.raises(InvalidDateRange):
            CompoundingConvention.SIMPLE.implied_rate(1.01, 0.0)


class TestConventions:
    """Tests for convention presets."""

    def test_usd_swap_fixed_preset(self):
        conv = Conventions.usd_swap_fixed()
        assert conv.day_count == DayCount.ACT_360
        assert conv.business_day == BusinessDayConvention.MODIFIED_FOLLOWING
        assert conv.frequency == Frequency.ANNUAL
        assert conv.settlement_days == 2

    def test_eur_swap_fixed_preset(self):
        conv = Conventions.eur_swap_fixed()
        assert conv.day_count == DayCount.THIRTY_E_360
        assert conv.calendar_id == "TARGET"

    def test_presets_are_immutable(self):
        conv = Conventions.gbp_swap_fixed()
        with pytest.raises(Exception):
            conv.settlement_days = 2
