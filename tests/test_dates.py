"""
Unit tests for dates module.
"""

from datetime import date
import pytest

from irdengine.dates import (
    Tenor,
    Frequency,
    add_months,
    add_tenor,
    end_of_month,
    is_end_of_month,
    parse_tenor,
    tenor_to_years,
)
from irdengine.errors import InvalidScheduleParameters, UnsupportedConvention


class TestTenor:
    """Tests for tenor parsing and arithmetic."""

    def test_parse(self):
        """Test tenor parsing."""
        assert Tenor.parse("3M") == Tenor(3, "M")
        assert Tenor.parse("2y") == Tenor(2, "Y")
        assert Tenor.parse("-2D") == Tenor(-2, "D")
        assert parse_tenor("1W") == (1, "W")

    def test_parse_tenor_instance(self):
        t = Tenor(6, "M")
        assert Tenor.parse(t) is t

    def test_parse_invalid(self):
        """Malformed tenors raise InvalidScheduleParameters."""
        with pytest.raises(InvalidScheduleParameters):
            Tenor.parse("3X")
        with pytest.raises(InvalidScheduleParameters):
            Tenor.parse("M3")

    def test_months(self):
        assert Tenor.parse("2Y").months == 24
        assert Tenor.parse("6M").is_month_based
        with pytest.raises(InvalidScheduleParameters):
            Tenor.parse("2W").months

    def test_arithmetic(self):
        assert Tenor(3, "M") * 4 == Tenor(12, "M")
        assert -Tenor(1, "Y") == Tenor(-1, "Y")
        assert not Tenor(0, "D").is_positive
        assert str(Tenor(5, "Y")) == "5Y"

    def test_to_years(self):
        assert tenor_to_years("6M") == 0.5
        assert tenor_to_years("10Y") == 10.0


class TestAddTenor:
    """Tests for calendar date arithmetic."""

    def test_add_days_and_weeks(self):
        assert add_tenor(date(2024, 1, 15), "1D") == date(2024, 1, 16)
        assert add_tenor(date(2024, 1, 15), "2W") == date(2024, 1, 29)

    def test_month_end_clamping(self):
        """Jan 31 + 1M lands on the last day of February."""
        assert add_tenor(date(2024, 1, 31), "1M") == date(2024, 2, 29)
        assert add_tenor(date(2023, 1, 31), "1M") == date(2023, 2, 28)

    def test_negative_tenor(self):
        assert add_tenor(date(2024, 3, 31), "-1M") == date(2024, 2, 29)

    def test_end_of_month_rule(self):
        """With the EOM rule results snap to month end."""
        assert add_months(date(2024, 2, 29), 3, end_of_month_rule=True) == date(2024, 5, 31)
        assert add_tenor(date(2024, 2, 15), "1M", end_of_month_rule=True) == date(2024, 3, 31)

    def test_year_across_leap(self):
        assert add_tenor(date(2024, 2, 29), "1Y") == date(2025, 2, 28)

    def test_month_end_helpers(self):
        assert end_of_month(date(2024, 2, 10)) == date(2024, 2, 29)
        assert is_end_of_month(date(2023, 2, 28))
        assert not is_end_of_month(date(2024, 2, 28))


class TestFrequency:
    """Tests for schedule frequencies."""

    def test_from_string(self):
        assert Frequency.from_string("6M") == Frequency.SEMI_ANNUAL
        assert Frequency.from_string("1Y") == Frequency.ANNUAL
        assert Frequency.from_string("quarterly") == Frequency.QUARTERLY

    def test_unknown_frequency(self):
        with pytest.raises(UnsupportedConvention):
            Frequency.from_string("2M")

    def test_per_year(self):
        assert Frequency.QUARTERLY.per_year == 4
        assert Frequency.from_per_year(2) == Frequency.SEMI_ANNUAL
        assert Frequency.MONTHLY.tenor == Tenor(1, "M")
