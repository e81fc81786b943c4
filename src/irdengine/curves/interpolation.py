"""
Interpolation methods for rate curves.

Provides:
- LinearInterpolator: linear in the stored value, flat extrapolation
- LogLinearInterpolator: linear in log discount factor (piecewise flat forwards)
- CubicSplineInterpolator: natural cubic spline

Interpolators are fitted once and then only read, so a fitted instance
can be shared between threads.
"""

from abc import ABC, abstractmethod
from enum import Enum
from typing import Optional

import numpy as np
from scipy.interpolate import CubicSpline

from ..errors import UnsupportedConvention


class Interpolator(ABC):
    """Abstract base class for curve interpolation."""

    def __init__(self):
        self.times: Optional[np.ndarray] = None
        self.values: Optional[np.ndarray] = None

    def fit(self, times: np.ndarray, values: np.ndarray) -> "Interpolator":
        """
        Fit the interpolator to data points.

        Args:
            times: Year fractions
            values: Values at those times

        Returns:
            self, for chaining
        """
        times = np.asarray(times, dtype=np.float64)
        values = np.asarray(values, dtype=np.float64)
        if times.shape != values.shape:
            raise ValueError("Times and values must have same length")
        if len(times) < 2:
            raise ValueError("Need at least 2 points for interpolation")

        idx = np.argsort(times)
        self.times = times[idx]
        self.values = values[idx]
        if np.any(np.diff(self.times) <= 0):
            raise ValueError("Interpolation times must be distinct")
        self._post_fit()
        return self

    def _post_fit(self) -> None:
        pass

    def _check_fitted(self) -> None:
        if self.times is None:
            raise RuntimeError("Interpolator not fitted")

    @abstractmethod
    def interpolate(self, t: float) -> float:
        """Interpolated value at year fraction t."""

    def __call__(self, t: float) -> float:
        return self.interpolate(t)


class LinearInterpolator(Interpolator):
    """Linear interpolation with flat extrapolation at both ends."""

    def interpolate(self, t: float) -> float:
        self._check_fitted()
        return float(np.interp(t, self.times, self.values))


class LogLinearInterpolator(Interpolator):
    """
    Log-linear interpolation on discount factors.

    ``values`` are discount factors; interpolation is linear in their
    logarithm, which gives piecewise constant forward rates. Beyond the
    last node the last forward rate is extended.
    """

    def _post_fit(self) -> None:
        if np.any(self.values <= 0):
            raise ValueError("Discount factors must be positive")
        self.log_values = np.log(self.values)

    def interpolate(self, t: float) -> float:
        """Interpolated discount factor at t."""
        self._check_fitted()
        if t <= self.times[0]:
            return float(self.values[0])
        if t >= self.times[-1]:
            slope = ((self.log_values[-1] - self.log_values[-2])
                     / (self.times[-1] - self.times[-2]))
            return float(np.exp(self.log_values[-1] + slope * (t - self.times[-1])))
        return float(np.exp(np.interp(t, self.times, self.log_values)))


class CubicSplineInterpolator(Interpolator):
    """Natural cubic spline, flat extrapolation outside the nodes."""

    def _post_fit(self) -> None:
        self._spline = CubicSpline(self.times, self.values, bc_type="natural")

    def interpolate(self, t: float) -> float:
        self._check_fitted()
        if t <= self.times[0]:
            return float(self.values[0])
        if t >= self.times[-1]:
            return float(self.values[-1])
        return float(self._spline(t))


class InterpolationPolicy(Enum):
    """What a curve stores at its nodes and how it interpolates between them."""
    LOG_LINEAR_DISCOUNT = "LogLinearDiscount"
    LINEAR_ZERO = "LinearZero"
    CUBIC_ZERO = "CubicZero"

    @classmethod
    def from_string(cls, s: str) -> "InterpolationPolicy":
        key = str(s).upper().replace("_", "").replace("-", "").replace(" ", "")
        aliases = {
            "LOGLINEAR": cls.LOG_LINEAR_DISCOUNT,
            "LINEAR": cls.LINEAR_ZERO,
            "CUBIC": cls.CUBIC_ZERO,
            "CUBICSPLINE": cls.CUBIC_ZERO,
        }
        if key in aliases:
            return aliases[key]
        for member in cls:
            if member.value.upper() == key:
                return member
        raise UnsupportedConvention(f"Unknown interpolation policy: {s}")

    @property
    def on_discount_factors(self) -> bool:
        return self == InterpolationPolicy.LOG_LINEAR_DISCOUNT


def create_interpolator(policy: InterpolationPolicy) -> Interpolator:
    """
    Factory for the interpolator backing a policy.

    Args:
        policy: InterpolationPolicy member

    Returns:
        Unfitted Interpolator instance
    """
    if policy == InterpolationPolicy.LOG_LINEAR_DISCOUNT:
        return LogLinearInterpolator()
    elif policy == InterpolationPolicy.LINEAR_ZERO:
        return LinearInterpolator()
    elif policy == InterpolationPolicy.CUBIC_ZERO:
        return CubicSplineInterpolator()
    raise UnsupportedConvention(f"Unknown interpolation policy: {policy}")


__all__ = [
    "Interpolator",
    "LinearInterpolator",
    "LogLinearInterpolator",
    "CubicSplineInterpolator",
    "InterpolationPolicy",
    "create_interpolator",
]
