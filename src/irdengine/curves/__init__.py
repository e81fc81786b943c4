"""
Curves package - discount curve representation and interpolation.

Provides:
- InterestRateCurve: Snapshot curve with discount factors, zero and forward rates
- InterpolationPolicy: What the curve interpolates between nodes
- Interpolators backing each policy
"""

from .curve import CurveNode, InterestRateCurve
from .interpolation import (
    Interpolator,
    LinearInterpolator,
    CubicSplineInterpolator,
    LogLinearInterpolator,
    InterpolationPolicy,
    create_interpolator,
)

__all__ = [
    "CurveNode",
    "InterestRateCurve",
    "Interpolator",
    "LinearInterpolator",
    "CubicSplineInterpolator",
    "LogLinearInterpolator",
    "InterpolationPolicy",
    "create_interpolator",
]
