"""
Swaption implied volatility surfaces.

A surface is a snapshot of quoted vols on an (expiry, tenor[, strike])
grid for one as-of date. Lookups interpolate linearly along each axis
(bilinear in expiry/tenor, then linear in strike) and extrapolate flat.
"""

from datetime import date
from enum import Enum
from typing import Optional, Sequence, Union

import numpy as np
import pandas as pd

from ..conventions import DayCount, year_fraction
from ..dates import Tenor
from ..errors import UnsupportedConvention

TimeLike = Union[float, str, Tenor, date]


class VolType(Enum):
    """Quotation of the surface vols."""
    LOGNORMAL = "LOGNORMAL"
    NORMAL = "NORMAL"

    @classmethod
    def from_string(cls, s: str) -> "VolType":
        key = str(s).upper().replace("_", "").replace(" ", "")
        aliases = {"BLACK": cls.LOGNORMAL, "SHIFTEDLOGNORMAL": cls.LOGNORMAL,
                   "BACHELIER": cls.NORMAL, "BP": cls.NORMAL}
        if key in aliases:
            return aliases[key]
        for member in cls:
            if member.value == key:
                return member
        raise UnsupportedConvention(f"Unknown vol type: {s}")


def _along_axis(nodes: np.ndarray, x: float, grid: np.ndarray) -> np.ndarray:
    """Linear interpolation along the first axis of grid, flat outside nodes."""
    if len(nodes) == 1:
        return grid[0]
    x = min(max(x, nodes[0]), nodes[-1])
    i = min(int(np.searchsorted(nodes, x, side="right")) - 1, len(nodes) - 2)
    w = (x - nodes[i]) / (nodes[i + 1] - nodes[i])
    return (1.0 - w) * grid[i] + w * grid[i + 1]


def _sorted_axis(values: Sequence[float], name: str) -> np.ndarray:
    axis = np.asarray(values, dtype=np.float64)
    if axis.ndim != 1 or len(axis) == 0:
        raise ValueError(f"{name} axis must be a non-empty 1-D sequence")
    if np.any(np.diff(axis) <= 0):
        raise ValueError(f"{name} axis must be strictly increasing")
    return axis


class VolatilitySurface:
    """
    Grid volatility surface.

    Attributes:
        as_of: Snapshot date; dates passed as expiry are measured from it
        expiries: Option expiries in years
        tenors: Underlying swap tenors in years
        strikes: Absolute strikes, or None for a strike-independent surface
        vols: Array shaped (expiries, tenors) or (expiries, tenors, strikes)
        vol_type: LOGNORMAL or NORMAL
        shift: Lognormal shift (0 for plain Black)
    """

    def __init__(
        self,
        as_of: date,
        expiries: Sequence[float],
        tenors: Sequence[float],
        vols,
        vol_type: VolType = VolType.LOGNORMAL,
        strikes: Optional[Sequence[float]] = None,
        shift: float = 0.0
    ):
        self.as_of = as_of
        self.expiries = _sorted_axis(expiries, "Expiry")
        self.tenors = _sorted_axis(tenors, "Tenor")
        self.strikes = None if strikes is None else _sorted_axis(strikes, "Strike")
        self.vols = np.asarray(vols, dtype=np.float64)
        self.vol_type = vol_type
        self.shift = shift

        expected = (len(self.expiries), len(self.tenors))
        if self.strikes is not None:
            expected += (len(self.strikes),)
        if self.vols.shape != expected:
            raise ValueError(f"Vol grid has shape {self.vols.shape}, expected {expected}")

    @classmethod
    def from_frame(
        cls,
        as_of: date,
        frame: pd.DataFrame,
        vol_type: VolType = VolType.LOGNORMAL,
        shift: float = 0.0
    ) -> "VolatilitySurface":
        """
        Build from a quote table with columns expiry, tenor, vol and
        optionally strike. Expiry and tenor may be years or tenor strings.
        """
        df = frame.copy()
        df["expiry"] = df["expiry"].map(_to_years)
        df["tenor"] = df["tenor"].map(_to_years)
        if "strike" in df.columns:
            pivot = df.pivot_table(index=["expiry", "tenor"], columns="strike", values="vol")
            expiries = sorted(df["expiry"].unique())
            tenors = sorted(df["tenor"].unique())
            strikes = list(pivot.columns)
            full = pd.MultiIndex.from_product([expiries, tenors])
            grid = pivot.reindex(full).to_numpy()
            if np.isnan(grid).any():
                raise ValueError("Quote table does not fill the expiry/tenor/strike grid")
            grid = grid.reshape(len(expiries), len(tenors), len(strikes))
            return cls(as_of, expiries, tenors, grid, vol_type, strikes, shift)

        pivot = df.pivot_table(index="expiry", columns="tenor", values="vol").sort_index()
        if pivot.isna().to_numpy().any():
            raise ValueError("Quote table does not fill the expiry/tenor grid")
        return cls(as_of, list(pivot.index), list(pivot.columns), pivot.to_numpy(),
                   vol_type, None, shift)

    def _expiry_years(self, expiry: TimeLike) -> float:
        if isinstance(expiry, date):
            return year_fraction(self.as_of, expiry, DayCount.ACT_365F)
        return _to_years(expiry)

    def vol(self, expiry: TimeLike, tenor: TimeLike, strike: Optional[float] = None) -> float:
        """
        Interpolated volatility.

        Args:
            expiry: Expiry date, tenor string or years
            tenor: Underlying tenor string or years
            strike: Absolute strike (required when the surface has a strike axis)

        Returns:
            Volatility in the surface's vol_type
        """
        at_expiry = _along_axis(self.expiries, self._expiry_years(expiry), self.vols)
        at_tenor = _along_axis(self.tenors, _to_years(tenor), at_expiry)
        if self.strikes is None:
            return float(at_tenor)
        if strike is None:
            raise ValueError("Strike required for a surface with a strike axis")
        return float(_along_axis(self.strikes, strike, at_tenor))

    def to_frame(self) -> pd.DataFrame:
        rows = []
        for i, e in enumerate(self.expiries):
            for j, t in enumerate(self.tenors):
                if self.strikes is None:
                    rows.append((e, t, np.nan, self.vols[i, j]))
                else:
                    for k, s in enumerate(self.strikes):
                        rows.append((e, t, s, self.vols[i, j, k]))
        return pd.DataFrame(rows, columns=["expiry", "tenor", "strike", "vol"])

    def __repr__(self) -> str:
        return (f"VolatilitySurface(as_of={self.as_of}, vol_type={self.vol_type.value}, "
                f"grid={self.vols.shape})")


class FlatVolatilitySurface(VolatilitySurface):
    """Single volatility for every expiry, tenor and strike."""

    def __init__(
        self,
        vol: float,
        vol_type: VolType = VolType.LOGNORMAL,
        as_of: Optional[date] = None,
        shift: float = 0.0
    ):
        super().__init__(as_of, [1.0], [1.0], [[vol]], vol_type, None, shift)
        self.flat_vol = float(vol)

    def _expiry_years(self, expiry: TimeLike) -> float:
        return 0.0

    def vol(self, expiry: TimeLike, tenor: TimeLike, strike: Optional[float] = None) -> float:
        return self.flat_vol


def _to_years(value: TimeLike) -> float:
    if isinstance(value, (int, float, np.floating)):
        return float(value)
    return Tenor.parse(value).to_years()


__all__ = [
    "VolType",
    "VolatilitySurface",
    "FlatVolatilitySurface",
]
