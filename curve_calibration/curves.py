from __future__ import annotations

import numpy as np
import pandas as pd
from dataclasses import dataclass, field
from typing import Iterable, Sequence

from scipy.interpolate import CubicSpline

from .errors import InvalidConfigurationError
from .utils import yearfrac


INTERPOLATORS = ("LINEAR", "DOUBLE_QUADRATIC", "NATURAL_CUBIC")
EXTRAPOLATORS = ("FLAT", "LINEAR")

CURVE_DAY_COUNT = "ACT/365F"


def _quadratic(xs: np.ndarray, ys: np.ndarray, x: np.ndarray) -> np.ndarray:
    """Lagrange quadratic through three points, evaluated at x."""
    x0, x1, x2 = xs
    y0, y1, y2 = ys
    l0 = (x - x1) * (x - x2) / ((x0 - x1) * (x0 - x2))
    l1 = (x - x0) * (x - x2) / ((x1 - x0) * (x1 - x2))
    l2 = (x - x0) * (x - x1) / ((x2 - x0) * (x2 - x1))
    return y0 * l0 + y1 * l1 + y2 * l2


def _double_quadratic(kx: np.ndarray, kv: np.ndarray, x: np.ndarray) -> np.ndarray:
    """
    On [x_i, x_i+1] blend the quadratics through (i-1, i, i+1) and
    (i, i+1, i+2), weighted linearly by position in the interval. The end
    intervals use the single quadratic available.
    """
    n = len(kx)
    if n < 3:
        return np.interp(x, kx, kv)

    idx = np.clip(np.searchsorted(kx, x, side="right") - 1, 0, n - 2)
    out = np.empty_like(x, dtype=float)
    for i in np.unique(idx):
        m = idx == i
        xm = x[m]
        if i == 0:
            out[m] = _quadratic(kx[0:3], kv[0:3], xm)
        elif i == n - 2:
            out[m] = _quadratic(kx[n - 3:n], kv[n - 3:n], xm)
        else:
            w = (kx[i + 1] - xm) / (kx[i + 1] - kx[i])
            left = _quadratic(kx[i - 1:i + 2], kv[i - 1:i + 2], xm)
            right = _quadratic(kx[i:i + 3], kv[i:i + 3], xm)
            out[m] = w * left + (1.0 - w) * right
    return out


@dataclass(frozen=True)
class ZeroCurve:
    """
    Curve of continuously-compounded zero rates at knot dates, interpolated
    in zero rate against ACT/365F time from the valuation date.

    - Within knot range: the configured interpolator.
    - Outside: FLAT (end zero rate) or LINEAR (end segment slope) extrapolation.
    """
    name: str
    val_date: pd.Timestamp
    knot_dates: np.ndarray          # dtype datetime64[ns], strictly increasing
    knot_zero_rates: np.ndarray
    interpolator: str = "LINEAR"
    left_extrapolator: str = "FLAT"
    right_extrapolator: str = "FLAT"
    knot_times: np.ndarray = field(init=False, repr=False, compare=False)

    def __post_init__(self):
        knot_dates = np.array(self.knot_dates, dtype="datetime64[ns]")
        knot_zero_rates = np.array(self.knot_zero_rates, dtype=float)
        taus = np.array(
            [yearfrac(self.val_date, pd.Timestamp(d), CURVE_DAY_COUNT) for d in knot_dates],
            dtype=float,
        )
        # read-only copies: a calibrated curve never changes
        for name, arr in (("knot_dates", knot_dates), ("knot_zero_rates", knot_zero_rates), ("knot_times", taus)):
            arr.setflags(write=False)
            object.__setattr__(self, name, arr)

    def y_value(self, times) -> np.ndarray:
        """Zero rate at year fractions from the valuation date."""
        x = np.atleast_1d(np.asarray(times, dtype=float))
        kx = self.knot_times
        kv = np.asarray(self.knot_zero_rates, dtype=float)

        if len(kx) == 1:
            return np.full_like(x, kv[0], dtype=float)

        out = np.empty_like(x, dtype=float)
        mask_left = x < kx[0]
        mask_right = x > kx[-1]
        mask_in = ~(mask_left | mask_right)

        if np.any(mask_in):
            xi = x[mask_in]
            if self.interpolator == "LINEAR":
                out[mask_in] = np.interp(xi, kx, kv)
            elif self.interpolator == "DOUBLE_QUADRATIC":
                out[mask_in] = _double_quadratic(kx, kv, xi)
            elif self.interpolator == "NATURAL_CUBIC":
                out[mask_in] = CubicSpline(kx, kv, bc_type="natural")(xi)
            else:
                raise InvalidConfigurationError(f"Unsupported interpolator: {self.interpolator}")

        if np.any(mask_left):
            out[mask_left] = self._extrapolate(x[mask_left], kx[0], kv[0], kx[1], kv[1], self.left_extrapolator)
        if np.any(mask_right):
            out[mask_right] = self._extrapolate(x[mask_right], kx[-1], kv[-1], kx[-2], kv[-2], self.right_extrapolator)

        return out

    @staticmethod
    def _extrapolate(x, x_end, y_end, x_next, y_next, method: str) -> np.ndarray:
        if method == "FLAT":
            return np.full_like(x, y_end, dtype=float)
        if method == "LINEAR":
            slope = (y_next - y_end) / (x_next - x_end)
            return y_end + slope * (x - x_end)
        raise InvalidConfigurationError(f"Unsupported extrapolator: {method}")

    def _taus(self, dates: Iterable[pd.Timestamp]) -> np.ndarray:
        return np.array([yearfrac(self.val_date, pd.Timestamp(d), CURVE_DAY_COUNT) for d in dates], dtype=float)

    def zero_rate_cc(self, dates: Iterable[pd.Timestamp]) -> np.ndarray:
        return self.y_value(self._taus(dates))

    def df(self, dates: Iterable[pd.Timestamp]) -> np.ndarray:
        taus = self._taus(dates)
        return np.exp(-self.y_value(taus) * taus)


def build_curve(
    val_date: pd.Timestamp,
    name: str,
    node_dates: Sequence[pd.Timestamp],
    levels: Sequence[float],
    interpolator: str = "LINEAR",
    left_extrapolator: str = "FLAT",
    right_extrapolator: str = "FLAT",
) -> ZeroCurve:
    """
    Build a zero curve from node dates and zero-rate levels given in node
    order. Knots are sorted by date for interpolation; the caller's ordering
    of `levels` is never changed.
    """
    val_date = pd.Timestamp(val_date)
    if len(node_dates) != len(levels):
        raise InvalidConfigurationError(f"{name}: {len(node_dates)} node dates for {len(levels)} levels.")
    if len(node_dates) == 0:
        raise InvalidConfigurationError(f"{name}: curve has no nodes.")
    if interpolator not in INTERPOLATORS:
        raise InvalidConfigurationError(f"{name}: unsupported interpolator {interpolator}")
    for ex in (left_extrapolator, right_extrapolator):
        if ex not in EXTRAPOLATORS:
            raise InvalidConfigurationError(f"{name}: unsupported extrapolator {ex}")

    dates = [pd.Timestamp(d) for d in node_dates]
    if any(d <= val_date for d in dates):
        raise InvalidConfigurationError(f"{name}: node dates must be after the valuation date.")

    order = np.argsort(np.array([d.to_datetime64() for d in dates], dtype="datetime64[ns]"), kind="stable")
    kd = np.array([dates[i].to_datetime64() for i in order], dtype="datetime64[ns]")
    if np.any(np.diff(kd.astype("int64")) <= 0):
        raise InvalidConfigurationError(f"{name}: two nodes share the same date.")

    kv = np.asarray(levels, dtype=float)[order]
    return ZeroCurve(name, val_date, kd, kv, interpolator, left_extrapolator, right_extrapolator)
