from __future__ import annotations

import os
from dataclasses import dataclass


def _env_int(name: str, default: int) -> int:
    raw = os.getenv(name)
    if raw is None:
        return default
    try:
        return int(raw)
    except ValueError:
        return default


def _env_float(name: str, default: float) -> float:
    raw = os.getenv(name)
    if raw is None:
        return default
    try:
        return float(raw)
    except ValueError:
        return default


@dataclass(frozen=True)
class RootFinderConfig:
    """
    Settings for the Newton root finder used in curve calibration.

    absolute_tolerance is on the 2-norm of the residual vector, in currency
    units of the unit-notional calibration trades.
    """
    absolute_tolerance: float = 1e-12
    max_steps: int = 100
    max_condition: float = 1e14
    max_backtracks: int = 20

    def __post_init__(self):
        if not self.absolute_tolerance > 0:
            raise ValueError("absolute_tolerance must be positive")
        if self.max_steps <= 0:
            raise ValueError("max_steps must be positive")
        if not self.max_condition > 1:
            raise ValueError("max_condition must be greater than one")
        if self.max_backtracks < 0:
            raise ValueError("max_backtracks must be non-negative")

    @classmethod
    def defaults(cls) -> "RootFinderConfig":
        return cls()

    @classmethod
    def from_env(cls, prefix: str = "CURVE_CALIBRATION_") -> "RootFinderConfig":
        """Read overrides from the environment, e.g. CURVE_CALIBRATION_ABS_TOL=1e-10."""
        d = cls()
        return cls(
            absolute_tolerance=_env_float(prefix + "ABS_TOL", d.absolute_tolerance),
            max_steps=_env_int(prefix + "MAX_STEPS", d.max_steps),
            max_condition=_env_float(prefix + "MAX_CONDITION", d.max_condition),
            max_backtracks=_env_int(prefix + "MAX_BACKTRACKS", d.max_backtracks),
        )
