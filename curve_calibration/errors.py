"""
Error taxonomy for curve calibration.

Collaborators raise these; `CurveGroupMarketDataFunction.build_curve_group`
turns them into failure results, while `requirements` lets them propagate.
"""
from __future__ import annotations

from enum import Enum
from typing import Optional


class FailureReason(Enum):
    """Kind of an expected calibration failure."""

    MISSING_DATA = "missing_data"
    INVALID_CONFIGURATION = "invalid_configuration"
    NUMERICAL_FAILURE = "numerical_failure"
    CONVERGENCE_FAILURE = "convergence_failure"
    CANCELLED = "cancelled"


class CalibrationError(Exception):
    """Base class for expected calibration failures."""

    reason: FailureReason = FailureReason.NUMERICAL_FAILURE


class MissingMarketDataError(CalibrationError, KeyError):
    """A required quote, bundle or time series is absent from the market data."""

    reason = FailureReason.MISSING_DATA

    def __str__(self) -> str:
        # KeyError would otherwise repr() the message
        return str(self.args[0]) if self.args else ""


class InvalidMarketDataError(CalibrationError, TypeError):
    """A market data value does not have the type its id declares."""

    reason = FailureReason.MISSING_DATA


class InvalidConfigurationError(CalibrationError, ValueError):
    """A curve group configuration is structurally malformed."""

    reason = FailureReason.INVALID_CONFIGURATION


class NumericalFailureError(CalibrationError):
    """Singular or ill-conditioned Jacobian, or non-finite residuals."""

    reason = FailureReason.NUMERICAL_FAILURE


class ConvergenceFailureError(CalibrationError):
    """Iteration budget exhausted before the residual fell under tolerance."""

    reason = FailureReason.CONVERGENCE_FAILURE

    def __init__(self, message: str, residual_norm: Optional[float] = None, iterations: Optional[int] = None):
        super().__init__(message)
        self.residual_norm = residual_norm
        self.iterations = iterations


class CalibrationCancelledError(CalibrationError):
    """Cooperative cancellation was observed."""

    reason = FailureReason.CANCELLED
