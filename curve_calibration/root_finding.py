"""
Newton root finder for square nonlinear systems r(x) = 0.
"""
from __future__ import annotations

import logging
import threading
import warnings
from typing import Callable, Optional

import numpy as np
import scipy.linalg

from .config import RootFinderConfig
from .differentiation import VectorFieldFirstOrderDifferentiator
from .errors import (
    CalibrationCancelledError,
    CalibrationError,
    ConvergenceFailureError,
    NumericalFailureError,
)
from .result import Result

logger = logging.getLogger(__name__)


class CancellationToken:
    """Cooperative cancellation signal, safe to set from another thread."""

    def __init__(self):
        self._event = threading.Event()

    def cancel(self) -> None:
        self._event.set()

    @property
    def is_cancelled(self) -> bool:
        return self._event.is_set()


class NewtonVectorRootFinder:
    """
    Newton iteration x <- x + dx with J dx = -r.

    A full step that increases the residual norm is halved (up to
    config.max_backtracks times) before being taken. The cancellation token
    is checked between iterations only.
    """

    def __init__(
        self,
        config: Optional[RootFinderConfig] = None,
        differentiator: Optional[VectorFieldFirstOrderDifferentiator] = None,
    ):
        self.config = config or RootFinderConfig.defaults()
        self.differentiator = differentiator or VectorFieldFirstOrderDifferentiator()

    def solve(
        self,
        function: Callable[[np.ndarray], np.ndarray],
        jacobian: Optional[Callable[[np.ndarray], np.ndarray]],
        start,
        cancellation: Optional[CancellationToken] = None,
    ) -> Result[np.ndarray]:
        """Find x with ||function(x)|| < absolute_tolerance, starting from `start`."""
        try:
            return Result.success(self._iterate(function, jacobian, start, cancellation))
        except CalibrationError as e:
            logger.warning("Root finding failed: %s", e)
            return Result.from_error(e)

    def _iterate(self, function, jacobian, start, cancellation) -> np.ndarray:
        cfg = self.config
        if jacobian is None:
            jacobian = self.differentiator.differentiate(function)

        x = np.array(start, dtype=float)
        r = self._residual(function, x)
        if len(r) != len(x):
            raise NumericalFailureError(
                f"System is not square: {len(r)} residuals for {len(x)} parameters."
            )
        norm = float(np.linalg.norm(r))

        for step in range(cfg.max_steps):
            if norm < cfg.absolute_tolerance:
                logger.info("Converged after %d iterations, residual norm %.3e", step, norm)
                return x

            if cancellation is not None and cancellation.is_cancelled:
                raise CalibrationCancelledError(f"Cancelled after {step} iterations (residual norm {norm:.3e}).")

            J = np.asarray(jacobian(x), dtype=float)
            dx = self._newton_step(J, r, step)

            lam = 1.0
            x_new = x + dx
            r_new = self._residual(function, x_new, strict=False)
            norm_new = float(np.linalg.norm(r_new)) if r_new is not None else np.inf
            backtracks = 0
            while not norm_new < norm and backtracks < cfg.max_backtracks:
                lam *= 0.5
                backtracks += 1
                x_new = x + lam * dx
                r_new = self._residual(function, x_new, strict=False)
                norm_new = float(np.linalg.norm(r_new)) if r_new is not None else np.inf

            if r_new is None:
                raise NumericalFailureError(f"Non-finite residual at iteration {step}.")
            if backtracks:
                logger.debug("Iteration %d: step scaled by %g after %d backtracks", step, lam, backtracks)

            x, r, norm = x_new, r_new, norm_new
            logger.debug("Iteration %d: residual norm %.3e", step + 1, norm)

        if norm < cfg.absolute_tolerance:
            logger.info("Converged after %d iterations, residual norm %.3e", cfg.max_steps, norm)
            return x

        raise ConvergenceFailureError(
            f"No convergence after {cfg.max_steps} iterations; last residual norm {norm:.3e} "
            f"(tolerance {cfg.absolute_tolerance:.1e}).",
            residual_norm=norm,
            iterations=cfg.max_steps,
        )

    @staticmethod
    def _residual(function, x: np.ndarray, strict: bool = True) -> Optional[np.ndarray]:
        r = np.atleast_1d(np.asarray(function(x), dtype=float))
        if not np.all(np.isfinite(r)):
            if strict:
                raise NumericalFailureError(f"Non-finite residual at {x}.")
            return None
        return r

    def _newton_step(self, J: np.ndarray, r: np.ndarray, step: int) -> np.ndarray:
        n = len(r)
        if J.shape != (n, n):
            raise NumericalFailureError(f"Jacobian has shape {J.shape}, expected {(n, n)}.")
        if not np.all(np.isfinite(J)):
            raise NumericalFailureError(f"Non-finite Jacobian at iteration {step}.")

        with np.errstate(divide="ignore", invalid="ignore"):
            cond = np.linalg.cond(J)
        if not cond < self.config.max_condition:
            raise NumericalFailureError(
                f"Ill-conditioned Jacobian at iteration {step} (condition number {cond:.3e})."
            )

        try:
            with warnings.catch_warnings():
                warnings.simplefilter("error", scipy.linalg.LinAlgWarning)
                return scipy.linalg.solve(J, -r)
        except (scipy.linalg.LinAlgError, scipy.linalg.LinAlgWarning) as e:
            raise NumericalFailureError(f"Singular Jacobian at iteration {step}: {e}") from e
