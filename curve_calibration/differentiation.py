from __future__ import annotations

import numpy as np
from enum import Enum
from typing import Callable


class FiniteDifferenceType(Enum):
    FORWARD = "forward"
    CENTRAL = "central"
    BACKWARD = "backward"


class VectorFieldFirstOrderDifferentiator:
    """
    Finite-difference Jacobian of a vector function R^n -> R^m.

    The step for component i is eps * max(|x_i|, min_scale), so it scales
    with the evaluation point but never collapses to zero at x_i = 0.
    Kinks in the function only reduce accuracy.

    Example:
        >>> jac = VectorFieldFirstOrderDifferentiator().differentiate(f)
        >>> jac(np.array([0.01, 0.02])).shape
        (m, 2)
    """

    def __init__(
        self,
        eps: float = 1e-5,
        scheme: FiniteDifferenceType = FiniteDifferenceType.CENTRAL,
        min_scale: float = 1.0,
    ):
        if not eps > 0:
            raise ValueError("eps must be positive")
        if not min_scale > 0:
            raise ValueError("min_scale must be positive")
        self.eps = float(eps)
        self.scheme = FiniteDifferenceType(scheme)
        self.min_scale = float(min_scale)

    def steps(self, x: np.ndarray) -> np.ndarray:
        return self.eps * np.maximum(np.abs(x), self.min_scale)

    def differentiate(self, function: Callable[[np.ndarray], np.ndarray]) -> Callable[[np.ndarray], np.ndarray]:
        def jacobian(x) -> np.ndarray:
            x = np.asarray(x, dtype=float)
            h = self.steps(x)
            n = len(x)

            base = None
            if self.scheme is not FiniteDifferenceType.CENTRAL:
                base = np.atleast_1d(np.asarray(function(x), dtype=float))

            columns = []
            for i in range(n):
                up = x.copy()
                down = x.copy()
                if self.scheme is FiniteDifferenceType.CENTRAL:
                    up[i] += h[i]
                    down[i] -= h[i]
                    f_up = np.atleast_1d(np.asarray(function(up), dtype=float))
                    f_down = np.atleast_1d(np.asarray(function(down), dtype=float))
                    columns.append((f_up - f_down) / (up[i] - down[i]))
                elif self.scheme is FiniteDifferenceType.FORWARD:
                    up[i] += h[i]
                    f_up = np.atleast_1d(np.asarray(function(up), dtype=float))
                    columns.append((f_up - base) / (up[i] - x[i]))
                else:
                    down[i] -= h[i]
                    f_down = np.atleast_1d(np.asarray(function(down), dtype=float))
                    columns.append((base - f_down) / (x[i] - down[i]))

            if not columns:
                m = len(np.atleast_1d(function(x))) if base is None else len(base)
                return np.zeros((m, 0))
            return np.column_stack(columns)

        return jacobian
