"""
Parameter transforms between constrained model parameters and unconstrained
fitting parameters.

A root finder works on the whole real line; model parameters often do not
(a rate floored at a limit, a weight in a range). Each transform here is a
smooth, strictly increasing bijection from the real line (fitting space) onto
the model domain, so the solver can move freely while the model never leaves
its domain.
"""
from __future__ import annotations

import numpy as np
from abc import ABC, abstractmethod
from enum import Enum
from typing import Callable, Optional, Sequence

from scipy.special import expit


class LimitType(Enum):
    GREATER_THAN = "greater_than"
    LESS_THAN = "less_than"


class ParameterLimitsTransform(ABC):
    """
    Bijection model <-> fitting for a single parameter. All methods accept
    scalars or numpy arrays.
    """

    @abstractmethod
    def transform(self, x):
        """Model value -> fitting value."""

    @abstractmethod
    def inverse_transform(self, y):
        """Fitting value -> model value."""

    @abstractmethod
    def transform_gradient(self, x):
        """dFitting/dModel at model value x."""

    @abstractmethod
    def inverse_transform_gradient(self, y):
        """dModel/dFitting at fitting value y."""


class NullTransform(ParameterLimitsTransform):
    """Identity; the parameter is unconstrained."""

    def transform(self, x):
        return x

    def inverse_transform(self, y):
        return y

    def transform_gradient(self, x):
        return np.ones_like(np.asarray(x, dtype=float))[()]

    def inverse_transform_gradient(self, y):
        return np.ones_like(np.asarray(y, dtype=float))[()]

    def __eq__(self, other) -> bool:
        return isinstance(other, NullTransform)

    def __hash__(self) -> int:
        return hash(NullTransform)

    def __repr__(self) -> str:
        return "NullTransform()"


class DoubleRangeLimitTransform(ParameterLimitsTransform):
    """
    Maps the real line onto the open interval (lower, upper):

        model = mid + scale * tanh(fitting)

    with mid/scale the centre and half-width of the interval. For large
    |fitting| tanh rounds to +/-1; the result is then nudged one ulp inside
    the interval so the bounds are never reached.
    """

    def __init__(self, lower: float, upper: float):
        if not (np.isfinite(lower) and np.isfinite(upper)):
            raise ValueError("Range limits must be finite.")
        if not upper > lower:
            raise ValueError("upper must be greater than lower")
        self.lower = float(lower)
        self.upper = float(upper)
        self._mid = 0.5 * (self.lower + self.upper)
        self._scale = 0.5 * (self.upper - self.lower)

    def _check_domain(self, x):
        x = np.asarray(x, dtype=float)
        if np.any(x <= self.lower) or np.any(x >= self.upper):
            raise ValueError(f"Value outside open range ({self.lower}, {self.upper}): {x}")
        return x

    def transform(self, x):
        x = self._check_domain(x)
        return np.arctanh((x - self._mid) / self._scale)[()]

    def inverse_transform(self, y):
        y = np.asarray(y, dtype=float)
        x = self._mid + self._scale * np.tanh(y)
        x = np.where(x <= self.lower, np.nextafter(self.lower, self.upper), x)
        x = np.where(x >= self.upper, np.nextafter(self.upper, self.lower), x)
        return x[()]

    def transform_gradient(self, x):
        x = self._check_domain(x)
        u = (x - self._mid) / self._scale
        return (1.0 / (self._scale * (1.0 - u * u)))[()]

    def inverse_transform_gradient(self, y):
        t = np.tanh(np.asarray(y, dtype=float))
        return (self._scale * (1.0 - t * t))[()]

    def __eq__(self, other) -> bool:
        return (
            isinstance(other, DoubleRangeLimitTransform)
            and other.lower == self.lower
            and other.upper == self.upper
        )

    def __hash__(self) -> int:
        return hash((DoubleRangeLimitTransform, self.lower, self.upper))

    def __repr__(self) -> str:
        return f"DoubleRangeLimitTransform({self.lower!r}, {self.upper!r})"


class SingleRangeLimitTransform(ParameterLimitsTransform):
    """
    Maps the real line onto (limit, +inf) or (-inf, limit) with a softplus:

        GREATER_THAN: model = limit + log(1 + exp(fitting))
        LESS_THAN:    model = limit - log(1 + exp(-fitting))

    Both are strictly increasing, and close to the identity (shifted) far
    from the limit.
    """

    def __init__(self, limit: float, limit_type: LimitType = LimitType.GREATER_THAN):
        if not np.isfinite(limit):
            raise ValueError("limit must be finite")
        self.limit = float(limit)
        self.limit_type = LimitType(limit_type)
        self._sign = 1.0 if self.limit_type is LimitType.GREATER_THAN else -1.0

    def _distance(self, x):
        x = np.asarray(x, dtype=float)
        d = self._sign * (x - self.limit)
        if np.any(d <= 0):
            side = ">" if self._sign > 0 else "<"
            raise ValueError(f"Value must be {side} {self.limit}: {x}")
        return d

    def transform(self, x):
        d = self._distance(x)
        # log(exp(d) - 1), stable for small and large d
        return (self._sign * (d + np.log(-np.expm1(-d))))[()]

    def inverse_transform(self, y):
        y = np.asarray(y, dtype=float)
        x = self.limit + self._sign * np.logaddexp(0.0, self._sign * y)
        if self._sign > 0:
            x = np.where(x <= self.limit, np.nextafter(self.limit, np.inf), x)
        else:
            x = np.where(x >= self.limit, np.nextafter(self.limit, -np.inf), x)
        return x[()]

    def transform_gradient(self, x):
        d = self._distance(x)
        return (1.0 / (-np.expm1(-d)))[()]

    def inverse_transform_gradient(self, y):
        return expit(self._sign * np.asarray(y, dtype=float))[()]

    def __eq__(self, other) -> bool:
        return (
            isinstance(other, SingleRangeLimitTransform)
            and other.limit == self.limit
            and other.limit_type is self.limit_type
        )

    def __hash__(self) -> int:
        return hash((SingleRangeLimitTransform, self.limit, self.limit_type))

    def __repr__(self) -> str:
        return f"SingleRangeLimitTransform({self.limit!r}, {self.limit_type})"


class UncoupledParameterTransforms:
    """
    One transform per model parameter, no cross-parameter coupling, and a
    mask of parameters held at their start values.

    Fixed parameters do not appear in the fitting vector at all.
    """

    def __init__(
        self,
        start: Sequence[float],
        transforms: Sequence[ParameterLimitsTransform],
        fixed: Optional[Sequence[bool]] = None,
    ):
        start = np.asarray(start, dtype=float)
        if start.ndim != 1:
            raise ValueError("start must be a 1-d vector")
        n = len(start)
        if len(transforms) != n:
            raise ValueError(f"Expected {n} transforms, got {len(transforms)}")

        if fixed is None:
            fixed = np.zeros(n, dtype=bool)
        fixed = np.asarray(fixed, dtype=bool)
        if fixed.shape != (n,):
            raise ValueError(f"Expected fixed mask of length {n}, got {fixed.shape}")

        self._start = start.copy()
        self._transforms = tuple(transforms)
        self._fixed = fixed.copy()
        self._free_idx = np.flatnonzero(~fixed)

    @property
    def num_model_parameters(self) -> int:
        return len(self._start)

    @property
    def num_fitting_parameters(self) -> int:
        return len(self._free_idx)

    @property
    def fixed(self) -> np.ndarray:
        return self._fixed.copy()

    def transform(self, model: Sequence[float]) -> np.ndarray:
        """Model vector -> fitting vector (fixed parameters dropped)."""
        model = np.asarray(model, dtype=float)
        if model.shape != (self.num_model_parameters,):
            raise ValueError(f"Expected model vector of length {self.num_model_parameters}")
        return np.array(
            [float(self._transforms[i].transform(model[i])) for i in self._free_idx],
            dtype=float,
        )

    def inverse_transform(self, fitting: Sequence[float]) -> np.ndarray:
        """Fitting vector -> model vector, fixed parameters at their start values."""
        fitting = np.asarray(fitting, dtype=float)
        if fitting.shape != (self.num_fitting_parameters,):
            raise ValueError(f"Expected fitting vector of length {self.num_fitting_parameters}")
        model = self._start.copy()
        for j, i in enumerate(self._free_idx):
            model[i] = float(self._transforms[i].inverse_transform(fitting[j]))
        return model

    def inverse_jacobian_diagonal(self, fitting: Sequence[float]) -> np.ndarray:
        """dModel_i/dFitting_i for each free parameter."""
        fitting = np.asarray(fitting, dtype=float)
        return np.array(
            [float(self._transforms[i].inverse_transform_gradient(fitting[j])) for j, i in enumerate(self._free_idx)],
            dtype=float,
        )

    def jacobian(self, model_jacobian, fitting: Sequence[float]) -> np.ndarray:
        """
        Chain rule from model space to fitting space: rescale each free
        column of the model Jacobian by dModel/dFitting and drop fixed columns.
        """
        model_jacobian = np.atleast_2d(np.asarray(model_jacobian, dtype=float))
        if model_jacobian.shape[1] != self.num_model_parameters:
            raise ValueError(
                f"Model Jacobian has {model_jacobian.shape[1]} columns, expected {self.num_model_parameters}"
            )
        return model_jacobian[:, self._free_idx] * self.inverse_jacobian_diagonal(fitting)[np.newaxis, :]


class NonLinearTransformFunction:
    """
    Wraps a model-space function (and optional Jacobian) as functions of the
    fitting vector.
    """

    def __init__(
        self,
        function: Callable[[np.ndarray], np.ndarray],
        jacobian: Optional[Callable[[np.ndarray], np.ndarray]],
        transforms: UncoupledParameterTransforms,
    ):
        self._function = function
        self._jacobian = jacobian
        self.transforms = transforms

    def fitting_function(self, fitting: np.ndarray) -> np.ndarray:
        return np.asarray(self._function(self.transforms.inverse_transform(fitting)), dtype=float)

    @property
    def fitting_jacobian(self) -> Optional[Callable[[np.ndarray], np.ndarray]]:
        if self._jacobian is None:
            return None

        def jac(fitting: np.ndarray) -> np.ndarray:
            model = self.transforms.inverse_transform(fitting)
            return self.transforms.jacobian(self._jacobian(model), fitting)

        return jac
