from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Callable, Generic, Optional, TypeVar

from .errors import CalibrationError, FailureReason

T = TypeVar("T")
U = TypeVar("U")


@dataclass(frozen=True)
class Failure:
    reason: FailureReason
    message: str

    def __str__(self) -> str:
        return f"{self.reason.name}: {self.message}"


@dataclass(frozen=True)
class Result(Generic[T]):
    """
    Outcome of an orchestration-level operation: either a value or a failure.

    Example:
        >>> result = function.build_curve_group(config, market_data, feed)
        >>> if result.is_success:
        ...     group = result.value
        ... else:
        ...     print(result.failure)
    """

    _value: Optional[T] = None
    failure: Optional[Failure] = None

    @classmethod
    def success(cls, value: T) -> "Result[T]":
        return cls(_value=value)

    @classmethod
    def failed(cls, reason: FailureReason, message: str) -> "Result[Any]":
        return cls(failure=Failure(reason, message))

    @classmethod
    def from_error(cls, error: CalibrationError) -> "Result[Any]":
        return cls.failed(error.reason, str(error))

    @property
    def is_success(self) -> bool:
        return self.failure is None

    @property
    def is_failure(self) -> bool:
        return self.failure is not None

    @property
    def value(self) -> T:
        if self.failure is not None:
            raise ValueError(f"Result is a failure: {self.failure}")
        return self._value

    def map(self, fn: Callable[[T], U]) -> "Result[U]":
        if self.failure is not None:
            return self  # type: ignore[return-value]
        return Result.success(fn(self._value))
