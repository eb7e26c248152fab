"""
Result type for consistent error handling across services.

Engine code raises ``BalanceError`` subclasses; the service layer converts them
into a ``Result`` so the host can branch on ``error_code`` instead of catching
exceptions around every balancing run.

Usage:
    # Returning success
    return Result.ok(plan)

    # Returning failure
    return Result.fail("Side sizes cannot be met", code=IMPOSSIBLE_SIZE_CONSTRAINT)
    return Result.from_error(exc)

    # Checking results
    if result.success:
        to_side_a, to_side_b = result.value.moves_for(players)
    else:
        logger.warning(f"Balance failed ({result.error_code}): {result.error}")
"""

from dataclasses import dataclass
from typing import Generic, TypeVar

from domain.errors import BalanceError

T = TypeVar("T")


@dataclass(frozen=True)
class Result(Generic[T]):
    """
    A simple result type for service method return values.

    Attributes:
        success: Whether the operation succeeded
        value: The return value if successful (None if failed)
        error: Error message if failed (None if successful)
        error_code: Error code for programmatic error handling
    """

    success: bool
    value: T | None = None
    error: str | None = None
    error_code: str | None = None

    @classmethod
    def ok(cls, value: T | None = None) -> "Result[T]":
        """Create a successful result with an optional value."""
        return cls(success=True, value=value)

    @classmethod
    def fail(cls, error: str, code: str | None = None) -> "Result[T]":
        """Create a failed result with an error message and optional error code."""
        return cls(success=False, error=error, error_code=code)

    @classmethod
    def from_error(cls, error: BalanceError) -> "Result[T]":
        """Create a failed result from an engine error, keeping its code."""
        return cls.fail(error.message, code=error.code)

    def __bool__(self) -> bool:
        """Allow using Result in boolean context: if result: ..."""
        return self.success

