"""Typed operation results for the lifecycle workflows.

Entity-level failures (validation, missing ids, illegal transitions, caps)
come back as ``OperationResult`` values instead of exceptions, so callers
can branch on ``error_code`` without try/except.
"""

import functools
from dataclasses import dataclass
from typing import Any, Awaitable, Callable, Generic, Optional, TypeVar

import structlog

from marketplace.exceptions import MarketplaceError

logger = structlog.get_logger()

T = TypeVar("T")


@dataclass
class OperationResult(Generic[T]):
    success: bool
    value: Optional[T] = None
    error: Optional[MarketplaceError] = None

    @classmethod
    def ok(cls, value: T) -> "OperationResult[T]":
        return cls(success=True, value=value)

    @classmethod
    def failed(cls, error: MarketplaceError) -> "OperationResult[T]":
        return cls(success=False, error=error)

    @property
    def error_code(self) -> Optional[str]:
        return self.error.code if self.error else None

    @property
    def message(self) -> Optional[str]:
        return self.error.message if self.error else None

    def unwrap(self) -> T:
        """Return the value, or raise the carried error (API layer only)."""
        if not self.success:
            raise self.error
        return self.value


def returns_result(
    func: Callable[..., Awaitable[Any]],
) -> Callable[..., Awaitable[OperationResult]]:
    """Wrap an async operation so MarketplaceError becomes a failed result."""

    @functools.wraps(func)
    async def wrapper(*args, **kwargs) -> OperationResult:
        try:
            value = await func(*args, **kwargs)
        except MarketplaceError as exc:
            logger.info(
                "operation_rejected",
                operation=func.__name__,
                error_code=exc.code,
                message=exc.message,
            )
            return OperationResult.failed(exc)
        if isinstance(value, OperationResult):
            return value
        return OperationResult.ok(value)

    return wrapper
