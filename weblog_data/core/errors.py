# weblog_data/core/errors.py
"""
Errors raised by the data layer.

"Not found" is never an error here: finders return None, and id-targeted
mutations return False or a failed OpResult.
"""
from dataclasses import dataclass
from typing import Generic, Optional, TypeVar

T = TypeVar("T")


class WebLogDataError(Exception):
    """Base class for all data layer errors."""


class ConstraintViolationError(WebLogDataError):
    """A uniqueness or referential rule would be broken by a write."""


class TransientStoreError(WebLogDataError):
    """The store stayed unreachable after the retry budget was spent."""


class MigrationError(WebLogDataError):
    """A schema migration step could not be completed."""

    def __init__(self, message: str, version: Optional[str] = None):
        super().__init__(message)
        self.version = version


@dataclass(frozen=True)
class OpResult(Generic[T]):
    """Result of an operation designed to fail gracefully."""

    ok: bool
    value: Optional[T] = None
    error: Optional[str] = None

    @classmethod
    def success(cls, value: T) -> "OpResult[T]":
        return cls(ok=True, value=value)

    @classmethod
    def failure(cls, error: str) -> "OpResult[T]":
        return cls(ok=False, error=error)
