"""
Result envelope for expected success/failure outcomes.

Association operations on the relationship engine report expected validation
failures (a missing record, a project mismatch) as values instead of
exceptions. ``Ok[T]`` wraps the success value, ``Err[T]`` wraps the error;
unexpected storage errors are still raised.

Usage:
    from cortex_db.result import Ok, Err

    match manager.associate_trr_with_pov(trr_id, pov_id):
        case Ok(trr):
            print("linked", trr["id"])
        case Err(error):
            print("rejected:", error)
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Callable, Generic, TypeVar

from cortex_db.errors import CortexError

T = TypeVar("T")
U = TypeVar("U")


@dataclass(frozen=True, slots=True)
class Ok(Generic[T]):
    """Successful result containing a value."""

    value: T

    @property
    def success(self) -> bool:
        return True

    def is_ok(self) -> bool:
        return True

    def is_err(self) -> bool:
        return False

    def unwrap(self) -> T:
        """Get the value. Safe for Ok."""
        return self.value

    def unwrap_or(self, default: T) -> T:
        return self.value

    def map(self, f: Callable[[T], U]) -> Result[U]:
        """Transform the value if Ok."""
        return Ok(f(self.value))

    def to_dict(self) -> dict[str, Any]:
        return {"success": True}

    def __repr__(self) -> str:
        return f"Ok({self.value!r})"


@dataclass(frozen=True, slots=True)
class Err(Generic[T]):
    """Failed result containing an error."""

    error: Exception

    @property
    def success(self) -> bool:
        return False

    @property
    def reason(self) -> str:
        """Human-readable failure reason."""
        if isinstance(self.error, CortexError):
            return self.error.message
        return str(self.error)

    def is_ok(self) -> bool:
        return False

    def is_err(self) -> bool:
        return True

    def unwrap(self) -> T:
        """Raise the error. Use only when you're sure it's Ok."""
        raise self.error

    def unwrap_or(self, default: T) -> T:
        return default

    def map(self, f: Callable[[T], U]) -> Result[U]:
        """No-op for Err."""
        return Err(self.error)

    def to_dict(self) -> dict[str, Any]:
        return {"success": False, "error": self.reason}

    def __repr__(self) -> str:
        return f"Err({self.error!r})"


Result = Ok[T] | Err[T]


__all__ = [
    "Ok",
    "Err",
    "Result",
]
