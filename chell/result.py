"""Result values and the session error log.

Every layer of the path/VFS core reports expected failures as a ``Result``
instead of raising. The layer that detects a failure pushes exactly one
message onto the ``ErrorStack``; layers that merely pass a failed result
along never push again.
"""

from dataclasses import dataclass
from enum import Enum
from typing import Generic, List, Optional, TypeVar

T = TypeVar("T")


class ErrorKind(Enum):
    """Failure categories surfaced to the user"""

    NOT_FOUND = "not-found"
    PROVIDER_FAILURE = "provider-failure"
    INVALID_PATH = "invalid-path"


@dataclass(frozen=True)
class ChellError:
    """One user-facing failure"""

    kind: ErrorKind
    message: str

    def __str__(self):
        return self.message


@dataclass(frozen=True)
class Result(Generic[T]):
    """Success/failure wrapper

    Use ``Ok(value)`` and ``Err(error)`` rather than the constructor.
    """

    ok: bool
    value: Optional[T] = None
    error: Optional[ChellError] = None

    def __bool__(self):
        return self.ok


def Ok(value: T) -> Result[T]:
    return Result(ok=True, value=value)


def Err(error: Optional[ChellError] = None) -> Result:
    return Result(ok=False, error=error)


class ErrorStack:
    """Append/pop log of failures, consumed by the command layer for display"""

    def __init__(self):
        self._errors: List[ChellError] = []

    def push(self, kind: ErrorKind, message: str) -> ChellError:
        error = ChellError(kind, message)
        self._errors.append(error)
        return error

    def pop(self) -> Optional[ChellError]:
        """Remove and return the newest error, or None if the log is empty"""
        if not self._errors:
            return None
        return self._errors.pop()

    def drain(self) -> List[ChellError]:
        """Return every error, oldest first, and empty the log"""
        errors = self._errors
        self._errors = []
        return errors

    def clear(self) -> None:
        self._errors = []

    def __len__(self):
        return len(self._errors)

    def __repr__(self):
        return f"ErrorStack({len(self._errors)} errors)"
