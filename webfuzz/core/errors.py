"""Error taxonomy and stop reasons."""

from enum import Enum
from typing import Iterable, List, Optional


class FuzzError(Exception):
    """Base class for everything the engine raises on purpose."""


class ConfigurationError(FuzzError):
    """Unresolved keyword/marker, bad mode combination, bad value."""


class DecisionError(FuzzError):
    """Malformed matcher or filter rule."""


class ExecutorError(FuzzError):
    """Transport failure (connection refused, timeout, ...)."""

    def __init__(self, message: str, request=None):
        super().__init__(message)
        self.request = request


class Multierror(FuzzError):
    """Collects configuration-time errors so they are reported together."""

    def __init__(self, errors: Optional[Iterable[Exception]] = None):
        self.errors: List[Exception] = list(errors or [])
        super().__init__(self._message())

    def add(self, err: Exception) -> None:
        if isinstance(err, Multierror):
            self.errors.extend(err.errors)
        else:
            self.errors.append(err)
        self.args = (self._message(),)

    def error_or_none(self) -> Optional["Multierror"]:
        return self if self.errors else None

    def raise_if_any(self) -> None:
        if self.errors:
            raise self

    def __len__(self):
        return len(self.errors)

    def __iter__(self):
        return iter(self.errors)

    def _message(self) -> str:
        if not self.errors:
            return "no errors"
        return "\n".join(f"  * {e}" for e in self.errors)


class StopReason(str, Enum):
    """Why a job stopped. Not an error: reported as job metadata."""
    EXHAUSTED = "exhausted"
    ERRORS = "errors"
    FORBIDDEN = "403"
    ALL = "all"
    MAX_TIME = "max_time"
    MAX_TIME_JOB = "max_time_job"
    CANCELLED = "cancelled"
