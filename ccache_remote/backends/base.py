from __future__ import annotations

import enum
from dataclasses import dataclass
from typing import Any, Optional, Protocol

from ..digest import Digest


class Error(enum.Enum):
    """Failure kinds a secondary storage backend reports to its caller."""

    ERROR = "error"
    TIMEOUT = "timeout"


@dataclass(frozen=True)
class Result:
    """
    Outcome of a backend operation.

    Exactly one of ``value`` and ``error`` is meaningful: when ``error`` is
    set the operation failed, otherwise ``value`` carries the answer (which
    may itself be ``None`` or ``False`` for "not found" outcomes).
    """

    value: Any = None
    error: Optional[Error] = None

    @classmethod
    def ok(cls, value: Any) -> "Result":
        return cls(value=value)

    @classmethod
    def fail(cls, error: Error) -> "Result":
        return cls(error=error)

    @property
    def failed(self) -> bool:
        return self.error is not None


class SecondaryStorageBackend(Protocol):
    """Interface for secondary storage backends."""

    def get(self, key: Digest) -> Result:
        """Retrieve a value; ``Result.ok(None)`` when the key is absent."""
        ...

    def put(self, key: Digest, value: bytes, only_if_missing: bool = False) -> Result:
        """Store a value; ``Result.ok(False)`` when nothing was written."""
        ...

    def remove(self, key: Digest) -> Result:
        """Delete a value; ``Result.ok(False)`` when the key was absent."""
        ...

    def health_check(self) -> bool:
        """Check if the backend is healthy."""
        ...

    def close(self) -> None:
        """Release the backend's connection."""
        ...
