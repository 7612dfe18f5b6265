"""Secrets provider abstractions and models."""

from __future__ import annotations

from abc import ABC, abstractmethod
from dataclasses import dataclass
from enum import Enum


class SecretResolutionStatus(str, Enum):
    """Outcome of a secret resolution attempt."""

    SUCCESS = "success"
    NOT_FOUND = "not_found"
    ERROR = "error"


@dataclass(frozen=True)
class SecretResolutionResult:
    """Result of resolving a single parameter path.

    The ``value`` field is masked in ``__repr__`` to prevent accidental
    leakage in logs or tracebacks.

    Args:
        key: The parameter path that was resolved.
        status: Outcome of the resolution.
        value: The secret value (only set on success).
        error: Error description (only set on failure).
    """

    key: str
    status: SecretResolutionStatus
    value: str | None = None
    error: str | None = None

    @property
    def ok(self) -> bool:
        """Whether the resolution succeeded."""
        return self.status is SecretResolutionStatus.SUCCESS

    def __repr__(self) -> str:
        masked = "***" if self.value is not None else "None"
        return (
            f"SecretResolutionResult("
            f"key={self.key!r}, "
            f"status={self.status!r}, "
            f"value={masked}, "
            f"error={self.error!r})"
        )


class SecretsProvider(ABC):
    """Base class for parameter store backends.

    Subclasses implement :meth:`resolve` to fetch a single value by key.
    Failures are reported through the result status, never raised.
    """

    @property
    @abstractmethod
    def provider_name(self) -> str:
        """Unique name for this provider (e.g. ``"ssm"``)."""
        ...

    @abstractmethod
    def resolve(self, key: str) -> SecretResolutionResult:
        """Resolve a single parameter path."""
        ...
