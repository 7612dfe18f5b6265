"""Environment resolution: replace ``ssm:`` references with parameter values."""

from __future__ import annotations

import logging
from collections.abc import Iterable, Mapping
from dataclasses import dataclass, field

from ssm_env_injector.core.exceptions import SecretFetchError, SecretNotFoundError
from ssm_env_injector.core.secrets.base import (
    SecretResolutionResult,
    SecretResolutionStatus,
    SecretsProvider,
)
from ssm_env_injector.core.secrets.reference import extract_key, is_reference

logger = logging.getLogger(__name__)


class ParameterCache:
    """Per-run memo of parameter lookups.

    Every result is cached, including not-found and error results, so each
    distinct key reaches the provider at most once. One instance belongs to
    a single :meth:`EnvironmentResolver.resolve` call and is never shared.

    Args:
        provider: The provider to delegate to on cache miss.
    """

    def __init__(self, provider: SecretsProvider) -> None:
        self._provider = provider
        self._cache: dict[str, SecretResolutionResult] = {}

    def resolve(self, key: str) -> SecretResolutionResult:
        """Resolve *key*, returning the cached result if available."""
        result = self._cache.get(key)
        if result is None:
            result = self._provider.resolve(key)
            self._cache[key] = result
        return result

    def __len__(self) -> int:
        return len(self._cache)

    def __contains__(self, key: object) -> bool:
        return key in self._cache


@dataclass
class ResolvedEnvironment:
    """Final environment handed to the workload, in source order."""

    entries: list[tuple[str, str]] = field(default_factory=list)

    def append(self, name: str, value: str) -> None:
        self.entries.append((name, value))

    def as_list(self) -> list[str]:
        """Return ``name=value`` strings."""
        return [f"{name}={value}" for name, value in self.entries]

    def as_dict(self) -> dict[str, str]:
        """Return an insertion-ordered mapping suitable for ``os.execve``."""
        return dict(self.entries)

    def __len__(self) -> int:
        return len(self.entries)

    def __repr__(self) -> str:
        names = [name for name, _ in self.entries]
        return f"ResolvedEnvironment(names={names!r})"


class EnvironmentResolver:
    """Resolve every ``ssm:`` reference in a process environment.

    Non-reference values are copied through untouched. References are
    looked up through a fresh :class:`ParameterCache` per call. A failed
    lookup aborts the whole run unless *ignore_missing* is set, in which
    case the variable is logged and dropped.

    Args:
        provider: Parameter store backend.
        ignore_missing: Drop unresolvable variables instead of raising.
    """

    def __init__(self, provider: SecretsProvider, ignore_missing: bool = False) -> None:
        self._provider = provider
        self._ignore_missing = ignore_missing

    @property
    def ignore_missing(self) -> bool:
        return self._ignore_missing

    def resolve(
        self,
        environment: Mapping[str, str] | Iterable[tuple[str, str]],
    ) -> ResolvedEnvironment:
        """Resolve *environment* into the final workload environment.

        Args:
            environment: Mapping or ``(name, value)`` pairs in their
                natural order.

        Returns:
            The resolved environment, in source order.

        Raises:
            SecretNotFoundError: A parameter does not exist and
                *ignore_missing* is false.
            SecretFetchError: A lookup failed and *ignore_missing* is false.
        """
        pairs = environment.items() if isinstance(environment, Mapping) else environment
        cache = ParameterCache(self._provider)
        resolved = ResolvedEnvironment()

        for name, value in pairs:
            if not is_reference(value):
                resolved.append(name, value)
                continue

            key = extract_key(value)
            result = cache.resolve(key)
            if result.ok and result.value is not None:
                resolved.append(name, result.value)
                continue

            reason = result.error or f"status={result.status.value}"
            if not self._ignore_missing:
                if result.status is SecretResolutionStatus.ERROR:
                    raise SecretFetchError(key, reason)
                raise SecretNotFoundError(key, reason)
            logger.error("failed to read secret from path %s for %s: %s", key, name, reason)

        logger.debug("Resolved %d variables with %d parameter lookups", len(resolved), len(cache))
        return resolved
