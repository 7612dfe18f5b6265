"""Secrets resolution: reference detection, providers, caching."""

from ssm_env_injector.core.secrets.base import (
    SecretResolutionResult,
    SecretResolutionStatus,
    SecretsProvider,
)
from ssm_env_injector.core.secrets.providers import SsmParameterProvider
from ssm_env_injector.core.secrets.reference import SSM_PREFIX, extract_key, is_reference
from ssm_env_injector.core.secrets.region import resolve_region
from ssm_env_injector.core.secrets.resolver import (
    EnvironmentResolver,
    ParameterCache,
    ResolvedEnvironment,
)

__all__ = [
    "EnvironmentResolver",
    "ParameterCache",
    "ResolvedEnvironment",
    "SSM_PREFIX",
    "SecretResolutionResult",
    "SecretResolutionStatus",
    "SecretsProvider",
    "SsmParameterProvider",
    "extract_key",
    "is_reference",
    "resolve_region",
]
