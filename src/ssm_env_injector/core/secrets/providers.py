"""AWS SSM Parameter Store provider."""

from __future__ import annotations

import logging
from typing import Any

from ssm_env_injector.core.secrets.base import (
    SecretResolutionResult,
    SecretResolutionStatus,
    SecretsProvider,
)

logger = logging.getLogger(__name__)

_NOT_FOUND_CODES = frozenset({"ParameterNotFound", "ParameterVersionNotFound"})


def _error_code(exc: Exception) -> str | None:
    response = getattr(exc, "response", None)
    if not isinstance(response, dict):
        return None
    return response.get("Error", {}).get("Code")


class SsmParameterProvider(SecretsProvider):
    """Resolve parameters from AWS SSM Parameter Store with decryption.

    The boto3 client is created lazily on the first call to
    :meth:`resolve`, with bounded connect/read timeouts and botocore's
    ``standard`` retry mode.

    Args:
        region_name: AWS region of the parameter store.
        timeout_seconds: Connect and read timeout of each call.
    """

    def __init__(self, region_name: str, timeout_seconds: float = 10.0) -> None:
        if not region_name:
            raise ValueError("region_name is required")
        self._region = region_name
        self._timeout = timeout_seconds
        self._client: Any = None

    @property
    def provider_name(self) -> str:
        return "ssm"

    @property
    def region_name(self) -> str:
        return self._region

    def _get_client(self) -> Any:
        if self._client is None:
            import boto3
            from botocore.config import Config

            self._client = boto3.client(
                "ssm",
                region_name=self._region,
                config=Config(
                    connect_timeout=self._timeout,
                    read_timeout=self._timeout,
                    retries={"mode": "standard"},
                ),
            )
        return self._client

    def resolve(self, key: str) -> SecretResolutionResult:
        if not key:
            return SecretResolutionResult(
                key=key,
                status=SecretResolutionStatus.NOT_FOUND,
                error="empty parameter path",
            )
        try:
            response = self._get_client().get_parameter(Name=key, WithDecryption=True)
        except Exception as exc:
            status = (
                SecretResolutionStatus.NOT_FOUND
                if _error_code(exc) in _NOT_FOUND_CODES
                else SecretResolutionStatus.ERROR
            )
            return SecretResolutionResult(key=key, status=status, error=str(exc))

        value = response.get("Parameter", {}).get("Value")
        if value is None:
            return SecretResolutionResult(
                key=key,
                status=SecretResolutionStatus.NOT_FOUND,
                error=f"Parameter '{key}' has no value",
            )
        logger.debug("Fetched parameter %s", key)
        return SecretResolutionResult(
            key=key,
            status=SecretResolutionStatus.SUCCESS,
            value=value,
        )
