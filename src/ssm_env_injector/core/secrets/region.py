"""AWS region discovery for the launcher.

The region comes from ``AWS_REGION`` or ``AWS_DEFAULT_REGION``; when
neither is set it is read from the EC2 instance identity document.
"""

from __future__ import annotations

import logging
from collections.abc import Mapping
from typing import Any

import requests

from ssm_env_injector.core.exceptions import ConfigurationMissingError

logger = logging.getLogger(__name__)

IMDS_TOKEN_URL = "http://169.254.169.254/latest/api/token"
EC2_METADATA_DOCUMENT_URL = "http://169.254.169.254/latest/dynamic/instance-identity/document"
REGION_ENV_VARS = ("AWS_REGION", "AWS_DEFAULT_REGION")


def _imds_token(session: Any, timeout: float) -> str | None:
    """Request an IMDSv2 session token; ``None`` means fall back to IMDSv1."""
    try:
        response = session.put(
            IMDS_TOKEN_URL,
            headers={"X-aws-ec2-metadata-token-ttl-seconds": "60"},
            timeout=timeout,
        )
        response.raise_for_status()
    except requests.RequestException as exc:
        logger.debug("IMDSv2 token request failed, falling back to IMDSv1: %s", exc)
        return None
    return response.text or None


def region_from_instance_metadata(session: Any = None, timeout: float = 2.0) -> str:
    """Read the region from the EC2 instance identity document.

    Args:
        session: ``requests``-compatible session. Defaults to a new
            :class:`requests.Session`.
        timeout: Per-request timeout in seconds.

    Returns:
        The region name.

    Raises:
        ConfigurationMissingError: If the document cannot be fetched or
            carries no region.
    """
    session = session or requests.Session()
    headers: dict[str, str] = {}
    token = _imds_token(session, timeout)
    if token:
        headers["X-aws-ec2-metadata-token"] = token

    logger.info("fetching %s", EC2_METADATA_DOCUMENT_URL)
    try:
        response = session.get(EC2_METADATA_DOCUMENT_URL, headers=headers, timeout=timeout)
        response.raise_for_status()
    except requests.RequestException as exc:
        raise ConfigurationMissingError(
            f"Error fetching {EC2_METADATA_DOCUMENT_URL}: {exc}"
        ) from exc

    try:
        document = response.json()
    except ValueError:
        logger.warning("Error unmarshalling %s", EC2_METADATA_DOCUMENT_URL)
        document = {}

    region = document.get("region") if isinstance(document, dict) else None
    if not region:
        raise ConfigurationMissingError(
            f"No region in {EC2_METADATA_DOCUMENT_URL}"
        )
    return str(region)


def resolve_region(
    environ: Mapping[str, str],
    session: Any = None,
    timeout: float = 2.0,
) -> str:
    """Determine the AWS region for this run.

    Args:
        environ: Process environment.
        session: Optional ``requests``-compatible session for the
            metadata lookup.
        timeout: Metadata request timeout in seconds.

    Raises:
        ConfigurationMissingError: If no source yields a region.
    """
    for name in REGION_ENV_VARS:
        region = environ.get(name)
        if region:
            return region
    return region_from_instance_metadata(session=session, timeout=timeout)
