"""Command-line interface for the process launcher (``ssm-env``).

Usage::

    ssm-env <command> [args...]

Every environment variable whose value starts with ``ssm:`` is replaced by
the SSM parameter it names, then ``<command>`` is exec'd with the resolved
environment. Settings come from ``SSM_IGNORE_MISSING_SECRETS``,
``SSM_JSON_LOG`` and ``SSM_FETCH_TIMEOUT_SECONDS``.
"""

from __future__ import annotations

import logging
import os
import sys
from collections.abc import Mapping

from ssm_env_injector.core.config.launcher import LauncherConfig
from ssm_env_injector.core.config.loader import apply_env_overrides
from ssm_env_injector.core.exceptions import SsmEnvError
from ssm_env_injector.core.logs import configure_logging
from ssm_env_injector.core.secrets.base import SecretsProvider
from ssm_env_injector.core.secrets.providers import SsmParameterProvider
from ssm_env_injector.core.secrets.region import resolve_region
from ssm_env_injector.core.secrets.resolver import EnvironmentResolver
from ssm_env_injector.launcher.exec import find_binary, launch

APP_NAME = "ssm-env"
ENV_PREFIX = "SSM_"

logger = logging.getLogger(__name__)


def build_provider(config: LauncherConfig, environ: Mapping[str, str]) -> SecretsProvider:
    """Create the SSM provider for the region of this run.

    Raises:
        ConfigurationMissingError: If no region can be determined.
    """
    region = resolve_region(environ)
    logger.debug("Using AWS region %s", region)
    return SsmParameterProvider(region, timeout_seconds=config.fetch_timeout_seconds)


def main(argv: list[str] | None = None, environ: Mapping[str, str] | None = None) -> int:
    """Resolve the environment and exec the workload.

    Args:
        argv: Workload command and arguments. Defaults to ``sys.argv[1:]``.
        environ: Environment to resolve. Defaults to ``os.environ``.

    Returns:
        Exit code 1 on any failure; on success the process is replaced
        and this function does not return.
    """
    argv = sys.argv[1:] if argv is None else argv
    environ = dict(os.environ) if environ is None else environ

    try:
        config = apply_env_overrides(LauncherConfig(), environ, prefix=ENV_PREFIX)
    except ValueError as exc:
        configure_logging(APP_NAME)
        logger.error("Invalid configuration: %s", exc)
        return 1

    configure_logging(APP_NAME, config.log_format)

    if not argv:
        logger.error(
            "no command is given, ssm-env can't determine the entrypoint (command), "
            "please specify it explicitly or let the webhook query it"
        )
        return 1

    try:
        binary = find_binary(argv[0], environ)
        resolver = EnvironmentResolver(build_provider(config, environ), config.ignore_missing_secrets)
        resolved = resolver.resolve(environ)
        logger.info("spawning process: %s", argv[0])
        launch(binary, argv, resolved.as_dict())
    except SsmEnvError as exc:
        logger.error("%s", exc)
        return 1
    return 0


if __name__ == "__main__":
    sys.exit(main())
