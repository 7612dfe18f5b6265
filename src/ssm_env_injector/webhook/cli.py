"""Command-line interface for the admission webhook (``ssm-secrets-webhook``)."""

from __future__ import annotations

import argparse
import logging
import os
import sys
from collections.abc import Mapping

from ssm_env_injector.core.config.loader import load_from_env
from ssm_env_injector.core.config.webhook import WebhookConfig
from ssm_env_injector.core.logs import configure_logging
from ssm_env_injector.core.metrics.exporters import PrometheusRegistry
from ssm_env_injector.webhook.admission import PodAdmissionHandler
from ssm_env_injector.webhook.mappings import KubernetesMappingFetcher, MappingFetcher
from ssm_env_injector.webhook.mutator import ContainerMutator, PodMutator
from ssm_env_injector.webhook.registry import RegistryClient
from ssm_env_injector.webhook.server import run_server

APP_NAME = "ssm-secrets-webhook"

logger = logging.getLogger(__name__)


def _build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog=APP_NAME,
        description=(
            "Mutating admission webhook that defers ssm: environment "
            "references to the ssm-env launcher. Settings are read from "
            "environment variables (e.g. LISTEN_ADDRESS, SSM_ENV_IMAGE)."
        ),
    )
    parser.add_argument(
        "--config",
        default=None,
        help="Optional HOCON file with base settings; environment variables override it.",
    )
    return parser


def build_handler(
    config: WebhookConfig,
    mapping_fetcher: MappingFetcher,
    metrics: PrometheusRegistry,
) -> PodAdmissionHandler:
    """Wire the mutation pipeline around *mapping_fetcher*."""
    registry = RegistryClient(mapping_fetcher=mapping_fetcher, timeout=config.registry_timeout_seconds)
    pod_mutator = PodMutator(config, ContainerMutator(config, mapping_fetcher, registry))
    return PodAdmissionHandler(pod_mutator, meter_registry=metrics)


def main(argv: list[str] | None = None, environ: Mapping[str, str] | None = None) -> int:
    """CLI entrypoint for the webhook server.

    Args:
        argv: Command-line arguments. Defaults to ``sys.argv[1:]``.
        environ: Environment. Defaults to ``os.environ``.

    Returns:
        Exit code: 1 if the server could not be started.
    """
    args = _build_parser().parse_args(argv)
    environ = os.environ if environ is None else environ

    try:
        config = load_from_env(WebhookConfig, environ, path=args.config)
    except Exception as exc:
        configure_logging(APP_NAME)
        logger.error("Invalid configuration: %s", exc)
        return 1

    configure_logging(APP_NAME, config.log_format, debug=config.debug)

    try:
        mapping_fetcher = KubernetesMappingFetcher.from_cluster()
    except Exception as exc:
        logger.error("error creating k8s client: %s", exc)
        return 1

    metrics = PrometheusRegistry()
    try:
        run_server(config, build_handler(config, mapping_fetcher, metrics), metrics)
    except (OSError, ValueError) as exc:
        logger.error("error serving webhook: %s", exc)
        return 1
    return 0


if __name__ == "__main__":
    sys.exit(main())
