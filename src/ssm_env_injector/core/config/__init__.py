"""Configuration models for ssm-env-injector.

Immutable dataclasses built once at startup and passed explicitly to the
components that need them.
"""

from ssm_env_injector.core.config.base import ImagePullPolicy, LogFormat
from ssm_env_injector.core.config.launcher import LauncherConfig
from ssm_env_injector.core.config.loader import (
    apply_env_overrides,
    load_from_env,
    load_from_file,
    load_from_string,
    parse_bool,
)
from ssm_env_injector.core.config.webhook import WebhookConfig

__all__ = [
    "ImagePullPolicy",
    "LauncherConfig",
    "LogFormat",
    "WebhookConfig",
    "apply_env_overrides",
    "load_from_env",
    "load_from_file",
    "load_from_string",
    "parse_bool",
]
