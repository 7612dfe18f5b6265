"""Launcher (``ssm-env``) configuration model."""

from dataclasses import dataclass

from ssm_env_injector.core.config.base import LogFormat


@dataclass(frozen=True)
class LauncherConfig:
    """Configuration for the ``ssm-env`` process launcher.

    Read from ``SSM_``-prefixed environment variables, which the webhook
    injects into every mutated container.
    """

    ignore_missing_secrets: bool = False
    """Drop unresolvable variables instead of aborting (SSM_IGNORE_MISSING_SECRETS)"""

    json_log: bool = False
    """Emit JSON log lines (SSM_JSON_LOG)"""

    fetch_timeout_seconds: float = 10.0
    """Connect/read timeout of each parameter store call (SSM_FETCH_TIMEOUT_SECONDS)"""

    def __post_init__(self) -> None:
        """Validate configuration after initialization."""
        if self.fetch_timeout_seconds <= 0:
            raise ValueError("fetch_timeout_seconds must be positive")

    @property
    def log_format(self) -> LogFormat:
        """Log format selected by :attr:`json_log`."""
        return LogFormat.JSON if self.json_log else LogFormat.TEXT
