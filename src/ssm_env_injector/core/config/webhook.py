"""Admission webhook configuration model."""

from dataclasses import dataclass

from ssm_env_injector.core.config.base import ImagePullPolicy, LogFormat


@dataclass(frozen=True)
class WebhookConfig:
    """Configuration for the ``ssm-secrets-webhook`` server.

    Every field can be overridden by the environment variable of the same
    name in upper case (e.g. ``SSM_ENV_IMAGE``, ``LISTEN_ADDRESS``).
    """

    ssm_env_image: str = "pwillie/ssm-env:latest"
    """Image of the staging init-container that ships the launcher binary"""

    ssm_env_image_pull_policy: ImagePullPolicy = ImagePullPolicy.IF_NOT_PRESENT
    """Pull policy of the staging init-container (default: IfNotPresent)"""

    ssm_ignore_missing_secrets: bool = False
    """Policy handed to mutated containers: drop unresolvable secrets instead of failing"""

    listen_address: str = ":8443"
    """Address the admission endpoint listens on (default: :8443)"""

    telemetry_listen_address: str = ""
    """Separate plain-HTTP address for /metrics (optional)"""

    debug: bool = False
    """Enable debug logging (default: False)"""

    enable_json_log: bool = False
    """Emit JSON log lines, also handed to mutated containers (default: False)"""

    tls_cert_file: str = ""
    """TLS certificate path; plain HTTP when both TLS paths are empty"""

    tls_private_key_file: str = ""
    """TLS private key path"""

    registry_timeout_seconds: float = 10.0
    """Timeout for image registry requests in seconds (default: 10.0)"""

    def __post_init__(self) -> None:
        """Validate configuration after initialization."""
        if not self.ssm_env_image:
            raise ValueError("ssm_env_image must not be empty")
        if not self.listen_address:
            raise ValueError("listen_address must not be empty")
        if bool(self.tls_cert_file) != bool(self.tls_private_key_file):
            raise ValueError("tls_cert_file and tls_private_key_file must be set together")
        if self.registry_timeout_seconds <= 0:
            raise ValueError("registry_timeout_seconds must be positive")

    @property
    def tls_enabled(self) -> bool:
        """Whether the admission endpoint is served over HTTPS."""
        return bool(self.tls_cert_file and self.tls_private_key_file)

    @property
    def log_format(self) -> LogFormat:
        """Log format selected by :attr:`enable_json_log`."""
        return LogFormat.JSON if self.enable_json_log else LogFormat.TEXT
