"""Exception hierarchy shared by the webhook and the launcher."""


class SsmEnvError(Exception):
    """Base exception for all ssm-env-injector errors."""

    pass


class ConfigurationMissingError(SsmEnvError):
    """A required runtime setting (e.g. the AWS region) could not be determined."""

    pass


class MappingFetchError(SsmEnvError):
    """Reading a ConfigMap or Secret from the Kubernetes API failed."""

    def __init__(self, kind: str, namespace: str, name: str, reason: str) -> None:
        self.kind = kind
        self.namespace = namespace
        self.name = name
        self.reason = reason
        super().__init__(f"Failed to read {kind} '{namespace}/{name}': {reason}")


class MappingNotFoundError(MappingFetchError):
    """The referenced ConfigMap or Secret does not exist."""

    def __init__(self, kind: str, namespace: str, name: str) -> None:
        super().__init__(kind, namespace, name, "not found")


class ImageConfigError(SsmEnvError):
    """The image entrypoint/cmd could not be read from the registry."""

    def __init__(self, image: str, reason: str) -> None:
        self.image = image
        self.reason = reason
        super().__init__(f"Failed to read image config for '{image}': {reason}")


class SecretResolutionError(SsmEnvError):
    """A parameter reference could not be resolved.

    Args:
        key: The parameter path that failed.
        reason: Human-readable failure description.
    """

    def __init__(self, key: str, reason: str) -> None:
        self.key = key
        self.reason = reason
        super().__init__(f"Failed to read secret from path '{key}': {reason}")


class SecretNotFoundError(SecretResolutionError):
    """The parameter does not exist in the store."""

    pass


class SecretFetchError(SecretResolutionError):
    """The parameter store call failed."""

    pass


class LaunchError(SsmEnvError):
    """Base exception for process replacement failures."""

    pass


class BinaryNotFoundError(LaunchError):
    """The workload binary is not on the search path."""

    def __init__(self, binary: str) -> None:
        self.binary = binary
        super().__init__(f"Binary not found: {binary}")


class ExecFailureError(LaunchError):
    """``execve`` returned an error."""

    def __init__(self, path: str, cause: OSError) -> None:
        self.path = path
        self.cause = cause
        super().__init__(f"Failed to exec '{path}': {cause}")
        self.__cause__ = cause
