"""The ``ssm-env`` process launcher."""

from ssm_env_injector.launcher.exec import find_binary, launch

__all__ = [
    "find_binary",
    "launch",
]
