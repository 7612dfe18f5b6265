"""Base types and enums for configuration models."""

from enum import Enum


class LogFormat(str, Enum):
    """Log output formats."""

    JSON = "json"
    TEXT = "text"


class ImagePullPolicy(str, Enum):
    """Kubernetes container image pull policies."""

    ALWAYS = "Always"
    IF_NOT_PRESENT = "IfNotPresent"
    NEVER = "Never"
