"""Configuration loading: HOCON files via dataconf, overrides from the environment.

HOCON provides optional base values; environment variables named after the
dataclass fields (upper case, optionally prefixed) take precedence.
"""

import dataclasses
from collections.abc import Mapping
from enum import Enum
from typing import Any, TypeVar, cast

import dataconf

T = TypeVar("T")

_TRUE_VALUES = frozenset({"1", "t", "T", "true", "TRUE", "True"})
_FALSE_VALUES = frozenset({"0", "f", "F", "false", "FALSE", "False"})


def parse_bool(value: str) -> bool:
    """Parse a boolean the way Go's ``strconv.ParseBool`` does.

    Args:
        value: Raw string (e.g. ``"true"``, ``"1"``, ``"F"``).

    Returns:
        The parsed boolean.

    Raises:
        ValueError: If *value* is not a recognized boolean literal.
    """
    if value in _TRUE_VALUES:
        return True
    if value in _FALSE_VALUES:
        return False
    raise ValueError(f"invalid boolean value: {value!r}")


def load_from_file(path: str, config_class: type[T]) -> T:
    """Load configuration from a HOCON file.

    Args:
        path: Path to the HOCON configuration file
        config_class: The configuration dataclass type to load into

    Returns:
        Instance of config_class populated with configuration from the file

    Example:
        >>> config = load_from_file("webhook.conf", WebhookConfig)
    """
    return cast(T, dataconf.file(path, config_class))


def load_from_string(hocon_str: str, config_class: type[T]) -> T:
    """Load configuration from a HOCON string.

    Args:
        hocon_str: HOCON configuration as a string
        config_class: The configuration dataclass type to load into

    Returns:
        Instance of config_class populated with configuration from the string

    Example:
        >>> hocon = '''
        ... {
        ...   ssm_env_image: "registry.local/ssm-env:1.2.0"
        ...   debug: true
        ... }
        ... '''
        >>> config = load_from_string(hocon, WebhookConfig)
    """
    return cast(T, dataconf.string(hocon_str, config_class))


def _coerce(raw: str, default: Any) -> Any:
    if isinstance(default, bool):
        return parse_bool(raw)
    if isinstance(default, Enum):
        return type(default)(raw)
    if isinstance(default, float):
        return float(raw)
    if isinstance(default, int):
        return int(raw)
    return raw


def apply_env_overrides(config: T, environ: Mapping[str, str], prefix: str = "") -> T:
    """Return a copy of *config* with fields overridden from *environ*.

    Each field ``some_field`` is read from ``{prefix}SOME_FIELD``. Unset or
    empty variables keep the current value. Values are coerced to the type
    of the current value (bool, enum, float, int or str).

    Args:
        config: A dataclass instance holding base values.
        environ: Environment mapping, typically ``os.environ``.
        prefix: Optional variable name prefix (e.g. ``"SSM_"``).

    Returns:
        A new instance of the same dataclass.

    Raises:
        ValueError: If a variable cannot be coerced or the resulting
            config fails validation.
    """
    changes: dict[str, Any] = {}
    for f in dataclasses.fields(config):  # type: ignore[arg-type]
        raw = environ.get(f"{prefix}{f.name.upper()}")
        if raw is None or raw == "":
            continue
        try:
            changes[f.name] = _coerce(raw, getattr(config, f.name))
        except ValueError as exc:
            raise ValueError(f"{prefix}{f.name.upper()}: {exc}") from exc
    if not changes:
        return config
    return cast(T, dataclasses.replace(config, **changes))  # type: ignore[type-var]


def load_from_env(
    config_class: type[T],
    environ: Mapping[str, str],
    prefix: str = "",
    path: str | None = None,
) -> T:
    """Build a configuration from defaults, an optional HOCON file and the environment.

    Args:
        config_class: The configuration dataclass type to build.
        environ: Environment mapping, typically ``os.environ``.
        prefix: Optional variable name prefix.
        path: Optional HOCON file providing base values.

    Returns:
        Instance of config_class.
    """
    base = load_from_file(path, config_class) if path else config_class()
    return apply_env_overrides(base, environ, prefix)
