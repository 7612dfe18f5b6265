"""Detection of ``ssm:`` parameter references in string values.

Any string equal to or starting with ``ssm:`` is a reference; the
remainder is the exact parameter path, unescaped. There is no escape
mechanism, so a literal value that happens to start with ``ssm:`` is
always treated as a reference.
"""

from __future__ import annotations

from typing import Any

SSM_PREFIX = "ssm:"
"""Literal, case-sensitive prefix marking a parameter reference."""


def is_reference(value: Any) -> bool:
    """Return ``True`` if *value* is a string starting with ``ssm:``."""
    return isinstance(value, str) and value.startswith(SSM_PREFIX)


def extract_key(value: str) -> str:
    """Strip the ``ssm:`` prefix and return the parameter path.

    ``"ssm:"`` alone yields an empty key; resolving it reports not found.

    Raises:
        ValueError: If *value* is not a reference.
    """
    if not is_reference(value):
        raise ValueError(f"not an {SSM_PREFIX} reference")
    return value[len(SSM_PREFIX):]
