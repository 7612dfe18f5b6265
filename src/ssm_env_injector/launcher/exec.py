"""Replace the current process with the workload."""

from __future__ import annotations

import os
import shutil
from collections.abc import Mapping
from typing import NoReturn

from ssm_env_injector.core.exceptions import BinaryNotFoundError, ExecFailureError


def find_binary(binary: str, environment: Mapping[str, str] | None = None) -> str:
    """Locate *binary* on the search path.

    The ``PATH`` of *environment* is searched, falling back to the
    current process ``PATH``. Names containing a slash are checked as
    given.

    Raises:
        BinaryNotFoundError: If no executable is found.
    """
    search_path = (environment or {}).get("PATH") or os.environ.get("PATH")
    found = shutil.which(binary, path=search_path)
    if found is None:
        raise BinaryNotFoundError(binary)
    return found


def launch(binary: str, argv: list[str], environment: Mapping[str, str]) -> NoReturn:
    """Exec *binary* with *argv* and exactly *environment*.

    No fork happens: on success the calling process image is replaced
    and this function never returns.

    Raises:
        BinaryNotFoundError: If *binary* cannot be located.
        ExecFailureError: If ``execve`` fails.
    """
    path = find_binary(binary, environment)
    try:
        os.execve(path, argv, dict(environment))
    except OSError as exc:
        raise ExecFailureError(path, exc) from exc
