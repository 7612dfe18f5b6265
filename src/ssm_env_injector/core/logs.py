"""Logging setup shared by both entrypoints.

Log lines carry an ``app`` field naming the emitting program
(``ssm-env`` or ``ssm-secrets-webhook``). JSON output writes one object
per line.
"""

from __future__ import annotations

import json
import logging
import sys
from datetime import datetime, timezone
from typing import IO, Any

from ssm_env_injector.core.config.base import LogFormat

TEXT_FORMAT = "%(asctime)s [%(levelname)s] %(app)s %(name)s: %(message)s"


class _AppFilter(logging.Filter):
    def __init__(self, app: str) -> None:
        super().__init__()
        self._app = app

    def filter(self, record: logging.LogRecord) -> bool:
        record.app = self._app
        return True


class JsonFormatter(logging.Formatter):
    """Render records as single-line JSON objects."""

    def format(self, record: logging.LogRecord) -> str:
        payload: dict[str, Any] = {
            "time": datetime.fromtimestamp(record.created, timezone.utc).isoformat(),
            "level": record.levelname.lower(),
            "msg": record.getMessage(),
            "logger": record.name,
        }
        app = getattr(record, "app", None)
        if app is not None:
            payload["app"] = app
        if record.exc_info:
            payload["error"] = self.formatException(record.exc_info)
        return json.dumps(payload)


def configure_logging(
    app: str,
    log_format: LogFormat = LogFormat.TEXT,
    debug: bool = False,
    stream: IO[str] | None = None,
) -> logging.Handler:
    """Install a single stream handler on the root logger.

    Replaces any handlers previously installed on the root logger.

    Args:
        app: Program name recorded on every line.
        log_format: Text or JSON output.
        debug: Log at DEBUG instead of INFO.
        stream: Output stream. Defaults to ``sys.stderr``.

    Returns:
        The installed handler.
    """
    handler = logging.StreamHandler(stream or sys.stderr)
    handler.addFilter(_AppFilter(app))
    if log_format is LogFormat.JSON:
        handler.setFormatter(JsonFormatter())
    else:
        handler.setFormatter(logging.Formatter(TEXT_FORMAT))

    root = logging.getLogger()
    for existing in list(root.handlers):
        root.removeHandler(existing)
    root.addHandler(handler)
    root.setLevel(logging.DEBUG if debug else logging.INFO)
    if debug:
        logging.getLogger(__name__).debug("Debug mode enabled")
    return handler
