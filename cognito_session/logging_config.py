"""Structured logging configuration for cognito-session.

Driven by two settings (see :mod:`cognito_session.config`):
    log_format  -- ``json`` for one JSON object per line, ``text`` for human-readable (default).
    log_level   -- Python log level name (default: ``INFO``).
"""

from __future__ import annotations

import logging
import traceback
from typing import Any

from cognito_session.config import Settings

# Record attributes lifted into the JSON payload when present.
_STRUCTURED_FIELDS = (
    "request_id",
    "path",
    "method",
    "status_code",
    "duration_ms",
    "event_category",
    "action",
    "username",
    "challenge",
)


def _level_number(name: str) -> int:
    numeric = getattr(logging, name.upper(), None)
    return numeric if isinstance(numeric, int) else logging.INFO


class StructuredJsonFormatter(logging.Formatter):
    """JSON formatter that emits one JSON object per log line.

    Uses ``pythonjsonlogger`` under the hood and carries the request and
    audit fields (request_id, action, username, ...) when they are present
    on the LogRecord.
    """

    def __init__(self) -> None:
        super().__init__()
        from pythonjsonlogger.json import JsonFormatter

        self._inner = JsonFormatter(
            fmt="%(asctime)s %(levelname)s %(name)s %(message)s",
            datefmt="%Y-%m-%dT%H:%M:%S",
        )

    def format(self, record: logging.LogRecord) -> str:  # noqa: A003
        extras: dict[str, Any] = {}
        for key in _STRUCTURED_FIELDS:
            value = getattr(record, key, None)
            if value is not None:
                extras[key] = value

        if record.exc_info and record.exc_info[1] is not None:
            extras["traceback"] = traceback.format_exception(*record.exc_info)
            # Keep the inner formatter from appending free-form traceback text.
            record.exc_info = None
            record.exc_text = None

        for k, v in extras.items():
            setattr(record, k, v)

        return self._inner.format(record)


def setup_logging(settings: Settings | None = None) -> None:
    """Configure the root logger from ``settings``.

    Without settings a fresh :class:`Settings` is read from the COGNITO_* environment.
    """
    if settings is None:
        settings = Settings()
    level = _level_number(settings.log_level)
    root = logging.getLogger()
    root.setLevel(level)

    # Drop existing handlers so tests don't double-log.
    root.handlers.clear()

    handler = logging.StreamHandler()
    handler.setLevel(level)

    if settings.log_format == "json":
        handler.setFormatter(StructuredJsonFormatter())
    else:
        handler.setFormatter(logging.Formatter("%(asctime)s %(levelname)s [%(name)s] %(message)s"))

    root.addHandler(handler)


def log_startup_info(settings: Settings, provider_name: str) -> None:
    """Emit a structured startup log line with the active identity configuration."""
    import cognito_session

    logger = logging.getLogger("cognito_session")
    logger.info(
        "cognito-session started",
        extra={
            "version": cognito_session.__version__,
            "pool_id": settings.pool_id or "unset",
            "authentication_flow_type": settings.authentication_flow_type,
            "log_format": settings.log_format,
            "provider": provider_name,
        },
    )
