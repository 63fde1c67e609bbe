"""Structured Logging: JSON formatter and package logger setup for the record editor.

Invariants:
    - All logs include timestamp (record creation time, UTC), level, logger name, and message
    - Extra fields (table_name, record_id, phase, operation, ...) surfaced when present
    - A logged FormBuilderError surfaces its code and category without an explicit extra
    - setup_logging configures the "formbuilder" logger only, never the root logger,
      and is idempotent: calling it again replaces the handler it installed before

Design Decisions:
    - Level and format come from Settings (FORMBUILDER_LOG_LEVEL / FORMBUILDER_LOG_FORMAT)
    - The embedding application decides whether to call it; importing the package
      configures nothing
"""

import logging
import json
from datetime import datetime, timezone

from formbuilder.config import Settings, get_settings
from formbuilder.core.errors import FormBuilderError

PACKAGE_LOGGER = "formbuilder"

_EXTRA_KEYS = (
    "table_name", "record_id", "operation", "phase", "action",
    "attempt", "error_code", "status_code", "view_id",
)


class JSONFormatter(logging.Formatter):
    """Format logs as one JSON object per line."""

    def format(self, record: logging.LogRecord) -> str:
        log = {
            "timestamp": datetime.fromtimestamp(record.created, timezone.utc).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
        }
        for key in _EXTRA_KEYS:
            val = record.__dict__.get(key)
            if val is not None:
                log[key] = val
        if record.exc_info:
            exc = record.exc_info[1]
            if isinstance(exc, FormBuilderError):
                log.setdefault("error_code", exc.code)
                log["error_category"] = exc.category.value
            log["exception"] = self.formatException(record.exc_info)
        return json.dumps(log, ensure_ascii=False, default=str)


class _PackageHandler(logging.StreamHandler):
    """Marker type so setup_logging can find the handler it installed."""


def setup_logging(settings: Settings | None = None) -> logging.Handler:
    """Attach one stream handler to the package logger, configured from settings."""
    settings = settings or get_settings()
    handler = _PackageHandler()
    if settings.log_format == "json":
        handler.setFormatter(JSONFormatter())
    else:
        handler.setFormatter(logging.Formatter(
            "%(asctime)s %(levelname)s %(name)s: %(message)s",
        ))

    package_logger = logging.getLogger(PACKAGE_LOGGER)
    for old in [h for h in package_logger.handlers if isinstance(h, _PackageHandler)]:
        package_logger.removeHandler(old)
    package_logger.addHandler(handler)
    package_logger.setLevel(getattr(logging, settings.log_level.upper(), logging.INFO))
    return handler
