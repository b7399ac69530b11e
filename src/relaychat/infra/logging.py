"""Root logger setup for the relay process.

Every module logs through ``logging.getLogger(__name__)``; this module
only decides where records go and how they look:

* ``LoggingConfig.json_output=True`` (default): one JSON object per line
  via ``python-json-logger``, keyed ``timestamp``/``level``/``logger``.
* ``json_output=False``: uvicorn's coloured formatter for local runs.

Records emitted inside a span carry its ``trace_id``/``span_id``, the same
id the relay returns in ``X-Relaychat-Trace``.
"""

from __future__ import annotations

import logging
import sys

from relaychat.configs.system import LoggingConfig

from .telemetry import current_span_ids

# Per-request chatter from client libraries.
QUIET_LOGGERS = ("httpx", "httpcore", "openai", "opentelemetry")
UVICORN_LOGGERS = ("uvicorn", "uvicorn.error", "uvicorn.access")

JSON_FIELDS = "%(asctime)s %(levelname)s %(name)s %(message)s %(trace_id)s %(span_id)s"
DEV_FORMAT = "%(levelprefix)s %(asctime)s %(name)s  %(message)s"
DEV_DATEFMT = "%H:%M:%S"


class SpanContextFilter(logging.Filter):
    """Stamp the active span's ids onto each record (empty outside a span)."""

    def filter(self, record: logging.LogRecord) -> bool:
        record.trace_id, record.span_id = current_span_ids() or ("", "")
        return True


def _json_formatter() -> logging.Formatter:
    from pythonjsonlogger.json import JsonFormatter

    return JsonFormatter(
        fmt=JSON_FIELDS,
        rename_fields={"asctime": "timestamp", "levelname": "level", "name": "logger"},
        defaults={"trace_id": "", "span_id": ""},
    )


def _dev_formatter() -> logging.Formatter:
    from uvicorn.logging import DefaultFormatter

    return DefaultFormatter(fmt=DEV_FORMAT, datefmt=DEV_DATEFMT, use_colors=True)


def setup_logging(config: LoggingConfig | None = None) -> logging.Handler:
    """Route the root and uvicorn loggers to one stdout handler.

    Safe to call again (e.g. from tests); the handler is replaced, not
    stacked.  Returns the installed handler.
    """
    config = config or LoggingConfig()

    handler = logging.StreamHandler(sys.stdout)
    handler.addFilter(SpanContextFilter())
    handler.setFormatter(_json_formatter() if config.json_output else _dev_formatter())

    root = logging.getLogger()
    root.setLevel(config.level.upper())
    root.handlers = [handler]

    for name in UVICORN_LOGGERS:
        uvicorn_logger = logging.getLogger(name)
        uvicorn_logger.handlers = [handler]
        uvicorn_logger.propagate = False

    for name in QUIET_LOGGERS:
        logging.getLogger(name).setLevel(logging.WARNING)

    return handler
