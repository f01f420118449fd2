"""
Logging setup for the Flask application and the importer worker.

Console and rotating-file handlers are attached to ``app.logger`` and to the
``sewa_app`` package logger, using either a plain text or a JSON-lines
formatter (``LOG_FORMAT``). Structured ``extra={...}`` fields passed to log
calls are carried into JSON output.
"""

from __future__ import annotations

import json
import logging
import os
from datetime import datetime, timezone
from logging.handlers import RotatingFileHandler

TEXT_FORMAT = "%(asctime)s %(levelname)s [%(name)s] %(message)s"
HANDLER_MARKER = "_sewa_app_handler"

# Attributes every LogRecord carries; anything else came from ``extra``.
_RESERVED_ATTRS = frozenset(
    vars(logging.LogRecord("", logging.INFO, "", 0, "", (), None)).keys()
) | {"message", "asctime"}


class JSONFormatter(logging.Formatter):
    """Render records as one JSON object per line."""

    def format(self, record: logging.LogRecord) -> str:
        payload = {
            "timestamp": datetime.fromtimestamp(record.created, timezone.utc).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
        }
        for key, value in record.__dict__.items():
            if key in _RESERVED_ATTRS or key.startswith("_"):
                continue
            payload[key] = value
        if record.exc_info:
            payload["exception"] = self.formatException(record.exc_info)
        return json.dumps(payload, default=str)


def _build_formatter(log_format: str) -> logging.Formatter:
    if str(log_format).lower() == "json":
        return JSONFormatter()
    return logging.Formatter(TEXT_FORMAT)


def _remove_managed_handlers(logger: logging.Logger) -> None:
    for handler in list(logger.handlers):
        if getattr(handler, HANDLER_MARKER, False):
            logger.removeHandler(handler)
            handler.close()


def setup_logging(app) -> None:
    """
    (Re)configure logging from the app config. Safe to call repeatedly.
    """

    config = app.config
    level = getattr(logging, str(config.get("LOG_LEVEL", "INFO")).upper(), logging.INFO)
    formatter = _build_formatter(config.get("LOG_FORMAT", "text"))

    handlers: list[logging.Handler] = []
    if config.get("ENABLE_CONSOLE_LOGGING", True):
        handlers.append(logging.StreamHandler())
    if config.get("ENABLE_FILE_LOGGING", False):
        log_dir = config.get("LOG_DIR", "logs")
        os.makedirs(log_dir, exist_ok=True)
        handlers.append(
            RotatingFileHandler(
                os.path.join(log_dir, "sewa_app.log"),
                maxBytes=int(config.get("LOG_FILE_MAX_BYTES", 10 * 1024 * 1024)),
                backupCount=int(config.get("LOG_FILE_BACKUP_COUNT", 10)),
                encoding="utf-8",
            )
        )

    package_logger = logging.getLogger("sewa_app")
    for logger in (app.logger, package_logger):
        _remove_managed_handlers(logger)
        logger.setLevel(level)
        for handler in handlers:
            logger.addHandler(handler)
    package_logger.propagate = not handlers

    for handler in handlers:
        setattr(handler, HANDLER_MARKER, True)
        handler.setFormatter(formatter)
        handler.setLevel(level)

    app.logger.debug(
        "Logging configured",
        extra={"log_level": logging.getLevelName(level), "log_format": config.get("LOG_FORMAT", "text")},
    )
