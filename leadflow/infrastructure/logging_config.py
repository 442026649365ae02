import logging
import json
import sys
from typing import Any


class JSONFormatter(logging.Formatter):
    """
    Formats log records as JSON so they can be shipped to log aggregation
    tools (Datadog, CloudWatch, etc).
    """

    def format(self, record: logging.LogRecord) -> str:
        log_record: dict[str, Any] = {
            "timestamp": self.formatTime(record, self.datefmt),
            "level": record.levelname,
            "message": record.getMessage(),
            "logger": record.name,
            "module": record.module,
            "line": record.lineno,
        }

        if record.exc_info:
            log_record["exception"] = self.formatException(record.exc_info)

        # Lead/seller context passed through `extra={"context": {...}}`
        context = getattr(record, "context", None)
        if isinstance(context, dict):
            log_record.update(context)

        return json.dumps(log_record, default=str)


def setup_logging(level: int = logging.INFO):
    """
    Configures the root logger to emit JSON lines on stdout.
    """
    logger = logging.getLogger()
    logger.setLevel(level)

    handler = logging.StreamHandler(sys.stdout)
    handler.setFormatter(JSONFormatter())

    # Drop existing handlers to avoid duplicated lines
    logger.handlers = []
    logger.addHandler(handler)

    # Quieter third-party loggers
    logging.getLogger("uvicorn.access").handlers = []
    logging.getLogger("uvicorn.error").handlers = []
    logging.getLogger("apscheduler").setLevel(logging.WARNING)
