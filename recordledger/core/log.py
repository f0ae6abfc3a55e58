"""
Logging setup.

Modules log through logging.getLogger(__name__). Only entry points (the CLI,
VM.from_config) call configure_logging(), which installs a single handler on
the `recordledger` logger with either a plain or a JSON formatter.
"""

import json
import logging
import sys
import traceback
from datetime import datetime, timezone
from typing import Any, Dict, TextIO


_PLAIN_FORMAT = "%(asctime)s %(levelname)-7s %(name)s: %(message)s"


class JsonFormatter(logging.Formatter):
    """One JSON object per line, for log aggregators."""

    def format(self, record: logging.LogRecord) -> str:
        log_dict: Dict[str, Any] = {
            "@timestamp": datetime.fromtimestamp(record.created, tz=timezone.utc).isoformat(),
            "log.level": record.levelname.lower(),
            "log.logger": record.name,
            "message": record.getMessage(),
            "process.pid": record.process,
            "process.thread.id": record.thread,
        }
        if record.exc_info:
            log_dict["error.type"] = record.exc_info[0].__name__ if record.exc_info[0] else None
            log_dict["error.message"] = str(record.exc_info[1]) if record.exc_info[1] else None
            log_dict["error.stack_trace"] = "".join(traceback.format_exception(*record.exc_info))
        return json.dumps(log_dict, default=str)


def configure_logging(
    level: str = "INFO",
    json_output: bool = False,
    stream: TextIO = None,
) -> logging.Logger:
    """Configure the `recordledger` logger. Safe to call more than once."""
    logger = logging.getLogger("recordledger")
    logger.setLevel(getattr(logging, level.upper(), logging.INFO))

    for handler in list(logger.handlers):
        logger.removeHandler(handler)

    handler = logging.StreamHandler(stream or sys.stderr)
    handler.setFormatter(JsonFormatter() if json_output else logging.Formatter(_PLAIN_FORMAT))
    logger.addHandler(handler)
    return logger
