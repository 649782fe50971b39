"""Logging setup: readable lines in development, one JSON object per line elsewhere."""

import json
import logging
import sys
from datetime import datetime, timezone
from typing import Any, Dict

from backend.core import config

_RESERVED_ATTRS = {
    'name', 'msg', 'args', 'created', 'filename', 'funcName', 'levelname', 'levelno', 'lineno',
    'module', 'msecs', 'pathname', 'process', 'processName', 'relativeCreated', 'stack_info',
    'exc_info', 'exc_text', 'thread', 'threadName', 'message', 'taskName',
}


class JSONFormatter(logging.Formatter):
    def format(self, record: logging.LogRecord) -> str:
        log_data: Dict[str, Any] = {
            'timestamp': datetime.now(timezone.utc).isoformat(),
            'level': record.levelname,
            'logger': record.name,
            'message': record.getMessage(),
        }
        if record.exc_info:
            log_data['exception'] = self.formatException(record.exc_info)

        for key, value in record.__dict__.items():
            if key not in _RESERVED_ATTRS and not key.startswith('_'):
                log_data[key] = value

        return json.dumps(log_data, default=str)


def configure_logging() -> None:
    handler = logging.StreamHandler(sys.stdout)
    if config.is_development():
        handler.setFormatter(logging.Formatter('%(asctime)s %(levelname)-8s %(name)s: %(message)s'))
    else:
        handler.setFormatter(JSONFormatter())

    root = logging.getLogger()
    root.handlers = [handler]
    root.setLevel(config.LOG_LEVEL.upper())
