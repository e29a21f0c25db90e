"""
Structured logging for ELK (Elasticsearch, Logstash, Kibana).

Quota decisions are logged as short event names with their context in
`extra={...}`; this formatter lifts that context into top-level JSON fields
so denials can be filtered by code, workspace or sender.
"""

import logging
import json
from datetime import datetime
import traceback

from .logging_utils import configure_root, record_extras


class ELKFormatter(logging.Formatter):
    """JSON formatter for ELK stack"""

    def format(self, record: logging.LogRecord) -> str:
        log_data = {
            '@timestamp': datetime.utcnow().isoformat(),
            'level': record.levelname,
            'logger': record.name,
            'message': record.getMessage(),
            'module': record.module,
            'function': record.funcName,
            'line': record.lineno,
        }

        if record.exc_info:
            log_data['exception'] = {
                'type': record.exc_info[0].__name__,
                'message': str(record.exc_info[1]),
                'traceback': traceback.format_exception(*record.exc_info)
            }

        log_data.update(record_extras(record))

        return json.dumps(log_data, default=str)


def setup_elk_logging(level: str = "INFO", log_file: str = None):
    """
    Setup JSON logging on stdout (Docker / ELK)

    Args:
        level: Log level (DEBUG, INFO, WARNING, ERROR)
        log_file: Optional file path for local logs
    """
    return configure_root(ELKFormatter(), level, log_file)
