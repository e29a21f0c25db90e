"""
Logging setup for the outbound sending engine.

Modules log short event names (`send_denied`, `tracking_failed`, ...) with
their context in `extra={...}`. The text formatter here appends that context
as `key=value` pairs; `utils/elk_logging.py` emits the same fields as JSON.
"""
import logging
import sys
import time
from functools import wraps
from typing import Callable, Optional

# Attributes every LogRecord carries; anything else came in through `extra`
RECORD_ATTRS = frozenset({
    'name', 'msg', 'args', 'created', 'filename', 'funcName',
    'levelname', 'levelno', 'lineno', 'module', 'msecs',
    'message', 'asctime', 'pathname', 'process', 'processName', 'relativeCreated',
    'thread', 'threadName', 'exc_info', 'exc_text', 'stack_info', 'taskName',
})


def record_extras(record: logging.LogRecord) -> dict:
    """Fields passed through `extra=`, in the order they were given."""
    return {k: v for k, v in record.__dict__.items() if k not in RECORD_ATTRS}


class ContextFormatter(logging.Formatter):
    """`2026-02-27 09:00:00 WARNING outbound.admission send_denied code=... workspace_id=...`"""

    def __init__(self):
        super().__init__('%(asctime)s %(levelname)s %(name)s %(message)s', datefmt='%Y-%m-%d %H:%M:%S')

    def format(self, record: logging.LogRecord) -> str:
        line = super().format(record)
        extras = record_extras(record)
        if not extras:
            return line
        context = " ".join(f"{k}={v}" for k, v in extras.items())
        head, sep, trace = line.partition("\n")
        return f"{head} {context}{sep}{trace}"


def configure_root(formatter: logging.Formatter, level: str = "INFO", log_file: str = None) -> logging.Logger:
    """Replace the root handlers with stdout (and optionally a file) using `formatter`."""
    log_level = getattr(logging, level.upper(), logging.INFO)

    handlers = [logging.StreamHandler(sys.stdout)]
    if log_file:
        handlers.append(logging.FileHandler(log_file))

    root_logger = logging.getLogger()
    for old in root_logger.handlers[:]:
        root_logger.removeHandler(old)
    root_logger.setLevel(log_level)
    for handler in handlers:
        handler.setFormatter(formatter)
        handler.setLevel(log_level)
        root_logger.addHandler(handler)
    return root_logger


def setup_logging(level: str = "INFO", log_file: str = None) -> logging.Logger:
    """Human-readable logging for local runs. Safe to call more than once."""
    return configure_root(ContextFormatter(), level, log_file)


def retry_with_backoff(
    max_retries: int = 2,
    initial_delay: float = 0.5,
    backoff_factor: float = 2.0,
    exceptions: tuple = (Exception,),
    log: Optional[logging.Logger] = None,
):
    """
    Retry a synchronous call on `exceptions`, sleeping
    initial_delay * backoff_factor**n between attempts.

    Each retry is logged as `retrying` on `log` (if given). After
    `max_retries` retries the last exception propagates.

        @retry_with_backoff(exceptions=(AutoReconnect,), log=logger)
        def list_senders(): ...
    """
    def decorator(func: Callable) -> Callable:
        @wraps(func)
        def wrapper(*args, **kwargs):
            delay = initial_delay
            attempt = 0
            while True:
                try:
                    return func(*args, **kwargs)
                except exceptions as e:
                    attempt += 1
                    if attempt > max_retries:
                        raise
                    if log is not None:
                        log.warning("retrying", extra={
                            "call": func.__qualname__,
                            "attempt": attempt,
                            "delay_s": round(delay, 2),
                            "error": str(e)[:200],
                        })
                    time.sleep(delay)
                    delay *= backoff_factor

        return wrapper
    return decorator
