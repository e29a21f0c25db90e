"""Logging and retry helpers shared by the sending engine."""
from .logging_utils import (
    setup_logging,
    retry_with_backoff,
)
from .elk_logging import setup_elk_logging

__all__ = [
    'setup_logging',
    'retry_with_backoff',
    'setup_elk_logging',
]
