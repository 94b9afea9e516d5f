"""Observability module for SLUICE."""

from .logging import clear_request_id, configure_logging, set_request_id
from .metrics import (
    AMOUNT_DISBURSED,
    DECISIONS,
    RECORDS,
    REQUEST_DURATION,
    TRANSFER_DURATION,
    TRANSFERS,
)

__all__ = [
    # Logging
    "clear_request_id",
    "configure_logging",
    "set_request_id",
    # Metrics
    "AMOUNT_DISBURSED",
    "DECISIONS",
    "RECORDS",
    "REQUEST_DURATION",
    "TRANSFER_DURATION",
    "TRANSFERS",
]
