"""Error taxonomy for the disbursement gate."""

from .models import Decision


class GateError(Exception):
    """Base class for all gate errors."""


class InvalidArgument(GateError):
    """A request field is missing, empty or malformed."""

    def __init__(self, field: str, message: str):
        super().__init__(message)
        self.field = field
        self.message = message


class QuotaExceeded(GateError):
    """A claim would overshoot a daily quota."""

    def __init__(self, decision: Decision):
        super().__init__(decision.message)
        self.decision = decision


class IneligibleIdentity(GateError):
    """The identity score is missing or below the configured threshold."""

    def __init__(self, score: float | None, threshold: float):
        if score is None:
            message = "score cannot be empty"
        else:
            message = f"identity score {score} is below the required {threshold}"
        super().__init__(message)
        self.score = score
        self.threshold = threshold
        self.message = message


class StorageUnavailable(GateError):
    """The record store cannot be read or written."""


class UpstreamTransferFailed(GateError):
    """The token transfer failed, reverted or timed out."""

    def __init__(self, message: str, tx_hash: str | None = None):
        super().__init__(message)
        self.tx_hash = tx_hash
