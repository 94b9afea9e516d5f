"""Data model for the faucet disbursement gate."""

from dataclasses import dataclass
from datetime import datetime
from decimal import Decimal
from enum import Enum


class QuotaDimension(str, Enum):
    """Independent quota dimensions."""

    IDENTITY = "identity"
    DESTINATION = "destination"


class RejectionReason(str, Enum):
    """Why a claim was not admitted."""

    IDENTITY_QUOTA_EXCEEDED = "identity quota exceeded"
    DESTINATION_QUOTA_EXCEEDED = "destination quota exceeded"


@dataclass(frozen=True)
class QuotaLimits:
    """Daily limits per quota dimension."""

    identity: Decimal
    destination: Decimal


@dataclass(frozen=True)
class DisbursementRecord:
    """One committed disbursement. Immutable once written."""

    id: int
    identity_address: str
    destination_address: str
    amount: Decimal
    timestamp: datetime
    tx_hash: str | None = None

    def address_for(self, dimension: QuotaDimension) -> str:
        if dimension == QuotaDimension.IDENTITY:
            return self.identity_address
        return self.destination_address

    def to_dict(self) -> dict:
        """Convert to JSON-serializable dict."""
        return {
            "id": self.id,
            "identity_address": self.identity_address,
            "destination_address": self.destination_address,
            "amount": str(self.amount),
            "timestamp": self.timestamp.isoformat(),
            "tx_hash": self.tx_hash,
        }


@dataclass(frozen=True)
class Decision:
    """Outcome of an eligibility check.

    Both usage sums are always filled in. ``reason``, ``would_be_total`` and
    ``limit`` are set only for rejections.
    """

    admitted: bool
    requested: Decimal
    identity_used: Decimal
    destination_used: Decimal
    reason: RejectionReason | None = None
    would_be_total: Decimal | None = None
    limit: Decimal | None = None

    @property
    def message(self) -> str:
        if self.admitted:
            return "allowed to receive tokens, quota check passed"
        return (
            f"{self.reason.value}: {self.would_be_total} would exceed "
            f"the daily limit of {self.limit}"
        )

    def to_dict(self) -> dict:
        """Convert to JSON-serializable dict."""
        result = {
            "admitted": self.admitted,
            "requested": str(self.requested),
            "identity_used": str(self.identity_used),
            "destination_used": str(self.destination_used),
        }
        if not self.admitted:
            result["reason"] = self.reason.value
            result["would_be_total"] = str(self.would_be_total)
            result["limit"] = str(self.limit)
        return result


@dataclass(frozen=True)
class ClaimResult:
    """Result of a completed claim: the transfer and its record."""

    record: DisbursementRecord
    tx_hash: str

    def to_dict(self) -> dict:
        return {"tx_hash": self.tx_hash, "record": self.record.to_dict()}
