"""Faucet disbursement gate components for SLUICE."""

from .errors import (
    GateError,
    IneligibleIdentity,
    InvalidArgument,
    QuotaExceeded,
    StorageUnavailable,
    UpstreamTransferFailed,
)
from .executor import ChainTransferExecutor, TransferExecutor
from .gate import DisbursementGate
from .models import (
    ClaimResult,
    Decision,
    DisbursementRecord,
    QuotaDimension,
    QuotaLimits,
    RejectionReason,
)
from .store import KeyLocks, MemoryRecordStore, RecordStore, RedisRecordStore
from .window import DayWindowPolicy, Window, parse_timezone

__all__ = [
    "ChainTransferExecutor",
    "ClaimResult",
    "DayWindowPolicy",
    "Decision",
    "DisbursementGate",
    "DisbursementRecord",
    "GateError",
    "IneligibleIdentity",
    "InvalidArgument",
    "KeyLocks",
    "MemoryRecordStore",
    "QuotaDimension",
    "QuotaExceeded",
    "QuotaLimits",
    "RecordStore",
    "RedisRecordStore",
    "RejectionReason",
    "StorageUnavailable",
    "TransferExecutor",
    "UpstreamTransferFailed",
    "Window",
    "parse_timezone",
]
