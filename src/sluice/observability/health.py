"""Readiness checks for SLUICE.

The HTTP server exposes them on ``/ready``; ``/health`` only reports that the
process is alive.
"""

import logging
from abc import ABC, abstractmethod
from collections.abc import Iterable
from dataclasses import dataclass, field
from enum import Enum

from sluice.faucet.errors import StorageUnavailable
from sluice.faucet.executor import TransferExecutor
from sluice.faucet.store import RecordStore

logger = logging.getLogger(__name__)


class HealthStatus(Enum):
    """Health check status values."""

    OK = "ok"
    ERROR = "error"
    NOT_READY = "not_ready"


@dataclass
class CheckResult:
    """Result of a single health check."""

    name: str
    status: HealthStatus
    message: str | None = None


@dataclass
class HealthResult:
    """Combined health check result."""

    status: HealthStatus
    checks: dict[str, str] = field(default_factory=dict)

    def to_dict(self) -> dict:
        """Convert to JSON-serializable dict."""
        result = {"status": self.status.value}
        if self.checks:
            result["checks"] = self.checks
        return result


class HealthCheck(ABC):
    """Abstract base class for health checks."""

    @property
    @abstractmethod
    def name(self) -> str:
        """Name of the health check."""
        ...

    @abstractmethod
    async def check(self) -> CheckResult:
        """Perform the health check."""
        ...


class StoreHealthCheck(HealthCheck):
    """Ready when the record store answers a ping."""

    def __init__(self, store: RecordStore):
        self._store = store

    @property
    def name(self) -> str:
        return "store"

    async def check(self) -> CheckResult:
        try:
            await self._store.ping()
        except StorageUnavailable as e:
            return CheckResult(name=self.name, status=HealthStatus.ERROR, message=str(e))
        return CheckResult(name=self.name, status=HealthStatus.OK)


class ExecutorHealthCheck(HealthCheck):
    """Ready when the transfer executor can reach the chain."""

    def __init__(self, executor: TransferExecutor):
        self._executor = executor

    @property
    def name(self) -> str:
        return "chain"

    async def check(self) -> CheckResult:
        if await self._executor.check_connection():
            return CheckResult(name=self.name, status=HealthStatus.OK)
        return CheckResult(
            name=self.name, status=HealthStatus.ERROR, message="RPC endpoint unreachable"
        )


async def run_checks(checks: Iterable[HealthCheck]) -> HealthResult:
    """Run all readiness checks.

    A check that raises counts as failed; its exception is reported by type
    and message.
    """
    results: dict[str, str] = {}
    all_ok = True

    for check in checks:
        try:
            result = await check.check()
            if result.status == HealthStatus.OK:
                results[result.name] = "ok"
            else:
                results[result.name] = result.message or "error"
                all_ok = False
        except Exception as e:
            logger.exception("Health check failed", extra={"check": check.name})
            results[check.name] = f"error: {type(e).__name__}: {e}"
            all_ok = False

    return HealthResult(
        status=HealthStatus.OK if all_ok else HealthStatus.NOT_READY,
        checks=results,
    )
