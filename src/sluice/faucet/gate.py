"""Faucet disbursement gate.

Coordinates the eligibility protocol:
- Input validation
- Identity score threshold
- Daily quota per identity and per destination
- Transfer hand-off and at-most-once recording under per-key locks
"""

import logging
from datetime import datetime
from decimal import Decimal

from sluice.observability.metrics import AMOUNT_DISBURSED, DECISIONS, RECORDS

from .errors import IneligibleIdentity, InvalidArgument, QuotaExceeded, StorageUnavailable
from .executor import TransferExecutor
from .models import ClaimResult, Decision, DisbursementRecord, QuotaDimension, QuotaLimits
from .quota import evaluate, normalize_address, parse_amount, quota_key
from .store import COUNTER_RETENTION, RecordStore
from .window import DayWindowPolicy, Window

logger = logging.getLogger(__name__)


def _count_decision(decision: Decision) -> None:
    if decision.admitted:
        DECISIONS.labels(outcome="admitted", reason="").inc()
    else:
        DECISIONS.labels(outcome="rejected", reason=decision.reason.value).inc()


class DisbursementGate:
    """Admits, executes and records faucet disbursements.

    Parameters
    ----------
    store : RecordStore
        Append-only record store.
    limits : QuotaLimits
        Daily limits per identity and per destination.
    window_policy : DayWindowPolicy
        Clock and timezone that define "today".
    executor : TransferExecutor | None
        Moves tokens for ``claim``. None disables claims.
    min_identity_score : float | None
        Minimum identity score for ``claim``. None disables the score check.
    default_amount : Decimal
        Claim amount used when a claim does not name one.
    max_amount : Decimal | None
        Largest amount a single request may ask for.
    """

    def __init__(
        self,
        store: RecordStore,
        limits: QuotaLimits,
        window_policy: DayWindowPolicy | None = None,
        executor: TransferExecutor | None = None,
        min_identity_score: float | None = None,
        default_amount: Decimal = Decimal("1"),
        max_amount: Decimal | None = None,
    ):
        self._store = store
        self._limits = limits
        self._windows = window_policy or DayWindowPolicy()
        self._executor = executor
        self._min_score = min_identity_score
        self._default_amount = default_amount
        self._max_amount = max_amount

    @property
    def limits(self) -> QuotaLimits:
        return self._limits

    @property
    def window_policy(self) -> DayWindowPolicy:
        return self._windows

    @property
    def claims_enabled(self) -> bool:
        return self._executor is not None

    def _validate(self, identity_address, destination_address, amount) -> tuple[str, str, Decimal]:
        identity = normalize_address("identity_address", identity_address)
        destination = normalize_address("destination_address", destination_address)
        return identity, destination, parse_amount(amount, maximum=self._max_amount)

    @staticmethod
    def _keys(identity: str, destination: str) -> list[str]:
        return [
            quota_key(QuotaDimension.IDENTITY, identity),
            quota_key(QuotaDimension.DESTINATION, destination),
        ]

    async def _evaluate(
        self, identity: str, destination: str, amount: Decimal, window: Window
    ) -> Decision:
        # Both sums are computed before deciding, even if the first one fails
        identity_used = await self._store.usage(QuotaDimension.IDENTITY, identity, window)
        destination_used = await self._store.usage(QuotaDimension.DESTINATION, destination, window)
        decision = evaluate(identity_used, destination_used, amount, self._limits)
        _count_decision(decision)
        return decision

    async def check_eligibility(
        self,
        identity_address: str,
        destination_address: str,
        requested_amount,
    ) -> Decision:
        """Decide whether a claim fits today's quotas.

        Read-only: admission does not reserve anything.

        Raises
        ------
        InvalidArgument
            If an address is empty or the amount is missing or not positive.
        StorageUnavailable
            If usage cannot be read.
        """
        identity, destination, amount = self._validate(
            identity_address, destination_address, requested_amount
        )
        decision = await self._evaluate(identity, destination, amount, self._windows.current())

        logger.info(
            "Eligibility checked",
            extra={
                "identity": identity,
                "destination": destination,
                "amount": str(amount),
                "admitted": decision.admitted,
                "reason": decision.reason.value if decision.reason else None,
            },
        )
        return decision

    async def record_disbursement(
        self,
        identity_address: str,
        destination_address: str,
        amount,
        timestamp: datetime | str | float | None = None,
        tx_hash: str | None = None,
    ) -> DisbursementRecord:
        """Append a disbursement record.

        The quota check is repeated atomically with the write, against the
        day window of the record's own timestamp.

        Raises
        ------
        InvalidArgument
            If a field is missing or invalid, or the timestamp falls in a day
            whose usage counters have already expired. Nothing is written.
        QuotaExceeded
            If the record would overshoot a quota. Nothing is written.
        StorageUnavailable
            If the store fails. Nothing is written.
        """
        identity, destination, parsed_amount = self._validate(
            identity_address, destination_address, amount
        )
        if timestamp is None or timestamp == "":
            moment = self._windows.now()
        else:
            try:
                moment = self._windows.parse_timestamp(timestamp)
            except ValueError as e:
                raise InvalidArgument("timestamp", str(e)) from None
            if self._windows.window_for(moment).end + COUNTER_RETENTION <= self._windows.now():
                raise InvalidArgument(
                    "timestamp",
                    f"timestamp is more than {COUNTER_RETENTION.days} days in the past",
                )

        async with self._store.lock(self._keys(identity, destination)):
            return await self._commit(identity, destination, parsed_amount, moment, tx_hash)

    async def _commit(
        self,
        identity: str,
        destination: str,
        amount: Decimal,
        moment: datetime,
        tx_hash: str | None,
    ) -> DisbursementRecord:
        try:
            record = await self._store.append(
                identity_address=identity,
                destination_address=destination,
                amount=amount,
                timestamp=moment,
                window=self._windows.window_for(moment),
                limits=self._limits,
                tx_hash=tx_hash,
            )
        except QuotaExceeded as e:
            _count_decision(e.decision)
            logger.warning(
                "Disbursement rejected at commit",
                extra={
                    "identity": identity,
                    "destination": destination,
                    "amount": str(amount),
                    "reason": e.decision.reason.value,
                },
            )
            raise

        RECORDS.inc()
        AMOUNT_DISBURSED.inc(float(amount))
        logger.info(
            "Disbursement recorded",
            extra={
                "record_id": record.id,
                "identity": identity,
                "destination": destination,
                "amount": str(amount),
                "tx_hash": tx_hash,
            },
        )
        return record

    async def claim(
        self,
        identity_address: str,
        destination_address: str,
        amount=None,
        score=None,
    ) -> ClaimResult:
        """Run the whole claim: check, transfer, record.

        The per-key locks for both quota keys are held from the check until
        the record is committed, so concurrent claims cannot overshoot.

        Raises
        ------
        InvalidArgument
            If a field is missing or invalid.
        IneligibleIdentity
            If the score is missing or below the threshold.
        QuotaExceeded
            If the claim does not fit today's quotas.
        UpstreamTransferFailed
            If the transfer fails. No record is written.
        StorageUnavailable
            If the store fails.
        RuntimeError
            If no transfer executor is configured.
        """
        if self._executor is None:
            raise RuntimeError("Claims are disabled: no transfer executor configured")

        if amount is None or amount == "":
            amount = self._default_amount
        identity, destination, parsed_amount = self._validate(
            identity_address, destination_address, amount
        )
        self._check_score(score)

        async with self._store.lock(self._keys(identity, destination)):
            decision = await self._evaluate(
                identity, destination, parsed_amount, self._windows.current()
            )
            if not decision.admitted:
                logger.info(
                    "Claim rejected",
                    extra={
                        "identity": identity,
                        "destination": destination,
                        "reason": decision.reason.value,
                    },
                )
                raise QuotaExceeded(decision)

            tx_hash = await self._executor.transfer(destination, parsed_amount)

            try:
                record = await self._commit(
                    identity, destination, parsed_amount, self._windows.now(), tx_hash
                )
            except (QuotaExceeded, StorageUnavailable):
                logger.error(
                    "Transfer confirmed but not recorded",
                    extra={
                        "tx_hash": tx_hash,
                        "identity": identity,
                        "destination": destination,
                        "amount": str(parsed_amount),
                    },
                )
                raise

        return ClaimResult(record=record, tx_hash=tx_hash)

    def _check_score(self, score) -> None:
        if self._min_score is None:
            return
        if score is None or score == "":
            raise IneligibleIdentity(None, self._min_score)
        if isinstance(score, bool):
            raise InvalidArgument("score", "score must be a number")
        try:
            value = float(score)
        except (TypeError, ValueError):
            raise InvalidArgument("score", "score must be a number") from None
        if value != value or value < self._min_score:
            raise IneligibleIdentity(value, self._min_score)

    async def usage(self, address: str) -> dict:
        """Today's usage of ``address`` in both quota dimensions."""
        normalized = normalize_address("address", address)
        window = self._windows.current()
        identity_used = await self._store.usage(QuotaDimension.IDENTITY, normalized, window)
        destination_used = await self._store.usage(
            QuotaDimension.DESTINATION, normalized, window
        )
        return {
            "address": normalized,
            "window": window.to_dict(),
            "identity": {
                "used": str(identity_used),
                "limit": str(self._limits.identity),
                "remaining": str(max(self._limits.identity - identity_used, Decimal("0"))),
            },
            "destination": {
                "used": str(destination_used),
                "limit": str(self._limits.destination),
                "remaining": str(
                    max(self._limits.destination - destination_used, Decimal("0"))
                ),
            },
        }

    async def list_records(
        self,
        address: str | None = None,
        dimension: QuotaDimension | None = None,
        limit: int = 50,
    ) -> list[DisbursementRecord]:
        """Most recent records first.

        With an address but no dimension, records where the address is either
        the identity or the destination are returned.
        """
        if limit <= 0:
            raise InvalidArgument("limit", "limit must be positive")
        if address is None:
            return await self._store.list_records(limit=limit)

        normalized = normalize_address("address", address)
        dimensions = [dimension] if dimension else list(QuotaDimension)
        merged: dict[int, DisbursementRecord] = {}
        for dim in dimensions:
            for record in await self._store.list_records(dim, normalized, limit):
                merged[record.id] = record
        ordered = sorted(merged.values(), key=lambda r: (r.timestamp, r.id), reverse=True)
        return ordered[:limit]
