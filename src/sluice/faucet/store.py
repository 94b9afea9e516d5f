"""Append-only disbursement record stores.

Features:
- Per-day usage sums per identity and per destination
- Conditional append that re-checks both quotas atomically
- Per-key locks to serialize check, transfer and commit
- Redis for persistence in production, in-memory store for development/testing
"""

import asyncio
import logging
from abc import ABC, abstractmethod
from collections.abc import AsyncIterator, Iterable
from contextlib import AbstractAsyncContextManager, asynccontextmanager
from datetime import datetime, timedelta
from decimal import Decimal

from redis import Redis, RedisError

from .errors import QuotaExceeded, StorageUnavailable
from .models import DisbursementRecord, QuotaDimension, QuotaLimits
from .quota import evaluate, quota_key
from .window import Window

logger = logging.getLogger(__name__)

# Usage counters outlive their window by this much; the gate refuses records older than that
COUNTER_RETENTION = timedelta(days=2)


class RecordStore(ABC):
    """Abstract append-only store of disbursement records."""

    @abstractmethod
    async def usage(self, dimension: QuotaDimension, address: str, window: Window) -> Decimal:
        """Sum of amounts recorded for ``address`` inside ``window``.

        Parameters
        ----------
        dimension : QuotaDimension
            Whether ``address`` is matched against identities or destinations.
        address : str
            Normalized address.
        window : Window
            Day window to sum over.

        Returns
        -------
        Decimal
            Total disbursed amount, zero if nothing was recorded.
        """
        ...

    @abstractmethod
    async def append(
        self,
        identity_address: str,
        destination_address: str,
        amount: Decimal,
        timestamp: datetime,
        window: Window,
        limits: QuotaLimits,
        tx_hash: str | None = None,
    ) -> DisbursementRecord:
        """Append a record if it keeps both quotas within ``limits``.

        Raises
        ------
        QuotaExceeded
            If committing would overshoot either quota. Nothing is written.
        StorageUnavailable
            If the backend cannot be read or written.
        """
        ...

    @abstractmethod
    async def list_records(
        self,
        dimension: QuotaDimension | None = None,
        address: str | None = None,
        limit: int = 50,
    ) -> list[DisbursementRecord]:
        """Most recent records first, optionally filtered by one address."""
        ...

    @abstractmethod
    def lock(self, keys: Iterable[str]) -> AbstractAsyncContextManager[None]:
        """Hold mutual exclusion over the given quota keys."""
        ...

    @abstractmethod
    async def ping(self) -> None:
        """Raise StorageUnavailable if the backend is unreachable."""
        ...

    async def close(self) -> None:
        """Release backend resources."""


class KeyLocks:
    """In-process asyncio locks keyed by quota key.

    Keys are always acquired in sorted order so that two requests sharing
    keys cannot deadlock. Locks are discarded once nobody holds or awaits them.

    Parameters
    ----------
    timeout : float | None
        Seconds to wait for each lock, or None to wait forever.
    """

    def __init__(self, timeout: float | None = None):
        self._timeout = timeout
        self._locks: dict[str, asyncio.Lock] = {}
        self._users: dict[str, int] = {}

    def __len__(self) -> int:
        return len(self._locks)

    @asynccontextmanager
    async def hold(self, keys: Iterable[str]) -> AsyncIterator[None]:
        ordered = sorted(set(keys))
        for key in ordered:
            self._locks.setdefault(key, asyncio.Lock())
            self._users[key] = self._users.get(key, 0) + 1

        acquired: list[str] = []
        try:
            for key in ordered:
                try:
                    await asyncio.wait_for(self._locks[key].acquire(), self._timeout)
                except asyncio.TimeoutError:
                    raise StorageUnavailable(f"Timed out waiting for quota lock {key}") from None
                acquired.append(key)
            yield
        finally:
            for key in reversed(acquired):
                self._locks[key].release()
            for key in ordered:
                self._users[key] -= 1
                if not self._users[key]:
                    del self._users[key]
                    del self._locks[key]


class MemoryRecordStore(RecordStore):
    """In-memory record store for development and tests.

    Parameters
    ----------
    lock_timeout : float | None
        Seconds to wait for a quota lock.
    """

    def __init__(self, lock_timeout: float | None = None):
        self._records: list[DisbursementRecord] = []
        self._next_id = 1
        self._locks = KeyLocks(timeout=lock_timeout)

    async def usage(self, dimension: QuotaDimension, address: str, window: Window) -> Decimal:
        return self._sum(dimension, address, window)

    def _sum(self, dimension: QuotaDimension, address: str, window: Window) -> Decimal:
        return sum(
            (
                r.amount
                for r in self._records
                if r.address_for(dimension) == address and window.contains(r.timestamp)
            ),
            Decimal("0"),
        )

    async def append(
        self,
        identity_address: str,
        destination_address: str,
        amount: Decimal,
        timestamp: datetime,
        window: Window,
        limits: QuotaLimits,
        tx_hash: str | None = None,
    ) -> DisbursementRecord:
        # No await between the re-check and the append
        decision = evaluate(
            self._sum(QuotaDimension.IDENTITY, identity_address, window),
            self._sum(QuotaDimension.DESTINATION, destination_address, window),
            amount,
            limits,
        )
        if not decision.admitted:
            raise QuotaExceeded(decision)

        record = DisbursementRecord(
            id=self._next_id,
            identity_address=identity_address,
            destination_address=destination_address,
            amount=amount,
            timestamp=timestamp,
            tx_hash=tx_hash,
        )
        self._next_id += 1
        self._records.append(record)
        return record

    async def list_records(
        self,
        dimension: QuotaDimension | None = None,
        address: str | None = None,
        limit: int = 50,
    ) -> list[DisbursementRecord]:
        records = self._records
        if dimension is not None and address is not None:
            records = [r for r in records if r.address_for(dimension) == address]
        ordered = sorted(records, key=lambda r: (r.timestamp, r.id), reverse=True)
        return ordered[:limit]

    def lock(self, keys: Iterable[str]) -> AbstractAsyncContextManager[None]:
        return self._locks.hold(keys)

    async def ping(self) -> None:
        return None


def _to_decimal(value: str | None) -> Decimal:
    return Decimal(value) if value else Decimal("0")


def _serialize(record: DisbursementRecord) -> dict[str, str]:
    return {
        "id": str(record.id),
        "identity_address": record.identity_address,
        "destination_address": record.destination_address,
        "amount": str(record.amount),
        "timestamp": record.timestamp.isoformat(),
        "tx_hash": record.tx_hash or "",
    }


def _deserialize(row: dict[str, str]) -> DisbursementRecord:
    return DisbursementRecord(
        id=int(row["id"]),
        identity_address=row["identity_address"],
        destination_address=row["destination_address"],
        amount=Decimal(row["amount"]),
        timestamp=datetime.fromisoformat(row["timestamp"]),
        tx_hash=row.get("tx_hash") or None,
    )


class RedisRecordStore(RecordStore):
    """Redis-backed record store.

    Each record is a hash indexed by sorted sets (all records, per identity,
    per destination). Per-day usage totals are kept as decimal strings and
    updated in the same MULTI/EXEC as the record, under WATCH, so a commit
    never overshoots a quota even across processes.

    Parameters
    ----------
    redis : Redis
        Client created with ``decode_responses=True``.
    prefix : str
        Key namespace.
    lock_wait_seconds : float
        Seconds to wait for a quota lock before giving up.
    lock_lease_seconds : float
        Seconds after which an abandoned quota lock expires.
    """

    def __init__(
        self,
        redis: Redis,
        prefix: str = "sluice",
        lock_wait_seconds: float = 30.0,
        lock_lease_seconds: float = 180.0,
    ):
        self._redis = redis
        self._prefix = prefix
        self._lock_wait = lock_wait_seconds
        self._lock_lease = lock_lease_seconds

    @classmethod
    def from_url(cls, redis_url: str, **kwargs) -> "RedisRecordStore":
        """Connect to Redis and verify the connection.

        Raises
        ------
        StorageUnavailable
            If Redis cannot be reached.
        """
        try:
            client = Redis.from_url(redis_url, decode_responses=True)
            client.ping()
        except RedisError as e:
            raise StorageUnavailable(f"Redis unavailable: {e}") from e
        logger.info("Redis connected for disbursement records")
        return cls(client, **kwargs)

    def _usage_key(self, dimension: QuotaDimension, address: str, window: Window) -> str:
        return f"{self._prefix}:used:{dimension.value}:{address}:{window.key}"

    def _record_key(self, record_id) -> str:
        return f"{self._prefix}:record:{record_id}"

    def _index_key(
        self, dimension: QuotaDimension | None = None, address: str | None = None
    ) -> str:
        if dimension is None or address is None:
            return f"{self._prefix}:records"
        return f"{self._prefix}:records:{dimension.value}:{address}"

    @property
    def _seq_key(self) -> str:
        return f"{self._prefix}:records:seq"

    async def usage(self, dimension: QuotaDimension, address: str, window: Window) -> Decimal:
        try:
            value = self._redis.get(self._usage_key(dimension, address, window))
        except RedisError as e:
            raise StorageUnavailable(f"Failed to read usage: {e}") from e
        return _to_decimal(value)

    async def append(
        self,
        identity_address: str,
        destination_address: str,
        amount: Decimal,
        timestamp: datetime,
        window: Window,
        limits: QuotaLimits,
        tx_hash: str | None = None,
    ) -> DisbursementRecord:
        identity_key = self._usage_key(QuotaDimension.IDENTITY, identity_address, window)
        destination_key = self._usage_key(QuotaDimension.DESTINATION, destination_address, window)
        expire_at = window.end + COUNTER_RETENTION

        def commit(pipe) -> DisbursementRecord:
            # Watched pipeline: reads execute immediately until multi()
            identity_used = _to_decimal(pipe.get(identity_key))
            destination_used = _to_decimal(pipe.get(destination_key))
            decision = evaluate(identity_used, destination_used, amount, limits)
            if not decision.admitted:
                raise QuotaExceeded(decision)

            record = DisbursementRecord(
                id=int(pipe.incr(self._seq_key)),
                identity_address=identity_address,
                destination_address=destination_address,
                amount=amount,
                timestamp=timestamp,
                tx_hash=tx_hash,
            )
            score = timestamp.timestamp()
            member = str(record.id)

            pipe.multi()
            pipe.hset(self._record_key(record.id), mapping=_serialize(record))
            pipe.zadd(self._index_key(), {member: score})
            pipe.zadd(self._index_key(QuotaDimension.IDENTITY, identity_address), {member: score})
            pipe.zadd(
                self._index_key(QuotaDimension.DESTINATION, destination_address), {member: score}
            )
            pipe.set(identity_key, str(identity_used + amount))
            pipe.expireat(identity_key, expire_at)
            pipe.set(destination_key, str(destination_used + amount))
            pipe.expireat(destination_key, expire_at)
            return record

        try:
            return self._redis.transaction(
                commit, identity_key, destination_key, value_from_callable=True
            )
        except RedisError as e:
            raise StorageUnavailable(f"Failed to record disbursement: {e}") from e

    async def list_records(
        self,
        dimension: QuotaDimension | None = None,
        address: str | None = None,
        limit: int = 50,
    ) -> list[DisbursementRecord]:
        try:
            ids = self._redis.zrevrange(self._index_key(dimension, address), 0, limit - 1)
            pipe = self._redis.pipeline()
            for record_id in ids:
                pipe.hgetall(self._record_key(record_id))
            rows = pipe.execute() if ids else []
        except RedisError as e:
            raise StorageUnavailable(f"Failed to list records: {e}") from e
        return [_deserialize(row) for row in rows if row]

    @asynccontextmanager
    async def lock(self, keys: Iterable[str]) -> AsyncIterator[None]:
        held = []
        try:
            for key in sorted(set(keys)):
                # Acquired and released on worker threads, so the token must not be thread-local
                lock = self._redis.lock(
                    f"{self._prefix}:lock:{key}",
                    timeout=self._lock_lease,
                    blocking_timeout=self._lock_wait,
                    thread_local=False,
                )
                try:
                    acquired = await asyncio.to_thread(lock.acquire)
                except RedisError as e:
                    raise StorageUnavailable(f"Failed to acquire quota lock: {e}") from e
                if not acquired:
                    raise StorageUnavailable(f"Timed out waiting for quota lock {key}")
                held.append(lock)
            yield
        finally:
            for lock in reversed(held):
                try:
                    await asyncio.to_thread(lock.release)
                except RedisError as e:
                    # Lease already expired or connection lost; the lock times out on its own
                    logger.warning(
                        "Quota lock release failed",
                        extra={"lock": lock.name, "error": str(e)},
                    )

    async def ping(self) -> None:
        try:
            self._redis.ping()
        except RedisError as e:
            raise StorageUnavailable(f"Redis unavailable: {e}") from e

    async def close(self) -> None:
        self._redis.close()
