"""Pytest configuration and fixtures for SLUICE tests."""

import os
from datetime import datetime, timezone
from decimal import Decimal

import pytest

from sluice.faucet import DayWindowPolicy, DisbursementGate, MemoryRecordStore, QuotaLimits

FIXED_NOW = datetime(2024, 6, 15, 12, 0, tzinfo=timezone.utc)


@pytest.fixture(autouse=True)
def clean_env(monkeypatch):
    """Clear SLUICE-related environment variables before each test."""
    env_prefixes = ("SLUICE_", "REDIS_")
    for key in list(os.environ.keys()):
        if key.startswith(env_prefixes):
            monkeypatch.delenv(key, raising=False)


class FakeClock:
    """Settable clock for window tests."""

    def __init__(self, now: datetime = FIXED_NOW):
        self.now = now

    def __call__(self) -> datetime:
        return self.now


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def window_policy(clock):
    return DayWindowPolicy(tz=timezone.utc, clock=clock)


@pytest.fixture
def store():
    return MemoryRecordStore()


@pytest.fixture
def gate(store, window_policy):
    """Gate with a 100/day limit in both dimensions and no claims."""
    return DisbursementGate(
        store=store,
        limits=QuotaLimits(identity=Decimal("100"), destination=Decimal("100")),
        window_policy=window_policy,
    )
