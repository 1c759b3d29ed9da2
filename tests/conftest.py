"""
Shared fixtures.

Time is frozen at 2024-06-15 12:00 UTC; nothing in the suite depends on
the wall clock or on the filesystem outside tmp_path.
"""

from datetime import datetime, timedelta, timezone

import pytest

from billtracker.audit import AuditLogger
from billtracker.orchestrator import BillManager
from billtracker.services.storage import (
    BillStore,
    InMemoryStorage,
    KeyValueAuditStorage,
)


FROZEN_NOW = datetime(2024, 6, 15, 12, 0, tzinfo=timezone.utc)


class FakeClock:
    """Callable clock that only moves when told to."""

    def __init__(self, now: datetime = FROZEN_NOW):
        self.now = now

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **kwargs) -> datetime:
        self.now += timedelta(**kwargs)
        return self.now


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def storage():
    return InMemoryStorage()


@pytest.fixture
def audit_storage(storage):
    return KeyValueAuditStorage(storage)


@pytest.fixture
def store(storage, clock):
    return BillStore(storage, clock=clock)


@pytest.fixture
def manager(store, audit_storage):
    manager = BillManager(store, audit_logger=AuditLogger(audit_storage))
    manager.load()
    return manager


@pytest.fixture
def make_bill(manager):
    """Create a bill with sensible defaults; keyword arguments override them."""

    def _make(**overrides):
        data = {"name": "Electricity", "amount": "120.50", "dueDate": "2024-06-20"}
        data.update(overrides)
        return manager.create(data)

    return _make
