"""Tests for the audit trail."""

import json

import pytest

from billtracker.audit import AuditLogger
from billtracker.errors import NotFoundError
from billtracker.models.audit import AuditEvent, AuditEventType
from billtracker.orchestrator import BillManager
from billtracker.services.storage import (
    BillStore,
    InMemoryStorage,
    KeyValueAuditStorage,
    StorageError,
)


class BrokenStorage(InMemoryStorage):
    """Storage whose writes always fail."""

    def set(self, key: str, value: str) -> None:
        raise StorageError("quota exceeded")


def _event_types(audit_storage) -> list[str]:
    return [event["event_type"] for event in reversed(audit_storage.get_recent_events())]


class TestAuditTrail:
    """Every mutation leaves an event behind."""

    def test_load_is_audited(self, manager, audit_storage):
        assert _event_types(audit_storage) == ["bills_loaded"]

    def test_single_bill_mutations(self, manager, make_bill, audit_storage):
        bill = make_bill()
        manager.update(bill.id, {"notes": "x"})
        manager.mark_paid(bill.id)
        manager.mark_unpaid(bill.id)
        manager.delete(bill.id)
        assert _event_types(audit_storage)[1:] == [
            "bill_created",
            "bill_updated",
            "bill_marked_paid",
            "bill_marked_unpaid",
            "bill_deleted",
        ]

    def test_events_for_bill(self, manager, make_bill, audit_storage):
        first = make_bill()
        make_bill()
        manager.mark_paid(first.id)
        events = audit_storage.get_events_for_bill(first.id)
        assert [e["event_type"] for e in events] == ["bill_created", "bill_marked_paid"]

    def test_rejections_are_audited(self, manager, audit_storage):
        with pytest.raises(NotFoundError):
            manager.delete(42)
        event = audit_storage.get_recent_events(1)[0]
        assert event["event_type"] == "operation_rejected"
        assert event["bill_id"] == 42
        assert event["details"]["operation"] == "delete"
        assert event["error_message"] == "Bill 42 not found"

    def test_bulk_events_share_correlation_id(self, manager, make_bill, audit_storage):
        ids = [make_bill().id for _ in range(2)]
        manager.bulk_mark_paid(ids)
        recent = audit_storage.get_recent_events(3)
        assert recent[0]["event_type"] == "bulk_operation_completed"
        assert recent[0]["details"]["succeeded"] == ids
        correlation_ids = {event["correlation_id"] for event in recent}
        assert len(correlation_ids) == 1
        assert None not in correlation_ids

    def test_import_and_export_are_audited(self, manager, audit_storage):
        manager.import_json(json.dumps([{"name": "Water", "amount": 3, "dueDate": "2024-07-01"}]))
        manager.export_csv()
        assert _event_types(audit_storage)[-2:] == ["bills_imported", "bills_exported"]

    def test_recurring_generation_is_audited(self, manager, make_bill, audit_storage):
        template = make_bill(frequency="monthly")
        generated = manager.generate_recurring(template.id, 3)
        event = audit_storage.get_recent_events(1)[0]
        assert event["event_type"] == "recurring_generated"
        assert event["details"]["generated_ids"] == [b.id for b in generated]


class TestAuditPersistence:
    """Tests for the key-value audit store."""

    def test_trims_to_newest_events(self):
        audit_storage = KeyValueAuditStorage(InMemoryStorage(), max_events=3)
        for bill_id in range(5):
            audit_storage.append_event(AuditEvent(
                event_type=AuditEventType.BILL_CREATED,
                bill_id=bill_id,
                description="created",
            ))
        assert [e["bill_id"] for e in audit_storage.get_recent_events()] == [4, 3, 2]

    def test_audit_failure_does_not_fail_operation(self, clock):
        """Bills are saved even when the audit trail cannot be written."""
        audit_logger = AuditLogger(KeyValueAuditStorage(BrokenStorage()))
        manager = BillManager(
            BillStore(InMemoryStorage(), clock=clock),
            audit_logger=audit_logger,
        )
        manager.load()
        bill = manager.create({"name": "Gas", "amount": 30, "dueDate": "2024-07-01"})
        assert manager.get(bill.id) == bill

    def test_log_reports_storage_failure(self):
        audit_logger = AuditLogger(KeyValueAuditStorage(BrokenStorage()))
        event = AuditEvent(event_type=AuditEventType.BILLS_EXPORTED, description="x")
        assert audit_logger.log(event) is False

    def test_local_only_logger(self):
        event = AuditEvent(event_type=AuditEventType.BILLS_EXPORTED, description="x")
        assert AuditLogger().log(event) is True
