"""
Audit Models for Bill Tracker

One event per mutation, import, export, load or rejected operation.

Audit logs are append-only. Old events are only trimmed when the
retention cap is reached.
"""

import json
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Optional
from uuid import UUID, uuid4

from pydantic import BaseModel, Field


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class AuditEventType(str, Enum):
    """Types of events we audit."""
    # Single-bill mutations
    BILL_CREATED = "bill_created"
    BILL_UPDATED = "bill_updated"
    BILL_DELETED = "bill_deleted"
    BILL_MARKED_PAID = "bill_marked_paid"
    BILL_MARKED_UNPAID = "bill_marked_unpaid"

    # Multi-bill mutations
    RECURRING_GENERATED = "recurring_generated"
    BULK_OPERATION_COMPLETED = "bulk_operation_completed"
    BILLS_IMPORTED = "bills_imported"

    # Collection-level events
    BILLS_LOADED = "bills_loaded"
    BILLS_EXPORTED = "bills_exported"

    # Rejections
    OPERATION_REJECTED = "operation_rejected"


class AuditSeverity(str, Enum):
    """Severity level for audit events."""
    DEBUG = "debug"
    INFO = "info"
    WARNING = "warning"
    ERROR = "error"


class AuditEvent(BaseModel):
    """
    A single audit event.

    Every significant action creates one of these.
    """

    # Identity
    event_id: UUID = Field(
        default_factory=uuid4,
        description="Unique event identifier"
    )
    timestamp: datetime = Field(
        default_factory=_utcnow,
        description="When the event occurred (UTC)"
    )

    # Event classification
    event_type: AuditEventType
    severity: AuditSeverity = AuditSeverity.INFO

    # Which bill is this about? None for collection-level events.
    bill_id: Optional[int] = None

    # Correlation - ties per-item events of one bulk request together
    correlation_id: Optional[UUID] = None

    description: str = Field(
        ...,
        description="Human-readable description of what happened"
    )
    details: dict[str, Any] = Field(default_factory=dict)
    error_message: Optional[str] = None

    def to_log_dict(self) -> dict:
        """
        Convert to a dictionary suitable for structured logging.
        """
        return {
            "event_id": str(self.event_id),
            "timestamp": self.timestamp.isoformat(),
            "event_type": self.event_type.value,
            "severity": self.severity.value,
            "bill_id": self.bill_id,
            "correlation_id": str(self.correlation_id) if self.correlation_id else None,
            "description": self.description,
            "details": self.details,
            "error_message": self.error_message,
        }

    def to_storage_json(self) -> str:
        return json.dumps(self.to_log_dict(), default=str)


class AuditEventBuilder:
    """
    Helper class to build audit events with common patterns.

    Usage:
        event = AuditEventBuilder.bill_created(bill_id, name, amount)
        event = AuditEventBuilder.operation_rejected("delete", "NotFoundError", msg)
    """

    @staticmethod
    def bill_created(
        bill_id: int,
        name: str,
        amount: str,
        correlation_id: Optional[UUID] = None,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.BILL_CREATED,
            bill_id=bill_id,
            correlation_id=correlation_id,
            description=f"Bill created: {name} - {amount}",
            details={"name": name, "amount": amount},
        )

    @staticmethod
    def bill_updated(
        bill_id: int,
        fields: list[str],
        correlation_id: Optional[UUID] = None,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.BILL_UPDATED,
            bill_id=bill_id,
            correlation_id=correlation_id,
            description=f"Bill {bill_id} updated: {', '.join(fields) or 'no fields'}",
            details={"fields": fields},
        )

    @staticmethod
    def bill_deleted(
        bill_id: int,
        name: str,
        correlation_id: Optional[UUID] = None,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.BILL_DELETED,
            bill_id=bill_id,
            correlation_id=correlation_id,
            description=f"Bill deleted: {name}",
            details={"name": name},
        )

    @staticmethod
    def payment_status_changed(
        bill_id: int,
        paid: bool,
        amount_paid: Optional[str] = None,
        correlation_id: Optional[UUID] = None,
    ) -> AuditEvent:
        if paid:
            return AuditEvent(
                event_type=AuditEventType.BILL_MARKED_PAID,
                bill_id=bill_id,
                correlation_id=correlation_id,
                description=f"Bill {bill_id} marked paid ({amount_paid})",
                details={"amount_paid": amount_paid},
            )
        return AuditEvent(
            event_type=AuditEventType.BILL_MARKED_UNPAID,
            bill_id=bill_id,
            correlation_id=correlation_id,
            description=f"Bill {bill_id} marked unpaid",
        )

    @staticmethod
    def recurring_generated(
        template_id: int,
        frequency: str,
        generated_ids: list[int],
        correlation_id: Optional[UUID] = None,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.RECURRING_GENERATED,
            bill_id=template_id,
            correlation_id=correlation_id,
            description=f"Generated {len(generated_ids)} {frequency} bills from bill {template_id}",
            details={"frequency": frequency, "generated_ids": generated_ids},
        )

    @staticmethod
    def bulk_completed(
        operation: str,
        mode: str,
        succeeded: list[int],
        failed: list[int],
        correlation_id: Optional[UUID] = None,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.BULK_OPERATION_COMPLETED,
            severity=AuditSeverity.WARNING if failed else AuditSeverity.INFO,
            correlation_id=correlation_id,
            description=f"Bulk {operation}: {len(succeeded)} applied, {len(failed)} failed",
            details={
                "operation": operation,
                "mode": mode,
                "succeeded": succeeded,
                "failed": failed,
            },
        )

    @staticmethod
    def bills_imported(
        imported: int,
        rejected: int,
        mode: str,
        correlation_id: Optional[UUID] = None,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.BILLS_IMPORTED,
            severity=AuditSeverity.WARNING if rejected else AuditSeverity.INFO,
            correlation_id=correlation_id,
            description=f"Imported {imported} bills ({rejected} rejected)",
            details={"imported": imported, "rejected": rejected, "mode": mode},
        )

    @staticmethod
    def bills_loaded(count: int, next_id: int) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.BILLS_LOADED,
            severity=AuditSeverity.DEBUG,
            description=f"Loaded {count} bills from storage",
            details={"count": count, "next_id": next_id},
        )

    @staticmethod
    def bills_exported(export_format: str, count: int) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.BILLS_EXPORTED,
            description=f"Exported {count} bills as {export_format}",
            details={"format": export_format, "count": count},
        )

    @staticmethod
    def operation_rejected(
        operation: str,
        error_type: str,
        error_message: str,
        bill_id: Optional[int] = None,
        details: Optional[dict] = None,
        correlation_id: Optional[UUID] = None,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.OPERATION_REJECTED,
            severity=AuditSeverity.WARNING,
            bill_id=bill_id,
            correlation_id=correlation_id,
            description=f"{operation} rejected: {error_type}",
            details={"operation": operation, **(details or {})},
            error_message=error_message,
        )
