"""
Audit Logger

The audit logger:
- Always logs locally through structlog
- Optionally persists events next to the bills
- Gracefully handles persistence failures (an audit write never
  fails the bill operation that triggered it)
- Supports correlation IDs to trace the items of one bulk request
"""

import logging
import sys
from typing import Optional
from uuid import UUID, uuid4

import structlog

from billtracker.models.audit import AuditEvent, AuditEventBuilder, AuditSeverity
from billtracker.services.storage import AuditStorageInterface, StorageError


def configure_logging(log_level: str = "INFO", json_logs: bool = True) -> None:
    """
    Configure structlog over the standard library logging module.

    Called once by create_bill_manager(); safe to call again to change level.
    """
    level = getattr(logging, log_level.upper(), logging.INFO)
    logging.basicConfig(
        format="%(message)s",
        stream=sys.stdout,
        level=level,
        force=True,
    )

    renderer = (
        structlog.processors.JSONRenderer()
        if json_logs
        else structlog.dev.ConsoleRenderer()
    )
    structlog.configure(
        processors=[
            structlog.stdlib.filter_by_level,
            structlog.stdlib.add_logger_name,
            structlog.stdlib.add_log_level,
            structlog.stdlib.PositionalArgumentsFormatter(),
            structlog.processors.TimeStamper(fmt="iso"),
            structlog.processors.StackInfoRenderer(),
            structlog.processors.format_exc_info,
            structlog.processors.UnicodeDecoder(),
            renderer,
        ],
        wrapper_class=structlog.stdlib.BoundLogger,
        context_class=dict,
        logger_factory=structlog.stdlib.LoggerFactory(),
        cache_logger_on_first_use=True,
    )


class AuditLogger:
    """
    Central audit logging service.

    Logs events both to:
    1. Structured local log (for debugging)
    2. The storage backend (for persistence and user visibility)
    """

    def __init__(
        self,
        storage: Optional[AuditStorageInterface] = None,
    ):
        """
        Initialize audit logger.

        Args:
            storage: Storage backend for persistence.
                    If None, only logs locally.
        """
        self._storage = storage
        self._logger = structlog.get_logger("billtracker.audit")

    def log(self, event: AuditEvent) -> bool:
        """
        Log an audit event.

        Always logs locally. Persists to storage if available.

        Returns True if storage write succeeded (or no storage configured).
        """
        log_dict = event.to_log_dict()

        if event.severity == AuditSeverity.ERROR:
            self._logger.error("audit_event", **log_dict)
        elif event.severity == AuditSeverity.WARNING:
            self._logger.warning("audit_event", **log_dict)
        elif event.severity == AuditSeverity.DEBUG:
            self._logger.debug("audit_event", **log_dict)
        else:
            self._logger.info("audit_event", **log_dict)

        if self._storage:
            try:
                return self._storage.append_event(event)
            except StorageError as e:
                # Log failure but don't raise
                self._logger.error(
                    "audit_storage_failed",
                    error=str(e),
                    event_id=str(event.event_id),
                )
                return False

        return True

    def log_bill_created(
        self,
        bill_id: int,
        name: str,
        amount: str,
        correlation_id: Optional[UUID] = None,
    ) -> None:
        self.log(AuditEventBuilder.bill_created(bill_id, name, amount, correlation_id))

    def log_bill_updated(
        self,
        bill_id: int,
        fields: list[str],
        correlation_id: Optional[UUID] = None,
    ) -> None:
        self.log(AuditEventBuilder.bill_updated(bill_id, fields, correlation_id))

    def log_bill_deleted(
        self,
        bill_id: int,
        name: str,
        correlation_id: Optional[UUID] = None,
    ) -> None:
        self.log(AuditEventBuilder.bill_deleted(bill_id, name, correlation_id))

    def log_payment_status(
        self,
        bill_id: int,
        paid: bool,
        amount_paid: Optional[str] = None,
        correlation_id: Optional[UUID] = None,
    ) -> None:
        self.log(AuditEventBuilder.payment_status_changed(
            bill_id, paid, amount_paid, correlation_id
        ))

    def log_recurring_generated(
        self,
        template_id: int,
        frequency: str,
        generated_ids: list[int],
        correlation_id: Optional[UUID] = None,
    ) -> None:
        self.log(AuditEventBuilder.recurring_generated(
            template_id, frequency, generated_ids, correlation_id
        ))

    def log_bulk_completed(
        self,
        operation: str,
        mode: str,
        succeeded: list[int],
        failed: list[int],
        correlation_id: Optional[UUID] = None,
    ) -> None:
        self.log(AuditEventBuilder.bulk_completed(
            operation, mode, succeeded, failed, correlation_id
        ))

    def log_bills_imported(
        self,
        imported: int,
        rejected: int,
        mode: str,
        correlation_id: Optional[UUID] = None,
    ) -> None:
        self.log(AuditEventBuilder.bills_imported(imported, rejected, mode, correlation_id))

    def log_bills_loaded(self, count: int, next_id: int) -> None:
        self.log(AuditEventBuilder.bills_loaded(count, next_id))

    def log_bills_exported(self, export_format: str, count: int) -> None:
        self.log(AuditEventBuilder.bills_exported(export_format, count))

    def log_rejected(
        self,
        operation: str,
        error: Exception,
        bill_id: Optional[int] = None,
        details: Optional[dict] = None,
        correlation_id: Optional[UUID] = None,
    ) -> None:
        """Log an operation that was refused with a BillTrackerError."""
        self.log(AuditEventBuilder.operation_rejected(
            operation=operation,
            error_type=type(error).__name__,
            error_message=str(error),
            bill_id=bill_id,
            details=details,
            correlation_id=correlation_id,
        ))


def create_correlation_id() -> UUID:
    """
    Create a new correlation ID for tracking related events.

    Use this at the start of a multi-item request (bulk operation,
    import, recurring generation) and pass it to every per-item event.
    """
    return uuid4()
