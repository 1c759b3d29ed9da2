"""
Data Models Package

This package contains all Pydantic models used in the Bill Tracker system.
All data flowing through the system must conform to these schemas.
"""

from billtracker.models.bill import (
    Bill,
    BillCategory,
    BillDraft,
    BillFilter,
    BillGroup,
    BillStats,
    BillStatus,
    BillUpdate,
    BulkMode,
    BulkResult,
    CalendarEntry,
    Frequency,
    ImportedBill,
    ImportResult,
    ItemError,
    PaymentHistory,
    PaymentState,
    SortKey,
    SortOrder,
    ValidationIssue,
    ValidationResult,
    is_known_category,
)
from billtracker.models.audit import (
    AuditEvent,
    AuditEventBuilder,
    AuditEventType,
    AuditSeverity,
)

__all__ = [
    # Bill models
    "Bill",
    "BillCategory",
    "BillDraft",
    "BillFilter",
    "BillGroup",
    "BillStats",
    "BillStatus",
    "BillUpdate",
    "BulkMode",
    "BulkResult",
    "CalendarEntry",
    "Frequency",
    "ImportedBill",
    "ImportResult",
    "ItemError",
    "PaymentHistory",
    "PaymentState",
    "SortKey",
    "SortOrder",
    "ValidationIssue",
    "ValidationResult",
    "is_known_category",
    # Audit models
    "AuditEvent",
    "AuditEventBuilder",
    "AuditEventType",
    "AuditSeverity",
]
