"""
Core Data Models for Bill Tracker

Schemas for everything that flows through the engine. Bill invariants
are enforced at construction time. Input is accepted in snake_case or
camelCase; output is serialized in camelCase.

Records are rebuilt and re-validated on every mutation, never edited
in place.
"""

from datetime import date, datetime, timezone
from decimal import Decimal
from enum import Enum
from typing import Any, Optional

from pydantic import (
    BaseModel,
    ConfigDict,
    Field,
    field_serializer,
    field_validator,
    model_validator,
)
from pydantic.alias_generators import to_camel


# Field names are snake_case in Python and camelCase on the wire.
CAMEL_CONFIG = ConfigDict(
    str_strip_whitespace=True,
    alias_generator=to_camel,
    populate_by_name=True,
)


# =============================================================================
# ENUMS - Finite set of valid values
# =============================================================================

class BillCategory(str, Enum):
    """
    Suggested bill categories.

    The category field itself is free text; these are the values the
    UI offers in its pick-list.
    """
    UTILITIES = "Utilities"
    SUBSCRIPTIONS = "Subscriptions"
    LOANS = "Loans"
    INSURANCE = "Insurance"
    RENT_MORTGAGE = "Rent/Mortgage"
    CREDIT_CARDS = "Credit Cards"
    MEDICAL = "Medical"
    CHILDCARE = "Childcare"
    TRANSPORTATION = "Transportation"
    ENTERTAINMENT = "Entertainment"
    OTHER = "Other"


class Frequency(str, Enum):
    """How often a bill recurs."""
    ONE_TIME = "one-time"
    WEEKLY = "weekly"
    BIWEEKLY = "biweekly"
    MONTHLY = "monthly"
    QUARTERLY = "quarterly"
    YEARLY = "yearly"


class BillStatus(str, Enum):
    """
    Derived bill status.

    CRITICAL: Status is computed from `paid` and `due_date` on every
    read. It is never persisted.
    """
    PAID = "paid"
    OVERDUE = "overdue"
    DUE_SOON = "due-soon"
    UPCOMING = "upcoming"


class PaymentState(str, Enum):
    """Payment state reported by payment history."""
    COMPLETED = "completed"
    PENDING = "pending"


class SortKey(str, Enum):
    DUE_DATE = "dueDate"
    AMOUNT = "amount"
    NAME = "name"
    CREATED_AT = "createdAt"


class SortOrder(str, Enum):
    ASC = "asc"
    DESC = "desc"


class BulkMode(str, Enum):
    """
    Failure contract for multi-item requests (bulk operations, imports).

    ATOMIC: all items are checked first; any failure rejects the whole
    request and nothing is applied.
    BEST_EFFORT: valid items are applied, failures are reported per item.
    """
    ATOMIC = "atomic"
    BEST_EFFORT = "best_effort"


def is_known_category(category: str) -> bool:
    """Is this one of the suggested categories?"""
    return category in {c.value for c in BillCategory}


def _as_utc(value: Optional[datetime]) -> Optional[datetime]:
    # Naive timestamps from storage or imports are taken as UTC
    if value is not None and value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value


def _blank_to(default: Any, value: Any) -> Any:
    if isinstance(value, Enum):
        value = value.value
    if value is None or value == "":
        return default
    return value


# =============================================================================
# VALIDATION MODELS
# =============================================================================

class ValidationIssue(BaseModel):
    """A single validation issue found."""

    field: str = Field(
        ...,
        description="Field with the issue"
    )
    issue_type: str = Field(
        ...,
        description="Type of issue (e.g., 'missing', 'invalid_value', 'unknown_category')"
    )
    message: str = Field(
        ...,
        description="Human-readable description of the issue"
    )
    severity: str = Field(
        ...,
        pattern="^(error|warning|info)$",
        description="Issue severity"
    )
    suggested_fix: Optional[str] = Field(
        default=None,
        description="Suggested fix if available"
    )


class ValidationResult(BaseModel):
    """
    Result of the two-stage validation.

    Stage 1: Schema validation (required fields, types)
    Stage 2: Semantic validation (suspicious but allowed values)
    """

    schema_valid: bool
    issues: list[ValidationIssue] = Field(default_factory=list)

    @property
    def is_valid(self) -> bool:
        return not self.has_errors

    @property
    def has_errors(self) -> bool:
        """Check if there are any error-level issues."""
        return any(issue.severity == "error" for issue in self.issues)

    @property
    def errors(self) -> list[ValidationIssue]:
        return [issue for issue in self.issues if issue.severity == "error"]

    @property
    def warnings(self) -> list[ValidationIssue]:
        return [issue for issue in self.issues if issue.severity == "warning"]


# =============================================================================
# CORE BILL MODEL
# =============================================================================

class _BillAttributes(BaseModel):
    """
    Attributes shared by a stored bill and the requests that create one.

    Optional attributes fall back to their defaults when missing,
    null or blank.
    """
    model_config = CAMEL_CONFIG

    name: str = Field(
        ...,
        min_length=1,
        description="Bill name (required)"
    )
    amount: Decimal = Field(
        ...,
        ge=0,
        description="Amount due (required)"
    )
    due_date: date = Field(
        ...,
        description="Calendar day the bill is due (required)"
    )
    category: str = Field(
        default=BillCategory.OTHER.value,
        description="Category, one of BillCategory or free text"
    )
    frequency: Frequency = Field(
        default=Frequency.ONE_TIME,
        description="Recurrence, drives recurring generation"
    )
    autopay: bool = False
    notes: str = ""
    payment_method: str = ""

    @field_validator("category", mode="before")
    @classmethod
    def default_category(cls, v: Any) -> Any:
        return _blank_to(BillCategory.OTHER.value, v)

    @field_validator("frequency", mode="before")
    @classmethod
    def default_frequency(cls, v: Any) -> Any:
        return _blank_to(Frequency.ONE_TIME.value, v)

    @field_validator("autopay", mode="before")
    @classmethod
    def default_autopay(cls, v: Any) -> Any:
        return False if v is None else v

    @field_validator("notes", "payment_method", mode="before")
    @classmethod
    def default_text(cls, v: Any) -> Any:
        return _blank_to("", v)


class Bill(_BillAttributes):
    """
    A stored bill.

    INVARIANTS:
    - id is assigned by the store and never changes
    - paid == True  <=> amount_paid and date_paid are both set
    - paid == False <=> amount_paid and date_paid are both cleared
    """

    id: int = Field(
        ...,
        ge=1,
        description="Store-assigned identifier"
    )
    paid: bool = False
    amount_paid: Optional[Decimal] = Field(default=None, ge=0)
    date_paid: Optional[datetime] = None
    recurring_parent_id: Optional[int] = Field(
        default=None,
        description="Template bill this occurrence was generated from"
    )
    created_at: datetime
    updated_at: datetime

    @field_validator("created_at", "updated_at", "date_paid")
    @classmethod
    def ensure_timezone(cls, v: Optional[datetime]) -> Optional[datetime]:
        return _as_utc(v)

    @model_validator(mode="after")
    def validate_payment_state(self) -> "Bill":
        """Payment fields travel together with the paid flag."""
        if self.paid:
            if self.amount_paid is None or self.date_paid is None:
                raise ValueError("A paid bill must record both amountPaid and datePaid")
        elif self.amount_paid is not None or self.date_paid is not None:
            raise ValueError("An unpaid bill cannot carry amountPaid or datePaid")
        return self

    @field_serializer("amount", "amount_paid", when_used="json-unless-none")
    def serialize_money(self, value: Decimal) -> float:
        return float(value)

    @property
    def is_recurring(self) -> bool:
        return self.frequency != Frequency.ONE_TIME

    def to_storage_dict(self) -> dict:
        """camelCase JSON-ready dict, the persisted record shape."""
        return self.model_dump(mode="json", by_alias=True)


# =============================================================================
# REQUEST MODELS
# =============================================================================

class BillDraft(_BillAttributes):
    """Input for creating a bill. The store assigns id and timestamps."""
    model_config = ConfigDict(**CAMEL_CONFIG, extra="ignore")

    recurring_parent_id: Optional[int] = None


class ImportedBill(_BillAttributes):
    """
    One entry of a JSON import.

    Carries the payment state and original creation time. Ids in the
    payload are ignored; the store assigns fresh ones.
    """
    model_config = ConfigDict(**CAMEL_CONFIG, extra="ignore")

    paid: bool = False
    amount_paid: Optional[Decimal] = Field(default=None, ge=0)
    date_paid: Optional[datetime] = None
    created_at: Optional[datetime] = None

    @field_validator("paid", mode="before")
    @classmethod
    def default_paid(cls, v: Any) -> Any:
        return False if v is None else v

    @field_validator("created_at", "date_paid")
    @classmethod
    def ensure_timezone(cls, v: Optional[datetime]) -> Optional[datetime]:
        return _as_utc(v)


class BillUpdate(BaseModel):
    """
    Explicit update request.

    Only the whitelisted fields below exist; anything else in the input
    (id, createdAt, recurringParentId, paid, ...) is ignored. Only the
    fields the caller actually supplied are applied.
    """
    model_config = ConfigDict(**CAMEL_CONFIG, extra="ignore")

    name: Optional[str] = Field(default=None, min_length=1)
    amount: Optional[Decimal] = Field(default=None, ge=0)
    due_date: Optional[date] = None
    category: Optional[str] = None
    frequency: Optional[Frequency] = None
    autopay: Optional[bool] = None
    notes: Optional[str] = None
    payment_method: Optional[str] = None
    amount_paid: Optional[Decimal] = Field(default=None, ge=0)
    date_paid: Optional[datetime] = None

    @field_validator("date_paid")
    @classmethod
    def ensure_timezone(cls, v: Optional[datetime]) -> Optional[datetime]:
        return _as_utc(v)

    def changes(self) -> dict[str, Any]:
        """Supplied fields only, keyed by field name."""
        return {name: getattr(self, name) for name in self.model_fields_set}


class BillFilter(BaseModel):
    """
    Filter criteria. Every criterion is optional; supplied ones are ANDed.

    Amount and date bounds are inclusive.
    """
    model_config = ConfigDict(**CAMEL_CONFIG, extra="forbid")

    status: Optional[BillStatus] = None
    category: Optional[str] = None
    min_amount: Optional[Decimal] = None
    max_amount: Optional[Decimal] = None
    frequency: Optional[Frequency] = None
    autopay: Optional[bool] = None
    start_date: Optional[date] = None
    end_date: Optional[date] = None


# =============================================================================
# QUERY RESULT MODELS
# =============================================================================

class BillGroup(BaseModel):
    """Bills sharing a category or frequency."""
    model_config = CAMEL_CONFIG

    count: int = 0
    total: Decimal = Decimal("0")
    bills: list[Bill] = Field(default_factory=list)

    @field_serializer("total", when_used="json")
    def serialize_money(self, value: Decimal) -> float:
        return float(value)


class BillStats(BaseModel):
    """
    Aggregates over the whole collection.

    Amounts (total, average, due this month) cover active (unpaid)
    bills only.
    """
    model_config = CAMEL_CONFIG

    total_bills: int
    active_bills: int
    paid_bills: int
    total_amount: Decimal
    average_amount: Decimal
    due_this_month: Decimal
    overdue: int
    due_soon: int
    by_category: dict[str, BillGroup] = Field(default_factory=dict)
    by_frequency: dict[str, BillGroup] = Field(default_factory=dict)

    @field_serializer("total_amount", "average_amount", "due_this_month", when_used="json")
    def serialize_money(self, value: Decimal) -> float:
        return float(value)


class CalendarEntry(BaseModel):
    """A bill placed on its day of the month."""
    model_config = CAMEL_CONFIG

    day: int = Field(..., ge=1, le=31)
    bill: Bill
    status: BillStatus


class PaymentHistory(BaseModel):
    """Payment summary for one bill."""
    model_config = CAMEL_CONFIG

    bill_id: int
    bill_name: str
    paid_on: Optional[datetime] = None
    amount: Optional[Decimal] = None
    payment_method: str = ""
    status: PaymentState


# =============================================================================
# MULTI-ITEM RESULT MODELS
# =============================================================================

class ItemError(BaseModel):
    """Why one item of a bulk request or import was not applied."""
    model_config = CAMEL_CONFIG

    bill_id: Optional[int] = Field(
        default=None,
        description="Bill id for bulk operations"
    )
    index: Optional[int] = Field(
        default=None,
        description="Position in the payload for imports"
    )
    error_type: str
    message: str
    issues: list[ValidationIssue] = Field(default_factory=list)


class BulkResult(BaseModel):
    """Outcome of a bulk operation."""
    model_config = CAMEL_CONFIG

    operation: str
    mode: BulkMode
    bills: list[Bill] = Field(
        default_factory=list,
        description="Bills as they are after the operation (removed bills for deletes)"
    )
    errors: list[ItemError] = Field(default_factory=list)

    @property
    def ok(self) -> bool:
        return not self.errors

    @property
    def succeeded_ids(self) -> list[int]:
        return [bill.id for bill in self.bills]


class ImportResult(BaseModel):
    """Outcome of a JSON import."""
    model_config = CAMEL_CONFIG

    mode: BulkMode
    bills: list[Bill] = Field(default_factory=list)
    errors: list[ItemError] = Field(default_factory=list)

    @property
    def imported(self) -> int:
        return len(self.bills)

    @property
    def ok(self) -> bool:
        return not self.errors
