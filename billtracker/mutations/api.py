"""
Mutation API

Every change to the bill collection goes through here.

FLOW for each mutation:
1. Validate the request (ValidationError, nothing applied)
2. Look up the bill(s) (NotFoundError, nothing applied)
3. Stage the new record(s) - rebuilt and re-validated, not edited in place
4. Commit the change set to the store (one save)
5. Audit

Bulk operations stage every item before committing anything, so the
atomic mode can reject a request without side effects.
"""

from contextlib import contextmanager
from datetime import date, datetime, time
from typing import Any, Callable, Iterable, Iterator, Mapping, Optional, Union
from uuid import UUID

from pydantic import ValidationError as PydanticValidationError

from billtracker.audit import AuditLogger, create_correlation_id
from billtracker.errors import (
    BillTrackerError,
    InvalidOperationError,
    NotFoundError,
    ValidationError,
)
from billtracker.models.bill import (
    Bill,
    BillDraft,
    BillUpdate,
    BulkMode,
    BulkResult,
    Frequency,
    ItemError,
    ValidationIssue,
)
from billtracker.services.storage import BillStore
from billtracker.utils.dates import shift_due_date
from billtracker.validation import BillValidator, issues_from_pydantic


TimestampInput = Union[datetime, date, str, None]


def item_error(error: BillTrackerError, bill_id: Optional[int] = None, index: Optional[int] = None) -> ItemError:
    """Describe a per-item failure for a bulk or import result."""
    return ItemError(
        bill_id=bill_id,
        index=index,
        error_type=type(error).__name__,
        message=str(error),
        issues=getattr(error, "issues", []),
    )


def _count_error(message: str) -> ValidationError:
    return ValidationError(message, [ValidationIssue(
        field="count",
        issue_type="invalid_value",
        message=message,
        severity="error",
    )])


class MutationAPI:
    """
    Create, update, delete, payment state, recurring generation and
    bulk operations.
    """

    def __init__(
        self,
        store: BillStore,
        validator: Optional[BillValidator] = None,
        audit_logger: Optional[AuditLogger] = None,
        bulk_mode: BulkMode = BulkMode.ATOMIC,
        default_recurring_count: int = 12,
    ):
        self._store = store
        self._validator = validator or BillValidator()
        self._audit_logger = audit_logger
        self._bulk_mode = bulk_mode
        self._default_recurring_count = default_recurring_count

    # -------------------------------------------------------------------------
    # Helpers
    # -------------------------------------------------------------------------

    @contextmanager
    def _rejections(
        self,
        operation: str,
        bill_id: Optional[int] = None,
        correlation_id: Optional[UUID] = None,
    ) -> Iterator[None]:
        """Audit a refused operation, then let the error propagate."""
        try:
            yield
        except BillTrackerError as e:
            if self._audit_logger:
                self._audit_logger.log_rejected(
                    operation, e, bill_id=bill_id, correlation_id=correlation_id
                )
            raise

    def _rebuild(self, bill: Bill, changes: Mapping[str, Any]) -> Bill:
        """New validated record with changes applied on top of `bill`."""
        data = bill.model_dump()
        data.update(changes)
        try:
            return Bill.model_validate(data)
        except PydanticValidationError as e:
            raise ValidationError(
                f"Invalid changes to bill {bill.id}", issues_from_pydantic(e)
            ) from e

    def _timestamp(self, value: TimestampInput, now: datetime) -> Any:
        """Payment date input: missing -> now, a bare date -> local midnight."""
        if value is None:
            return now
        if isinstance(value, datetime):
            return value
        if isinstance(value, date):
            return datetime.combine(value, time.min, tzinfo=now.tzinfo)
        if isinstance(value, str) and len(value.strip()) == 10:
            try:
                return datetime.combine(date.fromisoformat(value.strip()), time.min, tzinfo=now.tzinfo)
            except ValueError:
                pass
        # Anything else is left for model validation to accept or reject
        return value

    # -------------------------------------------------------------------------
    # Staging (no side effects)
    # -------------------------------------------------------------------------

    def _stage_update(self, bill_id: int, request: BillUpdate, now: datetime) -> Bill:
        bill = self._store.require(bill_id)
        return self._rebuild(bill, {**request.changes(), "updated_at": now})

    def _stage_mark_paid(
        self,
        bill_id: int,
        amount_paid: Any,
        date_paid: TimestampInput,
        now: datetime,
    ) -> Bill:
        bill = self._store.require(bill_id)
        return self._rebuild(bill, {
            "paid": True,
            "amount_paid": bill.amount if amount_paid is None else amount_paid,
            "date_paid": self._timestamp(date_paid, now),
            "updated_at": now,
        })

    def _stage_mark_unpaid(self, bill_id: int, now: datetime) -> Bill:
        bill = self._store.require(bill_id)
        return self._rebuild(bill, {
            "paid": False,
            "amount_paid": None,
            "date_paid": None,
            "updated_at": now,
        })

    # -------------------------------------------------------------------------
    # Single-bill operations
    # -------------------------------------------------------------------------

    def create(self, data: Union[Mapping[str, Any], BillDraft]) -> Bill:
        """
        Create and persist a new bill.

        Raises:
            ValidationError: If name, amount or dueDate is missing or malformed
        """
        with self._rejections("create"):
            draft = self._validator.draft(data)
            now = self._store.now()
            bill = Bill(
                id=self._store.allocate_id(),
                **draft.model_dump(),
                paid=False,
                created_at=now,
                updated_at=now,
            )
            self._store.commit(added=[bill])

        if self._audit_logger:
            self._audit_logger.log_bill_created(bill.id, bill.name, str(bill.amount))
        return bill

    def update(self, bill_id: int, updates: Union[Mapping[str, Any], BillUpdate]) -> Bill:
        """
        Apply whitelisted field changes to a bill.

        Raises:
            NotFoundError: If the id is unknown
            ValidationError: If a supplied value is malformed or breaks an invariant
        """
        with self._rejections("update", bill_id):
            self._store.require(bill_id)
            request = self._validator.update(updates)
            bill = self._stage_update(bill_id, request, self._store.now())
            self._store.commit(replaced=[bill])

        if self._audit_logger:
            self._audit_logger.log_bill_updated(bill_id, sorted(request.model_fields_set))
        return bill

    def delete(self, bill_id: int) -> Bill:
        """
        Remove a bill and return it.

        Bills generated from it keep their recurringParentId.

        Raises:
            NotFoundError: If the id is unknown
        """
        with self._rejections("delete", bill_id):
            bill = self._store.require(bill_id)
            self._store.commit(removed=[bill_id])

        if self._audit_logger:
            self._audit_logger.log_bill_deleted(bill_id, bill.name)
        return bill

    def mark_paid(
        self,
        bill_id: int,
        amount_paid: Any = None,
        date_paid: TimestampInput = None,
    ) -> Bill:
        """
        Record a payment.

        amount_paid defaults to the bill amount, date_paid to now.

        Raises:
            NotFoundError: If the id is unknown
            ValidationError: If amount_paid or date_paid is malformed
        """
        with self._rejections("mark_paid", bill_id):
            bill = self._stage_mark_paid(bill_id, amount_paid, date_paid, self._store.now())
            self._store.commit(replaced=[bill])

        if self._audit_logger:
            self._audit_logger.log_payment_status(bill_id, True, str(bill.amount_paid))
        return bill

    def mark_unpaid(self, bill_id: int) -> Bill:
        """
        Clear a payment.

        Raises:
            NotFoundError: If the id is unknown
        """
        with self._rejections("mark_unpaid", bill_id):
            bill = self._stage_mark_unpaid(bill_id, self._store.now())
            self._store.commit(replaced=[bill])

        if self._audit_logger:
            self._audit_logger.log_payment_status(bill_id, False)
        return bill

    def generate_recurring(self, bill_id: int, count: Optional[int] = None) -> list[Bill]:
        """
        Generate future occurrences of a recurring bill.

        The template counts as occurrence 1, so `count - 1` new bills are
        created, each offset from the template's due date by i periods.

        Raises:
            NotFoundError: If the id is unknown
            InvalidOperationError: If the template is a one-time bill
            ValidationError: If count is below 1, or an occurrence would
                fall outside the supported date range
        """
        if count is None:
            count = self._default_recurring_count
        correlation_id = create_correlation_id()

        with self._rejections("generate_recurring", bill_id, correlation_id):
            template = self._store.require(bill_id)
            if template.frequency == Frequency.ONE_TIME:
                raise InvalidOperationError(
                    f"Cannot generate recurring bills for one-time bill {bill_id}"
                )
            if count < 1:
                raise _count_error(f"count must be at least 1, got {count}")
            try:
                due_dates = [
                    shift_due_date(template.due_date, template.frequency, i)
                    for i in range(1, count)
                ]
            except (ValueError, OverflowError) as e:
                raise _count_error(
                    f"Cannot schedule {count - 1} occurrences after {template.due_date}: {e}"
                ) from e

            now = self._store.now()
            generated = [
                Bill(
                    id=self._store.allocate_id(),
                    name=template.name,
                    amount=template.amount,
                    due_date=due_date,
                    category=template.category,
                    frequency=template.frequency,
                    autopay=template.autopay,
                    notes=template.notes,
                    payment_method=template.payment_method,
                    recurring_parent_id=template.id,
                    paid=False,
                    created_at=now,
                    updated_at=now,
                )
                for due_date in due_dates
            ]
            self._store.commit(added=generated)

        if self._audit_logger:
            self._audit_logger.log_recurring_generated(
                bill_id,
                template.frequency.value,
                [bill.id for bill in generated],
                correlation_id,
            )
        return generated

    # -------------------------------------------------------------------------
    # Bulk operations
    # -------------------------------------------------------------------------

    def _bulk(
        self,
        operation: str,
        bill_ids: Iterable[int],
        stage: Callable[[int], Bill],
        remove: bool,
        mode: Union[BulkMode, str, None],
        audit_item: Callable[[Bill, UUID], None],
    ) -> BulkResult:
        """
        Stage every id, then commit the staged bills in one save.

        ATOMIC: any failure raises before anything is committed.
        NotFoundError lists every unknown id; otherwise the first
        failure is raised.
        BEST_EFFORT: failures are reported in the result.
        """
        mode = BulkMode(mode) if mode is not None else self._bulk_mode
        ids = list(dict.fromkeys(bill_ids))
        correlation_id = create_correlation_id()

        staged: list[Bill] = []
        failures: list[tuple[int, BillTrackerError]] = []
        for bill_id in ids:
            try:
                staged.append(stage(bill_id))
            except BillTrackerError as e:
                failures.append((bill_id, e))

        if failures and mode == BulkMode.ATOMIC:
            missing = [bill_id for bill_id, e in failures if isinstance(e, NotFoundError)]
            error = NotFoundError(missing) if missing else failures[0][1]
            if self._audit_logger:
                self._audit_logger.log_rejected(
                    f"bulk_{operation}",
                    error,
                    details={"bill_ids": ids, "mode": mode.value},
                    correlation_id=correlation_id,
                )
            raise error

        if staged:
            if remove:
                self._store.commit(removed=[bill.id for bill in staged])
            else:
                self._store.commit(replaced=staged)

        result = BulkResult(
            operation=operation,
            mode=mode,
            bills=staged,
            errors=[item_error(e, bill_id=bill_id) for bill_id, e in failures],
        )
        if self._audit_logger:
            for bill in staged:
                audit_item(bill, correlation_id)
            self._audit_logger.log_bulk_completed(
                operation,
                mode.value,
                result.succeeded_ids,
                [bill_id for bill_id, _ in failures],
                correlation_id,
            )
        return result

    def bulk_update(
        self,
        bill_ids: Iterable[int],
        updates: Union[Mapping[str, Any], BillUpdate],
        mode: Union[BulkMode, str, None] = None,
    ) -> BulkResult:
        """
        Apply the same update to several bills.

        Raises:
            ValidationError: If the update itself is malformed (any mode)
            NotFoundError / ValidationError: On a per-bill failure in atomic mode
        """
        with self._rejections("bulk_update"):
            request = self._validator.update(updates)
        fields = sorted(request.model_fields_set)
        now = self._store.now()
        return self._bulk(
            "update",
            bill_ids,
            lambda bill_id: self._stage_update(bill_id, request, now),
            remove=False,
            mode=mode,
            audit_item=lambda bill, cid: self._audit_logger.log_bill_updated(bill.id, fields, cid),
        )

    def bulk_delete(
        self,
        bill_ids: Iterable[int],
        mode: Union[BulkMode, str, None] = None,
    ) -> BulkResult:
        """Delete several bills. The result lists the removed bills."""
        return self._bulk(
            "delete",
            bill_ids,
            self._store.require,
            remove=True,
            mode=mode,
            audit_item=lambda bill, cid: self._audit_logger.log_bill_deleted(bill.id, bill.name, cid),
        )

    def bulk_mark_paid(
        self,
        bill_ids: Iterable[int],
        mode: Union[BulkMode, str, None] = None,
    ) -> BulkResult:
        """Mark several bills paid at their full amount, dated now."""
        now = self._store.now()
        return self._bulk(
            "mark_paid",
            bill_ids,
            lambda bill_id: self._stage_mark_paid(bill_id, None, None, now),
            remove=False,
            mode=mode,
            audit_item=lambda bill, cid: self._audit_logger.log_payment_status(
                bill.id, True, str(bill.amount_paid), cid
            ),
        )

    def bulk_mark_unpaid(
        self,
        bill_ids: Iterable[int],
        mode: Union[BulkMode, str, None] = None,
    ) -> BulkResult:
        """Clear the payment on several bills."""
        now = self._store.now()
        return self._bulk(
            "mark_unpaid",
            bill_ids,
            lambda bill_id: self._stage_mark_unpaid(bill_id, now),
            remove=False,
            mode=mode,
            audit_item=lambda bill, cid: self._audit_logger.log_payment_status(
                bill.id, False, correlation_id=cid
            ),
        )
