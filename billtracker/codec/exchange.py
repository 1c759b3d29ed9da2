"""
Import / Export

JSON is the canonical backup format: every field of every bill, as a
camelCase array, readable back by import_json().

CSV is a lossy spreadsheet view (no ids, timestamps or payment details)
with a status column derived at export time.

IMPORT CONTRACT:
- The payload must be a JSON array, otherwise FormatError
- Every entry needs name, amount and dueDate
- ATOMIC mode: any bad entry rejects the whole payload (ValidationError
  with the entry index in each issue field), nothing is imported
- BEST_EFFORT mode: good entries are imported, bad ones are reported
- Imported bills always get fresh ids; import never replaces or
  de-duplicates against existing bills
"""

import csv
import io
import json
from datetime import datetime
from typing import Any, Optional, Union

import structlog
from pydantic import TypeAdapter
from pydantic import ValidationError as PydanticValidationError

from billtracker.audit import AuditLogger, create_correlation_id
from billtracker.errors import BillTrackerError, FormatError, ValidationError
from billtracker.models.bill import (
    Bill,
    BulkMode,
    ImportedBill,
    ImportResult,
    ItemError,
)
from billtracker.mutations import item_error
from billtracker.queries import QueryEngine
from billtracker.services.storage import BillStore
from billtracker.validation import BillValidator, issues_from_pydantic


CSV_HEADER = ("Name", "Amount", "Due Date", "Category", "Frequency", "Autopay", "Status", "Notes")

_BILL_LIST = TypeAdapter(list[Bill])

logger = structlog.get_logger(__name__)


class BillCodec:
    """JSON export/import and CSV export of the bill collection."""

    def __init__(
        self,
        store: BillStore,
        queries: QueryEngine,
        validator: Optional[BillValidator] = None,
        audit_logger: Optional[AuditLogger] = None,
        import_mode: BulkMode = BulkMode.ATOMIC,
    ):
        self._store = store
        self._queries = queries
        self._validator = validator or BillValidator()
        self._audit_logger = audit_logger
        self._import_mode = import_mode

    # -------------------------------------------------------------------------
    # Export
    # -------------------------------------------------------------------------

    def export_json(self) -> str:
        """The whole collection, all fields, as an indented JSON array."""
        bills = self._store.all()
        text = _BILL_LIST.dump_json(bills, indent=2, by_alias=True).decode("utf-8")
        if self._audit_logger:
            self._audit_logger.log_bills_exported("json", len(bills))
        return text

    def export_csv(self) -> str:
        """
        One row per bill under the header
        Name,Amount,Due Date,Category,Frequency,Autopay,Status,Notes.

        Every field is quoted; embedded quotes are doubled.
        """
        bills = self._store.all()
        today = self._store.today()

        buffer = io.StringIO()
        buffer.write(",".join(CSV_HEADER) + "\n")
        writer = csv.writer(buffer, quoting=csv.QUOTE_ALL, lineterminator="\n")
        for bill in bills:
            writer.writerow([
                bill.name,
                format(bill.amount.normalize(), "f"),
                bill.due_date.isoformat(),
                bill.category,
                bill.frequency.value,
                "true" if bill.autopay else "false",
                self._queries.status(bill, today).value,
                bill.notes,
            ])

        if self._audit_logger:
            self._audit_logger.log_bills_exported("csv", len(bills))
        return buffer.getvalue()

    # -------------------------------------------------------------------------
    # Import
    # -------------------------------------------------------------------------

    def _parse(self, text: Union[str, bytes]) -> list[Any]:
        try:
            payload = json.loads(text)
        except (json.JSONDecodeError, UnicodeDecodeError) as e:
            raise FormatError(f"Import payload is not valid JSON: {e}") from e
        if not isinstance(payload, list):
            raise FormatError(
                f"Import payload must be a JSON array, got {type(payload).__name__}"
            )
        return payload

    def _build(self, entry: ImportedBill, now: datetime) -> Bill:
        """
        Stored bill from a validated import entry.

        A paid entry without payment details is taken as paid in full at
        import time; an unpaid entry drops any payment details.
        """
        if entry.paid:
            amount_paid = entry.amount if entry.amount_paid is None else entry.amount_paid
            date_paid = now if entry.date_paid is None else entry.date_paid
        else:
            amount_paid = None
            date_paid = None

        return Bill(
            id=self._store.allocate_id(),
            name=entry.name,
            amount=entry.amount,
            due_date=entry.due_date,
            category=entry.category,
            frequency=entry.frequency,
            autopay=entry.autopay,
            notes=entry.notes,
            payment_method=entry.payment_method,
            paid=entry.paid,
            amount_paid=amount_paid,
            date_paid=date_paid,
            created_at=entry.created_at or now,
            updated_at=now,
        )

    def _validate_entries(
        self,
        payload: list[Any],
    ) -> tuple[list[ImportedBill], list[ItemError]]:
        entries: list[ImportedBill] = []
        errors: list[ItemError] = []
        for index, raw in enumerate(payload):
            try:
                entries.append(self._validator.imported(raw))
            except ValidationError as e:
                errors.append(item_error(e, index=index))
        return entries, errors

    def import_json(
        self,
        text: Union[str, bytes],
        mode: Union[BulkMode, str, None] = None,
    ) -> ImportResult:
        """
        Append the bills of a JSON array to the collection.

        Returns:
            An ImportResult. Its `imported` property is the number of
            records added; `bills` holds them and, in best-effort mode,
            `errors` lists the rejected entries by index.

        Raises:
            FormatError: If the text is not JSON or not an array
            ValidationError: In atomic mode, if any entry is invalid
        """
        mode = BulkMode(mode) if mode is not None else self._import_mode
        correlation_id = create_correlation_id()

        try:
            payload = self._parse(text)
            entries, errors = self._validate_entries(payload)
            if errors and mode == BulkMode.ATOMIC:
                issues = [
                    issue.model_copy(update={"field": f"[{error.index}].{issue.field}"})
                    for error in errors
                    for issue in error.issues
                ]
                indexes = ", ".join(str(error.index) for error in errors)
                raise ValidationError(f"Invalid bills in import at index {indexes}", issues)

            now = self._store.now()
            try:
                bills = [self._build(entry, now) for entry in entries]
            except PydanticValidationError as e:
                raise ValidationError("Invalid imported bill", issues_from_pydantic(e)) from e
            if bills:
                self._store.commit(added=bills)
        except BillTrackerError as e:
            if self._audit_logger:
                self._audit_logger.log_rejected(
                    "import_json", e, details={"mode": mode.value}, correlation_id=correlation_id
                )
            raise

        result = ImportResult(mode=mode, bills=bills, errors=errors)
        logger.info(
            "bills_imported",
            imported=result.imported,
            rejected=len(errors),
            mode=mode.value,
        )
        if self._audit_logger:
            self._audit_logger.log_bills_imported(
                result.imported, len(errors), mode.value, correlation_id
            )
        return result
