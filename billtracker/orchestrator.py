"""
Main Orchestrator for Bill Tracker

Ties the components together behind one facade:

    caller -> BillManager -> QueryEngine / MutationAPI / BillCodec
                                       |
                                   BillStore -> KeyValueStorage

DESIGN DECISION: The manager owns no logic of its own. It wires the
components to a shared store, validator and audit logger, and gives
callers (UI, chat assistant) a single object to hold.
"""

from datetime import date, datetime
from decimal import Decimal
from typing import Any, Callable, Iterable, Mapping, Optional, Union

from billtracker.audit import AuditLogger, configure_logging
from billtracker.codec import BillCodec
from billtracker.config import Settings, get_settings
from billtracker.errors import BillTrackerError
from billtracker.models.bill import (
    Bill,
    BillDraft,
    BillFilter,
    BillStats,
    BillStatus,
    BillUpdate,
    BulkMode,
    BulkResult,
    CalendarEntry,
    ImportResult,
    PaymentHistory,
    SortKey,
    SortOrder,
)
from billtracker.mutations import MutationAPI
from billtracker.queries import QueryEngine
from billtracker.services.storage import (
    BillStore,
    InMemoryStorage,
    JsonFileStorage,
    KeyValueAuditStorage,
    KeyValueStorage,
)
from billtracker.validation import BillValidator


class BillManager:
    """
    Facade over the bill data-management engine.

    Reads go to the query engine, writes to the mutation API, and
    import/export to the codec. All three share one store.
    """

    def __init__(
        self,
        store: BillStore,
        validator: Optional[BillValidator] = None,
        audit_logger: Optional[AuditLogger] = None,
        bulk_mode: BulkMode = BulkMode.ATOMIC,
        import_mode: BulkMode = BulkMode.ATOMIC,
        default_recurring_count: int = 12,
    ):
        self._store = store
        self._audit_logger = audit_logger
        validator = validator or BillValidator()

        self.queries = QueryEngine(store)
        self.mutations = MutationAPI(
            store,
            validator=validator,
            audit_logger=audit_logger,
            bulk_mode=bulk_mode,
            default_recurring_count=default_recurring_count,
        )
        self.codec = BillCodec(
            store,
            self.queries,
            validator=validator,
            audit_logger=audit_logger,
            import_mode=import_mode,
        )

    @property
    def store(self) -> BillStore:
        return self._store

    # -------------------------------------------------------------------------
    # Store
    # -------------------------------------------------------------------------

    def load(self) -> list[Bill]:
        """
        (Re)load the collection from storage.

        Raises:
            FormatError: If the stored collection is corrupt
        """
        try:
            bills = self._store.load()
        except BillTrackerError as e:
            if self._audit_logger:
                self._audit_logger.log_rejected("load", e)
            raise
        if self._audit_logger:
            self._audit_logger.log_bills_loaded(len(bills), self._store.last_id + 1)
        return bills

    def save(self) -> None:
        self._store.save()

    def get(self, bill_id: int) -> Optional[Bill]:
        return self._store.get(bill_id)

    def all(self) -> list[Bill]:
        return self._store.all()

    # -------------------------------------------------------------------------
    # Queries
    # -------------------------------------------------------------------------

    def status(self, bill: Bill, today: Optional[date] = None) -> BillStatus:
        return self.queries.status(bill, today)

    def days_until_due(self, due_date: date, today: Optional[date] = None) -> int:
        return self.queries.days_until_due(due_date, today)

    def search(self, query: str) -> list[Bill]:
        return self.queries.search(query)

    def filter(
        self,
        criteria: Union[BillFilter, Mapping[str, Any], None] = None,
        today: Optional[date] = None,
    ) -> list[Bill]:
        return self.queries.filter(criteria, today)

    def sort(
        self,
        bills: Optional[Iterable[Bill]] = None,
        key: Union[SortKey, str] = SortKey.DUE_DATE,
        order: Union[SortOrder, str] = SortOrder.ASC,
    ) -> list[Bill]:
        return self.queries.sort(bills, key, order)

    def stats(self, today: Optional[date] = None) -> BillStats:
        return self.queries.stats(today)

    def spending_trend(self, months: int = 12, today: Optional[date] = None) -> dict[str, Decimal]:
        return self.queries.spending_trend(months, today)

    def calendar_data(self, month: int, year: int, today: Optional[date] = None) -> list[CalendarEntry]:
        return self.queries.calendar_data(month, year, today)

    def payment_history(self, bill_id: int) -> Optional[PaymentHistory]:
        return self.queries.payment_history(bill_id)

    def due_within(self, days: int, today: Optional[date] = None) -> list[Bill]:
        return self.queries.due_within(days, today)

    def due_today(self, today: Optional[date] = None) -> list[Bill]:
        return self.queries.due_today(today)

    def overdue(self, today: Optional[date] = None) -> list[Bill]:
        return self.queries.overdue(today)

    def next_due(self, today: Optional[date] = None) -> Optional[Bill]:
        return self.queries.next_due(today)

    def bills_for_month(self, month: int, year: int, include_paid: bool = False) -> list[Bill]:
        return self.queries.bills_for_month(month, year, include_paid)

    # -------------------------------------------------------------------------
    # Mutations
    # -------------------------------------------------------------------------

    def create(self, data: Union[Mapping[str, Any], BillDraft]) -> Bill:
        return self.mutations.create(data)

    def update(self, bill_id: int, updates: Union[Mapping[str, Any], BillUpdate]) -> Bill:
        return self.mutations.update(bill_id, updates)

    def delete(self, bill_id: int) -> Bill:
        return self.mutations.delete(bill_id)

    def mark_paid(
        self,
        bill_id: int,
        amount_paid: Any = None,
        date_paid: Union[datetime, date, str, None] = None,
    ) -> Bill:
        return self.mutations.mark_paid(bill_id, amount_paid, date_paid)

    def mark_unpaid(self, bill_id: int) -> Bill:
        return self.mutations.mark_unpaid(bill_id)

    def generate_recurring(self, bill_id: int, count: Optional[int] = None) -> list[Bill]:
        return self.mutations.generate_recurring(bill_id, count)

    def bulk_update(
        self,
        bill_ids: Iterable[int],
        updates: Union[Mapping[str, Any], BillUpdate],
        mode: Union[BulkMode, str, None] = None,
    ) -> BulkResult:
        return self.mutations.bulk_update(bill_ids, updates, mode)

    def bulk_delete(self, bill_ids: Iterable[int], mode: Union[BulkMode, str, None] = None) -> BulkResult:
        return self.mutations.bulk_delete(bill_ids, mode)

    def bulk_mark_paid(self, bill_ids: Iterable[int], mode: Union[BulkMode, str, None] = None) -> BulkResult:
        return self.mutations.bulk_mark_paid(bill_ids, mode)

    def bulk_mark_unpaid(self, bill_ids: Iterable[int], mode: Union[BulkMode, str, None] = None) -> BulkResult:
        return self.mutations.bulk_mark_unpaid(bill_ids, mode)

    # -------------------------------------------------------------------------
    # Import / export
    # -------------------------------------------------------------------------

    def export_json(self) -> str:
        return self.codec.export_json()

    def export_csv(self) -> str:
        return self.codec.export_csv()

    def import_json(self, text: Union[str, bytes], mode: Union[BulkMode, str, None] = None) -> ImportResult:
        return self.codec.import_json(text, mode)


def create_bill_manager(
    settings: Optional[Settings] = None,
    storage: Optional[KeyValueStorage] = None,
    clock: Optional[Callable[[], datetime]] = None,
) -> BillManager:
    """
    Factory function to create a loaded BillManager.

    Args:
        settings: Defaults to get_settings()
        storage: Backend to use instead of the configured one.
                Pass an InMemoryStorage for testing.
        clock: Current-time source, for testing

    Returns:
        A BillManager with the persisted collection loaded
    """
    settings = settings or get_settings()
    app = settings.app
    storage_settings = settings.storage

    configure_logging(app.effective_log_level, app.json_logs)

    if storage is None:
        if storage_settings.backend == "memory":
            storage = InMemoryStorage()
        else:
            storage = JsonFileStorage(storage_settings.data_path)

    if app.persist_audit:
        audit_logger = AuditLogger(KeyValueAuditStorage(
            storage,
            key=storage_settings.audit_key,
            max_events=app.audit_max_events,
        ))
    else:
        audit_logger = AuditLogger()  # Local-only logging

    manager = BillManager(
        BillStore(storage, key=storage_settings.bills_key, clock=clock),
        validator=BillValidator(max_bill_amount=app.max_bill_amount),
        audit_logger=audit_logger,
        bulk_mode=app.bulk_mode,
        import_mode=app.import_mode,
        default_recurring_count=app.default_recurring_count,
    )
    manager.load()
    return manager
