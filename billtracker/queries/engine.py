"""
Query Engine

DESIGN DECISION: Queries are pure functions of the bill collection and
the current date. Nothing here writes to the store.

`today` is injectable on every date-sensitive query so results can be
reproduced in tests; it defaults to the store's clock.

GUARANTEES:
- Derived status is computed on every read, never stored
- Filtering, searching and sorting preserve the collection's relative order
  (sorting is stable)
"""

from datetime import date
from decimal import Decimal
from typing import Any, Iterable, Mapping, Optional, Union

from pydantic import ValidationError as PydanticValidationError

from billtracker.errors import ValidationError
from billtracker.models.bill import (
    Bill,
    BillFilter,
    BillGroup,
    BillStats,
    BillStatus,
    CalendarEntry,
    PaymentHistory,
    PaymentState,
    SortKey,
    SortOrder,
    ValidationIssue,
)
from billtracker.services.storage import BillStore
from billtracker.utils.dates import days_until_due, last_months, month_key
from billtracker.validation import issues_from_pydantic


# Unpaid bills due within this many days are "due soon"
DUE_SOON_DAYS = 7

_SORT_KEYS = {
    SortKey.DUE_DATE: lambda bill: bill.due_date,
    SortKey.AMOUNT: lambda bill: bill.amount,
    SortKey.NAME: lambda bill: bill.name.lower(),
    SortKey.CREATED_AT: lambda bill: bill.created_at,
}


def _invalid_argument(field: str, message: str) -> ValidationError:
    return ValidationError(message, [ValidationIssue(
        field=field,
        issue_type="invalid_value",
        message=message,
        severity="error",
    )])


class QueryEngine:
    """
    Read-only queries over the bill collection.

    Used by the UI for its lists and dashboards and by the chat
    assistant for its canned answers.
    """

    def __init__(self, store: BillStore):
        self._store = store

    def _today(self, today: Optional[date]) -> date:
        return today if today is not None else self._store.today()

    # -------------------------------------------------------------------------
    # Derived status
    # -------------------------------------------------------------------------

    def days_until_due(self, due_date: date, today: Optional[date] = None) -> int:
        """Calendar days until due; negative = past, 0 = today."""
        return days_until_due(due_date, self._today(today))

    def status(self, bill: Bill, today: Optional[date] = None) -> BillStatus:
        """
        Derive a bill's status.

        paid -> PAID; past due -> OVERDUE; due within 7 days -> DUE_SOON;
        otherwise UPCOMING.
        """
        if bill.paid:
            return BillStatus.PAID
        days = self.days_until_due(bill.due_date, today)
        if days < 0:
            return BillStatus.OVERDUE
        if days <= DUE_SOON_DAYS:
            return BillStatus.DUE_SOON
        return BillStatus.UPCOMING

    # -------------------------------------------------------------------------
    # Search / filter / sort
    # -------------------------------------------------------------------------

    def search(self, query: str) -> list[Bill]:
        """Case-insensitive substring match on name, category and notes."""
        needle = query.lower()
        return [
            bill for bill in self._store
            if needle in bill.name.lower()
            or needle in bill.category.lower()
            or needle in bill.notes.lower()
        ]

    def filter(
        self,
        criteria: Union[BillFilter, Mapping[str, Any], None] = None,
        today: Optional[date] = None,
    ) -> list[Bill]:
        """
        Bills matching every supplied criterion.

        Raises:
            ValidationError: If the criteria themselves are malformed
        """
        if criteria is None:
            criteria = BillFilter()
        elif not isinstance(criteria, BillFilter):
            try:
                criteria = BillFilter.model_validate(dict(criteria))
            except PydanticValidationError as e:
                raise ValidationError("Invalid filter criteria", issues_from_pydantic(e)) from e

        today = self._today(today)
        return [bill for bill in self._store if self._matches(bill, criteria, today)]

    def _matches(self, bill: Bill, criteria: BillFilter, today: date) -> bool:
        if criteria.status is not None and self.status(bill, today) != criteria.status:
            return False
        if criteria.category is not None and bill.category != criteria.category:
            return False
        if criteria.min_amount is not None and bill.amount < criteria.min_amount:
            return False
        if criteria.max_amount is not None and bill.amount > criteria.max_amount:
            return False
        if criteria.frequency is not None and bill.frequency != criteria.frequency:
            return False
        if criteria.autopay is not None and bill.autopay != criteria.autopay:
            return False
        if criteria.start_date is not None and bill.due_date < criteria.start_date:
            return False
        if criteria.end_date is not None and bill.due_date > criteria.end_date:
            return False
        return True

    def sort(
        self,
        bills: Optional[Iterable[Bill]] = None,
        key: Union[SortKey, str] = SortKey.DUE_DATE,
        order: Union[SortOrder, str] = SortOrder.ASC,
    ) -> list[Bill]:
        """
        Stable sort by dueDate, amount, name (case-insensitive) or createdAt.

        An unknown key returns the bills in their given order.

        Raises:
            ValidationError: If order is not 'asc' or 'desc'
        """
        bills = list(self._store if bills is None else bills)
        try:
            order = SortOrder(order)
        except ValueError:
            raise _invalid_argument("order", f"Sort order must be 'asc' or 'desc', got {order!r}") from None

        try:
            sort_key = _SORT_KEYS[SortKey(key)]
        except ValueError:
            return bills

        return sorted(bills, key=sort_key, reverse=order == SortOrder.DESC)

    # -------------------------------------------------------------------------
    # Aggregates
    # -------------------------------------------------------------------------

    def stats(self, today: Optional[date] = None) -> BillStats:
        """Counts, active-bill amounts and category/frequency groupings."""
        today = self._today(today)
        bills = self._store.all()
        active = [bill for bill in bills if not bill.paid]

        total = sum((bill.amount for bill in active), Decimal("0"))
        average = total / len(active) if active else Decimal("0")
        due_this_month = sum(
            (
                bill.amount for bill in active
                if (bill.due_date.year, bill.due_date.month) == (today.year, today.month)
            ),
            Decimal("0"),
        )
        days = [days_until_due(bill.due_date, today) for bill in active]

        return BillStats(
            total_bills=len(bills),
            active_bills=len(active),
            paid_bills=len(bills) - len(active),
            total_amount=total,
            average_amount=average,
            due_this_month=due_this_month,
            overdue=sum(1 for d in days if d < 0),
            due_soon=sum(1 for d in days if 0 <= d <= DUE_SOON_DAYS),
            by_category=self._group(bills, lambda bill: bill.category),
            by_frequency=self._group(bills, lambda bill: bill.frequency.value),
        )

    def _group(self, bills: list[Bill], key_func) -> dict[str, BillGroup]:
        """Group bills, keeping first-seen group order."""
        groups: dict[str, BillGroup] = {}
        for bill in bills:
            group = groups.setdefault(key_func(bill), BillGroup())
            group.count += 1
            group.total += bill.amount
            group.bills.append(bill)
        return groups

    def spending_trend(
        self,
        months: int = 12,
        today: Optional[date] = None,
    ) -> dict[str, Decimal]:
        """
        Total bill amount per due month for the last `months` months.

        Keys are YYYY-MM, oldest first, ending with the current month.
        Months without bills are 0.
        """
        if months < 1:
            raise _invalid_argument("months", f"months must be at least 1, got {months}")

        trend = {key: Decimal("0") for key in last_months(self._today(today), months)}
        for bill in self._store:
            bucket = month_key(bill.due_date)
            if bucket in trend:
                trend[bucket] += bill.amount
        return trend

    def calendar_data(
        self,
        month: int,
        year: int,
        today: Optional[date] = None,
    ) -> list[CalendarEntry]:
        """
        Bills due in a month (1 = January), each with its derived status.
        """
        if not 1 <= month <= 12:
            raise _invalid_argument("month", f"month must be between 1 and 12, got {month}")

        today = self._today(today)
        return [
            CalendarEntry(day=bill.due_date.day, bill=bill, status=self.status(bill, today))
            for bill in self._store
            if bill.due_date.year == year and bill.due_date.month == month
        ]

    # -------------------------------------------------------------------------
    # Lookups used by the chat assistant
    # -------------------------------------------------------------------------

    def payment_history(self, bill_id: int) -> Optional[PaymentHistory]:
        """Payment summary for one bill, None if the id is unknown."""
        bill = self._store.get(bill_id)
        if bill is None:
            return None
        return PaymentHistory(
            bill_id=bill.id,
            bill_name=bill.name,
            paid_on=bill.date_paid,
            amount=bill.amount_paid,
            payment_method=bill.payment_method,
            status=PaymentState.COMPLETED if bill.paid else PaymentState.PENDING,
        )

    def due_within(self, days: int, today: Optional[date] = None) -> list[Bill]:
        """Unpaid bills due between today and `days` days from now, soonest first."""
        today = self._today(today)
        matching = [
            bill for bill in self._store
            if not bill.paid and 0 <= days_until_due(bill.due_date, today) <= days
        ]
        return self.sort(matching, SortKey.DUE_DATE)

    def due_today(self, today: Optional[date] = None) -> list[Bill]:
        return self.due_within(0, today)

    def overdue(self, today: Optional[date] = None) -> list[Bill]:
        """Unpaid bills past their due date, most overdue first."""
        return self.sort(self.filter(BillFilter(status=BillStatus.OVERDUE), today), SortKey.DUE_DATE)

    def next_due(self, today: Optional[date] = None) -> Optional[Bill]:
        """The soonest unpaid bill that is not yet past due."""
        today = self._today(today)
        upcoming = [
            bill for bill in self._store
            if not bill.paid and bill.due_date >= today
        ]
        sorted_bills = self.sort(upcoming, SortKey.DUE_DATE)
        return sorted_bills[0] if sorted_bills else None

    def bills_for_month(
        self,
        month: int,
        year: int,
        include_paid: bool = False,
    ) -> list[Bill]:
        """Bills due in a month (1 = January), by due date."""
        if not 1 <= month <= 12:
            raise _invalid_argument("month", f"month must be between 1 and 12, got {month}")
        return self.sort(
            [
                bill for bill in self._store
                if bill.due_date.year == year
                and bill.due_date.month == month
                and (include_paid or not bill.paid)
            ],
            SortKey.DUE_DATE,
        )
