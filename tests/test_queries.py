"""
Tests for the query engine.

The frozen clock puts "today" at 2024-06-15.
"""

import pytest
from datetime import date
from decimal import Decimal

from billtracker.errors import ValidationError
from billtracker.models.bill import BillFilter, BillStatus, PaymentState


class TestStatus:
    """Tests for derived status."""

    @pytest.mark.parametrize("due,expected", [
        ("2024-06-14", BillStatus.OVERDUE),
        ("2024-06-15", BillStatus.DUE_SOON),
        ("2024-06-22", BillStatus.DUE_SOON),
        ("2024-06-23", BillStatus.UPCOMING),
    ])
    def test_status_boundaries(self, manager, make_bill, due, expected):
        """Overdue before today; due soon through seven days out."""
        bill = make_bill(dueDate=due)
        assert manager.status(bill) == expected

    def test_paid_wins_over_overdue(self, manager, make_bill):
        """Paid bills are paid whatever their due date."""
        bill = make_bill(dueDate="2024-01-01")
        bill = manager.mark_paid(bill.id)
        assert manager.status(bill) == BillStatus.PAID

    def test_today_is_injectable(self, manager, make_bill):
        """Status can be evaluated against any day."""
        bill = make_bill(dueDate="2024-06-20")
        assert manager.status(bill, today=date(2024, 6, 1)) == BillStatus.UPCOMING
        assert manager.status(bill, today=date(2024, 6, 21)) == BillStatus.OVERDUE

    def test_days_until_due(self, manager):
        assert manager.days_until_due(date(2024, 6, 18)) == 3
        assert manager.days_until_due(date(2024, 6, 10)) == -5


class TestSearch:
    """Tests for free-text search."""

    def test_matches_name_category_and_notes(self, manager, make_bill):
        """Case-insensitive across the three text fields."""
        by_name = make_bill(name="Netflix", category="Subscriptions")
        by_category = make_bill(name="Spotify", category="Subscriptions")
        by_notes = make_bill(name="Bank", notes="Pays the NETFLIX card")
        make_bill(name="Water", category="Utilities")

        assert [b.id for b in manager.search("netflix")] == [by_name.id, by_notes.id]
        assert [b.id for b in manager.search("SUBSCRIPTIONS")] == [by_name.id, by_category.id]

    def test_empty_query_matches_everything(self, manager, make_bill):
        make_bill()
        make_bill(name="Water")
        assert len(manager.search("")) == 2


class TestFilter:
    """Tests for criteria filtering."""

    def test_no_criteria_returns_everything(self, manager, make_bill):
        make_bill()
        make_bill(name="Water")
        assert len(manager.filter()) == 2

    def test_overdue_filter(self, manager, make_bill):
        """Only unpaid bills past their due date."""
        overdue = make_bill(name="Late", dueDate="2024-06-10")
        paid_late = make_bill(name="Paid late", dueDate="2024-06-01")
        manager.mark_paid(paid_late.id)
        make_bill(name="Future", dueDate="2024-07-10")

        result = manager.filter({"status": "overdue"})
        assert [b.id for b in result] == [overdue.id]

    def test_criteria_are_anded(self, manager, make_bill):
        """Every supplied criterion must match."""
        match = make_bill(name="Phone", amount="40", category="Utilities", autopay=True)
        make_bill(name="Gas", amount="40", category="Utilities", autopay=False)
        make_bill(name="Gym", amount="40", category="Entertainment", autopay=True)

        result = manager.filter(BillFilter(category="Utilities", autopay=True))
        assert [b.id for b in result] == [match.id]

    def test_amount_and_date_bounds_are_inclusive(self, manager, make_bill):
        low = make_bill(amount="10", dueDate="2024-06-01")
        high = make_bill(amount="20", dueDate="2024-06-30")
        make_bill(amount="30", dueDate="2024-07-01")

        by_amount = manager.filter({"minAmount": 10, "maxAmount": 20})
        by_date = manager.filter({"startDate": "2024-06-01", "endDate": "2024-06-30"})
        assert [b.id for b in by_amount] == [low.id, high.id]
        assert [b.id for b in by_date] == [low.id, high.id]

    def test_frequency_filter(self, manager, make_bill):
        monthly = make_bill(frequency="monthly")
        make_bill(frequency="yearly")
        assert [b.id for b in manager.filter({"frequency": "monthly"})] == [monthly.id]

    def test_malformed_criteria_raise(self, manager):
        """Bad criteria are a ValidationError, not an empty result."""
        with pytest.raises(ValidationError):
            manager.filter({"status": "late"})
        with pytest.raises(ValidationError):
            manager.filter({"colour": "red"})


class TestSort:
    """Tests for sorting."""

    def test_sort_by_due_date(self, manager, make_bill):
        b1 = make_bill(dueDate="2024-06-30")
        b2 = make_bill(dueDate="2024-06-16")
        b3 = make_bill(dueDate="2024-06-20")
        assert [b.id for b in manager.sort()] == [b2.id, b3.id, b1.id]

    def test_sort_by_name_is_case_insensitive(self, manager, make_bill):
        b1 = make_bill(name="water")
        b2 = make_bill(name="Electricity")
        b3 = make_bill(name="gas")
        assert [b.id for b in manager.sort(key="name")] == [b2.id, b3.id, b1.id]

    def test_sort_desc_is_stable(self, manager, make_bill):
        """Ties keep their original relative order in both directions."""
        a = make_bill(name="A", amount="50")
        b = make_bill(name="B", amount="100")
        c = make_bill(name="C", amount="50")

        assert [x.id for x in manager.sort(key="amount", order="desc")] == [b.id, a.id, c.id]
        assert [x.id for x in manager.sort(key="amount", order="asc")] == [a.id, c.id, b.id]

    def test_sort_by_created_at(self, manager, make_bill, clock):
        first = make_bill()
        clock.advance(minutes=5)
        second = make_bill()
        assert [b.id for b in manager.sort(key="createdAt", order="desc")] == [second.id, first.id]

    def test_unknown_key_keeps_order(self, manager, make_bill):
        b1 = make_bill(dueDate="2024-06-30")
        b2 = make_bill(dueDate="2024-06-16")
        assert [b.id for b in manager.sort(key="colour")] == [b1.id, b2.id]

    def test_invalid_order_raises(self, manager):
        with pytest.raises(ValidationError):
            manager.sort(order="sideways")

    def test_sorts_a_given_list(self, manager, make_bill):
        """Sorting a subset leaves the rest out."""
        make_bill(dueDate="2024-06-16")
        b2 = make_bill(dueDate="2024-06-30")
        b3 = make_bill(dueDate="2024-06-20")
        assert [b.id for b in manager.sort([b2, b3])] == [b3.id, b2.id]


class TestStats:
    """Tests for aggregate statistics."""

    def test_empty_collection(self, manager):
        stats = manager.stats()
        assert stats.total_bills == 0
        assert stats.total_amount == Decimal("0")
        assert stats.average_amount == Decimal("0")

    def test_amounts_cover_unpaid_bills_only(self, manager, make_bill):
        """Paid bills count toward totals of bills, not of money."""
        make_bill(amount="100", dueDate="2024-06-10", category="Utilities")
        make_bill(amount="50", dueDate="2024-06-18", category="Utilities")
        make_bill(amount="25.50", dueDate="2024-07-05", frequency="monthly")
        paid = make_bill(amount="999", dueDate="2024-06-20")
        manager.mark_paid(paid.id)

        stats = manager.stats()
        assert stats.total_bills == 4
        assert stats.active_bills == 3
        assert stats.paid_bills == 1
        assert stats.total_amount == Decimal("175.50")
        assert stats.average_amount == Decimal("58.50")
        assert stats.due_this_month == Decimal("150")
        assert stats.overdue == 1
        assert stats.due_soon == 1

    def test_groupings_include_every_bill(self, manager, make_bill):
        make_bill(amount="100", category="Utilities")
        make_bill(amount="50", category="Utilities", frequency="monthly")
        make_bill(amount="10", category="Medical")

        stats = manager.stats()
        assert list(stats.by_category) == ["Utilities", "Medical"]
        assert stats.by_category["Utilities"].count == 2
        assert stats.by_category["Utilities"].total == Decimal("150")
        assert stats.by_frequency["one-time"].count == 2
        assert stats.by_frequency["monthly"].count == 1

    def test_average_is_exact(self, manager, make_bill):
        """The average is not rounded to cents."""
        make_bill(amount="10")
        make_bill(amount="10")
        make_bill(amount="10.01")
        stats = manager.stats()
        assert stats.average_amount == stats.total_amount / 3
        assert stats.average_amount > Decimal("10.00")


class TestSpendingTrend:
    """Tests for the monthly spending trend."""

    def test_buckets_by_due_month(self, manager, make_bill):
        make_bill(amount="100", dueDate="2024-06-01")
        make_bill(amount="40", dueDate="2024-06-28")
        make_bill(amount="60", dueDate="2024-04-15")
        make_bill(amount="500", dueDate="2023-01-15")

        trend = manager.spending_trend(3)
        assert list(trend) == ["2024-04", "2024-05", "2024-06"]
        assert trend["2024-06"] == Decimal("140")
        assert trend["2024-05"] == Decimal("0")
        assert trend["2024-04"] == Decimal("60")

    def test_defaults_to_twelve_months(self, manager):
        trend = manager.spending_trend()
        assert len(trend) == 12
        assert list(trend)[0] == "2023-07"

    def test_months_must_be_positive(self, manager):
        with pytest.raises(ValidationError):
            manager.spending_trend(0)


class TestCalendarData:
    """Tests for the month calendar."""

    def test_entries_for_month(self, manager, make_bill):
        early = make_bill(dueDate="2024-06-03")
        late = make_bill(dueDate="2024-06-28")
        make_bill(dueDate="2024-07-03")

        entries = manager.calendar_data(6, 2024)
        assert [(e.day, e.bill.id) for e in entries] == [(3, early.id), (28, late.id)]
        assert entries[0].status == BillStatus.OVERDUE
        assert entries[1].status == BillStatus.UPCOMING

    def test_month_is_one_based(self, manager, make_bill):
        make_bill(dueDate="2024-01-31")
        assert len(manager.calendar_data(1, 2024)) == 1
        with pytest.raises(ValidationError):
            manager.calendar_data(0, 2024)
        with pytest.raises(ValidationError):
            manager.calendar_data(13, 2024)


class TestAssistantLookups:
    """Tests for the lookups behind the chat assistant's answers."""

    def test_due_within(self, manager, make_bill):
        """Unpaid bills due from today through N days out, soonest first."""
        later = make_bill(dueDate="2024-06-20")
        today = make_bill(dueDate="2024-06-15")
        make_bill(dueDate="2024-06-14")
        make_bill(dueDate="2024-06-30")
        paid = make_bill(dueDate="2024-06-16")
        manager.mark_paid(paid.id)

        assert [b.id for b in manager.due_within(7)] == [today.id, later.id]
        assert [b.id for b in manager.due_today()] == [today.id]

    def test_overdue_most_overdue_first(self, manager, make_bill):
        recent = make_bill(dueDate="2024-06-14")
        oldest = make_bill(dueDate="2024-05-01")
        assert [b.id for b in manager.overdue()] == [oldest.id, recent.id]

    def test_next_due(self, manager, make_bill):
        make_bill(dueDate="2024-06-10")
        soonest = make_bill(dueDate="2024-06-18")
        make_bill(dueDate="2024-06-25")
        assert manager.next_due().id == soonest.id

    def test_next_due_none_when_nothing_pending(self, manager, make_bill):
        make_bill(dueDate="2024-06-10")
        assert manager.next_due() is None

    def test_bills_for_month(self, manager, make_bill):
        b1 = make_bill(dueDate="2024-08-20")
        b2 = make_bill(dueDate="2024-08-02")
        paid = make_bill(dueDate="2024-08-10")
        manager.mark_paid(paid.id)

        assert [b.id for b in manager.bills_for_month(8, 2024)] == [b2.id, b1.id]
        assert len(manager.bills_for_month(8, 2024, include_paid=True)) == 3

    def test_payment_history(self, manager, make_bill, clock):
        bill = make_bill(paymentMethod="Visa")
        pending = manager.payment_history(bill.id)
        assert pending.status == PaymentState.PENDING
        assert pending.paid_on is None

        manager.mark_paid(bill.id, amount_paid="100")
        history = manager.payment_history(bill.id)
        assert history.status == PaymentState.COMPLETED
        assert history.amount == Decimal("100")
        assert history.paid_on == clock()
        assert history.payment_method == "Visa"

    def test_payment_history_unknown_bill(self, manager):
        assert manager.payment_history(42) is None
