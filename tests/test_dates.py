"""Tests for calendar-day arithmetic."""

import pytest
from datetime import date

from billtracker.models.bill import Frequency
from billtracker.utils.dates import (
    add_months,
    days_until_due,
    last_months,
    month_key,
    shift_due_date,
)


class TestDaysUntilDue:
    """Tests for days_until_due."""

    def test_future_today_and_past(self):
        """Positive ahead, zero today, negative once passed."""
        today = date(2024, 6, 15)
        assert days_until_due(date(2024, 6, 22), today) == 7
        assert days_until_due(today, today) == 0
        assert days_until_due(date(2024, 6, 14), today) == -1

    def test_crosses_year_boundary(self):
        """Counts whole calendar days across years."""
        assert days_until_due(date(2025, 1, 1), date(2024, 12, 31)) == 1


class TestAddMonths:
    """Tests for month arithmetic."""

    def test_clamps_to_end_of_month(self):
        """Jan 31 + 1 month lands on the last day of February."""
        assert add_months(date(2024, 1, 31), 1) == date(2024, 2, 29)
        assert add_months(date(2023, 1, 31), 1) == date(2023, 2, 28)

    def test_rolls_over_year(self):
        """Months past December move into the next year."""
        assert add_months(date(2024, 11, 15), 3) == date(2025, 2, 15)

    def test_negative_months(self):
        """Negative offsets move backwards."""
        assert add_months(date(2024, 3, 31), -1) == date(2024, 2, 29)
        assert add_months(date(2024, 1, 10), -1) == date(2023, 12, 10)


class TestShiftDueDate:
    """Tests for recurring due dates."""

    @pytest.mark.parametrize("frequency,expected", [
        (Frequency.WEEKLY, date(2024, 1, 29)),
        (Frequency.BIWEEKLY, date(2024, 2, 12)),
        (Frequency.MONTHLY, date(2024, 3, 15)),
        (Frequency.QUARTERLY, date(2024, 7, 15)),
        (Frequency.YEARLY, date(2026, 1, 15)),
    ])
    def test_two_periods_ahead(self, frequency, expected):
        """Offsets scale with the number of periods."""
        assert shift_due_date(date(2024, 1, 15), frequency, 2) == expected

    def test_month_end_does_not_drift(self):
        """Each occurrence is computed from the base date."""
        base = date(2024, 1, 31)
        dates = [shift_due_date(base, Frequency.MONTHLY, i) for i in range(1, 4)]
        assert dates == [date(2024, 2, 29), date(2024, 3, 31), date(2024, 4, 30)]

    def test_one_time_does_not_recur(self):
        """One-time bills have no next occurrence."""
        with pytest.raises(ValueError):
            shift_due_date(date(2024, 1, 15), Frequency.ONE_TIME, 1)


class TestMonthKeys:
    """Tests for month bucketing."""

    def test_month_key(self):
        assert month_key(date(2024, 3, 9)) == "2024-03"

    def test_last_months_oldest_first(self):
        """Ends with the current month."""
        assert last_months(date(2024, 2, 29), 3) == ["2023-12", "2024-01", "2024-02"]
