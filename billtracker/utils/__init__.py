"""Shared helpers."""

from billtracker.utils.dates import (
    add_months,
    days_until_due,
    last_months,
    local_now,
    month_key,
    shift_due_date,
)

__all__ = [
    "add_months",
    "days_until_due",
    "last_months",
    "local_now",
    "month_key",
    "shift_due_date",
]
