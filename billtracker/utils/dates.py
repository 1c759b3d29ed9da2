"""
Calendar-day arithmetic for due dates.

All day counting is done on local calendar days; there is no
time-of-day component in a due date.
"""

import calendar
from datetime import date, datetime, timedelta

from billtracker.models.bill import Frequency


def local_now() -> datetime:
    """Current local time, timezone-aware."""
    return datetime.now().astimezone()


def days_until_due(due_date: date, today: date) -> int:
    """
    Whole calendar days from today to the due date.

    Negative when the due date has passed, 0 when it is today.
    """
    return (due_date - today).days


def add_months(day: date, months: int) -> date:
    """
    Shift a date by whole calendar months.

    A day missing from the target month is clamped to its last day
    (Jan 31 + 1 month -> Feb 28 or 29).
    """
    month_index = day.month - 1 + months
    year = day.year + month_index // 12
    month = month_index % 12 + 1
    last_day = calendar.monthrange(year, month)[1]
    return date(year, month, min(day.day, last_day))


def shift_due_date(base: date, frequency: Frequency, periods: int) -> date:
    """
    Due date of the occurrence `periods` periods after `base`.

    Always computed from the base date so month clamping never drifts.
    """
    if frequency == Frequency.WEEKLY:
        return base + timedelta(days=7 * periods)
    if frequency == Frequency.BIWEEKLY:
        return base + timedelta(days=14 * periods)
    if frequency == Frequency.MONTHLY:
        return add_months(base, periods)
    if frequency == Frequency.QUARTERLY:
        return add_months(base, 3 * periods)
    if frequency == Frequency.YEARLY:
        return add_months(base, 12 * periods)
    raise ValueError(f"Frequency '{frequency.value}' does not recur")


def month_key(day: date) -> str:
    """YYYY-MM bucket for a date."""
    return day.strftime("%Y-%m")


def last_months(today: date, months: int) -> list[str]:
    """Month keys for the last `months` months, oldest first, ending with today's month."""
    this_month = today.replace(day=1)
    return [month_key(add_months(this_month, -offset)) for offset in range(months - 1, -1, -1)]
