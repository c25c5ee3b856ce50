"""Recurring transaction period arithmetic."""

import calendar
from datetime import datetime, timedelta

from fintrack.ledger.models import Recurrence


def _add_months(start: datetime, months: int) -> datetime:
    month_index = start.month - 1 + months
    year = start.year + month_index // 12
    month = month_index % 12 + 1
    day = min(start.day, calendar.monthrange(year, month)[1])
    return start.replace(year=year, month=month, day=day)


def calculate_end_date(recurrence: Recurrence | str | None, start: datetime) -> datetime | None:
    """
    End of the current period for a recurring transaction.

    Monthly and yearly steps clamp to the last day of a shorter month
    (Jan 31 → Feb 28, Feb 29 → Feb 28).
    """
    if recurrence is None:
        return None
    try:
        recurrence = Recurrence(recurrence)
    except ValueError:
        return None

    if recurrence is Recurrence.DAILY:
        return start + timedelta(days=1)
    if recurrence is Recurrence.WEEKLY:
        return start + timedelta(days=7)
    if recurrence is Recurrence.MONTHLY:
        return _add_months(start, 1)
    return _add_months(start, 12)
