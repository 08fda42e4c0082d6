"""Date manipulation utilities"""

import calendar
from datetime import date


def subtract_months(from_date: date, months: int) -> date:
    """Same day `months` earlier, clamped to the end of shorter months"""
    month_index = from_date.year * 12 + (from_date.month - 1) - months
    year, month = divmod(month_index, 12)
    month += 1
    day = min(from_date.day, calendar.monthrange(year, month)[1])
    return date(year, month, day)


def imagery_time_range(months: int, today: date | None = None) -> tuple[str, str]:
    """ISO timestamps covering the last `months` months, whole days inclusive"""
    today = today or date.today()
    start = subtract_months(today, months)
    return f"{start.isoformat()}T00:00:00Z", f"{today.isoformat()}T23:59:59Z"
