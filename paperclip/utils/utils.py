import calendar
from datetime import date, datetime, time
from typing import Optional

END_OF_DAY = time(23, 59, 59)


def get_date(date_str):
    """Parse a strict YYYY-MM-DD string. Returns a date or None if invalid."""
    if not date_str:
        return None
    try:
        return datetime.strptime(date_str, "%Y-%m-%d").date()
    except ValueError:
        return None


def end_of_day(day: date) -> datetime:
    """Return the given calendar day at 23:59:59 local time"""
    return datetime.combine(day, END_OF_DAY)


def add_months(moment: datetime, months: int) -> Optional[datetime]:
    """Move a timestamp by whole months keeping the day of month.

    Returns None when that day does not exist in the target month.
    """
    month_index = moment.month - 1 + months
    year = moment.year + month_index // 12
    month = month_index % 12 + 1
    if moment.day > calendar.monthrange(year, month)[1]:
        return None
    return moment.replace(year=year, month=month)


def add_years(moment: datetime, years: int) -> Optional[datetime]:
    """Move a timestamp by whole years; None for Feb 29 into a non-leap year"""
    try:
        return moment.replace(year=moment.year + years)
    except ValueError:
        return None


def format_duration(total_seconds: int) -> str:
    hours = total_seconds // 3600
    minutes = (total_seconds % 3600) // 60
    if hours > 0:
        return f"{hours}h {minutes}m"
    return f"{minutes}m"


def parse_timestamp(value):
    """Parse an ISO timestamp written by to_dict(); None passes through"""
    if value is None:
        return None
    return datetime.fromisoformat(value)


def format_timestamp(value):
    if value is None:
        return None
    return value.isoformat()
