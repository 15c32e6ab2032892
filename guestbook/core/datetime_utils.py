from __future__ import annotations

import re
from datetime import date, datetime, time, timedelta, timezone

from guestbook.core.exceptions import ErrorKind, ServiceError

DATE_FORMAT = "%Y-%m-%d"
TIME_FORMAT = "%H:%M"

_DATE_PATTERN = re.compile(r"\d{4}-\d{2}-\d{2}", re.ASCII)
_TIME_PATTERN = re.compile(r"([01]\d|2[0-3]):[0-5]\d", re.ASCII)

INDONESIAN_MONTHS = (
    "Januari",
    "Februari",
    "Maret",
    "April",
    "Mei",
    "Juni",
    "Juli",
    "Agustus",
    "September",
    "Oktober",
    "November",
    "Desember",
)


def parse_date_string(value: str) -> date:
    """Parse a strict YYYY-MM-DD string into a date."""
    if value is None or not _DATE_PATTERN.fullmatch(value):
        raise ServiceError(ErrorKind.INVALID_INPUT, "Date must be in YYYY-MM-DD format.")
    try:
        return datetime.strptime(value, DATE_FORMAT).date()
    except ValueError as exc:
        raise ServiceError(ErrorKind.INVALID_INPUT, "Date must be a valid calendar date.") from exc


def parse_time_string(value: str) -> time:
    """Parse a strict 24-hour HH:MM string into a time."""
    if value is None or not _TIME_PATTERN.fullmatch(value):
        raise ServiceError(ErrorKind.INVALID_INPUT, "Time must be in HH:MM format.")
    try:
        return datetime.strptime(value, TIME_FORMAT).time()
    except ValueError as exc:
        raise ServiceError(ErrorKind.INVALID_INPUT, "Time must be in HH:MM format.") from exc


def format_date(value: date) -> str:
    return value.strftime(DATE_FORMAT)


def format_time(value: time) -> str:
    return value.strftime(TIME_FORMAT)


def format_long_datetime(day: date, moment: time) -> str:
    """Render a schedule the way staff messages show it, e.g. ``02 Juni 2025 14:00``."""
    month = INDONESIAN_MONTHS[day.month - 1]
    return f"{day.day:02d} {month} {day.year} {format_time(moment)}"


def combine(day: date, moment: time) -> datetime:
    return datetime.combine(day, moment.replace(second=0, microsecond=0))


def day_bounds(day: date) -> tuple[datetime, datetime]:
    """Half-open [start, end) timestamp range covering one calendar day."""
    start = datetime.combine(day, time.min)
    return start, start + timedelta(days=1)


def now_local() -> datetime:
    """Current local time.

    Note: Wrapped so tests can patch it.
    """
    return datetime.now()


def now_utc() -> datetime:
    return datetime.now(timezone.utc)


def today() -> date:
    return now_local().date()
