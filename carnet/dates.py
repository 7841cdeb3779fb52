"""Calendar helpers shared by the period calculator and the session generator."""
from __future__ import annotations

from datetime import date, datetime, time, timedelta, timezone


DATE_FORMAT = "%Y-%m-%d"

WEEKDAY_NAMES_FR: tuple[str, ...] = (
    "lundi",
    "mardi",
    "mercredi",
    "jeudi",
    "vendredi",
    "samedi",
    "dimanche",
)

MONTH_NAMES_FR: tuple[str, ...] = (
    "janvier",
    "février",
    "mars",
    "avril",
    "mai",
    "juin",
    "juillet",
    "août",
    "septembre",
    "octobre",
    "novembre",
    "décembre",
)


def as_date(value: date | datetime) -> date:
    if isinstance(value, datetime):
        return value.date()
    return value


def days_between(start: date | datetime, end: date | datetime) -> int:
    """Whole days from ``start`` to ``end`` (end excluded)."""
    return (as_date(end) - as_date(start)).days


def get_week_start(day: date | datetime) -> date:
    """Return the Monday of the week containing ``day``."""
    day = as_date(day)
    return day - timedelta(days=day.weekday())


def is_date_in_week(day: date | datetime, week_start: date | datetime) -> bool:
    week_start = as_date(week_start)
    week_end = week_start + timedelta(days=6)
    return week_start <= as_date(day) <= week_end


def calculate_session_date(week_start: date | datetime, day_of_week: int) -> date:
    """Project a 1-based day of week (1=Monday, 7=Sunday) onto ``week_start``."""
    return as_date(week_start) + timedelta(days=day_of_week - 1)


def generate_exception_key(template_id: object, day: date | datetime) -> str:
    return f"{template_id}-{as_date(day).isoformat()}"


def combine_date_and_time(day: date | datetime, time_label: str) -> datetime:
    hours, minutes = (int(part) for part in time_label.split(":", 1))
    return datetime.combine(as_date(day), time(hours, minutes))


def is_same_day(first: date | datetime, second: date | datetime) -> bool:
    return as_date(first) == as_date(second)


def is_today(day: date | datetime) -> bool:
    return is_same_day(day, date.today())


def format_date_fr(day: date | datetime, *, with_year: bool = False) -> str:
    """Format a date the way the calendar headers show it ("lundi 2 septembre")."""
    day = as_date(day)
    label = f"{WEEKDAY_NAMES_FR[day.weekday()]} {day.day} {MONTH_NAMES_FR[day.month - 1]}"
    if with_year:
        label = f"{label} {day.year}"
    return label


def format_date_to_iso(day: date | datetime) -> str:
    return as_date(day).strftime(DATE_FORMAT)


def parse_date_from_iso(value: str | date | datetime) -> date:
    """Parse ``YYYY-MM-DD`` or a full ISO-8601 timestamp into a date.

    Dates and datetimes are passed through (datetimes are truncated). A
    ``ValueError`` is raised for anything else.
    """

    if isinstance(value, (date, datetime)):
        return as_date(value)
    value = value.strip()
    try:
        return datetime.strptime(value, DATE_FORMAT).date()
    except ValueError:
        pass
    if value.endswith("Z"):
        value = f"{value[:-1]}+00:00"
    return datetime.fromisoformat(value).date()


def utcnow() -> datetime:
    """Naive UTC timestamp, as stored in the ``DateTime`` columns."""
    return datetime.now(timezone.utc).replace(tzinfo=None)
