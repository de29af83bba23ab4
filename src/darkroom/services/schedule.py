"""Schedule interpretation and due-time checks.

A job's stored schedule is either a human phrase ("Every 4 hours at :01",
"Every Mon at 2:00 AM") or a five-field cron expression. Cron expressions are
first described as a phrase, then every phrase is reduced to a repeat interval
in minutes. Interpretation never fails: anything unrecognised repeats hourly.
"""

import re
from datetime import datetime, timedelta, timezone

DEFAULT_INTERVAL_MINUTES = 60

_MINUTES_PER_DAY = 24 * 60
_MINUTES_PER_WEEK = 7 * _MINUTES_PER_DAY

_WEEKDAYS = ("Sun", "Mon", "Tue", "Wed", "Thu", "Fri", "Sat")
_WEEKDAY_ALIASES = {
    "sun": 0, "mon": 1, "tue": 2, "wed": 3, "thu": 4, "fri": 5, "sat": 6,
}
_WEEKDAY_PATTERN = (
    r"(?:sun|mon|tue|wed|thu|fri|sat)[a-z]*"
    r"(?:\s*(?:,|and|-)\s*(?:sun|mon|tue|wed|thu|fri|sat)[a-z]*)*"
)

_CRON_FIELD = re.compile(r"^[\d*/,\-A-Za-z]+$")
_CRON_NUMERIC_FIELD = re.compile(r"^[\d*/,\-]+$")

_EVERY_N_MINUTES = re.compile(r"^every\s+(\d+)\s+min(?:ute)?s?\b")
_EVERY_N_HOURS = re.compile(r"^every\s+(\d+)\s+hours?\b")
_EVERY_HOUR = re.compile(r"^(?:every\s+hour|hourly)\b")
_EVERY_DAY = re.compile(r"^(?:every\s+day|daily)\b")
_EVERY_WEEK = re.compile(r"^(?:every\s+week|weekly)\b")
_EVERY_WEEKDAY = re.compile(rf"^every\s+{_WEEKDAY_PATTERN}\b")


def looks_like_cron(schedule: str | None) -> bool:
    """True for five whitespace-separated cron fields."""
    if not isinstance(schedule, str):
        return False
    fields = schedule.split()
    if len(fields) != 5 or not all(_CRON_FIELD.match(f) for f in fields):
        return False
    # Minute and hour are never names
    return all(_CRON_NUMERIC_FIELD.match(f) for f in fields[:2])


def _as_int(field: str) -> int | None:
    return int(field) if field.isdigit() else None


def _format_clock(hour: int, minute: int) -> str:
    suffix = "AM" if hour < 12 else "PM"
    display = hour % 12 or 12
    return f"{display}:{minute:02d} {suffix}"


def _weekday_index(token: str) -> int | None:
    token = token.strip().lower()
    if token.isdigit():
        return int(token) % 7
    return _WEEKDAY_ALIASES.get(token[:3])


def _describe_weekdays(field: str) -> str | None:
    """Cron weekday field ("1", "mon,wed", "1-5", "MON-FRI") as day names."""
    indexes: list[int] = []
    for part in field.split(","):
        start, sep, end = part.strip().partition("-")
        first = _weekday_index(start)
        last = _weekday_index(end) if sep else first
        if first is None or last is None:
            return None
        if start.isdigit() and end.isdigit() and int(end) >= int(start):
            span = int(end) - int(start)  # "0-7" covers the whole week
        else:
            span = (last - first) % 7  # named ranges may wrap ("fri-mon")
        for offset in range(span + 1):
            day = (first + offset) % 7
            if day not in indexes:
                indexes.append(day)
    if not indexes:
        return None
    return ", ".join(_WEEKDAYS[i] for i in indexes)


def describe_cron(expression: str | None) -> str | None:
    """Describe a five-field cron expression as a schedule phrase.

    Returns None when the expression is not one of the recognised shapes.
    """
    if not looks_like_cron(expression):
        return None
    minute, hour, day, month, weekday = expression.split()
    wild_calendar = day == "*" and month == "*"
    minute_value = _as_int(minute)
    hour_value = _as_int(hour)
    offset = f" at :{minute_value:02d}" if minute_value else ""

    if minute_value is not None and hour == "*" and wild_calendar and weekday == "*":
        return f"Every hour{offset}"

    step = re.fullmatch(r"\*/(\d+)", hour)
    if step and wild_calendar and weekday == "*":
        every = int(step.group(1))
        if every <= 1:
            return f"Every hour{offset}"
        return f"Every {every} hours{offset}"

    if minute_value is not None and hour_value is not None and wild_calendar and weekday == "*":
        return f"Every day at {hour_value:02d}:{minute_value:02d}"

    if weekday != "*" and wild_calendar:
        days = _describe_weekdays(weekday)
        if days is None:
            return None
        if minute_value is not None and hour_value is not None:
            return f"Every {days} at {_format_clock(hour_value, minute_value)}"
        return f"Every {days}"

    minute_step = re.fullmatch(r"\*/(\d+)", minute)
    if minute_step and hour == "*" and wild_calendar and weekday == "*":
        return f"Every {int(minute_step.group(1))} minutes"

    return None


def describe_schedule(schedule: str | None) -> str | None:
    """Phrase for display: cron expressions are described, phrases pass through."""
    if not isinstance(schedule, str) or not schedule.strip():
        return None
    if looks_like_cron(schedule):
        return describe_cron(schedule.strip())
    return schedule.strip()


def interval_minutes(schedule) -> int:
    """Repeat interval in minutes for a schedule phrase or cron expression."""
    if not isinstance(schedule, str):
        return DEFAULT_INTERVAL_MINUTES
    phrase = describe_schedule(schedule)
    if not phrase:
        return DEFAULT_INTERVAL_MINUTES
    text = phrase.strip().lower()

    match = _EVERY_N_MINUTES.match(text)
    if match and int(match.group(1)) > 0:
        return int(match.group(1))

    match = _EVERY_N_HOURS.match(text)
    if match and int(match.group(1)) > 0:
        return int(match.group(1)) * 60

    if _EVERY_HOUR.match(text):
        return 60

    if _EVERY_DAY.match(text):
        return _MINUTES_PER_DAY

    if _EVERY_WEEK.match(text):
        return _MINUTES_PER_WEEK

    match = _EVERY_WEEKDAY.match(text)
    if match:
        days = re.findall(r"(sun|mon|tue|wed|thu|fri|sat)", match.group(0))
        # Several weekdays repeat at the tightest spacing, approximated as daily
        return _MINUTES_PER_WEEK if len(set(days)) == 1 else _MINUTES_PER_DAY

    return DEFAULT_INTERVAL_MINUTES


def is_due(last_run: datetime | None, interval: int, now: datetime | None = None) -> bool:
    """A job is due when it never ran or at least ``interval`` minutes have elapsed.

    A falsy interval is never due.
    """
    if not interval:
        return False
    if last_run is None:
        return True
    now = now or datetime.now(timezone.utc)
    if last_run.tzinfo is None:
        last_run = last_run.replace(tzinfo=timezone.utc)
    return now - last_run >= timedelta(minutes=interval)
