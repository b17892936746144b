"""Cron expression evaluator — advisory "next run" projection.

Supports the subset of 5-field crontab syntax the automation catalogue uses:

    minute        ``*``, ``N`` or ``*/N``
    hour          ``*`` or ``N``
    day-of-month  ``*`` or ``N``
    month         ``*`` or ``N``
    day-of-week   ``*`` or ``N`` (0 and 7 are Sunday)

Anything else (ranges, lists, steps outside the minute field) is treated as
malformed and yields ``None``.

The projection is best-effort. Step and every-minute forms ignore the hour and
day fields, and a schedule constraining both day-of-month and day-of-week is
resolved by the day-of-week alone instead of cron's "either matches" rule.
The value is shown to operators as ``next_run_at`` only; the live APScheduler
trigger decides when a job really fires.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime, timedelta

from apscheduler.triggers.cron import CronTrigger

_RANGES = {
    "minute": (0, 59),
    "hour": (0, 23),
    "day": (1, 31),
    "month": (1, 12),
    "day_of_week": (0, 7),
}


@dataclass(frozen=True)
class CronFields:
    """Parsed expression. ``None`` means the field is ``*``."""

    minute: int | None = None
    minute_step: int | None = None
    hour: int | None = None
    day: int | None = None
    month: int | None = None
    day_of_week: int | None = None  # cron numbering, Sunday = 0

    @property
    def python_weekday(self) -> int | None:
        """Day-of-week in ``datetime.weekday()`` numbering (Monday = 0)."""
        if self.day_of_week is None:
            return None
        return (self.day_of_week - 1) % 7


def _parse_value(token: str, field: str) -> int:
    low, high = _RANGES[field]
    if not token.isdigit():
        raise ValueError(f"unsupported {field} token {token!r}")
    value = int(token)
    if not low <= value <= high:
        raise ValueError(f"{field} {value} out of range {low}-{high}")
    return value


def parse_cron(expression: str) -> CronFields | None:
    """Parse an expression into CronFields, or ``None`` if it is malformed."""
    if not isinstance(expression, str):
        return None
    parts = expression.split()
    if len(parts) != 5:
        return None

    minute_tok, hour_tok, day_tok, month_tok, dow_tok = parts
    try:
        minute = minute_step = None
        if minute_tok.startswith("*/"):
            minute_step = _parse_value(minute_tok[2:], "minute")
            if minute_step == 0:
                return None
        elif minute_tok != "*":
            minute = _parse_value(minute_tok, "minute")

        values = {}
        for token, field in (
            (hour_tok, "hour"),
            (day_tok, "day"),
            (month_tok, "month"),
            (dow_tok, "day_of_week"),
        ):
            values[field] = None if token == "*" else _parse_value(token, field)
    except ValueError:
        return None

    dow = values["day_of_week"]
    return CronFields(
        minute=minute,
        minute_step=minute_step,
        hour=values["hour"],
        day=values["day"],
        month=values["month"],
        day_of_week=0 if dow == 7 else dow,
    )


_WEEKDAY_NAMES = ("sun", "mon", "tue", "wed", "thu", "fri", "sat")


def _crontab_weekdays(field: str) -> str:
    """Cron day-of-week (Sunday = 0 or 7) as APScheduler weekday names.

    APScheduler numbers weekdays from Monday, so numeric tokens are expanded
    to names. Name-only fields (``mon-fri``) pass through.
    """
    if field == "*" or not any(c.isdigit() for c in field):
        return field
    names = []
    for part in field.split(","):
        span, _, step = part.partition("/")
        if span == "*":
            span = "0-6"
        low, _, high = span.partition("-")
        if not low.isdigit() or (high and not high.isdigit()) or (step and not step.isdigit()):
            raise ValueError(f"Unsupported day-of-week {part!r}")
        first = int(low)
        last = int(high) if high else (6 if step else first)
        if last > 7 or first > last:
            raise ValueError(f"Day-of-week {part!r} out of range 0-7")
        for day in range(first, last + 1, int(step) if step else 1):
            names.append(_WEEKDAY_NAMES[day % 7])
    return ",".join(dict.fromkeys(names))


def cron_trigger(expression: str, timezone=None) -> CronTrigger:
    """CronTrigger for a standard 5-field crontab line. Raises ValueError if invalid."""
    values = expression.split()
    if len(values) != 5:
        raise ValueError(f"Wrong number of fields; got {len(values)}, expected 5")
    minute, hour, day, month, day_of_week = values
    return CronTrigger(
        minute=minute,
        hour=hour,
        day=day,
        month=month,
        day_of_week=_crontab_weekdays(day_of_week),
        timezone=timezone,
    )


def is_valid_cron(expression: str) -> bool:
    """True when the live trigger accepts ``expression``."""
    if not isinstance(expression, str):
        return False
    try:
        cron_trigger(expression)
    except ValueError:
        return False
    return True


def next_run(expression: str, after: datetime) -> datetime | None:
    """Next instant strictly after ``after`` matching ``expression``.

    Returns ``None`` for malformed or unsupported expressions instead of raising.
    Timezone-aware inputs keep their tzinfo.
    """
    fields = parse_cron(expression)
    if fields is None:
        return None

    base = after.replace(second=0, microsecond=0)

    if fields.minute_step is not None:
        minute = (base.minute // fields.minute_step + 1) * fields.minute_step
        if minute > 59:
            return base.replace(minute=0) + timedelta(hours=1)
        return base.replace(minute=minute)

    if fields.minute is None:
        return base + timedelta(minutes=1)

    if fields.hour is None:
        candidate = base.replace(minute=fields.minute)
        if candidate <= after:
            candidate += timedelta(hours=1)
        return candidate

    candidate = base.replace(hour=fields.hour, minute=fields.minute)

    if fields.python_weekday is not None:
        days = (fields.python_weekday - candidate.weekday()) % 7
        if days == 0 and candidate <= after:
            days = 7
        candidate += timedelta(days=days)
    elif fields.day is not None:
        candidate = _roll_to_day_of_month(candidate, fields.day, after)
        if candidate is None:
            return None
    elif candidate <= after:
        candidate += timedelta(days=1)

    if fields.month is not None and candidate.month != fields.month:
        candidate = _roll_to_month(candidate, fields)
    return candidate


def _roll_to_day_of_month(
    candidate: datetime, day: int, after: datetime
) -> datetime | None:
    """Same wall-clock time on ``day`` of this month or the next month that has it."""
    year, month = candidate.year, candidate.month
    for _ in range(13):
        try:
            rolled = candidate.replace(year=year, month=month, day=day)
        except ValueError:
            rolled = None  # month too short
        if rolled is not None and rolled > after:
            return rolled
        month += 1
        if month > 12:
            year, month = year + 1, 1
    return None


def _roll_to_month(candidate: datetime, fields: CronFields) -> datetime | None:
    year = candidate.year if fields.month > candidate.month else candidate.year + 1
    try:
        rolled = candidate.replace(year=year, month=fields.month, day=fields.day or 1)
    except ValueError:
        return None
    if fields.python_weekday is not None:
        rolled += timedelta(days=(fields.python_weekday - rolled.weekday()) % 7)
    return rolled
