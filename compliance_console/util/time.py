"""Time-related helpers for the compliance console.

Due dates are compared on whole UTC calendar days: the time of day is
discarded on both sides before the difference is taken, so a requirement due
"today" is never overdue.
"""

from __future__ import annotations

import datetime

DateLike = datetime.date | datetime.datetime | str | None


def utc_now_iso() -> str:
    """Return current UTC time in ISO format without sub-second precision."""
    return datetime.datetime.now(datetime.UTC).isoformat(timespec="seconds")


def utc_today() -> datetime.date:
    """Return the current calendar day in UTC."""
    return datetime.datetime.now(datetime.UTC).date()


def parse_date(value: DateLike) -> datetime.date | None:
    """Return the UTC calendar day represented by ``value``.

    ``value`` may be a :class:`datetime.date`, an aware or naive
    :class:`datetime.datetime` (naive values are taken as UTC) or an ISO 8601
    string, including the trailing ``Z`` emitted by JavaScript clients.
    Missing or unparseable input yields ``None``.
    """

    if value is None:
        return None
    if isinstance(value, datetime.datetime):
        if value.tzinfo is not None:
            value = value.astimezone(datetime.UTC)
        return value.date()
    if isinstance(value, datetime.date):
        return value
    text = str(value).strip()
    if not text:
        return None
    if text.endswith(("Z", "z")):
        text = text[:-1] + "+00:00"
    try:
        parsed = datetime.datetime.fromisoformat(text)
    except ValueError:
        try:
            return datetime.date.fromisoformat(text[:10])
        except ValueError:
            return None
    return parse_date(parsed)


def days_until(value: DateLike, today: datetime.date | None = None) -> int | None:
    """Return whole days from ``today`` (UTC) until ``value``.

    Negative results mean the date lies in the past; ``None`` means there is
    no usable date.
    """

    target = parse_date(value)
    if target is None:
        return None
    reference = today if today is not None else utc_today()
    return (target - reference).days


def is_overdue(value: DateLike, today: datetime.date | None = None) -> bool:
    """Return ``True`` when ``value`` lies strictly before ``today``."""
    remaining = days_until(value, today)
    return remaining is not None and remaining < 0


def is_due_within(
    value: DateLike, days: int, today: datetime.date | None = None
) -> bool:
    """Return ``True`` when ``value`` falls within the next ``days`` days."""
    remaining = days_until(value, today)
    if remaining is None:
        return False
    return 0 <= remaining <= days


_MONTHS = {
    "en": ("Jan", "Feb", "Mar", "Apr", "May", "Jun", "Jul", "Aug", "Sep", "Oct", "Nov", "Dec"),
    "es": ("ene", "feb", "mar", "abr", "may", "jun", "jul", "ago", "sept", "oct", "nov", "dic"),
}


def format_date(value: DateLike, locale: str = "en") -> str:
    """Render ``value`` as a short human date in ``locale`` or an em dash."""
    day = parse_date(value)
    if day is None:
        return "—"
    months = _MONTHS.get(locale, _MONTHS["en"])
    month = months[day.month - 1]
    if locale == "es":
        return f"{day.day} {month} {day.year}"
    return f"{month} {day.day}, {day.year}"


def date_input_value(value: DateLike) -> str:
    """Return ``YYYY-MM-DD`` for ``value`` or an empty string."""
    day = parse_date(value)
    return day.isoformat() if day is not None else ""


def iso_at_utc(day: datetime.date, hour: int = 0) -> str:
    """Return ``day`` at ``hour``:00 UTC in the ``...T..:00:00.000Z`` form."""
    moment = datetime.datetime.combine(
        day, datetime.time(hour=hour), tzinfo=datetime.UTC
    )
    return moment.strftime("%Y-%m-%dT%H:%M:%S.000Z")
