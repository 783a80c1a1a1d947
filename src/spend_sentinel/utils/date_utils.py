"""Date parsing and normalization utilities."""

import calendar
import re
from datetime import date, datetime

# Textual forms accepted by the native parse step, alongside ISO 8601.
NATIVE_TEXT_FORMATS = [
    "%d %b %Y",
    "%d %B %Y",
    "%b %d, %Y",
    "%B %d, %Y",
    "%b %d %Y",
    "%d-%b-%Y",
]

# Numeric fallbacks, in priority order.
#
# IMPORTANT - Date Format Ambiguity:
# Slash-separated dates (e.g., "01/03/2024") are interpreted day-first
# (1 March 2024). Month-first is only tried when the day-first reading is
# impossible, e.g. "03/25/2024".
NUMERIC_PATTERN = re.compile(r"^(\d{1,2})[/\-.](\d{1,2})[/\-.](\d{4})$")
ISO_PATTERN = re.compile(r"^(\d{4})-(\d{1,2})-(\d{1,2})$")


def _native_parse(date_str: str) -> date | None:
    try:
        return datetime.fromisoformat(date_str).date()
    except ValueError:
        pass

    for fmt in NATIVE_TEXT_FORMATS:
        try:
            return datetime.strptime(date_str, fmt).date()
        except ValueError:
            continue
    return None


def _build(year: int, month: int, day: int) -> date | None:
    try:
        return date(year, month, day)
    except ValueError:
        return None


def parse_date(raw_date: str | None) -> date | None:
    """Parse a raw date string, returning None when no strategy succeeds.

    Strategies, first success wins:
    1. Native parse: ISO 8601 and textual months (15 Jan 2024, Jan 15, 2024)
    2. DD/MM/YYYY (also with - or . separators)
    3. YYYY-MM-DD
    4. MM/DD/YYYY

    Args:
        raw_date: The raw date string.

    Returns:
        Parsed date, or None.
    """
    if not raw_date:
        return None

    date_str = raw_date.strip()
    if not date_str:
        return None

    parsed = _native_parse(date_str)
    if parsed is not None:
        return parsed

    match = NUMERIC_PATTERN.match(date_str)
    if match:
        day, month, year = (int(g) for g in match.groups())
        parsed = _build(year, month, day)
        if parsed is not None:
            return parsed

    match = ISO_PATTERN.match(date_str)
    if match:
        year, month, day = (int(g) for g in match.groups())
        parsed = _build(year, month, day)
        if parsed is not None:
            return parsed

    match = NUMERIC_PATTERN.match(date_str)
    if match:
        month, day, year = (int(g) for g in match.groups())
        parsed = _build(year, month, day)
        if parsed is not None:
            return parsed

    return None


def normalize_date(raw_date: str | None, today: date | None = None) -> date:
    """Normalize a raw date string, falling back to today.

    Known limitation: an unparseable date silently becomes today's date.
    Callers that must reject bad dates use parse_date() instead.

    Args:
        raw_date: The raw date string.
        today: Fallback date (defaults to date.today()).

    Returns:
        Parsed date, or the fallback.
    """
    parsed = parse_date(raw_date)
    if parsed is not None:
        return parsed
    return today if today is not None else date.today()


def subtract_months(d: date, months: int) -> date:
    """Move a date back by whole months, clamping to the month's last day.

    Args:
        d: Starting date.
        months: Number of months to go back.

    Returns:
        The shifted date.
    """
    month_index = d.year * 12 + (d.month - 1) - months
    year, month = divmod(month_index, 12)
    month += 1
    last_day = calendar.monthrange(year, month)[1]
    return date(year, month, min(d.day, last_day))
