"""Display helpers shared by emails, calendar entries and ICS files"""

import re
from datetime import date, datetime, time
from typing import Optional, Union

_TIME_PATTERN = re.compile(r"^\s*(\d{1,2})(?::(\d{2}))?\s*(am|pm)?\s*$", re.IGNORECASE)


def format_date(value: Union[date, str, None], style: str = "long") -> str:
    """
    Format a date the way en-NZ does: "Saturday, 14 March 2026" (long)
    or "Sat, 14 Mar 2026" (short). Returns "TBC" when there is no date.
    """
    if value is None or value == "":
        return "TBC"
    if isinstance(value, str):
        try:
            value = date.fromisoformat(value[:10])
        except ValueError:
            return value
    if isinstance(value, datetime):
        value = value.date()

    if style == "short":
        return f"{value.strftime('%a')}, {value.day} {value.strftime('%b %Y')}"
    return f"{value.strftime('%A')}, {value.day} {value.strftime('%B %Y')}"


def format_currency(amount: Optional[float]) -> str:
    """$1,234.50"""
    return f"${(amount or 0):,.2f}"


def parse_time_string(value: Optional[str]) -> Optional[time]:
    """
    Parse loose time strings from forms: "6pm", "6:30 PM", "18:00", "9".
    Returns None when the value can't be read as a time of day.
    """
    if not value:
        return None
    match = _TIME_PATTERN.match(value)
    if not match:
        return None

    hours = int(match.group(1))
    minutes = int(match.group(2) or 0)
    meridiem = (match.group(3) or "").lower()

    if meridiem == "pm" and hours < 12:
        hours += 12
    if meridiem == "am" and hours == 12:
        hours = 0
    if hours > 23 or minutes > 59:
        return None
    return time(hours, minutes)


def format_time(value: Optional[str]) -> str:
    """Turn "18:00" into "6pm" and "18:30" into "6:30pm"; unknown input is returned as-is"""
    if not value:
        return ""
    parsed = parse_time_string(value)
    if parsed is None:
        return value

    hour12 = parsed.hour % 12 or 12
    suffix = "am" if parsed.hour < 12 else "pm"
    if parsed.minute:
        return f"{hour12}:{parsed.minute:02d}{suffix}"
    return f"{hour12}{suffix}"


def slugify(value: str) -> str:
    slug = re.sub(r"[^a-z0-9]+", "-", (value or "").lower()).strip("-")
    return slug or "event"
