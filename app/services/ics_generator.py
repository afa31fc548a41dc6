"""
ICS (iCalendar) files so contractors can add a gig to any calendar app
"""

import secrets
import time as time_module
from datetime import datetime, timedelta, timezone
from typing import Optional
from zoneinfo import ZoneInfo

from ..config import BUSINESS_EMAIL, BUSINESS_NAME, CALENDAR_TIMEZONE
from ..models import Booking
from ..utils.formatting import parse_time_string, slugify

DEFAULT_START_HOUR = 9
DEFAULT_DURATION_HOURS = 4


def escape_ics_text(text: str) -> str:
    text = text.replace("\r\n", "\n").replace("\r", "\n")
    return text.replace("\\", "\\\\").replace(";", "\\;").replace(",", "\\,").replace("\n", "\\n")


def format_ics_datetime(value: datetime) -> str:
    """UTC in YYYYMMDDTHHMMSSZ form"""
    if value.tzinfo is None:
        value = value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc).strftime("%Y%m%dT%H%M%SZ")


def generate_uid() -> str:
    return f"{int(time_module.time() * 1000)}-{secrets.token_hex(5)}@accent-productions.co.nz"


def generate_ics_content(
    title: str,
    start: datetime,
    end: datetime,
    description: Optional[str] = None,
    location: Optional[str] = None,
    organizer: Optional[tuple[str, str]] = None,
) -> str:
    lines = [
        "BEGIN:VCALENDAR",
        "VERSION:2.0",
        "PRODID:-//Accent Productions//Event//EN",
        "CALSCALE:GREGORIAN",
        "METHOD:PUBLISH",
        "BEGIN:VEVENT",
        f"UID:{generate_uid()}",
        f"DTSTAMP:{format_ics_datetime(datetime.now(timezone.utc))}",
        f"DTSTART:{format_ics_datetime(start)}",
        f"DTEND:{format_ics_datetime(end)}",
        f"SUMMARY:{escape_ics_text(title)}",
    ]
    if description:
        lines.append(f"DESCRIPTION:{escape_ics_text(description)}")
    if location:
        lines.append(f"LOCATION:{escape_ics_text(location)}")
    if organizer:
        name, email = organizer
        lines.append(f"ORGANIZER;CN={escape_ics_text(name)}:mailto:{email}")
    lines.extend(["END:VEVENT", "END:VCALENDAR"])

    # RFC 5545 wants CRLF line endings
    return "\r\n".join(lines)


def booking_event_window(booking: Booking) -> tuple[datetime, datetime]:
    """Start at call time (or show time, or 9am); end at pack-out or 4 hours later"""
    tz = ZoneInfo(CALENDAR_TIMEZONE)
    day = booking.event_date

    start_time = parse_time_string(booking.call_time) or parse_time_string(
        (booking.event_time or "").split(" - ")[0]
    )
    if start_time is None:
        start = datetime(day.year, day.month, day.day, DEFAULT_START_HOUR, tzinfo=tz)
    else:
        start = datetime.combine(day, start_time, tzinfo=tz)

    pack_out = parse_time_string(booking.pack_out_time)
    if pack_out is None:
        return start, start + timedelta(hours=DEFAULT_DURATION_HOURS)

    end = datetime.combine(day, pack_out, tzinfo=tz)
    if end <= start:
        end += timedelta(days=1)
    return start, end


def build_ics_description(booking: Booking) -> str:
    parts = []
    if booking.call_time:
        parts.append(f"Call Time: {booking.call_time}")
    if booking.event_time and booking.event_time != booking.call_time:
        parts.append(f"Show Time: {booking.event_time}")
    if booking.pack_out_time:
        parts.append(f"Pack-out: {booking.pack_out_time}")
    if booking.band_names:
        parts.append(f"Performing: {booking.band_names}")
    if booking.client_name:
        parts.append(f"Client: {booking.client_name}")
    if booking.client_phone:
        parts.append(f"Phone: {booking.client_phone}")
    if booking.call_out_notes:
        parts.append(f"Notes: {booking.call_out_notes}")
    if booking.quote_number:
        parts.append(f"Quote: #{booking.quote_number}")
    parts.extend(["", f"Booked via {BUSINESS_NAME}"])
    return "\n".join(parts)


def build_ics_from_booking(booking: Booking) -> str:
    start, end = booking_event_window(booking)
    return generate_ics_content(
        title=f"{booking.event_name or 'Event'} - {BUSINESS_NAME}",
        start=start,
        end=end,
        description=build_ics_description(booking),
        location=booking.location,
        organizer=(BUSINESS_NAME, BUSINESS_EMAIL),
    )


def ics_filename(booking: Booking) -> str:
    return f"{slugify(booking.event_name or 'event')}-{booking.quote_number}.ics"
