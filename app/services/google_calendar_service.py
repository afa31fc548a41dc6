"""
Google Calendar Service
Handles calendar event creation, updates, and deletion for bookings
"""

import base64
import logging
from datetime import date, datetime, time, timedelta
from typing import Any, Optional, Union

import httpx

from ..config import CALENDAR_TIMEZONE, GOOGLE_CALENDAR_ID
from ..utils.formatting import parse_time_string
from .google_auth import get_access_token

logger = logging.getLogger(__name__)

GOOGLE_CALENDAR_API = "https://www.googleapis.com/calendar/v3"

DEFAULT_EVENT_HOURS = 4
UNTIMED_START = time(9, 0)
UNTIMED_END = time(17, 0)


def _first_time(value: Optional[str]) -> Optional[str]:
    # "6pm - 11pm" ranges come from the full-system form
    if not value:
        return None
    return value.split(" - ")[0].split("-")[0].strip() or None


def build_event_times(
    start_date: Union[date, str],
    start_time: Optional[str] = None,
    end_time: Optional[str] = None,
) -> tuple[datetime, datetime]:
    """
    Work out local start/end datetimes for an event.

    With a start time the event runs to `end_time` or 4 hours; without one it
    is blocked out 9am-5pm. An end time earlier than the start rolls over to
    the next day (late pack-outs).
    """
    if isinstance(start_date, str):
        start_date = date.fromisoformat(start_date[:10])

    parsed_start = parse_time_string(_first_time(start_time))
    if parsed_start is None:
        if start_time:
            logger.warning(f"⚠️ Could not parse start time '{start_time}', defaulting to 9am")
            parsed_start = UNTIMED_START
        else:
            return (
                datetime.combine(start_date, UNTIMED_START),
                datetime.combine(start_date, UNTIMED_END),
            )

    start = datetime.combine(start_date, parsed_start)
    parsed_end = parse_time_string(_first_time(end_time))
    if parsed_end is None:
        return start, start + timedelta(hours=DEFAULT_EVENT_HOURS)

    end = datetime.combine(start_date, parsed_end)
    if end <= start:
        end += timedelta(days=1)
    return start, end


def calendar_event_url(event_id: Optional[str]) -> Optional[str]:
    """Link that opens the event in Google Calendar"""
    if not event_id:
        return None
    eid = base64.b64encode(f"{event_id} {GOOGLE_CALENDAR_ID}".encode()).decode().rstrip("=")
    return f"https://calendar.google.com/calendar/event?eid={eid}"


async def create_calendar_event(
    summary: str,
    description: str,
    start_date: Union[date, str, None],
    location: Optional[str] = None,
    start_time: Optional[str] = None,
    end_time: Optional[str] = None,
) -> Optional[str]:
    """
    Create a Google Calendar event
    Returns the Google Calendar event ID if successful, None otherwise
    """
    if not start_date:
        logger.info("ℹ️ Booking has no event date, skipping calendar event")
        return None

    access_token = await get_access_token()
    if not access_token:
        return None

    start, end = build_event_times(start_date, start_time, end_time)
    event_data: dict[str, Any] = {
        "summary": summary,
        "description": description,
        "start": {"dateTime": start.isoformat(), "timeZone": CALENDAR_TIMEZONE},
        "end": {"dateTime": end.isoformat(), "timeZone": CALENDAR_TIMEZONE},
    }
    if location:
        event_data["location"] = location

    try:
        async with httpx.AsyncClient(timeout=15.0) as client:
            response = await client.post(
                f"{GOOGLE_CALENDAR_API}/calendars/{GOOGLE_CALENDAR_ID}/events",
                headers={"Authorization": f"Bearer {access_token}"},
                json=event_data,
            )

        if response.status_code not in [200, 201]:
            logger.error(f"❌ Failed to create calendar event: {response.text}")
            return None

        event_id = response.json().get("id")
        logger.info(f"✅ Google Calendar event created: {event_id}")
        return event_id

    except httpx.HTTPError as e:
        logger.error(f"❌ Error creating calendar event: {str(e)}")
        return None


async def update_calendar_event(
    event_id: str,
    summary: Optional[str] = None,
    description: Optional[str] = None,
    location: Optional[str] = None,
) -> bool:
    """
    Update an existing calendar event. The current event is fetched first
    and only the fields given here are replaced.
    """
    if not event_id:
        return False

    access_token = await get_access_token()
    if not access_token:
        return False

    url = f"{GOOGLE_CALENDAR_API}/calendars/{GOOGLE_CALENDAR_ID}/events/{event_id}"
    headers = {"Authorization": f"Bearer {access_token}"}

    try:
        async with httpx.AsyncClient(timeout=15.0) as client:
            existing = await client.get(url, headers=headers)
            if existing.status_code != 200:
                logger.error(f"❌ Calendar event {event_id} not found: {existing.text}")
                return False

            event = existing.json()
            event["summary"] = summary or event.get("summary")
            event["description"] = description or event.get("description")
            event["location"] = location or event.get("location")

            response = await client.put(url, headers=headers, json=event)

        if response.status_code != 200:
            logger.error(f"❌ Failed to update calendar event: {response.text}")
            return False

        logger.info(f"✅ Google Calendar event updated: {event_id}")
        return True

    except httpx.HTTPError as e:
        logger.error(f"❌ Error updating calendar event: {str(e)}")
        return False


async def delete_calendar_event(event_id: str) -> bool:
    """Delete a calendar event; a 404/410 counts as already gone"""
    if not event_id:
        return False

    access_token = await get_access_token()
    if not access_token:
        return False

    try:
        async with httpx.AsyncClient(timeout=15.0) as client:
            response = await client.delete(
                f"{GOOGLE_CALENDAR_API}/calendars/{GOOGLE_CALENDAR_ID}/events/{event_id}",
                headers={"Authorization": f"Bearer {access_token}"},
            )

        if response.status_code in [200, 204, 404, 410]:
            logger.info(f"✅ Google Calendar event deleted: {event_id}")
            return True

        logger.error(f"❌ Failed to delete calendar event: {response.text}")
        return False

    except httpx.HTTPError as e:
        logger.error(f"❌ Error deleting calendar event: {str(e)}")
        return False
