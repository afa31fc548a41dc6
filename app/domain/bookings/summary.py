"""Plain-text booking summaries for calendar events and contractor emails"""

from typing import Optional

from ...models import Booking
from ...utils.formatting import format_date

PACKAGE_LABELS = {
    "small": "Small (10-50 people)",
    "medium": "Medium (50-200 people)",
    "large": "Large (200-1000 people)",
}


def calendar_description(booking: Booking, status_line: str, extra: Optional[list[str]] = None) -> str:
    lines = [
        f"Quote: #{booking.quote_number}",
        f"Client: {booking.client_name}",
        f"Email: {booking.client_email}",
        f"Phone: {booking.client_phone or 'N/A'}",
    ]
    lines += extra or []
    lines += ["", f"Status: {status_line}"]
    return "\n".join(lines)


def describe_job(booking: Booking) -> str:
    """What the crew needs to know, from the inquiry details"""
    details = booking.details_json or {}
    lines = []

    if details.get("type") == "backline":
        for item in details.get("equipment") or []:
            lines.append(f"{item.get('quantity')}x {item.get('name')}")
        period = details.get("rentalPeriod") or {}
        if period.get("start"):
            lines.append(f"Rental period: {format_date(period.get('start'))} to {format_date(period.get('end'))}")
        if details.get("deliveryMethod") == "delivery":
            lines.append(f"Delivery to: {details.get('deliveryAddress') or 'TBC'}")
        else:
            lines.append("Collection: Customer pickup")
        if details.get("otherEquipment"):
            lines.append(f"Other requests: {details['otherEquipment']}")

    elif details.get("type") == "fullsystem":
        if details.get("package"):
            lines.append(f"Package: {PACKAGE_LABELS.get(details['package'], details['package'])}")
        if details.get("eventType"):
            lines.append(f"Event type: {details['eventType']}")
        if details.get("attendance"):
            lines.append(f"Attendance: {details['attendance']}")
        if details.get("contentRequirements"):
            lines.append(f"Requirements: {', '.join(details['contentRequirements'])}")

    if booking.band_names:
        lines.append(f"Band(s): {booking.band_names}")
    if booking.job_description:
        lines.append(f"Notes: {booking.job_description}")

    return "\n".join(lines)
