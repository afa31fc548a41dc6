"""
Backline quote arithmetic

Day one of a hire costs the catalogue day rate; every extra day is charged
at half that. Items missing from the catalogue are priced at zero so the
owner can fill them in when reviewing the quote.
"""

import math
from datetime import date
from typing import Optional

from sqlalchemy.orm import Session

from ...config import DELIVERY_FEE, GST_RATE
from ...models import HireItem

EXTRA_DAY_RATE = 0.5
DELIVERY_LINE = "Delivery & Collection"
PACKAGES = ("small", "medium", "large")


def calculate_rental_days(start: Optional[date], end: Optional[date]) -> int:
    """Inclusive day count; a same-day hire is one day"""
    if not start or not end:
        return 1
    days = math.ceil(abs((end - start).days)) + 1
    return max(days, 1)


def line_amount(day_rate: float, quantity: int, rental_days: int) -> float:
    first_day = day_rate * quantity
    return round(first_day + first_day * EXTRA_DAY_RATE * (rental_days - 1), 2)


def calculate_gst(subtotal: float) -> float:
    return round(subtotal * GST_RATE, 2)


def load_day_rates(db: Session, names: list[str]) -> dict[str, float]:
    if not names:
        return {}
    items = db.query(HireItem).filter(HireItem.name.in_(names)).all()
    return {item.name: item.hire_rate_per_day or 0 for item in items}


def price_backline(
    equipment: list[dict],
    day_rates: dict[str, float],
    rental_days: int,
    delivery: bool,
) -> dict:
    """
    Build the backline quote.

    Args:
        equipment: [{"name", "quantity"}] as submitted
        day_rates: catalogue day rate by item name
        rental_days: from calculate_rental_days
        delivery: add the delivery and collection fee

    Returns:
        {"lineItems": [{"description", "quantity", "dayRate", "amount"}],
         "subtotal", "gst", "total", "rentalDays"}
    """
    line_items = []
    for item in equipment:
        name = item.get("name")
        quantity = int(item.get("quantity") or 0)
        if not name or quantity <= 0:
            continue
        rate = day_rates.get(name, 0)
        line_items.append(
            {
                "description": f"{name} x{quantity}",
                "quantity": quantity,
                "dayRate": rate,
                "amount": line_amount(rate, quantity, rental_days),
            }
        )

    if delivery:
        line_items.append(
            {"description": DELIVERY_LINE, "quantity": 1, "dayRate": None, "amount": DELIVERY_FEE}
        )

    subtotal = round(sum(line["amount"] for line in line_items), 2)
    gst = calculate_gst(subtotal)
    return {
        "lineItems": line_items,
        "subtotal": subtotal,
        "gst": gst,
        "total": round(subtotal + gst, 2),
        "rentalDays": rental_days,
    }


def content_requirements(form: dict) -> list[str]:
    """Plain-language list of what the event needs the system to handle"""
    flags = [
        ("playbackFromDevice", "Playback from device"),
        ("hasLiveMusic", "Live music"),
        ("needsMic", "Microphone required"),
        ("hasDJ", "DJ"),
        ("hasBand", "Live band(s)"),
        ("hasSpeeches", "Speeches/presentations"),
    ]
    return [label for key, label in flags if form.get(key)]
