"""Shared validation utilities"""

import re
from datetime import date
from typing import Optional


def validate_nz_phone(phone: Optional[str]) -> Optional[str]:
    """
    Light check on a phone number from the public forms.

    Accepts NZ local (021 123 4567, 09 123 4567) and international (+64 ...)
    formats; spaces, dashes and brackets are kept as the client typed them.

    Raises:
        ValueError: If the number has too few or too many digits
    """
    if not phone:
        return phone

    phone = phone.strip()
    digits = re.sub(r"\D", "", phone)
    if len(digits) < 7 or len(digits) > 15:
        raise ValueError("Please enter a valid phone number")
    return phone


def validate_email(email: Optional[str]) -> Optional[str]:
    """
    Validate email format.

    Returns:
        Lowercase email address

    Raises:
        ValueError: If email format is invalid
    """
    if not email:
        return email

    email = email.strip().lower()

    email_pattern = r"^[a-zA-Z0-9._%+-]+@[a-zA-Z0-9.-]+\.[a-zA-Z]{2,}$"
    if not re.match(email_pattern, email):
        raise ValueError("Invalid email format")

    return email


def validate_iso_date(value: Optional[str]) -> Optional[str]:
    """Form dates arrive as YYYY-MM-DD strings"""
    if not value:
        return value
    try:
        date.fromisoformat(value)
    except ValueError as e:
        raise ValueError("Dates must be in YYYY-MM-DD format") from e
    return value
