import html
from typing import Any, Optional


def sanitize_string(value: Optional[str]) -> Optional[str]:
    """
    Sanitize a string by escaping HTML special characters to prevent XSS.
    Returns None if input is None.
    """
    if value is None:
        return None
    if not isinstance(value, str):
        return value
    return html.escape(value.strip(), quote=True)


def sanitize_dict(data: dict[str, Any], fields: Optional[list[str]] = None) -> dict[str, Any]:
    """
    Escape HTML in the string values of a form payload before it is stored
    or rendered into an email. Nested dicts and lists are walked.

    Args:
        data: Dictionary to sanitize
        fields: List of field names to sanitize. If None, sanitizes all strings.
    """
    if not data:
        return data

    sanitized = {}
    for key, value in data.items():
        if fields is not None and key not in fields:
            sanitized[key] = value
        elif isinstance(value, str):
            sanitized[key] = sanitize_string(value)
        elif isinstance(value, dict):
            sanitized[key] = sanitize_dict(value, fields)
        elif isinstance(value, list):
            sanitized[key] = [
                (
                    sanitize_dict(item, fields)
                    if isinstance(item, dict)
                    else sanitize_string(item) if isinstance(item, str) else item
                )
                for item in value
            ]
        else:
            sanitized[key] = value

    return sanitized


def nl2br(value: Optional[str]) -> str:
    """Multi-line text (already sanitized on the way in) for MJML <mj-text> blocks"""
    if not value:
        return ""
    return value.replace("\n", "<br/>")
