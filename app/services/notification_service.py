"""
Notification sending for workflow events

A booking state change is committed before its emails go out, so a failed
send is logged and reported back to the caller instead of raised.
"""

import logging
from typing import Awaitable, Callable, Optional

logger = logging.getLogger(__name__)


async def send_notification(
    notification_type: str,
    to: Optional[str],
    email_func: Callable[..., Awaitable[dict]],
    **email_kwargs,
) -> bool:
    """
    Send one workflow email.

    Args:
        notification_type: Short label for logging (e.g. "job offer")
        to: Recipient address; nothing is sent when empty
        email_func: One of the async send_* helpers in email_service
        email_kwargs: Arguments for email_func other than `to`

    Returns:
        True when the email was handed to the provider
    """
    if not to:
        logger.debug(f"⚠️ No email address for {notification_type} notification")
        return False

    try:
        logger.info(f"📧 Sending {notification_type} email to {to}")
        await email_func(to=to, **email_kwargs)
        logger.info(f"✅ {notification_type} email sent successfully to {to}")
        return True
    except Exception as e:
        logger.error(f"❌ Failed to send {notification_type} email to {to}: {e}")
        return False
