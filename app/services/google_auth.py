"""
Google OAuth access tokens for the business Google Workspace account.

Calendar and Drive calls act as the owner through a long-lived refresh token
(GOOGLE_REFRESH_TOKEN); access tokens are cached in-process until shortly
before they expire.
"""

import logging
from datetime import datetime, timedelta
from typing import Optional

import httpx

from ..config import GOOGLE_CLIENT_ID, GOOGLE_CLIENT_SECRET, GOOGLE_REFRESH_TOKEN

logger = logging.getLogger(__name__)

GOOGLE_TOKEN_URL = "https://oauth2.googleapis.com/token"

_cached_token: Optional[str] = None
_cached_expiry: Optional[datetime] = None


def is_google_configured() -> bool:
    return bool(GOOGLE_CLIENT_ID and GOOGLE_CLIENT_SECRET and GOOGLE_REFRESH_TOKEN)


async def get_access_token() -> Optional[str]:
    """
    Get a valid access token, refreshing if necessary
    Returns None if Google is not configured or the refresh fails
    """
    global _cached_token, _cached_expiry

    if not is_google_configured():
        logger.warning("⚠️ Google Workspace not configured, skipping")
        return None

    # Reuse the token until it is within 5 minutes of expiring
    if _cached_token and _cached_expiry and _cached_expiry > datetime.utcnow() + timedelta(minutes=5):
        return _cached_token

    try:
        logger.info("🔄 Refreshing Google access token...")
        async with httpx.AsyncClient(timeout=15.0) as client:
            response = await client.post(
                GOOGLE_TOKEN_URL,
                data={
                    "client_id": GOOGLE_CLIENT_ID,
                    "client_secret": GOOGLE_CLIENT_SECRET,
                    "refresh_token": GOOGLE_REFRESH_TOKEN,
                    "grant_type": "refresh_token",
                },
            )

        if response.status_code != 200:
            logger.error(f"❌ Token refresh failed: {response.text}")
            return None

        tokens = response.json()
        access_token = tokens.get("access_token")
        if not access_token:
            logger.error("❌ No access token in refresh response")
            return None

        _cached_token = access_token
        _cached_expiry = datetime.utcnow() + timedelta(seconds=tokens.get("expires_in", 3600))
        logger.info("✅ Google access token refreshed successfully")
        return access_token

    except httpx.HTTPError as e:
        logger.error(f"❌ Error refreshing Google access token: {str(e)}")
        return None
