import hmac
import logging
from dataclasses import dataclass
from typing import Optional

from fastapi import Depends, Header, HTTPException
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from jose import JWTError, jwt

from .config import ADMIN_EMAILS, CRON_SECRET, ENVIRONMENT, SUPABASE_JWT_SECRET

logger = logging.getLogger(__name__)

security = HTTPBearer()


@dataclass
class AdminUser:
    id: str
    email: str


def verify_supabase_token(token: str) -> dict:
    """
    Verify a Supabase access token (HS256, signed with the project JWT secret).
    The audience is not checked: Supabase issues "authenticated" tokens for
    every signed-in user and the admin allow-list is applied separately.
    """
    if not SUPABASE_JWT_SECRET:
        logger.error("❌ SUPABASE_JWT_SECRET not configured")
        raise HTTPException(status_code=500, detail="Authentication not configured")

    try:
        payload = jwt.decode(
            token,
            SUPABASE_JWT_SECRET,
            algorithms=["HS256"],
            options={"verify_aud": False},
        )
    except JWTError as e:
        logger.warning(f"⚠️ Invalid admin token: {e}")
        raise HTTPException(status_code=401, detail="Invalid or expired token") from e

    if not payload.get("sub"):
        raise HTTPException(status_code=401, detail="Token missing subject")
    return payload


def get_current_admin(
    credentials: HTTPAuthorizationCredentials = Depends(security),
) -> AdminUser:
    """Dependency for /admin routes and owner-only actions"""
    payload = verify_supabase_token(credentials.credentials)
    email = (payload.get("email") or "").lower()

    if ADMIN_EMAILS and email not in ADMIN_EMAILS:
        logger.warning(f"🚫 Non-admin user attempted admin access: {email or payload['sub']}")
        raise HTTPException(status_code=403, detail="Not authorized")

    return AdminUser(id=payload["sub"], email=email)


def constant_time_compare(a: str, b: str) -> bool:
    return hmac.compare_digest(a.encode("utf-8"), b.encode("utf-8"))


def verify_cron_secret(authorization: Optional[str] = Header(None)) -> None:
    """
    Scheduled endpoints expect `Authorization: Bearer <CRON_SECRET>`.
    Open in development or when no secret is configured.
    """
    if ENVIRONMENT == "development" or not CRON_SECRET:
        return

    expected = f"Bearer {CRON_SECRET}"
    if not authorization or not constant_time_compare(authorization, expected):
        logger.warning("🚫 Cron endpoint called without a valid secret")
        raise HTTPException(status_code=401, detail="Unauthorized")
