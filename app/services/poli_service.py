"""
POLi Payments client
Initiates bank-transfer payments for quote deposits and queries their outcome
"""

import json
import logging
from typing import Any

import httpx

from ..config import (
    POLI_API_URL,
    POLI_AUTH_CODE,
    POLI_CURRENCY,
    POLI_MERCHANT_CODE,
    POLI_QUERY_URL,
    SITE_URL,
)

logger = logging.getLogger(__name__)

POLI_COMPLETED = "Completed"


class PoliError(Exception):
    """POLi rejected the request or could not be reached"""


def is_poli_configured() -> bool:
    return bool(POLI_MERCHANT_CODE and POLI_AUTH_CODE)


def _auth() -> httpx.BasicAuth:
    return httpx.BasicAuth(POLI_MERCHANT_CODE or "", POLI_AUTH_CODE or "")


def build_initiate_payload(
    amount: float,
    merchant_reference: str,
    approval_token: str,
    merchant_data: dict[str, Any],
) -> dict[str, Any]:
    """Transaction/Initiate body; POLi sends the client back to /poli-callback"""
    callback = f"{SITE_URL}/api/poli-callback"
    return {
        "Amount": f"{amount:.2f}",
        "CurrencyCode": POLI_CURRENCY,
        "MerchantReference": merchant_reference,
        "MerchantReferenceFormat": 1,
        "MerchantData": json.dumps(merchant_data),
        "MerchantHomepageURL": SITE_URL,
        "SuccessURL": f"{callback}?status=success&token={approval_token}",
        "FailureURL": f"{callback}?status=failure&token={approval_token}",
        "CancellationURL": f"{callback}?status=cancelled&token={approval_token}",
        "NotificationURL": f"{SITE_URL}/api/poli-webhook",
    }


async def initiate_transaction(payload: dict[str, Any]) -> dict[str, Any]:
    """
    Start a POLi transaction.

    Returns:
        {"navigate_url": ..., "transaction_token": ...}

    Raises:
        PoliError: when POLi is unreachable or does not return a NavigateURL
    """
    try:
        async with httpx.AsyncClient(timeout=30.0) as client:
            response = await client.post(POLI_API_URL, json=payload, auth=_auth())
        result = response.json()
    except (httpx.HTTPError, ValueError) as e:
        logger.error(f"❌ POLi initiation request failed: {e}")
        raise PoliError("Failed to initiate payment") from e

    if response.status_code >= 400 or not result.get("NavigateURL"):
        logger.error(f"❌ POLi initiation failed: {result}")
        raise PoliError(result.get("ErrorMessage") or "Failed to initiate payment")

    logger.info(f"✅ POLi transaction initiated: {result.get('TransactionToken')}")
    return {
        "navigate_url": result["NavigateURL"],
        "transaction_token": result.get("TransactionToken"),
    }


async def get_transaction(transaction_token: str) -> dict[str, Any]:
    """
    Look up a POLi transaction. The interesting keys are
    TransactionStatusCode ("Completed" on success) and TransactionRefNo.
    """
    try:
        async with httpx.AsyncClient(timeout=30.0) as client:
            response = await client.get(
                POLI_QUERY_URL, params={"token": transaction_token}, auth=_auth()
            )
        return response.json()
    except (httpx.HTTPError, ValueError) as e:
        logger.error(f"❌ POLi transaction lookup failed: {e}")
        raise PoliError("Failed to query payment status") from e
