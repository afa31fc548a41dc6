"""Payment router - POLi deposits, balances and contractor payouts"""

import logging
from typing import Optional

from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session

from ...auth import AdminUser, get_current_admin
from ...database import get_db
from ...shared.links import redirect_to, result_redirect
from ..bookings.schemas import ClientApprovalResponse
from .schemas import (
    BalanceDetails,
    BalanceInvoiceRequest,
    DepositConfirmation,
    InitiatePoliRequest,
    PaymentDetails,
    PoliWebhook,
)
from .service import PaymentService

logger = logging.getLogger(__name__)

router = APIRouter(tags=["Payments"])


def get_payment_service(db: Session = Depends(get_db)) -> PaymentService:
    """Dependency injection for PaymentService"""
    return PaymentService(db)


# ============================================================================
# POLI DEPOSITS
# ============================================================================


@router.post("/initiate-poli")
async def initiate_poli(
    data: InitiatePoliRequest,
    service: PaymentService = Depends(get_payment_service),
):
    """Start a POLi deposit payment; the client is sent to navigateUrl"""
    return await service.initiate_poli(data.token)


@router.get("/poli-callback")
async def poli_callback(
    status: Optional[str] = Query(None),
    token: Optional[str] = Query(None),
    Token: Optional[str] = Query(None),
    service: PaymentService = Depends(get_payment_service),
):
    """POLi sends the client's browser back here"""
    try:
        path, params = await service.poli_return(status, token, Token)
    except Exception as e:
        logger.error(f"❌ POLi callback error: {e}", exc_info=True)
        service.db.rollback()
        path, params = "/approve", {"token": token, "error": "server"}
    return redirect_to(path, **params)


@router.post("/poli-webhook")
async def poli_webhook(
    data: PoliWebhook,
    service: PaymentService = Depends(get_payment_service),
):
    """POLi's server-to-server notification; always acknowledged"""
    try:
        await service.poli_webhook(data.Token)
    except Exception as e:
        logger.error(f"❌ POLi webhook error: {e}", exc_info=True)
        service.db.rollback()
    return {"received": True}


@router.post("/admin/approvals/{approval_id}/confirm-deposit")
async def confirm_deposit(
    approval_id: str,
    data: Optional[DepositConfirmation] = None,
    admin: AdminUser = Depends(get_current_admin),
    service: PaymentService = Depends(get_payment_service),
):
    """Bank transfer deposit received"""
    approval = service.confirm_deposit(approval_id, data.reference if data else None)
    return {
        "success": True,
        "approval": ClientApprovalResponse.model_validate(approval).model_dump(mode="json"),
    }


# ============================================================================
# CLIENT BALANCE
# ============================================================================


@router.post("/send-balance-invoice")
async def send_balance_invoice(
    data: BalanceInvoiceRequest,
    service: PaymentService = Depends(get_payment_service),
):
    return await service.send_balance_invoice(data.token)


@router.get("/get-balance-details", response_model=BalanceDetails)
async def get_balance_details(
    token: Optional[str] = Query(None),
    service: PaymentService = Depends(get_payment_service),
):
    return service.get_balance_details(token)


@router.get("/confirm-balance-payment")
async def confirm_balance_payment(
    token: Optional[str] = Query(None),
    reference: Optional[str] = Query(None),
    service: PaymentService = Depends(get_payment_service),
):
    try:
        params = await service.confirm_balance_payment(token, reference)
    except Exception as e:
        logger.error(f"❌ Error confirming balance payment: {e}", exc_info=True)
        service.db.rollback()
        params = {"type": "error", "error": "update_failed"}
    return result_redirect(params.pop("type"), **params)


# ============================================================================
# CONTRACTOR PAYOUTS
# ============================================================================


@router.get("/get-payment-details", response_model=PaymentDetails)
async def get_payment_details(
    token: Optional[str] = Query(None),
    service: PaymentService = Depends(get_payment_service),
):
    return service.get_payment_details(token)


@router.get("/confirm-contractor-payment")
async def confirm_contractor_payment(
    token: Optional[str] = Query(None),
    reference: Optional[str] = Query(None),
    service: PaymentService = Depends(get_payment_service),
):
    try:
        params = await service.confirm_contractor_payment(token, reference)
    except Exception as e:
        logger.error(f"❌ Error confirming contractor payment: {e}", exc_info=True)
        service.db.rollback()
        params = {"type": "error", "error": "update_failed"}
    return result_redirect(params.pop("type"), **params)


@router.get("/admin/payments/pending")
async def pending_payments(
    admin: AdminUser = Depends(get_current_admin),
    service: PaymentService = Depends(get_payment_service),
):
    return service.pending_payments()
