"""Approval router - Quote approval by the client and by the owner"""

import logging
from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, Query
from sqlalchemy.orm import Session

from ...auth import AdminUser, get_current_admin
from ...database import get_db
from ...services import poli_service
from ...shared.links import redirect_to
from .schemas import ApprovalDetails, ClientApproveRequest, SendToClientRequest
from .service import ApprovalError, ApprovalService

logger = logging.getLogger(__name__)

router = APIRouter(tags=["Approvals"])


def get_approval_service(db: Session = Depends(get_db)) -> ApprovalService:
    """Dependency injection for ApprovalService"""
    return ApprovalService(db)


@router.post("/send-to-client")
async def send_to_client(
    data: SendToClientRequest,
    admin: AdminUser = Depends(get_current_admin),
    service: ApprovalService = Depends(get_approval_service),
):
    """Email the client their quote with an approval link"""
    return await service.send_to_client(data)


@router.get("/get-approval", response_model=ApprovalDetails)
async def get_approval(
    token: Optional[str] = Query(None),
    service: ApprovalService = Depends(get_approval_service),
):
    return service.get_approval(token)


@router.get("/client-approve")
async def client_approve_link(
    token: Optional[str] = Query(None),
    service: ApprovalService = Depends(get_approval_service),
):
    """Approval straight from the email link; always answers with a redirect"""
    if not token:
        return redirect_to("/client-approval", error="missing_token")

    approval = service.repo.get_by_token(service.db, token)
    if not approval:
        return redirect_to("/client-approval", error="invalid_token")

    try:
        booking = await service.approve(approval)
    except ApprovalError as e:
        logger.warning(f"⚠️ Client approval failed for {approval.booking_id}: {e}")
        return redirect_to("/client-approval", error=e.code)
    except Exception as e:
        logger.error(f"❌ Client approval error: {e}", exc_info=True)
        service.db.rollback()
        return redirect_to("/client-approval", error="server_error")

    return redirect_to("/client-approval", success="true", event=booking.event_name or "")


@router.post("/client-approve")
async def client_approve(
    data: ClientApproveRequest,
    service: ApprovalService = Depends(get_approval_service),
):
    """Approval from the approval page with the client's deposit choice"""
    approval = service.get_by_token(data.token)
    reference = None

    if data.paymentMethod == "poli":
        # Only after POLi reports the deposit as completed
        if not approval.poli_transaction_id:
            raise HTTPException(status_code=400, detail="Payment not completed")
        try:
            transaction = await poli_service.get_transaction(approval.poli_transaction_id)
        except poli_service.PoliError as e:
            raise HTTPException(status_code=502, detail=str(e)) from e
        if transaction.get("TransactionStatusCode") != poli_service.POLI_COMPLETED:
            raise HTTPException(status_code=400, detail="Payment not completed")
        reference = transaction.get("TransactionRefNo") or approval.poli_transaction_id

    try:
        booking = await service.approve(approval, data.paymentMethod, reference=reference)
    except ApprovalError as e:
        status_code = 400 if e.code == "already_approved" else 409
        raise HTTPException(status_code=status_code, detail=str(e)) from e

    return {
        "success": True,
        "bookingId": booking.id,
        "paymentMethod": data.paymentMethod,
        "paymentStatus": approval.payment_status,
    }


@router.get("/approve-quote")
async def approve_quote(
    token: Optional[str] = Query(None),
    service: ApprovalService = Depends(get_approval_service),
):
    """Owner's one-click approval from the inquiry email"""
    if not token:
        return redirect_to("/approve-quote", error="missing_token")

    try:
        booking = service.booking_for_owner_approval(token)
    except ApprovalError as e:
        if e.code == "already_processed":
            booking = service.booking_repo.get_by_approval_token(service.db, token)
            return redirect_to("/approve-quote", error=e.code, status=booking.status)
        return redirect_to("/approve-quote", error=e.code)

    try:
        result = await service.approve_quote(booking)
    except ApprovalError as e:
        logger.warning(f"⚠️ Owner approval failed for {booking.id}: {e}")
        return redirect_to("/approve-quote", error=e.code)

    return redirect_to(
        "/approve-quote",
        success="true",
        quote=booking.quote_number,
        contractors=result["contractors"],
        calendar="created" if result["calendar"] else None,
    )
