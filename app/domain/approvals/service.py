"""
Client approval service

Two ways a quote gets approved:
- the client approves from the emailed link (optionally paying the deposit
  through POLi or choosing bank transfer), then the owner picks contractors
- the owner approves directly and the job is broadcast to every active
  contractor, first to accept gets it
"""

import logging
from datetime import datetime
from typing import Optional

from fastapi import HTTPException
from sqlalchemy.orm import Session

from ... import email_service
from ...config import ADMIN_EMAIL, BANK_ACCOUNT_NAME, BANK_ACCOUNT_NUMBER
from ...models import Booking, ClientApproval, generate_payment_token, generate_uuid
from ...services import google_calendar_service
from ...services.notification_service import send_notification
from ...shared.links import accept_job_url, client_approve_page_url, select_contractors_url
from ..bookings.repository import BookingRepository
from ..bookings.summary import calendar_description, describe_job
from ..bookings.workflow import (
    APPROVED,
    CLIENT_APPROVED,
    PENDING,
    SENT_TO_CLIENT,
    SENT_TO_CONTRACTORS,
    InvalidTransition,
    TransitionConflict,
    ensure_transition,
    has_client_approved,
    transition,
    transition_or_409,
)
from ..contractors.repository import ContractorRepository
from .repository import ApprovalRepository
from .schemas import ApprovalDetails, SendToClientRequest

logger = logging.getLogger(__name__)


class ApprovalError(Exception):
    """Approval could not be recorded; `code` is the error shown on the result page"""

    def __init__(self, code: str, message: Optional[str] = None):
        self.code = code
        super().__init__(message or code)


def approval_total(approval: ClientApproval) -> float:
    """Adjusted total when the owner set one, otherwise the booking's quote total"""
    if approval.adjusted_quote_total is not None:
        return approval.adjusted_quote_total
    return approval.booking.quote_total or 0


def balance_due(approval: ClientApproval) -> float:
    return round(approval_total(approval) - (approval.deposit_amount or 0), 2)


def payment_reference(booking: Booking) -> str:
    return booking.invoice_number or f"QUOTE-{booking.quote_number}"


def mark_deposit_paid(approval: ClientApproval, reference: Optional[str] = None) -> None:
    """
    Deposit received. The balance becomes collectable and gets its payment
    token; with nothing left to pay the approval is fully paid. Caller commits.
    """
    approval.payment_status = "deposit_paid"
    approval.deposit_paid_at = datetime.utcnow()
    if reference:
        approval.payment_reference = reference

    if balance_due(approval) <= 0:
        approval.payment_status = "paid"
        approval.balance_status = "paid"
        return

    approval.balance_status = "pending"
    if not approval.balance_payment_token:
        approval.balance_payment_token = generate_payment_token()


class ApprovalService:
    """Service layer for quote approval"""

    def __init__(self, db: Session):
        self.db = db
        self.repo = ApprovalRepository()
        self.booking_repo = BookingRepository()
        self.contractor_repo = ContractorRepository()

    def get_by_token(self, token: Optional[str]) -> ClientApproval:
        if not token:
            raise HTTPException(status_code=400, detail="Missing token")
        approval = self.repo.get_by_token(self.db, token)
        if not approval:
            raise HTTPException(status_code=404, detail="Invalid or expired approval link")
        return approval

    # ------------------------------------------------------------------
    # Sending the quote
    # ------------------------------------------------------------------

    async def send_to_client(self, data: SendToClientRequest) -> dict:
        booking = self.booking_repo.get_by_id(self.db, data.bookingId)
        if not booking:
            raise HTTPException(status_code=404, detail="Booking not found")

        total = data.adjustedAmount if data.adjustedAmount is not None else booking.quote_total
        if not total:
            raise HTTPException(status_code=400, detail="Quote has no total yet")

        approval = self.repo.upsert_for_booking(
            self.db,
            booking.id,
            client_approval_token=generate_uuid(),
            adjusted_quote_total=data.adjustedAmount,
            deposit_amount=data.depositAmount,
            quote_notes=data.notes,
            client_email=booking.client_email,
            sent_to_client_at=datetime.utcnow(),
        )
        if data.invoiceNumber:
            booking.invoice_number = data.invoiceNumber

        transition_or_409(self.db, booking, SENT_TO_CLIENT)
        self.db.commit()
        logger.info(f"✅ Quote {booking.quote_number} sent to client {booking.client_email}")

        await send_notification(
            "quote to client",
            booking.client_email,
            email_service.send_quote_to_client,
            client_name=booking.client_name,
            event_name=booking.event_name,
            event_date=booking.event_date,
            location=booking.location,
            quote_number=booking.quote_number,
            quote_total=total,
            deposit_amount=data.depositAmount,
            notes=data.notes,
            approve_url=client_approve_page_url(approval.client_approval_token),
        )

        return {"success": True, "message": "Quote sent to client", "clientApprovalId": approval.id}

    def get_approval(self, token: Optional[str]) -> ApprovalDetails:
        approval = self.get_by_token(token)
        booking = approval.booking
        total = approval_total(approval)

        deposit_percent = None
        if approval.deposit_amount is not None and total:
            deposit_percent = round(approval.deposit_amount / total * 100)

        return ApprovalDetails(
            bookingId=booking.id,
            clientName=booking.client_name,
            eventName=booking.event_name,
            eventDate=booking.event_date.isoformat() if booking.event_date else None,
            location=booking.location,
            quoteNumber=booking.quote_number,
            quoteTotal=total,
            depositAmount=approval.deposit_amount,
            depositPercent=deposit_percent,
            invoiceNumber=booking.invoice_number,
            notes=approval.quote_notes,
            alreadyApproved=has_client_approved(booking, approval),
            paymentStatus=approval.payment_status,
            readyForApproval=approval.deposit_amount is not None,
        )

    # ------------------------------------------------------------------
    # Client approval
    # ------------------------------------------------------------------

    async def approve(
        self,
        approval: ClientApproval,
        payment_method: Optional[str] = None,
        reference: Optional[str] = None,
    ) -> Booking:
        """
        Record the client's approval and hand the booking to contractor selection.

        Raises:
            ApprovalError: already_approved, or update_failed when the booking
                moved on underneath us
        """
        booking = approval.booking
        if approval.client_approved_at is not None:
            raise ApprovalError("already_approved")
        try:
            ensure_transition(booking.status, CLIENT_APPROVED)
        except InvalidTransition as e:
            if has_client_approved(booking):
                raise ApprovalError("already_approved") from e
            raise ApprovalError("update_failed", str(e)) from e

        created_event_id = None
        if not booking.calendar_event_id:
            created_event_id = await google_calendar_service.create_calendar_event(
                summary=f"{booking.event_name or 'Event'} - AWAITING CONTRACTORS",
                description=calendar_description(booking, "Client approved, awaiting contractor selection"),
                location=booking.location,
                start_date=booking.event_date,
                start_time=booking.event_time,
            )

        now = datetime.utcnow()
        approval.client_approved_at = now
        if payment_method:
            approval.payment_method = payment_method
        if payment_method == "poli":
            mark_deposit_paid(approval, reference)

        try:
            transition(
                self.db,
                booking,
                CLIENT_APPROVED,
                contractor_selection_token=generate_uuid(),
                calendar_event_id=booking.calendar_event_id or created_event_id,
                client_approved_at=now,
            )
        except (InvalidTransition, TransitionConflict) as e:
            self.db.rollback()
            if created_event_id:
                await google_calendar_service.delete_calendar_event(created_event_id)
            raise ApprovalError("update_failed", str(e)) from e

        self.db.commit()
        logger.info(f"✅ Client approved quote {booking.quote_number} ({payment_method or 'link'})")

        await send_notification(
            "client approved",
            ADMIN_EMAIL,
            email_service.send_client_approved_notification,
            event_name=booking.event_name,
            quote_number=booking.quote_number,
            event_date=booking.event_date,
            client_name=booking.client_name,
            amount=approval.deposit_amount,
            payment_method=payment_method,
            select_url=select_contractors_url(booking.contractor_selection_token),
        )

        if payment_method == "bank_transfer" and approval.deposit_amount:
            await send_notification(
                "bank transfer instructions",
                approval.client_email or booking.client_email,
                email_service.send_bank_transfer_instructions,
                client_name=booking.client_name,
                event_name=booking.event_name,
                amount=approval.deposit_amount,
                reference=payment_reference(booking),
                account_name=BANK_ACCOUNT_NAME,
                account_number=BANK_ACCOUNT_NUMBER,
            )

        return booking

    # ------------------------------------------------------------------
    # Owner approval (first-to-accept broadcast)
    # ------------------------------------------------------------------

    async def approve_quote(self, booking: Booking) -> dict:
        """
        Owner approves a pending quote without the client step and offers the
        job to every active contractor.

        Raises:
            ApprovalError: update_failed when the booking left `pending` meanwhile
        """
        event_id = await google_calendar_service.create_calendar_event(
            summary=f"{booking.event_name or 'Event'} - AWAITING CONTRACTOR",
            description=calendar_description(booking, "Awaiting contractor assignment"),
            location=booking.location,
            start_date=booking.event_date,
            start_time=booking.event_time,
        )

        try:
            transition(
                self.db,
                booking,
                APPROVED,
                contractor_token=generate_uuid(),
                calendar_event_id=event_id or booking.calendar_event_id,
            )
        except (InvalidTransition, TransitionConflict) as e:
            self.db.rollback()
            if event_id:
                await google_calendar_service.delete_calendar_event(event_id)
            raise ApprovalError("update_failed", str(e)) from e
        self.db.commit()

        contractors = self.contractor_repo.list_active(self.db)
        job_description = describe_job(booking)
        sent = 0
        for contractor in contractors:
            if await send_notification(
                "job available",
                contractor.email,
                email_service.send_job_available,
                contractor_name=contractor.name,
                event_name=booking.event_name,
                event_date=booking.event_date,
                event_time=booking.event_time,
                location=booking.location,
                job_description=job_description,
                accept_url=accept_job_url(booking.contractor_token, contractor.id),
            ):
                sent += 1

        if contractors:
            try:
                transition(self.db, booking, SENT_TO_CONTRACTORS)
                self.db.commit()
            except TransitionConflict:
                self.db.rollback()
                logger.warning(f"⚠️ Booking {booking.id} changed while offering the job")

        logger.info(f"📊 Job {booking.quote_number} offered to {sent}/{len(contractors)} contractors")
        return {"contractors": sent, "calendar": bool(event_id)}

    def booking_for_owner_approval(self, token: str) -> Booking:
        """Raises ApprovalError invalid_token or already_processed"""
        booking = self.booking_repo.get_by_approval_token(self.db, token)
        if not booking:
            raise ApprovalError("invalid_token")
        if booking.status != PENDING:
            raise ApprovalError("already_processed")
        return booking
