"""
Payment service

Deposits are paid through POLi (or by bank transfer, confirmed by the owner),
balances are invoiced after the event and contractors are paid out by the
owner. Every payment link is token-gated.
"""

import json
import logging
from datetime import date, datetime, timedelta
from typing import Optional

from fastapi import HTTPException
from sqlalchemy.orm import Session

from ... import email_service
from ...config import ADMIN_EMAIL, BALANCE_DUE_DAYS
from ...models import ClientApproval, ContractorAssignment, generate_payment_token
from ...services import poli_service
from ...services.notification_service import send_notification
from ...shared.links import collect_balance_url, contractor_payment_url, pay_balance_url
from ..approvals.repository import ApprovalRepository
from ..approvals.service import (
    ApprovalError,
    ApprovalService,
    approval_total,
    balance_due,
    mark_deposit_paid,
    payment_reference,
)
from ..contractors.repository import ContractorRepository
from .repository import PaymentRepository
from .schemas import BalanceDetails, EventSummary, PartySummary, PaymentDetails

logger = logging.getLogger(__name__)

DEPOSIT_RECEIVED = ("deposit_paid", "paid")


def ensure_payout_token(assignment: ContractorAssignment) -> str:
    if not assignment.payment_token:
        assignment.payment_token = generate_payment_token()
    return assignment.payment_token


def ensure_balance_token(approval: ClientApproval) -> str:
    if not approval.balance_payment_token:
        approval.balance_payment_token = generate_payment_token()
    return approval.balance_payment_token


def _event_summary(booking) -> EventSummary:
    return EventSummary(
        name=booking.event_name,
        date=booking.event_date.isoformat() if booking.event_date else None,
        quoteNumber=booking.quote_number,
    )


class PaymentService:
    """Service layer for deposits, balances and contractor payouts"""

    def __init__(self, db: Session):
        self.db = db
        self.repo = PaymentRepository()
        self.approval_repo = ApprovalRepository()
        self.contractor_repo = ContractorRepository()

    # ------------------------------------------------------------------
    # POLi deposits
    # ------------------------------------------------------------------

    async def initiate_poli(self, token: str) -> dict:
        approval = self.approval_repo.get_by_token(self.db, token)
        if not approval:
            raise HTTPException(status_code=404, detail="Invalid token")
        if approval.client_approved_at is not None:
            raise HTTPException(status_code=400, detail="Already approved")

        deposit = approval.deposit_amount or 0
        if deposit <= 0:
            raise HTTPException(status_code=400, detail="No payment required")
        if not poli_service.is_poli_configured():
            raise HTTPException(status_code=500, detail="Payment not configured")

        booking = approval.booking
        payload = poli_service.build_initiate_payload(
            amount=deposit,
            merchant_reference=payment_reference(booking),
            approval_token=token,
            merchant_data={"approvalId": approval.id, "bookingId": booking.id},
        )
        try:
            result = await poli_service.initiate_transaction(payload)
        except poli_service.PoliError as e:
            raise HTTPException(status_code=500, detail=str(e)) from e

        approval.payment_status = "processing"
        approval.poli_transaction_id = result["transaction_token"]
        approval.payment_method = "poli"
        self.db.commit()

        logger.info(f"💳 POLi payment started for quote {booking.quote_number}")
        return {
            "success": True,
            "navigateUrl": result["navigate_url"],
            "transactionToken": result["transaction_token"],
        }

    @staticmethod
    def _transaction_matches(approval: ClientApproval, transaction: dict) -> bool:
        """The paid transaction was started for this approval and covers its deposit"""
        merchant_data = transaction.get("MerchantData")
        if merchant_data:
            try:
                approval_id = json.loads(merchant_data).get("approvalId")
            except (ValueError, AttributeError):
                return False
            if approval_id != approval.id:
                return False

        amount_paid = transaction.get("AmountPaid")
        if amount_paid is None:
            return True
        try:
            return float(amount_paid) + 0.005 >= (approval.deposit_amount or 0)
        except (TypeError, ValueError):
            return False

    async def _complete_poli(self, approval: ClientApproval, transaction_token: str) -> bool:
        """
        Ask POLi how the transaction ended; on success record the deposit and
        approve the quote. Returns True when the deposit is recorded.
        """
        transaction = await poli_service.get_transaction(transaction_token)
        status_code = transaction.get("TransactionStatusCode")
        if status_code != poli_service.POLI_COMPLETED:
            logger.info(f"ℹ️ POLi transaction {transaction_token} status: {status_code}")
            return False

        if not self._transaction_matches(approval, transaction):
            logger.warning(f"⚠️ POLi transaction {transaction_token} does not belong to booking {approval.booking_id}")
            return False

        reference = transaction.get("TransactionRefNo") or transaction_token
        approval.poli_transaction_id = transaction_token

        if approval.client_approved_at is None:
            try:
                await ApprovalService(self.db).approve(approval, "poli", reference=reference)
            except ApprovalError as e:
                # Booking moved on without us; keep the payment on record
                logger.warning(f"⚠️ POLi payment for {approval.booking_id} could not approve: {e}")
                self.db.rollback()
                mark_deposit_paid(approval, reference)
                approval.poli_transaction_id = transaction_token
                self.db.commit()
        elif approval.payment_status not in DEPOSIT_RECEIVED:
            mark_deposit_paid(approval, reference)
            self.db.commit()

        logger.info(f"✅ POLi deposit received for booking {approval.booking_id} ({reference})")
        return True

    async def poli_return(self, status: Optional[str], token: Optional[str], transaction_token: Optional[str]):
        """Where to send the client after POLi; returns (path, query params)"""
        if not token:
            return "/approve/success", {"method": "error"}

        if status in ("cancelled", "failure"):
            return "/approve", {"token": token, "error": f"payment_{status}"}

        approval = self.approval_repo.get_by_token(self.db, token)
        if not approval:
            return "/approve", {"token": token, "error": "invalid"}

        if approval.client_approved_at is not None and approval.payment_status in DEPOSIT_RECEIVED:
            return "/approve/success", {"method": "poli"}

        if transaction_token and transaction_token != approval.poli_transaction_id:
            logger.warning(f"⚠️ POLi callback for {approval.booking_id} with a foreign transaction token")
            return "/approve", {"token": token, "error": "invalid"}

        transaction_token = transaction_token or approval.poli_transaction_id
        if not transaction_token:
            return "/approve", {"token": token, "error": "no_transaction"}

        if await self._complete_poli(approval, transaction_token):
            return "/approve/success", {"method": "poli"}
        return "/approve", {"token": token, "error": "payment_incomplete"}

    async def poli_webhook(self, transaction_token: Optional[str]) -> None:
        if not transaction_token:
            logger.warning("⚠️ POLi webhook without a transaction token")
            return

        approval = self.approval_repo.get_by_poli_transaction(self.db, transaction_token)
        if not approval:
            logger.warning(f"⚠️ POLi webhook for unknown transaction {transaction_token}")
            return
        if approval.payment_status in DEPOSIT_RECEIVED:
            logger.info(f"ℹ️ POLi webhook: deposit for {approval.booking_id} already recorded")
            return

        await self._complete_poli(approval, transaction_token)

    # ------------------------------------------------------------------
    # Bank transfer deposits
    # ------------------------------------------------------------------

    def confirm_deposit(self, approval_id: str, reference: Optional[str] = None) -> ClientApproval:
        approval = self.approval_repo.get_by_id(self.db, approval_id)
        if not approval:
            raise HTTPException(status_code=404, detail="Approval not found")
        if approval.payment_status in DEPOSIT_RECEIVED:
            raise HTTPException(status_code=400, detail="Deposit already confirmed")

        mark_deposit_paid(approval, reference)
        self.db.commit()
        logger.info(f"✅ Deposit confirmed for booking {approval.booking_id}")
        return approval

    # ------------------------------------------------------------------
    # Client balance
    # ------------------------------------------------------------------

    def _approval_by_balance_token(self, token: Optional[str]) -> ClientApproval:
        if not token:
            raise HTTPException(status_code=400, detail="Missing token")
        approval = self.approval_repo.get_by_balance_token(self.db, token)
        if not approval:
            raise HTTPException(status_code=404, detail="Invalid token")
        return approval

    def get_balance_details(self, token: Optional[str]) -> BalanceDetails:
        approval = self._approval_by_balance_token(token)
        booking = approval.booking
        return BalanceDetails(
            id=approval.id,
            total=approval_total(approval),
            deposit=approval.deposit_amount or 0,
            balance=balance_due(approval),
            balanceStatus=approval.balance_status,
            client=PartySummary(name=booking.client_name, email=booking.client_email, phone=booking.client_phone),
            event=_event_summary(booking),
        )

    async def send_balance_invoice(self, token: str, today: Optional[date] = None) -> dict:
        approval = self._approval_by_balance_token(token)
        if approval.balance_status == "paid":
            raise HTTPException(status_code=400, detail="Balance already paid")

        booking = approval.booking
        approval.balance_status = "invoiced"
        approval.balance_invoiced_at = datetime.utcnow()
        self.db.commit()

        due_date = (today or date.today()) + timedelta(days=BALANCE_DUE_DAYS)
        sent = await send_notification(
            "balance invoice",
            approval.client_email or booking.client_email,
            email_service.send_balance_invoice,
            client_name=booking.client_name,
            event_name=booking.event_name,
            event_date=booking.event_date,
            invoice_reference=payment_reference(booking),
            total=approval_total(approval),
            deposit=approval.deposit_amount or 0,
            balance=balance_due(approval),
            due_date=due_date,
            pay_url=pay_balance_url(approval.balance_payment_token),
        )
        return {"success": True, "emailSent": sent}

    async def confirm_balance_payment(self, token: Optional[str], reference: Optional[str]) -> dict:
        """Owner marks the balance as received; returns result page parameters"""
        if not token:
            return {"type": "error", "error": "missing_token"}

        approval = self.approval_repo.get_by_balance_token(self.db, token)
        if not approval:
            return {"type": "error", "error": "invalid_token"}
        if approval.balance_status == "paid":
            return {"type": "already_done", "message": "This balance has already been paid."}

        balance = balance_due(approval)
        approval.balance_status = "paid"
        approval.balance_paid_at = datetime.utcnow()
        approval.balance_reference = reference
        approval.payment_status = "paid"
        self.db.commit()

        booking = approval.booking
        logger.info(f"✅ Balance paid for quote {booking.quote_number}")

        await send_notification(
            "balance receipt",
            approval.client_email or booking.client_email,
            email_service.send_balance_paid_client,
            client_name=booking.client_name,
            event_name=booking.event_name,
            amount=balance,
            reference=reference,
        )
        await send_notification(
            "balance paid",
            ADMIN_EMAIL,
            email_service.send_balance_paid_business,
            client_name=booking.client_name,
            event_name=booking.event_name,
            quote_number=booking.quote_number,
            amount=balance,
            reference=reference,
        )
        return {"type": "balance_paid", "amount": f"{balance:.0f}"}

    # ------------------------------------------------------------------
    # Contractor payouts
    # ------------------------------------------------------------------

    def get_payment_details(self, token: Optional[str]) -> PaymentDetails:
        if not token:
            raise HTTPException(status_code=400, detail="Missing token")
        assignment = self.contractor_repo.get_assignment_by_payment_token(self.db, token)
        if not assignment:
            raise HTTPException(status_code=404, detail="Assignment not found")

        contractor = assignment.contractor
        return PaymentDetails(
            id=assignment.id,
            amount=assignment.pay_amount or 0,
            paymentStatus=assignment.payment_status or "pending",
            contractor=PartySummary(name=contractor.name, email=contractor.email, phone=contractor.phone),
            event=_event_summary(assignment.booking),
        )

    async def confirm_contractor_payment(self, token: Optional[str], reference: Optional[str]) -> dict:
        if not token:
            return {"type": "error", "error": "missing_token"}

        assignment = self.contractor_repo.get_assignment_by_payment_token(self.db, token)
        if not assignment:
            return {"type": "error", "error": "invalid_token"}

        contractor = assignment.contractor
        if assignment.payment_status == "paid":
            return {"type": "already_done", "message": f"Payment to {contractor.name} was already confirmed."}

        assignment.payment_status = "paid"
        assignment.payment_confirmed_at = datetime.utcnow()
        assignment.payment_reference = reference
        self.db.commit()

        booking = assignment.booking
        logger.info(f"✅ Payment to {contractor.name} confirmed for {booking.quote_number}")

        await send_notification(
            "contractor payment",
            contractor.email,
            email_service.send_contractor_payment_confirmed,
            contractor_name=contractor.name,
            event_name=booking.event_name,
            event_date=booking.event_date,
            amount=assignment.pay_amount or 0,
            reference=reference,
        )
        return {
            "type": "payment_confirmed",
            "name": contractor.name,
            "amount": f"{assignment.pay_amount or 0:.0f}",
        }

    # ------------------------------------------------------------------
    # Admin overview
    # ------------------------------------------------------------------

    def pending_payments(self, today: Optional[date] = None) -> dict:
        """Unpaid contractors for past events and client balances still to collect"""
        today = today or date.today()
        assignments = self.repo.unpaid_contractor_assignments(self.db, before=today)
        approvals = self.repo.pending_balances(self.db)

        for assignment in assignments:
            ensure_payout_token(assignment)
        for approval in approvals:
            ensure_balance_token(approval)
        self.db.commit()

        payments = []
        for a in assignments:
            booking = a.booking
            payments.append(
                {
                    "id": a.id,
                    "type": "contractor",
                    "contractor": {"id": a.contractor.id, "name": a.contractor.name, "email": a.contractor.email},
                    "booking": {
                        "id": booking.id,
                        "event_name": booking.event_name,
                        "event_date": booking.event_date.isoformat(),
                        "quote_number": booking.quote_number,
                        "client_name": booking.client_name,
                    },
                    "amount": a.pay_amount,
                    "paymentStatus": a.payment_status or "pending",
                    "payUrl": contractor_payment_url(a.payment_token),
                }
            )
        for approval in approvals:
            booking = approval.booking
            payments.append(
                {
                    "id": approval.id,
                    "type": "balance",
                    "client": {"name": booking.client_name, "email": booking.client_email},
                    "booking": {
                        "id": booking.id,
                        "event_name": booking.event_name,
                        "event_date": booking.event_date.isoformat() if booking.event_date else None,
                        "quote_number": booking.quote_number,
                    },
                    "amount": balance_due(approval),
                    "paymentStatus": approval.balance_status or "pending",
                    "collectUrl": collect_balance_url(approval.balance_payment_token),
                }
            )

        payments.sort(key=lambda p: p["booking"]["event_date"] or "")
        return {
            "payments": payments,
            "contractorCount": len(assignments),
            "balanceCount": len(approvals),
            "total": len(payments),
        }
