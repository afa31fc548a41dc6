"""Payment repository - Outstanding contractor payouts and client balances"""

from datetime import date
from typing import Optional

from sqlalchemy import or_
from sqlalchemy.orm import Session, joinedload

from ...models import Booking, ClientApproval, ContractorAssignment


class PaymentRepository:
    """Repository for payment queries"""

    @staticmethod
    def unpaid_contractor_assignments(db: Session, before: Optional[date] = None) -> list[ContractorAssignment]:
        """Accepted assignments not yet paid, for events before `before` (today by default)"""
        before = before or date.today()
        return (
            db.query(ContractorAssignment)
            .join(Booking, ContractorAssignment.booking_id == Booking.id)
            .options(joinedload(ContractorAssignment.contractor), joinedload(ContractorAssignment.booking))
            .filter(
                ContractorAssignment.status == "accepted",
                or_(ContractorAssignment.payment_status.is_(None), ContractorAssignment.payment_status == "pending"),
                Booking.event_date.isnot(None),
                Booking.event_date < before,
            )
            .order_by(Booking.event_date.asc())
            .all()
        )

    @staticmethod
    def pending_balances(db: Session, before: Optional[date] = None) -> list[ClientApproval]:
        """Deposit paid, balance not yet invoiced; optionally only for events before a date"""
        query = (
            db.query(ClientApproval)
            .join(Booking, ClientApproval.booking_id == Booking.id)
            .options(joinedload(ClientApproval.booking))
            .filter(
                ClientApproval.payment_status == "deposit_paid",
                or_(ClientApproval.balance_status.is_(None), ClientApproval.balance_status == "pending"),
            )
        )
        if before is not None:
            query = query.filter(Booking.event_date.isnot(None), Booking.event_date < before)
        return query.order_by(Booking.event_date.asc()).all()
