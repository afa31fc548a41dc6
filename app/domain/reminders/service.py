"""
Reminders and scheduled jobs

The job functions here are shared by the /cron endpoints and the arq worker's
daily cron_jobs. Each one takes a session and an optional `today` so the
scheduling logic can be tested without touching the clock.
"""

import logging
from datetime import date, datetime, timedelta
from typing import Optional

from fastapi import HTTPException
from sqlalchemy.orm import Session, joinedload

from ... import email_service
from ...config import (
    ADMIN_EMAIL,
    CONTRACTOR_REMINDER_DAYS,
    DEFAULT_RECURRENCE_REMINDER_DAYS,
    UPCOMING_REMINDER_WINDOW_DAYS,
)
from ...models import Booking, ContractorAssignment
from ...services.notification_service import send_notification
from ...shared.links import admin_events_url, collect_balance_url, contractor_payment_url, ics_url
from ..approvals.service import balance_due
from ..bookings.workflow import advance_completed
from ..payments.repository import PaymentRepository
from ..payments.service import ensure_balance_token, ensure_payout_token

logger = logging.getLogger(__name__)


def reminder_date_for(assignment: ContractorAssignment) -> Optional[date]:
    """Explicit reminder date, otherwise CONTRACTOR_REMINDER_DAYS before the event"""
    if assignment.reminder_date:
        return assignment.reminder_date
    if assignment.booking.event_date is None:
        return None
    return assignment.booking.event_date - timedelta(days=CONTRACTOR_REMINDER_DAYS)


def _accepted_assignments_between(db: Session, start: date, end: date) -> list[ContractorAssignment]:
    return (
        db.query(ContractorAssignment)
        .join(Booking, ContractorAssignment.booking_id == Booking.id)
        .options(joinedload(ContractorAssignment.contractor), joinedload(ContractorAssignment.booking))
        .filter(
            ContractorAssignment.status == "accepted",
            Booking.event_date.isnot(None),
            Booking.event_date >= start,
            Booking.event_date <= end,
        )
        .order_by(Booking.event_date.asc())
        .all()
    )


async def send_contractor_reminder(db: Session, assignment: ContractorAssignment, today: Optional[date] = None) -> bool:
    """Email the reminder and stamp last_reminder_sent_at when it went out"""
    today = today or date.today()
    booking = assignment.booking
    contractor = assignment.contractor

    sent = await send_notification(
        "contractor reminder",
        contractor.email,
        email_service.send_contractor_reminder,
        contractor_name=contractor.name,
        event_name=booking.event_name,
        event_date=booking.event_date,
        call_time=booking.call_time or booking.event_time,
        location=booking.location,
        days_until=(booking.event_date - today).days,
        ics_url=ics_url(booking.id),
    )
    if sent:
        assignment.last_reminder_sent_at = datetime.utcnow()
        db.commit()
    return sent


# ============================================================================
# JOBS
# ============================================================================


async def run_contractor_reminders(db: Session, today: Optional[date] = None) -> dict:
    """Remind accepted contractors whose reminder date is today"""
    today = today or date.today()
    candidates = _accepted_assignments_between(db, today, today + timedelta(days=365))

    due = [
        a
        for a in candidates
        if a.last_reminder_sent_at is None and reminder_date_for(a) == today
    ]
    if not due:
        logger.info("ℹ️ No upcoming events requiring contractor reminders")
        return {"success": True, "reminders": 0}

    sent = 0
    for assignment in due:
        if await send_contractor_reminder(db, assignment, today):
            sent += 1

    logger.info(f"📊 Contractor reminders sent: {sent}/{len(due)}")
    return {"success": True, "reminders": sent, "due": len(due)}


async def run_recurrence_reminders(db: Session, today: Optional[date] = None) -> dict:
    """Tell the owner a recurring event is coming around again"""
    today = today or date.today()
    bookings = (
        db.query(Booking)
        .filter(
            Booking.next_occurrence_date.isnot(None),
            Booking.next_occurrence_date > today,
            Booking.recurrence_reminder_sent_at.is_(None),
        )
        .all()
    )

    due = [
        b
        for b in bookings
        if today >= b.next_occurrence_date - timedelta(days=b.recurrence_reminder_days or DEFAULT_RECURRENCE_REMINDER_DAYS)
    ]

    sent = 0
    for booking in due:
        if await send_notification(
            "recurrence reminder",
            ADMIN_EMAIL,
            email_service.send_recurrence_reminder,
            event_name=booking.event_name,
            client_name=booking.client_name,
            client_email=booking.client_email,
            next_occurrence_date=booking.next_occurrence_date,
            days_until=(booking.next_occurrence_date - today).days,
            admin_url=admin_events_url(booking.id),
        ):
            booking.recurrence_reminder_sent_at = datetime.utcnow()
            db.commit()
            sent += 1

    if sent:
        logger.info(f"📊 Recurring event reminders sent: {sent}")
    return {"success": True, "reminders": sent, "checked": len(bookings)}


async def run_contractor_payment_check(db: Session, today: Optional[date] = None) -> dict:
    """
    Issue payout tokens for unpaid contractors of past events and email the
    owner one grouped summary, plus a summary of client balances to collect.
    """
    today = today or date.today()
    repo = PaymentRepository()

    assignments = repo.unpaid_contractor_assignments(db, before=today)
    balances = repo.pending_balances(db, before=today)
    for assignment in assignments:
        ensure_payout_token(assignment)
    for approval in balances:
        ensure_balance_token(approval)
    db.commit()

    if assignments:
        groups: dict[str, dict] = {}
        for a in assignments:
            booking = a.booking
            group = groups.setdefault(
                booking.id,
                {
                    "event_name": booking.event_name,
                    "event_date": booking.event_date,
                    "quote_number": booking.quote_number,
                    "items": [],
                },
            )
            group["items"].append(
                {
                    "contractor_name": a.contractor.name,
                    "amount": a.pay_amount or 0,
                    "confirm_url": contractor_payment_url(a.payment_token),
                }
            )
        total = sum(a.pay_amount or 0 for a in assignments)
        await send_notification(
            "contractor payments due",
            ADMIN_EMAIL,
            email_service.send_contractor_payments_due,
            groups=list(groups.values()),
            total=total,
        )

    if balances:
        await send_notification(
            "client balances due",
            ADMIN_EMAIL,
            email_service.send_client_balances_due,
            balances=[
                {
                    "client_name": approval.booking.client_name,
                    "event_name": approval.booking.event_name,
                    "event_date": approval.booking.event_date,
                    "quote_number": approval.booking.quote_number,
                    "amount": balance_due(approval),
                    "collect_url": collect_balance_url(approval.balance_payment_token),
                }
                for approval in balances
            ],
        )

    logger.info(f"📊 Payment check: {len(assignments)} contractor payment(s), {len(balances)} balance(s) due")
    return {"success": True, "pending": len(assignments), "balances": len(balances)}


def run_status_automation(db: Session, today: Optional[date] = None) -> dict:
    return {"success": True, **advance_completed(db, today)}


# ============================================================================
# ADMIN
# ============================================================================


class ReminderService:
    """Admin view of contractor reminders"""

    def __init__(self, db: Session):
        self.db = db

    def upcoming(self, today: Optional[date] = None) -> dict:
        today = today or date.today()
        window_end = today + timedelta(days=UPCOMING_REMINDER_WINDOW_DAYS)
        assignments = _accepted_assignments_between(self.db, today, window_end)

        reminders = []
        for a in assignments:
            booking = a.booking
            remind_on = reminder_date_for(a)
            reminders.append(
                {
                    "id": a.id,
                    "contractor": {"id": a.contractor.id, "name": a.contractor.name, "email": a.contractor.email},
                    "booking": {
                        "id": booking.id,
                        "event_name": booking.event_name,
                        "event_date": booking.event_date.isoformat(),
                        "event_time": booking.event_time,
                        "location": booking.location,
                        "quote_number": booking.quote_number,
                        "client_name": booking.client_name,
                        "daysUntil": (booking.event_date - today).days,
                    },
                    "reminderDate": remind_on.isoformat(),
                    "daysUntilReminder": (remind_on - today).days,
                    "reminderDue": today >= remind_on and a.last_reminder_sent_at is None,
                    "reminderSent": a.last_reminder_sent_at is not None,
                    "lastReminderSentAt": a.last_reminder_sent_at.isoformat() if a.last_reminder_sent_at else None,
                }
            )

        reminders.sort(key=lambda r: (not r["reminderDue"], r["daysUntilReminder"]))
        return {"reminders": reminders, "total": len(reminders)}

    async def send_now(self, assignment_id: str) -> dict:
        assignment = (
            self.db.query(ContractorAssignment)
            .options(joinedload(ContractorAssignment.contractor), joinedload(ContractorAssignment.booking))
            .filter(ContractorAssignment.id == assignment_id)
            .first()
        )
        if not assignment:
            raise HTTPException(status_code=404, detail="Assignment not found")
        if assignment.status != "accepted":
            raise HTTPException(status_code=400, detail="Contractor has not accepted this job")
        if assignment.booking.event_date is None:
            raise HTTPException(status_code=400, detail="Booking has no event date")

        if not await send_contractor_reminder(self.db, assignment):
            raise HTTPException(status_code=500, detail="Failed to send reminder")

        return {
            "success": True,
            "lastReminderSentAt": assignment.last_reminder_sent_at.isoformat(),
        }
