"""Contractor service - Crew selection, job offers and responses"""

import logging
from datetime import datetime
from typing import Optional

from fastapi import HTTPException
from sqlalchemy.orm import Session

from ... import email_service
from ...config import ADMIN_EMAIL
from ...email_templates import pay_breakdown
from ...models import Booking, Contractor, ContractorAssignment, generate_uuid
from ...services import google_calendar_service, google_drive_service
from ...services.notification_service import send_notification
from ...shared.links import (
    admin_events_url,
    contractor_respond_url,
    ics_url,
    select_contractors_url,
)
from ..bookings.repository import BookingRepository
from ..bookings.schemas import AssignmentResponse, BookingResponse
from ..bookings.summary import calendar_description, describe_job
from ..bookings.workflow import (
    ASSIGNED,
    CANCELLED,
    CONFIRMED,
    CONTRACTOR_SELECTION,
    CONTRACTORS_NOTIFIED,
    InvalidTransition,
    TransitionConflict,
    transition,
    transition_or_409,
)
from .repository import ContractorRepository
from .schemas import (
    AssignmentUpdate,
    ContractorCreate,
    ContractorResponse,
    ContractorUpdate,
    NotifyContractorsRequest,
    SelectContractorsRequest,
)

logger = logging.getLogger(__name__)

ANSWERED_STATUSES = ("accepted", "declined")


def booking_closed_error(booking: Booking) -> str:
    return "booking_cancelled" if booking.status == CANCELLED else "booking_closed"


class ContractorService:
    """Service layer for contractor business logic"""

    def __init__(self, db: Session):
        self.db = db
        self.repo = ContractorRepository()
        self.booking_repo = BookingRepository()

    # ------------------------------------------------------------------
    # Directory
    # ------------------------------------------------------------------

    def list_contractors(self, active_only: bool = False) -> list[Contractor]:
        return self.repo.list_all(self.db, active_only=active_only)

    def create_contractor(self, data: ContractorCreate) -> Contractor:
        if self.repo.get_by_email(self.db, data.email):
            raise HTTPException(status_code=409, detail="A contractor with this email already exists")
        contractor = self.repo.create(self.db, **data.model_dump())
        logger.info(f"✅ Contractor added: {contractor.name}")
        return contractor

    def update_contractor(self, contractor_id: str, data: ContractorUpdate) -> Contractor:
        contractor = self.repo.get_by_id(self.db, contractor_id)
        if not contractor:
            raise HTTPException(status_code=404, detail="Contractor not found")

        updates = data.model_dump(exclude_unset=True)
        if not updates:
            raise HTTPException(status_code=400, detail="No valid fields to update")

        if "email" in updates and updates["email"] != contractor.email:
            if self.repo.get_by_email(self.db, updates["email"]):
                raise HTTPException(status_code=409, detail="A contractor with this email already exists")

        return self.repo.update(self.db, contractor, **updates)

    def update_assignment(self, assignment_id: str, data: AssignmentUpdate) -> ContractorAssignment:
        assignment = self.repo.get_assignment(self.db, assignment_id)
        if not assignment:
            raise HTTPException(status_code=404, detail="Assignment not found")

        updates = data.model_dump(exclude_unset=True)
        if not updates:
            raise HTTPException(status_code=400, detail="No valid fields to update")

        assignment.reminder_date = updates["reminder_date"]
        self.db.commit()
        self.db.refresh(assignment)
        return assignment

    # ------------------------------------------------------------------
    # Selection
    # ------------------------------------------------------------------

    def _booking_for_selection(self, token: Optional[str]) -> Booking:
        if not token:
            raise HTTPException(status_code=400, detail="Missing token")
        booking = self.booking_repo.get_for_selection(self.db, token)
        if not booking:
            raise HTTPException(status_code=404, detail="Booking not found")
        return booking

    def _verified_booking(self, token: str, booking_id: str) -> Booking:
        booking = self.booking_repo.get_by_id(self.db, booking_id)
        if not booking:
            raise HTTPException(status_code=404, detail="Booking not found")
        if token not in (booking.contractor_selection_token, booking.approval_token):
            raise HTTPException(status_code=403, detail="Invalid token")
        return booking

    def get_selection(self, token: Optional[str]) -> dict:
        booking = self._booking_for_selection(token)
        contractors = self.repo.list_active(self.db)
        return {
            "booking": BookingResponse.model_validate(booking).model_dump(mode="json"),
            "contractors": [ContractorResponse.model_validate(c).model_dump(mode="json") for c in contractors],
            "existingAssignments": [
                AssignmentResponse.model_validate(a).model_dump(mode="json") for a in booking.assignments
            ],
        }

    async def save_selection(self, data: SelectContractorsRequest) -> dict:
        booking = self._verified_booking(data.token, data.bookingId)

        for item in data.assignments:
            contractor = self.repo.get_by_id(self.db, item.contractor_id)
            if not contractor or not contractor.active:
                raise HTTPException(status_code=400, detail=f"Unknown contractor {item.contractor_id}")

        rows = self.repo.replace_assignments(
            self.db,
            booking,
            [{**item.model_dump(), "status": "pending"} for item in data.assignments],
        )
        transition_or_409(self.db, booking, CONTRACTOR_SELECTION)
        self.db.commit()

        logger.info(f"✅ {len(rows)} contractor(s) selected for booking {booking.quote_number}")

        # Nobody left to ask: the kept crew has already accepted
        if rows and all(row.status == "accepted" for row in rows):
            transition_or_409(self.db, booking, CONTRACTORS_NOTIFIED)
            self.db.commit()
            await self._confirm_crew(booking.id)

        return {"success": True, "assignmentCount": len(rows), "status": booking.status}

    # ------------------------------------------------------------------
    # Job offers
    # ------------------------------------------------------------------

    async def notify(self, data: NotifyContractorsRequest) -> dict:
        booking = self._verified_booking(data.token, data.bookingId)

        pending = self.repo.pending_assignments(self.db, booking.id)
        if not pending:
            raise HTTPException(status_code=400, detail="No pending assignments to notify")

        now = datetime.utcnow()
        for assignment in pending:
            assignment.assignment_token = generate_uuid()
            assignment.status = "notified"
            assignment.notified_at = now

        transition_or_409(self.db, booking, CONTRACTORS_NOTIFIED)
        self.db.commit()

        sent = 0
        for assignment in pending:
            contractor = assignment.contractor
            if await send_notification(
                "job offer",
                contractor.email,
                email_service.send_job_offer,
                contractor_name=contractor.name,
                event_name=booking.event_name,
                event_date=booking.event_date,
                call_time=booking.call_time or booking.event_time,
                location=booking.location,
                pay=pay_breakdown(assignment.hourly_rate, assignment.estimated_hours, assignment.pay_amount),
                tasks_description=assignment.tasks_description,
                equipment=assignment.equipment_assigned,
                accept_url=contractor_respond_url(assignment.assignment_token, "accept"),
                decline_url=contractor_respond_url(assignment.assignment_token, "decline"),
                ics_url=ics_url(booking.id),
            ):
                sent += 1

        logger.info(f"📊 Job offers for {booking.quote_number}: {sent}/{len(pending)} emails sent")
        return {"success": True, "notified": len(pending), "emailsSent": sent}

    async def respond(self, token: Optional[str], action: Optional[str]) -> dict:
        """
        Contractor answers a job offer. Returns the query parameters for the
        result page redirect.
        """
        if not token or action not in ("accept", "decline"):
            return {"type": "error", "error": "invalid_params"}

        assignment = self.repo.get_assignment_by_token(self.db, token)
        if not assignment:
            return {"type": "error", "error": "invalid_token"}

        already_done = {"type": "already_done", "message": "You have already responded to this job offer."}
        if assignment.status in ANSWERED_STATUSES:
            return already_done

        if assignment.booking.status not in (CONTRACTOR_SELECTION, CONTRACTORS_NOTIFIED):
            logger.info(f"ℹ️ Response to job {assignment.booking.quote_number} after it was {assignment.booking.status}")
            return {"type": "error", "error": booking_closed_error(assignment.booking)}

        new_status = "accepted" if action == "accept" else "declined"
        if not self.repo.claim_response(self.db, assignment, new_status, responded_at=datetime.utcnow()):
            self.db.rollback()
            return already_done
        self.db.commit()

        booking = assignment.booking
        contractor = assignment.contractor
        logger.info(f"✅ {contractor.name} {new_status} job {booking.quote_number}")

        if action == "decline":
            await send_notification(
                "contractor declined",
                ADMIN_EMAIL,
                email_service.send_contractor_declined,
                contractor_name=contractor.name,
                event_name=booking.event_name,
                event_date=booking.event_date,
                quote_number=booking.quote_number,
                reselect_url=select_contractors_url(booking.contractor_selection_token or booking.approval_token),
            )
            return {"type": "contractor_declined"}

        quote_link = None
        if booking.quote_drive_file_id:
            quote_link = await google_drive_service.share_file_with_link(booking.quote_drive_file_id)
        jobsheet_link = None
        if assignment.jobsheet_drive_file_id:
            jobsheet_link = await google_drive_service.share_file_with_link(assignment.jobsheet_drive_file_id)

        statuses = self.repo.booking_assignment_statuses(self.db, booking.id)
        if statuses and all(status == "accepted" for status in statuses):
            await self._confirm_crew(booking.id)

        await send_notification(
            "contractor booked",
            contractor.email,
            email_service.send_contractor_booked,
            contractor_name=contractor.name,
            event_name=booking.event_name,
            event_date=booking.event_date,
            call_time=booking.call_time or booking.event_time,
            location=booking.location,
            pay=pay_breakdown(assignment.hourly_rate, assignment.estimated_hours, assignment.pay_amount),
            ics_url=ics_url(booking.id),
            jobsheet_url=jobsheet_link,
            quote_url=quote_link,
        )

        return {
            "type": "contractor_booked",
            "event": booking.event_name or "Event",
            "amount": f"{assignment.pay_amount or 0:.0f}",
        }

    async def _confirm_crew(self, booking_id: str) -> None:
        """Every assignment accepted: lock the booking and move it to confirmed"""
        booking = self.repo.lock_booking(self.db, booking_id)
        if booking is None or booking.status != CONTRACTORS_NOTIFIED:
            self.db.rollback()
            return

        try:
            transition(self.db, booking, CONFIRMED)
        except (InvalidTransition, TransitionConflict) as e:
            self.db.rollback()
            logger.warning(f"⚠️ Could not confirm booking {booking_id}: {e}")
            return
        self.db.commit()

        accepted = [a for a in booking.assignments if a.status == "accepted"]
        names = [a.contractor.name for a in accepted]
        crew = ", ".join(names)

        if booking.calendar_event_id:
            await google_calendar_service.update_calendar_event(
                booking.calendar_event_id,
                summary=f"{booking.event_name or 'Event'} - {crew}",
                description=calendar_description(booking, "Crew confirmed", extra=["", f"Contractors: {crew}"]),
            )

        await send_notification(
            "all contractors confirmed",
            ADMIN_EMAIL,
            email_service.send_all_contractors_confirmed,
            event_name=booking.event_name,
            event_date=booking.event_date,
            quote_number=booking.quote_number,
            contractor_names=[
                f"{a.contractor.name} - ${a.pay_amount:g} - {a.tasks_description or 'General'}" for a in accepted
            ],
            admin_url=admin_events_url(booking.id),
        )

    # ------------------------------------------------------------------
    # First-to-accept broadcast
    # ------------------------------------------------------------------

    async def accept_job(self, token: Optional[str], contractor_id: Optional[str]) -> dict:
        """
        A contractor claims a broadcast job. The first conditional update from
        sent_to_contractors to assigned wins. Returns the redirect parameters.
        """
        if not token or not contractor_id:
            return {"error": "missing_params"}

        booking = self.booking_repo.get_by_contractor_token(self.db, token)
        if not booking:
            return {"error": "invalid_token"}

        if booking.status == CANCELLED:
            return {"error": "booking_cancelled"}

        if booking.status == ASSIGNED or booking.assigned_contractor_id:
            if booking.assigned_contractor_id == contractor_id:
                return {"status": "already_yours"}
            return {"error": "already_taken"}

        contractor = self.repo.get_by_id(self.db, contractor_id)
        if not contractor or not contractor.active:
            return {"error": "invalid_contractor"}

        try:
            transition(self.db, booking, ASSIGNED, assigned_contractor_id=contractor.id)
        except (InvalidTransition, TransitionConflict):
            self.db.rollback()
            self.db.refresh(booking)
            if booking.status == CANCELLED:
                return {"error": "booking_cancelled"}
            if booking.assigned_contractor_id == contractor.id:
                return {"status": "already_yours"}
            logger.info(f"ℹ️ {contractor.name} was too late for job {booking.quote_number}")
            return {"error": "already_taken"}
        self.db.commit()
        logger.info(f"✅ Job {booking.quote_number} assigned to {contractor.name}")

        await self._announce_assignment(booking, contractor)
        return {"success": "true", "event": booking.event_name or "Event"}

    async def _announce_assignment(self, booking: Booking, contractor: Contractor) -> None:
        if booking.calendar_event_id:
            await google_calendar_service.update_calendar_event(
                booking.calendar_event_id,
                summary=f"{booking.event_name or 'Event'} - {contractor.name}",
                description=calendar_description(
                    booking,
                    f"Assigned to {contractor.name}",
                    extra=["", f"Contractor: {contractor.name} ({contractor.email})"],
                ),
            )

        await send_notification(
            "job assigned",
            ADMIN_EMAIL,
            email_service.send_job_assigned_business,
            contractor_name=contractor.name,
            contractor_email=contractor.email,
            event_name=booking.event_name,
            event_date=booking.event_date,
            quote_number=booking.quote_number,
            calendar_url=google_calendar_service.calendar_event_url(booking.calendar_event_id),
        )

        others = [c for c in self.repo.list_active(self.db) if c.id != contractor.id]
        for other in others:
            await send_notification(
                "job filled",
                other.email,
                email_service.send_job_filled,
                contractor_name=other.name,
                event_name=booking.event_name,
                event_date=booking.event_date,
            )

        await send_notification(
            "job assigned",
            contractor.email,
            email_service.send_job_assigned_contractor,
            contractor_name=contractor.name,
            event_name=booking.event_name,
            event_date=booking.event_date,
            event_time=booking.event_time,
            location=booking.location,
            client_name=booking.client_name,
            client_phone=booking.client_phone,
            job_description=describe_job(booking),
            ics_url=ics_url(booking.id),
        )

    def assignment_response(self, assignment: ContractorAssignment) -> dict:
        return AssignmentResponse.model_validate(assignment).model_dump(mode="json")
