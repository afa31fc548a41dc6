"""Booking service - Admin event management and booking lookups"""

import logging
from datetime import date
from typing import Optional

from fastapi import HTTPException
from sqlalchemy.orm import Session

from ...config import BULK_DELETE_LIMIT, DEFAULT_RECURRENCE_REMINDER_DAYS
from ...models import Booking, generate_uuid
from ...services import google_calendar_service, google_drive_service
from ...services.ics_generator import build_ics_from_booking, ics_filename
from .repository import BookingRepository
from .schemas import (
    AssignmentResponse,
    BookingResponse,
    ClientApprovalResponse,
    EventUpdate,
)
from .workflow import PENDING, STATUS_LABELS, next_action, transition_or_409

logger = logging.getLogger(__name__)


class BookingService:
    """Service layer for booking business logic"""

    def __init__(self, db: Session):
        self.db = db
        self.repo = BookingRepository()

    def get_booking(self, booking_id: str) -> Booking:
        booking = self.repo.get_with_details(self.db, booking_id)
        if not booking:
            raise HTTPException(status_code=404, detail="Booking not found")
        return booking

    # ------------------------------------------------------------------
    # Listing and details
    # ------------------------------------------------------------------

    def list_events(
        self,
        status: Optional[str],
        search: Optional[str],
        client: Optional[str],
        date_from: Optional[date],
        date_to: Optional[date],
        sort: str,
        order: str,
        limit: int,
        offset: int,
    ) -> dict:
        bookings, total = self.repo.search(
            self.db,
            status=status,
            search=search,
            client=client,
            date_from=date_from,
            date_to=date_to,
            sort=sort,
            order=order,
            limit=limit,
            offset=offset,
        )
        return {
            "bookings": [BookingResponse.model_validate(b).model_dump(mode="json") for b in bookings],
            "total": total,
            "limit": limit,
            "offset": offset,
            "clients": self.repo.unique_clients(self.db),
            "statusSummary": self.repo.status_summary(self.db),
        }

    def get_event_details(self, booking_id: str) -> dict:
        booking = self.get_booking(booking_id)
        approval = booking.client_approval

        tech_rider_path = None
        if booking.inquiry is not None:
            tech_rider_path = booking.inquiry.tech_rider_storage_path

        return {
            "booking": BookingResponse.model_validate(booking).model_dump(mode="json"),
            "statusLabel": STATUS_LABELS.get(booking.status, booking.status),
            "nextAction": next_action(booking),
            "assignments": [
                AssignmentResponse.model_validate(a).model_dump(mode="json") for a in booking.assignments
            ],
            "approval": (
                ClientApprovalResponse.model_validate(approval).model_dump(mode="json") if approval else None
            ),
            "links": {
                "quote": google_drive_service.drive_view_link(booking.quote_drive_file_id)
                if booking.quote_drive_file_id
                else None,
                "quoteSheet": f"https://docs.google.com/spreadsheets/d/{booking.quote_sheet_id}"
                if booking.quote_sheet_id
                else None,
                "jobSheet": f"https://docs.google.com/spreadsheets/d/{booking.jobsheet_sheet_id}"
                if booking.jobsheet_sheet_id
                else None,
                "calendar": google_calendar_service.calendar_event_url(booking.calendar_event_id),
                "techRiderPath": tech_rider_path,
            },
        }

    def get_by_approval_token(self, token: Optional[str]) -> Booking:
        if not token:
            raise HTTPException(status_code=400, detail="Missing token")
        booking = self.repo.get_by_approval_token(self.db, token)
        if not booking:
            raise HTTPException(status_code=404, detail="Booking not found")
        return booking

    # ------------------------------------------------------------------
    # Edits
    # ------------------------------------------------------------------

    def update_event(self, booking_id: str, data: EventUpdate) -> Booking:
        booking = self.get_booking(booking_id)

        updates = data.model_dump(exclude_unset=True)
        if not updates:
            raise HTTPException(status_code=400, detail="No valid fields to update")

        if "next_occurrence_date" in updates and updates["next_occurrence_date"] != booking.next_occurrence_date:
            # New occurrence, so its reminder has not been sent yet
            updates["recurrence_reminder_sent_at"] = None

        logger.info(f"🔄 Updating event {booking_id}: {list(updates)}")
        return self.repo.update(self.db, booking, **updates)

    def change_status(self, booking_id: str, target: str) -> Booking:
        booking = self.get_booking(booking_id)
        transition_or_409(self.db, booking, target)
        self.db.commit()
        return booking

    # ------------------------------------------------------------------
    # Deletion
    # ------------------------------------------------------------------

    async def _cleanup_external(self, booking: Booking) -> dict:
        """Remove Drive files and the calendar event; failures are logged and skipped"""
        file_ids = [booking.quote_drive_file_id, booking.tech_rider_file_id]
        file_ids += [a.jobsheet_drive_file_id for a in booking.assignments]

        deleted_files = 0
        for file_id in filter(None, file_ids):
            if await google_drive_service.delete_file(file_id):
                deleted_files += 1
            else:
                logger.warning(f"⚠️ Could not delete Drive file {file_id} for booking {booking.id}")

        calendar_deleted = False
        if booking.calendar_event_id:
            calendar_deleted = await google_calendar_service.delete_calendar_event(booking.calendar_event_id)
            if not calendar_deleted:
                logger.warning(f"⚠️ Could not delete calendar event for booking {booking.id}")

        return {"filesDeleted": deleted_files, "calendarDeleted": calendar_deleted}

    async def delete_event(self, booking_id: str) -> dict:
        booking = self.get_booking(booking_id)
        cleanup = await self._cleanup_external(booking)
        self.repo.delete_many(self.db, [booking])
        logger.info(f"✅ Deleted booking {booking_id} ({booking.quote_number})")
        return {"success": True, "deleted": 1, **cleanup}

    async def bulk_delete(self, booking_ids: list[str]) -> dict:
        if not booking_ids:
            raise HTTPException(status_code=400, detail="No booking IDs provided")
        if len(booking_ids) > BULK_DELETE_LIMIT:
            raise HTTPException(
                status_code=400, detail=f"Cannot delete more than {BULK_DELETE_LIMIT} bookings at once"
            )

        bookings = self.repo.get_by_ids(self.db, booking_ids)
        if not bookings:
            raise HTTPException(status_code=404, detail="No bookings found")

        files_deleted = 0
        for booking in bookings:
            cleanup = await self._cleanup_external(booking)
            files_deleted += cleanup["filesDeleted"]

        deleted = self.repo.delete_many(self.db, bookings)
        logger.info(f"✅ Bulk deleted {deleted} bookings ({files_deleted} Drive files)")
        return {"success": True, "deleted": deleted, "filesDeleted": files_deleted}

    # ------------------------------------------------------------------
    # Duplication
    # ------------------------------------------------------------------

    async def duplicate(self, booking_id: str) -> dict:
        """
        New pending booking for the same client and event.
        Tokens, calendar ids, approvals and payments are never copied.
        """
        original = self.get_booking(booking_id)
        quote_number = self.repo.unique_quote_number(self.db)
        approval_token = generate_uuid()

        new_sheet_id = None
        if original.quote_sheet_id:
            name = f"Quote {quote_number} - {original.event_name or original.client_name}"
            new_sheet_id = await google_drive_service.copy_file(original.quote_sheet_id, name)
            if not new_sheet_id:
                logger.warning("⚠️ Failed to copy quote sheet, proceeding without it")

        booking = self.repo.create(
            self.db,
            inquiry_id=original.inquiry_id,
            quote_number=quote_number,
            booking_type=original.booking_type,
            status=PENDING,
            client_name=original.client_name,
            client_email=original.client_email,
            client_phone=original.client_phone,
            event_name=original.event_name,
            event_date=original.event_date,
            event_time=original.event_time,
            location=original.location,
            details_json=original.details_json,
            quote_total=original.quote_total,
            crew_count=original.crew_count,
            quote_sheet_id=new_sheet_id,
            approval_token=approval_token,
            next_occurrence_date=None,
            recurrence_reminder_days=DEFAULT_RECURRENCE_REMINDER_DAYS,
        )

        logger.info(f"✅ Duplicated booking {original.quote_number} -> {quote_number}")
        return {
            "success": True,
            "newBookingId": booking.id,
            "newQuoteNumber": quote_number,
            "redirectUrl": f"/review-quote?token={approval_token}",
        }

    # ------------------------------------------------------------------
    # Calendar file
    # ------------------------------------------------------------------

    def build_ics(self, token: Optional[str], booking_id: Optional[str]) -> tuple[str, str]:
        """Returns (ics content, download filename)"""
        if not token and not booking_id:
            raise HTTPException(status_code=400, detail="Missing token or booking_id")

        if booking_id:
            booking = self.repo.get_by_id(self.db, booking_id)
        else:
            booking = self.repo.get_by_link_token(self.db, token)

        if not booking:
            raise HTTPException(status_code=404, detail="Booking not found")
        if not booking.event_date:
            raise HTTPException(status_code=400, detail="Booking has no event date")

        return build_ics_from_booking(booking), ics_filename(booking)
