"""Inquiry service - Intake of the public forms and quote preparation"""

import logging
from datetime import date
from typing import Optional

from fastapi import HTTPException
from sqlalchemy.orm import Session

from ... import email_service
from ...config import BUSINESS_EMAIL
from ...database import SessionLocal
from ...models import Booking, Inquiry
from ...services.notification_service import send_notification
from ...shared.links import review_quote_url
from ...utils.formatting import format_currency, format_date
from ...utils.sanitization import sanitize_dict, sanitize_string
from ..bookings.repository import BookingRepository
from ..bookings.workflow import PENDING
from .quote import (
    PACKAGES,
    calculate_rental_days,
    content_requirements,
    load_day_rates,
    price_backline,
)
from .repository import InquiryRepository
from .schemas import (
    BacklineInquiry,
    ContactMessage,
    ContractorInquiry,
    FullSystemInquiry,
    InquiryDocumentsUpdate,
)

logger = logging.getLogger(__name__)

STATUS_PENDING_QUOTE = "pending_quote"
STATUS_QUOTE_GENERATED = "quote_generated"
STATUS_SHEETS_READY = "sheets_ready"
STATUS_PDFS_READY = "pdfs_ready"
STATUS_MANUAL = "new"

ROLE_LABELS = {
    "sound_engineer": "Sound Engineer",
    "audio_technician": "Audio Technician",
    "dj": "DJ",
    "other": "Other",
}

EVENT_TYPE_LABELS = {
    "wedding": "Wedding",
    "corporate": "Corporate Event",
    "festival": "Festival",
    "party": "Private Party",
    "other": "Other",
}


def parse_form_date(value: Optional[str]) -> Optional[date]:
    if not value:
        return None
    try:
        return date.fromisoformat(value)
    except ValueError:
        logger.warning(f"⚠️ Ignoring unparseable form date: {value}")
        return None


class InquiryService:
    """Service layer for inquiry intake and processing"""

    def __init__(self, db: Session):
        self.db = db
        self.repo = InquiryRepository()
        self.booking_repo = BookingRepository()

    # ------------------------------------------------------------------
    # Intake
    # ------------------------------------------------------------------

    def _store(self, inquiry_type: str, form: dict) -> Inquiry:
        form = {"type": inquiry_type, **form}
        inquiry = self.repo.create(
            self.db,
            inquiry_type=inquiry_type,
            status=STATUS_PENDING_QUOTE,
            form_data_json=form,
            contact_name=form["contactName"],
            contact_email=form["contactEmail"],
            contact_phone=form.get("contactPhone"),
            tech_rider_storage_path=form.get("techRiderStoragePath"),
        )
        logger.info(f"✅ Stored {inquiry_type} inquiry {inquiry.id} from {inquiry.contact_email}")
        return inquiry

    def submit_fullsystem(self, data: FullSystemInquiry) -> Inquiry:
        return self._store("fullsystem", sanitize_dict(data.model_dump()))

    def submit_backline(self, data: BacklineInquiry) -> Inquiry:
        form = data.model_dump()
        # Equipment names must match the catalogue exactly
        fields = [key for key in form if key != "equipment"]
        return self._store("backline", sanitize_dict(form, fields))

    # ------------------------------------------------------------------
    # Processing (background task)
    # ------------------------------------------------------------------

    async def process_inquiry(self, inquiry_id: str) -> dict:
        """
        Turn a stored inquiry into a pending booking and tell the business.

        Only inquiries still in pending_quote are processed, so a repeated
        call is a no-op.
        """
        inquiry = self.repo.get_by_id(self.db, inquiry_id)
        if not inquiry:
            logger.error(f"❌ Inquiry {inquiry_id} not found for processing")
            return {"success": False, "error": "not_found"}

        if inquiry.status != STATUS_PENDING_QUOTE:
            logger.info(f"ℹ️ Inquiry {inquiry_id} already processed (status: {inquiry.status}), skipping")
            return {"success": True, "skipped": True}

        form = inquiry.form_data_json or {}

        if inquiry.inquiry_type == "backline":
            booking, detail_rows = self._create_backline_booking(inquiry, form)
            to = email_service.tagged_business_email("dryhire")
            label = "Backline"
        else:
            if form.get("package") not in PACKAGES:
                return await self._mark_manual_quote(inquiry, form)
            booking, detail_rows = self._create_fullsystem_booking(inquiry, form)
            to = email_service.tagged_business_email("fullevent")
            label = "Sound System"

        self.repo.set_status(self.db, inquiry, STATUS_QUOTE_GENERATED)

        await send_notification(
            f"{label.lower()} inquiry",
            to,
            email_service.send_inquiry_notification,
            inquiry_label=label,
            reply_to=inquiry.contact_email,
            contact_name=inquiry.contact_name,
            contact_email=inquiry.contact_email,
            contact_phone=inquiry.contact_phone,
            quote_number=booking.quote_number,
            quote_total=booking.quote_total,
            detail_rows=detail_rows,
            review_url=review_quote_url(inquiry.approval_token),
        )

        logger.info(f"✅ Inquiry {inquiry_id} processed: booking {booking.id}, quote {booking.quote_number}")
        return {"success": True, "quoteNumber": booking.quote_number, "bookingId": booking.id}

    def _base_booking_data(self, inquiry: Inquiry, booking_type: str) -> dict:
        return {
            "inquiry_id": inquiry.id,
            "quote_number": self.booking_repo.unique_quote_number(self.db),
            "booking_type": booking_type,
            "status": PENDING,
            "client_name": inquiry.contact_name,
            "client_email": inquiry.contact_email,
            "client_phone": inquiry.contact_phone,
            "approval_token": inquiry.approval_token,
        }

    def _create_backline_booking(self, inquiry: Inquiry, form: dict) -> tuple[Booking, list]:
        start = parse_form_date(form.get("startDate"))
        end = parse_form_date(form.get("endDate"))
        rental_days = calculate_rental_days(start, end)
        equipment = form.get("equipment") or []
        delivery = form.get("deliveryMethod") == "delivery"

        day_rates = load_day_rates(self.db, [item.get("name") for item in equipment if item.get("name")])
        quote = price_backline(equipment, day_rates, rental_days, delivery)

        booking = self.booking_repo.create(
            self.db,
            **self._base_booking_data(inquiry, "backline"),
            event_name=f"Backline Hire - {inquiry.contact_name}",
            event_date=start,
            event_time=None,
            location=form.get("deliveryAddress") if delivery else "Pickup",
            job_description=form.get("additionalNotes"),
            quote_total=quote["total"],
            details_json={
                "type": "backline",
                "equipment": equipment,
                "otherEquipment": form.get("otherEquipment"),
                "rentalPeriod": {"start": form.get("startDate"), "end": form.get("endDate")},
                "deliveryMethod": form.get("deliveryMethod"),
                "deliveryAddress": form.get("deliveryAddress") if delivery else None,
                "lineItems": quote["lineItems"],
                "rentalDays": rental_days,
            },
        )

        equipment_list = "<br/>".join(
            f"{sanitize_string(item.get('name'))}: {item.get('quantity')}" for item in equipment
        )
        detail_rows = [
            ("Equipment", equipment_list or "No standard equipment selected"),
            ("Other equipment", form.get("otherEquipment")),
            ("Rental period", f"{format_date(start, 'short')} to {format_date(end, 'short')}"),
            ("Rental days", str(rental_days)),
            ("Method", "Delivery" if delivery else "Pickup"),
            ("Delivery address", form.get("deliveryAddress") if delivery else None),
            ("Notes", form.get("additionalNotes")),
            ("Subtotal", format_currency(quote["subtotal"])),
            ("GST", format_currency(quote["gst"])),
        ]
        return booking, detail_rows

    def _create_fullsystem_booking(self, inquiry: Inquiry, form: dict) -> tuple[Booking, list]:
        requirements = content_requirements(form)
        start_time = form.get("eventStartTime")
        end_time = form.get("eventEndTime")
        event_time = f"{start_time} - {end_time}" if start_time and end_time else None

        booking = self.booking_repo.create(
            self.db,
            **self._base_booking_data(inquiry, "fullsystem"),
            event_name=form.get("eventName"),
            event_date=parse_form_date(form.get("eventDate")),
            event_time=event_time,
            location=form.get("location"),
            band_names=form.get("bandNames"),
            job_description=form.get("additionalInfo") or form.get("details"),
            # Priced by the owner when the quote is sent to the client
            quote_total=None,
            details_json={
                "type": "fullsystem",
                "package": form.get("package"),
                "eventType": form.get("eventType"),
                "attendance": form.get("attendance"),
                "contentRequirements": requirements,
            },
        )

        detail_rows = [
            ("Package", (form.get("package") or "").title()),
            ("Event", form.get("eventName") or "N/A"),
            ("Type", form.get("eventType") or "N/A"),
            ("Date", format_date(booking.event_date)),
            ("Time", event_time),
            ("Location", form.get("location") or "N/A"),
            ("Attendance", form.get("attendance") or "N/A"),
            ("Content", ", ".join(requirements) if requirements else "None specified"),
        ]
        return booking, detail_rows

    async def _mark_manual_quote(self, inquiry: Inquiry, form: dict) -> dict:
        self.repo.set_status(self.db, inquiry, STATUS_MANUAL)
        logger.info(f"ℹ️ Inquiry {inquiry.id} needs a manual quote (package: {form.get('package')})")

        await send_notification(
            "manual quote",
            email_service.tagged_business_email("fullevent"),
            email_service.send_manual_quote_needed,
            package=form.get("package"),
            event_name=form.get("eventName"),
            contact_name=inquiry.contact_name,
            contact_email=inquiry.contact_email,
        )
        return {"success": True, "manual": True}

    # ------------------------------------------------------------------
    # Generated documents
    # ------------------------------------------------------------------

    def record_documents(self, inquiry_id: str, data: InquiryDocumentsUpdate) -> Inquiry:
        """Store sheet / PDF ids and advance quote_generated -> sheets_ready -> pdfs_ready"""
        inquiry = self.repo.get_by_id(self.db, inquiry_id)
        if not inquiry:
            raise HTTPException(status_code=404, detail="Inquiry not found")

        if not data.quoteSheetId and not data.quotePdfFileId:
            raise HTTPException(status_code=400, detail="No document ids provided")

        if inquiry.status not in (STATUS_QUOTE_GENERATED, STATUS_SHEETS_READY, STATUS_PDFS_READY):
            raise HTTPException(
                status_code=409,
                detail=f"Inquiry is '{inquiry.status}', documents can only be recorded after the quote is generated",
            )

        status = inquiry.status
        fields = {}
        if data.quoteSheetId:
            fields["quote_sheet_id"] = data.quoteSheetId
            if status == STATUS_QUOTE_GENERATED:
                status = STATUS_SHEETS_READY
        if data.quotePdfFileId:
            fields["quote_pdf_file_id"] = data.quotePdfFileId
            status = STATUS_PDFS_READY

        inquiry = self.repo.set_status(self.db, inquiry, status, **fields)

        # Keep the booking's document ids in step so the workflow emails can link them
        for booking in inquiry.bookings:
            if data.quoteSheetId:
                booking.quote_sheet_id = data.quoteSheetId
            if data.quotePdfFileId:
                booking.quote_drive_file_id = data.quotePdfFileId
        self.db.commit()

        logger.info(f"✅ Inquiry {inquiry.id} documents recorded, status {inquiry.status}")
        return inquiry

    # ------------------------------------------------------------------
    # Email-only forms
    # ------------------------------------------------------------------

    async def send_contractor_inquiry(self, data: ContractorInquiry) -> bool:
        form = sanitize_dict(data.model_dump())
        role = form.get("otherRole") if form["roleType"] == "other" else ROLE_LABELS.get(form["roleType"], form["roleType"])
        event_type = EVENT_TYPE_LABELS.get(form.get("eventType") or "", form.get("eventType"))
        times = " - ".join(t for t in (form.get("startTime"), form.get("endTime")) if t)

        return await send_notification(
            "contractor inquiry",
            BUSINESS_EMAIL,
            email_service.send_form_submission,
            subject=f"Contractor Inquiry: {role} for {event_type or 'Event'}",
            title="New Contractor Inquiry",
            rows=[
                ("Role", role),
                ("Event date", form.get("eventDate")),
                ("Time", times or None),
                ("Location", form.get("location")),
                ("Event type", event_type),
                ("Special requirements", form.get("specialRequirements")),
                ("Name", form["contactName"]),
                ("Email", form["contactEmail"]),
                ("Phone", form.get("contactPhone")),
            ],
            reply_to=form["contactEmail"],
        )

    async def send_contact_message(self, data: ContactMessage) -> bool:
        form = sanitize_dict(data.model_dump())
        return await send_notification(
            "contact form",
            BUSINESS_EMAIL,
            email_service.send_form_submission,
            subject=f"Contact Form: {form.get('subject') or 'New Message'}",
            title="New Contact Form Submission",
            rows=[
                ("Name", form["name"]),
                ("Email", form["email"]),
                ("Phone", form.get("phone") or "Not provided"),
                ("Subject", form.get("subject") or "Not provided"),
            ],
            message=form["message"],
            reply_to=form["email"],
        )


async def process_inquiry_task(inquiry_id: str) -> None:
    """Background task entry point; owns its own session"""
    db = SessionLocal()
    try:
        await InquiryService(db).process_inquiry(inquiry_id)
    except Exception as e:
        db.rollback()
        logger.error(f"❌ Failed to process inquiry {inquiry_id}: {e}")
        raise
    finally:
        db.close()
