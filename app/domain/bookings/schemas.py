"""Booking domain schemas - Pydantic models for validation and responses"""

from datetime import date, datetime
from typing import Any, Optional

from pydantic import BaseModel, Field, field_validator

from .workflow import BOOKING_STATUSES


class BookingResponse(BaseModel):
    """Booking row as the admin pages and the review page read it"""

    id: str
    inquiry_id: Optional[str] = None
    quote_number: str
    invoice_number: Optional[str] = None
    booking_type: str
    status: str
    client_name: str
    client_email: str
    client_phone: Optional[str] = None
    event_name: Optional[str] = None
    event_date: Optional[date] = None
    event_time: Optional[str] = None
    call_time: Optional[str] = None
    pack_out_time: Optional[str] = None
    location: Optional[str] = None
    band_names: Optional[str] = None
    call_out_notes: Optional[str] = None
    job_description: Optional[str] = None
    details_json: Optional[dict[str, Any]] = None
    quote_total: Optional[float] = None
    crew_count: Optional[int] = None
    approval_token: Optional[str] = None
    quote_drive_file_id: Optional[str] = None
    quote_sheet_id: Optional[str] = None
    jobsheet_sheet_id: Optional[str] = None
    tech_rider_file_id: Optional[str] = None
    calendar_event_id: Optional[str] = None
    assigned_contractor_id: Optional[str] = None
    approved_at: Optional[datetime] = None
    client_approved_at: Optional[datetime] = None
    contractors_notified_at: Optional[datetime] = None
    assigned_at: Optional[datetime] = None
    confirmed_at: Optional[datetime] = None
    completed_at: Optional[datetime] = None
    next_occurrence_date: Optional[date] = None
    recurrence_reminder_days: Optional[int] = None
    recurrence_reminder_sent_at: Optional[datetime] = None
    created_at: Optional[datetime] = None

    class Config:
        from_attributes = True


class ContractorSummary(BaseModel):
    id: str
    name: str
    email: str
    phone: Optional[str] = None

    class Config:
        from_attributes = True


class AssignmentResponse(BaseModel):
    id: str
    contractor_id: str
    hourly_rate: Optional[float] = None
    estimated_hours: Optional[float] = None
    pay_amount: float
    tasks_description: Optional[str] = None
    equipment_assigned: Optional[list] = None
    status: str
    responded_at: Optional[datetime] = None
    reminder_date: Optional[date] = None
    last_reminder_sent_at: Optional[datetime] = None
    payment_status: Optional[str] = None
    payment_confirmed_at: Optional[datetime] = None
    contractor: Optional[ContractorSummary] = None

    class Config:
        from_attributes = True


class ClientApprovalResponse(BaseModel):
    id: str
    adjusted_quote_total: Optional[float] = None
    deposit_amount: Optional[float] = None
    quote_notes: Optional[str] = None
    sent_to_client_at: Optional[datetime] = None
    client_approved_at: Optional[datetime] = None
    payment_method: Optional[str] = None
    payment_status: str
    payment_reference: Optional[str] = None
    deposit_paid_at: Optional[datetime] = None
    balance_status: str
    balance_invoiced_at: Optional[datetime] = None
    balance_paid_at: Optional[datetime] = None

    class Config:
        from_attributes = True


class EventUpdate(BaseModel):
    """Only the recurrence fields are editable from the event page"""

    next_occurrence_date: Optional[date] = None
    recurrence_reminder_days: Optional[int] = Field(None, ge=1, le=365)


class StatusChange(BaseModel):
    status: str

    @field_validator("status")
    @classmethod
    def check_status(cls, v):
        if v not in BOOKING_STATUSES:
            raise ValueError(f"Unknown status '{v}'")
        return v


class BulkDeleteRequest(BaseModel):
    ids: list[str]


class DuplicateRequest(BaseModel):
    bookingId: str
