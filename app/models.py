import random
import secrets
import uuid
from datetime import date
from typing import Optional

from sqlalchemy import (
    JSON,
    Boolean,
    Column,
    Date,
    DateTime,
    Float,
    ForeignKey,
    Integer,
    String,
    Text,
    UniqueConstraint,
)
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func

from .database import Base


def generate_uuid():
    """Generate a UUID string for primary keys and link tokens"""
    return str(uuid.uuid4())


def generate_payment_token():
    """64-char hex token used for payment confirmation links"""
    return secrets.token_hex(32)


def generate_quote_number(today: Optional[date] = None) -> str:
    """`<year>-<4 random digits>`, e.g. 2026-4821"""
    year = (today or date.today()).year
    return f"{year}-{random.randint(1000, 9999)}"


class Inquiry(Base):
    __tablename__ = "inquiries"

    id = Column(String(36), primary_key=True, default=generate_uuid)
    inquiry_type = Column(String(20), nullable=False, default="fullsystem")  # fullsystem, backline
    # pending_quote -> quote_generated -> sheets_ready -> pdfs_ready, or new (manual quote)
    status = Column(String(30), nullable=False, default="pending_quote", index=True)
    form_data_json = Column(JSON, nullable=False, default=dict)
    contact_name = Column(String(255), nullable=False)
    contact_email = Column(String(255), nullable=False)
    contact_phone = Column(String(50), nullable=True)
    approval_token = Column(String(36), unique=True, nullable=False, default=generate_uuid)
    tech_rider_storage_path = Column(String(500), nullable=True)
    quote_sheet_id = Column(String(255), nullable=True)
    quote_pdf_file_id = Column(String(255), nullable=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now())

    bookings = relationship("Booking", back_populates="inquiry")


class Booking(Base):
    __tablename__ = "bookings"

    id = Column(String(36), primary_key=True, default=generate_uuid)
    inquiry_id = Column(String(36), ForeignKey("inquiries.id"), nullable=True)
    quote_number = Column(String(20), nullable=False, index=True)
    invoice_number = Column(String(50), nullable=True)
    booking_type = Column(String(20), nullable=False, default="fullsystem")
    # See domain/bookings/workflow.py for the allowed transitions
    status = Column(String(30), nullable=False, default="pending", index=True)

    client_name = Column(String(255), nullable=False)
    client_email = Column(String(255), nullable=False)
    client_phone = Column(String(50), nullable=True)

    event_name = Column(String(255), nullable=True)
    event_date = Column(Date, nullable=True, index=True)
    event_time = Column(String(50), nullable=True)
    call_time = Column(String(20), nullable=True)
    pack_out_time = Column(String(20), nullable=True)
    location = Column(String(500), nullable=True)
    band_names = Column(Text, nullable=True)
    call_out_notes = Column(Text, nullable=True)
    job_description = Column(Text, nullable=True)
    details_json = Column(JSON, nullable=True)
    quote_total = Column(Float, nullable=True)
    crew_count = Column(Integer, nullable=True)

    # Link tokens
    approval_token = Column(String(36), unique=True, nullable=False, default=generate_uuid)
    contractor_token = Column(String(36), unique=True, nullable=True)
    contractor_selection_token = Column(String(36), unique=True, nullable=True)

    # Google Drive / Sheets / Calendar ids
    quote_drive_file_id = Column(String(255), nullable=True)
    quote_sheet_id = Column(String(255), nullable=True)
    jobsheet_sheet_id = Column(String(255), nullable=True)
    tech_rider_file_id = Column(String(255), nullable=True)
    calendar_event_id = Column(String(255), nullable=True)

    assigned_contractor_id = Column(String(36), ForeignKey("contractors.id"), nullable=True)

    # Lifecycle timestamps
    approved_at = Column(DateTime(timezone=True), nullable=True)
    client_approved_at = Column(DateTime(timezone=True), nullable=True)
    contractors_selected_at = Column(DateTime(timezone=True), nullable=True)
    contractors_notified_at = Column(DateTime(timezone=True), nullable=True)
    assigned_at = Column(DateTime(timezone=True), nullable=True)
    confirmed_at = Column(DateTime(timezone=True), nullable=True)
    completed_at = Column(DateTime(timezone=True), nullable=True)
    cancelled_at = Column(DateTime(timezone=True), nullable=True)

    # Recurring events (annual gigs etc.)
    next_occurrence_date = Column(Date, nullable=True)
    recurrence_reminder_days = Column(Integer, nullable=True)
    recurrence_reminder_sent_at = Column(DateTime(timezone=True), nullable=True)

    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now())

    inquiry = relationship("Inquiry", back_populates="bookings")
    assigned_contractor = relationship("Contractor", foreign_keys=[assigned_contractor_id])
    assignments = relationship(
        "ContractorAssignment",
        back_populates="booking",
        cascade="all, delete-orphan",
        order_by="ContractorAssignment.created_at",
    )
    client_approval = relationship(
        "ClientApproval",
        back_populates="booking",
        uselist=False,
        cascade="all, delete-orphan",
    )


class Contractor(Base):
    __tablename__ = "contractors"

    id = Column(String(36), primary_key=True, default=generate_uuid)
    name = Column(String(255), nullable=False)
    email = Column(String(255), unique=True, nullable=False)
    phone = Column(String(50), nullable=True)
    active = Column(Boolean, default=True, nullable=False)
    default_hourly_rate = Column(Float, nullable=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now())

    assignments = relationship("ContractorAssignment", back_populates="contractor")


class ContractorAssignment(Base):
    __tablename__ = "booking_contractor_assignments"
    __table_args__ = (
        UniqueConstraint("booking_id", "contractor_id", name="uq_assignment_booking_contractor"),
    )

    id = Column(String(36), primary_key=True, default=generate_uuid)
    booking_id = Column(
        String(36), ForeignKey("bookings.id", ondelete="CASCADE"), nullable=False, index=True
    )
    contractor_id = Column(String(36), ForeignKey("contractors.id"), nullable=False, index=True)

    hourly_rate = Column(Float, nullable=True)
    estimated_hours = Column(Float, nullable=True)
    pay_amount = Column(Float, nullable=False, default=0)
    tasks_description = Column(Text, nullable=True)
    equipment_assigned = Column(JSON, nullable=True)

    status = Column(String(20), nullable=False, default="pending")  # pending, notified, accepted, declined
    assignment_token = Column(String(36), unique=True, nullable=True)
    notified_at = Column(DateTime(timezone=True), nullable=True)
    responded_at = Column(DateTime(timezone=True), nullable=True)
    jobsheet_drive_file_id = Column(String(255), nullable=True)

    reminder_date = Column(Date, nullable=True)
    last_reminder_sent_at = Column(DateTime(timezone=True), nullable=True)

    payment_status = Column(String(20), nullable=True, default="pending")  # pending, paid
    payment_token = Column(String(64), unique=True, nullable=True)
    payment_confirmed_at = Column(DateTime(timezone=True), nullable=True)
    payment_reference = Column(String(255), nullable=True)

    created_at = Column(DateTime(timezone=True), server_default=func.now())

    booking = relationship("Booking", back_populates="assignments")
    contractor = relationship("Contractor", back_populates="assignments")


class ClientApproval(Base):
    __tablename__ = "client_approvals"

    id = Column(String(36), primary_key=True, default=generate_uuid)
    booking_id = Column(
        String(36), ForeignKey("bookings.id", ondelete="CASCADE"), unique=True, nullable=False
    )
    client_approval_token = Column(String(36), unique=True, nullable=False, default=generate_uuid)
    adjusted_quote_total = Column(Float, nullable=True)
    deposit_amount = Column(Float, nullable=True)
    quote_notes = Column(Text, nullable=True)
    client_email = Column(String(255), nullable=True)
    sent_to_client_at = Column(DateTime(timezone=True), nullable=True)
    client_approved_at = Column(DateTime(timezone=True), nullable=True)

    payment_method = Column(String(20), nullable=True)  # poli, bank_transfer
    # pending -> processing -> deposit_paid | paid
    payment_status = Column(String(20), nullable=False, default="pending")
    poli_transaction_id = Column(String(255), nullable=True)
    payment_reference = Column(String(255), nullable=True)
    deposit_paid_at = Column(DateTime(timezone=True), nullable=True)

    # not_due -> pending -> invoiced -> paid
    balance_status = Column(String(20), nullable=False, default="not_due")
    balance_payment_token = Column(String(64), unique=True, nullable=True)
    balance_invoiced_at = Column(DateTime(timezone=True), nullable=True)
    balance_paid_at = Column(DateTime(timezone=True), nullable=True)
    balance_reference = Column(String(255), nullable=True)

    created_at = Column(DateTime(timezone=True), server_default=func.now())

    booking = relationship("Booking", back_populates="client_approval")


class HireItem(Base):
    """Backline catalogue used to price dry-hire quotes"""

    __tablename__ = "hire_items"

    id = Column(Integer, primary_key=True, autoincrement=True)
    name = Column(String(255), unique=True, nullable=False, index=True)
    category = Column(String(100), nullable=True)
    hire_rate_per_day = Column(Float, nullable=False, default=0)
    notes = Column(Text, nullable=True)
    active = Column(Boolean, default=True, nullable=False)
