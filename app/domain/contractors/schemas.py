"""Contractor domain schemas"""

from datetime import date, datetime
from typing import Optional

from pydantic import BaseModel, Field, field_validator, model_validator

from ...shared.validators import validate_email, validate_nz_phone


class ContractorCreate(BaseModel):
    name: str = Field(..., min_length=1, max_length=255)
    email: str
    phone: Optional[str] = None
    default_hourly_rate: Optional[float] = Field(None, ge=0)
    active: bool = True

    @field_validator("email")
    @classmethod
    def check_email(cls, v):
        return validate_email(v)

    @field_validator("phone")
    @classmethod
    def check_phone(cls, v):
        return validate_nz_phone(v) if v else v


class ContractorUpdate(BaseModel):
    name: Optional[str] = Field(None, min_length=1, max_length=255)
    email: Optional[str] = None
    phone: Optional[str] = None
    default_hourly_rate: Optional[float] = Field(None, ge=0)
    active: Optional[bool] = None

    @field_validator("name", "email", "active", mode="before")
    @classmethod
    def not_null(cls, v):
        if v is None:
            raise ValueError("may be omitted but not null")
        return v

    @field_validator("email")
    @classmethod
    def check_email(cls, v):
        return validate_email(v) if v is not None else v

    @field_validator("phone")
    @classmethod
    def check_phone(cls, v):
        return validate_nz_phone(v) if v else v


class ContractorResponse(BaseModel):
    id: str
    name: str
    email: str
    phone: Optional[str] = None
    active: bool
    default_hourly_rate: Optional[float] = None
    created_at: Optional[datetime] = None

    class Config:
        from_attributes = True


class AssignmentInput(BaseModel):
    """One contractor picked for a booking on the selection page"""

    contractor_id: str
    hourly_rate: Optional[float] = Field(None, ge=0)
    estimated_hours: Optional[float] = Field(None, ge=0)
    pay_amount: Optional[float] = Field(None, ge=0)
    tasks_description: Optional[str] = Field(None, max_length=2000)
    equipment_assigned: Optional[list[str]] = None

    @model_validator(mode="after")
    def default_pay(self):
        # Pay defaults to rate x hours
        if self.pay_amount is None:
            if self.hourly_rate is not None and self.estimated_hours is not None:
                self.pay_amount = round(self.hourly_rate * self.estimated_hours, 2)
            else:
                self.pay_amount = 0
        return self


class SelectContractorsRequest(BaseModel):
    token: str
    bookingId: str
    assignments: list[AssignmentInput] = Field(..., min_length=1)

    @field_validator("assignments")
    @classmethod
    def unique_contractors(cls, v):
        ids = [a.contractor_id for a in v]
        if len(ids) != len(set(ids)):
            raise ValueError("Each contractor can only be assigned once")
        return v


class NotifyContractorsRequest(BaseModel):
    token: str
    bookingId: str


class AssignmentUpdate(BaseModel):
    """Only the reminder date is editable from the admin pages"""

    reminder_date: Optional[date] = None
