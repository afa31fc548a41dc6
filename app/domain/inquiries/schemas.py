"""Inquiry domain schemas - Pydantic models for the public forms"""

from typing import Literal, Optional

from pydantic import BaseModel, Field, field_validator, model_validator

from ...shared.validators import validate_email, validate_iso_date, validate_nz_phone


class ContactFields(BaseModel):
    contactName: str = Field(..., min_length=1, max_length=255)
    contactEmail: str
    contactPhone: Optional[str] = None

    @field_validator("contactEmail")
    @classmethod
    def check_email(cls, v):
        return validate_email(v)

    @field_validator("contactPhone")
    @classmethod
    def check_phone(cls, v):
        if v:
            return validate_nz_phone(v)
        return v


class FullSystemInquiry(ContactFields):
    """Sound system hire (crewed) inquiry"""

    package: Optional[str] = None
    eventType: Optional[str] = None
    eventName: Optional[str] = None
    organization: Optional[str] = None
    eventDate: Optional[str] = None
    eventStartTime: Optional[str] = None
    eventEndTime: Optional[str] = None
    attendance: Optional[str] = None

    playbackFromDevice: bool = False
    hasLiveMusic: bool = False
    needsMic: bool = False
    hasDJ: bool = False
    hasBand: bool = False
    hasSpeeches: bool = False
    bandNames: Optional[str] = None
    needsDJTable: bool = False
    needsCDJs: bool = False
    cdjType: Optional[str] = None
    needsWirelessMic: bool = False
    needsLectern: bool = False
    needsAmbientMusic: bool = False
    additionalInfo: Optional[str] = None

    location: Optional[str] = None
    venueContact: Optional[str] = None
    indoorOutdoor: Optional[str] = None
    wetWeatherPlan: Optional[str] = None
    needsGenerator: bool = False
    powerAccess: Optional[str] = None
    hasStage: bool = False
    stageDetails: Optional[str] = None
    details: Optional[str] = None
    techRiderStoragePath: Optional[str] = None

    @field_validator("eventDate")
    @classmethod
    def check_date(cls, v):
        return validate_iso_date(v)


class EquipmentRequest(BaseModel):
    name: str = Field(..., min_length=1)
    quantity: int = Field(1, ge=1, le=100)


class BacklineInquiry(ContactFields):
    """Backline (dry hire) inquiry"""

    equipment: list[EquipmentRequest] = []
    otherEquipment: Optional[str] = None
    startDate: str
    endDate: str
    deliveryMethod: Literal["pickup", "delivery"] = "pickup"
    deliveryAddress: Optional[str] = None
    additionalNotes: Optional[str] = None
    techRiderStoragePath: Optional[str] = None

    @field_validator("startDate", "endDate")
    @classmethod
    def check_dates(cls, v):
        return validate_iso_date(v)

    @field_validator("deliveryAddress")
    @classmethod
    def strip_address(cls, v):
        return v.strip() if v else v

    @model_validator(mode="after")
    def check_delivery(self):
        if self.deliveryMethod == "delivery" and not self.deliveryAddress:
            raise ValueError("A delivery address is required for delivery")
        if self.endDate < self.startDate:
            raise ValueError("End date must be on or after the start date")
        return self


class ContractorInquiry(ContactFields):
    """Request to hire a single crew member; emailed, not stored"""

    roleType: str
    otherRole: Optional[str] = None
    eventDate: Optional[str] = None
    startTime: Optional[str] = None
    endTime: Optional[str] = None
    location: Optional[str] = None
    eventType: Optional[str] = None
    specialRequirements: Optional[str] = None


class ContactMessage(BaseModel):
    name: str = Field(..., min_length=1, max_length=255)
    email: str
    phone: Optional[str] = None
    subject: Optional[str] = None
    message: str = Field(..., min_length=1, max_length=5000)

    @field_validator("email")
    @classmethod
    def check_email(cls, v):
        return validate_email(v)


class InquiryDocumentsUpdate(BaseModel):
    """Ids produced by the external quote sheet / PDF generators"""

    quoteSheetId: Optional[str] = None
    quotePdfFileId: Optional[str] = None


class InquirySubmitted(BaseModel):
    success: bool = True
    message: str
    inquiryId: Optional[str] = None
