"""Client approval schemas"""

from typing import Literal, Optional

from pydantic import BaseModel, Field, model_validator


class SendToClientRequest(BaseModel):
    bookingId: str
    adjustedAmount: Optional[float] = Field(None, gt=0)
    depositAmount: Optional[float] = Field(None, ge=0)
    invoiceNumber: Optional[str] = None
    notes: Optional[str] = Field(None, max_length=5000)

    @model_validator(mode="after")
    def check_deposit(self):
        if self.adjustedAmount is not None and self.depositAmount is not None:
            if self.depositAmount > self.adjustedAmount:
                raise ValueError("Deposit cannot be more than the quote total")
        return self


class ClientApproveRequest(BaseModel):
    token: str
    paymentMethod: Literal["poli", "bank_transfer"]


class ApprovalDetails(BaseModel):
    """What the client approval page shows"""

    bookingId: str
    clientName: str
    eventName: Optional[str] = None
    eventDate: Optional[str] = None
    location: Optional[str] = None
    quoteNumber: str
    quoteTotal: float
    depositAmount: Optional[float] = None
    depositPercent: Optional[int] = None
    invoiceNumber: Optional[str] = None
    notes: Optional[str] = None
    alreadyApproved: bool
    paymentStatus: str
    readyForApproval: bool
