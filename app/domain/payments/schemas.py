"""Payment schemas"""

from typing import Optional

from pydantic import BaseModel, Field


class InitiatePoliRequest(BaseModel):
    token: str = Field(..., min_length=1)


class PoliWebhook(BaseModel):
    Token: Optional[str] = None


class BalanceInvoiceRequest(BaseModel):
    token: str = Field(..., min_length=1)


class DepositConfirmation(BaseModel):
    reference: Optional[str] = Field(None, max_length=255)


class PartySummary(BaseModel):
    name: str
    email: str
    phone: Optional[str] = None


class EventSummary(BaseModel):
    name: Optional[str] = None
    date: Optional[str] = None
    quoteNumber: Optional[str] = None


class PaymentDetails(BaseModel):
    """Contractor payout page"""

    id: str
    amount: float
    paymentStatus: str
    contractor: PartySummary
    event: EventSummary


class BalanceDetails(BaseModel):
    """Client balance payment page"""

    id: str
    total: float
    deposit: float
    balance: float
    balanceStatus: str
    client: PartySummary
    event: EventSummary
