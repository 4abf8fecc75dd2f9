from typing import Optional
from pydantic import BaseModel
from decimal import Decimal
from datetime import datetime


# Payment confirmation callback (POST /payments/confirm)
class PaymentConfirmation(BaseModel):
    booking_reference: str
    verified: bool
    payment_reference: Optional[str] = None
    amount: Optional[Decimal] = None


class PaymentConfirmationResponse(BaseModel):
    booking_reference: str
    status: str
    paid_at: Optional[datetime] = None
