from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from marquee.db.session import get_db
from marquee.api.deps import verify_payment_callback
from marquee.schemas.payment import PaymentConfirmation, PaymentConfirmationResponse
from marquee.services.lifecycle import BookingLifecycle

router = APIRouter(prefix="/payments", tags=["Payments"])


@router.post(
    "/confirm",
    response_model=PaymentConfirmationResponse,
    dependencies=[Depends(verify_payment_callback)],
)
def confirm_payment(
    body: PaymentConfirmation,
    db: Session = Depends(get_db),
):
    """
    Callback from the payment collaborator. `verified=false` changes nothing;
    repeating a verified callback is harmless.
    """
    booking = BookingLifecycle(db).confirm_payment(
        body.booking_reference,
        verified=body.verified,
        payment_reference=body.payment_reference,
        amount=body.amount,
    )
    return PaymentConfirmationResponse(
        booking_reference=booking.booking_reference,
        status=booking.status,
        paid_at=booking.paid_at,
    )
