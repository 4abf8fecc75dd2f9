from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from marquee.db.session import get_db
from marquee.api.deps import StaffPrincipal, require_roles
from marquee.api.v1.public.bookings import serialize_booking
from marquee.schemas.booking import Booking as BookingSchema
from marquee.services.lifecycle import BookingLifecycle

router = APIRouter(prefix="/box-office", tags=["Staff - Box Office"])


@router.post("/bookings/{reference}/activate", response_model=BookingSchema)
def activate_online_ticket(
    reference: str,
    db: Session = Depends(get_db),
    staff: StaffPrincipal = Depends(require_roles("box_office")),
):
    """
    Hand over a paid online ticket at the counter (paid -> confirmed).
    Repeating the call for an activated ticket returns it unchanged.
    """
    booking = BookingLifecycle(db).activate(
        reference,
        organization_id=staff.organization_id,
        confirmed_by=staff.user_id,
    )
    return serialize_booking(booking)
