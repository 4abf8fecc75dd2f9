from typing import Optional

from fastapi import APIRouter, Depends, status
from sqlalchemy.orm import Session, joinedload

from marquee.db.session import get_db
from marquee.api.deps import StaffPrincipal, get_optional_staff
from marquee.core.exceptions import AuthenticationError, ForbiddenError, NotFoundError
from marquee.models.booking import Booking, BookingChannel
from marquee.models.showtime import Showtime
from marquee.schemas.booking import (
    BookingCreate,
    Booking as BookingSchema,
    BookingLineResponse,
    BookingSeatResponse,
    BookingShowtimeSummary,
)
from marquee.schemas.common import PromoRejectedError, SeatTakenError
from marquee.services.checkout import place_booking
from marquee.services.lifecycle import effective_status
from marquee.utils.references import normalize_reference

router = APIRouter(prefix="/bookings", tags=["Bookings"])


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


def _load_booking(reference: str, db: Session) -> Booking:
    """Load a booking with all relations eager-loaded."""
    booking = (
        db.query(Booking)
        .options(
            joinedload(Booking.showtime).joinedload(Showtime.movie),
            joinedload(Booking.showtime).joinedload(Showtime.screen),
            joinedload(Booking.seats),
            joinedload(Booking.concessions),
            joinedload(Booking.combos),
        )
        .filter(Booking.booking_reference == normalize_reference(reference))
        .first()
    )
    if not booking:
        raise NotFoundError("Booking not found")
    return booking


def serialize_booking(booking: Booking) -> BookingSchema:
    showtime_summary = None
    if booking.showtime:
        st = booking.showtime
        showtime_summary = BookingShowtimeSummary(
            id=st.id,
            movie_title=st.movie.title if st.movie else None,
            screen_name=st.screen.name if st.screen else None,
            start_time=st.start_time,
        )

    return BookingSchema(
        id=booking.id,
        booking_reference=booking.booking_reference,
        status=effective_status(booking),
        channel=booking.channel,
        customer_name=booking.customer_name,
        customer_email=booking.customer_email,
        customer_phone=booking.customer_phone,
        payment_method=booking.payment_method,
        tickets_subtotal=booking.tickets_subtotal,
        concessions_subtotal=booking.concessions_subtotal,
        combos_subtotal=booking.combos_subtotal,
        subtotal=booking.subtotal,
        promo_discount=booking.promo_discount,
        loyalty_discount=booking.loyalty_discount,
        discount_amount=booking.discount_amount,
        total_amount=booking.total_amount,
        loyalty_points_redeemed=booking.loyalty_points_redeemed or 0,
        created_at=booking.created_at,
        paid_at=booking.paid_at,
        confirmed_at=booking.confirmed_at,
        used_at=booking.used_at,
        cancelled_at=booking.cancelled_at,
        showtime=showtime_summary,
        seats=[
            BookingSeatResponse.model_validate(s)
            for s in sorted(booking.seats, key=lambda s: (s.row_label, s.seat_number))
        ],
        concessions=[
            BookingLineResponse(name=c.name, quantity=c.quantity, unit_price=c.unit_price)
            for c in booking.concessions
        ],
        combos=[
            BookingLineResponse(name=c.name, quantity=c.quantity, unit_price=c.combo_price)
            for c in booking.combos
        ],
    )


# ---------------------------------------------------------------------------
# Create booking (online checkout or box office sale)
# ---------------------------------------------------------------------------


@router.post(
    "/",
    response_model=BookingSchema,
    status_code=status.HTTP_201_CREATED,
    responses={409: {"model": SeatTakenError}, 422: {"model": PromoRejectedError}},
)
def create_booking(
    booking_in: BookingCreate,
    db: Session = Depends(get_db),
    staff: Optional[StaffPrincipal] = Depends(get_optional_staff),
):
    """
    Claim the cart's seats and create the booking in one step.

    Online bookings start as `pending` until the payment callback confirms them.
    Box-office bookings need a staff token and are created `paid`.
    A seat that someone else claimed first yields 409 with the seat labels.
    """
    staff_organization_id = None
    if booking_in.channel == BookingChannel.box_office.value:
        if staff is None:
            raise AuthenticationError("Box office sales require a staff token")
        if staff.role not in ("box_office", "manager"):
            raise ForbiddenError(f"Role '{staff.role}' may not sell at the box office")
        staff_organization_id = staff.organization_id

    booking = place_booking(db, booking_in, staff_organization_id=staff_organization_id)
    return serialize_booking(_load_booking(booking.booking_reference, db))


# ---------------------------------------------------------------------------
# Booking detail (confirmation page, ticket)
# ---------------------------------------------------------------------------


@router.get("/{reference}", response_model=BookingSchema)
def get_booking(
    reference: str,
    db: Session = Depends(get_db),
):
    return serialize_booking(_load_booking(reference, db))
