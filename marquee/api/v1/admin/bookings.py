from typing import Optional
from uuid import UUID

from fastapi import APIRouter, Depends, Query
from sqlalchemy import func
from sqlalchemy.orm import Session

from marquee.db.session import get_db
from marquee.api.deps import StaffPrincipal, require_roles
from marquee.models.booking import BookedSeat, Booking
from marquee.schemas.booking import AdminBookingListItem, BookingCancelRequest, BookingCancelResponse
from marquee.schemas.common import PaginatedResponse
from marquee.services.lifecycle import BookingLifecycle
from marquee.services.seat_map import seat_label

router = APIRouter(prefix="/admin/bookings", tags=["Admin - Bookings"])


@router.get("/", response_model=PaginatedResponse[AdminBookingListItem])
def list_all_bookings(
    # --- Filters ---
    showtime_id: Optional[UUID] = Query(None, description="Filter by showtime"),
    status: Optional[str] = Query(None, description="Filter by booking status (pending, paid, confirmed, used, cancelled)"),
    channel: Optional[str] = Query(None, description="Filter by sales channel (online, box_office)"),
    email: Optional[str] = Query(None, description="Filter by customer email (case-insensitive)"),
    # --- Pagination ---
    page: int = Query(1, ge=1),
    limit: int = Query(20, ge=1, le=100),
    db: Session = Depends(get_db),
    staff: StaffPrincipal = Depends(require_roles("box_office")),
):
    """
    Return the organization's bookings, newest first.
    """
    seat_counts = (
        db.query(BookedSeat.booking_id, func.count(BookedSeat.id).label("seat_count"))
        .group_by(BookedSeat.booking_id)
        .subquery()
    )
    query = (
        db.query(Booking, func.coalesce(seat_counts.c.seat_count, 0))
        .outerjoin(seat_counts, seat_counts.c.booking_id == Booking.id)
        .filter(Booking.organization_id == staff.organization_id)
    )

    if showtime_id:
        query = query.filter(Booking.showtime_id == showtime_id)
    if status:
        query = query.filter(Booking.status == status)
    if channel:
        query = query.filter(Booking.channel == channel)
    if email:
        query = query.filter(func.lower(Booking.customer_email) == email.strip().lower())

    total = query.count()
    rows = (
        query.order_by(Booking.created_at.desc())
        .offset((page - 1) * limit)
        .limit(limit)
        .all()
    )

    return PaginatedResponse(
        data=[
            AdminBookingListItem(
                id=b.id,
                booking_reference=b.booking_reference,
                showtime_id=b.showtime_id,
                status=b.status,
                channel=b.channel,
                customer_name=b.customer_name,
                customer_email=b.customer_email,
                seat_count=seat_count,
                total_amount=b.total_amount,
                created_at=b.created_at,
            )
            for b, seat_count in rows
        ],
        total=total,
        page=page,
        limit=limit,
        total_pages=-(-total // limit) if total else 0,
    )


@router.patch("/{reference}/cancel", response_model=BookingCancelResponse)
def cancel_booking(
    reference: str,
    body: Optional[BookingCancelRequest] = None,
    db: Session = Depends(get_db),
    staff: StaffPrincipal = Depends(require_roles("box_office")),
):
    """
    Cancel a booking and release its seats. Seats become available to the next
    commit immediately; open seat maps learn about it from the claim feed.
    """
    booking = BookingLifecycle(db).cancel(
        reference,
        organization_id=staff.organization_id,
        reason=body.reason if body else None,
    )
    released = sorted(
        seat_label(s.row_label, s.seat_number)
        for s in booking.seats
        if s.released_at is not None
    )
    return BookingCancelResponse(
        id=booking.id,
        booking_reference=booking.booking_reference,
        status=booking.status,
        cancelled_at=booking.cancelled_at,
        cancellation_reason=booking.cancellation_reason,
        released_seats=released,
    )
