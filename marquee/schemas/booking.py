from typing import Annotated, Optional, List
from pydantic import BaseModel, Field, UUID4, EmailStr
from decimal import Decimal
from datetime import datetime

from marquee.schemas.checkout import CartRequest


# Booking: Create (POST /bookings)
class BookingCreate(CartRequest):
    customer_name: Annotated[str, Field(min_length=1, max_length=255)]
    customer_email: EmailStr
    customer_phone: Optional[str] = None
    channel: str = "online"  # online, box_office
    payment_method: Optional[str] = None  # cash, card (box office only)


# Nested response objects for booking responses
class BookingSeatResponse(BaseModel):
    row_label: str
    seat_number: int
    seat_type: str
    price: Decimal

    class Config:
        from_attributes = True


class BookingLineResponse(BaseModel):
    name: str
    quantity: int
    unit_price: Decimal


class BookingShowtimeSummary(BaseModel):
    id: UUID4
    movie_title: Optional[str] = None
    screen_name: Optional[str] = None
    start_time: datetime


# Booking: Full response (POST /bookings, GET /bookings/{reference})
class Booking(BaseModel):
    id: UUID4
    booking_reference: str
    status: str
    channel: str
    customer_name: str
    customer_email: str
    customer_phone: Optional[str] = None
    payment_method: Optional[str] = None
    tickets_subtotal: Decimal
    concessions_subtotal: Decimal
    combos_subtotal: Decimal
    subtotal: Decimal
    promo_discount: Decimal
    loyalty_discount: Decimal
    discount_amount: Decimal
    total_amount: Decimal
    loyalty_points_redeemed: int = 0
    created_at: Optional[datetime] = None
    paid_at: Optional[datetime] = None
    confirmed_at: Optional[datetime] = None
    used_at: Optional[datetime] = None
    cancelled_at: Optional[datetime] = None
    showtime: Optional[BookingShowtimeSummary] = None
    seats: List[BookingSeatResponse] = []
    concessions: List[BookingLineResponse] = []
    combos: List[BookingLineResponse] = []


# Booking: Cancel (PATCH /admin/bookings/{reference}/cancel)
class BookingCancelRequest(BaseModel):
    reason: Optional[str] = Field(None, max_length=255)


class BookingCancelResponse(BaseModel):
    id: UUID4
    booking_reference: str
    status: str
    cancelled_at: Optional[datetime] = None
    cancellation_reason: Optional[str] = None
    released_seats: List[str] = []


# Booking: Admin list item (GET /admin/bookings)
class AdminBookingListItem(BaseModel):
    id: UUID4
    booking_reference: str
    showtime_id: UUID4
    status: str
    channel: str
    customer_name: str
    customer_email: str
    seat_count: int
    total_amount: Decimal
    created_at: Optional[datetime] = None
