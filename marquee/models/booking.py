import uuid
import enum
from sqlalchemy import (
    Column, String, DateTime, func, DECIMAL, Integer, ForeignKey, Index, UniqueConstraint, text,
)
from sqlalchemy.dialects.postgresql import UUID
from sqlalchemy.orm import relationship
from marquee.db.session import Base

class BookingStatus(str, enum.Enum):
    pending = "pending"
    paid = "paid"
    confirmed = "confirmed"
    used = "used"
    cancelled = "cancelled"
    # never stored, derived at read time once the show is long over
    expired = "expired"

class BookingChannel(str, enum.Enum):
    online = "online"
    box_office = "box_office"

class Booking(Base):
    __tablename__ = "bookings"

    id = Column(UUID(as_uuid=True), primary_key=True, default=uuid.uuid4)
    organization_id = Column(UUID(as_uuid=True), nullable=False, index=True)
    showtime_id = Column(UUID(as_uuid=True), ForeignKey("showtimes.id"), nullable=False, index=True)
    customer_id = Column(UUID(as_uuid=True), ForeignKey("customers.id"), nullable=True, index=True)
    customer_name = Column(String(255), nullable=False)
    customer_email = Column(String(255), nullable=False)
    customer_phone = Column(String(30), nullable=True)
    booking_reference = Column(String(20), unique=True, nullable=False, index=True)
    status = Column(String(20), nullable=False, default=BookingStatus.pending.value, index=True)
    channel = Column(String(20), nullable=False, default=BookingChannel.online.value)
    payment_method = Column(String(20), nullable=True) # cash, card, gateway
    payment_reference = Column(String(100), nullable=True)

    tickets_subtotal = Column(DECIMAL(10, 2), nullable=False, default=0)
    concessions_subtotal = Column(DECIMAL(10, 2), nullable=False, default=0)
    combos_subtotal = Column(DECIMAL(10, 2), nullable=False, default=0)
    subtotal = Column(DECIMAL(10, 2), nullable=False, default=0)
    promo_discount = Column(DECIMAL(10, 2), nullable=False, default=0)
    loyalty_discount = Column(DECIMAL(10, 2), nullable=False, default=0)
    discount_amount = Column(DECIMAL(10, 2), nullable=False, default=0)
    total_amount = Column(DECIMAL(10, 2), nullable=False)

    promo_code_id = Column(UUID(as_uuid=True), ForeignKey("promo_codes.id"), nullable=True)
    loyalty_reward_id = Column(UUID(as_uuid=True), ForeignKey("loyalty_rewards.id"), nullable=True)
    loyalty_points_redeemed = Column(Integer, nullable=False, default=0)

    created_at = Column(DateTime(timezone=True), server_default=func.now())
    paid_at = Column(DateTime(timezone=True), nullable=True)
    # box office hands an online ticket over at the counter
    confirmed_at = Column(DateTime(timezone=True), nullable=True)
    confirmed_by = Column(String(255), nullable=True)
    used_at = Column(DateTime(timezone=True), nullable=True)
    cancelled_at = Column(DateTime(timezone=True), nullable=True)
    cancellation_reason = Column(String(255), nullable=True)

    # Relationships
    showtime = relationship("Showtime", back_populates="bookings")
    customer = relationship("Customer")
    promo_code = relationship("PromoCode")
    loyalty_reward = relationship("LoyaltyReward")
    seats = relationship("BookedSeat", back_populates="booking", cascade="all, delete-orphan")
    concessions = relationship("BookingConcession", back_populates="booking", cascade="all, delete-orphan")
    combos = relationship("BookingCombo", back_populates="booking", cascade="all, delete-orphan")

class BookedSeat(Base):
    """Durable seat claim. The partial unique index is what makes a claim exclusive."""
    __tablename__ = "booked_seats"
    __table_args__ = (
        Index(
            "uq_booked_seats_active_claim",
            "showtime_id", "row_label", "seat_number",
            unique=True,
            postgresql_where=text("released_at IS NULL"),
            sqlite_where=text("released_at IS NULL"),
        ),
    )

    id = Column(UUID(as_uuid=True), primary_key=True, default=uuid.uuid4)
    booking_id = Column(UUID(as_uuid=True), ForeignKey("bookings.id"), nullable=False, index=True)
    showtime_id = Column(UUID(as_uuid=True), ForeignKey("showtimes.id"), nullable=False, index=True)
    row_label = Column(String(5), nullable=False)
    seat_number = Column(Integer, nullable=False)
    seat_type = Column(String(20), nullable=False)
    price = Column(DECIMAL(10, 2), nullable=False) # locked at selection time
    claimed_at = Column(DateTime(timezone=True), server_default=func.now())
    released_at = Column(DateTime(timezone=True), nullable=True)

    booking = relationship("Booking", back_populates="seats")

class SeatClaimEvent(Base):
    """Append-only change feed of claims and releases, ordered by id per showtime."""
    __tablename__ = "seat_claim_events"

    id = Column(Integer, primary_key=True, autoincrement=True)
    showtime_id = Column(UUID(as_uuid=True), ForeignKey("showtimes.id"), nullable=False, index=True)
    booking_id = Column(UUID(as_uuid=True), ForeignKey("bookings.id"), nullable=False)
    row_label = Column(String(5), nullable=False)
    seat_number = Column(Integer, nullable=False)
    kind = Column(String(10), nullable=False) # claimed, released
    created_at = Column(DateTime(timezone=True), server_default=func.now())

class BookingConcession(Base):
    __tablename__ = "booking_concessions"

    id = Column(UUID(as_uuid=True), primary_key=True, default=uuid.uuid4)
    booking_id = Column(UUID(as_uuid=True), ForeignKey("bookings.id"), nullable=False, index=True)
    concession_item_id = Column(UUID(as_uuid=True), ForeignKey("concession_items.id"), nullable=False)
    name = Column(String(100), nullable=False)
    unit_price = Column(DECIMAL(10, 2), nullable=False)
    quantity = Column(Integer, nullable=False)

    booking = relationship("Booking", back_populates="concessions")

class BookingCombo(Base):
    __tablename__ = "booking_combos"

    id = Column(UUID(as_uuid=True), primary_key=True, default=uuid.uuid4)
    booking_id = Column(UUID(as_uuid=True), ForeignKey("bookings.id"), nullable=False, index=True)
    combo_deal_id = Column(UUID(as_uuid=True), ForeignKey("combo_deals.id"), nullable=False)
    name = Column(String(100), nullable=False)
    combo_price = Column(DECIMAL(10, 2), nullable=False)
    quantity = Column(Integer, nullable=False)

    booking = relationship("Booking", back_populates="combos")

class BookingTransition(Base):
    """One row per (booking, transition). Guards side effects against double application."""
    __tablename__ = "booking_transitions"
    __table_args__ = (
        UniqueConstraint("booking_id", "transition", name="uq_booking_transitions_booking_transition"),
    )

    id = Column(UUID(as_uuid=True), primary_key=True, default=uuid.uuid4)
    booking_id = Column(UUID(as_uuid=True), ForeignKey("bookings.id"), nullable=False, index=True)
    transition = Column(String(30), nullable=False) # admitted, used, cancelled
    created_at = Column(DateTime(timezone=True), server_default=func.now())
