import uuid
import enum
from sqlalchemy import Column, String, Boolean, Integer, ForeignKey, UniqueConstraint
from sqlalchemy.dialects.postgresql import UUID
from sqlalchemy.orm import relationship
from marquee.db.session import Base

class SeatType(str, enum.Enum):
    standard = "standard"
    vip = "vip"
    unavailable = "unavailable"

class Screen(Base):
    __tablename__ = "screens"

    id = Column(UUID(as_uuid=True), primary_key=True, default=uuid.uuid4)
    organization_id = Column(UUID(as_uuid=True), nullable=False, index=True)
    name = Column(String(100), nullable=False)
    rows = Column(Integer, nullable=False)
    columns = Column(Integer, nullable=False)
    is_active = Column(Boolean, default=True)

    # Relationships
    seats = relationship("SeatLayout", back_populates="screen", cascade="all, delete-orphan")
    showtimes = relationship("Showtime", back_populates="screen")

class SeatLayout(Base):
    """Template seat of a screen. Per-showtime state lives in booked_seats."""
    __tablename__ = "seat_layouts"
    __table_args__ = (
        UniqueConstraint("screen_id", "row_label", "seat_number", name="uq_seat_layouts_position"),
    )

    id = Column(UUID(as_uuid=True), primary_key=True, default=uuid.uuid4)
    screen_id = Column(UUID(as_uuid=True), ForeignKey("screens.id"), nullable=False, index=True)
    row_label = Column(String(5), nullable=False)
    seat_number = Column(Integer, nullable=False)
    seat_type = Column(String(20), nullable=False, default=SeatType.standard.value) # standard, vip, unavailable
    is_available = Column(Boolean, default=True)

    screen = relationship("Screen", back_populates="seats")
