import uuid
from sqlalchemy import Column, Boolean, DateTime, DECIMAL, ForeignKey
from sqlalchemy.dialects.postgresql import UUID
from sqlalchemy.orm import relationship
from marquee.db.session import Base

class Showtime(Base):
    __tablename__ = "showtimes"

    id = Column(UUID(as_uuid=True), primary_key=True, default=uuid.uuid4)
    organization_id = Column(UUID(as_uuid=True), nullable=False, index=True)
    movie_id = Column(UUID(as_uuid=True), ForeignKey("movies.id"), nullable=False, index=True)
    screen_id = Column(UUID(as_uuid=True), ForeignKey("screens.id"), nullable=False, index=True)
    start_time = Column(DateTime(timezone=True), nullable=False, index=True)
    price = Column(DECIMAL(10, 2), nullable=False)
    vip_price = Column(DECIMAL(10, 2), nullable=True)
    is_active = Column(Boolean, default=True)

    # Relationships
    movie = relationship("Movie", back_populates="showtimes")
    screen = relationship("Screen", back_populates="showtimes")
    bookings = relationship("Booking", back_populates="showtime")
