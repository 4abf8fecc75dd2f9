import uuid
from sqlalchemy import Column, String, Boolean, DateTime, func, ForeignKey
from sqlalchemy.dialects.postgresql import UUID
from marquee.db.session import Base

class ScanLog(Base):
    __tablename__ = "scan_logs"

    id = Column(UUID(as_uuid=True), primary_key=True, default=uuid.uuid4)
    organization_id = Column(UUID(as_uuid=True), nullable=False, index=True)
    booking_reference = Column(String(50), nullable=False, index=True)
    booking_id = Column(UUID(as_uuid=True), ForeignKey("bookings.id"), nullable=True)
    is_valid = Column(Boolean, nullable=False)
    result_code = Column(String(30), nullable=False) # valid, not_found, already_used, ...
    message = Column(String(255), nullable=False)
    scan_method = Column(String(10), nullable=False, default="manual") # qr, manual
    scanned_by = Column(String(100), nullable=True)
    scanned_at = Column(DateTime(timezone=True), server_default=func.now(), index=True)
