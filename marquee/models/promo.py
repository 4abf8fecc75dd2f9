import uuid
import enum
from sqlalchemy import Column, String, Boolean, DateTime, DECIMAL, Integer, UniqueConstraint, func
from sqlalchemy.dialects.postgresql import UUID
from marquee.db.session import Base

class DiscountType(str, enum.Enum):
    percentage = "percentage"
    fixed = "fixed"

class PromoCode(Base):
    __tablename__ = "promo_codes"
    __table_args__ = (
        UniqueConstraint("organization_id", "code", name="uq_promo_codes_org_code"),
    )

    id = Column(UUID(as_uuid=True), primary_key=True, default=uuid.uuid4)
    organization_id = Column(UUID(as_uuid=True), nullable=False, index=True)
    code = Column(String(50), nullable=False) # stored upper-case
    discount_type = Column(String(20), nullable=False) # percentage, fixed
    discount_value = Column(DECIMAL(10, 2), nullable=False)
    min_purchase_amount = Column(DECIMAL(10, 2), nullable=False, default=0)
    max_uses = Column(Integer, nullable=True)
    current_uses = Column(Integer, nullable=False, default=0)
    valid_from = Column(DateTime(timezone=True), nullable=True)
    valid_until = Column(DateTime(timezone=True), nullable=True)
    is_active = Column(Boolean, default=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now())
