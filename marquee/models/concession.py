import uuid
from sqlalchemy import Column, String, Boolean, DECIMAL
from sqlalchemy.dialects.postgresql import UUID
from marquee.db.session import Base

class ConcessionItem(Base):
    __tablename__ = "concession_items"

    id = Column(UUID(as_uuid=True), primary_key=True, default=uuid.uuid4)
    organization_id = Column(UUID(as_uuid=True), nullable=False, index=True)
    name = Column(String(100), nullable=False)
    price = Column(DECIMAL(10, 2), nullable=False)
    is_available = Column(Boolean, default=True)

class ComboDeal(Base):
    __tablename__ = "combo_deals"

    id = Column(UUID(as_uuid=True), primary_key=True, default=uuid.uuid4)
    organization_id = Column(UUID(as_uuid=True), nullable=False, index=True)
    name = Column(String(100), nullable=False)
    combo_price = Column(DECIMAL(10, 2), nullable=False)
    original_price = Column(DECIMAL(10, 2), nullable=True) # sum of the bundled items, display only
    is_active = Column(Boolean, default=True)
