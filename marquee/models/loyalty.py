import uuid
import enum
from sqlalchemy import Column, String, Boolean, DateTime, func, DECIMAL, Integer, ForeignKey, UniqueConstraint
from sqlalchemy.dialects.postgresql import UUID
from sqlalchemy.orm import relationship
from marquee.db.session import Base

class RewardType(str, enum.Enum):
    discount_fixed = "discount_fixed"
    discount_percentage = "discount_percentage"
    free_ticket = "free_ticket"

class Customer(Base):
    __tablename__ = "customers"
    __table_args__ = (
        UniqueConstraint("organization_id", "email", name="uq_customers_org_email"),
    )

    id = Column(UUID(as_uuid=True), primary_key=True, default=uuid.uuid4)
    organization_id = Column(UUID(as_uuid=True), nullable=False, index=True)
    email = Column(String(255), nullable=False)
    full_name = Column(String(255), nullable=True)
    loyalty_points = Column(Integer, nullable=False, default=0)
    created_at = Column(DateTime(timezone=True), server_default=func.now())

    transactions = relationship("LoyaltyTransaction", back_populates="customer")

class LoyaltySettings(Base):
    __tablename__ = "loyalty_settings"

    organization_id = Column(UUID(as_uuid=True), primary_key=True)
    is_enabled = Column(Boolean, default=False)
    points_per_dollar = Column(DECIMAL(6, 2), nullable=False, default=1)
    points_per_booking = Column(Integer, nullable=False, default=0)

class LoyaltyReward(Base):
    __tablename__ = "loyalty_rewards"

    id = Column(UUID(as_uuid=True), primary_key=True, default=uuid.uuid4)
    organization_id = Column(UUID(as_uuid=True), nullable=False, index=True)
    name = Column(String(100), nullable=False)
    reward_type = Column(String(30), nullable=False) # discount_fixed, discount_percentage, free_ticket
    points_required = Column(Integer, nullable=False)
    discount_value = Column(DECIMAL(10, 2), nullable=True)
    is_active = Column(Boolean, default=True)

class LoyaltyTransaction(Base):
    """Points ledger. One row per (booking, type) makes crediting and debiting exactly-once."""
    __tablename__ = "loyalty_transactions"
    __table_args__ = (
        UniqueConstraint("booking_id", "transaction_type", name="uq_loyalty_transactions_booking_type"),
    )

    id = Column(UUID(as_uuid=True), primary_key=True, default=uuid.uuid4)
    customer_id = Column(UUID(as_uuid=True), ForeignKey("customers.id"), nullable=False, index=True)
    booking_id = Column(UUID(as_uuid=True), ForeignKey("bookings.id"), nullable=True)
    points = Column(Integer, nullable=False) # negative for redemptions
    transaction_type = Column(String(20), nullable=False) # redeemed, earned
    description = Column(String(255), nullable=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now())

    customer = relationship("Customer", back_populates="transactions")
