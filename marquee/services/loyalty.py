import logging
import math
from dataclasses import dataclass
from decimal import Decimal
from typing import Optional, Sequence
from uuid import UUID

from sqlalchemy import case, func
from sqlalchemy.orm import Session

from marquee.core.exceptions import NotFoundError, ValidationError
from marquee.models.booking import Booking
from marquee.models.loyalty import Customer, LoyaltyReward, LoyaltySettings, LoyaltyTransaction, RewardType
from marquee.services.pricing import HUNDRED, ZERO, SeatLine, to_money

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class RewardQuote:
    customer_id: UUID
    reward_id: UUID
    reward_name: str
    points: int
    discount: Decimal


def find_customer(db: Session, organization_id: UUID, email: str) -> Optional[Customer]:
    return (
        db.query(Customer)
        .filter(
            Customer.organization_id == organization_id,
            func.lower(Customer.email) == email.strip().lower(),
        )
        .first()
    )


def reward_discount(reward: LoyaltyReward, seats: Sequence[SeatLine]) -> Decimal:
    """Flat discount a reward is worth against the given seats."""
    tickets_subtotal = to_money(sum((to_money(s.price) for s in seats), ZERO))
    value = to_money(reward.discount_value or 0)

    if reward.reward_type == RewardType.discount_fixed.value:
        return min(value, tickets_subtotal)
    if reward.reward_type == RewardType.discount_percentage.value:
        return min(to_money(tickets_subtotal * value / HUNDRED), tickets_subtotal)
    if reward.reward_type == RewardType.free_ticket.value:
        return min((to_money(s.price) for s in seats), default=ZERO)
    raise ValidationError(f"Unknown reward type '{reward.reward_type}'")


def quote_reward(
    db: Session,
    organization_id: UUID,
    customer_email: str,
    reward_id: UUID,
    seats: Sequence[SeatLine],
) -> RewardQuote:
    """Validate a reward redemption and price it. Nothing is debited here."""
    customer = find_customer(db, organization_id, customer_email)
    if not customer:
        raise NotFoundError("No loyalty account for this email")

    reward = (
        db.query(LoyaltyReward)
        .filter(
            LoyaltyReward.id == reward_id,
            LoyaltyReward.organization_id == organization_id,
            LoyaltyReward.is_active == True,  # noqa: E712
        )
        .first()
    )
    if not reward:
        raise NotFoundError("Loyalty reward not found")

    if customer.loyalty_points < reward.points_required:
        raise ValidationError(
            f"Not enough points: {reward.points_required} required, {customer.loyalty_points} available"
        )

    return RewardQuote(
        customer_id=customer.id,
        reward_id=reward.id,
        reward_name=reward.name,
        points=reward.points_required,
        discount=reward_discount(reward, seats),
    )


def redeem_points(db: Session, booking: Booking, enforce_balance: bool) -> None:
    """Debit the booking's redeemed points and write the ledger row.

    Runs inside the admission transaction. With enforce_balance the debit is
    conditional on the balance (box office, before money changes hands);
    otherwise the balance is floored at zero because payment already happened.
    """
    points = booking.loyalty_points_redeemed or 0
    if not points or not booking.customer_id:
        return

    query = db.query(Customer).filter(Customer.id == booking.customer_id)
    if enforce_balance:
        updated = query.filter(Customer.loyalty_points >= points).update(
            {"loyalty_points": Customer.loyalty_points - points},
            synchronize_session=False,
        )
        if updated == 0:
            raise ValidationError("Not enough loyalty points to redeem this reward")
    else:
        query.update(
            {
                "loyalty_points": case(
                    (Customer.loyalty_points >= points, Customer.loyalty_points - points),
                    else_=0,
                )
            },
            synchronize_session=False,
        )

    db.add(LoyaltyTransaction(
        customer_id=booking.customer_id,
        booking_id=booking.id,
        points=-points,
        transaction_type="redeemed",
        description=f"Redeemed on booking {booking.booking_reference}",
    ))


def points_earned(settings_row: Optional[LoyaltySettings], total_amount: Decimal) -> int:
    if not settings_row or not settings_row.is_enabled:
        return 0
    per_dollar = Decimal(str(settings_row.points_per_dollar or 0))
    return math.floor(to_money(total_amount) * per_dollar) + (settings_row.points_per_booking or 0)


def earn_points(db: Session, booking: Booking) -> int:
    """Credit points for an admitted booking. Returns the points credited."""
    if not booking.customer_id:
        return 0

    settings_row = db.get(LoyaltySettings, booking.organization_id)
    points = points_earned(settings_row, booking.total_amount)
    if points <= 0:
        return 0

    db.query(Customer).filter(Customer.id == booking.customer_id).update(
        {"loyalty_points": Customer.loyalty_points + points},
        synchronize_session=False,
    )
    db.add(LoyaltyTransaction(
        customer_id=booking.customer_id,
        booking_id=booking.id,
        points=points,
        transaction_type="earned",
        description=f"Earned on booking {booking.booking_reference}",
    ))
    logger.info("Credited %d loyalty points for booking %s", points, booking.booking_reference)
    return points
