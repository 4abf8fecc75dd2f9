"""
Checkout: turn a posted cart into a priced quote, and a quote into a booking.

The cart lives on the client. Every call re-resolves it against the database
(layout, catalog prices, promo, loyalty) and re-runs the pricing engine, so a
quote is never trusted from the client. Seat prices frozen at selection time
come back as locks the seat map signed.
"""
import logging
from dataclasses import dataclass
from datetime import datetime
from typing import Dict, List, Optional, Sequence
from uuid import UUID

from sqlalchemy.orm import Session

from marquee.core.config import settings
from marquee.core.exceptions import NotFoundError, ValidationError
from marquee.models.booking import Booking, BookingChannel
from marquee.models.concession import ComboDeal, ConcessionItem
from marquee.models.showtime import Showtime
from marquee.schemas.booking import BookingCreate
from marquee.schemas.checkout import CartItemIn, CartRequest
from marquee.services import loyalty, promos
from marquee.services.coordinator import BookingDraft, SeatCoordinator
from marquee.services.lifecycle import BookingLifecycle, initial_status
from marquee.services.loyalty import RewardQuote
from marquee.services.pricing import (
    ComboLine, ConcessionLine, PriceQuote, PromoTerms, SeatLine, compute_quote, to_money,
)
from marquee.services.seat_map import get_showtime, load_layout, validate_seats
from marquee.utils.clock import utcnow

logger = logging.getLogger(__name__)

BOX_OFFICE_PAYMENT_METHODS = ("cash", "card")


@dataclass
class PricedCart:
    showtime: Showtime
    seats: List[SeatLine]
    concessions: List[ConcessionLine]
    combos: List[ComboLine]
    promo: Optional[PromoTerms]
    reward: Optional[RewardQuote]
    quote: PriceQuote


def _merge_quantities(items: Sequence[CartItemIn]) -> Dict[UUID, int]:
    merged: Dict[UUID, int] = {}
    for item in items:
        merged[item.id] = merged.get(item.id, 0) + item.quantity
    return merged


def resolve_concessions(db: Session, organization_id: UUID, items: Sequence[CartItemIn]) -> List[ConcessionLine]:
    wanted = _merge_quantities(items)
    if not wanted:
        return []
    rows = (
        db.query(ConcessionItem)
        .filter(
            ConcessionItem.id.in_(list(wanted)),
            ConcessionItem.organization_id == organization_id,
            ConcessionItem.is_available == True,  # noqa: E712
        )
        .all()
    )
    found = {row.id: row for row in rows}
    missing = [str(item_id) for item_id in wanted if item_id not in found]
    if missing:
        raise ValidationError(f"Concession items not available: {', '.join(missing)}")
    return [
        ConcessionLine(
            item_id=item_id,
            name=found[item_id].name,
            unit_price=to_money(found[item_id].price),
            quantity=quantity,
        )
        for item_id, quantity in wanted.items()
    ]


def resolve_combos(db: Session, organization_id: UUID, items: Sequence[CartItemIn]) -> List[ComboLine]:
    wanted = _merge_quantities(items)
    if not wanted:
        return []
    rows = (
        db.query(ComboDeal)
        .filter(
            ComboDeal.id.in_(list(wanted)),
            ComboDeal.organization_id == organization_id,
            ComboDeal.is_active == True,  # noqa: E712
        )
        .all()
    )
    found = {row.id: row for row in rows}
    missing = [str(combo_id) for combo_id in wanted if combo_id not in found]
    if missing:
        raise ValidationError(f"Combo deals not available: {', '.join(missing)}")
    return [
        ComboLine(
            combo_id=combo_id,
            name=found[combo_id].name,
            combo_price=to_money(found[combo_id].combo_price),
            quantity=quantity,
        )
        for combo_id, quantity in wanted.items()
    ]


def price_cart(db: Session, cart: CartRequest, now: Optional[datetime] = None) -> PricedCart:
    """Validate and price a cart. Writes nothing."""
    now = now or utcnow()
    showtime = get_showtime(db, cart.showtime_id)
    organization_id = showtime.organization_id

    if len(cart.seats) > settings.MAX_SEATS_PER_BOOKING:
        raise ValidationError(f"At most {settings.MAX_SEATS_PER_BOOKING} seats per booking")

    layout = load_layout(db, showtime.screen_id)
    seats = validate_seats(
        showtime,
        layout,
        ((s.row_label, s.seat_number, s.price_lock) for s in cart.seats),
    )
    concessions = resolve_concessions(db, organization_id, cart.concessions)
    combos = resolve_combos(db, organization_id, cart.combos)

    promo = None
    if cart.promo_code:
        promo = promos.validate_promo(db, organization_id, cart.promo_code, now=now)

    reward = None
    if cart.loyalty_reward_id:
        if not cart.customer_email:
            raise ValidationError("A customer email is required to redeem loyalty points")
        reward = loyalty.quote_reward(
            db, organization_id, cart.customer_email, cart.loyalty_reward_id, seats
        )

    quote = compute_quote(
        seats,
        concessions=concessions,
        combos=combos,
        promo=promo,
        loyalty_discount=reward.discount if reward else to_money(0),
    )
    return PricedCart(
        showtime=showtime,
        seats=seats,
        concessions=concessions,
        combos=combos,
        promo=promo,
        reward=reward,
        quote=quote,
    )


def place_booking(
    db: Session,
    booking_in: BookingCreate,
    staff_organization_id: Optional[UUID] = None,
    now: Optional[datetime] = None,
) -> Booking:
    """Price the cart and commit its seats as a new booking.

    Box-office sales must come from staff of the showtime's organization; they
    are admitted immediately, so promo and loyalty limits are enforced inside
    the commit transaction.
    """
    now = now or utcnow()
    channel = booking_in.channel
    if channel not in (BookingChannel.online.value, BookingChannel.box_office.value):
        raise ValidationError(f"Unknown sales channel '{channel}'")

    priced = price_cart(db, booking_in, now=now)
    showtime = priced.showtime

    payment_method = None
    if channel == BookingChannel.box_office.value:
        if staff_organization_id != showtime.organization_id:
            raise NotFoundError("Showtime not found")
        payment_method = booking_in.payment_method or "cash"
        if payment_method not in BOX_OFFICE_PAYMENT_METHODS:
            raise ValidationError(f"Unknown payment method '{payment_method}'")

    customer_id = None
    if priced.reward:
        customer_id = priced.reward.customer_id
    else:
        customer = loyalty.find_customer(db, showtime.organization_id, booking_in.customer_email)
        if customer:
            customer_id = customer.id

    status = initial_status(channel)
    draft = BookingDraft(
        organization_id=showtime.organization_id,
        showtime_id=showtime.id,
        customer_name=booking_in.customer_name.strip(),
        customer_email=booking_in.customer_email.lower(),
        customer_phone=booking_in.customer_phone,
        customer_id=customer_id,
        status=status,
        channel=channel,
        payment_method=payment_method,
        quote=priced.quote,
        promo_code_id=priced.promo.promo_id if priced.promo else None,
        loyalty_reward_id=priced.reward.reward_id if priced.reward else None,
        loyalty_points_redeemed=priced.reward.points if priced.reward else 0,
        paid_at=now if channel == BookingChannel.box_office.value else None,
        concessions=priced.concessions,
        combos=priced.combos,
    )

    lifecycle = BookingLifecycle(db)
    coordinator = SeatCoordinator(db)
    return coordinator.commit(
        showtime.id,
        priced.seats,
        draft,
        on_claimed=lifecycle.admit_on_create,
    )
