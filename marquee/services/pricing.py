"""
Checkout pricing engine.

A pure function of the cart: locked seat prices, concession and combo lines,
at most one promo and at most one loyalty discount. The computation order is
fixed so totals are reproducible:

    tickets + concessions + combos = subtotal
    promo discount        (against the ticket subtotal only)
    + loyalty discount    = discount_amount
    subtotal - discount_amount = total

Every amount is rounded to cents (half-up) as soon as it is produced. Callers
recompute the quote on every cart mutation; nothing here caches an "applied"
promo between calls.
"""
from dataclasses import dataclass, field
from decimal import Decimal, ROUND_HALF_UP
from typing import Optional, Sequence, Tuple
from uuid import UUID

from marquee.core.exceptions import PromoRejected, ValidationError
from marquee.models.promo import DiscountType

CENT = Decimal("0.01")
ZERO = Decimal("0.00")
HUNDRED = Decimal("100")


def to_money(value) -> Decimal:
    if not isinstance(value, Decimal):
        value = Decimal(str(value))
    return value.quantize(CENT, rounding=ROUND_HALF_UP)


@dataclass(frozen=True)
class SeatLine:
    row_label: str
    seat_number: int
    seat_type: str
    price: Decimal

    @property
    def label(self) -> str:
        return f"{self.row_label}{self.seat_number}"


@dataclass(frozen=True)
class ConcessionLine:
    item_id: UUID
    name: str
    unit_price: Decimal
    quantity: int


@dataclass(frozen=True)
class ComboLine:
    combo_id: UUID
    name: str
    combo_price: Decimal
    quantity: int


@dataclass(frozen=True)
class PromoTerms:
    """The pricing-relevant part of a promo code that passed eligibility checks."""
    code: str
    discount_type: str
    discount_value: Decimal
    min_purchase_amount: Decimal = ZERO
    promo_id: Optional[UUID] = None


@dataclass(frozen=True)
class PriceQuote:
    tickets_subtotal: Decimal
    concessions_subtotal: Decimal
    combos_subtotal: Decimal
    subtotal: Decimal
    promo_discount: Decimal
    loyalty_discount: Decimal
    discount_amount: Decimal
    total: Decimal
    promo_code: Optional[str] = None
    seat_count: int = 0
    lines: Tuple[SeatLine, ...] = field(default_factory=tuple)


def _check_quantity(quantity: int, what: str) -> None:
    if quantity < 1:
        raise ValidationError(f"{what} quantity must be at least 1")


def promo_discount_for(promo: PromoTerms, tickets_subtotal: Decimal) -> Decimal:
    """Discount a promo yields against the ticket subtotal.

    Raises PromoRejected when the ticket subtotal is below the promo minimum;
    an ineligible promo is never silently turned into a zero discount.
    """
    minimum = to_money(promo.min_purchase_amount or ZERO)
    if tickets_subtotal < minimum:
        raise PromoRejected(
            "minimum_not_met",
            f"Minimum ticket purchase of {minimum} required for code {promo.code}",
        )

    value = to_money(promo.discount_value)
    if promo.discount_type == DiscountType.percentage.value:
        return min(to_money(tickets_subtotal * value / HUNDRED), tickets_subtotal)
    if promo.discount_type == DiscountType.fixed.value:
        return min(value, tickets_subtotal)
    raise ValidationError(f"Unknown discount type '{promo.discount_type}'")


def compute_quote(
    seats: Sequence[SeatLine],
    concessions: Sequence[ConcessionLine] = (),
    combos: Sequence[ComboLine] = (),
    promo: Optional[PromoTerms] = None,
    loyalty_discount: Decimal = ZERO,
) -> PriceQuote:
    tickets_subtotal = to_money(sum((to_money(s.price) for s in seats), ZERO))

    concessions_subtotal = ZERO
    for line in concessions:
        _check_quantity(line.quantity, line.name)
        concessions_subtotal += to_money(line.unit_price) * line.quantity
    concessions_subtotal = to_money(concessions_subtotal)

    combos_subtotal = ZERO
    for line in combos:
        _check_quantity(line.quantity, line.name)
        combos_subtotal += to_money(line.combo_price) * line.quantity
    combos_subtotal = to_money(combos_subtotal)

    subtotal = tickets_subtotal + concessions_subtotal + combos_subtotal

    promo_discount = ZERO
    if promo is not None:
        promo_discount = promo_discount_for(promo, tickets_subtotal)

    loyalty = to_money(loyalty_discount)
    if loyalty < ZERO:
        raise ValidationError("Loyalty discount cannot be negative")
    # A reward cannot discount more than the tickets it was redeemed against
    loyalty = min(loyalty, tickets_subtotal - promo_discount)

    discount_amount = promo_discount + loyalty
    total = subtotal - discount_amount

    return PriceQuote(
        tickets_subtotal=tickets_subtotal,
        concessions_subtotal=concessions_subtotal,
        combos_subtotal=combos_subtotal,
        subtotal=subtotal,
        promo_discount=promo_discount,
        loyalty_discount=loyalty,
        discount_amount=discount_amount,
        total=total,
        promo_code=promo.code if promo else None,
        seat_count=len(seats),
        lines=tuple(seats),
    )
