from decimal import Decimal
from uuid import uuid4

import pytest

from marquee.core.exceptions import PromoRejected, ValidationError
from marquee.services.pricing import (
    ComboLine, ConcessionLine, PromoTerms, SeatLine, compute_quote, to_money,
)


def seat(row, number, price, seat_type="standard"):
    return SeatLine(row_label=row, seat_number=number, seat_type=seat_type, price=Decimal(price))


TWO_STANDARD_ONE_VIP = [seat("B", 1, "10.00"), seat("B", 2, "10.00"), seat("A", 3, "15.00", "vip")]
SAVE10 = PromoTerms(code="SAVE10", discount_type="percentage", discount_value=Decimal("10"),
                    min_purchase_amount=Decimal("20"))


def test_percentage_promo_on_mixed_seats():
    quote = compute_quote(TWO_STANDARD_ONE_VIP, promo=SAVE10)

    assert quote.tickets_subtotal == Decimal("35.00")
    assert quote.promo_discount == Decimal("3.50")
    assert quote.total == Decimal("31.50")
    assert quote.promo_code == "SAVE10"
    assert quote.seat_count == 3


def test_promo_applies_to_tickets_only():
    concessions = [ConcessionLine(item_id=uuid4(), name="Popcorn", unit_price=Decimal("5.00"), quantity=2)]
    combos = [ComboLine(combo_id=uuid4(), name="Movie Night", combo_price=Decimal("12.00"), quantity=1)]

    quote = compute_quote(TWO_STANDARD_ONE_VIP, concessions, combos, promo=SAVE10)

    assert quote.concessions_subtotal == Decimal("10.00")
    assert quote.combos_subtotal == Decimal("12.00")
    assert quote.subtotal == Decimal("57.00")
    assert quote.promo_discount == Decimal("3.50")
    assert quote.total == Decimal("53.50")


def test_minimum_not_met_is_rejected_not_zeroed():
    with pytest.raises(PromoRejected) as exc:
        compute_quote([seat("B", 1, "10.00")], promo=SAVE10)
    assert exc.value.reason == "minimum_not_met"


def test_minimum_ignores_concessions():
    concessions = [ConcessionLine(item_id=uuid4(), name="Popcorn", unit_price=Decimal("50.00"), quantity=1)]
    with pytest.raises(PromoRejected):
        compute_quote([seat("B", 1, "10.00")], concessions, promo=SAVE10)


def test_fixed_promo_never_exceeds_tickets():
    promo = PromoTerms(code="BIG", discount_type="fixed", discount_value=Decimal("50.00"))
    concessions = [ConcessionLine(item_id=uuid4(), name="Soda", unit_price=Decimal("3.00"), quantity=1)]

    quote = compute_quote([seat("B", 1, "10.00")], concessions, promo=promo)

    assert quote.promo_discount == Decimal("10.00")
    assert quote.total == Decimal("3.00")


def test_percentage_promo_over_100_is_capped_at_tickets():
    promo = PromoTerms(code="HUGE", discount_type="percentage", discount_value=Decimal("150"))
    concessions = [ConcessionLine(item_id=uuid4(), name="Soda", unit_price=Decimal("3.00"), quantity=1)]

    quote = compute_quote(TWO_STANDARD_ONE_VIP, concessions, promo=promo, loyalty_discount=Decimal("5.00"))

    assert quote.promo_discount == Decimal("35.00")
    assert quote.loyalty_discount == Decimal("0.00")
    assert quote.total == Decimal("3.00")


def test_rounding_is_half_up_to_cents():
    promo = PromoTerms(code="ODD", discount_type="percentage", discount_value=Decimal("12.5"))
    quote = compute_quote([seat("B", 1, "10.10")], promo=promo)

    # 10.10 * 12.5% = 1.2625
    assert quote.promo_discount == Decimal("1.26")
    assert quote.total == Decimal("8.84")
    assert to_money("0.125") == Decimal("0.13")


def test_loyalty_discount_is_capped_by_remaining_tickets():
    promo = PromoTerms(code="FIVE", discount_type="fixed", discount_value=Decimal("5.00"))
    quote = compute_quote([seat("B", 1, "10.00")], promo=promo, loyalty_discount=Decimal("8.00"))

    assert quote.loyalty_discount == Decimal("5.00")
    assert quote.discount_amount == Decimal("10.00")
    assert quote.total == Decimal("0.00")


def test_negative_loyalty_discount_is_rejected():
    with pytest.raises(ValidationError):
        compute_quote([seat("B", 1, "10.00")], loyalty_discount=Decimal("-1"))


def test_zero_quantity_line_is_rejected():
    concessions = [ConcessionLine(item_id=uuid4(), name="Popcorn", unit_price=Decimal("5.00"), quantity=0)]
    with pytest.raises(ValidationError):
        compute_quote([seat("B", 1, "10.00")], concessions)


def test_quote_is_pure():
    first = compute_quote(TWO_STANDARD_ONE_VIP, promo=SAVE10, loyalty_discount=Decimal("2"))
    second = compute_quote(TWO_STANDARD_ONE_VIP, promo=SAVE10, loyalty_discount=Decimal("2"))
    assert first == second
