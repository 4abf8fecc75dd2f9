from datetime import timedelta
from decimal import Decimal

import pytest

from marquee.core.exceptions import NotFoundError, PromoRejected, ValidationError
from marquee.models import LoyaltyReward, LoyaltySettings, PromoCode
from marquee.services.loyalty import points_earned, quote_reward, reward_discount
from marquee.services.pricing import SeatLine
from marquee.services.promos import check_promo_eligibility, validate_promo
from marquee.utils.clock import utcnow

SEATS = [
    SeatLine(row_label="A", seat_number=1, seat_type="vip", price=Decimal("15.00")),
    SeatLine(row_label="B", seat_number=1, seat_type="standard", price=Decimal("10.00")),
]


def promo(**overrides):
    fields = dict(code="TEST", discount_type="fixed", discount_value=Decimal("1"), is_active=True,
                  current_uses=0, max_uses=None, valid_from=None, valid_until=None)
    fields.update(overrides)
    return PromoCode(**fields)


@pytest.mark.parametrize("overrides,reason", [
    (dict(is_active=False), "inactive"),
    (dict(valid_from=utcnow() + timedelta(days=1)), "not_started"),
    (dict(valid_until=utcnow() - timedelta(seconds=1)), "expired"),
    (dict(max_uses=3, current_uses=3), "usage_limit_reached"),
])
def test_promo_eligibility_reasons(overrides, reason):
    with pytest.raises(PromoRejected) as exc:
        check_promo_eligibility(promo(**overrides), utcnow())
    assert exc.value.reason == reason


def test_promo_within_window_is_eligible():
    now = utcnow()
    check_promo_eligibility(
        promo(valid_from=now - timedelta(days=1), valid_until=now + timedelta(days=1), max_uses=3, current_uses=2),
        now,
    )


def test_validate_promo_is_case_insensitive_and_org_scoped(db, seeded, org_id, other_org_id):
    terms = validate_promo(db, org_id, " save10 ")

    assert terms.code == "SAVE10"
    assert terms.min_purchase_amount == Decimal("20.00")
    assert terms.promo_id == seeded.promo_ids["SAVE10"]
    with pytest.raises(NotFoundError):
        validate_promo(db, other_org_id, "SAVE10")


@pytest.mark.parametrize("reward_type,value,expected", [
    ("discount_fixed", "30.00", "25.00"),
    ("discount_percentage", "20", "5.00"),
    ("discount_percentage", "150", "25.00"),
    ("free_ticket", None, "10.00"),
])
def test_reward_discount(reward_type, value, expected):
    reward = LoyaltyReward(reward_type=reward_type, discount_value=Decimal(value) if value else None)
    assert reward_discount(reward, SEATS) == Decimal(expected)


def test_quote_reward_checks_balance_and_account(db, seeded, org_id):
    quote = quote_reward(db, org_id, "ALICE@example.com", seeded.free_ticket_id, SEATS)
    assert quote.points == 200
    assert quote.discount == Decimal("10.00")
    assert quote.customer_id == seeded.customer_id

    with pytest.raises(NotFoundError):
        quote_reward(db, org_id, "nobody@example.com", seeded.free_ticket_id, SEATS)

    db.query(LoyaltyReward).filter(LoyaltyReward.id == seeded.free_ticket_id).update({"points_required": 1000})
    db.commit()
    with pytest.raises(ValidationError):
        quote_reward(db, org_id, "alice@example.com", seeded.free_ticket_id, SEATS)


def test_points_earned():
    enabled = LoyaltySettings(is_enabled=True, points_per_dollar=Decimal("1.5"), points_per_booking=10)

    assert points_earned(enabled, Decimal("31.50")) == 57
    assert points_earned(LoyaltySettings(is_enabled=False), Decimal("31.50")) == 0
    assert points_earned(None, Decimal("31.50")) == 0
