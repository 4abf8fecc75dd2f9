from datetime import timedelta
from decimal import Decimal

import pytest

from marquee.core.exceptions import (
    InvalidTransitionError, NotFoundError, PromoRejected, ValidationError,
)
from marquee.models import Customer, LoyaltyTransaction, PromoCode, Showtime
from marquee.models.booking import BookingTransition
from marquee.services.checkout import place_booking
from marquee.services.gate import GateValidator
from marquee.services.lifecycle import BookingLifecycle, effective_status
from marquee.services.promos import consume_promo
from marquee.utils.clock import utcnow

ALICE = "alice@example.com"


def points_of(db, customer_id):
    db.expire_all()
    return db.get(Customer, customer_id).loyalty_points


def test_verified_payment_admits_once(db, seeded, make_booking_in):
    booking = place_booking(db, make_booking_in(seeded.showtime_id, [("B", 1)], customer_email=ALICE))
    lifecycle = BookingLifecycle(db)

    paid = lifecycle.confirm_payment(booking.booking_reference, verified=True, payment_reference="pay_1")
    again = lifecycle.confirm_payment(booking.booking_reference, verified=True, payment_reference="pay_1")

    assert paid.status == again.status == "paid"
    assert paid.paid_at is not None
    assert paid.payment_reference == "pay_1"
    # 10.00 * 1 point per dollar + 10 per booking, credited once
    assert points_of(db, seeded.customer_id) == 320
    assert db.query(LoyaltyTransaction).filter_by(booking_id=booking.id).count() == 1
    assert db.query(BookingTransition).filter_by(booking_id=booking.id, transition="admitted").count() == 1


def test_unverified_payment_changes_nothing(db, seeded, make_booking_in):
    booking = place_booking(db, make_booking_in(seeded.showtime_id, [("B", 1)]))

    result = BookingLifecycle(db).confirm_payment(booking.booking_reference, verified=False)

    assert result.status == "pending"
    assert result.paid_at is None


def test_payment_amount_must_match_total(db, seeded, make_booking_in):
    booking = place_booking(db, make_booking_in(seeded.showtime_id, [("B", 1)]))

    with pytest.raises(ValidationError):
        BookingLifecycle(db).confirm_payment(booking.booking_reference, verified=True, amount=Decimal("9.99"))


def test_unknown_reference(db, seeded):
    with pytest.raises(NotFoundError):
        BookingLifecycle(db).confirm_payment("BK-NOPE0000", verified=True)


def test_single_use_promo_is_consumed_on_confirmation(db, seeded, make_booking_in):
    first = place_booking(db, make_booking_in(seeded.showtime_id, [("B", 1)], promo_code="once"))
    assert first.promo_discount == Decimal("1.00")

    BookingLifecycle(db).confirm_payment(first.booking_reference, verified=True)
    db.expire_all()
    assert db.get(PromoCode, seeded.promo_ids["ONCE"]).current_uses == 1

    with pytest.raises(PromoRejected) as exc:
        place_booking(db, make_booking_in(seeded.showtime_id, [("B", 2)], promo_code="ONCE"))
    assert exc.value.reason == "usage_limit_reached"


def test_capped_promo_cannot_be_consumed_past_its_limit(db, seeded):
    consume_promo(db, seeded.promo_ids["ONCE"], enforce_cap=True)
    db.commit()

    with pytest.raises(PromoRejected):
        consume_promo(db, seeded.promo_ids["ONCE"], enforce_cap=True)
    db.rollback()


def test_box_office_sale_is_paid_and_applies_rewards(db, seeded, make_booking_in, org_id):
    booking = place_booking(
        db,
        make_booking_in(
            seeded.showtime_id, [("B", 1)],
            customer_email=ALICE, loyalty_reward_id=str(seeded.five_off_id),
            channel="box_office", payment_method="card",
        ),
        staff_organization_id=org_id,
    )

    assert booking.status == "paid"
    assert booking.payment_method == "card"
    assert booking.total_amount == Decimal("5.00")
    assert booking.loyalty_points_redeemed == 100
    # 300 - 100 redeemed + (5 + 10) earned
    assert points_of(db, seeded.customer_id) == 215
    kinds = sorted(t.transaction_type for t in db.query(LoyaltyTransaction).filter_by(booking_id=booking.id))
    assert kinds == ["earned", "redeemed"]


def test_box_office_sale_for_another_organization_is_refused(db, seeded, make_booking_in, other_org_id):
    with pytest.raises(NotFoundError):
        place_booking(
            db,
            make_booking_in(seeded.showtime_id, [("B", 1)], channel="box_office"),
            staff_organization_id=other_org_id,
        )


def test_online_redemption_floors_balance_at_zero(db, seeded, make_booking_in):
    booking = place_booking(
        db,
        make_booking_in(
            seeded.showtime_id, [("B", 1)],
            customer_email=ALICE, loyalty_reward_id=str(seeded.five_off_id),
        ),
    )
    # points spent elsewhere while the customer was paying
    db.query(Customer).filter(Customer.id == seeded.customer_id).update({"loyalty_points": 40})
    db.commit()

    BookingLifecycle(db).confirm_payment(booking.booking_reference, verified=True)

    # floored at 0, then 5 + 10 earned
    assert points_of(db, seeded.customer_id) == 15


def test_cancel_is_idempotent_and_blocks_payment(db, seeded, make_booking_in):
    booking = place_booking(db, make_booking_in(seeded.showtime_id, [("A", 1), ("A", 2)]))
    lifecycle = BookingLifecycle(db)

    cancelled = lifecycle.cancel(booking.booking_reference)
    again = lifecycle.cancel(booking.booking_reference)

    assert cancelled.status == again.status == "cancelled"
    assert cancelled.cancelled_at is not None
    assert all(seat.released_at is not None for seat in cancelled.seats)
    with pytest.raises(InvalidTransitionError):
        lifecycle.confirm_payment(booking.booking_reference, verified=True)


def test_activation_confirms_paid_ticket_once(db, seeded, make_booking_in, org_id):
    booking = place_booking(db, make_booking_in(seeded.showtime_id, [("B", 2)]))
    lifecycle = BookingLifecycle(db)

    with pytest.raises(InvalidTransitionError):
        lifecycle.activate(booking.booking_reference, org_id, confirmed_by="cashier-1")

    lifecycle.confirm_payment(booking.booking_reference, verified=True)
    activated = lifecycle.activate(booking.booking_reference, org_id, confirmed_by="cashier-1")
    first_confirmed_at = activated.confirmed_at
    again = lifecycle.activate(booking.booking_reference, org_id, confirmed_by="cashier-2")

    assert activated.status == again.status == "confirmed"
    assert again.confirmed_by == "cashier-1"
    assert again.confirmed_at == first_confirmed_at
    assert db.query(BookingTransition).filter_by(booking_id=booking.id, transition="confirmed").count() == 1

    result = GateValidator(db).scan(booking.booking_reference, org_id)
    assert result.is_valid
    with pytest.raises(InvalidTransitionError):
        lifecycle.activate(booking.booking_reference, org_id)


def test_activation_is_scoped_to_organization(db, seeded, make_booking_in, org_id, other_org_id):
    booking = place_booking(
        db, make_booking_in(seeded.showtime_id, [("B", 3)], channel="box_office"),
        staff_organization_id=org_id,
    )

    with pytest.raises(NotFoundError):
        BookingLifecycle(db).activate(booking.booking_reference, other_org_id)


def test_used_booking_cannot_be_cancelled(db, seeded, make_booking_in, org_id):
    booking = place_booking(
        db, make_booking_in(seeded.showtime_id, [("B", 3)], channel="box_office"),
        staff_organization_id=org_id,
    )
    assert GateValidator(db).scan(booking.booking_reference, org_id).is_valid

    with pytest.raises(InvalidTransitionError):
        BookingLifecycle(db).cancel(booking.booking_reference)


def test_cancel_is_scoped_to_organization(db, seeded, make_booking_in, other_org_id):
    booking = place_booking(db, make_booking_in(seeded.showtime_id, [("B", 1)]))

    with pytest.raises(NotFoundError):
        BookingLifecycle(db).cancel(booking.booking_reference, organization_id=other_org_id)


def test_expired_is_derived_from_showtime(db, seeded, make_booking_in):
    booking = place_booking(db, make_booking_in(seeded.showtime_id, [("B", 1)]))
    assert effective_status(booking) == "pending"

    db.query(Showtime).filter(Showtime.id == seeded.showtime_id).update(
        {"start_time": utcnow() - timedelta(hours=4)}
    )
    db.commit()
    db.refresh(booking)

    assert booking.status == "pending"
    assert effective_status(booking) == "expired"
