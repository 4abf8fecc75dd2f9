import json
from datetime import timedelta

import pytest

from marquee.models import ScanLog, Showtime
from marquee.services.checkout import place_booking
from marquee.services.gate import GateValidator, extract_reference
from marquee.services.lifecycle import BookingLifecycle
from marquee.utils.clock import utcnow


@pytest.fixture
def paid_booking(db, seeded, make_booking_in, org_id):
    return place_booking(
        db,
        make_booking_in(seeded.showtime_id, [("A", 1), ("B", 2)], channel="box_office"),
        staff_organization_id=org_id,
    )


def move_showtime(db, showtime_id, delta):
    db.query(Showtime).filter(Showtime.id == showtime_id).update({"start_time": utcnow() + delta})
    db.commit()


@pytest.mark.parametrize("raw,expected", [
    ("bk-abcd2345", "BK-ABCD2345"),
    ("  BK-ABCD2345 \n", "BK-ABCD2345"),
    (json.dumps({"ref": "bk-abcd2345"}), "BK-ABCD2345"),
    (json.dumps({"booking_reference": "BK-ABCD2345", "v": 1}), "BK-ABCD2345"),
    ("{not json", "{NOT JSON"),
])
def test_extract_reference(raw, expected):
    assert extract_reference(raw) == expected


def test_first_scan_admits_second_is_already_used(db, paid_booking, org_id):
    gate = GateValidator(db)

    first = gate.scan(paid_booking.booking_reference, org_id, scanned_by="gate-1")
    second = gate.scan(paid_booking.booking_reference, org_id, scanned_by="gate-2")

    assert first.is_valid is True
    assert first.code == "valid"
    assert first.message == "Entry allowed"
    assert first.seats == ["A1", "B2"]
    assert first.movie_title == "The Long Take"
    assert second.is_valid is False
    assert second.code == "already_used"
    assert "already used" in second.message.lower()

    db.refresh(paid_booking)
    assert paid_booking.status == "used"
    assert paid_booking.used_at is not None
    assert db.query(ScanLog).count() == 2
    assert db.query(ScanLog).filter_by(is_valid=True).count() == 1


def test_qr_payload_is_accepted(db, paid_booking, org_id):
    payload = json.dumps({"ref": paid_booking.booking_reference.lower()})

    result = GateValidator(db).scan(payload, org_id, scan_method="qr")

    assert result.is_valid is True
    assert db.query(ScanLog).one().scan_method == "qr"


def test_not_found(db, seeded, org_id):
    result = GateValidator(db).scan("BK-MISSING1", org_id)

    assert result.is_valid is False
    assert result.code == "not_found"
    assert db.query(ScanLog).one().booking_id is None


def test_other_organization_sees_not_found(db, paid_booking, other_org_id):
    result = GateValidator(db).scan(paid_booking.booking_reference, other_org_id)
    assert result.code == "not_found"


def test_cancelled(db, paid_booking, org_id):
    BookingLifecycle(db).cancel(paid_booking.booking_reference)

    result = GateValidator(db).scan(paid_booking.booking_reference, org_id)

    assert result.is_valid is False
    assert result.code == "cancelled"


def test_pending_payment_is_not_admitted(db, seeded, make_booking_in, org_id):
    booking = place_booking(db, make_booking_in(seeded.showtime_id, [("B", 1)]))

    result = GateValidator(db).scan(booking.booking_reference, org_id)

    assert result.is_valid is False
    assert result.code == "payment_pending"


def test_expired_three_hours_after_start(db, seeded, paid_booking, org_id):
    move_showtime(db, seeded.showtime_id, -timedelta(hours=3, minutes=1))

    result = GateValidator(db).scan(paid_booking.booking_reference, org_id)

    assert result.is_valid is False
    assert result.code == "expired"


def test_late_arrival_within_window_is_admitted(db, seeded, paid_booking, org_id):
    move_showtime(db, seeded.showtime_id, -timedelta(hours=2, minutes=30))

    assert GateValidator(db).scan(paid_booking.booking_reference, org_id).is_valid is True


def test_early_arrival_is_valid_with_advisory(db, seeded, paid_booking, org_id):
    move_showtime(db, seeded.showtime_id, timedelta(hours=5, minutes=10))

    result = GateValidator(db).scan(paid_booking.booking_reference, org_id)

    assert result.is_valid is True
    assert "Show starts in 5h" in result.message


def test_lost_race_reports_already_used(db, paid_booking, org_id, monkeypatch):
    gate = GateValidator(db)

    def rival_scanned_first(booking, now):
        db.query(type(booking)).filter_by(id=booking.id).update(
            {"status": "used", "used_at": now}, synchronize_session=False
        )
        return False

    monkeypatch.setattr(gate.lifecycle, "mark_used", rival_scanned_first)

    result = gate.scan(paid_booking.booking_reference, org_id)

    assert result.is_valid is False
    assert result.code == "already_used"
