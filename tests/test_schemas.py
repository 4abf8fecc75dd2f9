import pytest
from pydantic import ValidationError

from marquee.schemas import BookingCreate, CartRequest, ScanRequest

SHOWTIME_ID = "3f2b8c1e-9d4a-4b6e-8f1a-2c3d4e5f6a7b"


def test_cart_normalizes_rows_and_blank_promo():
    cart = CartRequest.model_validate({
        "showtime_id": SHOWTIME_ID,
        "seats": [{"row_label": " b ", "seat_number": 3, "price_lock": "signed-by-seat-map"}],
        "promo_code": "  ",
    })

    assert cart.seats[0].row_label == "B"
    assert cart.promo_code is None


def test_cart_needs_seats():
    with pytest.raises(ValidationError):
        CartRequest.model_validate({"showtime_id": SHOWTIME_ID, "seats": []})


def test_booking_needs_a_valid_email():
    with pytest.raises(ValidationError):
        BookingCreate.model_validate({
            "showtime_id": SHOWTIME_ID,
            "seats": [{"row_label": "A", "seat_number": 1}],
            "customer_name": "Bob",
            "customer_email": "not-an-email",
        })


def test_scan_defaults_to_manual():
    assert ScanRequest(code="BK-ABCD2345").scan_method == "manual"
