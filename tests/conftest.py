"""
Test configuration and fixtures.

Environment setup must run before any marquee import: settings and the engine
are built at import time from DATABASE_URL.
"""
import os
import tempfile
from pathlib import Path


def _early_setup_test_environment() -> None:
    # File-backed SQLite so that threads in the race tests share one database
    test_dir = Path(tempfile.mkdtemp(prefix="marquee-tests-"))
    os.environ["DATABASE_URL"] = f"sqlite:///{test_dir / 'marquee_test.db'}"
    os.environ["SECRET_KEY"] = "test-secret-key"
    os.environ["PAYMENT_CALLBACK_SECRET"] = "test-payment-secret"
    os.environ.setdefault("LOG_LEVEL", "WARNING")


_early_setup_test_environment()

import uuid  # noqa: E402
from datetime import timedelta  # noqa: E402
from decimal import Decimal  # noqa: E402
from types import SimpleNamespace  # noqa: E402

import pytest  # noqa: E402
from fastapi.testclient import TestClient  # noqa: E402

from marquee.core.security import create_access_token  # noqa: E402
from marquee.db.base import Base  # noqa: E402
from marquee.db.session import SessionLocal, engine, get_db  # noqa: E402
from marquee.main import app  # noqa: E402
from marquee.models import (  # noqa: E402
    ComboDeal, ConcessionItem, Customer, LoyaltyReward, LoyaltySettings,
    Movie, PromoCode, Screen, SeatLayout, Showtime,
)
from marquee.schemas.booking import BookingCreate  # noqa: E402
from marquee.utils.clock import utcnow  # noqa: E402

ORG_ID = uuid.UUID("6f1c2b9e-3a4d-4e5f-8a9b-0c1d2e3f4a5b")
OTHER_ORG_ID = uuid.UUID("0a1b2c3d-4e5f-4a6b-8c7d-9e0f1a2b3c4d")
PAYMENT_HEADERS = {"X-Payment-Secret": "test-payment-secret"}


@pytest.fixture(autouse=True)
def reset_database():
    Base.metadata.drop_all(bind=engine)
    Base.metadata.create_all(bind=engine)
    yield


@pytest.fixture
def db():
    session = SessionLocal()
    try:
        yield session
    finally:
        session.close()


@pytest.fixture
def client():
    def override_get_db():
        session = SessionLocal()
        try:
            yield session
        finally:
            session.close()

    app.dependency_overrides[get_db] = override_get_db
    # not used as a context manager: the lifespan (db creation, cleanup loop) stays off
    yield TestClient(app)
    app.dependency_overrides.clear()


def staff_headers(role: str = "box_office", organization_id: uuid.UUID = ORG_ID) -> dict:
    token = create_access_token(subject="staff-1", organization_id=str(organization_id), role=role)
    return {"Authorization": f"Bearer {token}"}


@pytest.fixture
def seeded(db):
    """One screen (rows A-C x 5, row A VIP, C5 broken), one showtime in an hour, catalog and loyalty."""
    now = utcnow()

    movie = Movie(organization_id=ORG_ID, title="The Long Take", duration_minutes=120, rating="PG-13")
    screen = Screen(organization_id=ORG_ID, name="Screen 1", rows=3, columns=5)
    db.add_all([movie, screen])
    db.flush()

    for row in "ABC":
        for number in range(1, 6):
            seat_type = "vip" if row == "A" else "standard"
            if (row, number) == ("C", 5):
                seat_type = "unavailable"
            db.add(SeatLayout(screen_id=screen.id, row_label=row, seat_number=number, seat_type=seat_type))

    showtime = Showtime(
        organization_id=ORG_ID,
        movie_id=movie.id,
        screen_id=screen.id,
        start_time=now + timedelta(hours=1),
        price=Decimal("10.00"),
        vip_price=Decimal("15.00"),
    )
    popcorn = ConcessionItem(organization_id=ORG_ID, name="Popcorn", price=Decimal("5.00"))
    soda = ConcessionItem(organization_id=ORG_ID, name="Soda", price=Decimal("3.00"))
    combo = ComboDeal(
        organization_id=ORG_ID, name="Movie Night", combo_price=Decimal("12.00"),
        original_price=Decimal("16.00"),
    )
    promos = {
        "SAVE10": PromoCode(
            organization_id=ORG_ID, code="SAVE10", discount_type="percentage",
            discount_value=Decimal("10"), min_purchase_amount=Decimal("20.00"),
        ),
        "FIVEOFF": PromoCode(
            organization_id=ORG_ID, code="FIVEOFF", discount_type="fixed",
            discount_value=Decimal("5.00"), min_purchase_amount=Decimal("0"),
        ),
        "ONCE": PromoCode(
            organization_id=ORG_ID, code="ONCE", discount_type="percentage",
            discount_value=Decimal("10"), min_purchase_amount=Decimal("0"), max_uses=1,
        ),
        "OLD": PromoCode(
            organization_id=ORG_ID, code="OLD", discount_type="fixed",
            discount_value=Decimal("2.00"), min_purchase_amount=Decimal("0"),
            valid_until=now - timedelta(days=1),
        ),
    }
    customer = Customer(organization_id=ORG_ID, email="alice@example.com", full_name="Alice", loyalty_points=300)
    loyalty_settings = LoyaltySettings(
        organization_id=ORG_ID, is_enabled=True,
        points_per_dollar=Decimal("1"), points_per_booking=10,
    )
    free_ticket = LoyaltyReward(
        organization_id=ORG_ID, name="Free ticket", reward_type="free_ticket", points_required=200,
    )
    five_off = LoyaltyReward(
        organization_id=ORG_ID, name="Five off", reward_type="discount_fixed",
        points_required=100, discount_value=Decimal("5.00"),
    )
    db.add_all([showtime, popcorn, soda, combo, customer, loyalty_settings, free_ticket, five_off])
    db.add_all(promos.values())
    db.commit()

    return SimpleNamespace(
        showtime_id=showtime.id,
        screen_id=screen.id,
        movie_id=movie.id,
        popcorn_id=popcorn.id,
        soda_id=soda.id,
        combo_id=combo.id,
        promo_ids={code: p.id for code, p in promos.items()},
        customer_id=customer.id,
        free_ticket_id=free_ticket.id,
        five_off_id=five_off.id,
    )


def booking_payload(showtime_id, seats, **overrides) -> dict:
    payload = {
        "showtime_id": str(showtime_id),
        "seats": [{"row_label": r, "seat_number": n} for r, n in seats],
        "customer_name": "Bob Viewer",
        "customer_email": "bob@example.com",
    }
    payload.update(overrides)
    return payload


def booking_in(showtime_id, seats, **overrides) -> BookingCreate:
    return BookingCreate.model_validate(booking_payload(showtime_id, seats, **overrides))


@pytest.fixture
def org_id():
    return ORG_ID


@pytest.fixture
def other_org_id():
    return OTHER_ORG_ID


@pytest.fixture
def auth_headers():
    return staff_headers


@pytest.fixture
def payment_headers():
    return dict(PAYMENT_HEADERS)


@pytest.fixture
def make_payload():
    return booking_payload


@pytest.fixture
def make_booking_in():
    return booking_in
