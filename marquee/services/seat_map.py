from dataclasses import dataclass, field
from decimal import Decimal
from typing import Dict, FrozenSet, Iterable, List, Optional, Tuple
from uuid import UUID

from sqlalchemy import func
from sqlalchemy.orm import Session, joinedload

from marquee.core.exceptions import NotFoundError, ValidationError
from marquee.core.security import create_price_lock, read_price_lock
from marquee.models.booking import BookedSeat, SeatClaimEvent
from marquee.models.screen import SeatLayout, SeatType
from marquee.models.showtime import Showtime
from marquee.services.pricing import SeatLine, to_money

SeatKey = Tuple[str, int]


def seat_label(row_label: str, seat_number: int) -> str:
    return f"{row_label}{seat_number}"


@dataclass(frozen=True)
class SeatInfo:
    row_label: str
    seat_number: int
    seat_type: str
    price: Decimal
    status: str  # available, booked, unavailable
    # signed price for checkout, only on sellable seats
    price_lock: Optional[str] = None

    @property
    def key(self) -> SeatKey:
        return (self.row_label, self.seat_number)


@dataclass
class SeatMap:
    showtime_id: UUID
    screen_id: UUID
    screen_name: str
    rows: Dict[str, List[SeatInfo]]
    taken: FrozenSet[SeatKey]
    # claim-feed position the snapshot is at least as fresh as
    cursor: int = 0
    seats: Dict[SeatKey, SeatInfo] = field(default_factory=dict)

    def get(self, row_label: str, seat_number: int) -> Optional[SeatInfo]:
        return self.seats.get((row_label, seat_number))


def price_for_seat(showtime: Showtime, seat_type: str) -> Decimal:
    """VIP seats use vip_price when the showtime sets one, everything else the base price."""
    if seat_type == SeatType.vip.value and showtime.vip_price is not None:
        return to_money(showtime.vip_price)
    return to_money(showtime.price)


def is_sellable(seat: SeatLayout) -> bool:
    return bool(seat.is_available) and seat.seat_type != SeatType.unavailable.value


def get_showtime(db: Session, showtime_id: UUID, active_only: bool = True) -> Showtime:
    query = (
        db.query(Showtime)
        .options(joinedload(Showtime.screen), joinedload(Showtime.movie))
        .filter(Showtime.id == showtime_id)
    )
    if active_only:
        query = query.filter(Showtime.is_active == True)  # noqa: E712
    showtime = query.first()
    if not showtime:
        raise NotFoundError("Showtime not found")
    return showtime


def load_layout(db: Session, screen_id: UUID) -> Dict[SeatKey, SeatLayout]:
    seats = (
        db.query(SeatLayout)
        .filter(SeatLayout.screen_id == screen_id)
        .order_by(SeatLayout.row_label, SeatLayout.seat_number)
        .all()
    )
    return {(s.row_label, s.seat_number): s for s in seats}


def active_claims(db: Session, showtime_id: UUID) -> FrozenSet[SeatKey]:
    rows = (
        db.query(BookedSeat.row_label, BookedSeat.seat_number)
        .filter(
            BookedSeat.showtime_id == showtime_id,
            BookedSeat.released_at.is_(None),
        )
        .all()
    )
    return frozenset((r.row_label, r.seat_number) for r in rows)


def latest_cursor(db: Session, showtime_id: UUID) -> int:
    return (
        db.query(func.max(SeatClaimEvent.id))
        .filter(SeatClaimEvent.showtime_id == showtime_id)
        .scalar()
    ) or 0


def load_seat_map(db: Session, showtime_id: UUID) -> SeatMap:
    """Layout of the showtime's screen plus the seats currently claimed."""
    showtime = get_showtime(db, showtime_id, active_only=False)
    layout = load_layout(db, showtime.screen_id)

    # Cursor before claims: anything claimed in between shows up twice, never zero times
    cursor = latest_cursor(db, showtime_id)
    taken = active_claims(db, showtime_id)

    rows: Dict[str, List[SeatInfo]] = {}
    seats: Dict[SeatKey, SeatInfo] = {}
    for key, seat in layout.items():
        sellable = is_sellable(seat)
        if not sellable:
            status = "unavailable"
        elif key in taken:
            status = "booked"
        else:
            status = "available"
        price = price_for_seat(showtime, seat.seat_type)
        info = SeatInfo(
            row_label=seat.row_label,
            seat_number=seat.seat_number,
            seat_type=seat.seat_type,
            price=price,
            status=status,
            price_lock=(
                create_price_lock(showtime.id, seat.row_label, seat.seat_number, price)
                if sellable else None
            ),
        )
        rows.setdefault(seat.row_label, []).append(info)
        seats[key] = info

    return SeatMap(
        showtime_id=showtime.id,
        screen_id=showtime.screen_id,
        screen_name=showtime.screen.name if showtime.screen else "",
        rows=rows,
        taken=taken,
        cursor=cursor,
        seats=seats,
    )


def validate_seats(
    showtime: Showtime,
    layout: Dict[SeatKey, SeatLayout],
    requested: Iterable[Tuple[str, int, Optional[str]]],
) -> List[SeatLine]:
    """Check a requested seat set against the screen layout and price it.

    Each request is (row_label, seat_number, price_lock). A price lock is the
    signed price the seat map showed at selection time; it must have been issued
    for this showtime and seat. Without one the current showtime price applies.
    Nothing here looks at claims: availability is decided by the insert at
    commit time.
    """
    lines: List[SeatLine] = []
    seen = set()
    for row_label, seat_number, price_lock in requested:
        key = (row_label.strip().upper(), seat_number)
        label = seat_label(*key)
        if key in seen:
            raise ValidationError(f"Seat {label} is listed more than once")
        seen.add(key)

        seat = layout.get(key)
        if seat is None:
            raise ValidationError(f"Seat {label} does not exist on this screen")
        if not is_sellable(seat):
            raise ValidationError(f"Seat {label} is not available for sale")

        if price_lock:
            price = read_price_lock(price_lock, showtime.id, seat.row_label, seat.seat_number)
            if price is None:
                raise ValidationError(
                    f"Price for seat {label} is no longer valid, reload the seat map"
                )
            price = to_money(price)
        else:
            price = price_for_seat(showtime, seat.seat_type)

        lines.append(SeatLine(
            row_label=seat.row_label,
            seat_number=seat.seat_number,
            seat_type=seat.seat_type,
            price=price,
        ))

    if not lines:
        raise ValidationError("Select at least one seat")
    return lines
