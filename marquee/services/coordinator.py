"""
Seat reservation coordinator.

commit() claims a seat set and creates the booking in one transaction. It never
checks availability first: it inserts, and the partial unique index on
booked_seats (showtime, row, seat WHERE released_at IS NULL) decides who wins.
A uniqueness violation on a seat is the only reason a well-formed commit is
turned down.
"""
import logging
from dataclasses import dataclass, field
from datetime import datetime
from typing import Callable, List, Optional, Sequence
from uuid import UUID

from sqlalchemy.exc import DBAPIError, IntegrityError, OperationalError
from sqlalchemy.orm import Session

from marquee.core.config import settings
from marquee.core.exceptions import MarqueeError, SeatConflictError, TransientStoreError
from marquee.models.booking import BookedSeat, Booking, BookingCombo, BookingConcession
from marquee.services import claim_feed
from marquee.services.pricing import ComboLine, ConcessionLine, PriceQuote, SeatLine
from marquee.utils.references import generate_booking_reference

logger = logging.getLogger(__name__)


@dataclass
class BookingDraft:
    """Everything the booking row needs apart from its reference and seats."""
    organization_id: UUID
    showtime_id: UUID
    customer_name: str
    customer_email: str
    status: str
    channel: str
    quote: PriceQuote
    customer_phone: Optional[str] = None
    customer_id: Optional[UUID] = None
    payment_method: Optional[str] = None
    promo_code_id: Optional[UUID] = None
    loyalty_reward_id: Optional[UUID] = None
    loyalty_points_redeemed: int = 0
    paid_at: Optional[datetime] = None
    concessions: Sequence[ConcessionLine] = field(default_factory=tuple)
    combos: Sequence[ComboLine] = field(default_factory=tuple)


# Called inside the commit transaction once booking and claims are flushed
OnClaimed = Callable[[Session, Booking], None]


class SeatCoordinator:
    def __init__(self, db: Session):
        self.db = db

    def commit(
        self,
        showtime_id: UUID,
        seats: Sequence[SeatLine],
        draft: BookingDraft,
        on_claimed: Optional[OnClaimed] = None,
    ) -> Booking:
        """Claim every seat and create the booking, or do neither.

        Raises SeatConflictError if any seat is already held by a live claim,
        TransientStoreError if the store could not be reached. A booking
        reference collision is retried with a fresh reference.
        """
        attempts = max(1, settings.BOOKING_REFERENCE_ATTEMPTS)
        for attempt in range(1, attempts + 1):
            reference = generate_booking_reference()
            try:
                booking = self._insert(reference, showtime_id, seats, draft)
                if on_claimed is not None:
                    on_claimed(self.db, booking)
                self.db.commit()
            except IntegrityError:
                self.db.rollback()
                contested = self._contested(showtime_id, seats)
                if contested:
                    logger.info(
                        "Commit lost on showtime %s: %s already claimed",
                        showtime_id, ", ".join(f"{r}{n}" for r, n in contested),
                    )
                    raise SeatConflictError(contested)
                logger.warning(
                    "Booking reference collision on attempt %d/%d, retrying", attempt, attempts
                )
                continue
            except OperationalError as exc:
                self.db.rollback()
                logger.warning("Store unavailable during commit on showtime %s: %s", showtime_id, exc)
                raise TransientStoreError("Booking store is unavailable, please retry") from exc
            except DBAPIError as exc:
                self.db.rollback()
                if exc.connection_invalidated:
                    raise TransientStoreError("Lost connection to the booking store, please retry") from exc
                raise
            except MarqueeError:
                # on_claimed refused the booking (usage cap, points balance)
                self.db.rollback()
                raise

            self.db.refresh(booking)
            logger.info(
                "Booking %s committed on showtime %s with %d seat(s), status=%s",
                booking.booking_reference, showtime_id, len(seats), booking.status,
            )
            return booking

        raise TransientStoreError("Could not allocate a booking reference, please retry")

    def _insert(
        self,
        reference: str,
        showtime_id: UUID,
        seats: Sequence[SeatLine],
        draft: BookingDraft,
    ) -> Booking:
        quote = draft.quote
        booking = Booking(
            organization_id=draft.organization_id,
            showtime_id=showtime_id,
            customer_id=draft.customer_id,
            customer_name=draft.customer_name,
            customer_email=draft.customer_email,
            customer_phone=draft.customer_phone,
            booking_reference=reference,
            status=draft.status,
            channel=draft.channel,
            payment_method=draft.payment_method,
            tickets_subtotal=quote.tickets_subtotal,
            concessions_subtotal=quote.concessions_subtotal,
            combos_subtotal=quote.combos_subtotal,
            subtotal=quote.subtotal,
            promo_discount=quote.promo_discount,
            loyalty_discount=quote.loyalty_discount,
            discount_amount=quote.discount_amount,
            total_amount=quote.total,
            promo_code_id=draft.promo_code_id,
            loyalty_reward_id=draft.loyalty_reward_id,
            loyalty_points_redeemed=draft.loyalty_points_redeemed,
            paid_at=draft.paid_at,
        )
        self.db.add(booking)
        self.db.flush()  # booking.id; a reference collision surfaces here

        claims = [
            BookedSeat(
                booking_id=booking.id,
                showtime_id=showtime_id,
                row_label=line.row_label,
                seat_number=line.seat_number,
                seat_type=line.seat_type,
                price=line.price,
            )
            for line in seats
        ]
        self.db.add_all(claims)
        for line in draft.concessions:
            self.db.add(BookingConcession(
                booking_id=booking.id,
                concession_item_id=line.item_id,
                name=line.name,
                unit_price=line.unit_price,
                quantity=line.quantity,
            ))
        for line in draft.combos:
            self.db.add(BookingCombo(
                booking_id=booking.id,
                combo_deal_id=line.combo_id,
                name=line.name,
                combo_price=line.combo_price,
                quantity=line.quantity,
            ))
        claim_feed.record_claims(self.db, booking.id, showtime_id, claims)
        self.db.flush()  # the seat uniqueness check happens here
        return booking

    def _contested(self, showtime_id: UUID, seats: Sequence[SeatLine]) -> List[tuple]:
        """Seats from the request that a live claim now holds."""
        wanted = {(s.row_label, s.seat_number) for s in seats}
        rows = (
            self.db.query(BookedSeat.row_label, BookedSeat.seat_number)
            .filter(
                BookedSeat.showtime_id == showtime_id,
                BookedSeat.released_at.is_(None),
                BookedSeat.row_label.in_(sorted({r for r, _ in wanted})),
            )
            .all()
        )
        return sorted((r.row_label, r.seat_number) for r in rows if (r.row_label, r.seat_number) in wanted)
