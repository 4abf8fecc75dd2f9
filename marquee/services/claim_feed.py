import logging
from typing import Iterable, List, Optional
from uuid import UUID

from sqlalchemy.orm import Session

from marquee.core.config import settings
from marquee.models.booking import BookedSeat, SeatClaimEvent
from marquee.services.selection import CLAIMED, RELEASED, ClaimEvent

logger = logging.getLogger(__name__)


def record_claims(db: Session, booking_id: UUID, showtime_id: UUID, claims: Iterable[BookedSeat]) -> None:
    """Append one 'claimed' event per seat. Must share the claim insert's transaction."""
    for claim in claims:
        db.add(SeatClaimEvent(
            showtime_id=showtime_id,
            booking_id=booking_id,
            row_label=claim.row_label,
            seat_number=claim.seat_number,
            kind=CLAIMED,
        ))


def record_releases(db: Session, booking_id: UUID, showtime_id: UUID, claims: Iterable[BookedSeat]) -> None:
    for claim in claims:
        db.add(SeatClaimEvent(
            showtime_id=showtime_id,
            booking_id=booking_id,
            row_label=claim.row_label,
            seat_number=claim.seat_number,
            kind=RELEASED,
        ))


def events_since(
    db: Session,
    showtime_id: UUID,
    since: int = 0,
    limit: Optional[int] = None,
) -> List[ClaimEvent]:
    """Claim and release events for a showtime with cursor > since, oldest first."""
    limit = limit or settings.CLAIM_FEED_PAGE_SIZE
    rows = (
        db.query(SeatClaimEvent)
        .filter(
            SeatClaimEvent.showtime_id == showtime_id,
            SeatClaimEvent.id > since,
        )
        .order_by(SeatClaimEvent.id)
        .limit(limit)
        .all()
    )
    return [
        ClaimEvent(
            cursor=row.id,
            row_label=row.row_label,
            seat_number=row.seat_number,
            kind=row.kind,
        )
        for row in rows
    ]
