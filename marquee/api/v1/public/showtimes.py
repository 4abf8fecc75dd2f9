import asyncio
import json
import logging
from typing import AsyncIterator, Awaitable, Callable, Optional
from uuid import UUID

from fastapi import APIRouter, Depends, Header, Query, Request
from sqlalchemy.orm import Session
from sse_starlette.sse import EventSourceResponse
from starlette.concurrency import run_in_threadpool

from marquee.core.config import settings
from marquee.db.session import SessionLocal, get_db
from marquee.schemas.seat import (
    ClaimEventResponse,
    ClaimFeedResponse,
    SeatMapResponse,
    SeatRow,
    SeatStatus,
    ShowtimeSummary,
)
from marquee.services.claim_feed import events_since
from marquee.services.seat_map import get_showtime, load_seat_map, seat_label

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/showtimes", tags=["Showtimes"])


# ---------------------------------------------------------------------------
# Public: Seat map (seat selection screen)
# ---------------------------------------------------------------------------


@router.get("/{showtime_id}/seat-map", response_model=SeatMapResponse)
def get_seat_map(
    showtime_id: UUID,
    db: Session = Depends(get_db),
):
    """
    Returns the seat map for a showtime, grouped by row.
    Does not require authentication; anyone can view availability.
    `cursor` is the claim-feed position the map already reflects.
    """
    showtime = get_showtime(db, showtime_id)
    seat_map = load_seat_map(db, showtime_id)

    rows = [
        SeatRow(
            label=label,
            seats=[
                SeatStatus(
                    number=seat.seat_number,
                    label=seat_label(seat.row_label, seat.seat_number),
                    seat_type=seat.seat_type,
                    price=seat.price,
                    status=seat.status,
                    price_lock=seat.price_lock,
                )
                for seat in sorted(seats, key=lambda s: s.seat_number)
            ],
        )
        for label, seats in sorted(seat_map.rows.items())
    ]
    available = sum(1 for s in seat_map.seats.values() if s.status == "available")

    return SeatMapResponse(
        showtime=ShowtimeSummary(
            id=showtime.id,
            movie_title=showtime.movie.title if showtime.movie else None,
            screen_name=seat_map.screen_name,
            start_time=showtime.start_time,
            price=showtime.price,
            vip_price=showtime.vip_price,
        ),
        rows=rows,
        available_count=available,
        cursor=seat_map.cursor,
    )


# ---------------------------------------------------------------------------
# Public: Claim feed (poll or stream)
# ---------------------------------------------------------------------------


@router.get("/{showtime_id}/claims", response_model=ClaimFeedResponse)
def get_claims(
    showtime_id: UUID,
    since: int = Query(0, ge=0, description="Return events after this cursor"),
    limit: Optional[int] = Query(None, ge=1, le=1000),
    db: Session = Depends(get_db),
):
    """
    Claim and release events after `since`, oldest first.
    Clients apply them to their local seat selection and keep the returned cursor.
    """
    get_showtime(db, showtime_id, active_only=False)
    events = events_since(db, showtime_id, since=since, limit=limit)
    return ClaimFeedResponse(
        showtime_id=showtime_id,
        events=[ClaimEventResponse(**vars(e)) for e in events],
        cursor=events[-1].cursor if events else since,
    )


def _poll_feed(showtime_id: UUID, since: int):
    db = SessionLocal()
    try:
        return events_since(db, showtime_id, since=since)
    finally:
        db.close()


def resume_cursor(since: int, last_event_id: Optional[str]) -> int:
    """A browser reconnecting with Last-Event-ID never goes back before it."""
    if last_event_id and last_event_id.isdigit():
        return max(since, int(last_event_id))
    return since


def claim_event_message(event) -> dict:
    return {
        "id": str(event.cursor),
        "event": event.kind,
        "data": json.dumps({
            "cursor": event.cursor,
            "row_label": event.row_label,
            "seat_number": event.seat_number,
            "kind": event.kind,
        }),
    }


async def claim_events(
    showtime_id: UUID,
    cursor: int,
    is_disconnected: Callable[[], Awaitable[bool]],
    poll_seconds: Optional[float] = None,
) -> AsyncIterator[dict]:
    """Poll the claim feed from `cursor` and yield one SSE message per event."""
    if poll_seconds is None:
        poll_seconds = settings.CLAIM_STREAM_POLL_SECONDS
    position = cursor
    logger.info("Claim stream opened for showtime %s at cursor %d", showtime_id, position)
    try:
        while True:
            if await is_disconnected():
                break
            events = await run_in_threadpool(_poll_feed, showtime_id, position)
            for event in events:
                position = event.cursor
                yield claim_event_message(event)
            await asyncio.sleep(poll_seconds)
    finally:
        logger.info("Claim stream closed for showtime %s at cursor %d", showtime_id, position)


@router.get("/{showtime_id}/claims/stream")
async def stream_claims(
    showtime_id: UUID,
    request: Request,
    since: int = Query(0, ge=0),
    last_event_id: Optional[str] = Header(None, alias="Last-Event-ID"),
    db: Session = Depends(get_db),
):
    """
    Server-Sent Events stream of claim events. Each message id is the feed
    cursor, so a reconnecting browser resumes where it stopped.
    """
    get_showtime(db, showtime_id, active_only=False)
    return EventSourceResponse(
        claim_events(showtime_id, resume_cursor(since, last_event_id), request.is_disconnected),
        headers={"X-Accel-Buffering": "no"},
        ping=30,
    )
