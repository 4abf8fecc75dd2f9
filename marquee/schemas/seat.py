from typing import Optional, List
from pydantic import BaseModel, UUID4
from decimal import Decimal
from datetime import datetime


# --- Seat Map (public) ---

class SeatStatus(BaseModel):
    number: int
    label: str
    seat_type: str  # standard, vip, unavailable
    price: Decimal
    status: str  # available, booked, unavailable
    price_lock: Optional[str] = None


class SeatRow(BaseModel):
    label: str
    seats: List[SeatStatus]


class ShowtimeSummary(BaseModel):
    id: UUID4
    movie_title: Optional[str] = None
    screen_name: Optional[str] = None
    start_time: datetime
    price: Decimal
    vip_price: Optional[Decimal] = None


class SeatMapResponse(BaseModel):
    showtime: ShowtimeSummary
    rows: List[SeatRow]
    available_count: int
    # resume the claim feed from here
    cursor: int


# --- Claim feed ---

class ClaimEventResponse(BaseModel):
    cursor: int
    row_label: str
    seat_number: int
    kind: str  # claimed, released


class ClaimFeedResponse(BaseModel):
    showtime_id: UUID4
    events: List[ClaimEventResponse]
    cursor: int
