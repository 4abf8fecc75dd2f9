from marquee.schemas.common import PaginatedResponse, ErrorResponse, PromoRejectedError, SeatTakenError
from marquee.schemas.seat import (
    SeatMapResponse, SeatRow, SeatStatus, ShowtimeSummary,
    ClaimEventResponse, ClaimFeedResponse,
)
from marquee.schemas.checkout import CartRequest, CartItemIn, SeatSelectionIn, QuoteResponse, QuoteLine
from marquee.schemas.booking import (
    Booking, BookingCreate, BookingCancelRequest, BookingCancelResponse, AdminBookingListItem,
)
from marquee.schemas.payment import PaymentConfirmation, PaymentConfirmationResponse
from marquee.schemas.gate import ScanRequest, ScanResponse, ScanLogEntry
