
from marquee.db.session import Base
from marquee.models.movie import Movie
from marquee.models.screen import Screen, SeatLayout
from marquee.models.showtime import Showtime
from marquee.models.concession import ConcessionItem, ComboDeal
from marquee.models.promo import PromoCode
from marquee.models.loyalty import Customer, LoyaltySettings, LoyaltyReward, LoyaltyTransaction
from marquee.models.booking import (
    Booking, BookedSeat, SeatClaimEvent, BookingConcession, BookingCombo, BookingTransition,
)
from marquee.models.scan_log import ScanLog
