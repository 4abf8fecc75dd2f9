
from marquee.models.movie import Movie
from marquee.models.screen import Screen, SeatLayout, SeatType
from marquee.models.showtime import Showtime
from marquee.models.concession import ConcessionItem, ComboDeal
from marquee.models.promo import PromoCode, DiscountType
from marquee.models.loyalty import Customer, LoyaltySettings, LoyaltyReward, LoyaltyTransaction, RewardType
from marquee.models.booking import (
    Booking, BookingStatus, BookingChannel, BookedSeat, SeatClaimEvent,
    BookingConcession, BookingCombo, BookingTransition,
)
from marquee.models.scan_log import ScanLog
