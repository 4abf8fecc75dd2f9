"""
Client-side seat selection.

Two tiers, kept apart on purpose:

* the advisory tier: seats this client has soft-selected. Mutated freely by
  the user, never sent anywhere until checkout, and holding no lock.
* the confirmed tier: seats known to be claimed by someone. Mutated only by
  claim-feed events and by this client's own commit results.

A soft-selected seat that shows up in the confirmed tier is dropped from the
cart and reported back as a SeatTakenNotice.
"""
from dataclasses import dataclass
from decimal import Decimal
from typing import Dict, FrozenSet, Iterable, List, Optional, Tuple
from uuid import UUID

from marquee.core.exceptions import SeatConflictError
from marquee.services.pricing import SeatLine
from marquee.services.seat_map import SeatKey, SeatMap, seat_label

CLAIMED = "claimed"
RELEASED = "released"


@dataclass(frozen=True)
class ClaimEvent:
    cursor: int
    row_label: str
    seat_number: int
    kind: str = CLAIMED

    @property
    def key(self) -> SeatKey:
        return (self.row_label, self.seat_number)


@dataclass(frozen=True)
class SeatTakenNotice:
    row_label: str
    seat_number: int

    @property
    def message(self) -> str:
        return f"Seat {seat_label(self.row_label, self.seat_number)} was just taken"


class SeatSelection:
    """Soft selection for one showtime, seeded from a seat map snapshot."""

    def __init__(self, seat_map: SeatMap):
        self.showtime_id: UUID = seat_map.showtime_id
        self.cursor: int = seat_map.cursor
        self._seats = seat_map.seats
        self._taken = set(seat_map.taken)
        self._selected: Dict[SeatKey, SeatLine] = {}
        # last feed id applied per seat; guards against duplicates and reordering
        self._applied: Dict[SeatKey, int] = {}

    # -- queries --------------------------------------------------------------

    @property
    def selected(self) -> List[SeatLine]:
        return list(self._selected.values())

    @property
    def taken(self) -> FrozenSet[SeatKey]:
        return frozenset(self._taken)

    def is_taken(self, row_label: str, seat_number: int) -> bool:
        return (row_label, seat_number) in self._taken

    def is_selected(self, row_label: str, seat_number: int) -> bool:
        return (row_label, seat_number) in self._selected

    def is_selectable(self, row_label: str, seat_number: int) -> bool:
        seat = self._seats.get((row_label, seat_number))
        if seat is None or seat.status == "unavailable":
            return False
        return not self.is_taken(row_label, seat_number)

    @property
    def tickets_subtotal(self) -> Decimal:
        return sum((s.price for s in self._selected.values()), Decimal("0.00"))

    # -- advisory tier --------------------------------------------------------

    def select(self, row_label: str, seat_number: int) -> bool:
        """Add a seat to the cart, freezing its current price. False if not selectable."""
        key = (row_label, seat_number)
        if key in self._selected or not self.is_selectable(row_label, seat_number):
            return False
        seat = self._seats[key]
        self._selected[key] = SeatLine(
            row_label=seat.row_label,
            seat_number=seat.seat_number,
            seat_type=seat.seat_type,
            price=seat.price,
        )
        return True

    def deselect(self, row_label: str, seat_number: int) -> bool:
        return self._selected.pop((row_label, seat_number), None) is not None

    def toggle(self, row_label: str, seat_number: int) -> bool:
        """Flip a seat. Returns whether it is selected afterwards."""
        if self.deselect(row_label, seat_number):
            return False
        return self.select(row_label, seat_number)

    def clear(self) -> None:
        self._selected.clear()

    def as_request(self) -> List[Tuple[str, int, Optional[str]]]:
        """Seat tuples with their price locks, ready for the booking payload."""
        return [
            (s.row_label, s.seat_number, self._seats[key].price_lock)
            for key, s in self._selected.items()
        ]

    # -- confirmed tier -------------------------------------------------------

    def apply_claim_event(self, event: ClaimEvent) -> Optional[SeatTakenNotice]:
        key = event.key
        self.cursor = max(self.cursor, event.cursor)
        if self._applied.get(key, 0) >= event.cursor:
            return None
        self._applied[key] = event.cursor

        if event.kind == RELEASED:
            self._taken.discard(key)
            return None

        self._taken.add(key)
        if self._selected.pop(key, None) is not None:
            return SeatTakenNotice(*key)
        return None

    def apply_claim_events(self, events: Iterable[ClaimEvent]) -> List[SeatTakenNotice]:
        notices = []
        for event in events:
            notice = self.apply_claim_event(event)
            if notice:
                notices.append(notice)
        return notices

    def apply_commit_result(self, lines: Iterable[SeatLine]) -> None:
        """Our own commit succeeded: the seats are ours and leave the cart."""
        for line in lines:
            key = (line.row_label, line.seat_number)
            self._taken.add(key)
            self._selected.pop(key, None)

    def apply_conflict(self, error: SeatConflictError) -> List[SeatTakenNotice]:
        """Our commit lost: drop the contested seats and re-offer the rest."""
        notices = []
        for key in error.seat_keys:
            self._taken.add(key)
            if self._selected.pop(key, None) is not None:
                notices.append(SeatTakenNotice(*key))
        return notices
