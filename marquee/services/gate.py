"""
Gate validation.

A scan resolves to exactly one result, checked in order: not found, already
used, cancelled, payment pending, expired, valid. A valid scan marks the
booking used with a compare-and-swap, so of two agents scanning the same ticket
at the same moment only one lets the holder in. Every scan is logged.
"""
import json
import logging
from dataclasses import dataclass, field
from datetime import datetime, timedelta
from typing import List, Optional
from uuid import UUID

from sqlalchemy.exc import OperationalError
from sqlalchemy.orm import Session, joinedload

from marquee.core.config import settings
from marquee.core.exceptions import TransientStoreError
from marquee.models.booking import Booking, BookingStatus
from marquee.models.scan_log import ScanLog
from marquee.models.showtime import Showtime
from marquee.services.lifecycle import BookingLifecycle, is_expired
from marquee.services.seat_map import seat_label
from marquee.utils.clock import ensure_utc, utcnow
from marquee.utils.references import normalize_reference

logger = logging.getLogger(__name__)

VALID = "valid"
NOT_FOUND = "not_found"
ALREADY_USED = "already_used"
CANCELLED = "cancelled"
PAYMENT_PENDING = "payment_pending"
EXPIRED = "expired"


@dataclass
class ScanResult:
    is_valid: bool
    code: str
    message: str
    booking_reference: str
    customer_name: Optional[str] = None
    seats: List[str] = field(default_factory=list)
    movie_title: Optional[str] = None
    screen_name: Optional[str] = None
    start_time: Optional[datetime] = None


def extract_reference(raw: str) -> str:
    """Pull the booking reference out of a QR payload or a typed code."""
    raw = (raw or "").strip()
    if raw.startswith("{"):
        try:
            payload = json.loads(raw)
        except ValueError:
            payload = None
        if isinstance(payload, dict):
            value = payload.get("ref") or payload.get("booking_reference") or ""
            return normalize_reference(str(value))
    return normalize_reference(raw)


def _hours_until(start_time: datetime, now: datetime) -> int:
    return int((ensure_utc(start_time) - now).total_seconds() // 3600)


class GateValidator:
    def __init__(self, db: Session):
        self.db = db
        self.lifecycle = BookingLifecycle(db)

    def scan(
        self,
        raw: str,
        organization_id: UUID,
        scan_method: str = "manual",
        scanned_by: Optional[str] = None,
        now: Optional[datetime] = None,
    ) -> ScanResult:
        now = now or utcnow()
        reference = extract_reference(raw)
        try:
            result, booking_id = self._evaluate(reference, organization_id, now)
            self.db.add(ScanLog(
                organization_id=organization_id,
                booking_reference=reference or "-",
                booking_id=booking_id,
                is_valid=result.is_valid,
                result_code=result.code,
                message=result.message,
                scan_method=scan_method,
                scanned_by=scanned_by,
                scanned_at=now,
            ))
            self.db.commit()
        except OperationalError as exc:
            self.db.rollback()
            raise TransientStoreError("Booking store is unavailable, please retry") from exc

        logger.info("Gate scan %s by %s: %s", reference, scanned_by or "-", result.code)
        return result

    def _load(self, reference: str, organization_id: UUID) -> Optional[Booking]:
        if not reference:
            return None
        return (
            self.db.query(Booking)
            .options(
                joinedload(Booking.seats),
                joinedload(Booking.showtime).joinedload(Showtime.movie),
                joinedload(Booking.showtime).joinedload(Showtime.screen),
            )
            .filter(
                Booking.booking_reference == reference,
                Booking.organization_id == organization_id,
            )
            .first()
        )

    def _evaluate(self, reference: str, organization_id: UUID, now: datetime):
        booking = self._load(reference, organization_id)
        if booking is None:
            return ScanResult(False, NOT_FOUND, "Booking not found", reference), None

        def result(is_valid: bool, code: str, message: str) -> ScanResult:
            showtime = booking.showtime
            return ScanResult(
                is_valid=is_valid,
                code=code,
                message=message,
                booking_reference=booking.booking_reference,
                customer_name=booking.customer_name,
                seats=sorted(
                    (seat_label(s.row_label, s.seat_number) for s in booking.seats),
                ),
                movie_title=showtime.movie.title if showtime and showtime.movie else None,
                screen_name=showtime.screen.name if showtime and showtime.screen else None,
                start_time=showtime.start_time if showtime else None,
            )

        if booking.status == BookingStatus.used.value:
            return result(False, ALREADY_USED, "Ticket already used"), booking.id
        if booking.status == BookingStatus.cancelled.value:
            return result(False, CANCELLED, "Booking was cancelled"), booking.id
        if booking.status == BookingStatus.pending.value:
            return result(False, PAYMENT_PENDING, "Payment pending"), booking.id

        start_time = booking.showtime.start_time
        if is_expired(start_time, now):
            return result(False, EXPIRED, "Showtime has passed"), booking.id

        if not self.lifecycle.mark_used(booking, now):
            # another gate won the compare-and-swap; report what it left behind
            self.db.refresh(booking)
            if booking.status == BookingStatus.used.value:
                return result(False, ALREADY_USED, "Ticket already used"), booking.id
            return result(False, booking.status, f"Booking is {booking.status}"), booking.id

        message = "Entry allowed"
        if ensure_utc(start_time) - now > timedelta(hours=settings.GATE_ADVISORY_HOURS):
            message = f"Entry allowed. Show starts in {_hours_until(start_time, now)}h"
        return result(True, VALID, message), booking.id
