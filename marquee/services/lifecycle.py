"""
Booking lifecycle.

    create --online-------> pending --verified payment--> paid
    create --box office---> paid
    paid --box office activation--> confirmed
    paid | confirmed --gate--> used
    pending | paid | confirmed --admin--> cancelled
    (expired is derived from the showtime, never stored)

Every transition is a conditional UPDATE on the current status, so two callers
racing on the same booking cannot both move it. Side effects of the first
admission (promo use, loyalty debit and credit) run in the same transaction as
that transition and are keyed by a booking_transitions row, so observing the
same booking twice never applies them twice.
"""
import logging
from datetime import datetime, timedelta
from decimal import Decimal
from typing import Optional
from uuid import UUID

from sqlalchemy.exc import IntegrityError, OperationalError
from sqlalchemy.orm import Session

from marquee.core.config import settings
from marquee.core.exceptions import (
    InvalidTransitionError, NotFoundError, TransientStoreError, ValidationError,
)
from marquee.models.booking import BookedSeat, Booking, BookingChannel, BookingStatus, BookingTransition
from marquee.services import claim_feed, loyalty, promos
from marquee.services.pricing import to_money
from marquee.utils.clock import ensure_utc, utcnow
from marquee.utils.references import normalize_reference

logger = logging.getLogger(__name__)

ADMITTED_STATUSES = (BookingStatus.paid.value, BookingStatus.confirmed.value)
CANCELLABLE_STATUSES = (
    BookingStatus.pending.value,
    BookingStatus.paid.value,
    BookingStatus.confirmed.value,
)

ADMITTED = "admitted"
CANCELLED = "cancelled"
CONFIRMED = "confirmed"


def initial_status(channel: str) -> str:
    """Box office collects money in person; online sales wait for the gateway."""
    if channel == BookingChannel.box_office.value:
        return BookingStatus.paid.value
    return BookingStatus.pending.value


def is_admitted(status: str) -> bool:
    return status in ADMITTED_STATUSES


def is_expired(start_time: datetime, now: datetime) -> bool:
    return now - ensure_utc(start_time) > timedelta(hours=settings.GATE_EXPIRY_HOURS)


def effective_status(booking: Booking, now: Optional[datetime] = None) -> str:
    """Stored status, or 'expired' for a live booking whose show is long over."""
    now = now or utcnow()
    if booking.status in CANCELLABLE_STATUSES and booking.showtime is not None:
        if is_expired(booking.showtime.start_time, now):
            return BookingStatus.expired.value
    return booking.status


class BookingLifecycle:
    def __init__(self, db: Session):
        self.db = db

    def get_by_reference(self, reference: str, organization_id: Optional[UUID] = None) -> Booking:
        query = self.db.query(Booking).filter(
            Booking.booking_reference == normalize_reference(reference)
        )
        if organization_id is not None:
            query = query.filter(Booking.organization_id == organization_id)
        booking = query.first()
        if not booking:
            raise NotFoundError("Booking not found")
        return booking

    # -- admission side effects -------------------------------------------

    def apply_admission(self, booking: Booking, enforce_limits: bool) -> None:
        """Record the first admission and apply its side effects, in the caller's transaction.

        Raises IntegrityError (from the flush) when the admission was already
        recorded; the caller rolls back and treats that as a replay.
        """
        self.db.add(BookingTransition(booking_id=booking.id, transition=ADMITTED))
        self.db.flush()

        if booking.promo_code_id:
            promos.consume_promo(self.db, booking.promo_code_id, enforce_cap=enforce_limits)
        loyalty.redeem_points(self.db, booking, enforce_balance=enforce_limits)
        loyalty.earn_points(self.db, booking)

    def admit_on_create(self, db: Session, booking: Booking) -> None:
        """Hook for the coordinator: box-office sales are admitted as they are created."""
        if is_admitted(booking.status):
            self.apply_admission(booking, enforce_limits=True)

    # -- transitions ------------------------------------------------------

    def confirm_payment(
        self,
        reference: str,
        verified: bool,
        payment_reference: Optional[str] = None,
        amount: Optional[Decimal] = None,
        now: Optional[datetime] = None,
    ) -> Booking:
        """pending -> paid on a verified payment callback. Safe to call repeatedly."""
        booking = self.get_by_reference(reference)
        if not verified:
            logger.info("Unverified payment callback for %s, no action taken", booking.booking_reference)
            return booking

        if amount is not None and to_money(amount) != to_money(booking.total_amount):
            raise ValidationError(
                f"Paid amount {to_money(amount)} does not match booking total {to_money(booking.total_amount)}"
            )

        now = now or utcnow()
        try:
            updated = (
                self.db.query(Booking)
                .filter(
                    Booking.id == booking.id,
                    Booking.status == BookingStatus.pending.value,
                )
                .update(
                    {
                        "status": BookingStatus.paid.value,
                        "paid_at": now,
                        "payment_method": "gateway",
                        "payment_reference": payment_reference,
                    },
                    synchronize_session=False,
                )
            )
            if updated == 0:
                self.db.rollback()
                self.db.refresh(booking)
                if is_admitted(booking.status) or booking.status == BookingStatus.used.value:
                    logger.info("Payment for %s already confirmed", booking.booking_reference)
                    return booking
                raise InvalidTransitionError(
                    f"Booking {booking.booking_reference} is {booking.status} and cannot be paid"
                )

            self.apply_admission(booking, enforce_limits=False)
            self.db.commit()
        except IntegrityError:
            self.db.rollback()
            logger.info("Admission effects for %s already applied", booking.booking_reference)
        except OperationalError as exc:
            self.db.rollback()
            raise TransientStoreError("Booking store is unavailable, please retry") from exc

        self.db.refresh(booking)
        logger.info("Booking %s is now %s", booking.booking_reference, booking.status)
        return booking

    def activate(
        self,
        reference: str,
        organization_id: UUID,
        confirmed_by: Optional[str] = None,
        now: Optional[datetime] = None,
    ) -> Booking:
        """paid -> confirmed when the box office hands over an online ticket.

        Activating an already confirmed booking returns it unchanged.
        """
        booking = self.get_by_reference(reference, organization_id)
        now = now or utcnow()
        try:
            updated = (
                self.db.query(Booking)
                .filter(
                    Booking.id == booking.id,
                    Booking.status == BookingStatus.paid.value,
                )
                .update(
                    {
                        "status": BookingStatus.confirmed.value,
                        "confirmed_at": now,
                        "confirmed_by": confirmed_by,
                    },
                    synchronize_session=False,
                )
            )
            if updated == 0:
                self.db.rollback()
                self.db.refresh(booking)
                if booking.status == BookingStatus.confirmed.value:
                    logger.info("Booking %s already activated", booking.booking_reference)
                    return booking
                raise InvalidTransitionError(
                    f"Booking {booking.booking_reference} is {booking.status} and cannot be activated"
                )

            self.db.add(BookingTransition(booking_id=booking.id, transition=CONFIRMED))
            self.db.commit()
        except OperationalError as exc:
            self.db.rollback()
            raise TransientStoreError("Booking store is unavailable, please retry") from exc

        self.db.refresh(booking)
        logger.info("Booking %s activated by %s", booking.booking_reference, confirmed_by or "unknown staff")
        return booking

    def mark_used(self, booking: Booking, now: datetime) -> bool:
        """paid|confirmed -> used. False if another scan got there first.

        Leaves the transaction open so the caller can log the scan with it.
        """
        updated = (
            self.db.query(Booking)
            .filter(
                Booking.id == booking.id,
                Booking.status.in_(ADMITTED_STATUSES),
            )
            .update(
                {"status": BookingStatus.used.value, "used_at": now},
                synchronize_session=False,
            )
        )
        return updated == 1

    def cancel(
        self,
        reference: str,
        organization_id: Optional[UUID] = None,
        reason: Optional[str] = None,
        now: Optional[datetime] = None,
    ) -> Booking:
        """Cancel a live booking and release its seats for future commits."""
        booking = self.get_by_reference(reference, organization_id)
        now = now or utcnow()
        try:
            updated = (
                self.db.query(Booking)
                .filter(
                    Booking.id == booking.id,
                    Booking.status.in_(CANCELLABLE_STATUSES),
                )
                .update(
                    {
                        "status": BookingStatus.cancelled.value,
                        "cancelled_at": now,
                        "cancellation_reason": reason,
                    },
                    synchronize_session=False,
                )
            )
            if updated == 0:
                self.db.rollback()
                self.db.refresh(booking)
                if booking.status == BookingStatus.cancelled.value:
                    return booking
                raise InvalidTransitionError(
                    f"Booking {booking.booking_reference} is {booking.status} and cannot be cancelled"
                )

            claims = (
                self.db.query(BookedSeat)
                .filter(
                    BookedSeat.booking_id == booking.id,
                    BookedSeat.released_at.is_(None),
                )
                .all()
            )
            for claim in claims:
                claim.released_at = now
            claim_feed.record_releases(self.db, booking.id, booking.showtime_id, claims)
            self.db.add(BookingTransition(booking_id=booking.id, transition=CANCELLED))
            self.db.commit()
        except OperationalError as exc:
            self.db.rollback()
            raise TransientStoreError("Booking store is unavailable, please retry") from exc

        self.db.refresh(booking)
        logger.info(
            "Booking %s cancelled (%s), released %d seat(s)",
            booking.booking_reference, reason or "no reason given", len(claims),
        )
        return booking
