import logging
from datetime import datetime
from typing import Optional
from uuid import UUID

from sqlalchemy.orm import Session

from marquee.core.exceptions import NotFoundError, PromoRejected
from marquee.models.promo import PromoCode
from marquee.services.pricing import PromoTerms, to_money
from marquee.utils.clock import ensure_utc, utcnow

logger = logging.getLogger(__name__)


def normalize_code(code: str) -> str:
    return code.strip().upper()


def check_promo_eligibility(promo: PromoCode, now: datetime) -> None:
    """Raise PromoRejected unless the promo is active, in its window and under its cap.

    The ticket-minimum rule is applied by the pricing engine, which is the only
    place that knows the ticket subtotal.
    """
    if not promo.is_active:
        raise PromoRejected("inactive", f"Promo code {promo.code} is no longer active")
    if promo.valid_from and ensure_utc(promo.valid_from) > now:
        raise PromoRejected("not_started", f"Promo code {promo.code} is not valid yet")
    if promo.valid_until and ensure_utc(promo.valid_until) < now:
        raise PromoRejected("expired", f"Promo code {promo.code} has expired")
    if promo.max_uses is not None and promo.current_uses >= promo.max_uses:
        raise PromoRejected("usage_limit_reached", f"Promo code {promo.code} has reached its usage limit")


def validate_promo(
    db: Session,
    organization_id: UUID,
    code: str,
    now: Optional[datetime] = None,
) -> PromoTerms:
    """Look up a promo code for an organization and return its pricing terms."""
    now = now or utcnow()
    normalized = normalize_code(code)
    promo = (
        db.query(PromoCode)
        .filter(
            PromoCode.organization_id == organization_id,
            PromoCode.code == normalized,
        )
        .first()
    )
    if not promo:
        raise NotFoundError(f"Promo code {normalized} not found")

    check_promo_eligibility(promo, now)
    logger.debug("Promo %s eligible (%s/%s uses)", promo.code, promo.current_uses, promo.max_uses)

    return PromoTerms(
        code=promo.code,
        discount_type=promo.discount_type,
        discount_value=to_money(promo.discount_value),
        min_purchase_amount=to_money(promo.min_purchase_amount or 0),
        promo_id=promo.id,
    )


def consume_promo(db: Session, promo_id: UUID, enforce_cap: bool) -> None:
    """Increment current_uses in the caller's transaction.

    With enforce_cap the increment is conditional on the cap, so two concurrent
    sales cannot both take the last use; zero rows updated means we lost.
    Without it the increment always happens: used when the customer has already
    paid and the use must be recorded regardless.
    """
    query = db.query(PromoCode).filter(PromoCode.id == promo_id)
    if enforce_cap:
        query = query.filter(
            (PromoCode.max_uses.is_(None)) | (PromoCode.current_uses < PromoCode.max_uses)
        )
    updated = query.update(
        {"current_uses": PromoCode.current_uses + 1},
        synchronize_session=False,
    )
    if updated == 0:
        raise PromoRejected("usage_limit_reached", "Promo code has reached its usage limit")
