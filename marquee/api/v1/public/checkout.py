from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from marquee.db.session import get_db
from marquee.schemas.checkout import CartRequest, QuoteLine, QuoteResponse
from marquee.schemas.common import PromoRejectedError
from marquee.services.checkout import price_cart

router = APIRouter(prefix="/checkout", tags=["Checkout"])


@router.post("/quote", response_model=QuoteResponse, responses={422: {"model": PromoRejectedError}})
def quote_cart(
    cart: CartRequest,
    db: Session = Depends(get_db),
):
    """
    Price a cart without writing anything. Call again on every cart change;
    an ineligible promo comes back as 422 with a `reason`.
    """
    priced = price_cart(db, cart)
    quote = priced.quote
    return QuoteResponse(
        showtime_id=priced.showtime.id,
        seats=[QuoteLine(label=s.label, seat_type=s.seat_type, price=s.price) for s in priced.seats],
        tickets_subtotal=quote.tickets_subtotal,
        concessions_subtotal=quote.concessions_subtotal,
        combos_subtotal=quote.combos_subtotal,
        subtotal=quote.subtotal,
        promo_code=quote.promo_code,
        promo_discount=quote.promo_discount,
        loyalty_discount=quote.loyalty_discount,
        loyalty_points=priced.reward.points if priced.reward else 0,
        discount_amount=quote.discount_amount,
        total=quote.total,
    )
