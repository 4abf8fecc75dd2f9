from typing import Annotated, Optional, List
from pydantic import BaseModel, Field, UUID4, EmailStr, field_validator
from decimal import Decimal


# Cart lines, as posted by the client
class SeatSelectionIn(BaseModel):
    row_label: Annotated[str, Field(min_length=1, max_length=5)]
    seat_number: Annotated[int, Field(ge=1)]
    # signed price from the seat map, frozen into the cart at selection time
    price_lock: Optional[str] = None

    @field_validator("row_label")
    @classmethod
    def upper_row(cls, v: str) -> str:
        return v.strip().upper()


class CartItemIn(BaseModel):
    id: UUID4
    quantity: Annotated[int, Field(ge=1, le=50)] = 1


# Cart: POST /checkout/quote
class CartRequest(BaseModel):
    showtime_id: UUID4
    seats: Annotated[List[SeatSelectionIn], Field(min_length=1)]
    concessions: List[CartItemIn] = []
    combos: List[CartItemIn] = []
    promo_code: Optional[str] = None
    customer_email: Optional[EmailStr] = None
    loyalty_reward_id: Optional[UUID4] = None

    @field_validator("promo_code", mode="before")
    @classmethod
    def parse_empty_str_to_none(cls, v):
        if isinstance(v, str) and not v.strip():
            return None
        return v


class QuoteLine(BaseModel):
    label: str
    seat_type: str
    price: Decimal


class QuoteResponse(BaseModel):
    showtime_id: UUID4
    seats: List[QuoteLine]
    tickets_subtotal: Decimal
    concessions_subtotal: Decimal
    combos_subtotal: Decimal
    subtotal: Decimal
    promo_code: Optional[str] = None
    promo_discount: Decimal
    loyalty_discount: Decimal
    loyalty_points: int = 0
    discount_amount: Decimal
    total: Decimal
