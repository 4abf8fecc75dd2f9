
from datetime import datetime, timedelta, timezone
from decimal import Decimal, InvalidOperation
from typing import Optional

from jose import jwt, JWTError
from marquee.core.config import settings

# Staff tokens are minted by the identity service. create_access_token exists for
# that service's tooling and for tests; the API itself only decodes.

DEFAULT_TOKEN_TTL = timedelta(hours=12)


def create_access_token(
    subject: str,
    organization_id: str,
    role: str,
    expires_delta: Optional[timedelta] = None,
) -> str:
    expire = datetime.now(timezone.utc) + (expires_delta or DEFAULT_TOKEN_TTL)
    to_encode = {"exp": expire, "sub": str(subject), "org": str(organization_id), "role": role}
    return jwt.encode(to_encode, settings.SECRET_KEY, algorithm=settings.JWT_ALGORITHM)


def decode_token(token: str) -> Optional[dict]:
    """Returns the claims dict or None if token is invalid/expired."""
    try:
        return jwt.decode(token, settings.SECRET_KEY, algorithms=[settings.JWT_ALGORITHM])
    except JWTError:
        return None


# Seat price locks: the seat map signs the price it showed for each seat so the
# cart can carry it back without the server trusting a client-chosen amount.

PRICE_LOCK_TYPE = "price_lock"


def create_price_lock(
    showtime_id,
    row_label: str,
    seat_number: int,
    price: Decimal,
    expires_delta: Optional[timedelta] = None,
) -> str:
    ttl = expires_delta or timedelta(minutes=settings.PRICE_LOCK_MINUTES)
    to_encode = {
        "exp": datetime.now(timezone.utc) + ttl,
        "typ": PRICE_LOCK_TYPE,
        "showtime": str(showtime_id),
        "row": row_label,
        "seat": seat_number,
        "price": str(price),
    }
    return jwt.encode(to_encode, settings.SECRET_KEY, algorithm=settings.JWT_ALGORITHM)


def read_price_lock(token: str, showtime_id, row_label: str, seat_number: int) -> Optional[Decimal]:
    """The locked price if the token is valid for exactly this seat, else None."""
    claims = decode_token(token)
    if not claims or claims.get("typ") != PRICE_LOCK_TYPE:
        return None
    if (
        claims.get("showtime") != str(showtime_id)
        or claims.get("row") != row_label
        or claims.get("seat") != seat_number
    ):
        return None
    try:
        return Decimal(claims["price"])
    except (KeyError, InvalidOperation):
        return None
