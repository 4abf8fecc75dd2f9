import random
import string

from marquee.core.config import settings

# No 0/O or 1/I: references get read aloud and typed at the gate
REFERENCE_ALPHABET = "".join(
    c for c in string.ascii_uppercase + string.digits if c not in "0O1I"
)

_rng = random.SystemRandom()


def generate_booking_reference() -> str:
    """Generate an opaque 'BK-XXXXXXXX' reference.

    Uniqueness is enforced by the bookings.booking_reference constraint; callers
    retry on collision instead of checking first.
    """
    body = "".join(_rng.choices(REFERENCE_ALPHABET, k=settings.BOOKING_REFERENCE_LENGTH))
    return f"{settings.BOOKING_REFERENCE_PREFIX}-{body}"


def normalize_reference(value: str) -> str:
    return value.strip().upper()
