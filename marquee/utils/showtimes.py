from datetime import datetime, timedelta
from typing import Optional

from sqlalchemy.orm import Session

from marquee.core.config import settings
from marquee.models.showtime import Showtime
from marquee.utils.clock import utcnow


def deactivate_past_showtimes(db: Session, now: Optional[datetime] = None) -> int:
    """
    Mark as inactive all showtimes that are long over.

    A showtime is past once its start_time is more than GATE_EXPIRY_HOURS ago,
    the same cut-off the gate uses to expire tickets. Inactive showtimes are
    no longer offered for sale; gate validation still resolves their bookings.

    Returns the number of showtimes deactivated.
    """
    now = now or utcnow()
    cutoff = now - timedelta(hours=settings.GATE_EXPIRY_HOURS)

    count = (
        db.query(Showtime)
        .filter(
            Showtime.is_active == True,  # noqa: E712
            Showtime.start_time < cutoff,
        )
        .update({"is_active": False}, synchronize_session="fetch")
    )
    db.commit()
    return count
