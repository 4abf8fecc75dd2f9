from typing import Any, Dict, List, Optional, Tuple


class MarqueeError(Exception):
    """Base class for domain errors. Each carries the HTTP status it maps to."""

    status_code = 400
    error = "error"
    retryable = False

    def __init__(self, message: str, status_code: Optional[int] = None) -> None:
        self.message = message
        if status_code is not None:
            self.status_code = status_code
        super().__init__(message)

    def to_dict(self) -> Dict[str, Any]:
        return {"error": self.error, "message": self.message, "retryable": self.retryable}


class ValidationError(MarqueeError):
    """Malformed cart or input the user can correct locally."""

    status_code = 422
    error = "validation_error"


class PromoRejected(ValidationError):
    """A promo code that exists but may not be applied to this cart."""

    error = "promo_rejected"

    def __init__(self, reason: str, message: str) -> None:
        self.reason = reason
        super().__init__(message)

    def to_dict(self) -> Dict[str, Any]:
        data = super().to_dict()
        data["reason"] = self.reason
        return data


class NotFoundError(MarqueeError):
    status_code = 404
    error = "not_found"


class ConflictError(MarqueeError):
    """Lost a race. Retrying with identical input will not help."""

    status_code = 409
    error = "conflict"


class SeatConflictError(ConflictError):
    error = "seat_taken"

    def __init__(self, seat_keys: List[Tuple[str, int]]) -> None:
        self.seat_keys = list(seat_keys)
        self.seats = [f"{row}{number}" for row, number in self.seat_keys]
        seats = self.seats
        if len(seats) == 1:
            message = f"Seat {seats[0]} was just taken"
        else:
            message = f"Seats {', '.join(seats)} were just taken"
        super().__init__(message)

    def to_dict(self) -> Dict[str, Any]:
        data = super().to_dict()
        data["seats"] = self.seats
        return data


class InvalidTransitionError(ConflictError):
    error = "invalid_transition"


class TransientStoreError(MarqueeError):
    """Storage or network unavailable. Safe to retry with identical input."""

    status_code = 503
    error = "store_unavailable"
    retryable = True


class AuthenticationError(MarqueeError):
    status_code = 401
    error = "unauthorized"


class ForbiddenError(MarqueeError):
    status_code = 403
    error = "forbidden"
