import hmac
from dataclasses import dataclass
from typing import Callable, Optional
from uuid import UUID

from fastapi import Depends, Header
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer

from marquee.core.config import settings
from marquee.core.exceptions import AuthenticationError, ForbiddenError
from marquee.core.security import decode_token

STAFF_ROLES = ("box_office", "gate", "manager")

bearer_scheme = HTTPBearer(auto_error=False)


@dataclass(frozen=True)
class StaffPrincipal:
    user_id: str
    organization_id: UUID
    role: str


def _principal_from_token(token: str) -> StaffPrincipal:
    claims = decode_token(token)
    if not claims:
        raise AuthenticationError("Could not validate credentials")
    try:
        organization_id = UUID(str(claims.get("org")))
    except ValueError:
        raise AuthenticationError("Token has no organization")
    role = claims.get("role")
    if role not in STAFF_ROLES or not claims.get("sub"):
        raise AuthenticationError("Token is not a staff token")
    return StaffPrincipal(user_id=str(claims["sub"]), organization_id=organization_id, role=role)


def get_current_staff(
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(bearer_scheme),
) -> StaffPrincipal:
    if credentials is None:
        raise AuthenticationError("Not authenticated")
    return _principal_from_token(credentials.credentials)


def get_optional_staff(
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(bearer_scheme),
) -> Optional[StaffPrincipal]:
    """Staff principal when a bearer token is sent, None for anonymous customers."""
    if credentials is None:
        return None
    return _principal_from_token(credentials.credentials)


def require_roles(*roles: str) -> Callable[..., StaffPrincipal]:
    # managers can do anything staff can
    allowed = set(roles) | {"manager"}

    def dependency(staff: StaffPrincipal = Depends(get_current_staff)) -> StaffPrincipal:
        if staff.role not in allowed:
            raise ForbiddenError(f"Role '{staff.role}' may not perform this action")
        return staff

    return dependency


def verify_payment_callback(
    x_payment_secret: Optional[str] = Header(None, alias="X-Payment-Secret"),
) -> None:
    if not x_payment_secret or not hmac.compare_digest(
        x_payment_secret, settings.PAYMENT_CALLBACK_SECRET
    ):
        raise AuthenticationError("Invalid payment callback secret")
