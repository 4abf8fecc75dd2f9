from typing import Optional

from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session

from marquee.db.session import get_db
from marquee.api.deps import StaffPrincipal, require_roles
from marquee.models.scan_log import ScanLog
from marquee.schemas.common import PaginatedResponse
from marquee.schemas.gate import ScanLogEntry, ScanRequest, ScanResponse, ScanShowtime
from marquee.services.gate import GateValidator

router = APIRouter(prefix="/gate", tags=["Staff - Gate"])


@router.post("/scan", response_model=ScanResponse)
def scan_ticket(
    body: ScanRequest,
    db: Session = Depends(get_db),
    staff: StaffPrincipal = Depends(require_roles("gate", "box_office")),
):
    """
    Validate a QR payload or typed reference and admit the holder.
    An invalid ticket is a normal 200 response with `is_valid=false`.
    """
    result = GateValidator(db).scan(
        body.code,
        organization_id=staff.organization_id,
        scan_method=body.scan_method,
        scanned_by=staff.user_id,
    )
    showtime = None
    if result.start_time is not None:
        showtime = ScanShowtime(
            movie_title=result.movie_title,
            screen_name=result.screen_name,
            start_time=result.start_time,
        )
    return ScanResponse(
        is_valid=result.is_valid,
        code=result.code,
        message=result.message,
        booking_reference=result.booking_reference,
        customer_name=result.customer_name,
        seats=result.seats,
        showtime=showtime,
    )


@router.get("/scans", response_model=PaginatedResponse[ScanLogEntry])
def list_scans(
    valid: Optional[bool] = Query(None, description="Only valid or only rejected scans"),
    page: int = Query(1, ge=1),
    limit: int = Query(50, ge=1, le=200),
    db: Session = Depends(get_db),
    staff: StaffPrincipal = Depends(require_roles("gate")),
):
    """Recent scans for the staff member's organization, newest first."""
    query = db.query(ScanLog).filter(ScanLog.organization_id == staff.organization_id)
    if valid is not None:
        query = query.filter(ScanLog.is_valid == valid)

    total = query.count()
    scans = (
        query.order_by(ScanLog.scanned_at.desc())
        .offset((page - 1) * limit)
        .limit(limit)
        .all()
    )
    return PaginatedResponse(
        data=[ScanLogEntry.model_validate(s) for s in scans],
        total=total,
        page=page,
        limit=limit,
        total_pages=-(-total // limit) if total else 0,
    )
