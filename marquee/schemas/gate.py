from typing import Annotated, Optional, List
from pydantic import BaseModel, Field, UUID4
from datetime import datetime


# Gate scan (POST /gate/scan)
class ScanRequest(BaseModel):
    # QR payload or the typed reference
    code: Annotated[str, Field(min_length=1, max_length=500)]
    scan_method: str = "manual"  # qr, manual


class ScanShowtime(BaseModel):
    movie_title: Optional[str] = None
    screen_name: Optional[str] = None
    start_time: Optional[datetime] = None


class ScanResponse(BaseModel):
    is_valid: bool
    code: str
    message: str
    booking_reference: str
    customer_name: Optional[str] = None
    seats: List[str] = []
    showtime: Optional[ScanShowtime] = None


# Scan log (GET /gate/scans)
class ScanLogEntry(BaseModel):
    id: UUID4
    booking_reference: str
    is_valid: bool
    result_code: str
    message: str
    scan_method: str
    scanned_by: Optional[str] = None
    scanned_at: Optional[datetime] = None

    class Config:
        from_attributes = True
