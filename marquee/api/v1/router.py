from fastapi import APIRouter

# Public: seat map and claim feed
from marquee.api.v1.public.showtimes import router as showtimes_router

# Public: checkout and bookings
from marquee.api.v1.public.checkout import router as checkout_router
from marquee.api.v1.public.bookings import router as bookings_router

# Payment collaborator callback
from marquee.api.v1.public.payments import router as payments_router

# Staff
from marquee.api.v1.staff.gate import router as gate_router
from marquee.api.v1.staff.box_office import router as box_office_router

# Admin
from marquee.api.v1.admin.bookings import router as admin_bookings_router

api_router = APIRouter()

# --- Public: seat map & claim feed ---
api_router.include_router(showtimes_router)

# --- Public: checkout & bookings ---
api_router.include_router(checkout_router)
api_router.include_router(bookings_router)

# --- Payments ---
api_router.include_router(payments_router)

# --- Staff ---
api_router.include_router(gate_router)
api_router.include_router(box_office_router)

# --- Admin ---
api_router.include_router(admin_bookings_router)
