from fastapi import APIRouter

from tripdesk.api.v1.endpoints import public, bookings, wallet, admin, jobs


# Create main API router
api_v1_router = APIRouter()

# Include public endpoints (public access)
api_v1_router.include_router(
    public.router,
    prefix="/public",
    tags=["public"]
)

# Include booking endpoints (signed-in customer)
api_v1_router.include_router(
    bookings.router,
    prefix="/bookings",
    tags=["bookings"]
)

# Include wallet endpoints (signed-in customer)
api_v1_router.include_router(
    wallet.router,
    prefix="/wallet",
    tags=["wallet"]
)

# Include admin endpoints (per-route permission checks)
api_v1_router.include_router(
    admin.router,
    prefix="/admin",
    tags=["admin"]
)

# Include scheduled job endpoints (cron secret or service token)
api_v1_router.include_router(
    jobs.router,
    prefix="/jobs",
    tags=["jobs"]
)
