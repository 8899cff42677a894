from fastapi import APIRouter

from app.api.v1.endpoints import (
    bookings,
    credits,
    rules,
    scheduling,
)

api_router = APIRouter()

# Business rule tables and pure policy checks
api_router.include_router(rules.router, prefix="/rules", tags=["business-rules"])

# Scheduling conflict checks
api_router.include_router(scheduling.router, prefix="/scheduling", tags=["scheduling"])

# Appointment and class bookings
api_router.include_router(bookings.router, prefix="/bookings", tags=["bookings"])

# Patient credit ledger
api_router.include_router(credits.router, prefix="/credits", tags=["credits"])
