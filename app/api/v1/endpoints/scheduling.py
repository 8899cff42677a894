from datetime import date as date_type
from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, Query, status
from sqlalchemy.ext.asyncio import AsyncSession

from app.api.deps.database import get_db
from app.core.config import settings
from app.schemas.scheduling import (
    BookingSlot,
    ConflictCheckRequest,
    ConflictCheckResponse,
)
from app.services.scheduling import SchedulingEngineService, find_booking_conflicts

router = APIRouter()


@router.post("/conflicts/check", response_model=ConflictCheckResponse)
async def check_conflicts(request: ConflictCheckRequest) -> ConflictCheckResponse:
    """
    Check a candidate booking against a caller-supplied list of bookings.

    The candidate is compared per room and per professional; the booking
    being edited (``exclude_booking_id``) is left out of the comparison.
    """
    conflicts = find_booking_conflicts(
        request.candidate,
        request.existing,
        exclude_booking_id=request.exclude_booking_id,
        preparation_minutes=request.preparation_minutes,
    )
    return ConflictCheckResponse(has_conflict=bool(conflicts), conflicts=conflicts)


@router.post("/conflicts/check-stored", response_model=ConflictCheckResponse)
async def check_conflicts_against_stored(
    candidate: BookingSlot,
    exclude_booking_id: Optional[str] = Query(
        None, description="Booking being edited, left out of the check"
    ),
    db: AsyncSession = Depends(get_db),
) -> ConflictCheckResponse:
    """Check a candidate booking against the active bookings stored for its date."""
    if not candidate.room_id:
        candidate = candidate.model_copy(update={"room_id": settings.DEFAULT_ROOM_ID})

    try:
        scheduling_service = SchedulingEngineService(db)
        conflicts = await scheduling_service.check_conflicts(
            candidate,
            exclude_booking_id=exclude_booking_id,
            preparation_minutes=settings.ROOM_PREPARATION_MINUTES,
        )
    except Exception as e:
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail=f"Failed to check conflicts: {str(e)}",
        )

    return ConflictCheckResponse(has_conflict=bool(conflicts), conflicts=conflicts)


@router.get("/day", response_model=list[BookingSlot])
async def get_day_schedule(
    booking_date: date_type = Query(..., description="Day to list"),
    db: AsyncSession = Depends(get_db),
) -> list[BookingSlot]:
    """Active bookings of a day as slots, for client-side availability views."""
    scheduling_service = SchedulingEngineService(db)
    return await scheduling_service.get_existing_slots(booking_date)
