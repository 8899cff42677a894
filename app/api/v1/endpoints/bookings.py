from datetime import date as date_type, datetime
from typing import List
from uuid import UUID

import structlog
from fastapi import APIRouter, Depends, HTTPException, Query, status
from sqlalchemy.ext.asyncio import AsyncSession

from app.api.deps.clock import get_now
from app.api.deps.database import get_db
from app.schemas.booking import (
    BookingCancellationRequest,
    BookingCancellationResponse,
    BookingConflictDetail,
    BookingCreate,
    BookingResponse,
    BookingUpdate,
    CreditEntryResponse,
)
from app.services.booking import BookingService
from app.utils.validation import BookingConflictError, BookingValidationError

logger = structlog.get_logger(__name__)

router = APIRouter()


def _conflict_exception(error: BookingConflictError) -> HTTPException:
    detail = BookingConflictDetail(message=str(error), conflicts=error.conflicts)
    return HTTPException(
        status_code=status.HTTP_409_CONFLICT, detail=detail.model_dump(mode="json")
    )


def _validation_exception(error: BookingValidationError) -> HTTPException:
    return HTTPException(
        status_code=status.HTTP_400_BAD_REQUEST,
        detail={"message": str(error), "errors": error.errors},
    )


@router.post("/", response_model=BookingResponse, status_code=status.HTTP_201_CREATED)
async def create_booking(
    booking_data: BookingCreate,
    db: AsyncSession = Depends(get_db),
    now: datetime = Depends(get_now),
):
    """Create an appointment or class after rule and conflict checks."""
    service = BookingService(db)
    try:
        return await service.create_booking(booking_data, now)
    except BookingConflictError as e:
        raise _conflict_exception(e)
    except BookingValidationError as e:
        raise _validation_exception(e)
    except ValueError as e:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(e))
    except Exception as e:
        logger.error("Failed to create booking", error=str(e))
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Failed to create booking",
        )


@router.get("/", response_model=List[BookingResponse])
async def list_bookings(
    booking_date: date_type = Query(..., description="Day to list"),
    include_cancelled: bool = Query(False),
    db: AsyncSession = Depends(get_db),
):
    service = BookingService(db)
    return await service.list_bookings(booking_date, include_cancelled)


@router.get("/{booking_uuid}", response_model=BookingResponse)
async def get_booking(booking_uuid: UUID, db: AsyncSession = Depends(get_db)):
    service = BookingService(db)
    booking = await service.get_booking(str(booking_uuid))
    if not booking:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND, detail="Booking not found"
        )
    return booking


@router.put("/{booking_uuid}", response_model=BookingResponse)
async def update_booking(
    booking_uuid: UUID,
    booking_data: BookingUpdate,
    db: AsyncSession = Depends(get_db),
    now: datetime = Depends(get_now),
):
    """Update a booking; it is never reported as conflicting with itself."""
    service = BookingService(db)
    try:
        booking = await service.update_booking(str(booking_uuid), booking_data, now)
    except BookingConflictError as e:
        raise _conflict_exception(e)
    except BookingValidationError as e:
        raise _validation_exception(e)
    except ValueError as e:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(e))

    if not booking:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND, detail="Booking not found"
        )
    return booking


@router.post("/{booking_uuid}/cancel", response_model=BookingCancellationResponse)
async def cancel_booking(
    booking_uuid: UUID,
    request: BookingCancellationRequest,
    db: AsyncSession = Depends(get_db),
    now: datetime = Depends(get_now),
):
    """Cancel a booking and issue the credit earned by the notice given."""
    service = BookingService(db)
    try:
        result = await service.cancel_booking(
            str(booking_uuid), request.cancelled_at or now, request.notes
        )
    except BookingValidationError as e:
        raise _validation_exception(e)
    except ValueError as e:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(e))

    if not result:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND, detail="Booking not found"
        )

    return BookingCancellationResponse(
        booking=BookingResponse.model_validate(result.booking),
        quote=result.quote,
        credit=(
            CreditEntryResponse.model_validate(result.credit) if result.credit else None
        ),
    )
