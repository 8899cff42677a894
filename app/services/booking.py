import uuid
from dataclasses import dataclass
from datetime import date as date_type, datetime
from typing import List, Optional

import structlog
from sqlalchemy import and_, func, select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.business_rules import APPOINTMENT_RULES
from app.core.config import settings
from app.models.booking import (
    ACTIVE_BOOKING_STATUSES,
    Booking,
    BookingStatus,
    BookingType,
)
from app.models.credit import CreditLedgerEntry
from app.schemas.booking import BookingCreate, BookingUpdate
from app.schemas.business_rules import CreditQuote
from app.schemas.scheduling import (
    BookingSlot,
    ConflictType,
    ResourceKind,
    SchedulingConflict,
)
from app.services.business_rules import calculate_cancellation_credit
from app.services.credits import CreditService
from app.services.scheduling import CONFLICT_MESSAGES, SchedulingEngineService
from app.utils.clock import localize
from app.utils.validation import (
    BookingConflictError,
    BookingValidationError,
    validate_and_raise,
    validate_appointment_data,
)

logger = structlog.get_logger(__name__)


@dataclass
class CancellationResult:
    booking: Booking
    quote: CreditQuote
    credit: Optional[CreditLedgerEntry]


class BookingService:
    """Appointment and class bookings with rule validation and conflict
    prevention.
    """

    def __init__(self, db: AsyncSession):
        self.db = db
        self.scheduling_engine = SchedulingEngineService(db)
        self.credit_service = CreditService(db)

    async def get_booking(self, booking_uuid: str) -> Optional[Booking]:
        result = await self.db.execute(
            select(Booking).where(Booking.uuid == uuid.UUID(str(booking_uuid)))
        )
        return result.scalar_one_or_none()

    async def list_bookings(
        self, booking_date: date_type, include_cancelled: bool = False
    ) -> List[Booking]:
        query = select(Booking).where(Booking.booking_date == booking_date)
        if not include_cancelled:
            query = query.where(
                Booking.status.in_([s.value for s in ACTIVE_BOOKING_STATUSES])
            )
        result = await self.db.execute(query.order_by(Booking.start_time))
        return list(result.scalars().all())

    async def create_booking(self, data: BookingCreate, now: datetime) -> Booking:
        """Create a booking after checking the rules and existing bookings."""
        room_id = data.room_id or settings.DEFAULT_ROOM_ID
        candidate = BookingSlot(
            date=data.booking_date,
            start_time=data.start_time,
            end_time=data.end_time,
            room_id=room_id,
            instructor_id=data.instructor_id,
        )

        if data.booking_type == BookingType.APPOINTMENT:
            errors = validate_appointment_data(
                data.booking_date, data.start_time, data.end_time, now
            )
            errors.extend(
                await self._check_patient_limits(data.patient_id, data.booking_date)
            )
            if errors:
                logger.warning(
                    "Booking rejected by business rules",
                    patient_id=data.patient_id,
                    errors=errors,
                )
                raise BookingValidationError(errors)

        await self._ensure_no_conflicts(candidate)

        booking = Booking(
            booking_type=data.booking_type.value,
            patient_id=data.patient_id,
            room_id=room_id,
            instructor_id=data.instructor_id,
            service_name=data.service_name,
            booking_date=data.booking_date,
            start_time=data.start_time,
            end_time=data.end_time,
            status=data.status.value,
            price=data.price,
        )
        self.db.add(booking)
        await self._commit_or_conflict(candidate)
        await self.db.refresh(booking)

        logger.info(
            "Booking created",
            booking_uuid=str(booking.uuid),
            booking_type=booking.booking_type,
            booking_date=str(booking.booking_date),
        )
        return booking

    async def update_booking(
        self, booking_uuid: str, data: BookingUpdate, now: datetime
    ) -> Optional[Booking]:
        """Update a booking, re-checking conflicts against every other booking."""
        booking = await self.get_booking(booking_uuid)
        if not booking:
            return None

        if not booking.is_active:
            raise BookingValidationError(["Cancelled or finished bookings cannot be edited"])

        if data.status == BookingStatus.CANCELLED:
            raise BookingValidationError(
                ["Use the cancel endpoint to cancel a booking so its credit is issued"]
            )

        changes = data.model_dump(exclude_unset=True)
        if changes.get("status") is not None:
            changes["status"] = changes["status"].value
        else:
            changes.pop("status", None)

        booking_date = changes.get("booking_date", booking.booking_date)
        start_time = changes.get("start_time", booking.start_time)
        end_time = changes.get("end_time", booking.end_time)
        room_id = changes.get("room_id", booking.room_id) or settings.DEFAULT_ROOM_ID
        instructor_id = changes.get("instructor_id", booking.instructor_id)

        if start_time >= end_time:
            raise BookingValidationError(["start_time must be before end_time"])

        schedule_changed = any(
            field in changes
            for field in ("booking_date", "start_time", "end_time", "room_id", "instructor_id")
        )
        if schedule_changed:
            if booking.booking_type == BookingType.APPOINTMENT.value:
                validate_and_raise(booking_date, start_time, end_time, now)

            candidate = BookingSlot(
                booking_id=str(booking.uuid),
                date=booking_date,
                start_time=start_time,
                end_time=end_time,
                room_id=room_id,
                instructor_id=instructor_id,
            )
            await self._ensure_no_conflicts(candidate, exclude_booking_id=str(booking.uuid))
        else:
            candidate = booking.to_slot()

        for field, value in changes.items():
            setattr(booking, field, value)
        booking.room_id = room_id

        await self._commit_or_conflict(candidate)
        await self.db.refresh(booking)

        logger.info("Booking updated", booking_uuid=booking_uuid, fields=list(changes))
        return booking

    async def cancel_booking(
        self,
        booking_uuid: str,
        cancelled_at: datetime,
        notes: Optional[str] = None,
    ) -> Optional[CancellationResult]:
        """Cancel a booking and credit the patient according to the notice given."""
        booking = await self.get_booking(booking_uuid)
        if not booking:
            return None

        cancelled_at = localize(cancelled_at)
        quote = calculate_cancellation_credit(booking.starts_at, cancelled_at, booking.price)

        if not booking.cancel(cancelled_at, notes):
            raise BookingValidationError([f"Booking is already {booking.status}"])

        credit = None
        if booking.patient_id:
            credit = await self.credit_service.record_cancellation_credit(
                patient_id=booking.patient_id,
                booking_id=str(booking.uuid),
                quote=quote,
                issued_at=cancelled_at,
                commit=False,
            )

        await self.db.commit()
        await self.db.refresh(booking)
        if credit is not None:
            await self.db.refresh(credit)

        logger.info(
            "Booking cancelled",
            booking_uuid=booking_uuid,
            credit_amount=quote.credit_amount,
            credit_percentage=quote.credit_percentage,
        )
        return CancellationResult(booking=booking, quote=quote, credit=credit)

    async def _ensure_no_conflicts(
        self, candidate: BookingSlot, exclude_booking_id: Optional[str] = None
    ) -> None:
        conflicts = await self.scheduling_engine.check_conflicts(
            candidate,
            exclude_booking_id=exclude_booking_id,
            preparation_minutes=settings.ROOM_PREPARATION_MINUTES,
        )
        if conflicts:
            logger.warning(
                "Booking rejected by scheduling conflict",
                booking_date=str(candidate.date),
                conflicts=[c.conflict_type.value for c in conflicts],
            )
            raise BookingConflictError(conflicts)

    async def _commit_or_conflict(self, candidate: BookingSlot) -> None:
        """Commit, turning a uniqueness violation from a concurrent booking into a
        conflict the caller can recover from.
        """
        try:
            await self.db.commit()
        except IntegrityError as e:
            await self.db.rollback()
            logger.error("Booking commit hit an integrity constraint", error=str(e))
            raise BookingConflictError(
                [
                    SchedulingConflict(
                        conflict_type=ConflictType.ROOM_OCCUPIED,
                        resource_id=candidate.room_id or settings.DEFAULT_ROOM_ID,
                        message=CONFLICT_MESSAGES[ResourceKind.ROOM],
                    )
                ]
            )

    async def _check_patient_limits(
        self, patient_id: Optional[str], booking_date: date_type
    ) -> List[str]:
        if not patient_id:
            return []

        errors = []
        limits = APPOINTMENT_RULES.limits
        active = [s.value for s in ACTIVE_BOOKING_STATUSES]

        same_day = await self.db.execute(
            select(func.count(Booking.id)).where(
                and_(
                    Booking.patient_id == patient_id,
                    Booking.booking_type == BookingType.APPOINTMENT.value,
                    Booking.booking_date == booking_date,
                    Booking.status.in_(active),
                )
            )
        )
        if (same_day.scalar() or 0) >= limits.max_per_day:
            errors.append(
                f"Patients can book at most {limits.max_per_day} appointments per day"
            )

        pending = await self.db.execute(
            select(func.count(Booking.id)).where(
                and_(
                    Booking.patient_id == patient_id,
                    Booking.status == BookingStatus.PENDING.value,
                )
            )
        )
        if (pending.scalar() or 0) >= limits.max_pending_appointments:
            errors.append(
                "Patients can have at most "
                f"{limits.max_pending_appointments} pending appointments"
            )

        return errors
