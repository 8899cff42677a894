from datetime import date as date_type, datetime, timedelta
from typing import Iterable, List, Optional
import logging

from sqlalchemy import and_, select
from sqlalchemy.ext.asyncio import AsyncSession

from app.models.booking import ACTIVE_BOOKING_STATUSES, Booking
from app.schemas.scheduling import (
    BookablePeriod,
    BookingSlot,
    ConflictType,
    ResourceKind,
    SchedulingConflict,
)


logger = logging.getLogger(__name__)


CONFLICT_MESSAGES = {
    ResourceKind.ROOM: "La sala ya está reservada en ese horario",
    ResourceKind.INSTRUCTOR: "El profesional no está disponible en este horario",
}

CONFLICT_TYPES = {
    ResourceKind.ROOM: ConflictType.ROOM_OCCUPIED,
    ResourceKind.INSTRUCTOR: ConflictType.INSTRUCTOR_UNAVAILABLE,
}


def periods_overlap(first: BookablePeriod, second: BookablePeriod) -> bool:
    """Two periods of the same resource and date overlap unless they only touch."""
    return (
        first.date == second.date
        and first.resource_id == second.resource_id
        and first.start_time < second.end_time
        and first.end_time > second.start_time
    )


def overlapping_periods(
    candidate: BookablePeriod, existing: Iterable[BookablePeriod]
) -> List[BookablePeriod]:
    return [period for period in existing if periods_overlap(candidate, period)]


def has_overlap(candidate: BookablePeriod, existing: Iterable[BookablePeriod]) -> bool:
    """Return True if ``candidate`` overlaps any period of the same resource and date.

    Periods on another date or held by another resource are ignored, and
    back-to-back periods (one ends exactly when the other starts) are allowed.
    """
    return any(periods_overlap(candidate, period) for period in existing)


def _extend(end_time, date: date_type, minutes: int):
    if not minutes:
        return end_time
    extended = datetime.combine(date, end_time) + timedelta(minutes=minutes)
    if extended.date() != date:
        # Buffer runs past midnight; the period still ends within its own day
        return datetime.max.time()
    return extended.time()


def project(
    slot: BookingSlot, kind: ResourceKind, preparation_minutes: int = 0
) -> Optional[BookablePeriod]:
    """View a booking as the period it holds on one resource.

    Returns None when the booking does not use that kind of resource.
    ``preparation_minutes`` extends room periods to cover cleaning time.
    """
    resource_id = slot.room_id if kind == ResourceKind.ROOM else slot.instructor_id
    if not resource_id:
        return None

    end_time = slot.end_time
    if kind == ResourceKind.ROOM:
        end_time = _extend(end_time, slot.date, preparation_minutes)

    return BookablePeriod(
        resource_id=resource_id,
        date=slot.date,
        start_time=slot.start_time,
        end_time=end_time,
        booking_id=slot.booking_id,
    )


def find_booking_conflicts(
    candidate: BookingSlot,
    existing: Iterable[BookingSlot],
    exclude_booking_id: Optional[str] = None,
    preparation_minutes: int = 0,
) -> List[SchedulingConflict]:
    """Check a booking against existing ones, once per resource it holds.

    When validating an update, pass the id of the booking being edited as
    ``exclude_booking_id`` so it is not compared with itself.
    """
    exclude_id = exclude_booking_id or candidate.booking_id
    others = [
        slot
        for slot in existing
        if exclude_id is None or slot.booking_id != exclude_id
    ]

    conflicts = []
    for kind in (ResourceKind.ROOM, ResourceKind.INSTRUCTOR):
        # Preparation time follows every room booking, the candidate included
        candidate_period = project(candidate, kind, preparation_minutes)
        if candidate_period is None:
            continue

        periods = [
            period
            for period in (project(slot, kind, preparation_minutes) for slot in others)
            if period is not None
        ]
        if not has_overlap(candidate_period, periods):
            continue

        overlapping = overlapping_periods(candidate_period, periods)
        logger.debug(
            f"{kind.value} {candidate_period.resource_id} is taken on "
            f"{candidate_period.date} by {len(overlapping)} booking(s)"
        )
        conflicts.append(
            SchedulingConflict(
                conflict_type=CONFLICT_TYPES[kind],
                resource_id=candidate_period.resource_id,
                message=CONFLICT_MESSAGES[kind],
                conflicting_booking_ids=[
                    p.booking_id for p in overlapping if p.booking_id is not None
                ],
            )
        )

    return conflicts


class SchedulingEngineService:
    """Loads the bookings of a day and checks candidates against them."""

    def __init__(self, db: AsyncSession):
        self.db = db

    async def get_existing_slots(
        self, booking_date: date_type, exclude_booking_id: Optional[str] = None
    ) -> List[BookingSlot]:
        """Active bookings on a date, as slots, without the booking being edited."""
        query = select(Booking).where(
            and_(
                Booking.booking_date == booking_date,
                Booking.status.in_([s.value for s in ACTIVE_BOOKING_STATUSES]),
            )
        )
        result = await self.db.execute(query)
        bookings = result.scalars().all()

        slots = [booking.to_slot() for booking in bookings]
        if exclude_booking_id:
            slots = [s for s in slots if s.booking_id != exclude_booking_id]

        logger.debug(f"Loaded {len(slots)} active bookings for {booking_date}")
        return slots

    async def check_conflicts(
        self,
        candidate: BookingSlot,
        exclude_booking_id: Optional[str] = None,
        preparation_minutes: int = 0,
    ) -> List[SchedulingConflict]:
        existing = await self.get_existing_slots(candidate.date, exclude_booking_id)
        conflicts = find_booking_conflicts(
            candidate,
            existing,
            exclude_booking_id=exclude_booking_id,
            preparation_minutes=preparation_minutes,
        )
        if conflicts:
            logger.info(
                f"Booking on {candidate.date} {candidate.start_time}-{candidate.end_time} "
                f"has {len(conflicts)} conflict(s): "
                f"{[c.conflict_type.value for c in conflicts]}"
            )
        return conflicts
