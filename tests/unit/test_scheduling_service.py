"""Double-booking detection for rooms and professionals."""

from datetime import date, time

import pytest
from pydantic import ValidationError

from app.models.booking import BookingStatus
from app.schemas.scheduling import (
    BookablePeriod,
    BookingSlot,
    ConflictType,
    ResourceKind,
)
from app.services.scheduling import (
    SchedulingEngineService,
    find_booking_conflicts,
    has_overlap,
    project,
)
from tests.conftest import make_booking, scalars_result

DAY = date(2024, 1, 10)


def period(start, end, resource_id="main-room", day=DAY, booking_id=None):
    return BookablePeriod(
        resource_id=resource_id,
        date=day,
        start_time=start,
        end_time=end,
        booking_id=booking_id,
    )


def slot(start, end, booking_id=None, room_id="main-room", instructor_id="nurse-1", day=DAY):
    return BookingSlot(
        booking_id=booking_id,
        date=day,
        start_time=start,
        end_time=end,
        room_id=room_id,
        instructor_id=instructor_id,
    )


@pytest.mark.unit
class TestHasOverlap:
    def test_partial_overlap(self):
        """10:00-11:00 against 10:30-11:30 in the same room."""
        candidate = period(time(10, 0), time(11, 0))
        existing = [period(time(10, 30), time(11, 30))]
        assert has_overlap(candidate, existing) is True

    def test_back_to_back_is_allowed(self):
        candidate = period(time(10, 0), time(11, 0))
        assert has_overlap(candidate, [period(time(11, 0), time(12, 0))]) is False
        assert has_overlap(candidate, [period(time(9, 0), time(10, 0))]) is False

    def test_containment(self):
        candidate = period(time(10, 0), time(12, 0))
        assert has_overlap(candidate, [period(time(10, 30), time(11, 0))]) is True
        assert has_overlap(period(time(10, 30), time(11, 0)), [candidate]) is True

    def test_identical_periods(self):
        candidate = period(time(10, 0), time(11, 0))
        assert has_overlap(candidate, [period(time(10, 0), time(11, 0))]) is True

    def test_other_date_ignored(self):
        candidate = period(time(10, 0), time(11, 0))
        existing = [period(time(10, 0), time(11, 0), day=date(2024, 1, 11))]
        assert has_overlap(candidate, existing) is False

    def test_other_resource_ignored(self):
        candidate = period(time(10, 0), time(11, 0))
        existing = [period(time(10, 0), time(11, 0), resource_id="studio")]
        assert has_overlap(candidate, existing) is False

    def test_empty_schedule(self):
        assert has_overlap(period(time(10, 0), time(11, 0)), []) is False

    def test_symmetric(self):
        pairs = [
            ((time(9, 0), time(10, 0)), (time(9, 30), time(10, 30))),
            ((time(9, 0), time(10, 0)), (time(10, 0), time(11, 0))),
            ((time(9, 0), time(12, 0)), (time(10, 0), time(11, 0))),
            ((time(9, 0), time(10, 0)), (time(14, 0), time(15, 0))),
        ]
        for (a_start, a_end), (b_start, b_end) in pairs:
            a = period(a_start, a_end)
            b = period(b_start, b_end)
            assert has_overlap(a, [b]) == has_overlap(b, [a])

    def test_empty_period_rejected(self):
        with pytest.raises(ValidationError):
            period(time(10, 0), time(10, 0))


@pytest.mark.unit
class TestProject:
    def test_room_projection(self):
        result = project(slot(time(10, 0), time(11, 0), booking_id="b1"), ResourceKind.ROOM)
        assert result == period(time(10, 0), time(11, 0), booking_id="b1")

    def test_instructor_projection(self):
        result = project(slot(time(10, 0), time(11, 0)), ResourceKind.INSTRUCTOR)
        assert result.resource_id == "nurse-1"

    def test_missing_resource(self):
        assert project(slot(time(10, 0), time(11, 0), instructor_id=None), ResourceKind.INSTRUCTOR) is None

    def test_preparation_applies_to_rooms_only(self):
        booking = slot(time(10, 0), time(11, 0))
        assert project(booking, ResourceKind.ROOM, 15).end_time == time(11, 15)
        assert project(booking, ResourceKind.INSTRUCTOR, 15).end_time == time(11, 0)

    def test_preparation_stops_at_midnight(self):
        booking = slot(time(23, 0), time(23, 50))
        result = project(booking, ResourceKind.ROOM, 30)
        assert result.date == DAY
        assert result.end_time > time(23, 59)


@pytest.mark.unit
class TestFindBookingConflicts:
    def test_room_conflict(self):
        conflicts = find_booking_conflicts(
            slot(time(10, 0), time(11, 0), instructor_id="nurse-2"),
            [slot(time(10, 30), time(11, 30), booking_id="b1")],
        )

        assert len(conflicts) == 1
        assert conflicts[0].conflict_type == ConflictType.ROOM_OCCUPIED
        assert conflicts[0].resource_id == "main-room"
        assert conflicts[0].message == "La sala ya está reservada en ese horario"
        assert conflicts[0].conflicting_booking_ids == ["b1"]

    def test_instructor_conflict(self):
        conflicts = find_booking_conflicts(
            slot(time(10, 0), time(11, 0), room_id="studio"),
            [slot(time(10, 30), time(11, 30), booking_id="b1")],
        )

        assert len(conflicts) == 1
        assert conflicts[0].conflict_type == ConflictType.INSTRUCTOR_UNAVAILABLE
        assert conflicts[0].message == "El profesional no está disponible en este horario"

    def test_room_and_instructor_conflict(self):
        conflicts = find_booking_conflicts(
            slot(time(10, 0), time(11, 0)),
            [slot(time(10, 0), time(11, 0), booking_id="b1")],
        )
        assert [c.conflict_type for c in conflicts] == [
            ConflictType.ROOM_OCCUPIED,
            ConflictType.INSTRUCTOR_UNAVAILABLE,
        ]

    def test_no_conflict_back_to_back(self):
        conflicts = find_booking_conflicts(
            slot(time(11, 0), time(12, 0)),
            [slot(time(10, 0), time(11, 0), booking_id="b1")],
        )
        assert conflicts == []

    def test_edited_booking_is_not_compared_with_itself(self):
        existing = [slot(time(10, 0), time(11, 0), booking_id="b1")]
        moved = slot(time(10, 30), time(11, 30), booking_id="b1")

        assert find_booking_conflicts(moved, existing) == []
        assert (
            find_booking_conflicts(slot(time(10, 30), time(11, 30)), existing, exclude_booking_id="b1")
            == []
        )

    def test_exclusion_keeps_other_bookings(self):
        existing = [
            slot(time(10, 0), time(11, 0), booking_id="b1"),
            slot(time(11, 0), time(12, 0), booking_id="b2", instructor_id="nurse-2"),
        ]
        conflicts = find_booking_conflicts(
            slot(time(10, 30), time(11, 30), booking_id="b1", instructor_id="nurse-3"),
            existing,
        )
        assert len(conflicts) == 1
        assert conflicts[0].conflicting_booking_ids == ["b2"]

    def test_preparation_buffer(self):
        existing = [slot(time(10, 0), time(11, 0), booking_id="b1", instructor_id="nurse-2")]
        candidate = slot(time(11, 0), time(12, 0))

        assert find_booking_conflicts(candidate, existing) == []
        conflicts = find_booking_conflicts(candidate, existing, preparation_minutes=15)
        assert [c.conflict_type for c in conflicts] == [ConflictType.ROOM_OCCUPIED]

    def test_preparation_buffer_after_candidate(self):
        existing = [slot(time(11, 0), time(12, 0), booking_id="b1", instructor_id="nurse-2")]
        candidate = slot(time(10, 0), time(11, 0))

        conflicts = find_booking_conflicts(candidate, existing, preparation_minutes=10)
        assert len(conflicts) == 1

    def test_empty_schedule(self):
        assert find_booking_conflicts(slot(time(10, 0), time(11, 0)), []) == []


@pytest.mark.unit
class TestSchedulingEngineService:
    async def test_get_existing_slots(self, mock_db):
        first = make_booking(time(10, 0), time(11, 0))
        second = make_booking(time(14, 0), time(15, 0), instructor_id="nurse-2")
        mock_db.execute.return_value = scalars_result([first, second])

        slots = await SchedulingEngineService(mock_db).get_existing_slots(DAY)

        assert [s.booking_id for s in slots] == [str(first.uuid), str(second.uuid)]
        assert slots[1].instructor_id == "nurse-2"
        mock_db.execute.assert_awaited_once()

    async def test_get_existing_slots_excludes_booking(self, mock_db):
        first = make_booking(time(10, 0), time(11, 0))
        second = make_booking(time(14, 0), time(15, 0))
        mock_db.execute.return_value = scalars_result([first, second])

        slots = await SchedulingEngineService(mock_db).get_existing_slots(
            DAY, exclude_booking_id=str(first.uuid)
        )

        assert [s.booking_id for s in slots] == [str(second.uuid)]

    async def test_check_conflicts(self, mock_db):
        stored = make_booking(time(10, 0), time(11, 0))
        mock_db.execute.return_value = scalars_result([stored])

        conflicts = await SchedulingEngineService(mock_db).check_conflicts(
            slot(time(10, 30), time(11, 30), instructor_id="nurse-9")
        )

        assert len(conflicts) == 1
        assert conflicts[0].conflicting_booking_ids == [str(stored.uuid)]

    async def test_check_conflicts_ignores_edited_booking(self, mock_db):
        stored = make_booking(time(10, 0), time(11, 0))
        mock_db.execute.return_value = scalars_result([stored])

        conflicts = await SchedulingEngineService(mock_db).check_conflicts(
            slot(time(10, 30), time(11, 30)),
            exclude_booking_id=str(stored.uuid),
        )

        assert conflicts == []


@pytest.mark.unit
class TestBookingModel:
    def test_active_statuses(self):
        assert make_booking(time(10, 0), time(11, 0)).is_active
        assert not make_booking(
            time(10, 0), time(11, 0), status=BookingStatus.CANCELLED
        ).is_active

    def test_to_slot(self):
        booking = make_booking(time(10, 0), time(11, 30), room_id="studio")
        result = booking.to_slot()
        assert result.booking_id == str(booking.uuid)
        assert result.room_id == "studio"
        assert booking.duration_minutes == 90

    def test_cancel_once(self):
        booking = make_booking(time(10, 0), time(11, 0))
        assert booking.cancel(None, "cambio de planes") is True
        assert booking.status == BookingStatus.CANCELLED.value
        assert booking.cancellation_notes == "cambio de planes"
        assert booking.cancel(None) is False
