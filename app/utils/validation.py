from datetime import date, datetime, time, timedelta
from typing import List, Optional

from app.core.business_rules import APPOINTMENT_RULES
from app.schemas.business_rules import AppointmentRules, NoticeAction
from app.schemas.scheduling import SchedulingConflict
from app.services.business_rules import (
    is_within_booking_window,
    is_working_hour,
    meets_minimum_notice,
    validate_duration,
)


def duration_minutes(start: time, end: time) -> int:
    """Minutes between two times of the same day."""
    today = date.today()
    delta = datetime.combine(today, end) - datetime.combine(today, start)
    return int(delta.total_seconds() // 60)


def validate_time_range(start: Optional[time], end: Optional[time]) -> List[str]:
    errors = []
    if start is None or end is None:
        errors.append("start_time and end_time are required")
    elif start >= end:
        errors.append("start_time must be before end_time")
    return errors


def validate_working_hours(
    booking_date: date,
    start: time,
    end: time,
    rules: AppointmentRules = APPOINTMENT_RULES,
) -> List[str]:
    """Check that an appointment runs entirely inside opening hours."""
    errors = []
    starts_at = datetime.combine(booking_date, start)
    # Last minute actually occupied; the end itself is exclusive
    last_minute = datetime.combine(booking_date, end) - timedelta(minutes=1)

    if not is_working_hour(starts_at, rules) or not is_working_hour(last_minute, rules):
        errors.append("Appointment must be scheduled within working hours")
        return errors

    hours = rules.working_hours
    if hours.has_lunch_break and start < hours.lunch_end and end > hours.lunch_start:
        errors.append("Appointment cannot overlap the lunch break")

    return errors


def validate_appointment_data(
    booking_date: date,
    start: time,
    end: time,
    now: datetime,
    rules: AppointmentRules = APPOINTMENT_RULES,
) -> List[str]:
    """Comprehensive appointment validation against the appointment rules."""
    errors = validate_time_range(start, end)
    if errors:
        return errors

    errors.extend(validate_duration(duration_minutes(start, end), rules))
    errors.extend(validate_working_hours(booking_date, start, end, rules))

    if not is_within_booking_window(booking_date, now.date(), rules):
        errors.append(
            "Appointments can be booked up to "
            f"{rules.limits.max_advance_booking_days} days in advance"
        )
    elif not meets_minimum_notice(
        NoticeAction.BOOKING, datetime.combine(booking_date, start, tzinfo=now.tzinfo), now
    ):
        errors.append("Appointment does not meet the minimum booking notice")

    return errors


class BookingValidationError(ValueError):
    """Raised when a booking breaks one or more business rules."""

    def __init__(self, errors: List[str]):
        self.errors = errors
        super().__init__(f"Booking validation failed: {'; '.join(errors)}")


class BookingConflictError(BookingValidationError):
    """Raised when a booking would double-book a room or a professional."""

    def __init__(self, conflicts: List[SchedulingConflict]):
        self.conflicts = conflicts
        super().__init__([conflict.message for conflict in conflicts])


def validate_and_raise(
    booking_date: date, start: time, end: time, now: datetime
) -> None:
    """Validate appointment data and raise exception if errors found."""
    errors = validate_appointment_data(booking_date, start, end, now)
    if errors:
        raise BookingValidationError(errors)
