from datetime import date as date_type, time
from enum import Enum
from typing import List, Optional

from pydantic import BaseModel, ConfigDict, Field, model_validator


class WeekDay(Enum):
    MONDAY = 0
    TUESDAY = 1
    WEDNESDAY = 2
    THURSDAY = 3
    FRIDAY = 4
    SATURDAY = 5
    SUNDAY = 6


class ResourceKind(str, Enum):
    ROOM = "room"
    INSTRUCTOR = "instructor"


class ConflictType(str, Enum):
    ROOM_OCCUPIED = "room_occupied"
    INSTRUCTOR_UNAVAILABLE = "instructor_unavailable"


class BookablePeriod(BaseModel):
    """A time window on one date, held by one resource."""

    model_config = ConfigDict(frozen=True)

    resource_id: str
    date: date_type
    start_time: time
    end_time: time
    booking_id: Optional[str] = None

    @model_validator(mode="after")
    def check_order(self):
        if self.start_time >= self.end_time:
            raise ValueError("start_time must be before end_time")
        return self


class BookingSlot(BaseModel):
    """A booking seen from the scheduler: when it runs and what it holds."""

    model_config = ConfigDict(frozen=True)

    booking_id: Optional[str] = None
    date: date_type
    start_time: time
    end_time: time
    room_id: Optional[str] = None
    instructor_id: Optional[str] = None

    @model_validator(mode="after")
    def check_order(self):
        if self.start_time >= self.end_time:
            raise ValueError("start_time must be before end_time")
        return self


class SchedulingConflict(BaseModel):
    conflict_type: ConflictType
    resource_id: str
    message: str
    conflicting_booking_ids: List[str] = Field(default_factory=list)


class ConflictCheckRequest(BaseModel):
    candidate: BookingSlot
    existing: List[BookingSlot] = Field(default_factory=list)
    exclude_booking_id: Optional[str] = None
    preparation_minutes: int = Field(0, ge=0)


class ConflictCheckResponse(BaseModel):
    has_conflict: bool
    conflicts: List[SchedulingConflict] = Field(default_factory=list)
