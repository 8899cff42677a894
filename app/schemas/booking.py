from datetime import date as date_type, datetime, time
from typing import List, Optional
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field, model_validator

from app.models.booking import BookingStatus, BookingType
from app.models.credit import CreditReason
from app.schemas.business_rules import CreditQuote
from app.schemas.scheduling import SchedulingConflict


class BookingBase(BaseModel):
    booking_type: BookingType = BookingType.APPOINTMENT
    patient_id: Optional[str] = Field(None, max_length=64)
    room_id: Optional[str] = Field(None, max_length=64, description="Defaults to the main room")
    instructor_id: Optional[str] = Field(None, max_length=64)
    service_name: Optional[str] = Field(None, max_length=255)
    booking_date: date_type
    start_time: time
    end_time: time
    price: int = Field(0, ge=0, description="Price in the smallest currency unit")


class BookingCreate(BookingBase):
    status: BookingStatus = BookingStatus.PENDING

    @model_validator(mode="after")
    def check_times(self):
        if self.start_time >= self.end_time:
            raise ValueError("start_time must be before end_time")
        if self.booking_type == BookingType.APPOINTMENT and not self.patient_id:
            raise ValueError("appointments require a patient_id")
        return self


class BookingUpdate(BaseModel):
    """Partial update; omitted fields keep their current value."""

    room_id: Optional[str] = Field(None, max_length=64)
    instructor_id: Optional[str] = Field(None, max_length=64)
    service_name: Optional[str] = Field(None, max_length=255)
    booking_date: Optional[date_type] = None
    start_time: Optional[time] = None
    end_time: Optional[time] = None
    price: Optional[int] = Field(None, ge=0)
    status: Optional[BookingStatus] = None


class BookingResponse(BookingBase):
    model_config = ConfigDict(from_attributes=True)

    uuid: UUID
    status: BookingStatus
    cancelled_at: Optional[datetime] = None
    created_at: Optional[datetime] = None


class BookingCancellationRequest(BaseModel):
    cancelled_at: Optional[datetime] = Field(
        None, description="Moment of the request; defaults to now"
    )
    notes: Optional[str] = None


class CreditEntryResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    uuid: UUID
    patient_id: str
    amount: int
    reason: CreditReason
    description: Optional[str] = None
    booking_id: Optional[str] = None
    expires_at: Optional[datetime] = None
    created_at: Optional[datetime] = None


class BookingCancellationResponse(BaseModel):
    booking: BookingResponse
    quote: CreditQuote
    credit: Optional[CreditEntryResponse] = None


class CreditBalanceResponse(BaseModel):
    patient_id: str
    balance: int
    entries: List[CreditEntryResponse] = Field(default_factory=list)


class BookingConflictDetail(BaseModel):
    message: str
    conflicts: List[SchedulingConflict] = Field(default_factory=list)
