from sqlalchemy import (
    CheckConstraint,
    Column,
    Date,
    DateTime,
    Index,
    Integer,
    String,
    Text,
    Time,
)
from sqlalchemy.dialects.postgresql import UUID
from sqlalchemy.sql import func
from app.core.database import Base
from app.schemas.scheduling import BookingSlot
from app.utils.clock import combine_local
import enum
import uuid
from datetime import datetime
from typing import Optional


class BookingType(enum.Enum):
    APPOINTMENT = "appointment"
    CLASS = "class"


class BookingStatus(enum.Enum):
    PENDING = "pending"
    CONFIRMED = "confirmed"
    IN_PROGRESS = "in_progress"
    COMPLETED = "completed"
    CANCELLED = "cancelled"


# Bookings that still hold their room and professional
ACTIVE_BOOKING_STATUSES = (
    BookingStatus.PENDING,
    BookingStatus.CONFIRMED,
    BookingStatus.IN_PROGRESS,
)
ACTIVE_STATUS_VALUES = [s.value for s in ACTIVE_BOOKING_STATUSES]


class Booking(Base):
    """An appointment or a group class occupying a room and a professional."""

    __tablename__ = "bookings"

    # Core identity
    id = Column(Integer, primary_key=True, index=True)
    uuid = Column(
        UUID(as_uuid=True), unique=True, nullable=False, default=uuid.uuid4, index=True
    )
    booking_type = Column(
        String(20), nullable=False, default=BookingType.APPOINTMENT.value
    )

    # Participants and resources
    patient_id = Column(String(64), nullable=True, index=True)
    room_id = Column(String(64), nullable=True)
    instructor_id = Column(String(64), nullable=True, index=True)
    service_name = Column(String(255), nullable=True)

    # Scheduling details
    booking_date = Column(Date, nullable=False, index=True)
    start_time = Column(Time, nullable=False)
    end_time = Column(Time, nullable=False)

    # Status management
    status = Column(
        String(20), nullable=False, default=BookingStatus.PENDING.value, index=True
    )

    # Price in the smallest currency unit
    price = Column(Integer, nullable=False, default=0)

    # Cancellation
    cancelled_at = Column(DateTime(timezone=True), nullable=True)
    cancellation_notes = Column(Text, nullable=True)

    # Audit timestamps
    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(
        DateTime(timezone=True), server_default=func.now(), onupdate=func.now()
    )

    # Constraints
    __table_args__ = (
        CheckConstraint("end_time > start_time", name="check_booking_end_after_start"),
        CheckConstraint("price >= 0", name="check_booking_non_negative_price"),
        # Last line of defence against two concurrent requests for the same slot;
        # cancelled and finished bookings release it
        Index(
            "uq_booking_room_start_active",
            "room_id",
            "booking_date",
            "start_time",
            unique=True,
            postgresql_where=status.in_(ACTIVE_STATUS_VALUES),
            sqlite_where=status.in_(ACTIVE_STATUS_VALUES),
        ),
        Index("ix_bookings_date_status", "booking_date", "status"),
    )

    @property
    def is_active(self) -> bool:
        return BookingStatus(self.status) in ACTIVE_BOOKING_STATUSES

    @property
    def starts_at(self) -> datetime:
        return combine_local(self.booking_date, self.start_time)

    @property
    def duration_minutes(self) -> int:
        start = datetime.combine(self.booking_date, self.start_time)
        end = datetime.combine(self.booking_date, self.end_time)
        return int((end - start).total_seconds() // 60)

    def to_slot(self) -> BookingSlot:
        return BookingSlot(
            booking_id=str(self.uuid) if self.uuid else None,
            date=self.booking_date,
            start_time=self.start_time,
            end_time=self.end_time,
            room_id=self.room_id,
            instructor_id=self.instructor_id,
        )

    def cancel(self, cancelled_at: datetime, notes: Optional[str] = None) -> bool:
        """Mark the booking cancelled; returns False if it no longer holds a slot."""
        if not self.is_active:
            return False

        self.status = BookingStatus.CANCELLED.value
        self.cancelled_at = cancelled_at
        if notes:
            self.cancellation_notes = notes
        return True

    def __repr__(self):
        return (
            f"<Booking(id={self.id}, type={self.booking_type}, "
            f"{self.booking_date} {self.start_time}-{self.end_time}, "
            f"status={self.status})>"
        )
