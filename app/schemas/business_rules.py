from datetime import datetime, time
from enum import Enum
from typing import Dict, List, Optional, Tuple

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator

from app.schemas.scheduling import WeekDay


class PolicyModel(BaseModel):
    """Base for immutable policy tables."""

    model_config = ConfigDict(frozen=True, extra="forbid")


class NoticeAction(str, Enum):
    CANCELLATION = "cancellation"
    RESCHEDULING = "rescheduling"
    BOOKING = "booking"


class ReminderKind(str, Enum):
    APPOINTMENT = "appointment"
    CLASS = "class"


# Cancellation policy


class CancellationTier(PolicyModel):
    """Credit granted when cancelling at least ``min_hours_before`` ahead."""

    min_hours_before: float = Field(..., ge=0)
    credit_fraction: float = Field(..., ge=0, le=1)


class CancellationMessages(PolicyModel):
    full_credit: str = "Se aplicará el 100% del valor como crédito en tu cuenta"
    no_credit: str = (
        "Las cancelaciones con menos de 2 horas de anticipación no generan crédito"
    )
    partial_credit_template: str = "Se aplicará un {percentage}% de crédito a tu cuenta"

    @field_validator("partial_credit_template")
    @classmethod
    def template_has_percentage(cls, v):
        if "{percentage}" not in v:
            raise ValueError("partial_credit_template must contain '{percentage}'")
        return v

    def partial_credit(self, percentage: int) -> str:
        return self.partial_credit_template.format(percentage=percentage)


class MinimumNotice(PolicyModel):
    """Minimum hours of notice before each kind of action."""

    cancellation: float = Field(2, ge=0)
    rescheduling: float = Field(6, ge=0)
    booking: float = Field(24, ge=0)


class CancellationPolicy(PolicyModel):
    tiers: Tuple[CancellationTier, ...]
    no_credit_fraction: float = Field(0, ge=0, le=1)
    minimum_hours: MinimumNotice = MinimumNotice()
    messages: CancellationMessages = CancellationMessages()

    @model_validator(mode="after")
    def check_tier_order(self):
        if not self.tiers:
            raise ValueError("cancellation policy needs at least one tier")

        for higher, lower in zip(self.tiers, self.tiers[1:]):
            if lower.min_hours_before >= higher.min_hours_before:
                raise ValueError(
                    "tier thresholds must be strictly decreasing "
                    f"({higher.min_hours_before} then {lower.min_hours_before})"
                )
            if lower.credit_fraction >= higher.credit_fraction:
                raise ValueError(
                    "tier credit fractions must be strictly decreasing "
                    f"({higher.credit_fraction} then {lower.credit_fraction})"
                )

        if self.no_credit_fraction > self.tiers[-1].credit_fraction:
            raise ValueError("no_credit_fraction cannot exceed the last tier")
        return self


# Appointment rules


class WorkingHoursPolicy(PolicyModel):
    start: time
    end: time
    lunch_start: Optional[time] = None
    lunch_end: Optional[time] = None

    @model_validator(mode="after")
    def check_nesting(self):
        if self.start >= self.end:
            raise ValueError("working hours start must be before end")

        if (self.lunch_start is None) != (self.lunch_end is None):
            raise ValueError("lunch_start and lunch_end must be set together")

        if self.lunch_start is not None and not (
            self.start < self.lunch_start < self.lunch_end < self.end
        ):
            raise ValueError("lunch break must be nested inside working hours")
        return self

    @property
    def has_lunch_break(self) -> bool:
        return self.lunch_start is not None


class DurationBounds(PolicyModel):
    """Appointment duration bounds in minutes."""

    default: int = Field(..., gt=0)
    minimum: int = Field(..., gt=0)
    maximum: int = Field(..., gt=0)

    @model_validator(mode="after")
    def check_monotonic(self):
        if not (self.minimum <= self.default <= self.maximum):
            raise ValueError("duration bounds must satisfy minimum <= default <= maximum")
        return self


class BookingLimits(PolicyModel):
    max_per_day: int = Field(..., gt=0)
    max_advance_booking_days: int = Field(..., gt=0)
    max_pending_appointments: int = Field(..., gt=0)


class AppointmentRules(PolicyModel):
    working_hours: WorkingHoursPolicy
    working_days: Tuple[WeekDay, ...]
    duration: DurationBounds
    limits: BookingLimits

    @field_validator("working_days")
    @classmethod
    def unique_days(cls, v):
        if len(set(v)) != len(v):
            raise ValueError("working_days must not repeat a weekday")
        return v


# Payments


class PaymentMethodLimits(PolicyModel):
    enabled: bool
    min_amount: int = Field(..., ge=0)
    max_amount: int = Field(..., ge=0)

    @model_validator(mode="after")
    def check_range(self):
        if self.min_amount > self.max_amount:
            raise ValueError("min_amount cannot exceed max_amount")
        return self


class PaymentRules(PolicyModel):
    confirmation_timeout_minutes: int = Field(..., gt=0)
    enabled_methods: Tuple[str, ...]
    method_config: Dict[str, PaymentMethodLimits]
    fees: Dict[str, float]

    @model_validator(mode="after")
    def check_methods(self):
        unknown = [m for m in self.enabled_methods if m not in self.method_config]
        if unknown:
            raise ValueError(f"enabled methods without configuration: {', '.join(unknown)}")

        for method, fee in self.fees.items():
            if method not in self.method_config:
                raise ValueError(f"fee configured for unknown method: {method}")
            if not 0 <= fee <= 1:
                raise ValueError(f"fee for {method} must be a fraction between 0 and 1")
        return self

    def is_method_enabled(self, method: str) -> bool:
        config = self.method_config.get(method)
        return bool(config and config.enabled and method in self.enabled_methods)


# Credits


class WelcomeBonus(PolicyModel):
    enabled: bool = False
    amount: int = Field(0, ge=0)


class CreditRules(PolicyModel):
    initial_credits: int = Field(0, ge=0)
    welcome_bonus: WelcomeBonus = WelcomeBonus()
    expiration_days: Optional[int] = Field(None, gt=0)
    minimum_usage: int = Field(0, ge=0)
    max_per_transaction: Optional[int] = Field(None, gt=0)


# Notifications


class QuietHours(PolicyModel):
    """Hours of the day (0-23) during which no notification is sent."""

    start: int = Field(..., ge=0, le=23)
    end: int = Field(..., ge=0, le=23)


class NotificationRules(PolicyModel):
    appointment_reminders_hours: Tuple[int, ...]
    class_reminders_minutes: Tuple[int, ...]
    quiet_hours: QuietHours

    @field_validator("appointment_reminders_hours", "class_reminders_minutes")
    @classmethod
    def positive_lead_times(cls, v):
        if any(lead <= 0 for lead in v):
            raise ValueError("reminder lead times must be positive")
        return v


# Breathe & Move classes

UNLIMITED_CLASSES = -1


class ClassPackage(PolicyModel):
    classes: int
    price: int = Field(..., ge=0)
    expiration_days: int = Field(..., gt=0)

    @field_validator("classes")
    @classmethod
    def classes_or_unlimited(cls, v):
        if v != UNLIMITED_CLASSES and v < 1:
            raise ValueError("classes must be positive or -1 for unlimited")
        return v

    @property
    def is_unlimited(self) -> bool:
        return self.classes == UNLIMITED_CLASSES


class BreatheMoveRules(PolicyModel):
    max_classes_per_day: int = Field(..., gt=0)
    minimum_enrollment_hours: float = Field(..., ge=0)
    packages: Dict[str, ClassPackage]


# Results


class CreditQuote(BaseModel):
    """Credit granted for a cancellation request."""

    model_config = ConfigDict(frozen=True)

    credit_amount: int
    credit_percentage: float
    message: str


class CancellationQuoteRequest(BaseModel):
    appointment_time: datetime
    cancellation_time: Optional[datetime] = None
    price: int = Field(..., ge=0, description="Price in the smallest currency unit")


class PaymentValidationRequest(BaseModel):
    method: str
    amount: int


class PaymentValidationResponse(BaseModel):
    is_valid: bool
    errors: List[str] = Field(default_factory=list)
    fee: int = 0


class WorkingHourCheckResponse(BaseModel):
    timestamp: datetime
    is_working_hour: bool
