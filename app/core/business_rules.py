"""Business rule tables for appointments, cancellations, payments and classes.

Every table is a frozen model validated when this module is imported, so an
inconsistent edit (unordered tiers, inverted duration bounds, a lunch break
outside working hours, negative prices) stops the process at startup.
"""

from datetime import time

from app.schemas.business_rules import (
    AppointmentRules,
    BookingLimits,
    BreatheMoveRules,
    CancellationMessages,
    CancellationPolicy,
    CancellationTier,
    ClassPackage,
    CreditRules,
    DurationBounds,
    MinimumNotice,
    NotificationRules,
    PaymentMethodLimits,
    PaymentRules,
    QuietHours,
    WelcomeBonus,
    WorkingHoursPolicy,
    UNLIMITED_CLASSES,
)
from app.schemas.scheduling import WeekDay


CANCELLATION_POLICIES = CancellationPolicy(
    # Most generous first; the first tier reached wins
    tiers=(
        CancellationTier(min_hours_before=48, credit_fraction=1.0),
        CancellationTier(min_hours_before=24, credit_fraction=0.75),
        CancellationTier(min_hours_before=6, credit_fraction=0.5),
        CancellationTier(min_hours_before=2, credit_fraction=0.25),
    ),
    no_credit_fraction=0,
    minimum_hours=MinimumNotice(cancellation=2, rescheduling=6, booking=24),
    messages=CancellationMessages(
        full_credit="Se aplicará el 100% del valor como crédito en tu cuenta",
        no_credit=(
            "Las cancelaciones con menos de 2 horas de anticipación no generan crédito"
        ),
        partial_credit_template="Se aplicará un {percentage}% de crédito a tu cuenta",
    ),
)

APPOINTMENT_RULES = AppointmentRules(
    working_hours=WorkingHoursPolicy(
        start=time(9, 0),
        end=time(18, 0),
        lunch_start=time(13, 0),
        lunch_end=time(14, 0),
    ),
    working_days=(
        WeekDay.MONDAY,
        WeekDay.TUESDAY,
        WeekDay.WEDNESDAY,
        WeekDay.THURSDAY,
        WeekDay.FRIDAY,
    ),
    duration=DurationBounds(default=60, minimum=30, maximum=180),
    limits=BookingLimits(
        max_per_day=3,
        max_advance_booking_days=90,
        max_pending_appointments=5,
    ),
)

PAYMENT_RULES = PaymentRules(
    confirmation_timeout_minutes=30,
    enabled_methods=("credit_card", "pse", "cash"),
    method_config={
        "credit_card": PaymentMethodLimits(
            enabled=True, min_amount=10_000, max_amount=10_000_000
        ),
        "pse": PaymentMethodLimits(
            enabled=True, min_amount=10_000, max_amount=50_000_000
        ),
        "cash": PaymentMethodLimits(enabled=False, min_amount=0, max_amount=1_000_000),
    },
    fees={"credit_card": 0, "pse": 0, "cash": 0},
)

CREDIT_RULES = CreditRules(
    initial_credits=0,
    welcome_bonus=WelcomeBonus(enabled=False, amount=100_000),
    expiration_days=365,
    minimum_usage=10_000,
    max_per_transaction=None,  # no limit
)

NOTIFICATION_RULES = NotificationRules(
    appointment_reminders_hours=(24, 2),
    class_reminders_minutes=(60, 15),
    quiet_hours=QuietHours(start=22, end=8),
)

BREATHE_MOVE_RULES = BreatheMoveRules(
    max_classes_per_day=1,
    minimum_enrollment_hours=2,
    packages={
        "single": ClassPackage(classes=1, price=100_000, expiration_days=7),
        "pack4": ClassPackage(classes=4, price=350_000, expiration_days=30),
        "pack8": ClassPackage(classes=8, price=650_000, expiration_days=60),
        "unlimited": ClassPackage(
            classes=UNLIMITED_CLASSES, price=900_000, expiration_days=30
        ),
    },
)
