"""Pure evaluation of the business rule tables.

Nothing here reads the clock or touches storage: callers pass the moments
and amounts to evaluate, which keeps every function deterministic.
"""

import math
from datetime import date as date_type, datetime, timedelta
from decimal import ROUND_HALF_UP, Decimal
from typing import List, Optional, Union

import structlog

from app.core.business_rules import (
    APPOINTMENT_RULES,
    BREATHE_MOVE_RULES,
    CANCELLATION_POLICIES,
    CREDIT_RULES,
    NOTIFICATION_RULES,
    PAYMENT_RULES,
)
from app.schemas.business_rules import (
    AppointmentRules,
    BreatheMoveRules,
    CancellationPolicy,
    CreditQuote,
    CreditRules,
    NoticeAction,
    NotificationRules,
    PaymentRules,
    ReminderKind,
)
from app.schemas.scheduling import WeekDay

logger = structlog.get_logger(__name__)

Amount = Union[int, float, Decimal]


def round_half_up(value: Amount) -> int:
    """Round to the nearest integer, ties away from zero (2.5 -> 3)."""
    return int(Decimal(str(value)).quantize(Decimal("1"), rounding=ROUND_HALF_UP))


def _check_amount(name: str, value: Amount) -> None:
    if isinstance(value, float) and not math.isfinite(value):
        raise ValueError(f"{name} must be a finite number")
    if value < 0:
        raise ValueError(f"{name} cannot be negative")


def hours_until(appointment_time: datetime, now: datetime) -> float:
    """Hours from ``now`` to ``appointment_time``; negative once it has started."""
    return (appointment_time - now).total_seconds() / 3600


def _minute_of_day(moment: datetime) -> int:
    return moment.hour * 60 + moment.minute


# Cancellations


def calculate_cancellation_credit(
    appointment_time: datetime,
    cancellation_time: datetime,
    price: Amount,
    policy: CancellationPolicy = CANCELLATION_POLICIES,
) -> CreditQuote:
    """Quote the credit granted for cancelling an appointment.

    Tiers are checked from the longest notice down and the first threshold
    reached wins; thresholds are inclusive, so cancelling exactly 48 hours
    ahead earns the 48-hour tier. Cancelling with less notice than the last
    tier, or after the appointment started, earns no credit.
    """
    _check_amount("price", price)

    hours = hours_until(appointment_time, cancellation_time)

    fraction = policy.no_credit_fraction
    for tier in policy.tiers:
        if hours >= tier.min_hours_before:
            fraction = tier.credit_fraction
            break

    if fraction >= 1:
        message = policy.messages.full_credit
    elif fraction > policy.no_credit_fraction:
        message = policy.messages.partial_credit(round_half_up(Decimal(str(fraction)) * 100))
    else:
        message = policy.messages.no_credit

    credit_amount = round_half_up(Decimal(str(price)) * Decimal(str(fraction)))

    logger.debug(
        "Cancellation credit calculated",
        hours_until_appointment=round(hours, 2),
        credit_percentage=fraction,
        credit_amount=credit_amount,
    )
    return CreditQuote(
        credit_amount=credit_amount,
        credit_percentage=fraction,
        message=message,
    )


def meets_minimum_notice(
    action: NoticeAction,
    appointment_time: datetime,
    now: datetime,
    policy: CancellationPolicy = CANCELLATION_POLICIES,
) -> bool:
    """Check the minimum notice required to book, reschedule or cancel."""
    required = getattr(policy.minimum_hours, NoticeAction(action).value)
    return hours_until(appointment_time, now) >= required


# Appointments


def is_working_hour(
    timestamp: datetime, rules: AppointmentRules = APPOINTMENT_RULES
) -> bool:
    """Check whether a moment falls inside opening hours.

    The day must be a working day and the time of day (to the minute) must be
    inside ``[start, end)`` and outside ``[lunch_start, lunch_end)``.
    """
    if WeekDay(timestamp.weekday()) not in rules.working_days:
        return False

    hours = rules.working_hours
    minute = _minute_of_day(timestamp)

    if minute < _minute_of_day(hours.start) or minute >= _minute_of_day(hours.end):
        return False

    if hours.has_lunch_break and (
        _minute_of_day(hours.lunch_start) <= minute < _minute_of_day(hours.lunch_end)
    ):
        return False

    return True


def validate_duration(
    duration_minutes: int, rules: AppointmentRules = APPOINTMENT_RULES
) -> List[str]:
    """Return the problems with an appointment duration, if any."""
    errors = []
    bounds = rules.duration
    if duration_minutes < bounds.minimum:
        errors.append(f"Duration must be at least {bounds.minimum} minutes")
    if duration_minutes > bounds.maximum:
        errors.append(f"Duration cannot exceed {bounds.maximum} minutes")
    return errors


def is_within_booking_window(
    appointment_date: date_type,
    today: date_type,
    rules: AppointmentRules = APPOINTMENT_RULES,
) -> bool:
    if appointment_date < today:
        return False
    return (appointment_date - today).days <= rules.limits.max_advance_booking_days


# Payments


def validate_payment_amount(
    method: str, amount: Amount, rules: PaymentRules = PAYMENT_RULES
) -> List[str]:
    """Validate an amount against a payment method before charging it."""
    errors = []

    config = rules.method_config.get(method)
    if config is None:
        errors.append(f"Unknown payment method: {method}")
        return errors

    if not rules.is_method_enabled(method):
        errors.append(f"Payment method {method} is not enabled")

    if isinstance(amount, float) and not math.isfinite(amount):
        errors.append("Amount must be a finite number")
        return errors

    if amount < config.min_amount:
        errors.append(f"Amount must be at least {config.min_amount} for {method}")
    if amount > config.max_amount:
        errors.append(f"Amount cannot exceed {config.max_amount} for {method}")

    return errors


def payment_fee(method: str, amount: Amount, rules: PaymentRules = PAYMENT_RULES) -> int:
    _check_amount("amount", amount)
    fraction = rules.fees.get(method, 0)
    return round_half_up(Decimal(str(amount)) * Decimal(str(fraction)))


def payment_confirmation_deadline(
    created_at: datetime, rules: PaymentRules = PAYMENT_RULES
) -> datetime:
    return created_at + timedelta(minutes=rules.confirmation_timeout_minutes)


# Credits


def credit_expiration(
    issued_at: datetime, rules: CreditRules = CREDIT_RULES
) -> Optional[datetime]:
    """When a credit issued at ``issued_at`` expires; None if credits never expire."""
    if rules.expiration_days is None:
        return None
    return issued_at + timedelta(days=rules.expiration_days)


def applicable_credit(
    balance: int, amount_due: int, rules: CreditRules = CREDIT_RULES
) -> int:
    """How much of a credit balance may be applied to an amount due."""
    if balance <= 0 or amount_due <= 0:
        return 0
    if balance < rules.minimum_usage:
        return 0

    usable = min(balance, amount_due)
    if rules.max_per_transaction is not None:
        usable = min(usable, rules.max_per_transaction)
    return usable


def welcome_bonus_amount(rules: CreditRules = CREDIT_RULES) -> int:
    if not rules.welcome_bonus.enabled:
        return 0
    return rules.welcome_bonus.amount


# Notifications


def is_quiet_hour(
    timestamp: datetime, rules: NotificationRules = NOTIFICATION_RULES
) -> bool:
    """Check whether notifications should be held back at this moment."""
    start = rules.quiet_hours.start
    end = rules.quiet_hours.end
    hour = timestamp.hour

    if start == end:
        return False
    if start < end:
        return start <= hour < end
    # Window wraps past midnight
    return hour >= start or hour < end


def reminder_times(
    start: datetime,
    kind: ReminderKind,
    rules: NotificationRules = NOTIFICATION_RULES,
) -> List[datetime]:
    """Moments at which reminders are due, earliest first."""
    if ReminderKind(kind) == ReminderKind.APPOINTMENT:
        leads = [timedelta(hours=h) for h in rules.appointment_reminders_hours]
    else:
        leads = [timedelta(minutes=m) for m in rules.class_reminders_minutes]
    return sorted(start - lead for lead in leads)


# Breathe & Move classes


def _get_package(package_id: str, rules: BreatheMoveRules):
    package = rules.packages.get(package_id)
    if package is None:
        raise ValueError(f"Unknown class package: {package_id}")
    return package


def package_expiration(
    package_id: str,
    purchased_at: datetime,
    rules: BreatheMoveRules = BREATHE_MOVE_RULES,
) -> datetime:
    package = _get_package(package_id, rules)
    return purchased_at + timedelta(days=package.expiration_days)


def is_unlimited_package(
    package_id: str, rules: BreatheMoveRules = BREATHE_MOVE_RULES
) -> bool:
    return _get_package(package_id, rules).is_unlimited


def can_enroll_in_class(
    class_start: datetime,
    now: datetime,
    classes_booked_that_day: int = 0,
    rules: BreatheMoveRules = BREATHE_MOVE_RULES,
) -> bool:
    """Check the enrollment lead time and the per-day class limit."""
    if hours_until(class_start, now) < rules.minimum_enrollment_hours:
        return False
    return classes_booked_that_day < rules.max_classes_per_day
