"""The rule tables hold the clinic's published policies and reject bad edits."""

from datetime import time

import pytest
from pydantic import ValidationError

from app.core.business_rules import (
    APPOINTMENT_RULES,
    BREATHE_MOVE_RULES,
    CANCELLATION_POLICIES,
    CREDIT_RULES,
    NOTIFICATION_RULES,
    PAYMENT_RULES,
)
from app.schemas.business_rules import (
    CancellationMessages,
    CancellationPolicy,
    CancellationTier,
    ClassPackage,
    DurationBounds,
    NotificationRules,
    PaymentMethodLimits,
    PaymentRules,
    QuietHours,
    WorkingHoursPolicy,
)
from app.schemas.scheduling import WeekDay


@pytest.mark.unit
class TestPublishedPolicies:
    def test_cancellation_tiers(self):
        tiers = [(t.min_hours_before, t.credit_fraction) for t in CANCELLATION_POLICIES.tiers]
        assert tiers == [(48, 1.0), (24, 0.75), (6, 0.5), (2, 0.25)]
        assert CANCELLATION_POLICIES.no_credit_fraction == 0

    def test_minimum_notice(self):
        notice = CANCELLATION_POLICIES.minimum_hours
        assert (notice.cancellation, notice.rescheduling, notice.booking) == (2, 6, 24)

    def test_appointment_rules(self):
        hours = APPOINTMENT_RULES.working_hours
        assert hours.start == time(9, 0)
        assert hours.end == time(18, 0)
        assert (hours.lunch_start, hours.lunch_end) == (time(13, 0), time(14, 0))
        assert WeekDay.SATURDAY not in APPOINTMENT_RULES.working_days
        assert WeekDay.SUNDAY not in APPOINTMENT_RULES.working_days
        assert len(APPOINTMENT_RULES.working_days) == 5

        duration = APPOINTMENT_RULES.duration
        assert (duration.minimum, duration.default, duration.maximum) == (30, 60, 180)

        limits = APPOINTMENT_RULES.limits
        assert limits.max_per_day == 3
        assert limits.max_advance_booking_days == 90
        assert limits.max_pending_appointments == 5

    def test_payment_rules(self):
        assert PAYMENT_RULES.confirmation_timeout_minutes == 30
        assert PAYMENT_RULES.is_method_enabled("credit_card")
        assert PAYMENT_RULES.is_method_enabled("pse")
        assert not PAYMENT_RULES.is_method_enabled("cash")
        assert PAYMENT_RULES.method_config["pse"].max_amount == 50_000_000

    def test_credit_rules(self):
        assert CREDIT_RULES.expiration_days == 365
        assert CREDIT_RULES.minimum_usage == 10_000
        assert CREDIT_RULES.max_per_transaction is None
        assert CREDIT_RULES.welcome_bonus.enabled is False

    def test_notification_rules(self):
        assert NOTIFICATION_RULES.appointment_reminders_hours == (24, 2)
        assert NOTIFICATION_RULES.class_reminders_minutes == (60, 15)
        assert (NOTIFICATION_RULES.quiet_hours.start, NOTIFICATION_RULES.quiet_hours.end) == (22, 8)

    def test_class_packages(self):
        packages = BREATHE_MOVE_RULES.packages
        assert set(packages) == {"single", "pack4", "pack8", "unlimited"}
        assert packages["pack4"].price == 350_000
        assert packages["unlimited"].is_unlimited
        assert not packages["pack8"].is_unlimited
        assert BREATHE_MOVE_RULES.max_classes_per_day == 1

    def test_tables_are_read_only(self):
        with pytest.raises(ValidationError):
            CANCELLATION_POLICIES.no_credit_fraction = 0.5
        with pytest.raises(ValidationError):
            APPOINTMENT_RULES.working_hours.start = time(6, 0)


@pytest.mark.unit
class TestCancellationPolicyValidation:
    def test_thresholds_must_decrease(self):
        with pytest.raises(ValidationError, match="thresholds"):
            CancellationPolicy(
                tiers=(
                    CancellationTier(min_hours_before=24, credit_fraction=1.0),
                    CancellationTier(min_hours_before=48, credit_fraction=0.5),
                )
            )

    def test_fractions_must_decrease(self):
        with pytest.raises(ValidationError, match="fractions"):
            CancellationPolicy(
                tiers=(
                    CancellationTier(min_hours_before=48, credit_fraction=0.5),
                    CancellationTier(min_hours_before=24, credit_fraction=0.75),
                )
            )

    def test_needs_a_tier(self):
        with pytest.raises(ValidationError):
            CancellationPolicy(tiers=())

    def test_no_credit_fraction_not_above_last_tier(self):
        with pytest.raises(ValidationError):
            CancellationPolicy(
                tiers=(CancellationTier(min_hours_before=2, credit_fraction=0.25),),
                no_credit_fraction=0.5,
            )

    def test_fraction_cannot_exceed_one(self):
        with pytest.raises(ValidationError):
            CancellationTier(min_hours_before=48, credit_fraction=1.5)

    def test_partial_template_needs_placeholder(self):
        with pytest.raises(ValidationError):
            CancellationMessages(partial_credit_template="Crédito parcial")

    def test_unknown_fields_are_rejected(self):
        with pytest.raises(ValidationError):
            CancellationTier(min_hours_before=48, credit_fraction=1.0, bonus=1)


@pytest.mark.unit
class TestAppointmentRulesValidation:
    def test_start_before_end(self):
        with pytest.raises(ValidationError):
            WorkingHoursPolicy(start=time(18, 0), end=time(9, 0))

    def test_lunch_nested_in_working_hours(self):
        with pytest.raises(ValidationError, match="lunch"):
            WorkingHoursPolicy(
                start=time(9, 0),
                end=time(18, 0),
                lunch_start=time(8, 0),
                lunch_end=time(10, 0),
            )

    def test_lunch_bounds_set_together(self):
        with pytest.raises(ValidationError):
            WorkingHoursPolicy(start=time(9, 0), end=time(18, 0), lunch_start=time(13, 0))

    def test_no_lunch_break(self):
        hours = WorkingHoursPolicy(start=time(9, 0), end=time(18, 0))
        assert hours.has_lunch_break is False

    def test_duration_bounds_ordered(self):
        with pytest.raises(ValidationError):
            DurationBounds(default=200, minimum=30, maximum=180)

    def test_working_days_not_repeated(self):
        with pytest.raises(ValidationError):
            APPOINTMENT_RULES.model_validate(
                {
                    **APPOINTMENT_RULES.model_dump(),
                    "working_days": (WeekDay.MONDAY, WeekDay.MONDAY),
                }
            )


@pytest.mark.unit
class TestOtherTablesValidation:
    def test_payment_range(self):
        with pytest.raises(ValidationError):
            PaymentMethodLimits(enabled=True, min_amount=100, max_amount=10)

    def test_enabled_method_needs_configuration(self):
        with pytest.raises(ValidationError, match="without configuration"):
            PaymentRules(
                confirmation_timeout_minutes=30,
                enabled_methods=("nequi",),
                method_config={},
                fees={},
            )

    def test_fee_is_a_fraction(self):
        with pytest.raises(ValidationError):
            PaymentRules(
                confirmation_timeout_minutes=30,
                enabled_methods=("pse",),
                method_config={
                    "pse": PaymentMethodLimits(enabled=True, min_amount=0, max_amount=10)
                },
                fees={"pse": 2},
            )

    def test_quiet_hours_are_hours_of_day(self):
        with pytest.raises(ValidationError):
            QuietHours(start=24, end=8)

    def test_reminder_leads_positive(self):
        with pytest.raises(ValidationError):
            NotificationRules(
                appointment_reminders_hours=(24, 0),
                class_reminders_minutes=(60,),
                quiet_hours=QuietHours(start=22, end=8),
            )

    @pytest.mark.parametrize("classes", [0, -2])
    def test_package_classes(self, classes):
        with pytest.raises(ValidationError):
            ClassPackage(classes=classes, price=100_000, expiration_days=7)

    def test_package_price_not_negative(self):
        with pytest.raises(ValidationError):
            ClassPackage(classes=1, price=-1, expiration_days=7)
