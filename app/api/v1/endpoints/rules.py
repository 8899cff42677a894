from datetime import datetime
from typing import Any, Dict, Optional

from fastapi import APIRouter, Depends, HTTPException, Query, status

from app.api.deps.clock import get_now
from app.core.business_rules import (
    APPOINTMENT_RULES,
    BREATHE_MOVE_RULES,
    CANCELLATION_POLICIES,
    CREDIT_RULES,
    NOTIFICATION_RULES,
    PAYMENT_RULES,
)
from app.schemas.business_rules import (
    CancellationQuoteRequest,
    CreditQuote,
    PaymentValidationRequest,
    PaymentValidationResponse,
    WorkingHourCheckResponse,
)
from app.services.business_rules import (
    calculate_cancellation_credit,
    is_working_hour,
    payment_fee,
    validate_payment_amount,
)
from app.utils.clock import localize

router = APIRouter()


@router.get("/")
async def get_business_rules() -> Dict[str, Any]:
    """Read-only view of every policy table."""
    return {
        "cancellation_policies": CANCELLATION_POLICIES.model_dump(mode="json"),
        "appointment_rules": APPOINTMENT_RULES.model_dump(mode="json"),
        "payment_rules": PAYMENT_RULES.model_dump(mode="json"),
        "credit_rules": CREDIT_RULES.model_dump(mode="json"),
        "notification_rules": NOTIFICATION_RULES.model_dump(mode="json"),
        "breathe_move_rules": BREATHE_MOVE_RULES.model_dump(mode="json"),
    }


@router.post("/cancellation-quote", response_model=CreditQuote)
async def quote_cancellation(
    request: CancellationQuoteRequest, now: datetime = Depends(get_now)
) -> CreditQuote:
    """
    Quote the credit a patient would receive for cancelling now
    (or at ``cancellation_time`` when given).
    """
    cancellation_time = request.cancellation_time or now
    try:
        return calculate_cancellation_credit(
            localize(request.appointment_time),
            localize(cancellation_time),
            request.price,
        )
    except ValueError as e:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(e))


@router.get("/working-hours", response_model=WorkingHourCheckResponse)
async def check_working_hour(
    timestamp: Optional[datetime] = Query(
        None, description="Moment to check, in clinic local time; defaults to now"
    ),
    now: datetime = Depends(get_now),
) -> WorkingHourCheckResponse:
    moment = localize(timestamp) if timestamp else now
    return WorkingHourCheckResponse(timestamp=moment, is_working_hour=is_working_hour(moment))


@router.post("/payments/validate", response_model=PaymentValidationResponse)
async def validate_payment(request: PaymentValidationRequest) -> PaymentValidationResponse:
    """Check an amount against a payment method's limits before charging it."""
    errors = validate_payment_amount(request.method, request.amount)
    fee = 0
    if not errors:
        fee = payment_fee(request.method, request.amount)
    return PaymentValidationResponse(is_valid=not errors, errors=errors, fee=fee)
