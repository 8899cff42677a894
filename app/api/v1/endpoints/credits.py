from datetime import datetime

from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from app.api.deps.clock import get_now
from app.api.deps.database import get_db
from app.schemas.booking import CreditBalanceResponse, CreditEntryResponse
from app.services.credits import CreditService

router = APIRouter()


@router.get("/{patient_id}", response_model=CreditBalanceResponse)
async def get_patient_credits(
    patient_id: str,
    db: AsyncSession = Depends(get_db),
    now: datetime = Depends(get_now),
) -> CreditBalanceResponse:
    """Available credit balance and ledger history of a patient."""
    service = CreditService(db)
    entries = await service.list_entries(patient_id)
    balance = await service.get_balance(patient_id, now)
    return CreditBalanceResponse(
        patient_id=patient_id,
        balance=balance,
        entries=[CreditEntryResponse.model_validate(e) for e in entries],
    )
