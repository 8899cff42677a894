from datetime import datetime
from typing import Iterable, List, Optional

import structlog
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from app.models.credit import CreditLedgerEntry, CreditReason
from app.schemas.business_rules import CreditQuote
from app.services.business_rules import (
    applicable_credit,
    credit_expiration,
    welcome_bonus_amount,
)
from app.utils.formatting import format_amount

logger = structlog.get_logger(__name__)


def _expiry_order(lot):
    expires_at = lot[1].expires_at
    return (expires_at is None, expires_at or datetime.min)


def available_balance(entries: Iterable[CreditLedgerEntry], as_of: datetime) -> int:
    """Credit left to spend at ``as_of``.

    Entries are replayed in ledger order. Each debit draws on the credits that
    were still valid when it was recorded, earliest expiry first, so money
    already spent is never taken again from later credits once the credit it
    came from expires. A debit larger than the credits available is carried
    over to the next credits earned.
    """
    lots = []  # [remaining amount, credit entry]
    owed = 0

    for entry in entries:
        if entry.amount > 0:
            settled = min(entry.amount, owed)
            owed -= settled
            lots.append([entry.amount - settled, entry])
            continue

        owed += -entry.amount
        spent_at = entry.created_at
        live = [
            lot
            for lot in lots
            if lot[0] > 0 and (spent_at is None or not lot[1].is_expired(spent_at))
        ]
        for lot in sorted(live, key=_expiry_order):
            if not owed:
                break
            taken = min(lot[0], owed)
            lot[0] -= taken
            owed -= taken

    return sum(remaining for remaining, credit in lots if not credit.is_expired(as_of))


class CreditService:
    """Patient credit ledger: earning, spending and balances."""

    def __init__(self, db: AsyncSession):
        self.db = db

    async def list_entries(self, patient_id: str) -> List[CreditLedgerEntry]:
        result = await self.db.execute(
            select(CreditLedgerEntry)
            .where(CreditLedgerEntry.patient_id == patient_id)
            .order_by(CreditLedgerEntry.created_at, CreditLedgerEntry.id)
        )
        return list(result.scalars().all())

    async def get_balance(self, patient_id: str, as_of: datetime) -> int:
        """Unexpired credit left after every debit, never below zero."""
        entries = await self.list_entries(patient_id)
        return available_balance(entries, as_of)

    async def add_entry(
        self,
        patient_id: str,
        amount: int,
        reason: CreditReason,
        description: Optional[str] = None,
        booking_id: Optional[str] = None,
        expires_at: Optional[datetime] = None,
        commit: bool = True,
    ) -> CreditLedgerEntry:
        entry = CreditLedgerEntry(
            patient_id=patient_id,
            amount=amount,
            reason=reason.value,
            description=description,
            booking_id=booking_id,
            expires_at=expires_at,
        )
        self.db.add(entry)

        if commit:
            await self.db.commit()
            await self.db.refresh(entry)

        logger.info(
            "Credit ledger entry added",
            patient_id=patient_id,
            amount=amount,
            reason=reason.value,
            booking_id=booking_id,
        )
        return entry

    async def record_cancellation_credit(
        self,
        patient_id: str,
        booking_id: str,
        quote: CreditQuote,
        issued_at: datetime,
        commit: bool = True,
    ) -> Optional[CreditLedgerEntry]:
        """Write the credit quoted for a cancellation; nothing is written for zero."""
        if quote.credit_amount <= 0:
            logger.info(
                "Cancellation earned no credit",
                patient_id=patient_id,
                booking_id=booking_id,
            )
            return None

        description = f"{quote.message} ({format_amount(quote.credit_amount)})"
        return await self.add_entry(
            patient_id=patient_id,
            amount=quote.credit_amount,
            reason=CreditReason.CANCELLATION,
            description=description,
            booking_id=booking_id,
            expires_at=credit_expiration(issued_at),
            commit=commit,
        )

    async def apply_credits(
        self,
        patient_id: str,
        booking_id: str,
        amount_due: int,
        as_of: datetime,
        commit: bool = True,
    ) -> int:
        """Spend credits towards an amount due; returns the amount applied."""
        balance = await self.get_balance(patient_id, as_of)
        usable = applicable_credit(balance, amount_due)
        if usable <= 0:
            return 0

        await self.add_entry(
            patient_id=patient_id,
            amount=-usable,
            reason=CreditReason.USAGE,
            description=f"Crédito aplicado ({format_amount(usable)})",
            booking_id=booking_id,
            commit=commit,
        )
        return usable

    async def grant_welcome_bonus(
        self, patient_id: str, issued_at: datetime
    ) -> Optional[CreditLedgerEntry]:
        amount = welcome_bonus_amount()
        if amount <= 0:
            return None

        return await self.add_entry(
            patient_id=patient_id,
            amount=amount,
            reason=CreditReason.WELCOME_BONUS,
            description="Crédito de bienvenida",
            expires_at=credit_expiration(issued_at),
        )
