import enum
import uuid

from sqlalchemy import Column, DateTime, Index, Integer, String, Text
from sqlalchemy.dialects.postgresql import UUID
from sqlalchemy.sql import func

from app.core.database import Base


class CreditReason(enum.Enum):
    CANCELLATION = "cancellation"
    REFUND = "refund"
    PROMOTION = "promotion"
    ADMIN_ADJUSTMENT = "admin_adjustment"
    WELCOME_BONUS = "welcome_bonus"
    USAGE = "usage"


class CreditLedgerEntry(Base):
    """One movement on a patient's credit balance.

    Credits earned are positive amounts; credits spent are recorded as
    negative ``USAGE`` entries. The balance is the sum of unexpired entries.
    """

    __tablename__ = "credit_ledger"

    id = Column(Integer, primary_key=True, index=True)
    uuid = Column(
        UUID(as_uuid=True), unique=True, nullable=False, default=uuid.uuid4, index=True
    )
    patient_id = Column(String(64), nullable=False)
    amount = Column(Integer, nullable=False)
    reason = Column(String(30), nullable=False)
    description = Column(Text, nullable=True)

    # Booking that produced or consumed the credit
    booking_id = Column(String(64), nullable=True)

    expires_at = Column(DateTime(timezone=True), nullable=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now())

    __table_args__ = (Index("ix_credit_ledger_patient", "patient_id", "created_at"),)

    def is_expired(self, as_of) -> bool:
        return self.expires_at is not None and self.expires_at <= as_of

    def __repr__(self):
        return (
            f"<CreditLedgerEntry(id={self.id}, patient_id={self.patient_id}, "
            f"amount={self.amount}, reason={self.reason})>"
        )
