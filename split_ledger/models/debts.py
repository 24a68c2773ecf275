import enum
import uuid
from datetime import datetime, timezone
from sqlalchemy import Column, String, DateTime, Enum, ForeignKey, DECIMAL, CheckConstraint, Index
from split_ledger.db.database import Base


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class Currency(str, enum.Enum):
    USD = "USD"
    EUR = "EUR"
    SAR = "SAR"
    AED = "AED"
    EGP = "EGP"
    TRY = "TRY"


class DebtStatus(str, enum.Enum):
    active = "active"
    settled = "settled"
    disputed = "disputed"
    cancelled = "cancelled"


TERMINAL_STATUSES = frozenset({DebtStatus.settled, DebtStatus.disputed, DebtStatus.cancelled})


class Debt(Base):
    """One unidirectional obligation: debtor owes creditor ``amount`` within a group."""
    __tablename__ = "debts"
    __table_args__ = (
        CheckConstraint("creditor_id <> debtor_id", name="ck_debts_no_self_debt"),
        CheckConstraint("amount >= 0.01", name="ck_debts_positive_amount"),
        Index("ix_debts_pair_status", "creditor_id", "debtor_id", "status"),
        Index("ix_debts_group_status", "group_id", "status"),
    )

    id = Column(String, primary_key=True, default=lambda: str(uuid.uuid4()), unique=True, nullable=False)
    group_id = Column(String, ForeignKey("groups.id", ondelete="CASCADE"), nullable=False, index=True)
    creditor_id = Column(String, nullable=False, index=True)  # Reference to user service
    debtor_id = Column(String, nullable=False, index=True)  # Reference to user service
    original_amount = Column(DECIMAL(10, 2), nullable=False)
    amount = Column(DECIMAL(10, 2), nullable=False)
    # Nullable only so records from before currency tracking can be backfilled
    currency = Column(String(3), nullable=True)
    description = Column(String(200), nullable=False)
    status = Column(Enum(DebtStatus), nullable=False, default=DebtStatus.active, index=True)
    settled_at = Column(DateTime(timezone=True), nullable=True)
    created_by = Column(String, nullable=False)
    created_at = Column(DateTime(timezone=True), default=_utcnow, nullable=False, index=True)
    updated_at = Column(DateTime(timezone=True), default=_utcnow, onupdate=_utcnow, nullable=False)

    @property
    def is_terminal(self) -> bool:
        return self.status in TERMINAL_STATUSES

    def involves(self, user_id: str) -> bool:
        return user_id in (self.creditor_id, self.debtor_id)
