from pydantic import BaseModel, Field, ConfigDict
from typing import Optional, List
from datetime import datetime
from decimal import Decimal
from split_ledger.models.debts import Currency, DebtStatus


class ExpenseCreate(BaseModel):
    group_id: str
    amount: Decimal = Field(..., gt=0)
    description: str = Field(..., min_length=1, max_length=200)
    participants: List[str] = Field(..., min_length=1)
    currency: Optional[Currency] = None


class DebtUpdate(BaseModel):
    amount: Optional[Decimal] = Field(None, gt=0)
    description: Optional[str] = Field(None, max_length=200)


class DebtOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: str
    group_id: str
    creditor_id: str
    debtor_id: str
    original_amount: Decimal
    amount: Decimal
    currency: Optional[Currency] = None
    description: str
    status: DebtStatus
    settled_at: Optional[datetime] = None
    created_by: str
    created_at: datetime
    updated_at: datetime


class Balance(BaseModel):
    """Signed net balance for an ordered pair; positive means the other user owes the viewer"""
    value: Decimal
    currency: str


class BalanceOut(BaseModel):
    balance: Decimal
    currency: str
    message: str


class SettleAllOut(BaseModel):
    settled_count: int


class DeletedCountOut(BaseModel):
    deleted_count: int
