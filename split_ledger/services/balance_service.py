from decimal import Decimal
from typing import List, Tuple
from sqlalchemy import and_, or_
from sqlalchemy.orm import Session
from split_ledger.core.config import settings
from split_ledger.models.debts import Debt, DebtStatus
from split_ledger.schemas.debt_schema import Balance
from split_ledger.utils.money import ZERO, round_decimal


def pair_filter(group_id: str, user_a: str, user_b: str):
    """Active debts in a group between two users, in either direction"""
    return and_(
        Debt.group_id == group_id,
        Debt.status == DebtStatus.active,
        or_(
            and_(Debt.creditor_id == user_a, Debt.debtor_id == user_b),
            and_(Debt.creditor_id == user_b, Debt.debtor_id == user_a),
        )
    )


def get_active_pair_debts(db: Session, group_id: str, user_a: str, user_b: str, for_update: bool = False) -> List[Debt]:
    query = db.query(Debt).filter(pair_filter(group_id, user_a, user_b)).order_by(Debt.created_at, Debt.id)
    if for_update:
        query = query.with_for_update()
    return query.all()


def net_debts(debts: List[Debt], viewer_id: str) -> Tuple[Decimal, str]:
    """
    Net a list of debts from the viewer's side.

    Amounts owed to the viewer count positive, amounts the viewer owes count
    negative. The currency reported is that of the last debt, so mixed
    currencies between the same pair give a misleading figure.
    """
    value = ZERO
    currency = settings.DEFAULT_CURRENCY
    for debt in debts:
        if debt.currency:
            currency = debt.currency
        if debt.creditor_id == viewer_id:
            value += debt.amount
        else:
            value -= debt.amount
    return round_decimal(value), currency


def calculate_balance(db: Session, group_id: str, user_a: str, user_b: str) -> Balance:
    """
    Net balance between two users in a group, seen from user_a.

    Positive: user_b owes user_a. Negative: user_a owes user_b. Zero: settled up.
    Always recomputed from the current active debts.
    """
    value, currency = net_debts(get_active_pair_debts(db, group_id, user_a, user_b), user_a)
    return Balance(value=value, currency=currency)


def describe_balance(balance: Balance, other_user_id: str) -> str:
    if balance.value > 0:
        return f"User {other_user_id} owes you {balance.value} {balance.currency}."
    if balance.value < 0:
        return f"You owe user {other_user_id} {abs(balance.value)} {balance.currency}."
    return f"You are settled up with user {other_user_id}."
