from fastapi import APIRouter, Depends, HTTPException, Header, status
from sqlalchemy.orm import Session
from split_ledger.core.exceptions import NotFoundError
from split_ledger.db.database import get_db
from split_ledger.services.auth.jwt_handler import get_current_user
from split_ledger.services.balance_service import calculate_balance, describe_balance
from split_ledger.services.expense_splitter import split_expense
from split_ledger.services.ledger_queries import (
    delete_debts_by_group, find_active_debts_by_group, find_debts_by_group, find_debts_by_user
)
from split_ledger.services.membership import MembershipOracle, SqlMembershipOracle
from split_ledger.services.settlement_service import (
    cancel_debt, delete_debt, edit_debt, settle_all_debts, settle_debt
)
from split_ledger.schemas.debt_schema import (
    BalanceOut, DebtOut, DebtUpdate, DeletedCountOut, ExpenseCreate, SettleAllOut
)
from split_ledger.utils.response_helper import success_response

router = APIRouter(prefix="/debts", tags=["debts"])


def get_current_user_id(access_token: str = Header(..., description="Access token (without Bearer)")):
    """Extract current user ID from JWT token"""
    if access_token.startswith("Bearer "):
        access_token = access_token.replace("Bearer ", "")
    user_id = get_current_user(access_token)
    if not user_id:
        raise HTTPException(status_code=401, detail="Invalid token")
    return user_id


def get_membership_oracle(db: Session = Depends(get_db)) -> MembershipOracle:
    return SqlMembershipOracle(db)


def _require_member(oracle: MembershipOracle, group_id: str, user_id: str):
    if not oracle.is_member(group_id, user_id):
        raise NotFoundError("Group not found or you are not a member", code="GROUP_NOT_FOUND")


@router.post("/expenses", status_code=status.HTTP_201_CREATED)
def create_expense_and_debts(
    expense_data: ExpenseCreate,
    user_id: str = Depends(get_current_user_id),
    db: Session = Depends(get_db),
    oracle: MembershipOracle = Depends(get_membership_oracle)
):
    """Split a new expense into debts owed to the current user"""
    debts = split_expense(
        db,
        oracle,
        group_id=expense_data.group_id,
        creditor_id=user_id,
        amount=expense_data.amount,
        description=expense_data.description,
        currency=expense_data.currency.value if expense_data.currency else None,
        participant_ids=expense_data.participants,
        actor_id=user_id
    )
    if not debts:
        return success_response(None, "The payer is the only one involved. No debts created.")
    return success_response(
        [DebtOut.model_validate(debt) for debt in debts],
        "Expense created and debts split successfully"
    )


@router.get("/my-debts")
def get_user_debts(
    user_id: str = Depends(get_current_user_id),
    db: Session = Depends(get_db)
):
    """Get all debts of the current user, as creditor or debtor"""
    debts = find_debts_by_user(db, user_id)
    return success_response([DebtOut.model_validate(debt) for debt in debts], "User debts retrieved successfully")


@router.get("/group/{group_id}")
def get_group_debts(
    group_id: str,
    user_id: str = Depends(get_current_user_id),
    db: Session = Depends(get_db),
    oracle: MembershipOracle = Depends(get_membership_oracle)
):
    """Get all debts for a group"""
    _require_member(oracle, group_id, user_id)
    debts = find_debts_by_group(db, group_id)
    return success_response([DebtOut.model_validate(debt) for debt in debts], "Group debts retrieved successfully")


@router.get("/group/{group_id}/active")
def get_active_group_debts(
    group_id: str,
    user_id: str = Depends(get_current_user_id),
    db: Session = Depends(get_db),
    oracle: MembershipOracle = Depends(get_membership_oracle)
):
    """Get active debts for a group"""
    _require_member(oracle, group_id, user_id)
    debts = find_active_debts_by_group(db, group_id)
    return success_response([DebtOut.model_validate(debt) for debt in debts], "Active group debts retrieved successfully")


@router.delete("/group/{group_id}")
def delete_group_debts(
    group_id: str,
    user_id: str = Depends(get_current_user_id),
    db: Session = Depends(get_db),
    oracle: MembershipOracle = Depends(get_membership_oracle)
):
    """Delete all debts of a group (admin only)"""
    deleted = delete_debts_by_group(db, oracle, group_id, user_id)
    return success_response(DeletedCountOut(deleted_count=deleted), "Group debts deleted successfully")


@router.get("/balance/{group_id}/{other_user_id}")
def get_balance(
    group_id: str,
    other_user_id: str,
    user_id: str = Depends(get_current_user_id),
    db: Session = Depends(get_db)
):
    """Net balance between the current user and another user in a group"""
    balance = calculate_balance(db, group_id, user_id, other_user_id)
    result = BalanceOut(
        balance=balance.value,
        currency=balance.currency,
        message=describe_balance(balance, other_user_id)
    )
    return success_response(result, "Balance calculated successfully")


@router.patch("/settle-all/{group_id}/{other_user_id}")
def settle_all(
    group_id: str,
    other_user_id: str,
    user_id: str = Depends(get_current_user_id),
    db: Session = Depends(get_db)
):
    """Settle all active debts between the current user (net creditor) and another user"""
    count = settle_all_debts(db, group_id, user_id, other_user_id, user_id)
    if count == 0:
        return success_response(SettleAllOut(settled_count=0), "No pending debts to settle.")
    return success_response(SettleAllOut(settled_count=count), "All debts have been settled successfully.")


@router.patch("/{debt_id}/settle")
def settle(
    debt_id: str,
    user_id: str = Depends(get_current_user_id),
    db: Session = Depends(get_db)
):
    """Mark a debt as settled"""
    debt = settle_debt(db, debt_id, user_id)
    return success_response(DebtOut.model_validate(debt), "Debt settled successfully")


@router.patch("/{debt_id}/cancel")
def cancel(
    debt_id: str,
    user_id: str = Depends(get_current_user_id),
    db: Session = Depends(get_db)
):
    """Cancel a debt (not supported yet)"""
    cancel_debt(db, debt_id, user_id)


@router.put("/{debt_id}")
def edit(
    debt_id: str,
    update_data: DebtUpdate,
    user_id: str = Depends(get_current_user_id),
    db: Session = Depends(get_db)
):
    """Edit a debt (creditor only)"""
    debt = edit_debt(db, debt_id, user_id, amount=update_data.amount, description=update_data.description)
    return success_response(DebtOut.model_validate(debt), "Debt updated successfully")


@router.delete("/{debt_id}")
def delete(
    debt_id: str,
    user_id: str = Depends(get_current_user_id),
    db: Session = Depends(get_db)
):
    """Delete a debt (creditor or debtor only)"""
    delete_debt(db, debt_id, user_id)
    return success_response(None, "Debt deleted successfully")
