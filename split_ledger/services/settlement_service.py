"""
Settlement engine.

Debt status is a one-way state machine: ``active`` is the only state a debt
can leave, and ``settled``, ``disputed`` and ``cancelled`` are terminal.

Every transition is written as a conditional UPDATE that re-checks the
status in its WHERE clause, so two requests racing on the same debt cannot
both win. When the update touches no row the debt is read back only to
decide which error to report.
"""
import logging
from datetime import datetime, timezone
from typing import Optional
from sqlalchemy import delete, or_, update
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session
from split_ledger.core.config import settings
from split_ledger.core.exceptions import (
    AlreadySettledError, FeatureNotImplementedError, ForbiddenError, LedgerError,
    NotFoundError, StorageError, ValidationError
)
from split_ledger.core.logging_config import ledger_operation
from split_ledger.models.debts import Debt, DebtStatus
from split_ledger.services.balance_service import get_active_pair_debts, net_debts
from split_ledger.services.ledger_events import debt_payload, publish_ledger_event
from split_ledger.services.ledger_queries import get_debt
from split_ledger.utils.debt_validators import clean_amount, clean_description

logger = logging.getLogger(__name__)


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def _debt_not_found() -> NotFoundError:
    return NotFoundError("Debt not found", code="DEBT_NOT_FOUND")


def _already_final(debt: Debt) -> AlreadySettledError:
    if debt.status == DebtStatus.settled:
        return AlreadySettledError("This debt has already been settled")
    return AlreadySettledError(f"This debt is {debt.status.value} and can no longer change")


def _parties(actor_id: str):
    return or_(Debt.creditor_id == actor_id, Debt.debtor_id == actor_id)


def settle_debt(db: Session, debt_id: str, actor_id: str) -> Debt:
    """
    Mark one active debt as settled.

    Either the creditor or the debtor may confirm the payment.

    Raises:
        NotFoundError: no such debt
        AlreadySettledError: debt is not active
        ForbiddenError: actor is neither creditor nor debtor
    """
    with ledger_operation("settle", actor_id, debt_id=debt_id):
        now = _utcnow()
        try:
            result = db.execute(
                update(Debt)
                .where(Debt.id == debt_id, Debt.status == DebtStatus.active, _parties(actor_id))
                .values(status=DebtStatus.settled, settled_at=now, updated_at=now)
                .execution_options(synchronize_session=False)
            )
            settled = result.rowcount == 1
            if settled:
                db.commit()
            else:
                db.rollback()
        except SQLAlchemyError:
            db.rollback()
            logger.exception(f"Failed to settle debt {debt_id}")
            raise StorageError("Failed to settle debt")

        debt = get_debt(db, debt_id)
        if not settled:
            if debt is None:
                raise _debt_not_found()
            if debt.is_terminal:
                raise _already_final(debt)
            raise ForbiddenError("Only the creditor or debtor can settle this debt")

    publish_ledger_event("debt.settled", actor_id, debt_payload(debt))
    return debt


def settle_all_debts(db: Session, group_id: str, creditor_id: str, other_user_id: str, actor_id: str) -> int:
    """
    Settle every active debt between two users in a group.

    Only the net creditor of the pair may do this, so a debtor cannot mark
    their own debts as paid in bulk. The balance check and the update run in
    one transaction; only debts that were counted in the balance and are still
    active get settled, all with the same settled_at.

    Returns:
        Number of debts settled (0 when the pair has no active debts)
    """
    with ledger_operation("settle_all", actor_id, group_id=group_id, other_user_id=other_user_id) as event:
        if actor_id != creditor_id:
            raise ForbiddenError("Only the net creditor can settle all debts")
        if creditor_id == other_user_id:
            raise ValidationError("Cannot settle debts with yourself")

        try:
            debts = get_active_pair_debts(db, group_id, creditor_id, other_user_id, for_update=True)
            if not debts:
                db.rollback()
                event["settled"] = 0
                return 0

            balance, _ = net_debts(debts, creditor_id)
            if balance <= 0:
                raise ForbiddenError(
                    "Only the net creditor can settle all debts. Settle individual debts if you have paid."
                )

            now = _utcnow()
            result = db.execute(
                update(Debt)
                .where(Debt.id.in_([debt.id for debt in debts]), Debt.status == DebtStatus.active)
                .values(status=DebtStatus.settled, settled_at=now, updated_at=now)
                .execution_options(synchronize_session=False)
            )
            db.commit()
        except LedgerError:
            db.rollback()
            raise
        except SQLAlchemyError:
            db.rollback()
            logger.exception(f"Failed to settle debts between {creditor_id} and {other_user_id} in group {group_id}")
            raise StorageError("Failed to settle debts")

        count = result.rowcount
        event["settled"] = count

    publish_ledger_event("debt.settled_all", actor_id, {
        "group_id": group_id,
        "creditor_id": creditor_id,
        "other_user_id": other_user_id,
        "settled_count": count,
        "settled_at": now.isoformat(),
    })
    return count


def edit_debt(
    db: Session,
    debt_id: str,
    actor_id: str,
    amount=None,
    description: Optional[str] = None,
    allow_terminal: Optional[bool] = None
) -> Debt:
    """
    Change the amount and/or description of a debt (creditor only).

    Whether settled/disputed/cancelled debts may still be edited is set by
    ALLOW_TERMINAL_DEBT_EDITS unless ``allow_terminal`` is given.
    """
    with ledger_operation("edit", actor_id, debt_id=debt_id):
        if allow_terminal is None:
            allow_terminal = settings.ALLOW_TERMINAL_DEBT_EDITS

        debt = get_debt(db, debt_id)
        if debt is None:
            raise _debt_not_found()
        if debt.creditor_id != actor_id:
            raise ForbiddenError("Only the creditor can edit this debt")
        if not allow_terminal and debt.is_terminal:
            raise _already_final(debt)

        values = {}
        if amount is not None:
            values["amount"] = clean_amount(amount)
        if description is not None:
            values["description"] = clean_description(description)
        if not values:
            raise ValidationError("Nothing to update: provide an amount or a description")

        conditions = [Debt.id == debt_id, Debt.creditor_id == actor_id]
        if not allow_terminal:
            conditions.append(Debt.status == DebtStatus.active)
        try:
            result = db.execute(
                update(Debt)
                .where(*conditions)
                .values(updated_at=_utcnow(), **values)
                .execution_options(synchronize_session=False)
            )
            updated = result.rowcount == 1
            if updated:
                db.commit()
            else:
                db.rollback()
        except SQLAlchemyError:
            db.rollback()
            logger.exception(f"Failed to edit debt {debt_id}")
            raise StorageError("Failed to update debt")

        debt = get_debt(db, debt_id)
        if not updated:
            # Changed between the checks above and the update
            if debt is None:
                raise _debt_not_found()
            raise _already_final(debt)

    publish_ledger_event("debt.updated", actor_id, debt_payload(debt))
    return debt


def delete_debt(db: Session, debt_id: str, actor_id: str) -> None:
    """Hard-delete a debt in any status. Creditor or debtor only."""
    with ledger_operation("delete", actor_id, debt_id=debt_id):
        debt = get_debt(db, debt_id)
        if debt is None:
            raise _debt_not_found()
        if not debt.involves(actor_id):
            raise ForbiddenError("You are not authorized to delete this debt")

        payload = debt_payload(debt)
        try:
            result = db.execute(
                delete(Debt)
                .where(Debt.id == debt_id, _parties(actor_id))
                .execution_options(synchronize_session=False)
            )
            db.commit()
        except SQLAlchemyError:
            db.rollback()
            logger.exception(f"Failed to delete debt {debt_id}")
            raise StorageError("Failed to delete debt")

        if result.rowcount != 1:
            raise _debt_not_found()
        db.expunge(debt)

    publish_ledger_event("debt.deleted", actor_id, payload)


def cancel_debt(db: Session, debt_id: str, actor_id: str) -> Debt:
    """Reserved transition. Not supported yet."""
    with ledger_operation("cancel", actor_id, debt_id=debt_id):
        raise FeatureNotImplementedError("Cancel debt functionality is not yet implemented.")
