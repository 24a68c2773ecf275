import logging
from typing import List, Optional
from sqlalchemy import delete, or_
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session
from split_ledger.core.exceptions import ForbiddenError, StorageError
from split_ledger.core.logging_config import ledger_operation
from split_ledger.models.debts import Debt, DebtStatus
from split_ledger.services.ledger_events import publish_ledger_event
from split_ledger.services.membership import MembershipOracle

logger = logging.getLogger(__name__)


def get_debt(db: Session, debt_id: str) -> Optional[Debt]:
    """Get a debt by ID"""
    return db.query(Debt).filter(Debt.id == debt_id).first()


def find_debts_by_user(db: Session, user_id: str) -> List[Debt]:
    """All debts where the user is creditor or debtor, across groups, newest first"""
    return db.query(Debt).filter(
        or_(Debt.creditor_id == user_id, Debt.debtor_id == user_id)
    ).order_by(Debt.created_at.desc(), Debt.id).all()


def find_debts_by_group(db: Session, group_id: str) -> List[Debt]:
    """All debts of a group, newest first. Membership must be checked by the caller."""
    return db.query(Debt).filter(Debt.group_id == group_id).order_by(Debt.created_at.desc(), Debt.id).all()


def find_active_debts_by_group(db: Session, group_id: str) -> List[Debt]:
    return db.query(Debt).filter(
        Debt.group_id == group_id,
        Debt.status == DebtStatus.active
    ).order_by(Debt.created_at.desc(), Debt.id).all()


def delete_debts_by_group(db: Session, oracle: MembershipOracle, group_id: str, actor_id: str) -> int:
    """
    Delete every debt of a group, whatever its status.

    Used when a group is deleted. Only a group admin may do it.
    Returns the number of deleted debts.
    """
    with ledger_operation("delete_group_debts", actor_id, group_id=group_id) as event:
        if not oracle.is_admin(group_id, actor_id):
            raise ForbiddenError("Only group admins can delete group debts")

        try:
            result = db.execute(
                delete(Debt).where(Debt.group_id == group_id).execution_options(synchronize_session=False)
            )
            db.commit()
        except SQLAlchemyError:
            db.rollback()
            logger.exception(f"Failed to delete debts for group {group_id}")
            raise StorageError("Failed to delete group debts")

        deleted = result.rowcount
        event["deleted"] = deleted

    publish_ledger_event("group.debts_deleted", actor_id, {"group_id": group_id, "deleted_count": deleted})
    return deleted
