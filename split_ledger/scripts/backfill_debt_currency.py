"""
Backfill the currency of debts recorded before currency was tracked.

Each debt without a currency gets its group's currency, or DEFAULT_CURRENCY
when the group has none.

Usage:
    python -m split_ledger.scripts.backfill_debt_currency
"""
import logging
from sqlalchemy import or_
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session
from split_ledger.core.config import settings
from split_ledger.core.logging_config import configure_logging
from split_ledger.models.debts import Debt
from split_ledger.models.groups import Group

logger = logging.getLogger(__name__)


def backfill_debt_currency(db: Session) -> int:
    """Fill in missing debt currencies. Returns the number of debts updated."""
    rows = db.query(Debt, Group.currency).outerjoin(Group, Group.id == Debt.group_id).filter(
        or_(Debt.currency.is_(None), Debt.currency == "")
    ).all()

    logger.info(f"Found {len(rows)} debts without currency")
    if not rows:
        return 0

    for debt, group_currency in rows:
        debt.currency = group_currency or settings.DEFAULT_CURRENCY
        logger.debug(f"Debt {debt.id} -> {debt.currency}")

    try:
        db.commit()
    except SQLAlchemyError:
        db.rollback()
        logger.exception("Failed to backfill debt currencies")
        raise

    logger.info(f"Updated {len(rows)} debts")
    return len(rows)


def main():
    from split_ledger.db.database import SessionLocal

    configure_logging()
    db = SessionLocal()
    try:
        backfill_debt_currency(db)
    finally:
        db.close()


if __name__ == "__main__":
    main()
