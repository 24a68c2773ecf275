import logging
from typing import Iterable, List, Optional
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session
from split_ledger.core.config import settings
from split_ledger.core.exceptions import (
    ForbiddenError, NotFoundError, NotMemberError, StorageError, ValidationError
)
from split_ledger.core.logging_config import ledger_operation
from split_ledger.models.debts import Debt, DebtStatus
from split_ledger.services.ledger_events import debt_payload, publish_ledger_event
from split_ledger.services.membership import MembershipOracle
from split_ledger.utils.debt_validators import clean_currency, clean_description, parse_amount
from split_ledger.utils.money import CENT, RemainderPolicy, allocate_equal_shares, round_decimal

logger = logging.getLogger(__name__)


def _unique(ids: Iterable[str]) -> List[str]:
    seen = set()
    ordered = []
    for user_id in ids:
        if user_id not in seen:
            seen.add(user_id)
            ordered.append(user_id)
    return ordered


def split_expense(
    db: Session,
    oracle: MembershipOracle,
    group_id: str,
    creditor_id: str,
    amount,
    description: str,
    currency: Optional[str],
    participant_ids: List[str],
    actor_id: str,
    remainder_policy: Optional[RemainderPolicy] = None
) -> List[Debt]:
    """
    Split one shared expense into debts owed to the payer.

    Every participant other than the payer gets one active debt for an equal
    share of the amount. The payer counts towards the number of shares whether
    or not they are listed as a participant.

    If the payer is the only one involved nothing is created and an empty list
    is returned. All debts are inserted in one transaction.

    Raises:
        ForbiddenError: actor is not the payer
        NotFoundError: group does not exist
        NotMemberError: payer is not an active member
        ValidationError: bad amount/description/currency, or a participant
            who is not an active member
    """
    with ledger_operation("split_expense", actor_id, group_id=group_id) as event:
        if actor_id != creditor_id:
            raise ForbiddenError("Only the payer can register an expense as creditor")

        # Shares are computed from the exact amount; only the stored total is rounded
        exact_amount = parse_amount(amount)
        amount = round_decimal(exact_amount)
        description = clean_description(description)
        if not participant_ids:
            raise ValidationError("At least one participant is required", details={"field": "participants"})

        if not oracle.group_exists(group_id):
            raise NotFoundError("Group not found", code="GROUP_NOT_FOUND")

        if not oracle.is_member(group_id, creditor_id):
            raise NotMemberError("Creditor is not a member of this group")

        for participant_id in participant_ids:
            if not oracle.is_member(group_id, participant_id):
                raise ValidationError(
                    f"User with ID {participant_id} is not a member of this group",
                    details={"field": "participants", "user_id": participant_id}
                )

        currency = clean_currency(currency or oracle.group_currency(group_id) or settings.DEFAULT_CURRENCY)

        all_involved = _unique(list(participant_ids) + [creditor_id])
        debtors = [user_id for user_id in _unique(participant_ids) if user_id != creditor_id]
        event["participants"] = len(all_involved)

        if not debtors:
            event["created"] = 0
            return []

        policy = RemainderPolicy(remainder_policy or settings.SPLIT_REMAINDER_POLICY)
        shares = allocate_equal_shares(exact_amount, len(all_involved), policy)
        if any(share < CENT for share in shares[:len(debtors)]):
            raise ValidationError(
                f"Amount {amount} is too small to split between {len(all_involved)} participants",
                details={"field": "amount"}
            )

        debts = [
            Debt(
                group_id=group_id,
                creditor_id=creditor_id,
                debtor_id=debtor_id,
                original_amount=amount,
                amount=share,
                currency=currency,
                description=description,
                status=DebtStatus.active,
                created_by=actor_id,
            )
            # Debtors take the leading shares, the payer keeps the last one
            for debtor_id, share in zip(debtors, shares)
        ]

        try:
            db.add_all(debts)
            db.commit()
        except SQLAlchemyError:
            db.rollback()
            logger.exception(f"Failed to insert {len(debts)} debts for group {group_id}")
            raise StorageError("Failed to record expense")

        for debt in debts:
            db.refresh(debt)
        event["created"] = len(debts)

    for debt in debts:
        publish_ledger_event("debt.created", actor_id, debt_payload(debt))
    return debts
