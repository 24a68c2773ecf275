"""
Tests for split_expense.

Tests cover:
- Equal splits, including the payer's implicit share
- Sole-participant no-op
- Membership and input validation (nothing persisted on failure)
- Currency fallback chain
- Remainder policies
- All-or-nothing insertion
"""
import pytest
from decimal import Decimal
from unittest.mock import patch
from sqlalchemy.exc import OperationalError

from split_ledger.core.exceptions import (
    ForbiddenError, NotFoundError, NotMemberError, StorageError, ValidationError
)
from split_ledger.models.debts import Debt, DebtStatus
from split_ledger.services.expense_splitter import split_expense
from split_ledger.services.membership import MembershipOracle
from split_ledger.utils.money import RemainderPolicy
from split_ledger.tests.conftest import ALICE, BOB, CAROL, DAVE, ERIN, GROUP_ID, OTHER_GROUP_ID


def _split(db, oracle, participants, amount="90", payer=ALICE, actor=None, currency=None,
           group_id=GROUP_ID, description="Groceries", **kwargs):
    return split_expense(
        db, oracle,
        group_id=group_id,
        creditor_id=payer,
        amount=amount,
        description=description,
        currency=currency,
        participant_ids=participants,
        actor_id=actor or payer,
        **kwargs
    )


@pytest.mark.integration
class TestSplitExpense:

    def test_payer_listed_as_participant(self, db, oracle):
        debts = _split(db, oracle, [ALICE, BOB, CAROL], amount="90")

        assert len(debts) == 2
        assert {d.debtor_id for d in debts} == {BOB, CAROL}
        for debt in debts:
            assert debt.creditor_id == ALICE
            assert debt.amount == Decimal("30.00")
            assert debt.original_amount == Decimal("90.00")
            assert debt.status == DebtStatus.active
            assert debt.created_by == ALICE
            assert debt.settled_at is None
            assert debt.description == "Groceries"

    def test_payer_counts_towards_shares_when_not_listed(self, db, oracle):
        debts = _split(db, oracle, [BOB, CAROL], amount="90")

        assert len(debts) == 2
        assert all(d.amount == Decimal("30.00") for d in debts)

    def test_sole_participant_creates_nothing(self, db, oracle):
        debts = _split(db, oracle, [ALICE], amount="50")

        assert debts == []
        assert db.query(Debt).count() == 0

    def test_no_self_debt(self, db, oracle):
        debts = _split(db, oracle, [ALICE, BOB, ALICE, CAROL])
        assert all(d.creditor_id != d.debtor_id for d in debts)

    def test_duplicate_participants_get_one_debt(self, db, oracle):
        debts = _split(db, oracle, [BOB, BOB, CAROL], amount="90")

        assert sorted(d.debtor_id for d in debts) == [BOB, CAROL]
        assert all(d.amount == Decimal("30.00") for d in debts)

    def test_records_are_persisted(self, db, oracle):
        debts = _split(db, oracle, [BOB, CAROL])

        stored = db.query(Debt).all()
        assert {d.id for d in stored} == {d.id for d in debts}

    def test_uneven_amount_drops_remainder_by_default(self, db, oracle):
        debts = _split(db, oracle, [ALICE, BOB, CAROL], amount="100")

        assert all(d.amount == Decimal("33.33") for d in debts)

    def test_round_robin_gives_leftover_cents_to_debtors(self, db, oracle):
        debts = _split(db, oracle, [ALICE, BOB, CAROL], amount="100",
                       remainder_policy=RemainderPolicy.ROUND_ROBIN)

        amounts = sorted(d.amount for d in debts)
        assert amounts == [Decimal("33.33"), Decimal("33.34")]

    @pytest.mark.parametrize("amount,participants", [
        ("100", [ALICE, BOB, CAROL]),
        ("10", [BOB, CAROL]),
        ("0.05", [BOB]),
        ("77.77", [ALICE, BOB]),
    ])
    def test_split_conservation(self, db, oracle, amount, participants):
        debts = _split(db, oracle, participants, amount=amount)
        involved = len(set(participants) | {ALICE})
        share = debts[0].amount

        assert abs(share * involved - Decimal(amount)) <= Decimal("0.01") * involved

    @pytest.mark.parametrize("amount,share,stored_total", [
        # 10.005 / 2 = 5.0025 -> 5.00, whereas 10.01 / 2 -> 5.01
        (Decimal("10.005"), Decimal("5.00"), Decimal("10.01")),
        ("0.045", Decimal("0.02"), Decimal("0.05")),
    ])
    def test_shares_come_from_the_unrounded_amount(self, db, oracle, amount, share, stored_total):
        debts = _split(db, oracle, [BOB], amount=amount)

        assert debts[0].amount == share
        assert debts[0].original_amount == stored_total

    def test_float_amount_is_quantized(self, db, oracle):
        debts = _split(db, oracle, [BOB], amount=25.5)
        assert debts[0].amount == Decimal("12.75")
        assert debts[0].original_amount == Decimal("25.50")


@pytest.mark.integration
class TestSplitExpenseCurrency:

    def test_explicit_currency_wins(self, db, oracle):
        debts = _split(db, oracle, [BOB], currency="USD")
        assert debts[0].currency == "USD"

    def test_falls_back_to_group_currency(self, db, oracle):
        debts = _split(db, oracle, [BOB])
        assert debts[0].currency == "EUR"

    def test_falls_back_to_default_currency(self, db, oracle):
        class NoCurrencyOracle(MembershipOracle):
            def is_member(self, group_id, user_id):
                return True

            def is_admin(self, group_id, user_id):
                return False

        debts = _split(db, NoCurrencyOracle(), [BOB])
        assert debts[0].currency == "SAR"

    def test_unknown_currency_rejected(self, db, oracle):
        with pytest.raises(ValidationError, match="Currency must be one of"):
            _split(db, oracle, [BOB], currency="GBP")
        assert db.query(Debt).count() == 0


@pytest.mark.integration
class TestSplitExpenseValidation:

    def test_actor_must_be_payer(self, db, oracle):
        with pytest.raises(ForbiddenError):
            _split(db, oracle, [BOB], payer=ALICE, actor=BOB)

    def test_unknown_group(self, db, oracle):
        with pytest.raises(NotFoundError) as exc_info:
            _split(db, oracle, [BOB], group_id="no-such-group")
        assert exc_info.value.code == "GROUP_NOT_FOUND"

    def test_payer_not_member(self, db, oracle):
        with pytest.raises(NotMemberError):
            _split(db, oracle, [BOB], payer=DAVE)

    def test_not_member_is_forbidden(self, db, oracle):
        with pytest.raises(ForbiddenError):
            _split(db, oracle, [BOB], payer=DAVE)

    def test_non_member_participant_rejects_whole_expense(self, db, oracle):
        with pytest.raises(ValidationError) as exc_info:
            _split(db, oracle, [BOB, DAVE, CAROL])

        assert DAVE in exc_info.value.message
        assert exc_info.value.details["user_id"] == DAVE
        assert db.query(Debt).count() == 0

    def test_inactive_member_rejected(self, db, oracle):
        with pytest.raises(ValidationError, match=ERIN):
            _split(db, oracle, [BOB, ERIN])

    def test_member_of_other_group_only(self, db, oracle):
        with pytest.raises(ValidationError):
            _split(db, oracle, [DAVE], group_id=GROUP_ID)
        assert _split(db, oracle, [DAVE], group_id=OTHER_GROUP_ID)

    @pytest.mark.parametrize("amount", ["0", "-5", "abc", "0.001", "NaN", "Infinity"])
    def test_bad_amount(self, db, oracle, amount):
        with pytest.raises(ValidationError):
            _split(db, oracle, [BOB], amount=amount)

    @pytest.mark.parametrize("amount", ["100000000", "1e9", "99999999.995"])
    def test_amount_too_large_for_storage(self, db, oracle, amount):
        with pytest.raises(ValidationError, match="cannot exceed"):
            _split(db, oracle, [BOB], amount=amount)
        assert db.query(Debt).count() == 0

    def test_largest_storable_amount(self, db, oracle):
        debts = _split(db, oracle, [BOB], amount="99999999.99")
        assert debts[0].original_amount == Decimal("99999999.99")

    @pytest.mark.parametrize("description", ["", "   ", "x" * 201])
    def test_bad_description(self, db, oracle, description):
        with pytest.raises(ValidationError):
            _split(db, oracle, [BOB], description=description)

    def test_description_is_trimmed(self, db, oracle):
        debts = _split(db, oracle, [BOB], description="  Taxi  ")
        assert debts[0].description == "Taxi"

    def test_no_participants(self, db, oracle):
        with pytest.raises(ValidationError):
            _split(db, oracle, [])

    def test_share_below_one_cent_rejected(self, db, oracle):
        with pytest.raises(ValidationError, match="too small"):
            _split(db, oracle, [BOB, CAROL], amount="0.01")
        assert db.query(Debt).count() == 0


@pytest.mark.integration
def test_failed_commit_persists_nothing(db, oracle):
    with patch.object(db, "commit", side_effect=OperationalError("INSERT", {}, Exception("disk full"))):
        with pytest.raises(StorageError) as exc_info:
            _split(db, oracle, [BOB, CAROL])

    assert "disk full" not in exc_info.value.message
    assert db.query(Debt).count() == 0
