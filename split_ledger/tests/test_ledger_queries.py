import pytest
from split_ledger.core.exceptions import ForbiddenError
from split_ledger.models.debts import Debt, DebtStatus
from split_ledger.services.ledger_queries import (
    delete_debts_by_group,
    find_active_debts_by_group,
    find_debts_by_group,
    find_debts_by_user,
    get_debt,
)
from split_ledger.tests.conftest import ALICE, BOB, CAROL, DAVE, GROUP_ID, OTHER_GROUP_ID


@pytest.fixture
def ledger(make_debt):
    """Debts created in this order, one minute apart."""
    return [
        make_debt(creditor_id=ALICE, debtor_id=BOB, description="first"),
        make_debt(creditor_id=CAROL, debtor_id=ALICE, description="second", status=DebtStatus.settled),
        make_debt(creditor_id=BOB, debtor_id=CAROL, description="third"),
        make_debt(creditor_id=DAVE, debtor_id=ALICE, description="fourth", group_id=OTHER_GROUP_ID),
    ]


@pytest.mark.integration
class TestLedgerQueries:

    def test_get_debt(self, db, ledger):
        assert get_debt(db, ledger[0].id).description == "first"
        assert get_debt(db, "missing") is None

    def test_find_by_user_spans_groups_newest_first(self, db, ledger):
        debts = find_debts_by_user(db, ALICE)
        assert [d.description for d in debts] == ["fourth", "second", "first"]

    def test_find_by_user_includes_both_roles(self, db, ledger):
        debts = find_debts_by_user(db, BOB)
        assert [d.description for d in debts] == ["third", "first"]

    def test_find_by_group_newest_first(self, db, ledger):
        debts = find_debts_by_group(db, GROUP_ID)
        assert [d.description for d in debts] == ["third", "second", "first"]

    def test_find_active_by_group(self, db, ledger):
        debts = find_active_debts_by_group(db, GROUP_ID)
        assert [d.description for d in debts] == ["third", "first"]

    def test_unknown_user_has_no_debts(self, db, ledger):
        assert find_debts_by_user(db, "user-nobody") == []


@pytest.mark.integration
class TestDeleteDebtsByGroup:

    def test_admin_deletes_all_group_debts(self, db, oracle, ledger):
        deleted = delete_debts_by_group(db, oracle, GROUP_ID, ALICE)

        assert deleted == 3
        assert find_debts_by_group(db, GROUP_ID) == []
        assert [d.description for d in db.query(Debt).all()] == ["fourth"]

    def test_non_admin_forbidden(self, db, oracle, ledger):
        with pytest.raises(ForbiddenError):
            delete_debts_by_group(db, oracle, GROUP_ID, BOB)

        assert len(find_debts_by_group(db, GROUP_ID)) == 3

    def test_empty_group(self, db, oracle, groups):
        assert delete_debts_by_group(db, oracle, GROUP_ID, ALICE) == 0
