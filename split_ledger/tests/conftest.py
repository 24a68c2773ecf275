"""
Pytest configuration and fixtures for split_ledger tests.
"""
import pytest
from datetime import datetime, timedelta, timezone
from decimal import Decimal
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from split_ledger.db.database import Base
from split_ledger.models.debts import Debt, DebtStatus
from split_ledger.models.groups import Group, GroupMember
from split_ledger.services.membership import SqlMembershipOracle

GROUP_ID = "group-trip"
OTHER_GROUP_ID = "group-flat"

ALICE = "user-alice"  # admin of GROUP_ID
BOB = "user-bob"
CAROL = "user-carol"
DAVE = "user-dave"  # member of OTHER_GROUP_ID only
ERIN = "user-erin"  # left GROUP_ID

BASE_TIME = datetime(2024, 1, 1, 12, 0, tzinfo=timezone.utc)


def seed_groups(session) -> None:
    session.add_all([
        Group(id=GROUP_ID, name="Trip", currency="EUR", created_by=ALICE),
        Group(id=OTHER_GROUP_ID, name="Flat", currency="USD", created_by=DAVE),
    ])
    session.add_all([
        GroupMember(group_id=GROUP_ID, user_id=ALICE, is_admin=True),
        GroupMember(group_id=GROUP_ID, user_id=BOB),
        GroupMember(group_id=GROUP_ID, user_id=CAROL),
        GroupMember(group_id=GROUP_ID, user_id=ERIN, is_active=False),
        GroupMember(group_id=OTHER_GROUP_ID, user_id=DAVE, is_admin=True),
        GroupMember(group_id=OTHER_GROUP_ID, user_id=ALICE),
    ])
    session.commit()


@pytest.fixture
def engine():
    """In-memory SQLite shared by every session of one test."""
    engine = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool
    )
    Base.metadata.create_all(bind=engine)
    yield engine
    engine.dispose()


@pytest.fixture
def session_factory(engine):
    return sessionmaker(autocommit=False, autoflush=False, bind=engine)


@pytest.fixture
def db(session_factory):
    session = session_factory()
    try:
        yield session
    finally:
        session.close()


@pytest.fixture
def groups(db):
    seed_groups(db)
    return db.query(Group).all()


@pytest.fixture
def oracle(db, groups):
    return SqlMembershipOracle(db)


@pytest.fixture
def make_debt(db, groups):
    """
    Insert a debt directly, bypassing the splitter.

    Each call is stamped one minute after the previous one so ordering
    assertions do not depend on clock resolution.
    """
    counter = {"n": 0}

    def _make_debt(creditor_id=ALICE, debtor_id=BOB, amount="10.00", group_id=GROUP_ID,
                   currency="EUR", status=DebtStatus.active, description="Dinner", settled_at=None):
        counter["n"] += 1
        debt = Debt(
            group_id=group_id,
            creditor_id=creditor_id,
            debtor_id=debtor_id,
            original_amount=Decimal(amount),
            amount=Decimal(amount),
            currency=currency,
            description=description,
            status=status,
            settled_at=settled_at,
            created_by=creditor_id,
            created_at=BASE_TIME + timedelta(minutes=counter["n"]),
        )
        db.add(debt)
        db.commit()
        db.refresh(debt)
        return debt

    return _make_debt
