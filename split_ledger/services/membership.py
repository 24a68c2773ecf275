"""
Group-membership oracle.

The ledger never looks inside a group's representation. It asks an oracle
whether a user is an active member or admin of a group, plus two optional
hooks used by the expense splitter (does the group exist, what currency does
it default to).
"""
from abc import ABC, abstractmethod
from typing import Optional
from sqlalchemy import and_
from sqlalchemy.orm import Session
from split_ledger.models.groups import Group, GroupMember


class MembershipOracle(ABC):

    @abstractmethod
    def is_member(self, group_id: str, user_id: str) -> bool:
        """Check if user is an active member of the group"""

    @abstractmethod
    def is_admin(self, group_id: str, user_id: str) -> bool:
        """Check if user is an active admin of the group"""

    def group_exists(self, group_id: str) -> bool:
        return True

    def group_currency(self, group_id: str) -> Optional[str]:
        return None


class SqlMembershipOracle(MembershipOracle):
    """Oracle backed by the groups / group_members tables"""

    def __init__(self, db: Session):
        self.db = db

    def _active_member(self, group_id: str, user_id: str) -> Optional[GroupMember]:
        return self.db.query(GroupMember).join(Group, Group.id == GroupMember.group_id).filter(
            and_(
                GroupMember.group_id == group_id,
                GroupMember.user_id == user_id,
                GroupMember.is_active == True,  # noqa: E712
                Group.is_active == True,  # noqa: E712
            )
        ).first()

    def is_member(self, group_id: str, user_id: str) -> bool:
        return self._active_member(group_id, user_id) is not None

    def is_admin(self, group_id: str, user_id: str) -> bool:
        member = self._active_member(group_id, user_id)
        return bool(member and member.is_admin)

    def group_exists(self, group_id: str) -> bool:
        return self._get_group(group_id) is not None

    def group_currency(self, group_id: str) -> Optional[str]:
        group = self._get_group(group_id)
        return group.currency if group else None

    def _get_group(self, group_id: str) -> Optional[Group]:
        return self.db.query(Group).filter(
            and_(Group.id == group_id, Group.is_active == True)  # noqa: E712
        ).first()
