"""Pure ownership rules shared by the read-time repair and the lifecycle writes.

Nothing in here touches the session: callers load a snapshot of the
membership, ask what the owner should be, and persist the answer.
"""

from dataclasses import dataclass
from datetime import datetime
from typing import Iterable, List, Optional

from housemate.models.user import User
from housemate.schemas.group import OwnerSummary

PLACEHOLDER_OWNER_NAME = "Deleted User"


@dataclass(frozen=True)
class MemberRecord:
    """A membership row together with the user it resolved to (if any)."""

    membership_id: int
    user_id: Optional[int]
    joined_at: datetime
    user: Optional[User] = None

    @property
    def is_resolved(self) -> bool:
        return self.user_id is not None and self.user is not None and self.user.is_displayable

    @property
    def seniority(self):
        return (self.joined_at, self.membership_id)


@dataclass(frozen=True)
class OwnerRepairPlan:
    """Outcome of checking a group's owner reference.

    ``stale`` is False when the current owner is fine. When it is True,
    ``new_owner_id`` names the member that should take over, or is None
    when no valid member is left to take it.
    """

    stale: bool
    new_owner_id: Optional[int]

    @property
    def can_transfer(self) -> bool:
        return self.stale and self.new_owner_id is not None


def valid_members(members: Iterable[MemberRecord]) -> List[MemberRecord]:
    return [member for member in members if member.is_resolved]


def oldest_member(
    members: Iterable[MemberRecord],
    exclude_user_id: Optional[int] = None
) -> Optional[MemberRecord]:
    """
    Pick the member with the earliest join time.

    Args:
        members: Candidate members
        exclude_user_id: User that must not be picked (e.g. the leaving owner)

    Returns:
        The oldest member, ties broken by membership id, or None
    """
    candidates = [
        member for member in members
        if exclude_user_id is None or member.user_id != exclude_user_id
    ]
    if not candidates:
        return None
    return min(candidates, key=lambda member: member.seniority)


def choose_successor(
    members: Iterable[MemberRecord],
    exclude_user_id: Optional[int] = None
) -> Optional[MemberRecord]:
    """Oldest valid member, falling back to the oldest remaining entry."""
    members = [
        member for member in members
        if member.user_id is not None and member.user_id != exclude_user_id
    ]
    return oldest_member(valid_members(members)) or oldest_member(members)


def plan_owner_repair(
    owner_id: Optional[int],
    owner: Optional[User],
    members: Iterable[MemberRecord]
) -> OwnerRepairPlan:
    """
    Decide whether the owner reference needs repair and who takes over.

    The owner is valid only when it resolved to a displayable user that
    is still one of the group's valid members.

    Args:
        owner_id: Stored owner reference (may be None or dangling)
        owner: Result of resolving ``owner_id``, None if that failed
        members: Snapshot of the group's membership

    Returns:
        OwnerRepairPlan describing the required change
    """
    members = valid_members(members)
    owner_is_member = any(member.user_id == owner_id for member in members)

    if owner is not None and owner.is_displayable and owner_is_member:
        return OwnerRepairPlan(stale=False, new_owner_id=owner_id)

    successor = oldest_member(members, exclude_user_id=owner_id)
    return OwnerRepairPlan(
        stale=True,
        new_owner_id=successor.user_id if successor else None
    )


def owner_summary(user: User) -> OwnerSummary:
    return OwnerSummary(id=user.id, name=user.name, email=user.email)


def placeholder_owner() -> OwnerSummary:
    """Synthetic owner returned when no real owner could be resolved."""
    return OwnerSummary(id=None, name=PLACEHOLDER_OWNER_NAME, email="", is_placeholder=True)
