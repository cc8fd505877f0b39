"""Group ownership repair and membership lifecycle."""

import logging
from typing import List, Optional, Tuple

from sqlalchemy import delete, func, insert, select, update
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm import Session
from sqlalchemy.orm.exc import StaleDataError

from housemate.config import settings
from housemate.core.exceptions import (
    ConflictError,
    ForbiddenError,
    NotFoundError,
    StorageError,
    ValidationError,
)
from housemate.models.group import Group, group_members
from housemate.models.task import Assignment, Task
from housemate.models.user import User
from housemate.schemas.group import GroupMemberResponse, GroupResponse, OwnerSummary
from housemate.services.notifications import GroupEventBroadcaster, broadcaster as default_broadcaster
from housemate.services.ownership import (
    MemberRecord,
    choose_successor,
    owner_summary,
    placeholder_owner,
    plan_owner_repair,
    valid_members,
)
from housemate.utils.dates import utcnow
from housemate.utils.join_code import generate_join_code, normalize_join_code

logger = logging.getLogger(__name__)


class GroupService:
    """
    Keeps every group's owner pointing at a current member.

    Writes (create, join, leave, remove, transfer, account deletion)
    preserve the invariant eagerly; ``describe_group`` repairs whatever
    slipped through when the group is next read.
    """

    def __init__(self, db: Session, broadcaster: Optional[GroupEventBroadcaster] = None):
        self.db = db
        self.broadcaster = broadcaster or default_broadcaster

    # ------------------------------------------------------------------
    # Lookups
    # ------------------------------------------------------------------

    def find_user_group(self, user_id: int) -> Optional[Group]:
        """Return the group the user belongs to, if any."""
        return self.db.query(Group).join(
            group_members, group_members.c.group_id == Group.id
        ).filter(
            group_members.c.user_id == user_id
        ).first()

    def get_user_group(self, user_id: int) -> Group:
        group = self.find_user_group(user_id)
        if not group:
            raise NotFoundError("User is not a member of any group")
        return group

    def is_member(self, group_id: int, user_id: int) -> bool:
        membership = self.db.execute(
            select(group_members.c.id).where(
                group_members.c.group_id == group_id,
                group_members.c.user_id == user_id
            )
        ).first()
        return membership is not None

    def get_member_count(self, group_id: int) -> int:
        """Get the number of members in a group."""
        count = self.db.execute(
            select(func.count()).select_from(group_members).where(
                group_members.c.group_id == group_id
            )
        ).scalar()
        return count or 0

    def load_members(self, group_id: int) -> List[MemberRecord]:
        """
        Load the membership of a group, oldest first, resolving each user.

        Entries whose user no longer exists come back with ``user=None``.
        """
        rows = self.db.execute(
            select(
                group_members.c.id,
                group_members.c.user_id,
                group_members.c.joined_at
            ).where(
                group_members.c.group_id == group_id
            ).order_by(
                group_members.c.joined_at.asc(),
                group_members.c.id.asc()
            )
        ).all()

        user_ids = [row.user_id for row in rows if row.user_id is not None]
        users = {}
        if user_ids:
            users = {
                user.id: user
                for user in self.db.query(User).filter(User.id.in_(user_ids)).all()
            }

        return [
            MemberRecord(
                membership_id=row.id,
                user_id=row.user_id,
                joined_at=row.joined_at,
                user=users.get(row.user_id)
            )
            for row in rows
        ]

    # ------------------------------------------------------------------
    # Read-time repair
    # ------------------------------------------------------------------

    def _resolve_user(self, user_id: Optional[int]) -> Optional[User]:
        if user_id is None:
            return None
        return self.db.get(User, user_id)

    def _resolve_owner_summary(self, user_id: Optional[int]) -> Optional[OwnerSummary]:
        """Resolve a user into an owner projection; None when that fails."""
        try:
            user = self._resolve_user(user_id)
        except SQLAlchemyError:
            logger.warning("Could not resolve owner %s", user_id, exc_info=True)
            self.db.rollback()
            return None
        if user is None or not user.is_displayable:
            return None
        return owner_summary(user)

    def repair_owner(self, group: Group, members: List[MemberRecord]) -> Optional[OwnerSummary]:
        """
        Validate the group's owner and transfer ownership when it is stale.

        Args:
            group: Group to check (its ``owner_id`` may be updated)
            members: Snapshot of the group's membership

        Returns:
            Projection of the (possibly new) owner, or None when no real
            owner could be resolved and a placeholder must be shown

        When another request saves a repair first, the version check
        fails; the group is reloaded and checked once more, which
        normally finds the owner that request chose.
        """
        group_id = group.id

        for attempt in range(2):
            owner_id = group.owner_id
            owner = None
            try:
                owner = self._resolve_user(owner_id)
            except SQLAlchemyError:
                logger.warning("Could not resolve owner %s of group %s", owner_id, group_id, exc_info=True)
                self.db.rollback()

            plan = plan_owner_repair(owner_id, owner, members)
            if not plan.stale:
                return owner_summary(owner)

            logger.warning("Group %s has stale owner %s", group_id, owner_id)
            if not plan.can_transfer:
                logger.warning("Group %s has no valid member to take ownership", group_id)
                return None

            try:
                group.owner_id = plan.new_owner_id
                self.db.commit()
            except StaleDataError:
                self.db.rollback()
                if attempt:
                    logger.warning(
                        "Ownership repair for group %s lost a second race, returning placeholder owner",
                        group_id, exc_info=True
                    )
                    return None
                logger.info("Group %s was modified concurrently, re-checking its owner", group_id)
                members = self.load_members(group_id)
                continue
            except SQLAlchemyError:
                self.db.rollback()
                logger.warning(
                    "Could not persist ownership repair for group %s, returning placeholder owner",
                    group_id, exc_info=True
                )
                return None
            break

        logger.info(
            "Transferred ownership of group %s from %s to %s (repair)",
            group_id, owner_id, plan.new_owner_id
        )
        self._publish(group_id, "group.owner_changed", {
            "previous_owner_id": owner_id,
            "owner_id": plan.new_owner_id,
            "reason": "repair",
        })

        summary = self._resolve_owner_summary(plan.new_owner_id)
        if summary is None:
            logger.warning("Re-resolving new owner of group %s failed, returning placeholder owner", group_id)
        return summary

    def heal_owner(self, group: Group) -> None:
        """Run the repair before an owner-only check."""
        self.repair_owner(group, self.load_members(group.id))

    def repaired_members(self, group: Group) -> List[MemberRecord]:
        """Valid members of a group after its owner has been repaired."""
        members = self.load_members(group.id)
        self.repair_owner(group, members)
        return valid_members(members)

    def describe_group(self, user_id: int) -> GroupResponse:
        """
        Build the caller's group view, healing the owner reference if needed.

        Member entries that do not resolve to a user are left in storage
        but hidden from the result. Failures while repairing never fail
        the read: a placeholder owner is returned instead.

        Args:
            user_id: Member whose group is requested

        Returns:
            GroupResponse with a valid or placeholder owner

        Raises:
            NotFoundError: If the user is not in any group
        """
        group = self.get_user_group(user_id)
        members = self.load_members(group.id)

        # Snapshot before the repair may commit or roll back the session
        visible = [
            GroupMemberResponse(
                id=member.user.id,
                email=member.user.email,
                name=member.user.name,
                joined_at=member.joined_at
            )
            for member in members if member.is_resolved
        ]
        hidden = len(members) - len(visible)
        if hidden:
            logger.info("Hiding %d unresolved member entries of group %s", hidden, group.id)
        snapshot = {
            "id": group.id,
            "name": group.name,
            "join_code": group.join_code,
            "created_at": group.created_at,
        }

        owner = self.repair_owner(group, members)
        degraded = owner is None

        return GroupResponse(
            **snapshot,
            owner=owner or placeholder_owner(),
            members=visible,
            member_count=len(visible),
            degraded=degraded
        )

    # ------------------------------------------------------------------
    # Membership lifecycle
    # ------------------------------------------------------------------

    def _clean_name(self, name: str) -> str:
        name = (name or "").strip()
        if not name:
            raise ValidationError("Group name is required")
        if len(name) > 100:
            raise ValidationError("Group name must be at most 100 characters")
        return name

    def _unique_join_code(self) -> str:
        # Retry logic for unique join code
        for _ in range(settings.JOIN_CODE_MAX_ATTEMPTS):
            join_code = generate_join_code()
            existing = self.db.query(Group.id).filter(Group.join_code == join_code).first()
            if not existing:
                return join_code
        raise StorageError("Failed to generate unique join code")

    def _add_member(self, group_id: int, user_id: int) -> None:
        self.db.execute(
            insert(group_members).values(
                group_id=group_id,
                user_id=user_id,
                joined_at=utcnow()
            )
        )

    def _remove_member(self, group_id: int, user_id: int) -> None:
        self.db.execute(
            delete(group_members).where(
                group_members.c.group_id == group_id,
                group_members.c.user_id == user_id
            )
        )

    def _delete_group(self, group: Group) -> None:
        self.db.execute(delete(group_members).where(group_members.c.group_id == group.id))
        self.db.delete(group)

    def _require_owner(self, group: Group, user_id: int, action: str) -> None:
        self.heal_owner(group)
        if group.owner_id != user_id:
            raise ForbiddenError(f"Only the group owner can {action}")

    def _detach(self, group: Group, user_id: int) -> Tuple[bool, Optional[int]]:
        """
        Remove a user from a group, keeping the owner valid.

        Returns:
            (group_deleted, new_owner_id) where new_owner_id is set only
            when ownership moved
        """
        members = self.load_members(group.id)
        remaining = [member for member in members if member.user_id != user_id]

        if not remaining:
            group_id = group.id
            self._delete_group(group)
            logger.info("Deleted group %s after its last member %s left", group_id, user_id)
            return True, None

        new_owner_id = None
        previous_owner_id = group.owner_id
        remaining_ids = {member.user_id for member in valid_members(remaining)}
        if previous_owner_id not in remaining_ids:
            # Either the owner is leaving or it was already stale
            successor = choose_successor(remaining)
            if successor is not None and successor.user_id != previous_owner_id:
                new_owner_id = successor.user_id
                group.owner_id = new_owner_id
                reason = "owner left" if previous_owner_id == user_id else "stale owner"
                logger.info(
                    "Transferred ownership of group %s from %s to %s (%s)",
                    group.id, previous_owner_id, new_owner_id, reason
                )

        self._remove_member(group.id, user_id)
        return False, new_owner_id

    def create_group(self, user_id: int, name: str) -> GroupResponse:
        """
        Create a new group owned by the caller.

        Raises:
            ConflictError: If the caller already belongs to a group
        """
        if self.find_user_group(user_id):
            raise ConflictError("User is already a member of a group")

        name = self._clean_name(name)
        for _ in range(settings.JOIN_CODE_MAX_ATTEMPTS):
            join_code = self._unique_join_code()
            group = Group(name=name, join_code=join_code, owner_id=user_id)
            self.db.add(group)
            try:
                self.db.flush()
            except IntegrityError:
                # Another group took the code between the check and the insert
                self.db.rollback()
                logger.warning("Join code %s was taken concurrently, retrying", join_code)
                continue
            break
        else:
            raise StorageError("Failed to generate unique join code")

        self._add_member(group.id, user_id)
        self.db.commit()

        logger.info("User %s created group %s", user_id, group.id)
        return self.describe_group(user_id)

    def join_group(self, user_id: int, join_code: str) -> GroupResponse:
        """
        Join a group using its join code.

        Raises:
            NotFoundError: If no group has this code
            ConflictError: If the caller is already in a group or the group is full
        """
        group = self.db.query(Group).filter(
            Group.join_code == normalize_join_code(join_code)
        ).first()

        if not group:
            raise NotFoundError("Invalid join code")

        if self.is_member(group.id, user_id):
            raise ConflictError("You are already a member of this group")

        if self.find_user_group(user_id):
            raise ConflictError("User is already a member of another group")

        if self.get_member_count(group.id) >= settings.MAX_GROUP_MEMBERS:
            raise ConflictError("Group is full")

        group_id = group.id
        self._add_member(group_id, user_id)
        self.db.commit()

        self._publish(group_id, "group.member_joined", {"user_id": user_id})
        return self.describe_group(user_id)

    def leave_group(self, user_id: int) -> bool:
        """
        Leave the caller's group.

        An owner leaving hands ownership to the oldest remaining member;
        the last member leaving deletes the group.

        Returns:
            True if the group was deleted
        """
        group = self.get_user_group(user_id)
        group_id = group.id
        previous_owner_id = group.owner_id

        group_deleted, new_owner_id = self._detach(group, user_id)
        self.db.commit()

        if not group_deleted:
            self._publish(group_id, "group.member_left", {"user_id": user_id})
            if new_owner_id is not None:
                self._publish(group_id, "group.owner_changed", {
                    "previous_owner_id": previous_owner_id,
                    "owner_id": new_owner_id,
                    "reason": "owner-left" if previous_owner_id == user_id else "repair",
                })
        return group_deleted

    def remove_member(self, user_id: int, member_id: int) -> GroupResponse:
        """
        Remove another member from the group (owner only).

        Raises:
            ForbiddenError: If the caller is not the owner
            ConflictError: If the owner tries to remove themselves
            NotFoundError: If the target is not a member
        """
        group = self.get_user_group(user_id)
        self._require_owner(group, user_id, "remove members")

        if member_id == group.owner_id:
            raise ConflictError("The owner cannot be removed; transfer ownership or leave instead")

        if not self.is_member(group.id, member_id):
            raise NotFoundError("User is not a member of this group")

        group_id = group.id
        self._remove_member(group_id, member_id)
        self.db.commit()

        self._publish(group_id, "group.member_removed", {"user_id": member_id})
        return self.describe_group(user_id)

    def transfer_ownership(self, user_id: int, new_owner_id: int) -> GroupResponse:
        """
        Hand ownership to another member.

        Raises:
            ForbiddenError: If the caller is not the owner
            ConflictError: If the target already owns the group
            NotFoundError: If the target is not a member
        """
        group = self.get_user_group(user_id)
        self._require_owner(group, user_id, "transfer ownership")

        if new_owner_id == group.owner_id:
            raise ConflictError("User is already the group owner")

        candidates = {member.user_id for member in valid_members(self.load_members(group.id))}
        if new_owner_id not in candidates:
            raise NotFoundError("New owner is not a member of this group")

        group_id = group.id
        group.owner_id = new_owner_id
        self.db.commit()

        logger.info("Transferred ownership of group %s from %s to %s", group_id, user_id, new_owner_id)
        self._publish(group_id, "group.owner_changed", {
            "previous_owner_id": user_id,
            "owner_id": new_owner_id,
            "reason": "transfer",
        })
        return self.describe_group(user_id)

    def rename_group(self, user_id: int, name: str) -> GroupResponse:
        """Rename the caller's group (owner only)."""
        group = self.get_user_group(user_id)
        self._require_owner(group, user_id, "rename the group")

        group.name = self._clean_name(name)
        self.db.commit()
        return self.describe_group(user_id)

    def delete_user_cascade(self, user_id: int) -> None:
        """
        Delete a user account and fix up its group first.

        Ownership moves to the oldest remaining member, or the group is
        deleted when the user was its last member. The user's assignments
        go with the account; tasks it created keep existing without a
        creator.

        Raises:
            NotFoundError: If the user does not exist
        """
        user = self.db.get(User, user_id)
        if user is None:
            raise NotFoundError("User not found")

        group = self.find_user_group(user_id)
        group_id, group_deleted, new_owner_id = None, False, None
        previous_owner_id = None
        if group:
            group_id, previous_owner_id = group.id, group.owner_id
            group_deleted, new_owner_id = self._detach(group, user_id)
            self.db.flush()

        self.db.execute(
            delete(Assignment).where(Assignment.user_id == user_id).execution_options(synchronize_session="fetch")
        )
        self.db.execute(
            update(Task).where(Task.created_by == user_id).values(created_by=None).execution_options(synchronize_session="fetch")
        )
        self.db.delete(user)
        self.db.commit()

        logger.info("Deleted user %s", user_id)
        if group_id is not None and not group_deleted:
            self._publish(group_id, "group.member_left", {"user_id": user_id})
            if new_owner_id is not None:
                self._publish(group_id, "group.owner_changed", {
                    "previous_owner_id": previous_owner_id,
                    "owner_id": new_owner_id,
                    "reason": "account-deleted" if previous_owner_id == user_id else "repair",
                })

    def _publish(self, group_id: int, event: str, payload: dict) -> None:
        self.broadcaster.publish(group_id, event, payload)
