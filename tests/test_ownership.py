"""Tests for the pure ownership rules."""

from datetime import datetime

from housemate.models.user import User
from housemate.services.ownership import (
    MemberRecord,
    choose_successor,
    oldest_member,
    placeholder_owner,
    plan_owner_repair,
    valid_members,
)


def user(user_id, name="Someone"):
    return User(id=user_id, email=f"u{user_id}@example.com", name=name)


def member(membership_id, user_id, day, name="Someone", resolved=True):
    return MemberRecord(
        membership_id=membership_id,
        user_id=user_id,
        joined_at=datetime(2024, 1, day),
        user=user(user_id, name) if resolved else None
    )


def test_valid_owner_needs_no_repair():
    members = [member(1, 1, 1), member(2, 2, 2)]
    plan = plan_owner_repair(1, user(1), members)
    assert plan.stale is False
    assert plan.new_owner_id == 1
    assert plan.can_transfer is False


def test_deleted_owner_transfers_to_oldest_valid_member():
    members = [member(1, 1, 1, resolved=False), member(2, 2, 3), member(3, 3, 2)]
    plan = plan_owner_repair(1, None, members)
    assert plan.stale is True
    assert plan.new_owner_id == 3


def test_owner_without_display_fields_is_stale():
    members = [member(1, 1, 1, name=""), member(2, 2, 2)]
    plan = plan_owner_repair(1, user(1, name=""), members)
    assert plan.stale is True
    assert plan.new_owner_id == 2


def test_owner_that_is_not_a_member_is_stale():
    members = [member(2, 2, 5), member(3, 3, 4)]
    plan = plan_owner_repair(9, user(9), members)
    assert plan.stale is True
    assert plan.new_owner_id == 3


def test_null_owner_reference_is_stale():
    plan = plan_owner_repair(None, None, [member(1, 1, 1)])
    assert plan.can_transfer
    assert plan.new_owner_id == 1


def test_no_valid_members_cannot_transfer():
    members = [member(1, 1, 1, resolved=False), member(2, 2, 2, resolved=False)]
    plan = plan_owner_repair(1, None, members)
    assert plan.stale is True
    assert plan.new_owner_id is None
    assert plan.can_transfer is False


def test_same_join_time_breaks_tie_on_membership_order():
    members = [member(7, 2, 1), member(4, 3, 1)]
    assert oldest_member(members).user_id == 3


def test_oldest_member_excludes_user():
    members = [member(1, 1, 1), member(2, 2, 2)]
    assert oldest_member(members, exclude_user_id=1).user_id == 2
    assert oldest_member([member(1, 1, 1)], exclude_user_id=1) is None


def test_valid_members_drops_unresolved_entries():
    members = [
        member(1, 1, 1),
        member(2, 2, 2, resolved=False),
        MemberRecord(membership_id=3, user_id=None, joined_at=datetime(2024, 1, 3)),
    ]
    assert [m.user_id for m in valid_members(members)] == [1]


def test_choose_successor_prefers_valid_members():
    members = [member(1, 1, 1, resolved=False), member(2, 2, 2)]
    assert choose_successor(members).user_id == 2


def test_choose_successor_falls_back_to_any_remaining_member():
    members = [member(1, 1, 2, resolved=False), member(2, 2, 1, resolved=False)]
    assert choose_successor(members).user_id == 2


def test_placeholder_owner():
    owner = placeholder_owner()
    assert owner.is_placeholder is True
    assert owner.id is None
    assert owner.name == "Deleted User"
