"""Group management endpoints."""

from fastapi import APIRouter, Depends, status

from housemate.api.deps import get_current_user, get_group_service
from housemate.models.user import User
from housemate.schemas.group import (
    GroupCreate,
    GroupJoin,
    GroupResponse,
    GroupUpdate,
    LeaveGroupResponse,
    OwnershipTransfer,
)
from housemate.services.groups import GroupService

router = APIRouter()


@router.get("", response_model=GroupResponse)
def get_my_group(
    current_user: User = Depends(get_current_user),
    groups: GroupService = Depends(get_group_service)
):
    """
    Get the caller's group with its owner and members.

    A stale owner reference is repaired on the way. If no real owner can
    be resolved the response still succeeds, with ``degraded`` set and a
    placeholder owner.

    Raises:
        NotFoundError: 404 if the caller is not in a group
    """
    return groups.describe_group(current_user.id)


@router.post("", response_model=GroupResponse, status_code=status.HTTP_201_CREATED)
def create_group(
    group_data: GroupCreate,
    current_user: User = Depends(get_current_user),
    groups: GroupService = Depends(get_group_service)
):
    """
    Create a new group.

    The authenticated user becomes the owner and first member of the group.
    A unique join code is generated for others to join.

    Raises:
        ConflictError: 409 if the caller already belongs to a group
    """
    return groups.create_group(current_user.id, group_data.name)


@router.post("/join", response_model=GroupResponse)
def join_group(
    join_data: GroupJoin,
    current_user: User = Depends(get_current_user),
    groups: GroupService = Depends(get_group_service)
):
    """
    Join a group using a join code.

    Raises:
        NotFoundError: 404 if the join code is invalid
        ConflictError: 409 if already in a group or the group is full
    """
    return groups.join_group(current_user.id, join_data.join_code)


@router.patch("", response_model=GroupResponse)
def rename_group(
    group_data: GroupUpdate,
    current_user: User = Depends(get_current_user),
    groups: GroupService = Depends(get_group_service)
):
    """Rename the caller's group (owner only)."""
    return groups.rename_group(current_user.id, group_data.name)


@router.put("/owner", response_model=GroupResponse)
def transfer_ownership(
    transfer: OwnershipTransfer,
    current_user: User = Depends(get_current_user),
    groups: GroupService = Depends(get_group_service)
):
    """
    Transfer group ownership to another member (owner only).

    Raises:
        ForbiddenError: 403 if the caller is not the owner
        NotFoundError: 404 if the new owner is not a member
    """
    return groups.transfer_ownership(current_user.id, transfer.new_owner_id)


@router.delete("/members/{user_id}", response_model=GroupResponse)
def remove_member(
    user_id: int,
    current_user: User = Depends(get_current_user),
    groups: GroupService = Depends(get_group_service)
):
    """
    Remove a member from the group (owner only).

    Raises:
        ForbiddenError: 403 if the caller is not the owner
        ConflictError: 409 if the owner targets themselves
        NotFoundError: 404 if the target is not a member
    """
    return groups.remove_member(current_user.id, user_id)


@router.delete("/leave", response_model=LeaveGroupResponse)
def leave_group(
    current_user: User = Depends(get_current_user),
    groups: GroupService = Depends(get_group_service)
):
    """
    Leave the caller's group (self-removal).

    If the leaving member is the owner, the oldest remaining member
    becomes owner. If the leaving member is the last member, the group
    is deleted.
    """
    return {"group_deleted": groups.leave_group(current_user.id)}
