"""Account endpoints for the authenticated user."""

from fastapi import APIRouter, Depends, status

from housemate.api.deps import get_current_user, get_group_service
from housemate.models.user import User
from housemate.schemas.user import UserResponse
from housemate.services.groups import GroupService

router = APIRouter()


@router.get("/me", response_model=UserResponse)
def get_current_user_info(current_user: User = Depends(get_current_user)):
    """Get current authenticated user information."""
    return current_user


@router.delete("/me", status_code=status.HTTP_204_NO_CONTENT)
def delete_account(
    current_user: User = Depends(get_current_user),
    groups: GroupService = Depends(get_group_service)
):
    """
    Delete the caller's account.

    Group membership is cleaned up first: ownership passes to the oldest
    remaining member, or the group is deleted if the caller was alone.
    """
    groups.delete_user_cascade(current_user.id)
    return None
