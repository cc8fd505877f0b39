"""Pydantic schemas for Group model."""

from datetime import datetime
from typing import List, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator


class GroupBase(BaseModel):
    """Base group schema with common fields."""
    name: str = Field(..., min_length=1, max_length=100)

    @field_validator("name", mode="before")
    @classmethod
    def strip_name(cls, value):
        return value.strip() if isinstance(value, str) else value


class GroupCreate(GroupBase):
    """Schema for creating a new group."""
    pass


class GroupUpdate(GroupBase):
    """Schema for renaming a group."""
    pass


class GroupJoin(BaseModel):
    """Schema for joining a group via join code."""
    join_code: str = Field(..., min_length=1, max_length=20)


class OwnershipTransfer(BaseModel):
    """Schema for handing ownership to another member."""
    new_owner_id: int


class OwnerSummary(BaseModel):
    """Owner projection. ``is_placeholder`` marks a synthetic owner."""
    id: Optional[int]
    name: str
    email: str
    is_placeholder: bool = False


class GroupMemberResponse(BaseModel):
    """Schema for group member information."""
    id: int
    email: str
    name: str
    joined_at: datetime

    model_config = ConfigDict(from_attributes=True)


class GroupResponse(BaseModel):
    """Schema for group responses with owner and cleaned member list."""
    id: int
    name: str
    join_code: str
    created_at: datetime
    owner: OwnerSummary
    members: List[GroupMemberResponse] = []
    member_count: int = 0
    degraded: bool = False


class LeaveGroupResponse(BaseModel):
    group_deleted: bool
