"""Pydantic schemas for Task model."""

from datetime import datetime
from typing import List, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator

from housemate.models.task import DEFAULT_REQUIRED_PEOPLE, AssignmentStatus, Recurrence
from housemate.utils.dates import to_naive_utc


class TaskBase(BaseModel):
    """Base task schema with common fields."""
    name: str = Field(..., min_length=1, max_length=100)
    description: Optional[str] = Field(None, max_length=500)

    @field_validator("name", "description", mode="before")
    @classmethod
    def strip_text(cls, value):
        return value.strip() if isinstance(value, str) else value


class TaskCreate(TaskBase):
    """Schema for creating a new task."""
    difficulty: int = Field(..., ge=1, le=5)
    recurrence: Recurrence
    required_people: int = Field(DEFAULT_REQUIRED_PEOPLE, ge=1, le=10)
    deadline: Optional[datetime] = None
    assigned_user_ids: Optional[List[int]] = None

    @field_validator("deadline")
    @classmethod
    def deadline_to_utc(cls, value: Optional[datetime]) -> Optional[datetime]:
        return to_naive_utc(value) if value is not None else None

    @model_validator(mode="after")
    def require_deadline_for_one_time(self) -> "TaskCreate":
        if self.recurrence == Recurrence.ONE_TIME and self.deadline is None:
            raise ValueError("Deadline is required for one-time tasks")
        return self


class AssignmentResponse(BaseModel):
    """Schema for a single weekly obligation."""
    id: int
    user_id: int
    week_start: datetime
    status: AssignmentStatus
    completed_at: Optional[datetime] = None

    model_config = ConfigDict(from_attributes=True)


class TaskResponse(TaskBase):
    """Schema for task responses."""
    id: int
    group_id: int
    difficulty: int
    recurrence: Recurrence
    required_people: int
    deadline: Optional[datetime] = None
    created_by: Optional[int] = None
    created_at: datetime
    assignments: List[AssignmentResponse] = []
    completion_rate: int = 0

    model_config = ConfigDict(from_attributes=True)

    @field_validator("required_people", mode="before")
    @classmethod
    def default_required_people(cls, value):
        """Rows written before the column existed carry NULL."""
        return DEFAULT_REQUIRED_PEOPLE if value is None else value


class TaskStatusUpdate(BaseModel):
    """Schema for changing an assignment's status."""
    status: AssignmentStatus
    # Only the task creator may target another member's assignment
    user_id: Optional[int] = None


class TaskAssignmentUpdate(BaseModel):
    """Schema for replacing the current week's assignees."""
    user_ids: List[int] = Field(..., min_length=1)


class WeeklyAssignmentResponse(BaseModel):
    """Result of a weekly scheduling run."""
    assigned_tasks: int
    week_start: datetime
    tasks: List[TaskResponse] = []
