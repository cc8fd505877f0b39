"""SQLAlchemy models for Housemate."""

from housemate.models.user import User
from housemate.models.group import Group, group_members
from housemate.models.task import Assignment, AssignmentStatus, Recurrence, Task

__all__ = ["User", "Group", "group_members", "Task", "Assignment", "AssignmentStatus", "Recurrence"]
