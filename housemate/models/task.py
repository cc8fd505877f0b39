import enum

from sqlalchemy import (
    Column,
    DateTime,
    ForeignKey,
    Integer,
    String,
    UniqueConstraint,
)
from sqlalchemy.orm import relationship

from housemate.database import Base
from housemate.utils.dates import utcnow

DEFAULT_REQUIRED_PEOPLE = 1


class Recurrence(str, enum.Enum):
    ONE_TIME = "one-time"
    DAILY = "daily"
    WEEKLY = "weekly"
    BI_WEEKLY = "bi-weekly"
    MONTHLY = "monthly"


class AssignmentStatus(str, enum.Enum):
    INCOMPLETE = "incomplete"
    IN_PROGRESS = "in-progress"
    COMPLETED = "completed"


class Task(Base):
    """Task model representing chores within a group."""

    __tablename__ = "tasks"

    id = Column(Integer, primary_key=True, index=True)
    group_id = Column(Integer, ForeignKey("groups.id", ondelete="CASCADE"), nullable=False, index=True)
    name = Column(String(100), nullable=False)
    description = Column(String(500), nullable=True)
    difficulty = Column(Integer, nullable=False)  # 1 (easy) .. 5 (hard)
    recurrence = Column(String(20), nullable=False)
    # NULL on rows created before the column existed
    required_people = Column(Integer, nullable=True, default=DEFAULT_REQUIRED_PEOPLE)
    deadline = Column(DateTime, nullable=True)  # one-time tasks only
    created_by = Column(Integer, ForeignKey("users.id", ondelete="SET NULL"), nullable=True, index=True)
    created_at = Column(DateTime, default=utcnow, nullable=False)

    # Relationships
    group = relationship("Group", back_populates="tasks")

    assignments = relationship(
        "Assignment",
        back_populates="task",
        cascade="all, delete-orphan",
        order_by="Assignment.id",
        lazy="selectin"  # Eager load to avoid N+1 queries
    )

    @property
    def is_recurring(self) -> bool:
        return self.recurrence != Recurrence.ONE_TIME.value

    @property
    def effective_required_people(self) -> int:
        """Required people with the legacy NULL read as the default."""
        return self.required_people or DEFAULT_REQUIRED_PEOPLE

    @property
    def completion_rate(self) -> int:
        """Percentage of assignments completed, 0 when there are none."""
        if not self.assignments:
            return 0
        completed = sum(1 for a in self.assignments if a.status == AssignmentStatus.COMPLETED.value)
        return round(completed * 100 / len(self.assignments))

    def assignments_for_week(self, week_start):
        return [a for a in self.assignments if a.week_start == week_start]


class Assignment(Base):
    """One obligation: a member performing a task in a given week."""

    __tablename__ = "task_assignments"

    id = Column(Integer, primary_key=True, index=True)
    task_id = Column(Integer, ForeignKey("tasks.id", ondelete="CASCADE"), nullable=False, index=True)
    user_id = Column(Integer, ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True)
    week_start = Column(DateTime, nullable=False, index=True)
    status = Column(String(20), nullable=False, default=AssignmentStatus.INCOMPLETE.value)
    completed_at = Column(DateTime, nullable=True)

    task = relationship("Task", back_populates="assignments")

    __table_args__ = (
        UniqueConstraint("task_id", "user_id", "week_start", name="uq_assignment_task_user_week"),
    )
