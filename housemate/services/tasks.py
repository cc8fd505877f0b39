"""Task CRUD, assignment status and the weekly scheduler."""

import logging
from dataclasses import dataclass, field
from datetime import datetime
from typing import Iterable, List, Optional

from sqlalchemy.orm import Session

from housemate.core.exceptions import ForbiddenError, NotFoundError, ValidationError
from housemate.models.group import Group
from housemate.models.task import Assignment, AssignmentStatus, Recurrence, Task
from housemate.schemas.task import TaskCreate
from housemate.services.groups import GroupService
from housemate.services.notifications import GroupEventBroadcaster, broadcaster as default_broadcaster
from housemate.services.scheduling import select_assignees, weekly_load
from housemate.utils.dates import current_week_start, day_bounds, utcnow, week_bounds, week_start_for

logger = logging.getLogger(__name__)


@dataclass
class WeeklyAssignmentResult:
    week_start: datetime
    tasks: List[Task] = field(default_factory=list)

    @property
    def assigned_tasks(self) -> int:
        return len(self.tasks)


def unique_ids(ids: Iterable[int]) -> List[int]:
    """Drop repeated ids, keeping first-seen order."""
    return list(dict.fromkeys(ids))


class TaskService:
    """Operations on the chores of the caller's group."""

    def __init__(
        self,
        db: Session,
        groups: Optional[GroupService] = None,
        broadcaster: Optional[GroupEventBroadcaster] = None
    ):
        self.db = db
        self.broadcaster = broadcaster or default_broadcaster
        self.groups = groups or GroupService(db, self.broadcaster)

    def _get_group_task(self, group: Group, task_id: int) -> Task:
        task = self.db.query(Task).filter(
            Task.id == task_id,
            Task.group_id == group.id
        ).first()

        if not task:
            raise NotFoundError("Task not found")
        return task

    def _check_assignees(self, group: Group, user_ids: List[int]) -> None:
        member_ids = {member.user_id for member in self.groups.repaired_members(group)}
        strangers = [user_id for user_id in user_ids if user_id not in member_ids]
        if strangers:
            raise ValidationError(f"Users {strangers} are not members of this group")

    def _publish(self, group_id: int, event: str, payload: dict) -> None:
        self.broadcaster.publish(group_id, event, payload)

    def create_task(self, user_id: int, task_data: TaskCreate, now: Optional[datetime] = None) -> Task:
        """
        Create a new task in the caller's group.

        Any member can create tasks. Users listed in ``assigned_user_ids``
        get one assignment each for the current week.

        Raises:
            NotFoundError: If the caller is not in a group
            ValidationError: If the deadline is in the past or an assignee
                is not a member
        """
        now = now or utcnow()
        group = self.groups.get_user_group(user_id)

        if task_data.deadline is not None and task_data.deadline <= now:
            raise ValidationError("Deadline must be in the future")

        assignee_ids = unique_ids(task_data.assigned_user_ids or [])
        if assignee_ids:
            self._check_assignees(group, assignee_ids)

        task = Task(
            group_id=group.id,
            name=task_data.name,
            description=task_data.description,
            difficulty=task_data.difficulty,
            recurrence=task_data.recurrence.value,
            required_people=task_data.required_people,
            deadline=task_data.deadline,
            created_by=user_id,
            created_at=now
        )

        week_start = current_week_start(now)
        for assignee_id in assignee_ids:
            task.assignments.append(Assignment(
                user_id=assignee_id,
                week_start=week_start,
                status=AssignmentStatus.INCOMPLETE.value
            ))

        self.db.add(task)
        self.db.commit()
        self.db.refresh(task)

        self._publish(task.group_id, "task.created", {"task_id": task.id, "assigned_user_ids": assignee_ids})
        return task

    def list_tasks(self, user_id: int) -> List[Task]:
        """All tasks of the caller's group, newest first."""
        group = self.groups.get_user_group(user_id)
        return self.db.query(Task).filter(
            Task.group_id == group.id
        ).order_by(Task.created_at.desc(), Task.id.desc()).all()

    def list_my_tasks(self, user_id: int, now: Optional[datetime] = None) -> List[Task]:
        """
        Tasks the caller is obligated to do right now.

        Recurring tasks count when the caller holds an assignment for the
        current week; one-time tasks count while the caller's assignment
        is not completed.
        """
        week_start = current_week_start(now)
        mine = []
        for task in self.list_tasks(user_id):
            for assignment in task.assignments:
                if assignment.user_id != user_id:
                    continue
                if task.is_recurring and assignment.week_start == week_start:
                    mine.append(task)
                    break
                if not task.is_recurring and assignment.status != AssignmentStatus.COMPLETED.value:
                    mine.append(task)
                    break
        return mine

    def list_tasks_for_week(self, user_id: int, week_of: datetime) -> List[Task]:
        """
        Tasks relevant to the week containing ``week_of``.

        Every recurring task is included; one-time tasks only when their
        deadline falls inside the week.
        """
        start, end = week_bounds(week_start_for(week_of))
        return [
            task for task in self.list_tasks(user_id)
            if task.is_recurring or (task.deadline is not None and start <= task.deadline < end)
        ]

    def list_tasks_for_date(self, user_id: int, day: datetime) -> List[Task]:
        """Every recurring task plus the one-time tasks due on ``day``."""
        start, end = day_bounds(day)
        return [
            task for task in self.list_tasks(user_id)
            if task.is_recurring or (task.deadline is not None and start <= task.deadline < end)
        ]

    def get_task(self, user_id: int, task_id: int) -> Task:
        group = self.groups.get_user_group(user_id)
        return self._get_group_task(group, task_id)

    def update_task_status(
        self,
        user_id: int,
        task_id: int,
        status: AssignmentStatus,
        target_user_id: Optional[int] = None,
        now: Optional[datetime] = None
    ) -> Task:
        """
        Change the status of an assignment.

        The caller updates their own assignment; the task creator may
        update another member's by passing ``target_user_id``.

        Raises:
            NotFoundError: If the task or the assignment does not exist
            ForbiddenError: If a non-creator targets someone else
        """
        now = now or utcnow()
        task = self.get_task(user_id, task_id)

        target_user_id = target_user_id or user_id
        if target_user_id != user_id and task.created_by != user_id:
            raise ForbiddenError("Only the task creator can update another member's assignment")

        if task.is_recurring:
            week_start = current_week_start(now)
            candidates = [
                a for a in task.assignments_for_week(week_start) if a.user_id == target_user_id
            ]
        else:
            # A one-time assignment stays open until completed, whatever the week
            candidates = [a for a in task.assignments if a.user_id == target_user_id]

        if not candidates:
            raise NotFoundError("Assignment not found")

        assignment = candidates[-1]
        assignment.status = AssignmentStatus(status).value
        if assignment.status == AssignmentStatus.COMPLETED.value:
            assignment.completed_at = now
        else:
            assignment.completed_at = None

        self.db.commit()
        self.db.refresh(task)

        self._publish(task.group_id, "task.status_updated", {
            "task_id": task.id,
            "user_id": target_user_id,
            "status": assignment.status,
        })
        return task

    def assign_task(self, user_id: int, task_id: int, user_ids: List[int], now: Optional[datetime] = None) -> Task:
        """
        Replace the current assignees of a task.

        Users that were already assigned keep their entry (and status),
        users no longer listed lose theirs, new users are added.

        Raises:
            ForbiddenError: If the caller is neither task creator nor group owner
            ValidationError: If a user is not a member
        """
        group = self.groups.get_user_group(user_id)
        task = self._get_group_task(group, task_id)

        # Check if user can assign tasks (task creator or group owner)
        self.groups.heal_owner(group)
        if task.created_by != user_id and group.owner_id != user_id:
            raise ForbiddenError("You do not have permission to assign this task")

        user_ids = unique_ids(user_ids)
        if not user_ids:
            raise ValidationError("At least one user is required")
        self._check_assignees(group, user_ids)

        week_start = current_week_start(now)
        if task.is_recurring:
            current = task.assignments_for_week(week_start)
        else:
            current = list(task.assignments)

        kept = set()
        for assignment in current:
            if assignment.user_id in user_ids:
                kept.add(assignment.user_id)
            else:
                task.assignments.remove(assignment)

        for assignee_id in user_ids:
            if assignee_id not in kept:
                task.assignments.append(Assignment(
                    user_id=assignee_id,
                    week_start=week_start,
                    status=AssignmentStatus.INCOMPLETE.value
                ))

        self.db.commit()
        self.db.refresh(task)

        self._publish(task.group_id, "task.assigned", {"task_id": task.id, "user_ids": user_ids})
        return task

    def assign_weekly_tasks(self, user_id: int, now: Optional[datetime] = None) -> WeeklyAssignmentResult:
        """
        Give every recurring task of the caller's group its assignees for this week.

        Tasks without ``required_people`` are treated as needing one
        person. Tasks already covered are left alone, so running this
        twice in a week changes nothing the second time. When the group
        is smaller than a task requires, everyone eligible is assigned.

        Returns:
            WeeklyAssignmentResult listing the tasks that got new assignees
        """
        group = self.groups.get_user_group(user_id)
        members = self.groups.repaired_members(group)
        group_id = group.id
        week_start = current_week_start(now)

        tasks = self.db.query(Task).filter(
            Task.group_id == group_id
        ).order_by(Task.created_at.asc(), Task.id.asc()).all()

        load = weekly_load(tasks, week_start)
        result = WeeklyAssignmentResult(week_start=week_start)

        for task in tasks:
            if task.recurrence == Recurrence.ONE_TIME.value:
                continue

            already_assigned = {a.user_id for a in task.assignments_for_week(week_start)}
            chosen = select_assignees(members, already_assigned, task.effective_required_people, load)
            if not chosen:
                continue

            for assignee_id in chosen:
                task.assignments.append(Assignment(
                    user_id=assignee_id,
                    week_start=week_start,
                    status=AssignmentStatus.INCOMPLETE.value
                ))
                load[assignee_id] += task.difficulty
            result.tasks.append(task)

        if result.tasks:
            self.db.commit()
            for task in result.tasks:
                self.db.refresh(task)

        logger.info(
            "Weekly scheduling for group %s, week of %s: %d task(s) assigned",
            group_id, week_start.date(), result.assigned_tasks
        )
        if result.tasks:
            self._publish(group_id, "tasks.weekly_assigned", {
                "week_start": week_start.isoformat(),
                "task_ids": [task.id for task in result.tasks],
            })
        return result

    def delete_task(self, user_id: int, task_id: int) -> None:
        """
        Delete a task together with its assignments.

        Raises:
            ForbiddenError: If the caller is neither task creator nor group owner
        """
        group = self.groups.get_user_group(user_id)
        task = self._get_group_task(group, task_id)

        self.groups.heal_owner(group)
        if task.created_by != user_id and group.owner_id != user_id:
            raise ForbiddenError("You do not have permission to delete this task")

        group_id = group.id
        self.db.delete(task)
        self.db.commit()

        self._publish(group_id, "task.deleted", {"task_id": task_id})
