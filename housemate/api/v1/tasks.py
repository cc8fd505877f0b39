"""Task management endpoints."""

from datetime import date, datetime, time
from typing import List

from fastapi import APIRouter, Depends, Query, status

from housemate.api.deps import get_current_user, get_task_service
from housemate.models.user import User
from housemate.schemas.task import (
    TaskAssignmentUpdate,
    TaskCreate,
    TaskResponse,
    TaskStatusUpdate,
    WeeklyAssignmentResponse,
)
from housemate.services.tasks import TaskService

router = APIRouter()


@router.post("", response_model=TaskResponse, status_code=status.HTTP_201_CREATED)
def create_task(
    task_data: TaskCreate,
    current_user: User = Depends(get_current_user),
    tasks: TaskService = Depends(get_task_service)
):
    """
    Create a new task in the caller's group.

    Any member of the group can create tasks. Users in
    ``assigned_user_ids`` are assigned for the current week.

    Raises:
        NotFoundError: 404 if the caller is not in a group
        ValidationError: 422 for a past deadline or non-member assignees
    """
    return tasks.create_task(current_user.id, task_data)


@router.get("", response_model=List[TaskResponse])
def list_tasks(
    current_user: User = Depends(get_current_user),
    tasks: TaskService = Depends(get_task_service)
):
    """List all tasks in the caller's group, newest first."""
    return tasks.list_tasks(current_user.id)


@router.get("/mine", response_model=List[TaskResponse])
def list_my_tasks(
    current_user: User = Depends(get_current_user),
    tasks: TaskService = Depends(get_task_service)
):
    """List the tasks the caller is assigned to this week."""
    return tasks.list_my_tasks(current_user.id)


@router.get("/week", response_model=List[TaskResponse])
def list_tasks_for_week(
    week_start: date = Query(..., description="Any date inside the requested week"),
    current_user: User = Depends(get_current_user),
    tasks: TaskService = Depends(get_task_service)
):
    """
    List tasks for a week.

    All recurring tasks are returned, plus one-time tasks due that week.
    """
    return tasks.list_tasks_for_week(current_user.id, datetime.combine(week_start, time.min))


@router.get("/date", response_model=List[TaskResponse])
def list_tasks_for_date(
    day: date = Query(..., alias="date", description="Day to list tasks for"),
    current_user: User = Depends(get_current_user),
    tasks: TaskService = Depends(get_task_service)
):
    """List recurring tasks plus one-time tasks due on the given day."""
    return tasks.list_tasks_for_date(current_user.id, datetime.combine(day, time.min))


@router.post("/assign-weekly", response_model=WeeklyAssignmentResponse)
def assign_weekly_tasks(
    current_user: User = Depends(get_current_user),
    tasks: TaskService = Depends(get_task_service)
):
    """
    Assign every recurring task of the group for the current week.

    Safe to call repeatedly: tasks that already have their required
    people this week are skipped.
    """
    result = tasks.assign_weekly_tasks(current_user.id)
    return {
        "assigned_tasks": result.assigned_tasks,
        "week_start": result.week_start,
        "tasks": result.tasks,
    }


@router.get("/{task_id}", response_model=TaskResponse)
def get_task(
    task_id: int,
    current_user: User = Depends(get_current_user),
    tasks: TaskService = Depends(get_task_service)
):
    """
    Get details of a specific task.

    Raises:
        NotFoundError: 404 if the task is not in the caller's group
    """
    return tasks.get_task(current_user.id, task_id)


@router.put("/{task_id}/status", response_model=TaskResponse)
def update_task_status(
    task_id: int,
    status_data: TaskStatusUpdate,
    current_user: User = Depends(get_current_user),
    tasks: TaskService = Depends(get_task_service)
):
    """
    Update the status of an assignment for the current week.

    Raises:
        NotFoundError: 404 if the task or assignment does not exist
        ForbiddenError: 403 if a non-creator targets another member
    """
    return tasks.update_task_status(
        current_user.id, task_id, status_data.status, target_user_id=status_data.user_id
    )


@router.post("/{task_id}/assign", response_model=TaskResponse)
def assign_task(
    task_id: int,
    assignment_data: TaskAssignmentUpdate,
    current_user: User = Depends(get_current_user),
    tasks: TaskService = Depends(get_task_service)
):
    """
    Set the assignees of a task for the current week.

    Only the task creator or the group owner can assign.
    """
    return tasks.assign_task(current_user.id, task_id, assignment_data.user_ids)


@router.delete("/{task_id}", status_code=status.HTTP_204_NO_CONTENT)
def delete_task(
    task_id: int,
    current_user: User = Depends(get_current_user),
    tasks: TaskService = Depends(get_task_service)
):
    """
    Delete a task and its assignment history.

    Only the task creator or the group owner can delete.
    """
    tasks.delete_task(current_user.id, task_id)
    return None
