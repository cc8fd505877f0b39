"""Tests for task endpoints."""

from datetime import datetime, timedelta

import pytest

from housemate.config import settings
from housemate.models import Assignment, Task
from housemate.services.notifications import broadcaster
from housemate.services.tasks import TaskService
from housemate.utils.dates import current_week_start, utcnow

API = settings.API_V1_PREFIX


@pytest.fixture
def household(make_user, make_group):
    """Three roommates; U1 owns the group."""
    users = [make_user(name=f"U{i}") for i in (1, 2, 3)]
    group = make_group(users[0].id, [(u.id, datetime(2024, 1, i + 1)) for i, u in enumerate(users)])
    return group, users


def weekly_task(**overrides):
    payload = {"name": "Dishes", "difficulty": 2, "recurrence": "weekly", "required_people": 1}
    payload.update(overrides)
    return payload


# ========== CREATE ==========

def test_create_task(client, household, auth_headers):
    group, (u1, u2, u3) = household
    response = client.post(
        f"{API}/tasks",
        headers=auth_headers(u2),
        json=weekly_task(description="  after dinner ", required_people=2)
    )

    assert response.status_code == 201
    data = response.json()
    assert data["name"] == "Dishes"
    assert data["description"] == "after dinner"
    assert data["group_id"] == group.id
    assert data["created_by"] == u2.id
    assert data["required_people"] == 2
    assert data["assignments"] == []
    assert data["completion_rate"] == 0


def test_create_task_with_assignees_deduplicates(client, household, auth_headers):
    group, (u1, u2, u3) = household
    response = client.post(
        f"{API}/tasks",
        headers=auth_headers(u1),
        json=weekly_task(assigned_user_ids=[u2.id, u3.id, u2.id])
    )

    assert response.status_code == 201
    assignments = response.json()["assignments"]
    assert [a["user_id"] for a in assignments] == [u2.id, u3.id]
    week_start = current_week_start().isoformat()
    assert all(a["week_start"] == week_start for a in assignments)
    assert all(a["status"] == "incomplete" for a in assignments)


def test_create_task_rejects_non_member_assignee(client, household, make_user, auth_headers):
    group, (u1, u2, u3) = household
    outsider = make_user(name="Out")
    response = client.post(
        f"{API}/tasks", headers=auth_headers(u1), json=weekly_task(assigned_user_ids=[outsider.id])
    )
    assert response.status_code == 422
    assert response.json()["kind"] == "validation"


@pytest.mark.parametrize("overrides", [
    {"difficulty": 0},
    {"difficulty": 6},
    {"required_people": 0},
    {"required_people": 11},
    {"recurrence": "yearly"},
    {"name": ""},
    {"recurrence": "one-time"},
])
def test_create_task_validation(client, household, auth_headers, overrides):
    group, (u1, u2, u3) = household
    response = client.post(f"{API}/tasks", headers=auth_headers(u1), json=weekly_task(**overrides))
    assert response.status_code == 422
    body = response.json()
    assert body["success"] is False
    assert body["kind"] == "validation"


def test_create_one_time_task_needs_future_deadline(client, household, auth_headers):
    group, (u1, u2, u3) = household
    past = (utcnow() - timedelta(days=1)).isoformat()
    response = client.post(
        f"{API}/tasks", headers=auth_headers(u1), json=weekly_task(recurrence="one-time", deadline=past)
    )
    assert response.status_code == 422
    assert response.json()["message"] == "Deadline must be in the future"

    future = (utcnow() + timedelta(days=3)).isoformat()
    ok = client.post(
        f"{API}/tasks", headers=auth_headers(u1), json=weekly_task(recurrence="one-time", deadline=future)
    )
    assert ok.status_code == 201
    assert ok.json()["recurrence"] == "one-time"


def test_create_task_outside_group(client, make_user, auth_headers):
    loner = make_user()
    response = client.post(f"{API}/tasks", headers=auth_headers(loner), json=weekly_task())
    assert response.status_code == 404


def test_failing_listener_does_not_fail_creation(client, household, auth_headers):
    group, (u1, u2, u3) = household

    def broken_relay(group_id, event, payload):
        raise RuntimeError("socket closed")

    unsubscribe = broadcaster.subscribe(broken_relay)
    try:
        response = client.post(f"{API}/tasks", headers=auth_headers(u1), json=weekly_task())
    finally:
        unsubscribe()

    assert response.status_code == 201


# ========== LIST / GET ==========

def test_list_tasks_newest_first(client, household, make_task, auth_headers):
    group, (u1, u2, u3) = household
    make_task(group, u1.id, name="Old", created_at=datetime(2024, 1, 1))
    make_task(group, u1.id, name="New", created_at=datetime(2024, 2, 1))

    response = client.get(f"{API}/tasks", headers=auth_headers(u2))

    assert response.status_code == 200
    assert [t["name"] for t in response.json()] == ["New", "Old"]


def test_legacy_task_reads_required_people_as_one(client, household, make_task, auth_headers):
    group, (u1, u2, u3) = household
    make_task(group, u1.id, required_people=None)

    data = client.get(f"{API}/tasks", headers=auth_headers(u1)).json()
    assert data[0]["required_people"] == 1


def test_get_task_from_other_group_is_not_found(client, household, make_user, make_group, make_task, auth_headers):
    group, (u1, u2, u3) = household
    stranger = make_user(name="S")
    other = make_group(stranger.id, [(stranger.id, datetime(2024, 1, 1))])
    foreign = make_task(other, stranger.id)

    assert client.get(f"{API}/tasks/{foreign.id}", headers=auth_headers(u1)).status_code == 404
    assert client.get(f"{API}/tasks/{foreign.id}", headers=auth_headers(stranger)).status_code == 200


def test_list_my_tasks(client, db, household, make_task, auth_headers):
    group, (u1, u2, u3) = household
    week = current_week_start()
    mine = make_task(group, u1.id, name="Mine")
    make_task(group, u1.id, name="Theirs")
    old = make_task(group, u1.id, name="Last week")
    db.add_all([
        Assignment(task_id=mine.id, user_id=u2.id, week_start=week, status="incomplete"),
        Assignment(task_id=old.id, user_id=u2.id, week_start=week - timedelta(days=7), status="incomplete"),
    ])
    db.commit()

    response = client.get(f"{API}/tasks/mine", headers=auth_headers(u2))
    assert [t["name"] for t in response.json()] == ["Mine"]


def test_list_tasks_for_week(client, household, make_task, auth_headers):
    group, (u1, u2, u3) = household
    make_task(group, u1.id, name="Weekly")
    make_task(group, u1.id, name="Due", recurrence="one-time", deadline=datetime(2024, 5, 16, 18, 0))
    make_task(group, u1.id, name="Later", recurrence="one-time", deadline=datetime(2024, 5, 25, 18, 0))

    response = client.get(f"{API}/tasks/week", headers=auth_headers(u1), params={"week_start": "2024-05-15"})

    assert response.status_code == 200
    assert sorted(t["name"] for t in response.json()) == ["Due", "Weekly"]


def test_list_tasks_for_date(client, household, make_task, auth_headers):
    group, (u1, u2, u3) = household
    make_task(group, u1.id, name="Weekly")
    make_task(group, u1.id, name="Morning", recurrence="one-time", deadline=datetime(2024, 5, 16, 0, 0))
    make_task(group, u1.id, name="Night", recurrence="one-time", deadline=datetime(2024, 5, 16, 23, 59))
    make_task(group, u1.id, name="Next day", recurrence="one-time", deadline=datetime(2024, 5, 17, 0, 0))

    response = client.get(f"{API}/tasks/date", headers=auth_headers(u2), params={"date": "2024-05-16"})

    assert response.status_code == 200
    assert sorted(t["name"] for t in response.json()) == ["Morning", "Night", "Weekly"]


def test_list_tasks_for_date_rejects_bad_date(client, household, auth_headers):
    group, (u1, u2, u3) = household
    response = client.get(f"{API}/tasks/date", headers=auth_headers(u1), params={"date": "not-a-date"})
    assert response.status_code == 422


# ========== STATUS ==========

def test_status_transitions(client, household, make_task, db, auth_headers):
    group, (u1, u2, u3) = household
    task = make_task(group, u1.id)
    db.add(Assignment(task_id=task.id, user_id=u2.id, week_start=current_week_start(), status="incomplete"))
    db.commit()

    started = client.put(f"{API}/tasks/{task.id}/status", headers=auth_headers(u2), json={"status": "in-progress"})
    assert started.status_code == 200
    assert started.json()["assignments"][0]["status"] == "in-progress"
    assert started.json()["assignments"][0]["completed_at"] is None

    done = client.put(f"{API}/tasks/{task.id}/status", headers=auth_headers(u2), json={"status": "completed"})
    assignment = done.json()["assignments"][0]
    assert assignment["status"] == "completed"
    assert assignment["completed_at"] is not None
    assert done.json()["completion_rate"] == 100

    reopened = client.put(f"{API}/tasks/{task.id}/status", headers=auth_headers(u2), json={"status": "incomplete"})
    assert reopened.json()["assignments"][0]["completed_at"] is None


def test_status_update_without_assignment(client, household, make_task, auth_headers):
    group, (u1, u2, u3) = household
    task = make_task(group, u1.id)

    response = client.put(f"{API}/tasks/{task.id}/status", headers=auth_headers(u3), json={"status": "completed"})
    assert response.status_code == 404
    assert response.json()["message"] == "Assignment not found"


def test_invalid_status_value(client, household, make_task, auth_headers):
    group, (u1, u2, u3) = household
    task = make_task(group, u1.id)
    response = client.put(f"{API}/tasks/{task.id}/status", headers=auth_headers(u1), json={"status": "done"})
    assert response.status_code == 422


def test_creator_can_update_someone_elses_assignment(client, household, make_task, db, auth_headers):
    group, (u1, u2, u3) = household
    task = make_task(group, u2.id)
    db.add(Assignment(task_id=task.id, user_id=u3.id, week_start=current_week_start(), status="incomplete"))
    db.commit()

    forbidden = client.put(
        f"{API}/tasks/{task.id}/status", headers=auth_headers(u1), json={"status": "completed", "user_id": u3.id}
    )
    assert forbidden.status_code == 403

    allowed = client.put(
        f"{API}/tasks/{task.id}/status", headers=auth_headers(u2), json={"status": "completed", "user_id": u3.id}
    )
    assert allowed.status_code == 200
    assert allowed.json()["assignments"][0]["status"] == "completed"


def test_one_time_assignment_stays_open_across_weeks(db, household, make_task):
    group, (u1, u2, u3) = household
    now = datetime(2024, 5, 15, 12, 0)
    task = make_task(group, u1.id, recurrence="one-time", deadline=datetime(2024, 5, 30))
    db.add(Assignment(task_id=task.id, user_id=u2.id, week_start=datetime(2024, 5, 12), status="incomplete"))
    db.commit()

    updated = TaskService(db).update_task_status(u2.id, task.id, "completed", now=now + timedelta(days=7))

    assert updated.assignments[0].status == "completed"
    assert updated.assignments[0].completed_at == now + timedelta(days=7)


# ========== MANUAL ASSIGNMENT ==========

def test_assign_task_replaces_current_week(client, household, make_task, db, auth_headers):
    group, (u1, u2, u3) = household
    task = make_task(group, u2.id)
    week = current_week_start()
    db.add_all([
        Assignment(task_id=task.id, user_id=u1.id, week_start=week, status="in-progress"),
        Assignment(task_id=task.id, user_id=u2.id, week_start=week, status="incomplete"),
        Assignment(task_id=task.id, user_id=u3.id, week_start=week - timedelta(days=7), status="completed"),
    ])
    db.commit()

    response = client.post(
        f"{API}/tasks/{task.id}/assign", headers=auth_headers(u2), json={"user_ids": [u1.id, u3.id, u3.id]}
    )

    assert response.status_code == 200
    current = {
        a["user_id"]: a["status"]
        for a in response.json()["assignments"] if a["week_start"] == week.isoformat()
    }
    assert current == {u1.id: "in-progress", u3.id: "incomplete"}
    # Last week's history is untouched
    assert len(response.json()["assignments"]) == 3


def test_owner_can_assign_any_task(client, household, make_task, auth_headers):
    group, (u1, u2, u3) = household
    task = make_task(group, u2.id)
    response = client.post(f"{API}/tasks/{task.id}/assign", headers=auth_headers(u1), json={"user_ids": [u3.id]})
    assert response.status_code == 200


def test_assign_task_permission_and_validation(client, household, make_user, make_task, auth_headers):
    group, (u1, u2, u3) = household
    task = make_task(group, u2.id)
    outsider = make_user(name="Out")

    forbidden = client.post(f"{API}/tasks/{task.id}/assign", headers=auth_headers(u3), json={"user_ids": [u3.id]})
    assert forbidden.status_code == 403

    empty = client.post(f"{API}/tasks/{task.id}/assign", headers=auth_headers(u2), json={"user_ids": []})
    assert empty.status_code == 422

    stranger = client.post(
        f"{API}/tasks/{task.id}/assign", headers=auth_headers(u2), json={"user_ids": [outsider.id]}
    )
    assert stranger.status_code == 422


# ========== WEEKLY ==========

def test_assign_weekly_endpoint(client, household, make_task, auth_headers):
    group, (u1, u2, u3) = household
    make_task(group, u1.id, required_people=2)

    first = client.post(f"{API}/tasks/assign-weekly", headers=auth_headers(u3))
    assert first.status_code == 200
    body = first.json()
    assert body["assigned_tasks"] == 1
    assert body["week_start"] == current_week_start().isoformat()
    assert len(body["tasks"][0]["assignments"]) == 2

    second = client.post(f"{API}/tasks/assign-weekly", headers=auth_headers(u3))
    assert second.json() == {"assigned_tasks": 0, "week_start": body["week_start"], "tasks": []}


def test_assign_weekly_outside_group(client, make_user, auth_headers):
    loner = make_user()
    assert client.post(f"{API}/tasks/assign-weekly", headers=auth_headers(loner)).status_code == 404


# ========== DELETE ==========

def test_creator_deletes_task(client, household, make_task, db, auth_headers):
    group, (u1, u2, u3) = household
    task = make_task(group, u2.id)
    task_id = task.id
    db.add(Assignment(task_id=task_id, user_id=u2.id, week_start=current_week_start(), status="incomplete"))
    db.commit()

    response = client.delete(f"{API}/tasks/{task_id}", headers=auth_headers(u2))

    assert response.status_code == 204
    db.expire_all()
    assert db.get(Task, task_id) is None
    assert db.query(Assignment).filter(Assignment.task_id == task_id).count() == 0


def test_owner_deletes_task_others_cannot(client, household, make_task, auth_headers):
    group, (u1, u2, u3) = household
    task = make_task(group, u2.id)

    assert client.delete(f"{API}/tasks/{task.id}", headers=auth_headers(u3)).status_code == 403
    assert client.delete(f"{API}/tasks/{task.id}", headers=auth_headers(u1)).status_code == 204
    assert client.get(f"{API}/tasks/{task.id}", headers=auth_headers(u1)).status_code == 404
