"""Tests for application-level endpoints and error rendering."""

from sqlalchemy.exc import OperationalError
from sqlalchemy.orm.exc import StaleDataError

from housemate.config import settings
from housemate.services.groups import GroupService


def test_health(client):
    response = client.get("/health")
    assert response.status_code == 200
    assert response.json() == {"status": "healthy"}


def test_root(client):
    assert client.get("/").json()["docs"] == "/docs"


def test_join_code_exhaustion_is_a_storage_failure(client, make_user, make_group, auth_headers, monkeypatch):
    taken = make_user(name="A")
    make_group(taken.id, [], join_code="ZZZZ")
    user = make_user(name="B")
    monkeypatch.setattr("housemate.services.groups.generate_join_code", lambda: "ZZZZ")

    response = client.post(f"{settings.API_V1_PREFIX}/groups", headers=auth_headers(user), json={"name": "Flat"})

    assert response.status_code == 500
    assert response.json() == {"success": False, "kind": "storage-failure", "message": "Failed to generate unique join code"}


def test_join_code_taken_at_insert_is_retried(client, make_user, make_group, auth_headers, monkeypatch):
    taken = make_user(name="A")
    make_group(taken.id, [], join_code="ZZZZ")
    user = make_user(name="B")
    # The first code passes the lookup but loses to a concurrent insert
    codes = iter(["ZZZZ", "K7Q2"])
    monkeypatch.setattr(GroupService, "_unique_join_code", lambda self: next(codes))

    response = client.post(f"{settings.API_V1_PREFIX}/groups", headers=auth_headers(user), json={"name": "Flat"})

    assert response.status_code == 201
    assert response.json()["join_code"] == "K7Q2"
    assert response.json()["owner"]["id"] == user.id


def test_concurrent_modification_is_a_conflict(client, make_user, auth_headers, monkeypatch):
    user = make_user()

    def lost_race(self, user_id):
        raise StaleDataError("UPDATE statement on table 'groups' expected to update 1 row(s); 0 were matched.")

    monkeypatch.setattr(GroupService, "describe_group", lost_race)
    response = client.get(f"{settings.API_V1_PREFIX}/groups", headers=auth_headers(user))

    assert response.status_code == 409
    assert response.json()["success"] is False
    assert response.json()["kind"] == "conflict"


def test_storage_errors_are_rendered_without_details(client, make_user, auth_headers, monkeypatch):
    user = make_user()

    def broken(self, user_id):
        raise OperationalError("SELECT groups", {}, Exception("disk I/O error"))

    monkeypatch.setattr(GroupService, "describe_group", broken)
    response = client.get(f"{settings.API_V1_PREFIX}/groups", headers=auth_headers(user))

    assert response.status_code == 500
    assert response.json() == {"success": False, "kind": "storage-failure", "message": "Storage failure"}
