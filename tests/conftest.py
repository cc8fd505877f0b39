import os

# Settings are read at import time, so configure them before importing housemate
os.environ.setdefault("DATABASE_URL", "sqlite://")
os.environ.setdefault("SECRET_KEY", "test-secret-key")

import itertools
from datetime import datetime

import pytest
from fastapi.testclient import TestClient
from sqlalchemy import create_engine, insert, update
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from housemate.core.security import create_access_token
from housemate.database import Base, get_db
from housemate.main import app
from housemate.models import Group, Task, User, group_members
from housemate.services.notifications import broadcaster

# In-memory SQLite shared by every session of a test
test_engine = create_engine(
    "sqlite://",
    connect_args={"check_same_thread": False},
    poolclass=StaticPool,
)
TestingSessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=test_engine)


def override_get_db():
    db = TestingSessionLocal()
    try:
        yield db
    finally:
        db.close()


app.dependency_overrides[get_db] = override_get_db

_codes = itertools.count(1)


@pytest.fixture(autouse=True)
def setup_teardown():
    """Recreate the schema around every test."""
    Base.metadata.drop_all(bind=test_engine)
    Base.metadata.create_all(bind=test_engine)
    yield
    Base.metadata.drop_all(bind=test_engine)


@pytest.fixture
def client():
    return TestClient(app)


@pytest.fixture
def db():
    db = TestingSessionLocal()
    yield db
    db.close()


@pytest.fixture
def make_user(db):
    """Create a user directly in the database."""
    counter = itertools.count(1)

    def _make(name="Roommate", email=None):
        n = next(counter)
        user = User(email=email or f"user{n}@example.com", name=name)
        db.add(user)
        db.commit()
        db.refresh(user)
        return user

    return _make


@pytest.fixture
def make_group(db):
    """Create a group with explicit membership rows.

    ``members`` is a list of ``(user_id, joined_at)`` pairs.
    """

    def _make(owner_id, members, name="Flat 4B", join_code=None):
        group = Group(
            name=name,
            join_code=join_code or f"G{next(_codes):03d}",
            owner_id=owner_id
        )
        db.add(group)
        db.flush()
        for user_id, joined_at in members:
            db.execute(
                insert(group_members).values(group_id=group.id, user_id=user_id, joined_at=joined_at)
            )
        db.commit()
        db.refresh(group)
        return group

    return _make


@pytest.fixture
def make_task(db):
    """Create a task row directly, bypassing request validation."""

    def _make(group, creator_id, name="Dishes", recurrence="weekly", difficulty=2,
              required_people=1, created_at=None, deadline=None):
        task = Task(
            group_id=group.id,
            name=name,
            difficulty=difficulty,
            recurrence=recurrence,
            required_people=required_people,
            deadline=deadline,
            created_by=creator_id,
            created_at=created_at or datetime(2024, 1, 1)
        )
        db.add(task)
        db.commit()
        if required_people is None:
            # The ORM would apply the column default; emulate a legacy row
            db.execute(update(Task).where(Task.id == task.id).values(required_people=None))
            db.commit()
        db.refresh(task)
        return task

    return _make


@pytest.fixture
def auth_headers():
    """Build Authorization headers for a user."""

    def _headers(user):
        token = create_access_token(data={"sub": str(user.id), "email": user.email})
        return {"Authorization": f"Bearer {token}"}

    return _headers


@pytest.fixture
def events():
    """Capture events published on the group broadcaster."""
    captured = []
    unsubscribe = broadcaster.subscribe(lambda group_id, event, payload: captured.append((group_id, event, payload)))
    yield captured
    unsubscribe()
