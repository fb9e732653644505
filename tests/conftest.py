# tests/conftest.py

from __future__ import annotations

import os
import tempfile
from datetime import datetime, timedelta, timezone

# Settings are read at import time, so they must be in place before the app loads.
os.environ.setdefault("UPLOAD_DIR", tempfile.mkdtemp())
os.environ.setdefault("JWT_SECRET", "test-secret")
os.environ.setdefault("ADMIN_INVITE_TOKEN", "let-me-in")

import pytest
from fastapi.testclient import TestClient

from access import create_token
from lifecycle import TaskLifecycle
from schemas import CurrentUser, Task, User
from stores import get_task_store, get_user_store

from .fakes import InMemoryTaskStore, InMemoryUserStore


def identity(user: User) -> CurrentUser:
    return CurrentUser(id=user.id, email=user.email, name=user.name, role=user.role)


def bearer(user: User) -> dict:
    return {"Authorization": f"Bearer {create_token(user.id)}"}


def make_task(*assignees: User, **fields) -> Task:
    fields.setdefault("title", "Write report")
    fields.setdefault("due_date", datetime.now(timezone.utc) + timedelta(days=3))
    return Task(assigned_to=[u.id for u in assignees], **fields)


@pytest.fixture()
def user_store() -> InMemoryUserStore:
    return InMemoryUserStore()


@pytest.fixture()
def task_store() -> InMemoryTaskStore:
    return InMemoryTaskStore()


@pytest.fixture()
def admin(user_store: InMemoryUserStore) -> User:
    return user_store.seed(User(email="boss@acme.io", name="Boss", password_hash="x", role="admin"))


@pytest.fixture()
def member(user_store: InMemoryUserStore) -> User:
    return user_store.seed(
        User(email="ana@acme.io", name="Ana", password_hash="x", profile_image_url="http://img/ana.png")
    )


@pytest.fixture()
def outsider(user_store: InMemoryUserStore) -> User:
    return user_store.seed(User(email="bob@acme.io", name="Bob", password_hash="x"))


@pytest.fixture()
def lifecycle(task_store: InMemoryTaskStore, user_store: InMemoryUserStore) -> TaskLifecycle:
    return TaskLifecycle(task_store, user_store)


@pytest.fixture()
def client(user_store: InMemoryUserStore, task_store: InMemoryTaskStore):
    """
    TestClient wired to the in-memory stores.

    Used without a `with` block so the app's lifespan (MongoDB ping) never runs.
    """
    from main import app

    app.dependency_overrides[get_user_store] = lambda: user_store
    app.dependency_overrides[get_task_store] = lambda: task_store
    yield TestClient(app)
    app.dependency_overrides.clear()
