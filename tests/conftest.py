"""Shared fixtures: in-memory database, fixed clock, in-memory blob store.

The ``people`` fixture seeds three departments, one admin and three
members (alice, bob, carol) and returns their identities.
"""
from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime, timezone

import pytest
from fastapi.testclient import TestClient
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from noticeboard.core.exceptions import StorageFailure
from noticeboard.core.policies import Identity, Role
from noticeboard.core.security import ScryptPasswordHasher
from noticeboard.db.base import Base
from noticeboard.db.models import Department, User
from noticeboard.db.session import create_db_engine

FIXED_NOW = datetime(2026, 3, 15, 9, 30, tzinfo=timezone.utc)


class MemoryBlobStorage:
    """Keeps saved files in a dict and records every delete."""

    def __init__(self) -> None:
        self.files: dict[str, bytes] = {}
        self.deleted: list[str] = []
        self.fail_saves = False
        self.fail_deletes = False
        self._counter = 0

    def save(self, content: bytes, original_name: str, mime_type: str | None = None) -> str:
        if self.fail_saves:
            raise StorageFailure("Could not store the uploaded file")
        self._counter += 1
        reference = f"/uploads/test-{self._counter}-{original_name}"
        self.files[reference] = content
        return reference

    def delete(self, reference: str) -> None:
        self.deleted.append(reference)
        if self.fail_deletes:
            raise OSError("device busy")
        self.files.pop(reference, None)


@dataclass
class People:
    admin: Identity
    alice: Identity
    bob: Identity
    carol: Identity
    health: Department
    revenue: Department
    education: Department


def add_user(db_session, username: str, role: str = "member", department=None, active: bool = True) -> User:
    user = User(
        username=username,
        password_hash="scrypt$unused",
        role=role,
        department_id=department.id if department is not None else None,
        is_active=active,
    )
    db_session.add(user)
    db_session.flush()
    return user


def identity_of(user: User) -> Identity:
    return Identity(id=user.id, role=Role(user.role), active=user.is_active, username=user.username)


# ---------------------------------------------------------------------------
# Fixtures
# ---------------------------------------------------------------------------

@pytest.fixture()
def engine():
    engine = create_db_engine("sqlite+pysqlite:///:memory:", poolclass=StaticPool)
    Base.metadata.create_all(bind=engine)
    yield engine
    engine.dispose()


@pytest.fixture()
def db_session(engine):
    Session = sessionmaker(bind=engine, autocommit=False, autoflush=False)
    with Session() as session:
        yield session


@pytest.fixture()
def storage() -> MemoryBlobStorage:
    return MemoryBlobStorage()


@pytest.fixture()
def clock():
    return lambda: FIXED_NOW


@pytest.fixture()
def hasher() -> ScryptPasswordHasher:
    return ScryptPasswordHasher(n=2**8)


@pytest.fixture()
def people(db_session) -> People:
    health = Department(code="HEALTH", name="Health")
    revenue = Department(code="REVENUE", name="Revenue")
    education = Department(code="EDUCATION", name="Education")
    db_session.add_all([health, revenue, education])
    db_session.flush()

    admin = add_user(db_session, "admin", role="admin")
    alice = add_user(db_session, "alice", department=health)
    bob = add_user(db_session, "bob", department=revenue)
    carol = add_user(db_session, "carol", department=education)
    return People(
        admin=identity_of(admin),
        alice=identity_of(alice),
        bob=identity_of(bob),
        carol=identity_of(carol),
        health=health,
        revenue=revenue,
        education=education,
    )


@pytest.fixture
def client(db_session, storage, monkeypatch: pytest.MonkeyPatch) -> TestClient:
    monkeypatch.setenv("DATABASE_URL", "sqlite+pysqlite:///:memory:")

    from noticeboard.api.deps import get_blob_storage, get_db
    from noticeboard.core.settings import get_settings

    get_settings.cache_clear()

    from noticeboard.main import app

    def _override_db():
        yield db_session

    app.dependency_overrides[get_db] = _override_db
    app.dependency_overrides[get_blob_storage] = lambda: storage

    with TestClient(app, raise_server_exceptions=False) as test_client:
        yield test_client

    app.dependency_overrides.clear()
    get_settings.cache_clear()
