# tests/conftest.py
from __future__ import annotations

import os
import threading
from collections.abc import Callable, Generator, Iterator, Mapping
from datetime import datetime
from typing import Any

import pytest
from fastapi import FastAPI
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.engine import Engine
from sqlalchemy.orm import Session, sessionmaker
from sqlalchemy.pool import StaticPool

os.environ.setdefault("PYTEST_RUNNING", "true")
os.environ.setdefault("SECRET_KEY", "test-secret-key")
os.environ.setdefault("DATABASE_URL", "sqlite://")
os.environ["SWEEPER_ENABLED"] = "false"

from campus_pulse.api.v1 import dependencies as api_dependencies  # noqa: E402
from campus_pulse.core.security import create_access_token  # noqa: E402
from campus_pulse.db.session import Base  # noqa: E402
from campus_pulse.db.session import get_db as app_get_session  # noqa: E402
from campus_pulse.main import app as fastapi_app  # noqa: E402
from campus_pulse.models import PulsePost  # noqa: E402
from campus_pulse.schemas.user import UserProfile  # noqa: E402
from campus_pulse.services import post_service  # noqa: E402
from campus_pulse.services.collaborators import CollaboratorError  # noqa: E402
from campus_pulse.services.pair_lock import PairLockService  # noqa: E402

TEST_DB_URL = "sqlite://"


class FakeProfileDirectory:
    """Profile directory returning predictable names, optionally failing."""

    def __init__(self) -> None:
        self.fail = False
        self.lookups: list[str] = []

    def get_user_profile(self, user_id: str) -> UserProfile:
        self.lookups.append(user_id)
        if self.fail:
            raise CollaboratorError("profile service down")
        return UserProfile(
            id=user_id,
            name=user_id.capitalize(),
            avatar_url=f"https://cdn.test/{user_id}.png",
        )


class FakeNotifier:
    """Notifier recording every dispatched notification."""

    enabled = True

    def __init__(self) -> None:
        self.fail = False
        self.sent: list[tuple[str, str, dict[str, Any]]] = []
        self._lock = threading.Lock()

    def send_notification(self, user_id: str, kind: str, payload: Mapping[str, Any]) -> None:
        if self.fail:
            raise CollaboratorError("notification service down")
        with self._lock:
            self.sent.append((user_id, kind, dict(payload)))

    def kinds_for(self, user_id: str) -> list[str]:
        return [kind for recipient, kind, _ in self.sent if recipient == user_id]


@pytest.fixture(scope="session")
def engine() -> Generator[Engine, None, None]:
    engine = create_engine(
        TEST_DB_URL,
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    Base.metadata.create_all(bind=engine)
    try:
        yield engine
    finally:
        Base.metadata.drop_all(bind=engine)
        engine.dispose()


@pytest.fixture()
def db_session(engine: Engine) -> Iterator[Session]:
    SessionLocal = sessionmaker(bind=engine, autocommit=False, autoflush=False)
    session = SessionLocal()
    try:
        yield session
    finally:
        session.rollback()
        session.close()

        # Services commit, so every test starts from empty tables.
        with engine.begin() as cleanup_conn:
            for table in reversed(Base.metadata.sorted_tables):
                cleanup_conn.execute(table.delete())


@pytest.fixture(scope="session")
def app() -> FastAPI:
    return fastapi_app


@pytest.fixture()
def profiles() -> FakeProfileDirectory:
    return FakeProfileDirectory()


@pytest.fixture()
def notifier() -> FakeNotifier:
    return FakeNotifier()


@pytest.fixture()
def pair_locks() -> PairLockService:
    return PairLockService(None, timeout_seconds=1.0, ttl_seconds=5)


@pytest.fixture(autouse=True)
def override_session_dependency(app: FastAPI, db_session: Session) -> Iterator[None]:
    def _get_session_override() -> Generator[Session, None, None]:
        yield db_session

    app.dependency_overrides[app_get_session] = _get_session_override
    try:
        yield
    finally:
        app.dependency_overrides.pop(app_get_session, None)


@pytest.fixture(autouse=True)
def override_collaborators(
    app: FastAPI,
    profiles: FakeProfileDirectory,
    notifier: FakeNotifier,
    pair_locks: PairLockService,
) -> Iterator[None]:
    overrides: dict[Callable[..., Any], Callable[[], Any]] = {
        api_dependencies.get_profile_directory_dep: lambda: profiles,
        api_dependencies.get_notifier_dep: lambda: notifier,
        api_dependencies.get_pair_lock_service_dep: lambda: pair_locks,
    }
    app.dependency_overrides.update(overrides)
    try:
        yield
    finally:
        for dependency in overrides:
            app.dependency_overrides.pop(dependency, None)


@pytest.fixture()
def client(app: FastAPI) -> Iterator[TestClient]:
    with TestClient(app, base_url="http://test") as test_client:
        yield test_client


def auth_headers(user_id: str) -> dict[str, str]:
    """Return bearer headers for ``user_id``."""
    return {"Authorization": f"Bearer {create_access_token(user_id)}"}


@pytest.fixture()
def alice_headers() -> dict[str, str]:
    return auth_headers("alice")


@pytest.fixture()
def bob_headers() -> dict[str, str]:
    return auth_headers("bob")


@pytest.fixture()
def carol_headers() -> dict[str, str]:
    return auth_headers("carol")


@pytest.fixture()
def make_post(db_session: Session) -> Callable[..., str]:
    """Return a factory that creates a post and returns its id."""

    def _make_post(
        author_id: str = "alice",
        content: str = "Saw you at the library, blue scarf?",
        category: str = "missed_connection",
        is_anonymous: bool = True,
        now: datetime | None = None,
    ) -> str:
        post: PulsePost = post_service.create_post(
            db_session,
            author_id=author_id,
            content=content,
            category=category,
            is_anonymous=is_anonymous,
            now=now,
        )
        return post.id

    return _make_post
