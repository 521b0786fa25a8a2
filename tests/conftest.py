"""Shared pytest configuration: in-memory database and API test client."""

from __future__ import annotations

import os
import sys
import uuid
from collections.abc import Iterable
from pathlib import Path

import pytest

os.environ.setdefault("SPENDTRACK_DATABASE_URL", "sqlite://")
os.environ.setdefault("SPENDTRACK_SEED_ON_STARTUP", "0")


def _insert_repo_root() -> None:
    """Make sure the repository root is importable without an install."""

    repo_root = Path(__file__).resolve().parents[1]
    if str(repo_root) not in sys.path:
        sys.path.insert(0, str(repo_root))


_insert_repo_root()

from fastapi.testclient import TestClient  # noqa: E402
from sqlalchemy.orm import Session, sessionmaker  # noqa: E402

import spendtrack.models  # noqa: E402,F401  # register tables on the metadata
from spendtrack import database, models  # noqa: E402
from spendtrack.database import Base, build_engine  # noqa: E402
from spendtrack.server import app  # noqa: E402


def pytest_report_header(config: pytest.Config) -> Iterable[str]:  # pragma: no cover - pytest hook
    log_level = os.environ.get("SPENDTRACK_LOG_LEVEL", "INFO")
    return [f"spendtrack repo: {Path.cwd()}", f"SPENDTRACK_LOG_LEVEL={log_level}"]


@pytest.fixture(autouse=True)
def _set_verbose_logging(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("SPENDTRACK_LOG_LEVEL", "INFO")
    monkeypatch.delenv("SPENDTRACK_JSON_LOGS", raising=False)


@pytest.fixture(scope="session")
def engine():
    test_engine = build_engine("sqlite://")
    Base.metadata.create_all(bind=test_engine)
    yield test_engine
    Base.metadata.drop_all(bind=test_engine)


@pytest.fixture()
def db_session(engine):
    connection = engine.connect()
    transaction = connection.begin()
    TestingSessionLocal = sessionmaker(bind=connection, autoflush=False, expire_on_commit=False)
    session: Session = TestingSessionLocal()
    try:
        yield session
    finally:
        session.close()
        transaction.rollback()
        connection.close()


@pytest.fixture()
def client(db_session):
    def override_get_db():
        yield db_session

    app.dependency_overrides[database.get_db] = override_get_db
    with TestClient(app) as test_client:
        yield test_client
    app.dependency_overrides.clear()


@pytest.fixture()
def user_id() -> uuid.UUID:
    return uuid.uuid4()


@pytest.fixture()
def auth_headers(user_id: uuid.UUID) -> dict[str, str]:
    return {"X-User-ID": str(user_id)}


@pytest.fixture()
def food_category(db_session: Session) -> models.Category:
    category = models.Category(name="Food & Dining", color_code="#FF5733", is_default=True)
    db_session.add(category)
    db_session.flush()
    return category


@pytest.fixture()
def travel_category(db_session: Session) -> models.Category:
    category = models.Category(name="Travel", color_code="#3366FF", is_default=True)
    db_session.add(category)
    db_session.flush()
    return category
