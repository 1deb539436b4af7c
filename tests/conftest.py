from __future__ import annotations

import os
import shutil
import tempfile
from pathlib import Path

_DATA_DIR = Path(tempfile.mkdtemp(prefix="outreach-tests-"))
os.environ["APP_ENV"] = "test"
os.environ["DATABASE_URL"] = f"sqlite:///{_DATA_DIR / 'outreach.db'}"
os.environ["DATA_DIR"] = str(_DATA_DIR)
os.environ["UPLOAD_DIR"] = str(_DATA_DIR / "uploads")
os.environ["RESUME_DIR"] = str(_DATA_DIR / "resumes")
os.environ["SEND_DELAY_SEC"] = "0"

import pytest  # noqa: E402
from fastapi.testclient import TestClient  # noqa: E402

from outreach.api.app import create_app  # noqa: E402
from outreach.core.identity import Identity, hash_password  # noqa: E402
from outreach.db.base import Base  # noqa: E402
from outreach.db.init import ensure_data_directories  # noqa: E402
from outreach.db.repositories import Repository  # noqa: E402
from outreach.db.session import SessionLocal, engine  # noqa: E402

PASSWORD = "hunter22"


@pytest.fixture(autouse=True)
def reset_db() -> None:
    for name in ("uploads", "resumes"):
        shutil.rmtree(_DATA_DIR / name, ignore_errors=True)
    ensure_data_directories()
    Base.metadata.drop_all(bind=engine)
    Base.metadata.create_all(bind=engine)
    yield


@pytest.fixture
def upload_dir() -> Path:
    return _DATA_DIR / "uploads"


@pytest.fixture
def user():
    with SessionLocal() as db:
        repo = Repository(db)
        created = repo.create_user(
            username="ada",
            password_hash=hash_password(PASSWORD, iterations=1000),
            email="ada@example.com",
            name="Ada Lovelace",
        )
        return repo.update_user(
            created.id,
            {
                "title": "Software Engineer",
                "llm_api_key": "AIza-test-key",
                "apollo_api_key": "apollo-test-key",
                "gmail_refresh_token": "refresh-token",
                "gmail_connected": True,
            },
        )


@pytest.fixture
def identity(user) -> Identity:
    return Identity.from_user(user)


@pytest.fixture
def app():
    application = create_app()
    yield application
    application.dependency_overrides.clear()


@pytest.fixture
def client(app) -> TestClient:
    return TestClient(app)


@pytest.fixture
def auth_client(client: TestClient, user) -> TestClient:
    resp = client.post("/api/auth/login", json={"username": user.username, "password": PASSWORD})
    assert resp.status_code == 200
    return client
