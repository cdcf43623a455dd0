import os

# Importing src.api.main builds the module-level app; keep it off the working directory.
os.environ.setdefault("SQLITE_DB", ":memory:")
os.environ.setdefault("SECRET_OR_KEY", "import-time-secret-not-used-by-the-tests")

import pytest
from fastapi.testclient import TestClient

# Ensure we import the app from our main entrypoint
from src.api.config import Settings
from src.api.main import create_app

TEST_SECRET = "test-secret-key-that-is-long-enough-for-hs256"


@pytest.fixture()
def settings(tmp_path):
    return Settings(
        sqlite_db=os.path.join(tmp_path, "test.db"),
        secret_or_key=TEST_SECRET,
        cors_allow_origins=["http://localhost:3000"],
    )


@pytest.fixture()
def client(settings):
    app = create_app(settings)
    return TestClient(app)


def register(client, username="alice", email="alice@example.com", password="secret123"):
    res = client.post("/api/users/register", json={"username": username, "email": email, "password": password})
    assert res.status_code == 200, res.text
    return res.json()


def auth(token):
    return {"Authorization": f"Bearer {token}"}
