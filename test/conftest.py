"""
Shared fixtures: in-memory SQLite, fast bcrypt, fresh tables for every test.
Environment is set before backend is imported so config picks it up.
"""

import os

os.environ["DATABASE_URL"] = "sqlite://"
os.environ["BCRYPT_ROUNDS"] = "4"
os.environ["JWT_SECRET"] = "test-secret"

import pytest
from fastapi.testclient import TestClient

from backend.api.database import SessionLocal, drop_db, init_db
from backend.api.main import app
from backend.api.store import make_store
from backend.engine.records import UserRecord


@pytest.fixture(autouse=True)
def fresh_db():
    drop_db()
    init_db()
    yield


@pytest.fixture
def store():
    db = SessionLocal()
    try:
        yield make_store(db)
    finally:
        db.close()


@pytest.fixture
def make_user(store):
    """Insert a user directly through the store (password is not a real hash)."""
    def _make(username: str, role: str = "user") -> UserRecord:
        return store.users.insert(UserRecord(
            name=username.capitalize(),
            username=username,
            email=f"{username}@mafiamail.com",
            password="not-a-hash",
            role=role,
        ))
    return _make


@pytest.fixture
def client():
    with TestClient(app) as c:
        yield c


def signup(client, username: str, password: str = "secret123") -> dict:
    """Register through the API and return the created user dict."""
    resp = client.post("/api/users/signup", json={
        "name": username.capitalize(),
        "email": f"{username}@mafiamail.com",
        "username": username,
        "password": password,
    })
    assert resp.status_code == 201, resp.text
    return resp.json()["user"]


def login(client, username: str, password: str = "secret123") -> dict:
    resp = client.post("/api/users/login", json={"email": f"{username}@mafiamail.com", "password": password})
    assert resp.status_code == 200, resp.text
    return resp.json()


def auth_header(client, username: str, password: str = "secret123") -> dict:
    return {"Authorization": f"Bearer {login(client, username, password)['access_token']}"}
