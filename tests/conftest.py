import os
from unittest import mock

import mongomock
import pytest

os.environ.setdefault("DATABASE_URL", "mongodb://localhost:27017")
os.environ.setdefault("DATABASE_NAME", "pcdungeon_test")
os.environ.setdefault("JWT_SECRET", "test-secret")

# the client is created at import time, so swap the driver before importing the app
with mock.patch("pymongo.MongoClient", mongomock.MongoClient):
    from pcdungeon import database
    from pcdungeon.main import app

from fastapi.testclient import TestClient

from pcdungeon.database import create_document, db
from pcdungeon.security import create_token, hash_password


@pytest.fixture(autouse=True)
def clean_db():
    """Every test starts from empty collections."""
    for name in database.db.list_collection_names():
        database.db.drop_collection(name)
    yield


@pytest.fixture
def client():
    return TestClient(app)


def _make_user(role: str, username: str, email: str) -> dict:
    user_id = create_document("user", {
        "username": username,
        "email": email,
        "hashed_password": hash_password("secret123"),
        "role": role,
        "status": "active",
    })
    return database.find_by_id("user", user_id)


@pytest.fixture
def admin_user():
    return _make_user("admin", "admin", "admin@pcdungeon.com")


@pytest.fixture
def auth_headers(admin_user):
    """Bearer header for an admin account."""
    return {"Authorization": f"Bearer {create_token(admin_user)}"}


@pytest.fixture
def customer_headers():
    user = _make_user("customer", "shopper", "shopper@example.com")
    return {"Authorization": f"Bearer {create_token(user)}"}


def money(amount: float) -> dict:
    return {"amount": amount, "currency": "AED"}


@pytest.fixture
def make_category(client, auth_headers):
    def _make(name: str, required: bool = False, fields=None) -> str:
        resp = client.post("/api/categories", headers=auth_headers,
                           json={"name": name, "required": required, "fields": fields or []})
        assert resp.status_code == 201, resp.text
        return resp.json()["data"]["id"]
    return _make


@pytest.fixture
def make_component(client, auth_headers):
    def _make(category_id: str, name: str, individual: float = 100, build: float = 90,
              brand: str = "Acme", tags=None, stock: int = 10, **extra) -> dict:
        body = {
            "name": name,
            "category": category_id,
            "brand": brand,
            "pricing": {"cost": money(individual * 0.8), "individual_price": money(individual),
                        "build_price": money(build)},
            "availability": {"in_stock": True, "stock_count": stock},
            "tags": tags or [],
        }
        body.update(extra)
        resp = client.post("/api/components", headers=auth_headers, json=body)
        assert resp.status_code == 201, resp.text
        return resp.json()["data"]
    return _make
