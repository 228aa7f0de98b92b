import pytest
from fastapi.testclient import TestClient
from pymongo.errors import DuplicateKeyError

from pcdungeon import config
from pcdungeon.database import create_document, db, ensure_indexes
from pcdungeon.main import app
from pcdungeon.routers import suppliers
from pcdungeon.security import ensure_admin_account


@pytest.fixture
def admin_env(monkeypatch):
    monkeypatch.setattr(config, "ADMIN_EMAIL", "Owner@PCDungeon.com")
    monkeypatch.setattr(config, "ADMIN_PASSWORD", "changeme1")
    monkeypatch.setattr(config, "ADMIN_USERNAME", "owner")


def test_startup_prepares_a_fresh_database(admin_env):
    with TestClient(app) as client:
        assert client.get("/health").json()["status"] == "ok"
        resp = client.post("/api/auth/admin/login", json={"email": "owner@pcdungeon.com", "password": "changeme1"})
        assert resp.status_code == 200, resp.text

    assert db["settings"].count_documents({}) == 4
    assert "uniq_user_email" in db["user"].index_information()
    assert "uniq_visitor_qr_id" in db["visitor"].index_information()


def test_admin_bootstrap_is_idempotent():
    first = ensure_admin_account("boss@pcdungeon.com", "secret123", "boss")
    second = ensure_admin_account("BOSS@pcdungeon.com", "other-password", "boss")
    assert first["_id"] == second["_id"]
    assert first["role"] == "admin"
    assert first["permissions"]["can_manage_users"] is True
    assert db["user"].count_documents({}) == 1


def test_admin_bootstrap_needs_credentials():
    assert ensure_admin_account("", "secret123") is None
    assert db["user"].count_documents({}) == 0


def test_unique_indexes():
    ensure_indexes()
    create_document("user", {"username": "a", "email": "same@pcdungeon.com"})
    with pytest.raises(DuplicateKeyError):
        create_document("user", {"username": "b", "email": "same@pcdungeon.com"})
    create_document("settings", {"key": "currency"})
    with pytest.raises(DuplicateKeyError):
        create_document("settings", {"key": "currency"})

    # suppliers may share a missing email
    create_document("supplier", {"name": "One", "email": None})
    create_document("supplier", {"name": "Two", "email": None})
    create_document("supplier", {"name": "Three", "email": "sales@three.com"})
    with pytest.raises(DuplicateKeyError):
        create_document("supplier", {"name": "Four", "email": "sales@three.com"})


def test_duplicate_key_from_store_is_a_bad_request(client, auth_headers, monkeypatch):
    ensure_indexes()
    monkeypatch.setattr(suppliers, "_ensure_unique_email", lambda *args, **kwargs: None)
    body = {"name": "Dup", "contact": "Sam", "phone": "1", "address": "Dubai", "email": "dup@pcdungeon.com"}
    assert client.post("/api/suppliers", headers=auth_headers, json=body).status_code == 201
    resp = client.post("/api/suppliers", headers=auth_headers, json=body)
    assert resp.status_code == 400
    assert resp.json() == {"status": "error", "message": "Duplicate value for a unique field"}
