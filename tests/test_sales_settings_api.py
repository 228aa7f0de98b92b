from pcdungeon import settings_store
from pcdungeon.database import db


def test_sales_overview(client, auth_headers):
    for amount, status, date in ((100, "completed", "2024-01-05T10:00:00"),
                                 (250.5, "completed", "2024-02-01T10:00:00"),
                                 (999, "cancelled", "2024-02-03T10:00:00")):
        resp = client.post("/api/sales/add", headers=auth_headers,
                           json={"product_name": "Build", "amount": amount, "customer": "Walk-in",
                                 "status": status, "date": date})
        assert resp.status_code == 201, resp.text

    overview = client.get("/api/sales/overview", headers=auth_headers).json()["data"]
    assert overview["total_sales"] == 350.5
    assert overview["completed_count"] == 2
    assert overview["monthly"] == [{"month": "2024-01", "total": 100}, {"month": "2024-02", "total": 250.5}]
    assert overview["recent_sales"][0]["amount"] == 999

    listed = client.get("/api/sales", headers=auth_headers).json()
    assert listed["total_results"] == 3


def test_negative_sale_is_rejected(client, auth_headers):
    resp = client.post("/api/sales/add", headers=auth_headers,
                       json={"product_name": "x", "amount": -1, "customer": "y"})
    assert resp.status_code == 400


def test_default_settings_seeded_once():
    assert settings_store.initialize_defaults() == 4
    assert settings_store.initialize_defaults() == 0
    assert settings_store.get_value("currency") == "AED"
    assert settings_store.get_value("missing", "fallback") == "fallback"


def test_settings_endpoints(client, auth_headers, customer_headers):
    settings_store.initialize_defaults()
    listed = client.get("/api/settings", params={"category": "tax"}).json()["data"]
    assert [s["key"] for s in listed] == ["tax_rate"]

    body = {"value": 7.5, "type": "number", "description": "VAT", "category": "tax"}
    assert client.put("/api/settings/tax_rate", json=body, headers=customer_headers).status_code == 403
    resp = client.put("/api/settings/tax_rate", json=body, headers=auth_headers)
    assert resp.json()["data"]["value"] == 7.5

    resp = client.post("/api/settings/bulk", headers=auth_headers, json={"settings": [
        {"key": "enable_compatibility_check", "value": False, "type": "boolean", "category": "features"},
        {"key": "store_name", "value": "PC Dungeon", "type": "string"},
    ]})
    assert resp.json()["results"] == 2
    assert client.get("/api/settings/store_name").json()["data"]["category"] == "general"
    assert client.get("/api/settings/nope").status_code == 404
    assert db["settings"].count_documents({}) == 5


def test_compatibility_toggle_skips_warnings(client, auth_headers, make_category, make_component):
    settings_store.upsert("enable_compatibility_check", {"value": False, "type": "boolean"})
    cpu_cat, board_cat = make_category("CPU"), make_category("Motherboard")
    cpu = make_component(cpu_cat, "Ryzen", tags=["am4"])
    board = make_component(board_cat, "B650", tags=["am5"])
    client.post("/api/compatibility", headers=auth_headers, json={
        "name": "Socket", "source_category": cpu_cat, "target_category": board_cat,
        "rules": [{"source_tag": "am5", "target_tag": "am5"}],
    })
    resp = client.post("/api/user-builds/validate", json=[
        {"category": cpu_cat, "component": cpu["id"]}, {"category": board_cat, "component": board["id"]}])
    data = resp.json()["data"]
    assert data["compatibility_checked"] is False
    assert data["warnings"] == []
