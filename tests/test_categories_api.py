import pytest

from pcdungeon import categories
from pcdungeon.errors import ValidationError


def test_duplicate_names_are_case_insensitive(client, auth_headers, make_category):
    make_category("Graphics Cards")
    resp = client.post("/api/categories", headers=auth_headers, json={"name": "graphics cards"})
    assert resp.status_code == 400


def test_field_names_unique_on_create(client, auth_headers):
    field = {"name": "socket", "label": "Socket", "type": "text"}
    resp = client.post("/api/categories", headers=auth_headers, json={"name": "CPU", "fields": [field, field]})
    assert resp.status_code == 400
    assert "Duplicate field name" in resp.json()["message"]


def test_field_lifecycle(client, auth_headers, make_category):
    category_id = make_category("Storage")
    url = f"/api/categories/{category_id}/fields"

    first = client.post(url, headers=auth_headers,
                        json={"name": "capacity", "label": "Capacity", "type": "number", "unit": "GB"})
    assert first.status_code == 201, first.text
    second = client.post(url, headers=auth_headers,
                         json={"name": "interface", "label": "Interface", "type": "select",
                               "options": ["SATA", "NVMe"]})
    assert second.json()["data"]["sort_order"] == 1

    duplicate = client.post(url, headers=auth_headers, json={"name": "capacity", "label": "x", "type": "text"})
    assert duplicate.status_code == 400

    field_id = first.json()["data"]["id"]
    resp = client.put(f"{url}/{field_id}", headers=auth_headers, json={"required": True, "min_value": 1})
    assert resp.json()["data"]["required"] is True
    assert resp.json()["data"]["type"] == "number"

    bad = client.put(f"{url}/{field_id}", headers=auth_headers, json={"min_value": 10, "max_value": 1})
    assert bad.status_code == 400

    assert client.delete(f"{url}/{field_id}", headers=auth_headers).status_code == 200
    fields = client.get(url).json()["data"]
    assert [(f["name"], f["sort_order"]) for f in fields] == [("interface", 0)]

    assert client.delete(f"{url}/missing", headers=auth_headers).status_code == 404


def test_delete_blocked_while_components_reference_it(client, auth_headers, make_category, make_component):
    category_id = make_category("Cooling")
    component = make_component(category_id, "NH-D15")

    resp = client.delete(f"/api/categories/{category_id}", headers=auth_headers)
    assert resp.status_code == 400
    assert client.get(f"/api/categories/{category_id}").json()["data"]["component_count"] == 1

    client.delete(f"/api/components/{component['id']}", headers=auth_headers)
    assert client.delete(f"/api/categories/{category_id}", headers=auth_headers).status_code == 200
    assert client.get(f"/api/categories/{category_id}").status_code == 404


def test_update_and_list(client, auth_headers, make_category):
    make_category("Case")
    other = make_category("Fans")
    resp = client.put(f"/api/categories/{other}", headers=auth_headers, json={"sort_order": -1, "required": True})
    assert resp.json()["data"]["required"] is True
    names = [c["name"] for c in client.get("/api/categories").json()["data"]]
    assert names == ["Fans", "Case"]

    clash = client.put(f"/api/categories/{other}", headers=auth_headers, json={"name": "CASE"})
    assert clash.status_code == 400


def _category(*fields):
    return {"fields": [{"label": f["name"].title(), "is_active": True, "sort_order": i, **f}
                       for i, f in enumerate(fields)]}


@pytest.mark.parametrize("value,problem", [
    ("sales@pcdungeon.com", None),
    ("sales@example..com", "Contact must be a valid email"),
    ("no-at-sign", "Contact must be a valid email"),
])
def test_email_specs(value, problem):
    category = _category({"name": "contact", "type": "email"})
    if problem is None:
        categories.validate_specs(category, {"contact": value})
    else:
        with pytest.raises(ValidationError, match=problem):
            categories.validate_specs(category, {"contact": value})


@pytest.mark.parametrize("value,ok", [
    ("https://pcdungeon.com/specs/rtx-4070", True),
    ("ftp://files.pcdungeon.com/manual.pdf", False),
    ("not a url", False),
])
def test_url_specs(value, ok):
    category = _category({"name": "manual", "type": "url"})
    if ok:
        categories.validate_specs(category, {"manual": value})
    else:
        with pytest.raises(ValidationError, match="Manual must be a valid URL"):
            categories.validate_specs(category, {"manual": value})


@pytest.mark.parametrize("value,problem", [
    (0, "Capacity must be at least 1"),
    (256, "Capacity must be at most 128"),
    ("lots", "Capacity must be a number"),
    (True, "Capacity must be a number"),
])
def test_number_spec_bounds(value, problem):
    category = _category({"name": "capacity", "type": "number", "min_value": 1, "max_value": 128})
    with pytest.raises(ValidationError, match=problem):
        categories.validate_specs(category, {"capacity": value})
    categories.validate_specs(category, {"capacity": 64})


def test_invalid_email_spec_rejected_over_http(client, auth_headers, make_category):
    category = make_category("Services", fields=[{"name": "contact", "label": "Contact", "type": "email"}])
    body = {"name": "Warranty desk", "category": category,
            "pricing": {"individual_price": {"amount": 10}},
            "technical_specs": {"contact": "sales@example..com"}}
    resp = client.post("/api/components", headers=auth_headers, json=body)
    assert resp.status_code == 400
    assert resp.json()["message"] == "Contact must be a valid email"
