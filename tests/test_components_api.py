def money(amount):
    return {"amount": amount, "currency": "AED"}


def test_create_syncs_legacy_price(client, auth_headers, make_category):
    category = make_category("CPU")
    resp = client.post("/api/components", headers=auth_headers, json={
        "name": "Core i7",
        "brand": "Intel",
        "model": "13700K",
        "category": category,
        "pricing": {"cost": money(400), "individual_price": money(500), "build_price": money(480)},
        "availability": {"in_stock": True, "stock_count": 3},
    })
    assert resp.status_code == 201, resp.text
    data = resp.json()["data"]
    assert data["price"]["amount"] == 500
    assert data["price"]["currency"] == "AED"
    assert data["metadata"]["slug"] == "intel-core-i7-13700k"
    assert data["availability_status"] == "Low Stock"


def test_update_resyncs_price_and_slug(client, auth_headers, make_category, make_component):
    component = make_component(make_category("GPU"), "RTX 4070", brand="Nvidia", individual=2400)
    resp = client.put(f"/api/components/{component['id']}", headers=auth_headers, json={
        "name": "RTX 4070 Super",
        "pricing": {"individual_price": money(2600)},
    })
    assert resp.status_code == 200, resp.text
    data = resp.json()["data"]
    assert data["price"]["amount"] == 2600
    assert data["pricing"]["build_price"]["amount"] == component["pricing"]["build_price"]["amount"]
    assert data["metadata"]["slug"] == "nvidia-rtx-4070-super"


def test_writes_require_staff(client, make_category, customer_headers):
    body = {"name": "x", "category": "000000000000000000000000",
            "pricing": {"cost": money(1), "individual_price": money(1), "build_price": money(1)}}
    assert client.post("/api/components", json=body).status_code == 401
    assert client.post("/api/components", json=body, headers=customer_headers).status_code == 403


def test_unknown_category_is_not_found(client, auth_headers):
    resp = client.post("/api/components", headers=auth_headers, json={
        "name": "x", "category": "000000000000000000000000",
        "pricing": {"cost": money(1), "individual_price": money(1), "build_price": money(1)},
    })
    assert resp.status_code == 404
    assert resp.json() == {"status": "error", "message": "Category not found"}


def test_invalid_id_is_a_bad_request(client):
    resp = client.get("/api/components/not-an-id")
    assert resp.status_code == 400
    assert resp.json()["status"] == "error"


def test_technical_specs_validated_against_category_fields(client, auth_headers, make_category):
    category = make_category("RAM", fields=[
        {"name": "capacity_gb", "label": "Capacity", "type": "number", "required": True, "min_value": 1},
        {"name": "kind", "label": "Type", "type": "select", "options": ["DDR4", "DDR5"]},
    ])
    body = {
        "name": "Vengeance",
        "category": category,
        "pricing": {"cost": money(1), "individual_price": money(1), "build_price": money(1)},
        "technical_specs": {"kind": "DDR3"},
    }
    resp = client.post("/api/components", headers=auth_headers, json=body)
    assert resp.status_code == 400
    message = resp.json()["message"]
    assert "Capacity is required" in message
    assert "Type must be one of" in message

    body["technical_specs"] = {"capacity_gb": 32, "kind": "DDR5"}
    assert client.post("/api/components", headers=auth_headers, json=body).status_code == 201


def test_list_filters_and_facets(client, make_category, make_component):
    cpu = make_category("CPU")
    gpu = make_category("GPU")
    make_component(cpu, "Ryzen 5", brand="AMD", individual=700)
    make_component(cpu, "Core i5", brand="Intel", individual=900, stock=0)
    make_component(gpu, "RX 7800", brand="AMD", individual=2000)

    resp = client.get("/api/components", params={"category": cpu, "sort_by": "price-high"})
    body = resp.json()
    assert [c["name"] for c in body["data"]] == ["Core i5", "Ryzen 5"]
    assert body["total_results"] == 2
    assert body["filters"]["brands"] == ["AMD", "Intel"]
    assert body["filters"]["price_range"] == {"min": 700, "max": 900}

    resp = client.get("/api/components", params={"brand": "amd", "price_max": 1000})
    assert [c["name"] for c in resp.json()["data"]] == ["Ryzen 5"]

    resp = client.get("/api/components", params={"stock_status": "out-of-stock"})
    assert [c["name"] for c in resp.json()["data"]] == ["Core i5"]

    resp = client.get("/api/components", params={"search": "rx 78"})
    assert [c["name"] for c in resp.json()["data"]] == ["RX 7800"]


def test_pagination(client, make_category, make_component):
    category = make_category("Fans")
    for i in range(5):
        make_component(category, f"Fan {i}", individual=10 + i)
    body = client.get("/api/components", params={"limit": 2, "page": 3, "sort_by": "price-low"}).json()
    assert body["total_pages"] == 3
    assert body["current_page"] == 3
    assert [c["name"] for c in body["data"]] == ["Fan 4"]


def test_delete_is_soft(client, auth_headers, make_category, make_component):
    component = make_component(make_category("Case"), "Meshify")
    assert client.delete(f"/api/components/{component['id']}", headers=auth_headers).status_code == 200
    assert client.get("/api/components").json()["data"] == []
    tombstone = client.get(f"/api/components/{component['id']}").json()["data"]
    assert tombstone["is_active"] is False


def test_dashboard_stats(client, make_category, make_component):
    cpu = make_category("CPU")
    make_component(cpu, "A", stock=0)
    make_component(cpu, "B", stock=2, is_featured=True)
    stats = client.get("/api/components/dashboard-stats").json()["data"]
    assert stats["total_components"] == 2
    assert stats["out_of_stock"] == 1
    assert stats["low_stock"] == 1
    assert stats["featured_components"] == 1
    assert stats["components_by_category"] == [{"category": cpu, "name": "CPU", "count": 2}]


def test_create_with_only_individual_price(client, auth_headers, make_category):
    category = make_category("PSU")
    resp = client.post("/api/components", headers=auth_headers, json={
        "name": "RM850x",
        "brand": "Corsair",
        "category": category,
        "pricing": {"individual_price": {"amount": 500}},
    })
    assert resp.status_code == 201, resp.text
    data = resp.json()["data"]
    assert data["price"] == {"amount": 500, "currency": "AED"}
    assert data["pricing"]["cost"] == {"amount": 0, "currency": "AED"}
    assert data["pricing"]["build_price"]["amount"] == 0
