def prebuild_body(**components):
    return {
        "name": "Starter Gamer",
        "components": {slot: {"component": cid} for slot, cid in components.items()},
        "pricing": {"assembly_fee": 50, "selling_price": 1200},
        "availability": {"in_stock": True, "stock_count": 2},
    }


def test_rollup_from_bound_slots(client, auth_headers, make_category, make_component):
    cpu = make_component(make_category("CPU"), "Ryzen 5", brand="AMD", individual=350, build=300)
    gpu = make_component(make_category("GPU"), "RTX 4060", brand="Nvidia", individual=750, build=700)

    resp = client.post("/api/prebuild-pcs", headers=auth_headers, json=prebuild_body(cpu=cpu["id"], gpu=gpu["id"]))
    assert resp.status_code == 201, resp.text
    data = resp.json()["data"]
    assert data["pricing"]["components_cost"] == 1000
    assert data["pricing"]["total_cost"] == 1050
    assert data["pricing"]["selling_price"] == 1200
    assert data["component_count"] == 2
    assert data["components"]["cpu"] == {"component": cpu["id"], "name": "AMD Ryzen 5", "price": 300}
    assert data["availability_status"] == "Limited Stock"
    assert data["metadata"]["slug"] == "starter-gamer-general"


def test_update_recomputes_totals(client, auth_headers, make_category, make_component):
    cpu = make_component(make_category("CPU"), "Ryzen 5", build=300)
    ram = make_component(make_category("RAM"), "16GB", build=120)
    created = client.post("/api/prebuild-pcs", headers=auth_headers, json=prebuild_body(cpu=cpu["id"])).json()["data"]

    resp = client.put(f"/api/prebuild-pcs/{created['id']}", headers=auth_headers, json={
        "pricing": {"assembly_fee": 80},
        "components": {"ram": {"component": ram["id"]}},
    })
    data = resp.json()["data"]
    assert data["pricing"]["components_cost"] == 420
    assert data["pricing"]["total_cost"] == 500
    assert data["pricing"]["selling_price"] == 1200
    assert data["component_count"] == 2

    resp = client.put(f"/api/prebuild-pcs/{created['id']}", headers=auth_headers,
                      json={"components": {"cpu": None}})
    data = resp.json()["data"]
    assert data["pricing"]["components_cost"] == 120
    assert "cpu" not in data["components"]


def test_binding_unknown_component_is_rejected(client, auth_headers):
    resp = client.post("/api/prebuild-pcs", headers=auth_headers,
                       json=prebuild_body(gpu="0123456789abcdef01234567"))
    assert resp.status_code == 400
    assert "gpu" in resp.json()["message"]


def test_selling_price_is_required(client, auth_headers):
    body = prebuild_body()
    del body["pricing"]["selling_price"]
    assert client.post("/api/prebuild-pcs", headers=auth_headers, json=body).status_code == 400


def test_list_reports_price_range(client, auth_headers):
    for name, price in (("Budget", 2500), ("Beast", 9000)):
        body = prebuild_body()
        body["name"] = name
        body["pricing"]["selling_price"] = price
        client.post("/api/prebuild-pcs", headers=auth_headers, json=body)
    body = client.get("/api/prebuild-pcs", params={"sort_by": "price-high"}).json()
    assert [p["name"] for p in body["data"]] == ["Beast", "Budget"]
    assert body["filters"]["price_range"] == {"min": 2500, "max": 9000}


def test_components_for_slot_lists_in_stock_parts(client, make_category, make_component):
    cpu_cat = make_category("CPU")
    make_component(cpu_cat, "Ryzen 7", stock=4)
    make_component(cpu_cat, "Ryzen 9", stock=0)
    resp = client.get("/api/prebuild-pcs/build/components/cpu")
    assert [c["name"] for c in resp.json()["data"]] == ["Ryzen 7"]

    assert client.get("/api/prebuild-pcs/build/components/toaster").status_code == 400
    assert client.get("/api/prebuild-pcs/build/components/psu").status_code == 404


def test_any_save_refreshes_slot_snapshots(client, auth_headers, make_category, make_component):
    cpu = make_component(make_category("CPU"), "Ryzen 5", brand="AMD", build=300)
    created = client.post("/api/prebuild-pcs", headers=auth_headers, json=prebuild_body(cpu=cpu["id"])).json()["data"]

    client.put(f"/api/components/{cpu['id']}", headers=auth_headers,
               json={"name": "Ryzen 5 7600", "pricing": {"build_price": {"amount": 280}}})
    resp = client.put(f"/api/prebuild-pcs/{created['id']}", headers=auth_headers, json={"description": "Refresh"})
    data = resp.json()["data"]
    assert data["components"]["cpu"] == {"component": cpu["id"], "name": "AMD Ryzen 5 7600", "price": 280}
    assert data["pricing"]["components_cost"] == 280
