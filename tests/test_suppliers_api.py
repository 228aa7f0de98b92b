import pytest

from pcdungeon.database import create_document


@pytest.fixture
def make_supplier(client, auth_headers):
    def _make(name, email=None):
        body = {"name": name, "contact": "Sam", "phone": "+971 4 000 0000", "address": "Dubai"}
        if email:
            body["email"] = email
        resp = client.post("/api/suppliers", headers=auth_headers, json=body)
        assert resp.status_code == 201, resp.text
        return resp.json()["data"]["id"]
    return _make


def test_email_must_be_unique(client, auth_headers, make_supplier):
    make_supplier("Micro Center", "sales@microcenter.com")
    resp = client.post("/api/suppliers", headers=auth_headers, json={
        "name": "Other", "contact": "x", "phone": "1", "address": "y", "email": "SALES@microcenter.com"})
    assert resp.status_code == 400


def test_linking_products_tracks_best_price(client, auth_headers, make_supplier):
    product_id = create_document("product", {"name": "RTX 4070", "suppliers": [], "lowest_price": 0})
    suppliers = [make_supplier(f"S{i}") for i in range(3)]
    for sid, price in zip(suppliers, [100, 80, 80]):
        resp = client.post(f"/api/suppliers/{sid}/products", headers=auth_headers,
                           json={"product_id": product_id, "price": price})
        assert resp.status_code == 201, resp.text

    product = client.get(f"/api/products/{product_id}", headers=auth_headers).json()["data"]
    assert product["lowest_price"] == 80
    flags = {s["supplier"]: s["is_best_price"] for s in product["suppliers"]}
    assert flags == {suppliers[0]: False, suppliers[1]: True, suppliers[2]: True}

    detail = client.get(f"/api/suppliers/{suppliers[0]}", headers=auth_headers).json()["data"]
    assert detail["product_count"] == 1
    assert detail["total_value"] == 100
    assert detail["products"][0]["name"] == "RTX 4070"

    # removing both cheapest offers promotes the remaining one
    for sid in suppliers[1:]:
        client.delete(f"/api/suppliers/{sid}/products/{product_id}", headers=auth_headers)
    product = client.get(f"/api/products/{product_id}", headers=auth_headers).json()["data"]
    assert product["lowest_price"] == 100
    assert [s["is_best_price"] for s in product["suppliers"]] == [True]


def test_deleting_supplier_unlinks_products(client, auth_headers, make_supplier):
    product_id = create_document("product", {"name": "SSD", "suppliers": [], "lowest_price": 0})
    cheap, pricey = make_supplier("Cheap"), make_supplier("Pricey")
    client.post(f"/api/suppliers/{cheap}/products", headers=auth_headers, json={"product_id": product_id, "price": 50})
    client.post(f"/api/suppliers/{pricey}/products", headers=auth_headers, json={"product_id": product_id, "price": 70})

    assert client.delete(f"/api/suppliers/{cheap}", headers=auth_headers).status_code == 200
    product = client.get(f"/api/products/{product_id}", headers=auth_headers).json()["data"]
    assert product["lowest_price"] == 70
    assert [s["supplier"] for s in product["suppliers"]] == [pricey]


def test_ratings_update_average(client, auth_headers, make_supplier):
    sid = make_supplier("Rated")
    for score in (5, 4, 4):
        resp = client.post(f"/api/suppliers/{sid}/ratings", headers=auth_headers,
                           json={"rating": score, "author": "ops"})
        assert resp.status_code == 201
    assert resp.json()["data"]["average_rating"] == 4.3

    assert client.post(f"/api/suppliers/{sid}/ratings", headers=auth_headers,
                       json={"rating": 6, "author": "ops"}).status_code == 400

    ratings = client.get(f"/api/suppliers/{sid}/ratings", headers=auth_headers).json()
    assert ratings["results"] == 3
    assert ratings["average_rating"] == 4.3


def test_comments(client, auth_headers, make_supplier):
    sid = make_supplier("Chatty")
    resp = client.post(f"/api/suppliers/{sid}/comments", headers=auth_headers,
                       json={"content": "Fast delivery", "author": "ops"})
    assert resp.status_code == 201
    comments = client.get(f"/api/suppliers/{sid}/comments", headers=auth_headers).json()["data"]
    assert comments[0]["content"] == "Fast delivery"


def test_supplier_orders(client, auth_headers, make_supplier):
    sid = make_supplier("Vendor")
    product_id = create_document("product", {"name": "PSU", "suppliers": [], "lowest_price": 0})
    client.post("/api/orders", headers=auth_headers, json={
        "description": "PSUs", "product_id": product_id, "quantity": 1,
        "suppliers": [{"supplier_id": sid, "price": 300}],
    })
    orders = client.get(f"/api/suppliers/{sid}/orders", headers=auth_headers).json()
    assert orders["results"] == 1


def test_bulk_upload_reports_row_errors(client, auth_headers, make_supplier):
    make_supplier("Existing", "hello@existing.com")
    csv = (
        "Company Name*,Contact Person*,Email,Phone*,Address*,Website\n"
        "Existing Renamed,Ann,HELLO@existing.com,111,Abu Dhabi,\n"
        "Newco,Bob,,222,Sharjah,https://newco.example\n"
        ",Jane,,555,,\n"
    ).encode()
    resp = client.post("/api/suppliers/bulk-upload", headers=auth_headers,
                       files={"file": ("suppliers.csv", csv, "text/csv")})
    assert resp.status_code == 207
    body = resp.json()
    assert body["status"] == "partial_success"
    assert body["data"]["created"] == 1
    assert body["data"]["updated"] == 1
    assert body["data"]["errors"] == 1
    assert body["data"]["error_details"][0]["row"] == 4

    names = sorted(s["name"] for s in client.get("/api/suppliers", headers=auth_headers).json()["data"])
    assert names == ["Existing Renamed", "Newco"]


def test_bulk_upload_clean_file(client, auth_headers):
    csv = b"Company Name,Contact Person,Phone,Address\nAcme,Al,1,Dubai\n"
    resp = client.post("/api/suppliers/bulk-upload", headers=auth_headers,
                       files={"file": ("s.csv", csv, "text/csv")})
    assert resp.status_code == 200
    assert resp.json()["status"] == "success"


def test_bulk_upload_rejects_other_formats(client, auth_headers):
    resp = client.post("/api/suppliers/bulk-upload", headers=auth_headers,
                       files={"file": ("s.txt", b"hello", "text/plain")})
    assert resp.status_code == 400
