import logging
import re
from typing import Any, Dict, Optional

from fastapi import APIRouter, Depends, File, HTTPException, UploadFile
from fastapi.responses import JSONResponse

from pcdungeon import config, importers
from pcdungeon.database import create_document, db, find_by_id, replace_document, utcnow
from pcdungeon.responses import success
from pcdungeon.schemas import CommentIn, RatingIn, Supplier, SupplierProductLink, SupplierUpdate
from pcdungeon.security import require_staff
from pcdungeon.supplier_links import detach_supplier, remove_offer, set_offer
from pcdungeon.supplier_pricing import refresh_supplier

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/suppliers", tags=["suppliers"], dependencies=[Depends(require_staff)])


def _load(supplier_id: str) -> dict:
    return find_by_id("supplier", supplier_id, "supplier")


def _ensure_unique_email(email: Optional[str], exclude_id=None) -> None:
    if not email:
        return
    filt: Dict[str, Any] = {"email": email}
    if exclude_id is not None:
        filt["_id"] = {"$ne": exclude_id}
    if db["supplier"].find_one(filt):
        raise HTTPException(status_code=400, detail="Supplier with this email already exists")


def supplier_products(supplier: dict) -> list:
    sid = str(supplier["_id"])
    products = []
    for product in db["product"].find({"suppliers.supplier": sid}).sort("name", 1):
        entry = next((s for s in product.get("suppliers") or [] if str(s.get("supplier")) == sid), {})
        products.append({
            "_id": product["_id"],
            "name": product.get("name"),
            "category": product.get("category"),
            "description": product.get("description"),
            "status": product.get("status"),
            "price": float(entry.get("price") or 0),
            "is_best_price": bool(entry.get("is_best_price")),
            "last_updated": entry.get("last_updated"),
        })
    return products


def with_totals(supplier: dict, products: list) -> dict:
    out = dict(supplier)
    out["product_count"] = len(products)
    out["total_value"] = round(sum(p["price"] for p in products), 2)
    return out


@router.get("")
def list_suppliers(search: Optional[str] = None):
    filt: Dict[str, Any] = {}
    if search:
        pattern = {"$regex": re.escape(search), "$options": "i"}
        filt["$or"] = [{"name": pattern}, {"contact": pattern}, {"email": pattern},
                       {"website": pattern}, {"location": pattern}]
    items = []
    for supplier in db["supplier"].find(filt).sort([("created_at", -1), ("_id", 1)]):
        summary = {k: v for k, v in supplier.items() if k not in ("products", "comments", "ratings")}
        items.append(with_totals(summary, supplier_products(supplier)))
    return success(items, results=len(items))


@router.post("/bulk-upload")
async def bulk_upload(file: UploadFile = File(...)):
    content = await file.read()
    if len(content) > config.UPLOAD_MAX_BYTES:
        raise HTTPException(status_code=400, detail="File too large")
    report = importers.import_suppliers(importers.read_sheet(file.filename, content))
    message = (f"Upload complete: {report.created} created, {report.updated} updated, "
               f"{len(report.errors)} errors")
    body = success(report.summary(), message)
    if report.has_errors:
        body["status"] = "partial_success"
        return JSONResponse(status_code=207, content=body)
    return body


@router.get("/{supplier_id}")
def get_supplier(supplier_id: str):
    supplier = _load(supplier_id)
    products = supplier_products(supplier)
    out = with_totals(supplier, products)
    out["products"] = products
    return success(out)


@router.post("", status_code=201)
def create_supplier(payload: Supplier):
    doc = payload.model_dump()
    if doc.get("email"):
        doc["email"] = doc["email"].lower()
    _ensure_unique_email(doc.get("email"))
    doc.update({"products": [], "comments": [], "ratings": []})
    refresh_supplier(doc)
    return success(_load(create_document("supplier", doc)), "Supplier created")


@router.put("/{supplier_id}")
def update_supplier(supplier_id: str, payload: SupplierUpdate):
    supplier = _load(supplier_id)
    updates = payload.model_dump(exclude_unset=True)
    if updates.get("email"):
        updates["email"] = updates["email"].lower()
        _ensure_unique_email(updates["email"], exclude_id=supplier["_id"])
    supplier.update(updates)
    refresh_supplier(supplier)
    replace_document("supplier", supplier)
    return success(supplier, "Supplier updated")


@router.delete("/{supplier_id}")
def delete_supplier(supplier_id: str):
    supplier = _load(supplier_id)
    detach_supplier(str(supplier["_id"]))
    db["supplier"].delete_one({"_id": supplier["_id"]})
    return success(message="Supplier deleted")


# Product links

@router.post("/{supplier_id}/products", status_code=201)
def add_product(supplier_id: str, payload: SupplierProductLink):
    supplier = _load(supplier_id)
    product = find_by_id("product", payload.product_id, "product")
    set_offer(product, supplier, payload.price)
    return success(product, "Product linked to supplier")


@router.delete("/{supplier_id}/products/{product_id}")
def remove_product(supplier_id: str, product_id: str):
    supplier = _load(supplier_id)
    product = find_by_id("product", product_id, "product")
    if not any(str(e.get("supplier")) == str(supplier["_id"]) for e in product.get("suppliers") or []):
        raise HTTPException(status_code=404, detail="Product is not linked to this supplier")
    remove_offer(product, supplier)
    return success(product, "Product removed from supplier")


# Comments and ratings

@router.get("/{supplier_id}/comments")
def get_comments(supplier_id: str):
    comments = sorted(_load(supplier_id).get("comments") or [],
                      key=lambda c: c.get("created_at"), reverse=True)
    return success(comments, results=len(comments))


@router.post("/{supplier_id}/comments", status_code=201)
def add_comment(supplier_id: str, payload: CommentIn):
    supplier = _load(supplier_id)
    comment = {**payload.model_dump(), "created_at": utcnow()}
    supplier.setdefault("comments", []).append(comment)
    refresh_supplier(supplier)
    replace_document("supplier", supplier)
    return success(comment, "Comment added")


@router.get("/{supplier_id}/ratings")
def get_ratings(supplier_id: str):
    supplier = _load(supplier_id)
    ratings = sorted(supplier.get("ratings") or [], key=lambda r: r.get("created_at"), reverse=True)
    return success(ratings, results=len(ratings), average_rating=supplier.get("average_rating", 0))


@router.post("/{supplier_id}/ratings", status_code=201)
def add_rating(supplier_id: str, payload: RatingIn):
    supplier = _load(supplier_id)
    rating = {**payload.model_dump(), "created_at": utcnow()}
    supplier.setdefault("ratings", []).append(rating)
    refresh_supplier(supplier)
    replace_document("supplier", supplier)
    return success({"rating": rating, "average_rating": supplier["average_rating"]}, "Rating added")


@router.get("/{supplier_id}/orders")
def get_orders(supplier_id: str):
    sid = str(_load(supplier_id)["_id"])
    items = list(db["order"].find({"$or": [{"supplier_id": sid}, {"suppliers.supplier": sid}]})
                 .sort([("created_at", -1), ("_id", 1)]))
    return success(items, results=len(items))
