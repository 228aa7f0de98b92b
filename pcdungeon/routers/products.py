import re
from typing import Any, Dict, List, Optional

from fastapi import APIRouter, Depends, HTTPException, Query

from pcdungeon.database import create_document, db, find_by_id, find_many_by_ids, replace_document
from pcdungeon.responses import page_info, success
from pcdungeon.schemas import Product, ProductUpdate, SupplierOfferIn
from pcdungeon.security import require_staff
from pcdungeon.supplier_links import detach_product, remove_offer, set_offer
from pcdungeon.supplier_pricing import refresh_product_prices

router = APIRouter(prefix="/api/products", tags=["products"])


def with_supplier_details(product: dict) -> dict:
    out = dict(product)
    suppliers = find_many_by_ids("supplier", [s.get("supplier") for s in product.get("suppliers") or []])
    entries = []
    for entry in product.get("suppliers") or []:
        supplier = suppliers.get(str(entry.get("supplier")), {})
        entries.append({
            **entry,
            "name": supplier.get("name"),
            "contact": supplier.get("contact"),
            "email": supplier.get("email"),
        })
    out["suppliers"] = sorted(entries, key=lambda e: float(e.get("price") or 0))
    return out


def apply_offers(product: dict, offers: List[SupplierOfferIn]) -> None:
    """Make the product's supplier list match ``offers`` exactly."""
    wanted = {o.supplier_id: o.price for o in offers}
    suppliers = find_many_by_ids("supplier", list(wanted))
    missing = [sid for sid in wanted if sid not in suppliers]
    if missing:
        raise HTTPException(status_code=400, detail=f"Supplier not found: {', '.join(missing)}")

    current = [str(e.get("supplier")) for e in product.get("suppliers") or []]
    stale = find_many_by_ids("supplier", [sid for sid in current if sid not in wanted])
    for supplier in stale.values():
        remove_offer(product, supplier)
    # drops entries whose supplier no longer exists
    product["suppliers"] = [e for e in product.get("suppliers") or [] if str(e.get("supplier")) in wanted]
    refresh_product_prices(product)
    replace_document("product", product)
    for sid, price in wanted.items():
        set_offer(product, suppliers[sid], price)


@router.get("")
async def list_products(
    search: Optional[str] = None,
    category: Optional[str] = None,
    status: Optional[str] = None,
    page: int = Query(1, ge=1),
    limit: int = Query(50, ge=1, le=200),
    user: dict = Depends(require_staff),
):
    filt: Dict[str, Any] = {}
    if search:
        pattern = {"$regex": re.escape(search), "$options": "i"}
        filt["$or"] = [{"name": pattern}, {"description": pattern}, {"category": pattern}]
    if category:
        filt["category"] = category
    if status:
        filt["status"] = status
    total = db["product"].count_documents(filt)
    items = list(db["product"].find(filt).sort([("created_at", -1), ("_id", 1)])
                 .skip((page - 1) * limit).limit(limit))
    return success([with_supplier_details(p) for p in items], **page_info(total, page, limit, len(items)))


@router.get("/{product_id}")
async def get_product(product_id: str, user: dict = Depends(require_staff)):
    return success(with_supplier_details(find_by_id("product", product_id, "product")))


@router.post("", status_code=201)
async def create_product(payload: Product, user: dict = Depends(require_staff)):
    doc = payload.model_dump(exclude={"suppliers"})
    doc["suppliers"] = []
    refresh_product_prices(doc)
    product = find_by_id("product", create_document("product", doc), "product")
    if payload.suppliers:
        apply_offers(product, payload.suppliers)
    return success(with_supplier_details(product), "Product created")


@router.put("/{product_id}")
async def update_product(product_id: str, payload: ProductUpdate, user: dict = Depends(require_staff)):
    product = find_by_id("product", product_id, "product")
    updates = payload.model_dump(exclude_unset=True, exclude={"suppliers"})
    product.update(updates)
    refresh_product_prices(product)
    replace_document("product", product)
    if payload.suppliers is not None:
        apply_offers(product, payload.suppliers)
    return success(with_supplier_details(product), "Product updated")


@router.delete("/{product_id}")
async def delete_product(product_id: str, user: dict = Depends(require_staff)):
    product = find_by_id("product", product_id, "product")
    detach_product(str(product["_id"]))
    db["product"].delete_one({"_id": product["_id"]})
    return success(message="Product deleted")
