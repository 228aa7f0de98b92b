import re
from collections import Counter
from typing import Any, Dict, Optional

from fastapi import APIRouter, Depends, Query

from pcdungeon import pricing
from pcdungeon.categories import validate_specs
from pcdungeon.database import (
    create_document,
    db,
    find_by_id,
    find_many_by_ids,
    replace_document,
    utcnow,
)
from pcdungeon.responses import page_info, success
from pcdungeon.schemas import Component, ComponentUpdate
from pcdungeon.security import require_staff

router = APIRouter(prefix="/api/components", tags=["components"])

PRICE_FIELD = "pricing.individual_price.amount"

SORTS = {
    "price-low": [(PRICE_FIELD, 1)],
    "price-high": [(PRICE_FIELD, -1)],
    "name": [("name", 1)],
    "rating": [("ratings.average", -1)],
    "newest": [("created_at", -1)],
    "popularity": [("ratings.count", -1)],
}
DEFAULT_SORT = [("sort_order", 1), ("created_at", -1)]

OUT_OF_STOCK = {"$or": [{"availability.in_stock": False}, {"availability.stock_count": {"$lte": 0}}]}
STOCK_FILTERS = {
    "out-of-stock": OUT_OF_STOCK,
    "low-stock": {"availability.in_stock": True,
                  "availability.stock_count": {"$gt": 0, "$lt": pricing.LOW_STOCK_THRESHOLD}},
    "in-stock": {"availability.in_stock": True,
                 "availability.stock_count": {"$gte": pricing.LOW_STOCK_THRESHOLD}},
}


def _price_range(filt: dict) -> dict:
    prices = [pricing.individual_price(c) for c in db["component"].find(filt, {"pricing": 1, "price": 1})]
    return {"min": min(prices) if prices else 0, "max": max(prices) if prices else 0}


def _brands(filt: dict):
    return sorted(b for b in db["component"].distinct("brand", filt) if b)


def _load_category(category_id: str) -> dict:
    return find_by_id("category", category_id, "category")


@router.get("")
def list_components(
    category: Optional[str] = None,
    brand: Optional[str] = None,
    stock_status: Optional[str] = Query(None, pattern="^(in-stock|low-stock|out-of-stock)$"),
    in_stock: Optional[bool] = None,
    featured: Optional[bool] = None,
    price_min: Optional[float] = Query(None, ge=0),
    price_max: Optional[float] = Query(None, ge=0),
    search: Optional[str] = None,
    sort_by: Optional[str] = None,
    page: int = Query(1, ge=1),
    limit: int = Query(20, ge=1, le=100),
):
    base: Dict[str, Any] = {"is_active": True}
    if category:
        base["category"] = category
    conditions = [dict(base)]
    if brand:
        conditions.append({"brand": {"$regex": f"^{re.escape(brand)}$", "$options": "i"}})
    if stock_status:
        conditions.append(STOCK_FILTERS[stock_status])
    if in_stock is not None:
        conditions.append({"availability.in_stock": in_stock})
    if featured is not None:
        conditions.append({"is_featured": featured})
    price_cond = {}
    if price_min is not None:
        price_cond["$gte"] = price_min
    if price_max is not None:
        price_cond["$lte"] = price_max
    if price_cond:
        conditions.append({PRICE_FIELD: price_cond})
    if search:
        pattern = {"$regex": re.escape(search), "$options": "i"}
        conditions.append({"$or": [{"name": pattern}, {"brand": pattern},
                                   {"model": pattern}, {"description": pattern}]})
    filt = conditions[0] if len(conditions) == 1 else {"$and": conditions}

    total = db["component"].count_documents(filt)
    cursor = (db["component"].find(filt)
              .sort(SORTS.get(sort_by, DEFAULT_SORT) + [("_id", 1)])
              .skip((page - 1) * limit)
              .limit(limit))
    items = [pricing.present_component(c) for c in cursor]
    return success(items, **page_info(total, page, limit, len(items)),
                   filters={"brands": _brands(base), "price_range": _price_range(base)})


@router.get("/dashboard-stats")
def dashboard_stats():
    active = {"is_active": True}
    total = db["component"].count_documents(active)
    out_of_stock = db["component"].count_documents({"$and": [active, OUT_OF_STOCK]})
    low_stock = db["component"].count_documents({"$and": [active, STOCK_FILTERS["low-stock"]]})
    featured = db["component"].count_documents({"is_active": True, "is_featured": True})

    per_category = Counter(c.get("category") for c in db["component"].find(active, {"category": 1}))
    names = find_many_by_ids("category", list(per_category))
    by_category = [
        {"category": cid, "name": names.get(cid, {}).get("name", "Unknown"), "count": count}
        for cid, count in per_category.most_common()
    ]
    return success({
        "total_components": total,
        "featured_components": featured,
        "out_of_stock": out_of_stock,
        "low_stock": low_stock,
        "total_categories": db["category"].count_documents({"is_active": True}),
        "components_by_category": by_category,
    })


@router.get("/{component_id}")
def get_component(component_id: str):
    return success(pricing.present_component(find_by_id("component", component_id)))


@router.post("", status_code=201)
async def create_component(payload: Component, user: dict = Depends(require_staff)):
    category = _load_category(payload.category)
    validate_specs(category, payload.technical_specs)
    doc = pricing.prepare_component(payload.model_dump())
    new_id = create_document("component", doc)
    return success(pricing.present_component(find_by_id("component", new_id)), "Component created")


@router.put("/{component_id}")
async def update_component(component_id: str, payload: ComponentUpdate, user: dict = Depends(require_staff)):
    component = find_by_id("component", component_id)
    updates = payload.model_dump(exclude_unset=True)

    pricing_updates = updates.pop("pricing", None) or {}
    component["pricing"] = {**(component.get("pricing") or {}),
                            **{k: v for k, v in pricing_updates.items() if v is not None}}
    component.update(updates)

    if "category" in updates or "technical_specs" in updates:
        validate_specs(_load_category(component["category"]), component.get("technical_specs") or {})

    pricing.prepare_component(component)
    replace_document("component", component)
    return success(pricing.present_component(component), "Component updated")


@router.delete("/{component_id}")
async def delete_component(component_id: str, user: dict = Depends(require_staff)):
    component = find_by_id("component", component_id)
    # builds and pre-builds keep their references; inactive components are tombstones
    db["component"].update_one({"_id": component["_id"]},
                               {"$set": {"is_active": False, "updated_at": utcnow()}})
    return success(message="Component deleted")
