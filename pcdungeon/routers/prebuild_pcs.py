import re
from typing import Any, Dict, Optional

from fastapi import APIRouter, Depends, HTTPException, Query

from pcdungeon import pricing
from pcdungeon.database import create_document, db, find_by_id, find_many_by_ids, replace_document
from pcdungeon.responses import page_info, success
from pcdungeon.schemas import PreBuildPc, PreBuildPcUpdate
from pcdungeon.security import require_staff

router = APIRouter(prefix="/api/prebuild-pcs", tags=["prebuild-pcs"])

PRICE_FIELD = "pricing.selling_price"

SORTS = {
    "price-low": [(PRICE_FIELD, 1)],
    "price-high": [(PRICE_FIELD, -1)],
    "name": [("name", 1)],
    "rating": [("ratings.average", -1)],
    "newest": [("created_at", -1)],
}
DEFAULT_SORT = [("sort_order", 1), ("created_at", -1)]

# slot (and a few aliases) -> catalog category name
SLOT_CATEGORY_NAMES = {
    "cpu": "CPU",
    "gpu": "GPU",
    "motherboard": "Motherboard",
    "ram": "RAM",
    "memory": "RAM",
    "storage": "Storage",
    "psu": "Power Supply",
    "power-supply": "Power Supply",
    "case": "Case",
    "cooling": "Cooling",
    "cooler": "Cooling",
}


def bind_slots(components: Optional[dict]) -> dict:
    """Replace every bound slot with a fresh snapshot of its component."""
    components = {k: v for k, v in (components or {}).items() if v}
    ids = [sel["component"] for sel in components.values() if sel.get("component")]
    found = find_many_by_ids("component", ids)
    for slot, sel in components.items():
        if not sel.get("component"):
            continue
        component = found.get(str(sel["component"]))
        if component is None:
            raise HTTPException(status_code=400, detail=f"Component {sel['component']} for slot '{slot}' not found")
        components[slot] = pricing.slot_snapshot(component)
    return components


@router.get("")
def list_prebuilds(
    category: Optional[str] = None,
    featured: Optional[bool] = None,
    in_stock: Optional[bool] = None,
    price_min: Optional[float] = Query(None, ge=0),
    price_max: Optional[float] = Query(None, ge=0),
    search: Optional[str] = None,
    sort_by: Optional[str] = None,
    page: int = Query(1, ge=1),
    limit: int = Query(12, ge=1, le=100),
):
    filt: Dict[str, Any] = {"is_active": True}
    if category:
        filt["category"] = category
    if featured is not None:
        filt["is_featured"] = featured
    if in_stock is not None:
        filt["availability.in_stock"] = in_stock
    price_cond = {}
    if price_min is not None:
        price_cond["$gte"] = price_min
    if price_max is not None:
        price_cond["$lte"] = price_max
    if price_cond:
        filt[PRICE_FIELD] = price_cond
    if search:
        pattern = {"$regex": re.escape(search), "$options": "i"}
        filt["$or"] = [{"name": pattern}, {"description": pattern}, {"tags": pattern}]

    total = db["prebuildpc"].count_documents(filt)
    cursor = (db["prebuildpc"].find(filt)
              .sort(SORTS.get(sort_by, DEFAULT_SORT) + [("_id", 1)])
              .skip((page - 1) * limit)
              .limit(limit))
    items = [pricing.present_prebuild(p) for p in cursor]

    prices = [float((p.get("pricing") or {}).get("selling_price") or 0)
              for p in db["prebuildpc"].find({"is_active": True}, {"pricing": 1})]
    price_range = {"min": min(prices) if prices else 0, "max": max(prices) if prices else 0}
    return success(items, **page_info(total, page, limit, len(items)), filters={"price_range": price_range})


@router.get("/build/components/{slot}")
def components_for_slot(slot: str):
    category_name = SLOT_CATEGORY_NAMES.get(slot.lower())
    if not category_name:
        raise HTTPException(status_code=400, detail="Invalid component category")
    category = db["category"].find_one({"name": category_name, "is_active": True})
    if not category:
        raise HTTPException(status_code=404, detail="Category not found")
    cursor = db["component"].find({
        "category": str(category["_id"]),
        "is_active": True,
        "availability.in_stock": True,
        "availability.stock_count": {"$gt": 0},
    }).sort("name", 1)
    items = [pricing.present_component(c) for c in cursor]
    return success(items, results=len(items))


@router.get("/{prebuild_id}")
def get_prebuild(prebuild_id: str):
    return success(pricing.present_prebuild(find_by_id("prebuildpc", prebuild_id, "pre-built PC")))


@router.post("", status_code=201)
async def create_prebuild(payload: PreBuildPc, user: dict = Depends(require_staff)):
    doc = payload.model_dump()
    doc["components"] = bind_slots(doc.get("components"))
    pricing.prepare_prebuild(doc)
    new_id = create_document("prebuildpc", doc)
    return success(pricing.present_prebuild(find_by_id("prebuildpc", new_id)), "Pre-built PC created")


@router.put("/{prebuild_id}")
async def update_prebuild(prebuild_id: str, payload: PreBuildPcUpdate, user: dict = Depends(require_staff)):
    prebuild = find_by_id("prebuildpc", prebuild_id, "pre-built PC")
    updates = payload.model_dump(exclude_unset=True)

    pricing_updates = updates.pop("pricing", None) or {}
    prebuild["pricing"] = {**(prebuild.get("pricing") or {}),
                           **{k: v for k, v in pricing_updates.items() if v is not None}}
    merged = {**(prebuild.get("components") or {}), **(updates.pop("components", None) or {})}
    prebuild["components"] = bind_slots(merged)
    prebuild.update(updates)

    pricing.prepare_prebuild(prebuild)
    replace_document("prebuildpc", prebuild)
    return success(pricing.present_prebuild(prebuild), "Pre-built PC updated")


@router.delete("/{prebuild_id}")
async def delete_prebuild(prebuild_id: str, user: dict = Depends(require_staff)):
    prebuild = find_by_id("prebuildpc", prebuild_id, "pre-built PC")
    db["prebuildpc"].delete_one({"_id": prebuild["_id"]})
    return success(message="Pre-built PC deleted")
