import re
from typing import Any, Dict, Optional

from fastapi import APIRouter, Body, Depends, HTTPException

from pcdungeon import categories
from pcdungeon.database import create_document, db, find_by_id, replace_document, to_object_id, utcnow
from pcdungeon.responses import success
from pcdungeon.schemas import Category, CategoryUpdate
from pcdungeon.security import require_staff

router = APIRouter(prefix="/api/categories", tags=["categories"])


def _ensure_unique_name(name: str, exclude_id=None) -> None:
    filt: Dict[str, Any] = {"name": {"$regex": f"^{re.escape(name)}$", "$options": "i"}}
    if exclude_id is not None:
        filt["_id"] = {"$ne": exclude_id}
    if db["category"].find_one(filt):
        raise HTTPException(status_code=400, detail="Category with this name already exists")


def _with_counts(category: dict) -> dict:
    out = dict(category)
    out["component_count"] = db["component"].count_documents(
        {"category": str(category["_id"]), "is_active": True})
    return out


@router.get("")
def list_categories(active: Optional[bool] = None, search: Optional[str] = None):
    filt: Dict[str, Any] = {}
    if active is not None:
        filt["is_active"] = active
    if search:
        filt["name"] = {"$regex": re.escape(search), "$options": "i"}
    items = [_with_counts(c) for c in db["category"].find(filt).sort([("sort_order", 1), ("name", 1)])]
    return success(items, results=len(items))


@router.get("/{category_id}")
def get_category(category_id: str):
    return success(_with_counts(find_by_id("category", category_id)))


@router.get("/{category_id}/fields")
def get_fields(category_id: str):
    return success(categories.active_fields(find_by_id("category", category_id)))


@router.post("", status_code=201)
async def create_category(payload: Category, user: dict = Depends(require_staff)):
    _ensure_unique_name(payload.name)
    new_id = create_document("category", payload)
    return success(find_by_id("category", new_id), "Category created")


@router.put("/{category_id}")
async def update_category(category_id: str, payload: CategoryUpdate, user: dict = Depends(require_staff)):
    category = find_by_id("category", category_id)
    updates = payload.model_dump(exclude_unset=True)
    if updates.get("name"):
        _ensure_unique_name(updates["name"], exclude_id=category["_id"])
    updates["updated_at"] = utcnow()
    db["category"].update_one({"_id": category["_id"]}, {"$set": updates})
    return success(find_by_id("category", category_id), "Category updated")


@router.delete("/{category_id}")
async def delete_category(category_id: str, user: dict = Depends(require_staff)):
    oid = to_object_id(category_id, "category")
    category = find_by_id("category", oid)
    in_use = db["component"].count_documents({"category": str(oid), "is_active": True})
    if in_use:
        raise HTTPException(status_code=400,
                            detail=f"Cannot delete category with {in_use} components. Move or delete them first.")
    db["category"].delete_one({"_id": category["_id"]})
    return success(message="Category deleted")


# Dynamic fields

@router.post("/{category_id}/fields", status_code=201)
async def add_field(category_id: str, field: Dict[str, Any] = Body(...), user: dict = Depends(require_staff)):
    category = find_by_id("category", category_id)
    created = categories.add_field(category, field)
    replace_document("category", category)
    return success(created, "Field added")


@router.put("/{category_id}/fields/{field_id}")
async def update_field(category_id: str, field_id: str, field: Dict[str, Any] = Body(...),
                       user: dict = Depends(require_staff)):
    category = find_by_id("category", category_id)
    updated = categories.update_field(category, field_id, field)
    replace_document("category", category)
    return success(updated, "Field updated")


@router.delete("/{category_id}/fields/{field_id}")
async def remove_field(category_id: str, field_id: str, user: dict = Depends(require_staff)):
    category = find_by_id("category", category_id)
    categories.remove_field(category, field_id)
    replace_document("category", category)
    return success(message="Field removed")
