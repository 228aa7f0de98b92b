from typing import Any, Dict, Optional

from fastapi import APIRouter, Depends, HTTPException

from pcdungeon import compatibility
from pcdungeon.database import create_document, db, find_by_id, replace_document, utcnow
from pcdungeon.responses import success
from pcdungeon.schemas import CompatibilityCheckRequest, CompatibilityRule, CompatibilityRuleUpdate
from pcdungeon.security import require_staff

router = APIRouter(prefix="/api/compatibility", tags=["compatibility"])

LABEL = "compatibility rule"


def _check_categories(*category_ids: str) -> None:
    for category_id in category_ids:
        find_by_id("category", category_id, "category")


def active_rules():
    return list(db["compatibilityrule"].find({"is_active": True}).sort([("created_at", 1), ("_id", 1)]))


@router.get("")
async def list_rules(category: Optional[str] = None, include_inactive: bool = False,
                     user: dict = Depends(require_staff)):
    filt: Dict[str, Any] = {} if include_inactive else {"is_active": True}
    if category:
        filt["$or"] = [{"source_category": category}, {"target_category": category}]
    items = list(db["compatibilityrule"].find(filt).sort([("created_at", 1), ("_id", 1)]))
    return success(items, results=len(items))


@router.get("/{rule_id}")
async def get_rule(rule_id: str, user: dict = Depends(require_staff)):
    return success(find_by_id("compatibilityrule", rule_id, LABEL))


@router.post("", status_code=201)
async def create_rule(payload: CompatibilityRule, user: dict = Depends(require_staff)):
    _check_categories(payload.source_category, payload.target_category)
    doc = payload.model_dump()
    doc["rules"] = compatibility.normalize_rule_tuples(doc["rules"])
    doc["created_by"] = str(user["_id"])
    new_id = create_document("compatibilityrule", doc)
    return success(find_by_id("compatibilityrule", new_id, LABEL), "Compatibility rule created")


@router.patch("/{rule_id}")
async def update_rule(rule_id: str, payload: CompatibilityRuleUpdate, user: dict = Depends(require_staff)):
    rule = find_by_id("compatibilityrule", rule_id, LABEL)
    updates = payload.model_dump(exclude_unset=True)
    _check_categories(*[updates[k] for k in ("source_category", "target_category") if updates.get(k)])
    if updates.get("rules") is not None:
        updates["rules"] = compatibility.normalize_rule_tuples(updates["rules"])
    rule.update(updates)
    replace_document("compatibilityrule", rule)
    return success(rule, "Compatibility rule updated")


@router.delete("/{rule_id}")
async def delete_rule(rule_id: str, user: dict = Depends(require_staff)):
    rule = find_by_id("compatibilityrule", rule_id, LABEL)
    db["compatibilityrule"].update_one({"_id": rule["_id"]},
                                       {"$set": {"is_active": False, "updated_at": utcnow()}})
    return success(message="Compatibility rule deleted")


@router.post("/check")
def check_pair(payload: CompatibilityCheckRequest):
    if payload.component_a == payload.component_b:
        raise HTTPException(status_code=400, detail="Pick two different components")
    a = find_by_id("component", payload.component_a, "component")
    b = find_by_id("component", payload.component_b, "component")
    reason = compatibility.check_pair(a, b, active_rules())
    return success({
        "component_a": str(a["_id"]),
        "component_b": str(b["_id"]),
        "compatible": reason is None,
        "reason": reason,
    })
