from typing import Any, Dict, List, Optional

from fastapi import APIRouter, Depends, HTTPException, Query

from pcdungeon import builds
from pcdungeon.database import create_document, db, find_by_id, replace_document
from pcdungeon.responses import page_info, success
from pcdungeon.schemas import BuildSelection, UserBuild, UserBuildUpdate
from pcdungeon.security import STAFF_ROLES, get_optional_user

router = APIRouter(prefix="/api/user-builds", tags=["user-builds"])


def _is_staff(user: Optional[dict]) -> bool:
    return bool(user) and user.get("role") in STAFF_ROLES


def _can_view(build: dict, user: Optional[dict]) -> bool:
    if build.get("is_public") or _is_staff(user) or not build.get("user"):
        return True
    return bool(user) and build.get("user") == str(user["_id"])


def _can_edit(build: dict, user: Optional[dict]) -> bool:
    if not build.get("user") or _is_staff(user):
        return True
    return bool(user) and build.get("user") == str(user["_id"])


def _load(build_id: str, user: Optional[dict]) -> dict:
    build = find_by_id("userbuild", build_id, "build")
    if not _can_view(build, user):
        raise HTTPException(status_code=404, detail="Build not found")
    return build


def _warnings(assessment: builds.BuildAssessment) -> List[dict]:
    return [w.model_dump() for w in assessment.warnings]


@router.get("")
async def list_builds(
    build_type: Optional[str] = None,
    mine: bool = False,
    page: int = Query(1, ge=1),
    limit: int = Query(20, ge=1, le=100),
    user: Optional[dict] = Depends(get_optional_user),
):
    filt: Dict[str, Any] = {}
    if mine and user:
        filt["user"] = str(user["_id"])
    elif not _is_staff(user):
        visible = [{"is_public": True}]
        if user:
            visible.append({"user": str(user["_id"])})
        filt["$or"] = visible
    if build_type:
        filt["build_type"] = build_type

    total = db["userbuild"].count_documents(filt)
    items = list(db["userbuild"].find(filt).sort([("created_at", -1), ("_id", 1)])
                 .skip((page - 1) * limit).limit(limit))
    return success(items, **page_info(total, page, limit, len(items)))


@router.post("/validate")
async def validate_build(selections: List[BuildSelection]):
    assessment = builds.evaluate([s.model_dump() for s in selections], strict=False)
    return success({
        "is_valid": assessment.is_valid,
        "total_price": assessment.total_price,
        "errors": assessment.errors,
        "missing_categories": assessment.missing_categories,
        "warnings": _warnings(assessment),
        "compatibility_checked": assessment.compatibility_checked,
    })


@router.get("/{build_id}")
async def get_build(build_id: str, user: Optional[dict] = Depends(get_optional_user)):
    return success(_load(build_id, user))


@router.post("", status_code=201)
async def create_build(payload: UserBuild, user: Optional[dict] = Depends(get_optional_user)):
    doc = payload.model_dump()
    assessment = builds.evaluate(doc["components"])
    doc["total_price"] = assessment.total_price
    doc["user"] = str(user["_id"]) if user else None
    new_id = create_document("userbuild", doc)
    return success(find_by_id("userbuild", new_id, "build"), "Build saved", warnings=_warnings(assessment))


@router.put("/{build_id}")
async def update_build(build_id: str, payload: UserBuildUpdate, user: Optional[dict] = Depends(get_optional_user)):
    build = _load(build_id, user)
    if not _can_edit(build, user):
        raise HTTPException(status_code=403, detail="You can only modify your own builds")
    build.update(payload.model_dump(exclude_unset=True))
    assessment = builds.evaluate(build.get("components") or [])
    build["total_price"] = assessment.total_price
    replace_document("userbuild", build)
    return success(build, "Build updated", warnings=_warnings(assessment))


@router.delete("/{build_id}")
async def delete_build(build_id: str, user: Optional[dict] = Depends(get_optional_user)):
    build = _load(build_id, user)
    if not _can_edit(build, user):
        raise HTTPException(status_code=403, detail="You can only delete your own builds")
    db["userbuild"].delete_one({"_id": build["_id"]})
    return success(message="Build deleted")
