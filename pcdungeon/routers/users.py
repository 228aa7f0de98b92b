import logging
import re
from typing import Any, Dict, Optional

from fastapi import APIRouter, Depends, HTTPException, Query

from pcdungeon.database import create_document, db, find_by_id, replace_document, to_object_id, utcnow
from pcdungeon.responses import page_info, success
from pcdungeon.schemas import UserBulkUpdate, UserCreate, UserStatus, UserUpdate
from pcdungeon.security import hash_password, permissions_for_role, require_roles

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/users", tags=["users"], dependencies=[Depends(require_roles("admin"))])

PRIVATE_FIELDS = ("hashed_password", "password_reset_token", "password_reset_expires")


def present_user(user: dict) -> dict:
    out = {k: v for k, v in user.items() if k not in PRIVATE_FIELDS}
    out["build_count"] = db["userbuild"].count_documents({"user": str(user["_id"])})
    return out


def _ensure_available(email: Optional[str] = None, username: Optional[str] = None, exclude_id=None) -> None:
    clauses = []
    if email:
        clauses.append({"email": email})
    if username:
        clauses.append({"username": username})
    if not clauses:
        return
    filt: Dict[str, Any] = {"$or": clauses}
    if exclude_id is not None:
        filt["_id"] = {"$ne": exclude_id}
    if db["user"].find_one(filt):
        raise HTTPException(status_code=400, detail="User with this email or username already exists")


@router.get("")
def list_users(
    status: Optional[UserStatus] = None,
    role: Optional[str] = None,
    search: Optional[str] = None,
    page: int = Query(1, ge=1),
    limit: int = Query(10, ge=1, le=100),
):
    filt: Dict[str, Any] = {}
    if status:
        filt["status"] = status
    if role:
        filt["role"] = role
    if search:
        pattern = {"$regex": re.escape(search), "$options": "i"}
        filt["$or"] = [{"username": pattern}, {"email": pattern}]
    total = db["user"].count_documents(filt)
    items = list(db["user"].find(filt).sort([("created_at", -1), ("_id", 1)])
                 .skip((page - 1) * limit).limit(limit))
    return success([present_user(u) for u in items], **page_info(total, page, limit, len(items)))


@router.get("/stats")
def user_stats():
    now = utcnow()
    month_start = now.replace(day=1, hour=0, minute=0, second=0, microsecond=0)
    by_role = {r: db["user"].count_documents({"role": r}) for r in ("admin", "sub-admin", "customer")}
    return success({
        "total_users": db["user"].count_documents({}),
        "active_users": db["user"].count_documents({"status": "active"}),
        "suspended_users": db["user"].count_documents({"status": "suspended"}),
        "new_users_this_month": db["user"].count_documents({"created_at": {"$gte": month_start}}),
        "by_role": by_role,
    })


@router.post("/bulk-update")
def bulk_update(payload: UserBulkUpdate, current_user: dict = Depends(require_roles("admin"))):
    ids = [to_object_id(uid, "user") for uid in payload.user_ids]
    changes: Dict[str, Any] = {"updated_at": utcnow()}
    if payload.status:
        changes["status"] = payload.status
    if payload.role:
        changes["role"] = payload.role
        changes["permissions"] = permissions_for_role(payload.role)
    result = db["user"].update_many({"_id": {"$in": ids}}, {"$set": changes})
    logger.info("Bulk user update by %s: matched=%d modified=%d",
                current_user.get("email"), result.matched_count, result.modified_count)
    return success({"matched_count": result.matched_count, "modified_count": result.modified_count},
                   f"{result.modified_count} users updated")


@router.get("/{user_id}")
def get_user(user_id: str):
    return success(present_user(find_by_id("user", user_id, "user")))


@router.post("", status_code=201)
def create_user(payload: UserCreate):
    email = payload.email.lower()
    _ensure_available(email=email, username=payload.username)
    new_id = create_document("user", {
        "username": payload.username,
        "email": email,
        "hashed_password": hash_password(payload.password),
        "role": payload.role,
        "status": payload.status,
        "permissions": permissions_for_role(payload.role),
    })
    logger.info("Created %s account %s", payload.role, email)
    return success(present_user(find_by_id("user", new_id, "user")), "User created")


@router.put("/{user_id}")
def update_user(user_id: str, payload: UserUpdate):
    user = find_by_id("user", user_id, "user")
    updates = payload.model_dump(exclude_unset=True, exclude_none=True)
    if "email" in updates:
        updates["email"] = updates["email"].lower()
    _ensure_available(email=updates.get("email"), username=updates.get("username"), exclude_id=user["_id"])
    user.update(updates)
    if "role" in updates:
        user["permissions"] = permissions_for_role(user["role"])
    replace_document("user", user)
    return success(present_user(user), "User updated")


@router.delete("/{user_id}")
def delete_user(user_id: str, current_user: dict = Depends(require_roles("admin"))):
    user = find_by_id("user", user_id, "user")
    if user["_id"] == current_user["_id"]:
        raise HTTPException(status_code=400, detail="You cannot delete your own account")
    builds = db["userbuild"].delete_many({"user": str(user["_id"])}).deleted_count
    db["user"].delete_one({"_id": user["_id"]})
    logger.info("Deleted user %s and %d builds", user.get("email"), builds)
    return success(message="User and associated builds deleted")
