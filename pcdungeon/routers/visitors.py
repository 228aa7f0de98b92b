"""
Visitor check-in by QR code.

Each visitor gets a ``qr_id`` (their name squashed to lowercase plus five
random digits) and a scan URL to encode in the QR image. Scanning bumps
``scan_count``; the first scan of a pending visitor checks them in.

    pending ──> checked-in ──> checked-out
"""
import logging
import random
import re
from typing import Any, Dict, Optional

from fastapi import APIRouter, Depends, HTTPException, Query
from pymongo import ReturnDocument

from pcdungeon import config
from pcdungeon.database import create_document, db, find_by_id, replace_document, utcnow
from pcdungeon.responses import page_info, success
from pcdungeon.schemas import VisitorIn, VisitorStatus, VisitorStatusUpdate
from pcdungeon.security import require_staff

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/visitors", tags=["visitors"])

QR_ID_ATTEMPTS = 10
STATUSES = ("pending", "checked-in", "checked-out")


def make_qr_id(name: str) -> str:
    squashed = re.sub(r"\s+", "", name).lower()
    return f"{squashed}{random.randint(10000, 99999)}"


def scan_url(qr_id: str) -> str:
    return f"{config.VISITOR_SCAN_URL.rstrip('/')}/{qr_id}"


def apply_status(visitor: dict, status: str) -> dict:
    visitor["status"] = status
    if status == "checked-in":
        visitor["check_in_time"] = utcnow()
        visitor["check_out_time"] = None
    elif status == "checked-out":
        visitor["check_out_time"] = utcnow()
    return visitor


@router.get("")
def list_visitors(
    search: Optional[str] = None,
    status: Optional[VisitorStatus] = None,
    page: int = Query(1, ge=1),
    limit: int = Query(50, ge=1, le=200),
    user: dict = Depends(require_staff),
):
    filt: Dict[str, Any] = {}
    if search:
        filt["name"] = {"$regex": re.escape(search), "$options": "i"}
    if status:
        filt["status"] = status
    total = db["visitor"].count_documents(filt)
    items = list(db["visitor"].find(filt).sort([("created_at", -1), ("_id", 1)])
                 .skip((page - 1) * limit).limit(limit))
    return success(items, **page_info(total, page, limit, len(items)))


@router.get("/stats")
def visitor_stats(user: dict = Depends(require_staff)):
    today = utcnow().replace(hour=0, minute=0, second=0, microsecond=0)
    return success({
        "total": db["visitor"].count_documents({}),
        "today_visitors": db["visitor"].count_documents({"created_at": {"$gte": today}}),
        "by_status": {s: db["visitor"].count_documents({"status": s}) for s in STATUSES},
    })


@router.get("/scan/{qr_id}")
def scan(qr_id: str):
    visitor = db["visitor"].find_one_and_update(
        {"qr_id": qr_id},
        {"$inc": {"scan_count": 1}, "$set": {"last_scanned_at": utcnow()}},
        return_document=ReturnDocument.AFTER,
    )
    if not visitor:
        raise HTTPException(status_code=404, detail="Visitor not found")
    if visitor["scan_count"] == 1 and visitor.get("status") == "pending":
        apply_status(visitor, "checked-in")
        replace_document("visitor", visitor)
        logger.info("Visitor %s checked in on first scan", qr_id)
    return success(visitor, is_first_scan=visitor["scan_count"] == 1,
                   is_multiple_scan=visitor["scan_count"] > 1)


@router.get("/{visitor_id}")
def get_visitor(visitor_id: str, user: dict = Depends(require_staff)):
    return success(find_by_id("visitor", visitor_id, "visitor"))


@router.post("", status_code=201)
def create_visitor(payload: VisitorIn, user: dict = Depends(require_staff)):
    for _ in range(QR_ID_ATTEMPTS):
        qr_id = make_qr_id(payload.name)
        if not db["visitor"].find_one({"qr_id": qr_id}):
            break
    else:
        raise HTTPException(status_code=500, detail="Unable to generate unique QR ID. Please try again.")

    new_id = create_document("visitor", {
        "name": payload.name,
        "qr_id": qr_id,
        "scan_url": scan_url(qr_id),
        "status": "pending",
        "scan_count": 0,
        "last_scanned_at": None,
        "check_in_time": None,
        "check_out_time": None,
    })
    return success(find_by_id("visitor", new_id, "visitor"), "Visitor created")


@router.put("/{visitor_id}/status")
def update_visitor_status(visitor_id: str, payload: VisitorStatusUpdate, user: dict = Depends(require_staff)):
    visitor = apply_status(find_by_id("visitor", visitor_id, "visitor"), payload.status)
    replace_document("visitor", visitor)
    return success(visitor, "Visitor status updated")


@router.delete("/{visitor_id}")
def delete_visitor(visitor_id: str, user: dict = Depends(require_staff)):
    visitor = find_by_id("visitor", visitor_id, "visitor")
    db["visitor"].delete_one({"_id": visitor["_id"]})
    return success(message="Visitor deleted")
