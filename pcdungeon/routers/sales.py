from collections import OrderedDict

from fastapi import APIRouter, Depends, Query

from pcdungeon.database import create_document, db, find_by_id, utcnow
from pcdungeon.responses import page_info, success
from pcdungeon.schemas import Sale
from pcdungeon.security import require_staff

router = APIRouter(prefix="/api/sales", tags=["sales"], dependencies=[Depends(require_staff)])


@router.post("/add", status_code=201)
def add_sale(payload: Sale):
    doc = payload.model_dump()
    doc["date"] = doc.get("date") or utcnow()
    return success(find_by_id("sale", create_document("sale", doc), "sale"), "Sale added")


@router.get("")
def list_sales(page: int = Query(1, ge=1), limit: int = Query(50, ge=1, le=200)):
    total = db["sale"].count_documents({})
    items = list(db["sale"].find().sort([("date", -1), ("_id", 1)]).skip((page - 1) * limit).limit(limit))
    return success(items, **page_info(total, page, limit, len(items)))


@router.get("/overview")
def overview():
    completed = list(db["sale"].find({"status": "completed"}).sort([("date", 1), ("_id", 1)]))
    monthly = OrderedDict()
    for sale in completed:
        key = sale["date"].strftime("%Y-%m") if sale.get("date") else "unknown"
        monthly[key] = round(monthly.get(key, 0) + float(sale.get("amount") or 0), 2)
    recent = list(db["sale"].find().sort([("date", -1), ("_id", -1)]).limit(5))
    return success({
        "total_sales": round(sum(float(s.get("amount") or 0) for s in completed), 2),
        "completed_count": len(completed),
        "recent_sales": recent,
        "monthly": [{"month": k, "total": v} for k, v in monthly.items()],
    })
