import logging
import re
from typing import Any, Dict, List, Optional

from fastapi import APIRouter, Depends, HTTPException, Query

from pcdungeon import orders
from pcdungeon.database import create_document, db, find_by_id, find_many_by_ids, replace_document
from pcdungeon.responses import page_info, success
from pcdungeon.schemas import ORDER_STATUSES, Order, OrderStatusUpdate, OrderUpdate, SupplierOfferIn
from pcdungeon.security import require_staff
from pcdungeon.supplier_pricing import update_best_price_indicators

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/orders", tags=["orders"], dependencies=[Depends(require_staff)])

SORT_FIELDS = {"created_at", "order_date", "total_amount", "order_number", "status", "quantity"}


def supplier_snapshots(offers: List[SupplierOfferIn]) -> List[dict]:
    found = find_many_by_ids("supplier", [o.supplier_id for o in offers])
    snapshots = []
    for offer in offers:
        supplier = found.get(offer.supplier_id)
        if supplier is None:
            raise HTTPException(status_code=400, detail=f"Supplier not found: {offer.supplier_id}")
        snapshots.append({
            "supplier": offer.supplier_id,
            "name": supplier.get("name"),
            "contact": supplier.get("contact"),
            "email": supplier.get("email"),
            "price": offer.price,
        })
    return snapshots


def _resolve_refs(order: dict) -> None:
    product = find_by_id("product", order["product_id"], "product")
    if not order.get("product_name"):
        order["product_name"] = product.get("name")
    if order.get("supplier_id"):
        supplier = find_by_id("supplier", order["supplier_id"], "supplier")
        if not order.get("supplier_name"):
            order["supplier_name"] = supplier.get("name")


@router.get("")
def list_orders(
    status: Optional[str] = None,
    search: Optional[str] = None,
    sort_by: str = "created_at",
    sort_order: str = Query("desc", pattern="^(asc|desc)$"),
    page: int = Query(1, ge=1),
    limit: int = Query(10, ge=1, le=100),
):
    filt: Dict[str, Any] = {}
    if status and status != "all":
        filt["status"] = orders.validate_status(status)
    if search:
        pattern = {"$regex": re.escape(search), "$options": "i"}
        filt["$or"] = [{"order_number": pattern}, {"description": pattern},
                       {"product_name": pattern}, {"supplier_name": pattern}]
    if sort_by not in SORT_FIELDS:
        sort_by = "created_at"
    direction = 1 if sort_order == "asc" else -1

    total = db["order"].count_documents(filt)
    items = list(db["order"].find(filt).sort([(sort_by, direction), ("_id", direction)])
                 .skip((page - 1) * limit).limit(limit))
    return success(items, **page_info(total, page, limit, len(items)))


@router.get("/analytics")
def analytics():
    by_status = {s: {"count": 0, "value": 0.0} for s in ORDER_STATUSES}
    total_orders, total_value = 0, 0.0
    for order in db["order"].find({}, {"status": 1, "total_amount": 1}):
        amount = float(order.get("total_amount") or 0)
        bucket = by_status.setdefault(order.get("status", "Pending"), {"count": 0, "value": 0.0})
        bucket["count"] += 1
        bucket["value"] += amount
        total_orders += 1
        total_value += amount
    return success({
        "total_orders": total_orders,
        "total_value": round(total_value, 2),
        "average_order_value": round(total_value / total_orders, 2) if total_orders else 0,
        "by_status": by_status,
    })


@router.get("/product/{product_id}/suppliers")
def product_suppliers(product_id: str):
    product = find_by_id("product", product_id, "product")
    found = find_many_by_ids("supplier", [e.get("supplier") for e in product.get("suppliers") or []])
    offers = []
    for entry in product.get("suppliers") or []:
        supplier = found.get(str(entry.get("supplier")))
        if supplier is None:
            continue
        offers.append({
            "supplier": str(supplier["_id"]),
            "name": supplier.get("name"),
            "contact": supplier.get("contact"),
            "email": supplier.get("email"),
            "price": float(entry.get("price") or 0),
        })
    update_best_price_indicators(offers)
    offers.sort(key=lambda o: o["price"])
    return success({"product": {"id": str(product["_id"]), "name": product.get("name")}, "suppliers": offers})


@router.get("/{order_id}")
def get_order(order_id: str):
    return success(find_by_id("order", order_id, "order"))


@router.post("", status_code=201)
def create_order(payload: Order):
    doc = payload.model_dump(exclude={"suppliers"})
    doc["suppliers"] = supplier_snapshots(payload.suppliers)
    _resolve_refs(doc)
    orders.prepare_order(doc, is_new=True)
    new_id = create_document("order", doc)
    logger.info("Created order %s (%s)", doc["order_number"], new_id)
    return success(find_by_id("order", new_id, "order"), "Order created")


@router.put("/{order_id}")
def update_order(order_id: str, payload: OrderUpdate):
    order = find_by_id("order", order_id, "order")
    updates = payload.model_dump(exclude_unset=True, exclude={"suppliers"})
    if "status" in updates:
        updates["status"] = orders.transition(order.get("status", "Pending"), updates["status"])
    if payload.suppliers is not None:
        order["suppliers"] = supplier_snapshots(payload.suppliers)
    order.update(updates)
    if "product_id" in updates or "supplier_id" in updates:
        _resolve_refs(order)
    orders.prepare_order(order)
    replace_document("order", order)
    return success(order, "Order updated")


@router.patch("/{order_id}/status")
def update_order_status(order_id: str, payload: OrderStatusUpdate):
    order = find_by_id("order", order_id, "order")
    previous = order.get("status", "Pending")
    order["status"] = orders.transition(previous, payload.status)
    orders.prepare_order(order)
    replace_document("order", order)
    logger.info("Order %s: %s -> %s", order.get("order_number"), previous, order["status"])
    return success(order, "Order status updated")


@router.delete("/{order_id}")
def cancel_order(order_id: str):
    order = find_by_id("order", order_id, "order")
    previous = order.get("status", "Pending")
    order["status"] = orders.transition(previous, "Cancelled")
    orders.prepare_order(order)
    replace_document("order", order)
    logger.info("Order %s cancelled", order.get("order_number"))
    return success(order, "Order cancelled")
