"""
Order lifecycle: status machine and the recompute-before-save hook.

    Pending ──> Processing ──> Completed
       │            │
       └────────────┴────> Cancelled

Completed and Cancelled are terminal. No stock is reserved or released on
any transition.
"""
import logging
from typing import Callable, Optional

from pcdungeon.database import next_sequence, utcnow
from pcdungeon.errors import ValidationError
from pcdungeon.schemas import ORDER_STATUSES
from pcdungeon.supplier_pricing import update_best_price_indicators

logger = logging.getLogger(__name__)

TRANSITIONS = {
    "Pending": {"Processing", "Cancelled"},
    "Processing": {"Completed", "Cancelled"},
    "Completed": set(),
    "Cancelled": set(),
}


def validate_status(status: str) -> str:
    if status not in ORDER_STATUSES:
        raise ValidationError(f"Invalid status. Valid statuses are: {', '.join(ORDER_STATUSES)}")
    return status


def transition(current: str, new: str) -> str:
    validate_status(new)
    if new == current:
        return new
    if new not in TRANSITIONS.get(current, set()):
        raise ValidationError(f"Cannot change order status from {current} to {new}")
    return new


def format_order_number(year: int, sequence: int) -> str:
    return f"ORD-{year}-{sequence:03d}"


def next_order_number(year: Optional[int] = None, sequence: Callable[[str], int] = next_sequence) -> str:
    year = year or utcnow().year
    return format_order_number(year, sequence(f"order-{year}"))


def prepare_order(order: dict, is_new: bool = False) -> dict:
    """Recompute every derived order field; call before each insert/replace."""
    order["total_amount"] = int(order.get("quantity") or 0) * float(order.get("unit_price") or 0)
    update_best_price_indicators(order.setdefault("suppliers", []))
    if order.get("status") == "Completed" and not order.get("completed_date"):
        order["completed_date"] = utcnow()
    if is_new:
        order.setdefault("status", "Pending")
        order.setdefault("order_date", utcnow())
        if not order.get("order_number"):
            order["order_number"] = next_order_number()
    return order
