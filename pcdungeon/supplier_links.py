"""
Keeps the two sides of a supplier offer in step.

An offer lives twice: on the product (``suppliers[]``, with best-price
flags and ``lowest_price``) and on the supplier (``products[]``). Every
change rewrites both documents and reruns the derived-field refresh.
"""
import logging
from typing import List

from pcdungeon.database import db, replace_document, utcnow
from pcdungeon.supplier_pricing import refresh_product_prices, refresh_supplier

logger = logging.getLogger(__name__)


def _without(entries: List[dict], key: str, ref: str) -> List[dict]:
    return [e for e in entries or [] if str(e.get(key)) != ref]


def set_offer(product: dict, supplier: dict, price: float) -> None:
    product_id, supplier_id = str(product["_id"]), str(supplier["_id"])
    now = utcnow()

    product["suppliers"] = _without(product.get("suppliers"), "supplier", supplier_id)
    product["suppliers"].append({"supplier": supplier_id, "price": float(price), "last_updated": now})
    refresh_product_prices(product)
    replace_document("product", product)

    supplier["products"] = _without(supplier.get("products"), "product", product_id)
    supplier["products"].append({"product": product_id, "price": float(price), "last_updated": now})
    refresh_supplier(supplier)
    replace_document("supplier", supplier)


def remove_offer(product: dict, supplier: dict) -> None:
    product_id, supplier_id = str(product["_id"]), str(supplier["_id"])

    product["suppliers"] = _without(product.get("suppliers"), "supplier", supplier_id)
    refresh_product_prices(product)
    replace_document("product", product)

    supplier["products"] = _without(supplier.get("products"), "product", product_id)
    refresh_supplier(supplier)
    replace_document("supplier", supplier)


def detach_supplier(supplier_id: str) -> int:
    """Drop ``supplier_id`` from every product; returns how many were touched."""
    touched = 0
    for product in db["product"].find({"suppliers.supplier": supplier_id}):
        product["suppliers"] = _without(product.get("suppliers"), "supplier", supplier_id)
        refresh_product_prices(product)
        replace_document("product", product)
        touched += 1
    logger.info("Detached supplier %s from %d products", supplier_id, touched)
    return touched


def detach_product(product_id: str) -> int:
    touched = 0
    for supplier in db["supplier"].find({"products.product": product_id}):
        supplier["products"] = _without(supplier.get("products"), "product", product_id)
        refresh_supplier(supplier)
        replace_document("supplier", supplier)
        touched += 1
    return touched
