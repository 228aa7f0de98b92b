"""
Price views for components and price roll-up for pre-built PCs.

All functions here are pure: they take plain documents and return or mutate
plain documents. Routers call ``prepare_component`` / ``prepare_prebuild``
unconditionally before every write so the derived fields never go stale.
Missing or empty prices degrade to 0 so incomplete drafts can be saved.
"""
import re
from typing import Optional

from pcdungeon import config
from pcdungeon.schemas import SLOTS

PRICE_VIEWS = ("cost", "individual_price", "build_price")
LOW_STOCK_THRESHOLD = 5
PREBUILD_LIMITED_STOCK_THRESHOLD = 3


def slugify(text: str) -> str:
    text = text.lower()
    text = re.sub(r"[^\w\s-]", "", text)
    text = re.sub(r"\s+", "-", text.strip())
    return re.sub(r"-+", "-", text)


def _amount(money: Optional[dict]) -> float:
    if not money:
        return 0.0
    return float(money.get("amount") or 0)


def price_views(component: dict) -> dict:
    pricing = component.get("pricing") or {}
    views = {}
    for view in PRICE_VIEWS:
        money = pricing.get(view) or {}
        views[view] = {
            "amount": _amount(money),
            "currency": money.get("currency") or config.DEFAULT_CURRENCY,
        }
    return views


def individual_price(component: dict) -> float:
    return _amount((component.get("pricing") or {}).get("individual_price")) or _amount(component.get("price"))


def build_price(component: dict) -> float:
    """Price of ``component`` inside an assembled system.

    Prefers the build price, then the stand-alone price, then the legacy
    ``price`` field.
    """
    pricing = component.get("pricing") or {}
    for money in (pricing.get("build_price"), pricing.get("individual_price"), component.get("price")):
        amount = _amount(money)
        if amount:
            return amount
    return 0.0


def sync_legacy_price(component: dict) -> dict:
    views = price_views(component)
    component["pricing"] = {**(component.get("pricing") or {}), **views}
    component["price"] = dict(views["individual_price"])
    return component


def component_slug(component: dict) -> str:
    parts = [component.get("brand") or "", component.get("name") or "", component.get("model") or ""]
    return slugify(" ".join(p for p in parts if p))


def availability_status(availability: Optional[dict]) -> str:
    availability = availability or {}
    if not availability.get("in_stock", True):
        return "Out of Stock"
    count = availability.get("stock_count") or 0
    if count == 0:
        return "Out of Stock"
    if count < LOW_STOCK_THRESHOLD:
        return "Low Stock"
    return "In Stock"


def prepare_component(component: dict) -> dict:
    sync_legacy_price(component)
    metadata = component.setdefault("metadata", {})
    metadata["slug"] = component_slug(component)
    return component


def present_component(component: dict) -> dict:
    out = dict(component)
    out["availability_status"] = availability_status(component.get("availability"))
    return out


# Pre-built PCs

def slot_snapshot(component: dict) -> dict:
    """Denormalized (name, price) captured when a component is bound to a slot."""
    name = " ".join(p for p in (component.get("brand"), component.get("name")) if p)
    return {
        "component": str(component["_id"]),
        "name": name,
        "price": build_price(component),
    }


def filled_slots(components: Optional[dict]):
    components = components or {}
    for slot in SLOTS:
        selection = components.get(slot)
        if selection and selection.get("component"):
            yield slot, selection


def components_cost(components: Optional[dict]) -> float:
    return sum(float(sel.get("price") or 0) for _, sel in filled_slots(components))


def component_count(components: Optional[dict]) -> int:
    return sum(1 for _ in filled_slots(components))


def recompute_prebuild_pricing(prebuild: dict) -> dict:
    pricing = prebuild.setdefault("pricing", {})
    cost = components_cost(prebuild.get("components"))
    pricing["components_cost"] = cost
    pricing["total_cost"] = cost + float(pricing.get("assembly_fee") or 0)
    prebuild["component_count"] = component_count(prebuild.get("components"))
    return prebuild


def prebuild_availability_status(availability: Optional[dict]) -> str:
    availability = availability or {}
    if not availability.get("in_stock", True):
        return "Out of Stock"
    count = availability.get("stock_count") or 0
    if count == 0:
        return "Build to Order"
    if count < PREBUILD_LIMITED_STOCK_THRESHOLD:
        return "Limited Stock"
    return "In Stock"


def prepare_prebuild(prebuild: dict) -> dict:
    recompute_prebuild_pricing(prebuild)
    metadata = prebuild.setdefault("metadata", {})
    metadata["slug"] = slugify(f"{prebuild.get('name', '')} {prebuild.get('category', '')}")
    return prebuild


def present_prebuild(prebuild: dict) -> dict:
    out = dict(prebuild)
    out["availability_status"] = prebuild_availability_status(prebuild.get("availability"))
    out["component_count"] = component_count(prebuild.get("components"))
    return out
