"""Best-price selection across supplier offers and supplier rating roll-up."""
from typing import List, Optional


def best_price(offers: List[dict]) -> Optional[float]:
    prices = [float(o.get("price") or 0) for o in offers]
    return min(prices) if prices else None


def update_best_price_indicators(offers: List[dict]) -> List[dict]:
    """Flag every offer whose price equals the minimum; ties are all flagged."""
    lowest = best_price(offers)
    for offer in offers:
        offer["is_best_price"] = lowest is not None and float(offer.get("price") or 0) == lowest
    return offers


def refresh_product_prices(product: dict) -> dict:
    suppliers = product.setdefault("suppliers", [])
    update_best_price_indicators(suppliers)
    product["lowest_price"] = best_price(suppliers) or 0
    return product


def average_rating(ratings: List[dict]) -> float:
    if not ratings:
        return 0
    total = sum(float(r["rating"]) for r in ratings)
    return round(total / len(ratings), 1)


def refresh_supplier(supplier: dict) -> dict:
    supplier["average_rating"] = average_rating(supplier.get("ratings") or [])
    supplier["product_count"] = len(supplier.get("products") or [])
    return supplier
