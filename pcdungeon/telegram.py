"""
Telegram bot intake for ad-hoc product submissions.

Three message formats are understood::

    Name: Ryzen 7 7800X3D          new product              new product, Ryzen 7, 1450, Micro Center, boxed
    Price: 1450                    Ryzen 7 7800X3D
    Category: CPU                  1450
    Description: boxed             Micro Center
    Supplier: Micro Center         boxed

Each accepted submission becomes a Product, linked to an existing supplier
(matched by name) or to one created on the fly.
"""
import logging
import re
from typing import Optional

import requests
from pydantic import BaseModel

from pcdungeon import config
from pcdungeon.database import create_document, db, find_by_id
from pcdungeon.supplier_links import set_offer
from pcdungeon.supplier_pricing import refresh_product_prices

logger = logging.getLogger(__name__)

DEFAULT_CATEGORY = "Telegram Import"
PRICE_RE = re.compile(r"[\d.]+")
FALLBACK_RE = re.compile(
    r"(?:product|name):\s*([^,\n]+)(?:,\s*category:\s*([^,\n]+))?(?:,\s*description:\s*([^,\n]+))?",
    re.IGNORECASE,
)
STRUCTURED_KEYS = ("name", "price", "category", "description", "supplier")

HELP_TEXT = (
    "🤖 <b>PC Dungeon Product Bot - Help</b>\n\n"
    "<b>Available Commands:</b>\n"
    "• <code>/help</code> - Show this help message\n"
    "• <code>/formats</code> - Show product format examples\n"
    "• <code>new product</code> - Get a blank product form"
)
FORMATS_TEXT = (
    "<b>Structured Format:</b>\n"
    "<code>Name: \nPrice: \nCategory: \nDescription: \nSupplier: </code>\n\n"
    "<b>Quick Multi-Line Format:</b>\n"
    "<code>new product\n[Product Name]\n[Price]\n[Supplier Name]\n[Description]</code>\n\n"
    "<b>Quick Comma Format:</b>\n"
    "<code>new product, [Product Name], [Price], [Supplier Name], [Description]</code>"
)
FORM_TEXT = (
    "📝 <b>Product Information Form</b>\n\n"
    "Please fill out the form below and send it back:\n\n"
    "<code>Name: \nPrice: \nCategory: \nDescription: \nSupplier: </code>"
)
GREETING_TEXT = '👋 Hi! Send /help to see how to add products, or type "formats" for the message template.'


class ProductSubmission(BaseModel):
    name: str
    price: Optional[float] = None
    category: str = DEFAULT_CATEGORY
    description: str = "Added via Telegram"
    supplier: Optional[str] = None


def _price(text: str) -> Optional[float]:
    match = PRICE_RE.search(text or "")
    if not match:
        return None
    try:
        return float(match.group(0))
    except ValueError:
        return None


def _complete(name, price, supplier, description, category=DEFAULT_CATEGORY) -> Optional[ProductSubmission]:
    if name and price and supplier and description and category:
        return ProductSubmission(name=name, price=price, supplier=supplier,
                                 description=description, category=category)
    return None


def parse_product_message(text: str) -> Optional[ProductSubmission]:
    if not text:
        return None
    lowered = text.lower()
    lines = [line.strip() for line in text.split("\n") if line.strip()]

    if lowered.startswith("new product,"):
        parts = [p.strip() for p in text[len("new product,"):].split(",")]
        if len(parts) >= 4:
            found = _complete(parts[0], _price(parts[1]), parts[2], ", ".join(parts[3:]).strip())
            if found:
                return found
    elif lowered.startswith("new product"):
        padded = lines + [""] * 5
        found = _complete(padded[1], _price(padded[2]), padded[3], padded[4])
        if found:
            return found

    values = {}
    for line in lines:
        key, sep, rest = line.partition(":")
        key = key.strip().lower()
        if sep and key in STRUCTURED_KEYS:
            values[key] = rest.strip()
    found = _complete(values.get("name"), _price(values.get("price", "")), values.get("supplier"),
                      values.get("description"), values.get("category"))
    if found:
        return found

    if "product:" in lowered or "name:" in lowered:
        match = FALLBACK_RE.search(text)
        if match:
            return ProductSubmission(
                name=match.group(1).strip(),
                category=(match.group(2) or DEFAULT_CATEGORY).strip(),
                description=(match.group(3) or "Added via Telegram").strip(),
            )
    return None


def looks_like_product(text: str) -> bool:
    lowered = text.lower()
    has_name = "name:" in lowered and any(k in lowered for k in ("price:", "product:", "supplier:"))
    return has_name or lowered.startswith("new product")


class TelegramClient:
    def __init__(self, token: str = None, api_base: str = None, timeout: float = 10):
        self.token = config.TELEGRAM_BOT_TOKEN if token is None else token
        self.api_base = api_base or config.TELEGRAM_API_BASE
        self.timeout = timeout

    def send_message(self, chat_id, text: str, parse_mode: str = "HTML") -> bool:
        if not self.token:
            logger.info("Telegram token not configured; dropping message to chat %s", chat_id)
            return False
        url = f"{self.api_base}/bot{self.token}/sendMessage"
        try:
            resp = requests.post(url, json={"chat_id": chat_id, "text": text, "parse_mode": parse_mode},
                                 timeout=self.timeout)
            resp.raise_for_status()
        except requests.RequestException as exc:
            logger.error("Error sending Telegram message to %s: %s", chat_id, exc)
            return False
        return True


# Ingestion

def find_supplier_by_name(name: str) -> Optional[dict]:
    exact = db["supplier"].find_one({"name": {"$regex": f"^{re.escape(name)}$", "$options": "i"}})
    if exact:
        return exact
    needle = name.lower()
    for supplier in db["supplier"].find({}, {"name": 1}):
        other = (supplier.get("name") or "").lower()
        if other and (needle in other or other in needle):
            return find_by_id("supplier", str(supplier["_id"]), "supplier")
    return None


def create_supplier_for(name: str) -> dict:
    doc = {
        "name": name,
        "contact": "Added via Telegram",
        "phone": "N/A",
        "address": "Added automatically via Telegram Bot",
        "products": [],
        "comments": [],
        "ratings": [],
        "average_rating": 0,
    }
    new_id = create_document("supplier", doc)
    return find_by_id("supplier", new_id, "supplier")


def ingest(submission: ProductSubmission, source: str, extra: Optional[dict] = None) -> dict:
    supplier = None
    if submission.supplier:
        supplier = find_supplier_by_name(submission.supplier) or create_supplier_for(submission.supplier)

    product = {
        "name": submission.name,
        "category": submission.category,
        "description": submission.description,
        "status": "Available",
        "source": source,
        "suppliers": [],
    }
    product.update(extra or {})
    refresh_product_prices(product)
    product = find_by_id("product", create_document("product", product), "product")
    if supplier and submission.price:
        set_offer(product, supplier, submission.price)

    logger.info("Telegram import created product %s (%s)", submission.name, product["_id"])
    return product


def _confirmation(submission: ProductSubmission, product: dict, supplier_name: Optional[str]) -> str:
    text = f'✅ Product "{submission.name}" has been added successfully!'
    if submission.price and supplier_name:
        text += f"\n💰 Price: {submission.price:g} (from {supplier_name})"
    if submission.category:
        text += f"\n📂 Category: {submission.category}"
    return text


def handle_message(message: dict, client: TelegramClient) -> Optional[dict]:
    chat_id = (message.get("chat") or {}).get("id")
    text = (message.get("text") or "").strip()
    lowered = text.lower()
    logger.info("Telegram message from chat %s", chat_id)

    if lowered == "new product":
        client.send_message(chat_id, FORM_TEXT)
        return None
    if text and looks_like_product(text):
        submission = parse_product_message(text)
        if submission is None:
            client.send_message(chat_id, "❌ Could not parse product information from message.\n\n" + FORMATS_TEXT)
            return None
        product = ingest(submission, "telegram")
        client.send_message(chat_id, _confirmation(submission, product, submission.supplier))
        return product
    if any(k in lowered for k in ("/formats", "formats", "product format", "how to add product")):
        client.send_message(chat_id, FORMATS_TEXT)
        return None
    if any(k in lowered for k in ("help", "format", "example")):
        client.send_message(chat_id, HELP_TEXT)
        return None
    client.send_message(chat_id, GREETING_TEXT)
    return None


def handle_channel_post(post: dict) -> Optional[dict]:
    submission = parse_product_message(post.get("text") or "")
    if submission is None:
        return None
    chat_id = (post.get("chat") or {}).get("id")
    return ingest(submission, "telegram_channel",
                  {"telegram_post_id": post.get("message_id"), "telegram_chat_id": chat_id})


def handle_update(update: dict, client: Optional[TelegramClient] = None) -> dict:
    client = client or TelegramClient()
    created = []
    if update.get("message"):
        product = handle_message(update["message"], client)
        if product:
            created.append(product)
    if update.get("channel_post"):
        product = handle_channel_post(update["channel_post"])
        if product:
            created.append(product)
    return {"products_created": len(created)}
