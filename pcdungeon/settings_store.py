"""Typed key/value settings kept in the ``settings`` collection."""
import logging
from typing import Any

from pcdungeon import config
from pcdungeon.database import db, utcnow

logger = logging.getLogger(__name__)

DEFAULT_SETTINGS = [
    {"key": "currency", "value": config.DEFAULT_CURRENCY, "type": "string",
     "description": "Default currency for pricing", "category": "currency"},
    {"key": "tax_rate", "value": 5, "type": "number",
     "description": "VAT/Tax percentage", "category": "tax"},
    {"key": "default_sorting", "value": "price", "type": "string",
     "description": "Default sorting method for components", "category": "display"},
    {"key": "enable_compatibility_check", "value": True, "type": "boolean",
     "description": "Enable compatibility checking for builds", "category": "features"},
]


def initialize_defaults() -> int:
    created = 0
    for setting in DEFAULT_SETTINGS:
        if db["settings"].find_one({"key": setting["key"]}) is None:
            now = utcnow()
            db["settings"].insert_one({**setting, "created_at": now, "updated_at": now})
            created += 1
    if created:
        logger.info("Initialized %d default settings", created)
    return created


def get_value(key: str, default: Any = None) -> Any:
    setting = db["settings"].find_one({"key": key})
    if setting is None:
        return default
    return setting.get("value", default)


def upsert(key: str, data: dict) -> dict:
    now = utcnow()
    fields = {k: v for k, v in data.items() if k != "key"}
    fields["updated_at"] = now
    db["settings"].update_one(
        {"key": key},
        {"$set": fields, "$setOnInsert": {"key": key, "created_at": now}},
        upsert=True,
    )
    return db["settings"].find_one({"key": key})
