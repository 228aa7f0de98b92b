"""
MongoDB access layer.

Every collection is named after the lowercase of its schema class
(``Component`` -> ``component``). Cross-aggregate references are stored as
string ids; each document's own ``_id`` is an ObjectId.
"""
import logging
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional

from bson import ObjectId
from pydantic import BaseModel
from pymongo import MongoClient, ReturnDocument
from pymongo.collation import Collation

from pcdungeon import config
from pcdungeon.errors import NotFoundError, ValidationError

logger = logging.getLogger(__name__)

client = MongoClient(config.DATABASE_URL)
db = client[config.DATABASE_NAME]


def utcnow() -> datetime:
    # pymongo hands back naive UTC datetimes at millisecond precision
    now = datetime.now(timezone.utc)
    return now.replace(tzinfo=None, microsecond=now.microsecond // 1000 * 1000)


def create_document(collection_name: str, data: Any) -> str:
    if isinstance(data, BaseModel):
        data = data.model_dump()
    doc = dict(data)
    now = utcnow()
    doc.setdefault("created_at", now)
    doc["updated_at"] = now
    result = db[collection_name].insert_one(doc)
    return str(result.inserted_id)


def replace_document(collection_name: str, doc: dict) -> dict:
    doc["updated_at"] = utcnow()
    db[collection_name].replace_one({"_id": doc["_id"]}, doc)
    return doc


def to_object_id(value: Any, label: str = "document") -> ObjectId:
    if isinstance(value, ObjectId):
        return value
    if not isinstance(value, str) or not ObjectId.is_valid(value):
        raise ValidationError(f"Invalid {label} id: {value}")
    return ObjectId(value)


def find_by_id(collection_name: str, doc_id: Any, label: Optional[str] = None) -> dict:
    label = label or collection_name
    doc = db[collection_name].find_one({"_id": to_object_id(doc_id, label)})
    if not doc:
        raise NotFoundError(f"{label[:1].upper()}{label[1:]} not found")
    return doc


def find_many_by_ids(collection_name: str, ids: List[str]) -> Dict[str, dict]:
    oids = [ObjectId(i) for i in set(ids) if isinstance(i, str) and ObjectId.is_valid(i)]
    if not oids:
        return {}
    return {str(d["_id"]): d for d in db[collection_name].find({"_id": {"$in": oids}})}


def next_sequence(name: str) -> int:
    """Atomically increment and return the counter stored under ``name``."""
    counter = db["counter"].find_one_and_update(
        {"_id": name},
        {"$inc": {"seq": 1}},
        upsert=True,
        return_document=ReturnDocument.AFTER,
    )
    return int(counter["seq"])


def ensure_indexes() -> None:
    """Unique keys the routers check up front; the store has the final say."""
    db["category"].create_index("name", unique=True, name="uniq_category_name",
                                collation=Collation(locale="en", strength=2))
    db["user"].create_index("email", unique=True, name="uniq_user_email")
    db["user"].create_index("username", unique=True, name="uniq_user_username")
    db["settings"].create_index("key", unique=True, name="uniq_settings_key")
    # suppliers without an email are stored with email=None
    db["supplier"].create_index("email", unique=True, name="uniq_supplier_email",
                                partialFilterExpression={"email": {"$type": "string"}})
    db["visitor"].create_index("qr_id", unique=True, name="uniq_visitor_qr_id")


def serialize_id(value):
    if isinstance(value, ObjectId):
        return str(value)
    return value


def serialize_document(doc: Any) -> Any:
    if isinstance(doc, list):
        return [serialize_document(d) for d in doc]
    if not isinstance(doc, dict):
        return serialize_id(doc)
    out = {}
    for k, v in doc.items():
        if k == "_id":
            out["id"] = serialize_id(v)
        else:
            out[k] = serialize_document(v)
    return out
