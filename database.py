"""
Database helpers

Thin layer over pymongo. `db` is None when DATABASE_URL is not set so the
app can still boot and report its status on /test.

Collections:
- category, subcategory, product, order, settings, admin
"""

from datetime import datetime, timezone
from typing import Any, Dict, List, Optional, Union

from bson import ObjectId
from pydantic import BaseModel
from pymongo import ASCENDING, MongoClient

import config
from errors import UnknownError, ValidationError

_client = MongoClient(config.DATABASE_URL) if config.DATABASE_URL else None
db = _client[config.DATABASE_NAME] if _client is not None else None


def collection(name: str):
    if db is None:
        raise UnknownError("Database not configured")
    return db[name]


def now() -> datetime:
    return datetime.now(timezone.utc)


def create_document(collection_name: str, data: Union[BaseModel, Dict[str, Any]]) -> str:
    if isinstance(data, BaseModel):
        doc = data.model_dump()
    else:
        doc = dict(data)
    stamp = now()
    doc.setdefault("created_at", stamp)
    doc["updated_at"] = stamp
    result = collection(collection_name).insert_one(doc)
    return str(result.inserted_id)


def get_documents(
    collection_name: str,
    filter_dict: Optional[Dict[str, Any]] = None,
    sort: Optional[List[tuple]] = None,
) -> List[Dict[str, Any]]:
    cursor = collection(collection_name).find(filter_dict or {})
    if sort:
        cursor = cursor.sort(sort)
    return list(cursor)


def to_object_id(id_str: Any) -> ObjectId:
    if isinstance(id_str, ObjectId):
        return id_str
    if not id_str or not ObjectId.is_valid(str(id_str)):
        raise ValidationError("Invalid id format")
    return ObjectId(str(id_str))


def find_by_id(collection_name: str, id_str: Any) -> Optional[Dict[str, Any]]:
    return collection(collection_name).find_one({"_id": to_object_id(id_str)})


def serialize(doc: Optional[Dict[str, Any]]) -> Optional[Dict[str, Any]]:
    if not doc:
        return doc
    out = {}
    for k, v in doc.items():
        key = "id" if k == "_id" else k
        if isinstance(v, ObjectId):
            out[key] = str(v)
        elif isinstance(v, datetime):
            out[key] = v.isoformat()
        elif isinstance(v, dict):
            out[key] = serialize(v)
        elif isinstance(v, list):
            out[key] = [serialize(x) if isinstance(x, dict) else (str(x) if isinstance(x, ObjectId) else x) for x in v]
        else:
            out[key] = v
    return out


def ensure_indexes() -> None:
    if db is None:
        return
    db["category"].create_index("name", unique=True)
    db["category"].create_index("slug", unique=True)
    db["subcategory"].create_index([("category", ASCENDING), ("slug", ASCENDING)], unique=True)
    db["product"].create_index([("order", ASCENDING), ("created_at", ASCENDING)])
    db["order"].create_index("order_number", unique=True)
    db["admin"].create_index("email", unique=True)
