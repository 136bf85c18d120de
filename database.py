"""
MongoDB access for the Pharmacos admin API.

The client is created lazily from DATABASE_URL / DATABASE_NAME. Routes never
touch the module-level ``db`` directly; they receive it through ``get_db`` so
tests can swap in another database.
"""
import os
from datetime import datetime, timezone
from typing import Any, Dict, Iterable, List, Optional, Union

from bson import ObjectId
from pydantic import BaseModel
from pymongo import MongoClient
from pymongo.database import Database

from errors import InternalError

DATABASE_URL = os.getenv("DATABASE_URL")
DATABASE_NAME = os.getenv("DATABASE_NAME")

client: Optional[MongoClient] = None
db: Optional[Database] = None

if DATABASE_URL and DATABASE_NAME:
    client = MongoClient(DATABASE_URL)
    db = client[DATABASE_NAME]


def get_db() -> Database:
    if db is None:
        raise InternalError("Database not configured")
    return db


def ensure_indexes(database: Database):
    database["account"].create_index("username", unique=True)


def utcnow() -> datetime:
    # Mongo hands back naive UTC datetimes; keep everything on that footing.
    return datetime.now(timezone.utc).replace(tzinfo=None)


def to_object_id(value: Any) -> Optional[ObjectId]:
    if isinstance(value, ObjectId):
        return value
    if isinstance(value, str) and ObjectId.is_valid(value):
        return ObjectId(value)
    return None


def create_document(database: Database, collection_name: str, data: Union[BaseModel, Dict[str, Any]]) -> str:
    if isinstance(data, BaseModel):
        doc = data.model_dump()
    else:
        doc = dict(data)
    now = utcnow()
    doc.setdefault("createdAt", now)
    doc["updatedAt"] = now
    result = database[collection_name].insert_one(doc)
    return str(result.inserted_id)


def populate(database: Database, docs: List[Dict[str, Any]], field: str, collection_name: str,
             projection: Iterable[str] = ("name",)) -> List[Dict[str, Any]]:
    """
    Replace a reference id stored in ``field`` with the referenced document.

    Only ``projection`` fields are kept. References that do not resolve are
    set to None.
    """
    ids = {doc.get(field) for doc in docs if doc.get(field) is not None}
    if not ids:
        return docs
    fields = {name: 1 for name in projection}
    found = {ref["_id"]: ref for ref in database[collection_name].find({"_id": {"$in": list(ids)}}, fields)}
    for doc in docs:
        ref_id = doc.get(field)
        if ref_id is not None:
            doc[field] = found.get(ref_id)
    return docs


def serialize_value(value: Any) -> Any:
    if isinstance(value, ObjectId):
        return str(value)
    if isinstance(value, datetime):
        return value.isoformat()
    if isinstance(value, dict):
        return {k: serialize_value(v) for k, v in value.items()}
    if isinstance(value, (list, tuple)):
        return [serialize_value(v) for v in value]
    return value


def serialize_doc(doc: Optional[Dict[str, Any]]):
    if not doc:
        return doc
    doc = dict(doc)
    if "_id" in doc:
        doc["id"] = doc.pop("_id")
    for k, v in list(doc.items()):
        # populated references are documents too
        if isinstance(v, dict) and "_id" in v:
            doc[k] = serialize_doc(v)
    return serialize_value(doc)
