"""
MongoDB access helpers.

The connection is configured from the environment (DATABASE_URL and
DATABASE_NAME). Documents get integer ids from the `counter` collection so
ids on the wire stay numeric.
"""
import os
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional, Sequence, Tuple, Union

from pydantic import BaseModel
from pymongo import MongoClient, ReturnDocument
from pymongo.database import Database

from errors import PersistenceError

DATABASE_URL = os.getenv("DATABASE_URL")
DATABASE_NAME = os.getenv("DATABASE_NAME", "storefront")

client: Optional[MongoClient] = MongoClient(DATABASE_URL) if DATABASE_URL else None
db: Optional[Database] = client[DATABASE_NAME] if client is not None else None


def get_db() -> Database:
    """FastAPI dependency returning the configured database."""
    if db is None:
        raise PersistenceError("DATABASE_URL is not configured")
    return db


def utcnow() -> datetime:
    # naive UTC, which is what pymongo hands back on reads
    return datetime.now(timezone.utc).replace(tzinfo=None)


def next_id(database: Database, collection_name: str) -> int:
    counter = database["counter"].find_one_and_update(
        {"_id": collection_name},
        {"$inc": {"seq": 1}},
        upsert=True,
        return_document=ReturnDocument.AFTER,
    )
    return counter["seq"]


def create_document(database: Database, collection_name: str, data: Union[BaseModel, Dict[str, Any]]) -> int:
    """Insert a document with a fresh integer id and timestamps, return the id."""
    if isinstance(data, BaseModel):
        doc = data.model_dump(mode="json")
    else:
        doc = dict(data)
    now = utcnow()
    doc["_id"] = next_id(database, collection_name)
    doc["created_at"] = now
    doc["updated_at"] = now
    database[collection_name].insert_one(doc)
    return doc["_id"]


def get_documents(
    database: Database,
    collection_name: str,
    filter_dict: Optional[Dict[str, Any]] = None,
    sort: Optional[Sequence[Tuple[str, int]]] = None,
    limit: Optional[int] = None,
) -> List[Dict[str, Any]]:
    cursor = database[collection_name].find(filter_dict or {})
    if sort:
        cursor = cursor.sort(list(sort))
    if limit:
        cursor = cursor.limit(limit)
    return list(cursor)


def serialize(doc: Optional[Dict[str, Any]]) -> Optional[Dict[str, Any]]:
    """Expose `_id` as `id` for JSON responses."""
    if doc is None:
        return None
    out = dict(doc)
    out["id"] = out.pop("_id")
    return out
