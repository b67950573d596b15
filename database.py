"""
MongoDB access for the denim store.

Collections are named after the lowercase schema class:
- User -> "user"
- Product -> "product"
- Order -> "order"
"""

import logging
import os
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional, Union

from bson import ObjectId
from bson.errors import InvalidId
from pydantic import BaseModel
from pymongo import ASCENDING, DESCENDING, MongoClient
from pymongo.database import Database

from errors import InternalError, InvalidRequest

logger = logging.getLogger(__name__)

DATABASE_URL = os.getenv("DATABASE_URL")
DATABASE_NAME = os.getenv("DATABASE_NAME")

NEWEST_FIRST = [("created_at", DESCENDING), ("_id", DESCENDING)]

db: Optional[Database] = None

if DATABASE_URL and DATABASE_NAME:
    _client = MongoClient(DATABASE_URL)
    db = _client[DATABASE_NAME]
    logger.info("Using MongoDB database %s", DATABASE_NAME)
else:
    logger.warning("DATABASE_URL/DATABASE_NAME not set; database unavailable")


def get_db() -> Database:
    if db is None:
        raise InternalError("Database not configured")
    return db


def ensure_indexes(database: Database) -> None:
    database["user"].create_index([("email", ASCENDING)], unique=True)
    database["order"].create_index([("user_id", ASCENDING), ("created_at", DESCENDING)])
    database["product"].create_index([("category", ASCENDING)])


def now() -> datetime:
    return datetime.now(timezone.utc)


def to_object_id(value: str, label: str = "id") -> ObjectId:
    try:
        return ObjectId(value)
    except (InvalidId, TypeError):
        raise InvalidRequest(f"Invalid {label}: {value}")


def serialize(doc: Optional[dict]) -> Optional[dict]:
    """Copy a document for the API, exposing `_id` as a string `id`."""
    if not doc:
        return doc
    d = dict(doc)
    if "_id" in d:
        d["id"] = str(d.pop("_id"))
    return d


def create_document(database: Database, collection_name: str, data: Union[BaseModel, Dict[str, Any]]) -> str:
    if isinstance(data, BaseModel):
        doc = data.model_dump()
    else:
        doc = dict(data)
    stamp = now()
    doc["created_at"] = stamp
    doc["updated_at"] = stamp
    result = database[collection_name].insert_one(doc)
    return str(result.inserted_id)


def get_documents(
    database: Database,
    collection_name: str,
    filter_dict: Optional[dict] = None,
    sort: Optional[list] = None,
    limit: Optional[int] = None,
) -> List[dict]:
    cursor = database[collection_name].find(filter_dict or {}).sort(sort or NEWEST_FIRST)
    if limit:
        cursor = cursor.limit(limit)
    return list(cursor)
