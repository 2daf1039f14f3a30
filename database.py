"""
MongoDB access for the Provision Store Billing API.

`db` is the connected database (or None when DATABASE_URL/DATABASE_NAME are
not configured). BillStore and ProductStore are the narrow persistence
interfaces the billing engine relies on.
"""

import logging
import re
from datetime import datetime, timezone
from typing import Any, Dict, Iterable, Optional, Union

from bson import ObjectId
from pydantic import BaseModel
from pymongo import ASCENDING, DESCENDING, MongoClient
from pymongo.database import Database
from pymongo.errors import DuplicateKeyError

from config import settings
from errors import UniquenessViolation

logger = logging.getLogger(__name__)

db: Optional[Database] = None


def utcnow() -> datetime:
    """Current UTC time as a naive datetime, the way MongoDB hands dates back."""
    return datetime.now(timezone.utc).replace(tzinfo=None)


def init_db(database: Optional[Database] = None) -> Optional[Database]:
    """Bind the module-level database, connecting from settings when none is given."""
    global db
    if database is not None:
        db = database
    elif settings.database_url and settings.database_name:
        client = MongoClient(settings.database_url)
        db = client[settings.database_name]
    else:
        logger.warning("DATABASE_URL/DATABASE_NAME not set; database unavailable")
        db = None
    return db


def get_db() -> Optional[Database]:
    return db


def ensure_indexes(database: Database) -> None:
    """Create the unique bill number constraint and the query indexes."""
    database["bill"].create_index([("bill_number", ASCENDING)], unique=True)
    database["bill"].create_index([("user_id", ASCENDING), ("created_at", DESCENDING)])
    database["bill"].create_index([("status", ASCENDING)])
    database["product"].create_index([("user_id", ASCENDING), ("is_active", ASCENDING)])
    database["product"].create_index([("name", ASCENDING), ("category", ASCENDING)])
    database["user"].create_index([("username", ASCENDING)], unique=True)
    logger.debug("Indexes ensured on %s", database.name)


# ----- Document helpers -----

def oid(value: Optional[str]) -> Optional[ObjectId]:
    if value is None:
        return None
    try:
        return ObjectId(value)
    except Exception:
        return None


def serialize(doc: Optional[Dict[str, Any]]) -> Optional[Dict[str, Any]]:
    """Turn a stored document into a JSON-ready dict with a string `id`."""
    if not doc:
        return doc
    d = {**doc}
    if "_id" in d:
        d["id"] = str(d.pop("_id"))
    for k, v in list(d.items()):
        if isinstance(v, ObjectId):
            d[k] = str(v)
    return d


def create_document(collection_name: str, data: Union[BaseModel, Dict[str, Any]]) -> str:
    """Insert a document, stamping created_at/updated_at. Returns the new id."""
    if db is None:
        raise Exception("Database not available. Check DATABASE_URL and DATABASE_NAME environment variables.")

    if isinstance(data, BaseModel):
        data_dict = data.model_dump()
    else:
        data_dict = data.copy()

    now = utcnow()
    data_dict["created_at"] = now
    data_dict["updated_at"] = now

    result = db[collection_name].insert_one(data_dict)
    return str(result.inserted_id)


# ----- Stores used by the billing engine -----

class BillStore:
    """Ledger of finalized bills."""

    def __init__(self, database: Database):
        self.collection = database["bill"]

    def find_latest_bill_number_with_prefix(self, prefix: str) -> Optional[str]:
        doc = self.collection.find_one(
            {"bill_number": {"$regex": f"^{re.escape(prefix)}"}},
            projection={"bill_number": 1},
            sort=[("bill_number", DESCENDING)],
        )
        return doc["bill_number"] if doc else None

    def insert_bill(self, doc: Dict[str, Any]) -> Dict[str, Any]:
        """Insert a whole bill in one write. Raises UniquenessViolation on a bill number collision."""
        document = dict(doc)
        try:
            self.collection.insert_one(document)
        except DuplicateKeyError as exc:
            raise UniquenessViolation(doc["bill_number"]) from exc
        return document


class ProductStore:
    """Catalog lookups needed when resolving cart lines."""

    def __init__(self, database: Database):
        self.collection = database["product"]

    def find_active_products_by_ids(self, ids: Iterable[str], user_id: str) -> Dict[str, Dict[str, Any]]:
        object_ids = [o for o in (oid(i) for i in set(ids)) if o is not None]
        if not object_ids:
            return {}
        docs = self.collection.find({"_id": {"$in": object_ids}, "user_id": user_id, "is_active": True})
        return {str(d["_id"]): d for d in docs}


init_db()
