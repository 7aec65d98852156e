"""
Database access for the Game Zone API.

Wraps a pymongo database holding four collections: games, users, ads and
subscribers. Handlers never touch pymongo directly; they receive a
``Database`` instance through FastAPI dependencies.
"""
import logging
import re
from typing import Any, Dict, List, Optional, Sequence, Tuple

from bson import ObjectId
from pymongo import ASCENDING, DESCENDING, MongoClient
from pymongo.errors import DuplicateKeyError, OperationFailure, PyMongoError

logger = logging.getLogger(__name__)

GAMES = "games"
USERS = "users"
ADS = "ads"
SUBSCRIBERS = "subscribers"

NEWEST_FIRST: List[Tuple[str, int]] = [("createdAt", DESCENDING), ("_id", DESCENDING)]


class InvalidIdError(ValueError):
    """Raised when an identifier is not a well-formed ObjectId."""


class NotFoundError(LookupError):
    """Raised when a well-formed identifier matches no document."""


class DuplicateError(Exception):
    """Raised when an insert violates a unique index."""


def to_object_id(value: Any) -> ObjectId:
    if isinstance(value, ObjectId):
        return value
    if not isinstance(value, str) or not ObjectId.is_valid(value):
        raise InvalidIdError(f"Invalid id: {value!r}")
    return ObjectId(value)


def serialize_doc(doc: Optional[Dict[str, Any]]) -> Optional[Dict[str, Any]]:
    """Return a JSON-friendly copy of ``doc`` (ObjectId values become strings)."""
    if doc is None:
        return None
    return _plain(doc)


def _plain(value: Any) -> Any:
    if isinstance(value, ObjectId):
        return str(value)
    if isinstance(value, dict):
        return {k: _plain(v) for k, v in value.items()}
    if isinstance(value, (list, tuple)):
        return [_plain(v) for v in value]
    return value


def title_filter(title: str) -> Dict[str, Any]:
    # case-insensitive substring
    return {"title": {"$regex": re.escape(title), "$options": "i"}}


def category_filter(category: str) -> Dict[str, Any]:
    # case-insensitive, anchored to the whole value
    return {"category": {"$regex": f"^{re.escape(category)}$", "$options": "i"}}


class DocumentCollection:
    """CRUD helpers over a single pymongo collection."""

    def __init__(self, collection):
        self._col = collection

    @property
    def name(self) -> str:
        return self._col.name

    def count(self, filter: Optional[Dict[str, Any]] = None) -> int:
        return self._col.count_documents(filter or {})

    def find_all(
        self,
        filter: Optional[Dict[str, Any]] = None,
        sort: Optional[Sequence[Tuple[str, int]]] = None,
        limit: Optional[int] = None,
        projection: Optional[Dict[str, Any]] = None,
    ) -> List[Dict[str, Any]]:
        cursor = self._col.find(filter or {}, projection)
        if sort:
            cursor = cursor.sort(list(sort))
        if limit:
            cursor = cursor.limit(limit)
        return list(cursor)

    def find_one(self, filter: Dict[str, Any]) -> Optional[Dict[str, Any]]:
        return self._col.find_one(filter)

    def find_by_id(self, doc_id: Any) -> Dict[str, Any]:
        oid = to_object_id(doc_id)
        doc = self._col.find_one({"_id": oid})
        if doc is None:
            raise NotFoundError(f"{self.name} document {oid} not found")
        return doc

    def insert(self, doc: Dict[str, Any]) -> str:
        try:
            result = self._col.insert_one(doc)
        except DuplicateKeyError as e:
            raise DuplicateError(str(e)) from e
        return str(result.inserted_id)

    def update_by_id(self, doc_id: Any, fields: Dict[str, Any]):
        oid = to_object_id(doc_id)
        return self._col.update_one({"_id": oid}, {"$set": fields})

    def delete_by_id(self, doc_id: Any) -> int:
        oid = to_object_id(doc_id)
        return self._col.delete_one({"_id": oid}).deleted_count

    def distinct(self, field: str, filter: Optional[Dict[str, Any]] = None) -> List[Any]:
        return self._col.distinct(field, filter or {})


class Database:
    """The store client: one instance per process, shared by every request."""

    def __init__(self, db):
        self._db = db
        self.games = DocumentCollection(db[GAMES])
        self.users = DocumentCollection(db[USERS])
        self.ads = DocumentCollection(db[ADS])
        self.subscribers = DocumentCollection(db[SUBSCRIBERS])

    @classmethod
    def from_url(cls, url: str, name: str) -> "Database":
        client = MongoClient(url)
        return cls(client[name])

    @property
    def name(self) -> str:
        return self._db.name

    def ping(self) -> bool:
        try:
            self._db.command("ping")
            return True
        except PyMongoError as e:
            logger.warning("Database ping failed: %s", e)
            return False

    def collection_names(self) -> List[str]:
        return self._db.list_collection_names()

    def ensure_indexes(self) -> None:
        self._db[GAMES].create_index([("createdAt", DESCENDING)])
        self._db[ADS].create_index([("createdAt", DESCENDING)])
        for col in (USERS, SUBSCRIBERS):
            try:
                self._db[col].create_index([("email", ASCENDING)], unique=True)
            except OperationFailure as e:
                # Existing duplicate emails block the index; lookups still de-duplicate
                logger.warning("Could not create unique email index on %s: %s", col, e)
