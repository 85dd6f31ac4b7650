"""
Document store abstraction for MongoDB, SQL and an in-memory test implementation.

Every collection hands out BSON ObjectIds as identifiers, whatever the backing
service, so handlers can parse path ids the same way for all of them.
"""

from __future__ import annotations

import copy
import threading
from dataclasses import dataclass
from typing import Any, Dict, List, Optional, Protocol

from bson import ObjectId
from bson.errors import InvalidId
from pymongo import MongoClient
from sqlalchemy import (
    JSON,
    Column,
    Boolean,
    Integer,
    String,
    UniqueConstraint,
    create_engine,
    select,
    text,
)
from sqlalchemy.engine import make_url
from sqlalchemy.orm import Session, declarative_base, sessionmaker
from sqlalchemy.pool import StaticPool

ID_FIELD = "_id"


class StoreError(Exception):
    """Base class for errors raised by the document stores."""


class InvalidIdentifierError(StoreError, ValueError):
    """Raised when a path id cannot be parsed as an ObjectId."""


class EmptyUpdateError(StoreError):
    """Raised when an update carries no fields to set."""


class ImmutableFieldError(StoreError):
    """Raised when an update tries to change a document's _id."""


class DuplicateIdentifierError(StoreError):
    """Raised when an insert reuses an existing _id."""


class DocumentNotFoundError(LookupError):
    """Raised by handlers in strict mode when a lookup finds nothing."""


def parse_object_id(value: Any) -> ObjectId:
    if isinstance(value, ObjectId):
        return value
    try:
        return ObjectId(value)
    except (InvalidId, TypeError) as exc:
        raise InvalidIdentifierError(
            f"{value!r} is not a valid ObjectId, it must be a 24-character hex string"
        ) from exc


@dataclass
class InsertResult:
    acknowledged: bool
    inserted_id: Any

    def as_dict(self) -> dict:
        return {"acknowledged": self.acknowledged, "insertedId": self.inserted_id}


class DocumentCollection(Protocol):
    """Operations the API needs from a single named collection."""

    def insert(self, document: dict) -> InsertResult:
        ...

    def find_all(self) -> List[dict]:
        ...

    def find_by_id(self, document_id: ObjectId) -> Optional[dict]:
        ...

    def update_by_id(self, document_id: ObjectId, fields: dict) -> int:
        ...

    def delete_by_id(self, document_id: ObjectId) -> int:
        ...


class DocumentStore(Protocol):
    """Interface for document database access."""

    def collection(self, name: str) -> DocumentCollection:
        ...

    def ping(self) -> None:
        ...

    def close(self) -> None:
        ...


def _require_document(document: Any) -> None:
    if not isinstance(document, dict):
        raise TypeError(
            f"document must be a JSON object, not {type(document).__name__}"
        )


def _require_update(fields: Any) -> None:
    _require_document(fields)
    if not fields:
        raise EmptyUpdateError(
            "'$set' is empty. You must specify a field like so: "
            "{$set: {<field>: ...}}"
        )


def _immutable_id_error() -> ImmutableFieldError:
    return ImmutableFieldError(
        "Performing an update on the path '_id' would modify the immutable field '_id'"
    )


_MISSING = object()


def _merge_changes(current: dict, fields: dict) -> bool:
    """Apply ``fields`` onto ``current`` and report whether anything changed."""
    changed = False
    for key, value in fields.items():
        if current.get(key, _MISSING) != value:
            current[key] = copy.deepcopy(value)
            changed = True
    return changed


class InMemoryCollection:
    """One collection of the in-memory store; insertion order is preserved."""

    def __init__(self, name: str, lock: threading.Lock):
        self.name = name
        self._lock = lock
        self.documents: Dict[Any, dict] = {}

    def insert(self, document: dict) -> InsertResult:
        _require_document(document)
        stored = copy.deepcopy(document)
        with self._lock:
            document_id = stored.setdefault(ID_FIELD, ObjectId())
            if document_id in self.documents:
                raise DuplicateIdentifierError(
                    f"E11000 duplicate key error collection: {self.name} "
                    f"dup key: {{ _id: {document_id!r} }}"
                )
            self.documents[document_id] = stored
        return InsertResult(acknowledged=True, inserted_id=document_id)

    def find_all(self) -> List[dict]:
        with self._lock:
            return [copy.deepcopy(doc) for doc in self.documents.values()]

    def find_by_id(self, document_id: ObjectId) -> Optional[dict]:
        with self._lock:
            document = self.documents.get(document_id)
            return copy.deepcopy(document) if document is not None else None

    def update_by_id(self, document_id: ObjectId, fields: dict) -> int:
        _require_update(fields)
        with self._lock:
            current = self.documents.get(document_id)
            if current is None:
                return 0
            if ID_FIELD in fields and fields[ID_FIELD] != current[ID_FIELD]:
                raise _immutable_id_error()
            return 1 if _merge_changes(current, fields) else 0

    def delete_by_id(self, document_id: ObjectId) -> int:
        with self._lock:
            return 1 if self.documents.pop(document_id, None) is not None else 0


class InMemoryDocumentStore:
    """Simple in-memory document database for development and tests."""

    def __init__(self):
        self._lock = threading.Lock()
        self.collections: Dict[str, InMemoryCollection] = {}

    def collection(self, name: str) -> InMemoryCollection:
        with self._lock:
            if name not in self.collections:
                self.collections[name] = InMemoryCollection(name, threading.Lock())
            return self.collections[name]

    def ping(self) -> None:
        return None

    def close(self) -> None:
        return None

    def reset(self) -> None:
        """Clear all stored data (useful in tests)."""
        with self._lock:
            self.collections.clear()


class MongoCollection:
    """Thin wrapper over a pymongo collection."""

    def __init__(self, collection):
        self._collection = collection

    def insert(self, document: dict) -> InsertResult:
        result = self._collection.insert_one(document)
        return InsertResult(
            acknowledged=result.acknowledged, inserted_id=result.inserted_id
        )

    def find_all(self) -> List[dict]:
        return list(self._collection.find())

    def find_by_id(self, document_id: ObjectId) -> Optional[dict]:
        return self._collection.find_one({ID_FIELD: document_id})

    def update_by_id(self, document_id: ObjectId, fields: dict) -> int:
        result = self._collection.update_one(
            {ID_FIELD: document_id}, {"$set": fields}
        )
        return result.modified_count

    def delete_by_id(self, document_id: ObjectId) -> int:
        return self._collection.delete_one({ID_FIELD: document_id}).deleted_count


class MongoDocumentStore:
    """
    pymongo-backed implementation. The client connects lazily; ``ping`` forces
    a round trip so startup can fail fast.
    """

    def __init__(self, uri: str, database_name: str, **client_kwargs: Any):
        if not uri:
            raise ValueError("MONGODB_URI is required for MongoDocumentStore")
        self.client = MongoClient(uri, **client_kwargs)
        self.database = self.client[database_name]

    def collection(self, name: str) -> MongoCollection:
        return MongoCollection(self.database[name])

    def ping(self) -> None:
        self.client.admin.command("ping")

    def close(self) -> None:
        self.client.close()


Base = declarative_base()


class DocumentRow(Base):
    __tablename__ = "documents"
    __table_args__ = (UniqueConstraint("collection", "doc_id", "id_is_object_id"),)

    position = Column(Integer, primary_key=True, autoincrement=True)
    collection = Column(String, nullable=False, index=True)
    doc_id = Column(String, nullable=False)
    # Client-supplied ids keep their JSON type; generated ones are ObjectIds.
    id_is_object_id = Column(Boolean, nullable=False, default=True)
    body = Column(JSON, nullable=False)


def _decode_id(row: DocumentRow) -> Any:
    return ObjectId(row.doc_id) if row.id_is_object_id else row.doc_id


def _row_to_document(row: DocumentRow) -> dict:
    document = {ID_FIELD: _decode_id(row)}
    document.update(row.body or {})
    return document


class SqlCollection:
    def __init__(self, name: str, session_factory: sessionmaker):
        self.name = name
        self.Session = session_factory

    def _get_row(self, session: Session, document_id: Any) -> Optional[DocumentRow]:
        stmt = select(DocumentRow).where(
            DocumentRow.collection == self.name,
            DocumentRow.doc_id == str(document_id),
            DocumentRow.id_is_object_id == isinstance(document_id, ObjectId),
        )
        return session.execute(stmt).scalar_one_or_none()

    def insert(self, document: dict) -> InsertResult:
        _require_document(document)
        body = dict(document)
        document_id = body.pop(ID_FIELD) if ID_FIELD in body else ObjectId()
        with self.Session() as session:
            if self._get_row(session, document_id) is not None:
                raise DuplicateIdentifierError(
                    f"E11000 duplicate key error collection: {self.name} "
                    f"dup key: {{ _id: {document_id!r} }}"
                )
            session.add(
                DocumentRow(
                    collection=self.name,
                    doc_id=str(document_id),
                    id_is_object_id=isinstance(document_id, ObjectId),
                    body=body,
                )
            )
            session.commit()
        return InsertResult(acknowledged=True, inserted_id=document_id)

    def find_all(self) -> List[dict]:
        with self.Session() as session:
            stmt = (
                select(DocumentRow)
                .where(DocumentRow.collection == self.name)
                .order_by(DocumentRow.position.asc())
            )
            return [_row_to_document(row) for row in session.execute(stmt).scalars()]

    def find_by_id(self, document_id: ObjectId) -> Optional[dict]:
        with self.Session() as session:
            row = self._get_row(session, document_id)
            return _row_to_document(row) if row else None

    def update_by_id(self, document_id: ObjectId, fields: dict) -> int:
        _require_update(fields)
        with self.Session() as session:
            row = self._get_row(session, document_id)
            if not row:
                return 0
            fields = dict(fields)
            if ID_FIELD in fields:
                if fields.pop(ID_FIELD) != _decode_id(row):
                    raise _immutable_id_error()
            body = dict(row.body or {})
            if not _merge_changes(body, fields):
                return 0
            # Reassign so SQLAlchemy notices the JSON column changed.
            row.body = body
            session.commit()
            return 1

    def delete_by_id(self, document_id: ObjectId) -> int:
        with self.Session() as session:
            row = self._get_row(session, document_id)
            if not row:
                return 0
            session.delete(row)
            session.commit()
            return 1


class SqlDocumentStore:
    """
    SQLAlchemy-backed implementation storing every collection in one JSON table.
    Accepts any SQLAlchemy URL (e.g., Postgres or SQLite for tests).
    """

    def __init__(self, database_url: str):
        if not database_url:
            raise ValueError("DATABASE_URL is required for SqlDocumentStore")
        engine_kwargs: dict[str, Any] = {}
        url = make_url(database_url)
        if url.get_backend_name() == "sqlite" and url.database in (None, "", ":memory:"):
            # One shared connection, or each threadpool worker sees an empty database.
            engine_kwargs = {
                "poolclass": StaticPool,
                "connect_args": {"check_same_thread": False},
            }
        self.engine = create_engine(
            database_url,
            future=True,
            pool_pre_ping=True,
            pool_recycle=1800,
            **engine_kwargs,
        )
        self.Session = sessionmaker(
            bind=self.engine, class_=Session, expire_on_commit=False, future=True
        )
        Base.metadata.create_all(self.engine)

    def collection(self, name: str) -> SqlCollection:
        return SqlCollection(name, self.Session)

    def ping(self) -> None:
        with self.engine.connect() as connection:
            connection.execute(text("SELECT 1"))

    def close(self) -> None:
        self.engine.dispose()
