"""
Document-store abstraction backed by SQLAlchemy, plus an in-memory
implementation for development and tests.

Documents are JSON objects grouped in named collections. Each gets a hex
``_id`` and ``createdAt``/``updatedAt`` timestamps on write. Unique
indexes are declared per collection as dotted paths; empty values are not
indexed.
"""

from __future__ import annotations

import copy
import json
import re
import threading
import uuid
from datetime import datetime, timezone
from typing import Any, Iterable, Mapping, Optional, Protocol, Sequence, Union

from sqlalchemy import (
    JSON,
    Column,
    ForeignKey,
    String,
    UniqueConstraint,
    create_engine,
    delete,
    func,
    select,
)
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session, declarative_base, sessionmaker

from cms_backend.errors import DuplicateKeyError, InvalidIdentifierError

ID_PATTERN = re.compile(r"^[0-9a-f]{32}$")

# A sort path may list alternatives; the first non-empty value is used.
SortPath = Union[str, tuple[str, ...]]
Sort = Sequence[tuple[SortPath, int]]


class DbClient(Protocol):
    """Interface for document persistence."""

    def insert(self, collection: str, document: dict) -> dict:
        ...

    def get(self, collection: str, doc_id: str) -> Optional[dict]:
        ...

    def find(
        self,
        collection: str,
        filters: Optional[Mapping[str, Any]] = None,
        *,
        sort: Optional[Sort] = None,
        skip: int = 0,
        limit: Optional[int] = None,
        exclude: Iterable[str] = (),
    ) -> list[dict]:
        ...

    def find_one(
        self,
        collection: str,
        filters: Optional[Mapping[str, Any]] = None,
        *,
        sort: Optional[Sort] = None,
    ) -> Optional[dict]:
        ...

    def count(self, collection: str, filters: Optional[Mapping[str, Any]] = None) -> int:
        ...

    def update(self, collection: str, doc_id: str, document: dict) -> Optional[dict]:
        ...

    def delete(self, collection: str, doc_id: str) -> Optional[dict]:
        ...


def validate_id(doc_id: str) -> str:
    if not isinstance(doc_id, str) or not ID_PATTERN.match(doc_id):
        raise InvalidIdentifierError(f"Invalid identifier: {doc_id}")
    return doc_id


def new_id() -> str:
    return uuid.uuid4().hex


def _now() -> str:
    return datetime.now(timezone.utc).isoformat()


_MISSING = object()


def get_path(document: Mapping[str, Any], path: str) -> Any:
    value: Any = document
    for part in path.split("."):
        if not isinstance(value, Mapping) or part not in value:
            return _MISSING
        value = value[part]
    return value


def matches(document: Mapping[str, Any], filters: Optional[Mapping[str, Any]]) -> bool:
    """Equality on dotted paths; list-valued fields match on membership."""
    for path, expected in (filters or {}).items():
        actual = get_path(document, path)
        if actual is _MISSING:
            if expected is not None:
                return False
        elif isinstance(actual, list) and not isinstance(expected, list):
            if expected not in actual:
                return False
        elif actual != expected:
            return False
    return True


def sort_value(document: Mapping[str, Any], path: SortPath) -> Any:
    if isinstance(path, str):
        return get_path(document, path)
    for candidate in path:
        value = get_path(document, candidate)
        if value is not _MISSING and value is not None and value != "":
            return value
    return _MISSING


def sort_key(value: Any) -> tuple:
    """Total order over JSON values: numbers, strings, objects, arrays, booleans."""
    if isinstance(value, bool):
        return (4, int(value), "")
    if isinstance(value, (int, float)):
        return (0, value, "")
    if isinstance(value, str):
        return (1, 0, value)
    if isinstance(value, Mapping):
        return (2, 0, json.dumps(value, sort_keys=True, default=str))
    if isinstance(value, (list, tuple)):
        return (3, 0, json.dumps(value, sort_keys=True, default=str))
    return (5, 0, str(value))


def apply_query(
    documents: Iterable[dict],
    filters: Optional[Mapping[str, Any]] = None,
    *,
    sort: Optional[Sort] = None,
    skip: int = 0,
    limit: Optional[int] = None,
    exclude: Iterable[str] = (),
) -> list[dict]:
    results = [doc for doc in documents if matches(doc, filters)]
    # Stable sorts applied from the least significant key.
    for path, direction in reversed(list(sort or ())):
        keyed = [(sort_value(doc, path), doc) for doc in results]
        present = [pair for pair in keyed if pair[0] is not _MISSING and pair[0] is not None]
        missing = [doc for value, doc in keyed if value is _MISSING or value is None]
        present.sort(key=lambda pair: sort_key(pair[0]), reverse=direction < 0)
        ordered = [doc for _, doc in present]
        results = ordered + missing if direction > 0 else missing + ordered
    results = results[max(skip, 0):]
    if limit is not None:
        results = results[:limit]
    excluded = set(exclude)
    if excluded:
        results = [
            {key: value for key, value in doc.items() if key not in excluded}
            for doc in results
        ]
    return results


def unique_values(
    document: Mapping[str, Any], paths: Iterable[str]
) -> list[tuple[str, Any]]:
    values = []
    for path in paths:
        value = get_path(document, path)
        if value is _MISSING or value is None or value == "":
            continue
        values.append((path, value))
    return values


class InMemoryDbClient:
    """Simple in-memory document store for development and tests."""

    def __init__(self, unique_indexes: Optional[Mapping[str, Sequence[str]]] = None):
        self.collections: dict[str, dict[str, dict]] = {}
        self.unique_indexes = {
            name: tuple(paths) for name, paths in (unique_indexes or {}).items()
        }
        self._lock = threading.Lock()

    def _collection(self, name: str) -> dict[str, dict]:
        return self.collections.setdefault(name, {})

    def _check_unique(self, collection: str, document: dict) -> None:
        paths = self.unique_indexes.get(collection, ())
        for path, value in unique_values(document, paths):
            for other_id, other in self._collection(collection).items():
                if other_id != document["_id"] and get_path(other, path) == value:
                    raise DuplicateKeyError(collection, path, value)

    def insert(self, collection: str, document: dict) -> dict:
        now = _now()
        stored = copy.deepcopy(document)
        stored["_id"] = stored.get("_id") or new_id()
        stored["createdAt"] = now
        stored["updatedAt"] = now
        with self._lock:
            self._check_unique(collection, stored)
            self._collection(collection)[stored["_id"]] = stored
        return copy.deepcopy(stored)

    def get(self, collection: str, doc_id: str) -> Optional[dict]:
        validate_id(doc_id)
        with self._lock:
            stored = self._collection(collection).get(doc_id)
            return copy.deepcopy(stored) if stored else None

    def find(
        self,
        collection: str,
        filters: Optional[Mapping[str, Any]] = None,
        *,
        sort: Optional[Sort] = None,
        skip: int = 0,
        limit: Optional[int] = None,
        exclude: Iterable[str] = (),
    ) -> list[dict]:
        with self._lock:
            documents = copy.deepcopy(list(self._collection(collection).values()))
        return apply_query(
            documents, filters, sort=sort, skip=skip, limit=limit, exclude=exclude
        )

    def find_one(
        self,
        collection: str,
        filters: Optional[Mapping[str, Any]] = None,
        *,
        sort: Optional[Sort] = None,
    ) -> Optional[dict]:
        found = self.find(collection, filters, sort=sort, limit=1)
        return found[0] if found else None

    def count(self, collection: str, filters: Optional[Mapping[str, Any]] = None) -> int:
        with self._lock:
            documents = list(self._collection(collection).values())
        return sum(1 for doc in documents if matches(doc, filters))

    def update(self, collection: str, doc_id: str, document: dict) -> Optional[dict]:
        validate_id(doc_id)
        with self._lock:
            existing = self._collection(collection).get(doc_id)
            if existing is None:
                return None
            stored = copy.deepcopy(document)
            stored["_id"] = doc_id
            stored["createdAt"] = existing.get("createdAt")
            stored["updatedAt"] = _now()
            self._check_unique(collection, stored)
            self._collection(collection)[doc_id] = stored
        return copy.deepcopy(stored)

    def delete(self, collection: str, doc_id: str) -> Optional[dict]:
        validate_id(doc_id)
        with self._lock:
            return self._collection(collection).pop(doc_id, None)

    def reset(self) -> None:
        """Clear all stored data (useful in tests)."""
        with self._lock:
            self.collections.clear()


class PostgresDbClient:
    """
    SQLAlchemy-backed implementation. Accepts any SQLAlchemy URL (e.g., Postgres or SQLite for tests).

    Unique indexes are materialised as rows in ``unique_keys`` written in
    the same transaction as the document, so the database constraint
    decides collisions between concurrent writers. Scalar equality filters
    and counts run in SQL; fields listed in ``array_paths`` match on
    membership and are filtered after loading.
    """

    def __init__(
        self,
        database_url: str,
        unique_indexes: Optional[Mapping[str, Sequence[str]]] = None,
        array_paths: Optional[Mapping[str, Sequence[str]]] = None,
    ):
        if not database_url:
            raise ValueError("DATABASE_URL is required for PostgresDbClient")
        self.engine = create_engine(
            database_url,
            future=True,
            pool_pre_ping=True,
            pool_recycle=1800,
        )
        self.Session = sessionmaker(
            bind=self.engine, class_=Session, expire_on_commit=False, future=True
        )
        self.unique_indexes = {
            name: tuple(paths) for name, paths in (unique_indexes or {}).items()
        }
        self.array_paths = {
            name: tuple(paths) for name, paths in (array_paths or {}).items()
        }
        Base.metadata.create_all(self.engine)

    def _write_unique_keys(
        self, session: Session, collection: str, document: dict
    ) -> None:
        session.execute(
            delete(UniqueKeyRow).where(
                UniqueKeyRow.collection == collection,
                UniqueKeyRow.doc_id == document["_id"],
            )
        )
        for path, value in unique_values(
            document, self.unique_indexes.get(collection, ())
        ):
            session.add(
                UniqueKeyRow(
                    collection=collection,
                    path=path,
                    value=str(value),
                    doc_id=document["_id"],
                )
            )

    def _commit(self, session: Session, collection: str, document: dict) -> None:
        try:
            session.flush()
        except IntegrityError as exc:
            session.rollback()
            raise self._duplicate(collection, document) from exc
        session.commit()

    def _duplicate(self, collection: str, document: dict) -> DuplicateKeyError:
        for path, value in unique_values(
            document, self.unique_indexes.get(collection, ())
        ):
            return DuplicateKeyError(collection, path, value)
        return DuplicateKeyError(collection, "_id", document.get("_id"))

    def insert(self, collection: str, document: dict) -> dict:
        now = _now()
        stored = copy.deepcopy(document)
        stored["_id"] = stored.get("_id") or new_id()
        stored["createdAt"] = now
        stored["updatedAt"] = now
        with self.Session() as session:
            session.add(
                DocumentRow(
                    id=stored["_id"],
                    collection=collection,
                    data=stored,
                    created_at=now,
                )
            )
            self._write_unique_keys(session, collection, stored)
            self._commit(session, collection, stored)
        return stored

    def get(self, collection: str, doc_id: str) -> Optional[dict]:
        validate_id(doc_id)
        with self.Session() as session:
            row = session.get(DocumentRow, doc_id)
            if not row or row.collection != collection:
                return None
            return copy.deepcopy(row.data)

    def _where(
        self, collection: str, filters: Optional[Mapping[str, Any]]
    ) -> tuple[list, dict]:
        """SQL predicates for scalar equality filters, plus the filters left to Python.

        Paths declared as arrays match on membership and bools/strings are
        the only values compared in SQL; everything else is evaluated by
        ``matches`` after loading.
        """
        conditions = [DocumentRow.collection == collection]
        remaining = {}
        arrays = self.array_paths.get(collection, ())
        for path, expected in (filters or {}).items():
            column = DocumentRow.data[tuple(path.split("."))]
            if path.split(".")[0] in arrays:
                remaining[path] = expected
            elif isinstance(expected, bool):
                conditions.append(column.as_boolean() == expected)
            elif isinstance(expected, str):
                conditions.append(column.as_string() == expected)
            else:
                remaining[path] = expected
        return conditions, remaining

    def find(
        self,
        collection: str,
        filters: Optional[Mapping[str, Any]] = None,
        *,
        sort: Optional[Sort] = None,
        skip: int = 0,
        limit: Optional[int] = None,
        exclude: Iterable[str] = (),
    ) -> list[dict]:
        conditions, remaining = self._where(collection, filters)
        stmt = (
            select(DocumentRow)
            .where(*conditions)
            .order_by(DocumentRow.created_at.asc())
        )
        if not remaining and not sort:
            stmt = stmt.offset(max(skip, 0)).limit(limit)
            skip, limit = 0, None
        with self.Session() as session:
            documents = [
                copy.deepcopy(row.data) for row in session.execute(stmt).scalars()
            ]
        return apply_query(
            documents, remaining, sort=sort, skip=skip, limit=limit, exclude=exclude
        )

    def find_one(
        self,
        collection: str,
        filters: Optional[Mapping[str, Any]] = None,
        *,
        sort: Optional[Sort] = None,
    ) -> Optional[dict]:
        found = self.find(collection, filters, sort=sort, limit=1)
        return found[0] if found else None

    def count(self, collection: str, filters: Optional[Mapping[str, Any]] = None) -> int:
        conditions, remaining = self._where(collection, filters)
        with self.Session() as session:
            if not remaining:
                stmt = select(func.count()).select_from(DocumentRow).where(*conditions)
                return session.execute(stmt).scalar_one()
            stmt = select(DocumentRow.data).where(*conditions)
            return sum(
                1 for data in session.execute(stmt).scalars() if matches(data, remaining)
            )

    def update(self, collection: str, doc_id: str, document: dict) -> Optional[dict]:
        validate_id(doc_id)
        with self.Session() as session:
            row = session.get(DocumentRow, doc_id)
            if not row or row.collection != collection:
                return None
            stored = copy.deepcopy(document)
            stored["_id"] = doc_id
            stored["createdAt"] = row.data.get("createdAt")
            stored["updatedAt"] = _now()
            row.data = stored
            self._write_unique_keys(session, collection, stored)
            self._commit(session, collection, stored)
            return stored

    def delete(self, collection: str, doc_id: str) -> Optional[dict]:
        validate_id(doc_id)
        with self.Session() as session:
            row = session.get(DocumentRow, doc_id)
            if not row or row.collection != collection:
                return None
            data = copy.deepcopy(row.data)
            session.execute(
                delete(UniqueKeyRow).where(UniqueKeyRow.doc_id == doc_id)
            )
            session.delete(row)
            session.commit()
            return data


Base = declarative_base()


class DocumentRow(Base):
    __tablename__ = "documents"

    id = Column(String(32), primary_key=True)
    collection = Column(String, nullable=False, index=True)
    data = Column(JSON, nullable=False)
    created_at = Column(String, nullable=False, index=True)


class UniqueKeyRow(Base):
    __tablename__ = "unique_keys"
    __table_args__ = (UniqueConstraint("collection", "path", "value"),)

    collection = Column(String, primary_key=True)
    path = Column(String, primary_key=True)
    doc_id = Column(
        String(32), ForeignKey("documents.id", ondelete="CASCADE"), primary_key=True
    )
    value = Column(String, nullable=False)
