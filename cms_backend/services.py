"""
Entity CRUD on top of the document store, with bilingual normalization
applied around every write and read.
"""

from __future__ import annotations

import logging
from typing import Any, Iterable, Mapping, Optional

from cms_backend.db import DbClient, Sort
from cms_backend.entities import EntitySchema, coerce_document, validate_document
from cms_backend.errors import DuplicateKeyError, NotFoundError
from cms_backend.languages import LanguageConfig
from cms_backend.translatable import (
    canonicalize,
    merge_translations,
    prepare_for_save,
    transform_array_by_language,
    transform_by_language,
)

logger = logging.getLogger(__name__)


class ContentService:
    def __init__(self, db: DbClient, schema: EntitySchema, languages: LanguageConfig):
        self.db = db
        self.schema = schema
        self.languages = languages

    def _finalize(self, document: dict) -> dict:
        document = coerce_document(
            canonicalize(document, self.schema, self.languages), self.schema
        )
        for hook in self.schema.before_save:
            hook(document, self.languages)
        validate_document(document, self.schema, self.languages)
        return document

    def _not_found(self) -> NotFoundError:
        return NotFoundError(f"{self.schema.label} not found")

    def _duplicate(self, exc: DuplicateKeyError) -> DuplicateKeyError:
        return DuplicateKeyError(
            exc.collection, exc.path, exc.value, message=self.schema.duplicate_message
        )

    def create(self, payload: Mapping[str, Any], language: str) -> dict:
        prepared = prepare_for_save(
            self.schema.pick(payload), language, self.schema, self.languages
        )
        document = self._finalize(self.schema.with_defaults(prepared))
        try:
            created = self.db.insert(self.schema.collection, document)
        except DuplicateKeyError as exc:
            raise self._duplicate(exc) from exc
        logger.info("Created %s %s", self.schema.name, created["_id"])
        return created

    def get(self, doc_id: str) -> dict:
        document = self.db.get(self.schema.collection, doc_id)
        if document is None:
            raise self._not_found()
        return document

    def find_one(
        self, filters: Optional[Mapping[str, Any]] = None, *, sort: Optional[Sort] = None
    ) -> Optional[dict]:
        return self.db.find_one(
            self.schema.collection, filters, sort=sort or self.schema.default_sort
        )

    def list(
        self,
        filters: Optional[Mapping[str, Any]] = None,
        *,
        sort: Optional[Sort] = None,
        skip: int = 0,
        limit: Optional[int] = None,
        exclude: Iterable[str] = (),
    ) -> list[dict]:
        return self.db.find(
            self.schema.collection,
            filters,
            sort=sort or self.schema.default_sort,
            skip=skip,
            limit=limit,
            exclude=exclude,
        )

    def count(self, filters: Optional[Mapping[str, Any]] = None) -> int:
        return self.db.count(self.schema.collection, filters)

    def update(self, doc_id: str, payload: Mapping[str, Any], language: str) -> dict:
        stored = self.get(doc_id)
        merged = merge_translations(
            stored, self.schema.pick(payload), language, self.schema, self.languages
        )
        document = self._finalize(merged)
        try:
            updated = self.db.update(self.schema.collection, doc_id, document)
        except DuplicateKeyError as exc:
            raise self._duplicate(exc) from exc
        if updated is None:
            raise self._not_found()
        return updated

    def replace(self, doc_id: str, document: dict) -> dict:
        """Write back a document without touching its translations."""
        updated = self.db.update(self.schema.collection, doc_id, document)
        if updated is None:
            raise self._not_found()
        return updated

    def delete(self, doc_id: str) -> dict:
        deleted = self.db.delete(self.schema.collection, doc_id)
        if deleted is None:
            raise self._not_found()
        logger.info("Deleted %s %s", self.schema.name, doc_id)
        return deleted

    def project(self, document: Optional[dict], language: str) -> Optional[dict]:
        return transform_by_language(document, language, self.schema, self.languages)

    def project_many(self, documents: list[dict], language: str) -> list[dict]:
        return transform_array_by_language(
            documents, language, self.schema, self.languages
        )
