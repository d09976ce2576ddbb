"""
Dependency wiring for the FastAPI app.
"""

from __future__ import annotations

from cms_backend.config import get_settings
from cms_backend.db import DbClient, InMemoryDbClient, PostgresDbClient
from cms_backend.entities import ARRAY_PATHS, UNIQUE_INDEXES
from cms_backend.storage import InMemoryStorageClient, S3StorageClient, StorageClient

_db_client: DbClient | None = None
_storage_client: StorageClient | None = None


def get_db_client() -> DbClient:
    """
    Return a singleton DB client so documents persist across requests.
    """
    global _db_client
    if _db_client:
        return _db_client

    settings = get_settings()
    if settings.use_in_memory_backends or not settings.database_url:
        _db_client = InMemoryDbClient(UNIQUE_INDEXES)
    else:
        _db_client = PostgresDbClient(settings.database_url, UNIQUE_INDEXES, ARRAY_PATHS)
    return _db_client


def get_storage_client() -> StorageClient:
    global _storage_client
    if _storage_client:
        return _storage_client

    settings = get_settings()
    if settings.use_in_memory_backends or not settings.s3_bucket:
        _storage_client = InMemoryStorageClient()
    else:
        _storage_client = S3StorageClient(
            bucket=settings.s3_bucket,
            region=settings.s3_region or "",
            endpoint=settings.s3_endpoint or "",
            access_key_id=settings.aws_access_key_id or "",
            secret_access_key=settings.aws_secret_access_key or "",
            public_base_url=settings.s3_public_base_url,
        )
    return _storage_client
