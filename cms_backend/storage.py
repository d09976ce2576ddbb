"""
Object storage abstraction for S3-compatible buckets and in-memory testing.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Optional, Protocol

import boto3
from botocore.config import Config


@dataclass(frozen=True)
class StoredObject:
    url: str
    key: str


class StorageClient(Protocol):
    """Defines the operations the API needs from object storage."""

    def upload_bytes(
        self, data: bytes, dest_path: str, content_type: str = "application/octet-stream"
    ) -> StoredObject:
        ...

    def delete(self, key: str) -> None:
        ...


@dataclass
class InMemoryStorageClient:
    """Test double for storage interactions."""

    base_url: str = "https://example.test/storage"
    stored_objects: dict = field(default_factory=dict)

    def upload_bytes(
        self, data: bytes, dest_path: str, content_type: str = "application/octet-stream"
    ) -> StoredObject:
        self.stored_objects[dest_path] = (bytes(data), content_type)
        return StoredObject(url=f"{self.base_url}/{dest_path}", key=dest_path)

    def delete(self, key: str) -> None:
        if key not in self.stored_objects:
            raise FileNotFoundError(key)
        del self.stored_objects[key]


@dataclass
class S3StorageClient:
    """
    Storage client for S3 and S3-compatible endpoints.
    """

    bucket: str
    region: str = ""
    endpoint: str = ""
    access_key_id: str = ""
    secret_access_key: str = ""
    public_base_url: Optional[str] = None

    def __post_init__(self):
        config = Config(
            s3={"addressing_style": "virtual"},
            signature_version="s3v4",
        )
        self._client = boto3.client(
            "s3",
            endpoint_url=self.endpoint or None,
            region_name=self.region or None,
            aws_access_key_id=self.access_key_id or None,
            aws_secret_access_key=self.secret_access_key or None,
            config=config,
        )

    def public_url(self, key: str) -> str:
        if self.public_base_url:
            return f"{self.public_base_url.rstrip('/')}/{key}"
        if self.endpoint:
            return f"{self.endpoint.rstrip('/')}/{self.bucket}/{key}"
        region = self.region or "us-east-1"
        return f"https://{self.bucket}.s3.{region}.amazonaws.com/{key}"

    def upload_bytes(
        self, data: bytes, dest_path: str, content_type: str = "application/octet-stream"
    ) -> StoredObject:
        self._client.put_object(
            Bucket=self.bucket,
            Key=dest_path,
            Body=data,
            ContentType=content_type,
        )
        return StoredObject(url=self.public_url(dest_path), key=dest_path)

    def delete(self, key: str) -> None:
        self._client.delete_object(Bucket=self.bucket, Key=key)
