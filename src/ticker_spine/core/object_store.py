"""
Durable object store for day-keyed cache snapshots.

Payloads are JSON documents stored under ``{dataset}-{YYYY-MM-DD}`` keys.
Reads of an absent key return ``None``; every other failure is raised as
``StorageError``.

Backends:
    - ``InMemoryObjectStore``: dict-backed, for tests and ``storage_backend=memory``
    - ``S3ObjectStore``: one S3 bucket via boto3 (AWS, MinIO, LocalStack)

Tags:
    storage, s3, boto3, object-store, cache
"""

from __future__ import annotations

import json
import threading
from abc import ABC, abstractmethod
from typing import Any

import boto3
import structlog
from botocore.config import Config
from botocore.exceptions import BotoCoreError, ClientError

from ticker_spine.core.errors import ErrorContext, StorageError

logger = structlog.get_logger(__name__)

_MISSING_CODES = frozenset({"NoSuchKey", "404", "NotFound"})


class ObjectStore(ABC):
    """Abstract JSON object store."""

    @abstractmethod
    def get_json(self, key: str) -> Any | None:
        """Return the decoded document at ``key`` or ``None`` if absent."""
        ...

    @abstractmethod
    def put_json(self, key: str, payload: Any) -> None:
        """Write ``payload`` at ``key``, replacing anything already there."""
        ...


class InMemoryObjectStore(ObjectStore):
    """Thread-safe dict-backed object store.

    Documents are stored encoded so callers never share mutable payloads
    with the store.
    """

    def __init__(self) -> None:
        self._objects: dict[str, str] = {}
        self._lock = threading.Lock()

    def get_json(self, key: str) -> Any | None:
        with self._lock:
            body = self._objects.get(key)
        return None if body is None else json.loads(body)

    def put_json(self, key: str, payload: Any) -> None:
        body = json.dumps(payload)
        with self._lock:
            self._objects[key] = body

    def keys(self) -> list[str]:
        with self._lock:
            return sorted(self._objects)

    def __len__(self) -> int:
        with self._lock:
            return len(self._objects)


class S3ObjectStore(ObjectStore):
    """S3-compatible object store."""

    def __init__(
        self,
        bucket: str,
        *,
        region: str = "eu-west-2",
        endpoint_url: str | None = None,
        access_key: str | None = None,
        secret_key: str | None = None,
        client: Any = None,
    ):
        self.bucket = bucket

        if client is None:
            client_kwargs: dict[str, Any] = {
                "service_name": "s3",
                "region_name": region,
                "config": Config(signature_version="s3v4", retries={"mode": "standard"}),
            }
            if endpoint_url:
                client_kwargs["endpoint_url"] = endpoint_url
            if access_key and secret_key:
                client_kwargs["aws_access_key_id"] = access_key
                client_kwargs["aws_secret_access_key"] = secret_key
            client = boto3.client(**client_kwargs)

        self.client = client
        logger.info("object_store.s3_initialized", bucket=bucket, endpoint=endpoint_url)

    def get_json(self, key: str) -> Any | None:
        try:
            response = self.client.get_object(Bucket=self.bucket, Key=key)
            body = response["Body"].read()
        except ClientError as e:
            if e.response.get("Error", {}).get("Code") in _MISSING_CODES:
                return None
            raise self._storage_error("read", key, e) from e
        except BotoCoreError as e:
            raise self._storage_error("read", key, e) from e

        try:
            return json.loads(body)
        except ValueError as e:
            raise self._storage_error("decode", key, e) from e

    def put_json(self, key: str, payload: Any) -> None:
        body = json.dumps(payload).encode("utf-8")
        try:
            self.client.put_object(
                Bucket=self.bucket,
                Key=key,
                Body=body,
                ContentType="application/json",
            )
        except (BotoCoreError, ClientError) as e:
            raise self._storage_error("write", key, e) from e
        logger.debug("s3_object_written", bucket=self.bucket, key=key, size=len(body))

    def _storage_error(self, action: str, key: str, error: Exception) -> StorageError:
        return StorageError(
            f"S3 {action} failed for s3://{self.bucket}/{key}: {error}",
            context=ErrorContext(source="s3", dataset=key),
            cause=error,
        )


__all__ = ["ObjectStore", "InMemoryObjectStore", "S3ObjectStore"]
