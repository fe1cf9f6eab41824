"""Object storage for cloud event payloads.

This module provides:

*  ``ObjectStore``: the protocol the repository depends on.
*  ``InMemoryObjectStore``: dict-backed implementation for tests and local
   development.
*  ``S3ObjectStore``: adapter over an aioboto3 / aiobotocore S3 client,
   opened with ``open_s3_client``.
"""

from __future__ import annotations

import logging
from typing import Any, Protocol

import aioboto3
from botocore.exceptions import ClientError

from cloudevent.core.config import Settings
from cloudevent.core.errors import ObjectNotFoundError, StoreError

logger = logging.getLogger(__name__)

_NOT_FOUND_CODES = {"404", "NoSuchKey", "NotFound"}


def open_s3_client(settings: Settings, session: aioboto3.Session | None = None) -> Any:
    """Return an async context manager yielding an S3 client for *settings*.

    Credentials come from the usual AWS environment and config files.
    """
    session = session or aioboto3.Session()
    return session.client(
        "s3",
        endpoint_url=settings.s3_endpoint_url,
        region_name=settings.s3_region,
    )


class ObjectStore(Protocol):
    """Raw byte storage addressed by object key."""

    async def get_object(self, key: str) -> bytes:
        """Return the bytes stored at *key*.  Raises ``ObjectNotFoundError``."""
        ...

    async def put_object(self, key: str, data: bytes) -> None:
        """Store *data* at *key*, replacing any previous object."""
        ...


class InMemoryObjectStore:
    """Dict-backed object store.  No persistence across restarts."""

    def __init__(self) -> None:
        self._objects: dict[str, bytes] = {}

    async def get_object(self, key: str) -> bytes:
        try:
            return self._objects[key]
        except KeyError:
            raise ObjectNotFoundError(key) from None

    async def put_object(self, key: str, data: bytes) -> None:
        self._objects[key] = bytes(data)

    def __contains__(self, key: object) -> bool:
        return key in self._objects

    def __len__(self) -> int:
        return len(self._objects)


class S3ObjectStore:
    """Object store backed by one S3 bucket.

    *client* is an open async S3 client, e.g. the value of
    ``async with aioboto3.Session().client("s3") as client``.  Its lifetime
    is owned by the caller.
    """

    def __init__(self, client: Any, bucket_name: str) -> None:
        self._client = client
        self._bucket = bucket_name

    @classmethod
    def from_settings(cls, client: Any, settings: Settings) -> S3ObjectStore:
        return cls(client, settings.bucket_name)

    @property
    def bucket_name(self) -> str:
        return self._bucket

    async def get_object(self, key: str) -> bytes:
        try:
            obj = await self._client.get_object(Bucket=self._bucket, Key=key)
            return await obj["Body"].read()
        except ClientError as exc:
            code = (exc.response.get("Error") or {}).get("Code", "")
            if str(code) in _NOT_FOUND_CODES:
                raise ObjectNotFoundError(key) from exc
            raise StoreError(
                f"failed to get object from S3: {exc}", operation="get_object", key=key
            ) from exc

    async def put_object(self, key: str, data: bytes) -> None:
        try:
            await self._client.put_object(Bucket=self._bucket, Key=key, Body=data)
        except ClientError as exc:
            raise StoreError(
                f"failed to store object in S3: {exc}", operation="put_object", key=key
            ) from exc
        logger.debug("Stored object s3://%s/%s (%d bytes)", self._bucket, key, len(data))
