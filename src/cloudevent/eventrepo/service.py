"""Event repository.

Reads cloud event index rows, resolves each one to the object it points at
and writes new events as an object plus an index row.

Writes are sequential, not atomic: the object is stored first and the index
row second.  If the index insert fails the object stays behind without an
index entry.
"""

from __future__ import annotations

import logging
from collections.abc import Iterable, Sequence

from sqlalchemy import insert

from cloudevent.core.errors import (
    CloudEventError,
    IndexNotFoundError,
    StoreError,
    TranscodeError,
)
from cloudevent.events import CloudEventHeader, IndexEvent, RawEvent
from cloudevent.storage.clickhouse.connection import IndexStore
from cloudevent.storage.clickhouse.keys import cloud_event_to_object_key
from cloudevent.storage.clickhouse.models import INSERT_COLUMNS, cloud_event_table
from cloudevent.storage.clickhouse.rows import from_row, to_row_with_key
from cloudevent.storage.object_store import ObjectStore

from .search import SearchOptions, build_index_query

logger = logging.getLogger(__name__)

_EMPTY_HEADER = CloudEventHeader()


class EventRepository:
    """Query and store cloud events across the index and the object store."""

    def __init__(self, index_store: IndexStore, object_store: ObjectStore) -> None:
        self._index_store = index_store
        self._object_store = object_store

    # ------------------------------------------------------------------
    # Indexes
    # ------------------------------------------------------------------

    async def list_indexes(
        self, limit: int, opts: SearchOptions | None = None
    ) -> list[IndexEvent]:
        """Return up to *limit* index rows matching *opts*.

        Raises:
            IndexNotFoundError: When no row matches.
            StoreError: When the index store fails.
        """
        stmt = build_index_query(limit, opts)
        try:
            rows = await self._index_store.query(stmt)
        except CloudEventError:
            raise
        except Exception as exc:
            raise StoreError(
                f"failed to query cloud event index: {exc}", operation="query"
            ) from exc
        if not rows:
            raise IndexNotFoundError("no cloud event index matches the search options")
        return [from_row(row) for row in rows]

    async def get_latest_index(self, opts: SearchOptions | None = None) -> IndexEvent:
        """Return the most recent index row matching *opts*.

        ``opts.timestamp_asc`` is ignored; *opts* itself is left untouched.
        """
        latest = (
            opts.model_copy(update={"timestamp_asc": False})
            if opts is not None
            else None
        )
        indexes = await self.list_indexes(1, latest)
        return indexes[0]

    # ------------------------------------------------------------------
    # Cloud events
    # ------------------------------------------------------------------

    async def list_cloud_events(
        self, limit: int, opts: SearchOptions | None = None
    ) -> list[RawEvent]:
        indexes = await self.list_indexes(limit, opts)
        return await self.list_cloud_events_from_indexes(indexes)

    async def get_latest_cloud_event(self, opts: SearchOptions | None = None) -> RawEvent:
        index = await self.get_latest_index(opts)
        return await self.get_cloud_event_from_index(index)

    async def list_cloud_events_from_indexes(
        self, indexes: Sequence[IndexEvent]
    ) -> list[RawEvent]:
        """Resolve each index row to its cloud event.

        One stored object can hold several events, so each distinct object
        key is fetched at most once per call.
        """
        payloads: dict[str, bytes | None] = {}
        events: list[RawEvent] = []
        for index in indexes:
            key = _object_key(index)
            if key in payloads:
                logger.debug("Reusing fetched object %s", key)
                events.append(RawEvent.from_header(index, payloads[key]))
                continue
            event = await self.get_cloud_event_from_index(index)
            payloads[key] = event.data
            events.append(event)
        return events

    async def get_cloud_event_from_index(self, index: IndexEvent) -> RawEvent:
        """Fetch the object behind *index* and attach it to the index header.

        When the stored object is itself a cloud event envelope its ``data``
        becomes the payload; otherwise the whole object is.  The header always
        comes from the index.
        """
        raw = await self.get_object_from_key(_object_key(index))
        return RawEvent.from_header(index, _unwrap_payload(raw))

    # ------------------------------------------------------------------
    # Objects
    # ------------------------------------------------------------------

    async def list_objects_from_keys(self, keys: Iterable[str]) -> list[bytes]:
        return [await self.get_object_from_key(key) for key in keys]

    async def get_object_from_key(self, key: str) -> bytes:
        """Return the raw object stored at *key*, without envelope handling.

        Raises:
            ObjectNotFoundError: When nothing is stored at *key*.
            StoreError: When the object store fails.
        """
        try:
            data = await self._object_store.get_object(key)
        except CloudEventError:
            raise
        except Exception as exc:
            raise StoreError(
                f"failed to get object {key!r}: {exc}", operation="get_object", key=key
            ) from exc
        logger.debug("Fetched object %s (%d bytes)", key, len(data))
        return data

    async def store_object(self, header: CloudEventHeader, data: bytes) -> str:
        """Store *data* under the key derived from *header*, then index it.

        Returns the object key.
        """
        key = cloud_event_to_object_key(header)
        try:
            await self._object_store.put_object(key, data)
        except CloudEventError:
            raise
        except Exception as exc:
            raise StoreError(
                f"failed to store object {key!r}: {exc}", operation="put_object", key=key
            ) from exc

        row = to_row_with_key(header, key)
        stmt = insert(cloud_event_table).values(dict(zip(INSERT_COLUMNS, row)))
        try:
            await self._index_store.execute(stmt)
        except Exception as exc:
            logger.warning(
                "Object %s stored but its index row was not written: %s", key, exc
            )
            if isinstance(exc, CloudEventError):
                raise
            raise StoreError(
                f"failed to store cloud event index: {exc}", operation="execute", key=key
            ) from exc
        logger.debug("Stored cloud event %s", key)
        return key


def _object_key(index: IndexEvent) -> str:
    return index.data.key if index.data is not None else ""


def _unwrap_payload(raw: bytes) -> bytes | None:
    try:
        envelope = RawEvent.from_json(raw)
    except TranscodeError:
        return raw
    if envelope.equals(_EMPTY_HEADER):
        return raw
    return envelope.data
