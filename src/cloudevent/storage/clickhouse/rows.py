"""Conversion between cloud event headers and index rows.

An index row is a 10-tuple in :data:`INSERT_COLUMNS` order.  Header fields
without a column of their own (``specversion``, ``dataschema``,
``signature``, ``tags``) ride along inside the JSON ``extras`` column and are
pulled back out when the row is read.
"""

from __future__ import annotations

import json
import re
from collections.abc import Sequence
from datetime import datetime, timezone
from typing import Any

from pydantic import ValidationError
from pydantic_core import PydanticSerializationError, to_jsonable_python

from cloudevent.core.errors import TranscodeError
from cloudevent.events import (
    CloudEventHeader,
    IndexEvent,
    ObjectInfo,
    format_rfc3339_nano,
)

from .keys import cloud_event_to_object_key
from .models import INSERT_COLUMNS, TIMESTAMP_COLUMN

ROW_LENGTH = len(INSERT_COLUMNS)

SPEC_VERSION_KEY = "specversion"
DATA_SCHEMA_KEY = "dataschema"
SIGNATURE_KEY = "signature"
TAGS_KEY = "tags"

Row = tuple[Any, ...]

_RFC3339 = re.compile(
    r"([0-9]{4}-[0-9]{2}-[0-9]{2}T[0-9]{2}:[0-9]{2}:[0-9]{2})(\.[0-9]+)?(Z|[+-][0-9]{2}:[0-9]{2})"
)


# ---------------------------------------------------------------------------
# Header -> row
# ---------------------------------------------------------------------------

def to_row(header: CloudEventHeader) -> Row:
    """Project *header* onto an index row keyed by its derived object key."""
    return to_row_with_key(header, cloud_event_to_object_key(header))


def to_row_with_key(header: CloudEventHeader, key: str) -> Row:
    """Project *header* onto an index row with an explicit object key."""
    extras = _with_non_column_fields(header)
    return (
        header.subject,
        header.time,
        header.type,
        header.id,
        header.source,
        header.producer,
        header.data_content_type,
        header.data_version,
        _encode_extras(extras),
        key,
    )


def _with_non_column_fields(header: CloudEventHeader) -> dict[str, Any] | None:
    # Work on a copy; the caller's extras are never touched.
    extras = dict(header.extras) if header.extras is not None else None

    def put(name: str, value: Any) -> None:
        nonlocal extras
        if extras is None:
            extras = {}
        extras[name] = value

    if header.spec_version:
        put(SPEC_VERSION_KEY, header.spec_version)
    if header.data_schema:
        put(DATA_SCHEMA_KEY, header.data_schema)
    if header.signature:
        put(SIGNATURE_KEY, header.signature)
    if header.tags:
        put(TAGS_KEY, list(header.tags))
    return extras


def _encode_extras(extras: dict[str, Any] | None) -> str:
    try:
        return json.dumps(
            extras, separators=(",", ":"), sort_keys=True, default=to_jsonable_python
        )
    except (TypeError, ValueError, PydanticSerializationError) as exc:
        raise TranscodeError(f"failed to marshal extras: {exc}", field="extras") from exc


# ---------------------------------------------------------------------------
# Row -> header
# ---------------------------------------------------------------------------

def from_row(row: Sequence[Any]) -> IndexEvent:
    """Rebuild the header and object location stored in an index row."""
    if len(row) != ROW_LENGTH:
        raise TranscodeError(
            f"invalid cloud event row length: expected {ROW_LENGTH}, got {len(row)}"
        )
    (
        subject,
        event_time,
        event_type,
        event_id,
        source,
        producer,
        data_content_type,
        data_version,
        extras,
        index_key,
    ) = row
    try:
        event = IndexEvent(
            subject=subject,
            time=event_time,
            type=event_type,
            id=event_id,
            source=source,
            producer=producer,
            data_content_type=data_content_type,
            data_version=data_version,
            data=ObjectInfo(key=index_key),
        )
    except ValidationError as exc:
        raise TranscodeError(f"failed to scan cloud event row: {exc}") from exc

    if extras and extras != "null":
        event.extras = decode_extras(extras) or None
        restore_non_column_fields(event)
    return event


def decode_extras(raw: str) -> dict[str, Any]:
    try:
        value = json.loads(raw)
    except ValueError as exc:
        raise TranscodeError(f"failed to unmarshal extras: {exc}", field="extras") from exc
    if value is None:
        return {}
    if not isinstance(value, dict):
        raise TranscodeError(
            f"extras must be a JSON object, got {type(value).__name__}", field="extras"
        )
    return value


def restore_non_column_fields(header: CloudEventHeader) -> None:
    """Move reserved keys from ``header.extras`` back onto their attributes.

    Values of the wrong type are dropped and the attribute stays empty.
    ``signature`` is copied rather than moved; older readers look for it in
    extras only.
    """
    extras = header.extras
    if not extras:
        return

    if SPEC_VERSION_KEY in extras:
        value = extras.pop(SPEC_VERSION_KEY)
        if isinstance(value, str):
            header.spec_version = value
    if DATA_SCHEMA_KEY in extras:
        value = extras.pop(DATA_SCHEMA_KEY)
        if isinstance(value, str):
            header.data_schema = value
    if TAGS_KEY in extras:
        value = extras.pop(TAGS_KEY)
        if isinstance(value, list) and all(isinstance(tag, str) for tag in value):
            header.tags = list(value)
    signature = extras.get(SIGNATURE_KEY)
    if isinstance(signature, str):
        header.signature = signature

    if not extras:
        header.extras = None


# ---------------------------------------------------------------------------
# JSON array form (queue / log messages)
# ---------------------------------------------------------------------------

def marshal_row(row: Sequence[Any]) -> bytes:
    """Encode a row as a JSON array, timestamps in RFC 3339."""
    if len(row) != ROW_LENGTH:
        raise TranscodeError(
            f"invalid cloud event row length: expected {ROW_LENGTH}, got {len(row)}"
        )
    values = [
        format_rfc3339_nano(value) if isinstance(value, datetime) else value
        for value in row
    ]
    return json.dumps(values, separators=(",", ":")).encode("utf-8")


def unmarshal_row(raw: bytes | str) -> Row:
    """Decode a JSON array into a row, checking arity and element types."""
    try:
        values = json.loads(raw)
    except ValueError as exc:
        raise TranscodeError(f"failed to unmarshal cloud event row: {exc}") from exc
    if not isinstance(values, list):
        raise TranscodeError(
            f"cloud event row must be a JSON array, got {type(values).__name__}"
        )
    if len(values) != ROW_LENGTH:
        raise TranscodeError(f"invalid cloud event row length: {len(values)}")

    out: list[Any] = []
    for column, value in zip(INSERT_COLUMNS, values):
        if column == TIMESTAMP_COLUMN:
            out.append(_decode_time(value))
        elif isinstance(value, str):
            out.append(value)
        else:
            raise TranscodeError(
                f"failed to unmarshal {column}: expected string, got {type(value).__name__}",
                field=column,
            )
    return tuple(out)


def _decode_time(value: Any) -> datetime:
    if not isinstance(value, str):
        raise TranscodeError(
            f"failed to unmarshal {TIMESTAMP_COLUMN}: expected string, got {type(value).__name__}",
            field=TIMESTAMP_COLUMN,
        )
    match = _RFC3339.fullmatch(value)
    if match is None:
        raise TranscodeError(
            f"failed to unmarshal {TIMESTAMP_COLUMN}: {value!r} is not an RFC 3339 time",
            field=TIMESTAMP_COLUMN,
        )
    seconds, fraction, offset = match.groups()
    # Sub-microsecond digits are dropped.
    fraction = (fraction or "")[:7]
    offset = "+00:00" if offset == "Z" else offset
    try:
        parsed = datetime.fromisoformat(seconds + fraction + offset)
    except ValueError as exc:
        raise TranscodeError(
            f"failed to unmarshal {TIMESTAMP_COLUMN}: {exc}", field=TIMESTAMP_COLUMN
        ) from exc
    return parsed.astimezone(timezone.utc)
