"""Cloud event header and envelope models.

The wire envelope is a flat JSON object.  The named header fields live under
fixed lower-case keys, an optional ``data`` key carries the payload, and every
other top-level key is kept in :attr:`CloudEventHeader.extras` so producer
specific metadata round-trips without a schema change.

Payload decoding is chosen at the call site by parametrising the generic
:class:`CloudEvent` model::

    CloudEventHeader.from_json(raw)        # header only, ``data`` dropped
    CloudEvent[StatusPayload].from_json(raw)
    RawEvent.from_json(raw)                # payload kept as raw JSON bytes
"""

from __future__ import annotations

import json
from collections.abc import Mapping
from datetime import datetime, timedelta, timezone
from typing import Annotated, Any, ClassVar, Generic, TypeVar

from pydantic import (
    BaseModel,
    BeforeValidator,
    ConfigDict,
    Field,
    ValidationError,
    field_validator,
    model_serializer,
)
from pydantic_core import to_jsonable_python

from cloudevent.core.errors import TranscodeError

SPEC_VERSION = "1.0"

# Recognised event types.  Unknown values are stored but may be ignored downstream.
TYPE_STATUS = "dimo.status"
TYPE_FINGERPRINT = "dimo.fingerprint"
TYPE_VERIFIABLE_CREDENTIAL = "dimo.verifiablecredential"
TYPE_UNKNOWN = "dimo.unknown"

ZERO_TIME = datetime(1, 1, 1, tzinfo=timezone.utc)

DATA_FIELD = "data"

# Wire names of the named header fields, in envelope order.
HEADER_FIELD_NAMES: tuple[str, ...] = (
    "id",
    "source",
    "producer",
    "specversion",
    "subject",
    "time",
    "type",
    "datacontenttype",
    "dataschema",
    "dataversion",
    "signature",
    "tags",
)
RESERVED_FIELD_NAMES: frozenset[str] = frozenset(HEADER_FIELD_NAMES)


# ---------------------------------------------------------------------------
# Time formatting
# ---------------------------------------------------------------------------

def _format_offset(t: datetime) -> str:
    offset = t.utcoffset() or timedelta(0)
    if offset == timedelta(0):
        return "Z"
    sign = "+" if offset > timedelta(0) else "-"
    minutes = abs(int(offset.total_seconds())) // 60
    return f"{sign}{minutes // 60:02d}:{minutes % 60:02d}"


def _format_seconds(t: datetime) -> str:
    return (
        f"{t.year:04d}-{t.month:02d}-{t.day:02d}"
        f"T{t.hour:02d}:{t.minute:02d}:{t.second:02d}"
    )


def format_rfc3339(t: datetime) -> str:
    """Render *t* as RFC 3339 with whole seconds, e.g. ``2024-01-01T00:00:00Z``."""
    return _format_seconds(t) + _format_offset(t)


def format_rfc3339_nano(t: datetime) -> str:
    """Render *t* as RFC 3339 with trailing fractional zeros trimmed."""
    fraction = ""
    if t.microsecond:
        fraction = "." + f"{t.microsecond:06d}".rstrip("0")
    return _format_seconds(t) + fraction + _format_offset(t)


# ---------------------------------------------------------------------------
# Header
# ---------------------------------------------------------------------------

class CloudEventHeader(BaseModel):
    """Metadata of a cloud event.

    Any field without a dedicated attribute belongs in ``extras``.  ``id``
    combined with ``source`` must be unique per event.
    """

    model_config = ConfigDict(populate_by_name=True)

    # Wire keys copied from the envelope into the model besides the header fields.
    payload_fields: ClassVar[tuple[str, ...]] = ()

    id: str = ""
    source: str = ""
    producer: str = ""
    spec_version: str = Field(default="", alias="specversion")
    subject: str = ""
    time: datetime = ZERO_TIME
    type: str = ""
    data_content_type: str = Field(default="", alias="datacontenttype")
    data_schema: str = Field(default="", alias="dataschema")
    data_version: str = Field(default="", alias="dataversion")
    signature: str = ""
    tags: list[str] | None = None
    extras: dict[str, Any] | None = None

    @field_validator("time")
    @classmethod
    def _as_utc(cls, value: datetime) -> datetime:
        if value.tzinfo is None:
            return value.replace(tzinfo=timezone.utc)
        return value.astimezone(timezone.utc)

    # -- identity -----------------------------------------------------------

    def key(self) -> str:
        """Unique identity: ``subject:time:type:source:id``."""
        return ":".join(
            (self.subject, format_rfc3339(self.time), self.type, self.source, self.id)
        )

    def equals(self, other: CloudEventHeader) -> bool:
        return self.key() == other.key()

    @property
    def header(self) -> CloudEventHeader:
        """A standalone copy of the header fields."""
        return CloudEventHeader(**_header_values(self))

    # -- wire encoding ------------------------------------------------------

    def to_wire(self) -> dict[str, Any]:
        """Build the JSON envelope: named fields, then extras, then payload."""
        out: dict[str, Any] = {
            "id": self.id,
            "source": self.source,
            "producer": self.producer,
            "specversion": SPEC_VERSION,
            "subject": self.subject,
            "time": format_rfc3339_nano(self.time),
            "type": self.type,
        }
        if self.data_content_type:
            out["datacontenttype"] = self.data_content_type
        if self.data_schema:
            out["dataschema"] = self.data_schema
        if self.data_version:
            out["dataversion"] = self.data_version
        if self.signature:
            out["signature"] = self.signature
        if self.tags:
            out["tags"] = list(self.tags)
        if self.extras:
            out.update(self.extras)
        out.update(self._wire_payload())
        return out

    def _wire_payload(self) -> dict[str, Any]:
        return {}

    @model_serializer(mode="plain")
    def _serialize(self) -> dict[str, Any]:
        return self.to_wire()

    def to_json(self) -> bytes:
        return json.dumps(
            self.to_wire(), separators=(",", ":"), default=to_jsonable_python
        ).encode("utf-8")

    # -- wire decoding ------------------------------------------------------

    @classmethod
    def from_wire(cls, obj: Any):
        """Decode an envelope object.

        Named fields are validated into attributes, unknown keys go to
        ``extras`` and ``specversion`` is normalised to ``1.0``.
        """
        if not isinstance(obj, Mapping):
            raise TranscodeError(
                f"cloud event must be a JSON object, got {type(obj).__name__}"
            )
        values: dict[str, Any] = {}
        extras: dict[str, Any] = {}
        for key, value in obj.items():
            if key in RESERVED_FIELD_NAMES:
                values[key] = value
            elif key == DATA_FIELD:
                if key in cls.payload_fields:
                    values[key] = value
            else:
                extras[key] = value
        values["specversion"] = SPEC_VERSION
        values["extras"] = extras or None
        try:
            return cls.model_validate(values)
        except ValidationError as exc:
            raise TranscodeError(f"failed to decode cloud event: {exc}") from exc

    @classmethod
    def from_json(cls, raw: bytes | str):
        try:
            obj = json.loads(raw)
        except ValueError as exc:
            raise TranscodeError(f"failed to decode cloud event JSON: {exc}") from exc
        return cls.from_wire(obj)


# ---------------------------------------------------------------------------
# Envelopes with payload
# ---------------------------------------------------------------------------

DataT = TypeVar("DataT")


def _as_raw_json(value: Any) -> Any:
    # A present JSON null stays the literal "null"; an absent payload never
    # reaches the validator.
    if value is None:
        return b"null"
    if isinstance(value, bytes):
        return value
    if isinstance(value, bytearray):
        return bytes(value)
    return json.dumps(value, separators=(",", ":")).encode("utf-8")


RawJSON = Annotated[bytes | None, BeforeValidator(_as_raw_json)]
"""Payload kept as undecoded JSON bytes."""


class CloudEvent(CloudEventHeader, Generic[DataT]):
    """A header together with its domain payload."""

    payload_fields: ClassVar[tuple[str, ...]] = (DATA_FIELD,)

    data: DataT | None = None

    @classmethod
    def from_header(cls, header: CloudEventHeader, data: Any = None):
        """Attach *data* to a copy of *header*.  ``None`` leaves the payload unset."""
        if data is None:
            return cls(**_header_values(header))
        return cls(**_header_values(header), data=data)

    def _wire_payload(self) -> dict[str, Any]:
        data = self.data
        if isinstance(data, bytes):
            if not data:
                return {DATA_FIELD: None}
            try:
                return {DATA_FIELD: json.loads(data)}
            except ValueError as exc:
                raise TranscodeError(
                    f"payload is not valid JSON: {exc}", field=DATA_FIELD
                ) from exc
        return {DATA_FIELD: to_jsonable_python(data)}


class ObjectInfo(BaseModel):
    """Location of the stored object backing an index row."""

    key: str = ""


RawEvent = CloudEvent[RawJSON]
IndexEvent = CloudEvent[ObjectInfo]


def _header_values(header: CloudEventHeader) -> dict[str, Any]:
    return {name: getattr(header, name) for name in CloudEventHeader.model_fields}
