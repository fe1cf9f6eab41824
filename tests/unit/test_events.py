"""Tests for the cloud event header model and its JSON envelope."""

from __future__ import annotations

import json
from datetime import datetime, timedelta, timezone

import pytest
from pydantic import BaseModel

from cloudevent.core.errors import TranscodeError
from cloudevent.events import (
    RESERVED_FIELD_NAMES,
    SPEC_VERSION,
    ZERO_TIME,
    CloudEvent,
    CloudEventHeader,
    RawEvent,
    format_rfc3339,
    format_rfc3339_nano,
)


class StatusPayload(BaseModel):
    speed: float
    odometer: int | None = None


# ---------------------------------------------------------------------------
# Time formatting
# ---------------------------------------------------------------------------

class TestTimeFormatting:
    def test_whole_seconds_utc(self):
        t = datetime(2024, 3, 1, 12, 0, 0, 250_000, tzinfo=timezone.utc)
        assert format_rfc3339(t) == "2024-03-01T12:00:00Z"

    def test_offset(self):
        t = datetime(2024, 3, 1, 12, 0, 0, tzinfo=timezone(timedelta(hours=-5, minutes=-30)))
        assert format_rfc3339(t) == "2024-03-01T12:00:00-05:30"

    def test_nano_trims_trailing_zeros(self):
        t = datetime(2024, 3, 1, 12, 0, 0, 250_000, tzinfo=timezone.utc)
        assert format_rfc3339_nano(t) == "2024-03-01T12:00:00.25Z"

    def test_nano_without_fraction(self):
        t = datetime(2024, 3, 1, 12, 0, 0, tzinfo=timezone.utc)
        assert format_rfc3339_nano(t) == "2024-03-01T12:00:00Z"

    def test_zero_time(self):
        assert format_rfc3339(ZERO_TIME) == "0001-01-01T00:00:00Z"


# ---------------------------------------------------------------------------
# Identity
# ---------------------------------------------------------------------------

class TestIdentity:
    def test_key_format(self, header):
        assert header.key() == (
            f"{header.subject}:2024-03-01T12:00:00Z:dimo.status:{header.source}:evt-1"
        )

    def test_equals_ignores_non_identity_fields(self, make_header):
        a = make_header(extras={"a": 1}, producer="p1", data_version="v1")
        b = make_header(extras={"b": 2}, producer="p2", data_version="v9")
        assert a.equals(b)

    @pytest.mark.parametrize("field", ["subject", "type", "source", "id"])
    def test_equals_detects_identity_change(self, make_header, field):
        assert not make_header().equals(make_header(**{field: "other"}))

    def test_equals_detects_time_change(self, make_header, header):
        later = make_header(time=header.time + timedelta(seconds=1))
        assert not header.equals(later)

    def test_empty_header_key(self):
        assert CloudEventHeader().key() == ":0001-01-01T00:00:00Z:::"

    def test_naive_time_is_utc(self):
        h = CloudEventHeader(time=datetime(2024, 1, 1, 0, 0, 0))
        assert h.time.tzinfo is not None
        assert h.time.utcoffset() == timedelta(0)


# ---------------------------------------------------------------------------
# Marshal
# ---------------------------------------------------------------------------

class TestMarshal:
    def test_field_order_and_omitted_optionals(self):
        h = CloudEventHeader(
            id="1",
            source="s",
            producer="p",
            subject="sub",
            time=datetime(2024, 1, 1, tzinfo=timezone.utc),
            type="dimo.status",
        )
        assert list(h.to_wire()) == [
            "id",
            "source",
            "producer",
            "specversion",
            "subject",
            "time",
            "type",
        ]

    def test_spec_version_forced(self, make_header):
        h = make_header(spec_version="0.3")
        assert h.to_wire()["specversion"] == SPEC_VERSION

    def test_extras_merged_after_named_fields(self, make_header):
        h = make_header(extras={"zeta": 1, "alpha": {"nested": True}})
        wire = h.to_wire()
        keys = list(wire)
        assert keys[-2:] == ["zeta", "alpha"]
        assert wire["alpha"] == {"nested": True}

    def test_optional_fields_written_when_set(self, make_header):
        h = make_header(data_schema="schema://x", signature="0xsig", tags=["a", "b"])
        wire = h.to_wire()
        assert wire["datacontenttype"] == "application/json"
        assert wire["dataschema"] == "schema://x"
        assert wire["dataversion"] == "v2"
        assert wire["signature"] == "0xsig"
        assert wire["tags"] == ["a", "b"]

    def test_to_json_is_compact(self, header):
        raw = header.to_json()
        assert b" " not in raw
        assert json.loads(raw)["time"] == "2024-03-01T12:00:00.25Z"

    def test_model_dump_uses_wire_form(self, header):
        assert header.model_dump() == header.to_wire()

    def test_payload_written_last(self, header):
        event = CloudEvent[StatusPayload].from_header(header, StatusPayload(speed=12.5))
        wire = event.to_wire()
        assert list(wire)[-1] == "data"
        assert wire["data"] == {"speed": 12.5, "odometer": None}

    def test_raw_payload_embedded_as_json(self, header):
        event = RawEvent.from_header(header, b'{"speed": 3}')
        assert json.loads(event.to_json())["data"] == {"speed": 3}

    def test_raw_payload_must_be_json(self, header):
        event = RawEvent.from_header(header, b"not json")
        with pytest.raises(TranscodeError):
            event.to_json()


# ---------------------------------------------------------------------------
# Unmarshal
# ---------------------------------------------------------------------------

class TestUnmarshal:
    def test_round_trip_preserves_fields_and_extras(self, make_header):
        h = make_header(
            data_schema="schema://x",
            signature="0xsig",
            tags=["a"],
            extras={"vin": "1HGCM", "count": 3, "nested": {"k": [1, 2]}},
            spec_version=SPEC_VERSION,
        )
        decoded = CloudEventHeader.from_json(h.to_json())
        assert decoded == h

    def test_lookalike_keys_stay_in_extras(self, make_header):
        extras = {"Subject": "x", "data_version": "y", "specversion2": "z"}
        decoded = CloudEventHeader.from_json(make_header(extras=extras).to_json())
        assert decoded.extras == extras
        assert decoded.data_version == "v2"

    def test_spec_version_normalised(self):
        decoded = CloudEventHeader.from_json(b'{"id":"1","specversion":"0.3"}')
        assert decoded.spec_version == SPEC_VERSION

    def test_spec_version_set_when_missing(self):
        decoded = CloudEventHeader.from_json(b'{"id":"1"}')
        assert decoded.spec_version == SPEC_VERSION

    def test_header_only_decode_drops_data(self):
        decoded = CloudEventHeader.from_json(b'{"id":"1","data":{"speed":1},"x":2}')
        assert decoded.extras == {"x": 2}
        assert not hasattr(decoded, "data")

    def test_no_extras_is_none(self):
        decoded = CloudEventHeader.from_json(b'{"id":"1","data":{}}')
        assert decoded.extras is None

    def test_typed_payload(self):
        raw = b'{"id":"1","time":"2024-03-01T12:00:00.25Z","data":{"speed":88.0}}'
        event = CloudEvent[StatusPayload].from_json(raw)
        assert event.data == StatusPayload(speed=88.0)
        assert event.extras is None
        assert event.time == datetime(2024, 3, 1, 12, 0, 0, 250_000, tzinfo=timezone.utc)

    def test_raw_payload_kept_as_bytes(self):
        event = RawEvent.from_json(b'{"id":"1","data": {"speed": 1}}')
        assert event.data == b'{"speed":1}'

    def test_raw_payload_absent(self):
        event = RawEvent.from_json(b'{"id":"1"}')
        assert event.data is None

    def test_invalid_json(self):
        with pytest.raises(TranscodeError):
            CloudEventHeader.from_json(b"{not json")

    def test_not_an_object(self):
        with pytest.raises(TranscodeError):
            CloudEventHeader.from_json(b"[1, 2]")

    def test_wrong_field_type(self):
        with pytest.raises(TranscodeError):
            CloudEventHeader.from_json(b'{"time":"yesterday"}')


class TestHeaderCopy:
    def test_header_property_strips_payload(self, header):
        event = CloudEvent[StatusPayload].from_header(header, StatusPayload(speed=1))
        copy = event.header
        assert type(copy) is CloudEventHeader
        assert copy == header

    def test_reserved_names_cover_wire_fields(self):
        assert "data" not in RESERVED_FIELD_NAMES
        assert {"id", "specversion", "tags", "signature"} <= RESERVED_FIELD_NAMES


class TestTimeNormalisation:
    def test_offset_time_converted_to_utc(self, make_header):
        plus_two = timezone(timedelta(hours=2))
        h = make_header(time=datetime(2024, 3, 1, 14, 0, tzinfo=plus_two))
        assert h.time.utcoffset() == timedelta(0)
        assert h.time == datetime(2024, 3, 1, 12, 0, tzinfo=timezone.utc)
        assert ":2024-03-01T12:00:00Z:" in h.key()

    def test_same_instant_same_key(self, make_header):
        plus_two = timezone(timedelta(hours=2))
        local = make_header(time=datetime(2024, 3, 1, 14, 0, tzinfo=plus_two))
        utc = make_header(time=datetime(2024, 3, 1, 12, 0, tzinfo=timezone.utc))
        assert local.equals(utc)


class TestRawNullPayload:
    def test_present_null_kept_as_literal(self):
        event = RawEvent.from_json(b'{"id":"x","data":null}')
        assert event.data == b"null"

    def test_from_header_without_data_leaves_payload_unset(self, header):
        assert RawEvent.from_header(header).data is None
        assert RawEvent.from_header(header, None).data is None

    def test_null_payload_written_as_null(self, header):
        event = RawEvent.from_header(header, b"null")
        assert json.loads(event.to_json())["data"] is None
