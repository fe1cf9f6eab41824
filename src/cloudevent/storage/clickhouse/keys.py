"""Object key derivation for stored cloud events."""

from __future__ import annotations

import xxhash

from cloudevent.events import CloudEventHeader

_HEX_CHARS = "0123456789abcdef"


def cloud_event_to_object_key(header: CloudEventHeader | None) -> str:
    """Return the storage key for *header*, or ``""`` when there is none.

    The key is ``header.key()`` prefixed with one hex digit taken from the top
    four bits of its XXH64 hash, which spreads objects over 16 path prefixes.
    """
    if header is None:
        return ""
    key = header.key()
    shard = xxhash.xxh64_intdigest(key.encode("utf-8")) >> 60
    return _HEX_CHARS[shard] + key
