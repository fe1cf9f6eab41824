"""Cloud event indexing and retrieval.

Events are stored as objects in a blob store and indexed by metadata rows in
a columnar database.  Entity references use DIDs (see :mod:`cloudevent.did`).
"""

from cloudevent.events import (
    SPEC_VERSION,
    TYPE_FINGERPRINT,
    TYPE_STATUS,
    TYPE_UNKNOWN,
    TYPE_VERIFIABLE_CREDENTIAL,
    CloudEvent,
    CloudEventHeader,
    IndexEvent,
    ObjectInfo,
    RawEvent,
)

__all__ = [
    "SPEC_VERSION",
    "TYPE_FINGERPRINT",
    "TYPE_STATUS",
    "TYPE_UNKNOWN",
    "TYPE_VERIFIABLE_CREDENTIAL",
    "CloudEvent",
    "CloudEventHeader",
    "IndexEvent",
    "ObjectInfo",
    "RawEvent",
]
