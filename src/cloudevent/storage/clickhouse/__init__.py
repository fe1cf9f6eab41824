"""Cloud event index: table definition, row codec and object keys."""

from cloudevent.storage.clickhouse.keys import cloud_event_to_object_key
from cloudevent.storage.clickhouse.rows import from_row, to_row, unmarshal_row

__all__ = ["cloud_event_to_object_key", "from_row", "to_row", "unmarshal_row"]
