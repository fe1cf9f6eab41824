"""Search options and query construction over the cloud event index."""

from __future__ import annotations

from datetime import datetime

from pydantic import BaseModel
from sqlalchemy import ColumnElement, Select, and_, select

from cloudevent.storage.clickhouse.models import (
    DATA_CONTENT_TYPE_COLUMN,
    DATA_VERSION_COLUMN,
    EXTRAS_COLUMN,
    ID_COLUMN,
    INDEX_KEY_COLUMN,
    INSERT_COLUMNS,
    PRODUCER_COLUMN,
    SOURCE_COLUMN,
    SUBJECT_COLUMN,
    TIMESTAMP_COLUMN,
    TYPE_COLUMN,
    cloud_event_table,
)


class SearchOptions(BaseModel):
    """Filters for index lookups.  Every set filter must match (AND)."""

    after: datetime | None = None  # exclusive lower bound on event time
    before: datetime | None = None  # exclusive upper bound on event time
    timestamp_asc: bool = False  # ignored by latest-lookups
    subject: str | None = None
    type: str | None = None
    id: str | None = None
    source: str | None = None  # party responsible for the data
    producer: str | None = None  # entity instance that created the data
    data_version: str | None = None
    data_content_type: str | None = None
    extras: str | None = None  # exact match on the raw extras JSON
    index_key: str | None = None  # key of the backing object


_EQUALITY_FILTERS: tuple[tuple[str, str], ...] = (
    ("type", TYPE_COLUMN),
    ("data_version", DATA_VERSION_COLUMN),
    ("subject", SUBJECT_COLUMN),
    ("source", SOURCE_COLUMN),
    ("producer", PRODUCER_COLUMN),
    ("extras", EXTRAS_COLUMN),
    ("data_content_type", DATA_CONTENT_TYPE_COLUMN),
    ("index_key", INDEX_KEY_COLUMN),
)


def build_conditions(opts: SearchOptions | None) -> list[ColumnElement[bool]]:
    """Translate *opts* into bound WHERE predicates.  ``None`` matches everything."""
    if opts is None:
        return []
    columns = cloud_event_table.c
    conditions: list[ColumnElement[bool]] = []
    if opts.id is not None:
        conditions.append(columns[ID_COLUMN] == opts.id)
    if opts.after is not None:
        conditions.append(columns[TIMESTAMP_COLUMN] > opts.after)
    if opts.before is not None:
        conditions.append(columns[TIMESTAMP_COLUMN] < opts.before)
    for attr, column in _EQUALITY_FILTERS:
        value = getattr(opts, attr)
        if value is not None:
            conditions.append(columns[column] == value)
    return conditions


def build_index_query(limit: int, opts: SearchOptions | None = None) -> Select:
    """SELECT every index column, filtered by *opts*, ordered by event time."""
    columns = cloud_event_table.c
    event_time = columns[TIMESTAMP_COLUMN]
    order = event_time.asc() if opts is not None and opts.timestamp_asc else event_time.desc()
    stmt = select(*(columns[name] for name in INSERT_COLUMNS))
    conditions = build_conditions(opts)
    if conditions:
        stmt = stmt.where(and_(*conditions))
    return stmt.order_by(order).limit(limit)
