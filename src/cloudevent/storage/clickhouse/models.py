"""Index table definition.

One row per cloud event.  Rows sharing ``(subject, event_time, event_type,
source, id)`` replace each other, so the latest write for an identity wins
(``ReplacingMergeTree`` in ClickHouse, ``ON CONFLICT REPLACE`` elsewhere).
"""

from __future__ import annotations

from sqlalchemy import Column, DateTime, MetaData, PrimaryKeyConstraint, String, Table

TABLE_NAME = "cloud_event"

SUBJECT_COLUMN = "subject"
TIMESTAMP_COLUMN = "event_time"
TYPE_COLUMN = "event_type"
ID_COLUMN = "id"
SOURCE_COLUMN = "source"
PRODUCER_COLUMN = "producer"
DATA_CONTENT_TYPE_COLUMN = "data_content_type"
DATA_VERSION_COLUMN = "data_version"
EXTRAS_COLUMN = "extras"
INDEX_KEY_COLUMN = "index_key"

# Row order.  Every row tuple and SELECT projection follows it.
INSERT_COLUMNS: tuple[str, ...] = (
    SUBJECT_COLUMN,
    TIMESTAMP_COLUMN,
    TYPE_COLUMN,
    ID_COLUMN,
    SOURCE_COLUMN,
    PRODUCER_COLUMN,
    DATA_CONTENT_TYPE_COLUMN,
    DATA_VERSION_COLUMN,
    EXTRAS_COLUMN,
    INDEX_KEY_COLUMN,
)

metadata = MetaData()

cloud_event_table = Table(
    TABLE_NAME,
    metadata,
    Column(SUBJECT_COLUMN, String, nullable=False, comment="DID of the entity the event is about"),
    Column(TIMESTAMP_COLUMN, DateTime(timezone=True), nullable=False, comment="Time at which the event occurred"),
    Column(TYPE_COLUMN, String, nullable=False, comment="Event type"),
    Column(ID_COLUMN, String, nullable=False, comment="Identifier of the event"),
    Column(SOURCE_COLUMN, String, nullable=False, comment="Party responsible for the event"),
    Column(PRODUCER_COLUMN, String, nullable=False, comment="Instance that created the event"),
    Column(DATA_CONTENT_TYPE_COLUMN, String, nullable=False, comment="Content type of the payload"),
    Column(DATA_VERSION_COLUMN, String, nullable=False, comment="Version of the payload"),
    Column(EXTRAS_COLUMN, String, nullable=False, comment="Extra metadata as JSON"),
    Column(INDEX_KEY_COLUMN, String, nullable=False, comment="Key of the backing object"),
    PrimaryKeyConstraint(
        SUBJECT_COLUMN,
        TIMESTAMP_COLUMN,
        TYPE_COLUMN,
        SOURCE_COLUMN,
        ID_COLUMN,
        sqlite_on_conflict="REPLACE",
    ),
)
