"""Search and retrieval of indexed cloud events."""

from cloudevent.eventrepo.search import SearchOptions, build_conditions, build_index_query
from cloudevent.eventrepo.service import EventRepository

__all__ = ["EventRepository", "SearchOptions", "build_conditions", "build_index_query"]
