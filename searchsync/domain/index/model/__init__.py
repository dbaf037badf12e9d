"""Index domain model."""

from searchsync.domain.index.model.delivery import DeliveryMode
from searchsync.domain.index.model.event import IndexEvent, IndexEventKind, IndexOperation
from searchsync.domain.index.model.mapper import ChangeFeedSource, DatabaseParams, Mapper
from searchsync.domain.index.model.searchable import (
    SearchableInfo,
    is_searchable,
    qualified_name,
    searchable,
    searchable_info,
)
from searchsync.domain.index.model.state import LifecycleState
from searchsync.domain.index.model.status import Status

__all__ = [
    "ChangeFeedSource",
    "DatabaseParams",
    "DeliveryMode",
    "IndexEvent",
    "IndexEventKind",
    "IndexOperation",
    "LifecycleState",
    "Mapper",
    "SearchableInfo",
    "Status",
    "is_searchable",
    "qualified_name",
    "searchable",
    "searchable_info",
]
