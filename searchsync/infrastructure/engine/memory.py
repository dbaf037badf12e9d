"""In-memory search engine for MEMORY mode and tests."""

import copy
import logging
from dataclasses import dataclass, field
from typing import Any

from searchsync.domain.index.model.event import IndexEventKind, IndexOperation
from searchsync.domain.index.model.mapper import ChangeFeedSource
from searchsync.infrastructure.river.sql_feed import ChangeFeeds

logger = logging.getLogger(__name__)


@dataclass
class MemoryIndex:
    """One index: its mapping and its documents by id."""

    mapping: dict[str, Any] = field(default_factory=dict)
    documents: dict[str, dict[str, Any]] = field(default_factory=dict)


class InMemorySearchEngine:
    """Dict-backed engine: one shard, no replicas, nothing persisted.

    Behaves like the Elasticsearch adapter where it matters to the
    orchestration layer: creating an existing index updates its mapping,
    deleting a missing index or document is a no-op, and writing to a
    missing index creates it.
    """

    def __init__(self, feeds: ChangeFeeds | None = None) -> None:
        self._indices: dict[str, MemoryIndex] = {}
        self._feeds = feeds or ChangeFeeds()
        self.closed = False

    # --- inspection ---

    def has_index(self, type_name: str) -> bool:
        return type_name in self._indices

    def mapping(self, type_name: str) -> dict[str, Any]:
        return self._indices[type_name].mapping

    def documents(self, type_name: str) -> dict[str, dict[str, Any]]:
        index = self._indices.get(type_name)
        return dict(index.documents) if index is not None else {}

    def has_change_feed(self, type_name: str) -> bool:
        return type_name in self._feeds

    # --- SearchEngineClient ---

    async def create_index(self, type_name: str, mapping: dict[str, Any]) -> None:
        index = self._indices.setdefault(type_name, MemoryIndex())
        index.mapping = copy.deepcopy(mapping)
        logger.debug(f"Memory index '{type_name}' ready")

    async def delete_index(self, type_name: str) -> None:
        await self._feeds.stop(type_name)
        self._indices.pop(type_name, None)

    async def index_document(self, type_name: str, document_id: str, body: dict[str, Any]) -> None:
        index = self._indices.setdefault(type_name, MemoryIndex())
        index.documents[document_id] = copy.deepcopy(body)

    async def delete_document(self, type_name: str, document_id: str) -> None:
        index = self._indices.get(type_name)
        if index is not None:
            index.documents.pop(document_id, None)

    async def bulk(self, operations: list[IndexOperation]) -> None:
        for op in operations:
            if op.kind is IndexEventKind.INDEX:
                await self.index_document(op.type_name, op.document_id, op.body or {})
            else:
                await self.delete_document(op.type_name, op.document_id)

    async def start_change_feed(self, type_name: str, source: ChangeFeedSource) -> None:
        await self._feeds.start(type_name, source, self.bulk)

    async def stop_change_feed(self, type_name: str) -> None:
        await self._feeds.stop(type_name)

    async def close(self) -> None:
        await self._feeds.stop_all()
        self.closed = True
        logger.info("In-memory search engine closed")
