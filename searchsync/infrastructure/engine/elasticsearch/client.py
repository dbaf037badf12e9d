"""Elasticsearch adapter for the SearchEngineClient protocol."""

import logging
from typing import Any

from elasticsearch import AsyncElasticsearch, NotFoundError
from elasticsearch.helpers import async_bulk

from searchsync.domain.index.model.event import IndexEventKind, IndexOperation
from searchsync.domain.index.model.mapper import ChangeFeedSource
from searchsync.domain.shared.error import EngineError
from searchsync.infrastructure.engine.elasticsearch.config import IndexSettings
from searchsync.infrastructure.river.sql_feed import ChangeFeeds

logger = logging.getLogger(__name__)


class ElasticsearchEngine:
    """Search engine backed by an Elasticsearch cluster.

    One index per type name (``index_prefix + type_name``). Engine and
    transport failures are re-raised as EngineError; nothing is retried here.
    """

    def __init__(
        self,
        es: AsyncElasticsearch,
        settings: IndexSettings,
        index_prefix: str = "",
        feeds: ChangeFeeds | None = None,
    ) -> None:
        self._es = es
        self._settings = settings
        self._index_prefix = index_prefix
        self._feeds = feeds or ChangeFeeds()

    def index_name(self, type_name: str) -> str:
        return f"{self._index_prefix}{type_name}".lower()

    async def create_index(self, type_name: str, mapping: dict[str, Any]) -> None:
        name = self.index_name(type_name)
        try:
            if await self._es.indices.exists(index=name):
                await self._es.indices.put_mapping(
                    index=name, properties=mapping.get("properties", {})
                )
                logger.debug(f"Index '{name}' exists, mapping updated")
                return
            await self._es.indices.create(
                index=name, settings=self._settings.as_body(), mappings=mapping
            )
            logger.debug(f"Index '{name}' created")
        except Exception as e:
            raise EngineError(f"Failed to create index '{name}': {e}") from e

    async def delete_index(self, type_name: str) -> None:
        name = self.index_name(type_name)
        await self._feeds.stop(type_name)
        try:
            await self._es.indices.delete(index=name, ignore_unavailable=True)
        except Exception as e:
            raise EngineError(f"Failed to delete index '{name}': {e}") from e

    async def index_document(self, type_name: str, document_id: str, body: dict[str, Any]) -> None:
        name = self.index_name(type_name)
        try:
            await self._es.index(index=name, id=document_id, document=body)
        except Exception as e:
            raise EngineError(f"Failed to index {name}/{document_id}: {e}") from e

    async def delete_document(self, type_name: str, document_id: str) -> None:
        name = self.index_name(type_name)
        try:
            await self._es.delete(index=name, id=document_id)
        except NotFoundError:
            logger.debug(f"Document {name}/{document_id} already absent")
        except Exception as e:
            raise EngineError(f"Failed to delete {name}/{document_id}: {e}") from e

    async def bulk(self, operations: list[IndexOperation]) -> None:
        actions = [self._action(op) for op in operations]
        try:
            _, errors = await async_bulk(self._es, actions, raise_on_error=False)
        except Exception as e:
            raise EngineError(f"Bulk request of {len(actions)} operations failed: {e}") from e

        # Deleting an absent document is not a failure
        failures = [
            item
            for item in errors
            if not ("delete" in item and item["delete"].get("status") == 404)
        ]
        if failures:
            raise EngineError(f"{len(failures)} of {len(actions)} bulk operations failed: {failures[:3]}")

    async def start_change_feed(self, type_name: str, source: ChangeFeedSource) -> None:
        await self._feeds.start(type_name, source, self.bulk)

    async def stop_change_feed(self, type_name: str) -> None:
        await self._feeds.stop(type_name)

    async def close(self) -> None:
        await self._feeds.stop_all()
        await self._es.close()
        logger.info("Elasticsearch client closed")

    def _action(self, op: IndexOperation) -> dict[str, Any]:
        action: dict[str, Any] = {
            "_op_type": op.kind.value,
            "_index": self.index_name(op.type_name),
            "_id": op.document_id,
        }
        if op.kind is IndexEventKind.INDEX:
            action["_source"] = op.body or {}
        return action
