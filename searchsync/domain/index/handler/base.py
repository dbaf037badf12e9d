"""Base class for index event delivery handlers."""

import logging
from abc import ABC, abstractmethod

from searchsync.domain.index.model.event import IndexEvent, IndexEventKind, IndexOperation
from searchsync.domain.index.port.engine import SearchEngineClient
from searchsync.domain.index.service.mapper_registry import MapperRegistry

logger = logging.getLogger(__name__)


class IndexEventHandler(ABC):
    """Applies index events to the search engine.

    INDEX upserts the subject's document, DELETE removes it, both addressed
    by the mapper's type name and the subject's document id. Subclasses
    decide when the resulting operation is applied and what happens when
    the engine fails.
    """

    def __init__(self, client: SearchEngineClient, mappers: MapperRegistry) -> None:
        self._client = client
        self._mappers = mappers

    @abstractmethod
    async def handle(self, event: IndexEvent) -> None:
        """Accept an event for delivery."""
        ...

    async def drain(self) -> None:
        """Wait until every accepted event has been applied or dropped."""

    async def close(self) -> None:
        """Apply or drop what is pending and release resources."""

    def resolve(self, event: IndexEvent) -> IndexOperation:
        """Serialize an event's subject into an engine operation."""
        mapper = self._mappers.get_mapper(type(event.subject))
        body = mapper.document(event.subject) if event.kind is IndexEventKind.INDEX else None
        return IndexOperation(
            kind=event.kind,
            type_name=mapper.type_name,
            document_id=mapper.document_id(event.subject),
            body=body,
        )

    async def apply(self, operation: IndexOperation) -> None:
        """Apply a single operation to the engine."""
        if operation.kind is IndexEventKind.INDEX:
            await self._client.index_document(
                operation.type_name, operation.document_id, operation.body or {}
            )
        else:
            await self._client.delete_document(operation.type_name, operation.document_id)
        logger.debug(f"Applied {operation.kind} {operation.type_name}/{operation.document_id}")
