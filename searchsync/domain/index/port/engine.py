"""SearchEngineClient protocol - the search engine as seen by the orchestration layer."""

from typing import Any, Protocol

from searchsync.domain.index.model.event import IndexOperation
from searchsync.domain.index.model.mapper import ChangeFeedSource


class SearchEngineClient(Protocol):
    """Protocol for search engine adapters.

    Implementations raise EngineError for I/O failures. No operation retries
    internally; retry policy belongs to the delivery handlers.
    """

    async def create_index(self, type_name: str, mapping: dict[str, Any]) -> None:
        """Create the index for a type (or update its mapping if it exists).

        Args:
            type_name: Search type name.
            mapping: Engine mapping body (``{"properties": {...}}``).
        """
        ...

    async def delete_index(self, type_name: str) -> None:
        """Delete a type's index. Missing indexes are ignored."""
        ...

    async def index_document(self, type_name: str, document_id: str, body: dict[str, Any]) -> None:
        """Upsert a document."""
        ...

    async def delete_document(self, type_name: str, document_id: str) -> None:
        """Remove a document. Missing documents are ignored."""
        ...

    async def bulk(self, operations: list[IndexOperation]) -> None:
        """Apply several operations in order, in one round trip where supported."""
        ...

    async def start_change_feed(self, type_name: str, source: ChangeFeedSource) -> None:
        """Start streaming a change-feed source into a type's index."""
        ...

    async def stop_change_feed(self, type_name: str) -> None:
        """Stop a type's change feed. Unknown feeds are ignored."""
        ...

    async def close(self) -> None:
        """Release the connection and stop all change feeds."""
        ...
