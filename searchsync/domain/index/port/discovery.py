from typing import Protocol


class TypeDiscovery(Protocol):
    """Enumerates the host application's domain types."""

    def list_searchable_types(self) -> set[type]:
        """All domain types eligible for indexing."""
        ...

    def list_annotated_types(self, marker: type) -> list[type]:
        """All domain types carrying the given marker, eligible or not."""
        ...
