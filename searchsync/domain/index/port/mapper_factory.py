from typing import Protocol, TypeVar

from searchsync.domain.index.model.mapper import Mapper

M = TypeVar("M")


class MapperFactory(Protocol):
    """Builds the structural mapper for a domain type."""

    def get_mapper(self, domain_type: type[M]) -> Mapper[M]:
        """Derive a mapper.

        Raises:
            MappingError: If the type lacks the metadata a mapping needs.
        """
        ...
