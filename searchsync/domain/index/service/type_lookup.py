"""TypeLookup - resolves a search type name back to its domain type."""

import logging
from collections.abc import Callable, Iterable
from dataclasses import field

from searchsync.domain.index.model.searchable import qualified_name
from searchsync.domain.index.service.mapper_registry import MapperRegistry
from searchsync.domain.shared.error import MappingError, UnknownTypeNameError
from searchsync.domain.shared.service import Service

logger = logging.getLogger(__name__)


class TypeLookup(Service):
    """Reverse index from type name to domain type.

    On a cache miss every candidate type is mapped and compared; candidates
    whose mapper cannot be built are skipped, not reported.
    """

    mappers: MapperRegistry
    candidates: Callable[[], Iterable[type]]
    _lookup: dict[str, type] = field(default_factory=dict, init=False, repr=False)

    def lookup_domain_type(self, type_name: str) -> type:
        """Find the domain type whose mapper declares ``type_name``.

        Raises:
            UnknownTypeNameError: If no candidate maps to the type name.
        """
        domain_type = self._lookup.get(type_name)
        if domain_type is not None:
            return domain_type

        for candidate in sorted(self.candidates(), key=qualified_name):
            try:
                mapper = self.mappers.get_mapper(candidate)
            except MappingError as e:
                logger.debug(f"Skipping {qualified_name(candidate)} during lookup: {e}")
                continue
            if mapper.type_name == type_name:
                self._lookup[type_name] = candidate
                return candidate

        raise UnknownTypeNameError(type_name)

    def forget(self, domain_type: type) -> None:
        """Drop cached names that resolve to ``domain_type``."""
        for name in [n for n, t in self._lookup.items() if t is domain_type]:
            del self._lookup[name]
