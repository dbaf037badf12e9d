"""MapperRegistry - per-type cache of structural mappers."""

import logging
import threading
from dataclasses import field
from typing import TypeVar

from searchsync.domain.index.model.mapper import Mapper
from searchsync.domain.index.port.mapper_factory import MapperFactory
from searchsync.domain.shared.service import Service

logger = logging.getLogger(__name__)

M = TypeVar("M")


class MapperRegistry(Service):
    """Caches one Mapper per domain type for the lifetime of the plugin.

    Construction runs under a lock so concurrent first calls for a type
    (from worker threads or to_thread offloads) build the mapper once.
    Failures are not cached; the next call retries construction.
    """

    factory: MapperFactory
    _mappers: dict[type, Mapper] = field(default_factory=dict, init=False, repr=False)
    _lock: threading.Lock = field(default_factory=threading.Lock, init=False, repr=False)

    def get_mapper(self, domain_type: type[M]) -> Mapper[M]:
        """Return the cached mapper for a type, building it on first use.

        Raises:
            MappingError: If the factory cannot derive a mapping for the type.
        """
        mapper = self._mappers.get(domain_type)
        if mapper is not None:
            return mapper

        with self._lock:
            mapper = self._mappers.get(domain_type)
            if mapper is None:
                mapper = self.factory.get_mapper(domain_type)
                self._mappers[domain_type] = mapper
                logger.debug(f"Built mapper for {domain_type.__name__}: {mapper}")
        return mapper

    def cached(self, domain_type: type[M]) -> Mapper[M] | None:
        """Return the cached mapper without building one."""
        return self._mappers.get(domain_type)

    def invalidate(self, domain_type: type) -> None:
        """Drop a type's mapper so the next lookup rebuilds it."""
        with self._lock:
            self._mappers.pop(domain_type, None)

    def __contains__(self, domain_type: type) -> bool:
        return domain_type in self._mappers

    def __len__(self) -> int:
        return len(self._mappers)
