"""Unit tests for MapperRegistry."""

import asyncio

import pytest

from searchsync.domain.index.service import MapperRegistry
from searchsync.domain.shared.error import MappingError


class TestMapperRegistry:
    def test_get_mapper_returns_cached_instance(self, mappers, mapper_factory, models):
        """Repeated calls return the identical mapper and build it once."""
        first = mappers.get_mapper(models.Book)
        second = mappers.get_mapper(models.Book)

        assert first is second
        assert mapper_factory.calls == [models.Book]
        assert first.type_name == "book"

    def test_failure_is_not_cached(self, mappers, mapper_factory, models):
        """A failed construction is retried on the next call."""
        mapper_factory.failing.add(models.Author)

        with pytest.raises(MappingError):
            mappers.get_mapper(models.Author)
        assert models.Author not in mappers

        mapper_factory.failing.clear()
        mapper = mappers.get_mapper(models.Author)

        assert mapper.type_name == "author"
        assert mapper_factory.calls == [models.Author, models.Author]

    def test_invalidate_forces_rebuild(self, mappers, mapper_factory, models):
        first = mappers.get_mapper(models.Book)
        mappers.invalidate(models.Book)

        assert mappers.cached(models.Book) is None
        assert mappers.get_mapper(models.Book) is not first
        assert len(mapper_factory.calls) == 2

    def test_invalidate_unknown_type_is_noop(self, mappers, models):
        mappers.invalidate(models.Draft)
        assert len(mappers) == 0

    @pytest.mark.asyncio
    async def test_concurrent_threads_build_once(self, mapper_factory, models):
        """Lookups offloaded to threads still construct a single mapper."""
        registry = MapperRegistry(factory=mapper_factory)

        results = await asyncio.gather(
            *(asyncio.to_thread(registry.get_mapper, models.Book) for _ in range(8))
        )

        assert all(result is results[0] for result in results)
        assert mapper_factory.calls == [models.Book]
