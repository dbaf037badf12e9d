"""Global test fixtures and fakes."""

import asyncio
from types import SimpleNamespace
from typing import Any

import pytest

from searchsync.domain.index.model import (
    ChangeFeedSource,
    IndexEventKind,
    IndexOperation,
    Mapper,
    searchable,
    searchable_info,
)
from searchsync.domain.index.service import MapperRegistry
from searchsync.domain.shared.error import EngineError, MappingError


class Model:
    """Stand-in for the host's persistence base class."""

    def __init__(self, id: int, **fields: Any) -> None:
        self.id = id
        self.fields = fields

    def __repr__(self) -> str:
        return f"{type(self).__name__}({self.id})"


@searchable(type_name="book", change_feed=ChangeFeedSource(sql="SELECT id, title FROM book"))
class Book(Model):
    pass


@searchable
class Author(Model):
    pass


class Draft(Model):
    """Persisted, never searchable."""


@searchable
class Loose:
    """Searchable, but not a persistence model."""

    def __init__(self, id: int) -> None:
        self.id = id
        self.fields: dict[str, Any] = {}


class FakeMapper(Mapper):
    @property
    def type_name(self) -> str:
        info = searchable_info(self.domain_type)
        return (info and info.type_name) or self.domain_type.__name__.lower()

    @property
    def field_mapping(self) -> dict[str, Any]:
        return {"properties": {"id": {"type": "long"}}}

    @property
    def change_feed(self) -> ChangeFeedSource | None:
        info = searchable_info(self.domain_type)
        return info.change_feed if info else None

    def document(self, obj: Any) -> dict[str, Any]:
        return {"id": obj.id, **obj.fields}

    def document_id(self, obj: Any) -> str:
        return str(obj.id)


class FakeMapperFactory:
    """Builds FakeMappers for marked classes and records every request."""

    def __init__(self) -> None:
        self.calls: list[type] = []
        self.failing: set[type] = set()

    def get_mapper(self, domain_type: type) -> Mapper:
        self.calls.append(domain_type)
        if domain_type in self.failing or searchable_info(domain_type) is None:
            raise MappingError(f"cannot map {domain_type.__name__}", domain_type=domain_type)
        return FakeMapper(domain_type)


class FakeEngine:
    """Search engine fake that records calls and fails on demand."""

    def __init__(self) -> None:
        self.calls: list[tuple] = []
        self.indices: dict[str, dict[str, Any]] = {}
        self.documents: dict[tuple[str, str], dict[str, Any]] = {}
        self.feeds: dict[str, ChangeFeedSource] = {}
        self.delay = 0.0
        self.closed = False
        self._failures: list[list[Any]] = []

    def fail(
        self,
        method: str,
        type_name: str | None = None,
        times: int | None = None,
        error: Exception | None = None,
    ) -> None:
        """Make ``method`` raise (for one type name, or all), ``times`` times or forever."""
        self._failures.append([method, type_name, times, error or EngineError(f"{method} failed")])

    def count(self, method: str, type_name: str | None = None) -> int:
        return sum(
            1 for call in self.calls if call[0] == method and type_name in (None, call[1])
        )

    def methods(self) -> list[str]:
        return [call[0] for call in self.calls]

    def _call(self, method: str, type_name: str | None, *args: Any) -> None:
        self.calls.append((method, type_name, *args))
        for failure in self._failures:
            name, target, times, error = failure
            if name != method or target not in (None, type_name):
                continue
            if times is None:
                raise error
            if times > 0:
                failure[2] = times - 1
                raise error

    async def create_index(self, type_name: str, mapping: dict[str, Any]) -> None:
        if self.delay:
            await asyncio.sleep(self.delay)
        self._call("create_index", type_name)
        self.indices[type_name] = mapping

    async def delete_index(self, type_name: str) -> None:
        self._call("delete_index", type_name)
        self.indices.pop(type_name, None)
        self.feeds.pop(type_name, None)

    async def index_document(self, type_name: str, document_id: str, body: dict[str, Any]) -> None:
        self._call("index_document", type_name, document_id)
        self.documents[(type_name, document_id)] = body

    async def delete_document(self, type_name: str, document_id: str) -> None:
        self._call("delete_document", type_name, document_id)
        self.documents.pop((type_name, document_id), None)

    async def bulk(self, operations: list[IndexOperation]) -> None:
        self._call("bulk", None, [op.document_id for op in operations])
        for op in operations:
            if op.kind is IndexEventKind.INDEX:
                self.documents[op.key] = op.body or {}
            else:
                self.documents.pop(op.key, None)

    async def start_change_feed(self, type_name: str, source: ChangeFeedSource) -> None:
        self._call("start_change_feed", type_name, source)
        self.feeds[type_name] = source

    async def stop_change_feed(self, type_name: str) -> None:
        self._call("stop_change_feed", type_name)
        self.feeds.pop(type_name, None)

    async def close(self) -> None:
        self._call("close", None)
        self.closed = True


@pytest.fixture
def models() -> SimpleNamespace:
    """Stand-in domain classes: Book (with river), Author, Draft (unmarked), Loose (no base)."""
    return SimpleNamespace(Model=Model, Book=Book, Author=Author, Draft=Draft, Loose=Loose)


@pytest.fixture
def engine() -> FakeEngine:
    return FakeEngine()


@pytest.fixture
def mapper_factory() -> FakeMapperFactory:
    return FakeMapperFactory()


@pytest.fixture
def mappers(mapper_factory: FakeMapperFactory) -> MapperRegistry:
    return MapperRegistry(factory=mapper_factory)
