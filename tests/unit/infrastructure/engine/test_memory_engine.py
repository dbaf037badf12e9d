"""Unit tests for InMemorySearchEngine."""

import pytest

from searchsync.domain.index.model import ChangeFeedSource, IndexEventKind, IndexOperation
from searchsync.infrastructure.engine import InMemorySearchEngine
from searchsync.infrastructure.river.sql_feed import ChangeFeeds


class FakeFeeds(ChangeFeeds):
    """Records feed starts/stops without polling a database."""

    def __init__(self):
        super().__init__()
        self.started: dict[str, ChangeFeedSource] = {}

    def __contains__(self, type_name):
        return type_name in self.started

    async def start(self, type_name, source, sink):
        self.started[type_name] = source

    async def stop(self, type_name):
        self.started.pop(type_name, None)

    async def stop_all(self):
        self.started.clear()


class TestInMemorySearchEngine:
    @pytest.mark.asyncio
    async def test_create_index_and_documents(self):
        engine = InMemorySearchEngine()

        await engine.create_index("book", {"properties": {"title": {"type": "text"}}})
        await engine.index_document("book", "1", {"title": "Dune"})

        assert engine.has_index("book")
        assert engine.mapping("book")["properties"]["title"] == {"type": "text"}
        assert engine.documents("book") == {"1": {"title": "Dune"}}

    @pytest.mark.asyncio
    async def test_create_existing_index_keeps_documents(self):
        engine = InMemorySearchEngine()
        await engine.create_index("book", {"properties": {}})
        await engine.index_document("book", "1", {"title": "Dune"})

        await engine.create_index("book", {"properties": {"year": {"type": "long"}}})

        assert engine.documents("book") == {"1": {"title": "Dune"}}
        assert "year" in engine.mapping("book")["properties"]

    @pytest.mark.asyncio
    async def test_missing_deletes_are_ignored(self):
        engine = InMemorySearchEngine()

        await engine.delete_document("book", "1")
        await engine.delete_index("book")

        assert not engine.has_index("book")

    @pytest.mark.asyncio
    async def test_bulk_applies_in_order(self):
        engine = InMemorySearchEngine()

        await engine.bulk(
            [
                IndexOperation(kind=IndexEventKind.INDEX, type_name="book", document_id="1", body={"v": 1}),
                IndexOperation(kind=IndexEventKind.INDEX, type_name="book", document_id="2", body={"v": 2}),
                IndexOperation(kind=IndexEventKind.DELETE, type_name="book", document_id="1"),
            ]
        )

        assert engine.documents("book") == {"2": {"v": 2}}

    @pytest.mark.asyncio
    async def test_change_feeds_stop_with_index_and_close(self):
        feeds = FakeFeeds()
        engine = InMemorySearchEngine(feeds=feeds)
        source = ChangeFeedSource(sql="SELECT id FROM book")

        await engine.start_change_feed("book", source)
        await engine.start_change_feed("author", source)
        assert engine.has_change_feed("book")

        await engine.delete_index("book")
        assert not engine.has_change_feed("book")
        assert engine.has_change_feed("author")

        await engine.close()
        assert not engine.has_change_feed("author")
        assert engine.closed
