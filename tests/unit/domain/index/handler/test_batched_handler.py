"""Unit tests for BatchedIndexEventHandler."""

import asyncio

import pytest

from searchsync.domain.index.handler import BatchedIndexEventHandler
from searchsync.domain.index.model import IndexEvent, IndexEventKind
from searchsync.domain.shared.error import InvalidStateError


def index(subject) -> IndexEvent:
    return IndexEvent(subject=subject, kind=IndexEventKind.INDEX)


class TestBatchedIndexEventHandler:
    @pytest.mark.asyncio
    async def test_flushes_when_batch_is_full(self, engine, mappers, models):
        handler = BatchedIndexEventHandler(engine, mappers, batch_size=3, batch_timeout=60)

        for i in range(3):
            await handler.handle(index(models.Author(i)))

        assert engine.calls[0] == ("bulk", None, ["0", "1", "2"])
        assert handler.pending == 0
        await handler.close()

    @pytest.mark.asyncio
    async def test_flushes_after_timeout(self, engine, mappers, models):
        handler = BatchedIndexEventHandler(engine, mappers, batch_size=100, batch_timeout=0.01)

        await handler.handle(index(models.Author(1)))
        assert engine.count("bulk") == 0

        await asyncio.sleep(0.05)

        assert engine.count("bulk") == 1
        assert ("author", "1") in engine.documents
        await handler.close()

    @pytest.mark.asyncio
    async def test_full_batch_restarts_the_timeout(self, engine, mappers, models):
        """The timeout of the next batch counts from that batch's first event."""
        handler = BatchedIndexEventHandler(engine, mappers, batch_size=2, batch_timeout=0.2)

        await handler.handle(index(models.Author(1)))
        await asyncio.sleep(0.12)
        await handler.handle(index(models.Author(2)))
        await handler.handle(index(models.Author(3)))
        assert engine.count("bulk") == 1

        await asyncio.sleep(0.12)
        assert engine.count("bulk") == 1
        assert handler.pending == 1

        await asyncio.sleep(0.15)
        assert engine.count("bulk") == 2
        assert handler.pending == 0
        await handler.close()

    @pytest.mark.asyncio
    async def test_batch_preserves_dispatch_order(self, engine, mappers, models):
        handler = BatchedIndexEventHandler(engine, mappers, batch_size=10, batch_timeout=60)
        book = models.Book(1, title="Dune")

        await handler.handle(index(book))
        await handler.handle(IndexEvent(subject=book, kind=IndexEventKind.DELETE))
        await handler.flush()

        assert ("book", "1") not in engine.documents
        await handler.close()

    @pytest.mark.asyncio
    async def test_close_flushes_pending(self, engine, mappers, models):
        handler = BatchedIndexEventHandler(engine, mappers, batch_size=10, batch_timeout=60)
        await handler.handle(index(models.Author(1)))

        await handler.close()

        assert ("author", "1") in engine.documents
        with pytest.raises(InvalidStateError):
            await handler.handle(index(models.Author(2)))

    @pytest.mark.asyncio
    async def test_failed_batch_is_retried_then_dropped(self, engine, mappers, models):
        handler = BatchedIndexEventHandler(
            engine, mappers, batch_size=2, batch_timeout=60, max_retries=2, retry_backoff=0
        )
        engine.fail("bulk")

        await handler.handle(index(models.Author(1)))
        await handler.handle(index(models.Author(2)))

        assert engine.count("bulk") == 3
        assert handler.failed_count == 2
        assert handler.pending == 0
        await handler.close()

    @pytest.mark.asyncio
    async def test_transient_failure_recovers(self, engine, mappers, models):
        handler = BatchedIndexEventHandler(
            engine, mappers, batch_size=1, batch_timeout=60, max_retries=3, retry_backoff=0
        )
        engine.fail("bulk", times=1)

        await handler.handle(index(models.Author(1)))

        assert engine.count("bulk") == 2
        assert handler.processed_count == 1
        await handler.close()
