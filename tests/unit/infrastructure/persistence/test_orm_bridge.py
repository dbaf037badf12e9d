"""Unit tests for OrmBridge, against a temporary SQLite database."""

import asyncio
import threading
from types import SimpleNamespace

import pytest
import pytest_asyncio
from sqlalchemy.ext.asyncio import async_sessionmaker, create_async_engine
from sqlalchemy.orm import DeclarativeBase, Mapped, Session, mapped_column

from searchsync.infrastructure.persistence import OrmBridge


class Base(DeclarativeBase):
    pass


class Book(Base):
    __tablename__ = "books"

    id: Mapped[int] = mapped_column(primary_key=True)
    title: Mapped[str]


class BridgedSession(Session):
    """Session class the bridge listens on, so other tests' sessions are unaffected."""


class RecordingSink:
    def __init__(self, fail_on: str | None = None):
        self.received: list[tuple[str, object]] = []
        self.fail_on = fail_on

    async def __call__(self, name, subject):
        if name == self.fail_on:
            raise RuntimeError("sink failed")
        self.received.append((name, subject))

    @property
    def names(self) -> list[str]:
        return [name for name, _ in self.received]


@pytest_asyncio.fixture
async def session_factory(tmp_path):
    engine = create_async_engine(f"sqlite+aiosqlite:///{tmp_path / 'bridge.db'}")
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield async_sessionmaker(engine, sync_session_class=BridgedSession, expire_on_commit=False)
    await engine.dispose()


@pytest_asyncio.fixture
async def sink():
    return RecordingSink()


@pytest_asyncio.fixture
async def bridge(sink):
    bridge = OrmBridge(sink).install(BridgedSession)
    yield bridge
    bridge.remove()


class TestOrmBridge:
    @pytest.mark.asyncio
    async def test_insert_update_delete(self, session_factory, sink, bridge):
        async with session_factory() as session:
            book = Book(id=1, title="Dune")
            session.add(book)
            await session.commit()

            book.title = "Dune Messiah"
            await session.commit()

            await session.delete(book)
            await session.commit()
        await bridge.drain()

        assert sink.names == ["Book.objectPersisted", "Book.objectUpdated", "Book.objectDeleted"]
        assert sink.received[1][1].title == "Dune Messiah"

    @pytest.mark.asyncio
    async def test_rollback_emits_nothing(self, session_factory, sink, bridge):
        async with session_factory() as session:
            session.add(Book(id=1, title="Dune"))
            await session.flush()
            await session.rollback()
        await bridge.drain()

        assert sink.received == []

    @pytest.mark.asyncio
    async def test_unchanged_dirty_object_is_not_updated(self, session_factory, sink, bridge):
        async with session_factory() as session:
            book = Book(id=1, title="Dune")
            session.add(book)
            await session.commit()

            book.title = "Dune"
            await session.commit()
        await bridge.drain()

        assert sink.names == ["Book.objectPersisted"]

    @pytest.mark.asyncio
    async def test_sink_failure_is_logged(self, session_factory, caplog):
        sink = RecordingSink(fail_on="Book.objectPersisted")
        bridge = OrmBridge(sink).install(BridgedSession)
        try:
            async with session_factory() as session:
                book = Book(id=1, title="Dune")
                session.add(book)
                await session.commit()
                book.title = "Emma"
                await session.commit()
            await bridge.drain()
        finally:
            bridge.remove()

        assert sink.names == ["Book.objectUpdated"]
        assert "Failed to deliver Book.objectPersisted" in caplog.text

    @pytest.mark.asyncio
    async def test_removed_bridge_is_silent(self, session_factory, sink):
        bridge = OrmBridge(sink).install(BridgedSession)
        bridge.remove()

        async with session_factory() as session:
            session.add(Book(id=1, title="Dune"))
            await session.commit()
        await bridge.drain()

        assert sink.received == []
        assert not bridge.installed

    @pytest.mark.asyncio
    async def test_commits_from_threads_are_delivered_one_at_a_time(self):
        active = 0
        overlapped = False
        received: list[str] = []

        async def sink(name, subject):
            nonlocal active, overlapped
            active += 1
            overlapped = overlapped or active > 1
            await asyncio.sleep(0)
            received.append(name)
            active -= 1

        bridge = OrmBridge(sink, loop=asyncio.get_running_loop())
        barrier = threading.Barrier(8)

        def commit(n: int) -> None:
            session = SimpleNamespace(info={"searchsync.pending_notifications": []})
            session.info["searchsync.pending_notifications"].extend(
                (f"Book{n}.objectPersisted", None) for _ in range(3)
            )
            barrier.wait()
            bridge._after_commit(session)

        threads = [threading.Thread(target=commit, args=(n,)) for n in range(8)]
        for thread in threads:
            thread.start()
        await asyncio.to_thread(lambda: [thread.join() for thread in threads])
        await bridge.drain()

        assert len(received) == 24
        assert not overlapped
        # each commit's notifications stay contiguous
        assert all(len(set(received[i : i + 3])) == 1 for i in range(0, 24, 3))
