"""SQL change feeds (rivers) - poll a host database query into an index."""

import asyncio
import logging
from collections.abc import Awaitable, Callable, Mapping
from typing import Any

from sqlalchemy import text
from sqlalchemy.engine import URL, make_url
from sqlalchemy.ext.asyncio import AsyncEngine, create_async_engine

from searchsync.domain.index.model.event import IndexEventKind, IndexOperation
from searchsync.domain.index.model.mapper import ChangeFeedSource, DatabaseParams
from searchsync.domain.shared.error import ConfigurationError
from searchsync.util.serialization import json_safe

logger = logging.getLogger(__name__)

Sink = Callable[[list[IndexOperation]], Awaitable[None]]
EngineFactory = Callable[[DatabaseParams], AsyncEngine]


def database_url(params: DatabaseParams) -> URL:
    """Build a SQLAlchemy URL from forwarded connection parameters."""
    if not params.url:
        raise ConfigurationError("Change feed requires a database url", field="database.url")
    url = make_url(params.url)
    if params.driver:
        url = url.set(drivername=params.driver)
    if params.user:
        url = url.set(username=params.user)
    if params.password:
        url = url.set(password=params.password)
    return url


def create_feed_engine(params: DatabaseParams) -> AsyncEngine:
    return create_async_engine(database_url(params), pool_pre_ping=True)


def row_to_operation(type_name: str, id_column: str, row: Mapping[str, Any]) -> IndexOperation:
    """Turn one result row into an INDEX operation."""
    if id_column not in row:
        raise ConfigurationError(
            f"Change feed for '{type_name}' returned no '{id_column}' column", field="id_column"
        )
    return IndexOperation(
        kind=IndexEventKind.INDEX,
        type_name=type_name,
        document_id=str(row[id_column]),
        body={key: json_safe(value) for key, value in row.items()},
    )


class SqlChangeFeed:
    """Polls a SQL statement and pushes every returned row into an index.

    Each poll re-reads the full result set and upserts it, so documents
    converge on the database state. Poll failures are logged and the feed
    keeps polling.
    """

    def __init__(
        self,
        type_name: str,
        source: ChangeFeedSource,
        sink: Sink,
        engine_factory: EngineFactory = create_feed_engine,
    ) -> None:
        if source.database is None:
            raise ConfigurationError(
                f"Change feed for '{type_name}' has no database parameters", field="database"
            )
        self._type_name = type_name
        self._source = source
        self._sink = sink
        self._engine = engine_factory(source.database)
        self._task: asyncio.Task | None = None
        self.polls = 0

    @property
    def type_name(self) -> str:
        return self._type_name

    @property
    def running(self) -> bool:
        return self._task is not None and not self._task.done()

    def start(self) -> asyncio.Task:
        """Start polling in a background task."""
        if self._task is None or self._task.done():
            self._task = asyncio.create_task(self._run(), name=f"river-{self._type_name}")
            logger.info(f"River '{self._type_name}' started (every {self._source.poll_interval}s)")
        return self._task

    async def stop(self) -> None:
        """Stop polling and dispose of the database engine."""
        if self._task is not None and not self._task.done():
            self._task.cancel()
            try:
                await self._task
            except asyncio.CancelledError:
                pass
        self._task = None
        await self._engine.dispose()
        logger.info(f"River '{self._type_name}' stopped")

    async def poll_once(self) -> int:
        """Run the statement once and push its rows. Returns the row count."""
        async with self._engine.connect() as conn:
            result = await conn.execute(text(self._source.sql))
            rows = result.mappings().all()

        operations = [
            row_to_operation(self._type_name, self._source.id_column, row) for row in rows
        ]
        if operations:
            await self._sink(operations)
        self.polls += 1
        logger.debug(f"River '{self._type_name}' pushed {len(operations)} rows")
        return len(operations)

    async def _run(self) -> None:
        try:
            while True:
                try:
                    await self.poll_once()
                except asyncio.CancelledError:
                    raise
                except Exception as e:
                    logger.error(f"River '{self._type_name}' poll failed: {e}")
                await asyncio.sleep(self._source.poll_interval)
        except asyncio.CancelledError:
            logger.debug(f"River '{self._type_name}' cancelled")
            raise


class ChangeFeeds:
    """The change feeds an engine adapter is running, one per type name."""

    def __init__(self, engine_factory: EngineFactory = create_feed_engine) -> None:
        self._feeds: dict[str, SqlChangeFeed] = {}
        self._engine_factory = engine_factory

    def __contains__(self, type_name: str) -> bool:
        return type_name in self._feeds

    def get(self, type_name: str) -> SqlChangeFeed | None:
        return self._feeds.get(type_name)

    async def start(self, type_name: str, source: ChangeFeedSource, sink: Sink) -> SqlChangeFeed:
        """Start a feed, replacing any feed already running for the type."""
        await self.stop(type_name)
        feed = SqlChangeFeed(type_name, source, sink, self._engine_factory)
        self._feeds[type_name] = feed
        feed.start()
        return feed

    async def stop(self, type_name: str) -> None:
        feed = self._feeds.pop(type_name, None)
        if feed is not None:
            await feed.stop()

    async def stop_all(self) -> None:
        for type_name in list(self._feeds):
            await self.stop(type_name)
