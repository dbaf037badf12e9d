"""IndexLifecycleManager - provisions per-type indexes and rivers at most once."""

import asyncio
import logging
from collections.abc import Awaitable, Callable
from dataclasses import field
from functools import partial
from typing import Literal

from searchsync.domain.index.model.mapper import DatabaseParams, Mapper
from searchsync.domain.index.model.searchable import is_searchable, qualified_name
from searchsync.domain.index.model.state import LifecycleState
from searchsync.domain.index.port.engine import SearchEngineClient
from searchsync.domain.index.service.mapper_registry import MapperRegistry
from searchsync.domain.shared.error import NotSearchableError
from searchsync.domain.shared.service import Service

logger = logging.getLogger(__name__)

Resource = Literal["index", "river"]
_Key = tuple[Resource, type]


class IndexLifecycleManager(Service):
    """Creates, and on reindex rebuilds, each type's index and river.

    Every provisioning step for a (resource, type) pair runs as a single
    in-flight task. Concurrent callers for the same pair await that task
    instead of issuing their own engine calls, so N concurrent first calls
    produce one create_index. The guard check and the task registration
    happen without an intervening await, which makes them atomic on the
    event loop; no lock is held across engine I/O.

    A failed task is released like a successful one, so the next call retries.
    """

    client: SearchEngineClient
    mappers: MapperRegistry
    state: LifecycleState
    database: DatabaseParams | None = None
    _pending: dict[_Key, asyncio.Task] = field(default_factory=dict, init=False, repr=False)

    # --- start if needed ---

    async def start_index_if_needed(self, domain_type: type) -> None:
        """Create the type's index unless it was already started."""
        if domain_type in self.state.index_started:
            return
        await self._join_or_claim(("index", domain_type), partial(self._start_index, domain_type))

    async def start_river_if_needed(self, domain_type: type) -> None:
        """Start the type's change feed unless it was already started.

        Types whose mapper declares no change feed are left out of
        ``river_started`` so a later reindex checks them again.
        """
        if domain_type in self.state.river_started:
            return
        await self._join_or_claim(("river", domain_type), partial(self._start_river, domain_type))

    # --- reindex ---

    async def reindex(self, domain_type: type | None) -> None:
        """Tear down and rebuild a type's index and river.

        The index and river are rebuilt independently: a failure in one does
        not prevent the other from being attempted. The first failure is
        re-raised once both have run.

        Raises:
            NotSearchableError: If ``domain_type`` is None or not searchable.
        """
        if domain_type is None:
            raise NotSearchableError("model is null")
        if not is_searchable(domain_type):
            raise NotSearchableError(f"{qualified_name(domain_type)} is not searchable")

        logger.info(f"Reindexing {qualified_name(domain_type)}")
        self.mappers.invalidate(domain_type)

        errors: list[Exception] = []
        for key, step in (
            (("index", domain_type), partial(self._rebuild_index, domain_type)),
            (("river", domain_type), partial(self._rebuild_river, domain_type)),
        ):
            try:
                await self._exclusive(key, step)
            except Exception as e:
                logger.error(f"Reindex of {key[0]} for {qualified_name(domain_type)} failed: {e}")
                errors.append(e)

        if errors:
            raise errors[0]

    # --- steps ---

    async def _start_index(self, domain_type: type) -> None:
        mapper = self.mappers.get_mapper(domain_type)
        await self._create_index(domain_type, mapper)
        self.state.index_started.add(domain_type)

    async def _start_river(self, domain_type: type) -> None:
        mapper = self.mappers.get_mapper(domain_type)
        if await self._start_change_feed(domain_type, mapper):
            self.state.river_started.add(domain_type)

    async def _rebuild_index(self, domain_type: type) -> None:
        mapper = self.mappers.get_mapper(domain_type)
        if domain_type in self.state.index_started:
            logger.info(f"Deleting index '{mapper.type_name}'")
            await self.client.delete_index(mapper.type_name)
            self.state.index_started.discard(domain_type)
        await self._create_index(domain_type, mapper)
        self.state.index_started.add(domain_type)

    async def _rebuild_river(self, domain_type: type) -> None:
        mapper = self.mappers.get_mapper(domain_type)
        if domain_type in self.state.river_started:
            logger.info(f"Stopping river for '{mapper.type_name}'")
            await self.client.stop_change_feed(mapper.type_name)
            self.state.river_started.discard(domain_type)
        if await self._start_change_feed(domain_type, mapper):
            self.state.river_started.add(domain_type)

    async def _create_index(self, domain_type: type, mapper: Mapper) -> None:
        logger.info(f"Start index for class: {qualified_name(domain_type)} ('{mapper.type_name}')")
        await self.client.create_index(mapper.type_name, mapper.field_mapping)

    async def _start_change_feed(self, domain_type: type, mapper: Mapper) -> bool:
        source = mapper.change_feed
        if source is None:
            logger.debug(f"No change feed declared for {qualified_name(domain_type)}, skipping river")
            return False

        if self.database is not None and source.database is None:
            source = source.model_copy(update={"database": self.database})
        logger.info(f"Start river for class: {qualified_name(domain_type)} ('{mapper.type_name}')")
        await self.client.start_change_feed(mapper.type_name, source)
        return True

    # --- in-flight task bookkeeping ---

    async def _join_or_claim(self, key: _Key, step: Callable[[], Awaitable[None]]) -> None:
        task = self._pending.get(key)
        if task is None or task.done():
            task = self._claim(key, step)
        await asyncio.shield(task)

    async def _exclusive(self, key: _Key, step: Callable[[], Awaitable[None]]) -> None:
        while (task := self._pending.get(key)) is not None and not task.done():
            await asyncio.wait([task])
        await asyncio.shield(self._claim(key, step))

    def _claim(self, key: _Key, step: Callable[[], Awaitable[None]]) -> asyncio.Task:
        resource, domain_type = key
        task = asyncio.create_task(step(), name=f"{resource}-{domain_type.__name__}")
        self._pending[key] = task
        task.add_done_callback(partial(self._release, key))
        return task

    def _release(self, key: _Key, task: asyncio.Task) -> None:
        if self._pending.get(key) is task:
            del self._pending[key]
