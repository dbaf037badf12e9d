"""SearchPlugin - owns the search index state for the lifetime of the host."""

import asyncio
import logging
from collections.abc import Awaitable, Callable
from enum import StrEnum
from functools import partial
from typing import Any

from searchsync.config import Config, DeliveryConfig
from searchsync.domain.index.handler import (
    BatchedIndexEventHandler,
    LocalIndexEventHandler,
    OrderedIndexEventHandler,
)
from searchsync.domain.index.model import (
    DeliveryMode,
    IndexEventKind,
    LifecycleState,
    Mapper,
    Status,
    is_searchable,
    qualified_name,
)
from searchsync.domain.index.port import MapperFactory, SearchEngineClient, TypeDiscovery
from searchsync.domain.index.service import (
    DeliveryDispatcher,
    EventTranslator,
    IndexLifecycleManager,
    MapperRegistry,
    TypeLookup,
)
from searchsync.domain.shared.error import (
    ClientUnavailableError,
    InvalidStateError,
    NotSearchableError,
)
from searchsync.infrastructure.engine import connect_engine

logger = logging.getLogger(__name__)

Connect = Callable[[Config], Awaitable[SearchEngineClient]]


class PluginState(StrEnum):
    UNINITIALIZED = "uninitialized"
    RUNNING = "running"
    STOPPED = "stopped"


def delivery_factories(
    client: SearchEngineClient, mappers: MapperRegistry, config: DeliveryConfig
) -> dict[DeliveryMode, Callable[[], Any]]:
    """Handler factories for every delivery mode, bound to one client."""
    return {
        DeliveryMode.LOCAL: partial(LocalIndexEventHandler, client, mappers),
        DeliveryMode.ASYNC: partial(
            OrderedIndexEventHandler,
            client,
            mappers,
            workers=config.workers,
            max_retries=config.max_retries,
            retry_backoff=config.retry_backoff,
        ),
        DeliveryMode.QUEUED: partial(
            BatchedIndexEventHandler,
            client,
            mappers,
            batch_size=config.batch_size,
            batch_timeout=config.batch_timeout,
            max_retries=config.max_retries,
            retry_backoff=config.retry_backoff,
        ),
    }


class SearchPlugin:
    """Wires the index services together and exposes them to the host.

    Lifecycle: UNINITIALIZED -> start() -> RUNNING -> stop() -> STOPPED, and
    STOPPED -> start() -> RUNNING again with fresh caches. Every start()
    discards what a previous run cached; nothing is merged.

    The plugin is the only owner of the engine client, the mapper cache and
    the lifecycle state. Collaborators receive them from here.
    """

    def __init__(
        self,
        config: Config,
        discovery: TypeDiscovery,
        mapper_factory: MapperFactory,
        model_base: type,
        connect: Connect = connect_engine,
    ) -> None:
        self._config = config
        self._discovery = discovery
        self._mapper_factory = mapper_factory
        self._model_base = model_base
        self._connect = connect

        self._state = PluginState.UNINITIALIZED
        self._client: SearchEngineClient | None = None
        self._mappers: MapperRegistry | None = None
        self._lifecycle_state: LifecycleState | None = None
        self._lifecycle: IndexLifecycleManager | None = None
        self._dispatcher: DeliveryDispatcher | None = None
        self._translator: EventTranslator | None = None
        self._type_lookup: TypeLookup | None = None
        self._eligible: frozenset[type] = frozenset()
        self._start_lock = asyncio.Lock()

    # --- lifecycle ---

    @property
    def state(self) -> PluginState:
        return self._state

    @property
    def running(self) -> bool:
        return self._state is PluginState.RUNNING

    @property
    def client(self) -> SearchEngineClient | None:
        return self._client

    @property
    def lifecycle_state(self) -> LifecycleState | None:
        return self._lifecycle_state

    @property
    def eligible_types(self) -> frozenset[type]:
        return self._eligible

    async def start(self) -> None:
        """Connect the engine and provision an index (and river) per eligible type.

        Per-type provisioning failures are logged and do not stop the other
        types; such a type stays out of the started sets and is retried on
        first use. Overlapping calls are serialized: a start() that finds the
        plugin already started by another call logs and returns.

        Raises:
            ClientUnavailableError: If no engine client can be obtained. The
                plugin is left without any state in that case.
        """
        async with self._start_lock:
            if self._client is not None:
                logger.info("Search plugin already started, ignoring start()")
                return

            try:
                client = await self._connect(self._config)
            except ClientUnavailableError:
                raise
            except Exception as e:
                raise ClientUnavailableError(
                    f"Search engine client cannot be obtained: {e}"
                ) from e
            if client is None:
                raise ClientUnavailableError("Search engine client cannot be obtained")

            try:
                self._build(client)
            except BaseException:
                await client.close()
                raise

            logger.info(
                f"Search plugin started (mode = {self._config.mode}, "
                f"delivery = {self._config.delivery.mode}, types = {len(self._eligible)})"
            )
            for domain_type in sorted(self._eligible, key=qualified_name):
                await self._provision(domain_type)

    async def stop(self) -> None:
        """Close delivery handlers and release the engine client."""
        async with self._start_lock:
            if self._client is None:
                return

            logger.info("Stopping search plugin")
            client = self._client
            try:
                if self._dispatcher is not None:
                    await self._dispatcher.close()
            finally:
                try:
                    await client.close()
                finally:
                    self._reset()
                    self._state = PluginState.STOPPED

    async def __aenter__(self) -> "SearchPlugin":
        await self.start()
        return self

    async def __aexit__(self, *exc_info: Any) -> None:
        await self.stop()

    # --- host entry points ---

    async def on_notification(self, name: str, subject: Any) -> None:
        """Handle a host lifecycle notification.

        Uninteresting notifications are dropped silently in any state.

        Raises:
            InvalidStateError: If an interesting notification arrives while
                the plugin is not running.
            InvariantViolationError: If a searchable subject is not a
                persistence model instance.
        """
        logger.debug(f"Notification {name}: {type(subject).__name__}")
        translator = self._translator or EventTranslator(model_base=self._model_base)
        if not translator.classify(name):
            return
        self._require_running(name)

        event = self._translator.translate(name, subject)
        if event is None:
            return
        await self._lifecycle.start_index_if_needed(type(subject))
        await self._dispatcher.dispatch(event)

    async def index(self, subject: Any) -> None:
        """Index an object directly, bypassing notification filtering.

        Raises:
            NotSearchableError: If the subject's type is not searchable.
        """
        self._require_running("index")
        if subject is None or not is_searchable(type(subject)):
            raise NotSearchableError(f"{type(subject).__name__} is not searchable")

        event = self._translator.build(subject, IndexEventKind.INDEX)
        await self._lifecycle.start_index_if_needed(type(subject))
        await self._dispatcher.dispatch(event)

    async def reindex(self, domain_type: type | None) -> None:
        """Drop and rebuild a type's index and river.

        Raises:
            NotSearchableError: If ``domain_type`` is None or not searchable.
        """
        self._require_running("reindex")
        await self._lifecycle.reindex(domain_type)
        self._type_lookup.forget(domain_type)

    async def drain(self) -> None:
        """Wait until deferred delivery modes have applied every accepted event."""
        if self._dispatcher is not None:
            await self._dispatcher.drain()

    def status(self) -> list[Status]:
        """One Status per eligible type, sorted by class name. Empty unless running."""
        if not self.running or self._lifecycle_state is None:
            return []
        state = self._lifecycle_state
        return [
            Status.of(
                domain_type,
                index_started=domain_type in state.index_started,
                river_started=domain_type in state.river_started,
            )
            for domain_type in sorted(self._eligible, key=qualified_name)
        ]

    def get_mapper(self, domain_type: type) -> Mapper:
        self._require_running("get_mapper")
        return self._mappers.get_mapper(domain_type)

    def lookup_domain_type(self, type_name: str) -> type:
        self._require_running("lookup_domain_type")
        return self._type_lookup.lookup_domain_type(type_name)

    # --- internals ---

    def _build(self, client: SearchEngineClient) -> None:
        mappers = MapperRegistry(factory=self._mapper_factory)
        lifecycle_state = LifecycleState()
        eligible = frozenset(self._discovery.list_searchable_types())

        lifecycle = IndexLifecycleManager(
            client=client,
            mappers=mappers,
            state=lifecycle_state,
            database=self._config.database.params(),
        )
        dispatcher = DeliveryDispatcher(
            factories=delivery_factories(client, mappers, self._config.delivery),
            mode=self._config.delivery.mode,
        )
        translator = EventTranslator(model_base=self._model_base)
        type_lookup = TypeLookup(mappers=mappers, candidates=lambda: eligible)

        self._client = client
        self._mappers = mappers
        self._lifecycle_state = lifecycle_state
        self._lifecycle = lifecycle
        self._dispatcher = dispatcher
        self._translator = translator
        self._type_lookup = type_lookup
        self._eligible = eligible
        self._state = PluginState.RUNNING

    async def _provision(self, domain_type: type) -> None:
        name = qualified_name(domain_type)
        try:
            await self._lifecycle.start_index_if_needed(domain_type)
        except Exception as e:
            logger.error(f"Failed to start index for {name}: {e}")
        try:
            await self._lifecycle.start_river_if_needed(domain_type)
        except Exception as e:
            logger.error(f"Failed to start river for {name}: {e}")

    def _require_running(self, operation: str) -> None:
        if not self.running:
            raise InvalidStateError(
                f"Search plugin is {self._state}, cannot handle {operation}"
            )

    def _reset(self) -> None:
        self._client = None
        self._mappers = None
        if self._lifecycle_state is not None:
            self._lifecycle_state.clear()
        self._lifecycle_state = None
        self._lifecycle = None
        self._dispatcher = None
        self._translator = None
        self._type_lookup = None
        self._eligible = frozenset()
