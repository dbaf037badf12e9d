"""OrderedIndexEventHandler - background delivery, ordered per document."""

import asyncio
import logging

from searchsync.domain.index.handler.base import IndexEventHandler
from searchsync.domain.index.model.event import IndexEvent, IndexOperation
from searchsync.domain.index.port.engine import SearchEngineClient
from searchsync.domain.index.service.mapper_registry import MapperRegistry
from searchsync.domain.shared.error import InvalidStateError

logger = logging.getLogger(__name__)


class OrderedIndexEventHandler(IndexEventHandler):
    """Applies events from background worker tasks.

    Each worker owns a FIFO queue and every event for a given document
    (type name, document id) is routed to the same worker, so events for one
    subject are applied in dispatch order. Events for different subjects may
    be applied in any order.

    Failed operations are retried up to ``max_retries`` times with linear
    backoff, then logged and dropped. Subjects are serialized when the event
    is accepted, and serialization errors are raised to the caller.
    """

    def __init__(
        self,
        client: SearchEngineClient,
        mappers: MapperRegistry,
        workers: int = 4,
        max_retries: int = 3,
        retry_backoff: float = 0.5,
    ) -> None:
        super().__init__(client, mappers)
        if workers < 1:
            raise ValueError("workers must be >= 1")
        if max_retries < 0:
            raise ValueError("max_retries must be >= 0")
        self._queues: list[asyncio.Queue[IndexOperation]] = [asyncio.Queue() for _ in range(workers)]
        self._tasks: list[asyncio.Task] = []
        self._max_retries = max_retries
        self._retry_backoff = retry_backoff
        self._closed = False
        self.processed_count = 0
        self.failed_count = 0

    async def handle(self, event: IndexEvent) -> None:
        if self._closed:
            raise InvalidStateError("Delivery handler is closed")
        operation = self.resolve(event)
        self._ensure_workers()
        await self._queues[self._shard(operation)].put(operation)

    async def drain(self) -> None:
        for queue in self._queues:
            await queue.join()

    async def close(self) -> None:
        if self._closed:
            return
        self._closed = True
        if self._tasks:
            await self.drain()
        for task in self._tasks:
            task.cancel()
        await asyncio.gather(*self._tasks, return_exceptions=True)
        self._tasks.clear()
        logger.info(
            f"Ordered delivery stopped (processed={self.processed_count}, failed={self.failed_count})"
        )

    def _shard(self, operation: IndexOperation) -> int:
        return hash(operation.key) % len(self._queues)

    def _ensure_workers(self) -> None:
        if self._tasks:
            return
        self._tasks = [
            asyncio.create_task(self._run(queue), name=f"index-delivery-{i}")
            for i, queue in enumerate(self._queues)
        ]
        logger.debug(f"Started {len(self._tasks)} delivery workers")

    async def _run(self, queue: asyncio.Queue[IndexOperation]) -> None:
        while True:
            operation = await queue.get()
            try:
                await self._apply_with_retry(operation)
            finally:
                queue.task_done()

    async def _apply_with_retry(self, operation: IndexOperation) -> None:
        attempt = 0
        while True:
            try:
                await self.apply(operation)
                self.processed_count += 1
                return
            except asyncio.CancelledError:
                raise
            except Exception as e:
                attempt += 1
                if attempt > self._max_retries:
                    self.failed_count += 1
                    logger.error(
                        f"Dropping {operation.kind} {operation.type_name}/{operation.document_id} "
                        f"after {attempt} attempts: {e}"
                    )
                    return
                logger.warning(
                    f"Retrying {operation.kind} {operation.type_name}/{operation.document_id} "
                    f"(attempt {attempt}/{self._max_retries}): {e}"
                )
                await asyncio.sleep(self._retry_backoff * attempt)
