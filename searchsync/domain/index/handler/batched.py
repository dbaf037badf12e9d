"""BatchedIndexEventHandler - buffers events and applies them in bulk."""

import asyncio
import logging

from searchsync.domain.index.handler.base import IndexEventHandler
from searchsync.domain.index.model.event import IndexEvent, IndexOperation
from searchsync.domain.index.port.engine import SearchEngineClient
from searchsync.domain.index.service.mapper_registry import MapperRegistry
from searchsync.domain.shared.error import InvalidStateError

logger = logging.getLogger(__name__)


class BatchedIndexEventHandler(IndexEventHandler):
    """Buffers events and applies them with one bulk call per batch.

    A batch is flushed when ``batch_size`` events are buffered or
    ``batch_timeout`` seconds after the first buffered event, whichever comes
    first. Batches are applied one at a time in buffer order. A batch that
    still fails after ``max_retries`` retries is logged and dropped.
    """

    def __init__(
        self,
        client: SearchEngineClient,
        mappers: MapperRegistry,
        batch_size: int = 100,
        batch_timeout: float = 2.0,
        max_retries: int = 3,
        retry_backoff: float = 0.5,
    ) -> None:
        super().__init__(client, mappers)
        if batch_size < 1:
            raise ValueError("batch_size must be >= 1")
        if batch_timeout <= 0:
            raise ValueError("batch_timeout must be > 0")
        self._batch_size = batch_size
        self._batch_timeout = batch_timeout
        self._max_retries = max_retries
        self._retry_backoff = retry_backoff
        self._buffer: list[IndexOperation] = []
        self._flush_lock = asyncio.Lock()
        self._timer: asyncio.Task | None = None
        self._closed = False
        self.processed_count = 0
        self.failed_count = 0

    @property
    def pending(self) -> int:
        """Number of buffered operations not yet flushed."""
        return len(self._buffer)

    async def handle(self, event: IndexEvent) -> None:
        if self._closed:
            raise InvalidStateError("Delivery handler is closed")
        self._buffer.append(self.resolve(event))

        if len(self._buffer) >= self._batch_size:
            self._cancel_timer()
            await self.flush()
        if self._buffer and self._timer is None:
            self._timer = asyncio.create_task(self._flush_later(), name="index-batch-timer")

    async def flush(self) -> None:
        """Apply everything buffered so far."""
        async with self._flush_lock:
            batch, self._buffer = self._buffer, []
            if batch:
                await self._apply_batch(batch)

    async def drain(self) -> None:
        await self.flush()

    async def close(self) -> None:
        if self._closed:
            return
        self._closed = True
        if self._timer is not None:
            self._timer.cancel()
            await asyncio.gather(self._timer, return_exceptions=True)
            self._timer = None
        await self.flush()
        logger.info(
            f"Batched delivery stopped (processed={self.processed_count}, failed={self.failed_count})"
        )

    def _cancel_timer(self) -> None:
        if self._timer is not None:
            self._timer.cancel()
            self._timer = None

    async def _flush_later(self) -> None:
        await asyncio.sleep(self._batch_timeout)
        self._timer = None
        await self.flush()

    async def _apply_batch(self, batch: list[IndexOperation]) -> None:
        attempt = 0
        while True:
            try:
                await self._client.bulk(batch)
                self.processed_count += len(batch)
                logger.debug(f"Applied batch of {len(batch)} index operations")
                return
            except asyncio.CancelledError:
                raise
            except Exception as e:
                attempt += 1
                if attempt > self._max_retries:
                    self.failed_count += len(batch)
                    keys = [f"{op.type_name}/{op.document_id}" for op in batch]
                    logger.error(
                        f"Dropping batch of {len(batch)} operations after {attempt} attempts. "
                        f"Documents: {keys[:5]}{'...' if len(keys) > 5 else ''}. Error: {e}"
                    )
                    return
                logger.warning(f"Retrying batch of {len(batch)} (attempt {attempt}): {e}")
                await asyncio.sleep(self._retry_backoff * attempt)
