"""DeliveryDispatcher - hands index events to the configured delivery handler."""

import logging
from collections.abc import Callable
from dataclasses import field
from typing import TYPE_CHECKING

from searchsync.domain.index.model.delivery import DeliveryMode
from searchsync.domain.index.model.event import IndexEvent
from searchsync.domain.shared.error import ConfigurationError
from searchsync.domain.shared.service import Service

if TYPE_CHECKING:
    from searchsync.domain.index.handler.base import IndexEventHandler

logger = logging.getLogger(__name__)

HandlerFactory = Callable[[], "IndexEventHandler"]


class DeliveryDispatcher(Service):
    """Resolves the current delivery mode's handler and hands it each event.

    Handlers are built lazily from their factories, once per dispatcher.
    The dispatcher itself neither buffers nor retries.
    """

    factories: dict[DeliveryMode, HandlerFactory]
    mode: DeliveryMode = DeliveryMode.LOCAL
    _handlers: dict[DeliveryMode, "IndexEventHandler"] = field(
        default_factory=dict, init=False, repr=False
    )

    def handler_for(self, mode: DeliveryMode) -> "IndexEventHandler":
        """Return (building on first use) the handler for a delivery mode.

        Raises:
            ConfigurationError: If no handler is registered for the mode.
        """
        handler = self._handlers.get(mode)
        if handler is not None:
            return handler

        factory = self.factories.get(mode)
        if factory is None:
            raise ConfigurationError(f"No delivery handler for mode {mode}", field="delivery.mode")
        handler = self._handlers[mode] = factory()
        logger.debug(f"Created {type(handler).__name__} for delivery mode {mode}")
        return handler

    async def dispatch(self, event: IndexEvent) -> None:
        """Apply an event through the current mode's handler."""
        handler = self.handler_for(self.mode)
        logger.debug(f"Dispatching {event} ({self.mode})")
        await handler.handle(event)

    async def drain(self) -> None:
        """Wait until every handler has applied what it accepted."""
        for handler in self._handlers.values():
            await handler.drain()

    async def close(self) -> None:
        """Close all handlers built so far."""
        handlers = list(self._handlers.values())
        self._handlers.clear()
        for handler in handlers:
            await handler.close()
