"""Unit tests for DeliveryDispatcher."""

from unittest.mock import AsyncMock, MagicMock

import pytest

from searchsync.domain.index.model import DeliveryMode, IndexEvent, IndexEventKind
from searchsync.domain.index.service import DeliveryDispatcher
from searchsync.domain.shared.error import ConfigurationError


def make_handler() -> MagicMock:
    handler = MagicMock()
    handler.handle = AsyncMock()
    handler.drain = AsyncMock()
    handler.close = AsyncMock()
    return handler


class TestDeliveryDispatcher:
    @pytest.mark.asyncio
    async def test_dispatch_uses_configured_mode(self, models):
        local, queued = make_handler(), make_handler()
        dispatcher = DeliveryDispatcher(
            factories={DeliveryMode.LOCAL: lambda: local, DeliveryMode.QUEUED: lambda: queued},
            mode=DeliveryMode.QUEUED,
        )
        event = IndexEvent(subject=models.Book(1), kind=IndexEventKind.INDEX)

        await dispatcher.dispatch(event)

        queued.handle.assert_awaited_once_with(event)
        local.handle.assert_not_called()

    @pytest.mark.asyncio
    async def test_handler_built_once(self, models):
        built = []

        def factory():
            built.append(make_handler())
            return built[-1]

        dispatcher = DeliveryDispatcher(factories={DeliveryMode.LOCAL: factory})
        event = IndexEvent(subject=models.Book(1), kind=IndexEventKind.DELETE)

        await dispatcher.dispatch(event)
        await dispatcher.dispatch(event)

        assert len(built) == 1
        assert built[0].handle.await_count == 2

    def test_unregistered_mode_is_configuration_error(self):
        dispatcher = DeliveryDispatcher(factories={}, mode=DeliveryMode.ASYNC)

        with pytest.raises(ConfigurationError):
            dispatcher.handler_for(DeliveryMode.ASYNC)

    @pytest.mark.asyncio
    async def test_handler_errors_propagate(self, models):
        handler = make_handler()
        handler.handle.side_effect = RuntimeError("engine down")
        dispatcher = DeliveryDispatcher(factories={DeliveryMode.LOCAL: lambda: handler})

        with pytest.raises(RuntimeError):
            await dispatcher.dispatch(IndexEvent(subject=models.Book(1), kind=IndexEventKind.INDEX))

    @pytest.mark.asyncio
    async def test_close_closes_built_handlers(self):
        handler = make_handler()
        dispatcher = DeliveryDispatcher(factories={DeliveryMode.LOCAL: lambda: handler})
        dispatcher.handler_for(DeliveryMode.LOCAL)

        await dispatcher.drain()
        await dispatcher.close()

        handler.drain.assert_awaited_once()
        handler.close.assert_awaited_once()
