"""LocalIndexEventHandler - applies events inline."""

from searchsync.domain.index.handler.base import IndexEventHandler
from searchsync.domain.index.model.event import IndexEvent


class LocalIndexEventHandler(IndexEventHandler):
    """Applies each event before returning to the caller.

    Engine failures propagate to the caller unchanged; nothing is retried.
    """

    async def handle(self, event: IndexEvent) -> None:
        await self.apply(self.resolve(event))
