"""Index event delivery handlers."""

from searchsync.domain.index.handler.base import IndexEventHandler
from searchsync.domain.index.handler.batched import BatchedIndexEventHandler
from searchsync.domain.index.handler.local import LocalIndexEventHandler
from searchsync.domain.index.handler.ordered import OrderedIndexEventHandler

__all__ = [
    "BatchedIndexEventHandler",
    "IndexEventHandler",
    "LocalIndexEventHandler",
    "OrderedIndexEventHandler",
]
