from searchsync.domain.index.service.dispatcher import DeliveryDispatcher
from searchsync.domain.index.service.lifecycle import IndexLifecycleManager
from searchsync.domain.index.service.mapper_registry import MapperRegistry
from searchsync.domain.index.service.translator import EventTranslator
from searchsync.domain.index.service.type_lookup import TypeLookup

__all__ = [
    "DeliveryDispatcher",
    "EventTranslator",
    "IndexLifecycleManager",
    "MapperRegistry",
    "TypeLookup",
]
