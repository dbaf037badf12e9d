from searchsync.infrastructure.persistence.bridge import OrmBridge
from searchsync.infrastructure.persistence.discovery import DeclarativeDiscovery
from searchsync.infrastructure.persistence.mapper_factory import (
    DeclarativeMapper,
    DeclarativeMapperFactory,
)

__all__ = ["DeclarativeDiscovery", "DeclarativeMapper", "DeclarativeMapperFactory", "OrmBridge"]
