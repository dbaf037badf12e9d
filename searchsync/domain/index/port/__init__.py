from searchsync.domain.index.port.discovery import TypeDiscovery
from searchsync.domain.index.port.engine import SearchEngineClient
from searchsync.domain.index.port.mapper_factory import MapperFactory

__all__ = ["MapperFactory", "SearchEngineClient", "TypeDiscovery"]
