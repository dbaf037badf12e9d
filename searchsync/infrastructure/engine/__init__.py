from searchsync.infrastructure.engine.factory import connect_engine
from searchsync.infrastructure.engine.memory import InMemorySearchEngine

__all__ = ["InMemorySearchEngine", "connect_engine"]
