from searchsync.infrastructure.engine.elasticsearch.client import ElasticsearchEngine
from searchsync.infrastructure.engine.elasticsearch.config import (
    CLUSTER_SETTINGS,
    LOCAL_SETTINGS,
    IndexSettings,
)

__all__ = ["CLUSTER_SETTINGS", "ElasticsearchEngine", "IndexSettings", "LOCAL_SETTINGS"]
