"""Connects the search engine client for the configured operating mode."""

import logging

from elasticsearch import AsyncElasticsearch

from searchsync.config import Config, OperatingMode
from searchsync.domain.index.port.engine import SearchEngineClient
from searchsync.domain.shared.error import ClientUnavailableError
from searchsync.infrastructure.engine.elasticsearch import (
    CLUSTER_SETTINGS,
    LOCAL_SETTINGS,
    ElasticsearchEngine,
)
from searchsync.infrastructure.engine.memory import InMemorySearchEngine

logger = logging.getLogger(__name__)


async def connect_engine(config: Config) -> SearchEngineClient:
    """Build and verify the engine client.

    Raises:
        ClientUnavailableError: If the cluster cannot be reached.
    """
    if config.mode is OperatingMode.MEMORY:
        logger.info("Starting search engine (in memory)")
        return InMemorySearchEngine()

    clustered = config.mode is OperatingMode.CLUSTER
    settings = CLUSTER_SETTINGS if clustered else LOCAL_SETTINGS
    es_config = config.elasticsearch

    es = AsyncElasticsearch(
        es_config.hosts,
        api_key=es_config.api_key,
        request_timeout=es_config.request_timeout,
        sniff_on_start=clustered,
        sniff_on_node_failure=clustered,
    )
    try:
        info = await es.info()
    except Exception as e:
        await es.close()
        raise ClientUnavailableError(
            "Search engine client cannot be obtained - please check the configuration "
            f"provided and the health of your Elasticsearch instances ({es_config.hosts}): {e}"
        ) from e

    remote_cluster = info.get("cluster_name")
    if remote_cluster != config.cluster_name:
        logger.warning(
            f"Connected to cluster '{remote_cluster}', configured cluster name is '{config.cluster_name}'"
        )

    logger.info(
        f"Starting search engine (cluster name = {config.cluster_name}, mode = {config.mode}, "
        f"shards = {settings.number_of_shards}, replicas = {settings.number_of_replicas})"
    )
    return ElasticsearchEngine(es, settings, index_prefix=es_config.index_prefix)
