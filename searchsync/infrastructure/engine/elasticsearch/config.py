"""Index settings per operating mode."""

from typing import Any

from pydantic import BaseModel


class IndexSettings(BaseModel):
    """Settings applied to every index the plugin creates."""

    number_of_shards: int = 1
    number_of_replicas: int = 0

    def as_body(self) -> dict[str, Any]:
        return {
            "number_of_shards": self.number_of_shards,
            "number_of_replicas": self.number_of_replicas,
        }


LOCAL_SETTINGS = IndexSettings(number_of_shards=1, number_of_replicas=0)
# TODO: derive shard and replica counts from the cluster's node count instead of fixing them at 3.
CLUSTER_SETTINGS = IndexSettings(number_of_shards=3, number_of_replicas=3)
