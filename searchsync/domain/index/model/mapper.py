"""Mapper - per-type description of how a domain object becomes a document."""

from abc import ABC, abstractmethod
from typing import Any, Generic, TypeVar

from searchsync.domain.shared.model.value import ValueObject

M = TypeVar("M")


class DatabaseParams(ValueObject):
    """Connection parameters forwarded to a change-feed source."""

    driver: str | None = None
    url: str | None = None
    user: str | None = None
    password: str | None = None


class ChangeFeedSource(ValueObject):
    """A river: an SQL statement polled from the host database into an index.

    Attributes:
        sql: Statement whose rows become documents (one row per document).
        id_column: Column holding the document identifier.
        poll_interval: Seconds between polls.
        database: Connection parameters, filled in from configuration when the
            feed is started.
    """

    sql: str
    id_column: str = "id"
    poll_interval: float = 60.0
    database: DatabaseParams | None = None


class Mapper(ABC, Generic[M]):
    """Structural mapper for one domain type.

    Mappers are built once per domain type by a MapperFactory and cached by
    MapperRegistry for the lifetime of the plugin.
    """

    def __init__(self, domain_type: type[M]) -> None:
        self._domain_type = domain_type

    @property
    def domain_type(self) -> type[M]:
        return self._domain_type

    @property
    @abstractmethod
    def type_name(self) -> str:
        """Search type name (also used as the index name)."""
        ...

    @property
    @abstractmethod
    def field_mapping(self) -> dict[str, Any]:
        """Engine mapping body, e.g. ``{"properties": {...}}``."""
        ...

    @property
    def change_feed(self) -> ChangeFeedSource | None:
        """Change-feed source declared for the type, if any."""
        return None

    @abstractmethod
    def document(self, obj: M) -> dict[str, Any]:
        """Serialize a domain object into a document body."""
        ...

    @abstractmethod
    def document_id(self, obj: M) -> str:
        """Derive the document identifier for a domain object."""
        ...

    def __repr__(self) -> str:
        return f"{type(self).__name__}(type_name={self.type_name!r})"
