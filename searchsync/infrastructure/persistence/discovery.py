"""Type discovery over a SQLAlchemy declarative registry."""

import logging

from searchsync.config import DiscoveryConfig
from searchsync.domain.index.model.searchable import (
    SearchableInfo,
    qualified_name,
    searchable_info,
)

logger = logging.getLogger(__name__)


class DeclarativeDiscovery:
    """Lists the mapped classes of a declarative base.

    A class is eligible for indexing when it is marked @searchable, is not a
    fixture, is not excluded by name, and lives under one of the configured
    module prefixes (all modules when none are configured).
    """

    def __init__(self, base: type, config: DiscoveryConfig | None = None) -> None:
        self._base = base
        self._config = config or DiscoveryConfig()

    def mapped_types(self) -> list[type]:
        classes = {mapper.class_ for mapper in self._base.registry.mappers}
        return sorted(classes, key=qualified_name)

    def list_annotated_types(self, marker: type = SearchableInfo) -> list[type]:
        return [
            cls
            for cls in self.mapped_types()
            if any(isinstance(value, marker) for value in vars(cls).values())
        ]

    def list_searchable_types(self) -> set[type]:
        eligible = {cls for cls in self.list_annotated_types() if self.is_eligible(cls)}
        logger.debug(f"Discovered {len(eligible)} searchable types")
        return eligible

    def is_eligible(self, cls: type) -> bool:
        info = searchable_info(cls)
        if info is None or info.fixture:
            return False
        name = qualified_name(cls)
        if name in self._config.exclude:
            return False
        prefixes = self._config.include_modules
        return not prefixes or any(
            cls.__module__ == prefix or cls.__module__.startswith(f"{prefix}.")
            for prefix in prefixes
        )
