"""Keeps a search index in sync with SQLAlchemy-persisted domain objects."""

from searchsync.application.plugin import SearchPlugin
from searchsync.config import Config
from searchsync.domain.index.model import ChangeFeedSource, searchable

__all__ = ["ChangeFeedSource", "Config", "SearchPlugin", "searchable"]
