"""The @searchable marker for domain classes."""

from collections.abc import Callable
from dataclasses import dataclass
from typing import TypeVar, overload

from searchsync.domain.index.model.mapper import ChangeFeedSource

T = TypeVar("T", bound=type)

_MARKER_ATTR = "__searchable__"


@dataclass(frozen=True)
class SearchableInfo:
    """Metadata attached to a class by @searchable.

    Attributes:
        type_name: Explicit search type name; derived from the class name if None.
        change_feed: Optional river feeding the type's index from SQL.
        fixture: Test fixture classes are never discovered as eligible.
    """

    type_name: str | None = None
    change_feed: ChangeFeedSource | None = None
    fixture: bool = False


@overload
def searchable(cls: T, /) -> T: ...


@overload
def searchable(
    *,
    type_name: str | None = None,
    change_feed: ChangeFeedSource | None = None,
    fixture: bool = False,
) -> Callable[[T], T]: ...


def searchable(
    cls: T | None = None,
    /,
    *,
    type_name: str | None = None,
    change_feed: ChangeFeedSource | None = None,
    fixture: bool = False,
) -> T | Callable[[T], T]:
    """Mark a domain class as searchable.

    Usable bare (``@searchable``) or with options
    (``@searchable(type_name="book", change_feed=ChangeFeedSource(...))``).
    """
    info = SearchableInfo(type_name=type_name, change_feed=change_feed, fixture=fixture)

    def mark(target: T) -> T:
        setattr(target, _MARKER_ATTR, info)
        return target

    if cls is not None:
        return mark(cls)
    return mark


def searchable_info(cls: type) -> SearchableInfo | None:
    """Return the marker declared on ``cls`` itself (subclasses do not inherit it)."""
    info = vars(cls).get(_MARKER_ATTR)
    return info if isinstance(info, SearchableInfo) else None


def is_searchable(cls: type | None) -> bool:
    return cls is not None and searchable_info(cls) is not None


def qualified_name(cls: type) -> str:
    return f"{cls.__module__}.{cls.__qualname__}"
