"""EventTranslator - turns host lifecycle notifications into index events."""

import logging
from collections.abc import Callable
from typing import Any

from searchsync.domain.index.model.event import IndexEvent, IndexEventKind
from searchsync.domain.index.model.searchable import is_searchable
from searchsync.domain.shared.error import InvariantViolationError
from searchsync.domain.shared.service import Service

logger = logging.getLogger(__name__)

# Notification suffix -> event kind. Names must end with the full suffix,
# dot included: "Book.objectPersistedExtra" is not interesting.
NOTIFICATION_KINDS: dict[str, IndexEventKind] = {
    ".objectPersisted": IndexEventKind.INDEX,
    ".objectUpdated": IndexEventKind.INDEX,
    ".objectDeleted": IndexEventKind.DELETE,
}


class EventTranslator(Service):
    """Classifies notifications and builds IndexEvents for searchable subjects.

    Attributes:
        model_base: The host's persistence base type. Only its instances may
            be indexed.
        searchable: Predicate deciding whether a subject's type is searchable.
    """

    model_base: type
    searchable: Callable[[type], bool] = is_searchable

    def classify(self, name: str) -> bool:
        """True if the notification is one the index cares about."""
        return self.kind_of(name) is not None

    def kind_of(self, name: str) -> IndexEventKind | None:
        for suffix, kind in NOTIFICATION_KINDS.items():
            if name.endswith(suffix):
                return kind
        return None

    def translate(self, name: str, subject: Any) -> IndexEvent | None:
        """Build the IndexEvent for a notification.

        Uninteresting notifications and non-searchable subjects produce None;
        both are expected and not logged as errors.

        Raises:
            InvariantViolationError: If a searchable subject is not an instance
                of the persistence base type.
        """
        kind = self.kind_of(name)
        if kind is None:
            return None
        if not self.searchable(type(subject)):
            logger.debug(f"Ignoring {name}: {type(subject).__name__} is not searchable")
            return None
        return self.build(subject, kind)

    def build(self, subject: Any, kind: IndexEventKind) -> IndexEvent:
        """Build an IndexEvent, asserting the subject is a persisted model."""
        if not isinstance(subject, self.model_base):
            raise InvariantViolationError(
                f"Only {self.model_base.__name__} subclasses can be indexed, "
                f"got {type(subject).__name__}"
            )
        return IndexEvent(subject=subject, kind=kind)
