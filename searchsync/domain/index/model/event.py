"""Index events and the engine operations they resolve to."""

from enum import StrEnum
from typing import Any

from searchsync.domain.shared.model.value import ValueObject


class IndexEventKind(StrEnum):
    """What an index event does to the subject's document."""

    INDEX = "index"
    DELETE = "delete"


class IndexEvent(ValueObject):
    """A domain mutation to be applied to the search engine.

    Created per notification and consumed once by a delivery handler.
    """

    subject: Any
    kind: IndexEventKind

    def __str__(self) -> str:
        return f"IndexEvent({self.kind.value}, {self.subject!r})"


class IndexOperation(ValueObject):
    """A resolved engine operation: the event's subject already serialized.

    Handlers resolve events into operations at dispatch time, so deferred
    delivery applies the document as it was when the event was dispatched.
    """

    kind: IndexEventKind
    type_name: str
    document_id: str
    body: dict[str, Any] | None = None

    @property
    def key(self) -> tuple[str, str]:
        """Identity of the target document."""
        return (self.type_name, self.document_id)
