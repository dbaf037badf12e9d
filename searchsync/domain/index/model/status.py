from searchsync.domain.index.model.searchable import qualified_name
from searchsync.domain.shared.model.value import ValueObject


class Status(ValueObject):
    """Reporting view of one eligible domain type."""

    domain_type: str
    index_started: bool
    river_started: bool

    @classmethod
    def of(cls, domain_type: type, index_started: bool, river_started: bool) -> "Status":
        return cls(
            domain_type=qualified_name(domain_type),
            index_started=index_started,
            river_started=river_started,
        )
