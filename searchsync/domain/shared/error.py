"""Error hierarchy for searchsync.

Error layers:
- SearchSyncError: Base class for all searchsync errors
- DomainError: Rejected input and broken integration contracts (caller must fix)
- InfrastructureError: Engine, network and configuration failures

Rejected-input errors are surfaced to the caller; the only silent drop in the
package is the notification filter in EventTranslator.
"""


class SearchSyncError(Exception):
    """Base class for all searchsync errors."""

    def __init__(self, message: str, code: str | None = None) -> None:
        self.message = message
        self.code = code or self.__class__.__name__
        super().__init__(message)


# =============================================================================
# Domain Errors (rejected input, integration defects)
# =============================================================================


class DomainError(SearchSyncError):
    """Base class for domain errors."""


class MappingError(DomainError):
    """A domain type's structural mapping could not be derived."""

    def __init__(self, message: str, domain_type: type | None = None) -> None:
        super().__init__(message, code="MAPPING_ERROR")
        self.domain_type = domain_type


class UnknownTypeNameError(DomainError):
    """No searchable domain type is registered under the given type name."""

    def __init__(self, type_name: str) -> None:
        super().__init__(f"Type name '{type_name}' is not searchable", code="UNKNOWN_TYPE_NAME")
        self.type_name = type_name


class NotSearchableError(DomainError):
    """The given domain type (or object) is not marked searchable."""


class InvariantViolationError(DomainError):
    """A host integration contract was broken (programming error)."""


class InvalidStateError(DomainError):
    """Operation not allowed in the plugin's current lifecycle state."""


# =============================================================================
# Infrastructure Errors (engine, network, configuration)
# =============================================================================


class InfrastructureError(SearchSyncError):
    """Base class for infrastructure/system errors."""


class ClientUnavailableError(InfrastructureError):
    """The search engine client could not be obtained."""


class EngineError(InfrastructureError):
    """A search engine operation failed."""


class ConfigurationError(InfrastructureError):
    """System misconfiguration detected."""

    def __init__(self, message: str, field: str | None = None) -> None:
        super().__init__(message, code="CONFIGURATION_ERROR")
        self.field = field
