from enum import StrEnum


class DeliveryMode(StrEnum):
    """How index events are applied.

    LOCAL: inline, awaited by the caller; engine errors reach the caller.
    ASYNC: background workers, ordered per document; failures logged and dropped.
    QUEUED: buffered and applied in bulk batches; failures logged and dropped.
    """

    LOCAL = "LOCAL"
    ASYNC = "ASYNC"
    QUEUED = "QUEUED"
