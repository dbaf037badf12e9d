"""JSON-safe conversion of column values for document bodies."""

import datetime as dt
import decimal
import enum
import uuid
from typing import Any


def json_safe(value: Any) -> Any:
    """Convert a database value into something the engine's JSON encoder accepts."""
    if isinstance(value, (dt.datetime, dt.date, dt.time)):
        return value.isoformat()
    if isinstance(value, uuid.UUID):
        return str(value)
    if isinstance(value, decimal.Decimal):
        return float(value)
    if isinstance(value, enum.Enum):
        return value.value
    if isinstance(value, bytes):
        return value.decode("utf-8", errors="replace")
    return value
