"""Record -> column dict conversion shared by the writers."""

from enum import Enum
from typing import Any, Iterable, Optional

from pydantic import BaseModel

# Columns filled by the database (server_default / onupdate)
SERVER_MANAGED = frozenset({"created_at", "updated_at"})


def to_columns(record: BaseModel, include: Optional[Iterable[str]] = None) -> dict[str, Any]:
    """
    Dump a record into a column dict, storing enums by value.

    Args:
        record: Frozen domain record
        include: Restrict the dict to these fields (default: every non server-managed field)
    """
    if include is not None:
        fields = set(include)
    else:
        fields = set(type(record).model_fields) - SERVER_MANAGED
    values = {}
    for name in fields:
        value = getattr(record, name)
        values[name] = value.value if isinstance(value, Enum) else value
    return values
