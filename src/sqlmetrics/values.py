"""Typed view over the dynamically-typed scalars a driver returns for a column."""
from __future__ import annotations

import datetime
from dataclasses import dataclass
from decimal import Decimal
from enum import Enum
from typing import Any


class ValueKind(str, Enum):
    TEXT = "text"
    NUMBER = "number"
    BOOLEAN = "boolean"
    TIME = "time"
    BYTES = "bytes"
    NULL = "null"
    OTHER = "other"


_TIME_TYPES = (datetime.datetime, datetime.date, datetime.time, datetime.timedelta)
_BYTES_TYPES = (bytes, bytearray, memoryview)


@dataclass(frozen=True)
class ColumnValue:
    """One scanned column value tagged with its kind.

    Only ``TEXT`` values are eligible to become tags or the measurement name.
    """
    kind: ValueKind
    raw: Any = None

    @classmethod
    def of(cls, raw: Any) -> "ColumnValue":
        if raw is None:
            return cls(ValueKind.NULL)
        if isinstance(raw, str):
            return cls(ValueKind.TEXT, raw)
        # bool is a subclass of int
        if isinstance(raw, bool):
            return cls(ValueKind.BOOLEAN, raw)
        if isinstance(raw, (int, float, Decimal)):
            return cls(ValueKind.NUMBER, raw)
        if isinstance(raw, _TIME_TYPES):
            return cls(ValueKind.TIME, raw)
        if isinstance(raw, _BYTES_TYPES):
            return cls(ValueKind.BYTES, bytes(raw))
        return cls(ValueKind.OTHER, raw)

    @property
    def is_textual(self) -> bool:
        return self.kind is ValueKind.TEXT

    @property
    def is_null(self) -> bool:
        return self.kind is ValueKind.NULL
