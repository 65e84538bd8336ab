from __future__ import annotations

import threading
from typing import List, Optional, Protocol, TextIO

from pydantic_core import PydanticSerializationError

from sqlmetrics.common.errors import SinkError
from sqlmetrics.models import MetricRecord


class MetricSink(Protocol):
    """Accepts metric emissions; must be safe for concurrent calls.

    Implementations may raise to signal that the emission was rejected.
    """

    def emit(self, record: MetricRecord) -> None:
        ...


class MemorySink:
    """Thread-safe append-only buffer, optionally bounded."""

    def __init__(self, capacity: Optional[int] = None):
        self.capacity = capacity
        self._records: List[MetricRecord] = []
        self._lock = threading.Lock()

    def emit(self, record: MetricRecord) -> None:
        with self._lock:
            if self.capacity is not None and len(self._records) >= self.capacity:
                raise SinkError(f"Metric buffer full ({self.capacity} records)")
            self._records.append(record)

    @property
    def records(self) -> List[MetricRecord]:
        with self._lock:
            return list(self._records)

    def drain(self) -> List[MetricRecord]:
        """Returns and clears the buffered records."""
        with self._lock:
            records, self._records = self._records, []
            return records

    def __len__(self) -> int:
        with self._lock:
            return len(self._records)


class JsonLinesSink:
    """Writes one JSON document per record to a text stream."""

    def __init__(self, stream: TextIO):
        self._stream = stream
        self._lock = threading.Lock()

    def emit(self, record: MetricRecord) -> None:
        try:
            line = record.model_dump_json()
        except PydanticSerializationError as exc:
            raise SinkError(f"Metric is not serializable: {exc}", cause=exc) from exc
        with self._lock:
            try:
                self._stream.write(line + "\n")
            except (OSError, ValueError) as exc:
                raise SinkError(f"Failed to write metric: {exc}", cause=exc) from exc
