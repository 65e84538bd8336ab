from datetime import datetime
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, Field, field_serializer

from sqlmetrics.common.errors import CollectionError


class MetricRecord(BaseModel):
    """A single timestamped, tagged metric emission."""
    measurement: str
    tags: Dict[str, str] = Field(default_factory=dict)
    fields: Dict[str, Any] = Field(default_factory=dict)
    timestamp: datetime

    @field_serializer("fields", when_used="json")
    def serialize_fields(self, fields: Dict[str, Any]) -> Dict[str, Any]:
        # varbinary columns (sql_handle, plan_handle) are written as hex strings
        return {
            key: value.hex() if isinstance(value, (bytes, bytearray, memoryview)) else value
            for key, value in fields.items()
        }


class TaskOutcome(BaseModel):
    """Result of executing one query against one server.

    ``columns`` is the ordered column list observed by this execution only; it is
    never written back onto the shared Query.
    """
    server: str
    query_id: str
    columns: List[str] = Field(default_factory=list)
    rows: int = 0
    emitted: int = 0
    duration_ms: float = 0.0
    error: Optional[CollectionError] = None

    @property
    def success(self) -> bool:
        return self.error is None


class CollectionReport(BaseModel):
    """Everything one collection cycle produced besides the metrics themselves."""
    cycle_id: str
    outcomes: List[TaskOutcome] = Field(default_factory=list)

    @property
    def errors(self) -> List[CollectionError]:
        return [o.error for o in self.outcomes if o.error is not None]

    @property
    def task_count(self) -> int:
        return len(self.outcomes)

    @property
    def all_failed(self) -> bool:
        """True when at least one task ran and none succeeded."""
        return bool(self.outcomes) and all(not o.success for o in self.outcomes)

    @property
    def emitted(self) -> int:
        return sum(o.emitted for o in self.outcomes)
