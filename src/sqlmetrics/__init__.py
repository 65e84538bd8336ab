# sqlmetrics package

from .collector import Collector
from .connections import ConnectionProvider, SQLAlchemyConnectionProvider, DEFAULT_SERVER
from .mapping import RowMapper, DEFAULT_MEASUREMENT
from .models import MetricRecord, TaskOutcome, CollectionReport
from .queries import Query, QuerySet, QueryDefinition, build_query_set
from .runner import ServerQueryRunner
from .sinks import MetricSink, MemorySink, JsonLinesSink
from .values import ColumnValue, ValueKind

# Also expose core error types
from .common.errors import ErrorCode, ErrorSeverity, CollectionError, CollectorError

__all__ = [
    "Collector",
    "ConnectionProvider",
    "SQLAlchemyConnectionProvider",
    "DEFAULT_SERVER",
    "RowMapper",
    "DEFAULT_MEASUREMENT",
    "MetricRecord",
    "TaskOutcome",
    "CollectionReport",
    "Query",
    "QuerySet",
    "QueryDefinition",
    "build_query_set",
    "ServerQueryRunner",
    "MetricSink",
    "MemorySink",
    "JsonLinesSink",
    "ColumnValue",
    "ValueKind",
    "ErrorCode",
    "ErrorSeverity",
    "CollectionError",
    "CollectorError",
]
