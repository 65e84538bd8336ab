from __future__ import annotations

import time
import traceback
from contextlib import ExitStack
from typing import Optional

from sqlalchemy import CursorResult

from sqlmetrics.common.errors import (
    CollectionError,
    CollectorError,
    ErrorCode,
    MetadataError,
    QueryExecutionError,
    ScanError,
    ServerConnectionError,
    SinkError,
)
from sqlmetrics.common.logger import get_logger
from sqlmetrics.common.metrics import (
    records_emitted_counter,
    rows_scanned_counter,
    task_duration_histogram,
    task_error_counter,
)
from sqlmetrics.common.security import redact_target
from sqlmetrics.connections import ConnectionProvider
from sqlmetrics.mapping import RowMapper
from sqlmetrics.models import MetricRecord, TaskOutcome
from sqlmetrics.queries import Query
from sqlmetrics.sinks import MetricSink

logger = get_logger("runner")


class _ResultScanner:
    """Cursor-style scanner over a SQLAlchemy result: `advance()` then `scan()`."""

    def __init__(self, result: CursorResult):
        self._result = result
        self._row = None

    def advance(self) -> bool:
        try:
            self._row = self._result.fetchone()
        except Exception as exc:
            raise ScanError(f"Failed to fetch row: {exc}", cause=exc) from exc
        return self._row is not None

    def scan(self):
        return tuple(self._row)


class ServerQueryRunner:
    """
    Executes one query against one server and forwards the mapped rows to a sink.

    Any failure ends the task: it is captured on the returned TaskOutcome and is
    never raised to the caller. Records emitted before the failure stay emitted.
    """

    def __init__(self, provider: ConnectionProvider, mapper: Optional[RowMapper] = None):
        self.provider = provider
        self.mapper = mapper or RowMapper()

    def run(self, server: str, query: Query, sink: MetricSink) -> TaskOutcome:
        """Runs the task end-to-end.

        Args:
            server: Opaque connection target.
            query: The compiled query to execute.
            sink: Destination for the mapped records.

        Returns:
            TaskOutcome: Columns, counters and the first error encountered, if any.
        """
        outcome = TaskOutcome(server=redact_target(server), query_id=query.query_id)
        start = time.perf_counter()

        try:
            self._execute(server, query, sink, outcome)
        except CollectorError as exc:
            outcome.error = self._to_error(outcome, exc.error_code, exc.message)
        except Exception as exc:
            outcome.error = self._to_error(outcome, ErrorCode.UNKNOWN_ERROR, f"Unexpected error: {exc}")

        duration = time.perf_counter() - start
        outcome.duration_ms = duration * 1000
        task_duration_histogram.record(duration, {"query_id": query.query_id})

        if outcome.error:
            error = outcome.error
            task_error_counter.add(1, {"error_code": error.error_code.value})
            logger.log(
                error.severity.log_level,
                f"Task {query.query_id} on {outcome.server} failed: {error.message}",
                extra={
                    "server": outcome.server,
                    "query_id": query.query_id,
                    "error_code": error.error_code.value,
                },
            )
        else:
            logger.debug(
                f"Task {query.query_id} on {outcome.server}: {outcome.rows} rows, "
                f"{outcome.emitted} records in {outcome.duration_ms:.1f} ms"
            )
        return outcome

    def _execute(self, server: str, query: Query, sink: MetricSink, outcome: TaskOutcome) -> None:
        with ExitStack() as stack:
            try:
                conn = stack.enter_context(self.provider.connect(server))
            except CollectorError:
                raise
            except Exception as exc:
                raise ServerConnectionError(f"Failed to connect: {exc}", cause=exc) from exc

            try:
                result = conn.exec_driver_sql(query.script)
            except Exception as exc:
                raise QueryExecutionError(f"Query failed: {exc}", cause=exc) from exc
            stack.callback(result.close)

            if not result.returns_rows:
                raise MetadataError("Query did not return a result set")
            try:
                columns = list(result.keys())
            except Exception as exc:
                raise MetadataError(f"Failed to read result columns: {exc}", cause=exc) from exc
            outcome.columns = columns

            scanner = _ResultScanner(result)
            while scanner.advance():
                outcome.rows += 1
                rows_scanned_counter.add(1, {"query_id": query.query_id})
                for record in self.mapper.map(columns, scanner, query.emit_per_row):
                    self._emit(sink, record)
                    outcome.emitted += 1
                    records_emitted_counter.add(1, {"measurement": record.measurement})

    @staticmethod
    def _emit(sink: MetricSink, record: MetricRecord) -> None:
        try:
            sink.emit(record)
        except SinkError:
            raise
        except Exception as exc:
            raise SinkError(f"Sink rejected record: {exc}", cause=exc) from exc

    @staticmethod
    def _to_error(outcome: TaskOutcome, code: ErrorCode, message: str) -> CollectionError:
        return CollectionError.for_task(
            outcome.server, outcome.query_id, code, message, stack_trace=traceback.format_exc()
        )
