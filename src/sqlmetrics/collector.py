from __future__ import annotations

import concurrent.futures
import threading
import traceback
import uuid
from typing import List, Optional, Sequence

from sqlmetrics.common.errors import CollectionError, ErrorCode
from sqlmetrics.common.logger import cycle_context, get_logger
from sqlmetrics.common.security import redact_target
from sqlmetrics.connections import DEFAULT_SERVER, ConnectionProvider, SQLAlchemyConnectionProvider
from sqlmetrics.mapping import RowMapper
from sqlmetrics.models import CollectionReport, TaskOutcome
from sqlmetrics.queries import DEFAULT_PREAMBLE, Query, QueryEntry, QuerySet, build_query_set
from sqlmetrics.runner import ServerQueryRunner
from sqlmetrics.sinks import MetricSink

logger = get_logger("collector")


class Collector:
    """
    Runs collection cycles: every configured query against every server.

    The QuerySet is compiled on the first cycle and reused by every later one.
    Each cycle launches one task per (server, query) pair, waits for all of them
    and returns the accumulated errors without ever failing itself.
    """

    def __init__(
        self,
        servers: Optional[Sequence[str]] = None,
        queries: Sequence[QueryEntry] = (),
        result_by_row: bool = False,
        preamble: str = DEFAULT_PREAMBLE,
        provider: Optional[ConnectionProvider] = None,
        mapper: Optional[RowMapper] = None,
    ):
        self.servers: List[str] = list(servers or [])
        self.query_entries = list(queries)
        self.result_by_row = result_by_row
        self.preamble = preamble
        self.provider = provider or SQLAlchemyConnectionProvider()
        self.runner = ServerQueryRunner(self.provider, mapper)

        self._query_set: Optional[QuerySet] = None
        self._init_lock = threading.Lock()

    @property
    def query_set(self) -> QuerySet:
        """The compiled queries, built once on first access."""
        if self._query_set is None:
            with self._init_lock:
                if self._query_set is None:
                    self._query_set = build_query_set(
                        self.query_entries, self.result_by_row, self.preamble
                    )
                    logger.info(f"Initialized {len(self._query_set)} queries")
        return self._query_set

    def targets(self) -> List[str]:
        """Configured servers, or the built-in default target when none are set."""
        return self.servers or [DEFAULT_SERVER]

    def gather(self, sink: MetricSink) -> CollectionReport:
        """Runs one collection cycle.

        Args:
            sink: Destination for every emitted record; must accept concurrent calls.

        Returns:
            CollectionReport: Per-task outcomes, including every task error.
        """
        cycle_id = uuid.uuid4().hex[:12]
        query_set = self.query_set
        servers = self.targets()
        report = CollectionReport(cycle_id=cycle_id)

        tasks = [(server, query) for server in servers for query in query_set.values()]
        if not tasks:
            logger.info("No queries configured; nothing to collect")
            return report

        with cycle_context(cycle_id):
            logger.info(f"Starting cycle: {len(servers)} server(s) x {len(query_set)} query(s)")

            # One worker per task: fan-out width is servers x queries.
            with concurrent.futures.ThreadPoolExecutor(
                max_workers=len(tasks), thread_name_prefix="sqlmetrics"
            ) as executor:
                futures = {
                    executor.submit(self._run_task, cycle_id, server, query, sink): (server, query)
                    for server, query in tasks
                }
                for future in concurrent.futures.as_completed(futures):
                    server, query = futures[future]
                    try:
                        outcome = future.result()
                    except Exception as exc:
                        outcome = self._crashed_outcome(server, query, exc)
                    report.outcomes.append(outcome)

            logger.info(
                f"Cycle finished: {report.task_count} tasks, {len(report.errors)} errors, "
                f"{report.emitted} records"
            )
        return report

    def _run_task(self, cycle_id: str, server: str, query: Query, sink: MetricSink) -> TaskOutcome:
        # Worker threads do not inherit the caller's context.
        with cycle_context(cycle_id):
            return self.runner.run(server, query, sink)

    @staticmethod
    def _crashed_outcome(server: str, query: Query, exc: Exception) -> TaskOutcome:
        logger.error(f"Task {query.query_id} raised outside the runner: {exc}", exc_info=exc)
        target = redact_target(server)
        error = CollectionError.for_task(
            target,
            query.query_id,
            ErrorCode.UNKNOWN_ERROR,
            f"Unexpected error: {exc}",
            stack_trace="".join(traceback.format_exception(exc)),
        )
        return TaskOutcome(server=target, query_id=query.query_id, error=error)

    def close(self) -> None:
        dispose = getattr(self.provider, "dispose", None)
        if dispose is not None:
            dispose()
