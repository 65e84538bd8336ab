from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass
from typing import Dict, Iterator, Optional, Sequence, Union

from pydantic import BaseModel

from sqlmetrics.common.logger import get_logger

logger = get_logger("queries")

# SQL Server session settings for low-impact monitoring reads.
DEFAULT_PREAMBLE = """SET DEADLOCK_PRIORITY -10;
SET NOCOUNT ON;
SET TRANSACTION ISOLATION LEVEL READ UNCOMMITTED;
"""

QUERY_ID_PREFIX = "custom_"


class QueryDefinition(BaseModel):
    """A configured query whose emit mode may override the global flag."""
    sql: str
    result_by_row: Optional[bool] = None


QueryEntry = Union[str, QueryDefinition]


@dataclass(frozen=True)
class Query:
    """A compiled query: preamble plus user text, and its emit mode.

    Attributes:
        query_id: Synthetic identifier assigned from configuration position.
        script: The full script sent to the server.
        emit_per_row: True for row mode (single ``value`` field), False for
            aggregate mode (all ``field_`` columns).
    """
    query_id: str
    script: str
    emit_per_row: bool = False


class QuerySet(Mapping):
    """Read-only, insertion-ordered mapping of query id to Query."""

    def __init__(self, queries: Sequence[Query]):
        self._queries: Dict[str, Query] = {}
        for query in queries:
            if query.query_id in self._queries:
                raise ValueError(f"Duplicate query id: {query.query_id}")
            self._queries[query.query_id] = query

    def __getitem__(self, query_id: str) -> Query:
        return self._queries[query_id]

    def __iter__(self) -> Iterator[str]:
        return iter(self._queries)

    def __len__(self) -> int:
        return len(self._queries)

    def __repr__(self) -> str:
        return f"QuerySet({list(self._queries)})"


def build_query_set(
    entries: Sequence[QueryEntry],
    emit_per_row: bool = False,
    preamble: str = DEFAULT_PREAMBLE,
) -> QuerySet:
    """Compiles configured query entries into a QuerySet.

    Identifiers are assigned by position (``custom_0``, ``custom_1``, ...), not by
    content, so two identical scripts still get distinct ids. Malformed SQL is not
    detected here; it surfaces as a query error at execution time.

    Args:
        entries: Raw SQL strings or QueryDefinition objects, in configuration order.
        emit_per_row: Global emit mode, used when an entry does not set its own.
        preamble: Text prepended to every script.

    Returns:
        QuerySet: The compiled queries.
    """
    queries = []
    for position, entry in enumerate(entries):
        if isinstance(entry, QueryDefinition):
            sql = entry.sql
            per_row = emit_per_row if entry.result_by_row is None else entry.result_by_row
        else:
            sql = entry
            per_row = emit_per_row
        queries.append(Query(
            query_id=f"{QUERY_ID_PREFIX}{position}",
            script=preamble + sql,
            emit_per_row=per_row,
        ))

    logger.debug(f"Compiled {len(queries)} queries")
    return QuerySet(queries)
