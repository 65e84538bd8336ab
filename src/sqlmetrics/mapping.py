"""Row to metric mapping.

Columns are classified from their names and scanned values alone:

* ``measurement`` (textual) names the output series,
* every other textual column not prefixed with ``field_`` becomes a tag,
* ``field_*`` columns are fields in aggregate mode,
* ``value`` is the single field in row mode.
"""
from __future__ import annotations

from datetime import datetime, timezone
from typing import Any, Callable, Dict, List, Optional, Protocol, Sequence, Tuple

from sqlmetrics.common.errors import CollectorError, ScanError
from sqlmetrics.common.logger import get_logger
from sqlmetrics.models import MetricRecord
from sqlmetrics.values import ColumnValue

logger = get_logger("mapping")

MEASUREMENT_COLUMN = "measurement"
VALUE_COLUMN = "value"
FIELD_PREFIX = "field_"
DEFAULT_MEASUREMENT = "sqlserver_extended"


class RowScanner(Protocol):
    """Yields the current row's values in result-column order."""

    def scan(self) -> Sequence[Any]:
        ...


def field_key(column: str) -> str:
    """Output key for a ``field_`` column.

    Only the first underscore-delimited segment after the prefix is kept, so
    ``field_cpu`` and ``field_cpu_usage`` both map to ``cpu``.
    """
    return column.split("_")[1]


def scan_row(columns: Sequence[str], scanner: RowScanner) -> Dict[str, ColumnValue]:
    """Scans one row and aligns its positional values with the column names.

    Raises:
        ScanError: If the scanner fails or returns a row of the wrong width.
    """
    try:
        values = scanner.scan()
    except CollectorError:
        raise
    except Exception as exc:
        raise ScanError(f"Failed to scan row: {exc}", cause=exc) from exc

    if len(values) != len(columns):
        raise ScanError(
            f"Row has {len(values)} values but the result declares {len(columns)} columns"
        )
    return {name: ColumnValue.of(raw) for name, raw in zip(columns, values)}


class RowMapper:
    """Turns scanned rows into MetricRecords. Holds no per-row state."""

    def __init__(
        self,
        fallback_measurement: str = DEFAULT_MEASUREMENT,
        clock: Optional[Callable[[], datetime]] = None,
    ):
        self.fallback_measurement = fallback_measurement
        self._clock = clock or (lambda: datetime.now(timezone.utc))

    def classify(self, row: Dict[str, ColumnValue]) -> Tuple[str, Dict[str, str], Dict[str, Any]]:
        """Splits a scanned row into measurement name, tags and aggregate fields."""
        measurement = ""
        tags: Dict[str, str] = {}
        fields: Dict[str, Any] = {}

        for name, value in row.items():
            if name.startswith(FIELD_PREFIX):
                key = field_key(name)
                if key and not value.is_null:
                    fields[key] = value.raw
                continue
            if not value.is_textual:
                continue
            if name == MEASUREMENT_COLUMN:
                measurement = value.raw
            else:
                tags[name] = value.raw

        return measurement or self.fallback_measurement, tags, fields

    def map_row(self, row: Dict[str, ColumnValue], emit_per_row: bool) -> List[MetricRecord]:
        measurement, tags, fields = self.classify(row)

        if emit_per_row:
            value = row.get(VALUE_COLUMN)
            fields = {} if value is None or value.is_null else {VALUE_COLUMN: value.raw}

        return [MetricRecord(
            measurement=measurement,
            tags=tags,
            fields=fields,
            timestamp=self._clock(),
        )]

    def map(self, columns: Sequence[str], scanner: RowScanner, emit_per_row: bool) -> List[MetricRecord]:
        """Scans the scanner's current row and maps it.

        Args:
            columns: Column names in result order for this execution.
            scanner: Source of the row's positional values.
            emit_per_row: Row mode when True, aggregate mode otherwise.

        Returns:
            List[MetricRecord]: The records for this row.

        Raises:
            ScanError: If the row cannot be scanned.
        """
        row = scan_row(columns, scanner)
        records = self.map_row(row, emit_per_row)
        logger.debug(f"Mapped row to {len(records)} record(s) for '{records[0].measurement}'")
        return records
