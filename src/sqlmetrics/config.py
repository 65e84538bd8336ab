from __future__ import annotations

import os
import pathlib
import re
from typing import List, Union

import yaml
from pydantic import BaseModel, Field, ValidationError, field_validator

from sqlmetrics.queries import DEFAULT_PREAMBLE, QueryDefinition

_ENV_REF = re.compile(r"\$\{env:([A-Za-z_][A-Za-z0-9_]*)\}")

SAMPLE_CONFIG = """\
## Servers to monitor, as SQLAlchemy URLs or ODBC connection strings.
## When the list is empty the local SQL Server is used with integrated
## authentication. Secrets can be pulled from the environment with ${env:VAR}.
# servers:
#   - "Driver={ODBC Driver 18 for SQL Server};Server=192.168.1.10,1433;UID=monitor;PWD=${env:SQL_PASSWORD};APP=sqlmetrics;"
#   - "mssql+pyodbc://monitor:${env:SQL_PASSWORD}@db2/master?driver=ODBC+Driver+18+for+SQL+Server"

## Queries run against every server. A column named `measurement` names the
## series, other text columns become tags, `field_<name>` columns become fields.
queries:
  - "SELECT 'sessions' AS measurement, DB_NAME() AS database_name, COUNT(*) AS field_count FROM sys.dm_exec_sessions"
  ## Per-query override of result_by_row:
  # - sql: "SELECT 'waits' AS measurement, wait_type, wait_time_ms AS value FROM sys.dm_os_wait_stats"
  #   result_by_row: true

## true: one metric per row with the single field `value`.
## false: one metric per row with every `field_` column.
result_by_row: false

## Prepended to every query. Set to "" for servers other than SQL Server.
# preamble: |
#   SET DEADLOCK_PRIORITY -10;
#   SET NOCOUNT ON;
#   SET TRANSACTION ISOLATION LEVEL READ UNCOMMITTED;
"""


class CollectorConfig(BaseModel):
    """Validated collector configuration file."""
    servers: List[str] = Field(default_factory=list)
    queries: List[Union[str, QueryDefinition]] = Field(default_factory=list)
    result_by_row: bool = False
    preamble: str = DEFAULT_PREAMBLE

    model_config = {"extra": "forbid"}

    @field_validator("servers", "queries", mode="before")
    @classmethod
    def _none_as_empty(cls, value):
        return [] if value is None else value

    @field_validator("servers")
    @classmethod
    def _resolve_env(cls, servers: List[str]) -> List[str]:
        return [resolve_env_refs(server) for server in servers]


def resolve_env_refs(value: str) -> str:
    """Replaces every ``${env:VAR}`` reference with the environment value.

    Raises:
        ValueError: If a referenced variable is not set.
    """
    def _lookup(match: re.Match) -> str:
        name = match.group(1)
        resolved = os.environ.get(name)
        if resolved is None:
            raise ValueError(f"Secret not found: env:{name}")
        return resolved

    return _ENV_REF.sub(_lookup, value)


def parse_config(raw) -> CollectorConfig:
    """
    Validates an already-parsed configuration mapping.

    Raises:
        ValueError: If the structure is invalid.
    """
    if raw is None:
        raw = {}
    if not isinstance(raw, dict):
        raise ValueError("Collector config must be a YAML mapping")
    try:
        return CollectorConfig.model_validate(raw)
    except ValidationError as exc:
        raise ValueError(f"Invalid collector config: {exc}") from exc


def load_config(path: pathlib.Path) -> CollectorConfig:
    """
    Load the collector configuration from a YAML file.

    Args:
        path: Path to the YAML configuration file.

    Returns:
        CollectorConfig: The validated configuration.

    Raises:
        FileNotFoundError: If the config file does not exist.
        ValueError: If the config format is invalid.
    """
    if not path.exists():
        raise FileNotFoundError(f"Collector config not found: {path}")

    try:
        raw = yaml.safe_load(path.read_text())
    except yaml.YAMLError as exc:
        raise ValueError(f"Collector config is not valid YAML: {exc}") from exc
    return parse_config(raw)
