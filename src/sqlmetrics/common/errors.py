import logging
from enum import Enum
from typing import Optional

from pydantic import BaseModel, ConfigDict


class ErrorSeverity(str, Enum):
    """Severity levels for collection errors."""
    WARNING = "WARNING"
    ERROR = "ERROR"
    CRITICAL = "CRITICAL"

    @property
    def log_level(self) -> int:
        return getattr(logging, self.value)


class ErrorCode(str, Enum):
    """Standardized error codes for a single (server, query) task."""
    CONNECTION_ERROR = "CONNECTION_ERROR"
    QUERY_ERROR = "QUERY_ERROR"
    METADATA_ERROR = "METADATA_ERROR"
    SCAN_ERROR = "SCAN_ERROR"
    SINK_ERROR = "SINK_ERROR"
    UNKNOWN_ERROR = "UNKNOWN_ERROR"


SEVERITY_BY_CODE = {
    ErrorCode.METADATA_ERROR: ErrorSeverity.WARNING,
    ErrorCode.SINK_ERROR: ErrorSeverity.CRITICAL,
    ErrorCode.UNKNOWN_ERROR: ErrorSeverity.CRITICAL,
}


def severity_for(code: ErrorCode) -> ErrorSeverity:
    """Returns the severity a task error with this code is reported at."""
    return SEVERITY_BY_CODE.get(code, ErrorSeverity.ERROR)


class CollectorError(Exception):
    """Base class for failures scoped to one (server, query) task."""

    error_code: ErrorCode = ErrorCode.UNKNOWN_ERROR

    def __init__(self, message: str, cause: Optional[BaseException] = None):
        super().__init__(message)
        self.message = message
        self.cause = cause


class ServerConnectionError(CollectorError):
    """The target could not be reached or opened."""
    error_code = ErrorCode.CONNECTION_ERROR


class QueryExecutionError(CollectorError):
    """The server rejected the query."""
    error_code = ErrorCode.QUERY_ERROR


class MetadataError(CollectorError):
    """The column list of the result was unavailable."""
    error_code = ErrorCode.METADATA_ERROR


class ScanError(CollectorError):
    """A row could not be decoded."""
    error_code = ErrorCode.SCAN_ERROR


class SinkError(CollectorError):
    """The downstream sink rejected an emission."""
    error_code = ErrorCode.SINK_ERROR


class CollectionError(BaseModel):
    """Represents one failed task within a collection cycle.

    Attributes:
        server (str): The redacted server target.
        query_id (str): The synthetic query identifier, e.g. ``custom_0``.
        message (str): A human-readable error message.
        error_code (ErrorCode): The standardized error code.
        severity (ErrorSeverity): The severity of the error.
        stack_trace (Optional[str]): Stack trace if applicable.
    """
    model_config = ConfigDict(extra="ignore")

    server: str
    query_id: str
    message: str
    error_code: ErrorCode
    severity: ErrorSeverity = ErrorSeverity.ERROR
    stack_trace: Optional[str] = None

    @classmethod
    def for_task(
        cls,
        server: str,
        query_id: str,
        code: ErrorCode,
        message: str,
        stack_trace: Optional[str] = None,
    ) -> "CollectionError":
        """Builds the report entry for a failed task, with severity taken from its code."""
        return cls(
            server=server,
            query_id=query_id,
            message=message,
            error_code=code,
            severity=severity_for(code),
            stack_trace=stack_trace,
        )

    def __str__(self) -> str:
        return f"{self.server} [{self.query_id}] {self.error_code.value}: {self.message}"
