"""Error Hierarchy: typed exceptions for the failures the record editor does not absorb.

Invariants:
    - Every error has a code (str), category (ErrorCategory), severity (ErrorSeverity)
    - Expected outcomes (missing record, validation failure, hook cancellation) are
      NOT errors; they are reported through state and return values
    - to_response() produces a JSON-safe envelope; no internal details in `message`

Design Decisions:
    - Single hierarchy with FormBuilderError base so callers can catch one type
    - ErrorContext as dataclass: observability data without coupling to logging
"""

from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Any


class ErrorSeverity(str, Enum):
    """Error severity for observability and caller handling."""
    INFO = "info"
    WARNING = "warning"
    ERROR = "error"
    CRITICAL = "critical"


class ErrorCategory(str, Enum):
    """High-level error categories."""
    BUSINESS_RULE = "business_rule"
    EXTERNAL_API = "external_api"
    TIMEOUT = "timeout"


@dataclass
class ErrorContext:
    """Context attached to an error for debugging."""
    timestamp: datetime = field(default_factory=lambda: datetime.now(timezone.utc))
    table_name: str | None = None
    record_id: str | None = None
    operation: str | None = None
    debug_info: dict[str, Any] | None = None
    retry_after_ms: int | None = None


class FormBuilderError(Exception):
    """Base exception for all record editor errors."""

    def __init__(
        self,
        message: str,
        code: str,
        category: ErrorCategory,
        severity: ErrorSeverity = ErrorSeverity.ERROR,
        context: ErrorContext | None = None,
    ):
        super().__init__(message)
        self.message = message
        self.code = code
        self.category = category
        self.severity = severity
        self.context = context or ErrorContext()

    def to_response(self) -> dict:
        """Convert to a structured error envelope."""
        return {
            "error": {
                "code": self.code,
                "message": self.message,
                "category": self.category.value,
                "severity": self.severity.value,
                "timestamp": self.context.timestamp.isoformat(),
                "context": {
                    "table_name": self.context.table_name,
                    "record_id": self.context.record_id,
                    "operation": self.context.operation,
                    "retry_after_ms": self.context.retry_after_ms,
                },
            }
        }


# ─── Domain Errors ──────────────────────────────────────────────

class SchemaNotLoadedError(FormBuilderError):
    """An operation needs table metadata that has not been loaded yet."""
    def __init__(self, operation: str, context: ErrorContext | None = None):
        super().__init__(
            f"Cannot {operation} before the table metadata is loaded",
            "SCHEMA_NOT_LOADED", ErrorCategory.BUSINESS_RULE,
            ErrorSeverity.ERROR, context,
        )
        self.operation = operation


# ─── Infrastructure Errors ──────────────────────────────────────

class DataServiceError(FormBuilderError):
    """A call to the remote data, metadata or permission API failed in transport."""
    def __init__(
        self,
        message: str,
        api_error_type: str,
        status_code: int | None = None,
        retry_after_ms: int | None = None,
        context: ErrorContext | None = None,
    ):
        ctx = context or ErrorContext()
        ctx.retry_after_ms = retry_after_ms
        category = (
            ErrorCategory.TIMEOUT if api_error_type == "timeout"
            else ErrorCategory.EXTERNAL_API
        )
        super().__init__(
            f"Data API error ({api_error_type}): {message}",
            "DATA_API_ERROR", category, ErrorSeverity.CRITICAL, ctx,
        )
        self.api_error_type = api_error_type
        self.status_code = status_code
