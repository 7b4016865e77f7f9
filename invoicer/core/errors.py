"""Error Hierarchy — typed, categorized exceptions for all billing failure modes.

Invariants:
    - Every error has a code (str), category (ErrorCategory), severity (ErrorSeverity)
    - NotFoundError (404), BadRequestError (400), ConflictError (409) are the only
      domain outcomes; DatabaseError (503) covers storage failures
    - to_response() produces the REST envelope
    - Storage errors never leak raw driver messages to the caller

Design Decisions:
    - Single hierarchy with InvoicerError base: FastAPI global handler catches all
    - ErrorContext as dataclass: entity ids and amounts (e.g. outstanding balance)
      travel with the error so the caller can render a user-facing message
    - No retry metadata: retry/backoff is the caller's responsibility
"""

from dataclasses import dataclass, field
from enum import Enum
from typing import Any
from datetime import datetime, timezone


class ErrorSeverity(str, Enum):
    """Error severity for observability and client handling."""
    INFO = "info"
    WARNING = "warning"
    ERROR = "error"
    CRITICAL = "critical"


class ErrorCategory(str, Enum):
    """High-level error categories for routing and handling."""
    VALIDATION = "validation"
    BUSINESS_RULE = "business_rule"
    RESOURCE_NOT_FOUND = "resource_not_found"
    DATABASE = "database"
    INTERNAL = "internal"
    CONFLICT = "conflict"


@dataclass
class ErrorContext:
    """Rich context for error observability and debugging."""
    timestamp: datetime = field(default_factory=lambda: datetime.now(timezone.utc))
    session_id: str | None = None
    invoice_id: str | None = None
    payment_id: str | None = None
    user_message: str | None = None
    debug_info: dict[str, Any] | None = None


class InvoicerError(Exception):
    """Base exception for all billing engine errors."""

    def __init__(
        self,
        message: str,
        code: str,
        category: ErrorCategory,
        severity: ErrorSeverity = ErrorSeverity.ERROR,
        context: ErrorContext | None = None,
        http_status: int = 500,
    ):
        super().__init__(message)
        self.message = message
        self.code = code
        self.category = category
        self.severity = severity
        self.context = context or ErrorContext()
        self.http_status = http_status

    def to_response(self) -> dict:
        """Convert to standardized REST error response."""
        return {
            "error": {
                "code": self.code,
                "message": self.context.user_message or self.message,
                "category": self.category.value,
                "severity": self.severity.value,
                "timestamp": self.context.timestamp.isoformat(),
                "context": {
                    "session_id": self.context.session_id,
                    "invoice_id": self.context.invoice_id,
                    "payment_id": self.context.payment_id,
                    "details": self.context.debug_info,
                },
            }
        }


# ─── Domain Errors (400-level) ──────────────────────────────────

class NotFoundError(InvoicerError):
    """Referenced entity does not exist."""
    def __init__(
        self, resource_type: str, resource_id: str | None = None,
        message: str | None = None, context: ErrorContext | None = None,
    ):
        super().__init__(
            message or f"{resource_type} '{resource_id}' not found",
            "RESOURCE_NOT_FOUND", ErrorCategory.RESOURCE_NOT_FOUND,
            ErrorSeverity.ERROR, context, 404,
        )
        self.resource_type = resource_type
        self.resource_id = resource_id


class BadRequestError(InvoicerError):
    """Invalid state transition, validation failure, or business-rule violation."""
    def __init__(
        self, message: str, code: str = "BAD_REQUEST",
        context: ErrorContext | None = None,
    ):
        super().__init__(
            message, code, ErrorCategory.BUSINESS_RULE,
            ErrorSeverity.ERROR, context, 400,
        )


class ConflictError(InvoicerError):
    """Concurrent-state violation (e.g. a second running session)."""
    def __init__(
        self, message: str, code: str = "CONFLICT",
        context: ErrorContext | None = None,
    ):
        super().__init__(
            message, code, ErrorCategory.CONFLICT,
            ErrorSeverity.WARNING, context, 409,
        )


# ─── Infrastructure Errors (500-level) ──────────────────────────

class DatabaseError(InvoicerError):
    """Database operation failed."""
    def __init__(self, message: str, operation: str, context: ErrorContext | None = None):
        super().__init__(
            f"Database {operation} failed: {message}",
            "DATABASE_ERROR", ErrorCategory.DATABASE,
            ErrorSeverity.CRITICAL, context, 503,
        )
        self.operation = operation
