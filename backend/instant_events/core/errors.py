"""Error Hierarchy: typed, categorized exceptions for every instant-event failure mode.

Invariants:
    - Every error has a code (str), category (ErrorCategory), severity (ErrorSeverity)
    - NotFound carries a structured target so callers never match on message text
    - Domain errors are raised inside transaction bodies and abort them before commit
    - No transport concerns here: no status codes, no response envelopes

Design Decisions:
    - Single hierarchy with InstantEventError base: one except clause at the boundary
    - ErrorContext as dataclass: rich observability without coupling to logging framework
"""

from dataclasses import dataclass, field
from enum import Enum
from typing import Any
from datetime import datetime, timezone

from instant_events.core.domain_types import NotFoundTarget


class ErrorSeverity(str, Enum):
    """Error severity for observability and caller handling."""
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
    CONFLICT = "conflict"


@dataclass
class ErrorContext:
    """Rich context for error observability and debugging."""
    timestamp: datetime = field(default_factory=lambda: datetime.now(timezone.utc))
    member_id: str | None = None
    event_id: str | None = None
    message_id: str | None = None
    attempt: int | None = None
    debug_info: dict[str, Any] | None = None


class InstantEventError(Exception):
    """Base exception for all instant-event errors."""

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

    def log_extra(self) -> dict:
        """Structured fields for logger.*(extra=...)."""
        return {
            "error_code": self.code,
            "category": self.category.value,
            "member_id": self.context.member_id,
            "event_id": self.context.event_id,
            "message_id": self.context.message_id,
            "attempt": self.context.attempt,
        }


# ─── Domain Errors ──────────────────────────────────────────────

class InputValidationError(InstantEventError):
    """Operation argument failed validation."""
    def __init__(self, message: str, field: str, context: ErrorContext | None = None):
        super().__init__(
            message, "VALIDATION_ERROR", ErrorCategory.VALIDATION,
            ErrorSeverity.ERROR, context,
        )
        self.field = field


class ResourceNotFoundError(InstantEventError):
    """A link of the member -> event -> message chain does not exist."""
    def __init__(
        self,
        target: NotFoundTarget,
        resource_id: str,
        context: ErrorContext | None = None,
    ):
        super().__init__(
            f"{target.label} '{resource_id}' not found",
            "RESOURCE_NOT_FOUND", ErrorCategory.RESOURCE_NOT_FOUND,
            ErrorSeverity.ERROR, context,
        )
        self.target = target
        self.resource_id = resource_id


class EventClosedError(InstantEventError):
    """Event is closed, or its end date has passed."""
    def __init__(
        self,
        event_id: str,
        closed_now: bool = False,
        context: ErrorContext | None = None,
    ):
        reason = "has ended and was closed" if closed_now else "is closed"
        super().__init__(
            f"Event '{event_id}' {reason}; no further messages accepted",
            "EVENT_CLOSED", ErrorCategory.BUSINESS_RULE,
            ErrorSeverity.WARNING, context,
        )
        self.event_id = event_id
        self.closed_now = closed_now


# ─── Infrastructure Errors ──────────────────────────────────────

class TransactionUnavailableError(InstantEventError):
    """Transaction could not commit after exhausting conflict retries."""
    def __init__(self, attempts: int, context: ErrorContext | None = None):
        ctx = context or ErrorContext()
        ctx.attempt = attempts
        super().__init__(
            f"Transaction aborted after {attempts} conflicting attempt(s)",
            "TRANSACTION_UNAVAILABLE", ErrorCategory.CONFLICT,
            ErrorSeverity.CRITICAL, ctx,
        )
        self.attempts = attempts


class DatabaseError(InstantEventError):
    """Database operation failed."""
    def __init__(self, message: str, operation: str, context: ErrorContext | None = None):
        super().__init__(
            f"Database {operation} failed: {message}",
            "DATABASE_ERROR", ErrorCategory.DATABASE,
            ErrorSeverity.CRITICAL, context,
        )
        self.operation = operation


class CorruptDocumentError(InstantEventError):
    """Stored document holds a value the domain rules cannot interpret."""
    def __init__(
        self,
        field: str,
        value: Any,
        context: ErrorContext | None = None,
    ):
        super().__init__(
            f"Stored {field} {value!r} is not a valid value",
            "CORRUPT_DOCUMENT", ErrorCategory.DATABASE,
            ErrorSeverity.ERROR, context,
        )
        self.field = field
        self.value = value
