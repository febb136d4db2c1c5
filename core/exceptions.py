"""
Custom exceptions for the migration pipeline with structured error context.

Each exception carries context information for debugging and for the
live run log. Whether an error is fatal to a run or recovered per item is
decided by the orchestrator, not by the exception itself.

Exception Hierarchy:
    MigrationException (base)
    ├── FetchError                  (stage-fatal)
    ├── ClassificationError         (per record, recovered with sentinel cohort)
    ├── MappingError
    │   ├── MappingFieldError       (per field, recovered with zero value)
    │   └── UnknownEntityType       (stage-fatal)
    ├── WriteError                  (per record, recorded during the sweep)
    ├── WriteSweepError             (destination unreachable, fatal)
    ├── RunStateError
    │   ├── RunAlreadyActiveError
    │   └── NoResultsError
    └── RetryableError / NonRetryableError (mixins)
"""

from typing import Optional, Dict, Any
from datetime import datetime, timezone


class MigrationException(Exception):
    """
    Base exception for all migration-related errors.

    Attributes:
        message: Human-readable error message
        context: Additional context information (entity type, record id, etc.)
        original_exception: The original exception that was caught (if any)
    """

    def __init__(
        self,
        message: str,
        context: Optional[Dict[str, Any]] = None,
        original_exception: Optional[Exception] = None
    ):
        self.message = message
        self.context = context or {}
        self.original_exception = original_exception
        self.timestamp = datetime.now(timezone.utc)

        self.context["error_timestamp"] = self.timestamp.isoformat()

        super().__init__(message)
        if original_exception:
            self.__cause__ = original_exception

    def __str__(self) -> str:
        """Format error message with context."""
        base_msg = f"{self.__class__.__name__}: {self.message}"

        if self.context:
            context_str = ", ".join(f"{k}={v}" for k, v in self.context.items())
            base_msg += f" | Context: {context_str}"

        if self.original_exception:
            base_msg += f" | Caused by: {type(self.original_exception).__name__}: {str(self.original_exception)}"

        return base_msg

    def to_dict(self) -> Dict[str, Any]:
        """Convert exception to dictionary for logging/storage."""
        return {
            "error_type": self.__class__.__name__,
            "message": self.message,
            "context": self.context,
            "timestamp": self.timestamp.isoformat(),
            "original_error": str(self.original_exception) if self.original_exception else None
        }


# ============================================================================
# Pipeline Stage Errors
# ============================================================================

class FetchError(MigrationException):
    """
    Raised when records cannot be fetched from the source ledger.

    Context should include:
        - entity_type: The entity type being fetched
        - source_url: The endpoint that failed (if applicable)
        - records_fetched: Records fetched before the failure
    """
    pass


class ClassificationError(MigrationException):
    """
    Raised when a cohort label cannot be obtained for a record.

    Context should include:
        - record_id: Identifier of the record being classified
        - entity_type: The entity type of the record
    """
    pass


class MappingError(MigrationException):
    """Base exception for field mapping failures."""
    pass


class MappingFieldError(MappingError):
    """
    Raised when a single field cannot be extracted or coerced.

    Context should include:
        - field_name: Name of the target field
        - field_type: Declared type of the target field
        - record_id: Identifier of the record being mapped
    """
    pass


class UnknownEntityType(MappingError):
    """Raised when no extraction rule set can be selected for the records."""
    pass


class WriteError(MigrationException):
    """
    Raised when the destination rejects a single record.

    Context should include:
        - record_id: Identifier of the rejected record
        - status_code: HTTP status code (if applicable)
    """
    pass


class WriteSweepError(MigrationException):
    """
    Raised when the destination itself cannot be reached, so no record
    in the sweep can be written.
    """
    pass


# ============================================================================
# Run Control Errors
# ============================================================================

class RunStateError(MigrationException):
    """Base exception for control calls the current run state does not allow."""
    pass


class RunAlreadyActiveError(RunStateError):
    """Raised when a run is started while another one is running."""
    pass


class NoResultsError(RunStateError):
    """Raised when completion is requested before results exist."""
    pass


# ============================================================================
# Retry Strategy Mixins
# ============================================================================

class RetryableError(MigrationException):
    """
    Mixin for errors that should trigger retry logic.

    Use this for transient errors like:
    - Network timeouts
    - Rate limiting (HTTP 429)
    - Service unavailable (HTTP 503)
    """

    def __init__(
        self,
        message: str,
        context: Optional[Dict[str, Any]] = None,
        original_exception: Optional[Exception] = None,
        max_retries: int = 3,
        retry_delay: float = 1.0
    ):
        super().__init__(message, context, original_exception)
        self.max_retries = max_retries
        self.retry_delay = retry_delay


class NonRetryableError(MigrationException):
    """
    Mixin for errors that should NOT trigger retry logic.

    Use this for permanent errors like:
    - Authentication failures (HTTP 401, 403)
    - Resource not found (HTTP 404)
    """
    pass


class NetworkError(RetryableError, FetchError):
    """Network-related errors that should be retried."""
    pass


class RateLimitError(RetryableError, FetchError):
    """Rate limiting errors (HTTP 429) that should be retried with backoff."""

    def __init__(
        self,
        message: str,
        context: Optional[Dict[str, Any]] = None,
        original_exception: Optional[Exception] = None,
        retry_after: Optional[int] = None
    ):
        super().__init__(message, context, original_exception)
        self.retry_after = retry_after
        if retry_after:
            self.context["retry_after"] = retry_after


class AuthenticationError(NonRetryableError, FetchError):
    """Authentication failures (HTTP 401, 403) that should not be retried."""
    pass
