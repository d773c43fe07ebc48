"""Custom exceptions for the stack_pool engine.

Every error carries a machine-readable ``code`` and a generic
``public_message`` that is safe to hand to untrusted callers. The exception's
own ``str()`` may contain internal detail and is meant for logs only.
"""

from typing import Any, Dict, Optional


class StackPoolError(Exception):
    """Base exception for all stack_pool errors."""

    code = "UNKNOWN"
    public_message = "An unexpected error occurred"
    retryable = False

    def __init__(
        self,
        message: Optional[str] = None,
        details: Optional[Dict[str, Any]] = None,
    ):
        super().__init__(message or self.public_message)
        self.details: Dict[str, Any] = details or {}

    def to_dict(self) -> Dict[str, Any]:
        """Returns the caller-safe representation of this error."""
        payload: Dict[str, Any] = {
            "code": self.code,
            "message": self.public_message,
            "retryable": self.retryable,
        }
        if self.details:
            payload["details"] = dict(self.details)
        return payload


class UnknownError(StackPoolError):
    """Raised when a failure cannot be classified."""


# Domain exceptions
class PoolExhaustedError(StackPoolError):
    """Raised when fewer codes are available than were requested."""

    code = "POOL_EXHAUSTED"
    public_message = "Not enough access codes are available"

    def __init__(self, requested: int, available: int):
        super().__init__(
            f"Requested {requested} codes but only {available} available",
            details={"requested": requested, "available": available},
        )
        self.requested = requested
        self.available = available


class InvalidSelectionError(StackPoolError):
    """Raised for a bad count or bad, duplicate or unavailable explicit ids."""

    code = "INVALID_SELECTION"
    public_message = "The requested access code selection is invalid"


class NotFoundError(StackPoolError):
    """Raised when a code has no record or no linked stack."""

    code = "NOT_FOUND"
    public_message = "No stack found for the provided access code"


class OperationInProgressError(StackPoolError):
    """Raised when a conflicting transition is already running."""

    code = "OPERATION_IN_PROGRESS"
    public_message = (
        "Another stack operation is in progress; try again when it completes"
    )


class AlreadyInProgressError(StackPoolError):
    """Raised when the same operation has already been requested."""

    code = "ALREADY_IN_PROGRESS"
    public_message = "The requested operation is already in progress"


class StackErrorStateError(StackPoolError):
    """Raised when outputs are requested for a stack in a failed state."""

    code = "STACK_ERROR_STATE"
    public_message = "The stack is in an error state"


class InvalidTransitionError(StackPoolError):
    """Raised when a status change is not in the transition table."""

    code = "INVALID_TRANSITION"
    public_message = "The requested status change is not allowed"


class EntityValidationError(StackPoolError):
    """Raised when an argument or entity fails validation."""

    code = "VALIDATION_ERROR"
    public_message = "The request is invalid"


class ConditionalWriteError(StackPoolError):
    """Raised when a record changed between read and write."""

    code = "CONCURRENT_MODIFICATION"
    public_message = "The record was modified concurrently"
    retryable = True


class BatchPartiallyFailedError(StackPoolError):
    """Raised when too many creations in a batch fail.

    ``result`` holds the outcomes gathered before the batch was aborted.
    """

    code = "BATCH_PARTIALLY_FAILED"
    public_message = "Too many stack deployments failed; the batch was aborted"

    def __init__(self, result: Any, message: Optional[str] = None):
        super().__init__(message)
        self.result = result

    def to_dict(self) -> Dict[str, Any]:
        payload = super().to_dict()
        payload["result"] = self.result.to_dict()
        return payload


# DynamoDB specific exceptions
class StoreError(StackPoolError):
    """Base exception for code store operations."""

    code = "STORE_ERROR"
    public_message = "The code store request failed"


class StoreRetryableError(StoreError):
    """A transient store failure that may succeed if retried later."""

    retryable = True


class StoreCriticalError(StoreError):
    """A store failure that will not succeed without intervention."""


class StoreThrottledError(StoreRetryableError):
    """Raised when DynamoDB throttles the request."""

    code = "STORE_THROTTLED"
    public_message = "The code store is busy; try again later"


class StoreUnavailableError(StoreRetryableError):
    """Raised on DynamoDB server errors and timeouts."""

    code = "STORE_UNAVAILABLE"
    public_message = "The code store is temporarily unavailable"


class StoreAccessDeniedError(StoreCriticalError):
    """Raised when access to DynamoDB is denied."""

    code = "STORE_ACCESS_DENIED"
    public_message = "Access to the code store was denied"


class StoreValidationError(StoreCriticalError):
    """Raised when DynamoDB rejects the request."""

    code = "STORE_VALIDATION_ERROR"
    public_message = "The code store rejected the request"


class StoreResourceNotFoundError(StoreCriticalError):
    """Raised when the DynamoDB table does not exist."""

    code = "STORE_TABLE_NOT_FOUND"
    public_message = "The code store is not configured"


# CloudFormation / EventBridge exceptions
class ExternalServiceError(StackPoolError):
    """Base exception for external resource manager and scheduler calls."""

    code = "EXTERNAL_SERVICE_ERROR"
    public_message = "The external service request failed"


class ExternalServiceRetryableError(ExternalServiceError):
    """A transient external failure that may succeed if retried later."""

    retryable = True


class ExternalServiceCriticalError(ExternalServiceError):
    """An external failure that will not succeed if retried as-is."""


class ExternalServiceThrottledError(ExternalServiceRetryableError):
    """Raised when the external service throttles the request."""

    code = "EXTERNAL_SERVICE_THROTTLED"
    public_message = "Too many requests; try again later"


class ExternalServiceUnavailableError(ExternalServiceRetryableError):
    """Raised on external server errors and timeouts."""

    code = "EXTERNAL_SERVICE_UNAVAILABLE"
    public_message = "The external service is temporarily unavailable"


class ExternalServiceAccessDeniedError(ExternalServiceCriticalError):
    """Raised when the external service denies access."""

    code = "EXTERNAL_SERVICE_ACCESS_DENIED"
    public_message = "Insufficient permissions for the requested operation"


class ExternalServiceValidationError(ExternalServiceCriticalError):
    """Raised when the external service rejects the request."""

    code = "EXTERNAL_SERVICE_VALIDATION"
    public_message = "The external service rejected the request"


class StackNotFoundError(ExternalServiceError):
    """Raised when the external resource does not exist."""

    code = "STACK_NOT_FOUND"
    public_message = "The stack does not exist"
