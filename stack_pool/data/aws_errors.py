"""
Error translation for the CloudFormation and EventBridge adapters.

Raw AWS error text is logged here and kept out of ``public_message``.
"""

import logging
from functools import wraps
from typing import Dict, Type

from botocore.exceptions import BotoCoreError, ClientError

from stack_pool.data.shared_exceptions import (
    ExternalServiceAccessDeniedError,
    ExternalServiceError,
    ExternalServiceThrottledError,
    ExternalServiceUnavailableError,
    ExternalServiceValidationError,
    StackNotFoundError,
)

logger = logging.getLogger(__name__)

ERROR_CODE_MAP: Dict[str, Type[ExternalServiceError]] = {
    "Throttling": ExternalServiceThrottledError,
    "ThrottlingException": ExternalServiceThrottledError,
    "RequestLimitExceeded": ExternalServiceThrottledError,
    "TooManyRequestsException": ExternalServiceThrottledError,
    "ServiceUnavailable": ExternalServiceUnavailableError,
    "ServiceUnavailableException": ExternalServiceUnavailableError,
    "InternalFailure": ExternalServiceUnavailableError,
    "InternalException": ExternalServiceUnavailableError,
    "AccessDenied": ExternalServiceAccessDeniedError,
    "AccessDeniedException": ExternalServiceAccessDeniedError,
    "UnauthorizedOperation": ExternalServiceAccessDeniedError,
    "ValidationError": ExternalServiceValidationError,
    "ValidationException": ExternalServiceValidationError,
    "AlreadyExistsException": ExternalServiceValidationError,
    "LimitExceededException": ExternalServiceValidationError,
    "InsufficientCapabilitiesException": ExternalServiceValidationError,
    "ResourceNotFoundException": ExternalServiceValidationError,
}


def is_not_found_error(error: ClientError) -> bool:
    """CloudFormation reports a missing stack as a ValidationError."""
    err = error.response.get("Error", {})
    return err.get("Code") == "ValidationError" and "does not exist" in err.get(
        "Message", ""
    )


def translate_client_error(
    error: ClientError, service: str, operation: str
) -> ExternalServiceError:
    err = error.response.get("Error", {})
    code = err.get("Code", "")
    message = err.get("Message", "")
    if is_not_found_error(error):
        return StackNotFoundError(
            f"{service} {operation}: {message}",
            details={"operation": operation},
        )
    exc_type = ERROR_CODE_MAP.get(code, ExternalServiceError)
    logger.error("%s %s failed (%s): %s", service, operation, code, message)
    return exc_type(
        f"{service} {operation} failed: {code} {message}".strip(),
        details={"operation": operation},
    )


def handle_aws_errors(service: str, operation_name: str):
    """
    Decorator translating botocore failures into stack_pool exceptions.

    Args:
        service: Service name used in log lines
        operation_name: Name of the operation for error context
    """

    def decorator(func):
        @wraps(func)
        def wrapper(*args, **kwargs):
            try:
                return func(*args, **kwargs)
            except ClientError as e:
                raise translate_client_error(e, service, operation_name) from e
            except BotoCoreError as e:
                # Timeouts and connection failures are retryable
                logger.warning("%s %s did not complete: %s", service, operation_name, e)
                raise ExternalServiceUnavailableError(
                    f"{service} {operation_name}: {e}",
                    details={"operation": operation_name},
                ) from e

        return wrapper

    return decorator
