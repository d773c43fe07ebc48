"""
Base classes and mixins for DynamoDB operations.

Error translation lives here so that every accessor raises the same
``stack_pool`` exceptions for the same DynamoDB failure.
"""

import logging
import time
from functools import wraps
from typing import Any, Dict, List, Optional

from botocore.exceptions import BotoCoreError, ClientError

from stack_pool.data._base import (
    DynamoClientProtocol,
    KeysAndAttributesTypeDef,
    WriteRequestTypeDef,
)
from stack_pool.data.shared_exceptions import (
    ConditionalWriteError,
    StoreAccessDeniedError,
    StoreError,
    StoreResourceNotFoundError,
    StoreThrottledError,
    StoreUnavailableError,
    StoreValidationError,
)
from stack_pool.utils.retry_with_backoff import exponential_backoff_with_jitter

logger = logging.getLogger(__name__)

# DynamoDB request limits
BATCH_WRITE_CHUNK_SIZE = 25
BATCH_GET_CHUNK_SIZE = 100


def handle_dynamodb_errors(operation_name: str):
    """
    Decorator to handle DynamoDB errors consistently across all operations.

    Args:
        operation_name: Name of the operation for error context
    """

    def decorator(func):
        @wraps(func)
        def wrapper(self, *args, **kwargs):
            try:
                return func(self, *args, **kwargs)
            except ClientError as e:
                self._handle_client_error(
                    e,
                    operation_name,
                    context={"args": args, "kwargs": kwargs},
                )
                # Safety net: if _handle_client_error doesn't raise, re-raise
                # original
                raise
            except BotoCoreError as e:
                logger.warning(
                    "DynamoDB %s failed before a response: %s",
                    operation_name,
                    e,
                )
                raise StoreUnavailableError(
                    f"{operation_name}: {e}"
                ) from e

        return wrapper

    return decorator


class DynamoDBBaseOperations(DynamoClientProtocol):
    """
    Base class for DynamoDB operations with common functionality.

    Maps DynamoDB error codes onto the store exception hierarchy.
    """

    def _handle_client_error(
        self,
        error: ClientError,
        operation: str,
        context: Optional[dict] = None,
    ) -> None:
        """
        Centralized error handling for all DynamoDB operations.

        Args:
            error: The ClientError from boto3
            operation: Name of the operation that failed
            context: Additional context for error reporting

        Raises:
            Appropriate exception based on error code
        """
        error_code = error.response.get("Error", {}).get("Code", "")
        error_message = error.response.get("Error", {}).get("Message", "")

        error_handlers = {
            "ConditionalCheckFailedException": ConditionalWriteError,
            "ProvisionedThroughputExceededException": StoreThrottledError,
            "ThrottlingException": StoreThrottledError,
            "RequestLimitExceeded": StoreThrottledError,
            "InternalServerError": StoreUnavailableError,
            "ServiceUnavailable": StoreUnavailableError,
            "AccessDeniedException": StoreAccessDeniedError,
            "UnrecognizedClientException": StoreAccessDeniedError,
            "ValidationException": StoreValidationError,
            "ResourceNotFoundException": StoreResourceNotFoundError,
        }
        exc_type = error_handlers.get(error_code, StoreError)

        if exc_type is not ConditionalWriteError:
            logger.error(
                "DynamoDB %s failed (%s): %s context=%s",
                operation,
                error_code,
                error_message,
                context,
            )
        raise exc_type(
            f"{operation} failed: {error_code} {error_message}".strip(),
            details={"operation": operation},
        ) from error


class BatchOperationsMixin:
    """
    Mixin providing batch operations with automatic chunking and retry.

    Classes using this mixin must inherit from DynamoClientProtocol to provide:
    - _client: DynamoDB client
    - table_name: DynamoDB table name
    """

    # Type hints for required attributes from DynamoClientProtocol
    _client: Any
    table_name: str

    def _batch_write_with_retry(
        self, request_items: List[WriteRequestTypeDef], max_retries: int = 3
    ) -> None:
        """
        Generic batch write with automatic retry for unprocessed items.

        Args:
            request_items: List of DynamoDB write request items
            max_retries: Maximum number of retry attempts
        """
        for i in range(0, len(request_items), BATCH_WRITE_CHUNK_SIZE):
            chunk = request_items[i : i + BATCH_WRITE_CHUNK_SIZE]

            # Let ClientError exceptions bubble up to be handled by
            # @handle_dynamodb_errors
            response = self._client.batch_write_item(
                RequestItems={self.table_name: chunk}
            )

            unprocessed = response.get("UnprocessedItems", {})
            retry_count = 0

            while unprocessed.get(self.table_name) and retry_count < max_retries:
                time.sleep(
                    exponential_backoff_with_jitter(
                        retry_count, base_delay=0.05, max_delay=2.0
                    )
                )
                response = self._client.batch_write_item(RequestItems=unprocessed)
                unprocessed = response.get("UnprocessedItems", {})
                retry_count += 1

            if unprocessed.get(self.table_name):
                raise StoreThrottledError(
                    (
                        "Failed to process all items after "
                        f"{max_retries} retries. "
                        f"Remaining items: {len(unprocessed[self.table_name])}"
                    )
                )

    def _batch_get_with_retry(
        self, keys: List[Dict[str, Any]], max_retries: int = 3
    ) -> List[Dict[str, Any]]:
        """
        Generic batch get with automatic retry for unprocessed keys.

        Args:
            keys: DynamoDB primary keys to fetch
            max_retries: Maximum number of retry attempts

        Returns:
            The raw items that exist, in no particular order
        """
        items: List[Dict[str, Any]] = []
        for i in range(0, len(keys), BATCH_GET_CHUNK_SIZE):
            request: Dict[str, KeysAndAttributesTypeDef] = {
                self.table_name: {
                    "Keys": keys[i : i + BATCH_GET_CHUNK_SIZE],
                    "ConsistentRead": True,
                }
            }
            retry_count = 0
            while request:
                response = self._client.batch_get_item(RequestItems=request)
                items.extend(response.get("Responses", {}).get(self.table_name, []))
                request = response.get("UnprocessedKeys") or {}
                if not request.get(self.table_name):
                    break
                if retry_count >= max_retries:
                    raise StoreThrottledError(
                        "Failed to read all items after "
                        f"{max_retries} retries. Remaining keys: "
                        f"{len(request[self.table_name]['Keys'])}"
                    )
                time.sleep(
                    exponential_backoff_with_jitter(
                        retry_count, base_delay=0.05, max_delay=2.0
                    )
                )
                retry_count += 1
        return items
