"""
Deletion of linked stacks and projection of their deletion progress.

A deletion only flips the record to DELETE_PENDING. The record returns to
AVAILABLE when a reconciliation pass sees the stack gone.
"""

import logging
from dataclasses import dataclass, field
from typing import Any, Dict, Optional

from stack_pool.config import PoolConfig
from stack_pool.constants import (
    FAILURE_TERMINAL_STATUSES,
    PENDING_STATUSES,
    PROGRESS_MESSAGES,
    DeletionClassification,
    StackStatus,
)
from stack_pool.data._base import ExternalResourceClient
from stack_pool.data.dynamo_client import DynamoClient
from stack_pool.data.shared_exceptions import (
    AlreadyInProgressError,
    NotFoundError,
    OperationInProgressError,
    StackPoolError,
)
from stack_pool.entities.code_record import CodeRecord, validate_transition
from stack_pool.utils.advisory import Advisory, run_advisory
from stack_pool.utils.concurrency import run_bounded

logger = logging.getLogger(__name__)


@dataclass
class DeletionOutcome:
    code: str
    success: bool
    status: StackStatus
    message: str
    error_code: Optional[str] = None
    record_update: Optional[Advisory] = None

    def to_dict(self) -> Dict[str, Any]:
        data: Dict[str, Any] = {
            "code": self.code,
            "success": self.success,
            "status": self.status.value,
            "message": self.message,
        }
        if self.error_code:
            data["errorCode"] = self.error_code
        return data


@dataclass
class BulkDeletionItem:
    code: str
    classification: DeletionClassification
    message: str
    resource_name: Optional[str] = None
    error_code: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        data = {
            "code": self.code,
            "result": self.classification.value,
            "message": self.message,
        }
        if self.resource_name:
            data["resourceName"] = self.resource_name
        if self.error_code:
            data["errorCode"] = self.error_code
        return data


@dataclass
class BulkDeletionResult:
    results: Dict[str, BulkDeletionItem] = field(default_factory=dict)

    def count(self, classification: DeletionClassification) -> int:
        return sum(1 for r in self.results.values() if r.classification is classification)

    @property
    def summary(self) -> str:
        if not self.results:
            return "No active stacks found to delete"
        parts = [
            f"Initiated deletion for "
            f"{self.count(DeletionClassification.INITIATED)} stacks"
        ]
        already = self.count(DeletionClassification.ALREADY_DELETING)
        if already:
            parts.append(f"{already} already being deleted")
        skipped = self.count(DeletionClassification.SKIPPED_IN_PROGRESS)
        if skipped:
            parts.append(f"{skipped} skipped (operation in progress)")
        failed = self.count(DeletionClassification.FAILED)
        if failed:
            parts.append(f"{failed} failed")
        return ". ".join(parts) + "."

    def to_dict(self) -> Dict[str, Any]:
        return {
            "summary": self.summary,
            "totalStacks": len(self.results),
            "counts": {c.value: self.count(c) for c in DeletionClassification},
            "results": {code: r.to_dict() for code, r in self.results.items()},
        }


@dataclass
class DeletionStatus:
    code: str
    status: StackStatus
    message: str
    is_complete: bool
    resource_name: Optional[str] = None
    last_updated: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "code": self.code,
            "status": self.status.value,
            "message": self.message,
            "isComplete": self.is_complete,
            "resourceName": self.resource_name,
            "lastUpdated": self.last_updated,
        }


def is_deletion_complete(status: StackStatus) -> bool:
    return status is StackStatus.DELETE_COMPLETE or status in FAILURE_TERMINAL_STATUSES


def project_status(code: str, record: Optional[CodeRecord]) -> DeletionStatus:
    """Projects a stored record onto the fixed progress-message table.

    A missing or unlinked record means the stack is gone.
    """
    if record is None or not record.is_linked:
        status = StackStatus.DELETE_COMPLETE
        return DeletionStatus(
            code=code,
            status=status,
            message=PROGRESS_MESSAGES[status],
            is_complete=True,
        )
    return DeletionStatus(
        code=code,
        status=record.status,
        message=PROGRESS_MESSAGES[record.status],
        is_complete=is_deletion_complete(record.status),
        resource_name=record.resource_name,
        last_updated=record.last_sync_at or record.updated_at,
    )


class DeletionService:
    """Deletes linked stacks one at a time or in bulk."""

    def __init__(
        self,
        config: PoolConfig,
        store: DynamoClient,
        stacks: ExternalResourceClient,
    ):
        self.config = config
        self.store = store
        self.stacks = stacks

    def delete_one(self, code: str) -> DeletionOutcome:
        """
        Starts deletion of the stack linked to ``code``.

        Returns an unsuccessful outcome, rather than raising, when the stack
        is already being deleted.

        Raises:
            NotFoundError: The code is unknown or has no linked stack
            OperationInProgressError: Another transition is still running
        """
        record = self.store.get_code_record(code)
        if record is None or not record.is_linked or not record.resource_ref:
            raise NotFoundError(f"No linked stack for code {code}")

        if record.status is StackStatus.DELETE_PENDING:
            logger.info("Stack %s is already being deleted", record.resource_name)
            return DeletionOutcome(
                code=code,
                success=False,
                status=record.status,
                message=AlreadyInProgressError.public_message,
                error_code=AlreadyInProgressError.code,
            )
        if record.status in PENDING_STATUSES:
            raise OperationInProgressError(
                f"Stack {record.resource_name} is {record.status.value}",
                details={"status": record.status.value},
            )
        validate_transition(record.status, StackStatus.DELETE_PENDING)

        self.stacks.delete_stack(record.resource_name)

        update = run_advisory(
            f"mark {code} DELETE_PENDING",
            self.store.update_code_record_fields,
            code,
            {"status": StackStatus.DELETE_PENDING},
            remove_fields=("outputs", "sync_error"),
            expected_status=record.status,
            extra_condition="resource_ref = :ref",
            extra_values={":ref": {"S": record.resource_ref}},
        )
        if not update.ok:
            logger.warning(
                "Deletion of %s started but its record was not updated; "
                "the next sync pass will catch up",
                record.resource_name,
            )
        return DeletionOutcome(
            code=code,
            success=True,
            status=StackStatus.DELETE_PENDING,
            message="Stack deletion initiated successfully",
            record_update=update,
        )

    def delete_all(self) -> BulkDeletionResult:
        """Starts deletion of every linked stack with bounded concurrency."""
        linked = [r for r in self.store.list_code_records() if r.is_linked]
        logger.info("Bulk deletion of %d linked stacks", len(linked))
        items = run_bounded(self._attempt, linked, self.config.delete_max_workers)
        result = BulkDeletionResult(results={item.code: item for item in items})
        logger.info(result.summary)
        return result

    def _attempt(self, record: CodeRecord) -> BulkDeletionItem:
        name = record.resource_name
        try:
            outcome = self.delete_one(record.code)
        except OperationInProgressError as e:
            return BulkDeletionItem(
                code=record.code,
                classification=DeletionClassification.SKIPPED_IN_PROGRESS,
                message=e.public_message,
                resource_name=name,
                error_code=e.code,
            )
        except NotFoundError:
            return BulkDeletionItem(
                code=record.code,
                classification=DeletionClassification.ALREADY_DELETING,
                message="Stack is no longer linked",
                resource_name=name,
            )
        except StackPoolError as e:
            logger.warning("Bulk delete of %s failed: %s", name, e)
            return BulkDeletionItem(
                code=record.code,
                classification=DeletionClassification.FAILED,
                message=e.public_message,
                resource_name=name,
                error_code=e.code,
            )
        except Exception:  # pylint: disable=broad-exception-caught
            logger.exception("Unexpected error deleting %s", name)
            return BulkDeletionItem(
                code=record.code,
                classification=DeletionClassification.FAILED,
                message=StackPoolError.public_message,
                resource_name=name,
                error_code=StackPoolError.code,
            )

        if not outcome.success:
            return BulkDeletionItem(
                code=record.code,
                classification=DeletionClassification.ALREADY_DELETING,
                message=outcome.message,
                resource_name=name,
                error_code=outcome.error_code,
            )
        return BulkDeletionItem(
            code=record.code,
            classification=DeletionClassification.INITIATED,
            message=outcome.message,
            resource_name=name,
        )

    def status(self, code: str) -> DeletionStatus:
        return project_status(code, self.store.get_code_record(code))

    def status_all(self) -> Dict[str, DeletionStatus]:
        """Deletion progress for every linked code."""
        return {
            r.code: project_status(r.code, r)
            for r in self.store.list_code_records()
            if r.is_linked
        }
