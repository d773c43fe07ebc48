from enum import Enum
from typing import Dict, FrozenSet


class StackStatus(str, Enum):
    AVAILABLE = "AVAILABLE"  # unlinked, free to allocate
    CREATE_PENDING = "CREATE_PENDING"
    CREATE_COMPLETE = "CREATE_COMPLETE"
    CREATE_FAILED = "CREATE_FAILED"
    UPDATE_PENDING = "UPDATE_PENDING"
    UPDATE_COMPLETE = "UPDATE_COMPLETE"
    UPDATE_FAILED = "UPDATE_FAILED"
    UPDATE_ROLLBACK_PENDING = "UPDATE_ROLLBACK_PENDING"
    UPDATE_ROLLBACK_COMPLETE = "UPDATE_ROLLBACK_COMPLETE"
    UPDATE_ROLLBACK_FAILED = "UPDATE_ROLLBACK_FAILED"
    DELETE_PENDING = "DELETE_PENDING"
    DELETE_COMPLETE = "DELETE_COMPLETE"
    DELETE_FAILED = "DELETE_FAILED"
    ROLLBACK_PENDING = "ROLLBACK_PENDING"
    ROLLBACK_COMPLETE = "ROLLBACK_COMPLETE"
    ROLLBACK_FAILED = "ROLLBACK_FAILED"
    REVIEW_PENDING = "REVIEW_PENDING"


class DeletionClassification(str, Enum):
    INITIATED = "DELETE_INITIATED"
    ALREADY_DELETING = "ALREADY_DELETING"
    SKIPPED_IN_PROGRESS = "OPERATION_IN_PROGRESS"
    FAILED = "DELETE_FAILED"


PENDING_STATUSES: FrozenSet[StackStatus] = frozenset(
    s for s in StackStatus if s.value.endswith("_PENDING")
)

# Statuses that carry stack outputs
OUTPUT_STATUSES: FrozenSet[StackStatus] = frozenset(
    {StackStatus.CREATE_COMPLETE, StackStatus.UPDATE_COMPLETE}
)

# The stack is not transitioning and is not healthy
FAILURE_TERMINAL_STATUSES: FrozenSet[StackStatus] = frozenset(
    {
        StackStatus.CREATE_FAILED,
        StackStatus.UPDATE_FAILED,
        StackStatus.UPDATE_ROLLBACK_FAILED,
        StackStatus.DELETE_FAILED,
        StackStatus.ROLLBACK_COMPLETE,
        StackStatus.ROLLBACK_FAILED,
    }
)

# Needs no further reconciliation unless the stack is removed out of band
TERMINAL_STATUSES: FrozenSet[StackStatus] = frozenset(
    s
    for s in StackStatus
    if s is not StackStatus.AVAILABLE and s not in PENDING_STATUSES
)

# Every status may be reset to AVAILABLE once the stack is gone.
ALLOWED_TRANSITIONS: Dict[StackStatus, FrozenSet[StackStatus]] = {
    StackStatus.AVAILABLE: frozenset({StackStatus.CREATE_PENDING}),
    StackStatus.CREATE_PENDING: frozenset(
        {
            StackStatus.CREATE_COMPLETE,
            StackStatus.CREATE_FAILED,
            StackStatus.ROLLBACK_PENDING,
            StackStatus.DELETE_PENDING,
            StackStatus.AVAILABLE,
        }
    ),
    StackStatus.CREATE_COMPLETE: frozenset(
        {
            StackStatus.UPDATE_PENDING,
            StackStatus.DELETE_PENDING,
            StackStatus.AVAILABLE,
        }
    ),
    StackStatus.CREATE_FAILED: frozenset(
        {
            StackStatus.ROLLBACK_PENDING,
            StackStatus.DELETE_PENDING,
            StackStatus.AVAILABLE,
        }
    ),
    StackStatus.UPDATE_PENDING: frozenset(
        {
            StackStatus.UPDATE_COMPLETE,
            StackStatus.UPDATE_FAILED,
            StackStatus.UPDATE_ROLLBACK_PENDING,
            StackStatus.DELETE_PENDING,
            StackStatus.AVAILABLE,
        }
    ),
    StackStatus.UPDATE_COMPLETE: frozenset(
        {
            StackStatus.UPDATE_PENDING,
            StackStatus.DELETE_PENDING,
            StackStatus.AVAILABLE,
        }
    ),
    StackStatus.UPDATE_FAILED: frozenset(
        {
            StackStatus.UPDATE_PENDING,
            StackStatus.UPDATE_ROLLBACK_PENDING,
            StackStatus.DELETE_PENDING,
            StackStatus.AVAILABLE,
        }
    ),
    StackStatus.UPDATE_ROLLBACK_PENDING: frozenset(
        {
            StackStatus.UPDATE_ROLLBACK_COMPLETE,
            StackStatus.UPDATE_ROLLBACK_FAILED,
            StackStatus.DELETE_PENDING,
            StackStatus.AVAILABLE,
        }
    ),
    StackStatus.UPDATE_ROLLBACK_COMPLETE: frozenset(
        {
            StackStatus.UPDATE_PENDING,
            StackStatus.DELETE_PENDING,
            StackStatus.AVAILABLE,
        }
    ),
    StackStatus.UPDATE_ROLLBACK_FAILED: frozenset(
        {
            StackStatus.UPDATE_ROLLBACK_PENDING,
            StackStatus.DELETE_PENDING,
            StackStatus.AVAILABLE,
        }
    ),
    StackStatus.DELETE_PENDING: frozenset(
        {
            StackStatus.DELETE_COMPLETE,
            StackStatus.DELETE_FAILED,
            StackStatus.AVAILABLE,
        }
    ),
    StackStatus.DELETE_COMPLETE: frozenset({StackStatus.AVAILABLE}),
    StackStatus.DELETE_FAILED: frozenset(
        {StackStatus.DELETE_PENDING, StackStatus.AVAILABLE}
    ),
    StackStatus.ROLLBACK_PENDING: frozenset(
        {
            StackStatus.ROLLBACK_COMPLETE,
            StackStatus.ROLLBACK_FAILED,
            StackStatus.DELETE_PENDING,
            StackStatus.AVAILABLE,
        }
    ),
    StackStatus.ROLLBACK_COMPLETE: frozenset(
        {StackStatus.DELETE_PENDING, StackStatus.AVAILABLE}
    ),
    StackStatus.ROLLBACK_FAILED: frozenset(
        {StackStatus.DELETE_PENDING, StackStatus.AVAILABLE}
    ),
    StackStatus.REVIEW_PENDING: frozenset(
        {
            StackStatus.CREATE_PENDING,
            StackStatus.DELETE_PENDING,
            StackStatus.AVAILABLE,
        }
    ),
}

# CloudFormation stack statuses -> StackStatus
EXTERNAL_STATUS_MAP: Dict[str, StackStatus] = {
    "CREATE_IN_PROGRESS": StackStatus.CREATE_PENDING,
    "CREATE_COMPLETE": StackStatus.CREATE_COMPLETE,
    "CREATE_FAILED": StackStatus.CREATE_FAILED,
    "ROLLBACK_IN_PROGRESS": StackStatus.ROLLBACK_PENDING,
    "ROLLBACK_COMPLETE": StackStatus.ROLLBACK_COMPLETE,
    "ROLLBACK_FAILED": StackStatus.ROLLBACK_FAILED,
    "DELETE_IN_PROGRESS": StackStatus.DELETE_PENDING,
    "DELETE_COMPLETE": StackStatus.DELETE_COMPLETE,
    "DELETE_FAILED": StackStatus.DELETE_FAILED,
    "UPDATE_IN_PROGRESS": StackStatus.UPDATE_PENDING,
    "UPDATE_COMPLETE_CLEANUP_IN_PROGRESS": StackStatus.UPDATE_PENDING,
    "UPDATE_COMPLETE": StackStatus.UPDATE_COMPLETE,
    "UPDATE_FAILED": StackStatus.UPDATE_FAILED,
    "UPDATE_ROLLBACK_IN_PROGRESS": StackStatus.UPDATE_ROLLBACK_PENDING,
    "UPDATE_ROLLBACK_COMPLETE_CLEANUP_IN_PROGRESS": (
        StackStatus.UPDATE_ROLLBACK_PENDING
    ),
    "UPDATE_ROLLBACK_COMPLETE": StackStatus.UPDATE_ROLLBACK_COMPLETE,
    "UPDATE_ROLLBACK_FAILED": StackStatus.UPDATE_ROLLBACK_FAILED,
    "REVIEW_IN_PROGRESS": StackStatus.REVIEW_PENDING,
    "IMPORT_IN_PROGRESS": StackStatus.UPDATE_PENDING,
    "IMPORT_COMPLETE": StackStatus.UPDATE_COMPLETE,
    "IMPORT_ROLLBACK_IN_PROGRESS": StackStatus.UPDATE_ROLLBACK_PENDING,
    "IMPORT_ROLLBACK_COMPLETE": StackStatus.UPDATE_ROLLBACK_COMPLETE,
    "IMPORT_ROLLBACK_FAILED": StackStatus.UPDATE_ROLLBACK_FAILED,
}

# Stacks that still exist from the external manager's point of view
LIVE_EXTERNAL_STATUSES = tuple(
    name for name in EXTERNAL_STATUS_MAP if name != "DELETE_COMPLETE"
)

PROGRESS_MESSAGES: Dict[StackStatus, str] = {
    StackStatus.AVAILABLE: "No stack is linked to this code",
    StackStatus.CREATE_PENDING: "Stack creation in progress...",
    StackStatus.CREATE_COMPLETE: "Stack is running",
    StackStatus.CREATE_FAILED: "Stack creation failed",
    StackStatus.UPDATE_PENDING: "Stack update in progress...",
    StackStatus.UPDATE_COMPLETE: "Stack is running",
    StackStatus.UPDATE_FAILED: "Stack update failed",
    StackStatus.UPDATE_ROLLBACK_PENDING: "Rolling back stack update...",
    StackStatus.UPDATE_ROLLBACK_COMPLETE: (
        "Stack update was rolled back; stack is running"
    ),
    StackStatus.UPDATE_ROLLBACK_FAILED: "Stack update rollback failed",
    StackStatus.DELETE_PENDING: "Deleting stack resources...",
    StackStatus.DELETE_COMPLETE: "Stack deletion completed successfully",
    StackStatus.DELETE_FAILED: (
        "Stack deletion failed - manual intervention may be required"
    ),
    StackStatus.ROLLBACK_PENDING: "Rolling back stack creation...",
    StackStatus.ROLLBACK_COMPLETE: "Stack creation was rolled back",
    StackStatus.ROLLBACK_FAILED: (
        "Stack rollback failed - manual intervention may be required"
    ),
    StackStatus.REVIEW_PENDING: "Stack is waiting for change set review",
}

# Tag keys written on every created stack
CODE_TAG_KEY = "AccessCode"
BATCH_TAG_KEY = "BatchId"
CREATED_AT_TAG_KEY = "CreatedAt"
MANAGED_BY_TAG_KEY = "ManagedBy"
