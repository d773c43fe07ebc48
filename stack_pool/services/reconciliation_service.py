"""
Reconciliation of stored code records against CloudFormation.

CloudFormation is the source of truth. Each pass visits every linked record
(and every stale allocation reservation), mirrors the stack's status, name,
ARN and outputs onto the record, and returns codes whose stacks are gone to
AVAILABLE. When nothing is left to reconcile the sync trigger is disabled.

Every write is conditioned on the version read at the start of the pass, so
a record changed concurrently by an allocation or a deletion is skipped and
picked up again on the next pass.
"""

import logging
import time
from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Dict, List, Optional, Tuple

from stack_pool.config import PoolConfig
from stack_pool.constants import OUTPUT_STATUSES, StackStatus
from stack_pool.data._base import ExternalResourceClient
from stack_pool.data.cloudformation_client import StackDescription
from stack_pool.data.dynamo_client import DynamoClient
from stack_pool.data.shared_exceptions import (
    ConditionalWriteError,
    StackNotFoundError,
    StackPoolError,
)
from stack_pool.entities.code_record import CodeRecord, is_allowed_transition
from stack_pool.entities.util import parse_iso, utc_now_iso
from stack_pool.services.trigger_controller import TriggerController
from stack_pool.utils.advisory import Advisory, run_advisory
from stack_pool.utils.concurrency import run_bounded

logger = logging.getLogger(__name__)

MAX_SYNC_ERROR_LENGTH = 1000


class SyncOutcome(str, Enum):
    UPDATED = "UPDATED"
    UNCHANGED = "UNCHANGED"
    RESET = "RESET"
    SKIPPED = "SKIPPED"  # fresh reservation, allocation still running
    CONFLICT = "CONFLICT"
    FAILED = "FAILED"
    DEFERRED = "DEFERRED"  # pass ran out of time


@dataclass
class RecordSyncResult:
    code: str
    outcome: SyncOutcome
    error: Optional[StackPoolError] = None


@dataclass
class RecordChanges:
    set_fields: Dict[str, Any] = field(default_factory=dict)
    remove_fields: Tuple[str, ...] = ()

    @property
    def is_empty(self) -> bool:
        return not self.set_fields and not self.remove_fields


@dataclass
class SyncResult:
    processed: int = 0
    succeeded: int = 0
    failed: int = 0
    conflicts: int = 0
    deferred: int = 0
    errors: List[Dict[str, str]] = field(default_factory=list)
    remaining_active: Optional[int] = None
    trigger: Optional[Advisory] = None

    @property
    def trigger_disabled(self) -> Optional[bool]:
        """True if this pass switched the trigger off."""
        if self.trigger is None:
            return None
        return bool(self.trigger.ok and self.trigger.value)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "processed": self.processed,
            "succeeded": self.succeeded,
            "failed": self.failed,
            "conflicts": self.conflicts,
            "deferred": self.deferred,
            "errors": list(self.errors),
            "remainingActive": self.remaining_active,
            "triggerDisabled": self.trigger_disabled,
        }


def compute_record_changes(record: CodeRecord, stack: StackDescription) -> RecordChanges:
    """Diffs a linked record against the stack CloudFormation reports.

    Outputs are refreshed only while the stack is in a successful complete
    state and are dropped in every other state.
    """
    changes = RecordChanges()
    set_fields = changes.set_fields
    removed: List[str] = []

    if stack.status is not record.status:
        set_fields["status"] = stack.status
    if stack.stack_name != record.resource_name:
        set_fields["resource_name"] = stack.stack_name
    if stack.stack_id != record.resource_ref:
        set_fields["resource_ref"] = stack.stack_id
    if record.created_at is None:
        set_fields["created_at"] = stack.creation_time or utc_now_iso()

    if stack.status in OUTPUT_STATUSES:
        if record.outputs != stack.outputs:
            set_fields["outputs"] = list(stack.outputs)
    elif record.outputs is not None:
        removed.append("outputs")

    if record.sync_error is not None:
        removed.append("sync_error")
    changes.remove_fields = tuple(removed)
    return changes


class ReconciliationService:
    """Runs reconciliation passes."""

    def __init__(
        self,
        config: PoolConfig,
        store: DynamoClient,
        stacks: ExternalResourceClient,
        trigger: TriggerController,
    ):
        self.config = config
        self.store = store
        self.stacks = stacks
        self.trigger = trigger

    def run_pass(self, time_budget_seconds: Optional[float] = None) -> SyncResult:
        """
        Reconciles every active record once.

        Args:
            time_budget_seconds: Wall-clock budget; defaults to the configured
                one. Records not started before it runs out are deferred to
                the next pass.

        Returns:
            Counts, per-code errors and the post-pass active count
        """
        budget = time_budget_seconds
        if budget is None:
            budget = self.config.sync_time_budget_seconds
        deadline = time.monotonic() + budget
        result = SyncResult()

        records = self.store.list_active_code_records()
        logger.info("Sync pass starting: %d active records", len(records))

        if records:
            outcomes = run_bounded(
                lambda r: self._sync_guarded(r, deadline),
                records,
                self.config.sync_max_workers,
            )
            self._tally(result, outcomes)

        try:
            result.remaining_active = self.store.count_active_code_records()
        except StackPoolError as e:
            logger.warning("Could not count active records; leaving trigger as is: %s", e)
            result.remaining_active = None

        if result.remaining_active == 0:
            result.trigger = run_advisory("disable sync trigger", self.trigger.disable)
        elif result.remaining_active:
            logger.info("%d records still active, trigger stays enabled", result.remaining_active)

        logger.info(
            "Sync pass complete: processed=%d succeeded=%d failed=%d "
            "conflicts=%d deferred=%d",
            result.processed,
            result.succeeded,
            result.failed,
            result.conflicts,
            result.deferred,
        )
        return result

    @staticmethod
    def _tally(result: SyncResult, outcomes: List[RecordSyncResult]) -> None:
        for outcome in outcomes:
            if outcome.outcome is SyncOutcome.DEFERRED:
                result.deferred += 1
                continue
            result.processed += 1
            if outcome.outcome is SyncOutcome.CONFLICT:
                result.conflicts += 1
            elif outcome.outcome is SyncOutcome.FAILED:
                result.failed += 1
                error = outcome.error or StackPoolError()
                result.errors.append(
                    {
                        "code": outcome.code,
                        "error": error.public_message,
                        "errorCode": error.code,
                    }
                )
            else:
                result.succeeded += 1

    # ──────────────────────── per-record sync ─────────────────────────
    def _sync_guarded(self, record: CodeRecord, deadline: float) -> RecordSyncResult:
        if time.monotonic() >= deadline:
            return RecordSyncResult(record.code, SyncOutcome.DEFERRED)
        try:
            return self.sync_record(record)
        except ConditionalWriteError:
            logger.info("Record %s changed during sync; skipping", record.code)
            return RecordSyncResult(record.code, SyncOutcome.CONFLICT)
        except StackPoolError as e:
            logger.warning("Sync of %s failed: %s", record.code, e)
            self._record_sync_error(record, str(e))
            return RecordSyncResult(record.code, SyncOutcome.FAILED, e)
        except Exception as e:  # pylint: disable=broad-exception-caught
            logger.exception("Unexpected error syncing %s", record.code)
            self._record_sync_error(record, f"{type(e).__name__}: {e}")
            return RecordSyncResult(record.code, SyncOutcome.FAILED, StackPoolError())

    def sync_record(self, record: CodeRecord) -> RecordSyncResult:
        """Reconciles one record. Store and CloudFormation errors propagate."""
        if not record.is_linked:
            return self._recover_reservation(record)

        now = utc_now_iso()
        try:
            stack = self.stacks.describe_stack(record.resource_ref or record.resource_name)
        except StackNotFoundError:
            logger.info("Stack %s no longer exists; releasing %s", record.resource_name, record.code)
            self.store.reset_code_record(record.code, record.version, last_sync_at=now)
            return RecordSyncResult(record.code, SyncOutcome.RESET)

        if stack.status is StackStatus.DELETE_COMPLETE:
            logger.info("Stack %s deleted; releasing %s", record.resource_name, record.code)
            self.store.reset_code_record(record.code, record.version, last_sync_at=now)
            return RecordSyncResult(record.code, SyncOutcome.RESET)

        if not is_allowed_transition(record.status, stack.status):
            logger.warning(
                "Stack %s drifted %s -> %s outside the transition table",
                stack.stack_name,
                record.status.value,
                stack.status.value,
            )

        changes = compute_record_changes(record, stack)
        if changes.is_empty:
            self.store.update_code_record_fields(
                record.code,
                {"last_sync_at": now},
                expected_version=record.version,
                bump_version=False,
            )
            return RecordSyncResult(record.code, SyncOutcome.UNCHANGED)

        self.store.update_code_record_fields(
            record.code,
            {**changes.set_fields, "last_sync_at": now},
            remove_fields=changes.remove_fields,
            expected_version=record.version,
        )
        logger.info(
            "Synced %s: %s",
            record.code,
            ", ".join(sorted(changes.set_fields) + [f"-{f}" for f in changes.remove_fields]),
        )
        return RecordSyncResult(record.code, SyncOutcome.UPDATED)

    def _recover_reservation(self, record: CodeRecord) -> RecordSyncResult:
        """Resolves a reservation whose allocation never linked the code."""
        reserved_at = parse_iso(str(record.reserved_at))
        age = (datetime.now(timezone.utc) - reserved_at).total_seconds()
        if age < self.config.reservation_timeout_seconds:
            return RecordSyncResult(record.code, SyncOutcome.SKIPPED)

        try:
            stack = self.stacks.describe_stack(str(record.reserved_name))
        except StackNotFoundError:
            stack = None

        if stack is None or stack.status is StackStatus.DELETE_COMPLETE:
            logger.info("Releasing stale reservation on %s", record.code)
            self.store.release_reservation(record.code, str(record.reservation_id))
            return RecordSyncResult(record.code, SyncOutcome.RESET)

        logger.info("Linking %s to %s from a stale reservation", record.code, stack.stack_name)
        self.store.link_reserved_code(
            record.code,
            str(record.reservation_id),
            stack.stack_id,
            stack.stack_name,
            status=stack.status,
        )
        return RecordSyncResult(record.code, SyncOutcome.UPDATED)

    def _record_sync_error(self, record: CodeRecord, message: str) -> Advisory:
        return run_advisory(
            f"record sync error on {record.code}",
            self.store.update_code_record_fields,
            record.code,
            {
                "sync_error": message[:MAX_SYNC_ERROR_LENGTH],
                "last_sync_at": utc_now_iso(),
            },
            bump_version=False,
        )
