"""
Allocation of pool codes to newly created stacks.

Codes are reserved up front with conditional writes, so two concurrent
batches can never be handed the same code. Stacks are then created one at a
time; each success links its code, each failure releases its reservation.
"""

import logging
import time
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, Sequence, Tuple

from stack_pool.config import PoolConfig
from stack_pool.constants import (
    BATCH_TAG_KEY,
    CODE_TAG_KEY,
    CREATED_AT_TAG_KEY,
    MANAGED_BY_TAG_KEY,
    StackStatus,
)
from stack_pool.data._base import ExternalResourceClient
from stack_pool.data.dynamo_client import DynamoClient
from stack_pool.data.shared_exceptions import (
    BatchPartiallyFailedError,
    ConditionalWriteError,
    EntityValidationError,
    InvalidSelectionError,
    PoolExhaustedError,
    StackPoolError,
)
from stack_pool.entities.util import utc_now_iso
from stack_pool.services.trigger_controller import TriggerController
from stack_pool.utils.advisory import Advisory, run_advisory

logger = logging.getLogger(__name__)


@dataclass
class AllocationOutcome:
    code: str
    resource_name: str
    status: StackStatus
    resource_ref: Optional[str] = None
    error: Optional[Dict[str, Any]] = None
    record_update: Optional[Advisory] = None

    def to_dict(self) -> Dict[str, Any]:
        data: Dict[str, Any] = {
            "code": self.code,
            "resourceName": self.resource_name,
            "status": self.status.value,
        }
        if self.resource_ref:
            data["resourceRef"] = self.resource_ref
        if self.error:
            data["error"] = self.error
        if self.record_update is not None and not self.record_update.ok:
            data["recordUpdate"] = self.record_update.to_dict()
        return data


@dataclass
class AllocationResult:
    batch_id: str
    assigned_codes: List[str]
    outcomes: List[AllocationOutcome] = field(default_factory=list)
    released_codes: List[str] = field(default_factory=list)
    trigger: Optional[Advisory] = None

    @property
    def successful(self) -> List[AllocationOutcome]:
        return [o for o in self.outcomes if o.status is StackStatus.CREATE_PENDING]

    @property
    def failed(self) -> List[AllocationOutcome]:
        return [o for o in self.outcomes if o.status is StackStatus.CREATE_FAILED]

    def to_dict(self) -> Dict[str, Any]:
        data: Dict[str, Any] = {
            "batchId": self.batch_id,
            "assignedCodes": list(self.assigned_codes),
            "outcomes": [o.to_dict() for o in self.outcomes],
            "successful": len(self.successful),
            "failed": len(self.failed),
        }
        if self.released_codes:
            data["releasedCodes"] = list(self.released_codes)
        if self.trigger is not None:
            data["trigger"] = self.trigger.to_dict()
        return data


class AllocationService:
    """Hands out AVAILABLE codes and creates one stack per code."""

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

    def allocate(
        self,
        count: int,
        explicit_codes: Optional[Sequence[str]] = None,
        template_parameters: Optional[Dict[str, str]] = None,
    ) -> AllocationResult:
        """
        Reserves ``count`` codes and creates a stack for each, in order.

        Args:
            count: Number of stacks to create
            explicit_codes: Exact codes to use instead of the first available
            template_parameters: Overrides merged onto the configured defaults

        Returns:
            Per-code outcomes plus the list of codes that were spent

        Raises:
            InvalidSelectionError: Bad count or explicit selection
            PoolExhaustedError: Fewer codes available than requested
            BatchPartiallyFailedError: More than half of the creations failed
        """
        self._validate_count(count)
        if not self.config.template_url:
            raise EntityValidationError("template_url is not configured")

        batch_id = str(int(time.time() * 1000))
        if explicit_codes is not None:
            reservations = self._reserve_explicit(batch_id, count, explicit_codes)
        else:
            reservations = self._reserve_first_available(batch_id, count)

        logger.info(
            "Batch %s reserved %d codes, deploying sequentially", batch_id, len(reservations)
        )
        parameters = {**self.config.template_parameters, **(template_parameters or {})}
        result = AllocationResult(
            batch_id=batch_id, assigned_codes=[code for code, _ in reservations]
        )
        # The trigger is on before any stack exists
        result.trigger = run_advisory("enable sync trigger", self.trigger.enable)

        failures = 0
        try:
            for code, name in reservations:
                outcome = self._create_one(batch_id, code, name, parameters)
                result.outcomes.append(outcome)
                if outcome.status is not StackStatus.CREATE_PENDING:
                    failures += 1
                    if failures * 2 > count:
                        break
        except BaseException:
            # The in-flight code keeps its reservation; its stack may exist.
            untouched = reservations[len(result.outcomes) + 1 :]
            self._release_all(batch_id, untouched)
            logger.error(
                "Batch %s interrupted after %d of %d deployments; released %d codes",
                batch_id,
                len(result.outcomes),
                len(reservations),
                len(untouched),
            )
            raise

        if failures * 2 > count:
            remaining = reservations[len(result.outcomes) :]
            self._release_all(batch_id, remaining)
            result.released_codes = [c for c, _ in remaining]
            result.assigned_codes = [o.code for o in result.outcomes]
            logger.error(
                "Batch %s aborted: %d of %d deployments failed",
                batch_id,
                failures,
                len(result.outcomes),
            )
            raise BatchPartiallyFailedError(
                result,
                f"{failures} of {len(result.outcomes)} deployments failed",
            )

        logger.info(
            "Batch %s finished: %d successful, %d failed",
            batch_id,
            len(result.successful),
            len(result.failed),
        )
        return result

    # ────────────────────────── selection ─────────────────────────────
    def _validate_count(self, count: Any) -> None:
        if isinstance(count, bool) or not isinstance(count, int):
            raise InvalidSelectionError("count must be an integer")
        if count <= 0 or count > self.config.pool_size:
            raise InvalidSelectionError(
                f"count must be between 1 and {self.config.pool_size}",
                details={"requested": count, "poolSize": self.config.pool_size},
            )

    def _resource_name(self, batch_id: str, code: str, ordinal: int) -> str:
        return f"{self.config.stack_name_prefix}-{code}-{batch_id}-{ordinal}"

    def _reserve_explicit(
        self, batch_id: str, count: int, codes: Sequence[str]
    ) -> List[Tuple[str, str]]:
        codes = list(codes)
        if len(codes) != count:
            raise InvalidSelectionError(
                "Number of selected codes must match the stack count",
                details={"requested": count, "selected": len(codes)},
            )
        if not all(isinstance(c, str) and c for c in codes):
            raise InvalidSelectionError("Selected codes must be non-empty strings")
        duplicates = sorted({c for c in codes if codes.count(c) > 1})
        if duplicates:
            raise InvalidSelectionError(
                "Duplicate codes selected", details={"duplicates": duplicates}
            )
        try:
            records = self.store.get_code_records(codes)
        except EntityValidationError as e:
            raise InvalidSelectionError("Selected codes are not valid") from e
        missing = [c for c in codes if c not in records]
        if missing:
            raise InvalidSelectionError(
                "Selected codes are not part of the pool", details={"invalid": missing}
            )
        unavailable = [c for c in codes if not records[c].is_allocatable]
        if unavailable:
            raise InvalidSelectionError(
                "Selected codes are not available",
                details={"unavailable": unavailable},
            )

        reservations: List[Tuple[str, str]] = []
        try:
            for ordinal, code in enumerate(codes, start=1):
                name = self._resource_name(batch_id, code, ordinal)
                try:
                    self.store.reserve_code(code, batch_id, name)
                except ConditionalWriteError as e:
                    raise InvalidSelectionError(
                        "Selected codes are not available",
                        details={"unavailable": [code]},
                    ) from e
                reservations.append((code, name))
        except BaseException:
            self._release_all(batch_id, reservations)
            raise
        return reservations

    def _reserve_first_available(
        self, batch_id: str, count: int
    ) -> List[Tuple[str, str]]:
        candidates = [r.code for r in self.store.list_code_records() if r.is_allocatable]
        if len(candidates) < count:
            raise PoolExhaustedError(requested=count, available=len(candidates))

        reservations: List[Tuple[str, str]] = []
        try:
            for code in candidates:
                if len(reservations) == count:
                    break
                name = self._resource_name(batch_id, code, len(reservations) + 1)
                try:
                    self.store.reserve_code(code, batch_id, name)
                except ConditionalWriteError:
                    logger.info("Code %s was taken concurrently, skipping", code)
                    continue
                reservations.append((code, name))
        except BaseException:
            self._release_all(batch_id, reservations)
            raise

        if len(reservations) < count:
            self._release_all(batch_id, reservations)
            raise PoolExhaustedError(requested=count, available=len(reservations))
        return reservations

    # ─────────────────────────── creation ─────────────────────────────
    def _create_one(
        self, batch_id: str, code: str, name: str, parameters: Dict[str, str]
    ) -> AllocationOutcome:
        tags = {
            CODE_TAG_KEY: code,
            BATCH_TAG_KEY: batch_id,
            CREATED_AT_TAG_KEY: utc_now_iso(),
            MANAGED_BY_TAG_KEY: self.config.managed_by_tag,
        }
        try:
            resource_ref = self.stacks.create_stack(
                name,
                self.config.template_url,
                parameters,
                tags,
                capabilities=self.config.capabilities,
                on_failure=self.config.on_failure,
            )
        except StackPoolError as e:
            logger.warning("Failed to create stack %s for code %s: %s", name, code, e)
            return AllocationOutcome(
                code=code,
                resource_name=name,
                status=StackStatus.CREATE_FAILED,
                error=e.to_dict(),
                record_update=self._release(batch_id, code),
            )

        link = run_advisory(
            f"link code {code} to {name}",
            self.store.link_reserved_code,
            code,
            batch_id,
            resource_ref,
            name,
        )
        if not link.ok:
            logger.error(
                "Stack %s was created but code %s could not be linked; "
                "it will be linked by a later sync pass",
                name,
                code,
            )
        return AllocationOutcome(
            code=code,
            resource_name=name,
            status=StackStatus.CREATE_PENDING,
            resource_ref=resource_ref,
            record_update=link,
        )

    def _release(self, batch_id: str, code: str) -> Advisory:
        return run_advisory(
            f"release reservation on {code}",
            self.store.release_reservation,
            code,
            batch_id,
        )

    def _release_all(self, batch_id: str, reservations: List[Tuple[str, str]]) -> None:
        if reservations:
            logger.warning(
                "Batch %s releasing %d reservations", batch_id, len(reservations)
            )
        for code, _ in reservations:
            self._release(batch_id, code)
