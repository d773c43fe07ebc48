"""Pool initialisation and read models over the code records."""

import logging
import uuid
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, Sequence

from stack_pool.config import PoolConfig
from stack_pool.constants import (
    CODE_TAG_KEY,
    FAILURE_TERMINAL_STATUSES,
    LIVE_EXTERNAL_STATUSES,
    MANAGED_BY_TAG_KEY,
    OUTPUT_STATUSES,
    StackStatus,
)
from stack_pool.data._base import ExternalResourceClient
from stack_pool.data.cloudformation_client import StackSummary
from stack_pool.data.dynamo_client import DynamoClient
from stack_pool.data.shared_exceptions import (
    EntityValidationError,
    NotFoundError,
    StackErrorStateError,
)
from stack_pool.entities.code_record import CodeRecord, StackOutput
from stack_pool.entities.util import assert_valid_code, utc_now_iso

logger = logging.getLogger(__name__)


def generate_codes(count: int) -> List[str]:
    """Generates ``count`` fresh uuid4 codes."""
    if count < 1:
        raise EntityValidationError("count must be at least 1")
    return [str(uuid.uuid4()) for _ in range(count)]


@dataclass
class CodeSummary:
    code: str
    linked: bool
    status: Optional[StackStatus] = None
    resource_name: Optional[str] = None
    created_at: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        data: Dict[str, Any] = {"code": self.code, "linked": self.linked}
        if self.status is not None:
            data["status"] = self.status.value
        if self.resource_name:
            data["resourceName"] = self.resource_name
        if self.created_at:
            data["createdAt"] = self.created_at
        return data


@dataclass
class PoolSnapshot:
    codes: List[CodeSummary] = field(default_factory=list)

    @property
    def total_linked(self) -> int:
        return sum(1 for c in self.codes if c.linked)

    @property
    def total_available(self) -> int:
        return len(self.codes) - self.total_linked

    def to_dict(self) -> Dict[str, Any]:
        return {
            "codes": [c.to_dict() for c in self.codes],
            "totalAvailable": self.total_available,
            "totalLinked": self.total_linked,
        }


@dataclass
class PoolInitResult:
    created: List[str] = field(default_factory=list)
    existing: int = 0


@dataclass
class StackOutputsView:
    code: str
    status: StackStatus
    outputs: List[StackOutput]
    resource_name: Optional[str] = None
    last_updated: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "code": self.code,
            "status": self.status.value,
            "resourceName": self.resource_name,
            "outputs": [o.to_dict() for o in self.outputs],
            "lastUpdated": self.last_updated,
        }


class PoolService:
    """Creates the pool and answers read-only questions about it."""

    def __init__(
        self,
        config: PoolConfig,
        store: DynamoClient,
        stacks: ExternalResourceClient,
    ):
        self.config = config
        self.store = store
        self.stacks = stacks

    def initialize_pool(self, codes: Sequence[str]) -> PoolInitResult:
        """
        Writes an AVAILABLE record for every code that does not have one.

        Existing records are left untouched, so repeating the call is safe.
        """
        codes = list(dict.fromkeys(codes))
        for code in codes:
            try:
                assert_valid_code(code)
            except ValueError as e:
                raise EntityValidationError(str(e)) from e
        existing = self.store.get_code_records(codes)
        now = utc_now_iso()
        missing = [c for c in codes if c not in existing]
        if missing:
            self.store.put_code_records([CodeRecord(code=c, updated_at=now) for c in missing])
        logger.info(
            "Pool initialised: %d codes created, %d already present",
            len(missing),
            len(existing),
        )
        return PoolInitResult(created=missing, existing=len(existing))

    def list_all_codes(self) -> PoolSnapshot:
        """Every code with whether it is linked; linked codes carry their stack."""
        records = self.store.list_code_records()
        if not records:
            raise NotFoundError("The code pool has not been initialised")
        summaries = []
        for record in records:
            if record.is_linked:
                summaries.append(
                    CodeSummary(
                        code=record.code,
                        linked=True,
                        status=record.status,
                        resource_name=record.resource_name,
                        created_at=record.created_at,
                    )
                )
            else:
                summaries.append(CodeSummary(code=record.code, linked=False))
        return PoolSnapshot(codes=summaries)

    def get_stack_outputs(self, code: str) -> StackOutputsView:
        """
        Outputs of the stack linked to ``code``.

        Outputs exist only for CREATE_COMPLETE and UPDATE_COMPLETE stacks.
        Stacks still transitioning report an empty list.

        Raises:
            NotFoundError: The code is unknown or unlinked
            StackErrorStateError: The stack is in a failed state
        """
        record = self.store.get_code_record(code)
        if record is None or not record.is_linked:
            raise NotFoundError(f"No linked stack for code {code}")

        if record.status in FAILURE_TERMINAL_STATUSES:
            raise StackErrorStateError(
                f"Stack {record.resource_name} is {record.status.value}",
                details={"status": record.status.value},
            )

        view = StackOutputsView(
            code=code,
            status=record.status,
            outputs=[],
            resource_name=record.resource_name,
            last_updated=record.last_sync_at or record.updated_at,
        )
        if record.status not in OUTPUT_STATUSES:
            return view

        if record.outputs:
            view.outputs = list(record.outputs)
            return view

        # Not cached yet; ask CloudFormation directly
        stack = self.stacks.describe_stack(str(record.resource_ref))
        view.outputs = list(stack.outputs)
        view.last_updated = utc_now_iso()
        return view

    def find_orphaned_stacks(self) -> List[StackSummary]:
        """
        Managed stacks that no code record points at.

        Stacks whose creation is still held by a reservation are not orphans.
        """
        records = {r.code: r for r in self.store.list_code_records()}
        reserved_names = {
            r.reserved_name for r in records.values() if r.reserved_name is not None
        }
        orphans = []
        for stack in self.stacks.list_stacks(LIVE_EXTERNAL_STATUSES):
            if stack.tags.get(MANAGED_BY_TAG_KEY) != self.config.managed_by_tag:
                continue
            if stack.stack_name in reserved_names:
                continue
            record = records.get(stack.tags.get(CODE_TAG_KEY, ""))
            if record is None or record.resource_ref != stack.stack_id:
                orphans.append(stack)
        if orphans:
            logger.warning(
                "Found %d orphaned stacks: %s",
                len(orphans),
                ", ".join(s.stack_name for s in orphans),
            )
        return orphans
