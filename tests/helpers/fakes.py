"""In-memory stand-ins for CloudFormation and EventBridge."""

import itertools
from typing import Any, Callable, Dict, List, Optional, Sequence, Set

from stack_pool.data.cloudformation_client import (
    StackDescription,
    StackSummary,
    map_external_status,
)
from stack_pool.data.eventbridge_client import RuleDescription
from stack_pool.data.shared_exceptions import (
    ExternalServiceValidationError,
    StackNotFoundError,
)
from stack_pool.entities.code_record import StackOutput


class FakeStackClient:
    """Stateful fake of CloudFormationClient.

    ``fail_calls`` holds 1-based create_stack call numbers that fail.
    ``describe_errors`` maps a stack name or ARN to the error describe raises.
    """

    def __init__(self) -> None:
        self.stacks: Dict[str, Dict[str, Any]] = {}
        self.create_calls: List[Dict[str, Any]] = []
        self.delete_calls: List[str] = []
        self.describe_calls: List[str] = []
        self.fail_calls: Set[int] = set()
        self.create_error: Callable[[], Exception] = lambda: ExternalServiceValidationError(
            "Template format error"
        )
        self.delete_error: Optional[Exception] = None
        self.describe_errors: Dict[str, Exception] = {}
        self._ids = itertools.count(1)

    # ─── CloudFormationClient interface ───
    def create_stack(
        self,
        name: str,
        template_url: str,
        parameters: Dict[str, str],
        tags: Dict[str, str],
        capabilities: Sequence[str] = (),
        on_failure: str = "ROLLBACK",
    ) -> str:
        self.create_calls.append(
            {
                "name": name,
                "template_url": template_url,
                "parameters": dict(parameters),
                "tags": dict(tags),
                "capabilities": list(capabilities),
                "on_failure": on_failure,
            }
        )
        if len(self.create_calls) in self.fail_calls:
            raise self.create_error()
        arn = (
            "arn:aws:cloudformation:us-east-1:123456789012:stack/"
            f"{name}/{next(self._ids):08d}"
        )
        self.stacks[arn] = {
            "id": arn,
            "name": name,
            "status": "CREATE_IN_PROGRESS",
            "outputs": [],
            "tags": dict(tags),
        }
        return arn

    def describe_stack(self, name_or_ref: str) -> StackDescription:
        self.describe_calls.append(name_or_ref)
        if name_or_ref in self.describe_errors:
            raise self.describe_errors[name_or_ref]
        stack = self._find(name_or_ref)
        if stack is None:
            raise StackNotFoundError(f"Stack with id {name_or_ref} does not exist")
        return StackDescription(
            stack_id=stack["id"],
            stack_name=stack["name"],
            status=map_external_status(stack["status"]),
            external_status=stack["status"],
            outputs=list(stack["outputs"]),
            tags=dict(stack["tags"]),
            creation_time="2025-01-01T00:00:00+00:00",
        )

    def delete_stack(self, name: str) -> None:
        self.delete_calls.append(name)
        if self.delete_error is not None:
            raise self.delete_error
        stack = self._find(name)
        if stack is not None:
            stack["status"] = "DELETE_IN_PROGRESS"

    def list_stacks(self, status_filter: Sequence[str]) -> List[StackSummary]:
        return [
            StackSummary(
                stack_name=s["name"],
                stack_id=s["id"],
                external_status=s["status"],
                tags=dict(s["tags"]),
            )
            for s in self.stacks.values()
            if s["status"] in status_filter
        ]

    # ─── test controls ───
    def set_status(
        self,
        name_or_ref: str,
        status: str,
        outputs: Optional[List[StackOutput]] = None,
    ) -> None:
        stack = self._find(name_or_ref)
        assert stack is not None, name_or_ref
        stack["status"] = status
        if outputs is not None:
            stack["outputs"] = list(outputs)

    def remove(self, name_or_ref: str) -> None:
        stack = self._find(name_or_ref)
        assert stack is not None, name_or_ref
        del self.stacks[stack["id"]]

    def add_unmanaged(self, name: str, tags: Dict[str, str], status: str = "CREATE_COMPLETE") -> str:
        arn = f"arn:aws:cloudformation:us-east-1:123456789012:stack/{name}/x"
        self.stacks[arn] = {
            "id": arn,
            "name": name,
            "status": status,
            "outputs": [],
            "tags": dict(tags),
        }
        return arn

    def _find(self, name_or_ref: str) -> Optional[Dict[str, Any]]:
        if name_or_ref in self.stacks:
            return self.stacks[name_or_ref]
        for stack in self.stacks.values():
            if stack["name"] == name_or_ref and stack["status"] != "DELETE_COMPLETE":
                return stack
        return None


class FakeEventsClient:
    """Stateful fake of EventBridgeClient holding one rule."""

    def __init__(self, rule_name: str, enabled: bool = False) -> None:
        self.rules: Dict[str, bool] = {rule_name: enabled}
        self.enable_calls = 0
        self.disable_calls = 0
        self.fail_with: Optional[Exception] = None

    def enable_rule(self, name: str) -> None:
        self._maybe_fail()
        self.enable_calls += 1
        self.rules[name] = True

    def disable_rule(self, name: str) -> None:
        self._maybe_fail()
        self.disable_calls += 1
        self.rules[name] = False

    def describe_rule(self, name: str) -> RuleDescription:
        self._maybe_fail()
        return RuleDescription(
            name=name,
            enabled=self.rules[name],
            schedule_expression="rate(1 minute)",
        )

    def find_rule_by_name_pattern(self, pattern: str) -> Optional[str]:
        self._maybe_fail()
        return next((n for n in self.rules if pattern in n), None)

    def _maybe_fail(self) -> None:
        if self.fail_with is not None:
            raise self.fail_with
