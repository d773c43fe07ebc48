"""
CloudFormation adapter: the external resource manager behind every code.

Only the contract the engine needs is exposed: create, describe, delete and
list-with-tags. Every call runs with the botocore timeouts it is configured
with and fails with a ``stack_pool`` exception.
"""

import logging
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Dict, List, Optional, Sequence

import boto3
from botocore.config import Config

from stack_pool.constants import EXTERNAL_STATUS_MAP, StackStatus
from stack_pool.data.aws_errors import handle_aws_errors
from stack_pool.data.shared_exceptions import (
    ExternalServiceValidationError,
    StackNotFoundError,
)
from stack_pool.entities.code_record import StackOutput

logger = logging.getLogger(__name__)

SERVICE = "CloudFormation"


def map_external_status(raw_status: str) -> StackStatus:
    """Translate a CloudFormation stack status into a StackStatus."""
    try:
        return EXTERNAL_STATUS_MAP[raw_status]
    except KeyError as e:
        raise ExternalServiceValidationError(
            f"Unrecognised stack status {raw_status!r}",
            details={"externalStatus": raw_status},
        ) from e


def _parse_outputs(raw_outputs: Optional[List[Dict[str, Any]]]) -> List[StackOutput]:
    outputs = []
    for raw in raw_outputs or []:
        # Outputs without a key or value carry nothing worth caching
        if not raw.get("OutputKey") or raw.get("OutputValue") is None:
            continue
        outputs.append(
            StackOutput(
                key=raw["OutputKey"],
                value=raw["OutputValue"],
                description=raw.get("Description"),
            )
        )
    return outputs


def _parse_tags(raw_tags: Optional[List[Dict[str, str]]]) -> Dict[str, str]:
    return {t["Key"]: t["Value"] for t in raw_tags or [] if "Key" in t}


def _iso(value: Any) -> Optional[str]:
    if isinstance(value, datetime):
        return value.isoformat()
    return value


@dataclass
class StackDescription:
    """The state of one stack as reported by CloudFormation."""

    stack_id: str
    stack_name: str
    status: StackStatus
    external_status: str
    outputs: List[StackOutput] = field(default_factory=list)
    tags: Dict[str, str] = field(default_factory=dict)
    creation_time: Optional[str] = None
    status_reason: Optional[str] = None

    @classmethod
    def from_response(cls, stack: Dict[str, Any]) -> "StackDescription":
        return cls(
            stack_id=stack["StackId"],
            stack_name=stack["StackName"],
            status=map_external_status(stack["StackStatus"]),
            external_status=stack["StackStatus"],
            outputs=_parse_outputs(stack.get("Outputs")),
            tags=_parse_tags(stack.get("Tags")),
            creation_time=_iso(stack.get("CreationTime")),
            status_reason=stack.get("StackStatusReason"),
        )


@dataclass
class StackSummary:
    stack_name: str
    stack_id: str
    external_status: str
    tags: Dict[str, str] = field(default_factory=dict)


class CloudFormationClient:
    """Thin CloudFormation wrapper with error translation."""

    def __init__(
        self,
        region: str = "us-east-1",
        client: Optional[Any] = None,
        botocore_config: Optional[Config] = None,
    ):
        self._client = client or boto3.client(
            "cloudformation", region_name=region, config=botocore_config
        )

    @handle_aws_errors(SERVICE, "create_stack")
    def create_stack(
        self,
        name: str,
        template_url: str,
        parameters: Dict[str, str],
        tags: Dict[str, str],
        capabilities: Sequence[str] = ("CAPABILITY_IAM", "CAPABILITY_NAMED_IAM"),
        on_failure: str = "ROLLBACK",
    ) -> str:
        """Starts stack creation and returns the new stack's ARN."""
        response = self._client.create_stack(
            StackName=name,
            TemplateURL=template_url,
            Parameters=[
                {"ParameterKey": k, "ParameterValue": v}
                for k, v in parameters.items()
            ],
            Tags=[{"Key": k, "Value": v} for k, v in tags.items()],
            Capabilities=list(capabilities),
            OnFailure=on_failure,
        )
        logger.info("Stack creation initiated: %s", name)
        return response["StackId"]

    @handle_aws_errors(SERVICE, "describe_stack")
    def describe_stack(self, name_or_ref: str) -> StackDescription:
        """
        Describes one stack by name or ARN.

        Raises:
            StackNotFoundError: If CloudFormation has no such stack
        """
        response = self._client.describe_stacks(StackName=name_or_ref)
        stacks = response.get("Stacks", [])
        if not stacks:
            raise StackNotFoundError(f"No stack returned for {name_or_ref}")
        return StackDescription.from_response(stacks[0])

    @handle_aws_errors(SERVICE, "delete_stack")
    def delete_stack(self, name: str) -> None:
        self._client.delete_stack(StackName=name)
        logger.info("Stack deletion initiated: %s", name)

    @handle_aws_errors(SERVICE, "list_stacks")
    def list_stacks(self, status_filter: Sequence[str]) -> List[StackSummary]:
        """Lists stacks whose CloudFormation status is in ``status_filter``.

        DescribeStacks is used rather than ListStacks because only the former
        returns tags.
        """
        wanted = set(status_filter)
        summaries = []
        paginator = self._client.get_paginator("describe_stacks")
        for page in paginator.paginate():
            for stack in page.get("Stacks", []):
                if stack["StackStatus"] not in wanted:
                    continue
                summaries.append(
                    StackSummary(
                        stack_name=stack["StackName"],
                        stack_id=stack["StackId"],
                        external_status=stack["StackStatus"],
                        tags=_parse_tags(stack.get("Tags")),
                    )
                )
        return summaries
