"""EventBridge adapter: the scheduler primitive behind the sync trigger."""

import logging
from dataclasses import dataclass
from typing import Any, Optional

import boto3
from botocore.config import Config

from stack_pool.data.aws_errors import handle_aws_errors

logger = logging.getLogger(__name__)

SERVICE = "EventBridge"


@dataclass(frozen=True)
class RuleDescription:
    name: str
    enabled: bool
    schedule_expression: Optional[str] = None


class EventBridgeClient:
    """Enable, disable, describe and find EventBridge rules."""

    def __init__(
        self,
        region: str = "us-east-1",
        client: Optional[Any] = None,
        botocore_config: Optional[Config] = None,
    ):
        self._client = client or boto3.client(
            "events", region_name=region, config=botocore_config
        )

    @handle_aws_errors(SERVICE, "enable_rule")
    def enable_rule(self, name: str) -> None:
        self._client.enable_rule(Name=name)

    @handle_aws_errors(SERVICE, "disable_rule")
    def disable_rule(self, name: str) -> None:
        self._client.disable_rule(Name=name)

    @handle_aws_errors(SERVICE, "describe_rule")
    def describe_rule(self, name: str) -> RuleDescription:
        response = self._client.describe_rule(Name=name)
        return RuleDescription(
            name=response["Name"],
            enabled=response.get("State") == "ENABLED",
            schedule_expression=response.get("ScheduleExpression"),
        )

    @handle_aws_errors(SERVICE, "find_rule_by_name_pattern")
    def find_rule_by_name_pattern(self, pattern: str) -> Optional[str]:
        """Returns the first rule whose name contains ``pattern``, if any."""
        paginator = self._client.get_paginator("list_rules")
        for page in paginator.paginate():
            for rule in page.get("Rules", []):
                if pattern in rule.get("Name", ""):
                    logger.debug("Resolved rule %s from pattern %s", rule["Name"], pattern)
                    return rule["Name"]
        return None
