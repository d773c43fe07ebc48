"""
Configuration for the stack_pool engine.

Uses pydantic-settings for environment variable management. A single
``PoolConfig`` is built at process start and handed to every component.
"""

import re
from typing import Dict, List, Literal, Optional

from botocore.config import Config
from pydantic import AliasChoices, Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

STACK_NAME_PREFIX_PATTERN = re.compile(r"^[a-zA-Z][a-zA-Z0-9-]{0,127}$")
REGION_PATTERN = re.compile(r"^[a-z]{2}-[a-z]+-\d$")


class PoolConfig(BaseSettings):
    """Configuration for the allocation and reconciliation engine."""

    model_config = SettingsConfigDict(
        env_prefix="STACK_POOL_",
        case_sensitive=False,
        extra="ignore",
        populate_by_name=True,
    )

    # DynamoDB Configuration
    table_name: str = Field(
        default="workshop-portal-stacks",
        min_length=1,
        description="DynamoDB table holding the code records",
        validation_alias=AliasChoices("STACK_POOL_TABLE_NAME", "DYNAMODB_TABLE_NAME"),
    )
    region: str = Field(
        default="us-east-1",
        description="AWS region for every client",
        validation_alias=AliasChoices("STACK_POOL_REGION", "REGION"),
    )

    # Stack deployment
    template_url: str = Field(
        default="",
        description="HTTPS URL of the CloudFormation template",
        validation_alias=AliasChoices("STACK_POOL_TEMPLATE_URL", "TEMPLATE_URL"),
    )
    stack_name_prefix: str = Field(
        default="deployment-stack",
        description="Prefix of every generated stack name",
        validation_alias=AliasChoices(
            "STACK_POOL_STACK_NAME_PREFIX", "STACK_NAME_PREFIX"
        ),
    )
    pool_size: int = Field(
        default=60,
        ge=1,
        le=1000,
        description="Number of codes in the pool",
        validation_alias=AliasChoices(
            "STACK_POOL_POOL_SIZE", "ACCESS_CODE_POOL_SIZE"
        ),
    )
    template_parameters: Dict[str, str] = Field(
        default_factory=dict,
        description="Default template parameters (JSON object in the environment)",
        validation_alias=AliasChoices(
            "STACK_POOL_TEMPLATE_PARAMETERS", "TEMPLATE_PARAMETERS"
        ),
    )
    capabilities: List[str] = Field(
        default_factory=lambda: ["CAPABILITY_IAM", "CAPABILITY_NAMED_IAM"],
        description="Capabilities acknowledged on stack creation",
    )
    on_failure: Literal["ROLLBACK", "DELETE", "DO_NOTHING"] = Field(
        default="ROLLBACK",
        description="CloudFormation OnFailure behaviour",
    )
    managed_by_tag: str = Field(
        default="CloudFormationDeploymentPortal",
        description="Value of the ManagedBy tag on created stacks",
    )

    # Sync trigger
    trigger_rule_name: Optional[str] = Field(
        default=None,
        description="Exact EventBridge rule name, when known",
    )
    trigger_rule_pattern: str = Field(
        default="StackSyncScheduleRule",
        min_length=1,
        description="Substring used to look the rule up by name",
    )

    # Timeouts and budgets
    connect_timeout_seconds: float = Field(default=5.0, ge=0.5, le=60)
    read_timeout_seconds: float = Field(default=20.0, ge=1, le=300)
    max_attempts: int = Field(
        default=3,
        ge=1,
        le=10,
        description="botocore attempts per AWS call",
    )
    sync_time_budget_seconds: float = Field(
        default=240.0,
        gt=0,
        le=900,
        description="Wall-clock budget of one reconciliation pass",
    )
    sync_max_workers: int = Field(default=4, ge=1, le=64)
    delete_max_workers: int = Field(default=8, ge=1, le=64)
    reservation_timeout_seconds: int = Field(
        default=900,
        ge=60,
        description="Age after which an unlinked reservation is recovered",
    )

    # Endpoint override (for testing)
    endpoint_url: Optional[str] = Field(
        default=None,
        description="Override DynamoDB endpoint URL (for local testing)",
    )
    log_level: str = Field(
        default="INFO",
        validation_alias=AliasChoices("STACK_POOL_LOG_LEVEL", "LOG_LEVEL"),
    )

    @field_validator("region")
    @classmethod
    def _check_region(cls, value: str) -> str:
        if not REGION_PATTERN.match(value):
            raise ValueError(f"region must look like us-east-1, got {value!r}")
        return value

    @field_validator("template_url")
    @classmethod
    def _check_template_url(cls, value: str) -> str:
        if value and not value.startswith("https://"):
            raise ValueError("template_url must use HTTPS")
        return value

    @field_validator("stack_name_prefix")
    @classmethod
    def _check_prefix(cls, value: str) -> str:
        if not STACK_NAME_PREFIX_PATTERN.match(value):
            raise ValueError(
                "stack_name_prefix must start with a letter and contain only "
                "letters, digits and hyphens (max 128 characters)"
            )
        return value

    def botocore_config(self) -> Config:
        """Client config carrying the per-call timeouts."""
        return Config(
            region_name=self.region,
            connect_timeout=self.connect_timeout_seconds,
            read_timeout=self.read_timeout_seconds,
            retries={"max_attempts": self.max_attempts, "mode": "standard"},
        )
