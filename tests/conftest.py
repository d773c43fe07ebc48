"""
Pytest fixtures for stack_pool tests.

Uses moto to mock DynamoDB and in-memory fakes for CloudFormation and
EventBridge.
"""

import os
from typing import Any, Generator, List

import boto3
import pytest
from moto import mock_aws

from helpers.fakes import FakeEventsClient, FakeStackClient
from helpers.pool import seed_pool
from stack_pool.config import PoolConfig
from stack_pool.data.dynamo_client import DynamoClient
from stack_pool.engine import StackPoolEngine, create_engine

TABLE_NAME = "test-stack-pool"
RULE_NAME = "portal-StackSyncScheduleRule-ABC123"

TABLE_SCHEMA = {
    "TableName": TABLE_NAME,
    "KeySchema": [
        {"AttributeName": "PK", "KeyType": "HASH"},
        {"AttributeName": "SK", "KeyType": "RANGE"},
    ],
    "AttributeDefinitions": [
        {"AttributeName": "PK", "AttributeType": "S"},
        {"AttributeName": "SK", "AttributeType": "S"},
    ],
    "BillingMode": "PAY_PER_REQUEST",
}


def pytest_configure(config: Any) -> None:
    """Add custom markers."""
    config.addinivalue_line("markers", "unit: mark test as a unit test")
    config.addinivalue_line("markers", "integration: mark test as an integration test")


@pytest.fixture
def aws_credentials() -> None:
    """Set up mock AWS credentials for moto."""
    os.environ["AWS_ACCESS_KEY_ID"] = "testing"
    os.environ["AWS_SECRET_ACCESS_KEY"] = "testing"
    os.environ["AWS_SECURITY_TOKEN"] = "testing"
    os.environ["AWS_SESSION_TOKEN"] = "testing"
    os.environ["AWS_DEFAULT_REGION"] = "us-east-1"


@pytest.fixture
def dynamodb_table(aws_credentials: None) -> Generator[str, None, None]:
    """Create a mock DynamoDB table and yield its name."""
    with mock_aws():
        client = boto3.client("dynamodb", region_name="us-east-1")
        client.create_table(**TABLE_SCHEMA)
        client.get_waiter("table_exists").wait(TableName=TABLE_NAME)
        yield TABLE_NAME


@pytest.fixture
def pool_config() -> PoolConfig:
    """Create test configuration."""
    return PoolConfig(
        table_name=TABLE_NAME,
        region="us-east-1",
        template_url="https://templates.s3.amazonaws.com/workshop.yaml",
        stack_name_prefix="workshop",
        pool_size=10,
        template_parameters={"InstanceType": "t3.micro"},
        trigger_rule_pattern="StackSyncScheduleRule",
        sync_max_workers=1,
        delete_max_workers=4,
    )


@pytest.fixture
def store(dynamodb_table: str) -> DynamoClient:
    return DynamoClient(dynamodb_table, region="us-east-1")


@pytest.fixture
def fake_stacks() -> FakeStackClient:
    return FakeStackClient()


@pytest.fixture
def fake_events() -> FakeEventsClient:
    return FakeEventsClient(RULE_NAME, enabled=False)


@pytest.fixture
def engine(
    pool_config: PoolConfig,
    store: DynamoClient,
    fake_stacks: FakeStackClient,
    fake_events: FakeEventsClient,
) -> StackPoolEngine:
    return create_engine(pool_config, store=store, stacks=fake_stacks, events=fake_events)


@pytest.fixture
def pool_codes(store: DynamoClient) -> List[str]:
    """Ten AVAILABLE codes, code-01 .. code-10."""
    return seed_pool(store, [f"code-{i:02d}" for i in range(1, 11)])
