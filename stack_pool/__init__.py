"""Allocation and reconciliation of a fixed pool of access codes to
CloudFormation stacks."""

from stack_pool.config import PoolConfig  # noqa: F401
from stack_pool.constants import StackStatus  # noqa: F401
from stack_pool.data.dynamo_client import DynamoClient  # noqa: F401
from stack_pool.engine import StackPoolEngine, create_engine  # noqa: F401
from stack_pool.entities import (  # noqa: F401
    CodeRecord,
    StackOutput,
    item_to_code_record,
)

__version__ = "0.1.0"
