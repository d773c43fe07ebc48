"""Wiring of the stack_pool services from one PoolConfig."""

from dataclasses import dataclass
from typing import Optional

from stack_pool.config import PoolConfig
from stack_pool.data.cloudformation_client import CloudFormationClient
from stack_pool.data.dynamo_client import DynamoClient
from stack_pool.data.eventbridge_client import EventBridgeClient
from stack_pool.services.allocation_service import AllocationService
from stack_pool.services.deletion_service import DeletionService
from stack_pool.services.pool_service import PoolService
from stack_pool.services.reconciliation_service import ReconciliationService
from stack_pool.services.trigger_controller import TriggerController


@dataclass
class StackPoolEngine:
    config: PoolConfig
    store: DynamoClient
    trigger: TriggerController
    allocation: AllocationService
    deletion: DeletionService
    reconciliation: ReconciliationService
    pool: PoolService


def create_engine(
    config: PoolConfig,
    store: Optional[DynamoClient] = None,
    stacks: Optional[CloudFormationClient] = None,
    events: Optional[EventBridgeClient] = None,
) -> StackPoolEngine:
    """
    Builds every service around a shared set of clients.

    Args:
        config: The process-wide configuration
        store: Code store; built from ``config`` when omitted
        stacks: CloudFormation adapter; built from ``config`` when omitted
        events: EventBridge adapter; built from ``config`` when omitted
    """
    botocore_config = config.botocore_config()
    store = store or DynamoClient(
        config.table_name,
        region=config.region,
        botocore_config=botocore_config,
        endpoint_url=config.endpoint_url,
    )
    stacks = stacks or CloudFormationClient(
        region=config.region, botocore_config=botocore_config
    )
    events = events or EventBridgeClient(
        region=config.region, botocore_config=botocore_config
    )
    trigger = TriggerController(config, events)
    return StackPoolEngine(
        config=config,
        store=store,
        trigger=trigger,
        allocation=AllocationService(config, store, stacks, trigger),
        deletion=DeletionService(config, store, stacks),
        reconciliation=ReconciliationService(config, store, stacks, trigger),
        pool=PoolService(config, store, stacks),
    )
