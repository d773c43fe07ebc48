"""Lambda entry points.

``sync_handler`` runs on the EventBridge schedule and performs one
reconciliation pass. ``pool_initializer_handler`` backs the CloudFormation
custom resource that creates the code pool when the portal is deployed.
"""

import json
import logging
import os
from typing import Any, Dict, List, Optional

import requests

from stack_pool.config import PoolConfig
from stack_pool.data.shared_exceptions import StackPoolError
from stack_pool.engine import create_engine
from stack_pool.services.pool_service import PoolInitResult, PoolService, generate_codes
from stack_pool.utils.retry_with_backoff import retry_with_backoff

# Configure logging
log_level = os.environ.get("LOG_LEVEL", "INFO").upper()
logging.basicConfig(level=getattr(logging, log_level, logging.INFO))
logger = logging.getLogger(__name__)

# Time kept back from the Lambda deadline for the post-pass bookkeeping
SYNC_SAFETY_MARGIN_SECONDS = 15.0
RESPONSE_TIMEOUT_SECONDS = 10


def _load_config() -> PoolConfig:
    config = PoolConfig()
    logging.getLogger().setLevel(getattr(logging, config.log_level.upper(), logging.INFO))
    return config


def sync_handler(event: Dict[str, Any], context: Any) -> Dict[str, Any]:
    """Run one reconciliation pass.

    Args:
        event: EventBridge scheduled event (unused).
        context: Lambda context object, used to bound the pass.

    Returns:
        The pass summary.
    """
    logger.info("Sync triggered by %s", event.get("source", "unknown"))
    config = _load_config()
    engine = create_engine(config)

    budget = config.sync_time_budget_seconds
    remaining_ms = getattr(context, "get_remaining_time_in_millis", None)
    if callable(remaining_ms):
        budget = min(budget, remaining_ms() / 1000 - SYNC_SAFETY_MARGIN_SECONDS)
        budget = max(budget, 1.0)

    result = engine.reconciliation.run_pass(time_budget_seconds=budget)
    return result.to_dict()


@retry_with_backoff(max_attempts=3, base_delay=1.0, exceptions=StackPoolError)
def _initialize_pool(pool: PoolService, codes: List[str]) -> PoolInitResult:
    return pool.initialize_pool(codes)


def pool_initializer_handler(event: Dict[str, Any], context: Any) -> Dict[str, Any]:
    """CloudFormation custom resource that creates the code pool.

    Create generates ``pool_size`` uuid4 codes and writes any that are
    missing. Update and Delete are acknowledged without touching the pool.
    A response is always sent to ``ResponseURL``.
    """
    request_type = event.get("RequestType", "")
    physical_id = event.get("PhysicalResourceId") or (
        f"code-pool-{event.get('LogicalResourceId', 'pool')}"
    )
    logger.info("Pool initializer received %s", request_type)

    try:
        data: Dict[str, Any] = {}
        if request_type == "Create":
            config = _load_config()
            engine = create_engine(config)
            result = _initialize_pool(engine.pool, generate_codes(config.pool_size))
            data = {"CodesCreated": len(result.created), "PoolSize": config.pool_size}
        status, reason = "SUCCESS", None
    except StackPoolError as e:
        logger.exception("Pool initialisation failed")
        data, status, reason = {}, "FAILED", e.public_message
    except Exception:  # pylint: disable=broad-exception-caught
        # CloudFormation hangs until timeout if no response is sent
        logger.exception("Pool initialisation failed unexpectedly")
        data, status, reason = {}, "FAILED", StackPoolError.public_message

    send_cfn_response(event, context, status, physical_id, data, reason)
    return {"Status": status, "PhysicalResourceId": physical_id, "Data": data}


def send_cfn_response(
    event: Dict[str, Any],
    context: Any,
    status: str,
    physical_id: str,
    data: Optional[Dict[str, Any]] = None,
    reason: Optional[str] = None,
) -> bool:
    """PUT the custom resource result to the pre-signed ResponseURL."""
    log_stream = getattr(context, "log_stream_name", "unknown")
    body = {
        "Status": status,
        "Reason": reason or f"See CloudWatch log stream: {log_stream}",
        "PhysicalResourceId": physical_id,
        "StackId": event.get("StackId"),
        "RequestId": event.get("RequestId"),
        "LogicalResourceId": event.get("LogicalResourceId"),
        "Data": data or {},
    }
    try:
        response = requests.put(
            event["ResponseURL"],
            data=json.dumps(body),
            headers={"Content-Type": ""},
            timeout=RESPONSE_TIMEOUT_SECONDS,
        )
        response.raise_for_status()
    except (KeyError, requests.RequestException) as e:
        logger.error("Failed to send custom resource response: %s", e)
        return False
    logger.info("Custom resource response sent: %s", status)
    return True
