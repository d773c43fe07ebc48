"""
Control of the scheduled rule that drives reconciliation passes.

Enabling and disabling are idempotent: the rule's state is read first and the
toggle call is only made when it would change something.
"""

import logging
from dataclasses import dataclass
from typing import Any, Dict, Optional

from stack_pool.config import PoolConfig
from stack_pool.data.eventbridge_client import EventBridgeClient
from stack_pool.data.shared_exceptions import StackPoolError

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class TriggerState:
    rule_name: str
    enabled: bool
    schedule_expression: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "ruleName": self.rule_name,
            "enabled": self.enabled,
            "scheduleExpression": self.schedule_expression,
        }


class TriggerController:
    """Enables and disables the reconciliation schedule."""

    def __init__(self, config: PoolConfig, events_client: EventBridgeClient):
        self.config = config
        self.events_client = events_client
        self._rule_name: Optional[str] = config.trigger_rule_name

    @property
    def rule_name(self) -> str:
        """The concrete rule name, looked up once by pattern if not configured.

        A failed or empty lookup falls back to the pattern itself.
        """
        if self._rule_name is None:
            pattern = self.config.trigger_rule_pattern
            try:
                found = self.events_client.find_rule_by_name_pattern(pattern)
            except StackPoolError as e:
                logger.warning(
                    "Rule lookup for pattern %s failed, using the pattern: %s",
                    pattern,
                    e,
                )
                return pattern
            if found is None:
                logger.warning("No rule matches %s, using the pattern", pattern)
                return pattern
            self._rule_name = found
        return self._rule_name

    def current_state(self) -> TriggerState:
        rule = self.events_client.describe_rule(self.rule_name)
        return TriggerState(
            rule_name=rule.name,
            enabled=rule.enabled,
            schedule_expression=rule.schedule_expression,
        )

    def enable(self) -> bool:
        """Enables the rule. Returns True if the call changed its state."""
        state = self.current_state()
        if state.enabled:
            logger.debug("Rule %s already enabled", state.rule_name)
            return False
        self.events_client.enable_rule(state.rule_name)
        logger.info("Rule %s: DISABLED -> ENABLED (codes awaiting sync)", state.rule_name)
        return True

    def disable(self) -> bool:
        """Disables the rule. Returns True if the call changed its state."""
        state = self.current_state()
        if not state.enabled:
            logger.debug("Rule %s already disabled", state.rule_name)
            return False
        self.events_client.disable_rule(state.rule_name)
        logger.info("Rule %s: ENABLED -> DISABLED (nothing left to sync)", state.rule_name)
        return True
