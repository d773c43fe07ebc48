from unittest.mock import MagicMock

import pytest

from helpers.fakes import FakeEventsClient
from stack_pool.config import PoolConfig
from stack_pool.data.shared_exceptions import ExternalServiceThrottledError
from stack_pool.services.trigger_controller import TriggerController

RULE = "portal-StackSyncScheduleRule-XYZ"


@pytest.fixture
def events() -> FakeEventsClient:
    return FakeEventsClient(RULE, enabled=False)


@pytest.mark.unit
def test_rule_name_resolved_by_pattern_once(events, mocker):
    spy = mocker.spy(events, "find_rule_by_name_pattern")
    controller = TriggerController(PoolConfig(), events)

    assert controller.rule_name == RULE
    assert controller.rule_name == RULE
    spy.assert_called_once_with("StackSyncScheduleRule")


@pytest.mark.unit
def test_configured_rule_name_skips_lookup():
    events = MagicMock()
    controller = TriggerController(PoolConfig(trigger_rule_name="exact-rule"), events)
    assert controller.rule_name == "exact-rule"
    events.find_rule_by_name_pattern.assert_not_called()


@pytest.mark.unit
def test_failed_lookup_falls_back_to_pattern():
    events = MagicMock()
    events.find_rule_by_name_pattern.side_effect = ExternalServiceThrottledError()
    controller = TriggerController(PoolConfig(), events)
    assert controller.rule_name == "StackSyncScheduleRule"

    events.find_rule_by_name_pattern.side_effect = None
    events.find_rule_by_name_pattern.return_value = RULE
    assert controller.rule_name == RULE


@pytest.mark.unit
def test_enable_is_idempotent(events):
    controller = TriggerController(PoolConfig(), events)

    assert controller.enable() is True
    assert controller.enable() is False
    assert events.enable_calls == 1
    assert controller.current_state().enabled


@pytest.mark.unit
def test_disable_is_idempotent(events):
    events.rules[RULE] = True
    controller = TriggerController(PoolConfig(), events)

    assert controller.disable() is True
    assert controller.disable() is False
    assert events.disable_calls == 1
    assert controller.current_state().to_dict() == {
        "ruleName": RULE,
        "enabled": False,
        "scheduleExpression": "rate(1 minute)",
    }


@pytest.mark.unit
def test_toggle_errors_propagate(events):
    controller = TriggerController(PoolConfig(), events)
    events.fail_with = ExternalServiceThrottledError()
    with pytest.raises(ExternalServiceThrottledError):
        controller.enable()
