import pytest

from stack_pool.constants import StackStatus
from stack_pool.data.cloudformation_client import StackDescription
from stack_pool.entities.code_record import CodeRecord, StackOutput
from stack_pool.services.reconciliation_service import SyncResult, compute_record_changes
from stack_pool.utils.advisory import Advisory

ARN = "arn:aws:cloudformation:us-east-1:123456789012:stack/workshop-code-1-1-1/abc"
NAME = "workshop-code-1-1-1"
OUTPUTS = [StackOutput("Url", "https://lab.example.com")]


def make_record(**overrides) -> CodeRecord:
    values = dict(
        code="code-1",
        status=StackStatus.CREATE_PENDING,
        resource_ref=ARN,
        resource_name=NAME,
        created_at="2025-01-01T00:00:00+00:00",
        version=1,
    )
    values.update(overrides)
    return CodeRecord(**values)


def make_stack(status: StackStatus, outputs=None, **overrides) -> StackDescription:
    values = dict(
        stack_id=ARN,
        stack_name=NAME,
        status=status,
        external_status=status.value,
        outputs=list(outputs or []),
        creation_time="2025-01-01T00:00:00+00:00",
    )
    values.update(overrides)
    return StackDescription(**values)


@pytest.mark.unit
def test_unchanged_record_has_no_changes():
    changes = compute_record_changes(make_record(), make_stack(StackStatus.CREATE_PENDING))
    assert changes.is_empty


@pytest.mark.unit
def test_completion_copies_status_and_outputs():
    changes = compute_record_changes(
        make_record(), make_stack(StackStatus.CREATE_COMPLETE, OUTPUTS)
    )
    assert changes.set_fields == {
        "status": StackStatus.CREATE_COMPLETE,
        "outputs": OUTPUTS,
    }
    assert changes.remove_fields == ()


@pytest.mark.unit
def test_outputs_dropped_outside_output_states():
    record = make_record(status=StackStatus.UPDATE_COMPLETE, outputs=OUTPUTS)
    changes = compute_record_changes(record, make_stack(StackStatus.UPDATE_PENDING, OUTPUTS))
    assert changes.set_fields == {"status": StackStatus.UPDATE_PENDING}
    assert changes.remove_fields == ("outputs",)


@pytest.mark.unit
def test_failed_stack_never_gets_outputs():
    changes = compute_record_changes(
        make_record(), make_stack(StackStatus.ROLLBACK_COMPLETE, OUTPUTS)
    )
    assert "outputs" not in changes.set_fields


@pytest.mark.unit
def test_identity_and_created_at_are_filled_in():
    record = make_record(resource_ref="pending-ref", created_at=None)
    changes = compute_record_changes(record, make_stack(StackStatus.CREATE_PENDING))
    assert changes.set_fields == {
        "resource_ref": ARN,
        "created_at": "2025-01-01T00:00:00+00:00",
    }


@pytest.mark.unit
def test_stale_sync_error_is_cleared():
    record = make_record(sync_error="Throttling")
    changes = compute_record_changes(record, make_stack(StackStatus.CREATE_PENDING))
    assert changes.set_fields == {}
    assert changes.remove_fields == ("sync_error",)


@pytest.mark.unit
def test_sync_result_reports_trigger_toggle():
    assert SyncResult().trigger_disabled is None
    assert SyncResult(trigger=Advisory.success("disable", True)).trigger_disabled
    assert not SyncResult(trigger=Advisory.success("disable", False)).trigger_disabled
    payload = SyncResult(processed=2, succeeded=2, remaining_active=0).to_dict()
    assert payload["remainingActive"] == 0
    assert payload["triggerDisabled"] is None
