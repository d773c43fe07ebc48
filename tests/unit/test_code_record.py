from datetime import datetime, timezone

import pytest

from stack_pool.constants import StackStatus
from stack_pool.data.shared_exceptions import InvalidTransitionError
from stack_pool.entities.code_record import (
    CodeRecord,
    StackOutput,
    is_allowed_transition,
    item_to_code_record,
    to_attribute_value,
    validate_transition,
)

ARN = "arn:aws:cloudformation:us-east-1:123456789012:stack/ws-code-1-1-1/abc"


@pytest.fixture
def linked_record() -> CodeRecord:
    return CodeRecord(
        code="code-1",
        status=StackStatus.CREATE_COMPLETE,
        resource_ref=ARN,
        resource_name="ws-code-1-1-1",
        created_at=datetime(2025, 1, 1, tzinfo=timezone.utc),
        updated_at="2025-01-01T00:05:00+00:00",
        outputs=[
            StackOutput("Url", "https://example.com", "Workshop URL"),
            StackOutput("Password", "hunter2"),
        ],
        last_sync_at="2025-01-01T00:06:00+00:00",
        version=3,
    )


@pytest.mark.unit
def test_available_record_defaults():
    record = CodeRecord(code="code-1")
    assert record.status is StackStatus.AVAILABLE
    assert record.is_allocatable
    assert not record.is_linked
    assert not record.needs_reconciliation
    assert record.version == 0


@pytest.mark.unit
def test_status_string_is_normalized():
    record = CodeRecord(code="code-1", status="AVAILABLE")
    assert record.status is StackStatus.AVAILABLE


@pytest.mark.unit
def test_datetimes_are_stored_as_iso(linked_record: CodeRecord):
    assert linked_record.created_at == "2025-01-01T00:00:00+00:00"


@pytest.mark.unit
@pytest.mark.parametrize("code", ["", "   ", "a#b", "x" * 129, None, 7])
def test_invalid_code_rejected(code):
    with pytest.raises(ValueError):
        CodeRecord(code=code)


@pytest.mark.unit
def test_invalid_status_rejected():
    with pytest.raises(ValueError, match="StackStatus must be one of"):
        CodeRecord(code="code-1", status="CREATE_IN_PROGRESS")


@pytest.mark.unit
@pytest.mark.parametrize(
    "field,value",
    [
        ("resource_ref", ARN),
        ("resource_name", "ws"),
        ("created_at", "2025-01-01T00:00:00+00:00"),
        ("outputs", []),
    ],
)
def test_available_record_cannot_carry_linked_fields(field, value):
    with pytest.raises(ValueError, match="must not have"):
        CodeRecord(code="code-1", **{field: value})


@pytest.mark.unit
def test_linked_record_requires_resource_fields():
    with pytest.raises(ValueError, match="resource_ref and resource_name"):
        CodeRecord(code="code-1", status=StackStatus.CREATE_PENDING, resource_name="ws")


@pytest.mark.unit
def test_outputs_only_in_complete_states():
    with pytest.raises(ValueError, match="outputs are not allowed"):
        CodeRecord(
            code="code-1",
            status=StackStatus.DELETE_PENDING,
            resource_ref=ARN,
            resource_name="ws",
            outputs=[StackOutput("Url", "x")],
        )


@pytest.mark.unit
def test_reservation_fields_must_be_complete():
    with pytest.raises(ValueError, match="set together"):
        CodeRecord(code="code-1", reservation_id="123")


@pytest.mark.unit
def test_reserved_record_is_not_allocatable():
    record = CodeRecord(
        code="code-1",
        reservation_id="123",
        reserved_name="ws-code-1-123-1",
        reserved_at="2025-01-01T00:00:00+00:00",
    )
    assert record.is_reserved
    assert not record.is_allocatable
    assert record.needs_reconciliation
    assert not record.is_linked


@pytest.mark.unit
def test_linked_record_cannot_be_reserved():
    with pytest.raises(ValueError, match="only AVAILABLE"):
        CodeRecord(
            code="code-1",
            status=StackStatus.CREATE_PENDING,
            resource_ref=ARN,
            resource_name="ws",
            reservation_id="1",
            reserved_name="ws",
            reserved_at="2025-01-01T00:00:00+00:00",
        )


@pytest.mark.unit
def test_key():
    assert CodeRecord(code="code-1").key == {
        "PK": {"S": "CODE#code-1"},
        "SK": {"S": "CODE"},
    }


@pytest.mark.unit
def test_to_item_omits_absent_fields():
    item = CodeRecord(code="code-1").to_item()
    assert item == {
        "PK": {"S": "CODE#code-1"},
        "SK": {"S": "CODE"},
        "TYPE": {"S": "CODE_RECORD"},
        "code": {"S": "code-1"},
        "status": {"S": "AVAILABLE"},
        "version": {"N": "0"},
    }


@pytest.mark.unit
def test_to_item_serializes_outputs(linked_record: CodeRecord):
    item = linked_record.to_item()
    assert item["outputs"] == {
        "L": [
            {
                "M": {
                    "key": {"S": "Url"},
                    "value": {"S": "https://example.com"},
                    "description": {"S": "Workshop URL"},
                }
            },
            {"M": {"key": {"S": "Password"}, "value": {"S": "hunter2"}}},
        ]
    }
    assert item["version"] == {"N": "3"}
    assert "sync_error" not in item


@pytest.mark.unit
def test_item_round_trip(linked_record: CodeRecord):
    assert item_to_code_record(linked_record.to_item()) == linked_record


@pytest.mark.unit
def test_item_to_code_record_missing_keys():
    with pytest.raises(ValueError, match="missing keys"):
        item_to_code_record({"PK": {"S": "CODE#x"}, "SK": {"S": "CODE"}})


@pytest.mark.unit
def test_item_without_version_defaults_to_zero():
    item = CodeRecord(code="code-1").to_item()
    del item["version"]
    assert item_to_code_record(item).version == 0


@pytest.mark.unit
def test_repr(linked_record: CodeRecord):
    text = repr(linked_record)
    assert text.startswith("CodeRecord(code='code-1', status=CREATE_COMPLETE")
    assert "version=3" in text


@pytest.mark.unit
def test_to_attribute_value():
    assert to_attribute_value(StackStatus.CREATE_PENDING) == {"S": "CREATE_PENDING"}
    assert to_attribute_value(4) == {"N": "4"}
    assert to_attribute_value("x") == {"S": "x"}
    assert to_attribute_value([]) == {"L": []}
    with pytest.raises(ValueError):
        to_attribute_value(True)
    with pytest.raises(ValueError):
        to_attribute_value({"a": 1})


@pytest.mark.unit
def test_stack_output_validation():
    with pytest.raises(ValueError):
        StackOutput("", "value")
    with pytest.raises(ValueError):
        StackOutput("Key", None)
    assert StackOutput("Url", "x", "d").to_dict() == {
        "outputKey": "Url",
        "outputValue": "x",
        "description": "d",
    }


@pytest.mark.unit
def test_validate_transition():
    validate_transition(StackStatus.AVAILABLE, StackStatus.CREATE_PENDING)
    validate_transition(StackStatus.CREATE_COMPLETE, StackStatus.DELETE_PENDING)
    with pytest.raises(InvalidTransitionError) as exc:
        validate_transition(StackStatus.AVAILABLE, StackStatus.DELETE_PENDING)
    assert exc.value.details == {"from": "AVAILABLE", "to": "DELETE_PENDING"}


@pytest.mark.unit
def test_is_allowed_transition_accepts_no_change():
    assert is_allowed_transition(StackStatus.CREATE_PENDING, StackStatus.CREATE_PENDING)
    assert not is_allowed_transition(StackStatus.DELETE_PENDING, StackStatus.CREATE_COMPLETE)
