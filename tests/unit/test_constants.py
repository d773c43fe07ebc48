import pytest

from stack_pool.constants import (
    ALLOWED_TRANSITIONS,
    EXTERNAL_STATUS_MAP,
    FAILURE_TERMINAL_STATUSES,
    LIVE_EXTERNAL_STATUSES,
    OUTPUT_STATUSES,
    PENDING_STATUSES,
    PROGRESS_MESSAGES,
    TERMINAL_STATUSES,
    StackStatus,
)


@pytest.mark.unit
def test_transition_table_is_exhaustive():
    assert set(ALLOWED_TRANSITIONS) == set(StackStatus)
    for targets in ALLOWED_TRANSITIONS.values():
        assert targets <= set(StackStatus)


@pytest.mark.unit
def test_only_allocation_leaves_available():
    assert ALLOWED_TRANSITIONS[StackStatus.AVAILABLE] == {StackStatus.CREATE_PENDING}


@pytest.mark.unit
def test_every_linked_status_can_return_to_available():
    for status in StackStatus:
        if status is not StackStatus.AVAILABLE:
            assert StackStatus.AVAILABLE in ALLOWED_TRANSITIONS[status]


@pytest.mark.unit
def test_progress_message_for_every_status():
    assert set(PROGRESS_MESSAGES) == set(StackStatus)
    assert all(PROGRESS_MESSAGES.values())


@pytest.mark.unit
def test_status_partitions():
    assert StackStatus.DELETE_PENDING in PENDING_STATUSES
    assert StackStatus.REVIEW_PENDING in PENDING_STATUSES
    assert not PENDING_STATUSES & TERMINAL_STATUSES
    assert StackStatus.AVAILABLE not in TERMINAL_STATUSES
    assert OUTPUT_STATUSES <= TERMINAL_STATUSES
    assert FAILURE_TERMINAL_STATUSES <= TERMINAL_STATUSES
    assert not OUTPUT_STATUSES & FAILURE_TERMINAL_STATUSES
    for status in TERMINAL_STATUSES:
        assert status.value.endswith(("_COMPLETE", "_FAILED"))


@pytest.mark.unit
@pytest.mark.parametrize(
    "external,expected",
    [
        ("CREATE_IN_PROGRESS", StackStatus.CREATE_PENDING),
        ("CREATE_COMPLETE", StackStatus.CREATE_COMPLETE),
        ("DELETE_IN_PROGRESS", StackStatus.DELETE_PENDING),
        ("UPDATE_COMPLETE_CLEANUP_IN_PROGRESS", StackStatus.UPDATE_PENDING),
        ("UPDATE_ROLLBACK_COMPLETE", StackStatus.UPDATE_ROLLBACK_COMPLETE),
        ("REVIEW_IN_PROGRESS", StackStatus.REVIEW_PENDING),
        ("IMPORT_COMPLETE", StackStatus.UPDATE_COMPLETE),
    ],
)
def test_external_status_map(external, expected):
    assert EXTERNAL_STATUS_MAP[external] is expected


@pytest.mark.unit
def test_no_external_status_maps_to_available():
    assert StackStatus.AVAILABLE not in EXTERNAL_STATUS_MAP.values()


@pytest.mark.unit
def test_live_statuses_exclude_deleted():
    assert "DELETE_COMPLETE" not in LIVE_EXTERNAL_STATUSES
    assert "CREATE_COMPLETE" in LIVE_EXTERNAL_STATUSES
