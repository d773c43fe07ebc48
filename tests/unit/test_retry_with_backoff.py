import pytest

from stack_pool.data.shared_exceptions import (
    ExternalServiceThrottledError,
    ExternalServiceValidationError,
)
from stack_pool.utils import exponential_backoff_with_jitter, retry_with_backoff


@pytest.mark.unit
def test_backoff_is_capped():
    assert exponential_backoff_with_jitter(0, 1.0, 10.0, jitter=False) == 1.0
    assert exponential_backoff_with_jitter(3, 1.0, 10.0, jitter=False) == 8.0
    assert exponential_backoff_with_jitter(10, 1.0, 10.0, jitter=False) == 10.0
    assert 4.0 <= exponential_backoff_with_jitter(2, 1.0, 10.0) <= 5.0


@pytest.mark.unit
def test_retry_retries_retryable_errors(mocker):
    sleep = mocker.patch("time.sleep")
    calls = []

    @retry_with_backoff(max_attempts=3, base_delay=0.1, jitter=False)
    def flaky():
        calls.append(1)
        if len(calls) < 3:
            raise ExternalServiceThrottledError()
        return "done"

    assert flaky() == "done"
    assert len(calls) == 3
    assert [c.args[0] for c in sleep.call_args_list] == [0.1, 0.2]


@pytest.mark.unit
def test_retry_does_not_retry_critical_errors(mocker):
    sleep = mocker.patch("time.sleep")
    calls = []

    @retry_with_backoff(max_attempts=5)
    def invalid():
        calls.append(1)
        raise ExternalServiceValidationError()

    with pytest.raises(ExternalServiceValidationError):
        invalid()
    assert len(calls) == 1
    sleep.assert_not_called()


@pytest.mark.unit
def test_retry_reraises_last_error(mocker):
    mocker.patch("time.sleep")

    @retry_with_backoff(max_attempts=2)
    def always_throttled():
        raise ExternalServiceThrottledError("still busy")

    with pytest.raises(ExternalServiceThrottledError, match="still busy"):
        always_throttled()
