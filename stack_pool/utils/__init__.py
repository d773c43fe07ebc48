from stack_pool.utils.advisory import Advisory, run_advisory  # noqa: F401
from stack_pool.utils.concurrency import run_bounded  # noqa: F401
from stack_pool.utils.retry_with_backoff import (  # noqa: F401
    exponential_backoff_with_jitter,
    retry_with_backoff,
)
