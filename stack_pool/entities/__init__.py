"""Entity classes for the stack_pool package."""

from stack_pool.entities.code_record import (  # noqa: F401
    CodeRecord,
    StackOutput,
    item_to_code_record,
)
