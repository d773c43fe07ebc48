"""
Advisory results for best-effort side effects.

Trigger toggling and store writes that follow a successful external call must
never turn a successful operation into a failed one. They return an
``Advisory`` instead of raising, so the caller decides what to log.
"""

import logging
from dataclasses import dataclass
from typing import Any, Callable, Dict, Generic, Optional, TypeVar

from botocore.exceptions import BotoCoreError, ClientError

from stack_pool.data.shared_exceptions import StackPoolError

T = TypeVar("T")

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class Advisory(Generic[T]):
    """Outcome of a best-effort operation."""

    description: str
    ok: bool
    value: Optional[T] = None
    error_code: Optional[str] = None

    @classmethod
    def success(cls, description: str, value: Optional[T] = None) -> "Advisory[T]":
        return cls(description=description, ok=True, value=value)

    @classmethod
    def failure(cls, description: str, error: BaseException) -> "Advisory[T]":
        code = getattr(error, "code", None) or type(error).__name__
        return cls(description=description, ok=False, error_code=code)

    def to_dict(self) -> Dict[str, Any]:
        data: Dict[str, Any] = {"description": self.description, "ok": self.ok}
        if self.error_code:
            data["errorCode"] = self.error_code
        return data


def run_advisory(
    description: str, func: Callable[..., T], *args: Any, **kwargs: Any
) -> Advisory[T]:
    """Run ``func`` and capture AWS and stack_pool failures as an Advisory."""
    try:
        return Advisory.success(description, func(*args, **kwargs))
    except (StackPoolError, ClientError, BotoCoreError) as e:
        logger.warning("Advisory operation '%s' failed: %s", description, e, exc_info=True)
        return Advisory.failure(description, e)
