from datetime import datetime, timezone
from enum import Enum
from typing import Any, Type, TypeVar

E = TypeVar("E", bound=Enum)

# Keeps "CODE#<code>" well inside DynamoDB's key size limit
MAX_CODE_LENGTH = 128


def _repr_str(value: Any) -> str:
    return "None" if value is None else f"'{value}'"


def assert_valid_code(code: Any) -> None:
    """Raise ``ValueError`` unless ``code`` can key a code record."""
    if not isinstance(code, str) or not code.strip():
        raise ValueError("code must be a non-empty string")
    if "#" in code:
        raise ValueError("code must not contain '#'")
    if len(code) > MAX_CODE_LENGTH:
        raise ValueError(f"code must be at most {MAX_CODE_LENGTH} characters")


def normalize_enum(candidate: Any, enum_cls: Type[E]) -> E:
    """Coerce ``candidate`` into a member of ``enum_cls``.

    Args:
        candidate: An ``enum_cls`` member or its string value.
        enum_cls: The Enum class to validate against.

    Returns:
        The matching Enum member.

    Raises:
        ValueError: If ``candidate`` is not valid for ``enum_cls``.
    """
    if isinstance(candidate, enum_cls):
        return candidate
    if isinstance(candidate, str):
        try:
            return enum_cls(candidate)
        except ValueError as exc:
            options = ", ".join(e.value for e in enum_cls)
            raise ValueError(
                f"{enum_cls.__name__} must be one of: {options} (got {candidate!r})"
            ) from exc
    raise ValueError(
        f"{enum_cls.__name__} must be a str or {enum_cls.__name__} instance"
    )


def utc_now_iso() -> str:
    return datetime.now(timezone.utc).isoformat()


def parse_iso(value: str) -> datetime:
    """Parse an ISO-8601 timestamp, treating naive values as UTC."""
    parsed = datetime.fromisoformat(value.replace("Z", "+00:00"))
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed
