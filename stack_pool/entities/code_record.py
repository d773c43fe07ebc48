"""
Code record entity.

One record exists per pool slot. A record is either AVAILABLE (unlinked,
optionally holding a short-lived allocation reservation) or linked to exactly
one CloudFormation stack whose lifecycle it mirrors.
"""

from dataclasses import dataclass
from datetime import datetime
from typing import Any, Dict, List, Optional

from stack_pool.constants import (
    ALLOWED_TRANSITIONS,
    OUTPUT_STATUSES,
    StackStatus,
)
from stack_pool.data.shared_exceptions import InvalidTransitionError
from stack_pool.entities.util import (
    _repr_str,
    assert_valid_code,
    normalize_enum,
)

CODE_RECORD_TYPE = "CODE_RECORD"

# Attributes cleared whenever a record returns to AVAILABLE
LINKED_FIELDS = ("resource_ref", "resource_name", "created_at", "outputs")
RESERVATION_FIELDS = ("reservation_id", "reserved_name", "reserved_at")


def code_key(code: str) -> Dict[str, Any]:
    return {"PK": {"S": f"CODE#{code}"}, "SK": {"S": "CODE"}}


@dataclass(eq=True, unsafe_hash=True)
class StackOutput:
    """A single CloudFormation stack output."""

    key: str
    value: str
    description: Optional[str] = None

    def __post_init__(self) -> None:
        if not isinstance(self.key, str) or not self.key:
            raise ValueError("output key must be a non-empty string")
        if not isinstance(self.value, str):
            raise ValueError("output value must be a string")

    def to_attribute(self) -> Dict[str, Any]:
        attr = {"key": {"S": self.key}, "value": {"S": self.value}}
        if self.description is not None:
            attr["description"] = {"S": self.description}
        return {"M": attr}

    def to_dict(self) -> Dict[str, Any]:
        data = {"outputKey": self.key, "outputValue": self.value}
        if self.description is not None:
            data["description"] = self.description
        return data


def attribute_to_stack_output(attr: Dict[str, Any]) -> StackOutput:
    m = attr["M"]
    return StackOutput(
        key=m["key"]["S"],
        value=m["value"]["S"],
        description=m.get("description", {}).get("S"),
    )


def to_attribute_value(value: Any) -> Dict[str, Any]:
    """Serialise a CodeRecord field value into a DynamoDB attribute value."""
    if isinstance(value, StackStatus):
        return {"S": value.value}
    if isinstance(value, bool):
        raise ValueError("boolean fields are not supported")
    if isinstance(value, int):
        return {"N": str(value)}
    if isinstance(value, str):
        return {"S": value}
    if isinstance(value, datetime):
        return {"S": value.isoformat()}
    if isinstance(value, (list, tuple)):
        return {"L": [output.to_attribute() for output in value]}
    raise ValueError(f"Unsupported field value type: {type(value).__name__}")


def validate_transition(current: StackStatus, target: StackStatus) -> None:
    """Raise ``InvalidTransitionError`` unless current -> target is allowed."""
    if target not in ALLOWED_TRANSITIONS[current]:
        raise InvalidTransitionError(
            f"Transition {current.value} -> {target.value} is not allowed",
            details={"from": current.value, "to": target.value},
        )


def is_allowed_transition(current: StackStatus, target: StackStatus) -> bool:
    return current == target or target in ALLOWED_TRANSITIONS[current]


@dataclass(eq=True, unsafe_hash=False)
class CodeRecord:
    """
    One pool slot and the stack it is linked to, if any.

    Attributes
    ----------
    code : str
        Immutable pool-slot identifier.
    status : StackStatus
        AVAILABLE or the mirrored CloudFormation status.
    resource_ref : Optional[str]
        Stack ARN. Present iff status is not AVAILABLE.
    resource_name : Optional[str]
        Stack name. Present iff status is not AVAILABLE.
    created_at : Optional[str | datetime]
        When a stack was first linked to the code.
    updated_at : Optional[str | datetime]
        Last substantive write to the record.
    outputs : Optional[List[StackOutput]]
        Stack outputs; only for CREATE_COMPLETE and UPDATE_COMPLETE.
    last_sync_at : Optional[str | datetime]
        Last reconciliation attempt.
    sync_error : Optional[str]
        Error from the last failed reconciliation attempt.
    version : int
        Incremented on every substantive write; used for conditional updates.
    reservation_id : Optional[str]
        Batch that reserved this AVAILABLE code and is creating its stack.
    reserved_name : Optional[str]
        Stack name the reserving batch is creating.
    reserved_at : Optional[str | datetime]
        When the reservation was taken.
    """

    code: str
    status: StackStatus = StackStatus.AVAILABLE
    resource_ref: Optional[str] = None
    resource_name: Optional[str] = None
    created_at: Optional[str | datetime] = None
    updated_at: Optional[str | datetime] = None
    outputs: Optional[List[StackOutput]] = None
    last_sync_at: Optional[str | datetime] = None
    sync_error: Optional[str] = None
    version: int = 0
    reservation_id: Optional[str] = None
    reserved_name: Optional[str] = None
    reserved_at: Optional[str | datetime] = None

    # ────────────────────────── validation ────────────────────────────
    def __post_init__(self) -> None:
        assert_valid_code(self.code)
        self.status = normalize_enum(self.status, StackStatus)

        for name in ("created_at", "updated_at", "last_sync_at", "reserved_at"):
            value = getattr(self, name)
            if isinstance(value, datetime):
                setattr(self, name, value.isoformat())
            elif value is not None and not isinstance(value, str):
                raise ValueError(f"{name} must be datetime, ISO-8601 string, or None")

        if not isinstance(self.version, int) or self.version < 0:
            raise ValueError("version must be a non-negative integer")

        if self.outputs is not None:
            self.outputs = list(self.outputs)
            if not all(isinstance(o, StackOutput) for o in self.outputs):
                raise ValueError("outputs must be a list of StackOutput")

        if self.status is StackStatus.AVAILABLE:
            linked = [f for f in LINKED_FIELDS if getattr(self, f) is not None]
            if linked:
                raise ValueError(
                    f"AVAILABLE record {self.code} must not have {linked}"
                )
            reservation = [getattr(self, f) for f in RESERVATION_FIELDS]
            if any(reservation) and not all(reservation):
                raise ValueError(
                    "reservation_id, reserved_name and reserved_at must be "
                    "set together"
                )
        else:
            if not self.resource_ref or not self.resource_name:
                raise ValueError(
                    f"{self.status.value} record {self.code} must have "
                    "resource_ref and resource_name"
                )
            if self.reservation_id is not None:
                raise ValueError("only AVAILABLE records can be reserved")
            if self.outputs is not None and self.status not in OUTPUT_STATUSES:
                raise ValueError(
                    f"outputs are not allowed in status {self.status.value}"
                )

    # ───────────────────────── DynamoDB keys ──────────────────────────
    @property
    def key(self) -> Dict[str, Any]:
        return code_key(self.code)

    # ───────────────────────── state helpers ──────────────────────────
    @property
    def is_linked(self) -> bool:
        return self.status is not StackStatus.AVAILABLE

    @property
    def is_reserved(self) -> bool:
        return self.reservation_id is not None

    @property
    def is_allocatable(self) -> bool:
        return not self.is_linked and not self.is_reserved

    @property
    def needs_reconciliation(self) -> bool:
        return self.is_linked or self.is_reserved

    # ───────────────────── DynamoDB marshalling ───────────────────────
    def to_item(self) -> Dict[str, Any]:
        item: Dict[str, Any] = {
            **self.key,
            "TYPE": {"S": CODE_RECORD_TYPE},
            "code": {"S": self.code},
            "status": {"S": self.status.value},
            "version": {"N": str(self.version)},
        }
        for name in (
            "resource_ref",
            "resource_name",
            "created_at",
            "updated_at",
            "outputs",
            "last_sync_at",
            "sync_error",
            *RESERVATION_FIELDS,
        ):
            value = getattr(self, name)
            if value is not None:
                item[name] = to_attribute_value(value)
        return item

    # ───────────────────────── string repr ────────────────────────────
    def __repr__(self) -> str:
        return (
            "CodeRecord("
            f"code={_repr_str(self.code)}, "
            f"status={self.status.value}, "
            f"resource_name={_repr_str(self.resource_name)}, "
            f"created_at={_repr_str(self.created_at)}, "
            f"updated_at={_repr_str(self.updated_at)}, "
            f"last_sync_at={_repr_str(self.last_sync_at)}, "
            f"sync_error={_repr_str(self.sync_error)}, "
            f"version={self.version}, "
            f"reservation_id={_repr_str(self.reservation_id)}"
            ")"
        )


def item_to_code_record(item: Dict[str, Any]) -> CodeRecord:
    required = {"PK", "SK", "code", "status"}
    missing = required - set(item)
    if missing:
        raise ValueError(f"Code record item missing keys: {missing}")

    def _s(name: str) -> Optional[str]:
        return item.get(name, {}).get("S")

    outputs = None
    if "outputs" in item:
        outputs = [attribute_to_stack_output(a) for a in item["outputs"]["L"]]

    return CodeRecord(
        code=item["code"]["S"],
        status=StackStatus(item["status"]["S"]),
        resource_ref=_s("resource_ref"),
        resource_name=_s("resource_name"),
        created_at=_s("created_at"),
        updated_at=_s("updated_at"),
        outputs=outputs,
        last_sync_at=_s("last_sync_at"),
        sync_error=_s("sync_error"),
        version=int(item.get("version", {}).get("N", "0")),
        reservation_id=_s("reservation_id"),
        reserved_name=_s("reserved_name"),
        reserved_at=_s("reserved_at"),
    )
