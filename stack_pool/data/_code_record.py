"""
Accessor methods for CodeRecord items in DynamoDB.

All mutations are per-key. Updates can be conditioned on the record's
expected status, its version, or both, so that concurrent allocation,
deletion and reconciliation cannot interleave into an inconsistent record.
"""

import logging
from typing import (
    Any,
    Collection,
    Dict,
    Iterable,
    List,
    Mapping,
    Optional,
    Union,
)

from stack_pool.constants import StackStatus
from stack_pool.data._base import UpdateItemInputTypeDef
from stack_pool.data.base_operations import (
    BatchOperationsMixin,
    DynamoDBBaseOperations,
    handle_dynamodb_errors,
)
from stack_pool.data.shared_exceptions import EntityValidationError
from stack_pool.entities.code_record import (
    CODE_RECORD_TYPE,
    LINKED_FIELDS,
    RESERVATION_FIELDS,
    CodeRecord,
    code_key,
    item_to_code_record,
    to_attribute_value,
)
from stack_pool.entities.util import assert_valid_code, utc_now_iso

logger = logging.getLogger(__name__)

ExpectedStatus = Union[StackStatus, Collection[StackStatus], None]

_UPDATABLE_FIELDS = frozenset(
    {
        "status",
        "resource_ref",
        "resource_name",
        "created_at",
        "updated_at",
        "outputs",
        "last_sync_at",
        "sync_error",
        *RESERVATION_FIELDS,
    }
)

_ACTIVE_FILTER = "#type = :type AND (#status <> :available OR attribute_exists(reservation_id))"


def _validate_code_arg(code: Any) -> None:
    try:
        assert_valid_code(code)
    except ValueError as e:
        raise EntityValidationError(str(e)) from e


class _CodeRecord(DynamoDBBaseOperations, BatchOperationsMixin):
    """Accessor methods for CodeRecord items in DynamoDB."""

    # ───────────────────────────── writes ─────────────────────────────
    @handle_dynamodb_errors("add_code_record")
    def add_code_record(self, record: CodeRecord) -> None:
        """
        Adds a new code record.

        Raises:
            ConditionalWriteError: If a record for the code already exists
        """
        if not isinstance(record, CodeRecord):
            raise EntityValidationError("record must be an instance of CodeRecord")
        self._client.put_item(
            TableName=self.table_name,
            Item=record.to_item(),
            ConditionExpression="attribute_not_exists(PK)",
        )

    @handle_dynamodb_errors("put_code_record")
    def put_code_record(
        self,
        record: CodeRecord,
        condition_expression: Optional[str] = None,
        expression_values: Optional[Dict[str, Any]] = None,
    ) -> None:
        """Writes the whole record, optionally behind a condition."""
        if not isinstance(record, CodeRecord):
            raise EntityValidationError("record must be an instance of CodeRecord")
        params: Dict[str, Any] = {
            "TableName": self.table_name,
            "Item": record.to_item(),
        }
        if condition_expression:
            params["ConditionExpression"] = condition_expression
        if expression_values:
            params["ExpressionAttributeValues"] = expression_values
        self._client.put_item(**params)

    @handle_dynamodb_errors("put_code_records")
    def put_code_records(self, records: List[CodeRecord]) -> None:
        """Writes records in batches of 25, retrying unprocessed items."""
        if not isinstance(records, list):
            raise EntityValidationError("records must be a list of CodeRecord")
        if not all(isinstance(r, CodeRecord) for r in records):
            raise EntityValidationError(
                "All records must be instances of the CodeRecord class."
            )
        self._batch_write_with_retry(
            [{"PutRequest": {"Item": r.to_item()}} for r in records]
        )

    @handle_dynamodb_errors("update_code_record_fields")
    def update_code_record_fields(
        self,
        code: str,
        set_fields: Optional[Mapping[str, Any]] = None,
        remove_fields: Iterable[str] = (),
        expected_status: ExpectedStatus = None,
        expected_version: Optional[int] = None,
        extra_condition: Optional[str] = None,
        extra_values: Optional[Dict[str, Any]] = None,
        bump_version: bool = True,
    ) -> CodeRecord:
        """
        Sets and removes fields on an existing record in one atomic update.

        Args:
            code: The record to update
            set_fields: Field values to write. ``None`` values are removed.
            remove_fields: Fields to delete from the item
            expected_status: Status (or statuses) the record must currently have
            expected_version: Version the record must currently have
            extra_condition: Additional condition ANDed onto the rest
            extra_values: Expression values referenced by ``extra_condition``
            bump_version: Increment ``version`` and stamp ``updated_at``

        Returns:
            The record as stored after the update

        Raises:
            ConditionalWriteError: If the record is missing or a precondition
                does not hold
        """
        _validate_code_arg(code)
        to_set = dict(set_fields or {})
        to_remove = set(remove_fields)
        for name, value in list(to_set.items()):
            if value is None:
                to_remove.add(name)
                del to_set[name]
        if bump_version:
            to_set.setdefault("updated_at", utc_now_iso())

        unknown = (set(to_set) | to_remove) - _UPDATABLE_FIELDS
        if unknown:
            raise EntityValidationError(f"Unknown code record fields: {sorted(unknown)}")
        overlap = set(to_set) & to_remove
        if overlap:
            raise EntityValidationError(
                f"Fields cannot be both set and removed: {sorted(overlap)}"
            )
        if not to_set and not to_remove:
            raise EntityValidationError("update requires at least one field")

        names: Dict[str, str] = {}
        values: Dict[str, Any] = dict(extra_values or {})
        clauses: List[str] = []

        set_parts = []
        for i, (name, value) in enumerate(sorted(to_set.items())):
            names[f"#s{i}"] = name
            values[f":s{i}"] = to_attribute_value(value)
            set_parts.append(f"#s{i} = :s{i}")
        if set_parts:
            clauses.append("SET " + ", ".join(set_parts))

        remove_parts = []
        for i, name in enumerate(sorted(to_remove)):
            names[f"#r{i}"] = name
            remove_parts.append(f"#r{i}")
        if remove_parts:
            clauses.append("REMOVE " + ", ".join(remove_parts))

        if bump_version:
            names["#version"] = "version"
            values[":one"] = {"N": "1"}
            clauses.append("ADD #version :one")

        conditions = ["attribute_exists(PK)"]
        if expected_status is not None:
            names["#cond_status"] = "status"
            statuses = (
                [expected_status]
                if isinstance(expected_status, StackStatus)
                else sorted(expected_status, key=lambda s: s.value)
            )
            placeholders = []
            for i, status in enumerate(statuses):
                values[f":es{i}"] = {"S": status.value}
                placeholders.append(f":es{i}")
            conditions.append(f"#cond_status IN ({', '.join(placeholders)})")
        if expected_version is not None:
            names["#cond_version"] = "version"
            values[":ev"] = {"N": str(expected_version)}
            # Records written before versioning carry no version attribute
            if expected_version == 0:
                conditions.append(
                    "(attribute_not_exists(#cond_version) OR #cond_version = :ev)"
                )
            else:
                conditions.append("#cond_version = :ev")
        if extra_condition:
            conditions.append(f"({extra_condition})")

        params: UpdateItemInputTypeDef = {
            "TableName": self.table_name,
            "Key": code_key(code),
            "UpdateExpression": " ".join(clauses),
            "ConditionExpression": " AND ".join(conditions),
            "ExpressionAttributeNames": names,
            "ReturnValues": "ALL_NEW",
        }
        if values:
            params["ExpressionAttributeValues"] = values
        response = self._client.update_item(**params)
        return item_to_code_record(response["Attributes"])

    # ────────────────────────── convenience ───────────────────────────
    def reserve_code(
        self, code: str, reservation_id: str, reserved_name: str
    ) -> CodeRecord:
        """Marks an unreserved AVAILABLE code as being allocated.

        Raises:
            ConditionalWriteError: If the code is linked or already reserved
        """
        return self.update_code_record_fields(
            code,
            {
                "reservation_id": reservation_id,
                "reserved_name": reserved_name,
                "reserved_at": utc_now_iso(),
            },
            expected_status=StackStatus.AVAILABLE,
            extra_condition="attribute_not_exists(reservation_id)",
        )

    def release_reservation(self, code: str, reservation_id: str) -> CodeRecord:
        """Drops a reservation held by ``reservation_id``; the code stays AVAILABLE."""
        return self.update_code_record_fields(
            code,
            remove_fields=RESERVATION_FIELDS,
            expected_status=StackStatus.AVAILABLE,
            extra_condition="reservation_id = :rid",
            extra_values={":rid": {"S": reservation_id}},
        )

    def link_reserved_code(
        self,
        code: str,
        reservation_id: str,
        resource_ref: str,
        resource_name: str,
        status: StackStatus = StackStatus.CREATE_PENDING,
    ) -> CodeRecord:
        """Links a reserved code to the stack its reservation created."""
        now = utc_now_iso()
        return self.update_code_record_fields(
            code,
            {
                "status": status,
                "resource_ref": resource_ref,
                "resource_name": resource_name,
                "created_at": now,
                "updated_at": now,
            },
            remove_fields=RESERVATION_FIELDS + ("sync_error",),
            expected_status=StackStatus.AVAILABLE,
            extra_condition="reservation_id = :rid",
            extra_values={":rid": {"S": reservation_id}},
        )

    def reset_code_record(
        self, code: str, expected_version: int, last_sync_at: Optional[str] = None
    ) -> CodeRecord:
        """Returns a linked record to AVAILABLE, clearing every linked field."""
        set_fields: Dict[str, Any] = {"status": StackStatus.AVAILABLE}
        if last_sync_at:
            set_fields["last_sync_at"] = last_sync_at
        return self.update_code_record_fields(
            code,
            set_fields,
            remove_fields=LINKED_FIELDS + RESERVATION_FIELDS + ("sync_error",),
            expected_version=expected_version,
        )

    # ───────────────────────────── reads ──────────────────────────────
    @handle_dynamodb_errors("get_code_record")
    def get_code_record(self, code: str) -> Optional[CodeRecord]:
        """Returns the record for ``code`` or None if the code is not in the pool."""
        _validate_code_arg(code)
        response = self._client.get_item(
            TableName=self.table_name,
            Key=code_key(code),
            ConsistentRead=True,
        )
        item = response.get("Item")
        return item_to_code_record(item) if item else None

    @handle_dynamodb_errors("get_code_records")
    def get_code_records(self, codes: Iterable[str]) -> Dict[str, CodeRecord]:
        """Batch-reads records; codes that are not in the pool are omitted."""
        unique = list(dict.fromkeys(codes))
        for code in unique:
            _validate_code_arg(code)
        items = self._batch_get_with_retry([code_key(c) for c in unique])
        records = [item_to_code_record(i) for i in items]
        return {r.code: r for r in records}

    @handle_dynamodb_errors("list_code_records")
    def list_code_records(self) -> List[CodeRecord]:
        """Returns every record in the pool, ordered by code."""
        return self._scan_code_records()

    @handle_dynamodb_errors("list_active_code_records")
    def list_active_code_records(self) -> List[CodeRecord]:
        """Returns linked records and AVAILABLE records holding a reservation."""
        return self._scan_code_records(active_only=True)

    @handle_dynamodb_errors("count_active_code_records")
    def count_active_code_records(self) -> int:
        count = 0
        params: Dict[str, Any] = {
            "TableName": self.table_name,
            "ConsistentRead": True,
            "Select": "COUNT",
            **self._filter_params(active_only=True),
        }
        while True:
            response = self._client.scan(**params)
            count += response.get("Count", 0)
            if "LastEvaluatedKey" not in response:
                return count
            params["ExclusiveStartKey"] = response["LastEvaluatedKey"]

    def _filter_params(self, active_only: bool) -> Dict[str, Any]:
        if not active_only:
            return {
                "FilterExpression": "#type = :type",
                "ExpressionAttributeNames": {"#type": "TYPE"},
                "ExpressionAttributeValues": {":type": {"S": CODE_RECORD_TYPE}},
            }
        return {
            "FilterExpression": _ACTIVE_FILTER,
            "ExpressionAttributeNames": {"#type": "TYPE", "#status": "status"},
            "ExpressionAttributeValues": {
                ":type": {"S": CODE_RECORD_TYPE},
                ":available": {"S": StackStatus.AVAILABLE.value},
            },
        }

    def _scan_code_records(self, active_only: bool = False) -> List[CodeRecord]:
        records: List[CodeRecord] = []
        params: Dict[str, Any] = {
            "TableName": self.table_name,
            "ConsistentRead": True,
            **self._filter_params(active_only),
        }
        while True:
            response = self._client.scan(**params)
            records.extend(item_to_code_record(i) for i in response.get("Items", []))
            if "LastEvaluatedKey" not in response:
                break
            params["ExclusiveStartKey"] = response["LastEvaluatedKey"]
        return sorted(records, key=lambda r: r.code)
