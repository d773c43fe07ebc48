from typing import TYPE_CHECKING, Dict, List, Protocol, Sequence

if TYPE_CHECKING:
    from mypy_boto3_dynamodb import DynamoDBClient
    from mypy_boto3_dynamodb.type_defs import (
        KeysAndAttributesTypeDef,
        UpdateItemInputTypeDef,
        WriteRequestTypeDef,
    )

    from stack_pool.data.cloudformation_client import (
        StackDescription,
        StackSummary,
    )
else:
    # Runtime fallback
    DynamoDBClient = object
    UpdateItemInputTypeDef = dict
    WriteRequestTypeDef = dict
    KeysAndAttributesTypeDef = dict


class DynamoClientProtocol(Protocol):
    """Protocol defining attributes shared by DynamoDB mixin classes."""

    table_name: str
    _client: DynamoDBClient


class ExternalResourceClient(Protocol):
    """What the engine needs from the external resource manager."""

    def create_stack(
        self,
        name: str,
        template_url: str,
        parameters: Dict[str, str],
        tags: Dict[str, str],
        capabilities: Sequence[str] = ...,
        on_failure: str = ...,
    ) -> str: ...

    def describe_stack(self, name_or_ref: str) -> "StackDescription": ...

    def delete_stack(self, name: str) -> None: ...

    def list_stacks(self, status_filter: Sequence[str]) -> List["StackSummary"]: ...
