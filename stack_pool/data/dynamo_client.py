from typing import TYPE_CHECKING, Any, Optional

import boto3
from botocore.config import Config

from stack_pool.data._code_record import _CodeRecord

if TYPE_CHECKING:
    from mypy_boto3_dynamodb import DynamoDBClient


class DynamoClient(_CodeRecord):
    """A class used to represent the DynamoDB code store."""

    def __init__(
        self,
        table_name: str,
        region: str = "us-east-1",
        client: Optional[Any] = None,
        botocore_config: Optional[Config] = None,
        endpoint_url: Optional[str] = None,
    ):
        """Initializes a DynamoClient instance.

        Args:
            table_name (str): The name of the DynamoDB table.
            region (str, optional): The AWS region where the DynamoDB table is
                located. Defaults to "us-east-1".
            client (optional): A pre-built boto3 DynamoDB client.
            botocore_config (Config, optional): Timeouts and retry settings
                for the client built here.
            endpoint_url (str, optional): Endpoint override for local testing.

        Attributes:
            _client (DynamoDBClient): The Boto3 DynamoDB client.
            table_name (str): The name of the DynamoDB table.
        """
        super().__init__()

        self._client: DynamoDBClient = client or boto3.client(
            "dynamodb",
            region_name=region,
            config=botocore_config,
            endpoint_url=endpoint_url,
        )
        self.table_name = table_name
        # Ensure the table already exists
        try:
            self._client.describe_table(TableName=self.table_name)
        except self._client.exceptions.ResourceNotFoundException as e:
            raise ValueError(
                f"The table '{self.table_name}' does not exist in region "
                f"'{region}'."
            ) from e
