"""Data access layer: DynamoDB code store and AWS service adapters."""
