"""DynamoDB service wrapper with environment-aware table names.

Besides plain CRUD it builds low-level ``TransactWriteItems`` operations so
that services can commit several conditional writes atomically and learn
which condition failed when DynamoDB cancels the transaction.
"""

import json
import os
import re
from dataclasses import dataclass, field
from decimal import Decimal
from typing import Any

import boto3
from boto3.dynamodb.conditions import Key
from boto3.dynamodb.types import TypeSerializer
from botocore.exceptions import ClientError

from booking_engine.utils.logging import get_logger

logger = get_logger(__name__)

_dynamodb_service_instance: "DynamoDBService | None" = None

_REASONS_RE = re.compile(r"\[([^\]]*)\]")


def get_dynamodb_service(environment: str | None = None) -> "DynamoDBService":
    """Get or create the singleton DynamoDB service instance.

    Args:
        environment: Environment name. Only used on first call.

    Returns:
        Shared DynamoDBService instance
    """
    global _dynamodb_service_instance
    if _dynamodb_service_instance is None:
        _dynamodb_service_instance = DynamoDBService(environment)
    return _dynamodb_service_instance


def reset_dynamodb_service() -> None:
    """Reset the singleton instance (for testing only).

    Lets tests create a fresh service inside a mock_aws context.
    """
    global _dynamodb_service_instance
    _dynamodb_service_instance = None


@dataclass
class TransactionOutcome:
    """Result of a transactional write.

    ``reasons`` holds one cancellation code per submitted operation, in order
    ("None" for operations that did not cause the cancellation).
    """

    succeeded: bool
    reasons: list[str] = field(default_factory=list)

    def failed_indexes(self, code: str = "ConditionalCheckFailed") -> list[int]:
        return [i for i, reason in enumerate(self.reasons) if reason == code]


class DynamoDBService:
    """Service for DynamoDB operations with environment-aware table names."""

    def __init__(self, environment: str | None = None) -> None:
        """Initialize DynamoDB service.

        Args:
            environment: Environment name (dev/prod). Defaults to ENVIRONMENT env var.
        """
        self.environment = environment or os.getenv("ENVIRONMENT", "dev")
        # DYNAMODB_TABLE_PREFIX overrides the environment-derived prefix
        self.name_prefix = os.getenv(
            "DYNAMODB_TABLE_PREFIX", f"booking-{self.environment}"
        )
        self._dynamodb = boto3.resource("dynamodb")
        self._client = boto3.client("dynamodb")
        self._serializer = TypeSerializer()

    def table_name(self, table: str) -> str:
        """Full table name with prefix."""
        return f"{self.name_prefix}-{table}"

    def _get_table(self, table: str) -> Any:
        return self._dynamodb.Table(self.table_name(table))

    # Generic CRUD operations

    def get_item(
        self,
        table: str,
        key: dict[str, Any],
        consistent_read: bool = False,
    ) -> dict[str, Any] | None:
        """Get a single item by key.

        Args:
            table: Table name without prefix
            key: Primary key dict
            consistent_read: Use a strongly consistent read

        Returns:
            Item dict or None if not found
        """
        response = self._get_table(table).get_item(
            Key=key, ConsistentRead=consistent_read
        )
        item: dict[str, Any] | None = response.get("Item")
        return item

    def put_item(
        self,
        table: str,
        item: dict[str, Any],
        condition_expression: str | None = None,
        expression_attribute_values: dict[str, Any] | None = None,
    ) -> bool:
        """Put an item into the table.

        Args:
            table: Table name without prefix
            item: Item to store
            condition_expression: Optional condition for write
            expression_attribute_values: Values referenced by the condition

        Returns:
            True if successful, False if condition failed
        """
        try:
            kwargs: dict[str, Any] = {"Item": _drop_none(item)}
            if condition_expression:
                kwargs["ConditionExpression"] = condition_expression
            if expression_attribute_values:
                kwargs["ExpressionAttributeValues"] = expression_attribute_values

            self._get_table(table).put_item(**kwargs)
            return True
        except ClientError as e:
            if e.response["Error"]["Code"] == "ConditionalCheckFailedException":
                return False
            raise

    def update_item(
        self,
        table: str,
        key: dict[str, Any],
        update_expression: str,
        expression_attribute_values: dict[str, Any] | None = None,
        expression_attribute_names: dict[str, str] | None = None,
        condition_expression: str | None = None,
    ) -> dict[str, Any] | None:
        """Update an item with expressions.

        Args:
            table: Table name without prefix
            key: Primary key dict
            update_expression: DynamoDB update expression
            expression_attribute_values: Values for expression
            expression_attribute_names: Names for expression (for reserved words)
            condition_expression: Optional condition for update

        Returns:
            Updated attributes or None if condition failed
        """
        try:
            kwargs: dict[str, Any] = {
                "Key": key,
                "UpdateExpression": update_expression,
                "ReturnValues": "ALL_NEW",
            }
            if expression_attribute_values:
                kwargs["ExpressionAttributeValues"] = expression_attribute_values
            if expression_attribute_names:
                kwargs["ExpressionAttributeNames"] = expression_attribute_names
            if condition_expression:
                kwargs["ConditionExpression"] = condition_expression

            response = self._get_table(table).update_item(**kwargs)
            attrs: dict[str, Any] | None = response.get("Attributes")
            return attrs
        except ClientError as e:
            if e.response["Error"]["Code"] == "ConditionalCheckFailedException":
                return None
            raise

    def delete_item(
        self,
        table: str,
        key: dict[str, Any],
        condition_expression: str | None = None,
        expression_attribute_values: dict[str, Any] | None = None,
    ) -> bool:
        """Delete an item by key.

        Returns:
            True if deleted (or didn't exist), False if the condition failed
        """
        try:
            kwargs: dict[str, Any] = {"Key": key}
            if condition_expression:
                kwargs["ConditionExpression"] = condition_expression
            if expression_attribute_values:
                kwargs["ExpressionAttributeValues"] = expression_attribute_values
            self._get_table(table).delete_item(**kwargs)
            return True
        except ClientError as e:
            if e.response["Error"]["Code"] == "ConditionalCheckFailedException":
                return False
            raise

    def query(
        self,
        table: str,
        key_condition: Any,
        index_name: str | None = None,
        filter_expression: Any | None = None,
        limit: int | None = None,
        scan_index_forward: bool = True,
    ) -> list[dict[str, Any]]:
        """Query table or GSI, following pagination.

        Args:
            table: Table name without prefix
            key_condition: Boto3 Key condition
            index_name: GSI name (optional)
            filter_expression: Additional filter (optional)
            limit: Max items to return
            scan_index_forward: Sort order (True=ascending)

        Returns:
            List of items
        """
        kwargs: dict[str, Any] = {
            "KeyConditionExpression": key_condition,
            "ScanIndexForward": scan_index_forward,
        }
        if index_name:
            kwargs["IndexName"] = index_name
        if filter_expression is not None:
            kwargs["FilterExpression"] = filter_expression

        items: list[dict[str, Any]] = []
        while True:
            response = self._get_table(table).query(**kwargs)
            items.extend(response.get("Items", []))
            last_key = response.get("LastEvaluatedKey")
            if not last_key or (limit and len(items) >= limit):
                break
            kwargs["ExclusiveStartKey"] = last_key
        return items[:limit] if limit else items

    def scan(
        self,
        table: str,
        filter_expression: Any | None = None,
    ) -> list[dict[str, Any]]:
        """Scan a whole table (admin listings only)."""
        kwargs: dict[str, Any] = {}
        if filter_expression is not None:
            kwargs["FilterExpression"] = filter_expression

        items: list[dict[str, Any]] = []
        while True:
            response = self._get_table(table).scan(**kwargs)
            items.extend(response.get("Items", []))
            last_key = response.get("LastEvaluatedKey")
            if not last_key:
                break
            kwargs["ExclusiveStartKey"] = last_key
        return items

    def query_by_gsi(
        self,
        table: str,
        index_name: str,
        partition_key_name: str,
        partition_key_value: str,
        sort_key_condition: Any | None = None,
        filter_expression: Any | None = None,
    ) -> list[dict[str, Any]]:
        """Query a GSI by partition key.

        Args:
            table: Table name without prefix
            index_name: GSI name
            partition_key_name: Name of partition key attribute
            partition_key_value: Value to query
            sort_key_condition: Optional sort key condition
            filter_expression: Optional filter applied after the key condition

        Returns:
            List of items
        """
        key_condition = Key(partition_key_name).eq(partition_key_value)
        if sort_key_condition is not None:
            key_condition = key_condition & sort_key_condition

        return self.query(
            table,
            key_condition,
            index_name=index_name,
            filter_expression=filter_expression,
        )

    # Transactions

    def _serialize(self, values: dict[str, Any]) -> dict[str, Any]:
        return {k: self._serializer.serialize(v) for k, v in values.items()}

    def put_op(
        self,
        table: str,
        item: dict[str, Any],
        condition_expression: str | None = None,
        expression_attribute_names: dict[str, str] | None = None,
        expression_attribute_values: dict[str, Any] | None = None,
    ) -> dict[str, Any]:
        """Build a transactional Put operation."""
        op: dict[str, Any] = {
            "TableName": self.table_name(table),
            "Item": self._serialize(_drop_none(item)),
        }
        _add_expressions(
            self, op, condition_expression, expression_attribute_names, expression_attribute_values
        )
        return {"Put": op}

    def update_op(
        self,
        table: str,
        key: dict[str, Any],
        update_expression: str,
        expression_attribute_values: dict[str, Any] | None = None,
        expression_attribute_names: dict[str, str] | None = None,
        condition_expression: str | None = None,
    ) -> dict[str, Any]:
        """Build a transactional Update operation."""
        op: dict[str, Any] = {
            "TableName": self.table_name(table),
            "Key": self._serialize(key),
            "UpdateExpression": update_expression,
        }
        _add_expressions(
            self, op, condition_expression, expression_attribute_names, expression_attribute_values
        )
        return {"Update": op}

    def delete_op(
        self,
        table: str,
        key: dict[str, Any],
        condition_expression: str | None = None,
        expression_attribute_names: dict[str, str] | None = None,
        expression_attribute_values: dict[str, Any] | None = None,
    ) -> dict[str, Any]:
        """Build a transactional Delete operation."""
        op: dict[str, Any] = {
            "TableName": self.table_name(table),
            "Key": self._serialize(key),
        }
        _add_expressions(
            self, op, condition_expression, expression_attribute_names, expression_attribute_values
        )
        return {"Delete": op}

    def transact_write(
        self,
        items: list[dict[str, Any]],
    ) -> bool:
        """Execute a transactional write.

        Returns:
            True if successful, False if the transaction was cancelled
        """
        return self.transact_write_detailed(items).succeeded

    def transact_write_detailed(
        self,
        items: list[dict[str, Any]],
    ) -> TransactionOutcome:
        """Execute a transactional write and report cancellation reasons.

        Args:
            items: TransactItems built with put_op/update_op/delete_op

        Returns:
            TransactionOutcome with one reason per item when cancelled
        """
        try:
            self._client.transact_write_items(TransactItems=items)  # type: ignore[arg-type]
            return TransactionOutcome(succeeded=True)
        except ClientError as e:
            if e.response["Error"]["Code"] != "TransactionCanceledException":
                raise
            reasons = _cancellation_reasons(e, len(items))
            logger.warning("DynamoDB transaction cancelled: %s", reasons)
            return TransactionOutcome(succeeded=False, reasons=reasons)


def _drop_none(item: dict[str, Any]) -> dict[str, Any]:
    return {k: v for k, v in item.items() if v is not None}


def _add_expressions(
    service: DynamoDBService,
    op: dict[str, Any],
    condition_expression: str | None,
    names: dict[str, str] | None,
    values: dict[str, Any] | None,
) -> None:
    if condition_expression:
        op["ConditionExpression"] = condition_expression
    if names:
        op["ExpressionAttributeNames"] = names
    if values:
        op["ExpressionAttributeValues"] = service._serialize(values)


def _cancellation_reasons(error: ClientError, count: int) -> list[str]:
    """Extract per-item cancellation codes from a TransactionCanceledException."""
    reasons = error.response.get("CancellationReasons")
    if reasons:
        return [str(r.get("Code", "None")) for r in reasons]

    # Some clients only expose the codes in the message: "... [None, ConditionalCheckFailed]"
    match = _REASONS_RE.search(error.response["Error"].get("Message", ""))
    if match:
        parsed = [code.strip() for code in match.group(1).split(",")]
        if len(parsed) == count:
            return parsed
    return ["Unknown"] * count


def item_to_json(item: dict[str, Any]) -> str:
    """Serialize a stored item to JSON, turning DynamoDB numbers back into ints.

    Strict models validate the result with ``model_validate_json``, which
    accepts ISO date strings.
    """
    return json.dumps(item, default=_decimal_default)


def _decimal_default(value: Any) -> Any:
    if isinstance(value, Decimal):
        return int(value) if value == value.to_integral_value() else float(value)
    if isinstance(value, set):
        return sorted(value)
    raise TypeError(f"Object of type {type(value).__name__} is not JSON serializable")
