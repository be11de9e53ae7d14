"""DynamoDB helpers.

DynamoDB stores numbers as Decimal types, but the Pydantic models use int.
Scans and queries return at most 1 MB per call, so listing helpers follow
``LastEvaluatedKey`` until the result set is exhausted.
"""

from decimal import Decimal
from typing import Any


def decimal_to_python(obj: Any) -> Any:
    """Recursively convert DynamoDB Decimal values to int/float."""
    if isinstance(obj, Decimal):
        if obj % 1 == 0:
            return int(obj)
        return float(obj)
    elif isinstance(obj, dict):
        return {key: decimal_to_python(value) for key, value in obj.items()}
    elif isinstance(obj, list):
        return [decimal_to_python(item) for item in obj]
    return obj


def python_to_decimal(obj: Any) -> Any:
    """Recursively convert int/float values to Decimal for DynamoDB storage.

    ``None`` values are dropped from dicts since DynamoDB GSI key attributes
    cannot hold NULL.
    """
    if isinstance(obj, float):
        # Convert through str to avoid binary float artefacts
        return Decimal(str(round(obj, 6)))
    elif isinstance(obj, int) and not isinstance(obj, bool):
        return Decimal(obj)
    elif isinstance(obj, dict):
        return {
            key: python_to_decimal(value)
            for key, value in obj.items()
            if value is not None
        }
    elif isinstance(obj, list):
        return [python_to_decimal(item) for item in obj]
    return obj


def prepare_for_dynamodb(item: dict[str, Any]) -> dict[str, Any]:
    """Prepare a model dump for ``put_item``."""
    return python_to_decimal(item)


def parse_from_dynamodb(item: dict[str, Any]) -> dict[str, Any]:
    """Parse an item returned by get/query/scan into Python-native types."""
    return decimal_to_python(item)


def scan_all(table, **kwargs) -> list[dict[str, Any]]:
    """Scan a table, following pagination, and return parsed items.

    Args:
        table: boto3 DynamoDB Table resource
        **kwargs: Extra arguments passed to ``table.scan``

    Returns:
        Every item in the table (or matching the filter)
    """
    items: list[dict[str, Any]] = []
    response = table.scan(**kwargs)
    items.extend(response.get("Items", []))
    while "LastEvaluatedKey" in response:
        response = table.scan(ExclusiveStartKey=response["LastEvaluatedKey"], **kwargs)
        items.extend(response.get("Items", []))
    return [parse_from_dynamodb(item) for item in items]


def query_all(table, **kwargs) -> list[dict[str, Any]]:
    """Query a table or index, following pagination, and return parsed items."""
    items: list[dict[str, Any]] = []
    response = table.query(**kwargs)
    items.extend(response.get("Items", []))
    while "LastEvaluatedKey" in response:
        response = table.query(
            ExclusiveStartKey=response["LastEvaluatedKey"], **kwargs
        )
        items.extend(response.get("Items", []))
    return [parse_from_dynamodb(item) for item in items]
