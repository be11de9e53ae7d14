"""Utility helpers for Feedback Hub."""

from .dynamodb_utils import (
    decimal_to_python,
    parse_from_dynamodb,
    prepare_for_dynamodb,
    python_to_decimal,
    query_all,
    scan_all,
)

__all__ = [
    "decimal_to_python",
    "python_to_decimal",
    "prepare_for_dynamodb",
    "parse_from_dynamodb",
    "query_all",
    "scan_all",
]
