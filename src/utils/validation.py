"""
Input validation utilities for the ledger pipeline.

Provides reusable validation functions for CLI and service inputs such as
batch ids, record types, chunk sizes and upload paths.
"""

import re

from src.core.models.vocabulary import RECORD_TYPES


class ValidationError(ValueError):
    """Raised when input validation fails."""
    pass


def validate_batch_id(batch_id: str, field_name: str = "batch_id") -> str:
    """
    Validate a batch id.

    Batch ids must be non-empty strings containing only alphanumeric
    characters, hyphens and underscores, at most 64 characters long.

    Args:
        batch_id: The batch id to validate
        field_name: Name of the field (for error messages)

    Returns:
        The validated batch id (stripped of whitespace)

    Raises:
        ValidationError: If validation fails

    Examples:
        >>> validate_batch_id("ORD_20240105_101500_0042")
        'ORD_20240105_101500_0042'
        >>> validate_batch_id("ORD 1; DROP")  # doctest: +SKIP
        ValidationError: batch_id contains invalid characters
    """
    if not batch_id or not isinstance(batch_id, str):
        raise ValidationError(f"{field_name} must be a non-empty string")

    batch_id = batch_id.strip()

    if not batch_id:
        raise ValidationError(f"{field_name} cannot be empty or whitespace-only")

    if not re.match(r'^[a-zA-Z0-9_\-]+$', batch_id):
        raise ValidationError(
            f"{field_name} contains invalid characters. "
            "Only alphanumeric, hyphens and underscores are allowed."
        )

    # Column width of batch_id in every table
    if len(batch_id) > 64:
        raise ValidationError(f"{field_name} exceeds maximum length of 64 characters")

    return batch_id


def validate_record_type(record_type: str, field_name: str = "record_type") -> str:
    """
    Validate and canonicalize a record type.

    Args:
        record_type: "ORDERS" or "PAYMENTS" in any casing
        field_name: Name of the field (for error messages)

    Returns:
        The upper-cased record type

    Raises:
        ValidationError: If the record type is unknown

    Examples:
        >>> validate_record_type("orders")
        'ORDERS'
    """
    if not record_type or not isinstance(record_type, str):
        raise ValidationError(f"{field_name} must be a non-empty string")

    canonical = record_type.strip().upper()
    if canonical not in RECORD_TYPES:
        raise ValidationError(
            f"{field_name} must be one of {', '.join(RECORD_TYPES)}, got '{record_type}'"
        )
    return canonical


def validate_chunk_size(chunk_size: int, field_name: str = "chunk_size", max_size: int = 10000) -> int:
    """
    Validate a chunk size.

    Args:
        chunk_size: The value to validate
        field_name: Name of the field (for error messages)
        max_size: Maximum allowed value

    Returns:
        The validated value

    Raises:
        ValidationError: If validation fails

    Examples:
        >>> validate_chunk_size(100)
        100
        >>> validate_chunk_size(0)  # doctest: +SKIP
        ValidationError: chunk_size must be a positive integer
    """
    if isinstance(chunk_size, bool) or not isinstance(chunk_size, int):
        raise ValidationError(f"{field_name} must be an integer, got {type(chunk_size).__name__}")

    if chunk_size <= 0:
        raise ValidationError(f"{field_name} must be a positive integer, got {chunk_size}")

    if chunk_size > max_size:
        raise ValidationError(f"{field_name} exceeds maximum of {max_size}")

    return chunk_size


def validate_skip_limit(skip_limit: int, field_name: str = "skip_limit", max_limit: int = 100000) -> int:
    """
    Validate a skip limit.

    Zero is allowed: the first failed row write aborts the run.

    Args:
        skip_limit: The value to validate
        field_name: Name of the field (for error messages)
        max_limit: Maximum allowed value

    Returns:
        The validated value

    Raises:
        ValidationError: If validation fails

    Examples:
        >>> validate_skip_limit(0)
        0
    """
    if isinstance(skip_limit, bool) or not isinstance(skip_limit, int):
        raise ValidationError(f"{field_name} must be an integer, got {type(skip_limit).__name__}")

    if skip_limit < 0:
        raise ValidationError(f"{field_name} must be zero or a positive integer, got {skip_limit}")

    if skip_limit > max_limit:
        raise ValidationError(f"{field_name} exceeds maximum of {max_limit}")

    return skip_limit


def validate_file_path(file_path: str, field_name: str = "file_path") -> str:
    """
    Validate an upload path for security.

    Prevents path traversal and rejects wildcards; uploads are single files.

    Args:
        file_path: The file path to validate
        field_name: Name of the field (for error messages)

    Returns:
        The validated file path (stripped of whitespace)

    Raises:
        ValidationError: If validation fails

    Examples:
        >>> validate_file_path("/data/orders_jan.xlsx")
        '/data/orders_jan.xlsx'
        >>> validate_file_path("../../../etc/passwd")  # doctest: +SKIP
        ValidationError: file_path contains path traversal characters
    """
    if not file_path or not isinstance(file_path, str):
        raise ValidationError(f"{field_name} must be a non-empty string")

    file_path = file_path.strip()

    if not file_path:
        raise ValidationError(f"{field_name} cannot be empty or whitespace-only")

    if ".." in file_path:
        raise ValidationError(f"{field_name} contains path traversal characters (..)")

    if "\x00" in file_path:
        raise ValidationError(f"{field_name} contains null bytes")

    if "*" in file_path or "?" in file_path:
        raise ValidationError(f"{field_name} contains wildcards (* or ?)")

    if len(file_path) > 4096:  # Linux PATH_MAX
        raise ValidationError(f"{field_name} exceeds maximum length of 4096 characters")

    return file_path
