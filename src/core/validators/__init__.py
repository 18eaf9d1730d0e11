"""
Upload validation.

Provides the header-level schema validator used before any row is staged.
"""

from .schema_validator import SchemaValidator

__all__ = [
    "SchemaValidator",
]
