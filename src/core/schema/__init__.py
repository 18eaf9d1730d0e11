"""
Header specifications and raw payload layout.

Provides:
- Column specs per record type (loaded from YAML)
- Header normalization
- Positional payload serialization and parsing
"""

from .column_spec import (
    ColumnDefinition,
    ColumnSpec,
    ColumnSpecError,
    ColumnSpecLoader,
    get_column_spec,
    normalize_header,
)
from .payload_layout import ParsedRow, PayloadLayout, RowParseError

__all__ = [
    "ColumnDefinition",
    "ColumnSpec",
    "ColumnSpecError",
    "ColumnSpecLoader",
    "get_column_spec",
    "normalize_header",
    "ParsedRow",
    "PayloadLayout",
    "RowParseError",
]
