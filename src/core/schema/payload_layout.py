"""
Positional raw payload layout.

Raw rows are staged as a single comma-delimited line whose values follow the
record type's expected column order. PayloadLayout resolves the
field-name-to-index map once and makes the "too few fields" and "missing
business key" checks explicit.
"""

import csv
import io

from .column_spec import ColumnSpec, get_column_spec, normalize_header


class RowParseError(ValueError):
    """Raised when a raw payload cannot yield a usable record."""

    def __init__(self, reason: str, field_count: int | None = None):
        self.reason = reason
        self.field_count = field_count
        super().__init__(reason)


class ParsedRow:
    """
    Named view over the positional values of one payload.

    Blank values read as None.
    """

    def __init__(self, values: dict[str, str]):
        self._values = values

    def get(self, field_name: str) -> str | None:
        value = self._values.get(field_name)
        if value is None:
            return None
        value = value.strip()
        return value or None

    def __contains__(self, field_name: str) -> bool:
        return field_name in self._values

    def __repr__(self) -> str:
        return f"ParsedRow({self._values})"


class PayloadLayout:
    """
    Field-index-to-name schema of a record type's raw payload.
    """

    def __init__(self, spec: ColumnSpec):
        """
        Initialize payload layout.

        Args:
            spec: Column specification defining field order
        """
        self.spec = spec
        self.record_type = spec.record_type
        self.field_names = spec.field_names
        self.field_index = {name: idx for idx, name in enumerate(self.field_names)}
        self.key_field = spec.key_field
        self.min_fields = spec.min_fields

    @classmethod
    def for_record_type(cls, record_type: str) -> "PayloadLayout":
        """Build the layout from the packaged column specification."""
        return cls(get_column_spec(record_type))

    def header_projection(self, headers: list[str]) -> list[int | None]:
        """
        Map each layout position to the index of the matching file column.

        Args:
            headers: Header row of the uploaded file

        Returns:
            One entry per layout field: source column index, or None when absent
        """
        positions: dict[str, int] = {}
        for idx, header in enumerate(headers):
            # First occurrence wins for duplicated headers
            positions.setdefault(normalize_header(header), idx)
        return [positions.get(header) for header in self.spec.expected_headers]

    def project(self, projection: list[int | None], row: list[str]) -> list[str]:
        """
        Reorder a file row into layout order.

        Columns outside the layout are dropped; absent columns become "".
        """
        values = []
        for source_idx in projection:
            if source_idx is None or source_idx >= len(row) or row[source_idx] is None:
                values.append("")
            else:
                values.append(str(row[source_idx]))
        return values

    def serialize(self, values: list[str]) -> str:
        """
        Render positional values as one comma-delimited line.

        Values containing commas or quotes are quoted; line breaks inside a
        value are flattened to spaces.
        """
        buffer = io.StringIO()
        writer = csv.writer(buffer, lineterminator="")
        writer.writerow([" ".join(str(v).splitlines()) if v else "" for v in values])
        return buffer.getvalue()

    def split(self, payload: str) -> list[str]:
        """Split a payload line into its positional values."""
        if not payload:
            return []
        return next(csv.reader([payload]), [])

    def parse(self, payload: str) -> ParsedRow:
        """
        Parse a raw payload into named fields.

        Args:
            payload: Comma-delimited positional line

        Returns:
            ParsedRow keyed by field name

        Raises:
            RowParseError: If the payload has fewer than min_fields values or a
                blank business key
        """
        values = self.split(payload)
        if len(values) < self.min_fields:
            raise RowParseError(
                f"Insufficient fields: expected at least {self.min_fields}, got {len(values)}",
                field_count=len(values),
            )

        named = {
            name: values[idx] for name, idx in self.field_index.items() if idx < len(values)
        }
        row = ParsedRow(named)
        if row.get(self.key_field) is None:
            raise RowParseError(f"Missing business key '{self.key_field}'", field_count=len(values))
        return row
