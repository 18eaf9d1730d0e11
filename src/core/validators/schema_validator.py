"""
SchemaValidator - checks an uploaded file's header row against a column spec.
"""

from src.core.models import SchemaValidationResult
from src.core.schema.column_spec import ColumnSpec, get_column_spec, normalize_header
from src.observability.logger import get_logger

logger = get_logger(__name__)


class SchemaValidator:
    """
    Validates observed header columns for a record type.

    Missing critical columns make the file invalid. Columns outside the
    expected set only produce warnings so exports that gained columns keep
    flowing.
    """

    def __init__(self, specs: dict[str, ColumnSpec] | None = None):
        """
        Initialize schema validator.

        Args:
            specs: Column specs per record type (defaults to the packaged specs)
        """
        self.specs = specs

    def spec_for(self, record_type: str) -> ColumnSpec:
        """Return the column spec used for a record type."""
        if self.specs is not None:
            return self.specs[record_type]
        return get_column_spec(record_type)

    def validate(self, columns: list[str], record_type: str) -> SchemaValidationResult:
        """
        Compare observed columns with the expected layout.

        Args:
            columns: Header cells as found in the file
            record_type: ORDERS or PAYMENTS

        Returns:
            SchemaValidationResult with missing/unknown columns, warnings and errors
        """
        spec = self.spec_for(record_type)
        expected = spec.expected_headers
        expected_set = set(expected)

        observed = []
        for column in columns:
            header = normalize_header(column)
            if header and header not in observed:
                observed.append(header)
        observed_set = set(observed)

        unknown = [h for h in observed if h not in expected_set]
        missing = [h for h in expected if h not in observed_set]
        missing_critical = [h for h in spec.critical if h not in observed_set]

        warnings = [f"Unknown column detected: {h}" for h in unknown]
        non_critical_missing = [h for h in missing if h not in spec.critical]
        if non_critical_missing:
            warnings.append(f"Missing optional columns: {', '.join(non_critical_missing)}")
        errors = [f"Missing critical column: {h}" for h in missing_critical]

        result = SchemaValidationResult(
            record_type=record_type,
            valid=not missing_critical,
            missing_columns=missing,
            unknown_columns=unknown,
            warnings=warnings,
            errors=errors,
        )

        if result.valid:
            if unknown:
                logger.warning(
                    f"Schema drift for {record_type}: {len(unknown)} unknown column(s)",
                    extra={"record_type": record_type, "unknown_columns": unknown},
                )
        else:
            logger.error(
                f"Schema validation failed for {record_type}: missing {', '.join(missing_critical)}",
                extra={"record_type": record_type, "missing_critical": missing_critical},
            )

        return result
