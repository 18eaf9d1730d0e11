"""
Ephemeral models describing upload outcomes.

SchemaValidationResult, IngestionResult and BatchIngestedEvent are returned to
callers and published to observers; none of them is persisted.
"""

from datetime import datetime
from pathlib import Path

from pydantic import BaseModel, Field

from .vocabulary import RecordType


class UploadedFile(BaseModel):
    """
    An uploaded export file on local disk.

    Attributes:
        path: Location of the file content
        file_name: Original file name as uploaded (defaults to the path's name)
        content_type: MIME type declared by the uploader, if any
        size: File size in bytes
    """

    path: Path
    file_name: str
    content_type: str | None = None
    size: int | None = None

    @classmethod
    def from_path(cls, path: str | Path, content_type: str | None = None) -> "UploadedFile":
        path = Path(path)
        return cls(
            path=path,
            file_name=path.name,
            content_type=content_type,
            size=path.stat().st_size if path.exists() else None,
        )


class SchemaValidationResult(BaseModel):
    """
    Outcome of checking an uploaded file's header row.

    Attributes:
        valid: False when at least one critical column is missing
        missing_columns: Expected columns absent from the header
        unknown_columns: Header columns outside the expected set
        warnings: Non-fatal findings (schema drift)
        errors: Fatal findings (missing critical columns)
    """

    record_type: RecordType
    valid: bool
    missing_columns: list[str] = Field(default_factory=list)
    unknown_columns: list[str] = Field(default_factory=list)
    warnings: list[str] = Field(default_factory=list)
    errors: list[str] = Field(default_factory=list)


class IngestionResult(BaseModel):
    """
    Summary returned for every upload, including rejected ones.

    A rejected upload has no batch_id and zero accepted/rejected rows; an
    upload with an unknown record type has no record_type either.
    """

    batch_id: str | None = None
    record_type: RecordType | None = None
    file_name: str | None = None
    accepted_rows: int = 0
    rejected_rows: int = 0
    warnings_count: int = 0
    warnings: list[str] = Field(default_factory=list)
    errors: list[str] = Field(default_factory=list)
    ingested_at: datetime = Field(default_factory=datetime.utcnow)

    @property
    def rejected(self) -> bool:
        """True when the file was refused before any row was staged."""
        return self.batch_id is None

    class Config:
        json_schema_extra = {
            "example": {
                "batch_id": "PAY_20240121_090000_1234",
                "record_type": "PAYMENTS",
                "file_name": "payments_jan.xlsx",
                "accepted_rows": 118,
                "rejected_rows": 2,
                "warnings_count": 1,
                "warnings": ["Unknown column detected: ads fee"],
                "errors": ["Row 7 processing failed: value too long for type character varying(64)"],
            }
        }


class BatchIngestedEvent(BaseModel):
    """Signal published after a batch has been staged."""

    batch_id: str
    record_type: RecordType
    row_count: int = Field(..., ge=0)
    file_name: str | None = None
    file_size: int | None = None
    ingested_at: datetime = Field(default_factory=datetime.utcnow)
