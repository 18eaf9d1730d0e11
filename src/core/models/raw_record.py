"""
RawRecord model representing one staged, unparsed row of an uploaded file.
"""

from datetime import datetime

from pydantic import BaseModel, Field

from .vocabulary import RecordType, ValidationStatus


class RawRecord(BaseModel):
    """
    One immutable row of an uploaded orders or payments file.

    Attributes:
        id: Auto-increment primary key (None until persisted)
        batch_id: Upload batch this row belongs to
        record_type: ORDERS or PAYMENTS (selects orders_raw / payments_raw)
        row_number: 1-based position of the row among the file's data rows
        raw_data: Comma-delimited positional payload, no header
        validation_status: PENDING, VALID, INVALID or PROCESSED
        validation_errors: Reason the row was skipped during normalization
        processed: Whether normalization has consumed this row
        created_at: When the row was staged
    """

    id: int | None = None
    batch_id: str = Field(..., min_length=1, max_length=64)
    record_type: RecordType
    row_number: int = Field(..., ge=1)
    raw_data: str
    validation_status: ValidationStatus = "VALID"
    validation_errors: str | None = None
    processed: bool = False
    created_at: datetime = Field(default_factory=datetime.utcnow)

    class Config:
        json_schema_extra = {
            "example": {
                "id": 42,
                "batch_id": "ORD_20240105_101500_0042",
                "record_type": "ORDERS",
                "row_number": 1,
                "raw_data": "Delivered,SO-1001,2024-01-05,Kerala,Cotton Kurta,KURTA-RED-M,M,1,499,459,PKT-88",
                "validation_status": "VALID",
                "validation_errors": None,
                "processed": False,
            }
        }
