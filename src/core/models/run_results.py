"""
Result models for normalization and reconciliation runs.
"""

from pydantic import BaseModel, Field

from .vocabulary import RecordType


class NormalizationResult(BaseModel):
    """
    Counters of one normalization run over a batch.

    Attributes:
        success: False when the batch had no valid rows or the run was aborted
        processed_count: Rows written as normalized records
        skipped_count: Rows marked processed without a normalized record
        error_count: Rows whose write failed (left unprocessed)
        total_count: Rows read by this run
        warnings_count: Value coercion fallbacks applied
        aborted: True when the skip limit was exceeded
    """

    success: bool = True
    batch_id: str
    record_type: RecordType
    processed_count: int = 0
    skipped_count: int = 0
    error_count: int = 0
    total_count: int = 0
    warnings_count: int = 0
    errors: list[str] = Field(default_factory=list)
    message: str | None = None
    aborted: bool = False

    class Config:
        json_schema_extra = {
            "example": {
                "success": True,
                "batch_id": "ORD_20240105_101500_0042",
                "record_type": "ORDERS",
                "processed_count": 96,
                "skipped_count": 3,
                "error_count": 1,
                "total_count": 100,
                "warnings_count": 4,
                "errors": ["Row 57 (raw id 1057) failed: numeric field overflow"],
                "aborted": False,
            }
        }


class ReconciliationResult(BaseModel):
    """Outcome of a full merged-table rebuild."""

    records_rebuilt: int = Field(..., ge=0)
    orders_seen: int = 0
    payments_seen: int = 0
    orphan_payment_orders: int = 0
    duration_seconds: float = 0.0
