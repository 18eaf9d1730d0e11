"""
Core data models for the marketplace ledger pipeline.

All models use Pydantic for runtime validation and type safety.
"""

from .ingestion import BatchIngestedEvent, IngestionResult, SchemaValidationResult, UploadedFile
from .merged_record import MergedRecord
from .normalized_order import NormalizedOrder
from .normalized_payment import NormalizedPayment
from .order import Order
from .payment import Payment
from .raw_record import RawRecord
from .run_results import NormalizationResult, ReconciliationResult
from .vocabulary import (
    BATCH_PREFIXES,
    CANONICAL_STATUSES,
    RECORD_TYPES,
    CanonicalStatus,
    RecordType,
    StatusSource,
    ValidationStatus,
)

__all__ = [
    "RawRecord",
    "NormalizedOrder",
    "NormalizedPayment",
    "Order",
    "Payment",
    "MergedRecord",
    "SchemaValidationResult",
    "IngestionResult",
    "BatchIngestedEvent",
    "UploadedFile",
    "NormalizationResult",
    "ReconciliationResult",
    "RecordType",
    "ValidationStatus",
    "CanonicalStatus",
    "StatusSource",
    "RECORD_TYPES",
    "CANONICAL_STATUSES",
    "BATCH_PREFIXES",
]
