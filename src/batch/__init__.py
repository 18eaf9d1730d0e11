"""
Batch processing: upload ingestion, normalization and merge reconciliation.
"""

from .ingestion import (
    EventPublisher,
    IngestionOrchestrator,
    ReconciliationTrigger,
    generate_batch_id,
    log_batch_ingested,
)
from .normalization import NormalizationBatchProcessor, SkipLimitExceededError
from .readers import FileReader, SpreadsheetReader, TabularData, TabularReadError
from .reconciliation import MergeReconciliationEngine, resolve_status, settlement_total

__all__ = [
    "EventPublisher",
    "IngestionOrchestrator",
    "ReconciliationTrigger",
    "generate_batch_id",
    "log_batch_ingested",
    "NormalizationBatchProcessor",
    "SkipLimitExceededError",
    "FileReader",
    "SpreadsheetReader",
    "TabularData",
    "TabularReadError",
    "MergeReconciliationEngine",
    "resolve_status",
    "settlement_total",
]
