"""
Chunked, fault-tolerant normalization of staged batches.

Reader -> transform -> writer over the VALID, unprocessed raw rows of a
batch. Each row is written in its own transaction so a failing row never
rolls back its neighbours; failures count against a skip limit.
"""

import os
from typing import Any

from src.core.models import NormalizationResult, RawRecord
from src.core.normalization import (
    OrderRowTransformer,
    PaymentRowTransformer,
    SkuCache,
    SkuResolver,
    StatusNormalizer,
)
from src.core.schema.column_spec import ColumnSpec
from src.core.schema.payload_layout import PayloadLayout, RowParseError
from src.observability import metrics
from src.observability.logger import get_logger
from src.utils.validation import (
    validate_batch_id,
    validate_chunk_size,
    validate_record_type,
    validate_skip_limit,
)
from src.warehouse.normalized_store import NormalizedStore
from src.warehouse.raw_staging import RawStagingStore

logger = get_logger(__name__)

DEFAULT_CHUNK_SIZE = 100
DEFAULT_SKIP_LIMIT = 100


class SkipLimitExceededError(Exception):
    """Raised when more rows failed to persist than a run tolerates."""

    def __init__(self, skip_limit: int, error_count: int):
        self.skip_limit = skip_limit
        self.error_count = error_count
        super().__init__(f"Skip limit of {skip_limit} exceeded ({error_count} failed rows)")


class _RunState:
    """Mutable counters of one normalization run."""

    def __init__(self):
        self.processed = 0
        self.skipped = 0
        self.errors = 0
        self.total = 0
        self.warnings = 0
        self.messages: list[str] = []


class NormalizationBatchProcessor:
    """
    Normalizes raw batches into normalized and canonical records.

    Configuration (constructor argument, else environment, else default):
    - chunk_size: NORMALIZATION_CHUNK_SIZE (100)
    - skip_limit: NORMALIZATION_SKIP_LIMIT (100)
    """

    def __init__(
        self,
        raw_store: RawStagingStore,
        normalized_store: NormalizedStore,
        sku_resolver: SkuResolver | None = None,
        status_normalizer: StatusNormalizer | None = None,
        chunk_size: int | None = None,
        skip_limit: int | None = None,
        column_specs: dict[str, ColumnSpec] | None = None,
    ):
        """
        Initialize normalization processor.

        Args:
            raw_store: Raw staging store
            normalized_store: Normalized store (writes canonical rows too)
            sku_resolver: SKU resolver (cross-references the canonical orders if None)
            status_normalizer: Status normalizer (default synonym table if None)
            chunk_size: Rows read per chunk
            skip_limit: Failed row writes tolerated per run
            column_specs: Column specs per record type (packaged specs if None)
        """
        self.raw_store = raw_store
        self.normalized_store = normalized_store
        self.sku_resolver = sku_resolver or SkuResolver(normalized_store.order_store, SkuCache())
        self.status_normalizer = status_normalizer or StatusNormalizer()
        self.column_specs = column_specs
        self.chunk_size = validate_chunk_size(
            chunk_size if chunk_size is not None
            else int(os.getenv("NORMALIZATION_CHUNK_SIZE", DEFAULT_CHUNK_SIZE)),
            field_name="chunk_size",
        )
        self.skip_limit = validate_skip_limit(
            skip_limit if skip_limit is not None
            else int(os.getenv("NORMALIZATION_SKIP_LIMIT", DEFAULT_SKIP_LIMIT)),
            field_name="skip_limit",
        )

        self.transformers = {
            "ORDERS": OrderRowTransformer(self.status_normalizer, self.sku_resolver),
            "PAYMENTS": PaymentRowTransformer(self.status_normalizer, self.sku_resolver),
        }

    def normalize_batch(self, record_type: str, batch_id: str) -> NormalizationResult:
        """
        Normalize every VALID, unprocessed raw row of a batch.

        Re-running a completed batch is a no-op that succeeds with
        processed_count=0.

        Args:
            record_type: ORDERS or PAYMENTS
            batch_id: Batch to normalize

        Returns:
            NormalizationResult
        """
        record_type = validate_record_type(record_type)
        batch_id = validate_batch_id(batch_id)

        counts = self.raw_store.get_batch_counts(record_type, batch_id)
        if counts["valid"] == 0:
            message = f"No valid raw {record_type.lower()} found for batch: {batch_id}"
            logger.warning(message, extra={"batch_id": batch_id, "record_type": record_type})
            metrics.increment_counter(metrics.normalization_runs_total, 1, record_type=record_type, status="empty")
            return NormalizationResult(
                success=False,
                batch_id=batch_id,
                record_type=record_type,
                message=message,
            )

        logger.info(
            f"Normalizing {record_type} batch {batch_id} "
            f"(chunk_size={self.chunk_size}, skip_limit={self.skip_limit})",
            extra={"batch_id": batch_id, "record_type": record_type},
        )

        # Cross-references must see orders written since the last run
        self.sku_resolver.clear_cache()

        state = _RunState()
        aborted = False
        abort_message = None
        layout = self._layout(record_type)

        with metrics.track_duration(metrics.normalization_duration_seconds, record_type=record_type):
            try:
                last_id = 0
                while True:
                    chunk = self.raw_store.fetch_unprocessed(
                        record_type, batch_id, after_id=last_id, limit=self.chunk_size
                    )
                    if not chunk:
                        break
                    self._process_chunk(record_type, layout, chunk, state)
                    last_id = chunk[-1].id
            except SkipLimitExceededError as e:
                aborted = True
                abort_message = f"Normalization aborted: {e}"
                logger.error(
                    f"{abort_message} in batch {batch_id}",
                    extra={"batch_id": batch_id, "record_type": record_type, "error_count": state.errors},
                )

        status = "aborted" if aborted else "completed"
        metrics.increment_counter(metrics.normalization_runs_total, 1, record_type=record_type, status=status)
        logger.info(
            f"Normalization {status} for {batch_id}: read={state.total} written={state.processed} "
            f"skipped={state.skipped} errors={state.errors} warnings={state.warnings}",
            extra={
                "batch_id": batch_id,
                "record_type": record_type,
                "rows_read": state.total,
                "rows_written": state.processed,
                "rows_skipped": state.skipped,
                "row_errors": state.errors,
            },
        )

        return NormalizationResult(
            success=not aborted,
            batch_id=batch_id,
            record_type=record_type,
            processed_count=state.processed,
            skipped_count=state.skipped,
            error_count=state.errors,
            total_count=state.total,
            warnings_count=state.warnings,
            errors=state.messages,
            message=abort_message or f"Processed {state.processed} of {state.total} rows",
            aborted=aborted,
        )

    def _process_chunk(
        self,
        record_type: str,
        layout: PayloadLayout,
        chunk: list[RawRecord],
        state: _RunState,
    ) -> None:
        """
        Transform and write one chunk, updating the run counters.

        Raises:
            SkipLimitExceededError: When failed writes exceed the skip limit
        """
        transformer = self.transformers[record_type]
        written = skipped = failed = 0

        try:
            for raw in chunk:
                state.total += 1

                # Unusable payloads are consumed without a normalized record
                try:
                    row = layout.parse(raw.raw_data)
                except RowParseError as e:
                    logger.warning(
                        f"Skipping row {raw.row_number} of {raw.batch_id}: {e.reason}",
                        extra={"batch_id": raw.batch_id, "raw_id": raw.id},
                    )
                    try:
                        self.raw_store.mark_processed(record_type, raw.id, validation_errors=e.reason)
                    except Exception as mark_error:
                        failed += 1
                        self._record_failure(raw, mark_error, state)
                        continue
                    skipped += 1
                    state.skipped += 1
                    continue

                try:
                    normalized, entity, warnings = transformer.transform(raw, row)
                    if record_type == "ORDERS":
                        self.normalized_store.write_order(normalized, entity)
                        self.sku_resolver.cache.invalidate(entity.supplier_sku)
                    else:
                        self.normalized_store.write_payment(normalized, entity)
                except Exception as e:
                    failed += 1
                    self._record_failure(raw, e, state)
                    continue

                written += 1
                state.processed += 1
                if warnings:
                    state.warnings += len(warnings)
                    metrics.increment_counter(metrics.value_fallbacks_total, len(warnings), record_type=record_type)
        finally:
            metrics.record_step_counts(record_type, len(chunk), written, skipped, failed)
            logger.debug(
                f"Chunk done: read={len(chunk)} written={written} skipped={skipped} errors={failed}"
            )

    def _layout(self, record_type: str) -> PayloadLayout:
        if self.column_specs is not None:
            return PayloadLayout(self.column_specs[record_type])
        return PayloadLayout.for_record_type(record_type)

    def _record_failure(self, raw: RawRecord, error: Exception, state: _RunState) -> None:
        state.errors += 1
        state.messages.append(f"Row {raw.row_number} (raw id {raw.id}) failed: {error}")
        logger.error(
            f"Failed to normalize row {raw.row_number} of {raw.batch_id}: {error}",
            extra={"batch_id": raw.batch_id, "raw_id": raw.id},
            exc_info=True,
        )
        if state.errors > self.skip_limit:
            raise SkipLimitExceededError(self.skip_limit, state.errors)

    def clear_batch(self, record_type: str, batch_id: str, purge_raw: bool = False) -> dict[str, int]:
        """
        Remove a batch's normalization output.

        Without purge_raw the raw rows are reset to unprocessed so the batch
        can be normalized again. With purge_raw the raw rows and the canonical
        rows last written by the batch are deleted too.

        Args:
            record_type: ORDERS or PAYMENTS
            batch_id: Batch to clear
            purge_raw: Delete raw and canonical rows as well

        Returns:
            Dictionary of affected row counts
        """
        record_type = validate_record_type(record_type)
        batch_id = validate_batch_id(batch_id)

        cleared = {"normalized_deleted": self.normalized_store.delete_batch(record_type, batch_id)}
        if purge_raw:
            canonical = (
                self.normalized_store.order_store
                if record_type == "ORDERS"
                else self.normalized_store.payment_store
            )
            cleared["canonical_deleted"] = canonical.delete_batch(batch_id)
            cleared["raw_deleted"] = self.raw_store.delete_batch(record_type, batch_id)
        else:
            cleared["raw_reset"] = self.raw_store.reset_batch(record_type, batch_id)

        logger.info(f"Cleared {record_type} batch {batch_id}: {cleared}", extra={"batch_id": batch_id})
        return cleared

    def reprocess_batch(self, record_type: str, batch_id: str) -> NormalizationResult:
        """
        Clear a batch's normalized rows and normalize it again from raw.

        Returns:
            NormalizationResult of the fresh run
        """
        logger.info(f"Reprocessing {record_type} batch {batch_id}")
        self.clear_batch(record_type, batch_id)
        return self.normalize_batch(record_type, batch_id)

    def get_normalization_stats(self, record_type: str, batch_id: str | None = None) -> dict[str, Any]:
        """
        Summarize normalization progress and quality.

        Args:
            record_type: ORDERS or PAYMENTS
            batch_id: Restrict to one batch (all batches if None)

        Returns:
            Dictionary with raw counts, normalized count, progress percentage,
            status breakdown and SKU resolution figures
        """
        record_type = validate_record_type(record_type)
        if batch_id is not None:
            batch_id = validate_batch_id(batch_id)

        raw_counts = self.raw_store.get_batch_counts(record_type, batch_id)
        sku_counts = self.normalized_store.sku_resolution_counts(record_type, batch_id)
        resolved_total = sku_counts["resolved"] + sku_counts["unresolved"]

        return {
            "record_type": record_type,
            "batch_id": batch_id,
            "raw_total": raw_counts["total"],
            "raw_valid": raw_counts["valid"],
            "raw_processed": raw_counts["processed"],
            "normalized_count": self.normalized_store.count(record_type, batch_id),
            "processing_progress": round(raw_counts["processed"] * 100.0 / raw_counts["valid"], 2)
            if raw_counts["valid"]
            else 0.0,
            "status_breakdown": self.normalized_store.status_breakdown(record_type, batch_id),
            "sku_resolved": sku_counts["resolved"],
            "sku_unresolved": sku_counts["unresolved"],
            "sku_resolution_rate": round(sku_counts["resolved"] * 100.0 / resolved_total, 2)
            if resolved_total
            else 0.0,
            "sku_cache": self.sku_resolver.cache_stats(),
        }
