"""
Upload ingestion: read -> schema check -> stage raw rows -> publish.

Every staged row becomes one immutable RawRecord whose payload follows the
record type's expected column order.
"""

import random
from datetime import datetime
from typing import Callable

from src.batch.readers import FileReader
from src.core.models import BatchIngestedEvent, IngestionResult, RawRecord, UploadedFile
from src.core.models.vocabulary import BATCH_PREFIXES
from src.core.normalization import (
    OrderRowTransformer,
    PaymentRowTransformer,
    SkuCache,
    SkuResolver,
    StatusNormalizer,
)
from src.core.schema.payload_layout import PayloadLayout
from src.core.validators import SchemaValidator
from src.observability import metrics
from src.observability.logger import get_logger
from src.utils.validation import ValidationError, validate_record_type
from src.warehouse.canonical_store import OrderStore, PaymentStore
from src.warehouse.raw_staging import RawStagingStore

logger = get_logger(__name__)

Listener = Callable[[BatchIngestedEvent], None]


def generate_batch_id(record_type: str, now: datetime | None = None) -> str:
    """
    Build a batch id such as ORD_20240105_101500_0042.

    Args:
        record_type: ORDERS or PAYMENTS
        now: Timestamp to use (current time if None)

    Returns:
        Batch id
    """
    prefix = BATCH_PREFIXES[record_type]
    now = now or datetime.now()
    return f"{prefix}_{now.strftime('%Y%m%d_%H%M%S')}_{random.randint(0, 9999):04d}"


class EventPublisher:
    """
    In-process publisher of batch-ingested events.

    Listeners run synchronously in subscription order. A failing listener is
    logged and the remaining listeners still run.
    """

    def __init__(self):
        self._listeners: list[Listener] = []

    def subscribe(self, listener: Listener) -> None:
        self._listeners.append(listener)

    def publish(self, event: BatchIngestedEvent) -> None:
        for listener in self._listeners:
            try:
                listener(event)
            except Exception as e:
                logger.error(
                    f"Listener {getattr(listener, '__name__', type(listener).__name__)} failed "
                    f"for batch {event.batch_id}: {e}",
                    extra={"batch_id": event.batch_id},
                    exc_info=True,
                )


def log_batch_ingested(event: BatchIngestedEvent) -> None:
    """Default listener: log the staged batch."""
    logger.info(
        f"Batch {event.batch_id} ingested: {event.row_count} rows from {event.file_name}",
        extra={
            "batch_id": event.batch_id,
            "record_type": event.record_type,
            "row_count": event.row_count,
            "file_name": event.file_name,
            "file_size": event.file_size,
        },
    )


class ReconciliationTrigger:
    """
    Listener rebuilding the merged table after every upload.

    The engine needs a rebuild() method; see MergeReconciliationEngine.
    """

    def __init__(self, engine):
        self.engine = engine

    def __call__(self, event: BatchIngestedEvent) -> None:
        logger.info(f"Reconciliation triggered by batch {event.batch_id}")
        self.engine.rebuild()


class IngestionOrchestrator:
    """
    Turns an uploaded file into a staged batch.

    Flow:
    1. Read header and rows (CSV or spreadsheet)
    2. Validate the header against the column spec
    3. Generate a batch id
    4. Stage one raw record per row, upserting its canonical order/payment
       when canonical stores are configured
    5. Publish a BatchIngestedEvent

    Canonical rows written here let a rebuild triggered by the upload see the
    file before it is normalized; normalization later overwrites them.
    """

    def __init__(
        self,
        raw_store: RawStagingStore,
        file_reader: FileReader | None = None,
        schema_validator: SchemaValidator | None = None,
        publisher: EventPublisher | None = None,
        order_store: OrderStore | None = None,
        payment_store: PaymentStore | None = None,
    ):
        """
        Initialize ingestion orchestrator.

        Args:
            raw_store: Raw staging store
            file_reader: File reader (default instance if None)
            schema_validator: Schema validator (packaged column specs if None)
            publisher: Event publisher (one with the logging listener if None)
            order_store: Canonical orders written at upload (skipped if None)
            payment_store: Canonical payments written at upload (skipped if None)
        """
        self.raw_store = raw_store
        self.file_reader = file_reader or FileReader()
        self.schema_validator = schema_validator or SchemaValidator()
        if publisher is None:
            publisher = EventPublisher()
            publisher.subscribe(log_batch_ingested)
        self.publisher = publisher
        if payment_store is not None and order_store is None:
            raise ValueError("payment_store requires order_store for SKU cross-references")
        self.order_store = order_store
        self.canonical_stores = {"ORDERS": order_store, "PAYMENTS": payment_store}

    def ingest(self, uploaded: UploadedFile, record_type: str) -> IngestionResult:
        """
        Ingest an uploaded file as a new batch.

        Schema rejections and unreadable files come back as results with no
        batch id; nothing is staged for them.

        Args:
            uploaded: Uploaded file
            record_type: ORDERS or PAYMENTS

        Returns:
            IngestionResult
        """
        try:
            record_type = validate_record_type(record_type)
        except ValidationError as e:
            logger.error(f"Rejected upload {uploaded.file_name}: {e}")
            metrics.increment_counter(metrics.batches_ingested_total, 1, record_type="UNKNOWN", status="rejected")
            return IngestionResult(file_name=uploaded.file_name, errors=[str(e)])

        logger.info(
            f"Ingesting {record_type} file {uploaded.file_name}",
            extra={"record_type": record_type, "file_name": uploaded.file_name},
        )
        spec = self.schema_validator.spec_for(record_type)

        # Step 1: Read file
        try:
            table = self.file_reader.read(uploaded, spec)
        except Exception as e:
            logger.error(f"File processing failed for {uploaded.file_name}: {e}", exc_info=True)
            metrics.increment_counter(metrics.batches_ingested_total, 1, record_type=record_type, status="failed")
            return IngestionResult(
                record_type=record_type,
                file_name=uploaded.file_name,
                errors=[f"File processing failed: {e}"],
            )
        logger.info(f"Read {len(table.rows)} data rows with {len(table.headers)} columns")

        # Step 2: Validate header
        validation = self.schema_validator.validate(table.headers, record_type)
        if not validation.valid:
            metrics.increment_counter(metrics.schema_rejections_total, 1, record_type=record_type)
            metrics.increment_counter(metrics.batches_ingested_total, 1, record_type=record_type, status="rejected")
            return IngestionResult(
                record_type=record_type,
                file_name=uploaded.file_name,
                warnings_count=len(validation.warnings),
                warnings=validation.warnings,
                errors=validation.errors,
            )

        # Step 3: Stage rows
        batch_id = generate_batch_id(record_type)
        layout = PayloadLayout(spec)
        projection = layout.header_projection(table.headers)
        accepted = 0
        rejected = 0
        errors: list[str] = []
        warnings = list(validation.warnings)
        transformer = self._canonical_transformer(record_type)

        for row_number, row in enumerate(table.rows, start=1):
            try:
                raw = RawRecord(
                    batch_id=batch_id,
                    record_type=record_type,
                    row_number=row_number,
                    raw_data=layout.serialize(layout.project(projection, row)),
                )
                raw.id = self.raw_store.insert_record(raw)
                accepted += 1
            except Exception as e:
                rejected += 1
                errors.append(f"Row {row_number} processing failed: {e}")
                logger.error(
                    f"Row {row_number} of batch {batch_id} could not be staged: {e}",
                    extra={"batch_id": batch_id, "row_number": row_number},
                    exc_info=True,
                )
                continue

            if transformer is not None:
                warning = self._write_canonical(record_type, raw, layout, transformer)
                if warning:
                    warnings.append(warning)

        result = IngestionResult(
            batch_id=batch_id,
            record_type=record_type,
            file_name=uploaded.file_name,
            accepted_rows=accepted,
            rejected_rows=rejected,
            warnings_count=len(warnings),
            warnings=warnings,
            errors=errors,
        )
        metrics.record_ingestion(record_type, accepted, rejected, len(validation.warnings))
        logger.info(
            f"Staged batch {batch_id}: {accepted} accepted, {rejected} rejected",
            extra={"batch_id": batch_id, "accepted_rows": accepted, "rejected_rows": rejected},
        )

        # Step 4: Publish
        self.publisher.publish(
            BatchIngestedEvent(
                batch_id=batch_id,
                record_type=record_type,
                row_count=accepted + rejected,
                file_name=uploaded.file_name,
                file_size=uploaded.size,
                ingested_at=result.ingested_at,
            )
        )
        return result

    def _canonical_transformer(self, record_type: str):
        if self.canonical_stores[record_type] is None:
            return None
        # Fresh cache per upload; payment SKUs cross-reference the canonical orders
        resolver = SkuResolver(self.order_store, SkuCache())
        if record_type == "ORDERS":
            return OrderRowTransformer(StatusNormalizer(), resolver)
        return PaymentRowTransformer(StatusNormalizer(), resolver)

    def _write_canonical(self, record_type: str, raw: RawRecord, layout: PayloadLayout, transformer) -> str | None:
        """
        Upsert the canonical record of a staged row.

        Failures never reject the row: it stays staged and normalization
        writes the canonical record again.

        Returns:
            Warning text when the canonical record could not be written
        """
        try:
            _, canonical, _ = transformer.transform(raw, layout.parse(raw.raw_data))
        except ValueError as e:
            # RowParseError or a model validation error
            return f"Row {raw.row_number} not written to canonical {record_type.lower()}: {e}"
        try:
            self.canonical_stores[record_type].upsert(canonical)
        except Exception as e:
            logger.error(
                f"Canonical upsert failed for row {raw.row_number} of batch {raw.batch_id}: {e}",
                extra={"batch_id": raw.batch_id, "row_number": raw.row_number},
                exc_info=True,
            )
            return f"Row {raw.row_number} not written to canonical {record_type.lower()}: {e}"
        return None
