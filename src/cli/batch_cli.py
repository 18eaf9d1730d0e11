"""
Command-line interface for the ledger pipeline.

Usage:
    python -m src.cli.batch_cli ingest --type ORDERS --input <file_path> [options]
    python -m src.cli.batch_cli normalize --type ORDERS --batch-id <batch_id>
    python -m src.cli.batch_cli reprocess --type PAYMENTS --batch-id <batch_id>
    python -m src.cli.batch_cli reconcile
    python -m src.cli.batch_cli stats [--type ORDERS] [--batch-id <batch_id>]
    python -m src.cli.batch_cli clear-batch --type ORDERS --batch-id <batch_id> [--purge-raw]
"""

import argparse
import os
import sys
from pathlib import Path

from src.batch.ingestion import (
    EventPublisher,
    IngestionOrchestrator,
    ReconciliationTrigger,
    log_batch_ingested,
)
from src.batch.normalization import NormalizationBatchProcessor
from src.batch.readers import FileReader
from src.batch.reconciliation import MergeReconciliationEngine
from src.core.models import UploadedFile
from src.core.schema.column_spec import ColumnSpecLoader
from src.core.validators import SchemaValidator
from src.observability.logger import get_logger, log_operation
from src.observability.metrics import start_metrics_server
from src.utils.validation import (
    ValidationError,
    validate_batch_id,
    validate_file_path,
    validate_record_type,
)
from src.warehouse.canonical_store import OrderStore, PaymentStore
from src.warehouse.connection import DatabaseConnectionPool
from src.warehouse.merged_store import MergedRecordStore
from src.warehouse.normalized_store import NormalizedStore
from src.warehouse.raw_staging import RawStagingStore

logger = get_logger(__name__)


class PipelineServices:
    """Wires stores and services on top of one connection pool."""

    def __init__(self, pool: DatabaseConnectionPool, column_specs_path: str | None = None):
        self.pool = pool
        self.column_specs = ColumnSpecLoader(column_specs_path).load_specs() if column_specs_path else None

        self.raw_store = RawStagingStore(pool)
        self.order_store = OrderStore(pool)
        self.payment_store = PaymentStore(pool)
        self.normalized_store = NormalizedStore(
            pool,
            raw_store=self.raw_store,
            order_store=self.order_store,
            payment_store=self.payment_store,
        )
        self.merged_store = MergedRecordStore(pool)

        self.processor = NormalizationBatchProcessor(
            self.raw_store,
            self.normalized_store,
            column_specs=self.column_specs,
        )
        self.engine = MergeReconciliationEngine(self.order_store, self.payment_store, self.merged_store)

    def orchestrator(self, reconcile: bool = True) -> IngestionOrchestrator:
        publisher = EventPublisher()
        publisher.subscribe(log_batch_ingested)
        if reconcile:
            publisher.subscribe(ReconciliationTrigger(self.engine))
        return IngestionOrchestrator(
            self.raw_store,
            file_reader=FileReader(),
            schema_validator=SchemaValidator(self.column_specs),
            publisher=publisher,
            order_store=self.order_store,
            payment_store=self.payment_store,
        )


def create_pool(args) -> DatabaseConnectionPool:
    """
    Open a connection pool from command-line arguments.

    Args:
        args: Parsed arguments carrying the --db-* options
    """
    logger.info("Initializing database connection...")
    pool = DatabaseConnectionPool(
        host=args.db_host,
        port=args.db_port,
        database=args.db_name,
        user=args.db_user,
        password=args.db_password,
    )
    pool.open()
    return pool


def _print_banner(title: str) -> None:
    logger.info("=" * 60)
    logger.info(title)
    logger.info("=" * 60)


def ingest_command(args, services: PipelineServices) -> int:
    """
    Stage an uploaded file, then optionally normalize the new batch.

    The merged table is rebuilt after staging unless --no-reconcile is given;
    with --normalize it is rebuilt again once the batch is normalized.
    """
    record_type = validate_record_type(args.type)
    input_path = Path(validate_file_path(args.input, field_name="input"))
    if not input_path.exists():
        logger.error(f"Input file not found: {args.input}")
        return 1

    uploaded = UploadedFile.from_path(input_path, content_type=args.content_type)
    result = services.orchestrator(reconcile=not args.no_reconcile).ingest(uploaded, record_type)

    _print_banner("INGESTION COMPLETE" if not result.rejected else "INGESTION REJECTED")
    logger.info(f"Batch id: {result.batch_id}")
    logger.info(f"Accepted rows: {result.accepted_rows}")
    logger.info(f"Rejected rows: {result.rejected_rows}")
    for warning in result.warnings:
        logger.warning(f"  {warning}")
    for error in result.errors:
        logger.error(f"  {error}")

    if result.rejected:
        return 1

    if args.normalize:
        normalization = services.processor.normalize_batch(record_type, result.batch_id)
        _report_normalization(normalization)
        if not args.no_reconcile:
            services.engine.rebuild()
        if not normalization.success:
            return 1

    return 0


def _report_normalization(result) -> None:
    _print_banner("NORMALIZATION COMPLETE" if result.success else "NORMALIZATION FAILED")
    logger.info(f"Batch id: {result.batch_id} ({result.record_type})")
    logger.info(f"Processed: {result.processed_count}")
    logger.info(f"Skipped: {result.skipped_count}")
    logger.info(f"Errors: {result.error_count}")
    logger.info(f"Total read: {result.total_count}")
    logger.info(f"Warnings: {result.warnings_count}")
    if result.message:
        logger.info(result.message)
    for error in result.errors:
        logger.error(f"  {error}")


def normalize_command(args, services: PipelineServices) -> int:
    """Normalize a staged batch."""
    result = services.processor.normalize_batch(
        validate_record_type(args.type), validate_batch_id(args.batch_id)
    )
    _report_normalization(result)
    return 0 if result.success else 1


def reprocess_command(args, services: PipelineServices) -> int:
    """Clear and re-normalize a staged batch."""
    result = services.processor.reprocess_batch(
        validate_record_type(args.type), validate_batch_id(args.batch_id)
    )
    _report_normalization(result)
    return 0 if result.success else 1


def reconcile_command(args, services: PipelineServices) -> int:
    """Rebuild the merged table."""
    result = services.engine.rebuild()
    _print_banner("RECONCILIATION COMPLETE")
    logger.info(f"Records rebuilt: {result.records_rebuilt}")
    logger.info(f"Orders seen: {result.orders_seen}")
    logger.info(f"Payments seen: {result.payments_seen}")
    logger.info(f"Orphan payment orders: {result.orphan_payment_orders}")
    logger.info(f"Duration: {result.duration_seconds:.3f}s")
    return 0


def stats_command(args, services: PipelineServices) -> int:
    """Show normalization and merge statistics."""
    batch_id = validate_batch_id(args.batch_id) if args.batch_id else None
    record_types = [validate_record_type(args.type)] if args.type else ["ORDERS", "PAYMENTS"]

    for record_type in record_types:
        stats = services.processor.get_normalization_stats(record_type, batch_id)
        _print_banner(f"{record_type} NORMALIZATION")
        for key, value in stats.items():
            logger.info(f"{key}: {value}")

    if batch_id is None:
        merge_stats = services.engine.get_merge_statistics()
        _print_banner("MERGED TABLE")
        for key, value in merge_stats.items():
            logger.info(f"{key}: {value}")
    return 0


def clear_batch_command(args, services: PipelineServices) -> int:
    """Delete a batch's normalized rows (and raw rows with --purge-raw)."""
    cleared = services.processor.clear_batch(
        validate_record_type(args.type),
        validate_batch_id(args.batch_id),
        purge_raw=args.purge_raw,
    )
    _print_banner("BATCH CLEARED")
    for key, value in cleared.items():
        logger.info(f"{key}: {value}")
    return 0


COMMANDS = {
    "ingest": ingest_command,
    "normalize": normalize_command,
    "reprocess": reprocess_command,
    "reconcile": reconcile_command,
    "stats": stats_command,
    "clear-batch": clear_batch_command,
}


def _add_db_arguments(parser: argparse.ArgumentParser) -> None:
    parser.add_argument(
        "--db-host",
        default=os.getenv("DB_HOST", "localhost"),
        help="Database host (default: $DB_HOST or localhost)"
    )
    parser.add_argument(
        "--db-port",
        type=int,
        default=int(os.getenv("DB_PORT", "5432")),
        help="Database port (default: $DB_PORT or 5432)"
    )
    parser.add_argument(
        "--db-name",
        default=os.getenv("DB_NAME", "ledger"),
        help="Database name (default: $DB_NAME or ledger)"
    )
    parser.add_argument(
        "--db-user",
        default=os.getenv("DB_USER", "ledger"),
        help="Database user (default: $DB_USER or ledger)"
    )
    parser.add_argument(
        "--db-password",
        default=os.getenv("DB_PASSWORD"),
        help="Database password (default: $DB_PASSWORD)"
    )


def _add_batch_arguments(parser: argparse.ArgumentParser, batch_required: bool = True) -> None:
    parser.add_argument(
        "--type",
        required=batch_required,
        help="Record type: ORDERS or PAYMENTS"
    )
    parser.add_argument(
        "--batch-id",
        required=batch_required,
        help="Batch id returned by ingest"
    )


def build_parser() -> argparse.ArgumentParser:
    """Build the argument parser with all subcommands."""
    parser = argparse.ArgumentParser(
        description="Marketplace order/payment ledger pipeline",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  # Stage an orders export and normalize it right away
  python -m src.cli.batch_cli ingest --type ORDERS --input data/orders_jan.xlsx --normalize

  # Stage a CSV payments export without rebuilding the merged table
  python -m src.cli.batch_cli ingest --type PAYMENTS --input data/payments.csv --no-reconcile

  # Normalize a staged batch
  python -m src.cli.batch_cli normalize --type PAYMENTS --batch-id PAY_20240121_090000_1234

  # Rebuild the merged table
  python -m src.cli.batch_cli reconcile
        """
    )
    parser.add_argument(
        "--column-specs",
        default=None,
        help="Custom column specs YAML file (default: packaged specs)"
    )
    parser.add_argument(
        "--metrics-port",
        type=int,
        default=None,
        help="Expose Prometheus metrics on this port while the command runs"
    )

    subparsers = parser.add_subparsers(dest="command", help="Available commands")

    ingest_parser = subparsers.add_parser("ingest", help="Stage an uploaded export file")
    ingest_parser.add_argument(
        "--type",
        required=True,
        help="Record type: ORDERS or PAYMENTS"
    )
    ingest_parser.add_argument(
        "--input",
        required=True,
        help="Path to the export file (.xlsx or .csv)"
    )
    ingest_parser.add_argument(
        "--content-type",
        default=None,
        help="Declared MIME type of the upload (e.g. text/csv)"
    )
    ingest_parser.add_argument(
        "--normalize",
        action="store_true",
        help="Normalize the batch right after staging"
    )
    ingest_parser.add_argument(
        "--no-reconcile",
        action="store_true",
        help="Do not rebuild the merged table after the upload"
    )
    _add_db_arguments(ingest_parser)

    for name, help_text in (
        ("normalize", "Normalize a staged batch"),
        ("reprocess", "Clear and re-normalize a staged batch"),
    ):
        sub = subparsers.add_parser(name, help=help_text)
        _add_batch_arguments(sub)
        _add_db_arguments(sub)

    reconcile_parser = subparsers.add_parser("reconcile", help="Rebuild the merged order/payment table")
    _add_db_arguments(reconcile_parser)

    stats_parser = subparsers.add_parser("stats", help="Show normalization and merge statistics")
    _add_batch_arguments(stats_parser, batch_required=False)
    _add_db_arguments(stats_parser)

    clear_parser = subparsers.add_parser("clear-batch", help="Clear a batch's normalized rows")
    _add_batch_arguments(clear_parser)
    clear_parser.add_argument(
        "--purge-raw",
        action="store_true",
        help="Also delete the batch's raw and canonical rows"
    )
    _add_db_arguments(clear_parser)

    return parser


def main(argv: list[str] | None = None) -> int:
    """Main CLI entry point."""
    parser = build_parser()
    args = parser.parse_args(argv)

    if not args.command:
        parser.print_help()
        return 1

    if args.metrics_port:
        start_metrics_server(args.metrics_port)

    try:
        pool = create_pool(args)
    except Exception as e:
        logger.error(f"Cannot connect to database: {e}", exc_info=True)
        return 1

    try:
        services = PipelineServices(pool, column_specs_path=args.column_specs)
        with log_operation(f"ledger {args.command}", logger=logger, command=args.command):
            return COMMANDS[args.command](args, services)
    except ValidationError as e:
        logger.error(f"Invalid input: {e}")
        return 2
    except Exception as e:
        logger.error(f"Error during {args.command}: {e}", exc_info=True)
        return 1
    finally:
        pool.close()


if __name__ == "__main__":
    sys.exit(main())
