"""
Merge reconciliation of canonical orders and payments.

Every run recomputes the merged table from the complete orders and payments
tables and swaps it in atomically.
"""

import time
from collections import Counter, defaultdict
from datetime import date
from decimal import Decimal
from typing import Any

from src.core.models import MergedRecord, Order, Payment, ReconciliationResult
from src.observability import metrics
from src.observability.logger import get_logger
from src.warehouse.canonical_store import OrderStore, PaymentStore
from src.warehouse.merged_store import MergedRecordStore

logger = get_logger(__name__)


def _blank(value: str | None) -> bool:
    return value is None or not value.strip()


def _newest_first(payments: list[Payment]) -> list[Payment]:
    """Order payments by payment_date descending, undated last, newest row first on ties."""
    return sorted(
        payments,
        key=lambda p: (p.payment_date is not None, p.payment_date or date.min, p.id or 0),
        reverse=True,
    )


def resolve_status(order: Order | None, payments: list[Payment]) -> tuple[str, str]:
    """
    Pick the merged status and its provenance.

    Payment statuses win (newest first, ignoring blanks and "unknown"), then
    the order file's status, then "UNKNOWN".

    Args:
        order: Canonical order, if one exists
        payments: Payments of the order, newest first

    Returns:
        Tuple of (status, status_source)
    """
    for payment in payments:
        status = payment.order_status
        if not _blank(status) and status.strip().lower() != "unknown":
            return status.strip(), "PAYMENT_FILE"

    if order is not None and not _blank(order.reason_for_credit_entry):
        return order.reason_for_credit_entry.strip(), "ORDER_FILE"

    return "UNKNOWN", "MERGED"


def settlement_total(payments: list[Payment]) -> Decimal:
    """
    Sum settlement amounts, falling back to the gross amount per row.

    Rows with neither value are skipped.
    """
    amounts = [
        p.final_settlement_amount if p.final_settlement_amount is not None else p.amount
        for p in payments
    ]
    return sum((amount for amount in amounts if amount is not None), Decimal("0"))


class MergeReconciliationEngine:
    """
    Builds one merged record per order id seen in orders or payments.
    """

    def __init__(
        self,
        order_store: OrderStore,
        payment_store: PaymentStore,
        merged_store: MergedRecordStore,
    ):
        """
        Initialize reconciliation engine.

        Args:
            order_store: Canonical orders
            payment_store: Canonical payments
            merged_store: Merged table
        """
        self.order_store = order_store
        self.payment_store = payment_store
        self.merged_store = merged_store

    def merge(self, orders: list[Order], payments: list[Payment]) -> list[MergedRecord]:
        """
        Merge orders with their payments.

        Args:
            orders: Complete list of canonical orders
            payments: Complete list of canonical payments

        Returns:
            Merged records sorted by order id
        """
        orders_by_id = {order.order_id: order for order in orders}
        payments_by_order: dict[str, list[Payment]] = defaultdict(list)
        for payment in payments:
            payments_by_order[payment.order_id].append(payment)

        if len(payments) > len(orders):
            logger.warning(
                f"Payment rows ({len(payments)}) outnumber order rows ({len(orders)})",
                extra={"orders_seen": len(orders), "payments_seen": len(payments)},
            )

        orphans = sorted(set(payments_by_order) - set(orders_by_id))
        if orphans:
            logger.warning(
                f"{len(orphans)} order id(s) have payments but no order row",
                extra={"orphan_order_ids": orphans[:20]},
            )

        merged = []
        for order_id in sorted(set(orders_by_id) | set(payments_by_order)):
            merged.append(
                self._merge_one(order_id, orders_by_id.get(order_id), payments_by_order.get(order_id, []))
            )

        missing_sku = sum(1 for record in merged if _blank(record.sku))
        if missing_sku:
            logger.warning(
                f"{missing_sku} merged record(s) are missing SKU information; "
                "consider re-uploading the complete order file",
                extra={"records_without_sku": missing_sku},
            )

        return merged

    def _merge_one(self, order_id: str, order: Order | None, payments: list[Payment]) -> MergedRecord:
        ordered = _newest_first(payments)
        latest = ordered[0] if ordered else None
        status, source = resolve_status(order, ordered)

        transaction_id = latest.transaction_id if latest else None
        if _blank(transaction_id):
            transaction_id = next((p.transaction_id for p in ordered if not _blank(p.transaction_id)), None)

        order_amount = None
        if order is not None and order.selling_price is not None and order.quantity is not None:
            order_amount = order.selling_price * order.quantity

        order_date = order.order_date if order else None
        if latest is not None and latest.order_date is not None:
            order_date = latest.order_date

        return MergedRecord(
            order_id=order_id,
            order_amount=order_amount,
            settlement_amount=settlement_total(payments),
            resolved_status=status,
            status_source=source,
            sku=order.sku if order else None,
            order_date=order_date,
            payment_date=latest.payment_date if latest else None,
            quantity=order.quantity if order else None,
            state=order.customer_state if order else None,
            transaction_id=transaction_id,
            dispatch_date=latest.dispatch_date if latest else None,
            price_type=latest.price_type if latest else None,
            payment_count=len(payments),
        )

    def rebuild(self) -> ReconciliationResult:
        """
        Recompute and atomically replace the merged table.

        Returns:
            ReconciliationResult with the number of rows written
        """
        start = time.time()
        try:
            orders = self.order_store.find_all()
            payments = self.payment_store.find_all()
            merged = self.merge(orders, payments)
            rebuilt = self.merged_store.replace_all(merged)
        except Exception as e:
            metrics.observe_histogram(metrics.reconciliation_duration_seconds, time.time() - start, status="error")
            logger.error(f"Merged table rebuild failed: {e}", exc_info=True)
            raise

        duration = time.time() - start
        metrics.observe_histogram(metrics.reconciliation_duration_seconds, duration, status="success")
        metrics.record_merged_breakdown(Counter(record.status_source for record in merged))

        orphans = len({p.order_id for p in payments} - {o.order_id for o in orders})
        logger.info(
            f"Rebuilt merged_orders with {rebuilt} rows",
            extra={"records_rebuilt": rebuilt, "orders_seen": len(orders), "payments_seen": len(payments)},
        )
        return ReconciliationResult(
            records_rebuilt=rebuilt,
            orders_seen=len(orders),
            payments_seen=len(payments),
            orphan_payment_orders=orphans,
            duration_seconds=round(duration, 3),
        )

    def get_merge_statistics(self) -> dict[str, Any]:
        """
        Summarize the current merged table.

        Returns:
            Dictionary with totals, status source and final status
            breakdowns, unique orders and data quality figures
        """
        records = self.merged_store.find_all()
        total = len(records)
        with_sku = sum(1 for record in records if not _blank(record.sku))

        stats: dict[str, Any] = {
            "total_merged_records": total,
            "status_source_breakdown": dict(Counter(record.status_source for record in records)),
            "final_status_breakdown": dict(Counter(record.resolved_status or "UNKNOWN" for record in records)),
            "unique_orders": len({record.order_id for record in records}),
            "data_quality": {
                "records_with_sku": with_sku,
                "records_without_sku": total - with_sku,
                "sku_coverage_percentage": round(with_sku * 100.0 / total, 2) if total else 0.0,
                "records_with_quantity": sum(1 for record in records if record.quantity is not None),
                "records_with_payments": sum(1 for record in records if record.payment_count > 0),
            },
        }
        if total - with_sku:
            stats["warning"] = (
                f"{total - with_sku} records ({(total - with_sku) * 100.0 / total:.1f}%) "
                "are missing SKU information"
            )
        return stats
