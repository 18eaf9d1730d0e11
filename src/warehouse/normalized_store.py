"""
Normalized record persistence.

A normalized row, its canonical entity and the raw row's processed flag are
written in one transaction per row, so a failing row never rolls back rows
committed before it.
"""

from typing import Any

from src.core.models import NormalizedOrder, NormalizedPayment, Order, Payment

from .canonical_store import OrderStore, PaymentStore
from .connection import DatabaseConnectionPool
from .raw_staging import RawStagingStore

NORMALIZED_TABLES = {
    "ORDERS": "normalized_orders",
    "PAYMENTS": "normalized_payments",
}

UPSERT_NORMALIZED_ORDER = """
    INSERT INTO normalized_orders (
        order_id, sku, supplier_sku, sku_resolved, quantity, selling_price, order_date,
        product_name, customer_state, size, supplier_listed_price, supplier_discounted_price,
        packet_id, standardized_status, original_status, validation_errors, batch_id,
        raw_row_id, created_at, updated_at
    )
    VALUES (
        %(order_id)s, %(sku)s, %(supplier_sku)s, %(sku_resolved)s, %(quantity)s, %(selling_price)s, %(order_date)s,
        %(product_name)s, %(customer_state)s, %(size)s, %(supplier_listed_price)s, %(supplier_discounted_price)s,
        %(packet_id)s, %(standardized_status)s, %(original_status)s, %(validation_errors)s, %(batch_id)s,
        %(raw_row_id)s, %(created_at)s, %(updated_at)s
    )
    ON CONFLICT (order_id) DO UPDATE SET
        sku = EXCLUDED.sku,
        supplier_sku = EXCLUDED.supplier_sku,
        sku_resolved = EXCLUDED.sku_resolved,
        quantity = EXCLUDED.quantity,
        selling_price = EXCLUDED.selling_price,
        order_date = EXCLUDED.order_date,
        product_name = EXCLUDED.product_name,
        customer_state = EXCLUDED.customer_state,
        size = EXCLUDED.size,
        supplier_listed_price = EXCLUDED.supplier_listed_price,
        supplier_discounted_price = EXCLUDED.supplier_discounted_price,
        packet_id = EXCLUDED.packet_id,
        standardized_status = EXCLUDED.standardized_status,
        original_status = EXCLUDED.original_status,
        validation_errors = EXCLUDED.validation_errors,
        batch_id = EXCLUDED.batch_id,
        raw_row_id = EXCLUDED.raw_row_id,
        updated_at = EXCLUDED.updated_at
"""

UPSERT_NORMALIZED_PAYMENT = """
    INSERT INTO normalized_payments (
        payment_id, order_id, sku, supplier_sku, sku_resolved, amount, currency,
        payment_date, order_date, dispatch_date, standardized_status, original_status,
        transaction_id, price_type, validation_errors, batch_id, raw_row_id,
        created_at, updated_at
    )
    VALUES (
        %(payment_id)s, %(order_id)s, %(sku)s, %(supplier_sku)s, %(sku_resolved)s, %(amount)s, %(currency)s,
        %(payment_date)s, %(order_date)s, %(dispatch_date)s, %(standardized_status)s, %(original_status)s,
        %(transaction_id)s, %(price_type)s, %(validation_errors)s, %(batch_id)s, %(raw_row_id)s,
        %(created_at)s, %(updated_at)s
    )
    ON CONFLICT (order_id) DO UPDATE SET
        payment_id = EXCLUDED.payment_id,
        sku = EXCLUDED.sku,
        supplier_sku = EXCLUDED.supplier_sku,
        sku_resolved = EXCLUDED.sku_resolved,
        amount = EXCLUDED.amount,
        currency = EXCLUDED.currency,
        payment_date = EXCLUDED.payment_date,
        order_date = EXCLUDED.order_date,
        dispatch_date = EXCLUDED.dispatch_date,
        standardized_status = EXCLUDED.standardized_status,
        original_status = EXCLUDED.original_status,
        transaction_id = EXCLUDED.transaction_id,
        price_type = EXCLUDED.price_type,
        validation_errors = EXCLUDED.validation_errors,
        batch_id = EXCLUDED.batch_id,
        raw_row_id = EXCLUDED.raw_row_id,
        updated_at = EXCLUDED.updated_at
"""


class NormalizedStore:
    """
    Writes normalized records and answers normalization statistics queries.
    """

    def __init__(
        self,
        pool: DatabaseConnectionPool,
        raw_store: RawStagingStore | None = None,
        order_store: OrderStore | None = None,
        payment_store: PaymentStore | None = None,
    ):
        """
        Initialize normalized store.

        Args:
            pool: Database connection pool
            raw_store: Raw staging store (created from pool if omitted)
            order_store: Canonical order store (created from pool if omitted)
            payment_store: Canonical payment store (created from pool if omitted)
        """
        self.pool = pool
        self.raw_store = raw_store or RawStagingStore(pool)
        self.order_store = order_store or OrderStore(pool)
        self.payment_store = payment_store or PaymentStore(pool)

    def write_order(self, normalized: NormalizedOrder, order: Order) -> None:
        """
        Persist one normalized order as an isolated unit of work.

        Upserts normalized_orders and orders by order_id and marks the raw row
        processed; all three commit or roll back together.
        """
        with self.pool.transaction() as conn:
            with conn.cursor() as cur:
                cur.execute(UPSERT_NORMALIZED_ORDER, normalized.model_dump(exclude={"id"}))
            self.order_store.upsert(order, conn=conn)
            if normalized.raw_row_id is not None:
                self.raw_store.mark_processed("ORDERS", normalized.raw_row_id, conn=conn)

    def write_payment(self, normalized: NormalizedPayment, payment: Payment) -> None:
        """
        Persist one normalized payment as an isolated unit of work.

        Upserts normalized_payments by order_id and payments by payment_key,
        and marks the raw row processed.
        """
        with self.pool.transaction() as conn:
            with conn.cursor() as cur:
                cur.execute(UPSERT_NORMALIZED_PAYMENT, normalized.model_dump(exclude={"id"}))
            self.payment_store.upsert(payment, conn=conn)
            if normalized.raw_row_id is not None:
                self.raw_store.mark_processed("PAYMENTS", normalized.raw_row_id, conn=conn)

    def find_order(self, order_id: str) -> NormalizedOrder | None:
        rows = self.pool.execute_query("SELECT * FROM normalized_orders WHERE order_id = %s", (order_id,))
        return NormalizedOrder(**rows[0]) if rows else None

    def find_payment(self, order_id: str) -> NormalizedPayment | None:
        rows = self.pool.execute_query("SELECT * FROM normalized_payments WHERE order_id = %s", (order_id,))
        return NormalizedPayment(**rows[0]) if rows else None

    def delete_batch(self, record_type: str, batch_id: str) -> int:
        """
        Delete the normalized records produced from a batch.

        Returns:
            Number of rows deleted
        """
        table = NORMALIZED_TABLES[record_type]
        return self.pool.execute_command(f"DELETE FROM {table} WHERE batch_id = %s", (batch_id,))

    def count(self, record_type: str, batch_id: str | None = None) -> int:
        query = f"SELECT COUNT(*) AS n FROM {NORMALIZED_TABLES[record_type]}"
        params: tuple = ()
        if batch_id:
            query += " WHERE batch_id = %s"
            params = (batch_id,)
        return self.pool.execute_query(query, params)[0]["n"]

    def status_breakdown(self, record_type: str, batch_id: str | None = None) -> dict[str, int]:
        """Count normalized records per standardized status."""
        query = f"SELECT standardized_status, COUNT(*) AS n FROM {NORMALIZED_TABLES[record_type]}"
        params: tuple = ()
        if batch_id:
            query += " WHERE batch_id = %s"
            params = (batch_id,)
        query += " GROUP BY standardized_status ORDER BY standardized_status"
        return {row["standardized_status"]: row["n"] for row in self.pool.execute_query(query, params)}

    def sku_resolution_counts(self, record_type: str, batch_id: str | None = None) -> dict[str, Any]:
        """Count normalized records with a resolved vs placeholder SKU."""
        query = f"""
            SELECT
                COUNT(*) FILTER (WHERE sku_resolved) AS resolved,
                COUNT(*) FILTER (WHERE NOT sku_resolved) AS unresolved
            FROM {NORMALIZED_TABLES[record_type]}
        """
        params: tuple = ()
        if batch_id:
            query += " WHERE batch_id = %s"
            params = (batch_id,)
        row = self.pool.execute_query(query, params)[0]
        return {"resolved": row["resolved"] or 0, "unresolved": row["unresolved"] or 0}
