"""
Merged order/payment table.
"""

from src.core.models import MergedRecord

from .connection import DatabaseConnectionPool

INSERT_MERGED = """
    INSERT INTO merged_orders (
        order_id, order_amount, settlement_amount, resolved_status, status_source,
        sku, order_date, payment_date, quantity, state, transaction_id,
        dispatch_date, price_type, payment_count, merged_at
    )
    VALUES (
        %(order_id)s, %(order_amount)s, %(settlement_amount)s, %(resolved_status)s, %(status_source)s,
        %(sku)s, %(order_date)s, %(payment_date)s, %(quantity)s, %(state)s, %(transaction_id)s,
        %(dispatch_date)s, %(price_type)s, %(payment_count)s, %(merged_at)s
    )
"""


class MergedRecordStore:
    """
    Holds the denormalized result of the last reconciliation run.
    """

    def __init__(self, pool: DatabaseConnectionPool):
        self.pool = pool

    def replace_all(self, records: list[MergedRecord]) -> int:
        """
        Atomically replace the whole merged table.

        DELETE and INSERT share one transaction, so concurrent readers keep
        seeing the previous table until the new one is committed.

        Args:
            records: Complete new content of the table

        Returns:
            Number of rows inserted
        """
        with self.pool.transaction() as conn:
            with conn.cursor() as cur:
                cur.execute("DELETE FROM merged_orders")
                if records:
                    cur.executemany(
                        INSERT_MERGED,
                        [record.model_dump(exclude={"id"}) for record in records],
                    )
        return len(records)

    def find_all(self) -> list[MergedRecord]:
        rows = self.pool.execute_query("SELECT * FROM merged_orders ORDER BY order_id")
        return [MergedRecord(**row) for row in rows]

    def find_by_order_id(self, order_id: str) -> MergedRecord | None:
        rows = self.pool.execute_query("SELECT * FROM merged_orders WHERE order_id = %s", (order_id,))
        return MergedRecord(**rows[0]) if rows else None

    def count(self) -> int:
        return self.pool.execute_query("SELECT COUNT(*) AS n FROM merged_orders")[0]["n"]
