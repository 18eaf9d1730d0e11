"""
Canonical order and payment tables.

Orders are upserted by order_id; payments by payment_key so that one order can
own several settlement rows while re-uploads stay idempotent.
"""

from typing import Any

from src.core.models import Order, Payment

from .connection import DatabaseConnectionPool

UPSERT_ORDER = """
    INSERT INTO orders (
        order_id, sku, supplier_sku, quantity, selling_price, order_date,
        product_name, customer_state, size, supplier_listed_price,
        supplier_discounted_price, packet_id, reason_for_credit_entry, batch_id
    )
    VALUES (
        %(order_id)s, %(sku)s, %(supplier_sku)s, %(quantity)s, %(selling_price)s, %(order_date)s,
        %(product_name)s, %(customer_state)s, %(size)s, %(supplier_listed_price)s,
        %(supplier_discounted_price)s, %(packet_id)s, %(reason_for_credit_entry)s, %(batch_id)s
    )
    ON CONFLICT (order_id) DO UPDATE SET
        sku = EXCLUDED.sku,
        supplier_sku = EXCLUDED.supplier_sku,
        quantity = EXCLUDED.quantity,
        selling_price = EXCLUDED.selling_price,
        order_date = EXCLUDED.order_date,
        product_name = EXCLUDED.product_name,
        customer_state = EXCLUDED.customer_state,
        size = EXCLUDED.size,
        supplier_listed_price = EXCLUDED.supplier_listed_price,
        supplier_discounted_price = EXCLUDED.supplier_discounted_price,
        packet_id = EXCLUDED.packet_id,
        reason_for_credit_entry = EXCLUDED.reason_for_credit_entry,
        batch_id = EXCLUDED.batch_id,
        updated_at = NOW()
"""

UPSERT_PAYMENT = """
    INSERT INTO payments (
        payment_key, payment_id, order_id, sku, amount, final_settlement_amount,
        payment_date, order_date, order_status, transaction_id, price_type,
        dispatch_date, batch_id
    )
    VALUES (
        %(payment_key)s, %(payment_id)s, %(order_id)s, %(sku)s, %(amount)s, %(final_settlement_amount)s,
        %(payment_date)s, %(order_date)s, %(order_status)s, %(transaction_id)s, %(price_type)s,
        %(dispatch_date)s, %(batch_id)s
    )
    ON CONFLICT (payment_key) DO UPDATE SET
        payment_id = EXCLUDED.payment_id,
        sku = EXCLUDED.sku,
        amount = EXCLUDED.amount,
        order_date = EXCLUDED.order_date,
        order_status = EXCLUDED.order_status,
        dispatch_date = EXCLUDED.dispatch_date,
        batch_id = EXCLUDED.batch_id,
        updated_at = NOW()
"""


class OrderStore:
    """
    Canonical orders: upsert, full scan and supplier SKU cross-reference.
    """

    def __init__(self, pool: DatabaseConnectionPool):
        self.pool = pool

    def upsert(self, order: Order, conn: Any = None) -> None:
        """
        Insert or update an order by order_id.

        Args:
            order: Order to write
            conn: Connection of an enclosing unit of work (own transaction if None)
        """
        params = order.model_dump(exclude={"id"})
        if conn is not None:
            with conn.cursor() as cur:
                cur.execute(UPSERT_ORDER, params)
        else:
            self.pool.execute_command(UPSERT_ORDER, params)

    def find_sku_by_supplier_sku(self, supplier_sku: str) -> str | None:
        """
        Find the display SKU of any order carrying a supplier SKU.

        Args:
            supplier_sku: Trimmed supplier SKU

        Returns:
            Display SKU, or None when no order matches
        """
        rows = self.pool.execute_query(
            """
            SELECT sku FROM orders
            WHERE supplier_sku = %s AND sku IS NOT NULL
            ORDER BY id
            LIMIT 1
            """,
            (supplier_sku,),
        )
        return rows[0]["sku"] if rows else None

    def find_by_order_id(self, order_id: str) -> Order | None:
        rows = self.pool.execute_query("SELECT * FROM orders WHERE order_id = %s", (order_id,))
        return Order(**_entity_fields(rows[0], Order)) if rows else None

    def find_all(self) -> list[Order]:
        rows = self.pool.execute_query("SELECT * FROM orders ORDER BY id")
        return [Order(**_entity_fields(row, Order)) for row in rows]

    def count(self) -> int:
        return self.pool.execute_query("SELECT COUNT(*) AS n FROM orders")[0]["n"]

    def delete_batch(self, batch_id: str) -> int:
        """Delete the orders last written by a batch (explicit batch-clear only)."""
        return self.pool.execute_command("DELETE FROM orders WHERE batch_id = %s", (batch_id,))


class PaymentStore:
    """
    Canonical payments: upsert by content key and full scan.
    """

    def __init__(self, pool: DatabaseConnectionPool):
        self.pool = pool

    def upsert(self, payment: Payment, conn: Any = None) -> None:
        """
        Insert or update a settlement row by payment_key.

        Raises:
            ValueError: If the payment has no payment_key
        """
        if not payment.payment_key:
            raise ValueError(f"Payment for order {payment.order_id} has no payment_key")

        params = payment.model_dump(exclude={"id"})
        if conn is not None:
            with conn.cursor() as cur:
                cur.execute(UPSERT_PAYMENT, params)
        else:
            self.pool.execute_command(UPSERT_PAYMENT, params)

    def find_by_order_id(self, order_id: str) -> list[Payment]:
        rows = self.pool.execute_query(
            "SELECT * FROM payments WHERE order_id = %s ORDER BY id", (order_id,)
        )
        return [Payment(**_entity_fields(row, Payment)) for row in rows]

    def find_all(self) -> list[Payment]:
        rows = self.pool.execute_query("SELECT * FROM payments ORDER BY id")
        return [Payment(**_entity_fields(row, Payment)) for row in rows]

    def count(self) -> int:
        return self.pool.execute_query("SELECT COUNT(*) AS n FROM payments")[0]["n"]

    def delete_batch(self, batch_id: str) -> int:
        """Delete the payments last written by a batch (explicit batch-clear only)."""
        return self.pool.execute_command("DELETE FROM payments WHERE batch_id = %s", (batch_id,))


def _entity_fields(row: dict[str, Any], model: type) -> dict[str, Any]:
    """Keep only the columns a model declares (drops bookkeeping columns)."""
    return {key: value for key, value in row.items() if key in model.model_fields}
