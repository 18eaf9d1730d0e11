"""
Raw staging store.

One immutable row per uploaded data row, in orders_raw or payments_raw
depending on the record type.
"""

from typing import Any

from src.core.models import RawRecord

from .connection import DatabaseConnectionPool

RAW_TABLES = {
    "ORDERS": "orders_raw",
    "PAYMENTS": "payments_raw",
}


def raw_table(record_type: str) -> str:
    """
    Resolve the staging table of a record type.

    Raises:
        ValueError: If the record type is unknown
    """
    try:
        return RAW_TABLES[record_type]
    except KeyError:
        raise ValueError(f"Unknown record type: {record_type}") from None


class RawStagingStore:
    """
    Persists and pages through staged raw rows.
    """

    def __init__(self, pool: DatabaseConnectionPool):
        """
        Initialize raw staging store.

        Args:
            pool: Database connection pool
        """
        self.pool = pool

    def insert_record(self, record: RawRecord) -> int:
        """
        Stage a single raw row in its own transaction.

        Args:
            record: RawRecord to insert

        Returns:
            Generated id of the staged row
        """
        query = f"""
            INSERT INTO {raw_table(record.record_type)} (
                batch_id, row_number, raw_data, validation_status,
                validation_errors, processed, created_at
            )
            VALUES (%s, %s, %s, %s, %s, %s, %s)
            RETURNING id
        """

        with self.pool.transaction() as conn:
            with conn.cursor() as cur:
                cur.execute(
                    query,
                    (
                        record.batch_id,
                        record.row_number,
                        record.raw_data,
                        record.validation_status,
                        record.validation_errors,
                        record.processed,
                        record.created_at,
                    ),
                )
                return cur.fetchone()["id"]

    def fetch_unprocessed(
        self,
        record_type: str,
        batch_id: str,
        after_id: int = 0,
        limit: int = 100,
    ) -> list[RawRecord]:
        """
        Read the next chunk of VALID, unprocessed rows of a batch.

        Paging is keyset-based on id so rows marked processed while a run is
        in progress do not shift later pages.

        Args:
            record_type: ORDERS or PAYMENTS
            batch_id: Batch to read
            after_id: Return rows with id greater than this
            limit: Chunk size

        Returns:
            Raw records ordered by id
        """
        query = f"""
            SELECT id, batch_id, row_number, raw_data, validation_status,
                   validation_errors, processed, created_at
            FROM {raw_table(record_type)}
            WHERE batch_id = %s
              AND validation_status = 'VALID'
              AND processed = FALSE
              AND id > %s
            ORDER BY id
            LIMIT %s
        """

        rows = self.pool.execute_query(query, (batch_id, after_id, limit))
        return [RawRecord(record_type=record_type, **row) for row in rows]

    def mark_processed(
        self,
        record_type: str,
        raw_id: int,
        validation_errors: str | None = None,
        conn: Any = None,
    ) -> None:
        """
        Flag a raw row as consumed by normalization.

        Args:
            record_type: ORDERS or PAYMENTS
            raw_id: Row id
            validation_errors: Reason the row was skipped, if it was
            conn: Connection of an enclosing unit of work (own transaction if None)
        """
        command = f"""
            UPDATE {raw_table(record_type)}
            SET processed = TRUE, validation_errors = %s
            WHERE id = %s
        """

        if conn is not None:
            with conn.cursor() as cur:
                cur.execute(command, (validation_errors, raw_id))
        else:
            self.pool.execute_command(command, (validation_errors, raw_id))

    def reset_batch(self, record_type: str, batch_id: str) -> int:
        """
        Make every row of a batch eligible for normalization again.

        Returns:
            Number of rows reset
        """
        command = f"""
            UPDATE {raw_table(record_type)}
            SET processed = FALSE, validation_errors = NULL
            WHERE batch_id = %s
        """
        return self.pool.execute_command(command, (batch_id,))

    def delete_batch(self, record_type: str, batch_id: str) -> int:
        """
        Delete the staged rows of a batch (explicit batch-clear only).

        Returns:
            Number of rows deleted
        """
        command = f"DELETE FROM {raw_table(record_type)} WHERE batch_id = %s"
        return self.pool.execute_command(command, (batch_id,))

    def get_batch_counts(self, record_type: str, batch_id: str | None = None) -> dict[str, int]:
        """
        Count staged rows.

        Args:
            record_type: ORDERS or PAYMENTS
            batch_id: Restrict to one batch (all batches if None)

        Returns:
            Dictionary with total, valid and processed counts
        """
        query = f"""
            SELECT
                COUNT(*) AS total,
                COUNT(*) FILTER (WHERE validation_status = 'VALID') AS valid,
                COUNT(*) FILTER (WHERE processed = TRUE) AS processed
            FROM {raw_table(record_type)}
        """
        params: tuple = ()
        if batch_id:
            query += " WHERE batch_id = %s"
            params = (batch_id,)

        result = self.pool.execute_query(query, params)
        row = result[0] if result else {}
        return {
            "total": row.get("total", 0) or 0,
            "valid": row.get("valid", 0) or 0,
            "processed": row.get("processed", 0) or 0,
        }

    def list_batches(self, record_type: str) -> list[dict[str, Any]]:
        """
        Summarize staged batches, newest first.

        Returns:
            One dictionary per batch with batch_id, rows, processed and staged_at
        """
        query = f"""
            SELECT batch_id,
                   COUNT(*) AS rows,
                   COUNT(*) FILTER (WHERE processed = TRUE) AS processed,
                   MIN(created_at) AS staged_at
            FROM {raw_table(record_type)}
            GROUP BY batch_id
            ORDER BY MIN(created_at) DESC
        """
        return self.pool.execute_query(query)
