"""
Pytest configuration and fixtures for ledger pipeline tests

This module provides shared fixtures for unit, integration, and E2E tests:
in-memory store doubles for unit tests, a PostgreSQL testcontainer for
integration and E2E tests, and a Spark session for the CSV reader.
"""
import os
from collections import Counter
from datetime import datetime
from typing import Generator

import psycopg
import pytest
from pyspark.sql import SparkSession
from testcontainers.postgres import PostgresContainer

from src.core.models import MergedRecord, NormalizedOrder, NormalizedPayment, Order, Payment, RawRecord


# =======================
# PYTEST CONFIGURATION
# =======================

def pytest_configure(config):
    """Configure pytest with custom markers"""
    config.addinivalue_line(
        "markers", "unit: Unit tests that don't require external services"
    )
    config.addinivalue_line(
        "markers", "integration: Integration tests that require Docker containers"
    )
    config.addinivalue_line(
        "markers", "e2e: End-to-end tests that test the full pipeline"
    )
    config.addinivalue_line(
        "markers", "slow: Tests that take more than 5 seconds to run"
    )


# =======================
# SPARK FIXTURES
# =======================

@pytest.fixture(scope="session")
def spark_session() -> Generator[SparkSession, None, None]:
    """
    Create a Spark session for testing with local mode

    Yields:
        SparkSession configured for local testing
    """
    spark = (
        SparkSession.builder
        .appName("ledger-pipeline-test")
        .master("local[2]")
        .config("spark.sql.shuffle.partitions", "2")
        .config("spark.driver.memory", "1g")
        .config("spark.ui.enabled", "false")  # Disable UI for tests
        .config("spark.sql.warehouse.dir", "/tmp/spark-warehouse")
        .getOrCreate()
    )

    # Set log level to WARN to reduce test output noise
    spark.sparkContext.setLogLevel("WARN")

    yield spark

    spark.stop()


# =======================
# DATABASE FIXTURES (Testcontainers)
# =======================

TEST_DB_NAME = "test_ledger"
TEST_DB_USER = "test_pipeline"
TEST_DB_PASSWORD = "test_password"

LEDGER_TABLES = (
    "merged_orders",
    "payments",
    "orders",
    "normalized_payments",
    "normalized_orders",
    "payments_raw",
    "orders_raw",
)


@pytest.fixture(scope="session")
def postgres_container() -> Generator[PostgresContainer, None, None]:
    """
    Start PostgreSQL container for integration tests

    Yields:
        PostgresContainer instance with initialized database
    """
    with PostgresContainer(
        image="postgres:16.2-alpine",
        username=TEST_DB_USER,
        password=TEST_DB_PASSWORD,
        dbname=TEST_DB_NAME,
        driver=None,
    ) as postgres:
        init_sql_path = os.path.join(
            os.path.dirname(os.path.dirname(__file__)),
            "docker",
            "init-db.sql"
        )

        with open(init_sql_path, 'r') as f:
            init_sql = f.read()

        with psycopg.connect(postgres.get_connection_url()) as conn:
            with conn.cursor() as cur:
                cur.execute(init_sql)
            conn.commit()

        yield postgres


@pytest.fixture(scope="function")
def db_connection(postgres_container) -> Generator[psycopg.Connection, None, None]:
    """
    Provide a database connection for a single test

    Yields:
        psycopg Connection object
    """
    with psycopg.connect(postgres_container.get_connection_url()) as conn:
        yield conn
        # Rollback any uncommitted changes after test
        conn.rollback()


@pytest.fixture(scope="function")
def clean_db(db_connection) -> Generator[psycopg.Connection, None, None]:
    """
    Provide a clean database by truncating all ledger tables before each test

    Yields:
        psycopg Connection object with clean database
    """
    with db_connection.cursor() as cur:
        cur.execute(f"TRUNCATE TABLE {', '.join(LEDGER_TABLES)} RESTART IDENTITY CASCADE")
        db_connection.commit()

    yield db_connection


@pytest.fixture(scope="function")
def db_pool(postgres_container, clean_db):
    """
    Open a DatabaseConnectionPool against the clean test database

    Yields:
        Opened DatabaseConnectionPool
    """
    from src.warehouse.connection import DatabaseConnectionPool

    pool = DatabaseConnectionPool(
        host=postgres_container.get_container_host_ip(),
        port=int(postgres_container.get_exposed_port(5432)),
        database=TEST_DB_NAME,
        user=TEST_DB_USER,
        password=TEST_DB_PASSWORD,
    )
    pool.open()

    yield pool

    pool.close()


# =======================
# IN-MEMORY STORES
# =======================

class FakeRawStagingStore:
    """In-memory stand-in for RawStagingStore."""

    def __init__(self):
        self.records: dict[int, RawRecord] = {}
        self._next_id = 1
        self.fail_rows: set[int] = set()

    def insert_record(self, record: RawRecord) -> int:
        if record.row_number in self.fail_rows:
            raise RuntimeError(f"insert failed for row {record.row_number}")
        record_id = self._next_id
        self._next_id += 1
        self.records[record_id] = record.model_copy(update={"id": record_id})
        return record_id

    def fetch_unprocessed(self, record_type, batch_id, after_id=0, limit=100):
        rows = [
            r for r in sorted(self.records.values(), key=lambda r: r.id)
            if r.record_type == record_type
            and r.batch_id == batch_id
            and r.validation_status == "VALID"
            and not r.processed
            and r.id > after_id
        ]
        return [r.model_copy() for r in rows[:limit]]

    def mark_processed(self, record_type, raw_id, validation_errors=None, conn=None):
        record = self.records[raw_id]
        self.records[raw_id] = record.model_copy(
            update={"processed": True, "validation_errors": validation_errors}
        )

    def reset_batch(self, record_type, batch_id):
        reset = 0
        for raw_id, record in list(self.records.items()):
            if record.record_type == record_type and record.batch_id == batch_id:
                self.records[raw_id] = record.model_copy(update={"processed": False, "validation_errors": None})
                reset += 1
        return reset

    def delete_batch(self, record_type, batch_id):
        doomed = [
            raw_id for raw_id, r in self.records.items()
            if r.record_type == record_type and r.batch_id == batch_id
        ]
        for raw_id in doomed:
            del self.records[raw_id]
        return len(doomed)

    def get_batch_counts(self, record_type, batch_id=None):
        rows = [
            r for r in self.records.values()
            if r.record_type == record_type and (batch_id is None or r.batch_id == batch_id)
        ]
        return {
            "total": len(rows),
            "valid": sum(1 for r in rows if r.validation_status == "VALID"),
            "processed": sum(1 for r in rows if r.processed),
        }

    def batch(self, batch_id):
        return sorted((r for r in self.records.values() if r.batch_id == batch_id), key=lambda r: r.row_number)


class FakeOrderStore:
    """In-memory stand-in for OrderStore."""

    def __init__(self):
        self.orders: dict[str, Order] = {}
        self._next_id = 1
        self.lookups: list[str] = []
        self.lookup_error: Exception | None = None

    def upsert(self, order, conn=None):
        existing = self.orders.get(order.order_id)
        order_id = existing.id if existing else self._next_id
        if not existing:
            self._next_id += 1
        self.orders[order.order_id] = order.model_copy(update={"id": order_id})

    def find_sku_by_supplier_sku(self, supplier_sku):
        self.lookups.append(supplier_sku)
        if self.lookup_error is not None:
            raise self.lookup_error
        for order in sorted(self.orders.values(), key=lambda o: o.id):
            if order.supplier_sku == supplier_sku and order.sku:
                return order.sku
        return None

    def find_by_order_id(self, order_id):
        return self.orders.get(order_id)

    def find_all(self):
        return sorted(self.orders.values(), key=lambda o: o.id)

    def count(self):
        return len(self.orders)

    def delete_batch(self, batch_id):
        doomed = [key for key, o in self.orders.items() if o.batch_id == batch_id]
        for key in doomed:
            del self.orders[key]
        return len(doomed)


class FakePaymentStore:
    """In-memory stand-in for PaymentStore."""

    def __init__(self):
        self.payments: dict[str, Payment] = {}
        self._next_id = 1

    def upsert(self, payment, conn=None):
        if not payment.payment_key:
            raise ValueError("payment_key required")
        existing = self.payments.get(payment.payment_key)
        payment_id = existing.id if existing else self._next_id
        if not existing:
            self._next_id += 1
        self.payments[payment.payment_key] = payment.model_copy(update={"id": payment_id})

    def find_by_order_id(self, order_id):
        return [p for p in self.find_all() if p.order_id == order_id]

    def find_all(self):
        return sorted(self.payments.values(), key=lambda p: p.id)

    def count(self):
        return len(self.payments)

    def delete_batch(self, batch_id):
        doomed = [key for key, p in self.payments.items() if p.batch_id == batch_id]
        for key in doomed:
            del self.payments[key]
        return len(doomed)


class FakeNormalizedStore:
    """
    In-memory stand-in for NormalizedStore.

    Order ids listed in fail_order_ids raise on write, leaving the raw row
    unprocessed like a rolled back transaction.
    """

    def __init__(self, raw_store, order_store, payment_store):
        self.raw_store = raw_store
        self.order_store = order_store
        self.payment_store = payment_store
        self.orders: dict[str, NormalizedOrder] = {}
        self.payments: dict[str, NormalizedPayment] = {}
        self.fail_order_ids: set[str] = set()
        self.write_calls = 0

    def write_order(self, normalized, order):
        self.write_calls += 1
        if normalized.order_id in self.fail_order_ids:
            raise RuntimeError(f"constraint violation for {normalized.order_id}")
        self.orders[normalized.order_id] = normalized
        self.order_store.upsert(order)
        self.raw_store.mark_processed("ORDERS", normalized.raw_row_id)

    def write_payment(self, normalized, payment):
        self.write_calls += 1
        if normalized.order_id in self.fail_order_ids:
            raise RuntimeError(f"constraint violation for {normalized.order_id}")
        self.payments[normalized.order_id] = normalized
        self.payment_store.upsert(payment)
        self.raw_store.mark_processed("PAYMENTS", normalized.raw_row_id)

    def _table(self, record_type):
        return self.orders if record_type == "ORDERS" else self.payments

    def _rows(self, record_type, batch_id=None):
        return [r for r in self._table(record_type).values() if batch_id is None or r.batch_id == batch_id]

    def find_order(self, order_id):
        return self.orders.get(order_id)

    def find_payment(self, order_id):
        return self.payments.get(order_id)

    def delete_batch(self, record_type, batch_id):
        table = self._table(record_type)
        doomed = [key for key, r in table.items() if r.batch_id == batch_id]
        for key in doomed:
            del table[key]
        return len(doomed)

    def count(self, record_type, batch_id=None):
        return len(self._rows(record_type, batch_id))

    def status_breakdown(self, record_type, batch_id=None):
        return dict(Counter(r.standardized_status for r in self._rows(record_type, batch_id)))

    def sku_resolution_counts(self, record_type, batch_id=None):
        rows = self._rows(record_type, batch_id)
        resolved = sum(1 for r in rows if r.sku_resolved)
        return {"resolved": resolved, "unresolved": len(rows) - resolved}


class FakeMergedRecordStore:
    """In-memory stand-in for MergedRecordStore."""

    def __init__(self):
        self.records: list[MergedRecord] = []
        self.fail_next = False

    def replace_all(self, records):
        if self.fail_next:
            self.fail_next = False
            raise RuntimeError("insert into merged_orders failed")
        self.records = list(records)
        return len(records)

    def find_all(self):
        return sorted(self.records, key=lambda r: r.order_id)

    def find_by_order_id(self, order_id):
        return next((r for r in self.records if r.order_id == order_id), None)

    def count(self):
        return len(self.records)


@pytest.fixture
def raw_store() -> FakeRawStagingStore:
    return FakeRawStagingStore()


@pytest.fixture
def order_store() -> FakeOrderStore:
    return FakeOrderStore()


@pytest.fixture
def payment_store() -> FakePaymentStore:
    return FakePaymentStore()


@pytest.fixture
def normalized_store(raw_store, order_store, payment_store) -> FakeNormalizedStore:
    return FakeNormalizedStore(raw_store, order_store, payment_store)


@pytest.fixture
def merged_store() -> FakeMergedRecordStore:
    return FakeMergedRecordStore()


@pytest.fixture
def stage_rows(raw_store):
    """
    Stage raw payload lines directly, bypassing file ingestion

    Returns:
        Function (record_type, batch_id, payloads) -> list of raw ids
    """
    def _stage(record_type: str, batch_id: str, payloads: list[str]) -> list[int]:
        return [
            raw_store.insert_record(
                RawRecord(
                    batch_id=batch_id,
                    record_type=record_type,
                    row_number=row_number,
                    raw_data=payload,
                    created_at=datetime(2024, 1, 5, 10, 15),
                )
            )
            for row_number, payload in enumerate(payloads, start=1)
        ]

    return _stage


# =======================
# CONFIGURATION FIXTURES
# =======================

@pytest.fixture(scope="session", autouse=True)
def test_env_vars():
    """
    Set test environment variables

    This fixture loads config/test.env and sets environment variables
    """
    from dotenv import load_dotenv

    env_path = os.path.join(
        os.path.dirname(os.path.dirname(__file__)),
        "config",
        "test.env"
    )

    if os.path.exists(env_path):
        load_dotenv(env_path, override=True)


# =======================
# PAYLOAD FIXTURES
# =======================

ORDER_ROW_DEFAULTS = {
    "reason_for_credit_entry": "Delivered",
    "sub_order_no": "SO-1001",
    "order_date": "2024-01-05",
    "customer_state": "Karnataka",
    "product_name": "Cotton Kurta",
    "sku": "KURTA-RED-M",
    "size": "M",
    "quantity": "2",
    "supplier_listed_price": "499.00",
    "supplier_discounted_price": "450.00",
    "packet_id": "PKT-1",
}

PAYMENT_ROW_DEFAULTS = {
    "sub_order_no": "SO-1001",
    "order_date": "2024-01-05",
    "dispatch_date": "2024-01-07",
    "product_name": "Cotton Kurta",
    "supplier_sku": "KURTA-RED-M",
    "live_order_status": "Delivered",
    "transaction_id": "TXN-1",
    "payment_date": "2024-01-20",
    "final_settlement_amount": "₹812.40",
    "price_type": "Normal",
    "total_sale_amount": "900.00",
}


def _payload_builder(record_type: str, defaults: dict[str, str]):
    from src.core.schema import PayloadLayout

    layout = PayloadLayout.for_record_type(record_type)

    def _build(**overrides) -> str:
        values = {**defaults, **overrides}
        return layout.serialize([values.get(field) or "" for field in layout.field_names])

    return _build


@pytest.fixture
def order_payload():
    """
    Build an orders raw payload line

    Returns:
        Function (**field_overrides) -> payload string
    """
    return _payload_builder("ORDERS", ORDER_ROW_DEFAULTS)


@pytest.fixture
def payment_payload():
    """
    Build a payments raw payload line

    Returns:
        Function (**field_overrides) -> payload string
    """
    return _payload_builder("PAYMENTS", PAYMENT_ROW_DEFAULTS)
