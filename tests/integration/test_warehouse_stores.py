"""
Integration tests for the PostgreSQL stores.

Each test runs against a freshly truncated schema in the postgres testcontainer.
"""

from datetime import date
from decimal import Decimal

import pytest

from src.core.models import MergedRecord, NormalizedOrder, NormalizedPayment, Order, Payment, RawRecord
from src.warehouse.canonical_store import OrderStore, PaymentStore
from src.warehouse.merged_store import MergedRecordStore
from src.warehouse.normalized_store import NormalizedStore
from src.warehouse.raw_staging import RawStagingStore, raw_table


def _raw(batch_id, row_number, record_type="ORDERS", raw_data="Delivered,SO-1"):
    return RawRecord(batch_id=batch_id, record_type=record_type, row_number=row_number, raw_data=raw_data)


def _normalized_order(order_id="SO-1", raw_row_id=None, **fields):
    defaults = {
        "sku": "KURTA-RED-M",
        "supplier_sku": "KURTA-RED-M",
        "sku_resolved": True,
        "quantity": 2,
        "selling_price": Decimal("450.00"),
        "order_date": date(2024, 1, 5),
        "standardized_status": "DELIVERED",
        "original_status": "Delivered",
        "batch_id": "ORD_B1",
    }
    return NormalizedOrder(order_id=order_id, raw_row_id=raw_row_id, **{**defaults, **fields})


def _order(order_id="SO-1", **fields):
    defaults = {
        "sku": "KURTA-RED-M",
        "supplier_sku": "KURTA-RED-M",
        "quantity": 2,
        "selling_price": Decimal("450.00"),
        "order_date": date(2024, 1, 5),
        "reason_for_credit_entry": "Delivered",
        "batch_id": "ORD_B1",
    }
    return Order(order_id=order_id, **{**defaults, **fields})


def _payment(order_id="SO-1", key="key-1", **fields):
    defaults = {
        "payment_id": "TXN-1",
        "transaction_id": "TXN-1",
        "final_settlement_amount": Decimal("412.35"),
        "payment_date": date(2024, 1, 20),
        "order_status": "Delivered",
        "batch_id": "PAY_B1",
    }
    return Payment(order_id=order_id, payment_key=key, **{**defaults, **fields})


@pytest.mark.integration
class TestRawStagingStore:
    """Tests for RawStagingStore"""

    def test_insert_and_page(self, db_pool):
        """Test keyset paging over VALID, unprocessed rows"""
        store = RawStagingStore(db_pool)
        ids = [store.insert_record(_raw("ORD_B1", n)) for n in range(1, 6)]
        store.insert_record(_raw("ORD_B2", 1))

        first = store.fetch_unprocessed("ORDERS", "ORD_B1", limit=2)
        second = store.fetch_unprocessed("ORDERS", "ORD_B1", after_id=first[-1].id, limit=10)

        assert [r.id for r in first] == ids[:2]
        assert [r.id for r in second] == ids[2:]
        assert all(r.record_type == "ORDERS" for r in first + second)

    def test_mark_processed_and_counts(self, db_pool):
        """Test processed rows leave the unprocessed set"""
        store = RawStagingStore(db_pool)
        ids = [store.insert_record(_raw("ORD_B1", n)) for n in range(1, 4)]

        store.mark_processed("ORDERS", ids[0])
        store.mark_processed("ORDERS", ids[1], validation_errors="Insufficient fields")

        remaining = store.fetch_unprocessed("ORDERS", "ORD_B1")
        assert [r.id for r in remaining] == [ids[2]]
        assert store.get_batch_counts("ORDERS", "ORD_B1") == {"total": 3, "valid": 3, "processed": 2}
        assert store.get_batch_counts("ORDERS") == {"total": 3, "valid": 3, "processed": 2}

    def test_reset_and_delete_batch(self, db_pool):
        """Test batch reset and purge"""
        store = RawStagingStore(db_pool)
        raw_id = store.insert_record(_raw("PAY_B1", 1, record_type="PAYMENTS"))
        store.mark_processed("PAYMENTS", raw_id, validation_errors="skipped")

        assert store.reset_batch("PAYMENTS", "PAY_B1") == 1
        [row] = store.fetch_unprocessed("PAYMENTS", "PAY_B1")
        assert row.validation_errors is None

        assert store.delete_batch("PAYMENTS", "PAY_B1") == 1
        assert store.get_batch_counts("PAYMENTS", "PAY_B1")["total"] == 0

    def test_list_batches(self, db_pool):
        """Test per-batch summaries"""
        store = RawStagingStore(db_pool)
        store.insert_record(_raw("ORD_B1", 1))
        store.insert_record(_raw("ORD_B1", 2))

        [batch] = store.list_batches("ORDERS")

        assert batch["batch_id"] == "ORD_B1"
        assert batch["rows"] == 2
        assert batch["processed"] == 0

    def test_unknown_record_type(self):
        """Test table resolution rejects unknown record types"""
        with pytest.raises(ValueError, match="Unknown record type"):
            raw_table("REFUNDS")


@pytest.mark.integration
class TestNormalizedStore:
    """Tests for NormalizedStore"""

    def test_write_order_is_one_unit(self, db_pool):
        """Test normalized row, canonical row and processed flag commit together"""
        raw_store = RawStagingStore(db_pool)
        store = NormalizedStore(db_pool, raw_store=raw_store)
        raw_id = raw_store.insert_record(_raw("ORD_B1", 1))

        store.write_order(_normalized_order(raw_row_id=raw_id), _order())

        assert store.find_order("SO-1").sku == "KURTA-RED-M"
        assert store.order_store.find_by_order_id("SO-1").quantity == 2
        assert raw_store.get_batch_counts("ORDERS", "ORD_B1")["processed"] == 1

    def test_failed_write_rolls_back(self, db_pool):
        """Test a failing canonical write leaves nothing committed"""
        raw_store = RawStagingStore(db_pool)
        store = NormalizedStore(db_pool, raw_store=raw_store)
        raw_id = raw_store.insert_record(_raw("ORD_B1", 1))

        # size is VARCHAR(64)
        with pytest.raises(Exception):
            store.write_order(_normalized_order(raw_row_id=raw_id), _order(size="X" * 100))

        assert store.find_order("SO-1") is None
        assert store.order_store.count() == 0
        assert raw_store.get_batch_counts("ORDERS", "ORD_B1")["processed"] == 0

    def test_upsert_by_order_id(self, db_pool):
        """Test re-normalizing an order overwrites it"""
        store = NormalizedStore(db_pool)

        store.write_order(_normalized_order(quantity=1), _order(quantity=1))
        store.write_order(_normalized_order(quantity=3, batch_id="ORD_B2"), _order(quantity=3, batch_id="ORD_B2"))

        assert store.count("ORDERS") == 1
        assert store.find_order("SO-1").quantity == 3
        assert store.order_store.find_by_order_id("SO-1").batch_id == "ORD_B2"

    def test_write_payment(self, db_pool):
        """Test payments upsert by order id and payment key"""
        store = NormalizedStore(db_pool)
        normalized = NormalizedPayment(
            payment_id="TXN-1",
            order_id="SO-1",
            sku="KURTA-RED-M",
            sku_resolved=True,
            amount=Decimal("412.35"),
            payment_date=date(2024, 1, 20),
            standardized_status="DELIVERED",
            batch_id="PAY_B1",
        )

        store.write_payment(normalized, _payment(key="a"))
        store.write_payment(normalized, _payment(key="a"))
        store.write_payment(normalized, _payment(key="b", final_settlement_amount=Decimal("-40")))

        assert store.count("PAYMENTS") == 1
        assert store.find_payment("SO-1").amount == Decimal("412.35")
        assert store.payment_store.count() == 2
        assert len(store.payment_store.find_by_order_id("SO-1")) == 2

    def test_statistics(self, db_pool):
        """Test status breakdown and SKU resolution counts"""
        store = NormalizedStore(db_pool)
        store.write_order(_normalized_order("SO-1"), _order("SO-1"))
        store.write_order(
            _normalized_order("SO-2", sku="PLACEHOLDER_X", sku_resolved=False, standardized_status="RETURNED"),
            _order("SO-2"),
        )

        assert store.status_breakdown("ORDERS") == {"DELIVERED": 1, "RETURNED": 1}
        assert store.sku_resolution_counts("ORDERS", "ORD_B1") == {"resolved": 1, "unresolved": 1}
        assert store.delete_batch("ORDERS", "ORD_B1") == 2


@pytest.mark.integration
class TestCanonicalStores:
    """Tests for OrderStore and PaymentStore"""

    def test_supplier_sku_cross_reference(self, db_pool):
        """Test SKU lookup through the orders table"""
        orders = OrderStore(db_pool)
        orders.upsert(_order("SO-1", sku="DISPLAY-1", supplier_sku="SUP-1"))

        assert orders.find_sku_by_supplier_sku("SUP-1") == "DISPLAY-1"
        assert orders.find_sku_by_supplier_sku("SUP-404") is None

    def test_payment_requires_key(self, db_pool):
        """Test payments without a content key are refused"""
        with pytest.raises(ValueError, match="payment_key"):
            PaymentStore(db_pool).upsert(_payment(key=None))

    def test_delete_batch(self, db_pool):
        """Test canonical rows are deleted by their last batch"""
        orders = OrderStore(db_pool)
        orders.upsert(_order("SO-1"))
        orders.upsert(_order("SO-2", batch_id="ORD_B2"))

        assert orders.delete_batch("ORD_B1") == 1
        assert [o.order_id for o in orders.find_all()] == ["SO-2"]


@pytest.mark.integration
class TestMergedRecordStore:
    """Tests for MergedRecordStore"""

    def test_replace_all(self, db_pool):
        """Test the table is swapped as a whole"""
        store = MergedRecordStore(db_pool)
        store.replace_all([MergedRecord(order_id="SO-1"), MergedRecord(order_id="SO-2")])

        store.replace_all([MergedRecord(order_id="SO-3", settlement_amount=Decimal("10.50"))])

        [record] = store.find_all()
        assert record.order_id == "SO-3"
        assert record.settlement_amount == Decimal("10.50")

    def test_failed_replace_keeps_previous_content(self, db_pool):
        """Test a failing insert rolls back the delete"""
        store = MergedRecordStore(db_pool)
        store.replace_all([MergedRecord(order_id="SO-1")])

        # Duplicate order ids violate the unique constraint
        with pytest.raises(Exception):
            store.replace_all([MergedRecord(order_id="SO-2"), MergedRecord(order_id="SO-2")])

        assert [r.order_id for r in store.find_all()] == ["SO-1"]

    def test_find_by_order_id(self, db_pool):
        """Test single record lookup"""
        store = MergedRecordStore(db_pool)
        store.replace_all([MergedRecord(order_id="SO-1", status_source="ORDER_FILE", resolved_status="Shipped")])

        assert store.find_by_order_id("SO-1").status_source == "ORDER_FILE"
        assert store.find_by_order_id("SO-9") is None
        assert store.count() == 1
