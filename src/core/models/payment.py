"""
Payment model representing one settlement row of the canonical payments table.
"""

from datetime import date
from decimal import Decimal

from pydantic import BaseModel, Field


class Payment(BaseModel):
    """
    Canonical payment entity consumed by reconciliation.

    Several payments may share an order_id (one per settlement transaction).

    Attributes:
        payment_key: Content checksum identifying the settlement row across re-uploads
        payment_id: Transaction id, or the order id when no transaction id exists
        amount: Gross sale amount, used when final_settlement_amount is missing
        final_settlement_amount: Amount settled to the seller
        order_status: Live order status as reported by the payment file
        order_date: Order date as reported by the payment file
    """

    id: int | None = None
    payment_key: str | None = None
    payment_id: str = Field(..., min_length=1)
    order_id: str = Field(..., min_length=1)
    sku: str | None = None
    amount: Decimal | None = None
    final_settlement_amount: Decimal | None = None
    payment_date: date | None = None
    order_date: date | None = None
    order_status: str | None = None
    transaction_id: str | None = None
    price_type: str | None = None
    dispatch_date: date | None = None
    batch_id: str | None = None

    class Config:
        json_schema_extra = {
            "example": {
                "payment_key": "9b1f0c6a0d4e4d2b8f5c1f7e2a3b4c5d",
                "payment_id": "TXN-778812",
                "order_id": "SO-1001",
                "final_settlement_amount": "412.35",
                "payment_date": "2024-01-20",
                "order_status": "Delivered",
                "transaction_id": "TXN-778812",
                "price_type": "Regular",
            }
        }
