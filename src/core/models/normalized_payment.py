"""
NormalizedPayment model representing a typed, upserted-by-order-id payment row.
"""

from datetime import date, datetime
from decimal import Decimal

from pydantic import BaseModel, Field

from .vocabulary import CanonicalStatus


class NormalizedPayment(BaseModel):
    """
    Canonical payment record produced by normalization.

    Keyed by order_id: re-normalizing a payment for the same order replaces
    the previous record.
    """

    id: int | None = None
    payment_id: str = Field(..., min_length=1)
    order_id: str = Field(..., min_length=1)
    sku: str | None = None
    supplier_sku: str | None = None
    sku_resolved: bool = False
    amount: Decimal = Decimal("0")
    currency: str = "INR"
    payment_date: date
    order_date: date | None = None
    dispatch_date: date | None = None
    standardized_status: CanonicalStatus = "UNKNOWN"
    original_status: str | None = None
    transaction_id: str | None = None
    price_type: str | None = None
    validation_errors: str | None = None
    batch_id: str
    raw_row_id: int | None = None
    created_at: datetime = Field(default_factory=datetime.utcnow)
    updated_at: datetime = Field(default_factory=datetime.utcnow)

    class Config:
        json_schema_extra = {
            "example": {
                "payment_id": "TXN-778812",
                "order_id": "SO-1001",
                "sku": "KURTA-RED-M",
                "sku_resolved": True,
                "amount": "412.35",
                "currency": "INR",
                "payment_date": "2024-01-20",
                "standardized_status": "DELIVERED",
                "original_status": "Delivered",
                "transaction_id": "TXN-778812",
                "price_type": "Regular",
                "batch_id": "PAY_20240121_090000_1234",
                "raw_row_id": 7,
            }
        }
