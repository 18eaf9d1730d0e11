"""
NormalizedOrder model representing a typed, upserted-by-order-id order row.
"""

from datetime import date, datetime
from decimal import Decimal

from pydantic import BaseModel, Field

from .vocabulary import CanonicalStatus


class NormalizedOrder(BaseModel):
    """
    Canonical order record produced by normalization.

    At most one NormalizedOrder exists per order_id; later writes overwrite
    earlier ones.

    Attributes:
        order_id: Business order id ("sub order no")
        sku: Resolved display SKU (may be a placeholder)
        supplier_sku: SKU as it appeared in the file
        sku_resolved: False when sku is a placeholder
        quantity: Units ordered (0 when unparseable)
        selling_price: Supplier discounted price
        standardized_status: Canonical status of the credit-entry reason
        original_status: Status text as uploaded
        validation_errors: Coercion warnings, "; " separated
        batch_id: Batch the record was normalized from
        raw_row_id: orders_raw.id the record was built from
    """

    id: int | None = None
    order_id: str = Field(..., min_length=1)
    sku: str
    supplier_sku: str | None = None
    sku_resolved: bool = False
    quantity: int = 0
    selling_price: Decimal = Decimal("0")
    order_date: date
    product_name: str | None = None
    customer_state: str | None = None
    size: str | None = None
    supplier_listed_price: Decimal | None = None
    supplier_discounted_price: Decimal | None = None
    packet_id: str | None = None
    standardized_status: CanonicalStatus = "UNKNOWN"
    original_status: str | None = None
    validation_errors: str | None = None
    batch_id: str
    raw_row_id: int | None = None
    created_at: datetime = Field(default_factory=datetime.utcnow)
    updated_at: datetime = Field(default_factory=datetime.utcnow)

    class Config:
        json_schema_extra = {
            "example": {
                "order_id": "SO-1001",
                "sku": "KURTA-RED-M",
                "supplier_sku": "KURTA-RED-M",
                "sku_resolved": True,
                "quantity": 1,
                "selling_price": "459.00",
                "order_date": "2024-01-05",
                "customer_state": "Kerala",
                "standardized_status": "DELIVERED",
                "original_status": "Delivered",
                "batch_id": "ORD_20240105_101500_0042",
                "raw_row_id": 42,
            }
        }
