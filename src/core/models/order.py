"""
Order model representing one row of the canonical orders table.
"""

from datetime import date
from decimal import Decimal

from pydantic import BaseModel, Field


class Order(BaseModel):
    """
    Canonical order entity consumed by reconciliation.

    Attributes:
        order_id: Business order id, unique
        sku: Display SKU
        supplier_sku: Supplier SKU used for cross-reference lookups
        reason_for_credit_entry: Order file's status column, kept verbatim
    """

    id: int | None = None
    order_id: str = Field(..., min_length=1)
    sku: str | None = None
    supplier_sku: str | None = None
    quantity: int | None = None
    selling_price: Decimal | None = None
    order_date: date | None = None
    product_name: str | None = None
    customer_state: str | None = None
    size: str | None = None
    supplier_listed_price: Decimal | None = None
    supplier_discounted_price: Decimal | None = None
    packet_id: str | None = None
    reason_for_credit_entry: str | None = None
    batch_id: str | None = None

    class Config:
        json_schema_extra = {
            "example": {
                "order_id": "SO-1001",
                "sku": "KURTA-RED-M",
                "supplier_sku": "KURTA-RED-M",
                "quantity": 2,
                "selling_price": "459.00",
                "order_date": "2024-01-05",
                "customer_state": "Kerala",
                "reason_for_credit_entry": "Delivered",
            }
        }
