"""
MergedRecord model representing one reconciled row per order id.
"""

from datetime import date, datetime
from decimal import Decimal

from pydantic import BaseModel, Field

from .vocabulary import StatusSource


class MergedRecord(BaseModel):
    """
    Order joined with its aggregated payments.

    The merged table is rebuilt from scratch on every reconciliation run.

    Attributes:
        order_id: Business order id, unique
        order_amount: selling_price x quantity of the order (None without an order row)
        settlement_amount: Sum of settlement amounts across all payment rows
        resolved_status: Winning status text after the priority rule
        status_source: Which input supplied resolved_status
        payment_count: Number of payment rows aggregated
    """

    id: int | None = None
    order_id: str = Field(..., min_length=1)
    order_amount: Decimal | None = None
    settlement_amount: Decimal = Decimal("0")
    resolved_status: str = "UNKNOWN"
    status_source: StatusSource = "MERGED"
    sku: str | None = None
    order_date: date | None = None
    payment_date: date | None = None
    quantity: int | None = None
    state: str | None = None
    transaction_id: str | None = None
    dispatch_date: date | None = None
    price_type: str | None = None
    payment_count: int = 0
    merged_at: datetime = Field(default_factory=datetime.utcnow)

    class Config:
        json_schema_extra = {
            "example": {
                "order_id": "SO-1001",
                "order_amount": "918.00",
                "settlement_amount": "824.70",
                "resolved_status": "Delivered",
                "status_source": "PAYMENT_FILE",
                "sku": "KURTA-RED-M",
                "order_date": "2024-01-05",
                "payment_date": "2024-01-20",
                "quantity": 2,
                "state": "Kerala",
                "transaction_id": "TXN-778812",
                "payment_count": 2,
            }
        }
