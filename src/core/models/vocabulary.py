"""
Closed vocabularies shared by the ledger models.
"""

from typing import Literal

RecordType = Literal["ORDERS", "PAYMENTS"]

ValidationStatus = Literal["PENDING", "VALID", "INVALID", "PROCESSED"]

CanonicalStatus = Literal[
    "PENDING",
    "SHIPPED",
    "DELIVERED",
    "CANCELLED",
    "RTO_COMPLETE",
    "RETURNED",
    "REFUNDED",
    "EXCHANGE",
    "UNKNOWN",
]

StatusSource = Literal["ORDER_FILE", "PAYMENT_FILE", "MERGED"]

RECORD_TYPES: tuple[str, ...] = ("ORDERS", "PAYMENTS")

CANONICAL_STATUSES: tuple[str, ...] = (
    "PENDING",
    "SHIPPED",
    "DELIVERED",
    "CANCELLED",
    "RTO_COMPLETE",
    "RETURNED",
    "REFUNDED",
    "EXCHANGE",
    "UNKNOWN",
)

# Batch id prefix per record type
BATCH_PREFIXES = {"ORDERS": "ORD", "PAYMENTS": "PAY"}
