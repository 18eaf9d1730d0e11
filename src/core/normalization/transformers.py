"""
Row transformers turning parsed raw payloads into normalized and canonical records.
"""

import hashlib
import json
from datetime import date
from decimal import Decimal

from src.core.models import NormalizedOrder, NormalizedPayment, Order, Payment, RawRecord
from src.core.schema.payload_layout import ParsedRow
from src.observability.logger import get_logger

from .sku_resolver import SkuResolver
from .status_normalizer import StatusNormalizer
from .value_parsers import clean_amount, detect_currency, parse_date, parse_quantity

logger = get_logger(__name__)


class RowTransformer:
    """
    Shared coercion helpers.

    Fallbacks (0 for numbers, today for dates) are recorded as warnings on the
    instance being built; callers read them from `warnings` after transform().
    """

    def __init__(self, status_normalizer: StatusNormalizer, sku_resolver: SkuResolver):
        self.status_normalizer = status_normalizer
        self.sku_resolver = sku_resolver

    def _amount(self, row: ParsedRow, field: str, warnings: list[str], required: bool = True) -> Decimal | None:
        text = row.get(field)
        amount = clean_amount(text)
        if amount is None and required:
            warnings.append(f"{field}: unparseable amount {text!r}, defaulted to 0")
            return Decimal("0")
        return amount

    def _date(self, row: ParsedRow, field: str, warnings: list[str], required: bool = True) -> date | None:
        text = row.get(field)
        parsed = parse_date(text)
        if parsed is None and required:
            warnings.append(f"{field}: unparseable date {text!r}, defaulted to today")
            return date.today()
        if parsed is None and text is not None:
            warnings.append(f"{field}: unparseable date {text!r}, left empty")
        return parsed

    def _quantity(self, row: ParsedRow, field: str, warnings: list[str]) -> int:
        text = row.get(field)
        quantity = parse_quantity(text)
        if quantity is None:
            warnings.append(f"{field}: unparseable quantity {text!r}, defaulted to 0")
            return 0
        return quantity

    @staticmethod
    def _join(warnings: list[str]) -> str | None:
        return "; ".join(warnings) if warnings else None


class OrderRowTransformer(RowTransformer):
    """Builds NormalizedOrder and Order records from an orders payload."""

    def transform(self, raw: RawRecord, row: ParsedRow) -> tuple[NormalizedOrder, Order, list[str]]:
        """
        Transform one parsed orders row.

        Args:
            raw: Raw record the row was parsed from
            row: Parsed payload

        Returns:
            Tuple of (normalized order, canonical order, coercion warnings)
        """
        warnings: list[str] = []
        order_id = row.get("sub_order_no")
        original_status = row.get("reason_for_credit_entry")
        supplier_sku = row.get("sku")

        resolution = self.sku_resolver.resolve(supplier_sku, supplier_sku)
        listed = self._amount(row, "supplier_listed_price", warnings, required=False)
        discounted = self._amount(row, "supplier_discounted_price", warnings)
        quantity = self._quantity(row, "quantity", warnings)
        order_date = self._date(row, "order_date", warnings)

        normalized = NormalizedOrder(
            order_id=order_id,
            sku=resolution.sku,
            supplier_sku=supplier_sku,
            sku_resolved=resolution.resolved,
            quantity=quantity,
            selling_price=discounted,
            order_date=order_date,
            product_name=row.get("product_name"),
            customer_state=row.get("customer_state"),
            size=row.get("size"),
            supplier_listed_price=listed,
            supplier_discounted_price=clean_amount(row.get("supplier_discounted_price")),
            packet_id=row.get("packet_id"),
            standardized_status=self.status_normalizer.normalize(original_status),
            original_status=original_status,
            validation_errors=self._join(warnings),
            batch_id=raw.batch_id,
            raw_row_id=raw.id,
        )

        order = Order(
            order_id=order_id,
            sku=resolution.sku,
            supplier_sku=supplier_sku,
            quantity=quantity,
            selling_price=discounted,
            order_date=order_date,
            product_name=normalized.product_name,
            customer_state=normalized.customer_state,
            size=normalized.size,
            supplier_listed_price=listed,
            supplier_discounted_price=normalized.supplier_discounted_price,
            packet_id=normalized.packet_id,
            reason_for_credit_entry=original_status,
            batch_id=raw.batch_id,
        )

        return normalized, order, warnings


class PaymentRowTransformer(RowTransformer):
    """Builds NormalizedPayment and Payment records from a payments payload."""

    def transform(self, raw: RawRecord, row: ParsedRow) -> tuple[NormalizedPayment, Payment, list[str]]:
        """
        Transform one parsed payments row.

        Args:
            raw: Raw record the row was parsed from
            row: Parsed payload

        Returns:
            Tuple of (normalized payment, canonical payment, coercion warnings)
        """
        warnings: list[str] = []
        order_id = row.get("sub_order_no")
        original_status = row.get("live_order_status")
        transaction_id = row.get("transaction_id")
        supplier_sku = row.get("supplier_sku")
        amount_text = row.get("final_settlement_amount")

        currency = detect_currency(amount_text) or "INR"
        if currency != "INR":
            # Amounts are stored as-is, no conversion happens
            logger.warning(
                f"Non-INR amount {amount_text!r} for order {order_id}",
                extra={"order_id": order_id, "currency": currency, "batch_id": raw.batch_id},
            )
            warnings.append(f"final_settlement_amount: {currency} amount stored without conversion")

        resolution = self.sku_resolver.resolve(None, supplier_sku)
        settlement = clean_amount(amount_text)
        amount = self._amount(row, "final_settlement_amount", warnings)
        payment_date = self._date(row, "payment_date", warnings)
        order_date = self._date(row, "order_date", warnings, required=False)
        dispatch_date = self._date(row, "dispatch_date", warnings, required=False)
        payment_id = transaction_id or order_id

        normalized = NormalizedPayment(
            payment_id=payment_id,
            order_id=order_id,
            sku=resolution.sku,
            supplier_sku=supplier_sku,
            sku_resolved=resolution.resolved,
            amount=amount,
            currency=currency,
            payment_date=payment_date,
            order_date=order_date,
            dispatch_date=dispatch_date,
            standardized_status=self.status_normalizer.normalize(original_status),
            original_status=original_status,
            transaction_id=transaction_id,
            price_type=row.get("price_type"),
            validation_errors=self._join(warnings),
            batch_id=raw.batch_id,
            raw_row_id=raw.id,
        )

        payment = Payment(
            payment_id=payment_id,
            order_id=order_id,
            sku=resolution.sku,
            amount=clean_amount(row.get("total_sale_amount")),
            final_settlement_amount=settlement,
            payment_date=parse_date(row.get("payment_date")),
            order_date=order_date,
            order_status=original_status,
            transaction_id=transaction_id,
            price_type=normalized.price_type,
            dispatch_date=dispatch_date,
            batch_id=raw.batch_id,
        )
        payment.payment_key = payment_key(payment)

        return normalized, payment, warnings


def payment_key(payment: Payment) -> str:
    """
    Checksum identifying a settlement row independent of the upload it came from.

    Re-uploading the same export yields the same keys, so canonical payment
    rows are upserted instead of duplicated.
    """
    identity = {
        "order_id": payment.order_id,
        "transaction_id": payment.transaction_id,
        "payment_date": payment.payment_date.isoformat() if payment.payment_date else None,
        "final_settlement_amount": str(payment.final_settlement_amount)
        if payment.final_settlement_amount is not None
        else None,
        "price_type": payment.price_type,
    }
    data_str = json.dumps(identity, sort_keys=True)
    return hashlib.md5(data_str.encode()).hexdigest()
