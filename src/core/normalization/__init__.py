"""
Field normalization: status taxonomy, SKU resolution and value coercion.
"""

from .sku_resolver import SkuCache, SkuResolution, SkuResolver
from .status_normalizer import StatusNormalizer, normalize_status
from .transformers import OrderRowTransformer, PaymentRowTransformer, payment_key
from .value_parsers import clean_amount, detect_currency, parse_date, parse_quantity

__all__ = [
    "StatusNormalizer",
    "normalize_status",
    "SkuCache",
    "SkuResolution",
    "SkuResolver",
    "OrderRowTransformer",
    "PaymentRowTransformer",
    "payment_key",
    "clean_amount",
    "detect_currency",
    "parse_date",
    "parse_quantity",
]
