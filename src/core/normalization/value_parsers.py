"""
Lenient parsers for amounts, dates and quantities found in marketplace exports.

Every parser returns None when the text cannot be interpreted; callers decide
on the fallback value and record a warning.
"""

import re
from datetime import date, datetime
from decimal import Decimal, InvalidOperation

DATE_FORMATS = (
    "%Y-%m-%d",
    "%d/%m/%Y",
    "%m/%d/%Y",
    "%Y-%m-%d %H:%M:%S",
    "%Y-%m-%dT%H:%M:%S",
)

_CURRENCY_NOISE = re.compile(r"(₹|\$|€|,|\bINR\b|\bUSD\b|\bEUR\b)", re.IGNORECASE)

CURRENCY_MARKERS = (
    ("INR", ("₹", "INR")),
    ("USD", ("$", "USD")),
    ("EUR", ("€", "EUR")),
)


def clean_amount(text: str | None) -> Decimal | None:
    """
    Parse a monetary value after stripping currency symbols and separators.

    Negative amounts may be written "-12.50", "(12.50)" or "12.50-".

    Args:
        text: Raw amount text, e.g. "₹1,234.50", "INR 99" or "(40.00)"

    Returns:
        Decimal amount, or None when blank/unparseable

    Examples:
        >>> clean_amount("₹1,234.50")
        Decimal('1234.50')
        >>> clean_amount("(40.00)")
        Decimal('-40.00')
        >>> clean_amount("n/a") is None
        True
    """
    if text is None:
        return None
    cleaned = _CURRENCY_NOISE.sub("", str(text)).strip()

    negative = False
    if cleaned.startswith("(") and cleaned.endswith(")"):
        negative, cleaned = True, cleaned[1:-1].strip()
    elif cleaned.endswith("-"):
        negative, cleaned = True, cleaned[:-1].strip()
    if not cleaned or (negative and cleaned[0] in "+-"):
        return None

    try:
        amount = Decimal(cleaned)
    except InvalidOperation:
        return None
    if not amount.is_finite():
        return None
    return -amount if negative else amount


def detect_currency(text: str | None) -> str | None:
    """
    Detect the currency an amount is expressed in.

    Args:
        text: Raw amount text

    Returns:
        "INR", "USD", "EUR", or None when no marker is present
    """
    if not text:
        return None
    upper = str(text).upper()
    for currency, markers in CURRENCY_MARKERS:
        if any(marker in upper for marker in markers):
            return currency
    return None


def parse_date(text: str | None) -> date | None:
    """
    Parse a date trying each of DATE_FORMATS in order.

    Day-first is tried before month-first, so "03/04/2024" is 3 April.
    """
    if text is None:
        return None
    value = str(text).strip()
    if not value:
        return None
    for fmt in DATE_FORMATS:
        try:
            return datetime.strptime(value, fmt).date()
        except ValueError:
            continue
    return None


def parse_quantity(text: str | None) -> int | None:
    """
    Parse a unit quantity; "2", "2.0" and " 2 " all yield 2.

    Fractional and negative quantities are rejected.
    """
    amount = clean_amount(text)
    if amount is None or amount < 0 or amount != amount.to_integral_value():
        return None
    return int(amount)
