"""
Status taxonomy normalization.

Maps free-form order/payment status text from marketplace exports onto the
canonical status vocabulary.
"""

from src.core.models import CANONICAL_STATUSES
from src.observability.logger import get_logger

logger = get_logger(__name__)


def _variants(canonical: str, *labels: str) -> dict[str, str]:
    """Expand labels into their upper, lower and title-case spellings."""
    mapping = {}
    for label in labels:
        for variant in (label, label.upper(), label.lower(), label.title()):
            mapping[variant] = canonical
    return mapping


STATUS_SYNONYMS: dict[str, str] = {
    **_variants("DELIVERED", "DELIVERED"),
    **_variants("SHIPPED", "SHIPPED", "IN_TRANSIT", "In Transit", "OUT_FOR_DELIVERY", "Out For Delivery"),
    **_variants("PENDING", "PENDING", "PROCESSING", "CONFIRMED"),
    **_variants("CANCELLED", "CANCELLED", "CANCEL"),
    **_variants("RTO_COMPLETE", "RTO_COMPLETE", "RTO Complete", "RTO"),
    **_variants("RETURNED", "RETURNED", "RETURN"),
    **_variants("REFUNDED", "REFUNDED", "REFUND"),
    **_variants("EXCHANGE", "EXCHANGE"),
}

# Checked in order; the first matching fragment wins
SUBSTRING_RULES: tuple[tuple[tuple[str, ...], str], ...] = (
    (("DELIVER",), "DELIVERED"),
    (("SHIP", "TRANSIT"), "SHIPPED"),
    (("PEND", "PROCESS", "CONFIRM"), "PENDING"),
    (("CANCEL",), "CANCELLED"),
    (("RTO",), "RTO_COMPLETE"),
    (("RETURN",), "RETURNED"),
    (("REFUND",), "REFUNDED"),
    (("EXCHANGE",), "EXCHANGE"),
)


class StatusNormalizer:
    """
    Maps arbitrary status strings to the canonical vocabulary.

    Resolution order:
    1. exact synonym match
    2. case-insensitive synonym match
    3. substring heuristics in SUBSTRING_RULES order
    4. UNKNOWN
    """

    def __init__(self, synonyms: dict[str, str] | None = None):
        """
        Initialize status normalizer.

        Args:
            synonyms: Synonym table (defaults to STATUS_SYNONYMS)
        """
        self.synonyms = dict(STATUS_SYNONYMS if synonyms is None else synonyms)
        self._folded = {key.casefold(): value for key, value in self.synonyms.items()}

    def normalize(self, raw_status: str | None) -> str:
        """
        Normalize a status string.

        Args:
            raw_status: Status text as uploaded (None allowed)

        Returns:
            Canonical status name
        """
        if raw_status is None or not raw_status.strip():
            logger.warning("Null or blank status received, mapping to UNKNOWN")
            return "UNKNOWN"

        status = raw_status.strip()

        if status in self.synonyms:
            return self.synonyms[status]

        folded = self._folded.get(status.casefold())
        if folded is not None:
            return folded

        upper = status.upper()
        for fragments, canonical in SUBSTRING_RULES:
            if any(fragment in upper for fragment in fragments):
                logger.debug(f"Status '{status}' mapped to {canonical} by substring rule")
                return canonical

        logger.warning(f"Unrecognized status '{status}', mapping to UNKNOWN", extra={"raw_status": status})
        return "UNKNOWN"

    def standardized_statuses(self) -> list[str]:
        """Return the canonical vocabulary."""
        return list(CANONICAL_STATUSES)

    def mapping_stats(self) -> dict[str, int]:
        """
        Summarize the synonym table.

        Returns:
            Dictionary with total_mappings and unique_standardized_statuses
        """
        return {
            "total_mappings": len(self.synonyms),
            "unique_standardized_statuses": len(set(self.synonyms.values())),
        }


_default_normalizer = StatusNormalizer()


def normalize_status(raw_status: str | None) -> str:
    """Normalize a status with the default synonym table."""
    return _default_normalizer.normalize(raw_status)
