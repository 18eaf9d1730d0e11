"""
SKU resolution with an explicit, run-scoped cross-reference cache.
"""

import re
import time
from typing import Any

from pydantic import BaseModel

from src.observability import metrics
from src.observability.logger import get_logger

logger = get_logger(__name__)

_NON_ALPHANUMERIC = re.compile(r"[^a-zA-Z0-9]")


class SkuResolution(BaseModel):
    """
    Outcome of resolving a SKU.

    Attributes:
        sku: Display SKU or placeholder
        resolved: False when sku is a placeholder (low confidence)
        source: "direct", "cross_reference" or "placeholder"
    """

    sku: str
    resolved: bool
    source: str


class SkuCache:
    """
    Memo of supplier SKU -> display SKU lookups.

    Misses are cached as None. The cache is never evicted on its own; owners
    clear it per run and invalidate keys whose order data changed.
    """

    _MISSING = object()

    def __init__(self):
        self._entries: dict[str, str | None] = {}

    def lookup(self, supplier_sku: str) -> tuple[bool, str | None]:
        """
        Look up a cached resolution.

        Returns:
            Tuple of (hit, value); value may be None for a cached miss
        """
        value = self._entries.get(supplier_sku, self._MISSING)
        if value is self._MISSING:
            return False, None
        return True, value

    def store(self, supplier_sku: str, sku: str | None) -> None:
        self._entries[supplier_sku] = sku

    def invalidate(self, supplier_sku: str | None) -> None:
        """Drop a single key, e.g. after its order row was rewritten."""
        if supplier_sku:
            self._entries.pop(supplier_sku.strip(), None)

    def clear(self) -> None:
        self._entries.clear()

    def stats(self) -> dict[str, int]:
        """
        Get cache statistics.

        Returns:
            Dictionary with cache_size, cached_entries and null_entries
        """
        null_entries = sum(1 for value in self._entries.values() if value is None)
        return {
            "cache_size": len(self._entries),
            "cached_entries": len(self._entries) - null_entries,
            "null_entries": null_entries,
        }

    def __len__(self) -> int:
        return len(self._entries)


class SkuResolver:
    """
    Resolves display SKUs from direct values or supplier SKU cross-references.

    The lookup collaborator must provide find_sku_by_supplier_sku(supplier_sku)
    returning the display SKU of any previously ingested order, or None.
    """

    def __init__(self, order_lookup: Any, cache: SkuCache | None = None):
        """
        Initialize SKU resolver.

        Args:
            order_lookup: Order store used for cross-reference queries
            cache: Cache instance (a fresh one is created if omitted)
        """
        self.order_lookup = order_lookup
        self.cache = cache if cache is not None else SkuCache()

    def resolve(self, direct_sku: str | None, supplier_sku: str | None) -> SkuResolution:
        """
        Resolve the display SKU of a row.

        Args:
            direct_sku: SKU column of the row, if any
            supplier_sku: Supplier SKU used for the cross-reference

        Returns:
            SkuResolution; resolved=False means a placeholder was generated
        """
        if direct_sku and direct_sku.strip():
            return SkuResolution(sku=direct_sku.strip(), resolved=True, source="direct")

        if not supplier_sku or not supplier_sku.strip():
            placeholder = f"PLACEHOLDER_UNKNOWN_{int(time.time() * 1000)}"
            self._flag_placeholder(placeholder, supplier_sku, reason="blank_supplier_sku")
            return SkuResolution(sku=placeholder, resolved=False, source="placeholder")

        key = supplier_sku.strip()
        found = self._cached_lookup(key)
        if found:
            return SkuResolution(sku=found, resolved=True, source="cross_reference")

        placeholder = "PLACEHOLDER_" + _NON_ALPHANUMERIC.sub("_", key)
        self._flag_placeholder(placeholder, key, reason="no_mapping")
        return SkuResolution(sku=placeholder, resolved=False, source="placeholder")

    def _cached_lookup(self, supplier_sku: str) -> str | None:
        hit, value = self.cache.lookup(supplier_sku)
        if hit:
            return value

        try:
            value = self.order_lookup.find_sku_by_supplier_sku(supplier_sku)
        except Exception as e:
            # Not cached so the next row retries the lookup
            logger.error(f"SKU cross-reference lookup failed for '{supplier_sku}': {e}", exc_info=True)
            return None

        self.cache.store(supplier_sku, value)
        return value

    def _flag_placeholder(self, placeholder: str, supplier_sku: str | None, reason: str) -> None:
        logger.warning(
            f"Generated placeholder SKU {placeholder} (low confidence)",
            extra={"supplier_sku": supplier_sku, "placeholder_sku": placeholder},
        )
        metrics.increment_counter(metrics.sku_placeholders_total, 1, reason=reason)

    def clear_cache(self) -> None:
        """Forget every cached cross-reference."""
        size = len(self.cache)
        self.cache.clear()
        logger.info(f"SKU cache cleared ({size} entries)")

    def cache_stats(self) -> dict[str, int]:
        return self.cache.stats()
