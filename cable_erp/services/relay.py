from __future__ import annotations

import logging

logger = logging.getLogger(__name__)


class StockRelay:
    """
    Carries stock side effects from one store into the finished-goods stock.

    Deltas are routed through the owning service's ``adjust_stock`` rather
    than written into its storage slot, so there is a single writer per key.
    The owner clamps at zero, persists, and sends ``stock-updated``.
    """

    def __init__(self, production):
        self.production = production

    def apply(self, product_name: str, *, bundles: float = 0.0, foot: float = 0.0) -> dict:
        if not product_name:
            logger.warning("Stock adjustment without a product name ignored")
            return {"foot": 0.0, "bundles": 0.0}
        if not bundles and not foot:
            return self.production.get_stock_by_name(product_name)
        logger.debug("Adjusting stock for %s: bundles %+g, foot %+g", product_name, bundles, foot)
        return self.production.adjust_stock(product_name, bundles=float(bundles), foot=float(foot))
