from __future__ import annotations

import logging
from typing import Optional

from cable_erp.services import queries
from cable_erp.services.stores import EntitySpec, EntityStore, IdGenerator
from cable_erp.storage import DurableStore
from cable_erp.utils import generate_sale_number, now

logger = logging.getLogger(__name__)

DEFAULT_CATEGORIES = [
    {"id": 1, "name": "Cables - Power", "description": "Power cables and cords"},
    {"id": 2, "name": "Cables - Network", "description": "Network and ethernet cables"},
    {"id": 3, "name": "Cables - Audio/Video", "description": "Audio and video cables"},
    {"id": 4, "name": "Connectors", "description": "Various connectors and adapters"},
    {"id": 5, "name": "Accessories", "description": "Cable accessories and tools"},
]


def _migrate_product(p: dict) -> dict:
    p.setdefault("description", None)
    p.setdefault("is_active", True)
    p.setdefault("reorder_level", 0)
    p.setdefault("category_id", None)
    return p


PRODUCT_SPEC = EntitySpec(
    name="products",
    key="stock-products",
    field="products",
    sync_table="products",
    migrate=_migrate_product,
)
SALE_SPEC = EntitySpec(
    name="sales",
    key="stock-sales",
    field="sales",
    date_fields=("created_at", "sale_date"),
    newest_first=True,
    sync_table="sales",
)
CATEGORY_SPEC = EntitySpec(
    name="categories",
    key="categories",
    seed=lambda: [dict(c) for c in DEFAULT_CATEGORIES],
)


def calculate_final_amount(quantity: float, unit_price: float, discount: float) -> float:
    # Not clamped: a discount larger than the gross amount yields a negative total.
    return float(quantity) * float(unit_price) - float(discount)


def _non_negative(value, label: str, *, integer: bool = False):
    try:
        v = int(value) if integer else float(value)
    except (TypeError, ValueError):
        raise ValueError(f"{label} must be a number.")
    if integer and float(value) != v:
        raise ValueError(f"{label} must be a whole number.")
    if v < 0:
        raise ValueError(f"{label} must be positive.")
    return v


class StockService:
    """Product catalog with per-product quantities and the sales that draw it down."""

    def __init__(self, durable: DurableStore, *, ids: IdGenerator, sync=None):
        self.products = EntityStore(durable, PRODUCT_SPEC, ids=ids, sync=sync)
        self.sales = EntityStore(durable, SALE_SPEC, ids=ids, sync=sync)
        self.categories = EntityStore(durable, CATEGORY_SPEC, ids=ids)

    # -------------------------
    # Products
    # -------------------------

    def add_product(
        self,
        *,
        name: str,
        sku: str,
        cost_price: float,
        selling_price: float,
        quantity: int,
        reorder_level: int,
        category_id: Optional[int] = None,
        description: Optional[str] = None,
        is_active: bool = True,
    ) -> dict:
        if not str(name or "").strip():
            raise ValueError("Name is required.")
        if not str(sku or "").strip():
            raise ValueError("SKU is required.")

        return self.products.create(
            {
                "name": str(name).strip(),
                "sku": str(sku).strip(),
                "description": (description or "").strip() or None,
                "cost_price": _non_negative(cost_price, "Cost price"),
                "selling_price": _non_negative(selling_price, "Selling price"),
                "quantity": _non_negative(quantity, "Quantity", integer=True),
                "reorder_level": _non_negative(reorder_level, "Reorder level", integer=True),
                "category_id": category_id,
                "is_active": bool(is_active),
            }
        )

    def update_product(self, product_id, changes: dict) -> Optional[dict]:
        changes = dict(changes)
        if "quantity" in changes:
            changes["quantity"] = _non_negative(changes["quantity"], "Quantity", integer=True)
        if "reorder_level" in changes:
            changes["reorder_level"] = _non_negative(changes["reorder_level"], "Reorder level", integer=True)
        return self.products.update(product_id, changes)

    def delete_product(self, product_id) -> bool:
        return self.products.delete(product_id)

    def get_product_by_id(self, product_id) -> Optional[dict]:
        return self.products.get_by_id(product_id)

    def get_low_stock_products(self) -> list[dict]:
        return queries.low_stock(self.products.all())

    # -------------------------
    # Sales
    # -------------------------

    def record_sale(
        self,
        *,
        product_id,
        quantity: int,
        unit_price: float,
        discount: float = 0,
        customer_name: Optional[str] = None,
        customer_phone: Optional[str] = None,
    ) -> dict:
        """
        Validates everything before touching either collection, then writes the
        product quantity and the sale as two separate saves.
        """
        product = self.products.get_by_id(product_id)
        if product is None:
            raise ValueError("Product not found")

        qty = _non_negative(quantity, "Quantity", integer=True)
        if qty < 1:
            raise ValueError("Quantity must be at least 1.")
        price = _non_negative(unit_price, "Unit price")
        disc = _non_negative(discount or 0, "Discount")

        if int(product["quantity"]) < qty:
            raise ValueError("Insufficient stock")

        self.products.update(product_id, {"quantity": int(product["quantity"]) - qty})

        sale = self.sales.create(
            {
                "sale_no": generate_sale_number(),
                "product_id": product_id,
                "quantity": qty,
                "unit_price": price,
                "total_amount": qty * price,
                "discount": disc,
                "final_amount": calculate_final_amount(qty, price, disc),
                "customer_name": (customer_name or "").strip() or None,
                "customer_phone": (customer_phone or "").strip() or None,
                "sale_date": now(),
            }
        )
        logger.info("Sale %s recorded: product %s x%d", sale["sale_no"], product_id, qty)
        return sale

    def get_sales_history(self) -> list[dict]:
        return self.sales.all()
