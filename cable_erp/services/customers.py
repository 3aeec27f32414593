from __future__ import annotations

import logging
from typing import Optional

from cable_erp.services.relay import StockRelay
from cable_erp.services.stores import EntitySpec, EntityStore, IdGenerator
from cable_erp.storage import DurableStore
from cable_erp.utils import now

logger = logging.getLogger(__name__)

PREDEFINED_CUSTOMERS = [
    {"name": f"Customer {i}", "phone": f"0300-000000{i}", "address": f"Address {i}", "details": f"Details {i}"}
    for i in range(1, 6)
]


def _seed_customers() -> list[dict]:
    return [dict(c, id=i) for i, c in enumerate(PREDEFINED_CUSTOMERS, start=1)]


def _migrate_purchase(p: dict) -> dict:
    # Older purchases only carried the product name.
    p["product_production_id"] = p.get("product_production_id") or 0
    p["product_number"] = p.get("product_number") or ""
    p["product_tara"] = p.get("product_tara") or ""
    p["price"] = p.get("price") or 0
    p["quantity_bundles"] = p.get("quantity_bundles") or 0
    p["quantity_foot"] = p.get("quantity_foot") or 0
    return p


CUSTOMER_SPEC = EntitySpec(
    name="customers",
    key="customer-storage",
    field="customers",
    newest_first=True,
    sync_table="customers",
    seed=_seed_customers,
)
PURCHASE_SPEC = EntitySpec(
    name="purchases",
    key="customer-purchase-storage",
    field="purchases",
    date_fields=("created_at", "date"),
    newest_first=True,
    sync_table="purchases",
    migrate=_migrate_purchase,
)


def _quantity(value, label: str) -> float:
    try:
        v = float(value or 0)
    except (TypeError, ValueError):
        raise ValueError(f"{label} must be a number.")
    if v < 0:
        raise ValueError(f"{label} cannot be negative.")
    return v


class CustomerService:
    """
    Customers and their purchases. Creating, editing or deleting a purchase
    moves the purchased product's bundle/foot stock through the relay.
    """

    def __init__(self, durable: DurableStore, relay: StockRelay, *, ids: IdGenerator, sync=None):
        self.relay = relay
        self.customers = EntityStore(durable, CUSTOMER_SPEC, ids=ids, sync=sync)
        self.purchases = EntityStore(durable, PURCHASE_SPEC, ids=ids, sync=sync)

    # -------------------------
    # Customers
    # -------------------------

    def add_customer(self, *, name: str, phone: str = "", address: str = "", details: str = "") -> dict:
        name = str(name or "").strip()
        if not name:
            raise ValueError("Customer name is required.")
        return self.customers.create(
            {"name": name, "phone": phone.strip(), "address": address.strip(), "details": details.strip()}
        )

    def update_customer(self, customer_id, changes: dict) -> Optional[dict]:
        return self.customers.update(customer_id, changes)

    def delete_customer(self, customer_id) -> bool:
        # Purchases are left in place; there is no cascading delete.
        return self.customers.delete(customer_id)

    def get_customer_by_id(self, customer_id) -> Optional[dict]:
        return self.customers.get_by_id(customer_id)

    # -------------------------
    # Purchases
    # -------------------------

    def add_purchase(
        self,
        *,
        customer_id,
        product_name: str,
        quantity_bundles: float = 0,
        quantity_foot: float = 0,
        price: float = 0,
        date=None,
        product_production_id: int = 0,
        product_number: str = "",
        product_tara: str = "",
        notes: Optional[str] = None,
    ) -> dict:
        if self.customers.get_by_id(customer_id) is None:
            raise ValueError("Customer not found")
        product_name = str(product_name or "").strip()
        if not product_name:
            raise ValueError("Product name is required.")
        bundles = _quantity(quantity_bundles, "Bundles")
        foot = _quantity(quantity_foot, "Foot")
        if bundles <= 0 and foot <= 0:
            raise ValueError("Enter a bundle or foot quantity greater than 0.")

        purchase = self.purchases.create(
            {
                "customer_id": customer_id,
                "product_production_id": product_production_id or 0,
                "product_name": product_name,
                "product_number": product_number or "",
                "product_tara": product_tara or "",
                "quantity_bundles": bundles,
                "quantity_foot": foot,
                "price": _quantity(price, "Price"),
                "date": date or now(),
                "notes": (notes or "").strip() or None,
            }
        )
        self.relay.apply(product_name, bundles=-bundles, foot=-foot)
        return purchase

    def update_purchase(self, purchase_id, changes: dict) -> Optional[dict]:
        existing = self.purchases.get_by_id(purchase_id)
        if existing is None:
            return None

        changes = dict(changes)
        for field, label in (("quantity_bundles", "Bundles"), ("quantity_foot", "Foot"), ("price", "Price")):
            if field in changes:
                changes[field] = _quantity(changes[field], label)
        if "product_name" in changes:
            changes["product_name"] = str(changes["product_name"] or "").strip()
            if not changes["product_name"]:
                raise ValueError("Product name is required.")

        updated = self.purchases.update(purchase_id, changes)

        old_b, old_f = float(existing["quantity_bundles"]), float(existing["quantity_foot"])
        new_b, new_f = float(updated["quantity_bundles"]), float(updated["quantity_foot"])
        if updated["product_name"] != existing["product_name"]:
            self.relay.apply(existing["product_name"], bundles=old_b, foot=old_f)
            self.relay.apply(updated["product_name"], bundles=-new_b, foot=-new_f)
        else:
            self.relay.apply(updated["product_name"], bundles=old_b - new_b, foot=old_f - new_f)
        return updated

    def delete_purchase(self, purchase_id) -> bool:
        existing = self.purchases.get_by_id(purchase_id)
        if existing is None:
            return False
        self.purchases.delete(purchase_id)
        self.relay.apply(
            existing["product_name"],
            bundles=float(existing["quantity_bundles"]),
            foot=float(existing["quantity_foot"]),
        )
        return True

    def get_purchase_by_id(self, purchase_id) -> Optional[dict]:
        return self.purchases.get_by_id(purchase_id)

    def get_purchases_by_customer_id(self, customer_id) -> list[dict]:
        return self.purchases.query(lambda p: p.get("customer_id") == customer_id)
