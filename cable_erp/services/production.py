from __future__ import annotations

import logging
from typing import Optional

from cable_erp.events import stock_updated
from cable_erp.services.stock import calculate_final_amount
from cable_erp.services.stores import EntitySpec, EntityStore, IdGenerator
from cable_erp.storage import DurableStore
from cable_erp.utils import generate_batch_id, generate_sale_number, now

logger = logging.getLogger(__name__)

UNITS = ("foot", "bundles")
STOCK_KEY = "product-stock"
STOCK_SYNC_NAME = "product_stock"
PREDEFINED_PRODUCT_NAMES = [f"Product {i}" for i in range(1, 23)]

PRODUCTION_SPEC = EntitySpec(
    name="productions",
    key="product-productions",
    field="productions",
    date_fields=("created_at", "date"),
    newest_first=True,
    sync_table="productions",
)
PRODUCT_SALE_SPEC = EntitySpec(
    name="product_sales",
    key="product-sales",
    field="sales",
    date_fields=("created_at", "purchase_date"),
    newest_first=True,
    sync_table="product_sales",
)


def _unit(unit: str) -> str:
    u = str(unit or "").strip().lower()
    if u not in UNITS:
        raise ValueError("Unit must be 'foot' or 'bundles'.")
    return u


def _positive(value, label: str) -> float:
    try:
        v = float(value)
    except (TypeError, ValueError):
        raise ValueError(f"{label} must be a number.")
    if v <= 0:
        raise ValueError(f"{label} must be greater than 0.")
    return v


class ProductionService:
    """
    Finished goods. Stock is kept per product name in foot and bundle counts,
    in one durable document that only this service writes. Other stores that
    need to move stock go through ``adjust_stock``.
    """

    def __init__(self, durable: DurableStore, *, ids: IdGenerator, sync=None, processed=None):
        self.durable = durable
        self.processed = processed
        self.sync = sync
        self.productions = EntityStore(durable, PRODUCTION_SPEC, ids=ids, sync=sync)
        self.sales = EntityStore(durable, PRODUCT_SALE_SPEC, ids=ids, sync=sync)
        self.last_error: Optional[str] = None
        self.stock: dict[str, dict[str, float]] = {}
        self.product_names: list[str] = []
        self.reload_stock()
        stock_updated.connect(self._on_stock_updated, sender=durable)

    # -------------------------
    # Stock document
    # -------------------------

    def reload_stock(self) -> None:
        doc = self.durable.load_document(
            STOCK_KEY, {"stock": {}, "product_names": list(PREDEFINED_PRODUCT_NAMES)}
        )
        self.stock = {
            str(name): {"foot": float(v.get("foot") or 0), "bundles": float(v.get("bundles") or 0)}
            for name, v in (doc.get("stock") or {}).items()
            if isinstance(v, dict)
        }
        self.product_names = list(doc.get("product_names") or PREDEFINED_PRODUCT_NAMES)

    def _on_stock_updated(self, sender, **kwargs) -> None:
        self.reload_stock()

    def _save_stock(self) -> None:
        ok = self.durable.save_document(STOCK_KEY, {"stock": self.stock, "product_names": self.product_names})
        if not ok:
            self.last_error = "Could not save product stock; changes are kept in memory only."
            logger.error(self.last_error)
            return
        self.last_error = None
        if self.sync is not None:
            self.sync.mark_pending(STOCK_SYNC_NAME)
        stock_updated.send(self.durable)

    def _apply(self, name: str, unit: str, delta: float) -> None:
        entry = self.stock.setdefault(name, {"foot": 0.0, "bundles": 0.0})
        entry[unit] = max(0.0, entry[unit] + float(delta))

    def _register_name(self, name: str) -> None:
        if name not in self.product_names:
            self.product_names.append(name)

    def adjust_stock(self, product_name: str, *, bundles: float = 0.0, foot: float = 0.0) -> dict:
        """
        Applies signed deltas to one product's stock, clamping each count at
        zero. Re-reads the durable document first so no other writer's change
        is overwritten.
        """
        with self.durable.lock(STOCK_KEY):
            self.reload_stock()
            self._apply(product_name, "bundles", bundles)
            self._apply(product_name, "foot", foot)
            self._save_stock()
        return dict(self.stock[product_name])

    def get_stock_by_name(self, name: str) -> dict:
        return dict(self.stock.get(name) or {"foot": 0.0, "bundles": 0.0})

    def stock_records(self) -> list[dict]:
        return [{"id": name, "product_name": name, **counts} for name, counts in sorted(self.stock.items())]

    def get_total_stock(self) -> dict:
        return {
            "foot": sum(s["foot"] for s in self.stock.values()),
            "bundles": sum(s["bundles"] for s in self.stock.values()),
        }

    # -------------------------
    # Productions
    # -------------------------

    def add_production(
        self,
        *,
        product_name: str,
        quantity: float,
        unit: str,
        date,
        product_number: Optional[str] = None,
        notes: Optional[str] = None,
        processed_material_id=None,
        bundles_used: float = 0,
    ) -> dict:
        name = str(product_name or "").strip()
        if not name:
            raise ValueError("Product name is required.")
        qty = _positive(quantity, "Quantity")
        unit = _unit(unit)

        if processed_material_id is not None and bundles_used:
            if self.processed is None:
                raise ValueError("Processed material tracking is not available.")
            self.processed.use(processed_material_id, bundles_used)

        record = self.productions.create(
            {
                "product_name": name,
                "product_number": (product_number or "").strip() or None,
                "quantity": qty,
                "unit": unit,
                "date": date,
                "batch_id": generate_batch_id("PRD", date, (p.get("batch_id") for p in self.productions.all())),
                "processed_material_id": processed_material_id,
                "bundles_used": float(bundles_used or 0),
                "notes": (notes or "").strip() or None,
            }
        )

        with self.durable.lock(STOCK_KEY):
            self._register_name(name)
            self._apply(name, unit, qty)
            self._save_stock()
        return record

    def update_production(self, production_id, changes: dict) -> Optional[dict]:
        existing = self.productions.get_by_id(production_id)
        if existing is None:
            return None

        changes = {k: v for k, v in dict(changes).items() if k not in ("batch_id", "processed_material_id")}
        if "quantity" in changes:
            changes["quantity"] = _positive(changes["quantity"], "Quantity")
        if "unit" in changes:
            changes["unit"] = _unit(changes["unit"])
        if "product_name" in changes:
            changes["product_name"] = str(changes["product_name"] or "").strip()
            if not changes["product_name"]:
                raise ValueError("Product name is required.")

        pm_id = existing.get("processed_material_id")
        if "bundles_used" in changes and pm_id is not None and self.processed is not None:
            delta = float(changes["bundles_used"] or 0) - float(existing.get("bundles_used") or 0)
            if delta > 0:
                self.processed.use(pm_id, delta)
            elif delta < 0:
                self.processed.release(pm_id, -delta)

        updated = self.productions.update(production_id, changes)

        if any(k in changes for k in ("quantity", "unit", "product_name")):
            with self.durable.lock(STOCK_KEY):
                self._apply(existing["product_name"], existing["unit"], -float(existing["quantity"]))
                self._register_name(updated["product_name"])
                self._apply(updated["product_name"], updated["unit"], float(updated["quantity"]))
                self._save_stock()
        return updated

    def delete_production(self, production_id) -> bool:
        existing = self.productions.get_by_id(production_id)
        if existing is None:
            return False

        self.productions.delete(production_id)
        if existing.get("processed_material_id") is not None and existing.get("bundles_used") and self.processed is not None:
            self.processed.release(existing["processed_material_id"], existing["bundles_used"])

        with self.durable.lock(STOCK_KEY):
            self._apply(existing["product_name"], existing["unit"], -float(existing["quantity"]))
            self._save_stock()
        return True

    def get_production_by_id(self, production_id) -> Optional[dict]:
        return self.productions.get_by_id(production_id)

    # -------------------------
    # Unit sales (foot / bundles)
    # -------------------------

    def add_sale(
        self,
        *,
        product_id,
        quantity: float,
        unit: str,
        unit_price: float,
        discount: float = 0,
        customer_name: Optional[str] = None,
        purchase_date=None,
    ) -> dict:
        production = self.productions.get_by_id(product_id)
        if production is None:
            raise ValueError("Product production not found")

        qty = _positive(quantity, "Quantity")
        unit = _unit(unit)
        available = self.get_stock_by_name(production["product_name"])[unit]
        if qty > available:
            raise ValueError(f"Insufficient stock. Available: {available:g} {unit}")

        price = float(unit_price or 0)
        disc = float(discount or 0)
        if price < 0 or disc < 0:
            raise ValueError("Price and discount must be positive.")

        sale = self.sales.create(
            {
                "sale_no": generate_sale_number(),
                "product_id": product_id,
                "product_name": production["product_name"],
                "quantity": qty,
                "unit": unit,
                "unit_price": price,
                "discount": disc,
                "total_amount": qty * price,
                "final_amount": calculate_final_amount(qty, price, disc),
                "customer_name": (customer_name or "").strip() or None,
                "purchase_date": purchase_date or now(),
            }
        )
        with self.durable.lock(STOCK_KEY):
            self._apply(production["product_name"], unit, -qty)
            self._save_stock()
        return sale

    def update_sale(self, sale_id, changes: dict) -> Optional[dict]:
        existing = self.sales.get_by_id(sale_id)
        if existing is None:
            return None

        changes = {k: v for k, v in dict(changes).items() if k not in ("product_id", "product_name", "unit", "sale_no")}
        merged = {**existing, **changes}
        for field in ("unit_price", "discount"):
            if field in changes:
                changes[field] = merged[field] = float(changes[field] or 0)
        if float(merged["unit_price"]) < 0 or float(merged["discount"]) < 0:
            raise ValueError("Price and discount must be positive.")
        if "quantity" in changes:
            merged["quantity"] = _positive(changes["quantity"], "Quantity")
            extra = merged["quantity"] - float(existing["quantity"])
            available = self.get_stock_by_name(existing["product_name"])[existing["unit"]]
            if extra > available:
                raise ValueError(f"Insufficient stock. Available: {available:g} {existing['unit']}")
            changes["quantity"] = merged["quantity"]

        if any(k in changes for k in ("quantity", "unit_price", "discount")):
            changes["total_amount"] = float(merged["quantity"]) * float(merged["unit_price"])
            changes["final_amount"] = calculate_final_amount(merged["quantity"], merged["unit_price"], merged["discount"])

        updated = self.sales.update(sale_id, changes)
        if "quantity" in changes:
            with self.durable.lock(STOCK_KEY):
                self._apply(existing["product_name"], existing["unit"], float(existing["quantity"]) - float(updated["quantity"]))
                self._save_stock()
        return updated

    def delete_sale(self, sale_id) -> bool:
        existing = self.sales.get_by_id(sale_id)
        if existing is None:
            return False
        self.sales.delete(sale_id)
        # Stock is keyed by name, so it comes back even if the production was removed.
        with self.durable.lock(STOCK_KEY):
            self._register_name(existing["product_name"])
            self._apply(existing["product_name"], existing["unit"], float(existing["quantity"]))
            self._save_stock()
        return True

    def get_sale_by_id(self, sale_id) -> Optional[dict]:
        return self.sales.get_by_id(sale_id)
