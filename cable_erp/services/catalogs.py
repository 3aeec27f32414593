"""
User-maintained name lists: custom products (with number and tara), custom
PVC materials and custom processed materials. Each list is a plain append
collection that the production, PVC and processing pages offer as choices.
"""
from __future__ import annotations

from typing import Optional

from cable_erp.services.stores import EntitySpec, EntityStore, IdGenerator
from cable_erp.storage import DurableStore

CUSTOM_PRODUCT_SPEC = EntitySpec(
    name="custom_products",
    key="custom-product-storage",
    sync_table="custom_products",
)
CUSTOM_PVC_SPEC = EntitySpec(
    name="custom_pvc_materials",
    key="custom-pvc-material-storage",
    sync_table="custom_pvc_materials",
)
CUSTOM_PROCESSED_SPEC = EntitySpec(
    name="custom_processed_materials",
    key="custom-processed-material-storage",
    sync_table="custom_processed_materials",
)


def _name(value) -> str:
    name = str(value or "").strip()
    if not name:
        raise ValueError("Name is required.")
    return name


class CatalogService:
    def __init__(self, durable: DurableStore, *, ids: IdGenerator, sync=None):
        self.products = EntityStore(durable, CUSTOM_PRODUCT_SPEC, ids=ids, sync=sync)
        self.pvc_materials = EntityStore(durable, CUSTOM_PVC_SPEC, ids=ids, sync=sync)
        self.processed_materials = EntityStore(durable, CUSTOM_PROCESSED_SPEC, ids=ids, sync=sync)

    @property
    def stores(self) -> tuple[EntityStore, ...]:
        return (self.products, self.pvc_materials, self.processed_materials)

    def add_product(self, *, name: str, product_number: str = "", product_tara: str = "") -> dict:
        return self.products.create(
            {"name": _name(name), "product_number": (product_number or "").strip(), "product_tara": (product_tara or "").strip()}
        )

    def add_pvc_material(self, *, name: str) -> dict:
        return self.pvc_materials.create({"name": _name(name)})

    def add_processed_material(self, *, name: str, prior_raw_material: str = "") -> dict:
        return self.processed_materials.create(
            {"name": _name(name), "prior_raw_material": (prior_raw_material or "").strip()}
        )

    def update(self, store: EntityStore, record_id, changes: dict) -> Optional[dict]:
        changes = dict(changes)
        if "name" in changes:
            changes["name"] = _name(changes["name"])
        return store.update(record_id, changes)

    @staticmethod
    def names(store: EntityStore) -> list[str]:
        return sorted({r["name"] for r in store.all() if r.get("name")}, key=str.casefold)
