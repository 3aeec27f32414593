from __future__ import annotations

import logging
from dataclasses import asdict, dataclass
from typing import Optional

from cable_erp.services import queries
from cable_erp.services.stores import EntitySpec, EntityStore, IdGenerator
from cable_erp.storage import DurableStore
from cable_erp.utils import generate_batch_id

logger = logging.getLogger(__name__)

EPS = 1e-9

RAW_LOOKUPS_KEY = "raw-material-lookups"
DEFAULT_MATERIAL_TYPES = ["Copper", "Silver"]

PROCESSED_STOCK_KEY = "processed-material-stock"
PREDEFINED_PROCESSED_NAMES = ["7/12", "7/15", "7/64", "7/52"]

SCRAP_MATERIAL_TYPES = ("Copper", "Silver")


@dataclass
class RawMaterialBatchUsed:
    raw_material_id: int
    batch_id: str
    quantity_used: float


def _positive(value, label: str) -> float:
    try:
        v = float(value)
    except (TypeError, ValueError):
        raise ValueError(f"{label} must be a number.")
    if v <= 0:
        raise ValueError(f"{label} must be greater than 0.")
    return v


def _migrate_raw(m: dict) -> dict:
    # Early records carried only the remaining quantity.
    if m.get("original_quantity") is None:
        m["original_quantity"] = m.get("quantity", 0)
    m.setdefault("notes", None)
    return m


def _migrate_processed(m: dict) -> dict:
    m["raw_material_batches_used"] = m.get("raw_material_batches_used") or []
    m.setdefault("used_quantity", 0.0)
    if m.get("output_quantity") is None:
        m["output_quantity"] = float(m.get("number_of_bundles", 0)) * float(m.get("weight_per_bundle", 0))
    return m


RAW_MATERIAL_SPEC = EntitySpec(
    name="raw_materials",
    key="raw-material-storage",
    field="raw_materials",
    date_fields=("created_at", "date"),
    newest_first=True,
    sync_table="raw_materials",
    migrate=_migrate_raw,
)
PROCESSED_MATERIAL_SPEC = EntitySpec(
    name="processed_materials",
    key="processed-raw-material-storage",
    field="processed_materials",
    date_fields=("created_at", "date"),
    newest_first=True,
    sync_table="processed_materials",
    migrate=_migrate_processed,
)
PVC_MATERIAL_SPEC = EntitySpec(
    name="pvc_materials",
    key="pvc-material-storage",
    field="materials",
    date_fields=("created_at", "date"),
    newest_first=True,
    sync_table="pvc_materials",
)
SCRAP_SPEC = EntitySpec(
    name="scrap",
    key="scrap-storage",
    date_fields=("created_at", "date"),
    sync_table="scrap",
)


class RawMaterialService:
    """
    Raw material lots (copper, silver, ...). ``original_quantity`` is the
    supplied amount and never changes once the lot has been drawn from;
    ``quantity`` is what remains.
    """

    def __init__(self, durable: DurableStore, *, ids: IdGenerator, sync=None):
        self.durable = durable
        self.materials = EntityStore(durable, RAW_MATERIAL_SPEC, ids=ids, sync=sync)
        self.last_error: Optional[str] = None
        self.material_types: list[str] = []
        self.suppliers: list[str] = []
        self.reload_lookups()

    def reload_lookups(self) -> None:
        lookups = self.durable.load_document(
            RAW_LOOKUPS_KEY, {"material_types": list(DEFAULT_MATERIAL_TYPES), "suppliers": []}
        )
        self.material_types = list(lookups.get("material_types") or DEFAULT_MATERIAL_TYPES)
        self.suppliers = list(lookups.get("suppliers") or [])

    def _remember(self, material_type: Optional[str], supplier: Optional[str]) -> None:
        changed = False
        if material_type and material_type not in self.material_types:
            self.material_types.append(material_type)
            changed = True
        if supplier and supplier not in self.suppliers:
            self.suppliers.append(supplier)
            changed = True
        if changed:
            ok = self.durable.save_document(
                RAW_LOOKUPS_KEY, {"material_types": self.material_types, "suppliers": self.suppliers}
            )
            self.last_error = None if ok else "Could not save material types and suppliers."
            if not ok:
                logger.error(self.last_error)

    def add(self, *, material_type: str, supplier: str, quantity: float, date, notes: Optional[str] = None, batch_id: Optional[str] = None) -> dict:
        material_type = str(material_type or "").strip()
        supplier = str(supplier or "").strip()
        if not material_type:
            raise ValueError("Material type is required.")
        qty = _positive(quantity, "Quantity")

        if not batch_id:
            batch_id = generate_batch_id("RAW", date, (m.get("batch_id") for m in self.materials.all()))

        record = self.materials.create(
            {
                "material_type": material_type,
                "supplier": supplier,
                "date": date,
                "quantity": qty,
                "original_quantity": qty,
                "batch_id": batch_id,
                "notes": (notes or "").strip() or None,
            }
        )
        self._remember(material_type, supplier)
        return record

    def update(self, material_id, changes: dict) -> Optional[dict]:
        existing = self.materials.get_by_id(material_id)
        if existing is None:
            return None

        changes = dict(changes)
        untouched = abs(float(existing["quantity"]) - float(existing["original_quantity"])) <= EPS
        if "quantity" in changes and "original_quantity" not in changes and untouched:
            # Editing an undrawn lot corrects the supplied amount too.
            changes["original_quantity"] = changes["quantity"]

        merged = {**existing, **changes}
        if float(merged["quantity"]) < 0 or float(merged["quantity"]) > float(merged["original_quantity"]) + EPS:
            raise ValueError("Remaining quantity must be between 0 and the supplied quantity.")

        updated = self.materials.update(material_id, changes)
        self._remember(changes.get("material_type"), changes.get("supplier"))
        return updated

    def delete(self, material_id) -> bool:
        return self.materials.delete(material_id)

    def get_by_id(self, material_id) -> Optional[dict]:
        return self.materials.get_by_id(material_id)

    def get_total_by_material_type(self, material_type: str) -> float:
        return queries.total_for(self.materials.all(), "material_type", material_type, amount_field="quantity", casefold=True)

    def get_available_stock(self, material_type: str) -> float:
        return self.get_total_by_material_type(material_type)

    def get_recent(self, limit: int = 10) -> list[dict]:
        return queries.recent(self.materials.all(), limit)

    def deduct_stock(self, material_type: str, quantity: float) -> list[RawMaterialBatchUsed]:
        """
        FIFO depletion across lots of one material type, oldest date first.
        Nothing is written unless the whole quantity is available.
        """
        qty = _positive(quantity, "Input quantity")
        wanted = str(material_type or "").casefold()
        lots = [
            m for m in self.materials.all()
            if str(m.get("material_type") or "").casefold() == wanted and float(m.get("quantity") or 0) > EPS
        ]
        lots = queries.ledger_order(lots)

        available = sum(float(m["quantity"]) for m in lots)
        if qty > available + EPS:
            raise ValueError(f"Insufficient raw material stock. Available: {available:.2f} kgs")

        remaining = qty
        used: list[RawMaterialBatchUsed] = []
        for m in lots:
            if remaining <= EPS:
                break
            take = min(remaining, float(m["quantity"]))
            self.materials.update(m["id"], {"quantity": float(m["quantity"]) - take})
            used.append(RawMaterialBatchUsed(raw_material_id=m["id"], batch_id=str(m.get("batch_id") or ""), quantity_used=take))
            remaining -= take

        return used

    def restore_stock(self, batches_used) -> None:
        for b in batches_used:
            entry = asdict(b) if isinstance(b, RawMaterialBatchUsed) else dict(b)
            lot = self.materials.get_by_id(entry.get("raw_material_id"))
            if lot is None:
                logger.warning("Raw material %s no longer exists; %.2f kgs not restored",
                               entry.get("raw_material_id"), float(entry.get("quantity_used") or 0))
                continue
            restored = min(float(lot["original_quantity"]), float(lot["quantity"]) + float(entry.get("quantity_used") or 0))
            self.materials.update(lot["id"], {"quantity": restored})


class ProcessedMaterialService:
    """
    Processing runs that turn raw lots into bundled wire. Each run records
    which raw lots it drew from; that provenance is never edited afterwards.
    """

    def __init__(self, durable: DurableStore, raw: RawMaterialService, *, ids: IdGenerator, sync=None):
        self.durable = durable
        self.raw = raw
        self.materials = EntityStore(durable, PROCESSED_MATERIAL_SPEC, ids=ids, sync=sync)
        self.last_error: Optional[str] = None
        self.stock: dict[str, float] = {}
        self.names: list[str] = []
        self.reload_stock()

    def reload_stock(self) -> None:
        doc = self.durable.load_document(PROCESSED_STOCK_KEY, {"stock": {}, "names": list(PREDEFINED_PROCESSED_NAMES)})
        self.stock = {str(k): float(v) for k, v in (doc.get("stock") or {}).items()}
        self.names = list(doc.get("names") or PREDEFINED_PROCESSED_NAMES)

    def _save_stock(self) -> None:
        ok = self.durable.save_document(PROCESSED_STOCK_KEY, {"stock": self.stock, "names": self.names})
        self.last_error = None if ok else "Could not save processed material stock; changes are kept in memory only."
        if not ok:
            logger.error(self.last_error)

    def _adjust(self, name: str, delta: float) -> None:
        self.stock[name] = max(0.0, self.stock.get(name, 0.0) + float(delta))
        if name not in self.names:
            self.names.append(name)
        self._save_stock()

    def process(
        self,
        *,
        name: str,
        material_type: str,
        input_quantity: float,
        number_of_bundles: float,
        weight_per_bundle: float,
        date,
        notes: Optional[str] = None,
    ) -> dict:
        name = str(name or "").strip()
        if not name:
            raise ValueError("Name is required.")
        input_qty = _positive(input_quantity, "Input quantity")
        bundles = _positive(number_of_bundles, "Number of bundles")
        weight = _positive(weight_per_bundle, "Weight per bundle")

        batches = self.raw.deduct_stock(material_type, input_qty)
        output = bundles * weight

        record = self.materials.create(
            {
                "name": name,
                "material_type": str(material_type).strip(),
                "input_quantity": input_qty,
                "number_of_bundles": bundles,
                "weight_per_bundle": weight,
                "output_quantity": output,
                "used_quantity": 0.0,
                "date": date,
                "batch_id": generate_batch_id("PRC", date, (m.get("batch_id") for m in self.materials.all())),
                "notes": (notes or "").strip() or None,
                "raw_material_batches_used": [asdict(b) for b in batches],
            }
        )
        self._adjust(name, output)
        return record

    def update(self, material_id, changes: dict) -> Optional[dict]:
        existing = self.materials.get_by_id(material_id)
        if existing is None:
            return None

        changes = {
            k: v for k, v in dict(changes).items()
            if k not in ("raw_material_batches_used", "input_quantity", "material_type", "used_quantity", "output_quantity")
        }
        merged = {**existing, **changes}
        output = _positive(merged["number_of_bundles"], "Number of bundles") * _positive(merged["weight_per_bundle"], "Weight per bundle")
        if output + EPS < float(existing.get("used_quantity") or 0):
            raise ValueError("Output cannot drop below the quantity already used in production.")
        changes["output_quantity"] = output

        updated = self.materials.update(material_id, changes)
        if merged["name"] != existing["name"]:
            self._adjust(existing["name"], -float(existing["output_quantity"]))
            self._adjust(merged["name"], output)
        elif abs(output - float(existing["output_quantity"])) > EPS:
            self._adjust(merged["name"], output - float(existing["output_quantity"]))
        return updated

    def delete(self, material_id) -> bool:
        existing = self.materials.get_by_id(material_id)
        if existing is None:
            return False

        # Raw stock goes back only when the last record of a processing batch is removed.
        siblings = self.materials.query(lambda m: m.get("batch_id") == existing.get("batch_id") and m.get("date") == existing.get("date"))
        if len(siblings) <= 1 and existing.get("raw_material_batches_used"):
            self.raw.restore_stock(existing["raw_material_batches_used"])

        self.materials.delete(material_id)
        self._adjust(existing["name"], -float(existing["output_quantity"]))
        return True

    def get_by_id(self, material_id) -> Optional[dict]:
        return self.materials.get_by_id(material_id)

    def use(self, material_id, bundles: float) -> float:
        """Draws bundles for production; returns the kgs consumed."""
        m = self.materials.get_by_id(material_id)
        if m is None:
            raise ValueError("Processed material not found")
        kgs = _positive(bundles, "Bundles used") * float(m["weight_per_bundle"])
        available = float(m["output_quantity"]) - float(m.get("used_quantity") or 0)
        if kgs > available + EPS:
            raise ValueError(f"Insufficient processed material. Available: {available:.2f} kgs")
        self.materials.update(material_id, {"used_quantity": float(m.get("used_quantity") or 0) + kgs})
        self._adjust(m["name"], -kgs)
        return kgs

    def release(self, material_id, bundles: float) -> float:
        m = self.materials.get_by_id(material_id)
        if m is None:
            logger.warning("Processed material %s no longer exists; nothing released", material_id)
            return 0.0
        kgs = min(float(bundles) * float(m["weight_per_bundle"]), float(m.get("used_quantity") or 0))
        self.materials.update(material_id, {"used_quantity": float(m.get("used_quantity") or 0) - kgs})
        self._adjust(m["name"], kgs)
        return kgs

    def is_raw_material_locked(self, raw_material_id) -> bool:
        return any(
            b.get("raw_material_id") == raw_material_id
            for m in self.materials.all()
            for b in m.get("raw_material_batches_used") or []
        )

    def get_stock_by_name(self, name: str) -> float:
        return self.stock.get(name, 0.0)

    def get_total_stock(self) -> float:
        return sum(self.stock.values())

    def get_recent(self, limit: int = 10) -> list[dict]:
        return queries.recent(self.materials.all(), limit)


class PVCMaterialService:
    def __init__(self, durable: DurableStore, *, ids: IdGenerator, sync=None):
        self.materials = EntityStore(durable, PVC_MATERIAL_SPEC, ids=ids, sync=sync)

    def add(self, *, name: str, quantity: float, date, supplier: Optional[str] = None, batch_id: Optional[str] = None, notes: Optional[str] = None) -> dict:
        name = str(name or "").strip()
        if not name:
            raise ValueError("Name is required.")
        if not batch_id:
            batch_id = generate_batch_id("PVC", date, (m.get("batch_id") for m in self.materials.all()))
        return self.materials.create(
            {
                "name": name,
                "quantity": _positive(quantity, "Quantity"),
                "supplier": (supplier or "").strip() or None,
                "date": date,
                "batch_id": batch_id,
                "notes": (notes or "").strip() or None,
            }
        )

    def get_total_quantity(self) -> float:
        return sum(float(m.get("quantity") or 0) for m in self.materials.all())

    def get_recent(self, limit: int = 10) -> list[dict]:
        return queries.recent(self.materials.all(), limit)


class ScrapService:
    def __init__(self, durable: DurableStore, *, ids: IdGenerator, sync=None):
        self.scraps = EntityStore(durable, SCRAP_SPEC, ids=ids, sync=sync)

    def add(self, *, material_type: str, amount: float, date, notes: Optional[str] = None) -> dict:
        if material_type not in SCRAP_MATERIAL_TYPES:
            raise ValueError("Material type must be Copper or Silver.")
        return self.scraps.create(
            {
                "material_type": material_type,
                "amount": _positive(amount, "Amount"),
                "date": date,
                "notes": (notes or "").strip() or None,
            }
        )

    def get_by_date_range(self, start, end) -> list[dict]:
        return queries.in_date_range(self.scraps.all(), start, end)

    def get_total_by_material_type(self, material_type: str) -> float:
        return queries.total_for(self.scraps.all(), "material_type", material_type)

    def get_total_by_period(self, start, end) -> float:
        return queries.total_in_period(self.scraps.all(), start, end)
