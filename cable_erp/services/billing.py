from __future__ import annotations

from collections import defaultdict
from typing import Optional

from cable_erp.services.stores import EntitySpec, EntityStore, IdGenerator
from cable_erp.storage import DurableStore
from cable_erp.utils import next_sequence


def _num(value) -> float:
    try:
        v = float(value or 0)
    except (TypeError, ValueError):
        return 0.0
    # Blank cells from an edited table arrive as NaN.
    return 0.0 if v != v else v


def _text(value) -> str:
    return value.strip() if isinstance(value, str) else ""


def normalize_item(item: dict) -> dict:
    # Old bills kept the line amount under "rupees".
    price = item["price"] if item.get("price") is not None else item.get("rupees", 0)
    bundle, feet = _num(item.get("bundle")), _num(item.get("feet"))
    return {
        "bundle": bundle,
        "name": _text(item.get("name")),
        "wire": _text(item.get("wire")),
        "feet": feet,
        "total_feet": _num(item.get("total_feet")) or bundle * feet,
        "price": _num(price),
    }


def _migrate_bill(b: dict) -> dict:
    b["items"] = [normalize_item(i) for i in b.get("items") or []]
    b["total"] = _num(b.get("total")) or sum(i["price"] for i in b["items"])
    return b


BILL_SPEC = EntitySpec(
    name="bills",
    key="bill-storage",
    field="bills",
    date_fields=("created_at", "date"),
    newest_first=True,
    sync_table="bills",
    migrate=_migrate_bill,
)


class BillService:
    def __init__(self, durable: DurableStore, *, ids: IdGenerator, sync=None):
        self.bills = EntityStore(durable, BILL_SPEC, ids=ids, sync=sync)

    def next_bill_number(self) -> str:
        issued = (b.get("bill_number") for b in self.bills.all())
        return f"No.{next_sequence('No.', issued):03d}"

    def add_bill(self, *, customer_name: str, date, items: list[dict], address: str = "", bill_number: Optional[str] = None) -> dict:
        customer_name = str(customer_name or "").strip()
        if not customer_name:
            raise ValueError("Customer name is required.")
        lines = [normalize_item(i) for i in items if _text(i.get("name")) or _num(i.get("price"))]
        if not lines:
            raise ValueError("A bill needs at least one item.")

        return self.bills.create(
            {
                "bill_number": (bill_number or "").strip() or self.next_bill_number(),
                "customer_name": customer_name,
                "address": (address or "").strip(),
                "date": date,
                "items": lines,
                "total": sum(i["price"] for i in lines),
            }
        )

    def update_bill(self, bill_id, changes: dict) -> Optional[dict]:
        changes = dict(changes)
        if "items" in changes:
            changes["items"] = [normalize_item(i) for i in changes["items"]]
            changes["total"] = sum(i["price"] for i in changes["items"])
        return self.bills.update(bill_id, changes)

    def delete_bill(self, bill_id) -> bool:
        return self.bills.delete(bill_id)

    def get_bill_by_id(self, bill_id) -> Optional[dict]:
        return self.bills.get_by_id(bill_id)

    def customer_totals(self) -> list[dict]:
        grouped: dict[str, dict] = defaultdict(lambda: {"bills": 0, "total_price": 0.0})
        for b in self.bills.all():
            g = grouped[b["customer_name"]]
            g["bills"] += 1
            g["total_price"] += _num(b.get("total"))
        return [{"customer_name": name, **g} for name, g in sorted(grouped.items())]
