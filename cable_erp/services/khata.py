from __future__ import annotations

from typing import Optional

from cable_erp.services import queries
from cable_erp.services.stores import EntitySpec, EntityStore, IdGenerator
from cable_erp.storage import DurableStore

AMOUNT_COLORS = ("red", "green")

KHATA_SPEC = EntitySpec(
    name="custom_khata",
    key="custom-khata-storage",
    date_fields=("created_at", "date"),
    sync_table="custom_khata",
)


class KhataService:
    """Running-account entries. Stored in entry order, read back in ledger order."""

    def __init__(self, durable: DurableStore, *, ids: IdGenerator, sync=None):
        self.entries = EntityStore(durable, KHATA_SPEC, ids=ids, sync=sync)

    def add_entry(self, *, id_number: str, details: str, amount: float, date, amount_color: str = "green") -> dict:
        if not str(id_number or "").strip():
            raise ValueError("ID number is required.")
        try:
            amount = float(amount)
        except (TypeError, ValueError):
            raise ValueError("Amount must be a number.")
        if amount <= 0:
            raise ValueError("Amount must be greater than 0.")
        if amount_color not in AMOUNT_COLORS:
            raise ValueError("Amount color must be red or green.")

        return self.entries.create(
            {
                "id_number": str(id_number).strip(),
                "details": (details or "").strip(),
                "amount": amount,
                "amount_color": amount_color,
                "date": date,
            }
        )

    def update_entry(self, entry_id, changes: dict) -> Optional[dict]:
        return self.entries.update(entry_id, changes)

    def delete_entry(self, entry_id) -> bool:
        return self.entries.delete(entry_id)

    def ledger(self) -> list[dict]:
        return queries.ledger_order(self.entries.all())

    def totals_by_color(self) -> dict:
        totals = {c: 0.0 for c in AMOUNT_COLORS}
        totals.update(queries.totals_by(self.entries.all(), "amount_color"))
        return totals
