from __future__ import annotations

from typing import Optional

from cable_erp.services import queries
from cable_erp.services.stores import EntitySpec, EntityStore, IdGenerator
from cable_erp.storage import DurableStore

DEFAULT_EXPENSE_CATEGORIES = [
    {"id": 1, "name": "Bills", "description": "Utility bills and payments", "color": "#EF4444"},
    {"id": 2, "name": "Factory Expenses", "description": "Factory operational expenses", "color": "#3B82F6"},
    {"id": 3, "name": "Stationary", "description": "Stationery and office supplies", "color": "#8B5CF6"},
    {"id": 4, "name": "Maintenance", "description": "Equipment and facility maintenance", "color": "#EC4899"},
    {"id": 5, "name": "Office Expenses", "description": "Office operational expenses", "color": "#10B981"},
]

EXPENSE_SPEC = EntitySpec(
    name="expenses",
    key="expense-storage",
    date_fields=("created_at", "date"),
    sync_table="expenses",
)
EXPENSE_CATEGORY_SPEC = EntitySpec(
    name="expense_categories",
    key="expense-categories",
    seed=lambda: [dict(c) for c in DEFAULT_EXPENSE_CATEGORIES],
)


class ExpenseService:
    def __init__(self, durable: DurableStore, *, ids: IdGenerator, sync=None):
        self.expenses = EntityStore(durable, EXPENSE_SPEC, ids=ids, sync=sync)
        self.categories = EntityStore(durable, EXPENSE_CATEGORY_SPEC, ids=ids)

    def add_expense(self, *, title: str, amount: float, category_id: int, date, description: Optional[str] = None) -> dict:
        title = str(title or "").strip()
        if not title:
            raise ValueError("Title is required.")
        try:
            amount = float(amount)
        except (TypeError, ValueError):
            raise ValueError("Amount must be a number.")
        if amount < 0.01:
            raise ValueError("Amount must be greater than 0.")
        if self.categories.get_by_id(category_id) is None:
            raise ValueError("Expense category not found.")

        return self.expenses.create(
            {
                "title": title,
                "description": (description or "").strip() or None,
                "amount": amount,
                "category_id": category_id,
                "date": date,
            }
        )

    def update_expense(self, expense_id, changes: dict) -> Optional[dict]:
        return self.expenses.update(expense_id, changes)

    def delete_expense(self, expense_id) -> bool:
        return self.expenses.delete(expense_id)

    def get_expenses_by_date_range(self, start, end) -> list[dict]:
        return queries.in_date_range(self.expenses.all(), start, end)

    def get_total_by_category(self, category_id) -> float:
        return queries.total_for(self.expenses.all(), "category_id", category_id)

    def get_total_by_period(self, start, end) -> float:
        return queries.total_in_period(self.expenses.all(), start, end)
