from __future__ import annotations

import logging
from typing import Optional

from cable_erp.services.stores import EntitySpec, EntityStore, IdGenerator
from cable_erp.storage import DurableStore
from cable_erp.utils import now

logger = logging.getLogger(__name__)

EMPLOYEE_SPEC = EntitySpec(
    name="employees",
    key="employee-storage",
    date_fields=("created_at", "salary_date", "daily_payouts.date", "daily_payouts.created_at"),
    sync_table="employees",
    migrate=lambda e: {**e, "daily_payouts": e.get("daily_payouts") or []},
)


def _amount(value, label: str = "Amount") -> float:
    try:
        v = float(value)
    except (TypeError, ValueError):
        raise ValueError(f"{label} must be a number.")
    if v < 0:
        raise ValueError(f"{label} cannot be negative.")
    return v


def _paid(employee: dict, *, excluding=None) -> float:
    return sum(
        float(p.get("amount") or 0) for p in employee.get("daily_payouts") or [] if p.get("id") != excluding
    )


class EmployeeService:
    """
    Employees with a monthly salary and the daily payouts drawn against it.
    Payouts live inside the employee record, so every payout change rewrites
    the employee.
    """

    def __init__(self, durable: DurableStore, *, ids: IdGenerator, sync=None):
        self.ids = ids
        self.employees = EntityStore(durable, EMPLOYEE_SPEC, ids=ids, sync=sync)

    def add_employee(self, *, name: str, total_salary: float, salary_date) -> dict:
        name = str(name or "").strip()
        if not name:
            raise ValueError("Employee name is required.")
        return self.employees.create(
            {
                "name": name,
                "total_salary": _amount(total_salary, "Total salary"),
                "salary_date": salary_date,
                "daily_payouts": [],
            }
        )

    def update_employee(self, employee_id, changes: dict) -> Optional[dict]:
        changes = {k: v for k, v in dict(changes).items() if k != "daily_payouts"}
        if "total_salary" in changes:
            changes["total_salary"] = _amount(changes["total_salary"], "Total salary")
        return self.employees.update(employee_id, changes)

    def delete_employee(self, employee_id) -> bool:
        return self.employees.delete(employee_id)

    def get_employee_by_id(self, employee_id) -> Optional[dict]:
        return self.employees.get_by_id(employee_id)

    def get_remaining_salary(self, employee_id) -> float:
        employee = self.employees.get_by_id(employee_id)
        if employee is None:
            return 0.0
        return max(0.0, float(employee.get("total_salary") or 0) - _paid(employee))

    # -------------------------
    # Daily payouts
    # -------------------------

    def _require(self, employee_id) -> dict:
        employee = self.employees.get_by_id(employee_id)
        if employee is None:
            raise ValueError("Employee not found")
        return employee

    @staticmethod
    def _check_limit(employee: dict, amount: float, *, excluding=None) -> None:
        remaining = float(employee.get("total_salary") or 0) - _paid(employee, excluding=excluding)
        if amount > remaining + 1e-9:
            raise ValueError(f"Payout exceeds remaining salary. Remaining: {max(0.0, remaining):g}")

    def add_daily_payout(self, employee_id, *, amount: float, date, notes: Optional[str] = None) -> dict:
        employee = self._require(employee_id)
        amount = _amount(amount)
        if amount <= 0:
            raise ValueError("Amount must be greater than 0.")
        self._check_limit(employee, amount)

        payout = {
            "id": self.ids.next_id(),
            "employee_id": employee_id,
            "amount": amount,
            "date": date,
            "notes": (notes or "").strip() or None,
            "created_at": now(),
        }
        self.employees.update(employee_id, {"daily_payouts": employee["daily_payouts"] + [payout]})
        logger.info("Payout of %s recorded for employee %s", amount, employee_id)
        return payout

    def update_daily_payout(self, employee_id, payout_id, changes: dict) -> Optional[dict]:
        employee = self.employees.get_by_id(employee_id)
        if employee is None:
            return None
        payouts = employee["daily_payouts"]
        target = next((p for p in payouts if p.get("id") == payout_id), None)
        if target is None:
            return None

        changes = {k: v for k, v in dict(changes).items() if k not in ("id", "employee_id", "created_at")}
        if "amount" in changes:
            changes["amount"] = _amount(changes["amount"])
            self._check_limit(employee, changes["amount"], excluding=payout_id)
        target.update(changes)
        self.employees.update(employee_id, {"daily_payouts": payouts})
        return target

    def delete_daily_payout(self, employee_id, payout_id) -> bool:
        employee = self.employees.get_by_id(employee_id)
        if employee is None:
            return False
        remaining = [p for p in employee["daily_payouts"] if p.get("id") != payout_id]
        if len(remaining) == len(employee["daily_payouts"]):
            return False
        self.employees.update(employee_id, {"daily_payouts": remaining})
        return True
