"""
Read-only aggregates over entity records.

Nothing here mutates its input: sorting works on copies and every function
returns new containers. Date ranges are inclusive and compared by calendar
day, so a ``datetime`` stamped late on the end date still counts.
"""
from __future__ import annotations

from collections import defaultdict
from datetime import date, datetime
from typing import Any, Iterable, Optional

from cable_erp.utils import as_day


def _amount(record: dict, field: str) -> float:
    try:
        return float(record.get(field) or 0)
    except (TypeError, ValueError):
        return 0.0


def in_date_range(records: Iterable[dict], start, end, *, date_field: str = "date") -> list[dict]:
    start_day, end_day = as_day(start), as_day(end)
    out = []
    for r in records:
        day = as_day(r.get(date_field))
        if day is None:
            continue
        if start_day is not None and day < start_day:
            continue
        if end_day is not None and day > end_day:
            continue
        out.append(r)
    return out


def total_in_period(records: Iterable[dict], start, end, *, date_field: str = "date", amount_field: str = "amount") -> float:
    return sum(_amount(r, amount_field) for r in in_date_range(records, start, end, date_field=date_field))


def totals_by(records: Iterable[dict], key_field: str, *, amount_field: str = "amount") -> dict[Any, float]:
    totals: dict[Any, float] = defaultdict(float)
    for r in records:
        totals[r.get(key_field)] += _amount(r, amount_field)
    return dict(totals)


def total_for(records: Iterable[dict], key_field: str, value, *, amount_field: str = "amount", casefold: bool = False) -> float:
    if casefold and isinstance(value, str):
        wanted = value.casefold()
        return sum(
            _amount(r, amount_field) for r in records if str(r.get(key_field) or "").casefold() == wanted
        )
    return sum(_amount(r, amount_field) for r in records if r.get(key_field) == value)


def low_stock(products: Iterable[dict]) -> list[dict]:
    return [
        p for p in products
        if p.get("is_active", True) and _amount(p, "quantity") <= _amount(p, "reorder_level")
    ]


def _sort_key(value) -> tuple:
    # Dates and datetimes compare by day first so mixed collections still sort.
    if isinstance(value, datetime):
        return (value.date(), value.timestamp())
    if isinstance(value, date):
        return (value, 0.0)
    return (date.min, 0.0)


def recent(records: Iterable[dict], limit: Optional[int] = 10, *, date_field: str = "date") -> list[dict]:
    ordered = sorted(list(records), key=lambda r: _sort_key(r.get(date_field)), reverse=True)
    return ordered if limit is None else ordered[: max(0, int(limit))]


def ledger_order(entries: Iterable[dict], *, date_field: str = "date") -> list[dict]:
    """Ascending by date; entries on the same day keep their creation order."""
    return sorted(list(entries), key=lambda r: (_sort_key(r.get(date_field)), r.get("id") or 0))


def dashboard_summary(*, products: list[dict], sales: list[dict], expenses: list[dict], start, end) -> dict:
    period_sales = in_date_range(sales, start, end, date_field="sale_date")
    revenue = sum(_amount(s, "final_amount") for s in period_sales)
    spent = total_in_period(expenses, start, end)
    return {
        "product_count": len(products),
        "low_stock_count": len(low_stock(products)),
        "stock_value": sum(_amount(p, "quantity") * _amount(p, "cost_price") for p in products),
        "sales_count": len(period_sales),
        "revenue": revenue,
        "expenses": spent,
        "net": revenue - spent,
    }
