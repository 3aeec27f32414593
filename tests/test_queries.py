from __future__ import annotations

from datetime import date, datetime

from cable_erp.services import queries


def test_date_range_is_inclusive_by_day():
    records = [
        {"id": 1, "date": date(2024, 1, 1)},
        {"id": 2, "date": datetime(2024, 1, 31, 23, 59)},
        {"id": 3, "date": date(2024, 2, 1)},
        {"id": 4, "date": None},
    ]
    hits = queries.in_date_range(records, date(2024, 1, 1), date(2024, 1, 31))
    assert [r["id"] for r in hits] == [1, 2]


def test_totals():
    records = [
        {"category_id": 1, "amount": 10, "date": date(2024, 1, 2)},
        {"category_id": 2, "amount": 5.5, "date": date(2024, 1, 3)},
        {"category_id": 1, "amount": "bad", "date": date(2024, 3, 1)},
    ]
    assert queries.totals_by(records, "category_id") == {1: 10.0, 2: 5.5}
    assert queries.total_in_period(records, date(2024, 1, 1), date(2024, 1, 31)) == 15.5
    assert queries.total_for(records, "category_id", 1) == 10


def test_total_for_casefold():
    records = [{"material_type": "Copper", "quantity": 3}, {"material_type": "copper", "quantity": 2}]
    assert queries.total_for(records, "material_type", "COPPER", amount_field="quantity", casefold=True) == 5


def test_recent_does_not_reorder_input():
    records = [{"id": i, "date": date(2024, 1, i)} for i in (2, 5, 1)]
    top = queries.recent(records, 2)
    assert [r["id"] for r in top] == [5, 2]
    assert [r["id"] for r in records] == [2, 5, 1]


def test_ledger_order_breaks_ties_by_creation():
    entries = [
        {"id": 30, "date": date(2024, 1, 2)},
        {"id": 10, "date": date(2024, 1, 3)},
        {"id": 20, "date": date(2024, 1, 2)},
    ]
    assert [e["id"] for e in queries.ledger_order(entries)] == [20, 30, 10]


def test_dashboard_summary():
    products = [
        {"quantity": 2, "reorder_level": 5, "cost_price": 10},
        {"quantity": 10, "reorder_level": 5, "cost_price": 1},
    ]
    sales = [{"final_amount": 100, "sale_date": datetime(2024, 1, 5, 12)}]
    expenses = [{"amount": 30, "date": date(2024, 1, 6)}]

    summary = queries.dashboard_summary(
        products=products, sales=sales, expenses=expenses, start=date(2024, 1, 1), end=date(2024, 1, 31)
    )
    assert summary["low_stock_count"] == 1
    assert summary["stock_value"] == 30
    assert summary["revenue"] == 100
    assert summary["net"] == 70
