from __future__ import annotations

import re

import pytest


def _product(ctx, **overrides):
    data = dict(name="Power Cable", sku="PWR-1", cost_price=100, selling_price=150, quantity=50, reorder_level=5)
    data.update(overrides)
    return ctx.stock.add_product(**data)


def test_sale_rejected_when_stock_is_short(ctx):
    product = _product(ctx)

    with pytest.raises(ValueError, match="Insufficient stock"):
        ctx.stock.record_sale(product_id=product["id"], quantity=60, unit_price=150)

    assert ctx.stock.get_product_by_id(product["id"])["quantity"] == 50
    assert ctx.stock.get_sales_history() == []


def test_sale_updates_quantity_and_totals(ctx):
    product = _product(ctx)

    sale = ctx.stock.record_sale(product_id=product["id"], quantity=5, unit_price=150, customer_name=" Ali ")

    assert sale["total_amount"] == 750
    assert sale["final_amount"] == 750
    assert sale["customer_name"] == "Ali"
    assert re.fullmatch(r"SALE-\d{8}-[A-Z0-9]{5}", sale["sale_no"])
    assert ctx.stock.get_product_by_id(product["id"])["quantity"] == 45
    assert ctx.stock.get_sales_history()[0]["id"] == sale["id"]


def test_discount_larger_than_gross_is_not_clamped(ctx):
    product = _product(ctx)
    sale = ctx.stock.record_sale(product_id=product["id"], quantity=1, unit_price=100, discount=150)
    assert sale["final_amount"] == -50


def test_unknown_product(ctx):
    with pytest.raises(ValueError, match="Product not found"):
        ctx.stock.record_sale(product_id=42, quantity=1, unit_price=1)


def test_low_stock_uses_reorder_level_and_active_flag(ctx):
    low = _product(ctx, sku="A", quantity=5, reorder_level=5)
    _product(ctx, sku="B", quantity=6, reorder_level=5)
    inactive = _product(ctx, sku="C", quantity=0, reorder_level=5, is_active=False)

    assert [p["id"] for p in ctx.stock.get_low_stock_products()] == [low["id"]]
    assert inactive["id"] not in [p["id"] for p in ctx.stock.get_low_stock_products()]


def test_product_validation(ctx):
    with pytest.raises(ValueError):
        _product(ctx, name=" ")
    with pytest.raises(ValueError):
        _product(ctx, quantity=-1)
    with pytest.raises(ValueError):
        _product(ctx, quantity=2.5)


def test_categories_are_seeded(ctx):
    assert len(ctx.stock.categories) == 5
