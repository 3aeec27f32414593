from __future__ import annotations

from datetime import date

import pytest

from cable_erp.services.production import ProductionService


@pytest.fixture
def stocked(ctx):
    ctx.production.add_production(product_name="Product 1", quantity=10, unit="bundles", date=date(2024, 1, 1))
    customer = ctx.customers.add_customer(name="Ali")
    return ctx, customer


def _bundles(ctx, name="Product 1"):
    return ctx.production.get_stock_by_name(name)["bundles"]


def test_purchase_deducts_and_delete_restores(stocked):
    ctx, customer = stocked

    purchase = ctx.customers.add_purchase(customer_id=customer["id"], product_name="Product 1", quantity_bundles=3)
    assert _bundles(ctx) == 7

    assert ctx.customers.delete_purchase(purchase["id"]) is True
    assert _bundles(ctx) == 10


def test_purchase_edit_applies_the_difference(stocked):
    ctx, customer = stocked
    purchase = ctx.customers.add_purchase(customer_id=customer["id"], product_name="Product 1", quantity_bundles=3)

    ctx.customers.update_purchase(purchase["id"], {"quantity_bundles": 5})
    assert _bundles(ctx) == 5

    ctx.customers.update_purchase(purchase["id"], {"quantity_bundles": 1})
    assert _bundles(ctx) == 9


def test_renaming_the_product_moves_stock(stocked):
    ctx, customer = stocked
    ctx.production.add_production(product_name="Product 2", quantity=4, unit="bundles", date=date(2024, 1, 1))
    purchase = ctx.customers.add_purchase(customer_id=customer["id"], product_name="Product 1", quantity_bundles=2)

    ctx.customers.update_purchase(purchase["id"], {"product_name": "Product 2"})

    assert _bundles(ctx, "Product 1") == 10
    assert _bundles(ctx, "Product 2") == 2


def test_stock_is_clamped_at_zero(stocked):
    ctx, customer = stocked
    ctx.customers.add_purchase(customer_id=customer["id"], product_name="Product 1", quantity_bundles=15)
    assert _bundles(ctx) == 0


def test_unknown_customer_changes_nothing(stocked):
    ctx, _ = stocked
    with pytest.raises(ValueError, match="Customer not found"):
        ctx.customers.add_purchase(customer_id=1234, product_name="Product 1", quantity_bundles=1)
    assert _bundles(ctx) == 10
    assert ctx.customers.purchases.all() == []


def test_purchase_needs_a_quantity(stocked):
    ctx, customer = stocked
    with pytest.raises(ValueError):
        ctx.customers.add_purchase(customer_id=customer["id"], product_name="Product 1")


def test_other_readers_see_relay_writes(stocked):
    ctx, customer = stocked
    other = ProductionService(ctx.durable, ids=ctx.ids)
    assert other.get_stock_by_name("Product 1")["bundles"] == 10

    ctx.customers.add_purchase(customer_id=customer["id"], product_name="Product 1", quantity_bundles=4)

    assert other.get_stock_by_name("Product 1")["bundles"] == 6


def test_relay_writes_are_pending_for_sync(stocked):
    ctx, customer = stocked
    before = ctx.sync.pending.get("product_stock", 0)
    ctx.customers.add_purchase(customer_id=customer["id"], product_name="Product 1", quantity_foot=100)
    assert ctx.sync.pending["product_stock"] == before + 1
    assert ctx.sync.pending["purchases"] >= 1
