from __future__ import annotations

from datetime import date

import pytest

D = date(2024, 2, 1)


def test_production_adds_stock_by_unit_and_batch_ids(ctx):
    first = ctx.production.add_production(product_name="Product 3", quantity=100, unit="foot", date=D)
    second = ctx.production.add_production(product_name="Product 3", quantity=2, unit="bundles", date=D)

    assert first["batch_id"] == "PRD-20240201-001"
    assert second["batch_id"] == "PRD-20240201-002"
    assert ctx.production.get_stock_by_name("Product 3") == {"foot": 100.0, "bundles": 2.0}


def test_new_names_are_registered(ctx):
    ctx.production.add_production(product_name="Armoured 4mm", quantity=1, unit="bundles", date=D)
    assert "Armoured 4mm" in ctx.production.product_names


def test_unit_sale_checks_stock_for_its_unit(ctx):
    prod = ctx.production.add_production(product_name="Product 3", quantity=100, unit="foot", date=D)

    with pytest.raises(ValueError, match="Insufficient stock"):
        ctx.production.add_sale(product_id=prod["id"], quantity=150, unit="foot", unit_price=2)
    with pytest.raises(ValueError, match="Insufficient stock"):
        ctx.production.add_sale(product_id=prod["id"], quantity=1, unit="bundles", unit_price=2)

    sale = ctx.production.add_sale(product_id=prod["id"], quantity=40, unit="foot", unit_price=2, discount=10)
    assert sale["final_amount"] == 70
    assert ctx.production.get_stock_by_name("Product 3")["foot"] == 60

    ctx.production.update_sale(sale["id"], {"quantity": 50})
    assert ctx.production.get_stock_by_name("Product 3")["foot"] == 50
    assert ctx.production.get_sale_by_id(sale["id"])["final_amount"] == 90

    ctx.production.delete_sale(sale["id"])
    assert ctx.production.get_stock_by_name("Product 3")["foot"] == 100


def test_update_and_delete_production(ctx):
    prod = ctx.production.add_production(product_name="Product 3", quantity=10, unit="bundles", date=D)

    ctx.production.update_production(prod["id"], {"quantity": 4})
    assert ctx.production.get_stock_by_name("Product 3")["bundles"] == 4

    ctx.production.delete_production(prod["id"])
    assert ctx.production.get_stock_by_name("Product 3")["bundles"] == 0


def test_processed_material_is_consumed_and_released(ctx):
    ctx.raw.add(material_type="Copper", supplier="S", quantity=200, date=D)
    run = ctx.processed.process(
        name="7/36", material_type="Copper", input_quantity=100,
        number_of_bundles=10, weight_per_bundle=9, date=D,
    )

    prod = ctx.production.add_production(
        product_name="Product 1", quantity=5, unit="bundles", date=D,
        processed_material_id=run["id"], bundles_used=2,
    )
    assert ctx.processed.get_by_id(run["id"])["used_quantity"] == 18
    assert ctx.processed.get_stock_by_name("7/36") == 72

    ctx.production.delete_production(prod["id"])
    assert ctx.processed.get_by_id(run["id"])["used_quantity"] == 0
    assert ctx.processed.get_stock_by_name("7/36") == 90


def test_invalid_unit(ctx):
    with pytest.raises(ValueError):
        ctx.production.add_production(product_name="Product 1", quantity=1, unit="metres", date=D)


def test_sale_edits_keep_price_and_discount_non_negative(ctx):
    prod = ctx.production.add_production(product_name="Product 3", quantity=100, unit="foot", date=D)
    sale = ctx.production.add_sale(product_id=prod["id"], quantity=10, unit="foot", unit_price=5, discount=10)

    with pytest.raises(ValueError, match="positive"):
        ctx.production.update_sale(sale["id"], {"discount": -50})
    with pytest.raises(ValueError, match="positive"):
        ctx.production.update_sale(sale["id"], {"unit_price": -1})
    assert ctx.production.get_sale_by_id(sale["id"])["final_amount"] == 40

    updated = ctx.production.update_sale(sale["id"], {"discount": 0})
    assert updated["final_amount"] == 50


def test_deleting_a_sale_restores_stock_after_its_production_is_gone(ctx):
    prod = ctx.production.add_production(product_name="Product 3", quantity=100, unit="foot", date=D)
    ctx.production.add_production(product_name="Product 3", quantity=50, unit="foot", date=D)
    sale = ctx.production.add_sale(product_id=prod["id"], quantity=30, unit="foot", unit_price=1)
    ctx.production.delete_production(prod["id"])
    assert ctx.production.get_stock_by_name("Product 3")["foot"] == 20

    ctx.production.delete_sale(sale["id"])

    assert ctx.production.get_stock_by_name("Product 3")["foot"] == 50
