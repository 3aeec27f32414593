from __future__ import annotations

from cable_erp.services.demo_data import load_demo_data, wipe_all


def test_demo_data_then_wipe(ctx):
    load_demo_data(ctx)

    assert len(ctx.stock.products) == 4
    assert ctx.production.get_stock_by_name("Product 1")["bundles"] == 35
    assert ctx.khata.ledger()[0]["id_number"] == "K-1"
    assert sum(ctx.sync.pending.values()) > 0

    wipe_all(ctx)

    assert len(ctx.stock.products) == 0
    assert len(ctx.raw.materials) == 0
    assert ctx.production.get_total_stock() == {"foot": 0, "bundles": 0}
    assert len(ctx.customers.customers) == 5
    assert len(ctx.expenses.categories) == 5
    assert sum(ctx.sync.pending.values()) == 0
    assert ctx.persistence_warnings() == []
