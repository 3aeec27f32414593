from __future__ import annotations

from datetime import datetime
from decimal import Decimal

from cable_erp.config import Settings
from cable_erp.services.sync import SyncService, SyncState


def _add_product(ctx, sku="S-1"):
    return ctx.stock.add_product(name="Cable", sku=sku, cost_price=1, selling_price=2, quantity=3, reorder_level=1)


def test_nothing_pending_after_startup(ctx):
    assert sum(ctx.sync.pending.values()) == 0


def test_successful_sync_pushes_pending_and_clears_counters(ctx, session):
    _add_product(ctx)
    _add_product(ctx, sku="S-2")
    ctx.expenses.add_expense(title="Oil", amount=10, category_id=1, date=datetime(2024, 1, 1).date())
    assert ctx.sync.pending["products"] == 2

    result = ctx.sync.sync_to_cloud()

    assert result["success"] is True
    assert sorted(result["synced"]) == ["expenses", "products"]
    urls = [p["url"] for p in session.posts]
    assert "https://example.supabase.co/rest/v1/products" in urls
    post = next(p for p in session.posts if p["url"].endswith("/products"))
    assert post["params"] == {"on_conflict": "id"}
    assert post["headers"]["apikey"] == "test-key"
    assert post["timeout"] == 5.0
    assert len(post["json"]) == 2
    assert isinstance(post["json"][0]["created_at"], str)

    status = ctx.sync.get_sync_status()
    assert all(v == 0 for v in status["pending_changes"].values())
    assert status["state"] == SyncState.SYNCED.value
    assert isinstance(status["last_sync_time"], datetime)


def test_offline_sync_is_rejected_without_requests(ctx, session, probe):
    _add_product(ctx)
    probe.online = False

    result = ctx.sync.sync_to_cloud()

    assert result == {"success": False, "error": "No internet connection"}
    assert session.posts == []
    assert ctx.sync.pending["products"] == 1
    assert ctx.sync.get_sync_status()["is_online"] is False


def test_unconfigured_sync_reports_an_error(durable, tmp_path):
    settings = Settings(data_dir=tmp_path, db_path=tmp_path / "app.db")
    sync = SyncService(durable, settings, online_probe=lambda: True)

    result = sync.sync_to_cloud()

    assert result["success"] is False
    assert "not configured" in result["error"]


def test_failed_push_keeps_counters(ctx, session):
    _add_product(ctx)
    session.fail_on.add("products")

    result = ctx.sync.sync_to_cloud()

    assert result["success"] is False
    assert ctx.sync.pending["products"] == 1
    assert ctx.sync.state is SyncState.FAILED
    assert ctx.sync.last_sync_time is None


def test_second_sync_while_running_is_rejected(ctx, session):
    _add_product(ctx)
    nested = []
    session.on_post = lambda url: nested.append(ctx.sync.sync_to_cloud())

    result = ctx.sync.sync_to_cloud()

    assert result["success"] is True
    assert nested == [{"success": False, "error": "Sync already in progress"}]


def test_status_survives_restart(ctx, settings, probe):
    _add_product(ctx)
    reopened = SyncService(ctx.durable, settings, online_probe=probe)
    assert reopened.pending["products"] == 1


def test_empty_collections_are_skipped(ctx, session):
    product = _add_product(ctx)
    ctx.stock.delete_product(product["id"])

    result = ctx.sync.sync_to_cloud()

    assert result["success"] is True
    assert session.posts == []


def test_pull_reads_every_registered_table(ctx, session):
    result = ctx.sync.pull_from_cloud()

    assert result["success"] is True
    assert set(result["data"]) == set(ctx.sync.tables)
    assert session.gets[0]["params"]["select"] == "*"


def test_check_connection(ctx):
    assert ctx.sync.check_connection() is True


def test_unserialisable_source_fails_without_raising(ctx, session):
    ctx.sync.register("ledger", "ledger", lambda: [{"id": 1, "amount": Decimal("2.50")}])
    ctx.sync.mark_pending("ledger")

    result = ctx.sync.sync_to_cloud()

    assert result["success"] is False
    assert "Decimal" in result["error"]
    assert ctx.sync.state is SyncState.FAILED
    assert ctx.sync.get_sync_status()["is_syncing"] is False
    assert ctx.sync.pending["ledger"] == 1
    assert ctx.sync.sync_to_cloud()["error"] != "Sync already in progress"
