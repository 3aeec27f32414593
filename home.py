from __future__ import annotations

from datetime import date

import pandas as pd
import streamlit as st

from cable_erp.config import get_settings
from cable_erp.context import get_context
from cable_erp.services import queries

st.title("🔌 Cable ERP")
st.caption("Stock, production, materials, customer ledgers, payroll and expenses for a cable workshop.")

settings = get_settings()
ctx = get_context(settings.db_path)

for warning in ctx.persistence_warnings():
    st.warning(warning, icon="⚠️")

with st.sidebar:
    st.subheader("Environment")
    st.write(f"**Data directory:** `{settings.data_dir}`")
    st.write(f"**Database:** `{settings.db_path.name}`")
    status = ctx.sync.get_sync_status()
    pending = sum(status["pending_changes"].values())
    st.write(f"**Sync:** {status['state']} • {pending} pending • {'online' if status['is_online'] else 'offline'}")

today = date.today()
start, end = today.replace(day=1), today

summary = queries.dashboard_summary(
    products=ctx.stock.products.all(),
    sales=ctx.stock.sales.all(),
    expenses=ctx.expenses.expenses.all(),
    start=start,
    end=end,
)

c1, c2, c3, c4 = st.columns(4)
c1.metric("Products", summary["product_count"], f"{summary['low_stock_count']} low", delta_color="inverse")
c2.metric("Stock value", f"{settings.currency} {summary['stock_value']:,.0f}")
c3.metric("Revenue (month)", f"{settings.currency} {summary['revenue']:,.0f}", f"{summary['sales_count']} sales")
c4.metric("Net (month)", f"{settings.currency} {summary['net']:,.0f}", f"-{summary['expenses']:,.0f} expenses")

totals = ctx.production.get_total_stock()
c5, c6, c7 = st.columns(3)
c5.metric("Finished goods (bundles)", f"{totals['bundles']:,.0f}")
c6.metric("Finished goods (foot)", f"{totals['foot']:,.0f}")
c7.metric("Processed wire (kg)", f"{ctx.processed.get_total_stock():,.1f}")

left, right = st.columns(2)
with left:
    st.subheader("Low stock")
    low = ctx.stock.get_low_stock_products()
    if low:
        st.dataframe(
            pd.DataFrame(low)[["name", "sku", "quantity", "reorder_level"]],
            use_container_width=True,
            hide_index=True,
        )
    else:
        st.caption("Nothing at or below its reorder level.")

with right:
    st.subheader("Recent sales")
    sales = queries.recent(ctx.stock.sales.all(), 8, date_field="sale_date")
    if sales:
        st.dataframe(
            pd.DataFrame(sales)[["sale_no", "product_id", "quantity", "final_amount", "sale_date"]],
            use_container_width=True,
            hide_index=True,
        )
    else:
        st.info("No sales yet. Load demo data from **Sync & Data** to explore.", icon="ℹ️")
