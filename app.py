from __future__ import annotations

import logging

import streamlit as st

from cable_erp.config import get_settings
from cable_erp.context import get_context

st.set_page_config(page_title="Cable ERP", page_icon="🔌", layout="wide")

logging.basicConfig(level=logging.INFO, format="%(asctime)s %(levelname)s %(name)s: %(message)s")

settings = get_settings()
ctx = get_context(settings.db_path)


def _login_gate() -> bool:
    if st.session_state.get("user_id") and ctx.auth.get_current_user(st.session_state["user_id"]):
        return True

    st.title("🔌 Cable ERP")
    if not ctx.auth.has_users():
        st.subheader("Create the first administrator")
        with st.form("first_admin"):
            username = st.text_input("Username")
            full_name = st.text_input("Full name (optional)")
            password = st.text_input("Password", type="password")
            if st.form_submit_button("Create account", type="primary"):
                try:
                    user = ctx.auth.create_user(username=username, password=password, full_name=full_name, role="admin")
                    st.session_state["user_id"] = user["id"]
                    st.rerun()
                except ValueError as e:
                    st.error(str(e))
        return False

    with st.form("login"):
        username = st.text_input("Username")
        password = st.text_input("Password", type="password")
        if st.form_submit_button("Sign in", type="primary"):
            user = ctx.auth.login(username, password)
            if user is None:
                st.error("Invalid username or password.")
            else:
                st.session_state["user_id"] = user["id"]
                st.rerun()
    return False


if _login_gate():
    pages = [
        st.Page("home.py", title="Dashboard", icon="🏠"),
        st.Page("pages/1_📦_Stock_&_Sales.py", title="Stock & Sales", icon="📦"),
        st.Page("pages/2_🏭_Production.py", title="Production", icon="🏭"),
        st.Page("pages/3_🧱_Materials.py", title="Materials", icon="🧱"),
        st.Page("pages/4_👥_Customers.py", title="Customers", icon="👥"),
        st.Page("pages/5_💸_Expenses.py", title="Expenses", icon="💸"),
        st.Page("pages/6_👷_Employees.py", title="Employees", icon="👷"),
        st.Page("pages/7_📒_Khata.py", title="Khata", icon="📒"),
        st.Page("pages/8_🧾_Billing.py", title="Billing", icon="🧾"),
        st.Page("pages/9_☁️_Sync_&_Data.py", title="Sync & Data", icon="☁️"),
        st.Page("pages/10_📊_Reports.py", title="Reports", icon="📊"),
    ]
    st.navigation(pages).run()
