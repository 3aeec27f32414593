from __future__ import annotations

import sqlite3
from dataclasses import dataclass
from pathlib import Path
from typing import Callable, Optional

import requests
import streamlit as st

from cable_erp.config import Settings, get_settings
from cable_erp.db import ensure_schema, get_conn
from cable_erp.services.auth import AuthService
from cable_erp.services.billing import BillService
from cable_erp.services.catalogs import CatalogService
from cable_erp.services.customers import CustomerService
from cable_erp.services.employees import EmployeeService
from cable_erp.services.expenses import ExpenseService
from cable_erp.services.khata import KhataService
from cable_erp.services.materials import (
    PVCMaterialService,
    ProcessedMaterialService,
    RawMaterialService,
    ScrapService,
)
from cable_erp.services.production import STOCK_SYNC_NAME, ProductionService
from cable_erp.services.relay import StockRelay
from cable_erp.services.stock import StockService
from cable_erp.services.stores import EntityStore, IdGenerator
from cable_erp.services.sync import SyncService
from cable_erp.storage import DurableStore


@dataclass
class AppContext:
    conn: sqlite3.Connection
    settings: Settings
    durable: DurableStore
    ids: IdGenerator
    sync: SyncService
    stock: StockService
    raw: RawMaterialService
    processed: ProcessedMaterialService
    pvc: PVCMaterialService
    scrap: ScrapService
    production: ProductionService
    relay: StockRelay
    customers: CustomerService
    expenses: ExpenseService
    employees: EmployeeService
    khata: KhataService
    bills: BillService
    catalogs: CatalogService
    auth: AuthService

    def stores(self) -> list[EntityStore]:
        return [
            self.stock.products,
            self.stock.sales,
            self.stock.categories,
            self.production.productions,
            self.production.sales,
            self.raw.materials,
            self.processed.materials,
            self.pvc.materials,
            self.scrap.scraps,
            self.customers.customers,
            self.customers.purchases,
            self.expenses.expenses,
            self.expenses.categories,
            self.employees.employees,
            self.khata.entries,
            self.bills.bills,
            *self.catalogs.stores,
        ]

    def reload(self) -> None:
        for store in self.stores():
            store.reload()
        self.production.reload_stock()
        self.processed.reload_stock()
        self.raw.reload_lookups()

    def persistence_warnings(self) -> list[str]:
        errors = [s.last_error for s in self.stores() if s.last_error]
        for service in (self.production, self.processed, self.raw):
            if service.last_error:
                errors.append(service.last_error)
        return errors


def build_context(
    conn: sqlite3.Connection,
    settings: Settings,
    *,
    session: Optional[requests.Session] = None,
    online_probe: Optional[Callable[[], bool]] = None,
    ids: Optional[IdGenerator] = None,
) -> AppContext:
    ensure_schema(conn)
    durable = DurableStore(conn)
    ids = ids or IdGenerator()
    sync = SyncService(durable, settings, session=session, online_probe=online_probe)

    raw = RawMaterialService(durable, ids=ids, sync=sync)
    processed = ProcessedMaterialService(durable, raw, ids=ids, sync=sync)
    production = ProductionService(durable, ids=ids, sync=sync, processed=processed)
    relay = StockRelay(production)

    ctx = AppContext(
        conn=conn,
        settings=settings,
        durable=durable,
        ids=ids,
        sync=sync,
        stock=StockService(durable, ids=ids, sync=sync),
        raw=raw,
        processed=processed,
        pvc=PVCMaterialService(durable, ids=ids, sync=sync),
        scrap=ScrapService(durable, ids=ids, sync=sync),
        production=production,
        relay=relay,
        customers=CustomerService(durable, relay, ids=ids, sync=sync),
        expenses=ExpenseService(durable, ids=ids, sync=sync),
        employees=EmployeeService(durable, ids=ids, sync=sync),
        khata=KhataService(durable, ids=ids, sync=sync),
        bills=BillService(durable, ids=ids, sync=sync),
        catalogs=CatalogService(durable, ids=ids, sync=sync),
        auth=AuthService(conn),
    )

    for store in ctx.stores():
        sync.register_store(store)
    sync.register(STOCK_SYNC_NAME, "product_stock", production.stock_records)
    return ctx


@st.cache_resource
def get_context(db_path: Path) -> AppContext:
    return build_context(get_conn(db_path), get_settings())
