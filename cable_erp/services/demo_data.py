from __future__ import annotations

import logging
import random
from datetime import date, timedelta

from cable_erp.services.sync import STATUS_KEY

logger = logging.getLogger(__name__)

DEMO_SUPPLIERS = ["Lahore Metals", "Karachi Copper Co."]
DEMO_PVC = ["PVC Black", "PVC Red"]
DEMO_PRODUCTS = [
    ("Power Cable 3/29", "PWR-329", 850.0, 1100.0),
    ("Flexible Wire 7/36", "FLX-736", 420.0, 560.0),
    ("Coaxial RG6", "COX-RG6", 300.0, 410.0),
    ("Ethernet Cat6", "NET-CAT6", 650.0, 900.0),
]


def seed_reference_data(ctx) -> None:
    """
    Loads every store once so seeded collections (categories, expense
    categories, predefined customers) exist in durable storage.
    """
    ctx.reload()


def wipe_all(ctx) -> None:
    # Keep the sync status row; its counters are reset below.
    removed = ctx.durable.clear(keep=(STATUS_KEY,))
    ctx.sync.reset()
    ctx.reload()
    logger.info("Wiped %d stored collections", len(removed))


def load_demo_data(ctx, *, seed: int = 7) -> None:
    random.seed(seed)
    seed_reference_data(ctx)

    base_date = date.today() - timedelta(days=6)

    # Stock catalog and a few sales
    products = []
    for i, (name, sku, cost, price) in enumerate(DEMO_PRODUCTS):
        products.append(
            ctx.stock.add_product(
                name=name,
                sku=sku,
                cost_price=cost,
                selling_price=price,
                quantity=random.randint(20, 80),
                reorder_level=10 if i % 2 else 25,
                category_id=1 + i % 3,
            )
        )
    for p in products[:3]:
        ctx.stock.record_sale(
            product_id=p["id"],
            quantity=random.randint(1, 5),
            unit_price=p["selling_price"],
            discount=random.choice([0, 50, 100]),
            customer_name="Walk-in",
        )

    # Raw lots, then a processing run that draws from them FIFO
    for i in range(3):
        ctx.raw.add(
            material_type="Copper",
            supplier=DEMO_SUPPLIERS[i % 2],
            quantity=random.choice([250.0, 400.0, 500.0]),
            date=base_date + timedelta(days=i),
        )
    ctx.raw.add(material_type="Silver", supplier=DEMO_SUPPLIERS[0], quantity=120.0, date=base_date)

    run = ctx.processed.process(
        name="7/36",
        material_type="Copper",
        input_quantity=300.0,
        number_of_bundles=20,
        weight_per_bundle=14.5,
        date=base_date + timedelta(days=3),
        notes="Demo drawing run",
    )

    for name in DEMO_PVC:
        ctx.pvc.add(name=name, quantity=random.choice([50.0, 75.0]), date=base_date, supplier="Polymer House")
    ctx.scrap.add(material_type="Copper", amount=6.5, date=base_date + timedelta(days=3))

    # Finished goods, partly bought by a predefined customer
    production = ctx.production.add_production(
        product_name="Product 1",
        quantity=40,
        unit="bundles",
        date=base_date + timedelta(days=4),
        processed_material_id=run["id"],
        bundles_used=8,
    )
    ctx.production.add_production(product_name="Product 1", quantity=1500, unit="foot", date=base_date + timedelta(days=4))
    customer = ctx.customers.customers.all()[-1]
    ctx.customers.add_purchase(
        customer_id=customer["id"],
        product_name="Product 1",
        quantity_bundles=5,
        price=7500,
        date=base_date + timedelta(days=5),
        product_production_id=production["id"],
    )

    for title, amount, cat in [("Electricity bill", 18500, 1), ("Machine oil", 2400, 4), ("Registers", 650, 3)]:
        ctx.expenses.add_expense(title=title, amount=amount, category_id=cat, date=base_date + timedelta(days=random.randint(0, 6)))

    emp = ctx.employees.add_employee(name="Imran", total_salary=35000, salary_date=base_date)
    ctx.employees.add_daily_payout(emp["id"], amount=1500, date=base_date + timedelta(days=1))
    ctx.employees.add_daily_payout(emp["id"], amount=2000, date=base_date + timedelta(days=3))

    ctx.khata.add_entry(id_number="K-1", details="Opening balance", amount=50000, date=base_date, amount_color="green")
    ctx.khata.add_entry(id_number="K-2", details="Copper advance", amount=20000, date=base_date + timedelta(days=2), amount_color="red")

    ctx.bills.add_bill(
        customer_name=customer["name"],
        address=customer.get("address") or "",
        date=base_date + timedelta(days=5),
        items=[{"bundle": 5, "name": "Product 1", "wire": "7/36", "feet": 90, "price": 7500}],
    )

    ctx.catalogs.add_product(name="Product 1", product_number="P-001", product_tara="1.2")
    ctx.catalogs.add_pvc_material(name=DEMO_PVC[0])
    ctx.catalogs.add_processed_material(name="7/36", prior_raw_material="Copper")
    logger.info("Demo data loaded")
