from __future__ import annotations

import random
from datetime import date, timedelta

from fishledger.db import x
from fishledger.models import SaleInput, SaleItemInput
from fishledger.services.customers import create_customer
from fishledger.services.expenses import add_expense
from fishledger.services.inventory import add_stock_supply, create_item
from fishledger.services.payments import record_payment
from fishledger.services.sales import create_sale, refresh_sales
from fishledger.store import Store

# (name, size label, cost/kg, selling/kg, min stock kg, avg kg per piece)
DEFAULT_PRODUCTS = [
    ("Catfish", "500g", 1800.0, 2300.0, 10.0, 0.5),
    ("Catfish", "1kg", 1700.0, 2200.0, 15.0, 1.0),
    ("Catfish", "1.5kg", 1650.0, 2150.0, 15.0, 1.5),
    ("Tilapia", "400g", 1500.0, 1950.0, 8.0, 0.4),
]

DEFAULT_CUSTOMERS = [
    ("Mama Nkechi Foods", "08030000001", 150000.0),
    ("Lakeside Restaurant", "08030000002", 300000.0),
    ("Bola Smokehouse", "08030000003", 0.0),
]

DEFAULT_EXPENSES = [
    ("Ice blocks", "supplies", 6000.0),
    ("Van fuel", "transport", 15000.0),
]

TABLES = ["expenses", "payments", "sale_items", "sales", "stock_updates", "customers", "inventory"]


def wipe_all(store: Store) -> None:
    # Keep schema, delete data (order matters for FKs).
    for t in TABLES:
        x(store.conn, f"DELETE FROM {t};")
    refresh_sales()


def load_demo_data(store: Store, *, seed: int = 7) -> None:
    random.seed(seed)

    products = []
    for name, size, cost, sell, min_kg, avg in DEFAULT_PRODUCTS:
        item = create_item(
            store,
            name=f"{name}-{size}",
            size=size,
            specie=name,
            cost_price_per_kg=cost,
            selling_price_per_kg=sell,
            minimum_stock_kg=min_kg,
        )
        products.append((item, avg))

    # Three days of deliveries
    base_date = date.today() - timedelta(days=3)
    for i in range(3):
        for item, avg in products:
            pcs = random.randint(60, 120)
            kg = round(pcs * avg * random.uniform(0.95, 1.05), 3)
            add_stock_supply(
                store,
                item.id,
                quantity_kg=kg,
                pieces=pcs,
                driver_name="Lake Supplier",
                update_date=(base_date + timedelta(days=i)).isoformat(),
            )

    customers = [create_customer(store, name=n, phone=p, credit_limit=c) for n, p, c in DEFAULT_CUSTOMERS]

    # A few sales: some walk-in cash, some on credit and part-paid
    for i in range(6):
        item, avg = random.choice(products)
        pcs = random.randint(5, 20)
        kg = round(pcs * avg, 3)
        total = round(kg * item.selling_price_per_kg, 2)
        on_credit = i % 2 == 1
        sale = create_sale(
            store,
            SaleInput(
                customer_id=random.choice(customers).id if on_credit else None,
                payment_method="credit" if on_credit else "cash",
                status="pending" if on_credit else "completed",
                items=[SaleItemInput(product_id=item.id, quantity=kg, unit_price=item.selling_price_per_kg, pieces_sold=pcs)],
                total_amount=total,
                amount_paid=0.0 if on_credit else total,
            ),
        )
        if on_credit:
            record_payment(store, sale.id, round(total * 0.4, 2))

    for title, category, amount in DEFAULT_EXPENSES:
        add_expense(store, title=title, category=category, amount=amount, expense_date=base_date.isoformat())
