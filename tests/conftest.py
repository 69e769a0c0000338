from __future__ import annotations

import pytest

from fishledger.db import connect, ensure_schema
from fishledger.errors import StorageFailure
from fishledger.models import SaleInput, SaleItemInput
from fishledger.notify import Notifier
from fishledger.services.inventory import create_item
from fishledger.services.sales import refresh_sales
from fishledger.store import Store


class RecordingNotifier(Notifier):
    def __init__(self) -> None:
        self.messages: list[tuple[str, str, str]] = []

    def success(self, title: str, description: str = "") -> None:
        self.messages.append(("success", title, description))

    def error(self, title: str, description: str = "") -> None:
        self.messages.append(("error", title, description))

    @property
    def titles(self) -> list[str]:
        return [t for _, t, _ in self.messages]


class FlakyStore(Store):
    """Store whose upserts into the listed tables fail like a dropped connection."""

    def __init__(self, conn, *, fail_upsert_on=()):
        super().__init__(conn)
        self.fail_upsert_on = set(fail_upsert_on)

    def upsert(self, table, rows):
        if table in self.fail_upsert_on:
            raise StorageFailure(f"upsert {table}", "connection reset")
        return super().upsert(table, rows)


@pytest.fixture
def conn(tmp_path):
    c = connect(tmp_path / "app.db")
    ensure_schema(c)
    yield c
    c.close()


@pytest.fixture
def store(conn):
    refresh_sales()
    yield Store(conn)
    refresh_sales()


@pytest.fixture
def flaky_store(conn):
    refresh_sales()
    yield FlakyStore(conn)
    refresh_sales()


@pytest.fixture
def notifier():
    return RecordingNotifier()


def make_catfish(store, **overrides):
    fields = dict(
        name="Catfish-1kg",
        size="1kg",
        specie="Catfish",
        cost_price_per_kg=1700.0,
        selling_price_per_kg=2200.0,
        stock_quantity_kg=100.0,
        total_pieces=80,
        minimum_stock_kg=10.0,
    )
    fields.update(overrides)
    return create_item(store, **fields)


@pytest.fixture
def catfish(store):
    return make_catfish(store)


@pytest.fixture
def tilapia(store):
    return create_item(
        store,
        name="Tilapia-400g",
        size="400g",
        specie="Tilapia",
        cost_price_per_kg=1500.0,
        selling_price_per_kg=1950.0,
        stock_quantity_kg=40.0,
        total_pieces=100,
        minimum_stock_kg=8.0,
    )


def sale_of(*lines, payment_method="cash", **kwargs) -> SaleInput:
    """``lines`` are (product_id, kg, pieces) or (product_id, kg, pieces, unit_price)."""
    items = []
    for line in lines:
        product_id, kg, pieces = line[:3]
        price = line[3] if len(line) > 3 else 2200.0
        items.append(SaleItemInput(product_id=product_id, quantity=kg, unit_price=price, pieces_sold=pieces))
    return SaleInput(payment_method=payment_method, items=items, **kwargs)


def stock_of(store, product_id):
    row = store.get("inventory", product_id, columns=["stock_quantity_kg", "total_pieces"])
    return row["stock_quantity_kg"], row["total_pieces"]
