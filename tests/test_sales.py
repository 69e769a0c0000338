import logging

import pytest

from conftest import make_catfish, sale_of, stock_of
from fishledger.errors import InsufficientPieces, InsufficientStock, NotFound, StorageFailure
from fishledger.events import UPDATE
from fishledger.services.customers import create_customer
from fishledger.services.sales import (
    create_sale,
    delete_sale,
    get_sale,
    list_sales,
    refresh_sales,
    update_sale,
    update_sale_status,
)
from fishledger.store import Store


# -------------------------
# create
# -------------------------

def test_create_decrements_stock(store, catfish, notifier):
    sale = create_sale(store, sale_of((catfish.id, 30, 24)), notifier=notifier)

    assert stock_of(store, catfish.id) == (70.0, 56)
    assert sale.total_amount == 66000.0
    assert len(sale.items) == 1
    assert sale.items[0].product_name == "Catfish-1kg"
    assert sale.items[0].total_price == 66000.0
    assert notifier.messages == [("success", "Sale completed successfully!", "Sale total: 66,000.00")]


def test_create_applies_discount_to_total(store, catfish):
    sale = create_sale(store, sale_of((catfish.id, 10, 8), discount=2000))
    assert sale.total_amount == 20000.0
    assert sale.discount == 2000.0


def test_create_with_customer(store, catfish):
    cust = create_customer(store, name="Lakeside Restaurant")
    sale = create_sale(store, sale_of((catfish.id, 5, 4), customer_id=cust.id, payment_method="credit", status="pending"))
    assert sale.customer_id == cust.id
    assert sale.customer_name == "Lakeside Restaurant"
    assert sale.status == "pending"


def test_walk_in_customer_is_stored_as_none(store, catfish):
    sale = create_sale(store, sale_of((catfish.id, 5, 4), customer_id="walk-in"))
    assert sale.customer_id is None


def test_create_two_products(store, catfish, tilapia):
    create_sale(store, sale_of((catfish.id, 10, 8), (tilapia.id, 4, 10, 1950.0)))
    assert stock_of(store, catfish.id) == (90.0, 72)
    assert stock_of(store, tilapia.id) == (36.0, 90)


def test_create_rejects_oversell_and_leaves_stock(store, catfish, notifier):
    create_sale(store, sale_of((catfish.id, 30, 24)))

    with pytest.raises(InsufficientStock) as exc:
        create_sale(store, sale_of((catfish.id, 80, 10)), notifier=notifier)

    assert str(exc.value) == "Insufficient stock for Catfish-1kg. Available: 70kg, Requested: 80kg"
    assert stock_of(store, catfish.id) == (70.0, 56)
    assert notifier.messages[-1][:2] == ("error", "Error creating sale")


def test_create_rejects_too_many_pieces(store, catfish):
    with pytest.raises(InsufficientPieces):
        create_sale(store, sale_of((catfish.id, 10, 81)))
    assert stock_of(store, catfish.id) == (100.0, 80)


def test_failed_create_keeps_header_and_lines(store, catfish):
    # No cross-table transaction: rows written before validation stay.
    with pytest.raises(InsufficientStock):
        create_sale(store, sale_of((catfish.id, 101, 1)))
    assert len(store.select("sales")) == 1
    assert len(store.select("sale_items")) == 1
    assert stock_of(store, catfish.id) == (100.0, 80)


def test_create_with_unknown_product(store, catfish):
    with pytest.raises(NotFound) as exc:
        create_sale(store, sale_of((catfish.id, 1, 1), ("no-such-product", 1, 1)))
    assert "Product not found" in str(exc.value)
    assert stock_of(store, catfish.id) == (100.0, 80)


def test_stock_write_failure_leaves_sale_rows(flaky_store, notifier, caplog):
    item = make_catfish(flaky_store)
    flaky_store.fail_upsert_on.add("inventory")

    with caplog.at_level(logging.ERROR, logger="fishledger"):
        with pytest.raises(StorageFailure) as exc:
            create_sale(flaky_store, sale_of((item.id, 10, 8)), notifier=notifier)

    assert "Storage failure" in str(exc.value)
    assert len(flaky_store.select("sales")) == 1
    assert stock_of(flaky_store, item.id) == (100.0, 80)
    assert notifier.messages[-1][:2] == ("error", "Error creating sale")
    assert any("Error creating sale" in r.getMessage() for r in caplog.records)


def test_create_publishes_one_inventory_update(store, catfish):
    seen = []
    store.feed.subscribe(seen.append, table="inventory", event_type=UPDATE)

    create_sale(store, sale_of((catfish.id, 10, 8), (catfish.id, 5, 2)))

    assert len(seen) == 1
    assert seen[0].new["stock_quantity_kg"] == 85.0
    assert seen[0].old["stock_quantity_kg"] == 100.0


# -------------------------
# update
# -------------------------

def test_update_nets_to_new_quantity(store, catfish, notifier):
    sale = create_sale(store, sale_of((catfish.id, 30, 24)))

    updated = update_sale(store, sale.id, sale_of((catfish.id, 10, 8)), notifier=notifier)

    assert stock_of(store, catfish.id) == (90.0, 72)
    assert [i.quantity for i in updated.items] == [10.0]
    assert updated.total_amount == 22000.0
    assert notifier.titles == ["Sale updated successfully!"]


def test_update_increase_uses_returned_stock(store, catfish):
    sale = create_sale(store, sale_of((catfish.id, 100, 80)))
    assert stock_of(store, catfish.id) == (0.0, 0)

    update_sale(store, sale.id, sale_of((catfish.id, 100, 80)))
    assert stock_of(store, catfish.id) == (0.0, 0)


def test_update_beyond_stock_changes_nothing(store, catfish):
    sale = create_sale(store, sale_of((catfish.id, 30, 24)))

    with pytest.raises(InsufficientStock) as exc:
        update_sale(store, sale.id, sale_of((catfish.id, 120, 24)))

    assert exc.value.available == 100.0
    assert stock_of(store, catfish.id) == (70.0, 56)
    assert [i.quantity for i in get_sale(store, sale.id).items] == [30.0]


def test_update_moves_stock_between_products(store, catfish, tilapia):
    sale = create_sale(store, sale_of((catfish.id, 10, 8)))

    update_sale(store, sale.id, sale_of((tilapia.id, 4, 10, 1950.0)))

    assert stock_of(store, catfish.id) == (100.0, 80)
    assert stock_of(store, tilapia.id) == (36.0, 90)


def test_update_does_not_reapply_discount(store, catfish):
    sale = create_sale(store, sale_of((catfish.id, 10, 8), discount=2000))
    assert sale.total_amount == 20000.0

    updated = update_sale(store, sale.id, sale_of((catfish.id, 10, 8), discount=2000))
    assert updated.total_amount == 22000.0


def test_update_header_fields(store, catfish):
    cust = create_customer(store, name="Bola Smokehouse")
    sale = create_sale(store, sale_of((catfish.id, 10, 8)))

    updated = update_sale(
        store,
        sale.id,
        sale_of((catfish.id, 10, 8), customer_id=cust.id, payment_method="transfer", status="pending"),
    )
    assert updated.customer_name == "Bola Smokehouse"
    assert updated.payment_method == "transfer"
    assert updated.status == "pending"


def test_update_missing_sale(store, catfish, notifier):
    with pytest.raises(NotFound):
        update_sale(store, "nope", sale_of((catfish.id, 1, 1)), notifier=notifier)
    assert notifier.titles == ["Error updating sale"]
    assert stock_of(store, catfish.id) == (100.0, 80)


def test_update_sale_status(store, catfish):
    sale = create_sale(store, sale_of((catfish.id, 1, 1)))
    assert update_sale_status(store, sale.id, "cancelled").status == "cancelled"
    with pytest.raises(ValueError):
        update_sale_status(store, sale.id, "refunded")
    with pytest.raises(NotFound):
        update_sale_status(store, "nope", "completed")


# -------------------------
# delete
# -------------------------

def test_delete_restores_stock(store, catfish, notifier):
    sale = create_sale(store, sale_of((catfish.id, 30, 24)))

    delete_sale(store, sale.id, notifier=notifier)

    assert stock_of(store, catfish.id) == (100.0, 80)
    assert store.select("sales") == []
    assert store.select("sale_items") == []
    assert notifier.messages == [("success", "Sale deleted successfully!", "Product stock has been restored.")]


def test_delete_restores_beyond_supply(store, catfish):
    sale = create_sale(store, sale_of((catfish.id, 30, 24)))
    store.conn.execute("UPDATE inventory SET stock_quantity_kg = 90, total_pieces = 70 WHERE id = ?", (catfish.id,))
    store.conn.commit()

    delete_sale(store, sale.id)
    assert stock_of(store, catfish.id) == (120.0, 94)


def test_delete_onto_negative_stock_floors_at_zero(store, catfish):
    sale = create_sale(store, sale_of((catfish.id, 30, 24)))
    store.conn.execute("UPDATE inventory SET stock_quantity_kg = -50, total_pieces = -40 WHERE id = ?", (catfish.id,))
    store.conn.commit()

    delete_sale(store, sale.id)
    assert stock_of(store, catfish.id) == (0.0, 0)


def test_update_moving_off_negative_stock_floors_at_zero(store, catfish, tilapia):
    sale = create_sale(store, sale_of((catfish.id, 30, 24)))
    store.conn.execute("UPDATE inventory SET stock_quantity_kg = -50, total_pieces = -40 WHERE id = ?", (catfish.id,))
    store.conn.commit()

    update_sale(store, sale.id, sale_of((tilapia.id, 4, 10, 1950.0)))
    assert stock_of(store, catfish.id) == (0.0, 0)
    assert stock_of(store, tilapia.id) == (36.0, 90)


def test_delete_skips_lines_for_removed_products(store, catfish):
    sale = create_sale(store, sale_of((catfish.id, 30, 24)))
    store.delete("inventory", {"id": catfish.id})

    delete_sale(store, sale.id)
    assert store.select("sales") == []


def test_delete_proceeds_when_stock_restore_fails(flaky_store, notifier):
    item = make_catfish(flaky_store)
    sale = create_sale(flaky_store, sale_of((item.id, 30, 24)))
    flaky_store.fail_upsert_on.add("inventory")

    delete_sale(flaky_store, sale.id, notifier=notifier)

    assert flaky_store.select("sales") == []
    assert stock_of(flaky_store, item.id) == (70.0, 56)
    assert notifier.messages[0][:2] == ("error", "Error restoring stock")
    assert notifier.messages[-1] == ("success", "Sale deleted successfully!", "Product stock could not be restored.")


def test_delete_missing_sale(store, notifier):
    with pytest.raises(NotFound):
        delete_sale(store, "nope", notifier=notifier)
    assert notifier.titles == ["Error deleting sale"]


# -------------------------
# reads
# -------------------------

def test_get_sale_missing(store):
    with pytest.raises(NotFound):
        get_sale(store, "nope")


def test_list_sales_newest_first(store, catfish):
    create_sale(store, sale_of((catfish.id, 1, 1), created_at="2026-01-01T08:00:00+00:00"))
    create_sale(store, sale_of((catfish.id, 2, 1), created_at="2026-01-02T08:00:00+00:00"))

    sales = list_sales(store)
    assert [s.total_amount for s in sales] == [4400.0, 2200.0]
    assert sales[0].items[0].product_name == "Catfish-1kg"


def test_list_sales_reflects_writes(store, catfish):
    sale = create_sale(store, sale_of((catfish.id, 1, 1)))
    assert [s.id for s in list_sales(store)] == [sale.id]

    delete_sale(store, sale.id)
    assert list_sales(store) == []


class CountingStore(Store):
    def __init__(self, conn):
        super().__init__(conn)
        self.sale_reads = 0

    def select(self, table, filters=None, **kwargs):
        if table == "sales":
            self.sale_reads += 1
        return super().select(table, filters, **kwargs)


def test_sale_list_is_shared_by_stores_over_one_database(conn, catfish):
    create_sale(Store(conn), sale_of((catfish.id, 1, 1)))
    refresh_sales()

    stores = [CountingStore(conn) for _ in range(5)]
    for s in stores:
        assert len(list_sales(s)) == 1
    assert len({s.key for s in stores}) == 1
    assert sum(s.sale_reads for s in stores) == 1


def test_failed_create_is_visible_in_sale_list(store, catfish):
    assert list_sales(store) == []

    with pytest.raises(InsufficientStock):
        create_sale(store, sale_of((catfish.id, 101, 1)))

    assert len(list_sales(store)) == 1
