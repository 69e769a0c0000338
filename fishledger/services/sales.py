"""
Sales ledger.

Every write keeps inventory in step with the sale lines:

- create: insert header + lines, then decrement stock for the lines
- update: add back the old lines, take off the new ones (one net write
  per product), then replace header + lines
- delete: give the stock back, then drop lines + header

Nothing here runs inside a cross-table transaction. Stock is validated before
any inventory write, but header/line rows already written stay written if a
later step fails, and concurrent sales against one product can overwrite each
other's stock write.
"""

from __future__ import annotations

from typing import Any, Optional

import streamlit as st

from fishledger.errors import LedgerError, NotFound, StorageFailure
from fishledger.log import get_logger
from fishledger.models import Sale, SaleInput, normalize_status
from fishledger.notify import Notifier, announce, report_failure
from fishledger.services.inventory import get_snapshots, write_snapshots
from fishledger.services.reconcile import apply_sale, reconcile, restore_sale, product_ids
from fishledger.store import Store
from fishledger.utils import round_kg, round_money

log = get_logger("sales")

SALE_EMBED = {"customers": None, "sale_items": {"inventory": None}}


def _item_rows(sale_id: str, sale: SaleInput) -> list[dict[str, Any]]:
    return [
        {
            "sale_id": sale_id,
            "product_id": i.product_id,
            "quantity": round_kg(i.quantity),
            "unit_price": i.unit_price,
            "total_price": round_money(i.quantity * i.unit_price),
            "pieces_sold": i.pieces_sold,
        }
        for i in sale.items
    ]


# -------------------------
# Reads
# -------------------------

def get_sale(store: Store, sale_id: str) -> Sale:
    row = store.get("sales", sale_id, embed=SALE_EMBED)
    if row is None:
        raise NotFound("Sale", sale_id)
    return Sale.from_row(row)


def _sale_items(store: Store, sale_id: str) -> list[dict[str, Any]]:
    return store.select(
        "sale_items",
        {"sale_id": sale_id},
        columns=["id", "product_id", "quantity", "pieces_sold"],
    )


@st.cache_data(show_spinner=False, max_entries=8)
def _cached_sales(_store: Store, store_key: str) -> list[Sale]:
    rows = _store.select("sales", order_by="created_at", desc=True, embed=SALE_EMBED)
    return [Sale.from_row(r) for r in rows]


def list_sales(store: Store) -> list[Sale]:
    """Newest first, with lines, product names and customer name joined."""
    return _cached_sales(store, store.key)


def refresh_sales() -> None:
    _cached_sales.clear()


# -------------------------
# Writes
# -------------------------

def create_sale(store: Store, sale: SaleInput, *, notifier: Optional[Notifier] = None) -> Sale:
    try:
        header = {
            "customer_id": sale.customer_id,
            "payment_method": sale.payment_method,
            "status": sale.status,
            "total_amount": round_money(sale.total_amount),
            "amount_paid": round_money(sale.amount_paid),
            "discount": round_money(sale.discount),
        }
        if sale.created_at:
            header["created_at"] = sale.created_at
        sale_row = store.insert("sales", [header])[0]
        store.insert("sale_items", _item_rows(sale_row["id"], sale))

        snapshots = get_snapshots(store, product_ids(sale.items))
        updated = apply_sale(snapshots, sale.items)
        write_snapshots(store, updated)
    except LedgerError as e:
        report_failure(notifier, "Error creating sale", e, log)
        raise
    finally:
        # Header and lines may already be stored even when a later step failed.
        refresh_sales()

    log.info("Sale %s created: %d line(s), total %.2f", sale_row["id"], len(sale.items), sale.total_amount)
    announce(notifier, True, "Sale completed successfully!", f"Sale total: {sale.total_amount:,.2f}")
    return get_sale(store, sale_row["id"])


def update_sale(store: Store, sale_id: str, sale: SaleInput, *, notifier: Optional[Notifier] = None) -> Sale:
    """
    Replace a sale's lines and header.

    The total is recomputed from the new lines; the discount is not applied
    again.
    """
    try:
        if store.get("sales", sale_id, columns=["id"]) is None:
            raise NotFound("Sale", sale_id)

        before = _sale_items(store, sale_id)
        snapshots = get_snapshots(store, product_ids(before, sale.items))
        net = reconcile(snapshots, before, sale.items)

        total_amount = round_money(sum(i.quantity * i.unit_price for i in sale.items))
        patch = {
            "customer_id": sale.customer_id,
            "total_amount": total_amount,
            "payment_method": sale.payment_method,
            "status": sale.status,
        }
        if sale.created_at:
            patch["created_at"] = sale.created_at
        store.update("sales", {"id": sale_id}, patch)

        store.delete("sale_items", {"sale_id": sale_id})
        store.insert("sale_items", _item_rows(sale_id, sale))

        write_snapshots(store, net)
    except LedgerError as e:
        report_failure(notifier, "Error updating sale", e, log)
        raise
    finally:
        refresh_sales()

    log.info("Sale %s updated: %d line(s), total %.2f", sale_id, len(sale.items), total_amount)
    announce(notifier, True, "Sale updated successfully!", f"Sale total: {total_amount:,.2f}")
    return get_sale(store, sale_id)


def update_sale_status(
    store: Store,
    sale_id: str,
    status: str,
    *,
    notifier: Optional[Notifier] = None,
) -> Sale:
    try:
        status = normalize_status(status)
        rows = store.update("sales", {"id": sale_id}, {"status": status})
        if not rows:
            raise NotFound("Sale", sale_id)
    except LedgerError as e:
        report_failure(notifier, "Error updating sale", e, log)
        raise

    refresh_sales()
    log.info("Sale %s status -> %s", sale_id, status)
    announce(notifier, True, "Sale status updated successfully!")
    return get_sale(store, sale_id)


def delete_sale(store: Store, sale_id: str, *, notifier: Optional[Notifier] = None) -> None:
    """
    Give the sale's stock back, then delete its lines and header.

    A failure while restoring stock is reported but does not stop the
    delete. Restored stock is not capped at what was originally supplied.
    """
    try:
        if store.get("sales", sale_id, columns=["id"]) is None:
            raise NotFound("Sale", sale_id)
        items = _sale_items(store, sale_id)
    except LedgerError as e:
        report_failure(notifier, "Error deleting sale", e, log)
        raise

    restored = True
    try:
        snapshots = get_snapshots(store, product_ids(items))
        write_snapshots(store, restore_sale(snapshots, items))
    except StorageFailure as e:
        restored = False
        report_failure(notifier, "Error restoring stock", e, log)

    try:
        store.delete("sale_items", {"sale_id": sale_id})
        store.delete("sales", {"id": sale_id})
    except LedgerError as e:
        report_failure(notifier, "Error deleting sale", e, log)
        raise
    finally:
        refresh_sales()

    log.info("Sale %s deleted (%d line(s), stock restored: %s)", sale_id, len(items), restored)
    announce(
        notifier,
        True,
        "Sale deleted successfully!",
        "Product stock has been restored." if restored else "Product stock could not be restored.",
    )
