from __future__ import annotations

from dataclasses import asdict
from typing import Any, Iterable, Mapping, Optional

from fishledger.errors import NotFound
from fishledger.log import get_logger
from fishledger.models import InventoryItem
from fishledger.services.reconcile import StockSnapshot
from fishledger.store import Store
from fishledger.utils import iso_today, new_id, round_kg

log = get_logger("inventory")

# Stock levels move only through sales and stock supply.
STOCK_FIELDS = {"stock_quantity_kg", "total_pieces", "total_pieces_supplied", "total_kg_supplied"}
CATALOG_FIELDS = {
    "name",
    "size",
    "category",
    "specie",
    "cost_price_per_kg",
    "selling_price_per_kg",
    "minimum_stock_kg",
    "barcode",
}


def create_item(
    store: Store,
    *,
    name: str,
    size: Optional[str] = None,
    cost_price_per_kg: float = 0.0,
    selling_price_per_kg: float = 0.0,
    stock_quantity_kg: float = 0.0,
    total_pieces: int = 0,
    minimum_stock_kg: float = 0.0,
    barcode: Optional[str] = None,
    category: Optional[str] = None,
    specie: Optional[str] = None,
) -> InventoryItem:
    item = InventoryItem(
        id=new_id(),
        name=str(name).strip(),
        size=(str(size).strip() or None) if size is not None else None,
        cost_price_per_kg=float(cost_price_per_kg),
        selling_price_per_kg=float(selling_price_per_kg),
        stock_quantity_kg=round_kg(stock_quantity_kg),
        total_pieces=int(total_pieces),
        total_pieces_supplied=int(total_pieces),
        total_kg_supplied=round_kg(stock_quantity_kg),
        minimum_stock_kg=float(minimum_stock_kg),
        barcode=barcode,
        category=category,
        specie=specie,
    )
    row = {k: v for k, v in asdict(item).items() if k not in ("created_at", "updated_at")}
    created = store.insert("inventory", [row])[0]
    log.info("Created inventory item %s (%s)", created["name"], created["id"])
    return InventoryItem.from_row(created)


def get_item(store: Store, item_id: str) -> InventoryItem:
    row = store.get("inventory", item_id)
    if row is None:
        raise NotFound("Product", item_id)
    return InventoryItem.from_row(row)


def list_items(store: Store) -> list[InventoryItem]:
    rows = store.select("inventory", order_by="created_at", desc=True)
    return [InventoryItem.from_row(r) for r in rows]


def update_item(store: Store, item_id: str, **changes: Any) -> InventoryItem:
    stock = STOCK_FIELDS.intersection(changes)
    if stock:
        raise ValueError(
            f"Cannot edit {', '.join(sorted(stock))} directly. Stock changes only through sales and stock supply."
        )
    unknown = set(changes) - CATALOG_FIELDS
    if unknown:
        raise ValueError(f"Unknown inventory field(s): {', '.join(sorted(unknown))}.")

    current = get_item(store, item_id)
    merged = InventoryItem.from_row({**asdict(current), **changes})  # validates
    patch = {k: getattr(merged, k) for k in changes}
    rows = store.update("inventory", {"id": item_id}, patch)
    log.info("Updated inventory item %s: %s", item_id, ", ".join(sorted(patch)))
    return InventoryItem.from_row(rows[0])


# -------------------------
# Snapshots (used by sales)
# -------------------------

def get_snapshots(store: Store, product_ids: Iterable[str]) -> dict[str, StockSnapshot]:
    """One read for every product the operation touches."""
    ids = sorted(set(product_ids))
    if not ids:
        return {}
    rows = store.select(
        "inventory",
        {"id": ids},
        columns=["id", "name", "stock_quantity_kg", "total_pieces"],
    )
    return {r["id"]: StockSnapshot.from_row(r) for r in rows}


def write_snapshots(store: Store, snapshots: Mapping[str, StockSnapshot]) -> list[dict[str, Any]]:
    """One batch write of the new stock levels."""
    if not snapshots:
        return []
    rows = store.upsert("inventory", [s.as_patch() for s in snapshots.values()])
    log.info(
        "Inventory updated: %s",
        ", ".join(f"{s.name}={s.stock_kg:g}kg/{s.pieces}pcs" for s in snapshots.values()),
    )
    return rows


# -------------------------
# Stock supply
# -------------------------

def add_stock_supply(
    store: Store,
    item_id: str,
    *,
    quantity_kg: float,
    pieces: int = 0,
    driver_name: Optional[str] = None,
    update_date: Optional[str] = None,
) -> dict[str, Any]:
    """
    Record a delivery and raise the item's stock by it.

    Like sales, this reads the current levels and writes back the sum; two
    deliveries recorded at the same moment can overwrite each other.
    """
    try:
        qty = float(quantity_kg)
    except (TypeError, ValueError):
        raise ValueError("Quantity (kg) must be a number.")
    if qty <= 0:
        raise ValueError("Quantity (kg) must be > 0.")
    if int(pieces) < 0:
        raise ValueError("Pieces must be >= 0.")

    item = get_item(store, item_id)

    supply = store.insert(
        "stock_updates",
        [
            {
                "inventory_id": item.id,
                "quantity_added_kg": round_kg(qty),
                "pieces_added": int(pieces),
                "driver_name": (driver_name or "").strip() or None,
                "update_date": update_date or iso_today(),
            }
        ],
    )[0]

    store.upsert(
        "inventory",
        [
            {
                "id": item.id,
                "stock_quantity_kg": round_kg(item.stock_quantity_kg + qty),
                "total_pieces": item.total_pieces + int(pieces),
                "total_pieces_supplied": item.total_pieces_supplied + int(pieces),
                "total_kg_supplied": round_kg(float(item.total_kg_supplied or 0) + qty),
            }
        ],
    )
    log.info("Stock supply for %s: +%gkg, +%d pcs", item.name, qty, int(pieces))
    return supply


def list_stock_updates(store: Store, item_id: Optional[str] = None) -> list[dict[str, Any]]:
    filters = {"inventory_id": item_id} if item_id else None
    return store.select(
        "stock_updates",
        filters,
        order_by="created_at",
        desc=True,
        embed={"inventory": None},
    )


def low_stock_items(store: Store) -> list[InventoryItem]:
    return [i for i in list_items(store) if i.is_low_stock]
