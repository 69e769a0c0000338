"""
Stock arithmetic for sales, with no storage access.

A sale operation reads one snapshot per product, runs it through
``reconcile`` and writes back whatever comes out. Reversal (adding back the
lines a sale used to have) always happens before the new lines are applied,
so an edit produces a single net change per product.
"""

from __future__ import annotations

from dataclasses import dataclass, replace
from typing import Any, Iterable, Mapping

from fishledger.errors import InsufficientPieces, InsufficientStock, NotFound
from fishledger.utils import round_kg


@dataclass(frozen=True)
class StockSnapshot:
    product_id: str
    stock_kg: float
    pieces: int
    name: str = ""

    @classmethod
    def from_row(cls, row: Mapping[str, Any]) -> "StockSnapshot":
        return cls(
            product_id=str(row["id"]),
            stock_kg=float(row.get("stock_quantity_kg") or 0),
            pieces=int(row.get("total_pieces") or 0),
            name=str(row.get("name") or row["id"]),
        )

    def as_patch(self) -> dict[str, Any]:
        return {
            "id": self.product_id,
            "stock_quantity_kg": self.stock_kg,
            "total_pieces": self.pieces,
        }


def _line(item: Any) -> tuple[str, float, int]:
    if isinstance(item, Mapping):
        return str(item["product_id"]), float(item.get("quantity") or 0), int(item.get("pieces_sold") or 0)
    return str(item.product_id), float(item.quantity or 0), int(item.pieces_sold or 0)


def reconcile(
    snapshots: Mapping[str, StockSnapshot],
    before_items: Iterable[Any],
    after_items: Iterable[Any],
) -> dict[str, StockSnapshot]:
    """
    Net the stock effect of replacing ``before_items`` with ``after_items``.

    Returns the new snapshot of every product touched by either side. Raises
    NotFound / InsufficientStock / InsufficientPieces on the first bad line of
    ``after_items``; nothing is returned in that case, so callers never write
    a partial result.

    Products in ``before_items`` that are missing from ``snapshots`` are
    skipped: there is nothing left to give their stock back to.

    Every returned kg and piece count is floored at zero, including levels
    that were already negative in the stored snapshot.
    """
    work: dict[str, StockSnapshot] = {}

    for item in before_items:
        pid, qty, pcs = _line(item)
        snap = work.get(pid) or snapshots.get(pid)
        if snap is None:
            continue
        work[pid] = replace(snap, stock_kg=round_kg(snap.stock_kg + qty), pieces=snap.pieces + pcs)

    # Stored levels can already be negative; never hand those back.
    for pid, snap in work.items():
        work[pid] = replace(snap, stock_kg=max(0.0, snap.stock_kg), pieces=max(0, snap.pieces))

    for item in after_items:
        pid, qty, pcs = _line(item)
        snap = work.get(pid) or snapshots.get(pid)
        if snap is None:
            raise NotFound("Product", pid)
        if qty > snap.stock_kg:
            raise InsufficientStock(snap.name, snap.stock_kg, qty)
        if pcs > snap.pieces:
            raise InsufficientPieces(snap.name, snap.pieces, pcs)
        work[pid] = replace(
            snap,
            stock_kg=max(0.0, round_kg(snap.stock_kg - qty)),
            pieces=max(0, snap.pieces - pcs),
        )

    return work


def apply_sale(snapshots: Mapping[str, StockSnapshot], items: Iterable[Any]) -> dict[str, StockSnapshot]:
    return reconcile(snapshots, [], items)


def restore_sale(snapshots: Mapping[str, StockSnapshot], items: Iterable[Any]) -> dict[str, StockSnapshot]:
    return reconcile(snapshots, items, [])


def product_ids(*item_sets: Iterable[Any]) -> list[str]:
    """Distinct product ids across item sets, in first-seen order."""
    seen: dict[str, None] = {}
    for items in item_sets:
        for item in items:
            seen.setdefault(_line(item)[0], None)
    return list(seen)
