from __future__ import annotations

from datetime import date
from typing import Any, Optional

from fishledger.errors import NotFound
from fishledger.log import get_logger
from fishledger.models import normalize_payment_method
from fishledger.notify import Notifier, announce, report_failure
from fishledger.store import Store
from fishledger.utils import iso_today, round_money

log = get_logger("expenses")

EXPENSE_FIELDS = {"title", "description", "category", "amount", "payment_method", "expense_date"}


def _iso_date(v: Any) -> str:
    if isinstance(v, date):
        return v.isoformat()
    s = str(v or "").strip()
    try:
        return date.fromisoformat(s[:10]).isoformat()
    except ValueError:
        raise ValueError(f"Invalid expense date '{v}'. Use YYYY-MM-DD.") from None


def _clean(fields: dict[str, Any]) -> dict[str, Any]:
    out = dict(fields)
    if "title" in out:
        out["title"] = str(out["title"] or "").strip()
        if not out["title"]:
            raise ValueError("Expense title is required.")
    if "amount" in out:
        try:
            out["amount"] = round_money(out["amount"])
        except (TypeError, ValueError):
            raise ValueError("Expense amount must be a number.") from None
        if out["amount"] <= 0:
            raise ValueError("Expense amount must be > 0.")
    if "payment_method" in out:
        out["payment_method"] = normalize_payment_method(out["payment_method"])
    if "expense_date" in out:
        out["expense_date"] = _iso_date(out["expense_date"])
    for k in ("description", "category"):
        if k in out:
            out[k] = (str(out[k]).strip() or None) if out[k] is not None else None
    return out


def add_expense(
    store: Store,
    *,
    title: str,
    amount: float,
    payment_method: str = "cash",
    category: Optional[str] = None,
    description: Optional[str] = None,
    expense_date: Optional[Any] = None,
    notifier: Optional[Notifier] = None,
) -> dict[str, Any]:
    try:
        row = _clean(
            {
                "title": title,
                "amount": amount,
                "payment_method": payment_method,
                "category": category,
                "description": description,
                "expense_date": expense_date or iso_today(),
            }
        )
        created = store.insert("expenses", [row])[0]
    except ValueError as e:
        report_failure(notifier, "Failed to add expense", e, log)
        raise
    log.info("Expense %s: %.2f (%s)", created["title"], created["amount"], created["category"] or "-")
    announce(notifier, True, "Expense added successfully", f"Expense of {created['amount']:,.2f} has been recorded.")
    return created


def update_expense(
    store: Store,
    expense_id: str,
    *,
    notifier: Optional[Notifier] = None,
    **updates: Any,
) -> dict[str, Any]:
    try:
        if not updates:
            raise ValueError("Nothing to update.")
        unknown = set(updates) - EXPENSE_FIELDS
        if unknown:
            raise ValueError(f"Unknown expense field(s): {', '.join(sorted(unknown))}.")
        rows = store.update("expenses", {"id": expense_id}, _clean(updates))
        if not rows:
            raise NotFound("Expense", expense_id)
    except ValueError as e:
        report_failure(notifier, "Failed to update expense", e, log)
        raise
    announce(notifier, True, "Expense updated successfully", "The expense has been updated.")
    return rows[0]


def delete_expense(store: Store, expense_id: str, *, notifier: Optional[Notifier] = None) -> None:
    try:
        if not store.delete("expenses", {"id": expense_id}):
            raise NotFound("Expense", expense_id)
    except ValueError as e:
        report_failure(notifier, "Failed to delete expense", e, log)
        raise
    announce(notifier, True, "Expense deleted successfully", "The expense has been removed.")


def list_expenses(
    store: Store,
    *,
    category: Optional[str] = None,
    start: Optional[Any] = None,
    end: Optional[Any] = None,
) -> list[dict[str, Any]]:
    """Newest first; ``start``/``end`` are inclusive expense dates."""
    rows = store.select(
        "expenses",
        {"category": category} if category else None,
        order_by="expense_date",
        desc=True,
    )
    lo = _iso_date(start) if start else None
    hi = _iso_date(end) if end else None
    return [
        r
        for r in rows
        if (lo is None or r["expense_date"] >= lo) and (hi is None or r["expense_date"] <= hi)
    ]


def total_expenses(store: Store, *, start: Optional[Any] = None, end: Optional[Any] = None) -> float:
    return round_money(sum(float(r["amount"] or 0) for r in list_expenses(store, start=start, end=end)))
