from __future__ import annotations

from typing import Any, Optional

from fishledger.errors import LedgerError, NotFound
from fishledger.log import get_logger
from fishledger.models import Sale, normalize_payment_method
from fishledger.notify import Notifier, announce, report_failure
from fishledger.services.sales import get_sale, refresh_sales
from fishledger.store import Store
from fishledger.utils import round_money

log = get_logger("payments")

PAYMENT_FIELDS = {"type", "amount", "description", "category", "payment_method", "reference_id", "reference_type"}


def _payment_amount(amount: Any) -> float:
    try:
        value = float(amount)
    except (TypeError, ValueError):
        raise ValueError("Payment amount must be a number.") from None
    if value <= 0:
        raise ValueError("Payment amount must be > 0.")
    return value


def record_payment(
    store: Store,
    sale_id: str,
    amount: float,
    *,
    notifier: Optional[Notifier] = None,
) -> Sale:
    """
    Add ``amount`` to what has been paid on a sale.

    The sale becomes ``completed`` once the paid amount reaches the total and
    ``pending`` otherwise. Overpayment is accepted as is.
    """
    try:
        amount = _payment_amount(amount)
        row = store.get("sales", sale_id, columns=["id", "total_amount", "amount_paid"])
        if row is None:
            raise NotFound("Sale", sale_id)

        new_paid = round_money(float(row["amount_paid"] or 0) + amount)
        status = "completed" if new_paid >= float(row["total_amount"] or 0) else "pending"
        store.update("sales", {"id": sale_id}, {"amount_paid": new_paid, "status": status})
    except ValueError as e:
        report_failure(notifier, "Failed to record payment", e, log)
        raise

    refresh_sales()
    log.info("Payment of %.2f on sale %s (paid %.2f, %s)", amount, sale_id, new_paid, status)
    announce(notifier, True, "Payment recorded successfully", f"Payment of {amount:,.2f} has been recorded.")
    return get_sale(store, sale_id)


# -------------------------
# Payments journal
# -------------------------

def _clean(fields: dict[str, Any]) -> dict[str, Any]:
    out = dict(fields)
    if "type" in out:
        out["type"] = str(out["type"] or "").strip().lower()
        if not out["type"]:
            raise ValueError("Payment type is required.")
    if "amount" in out:
        out["amount"] = round_money(_payment_amount(out["amount"]))
    if "payment_method" in out:
        out["payment_method"] = normalize_payment_method(out["payment_method"])
    return out


def add_payment(
    store: Store,
    *,
    type: str,
    amount: float,
    payment_method: str = "cash",
    description: Optional[str] = None,
    category: Optional[str] = None,
    reference_id: Optional[str] = None,
    reference_type: Optional[str] = None,
    notifier: Optional[Notifier] = None,
) -> dict[str, Any]:
    try:
        row = _clean(
            {
                "type": type,
                "amount": amount,
                "payment_method": payment_method,
                "description": description,
                "category": category,
                "reference_id": reference_id,
                "reference_type": reference_type,
            }
        )
        created = store.insert("payments", [row])[0]
    except ValueError as e:
        report_failure(notifier, "Failed to record payment", e, log)
        raise
    announce(notifier, True, "Payment recorded successfully", f"Payment of {row['amount']:,.2f} has been recorded.")
    return created


def update_payment(
    store: Store,
    payment_id: str,
    *,
    notifier: Optional[Notifier] = None,
    **updates: Any,
) -> dict[str, Any]:
    try:
        if not updates:
            raise ValueError("Nothing to update.")
        unknown = set(updates) - PAYMENT_FIELDS
        if unknown:
            raise ValueError(f"Unknown payment field(s): {', '.join(sorted(unknown))}.")
        rows = store.update("payments", {"id": payment_id}, _clean(updates))
        if not rows:
            raise NotFound("Payment", payment_id)
    except ValueError as e:
        report_failure(notifier, "Failed to update payment", e, log)
        raise
    announce(notifier, True, "Payment updated successfully", "The payment has been updated.")
    return rows[0]


def delete_payment(store: Store, payment_id: str, *, notifier: Optional[Notifier] = None) -> None:
    try:
        if not store.delete("payments", {"id": payment_id}):
            raise NotFound("Payment", payment_id)
    except LedgerError as e:
        report_failure(notifier, "Failed to delete payment", e, log)
        raise
    announce(notifier, True, "Payment deleted successfully", "The payment has been removed.")


def list_payments(
    store: Store,
    *,
    reference_id: Optional[str] = None,
    type: Optional[str] = None,
) -> list[dict[str, Any]]:
    filters: dict[str, Any] = {}
    if reference_id:
        filters["reference_id"] = reference_id
    if type:
        filters["type"] = str(type).strip().lower()
    return store.select("payments", filters or None, order_by="created_at", desc=True)
