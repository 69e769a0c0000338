from __future__ import annotations

from typing import Optional

from fishledger.errors import NotFound
from fishledger.log import get_logger
from fishledger.models import Customer
from fishledger.store import Store

log = get_logger("customers")


def create_customer(
    store: Store,
    *,
    name: str,
    phone: Optional[str] = None,
    email: Optional[str] = None,
    address: Optional[str] = None,
    credit_limit: float = 0.0,
    notes: Optional[str] = None,
) -> Customer:
    name = str(name or "").strip()
    if not name:
        raise ValueError("Customer name is required.")
    if float(credit_limit) < 0:
        raise ValueError("Credit limit must be >= 0.")

    row = store.insert(
        "customers",
        [
            {
                "name": name,
                "phone": (phone or "").strip() or None,
                "email": (email or "").strip() or None,
                "address": (address or "").strip() or None,
                "credit_limit": float(credit_limit),
                "notes": notes,
            }
        ],
    )[0]
    log.info("Created customer %s (%s)", name, row["id"])
    return Customer.from_row(row)


def get_customer(store: Store, customer_id: str) -> Customer:
    row = store.get("customers", customer_id)
    if row is None:
        raise NotFound("Customer", customer_id)
    return Customer.from_row(row)


def list_customers(store: Store) -> list[Customer]:
    return [Customer.from_row(r) for r in store.select("customers", order_by="name")]
