from __future__ import annotations

from datetime import date
from typing import Any, Optional

import pandas as pd

from fishledger.services.expenses import total_expenses
from fishledger.store import Store
from fishledger.utils import iso_today

SALES_COLUMNS = [
    "created_at",
    "sale_id",
    "customer",
    "payment_method",
    "status",
    "total_amount",
    "amount_paid",
    "balance",
    "discount",
    "kg_sold",
    "pieces_sold",
]

INVENTORY_COLUMNS = [
    "id",
    "name",
    "size",
    "stock_quantity_kg",
    "total_pieces",
    "minimum_stock_kg",
    "low_stock",
    "cost_price_per_kg",
    "selling_price_per_kg",
    "stock_value",
    "total_kg_supplied",
    "total_pieces_supplied",
]

LINE_COLUMNS = ["sale_id", "created_at", "product_id", "name", "quantity", "pieces_sold", "total_price"]


def sales_frame(store: Store) -> pd.DataFrame:
    rows = store.select(
        "sales",
        order_by="created_at",
        desc=True,
        embed={"customers": None, "sale_items": None},
    )
    if not rows:
        return pd.DataFrame(columns=SALES_COLUMNS)

    out: list[dict[str, Any]] = []
    for r in rows:
        items = r.get("sale_items") or []
        out.append(
            {
                "created_at": r["created_at"],
                "sale_id": r["id"],
                "customer": (r.get("customers") or {}).get("name") or "Walk-in",
                "payment_method": r["payment_method"],
                "status": r["status"],
                "total_amount": r["total_amount"],
                "amount_paid": r["amount_paid"],
                "balance": round(float(r["total_amount"] or 0) - float(r["amount_paid"] or 0), 2),
                "discount": r["discount"],
                "kg_sold": round(sum(float(i["quantity"] or 0) for i in items), 3),
                "pieces_sold": sum(int(i["pieces_sold"] or 0) for i in items),
            }
        )
    df = pd.DataFrame(out, columns=SALES_COLUMNS)
    for col in ["total_amount", "amount_paid", "balance", "discount", "kg_sold"]:
        df[col] = pd.to_numeric(df[col], errors="coerce").fillna(0.0)
    return df


def inventory_frame(store: Store) -> pd.DataFrame:
    rows = store.select("inventory", order_by="name")
    if not rows:
        return pd.DataFrame(columns=INVENTORY_COLUMNS)

    df = pd.DataFrame(rows)
    for col in ["stock_quantity_kg", "minimum_stock_kg", "cost_price_per_kg", "selling_price_per_kg"]:
        df[col] = pd.to_numeric(df[col], errors="coerce").fillna(0.0)
    df["low_stock"] = df["stock_quantity_kg"] <= df["minimum_stock_kg"]
    df["stock_value"] = (df["stock_quantity_kg"] * df["cost_price_per_kg"]).round(2)
    return df[INVENTORY_COLUMNS]


def _lines_frame(store: Store) -> pd.DataFrame:
    rows = store.select("sale_items", embed={"inventory": None, "sales": None})
    if not rows:
        return pd.DataFrame(columns=LINE_COLUMNS)
    out = [
        {
            "sale_id": r["sale_id"],
            "created_at": (r.get("sales") or {}).get("created_at"),
            "product_id": r["product_id"],
            "name": (r.get("inventory") or {}).get("name") or r["product_id"],
            "quantity": float(r["quantity"] or 0),
            "pieces_sold": int(r["pieces_sold"] or 0),
            "total_price": float(r["total_price"] or 0),
        }
        for r in rows
    ]
    return pd.DataFrame(out, columns=LINE_COLUMNS)


def _on(df: pd.DataFrame, day: str) -> pd.DataFrame:
    if df.empty:
        return df
    return df[df["created_at"].fillna("").astype(str).str.slice(0, 10) == day]


def dashboard_stats(store: Store, on_date: Optional[date] = None) -> dict[str, Any]:
    """Headline numbers for one day (default: today)."""
    day = on_date.isoformat() if on_date else iso_today()
    sales = sales_frame(store)
    inv = inventory_frame(store)
    lines = _lines_frame(store)
    today = _on(sales, day)

    return {
        "date": day,
        "today_sales": round(float(today["total_amount"].sum()), 2) if not today.empty else 0.0,
        "total_sales": round(float(sales["total_amount"].sum()), 2) if not sales.empty else 0.0,
        "pending_sales": int((sales["status"] == "pending").sum()) if not sales.empty else 0,
        "total_customers": len(store.select("customers", columns=["id"])),
        "total_products": len(inv),
        "total_pieces_remaining": int(inv["total_pieces"].sum()) if not inv.empty else 0,
        "low_stock_products": int(inv["low_stock"].sum()) if not inv.empty else 0,
        "stock_sold_today": round(float(_on(lines, day)["quantity"].sum()), 3) if not lines.empty else 0.0,
        "today_expenses": total_expenses(store, start=day, end=day),
    }


def top_products(store: Store, limit: int = 5) -> pd.DataFrame:
    lines = _lines_frame(store)
    cols = ["product_id", "name", "kg_sold", "pieces_sold", "revenue", "stock_remaining"]
    if lines.empty:
        return pd.DataFrame(columns=cols)

    agg = (
        lines.groupby(["product_id", "name"], as_index=False)
        .agg(kg_sold=("quantity", "sum"), pieces_sold=("pieces_sold", "sum"), revenue=("total_price", "sum"))
    )
    inv = inventory_frame(store)[["id", "stock_quantity_kg"]].rename(
        columns={"id": "product_id", "stock_quantity_kg": "stock_remaining"}
    )
    agg = agg.merge(inv, on="product_id", how="left")
    agg["kg_sold"] = agg["kg_sold"].round(3)
    agg["revenue"] = agg["revenue"].round(2)
    return agg.sort_values("revenue", ascending=False).head(int(limit)).reset_index(drop=True)[cols]
