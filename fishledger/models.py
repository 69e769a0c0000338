from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Optional

from fishledger.utils import round_kg, round_money

PAYMENT_METHODS = ("cash", "card", "transfer", "credit")
SALE_STATUSES = ("pending", "completed", "cancelled")
WALK_IN = "walk-in"


def _non_negative(name: str, v: float) -> None:
    if v < 0:
        raise ValueError(f"{name} must be >= 0.")


def normalize_customer_id(customer_id: Optional[str]) -> Optional[str]:
    if customer_id is None:
        return None
    s = str(customer_id).strip()
    if not s or s.lower() == WALK_IN:
        return None
    return s


def normalize_payment_method(method: Optional[str]) -> str:
    m = str(method or "cash").strip().lower()
    if m not in PAYMENT_METHODS:
        raise ValueError(f"Invalid payment method '{method}'. Use one of: {', '.join(PAYMENT_METHODS)}.")
    return m


def normalize_status(status: Optional[str], default: str = "completed") -> str:
    s = str(status or default).strip().lower()
    if s not in SALE_STATUSES:
        raise ValueError(f"Invalid sale status '{status}'. Use one of: {', '.join(SALE_STATUSES)}.")
    return s


@dataclass
class InventoryItem:
    id: str
    name: str
    size: Optional[str] = None
    cost_price_per_kg: float = 0.0
    selling_price_per_kg: float = 0.0
    stock_quantity_kg: float = 0.0
    total_pieces_supplied: int = 0
    total_pieces: int = 0
    total_kg_supplied: float = 0.0
    minimum_stock_kg: float = 0.0
    barcode: Optional[str] = None
    category: Optional[str] = None
    specie: Optional[str] = None
    created_at: Optional[str] = None
    updated_at: Optional[str] = None

    def __post_init__(self) -> None:
        if not str(self.name or "").strip():
            raise ValueError("Item name is required.")
        self.stock_quantity_kg = float(self.stock_quantity_kg or 0)
        self.total_pieces = int(self.total_pieces or 0)
        self.total_pieces_supplied = int(self.total_pieces_supplied or 0)
        _non_negative("Stock quantity (kg)", self.stock_quantity_kg)
        _non_negative("Total pieces", self.total_pieces)
        _non_negative("Cost price per kg", float(self.cost_price_per_kg or 0))
        _non_negative("Selling price per kg", float(self.selling_price_per_kg or 0))
        _non_negative("Minimum stock (kg)", float(self.minimum_stock_kg or 0))

    @property
    def is_low_stock(self) -> bool:
        return self.stock_quantity_kg <= float(self.minimum_stock_kg or 0)

    @classmethod
    def from_row(cls, row: dict[str, Any]) -> "InventoryItem":
        return cls(**{k: row[k] for k in cls.__dataclass_fields__ if k in row})


@dataclass
class Customer:
    id: str
    name: str
    phone: Optional[str] = None
    email: Optional[str] = None
    address: Optional[str] = None
    credit_limit: float = 0.0
    notes: Optional[str] = None

    @classmethod
    def from_row(cls, row: dict[str, Any]) -> "Customer":
        return cls(**{k: row[k] for k in cls.__dataclass_fields__ if k in row})


@dataclass
class SaleItem:
    id: str
    sale_id: str
    product_id: str
    quantity: float
    unit_price: float
    total_price: float
    pieces_sold: int = 0
    product_name: Optional[str] = None

    def __post_init__(self) -> None:
        self.quantity = float(self.quantity)
        self.pieces_sold = int(self.pieces_sold or 0)
        _non_negative("Quantity", self.quantity)
        _non_negative("Pieces sold", self.pieces_sold)

    @classmethod
    def from_row(cls, row: dict[str, Any]) -> "SaleItem":
        inv = row.get("inventory") or {}
        return cls(
            id=row["id"],
            sale_id=row["sale_id"],
            product_id=row["product_id"],
            quantity=row["quantity"],
            unit_price=row["unit_price"],
            total_price=row["total_price"],
            pieces_sold=row.get("pieces_sold") or 0,
            product_name=inv.get("name"),
        )


@dataclass
class Sale:
    id: str
    payment_method: str
    status: str
    total_amount: float
    amount_paid: float = 0.0
    discount: float = 0.0
    customer_id: Optional[str] = None
    customer_name: Optional[str] = None
    created_at: Optional[str] = None
    updated_at: Optional[str] = None
    items: list[SaleItem] = field(default_factory=list)

    def __post_init__(self) -> None:
        self.payment_method = normalize_payment_method(self.payment_method)
        self.status = normalize_status(self.status)

    @property
    def balance(self) -> float:
        return round_money(float(self.total_amount) - float(self.amount_paid or 0))

    @classmethod
    def from_row(cls, row: dict[str, Any]) -> "Sale":
        cust = row.get("customers") or {}
        return cls(
            id=row["id"],
            payment_method=row["payment_method"],
            status=row["status"],
            total_amount=float(row["total_amount"] or 0),
            amount_paid=float(row.get("amount_paid") or 0),
            discount=float(row.get("discount") or 0),
            customer_id=row.get("customer_id"),
            customer_name=cust.get("name"),
            created_at=row.get("created_at"),
            updated_at=row.get("updated_at"),
            items=[SaleItem.from_row(r) for r in row.get("sale_items") or []],
        )


@dataclass
class SaleItemInput:
    product_id: str
    quantity: float
    unit_price: float
    pieces_sold: int = 0
    id: Optional[str] = None  # present on items that existed before an edit; ignored

    def __post_init__(self) -> None:
        if not str(self.product_id or "").strip():
            raise ValueError("Every item needs a product.")
        self.quantity = round_kg(self.quantity)
        self.unit_price = float(self.unit_price)
        self.pieces_sold = int(self.pieces_sold or 0)
        _non_negative("Quantity", self.quantity)
        _non_negative("Unit price", self.unit_price)
        _non_negative("Pieces sold", self.pieces_sold)

    @property
    def line_total(self) -> float:
        return self.quantity * self.unit_price


@dataclass
class SaleInput:
    payment_method: str
    items: list[SaleItemInput]
    customer_id: Optional[str] = None
    status: str = "completed"
    discount: float = 0.0
    total_amount: Optional[float] = None
    amount_paid: float = 0.0
    created_at: Optional[str] = None

    def __post_init__(self) -> None:
        if not self.items:
            raise ValueError("Please add at least one item to the sale.")
        self.items = [i if isinstance(i, SaleItemInput) else SaleItemInput(**i) for i in self.items]
        self.customer_id = normalize_customer_id(self.customer_id)
        self.payment_method = normalize_payment_method(self.payment_method)
        self.status = normalize_status(self.status)
        self.discount = float(self.discount or 0)
        self.amount_paid = float(self.amount_paid or 0)
        _non_negative("Discount", self.discount)
        _non_negative("Amount paid", self.amount_paid)
        if self.total_amount is None:
            self.total_amount = round_money(self.subtotal - self.discount)
        self.total_amount = float(self.total_amount)

    @property
    def subtotal(self) -> float:
        return sum(i.line_total for i in self.items)
