from __future__ import annotations

import uuid
from datetime import datetime, date, timezone


def iso_today() -> str:
    return date.today().isoformat()


def iso_now() -> str:
    # Use UTC ISO timestamps for consistency.
    return datetime.now(timezone.utc).replace(microsecond=0).isoformat()


def new_id() -> str:
    return uuid.uuid4().hex


def round_kg(v: float) -> float:
    # Kg values are entered to the gram.
    return round(float(v), 3)


def round_money(v: float) -> float:
    return round(float(v), 2)
