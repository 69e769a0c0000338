"""
In-process row change feed.

The store publishes one event per written row; views subscribe to the tables
they render and re-fetch when something changes.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Callable, Optional

from fishledger.log import get_logger

log = get_logger("events")

INSERT = "INSERT"
UPDATE = "UPDATE"
DELETE = "DELETE"


@dataclass(frozen=True)
class RowEvent:
    event_type: str
    table: str
    new: dict[str, Any] = field(default_factory=dict)
    old: dict[str, Any] = field(default_factory=dict)


Listener = Callable[[RowEvent], None]


class ChangeFeed:
    def __init__(self) -> None:
        self._subs: dict[int, tuple[Optional[str], Optional[str], Listener]] = {}
        self._next = 1

    def subscribe(
        self,
        listener: Listener,
        *,
        table: Optional[str] = None,
        event_type: Optional[str] = None,
    ) -> int:
        """Register a listener; ``table``/``event_type`` of None match everything."""
        token = self._next
        self._next += 1
        self._subs[token] = (table, event_type, listener)
        return token

    def unsubscribe(self, token: int) -> None:
        self._subs.pop(token, None)

    def publish(self, event: RowEvent) -> None:
        for table, event_type, listener in list(self._subs.values()):
            if table is not None and table != event.table:
                continue
            if event_type is not None and event_type != event.event_type:
                continue
            try:
                listener(event)
            except Exception:
                # A broken view must not fail the write that triggered it.
                log.exception("Change listener failed for %s %s", event.event_type, event.table)
