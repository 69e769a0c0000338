"""
Table-level persistence used by the services.

Store wraps a sqlite3 connection with the five calls the ledger needs
(select / insert / update / delete / upsert). Each call commits on its own;
there is no transaction spanning calls.

Filters are plain dicts: a scalar value means equality, a list/tuple/set
means ``IN``.
"""

from __future__ import annotations

import sqlite3
from pathlib import Path
from typing import Any, Iterable, Optional

from fishledger.config import get_settings
from fishledger.db import connect, ensure_schema, get_conn, table_columns
from fishledger.errors import StorageFailure
from fishledger.events import ChangeFeed, RowEvent, INSERT, UPDATE, DELETE
from fishledger.log import configure, get_logger
from fishledger.utils import iso_now, new_id

log = get_logger("store")

# (parent table, related table) -> (kind, local column, remote column)
RELATIONS: dict[tuple[str, str], tuple[str, str, str]] = {
    ("sales", "sale_items"): ("many", "id", "sale_id"),
    ("sales", "customers"): ("one", "customer_id", "id"),
    ("sale_items", "inventory"): ("one", "product_id", "id"),
    ("sale_items", "sales"): ("one", "sale_id", "id"),
    ("inventory", "stock_updates"): ("many", "id", "inventory_id"),
    ("stock_updates", "inventory"): ("one", "inventory_id", "id"),
    ("customers", "sales"): ("many", "id", "customer_id"),
}


def _is_multi(v: Any) -> bool:
    return isinstance(v, (list, tuple, set, frozenset))


def _database_key(conn: sqlite3.Connection) -> str:
    # (seq, name, file) per attached database; file is "" for in-memory ones.
    for row in conn.execute("PRAGMA database_list;").fetchall():
        if row[1] == "main" and row[2]:
            return str(row[2])
    return f"memory:{new_id()}"


class Store:
    def __init__(self, conn: sqlite3.Connection, *, feed: Optional[ChangeFeed] = None):
        self.conn = conn
        self.feed = feed if feed is not None else ChangeFeed()
        self._cols: dict[str, list[str]] = {}
        # Cache key: the database file, so every Store over one database shares entries.
        self.key = _database_key(conn)

    # -------------------------
    # helpers
    # -------------------------

    def columns(self, table: str) -> list[str]:
        if table not in self._cols:
            cols = table_columns(self.conn, table)
            if not cols:
                raise StorageFailure("schema", f"unknown table '{table}'")
            self._cols[table] = cols
        return self._cols[table]

    def _check_cols(self, table: str, cols: Iterable[str]) -> None:
        known = set(self.columns(table))
        bad = [c for c in cols if c not in known]
        if bad:
            raise StorageFailure("schema", f"unknown column(s) {', '.join(bad)} on '{table}'")

    def _where(self, table: str, filters: Optional[dict[str, Any]]) -> tuple[str, list[Any]]:
        if not filters:
            return "", []
        self._check_cols(table, filters.keys())
        parts: list[str] = []
        params: list[Any] = []
        for col, val in filters.items():
            if _is_multi(val):
                vals = list(val)
                parts.append(f"{col} IN ({', '.join('?' for _ in vals)})")
                params.extend(vals)
            elif val is None:
                parts.append(f"{col} IS NULL")
            else:
                parts.append(f"{col} = ?")
                params.append(val)
        return " WHERE " + " AND ".join(parts), params

    @staticmethod
    def _has_empty_in(filters: Optional[dict[str, Any]]) -> bool:
        return bool(filters) and any(_is_multi(v) and not v for v in filters.values())

    def _fail(self, operation: str, table: str, exc: sqlite3.Error) -> StorageFailure:
        try:
            self.conn.rollback()
        except sqlite3.Error:
            pass
        log.error("%s on %s failed: %s", operation, table, exc)
        return StorageFailure(f"{operation} {table}", str(exc))

    def _publish(self, event_type: str, table: str, new: Optional[dict] = None, old: Optional[dict] = None) -> None:
        self.feed.publish(RowEvent(event_type=event_type, table=table, new=new or {}, old=old or {}))

    # -------------------------
    # reads
    # -------------------------

    def select(
        self,
        table: str,
        filters: Optional[dict[str, Any]] = None,
        *,
        columns: Optional[list[str]] = None,
        order_by: Optional[str] = None,
        desc: bool = False,
        limit: Optional[int] = None,
        embed: Optional[dict[str, Any]] = None,
    ) -> list[dict[str, Any]]:
        """
        Return matching rows as dicts.

        ``embed`` maps a related table to its own (nested) embed spec, e.g.
        ``{"customers": None, "sale_items": {"inventory": None}}``. One-to-one
        relations land as a dict (or None), one-to-many as a list.
        """
        if self._has_empty_in(filters):
            return []

        cols = list(columns) if columns else ["*"]
        if columns:
            self._check_cols(table, cols)
            # Embedding needs the join keys even if the caller did not ask for them.
            for rel in (embed or {}):
                _, local, _ = self._relation(table, rel)
                if local not in cols:
                    cols.append(local)
        where, params = self._where(table, filters)
        sql = f"SELECT {', '.join(cols)} FROM {table}{where}"
        if order_by:
            self._check_cols(table, [order_by])
            sql += f" ORDER BY {order_by} {'DESC' if desc else 'ASC'}"
        if limit is not None:
            sql += f" LIMIT {int(limit)}"

        try:
            rows = [dict(r) for r in self.conn.execute(sql, params).fetchall()]
        except sqlite3.Error as e:
            raise self._fail("select", table, e) from e

        for rel, nested in (embed or {}).items():
            self._embed(table, rows, rel, nested)
        return rows

    def _relation(self, table: str, rel: str) -> tuple[str, str, str]:
        try:
            return RELATIONS[(table, rel)]
        except KeyError:
            raise StorageFailure("select", f"no relationship between '{table}' and '{rel}'") from None

    def _embed(self, table: str, rows: list[dict], rel: str, nested: Optional[dict]) -> None:
        kind, local, remote = self._relation(table, rel)
        keys = sorted({r[local] for r in rows if r.get(local) is not None})
        related = self.select(rel, {remote: keys}, embed=nested) if keys else []
        if kind == "one":
            by_key = {r[remote]: r for r in related}
            for r in rows:
                r[rel] = by_key.get(r.get(local))
        else:
            grouped: dict[Any, list[dict]] = {}
            for rr in related:
                grouped.setdefault(rr[remote], []).append(rr)
            for r in rows:
                r[rel] = grouped.get(r.get(local), [])

    def get(self, table: str, row_id: str, **kwargs: Any) -> Optional[dict[str, Any]]:
        rows = self.select(table, {"id": row_id}, **kwargs)
        return rows[0] if rows else None

    # -------------------------
    # writes
    # -------------------------

    def _stamp(self, table: str, row: dict[str, Any], *, creating: bool) -> dict[str, Any]:
        cols = self.columns(table)
        now = iso_now()
        out = dict(row)
        if creating:
            if not out.get("id"):
                out["id"] = new_id()
            if "created_at" in cols and not out.get("created_at"):
                out["created_at"] = now
        if "updated_at" in cols and "updated_at" not in row:
            out["updated_at"] = now
        return out

    def _insert_stmt(self, table: str, row: dict[str, Any]) -> tuple[str, list[Any]]:
        self._check_cols(table, row.keys())
        cols = list(row.keys())
        sql = f"INSERT INTO {table} ({', '.join(cols)}) VALUES ({', '.join('?' for _ in cols)})"
        return sql, [row[c] for c in cols]

    def insert(self, table: str, rows: list[dict[str, Any]]) -> list[dict[str, Any]]:
        if not rows:
            return []
        stamped = [self._stamp(table, r, creating=True) for r in rows]
        stmts = [self._insert_stmt(table, r) for r in stamped]
        try:
            for sql, params in stmts:
                self.conn.execute(sql, params)
            self.conn.commit()
        except sqlite3.Error as e:
            raise self._fail("insert", table, e) from e

        ids = [r["id"] for r in stamped]
        by_id = {r["id"]: r for r in self.select(table, {"id": ids})}
        out = [by_id[i] for i in ids if i in by_id]
        for r in out:
            self._publish(INSERT, table, new=r)
        log.debug("inserted %d row(s) into %s", len(out), table)
        return out

    def update(self, table: str, filters: dict[str, Any], patch: dict[str, Any]) -> list[dict[str, Any]]:
        if not filters:
            raise StorageFailure(f"update {table}", "refusing to update without a filter")
        before = self.select(table, filters)
        if not before:
            return []
        patch = self._stamp(table, patch, creating=False)
        self._check_cols(table, patch.keys())
        ids = [r["id"] for r in before]
        sets = ", ".join(f"{c} = ?" for c in patch)
        try:
            self.conn.execute(
                f"UPDATE {table} SET {sets} WHERE id IN ({', '.join('?' for _ in ids)})",
                list(patch.values()) + ids,
            )
            self.conn.commit()
        except sqlite3.Error as e:
            raise self._fail("update", table, e) from e

        old_by_id = {r["id"]: r for r in before}
        after = self.select(table, {"id": ids})
        for r in after:
            self._publish(UPDATE, table, new=r, old=old_by_id.get(r["id"]))
        return after

    def delete(self, table: str, filters: dict[str, Any]) -> list[dict[str, Any]]:
        if not filters:
            raise StorageFailure(f"delete {table}", "refusing to delete without a filter")
        before = self.select(table, filters)
        if not before:
            return []
        ids = [r["id"] for r in before]
        try:
            self.conn.execute(
                f"DELETE FROM {table} WHERE id IN ({', '.join('?' for _ in ids)})",
                ids,
            )
            self.conn.commit()
        except sqlite3.Error as e:
            raise self._fail("delete", table, e) from e

        for r in before:
            self._publish(DELETE, table, old=r)
        return before

    def upsert(self, table: str, rows: list[dict[str, Any]]) -> list[dict[str, Any]]:
        """
        Insert-or-update by primary key, as one batch.

        Rows for existing ids only need the columns being changed; rows for
        new ids must carry every NOT NULL column.
        """
        if not rows:
            return []
        ids = [r.get("id") for r in rows]
        if any(i is None for i in ids):
            raise StorageFailure(f"upsert {table}", "every row needs an id")

        old_by_id = {r["id"]: r for r in self.select(table, {"id": ids})}
        stmts: list[tuple[str, list[Any]]] = []
        for row in rows:
            if row["id"] in old_by_id:
                patch = self._stamp(table, {k: v for k, v in row.items() if k != "id"}, creating=False)
                self._check_cols(table, patch.keys())
                sets = ", ".join(f"{c} = ?" for c in patch)
                stmts.append((f"UPDATE {table} SET {sets} WHERE id = ?", list(patch.values()) + [row["id"]]))
            else:
                stmts.append(self._insert_stmt(table, self._stamp(table, row, creating=True)))
        try:
            for sql, params in stmts:
                self.conn.execute(sql, params)
            self.conn.commit()
        except sqlite3.Error as e:
            raise self._fail("upsert", table, e) from e

        after = self.select(table, {"id": ids})
        for r in after:
            old = old_by_id.get(r["id"])
            self._publish(UPDATE if old else INSERT, table, new=r, old=old)
        log.debug("upserted %d row(s) into %s", len(after), table)
        return after


def open_store(db_path: Optional[Path | str] = None, *, feed: Optional[ChangeFeed] = None) -> Store:
    """
    Store over ``db_path``, or over the configured database when omitted
    (shared connection cached by Streamlit).
    """
    if db_path is None:
        settings = get_settings()
        configure(settings.log_level)
        conn = get_conn(settings.db_path)
    else:
        conn = connect(db_path)
    ensure_schema(conn)
    return Store(conn, feed=feed)
