"""
Warehouse ledger (gudang) write side.

Invariants kept here, not in the reporting code:
- running_total of each row is the cumulative (jumlah_masuk - jumlah_keluar)
  of its (product_id, cabang) key in (tanggal, id) order.
- Locked rows (referenced by a stock count, PO or transfer) are never edited
  or deleted, and nothing may be written before them.
"""

from __future__ import annotations

import logging
from datetime import datetime
from decimal import Decimal
from typing import Any, Optional

from core.db import q
from core.entities import InventoryMovement
from core.errors import LockedMovementError, PeriodLockedError
from core.normalize import movement_from_row
from core.services.audit import log_audit
from core.utils import ZERO, iso_now, to_datetime, to_decimal

logger = logging.getLogger(__name__)

SOURCE_TYPES = ("manual", "PO", "stock_opname_batch", "transfer")


def _fmt_ts(ts: Any) -> str:
    # Fixed-width naive ISO so tanggal compares correctly as text.
    return to_datetime(ts).replace(microsecond=0).isoformat(timespec="seconds")


def _validate_quantities(quantity_in: Any, quantity_out: Any) -> tuple[Decimal, Decimal]:
    qin = to_decimal(quantity_in)
    qout = to_decimal(quantity_out)
    if qin < 0 or qout < 0:
        raise ValueError("Quantities must be >= 0.")
    if qin == 0 and qout == 0:
        raise ValueError("Please enter either Jumlah Masuk or Jumlah Keluar.")
    return qin, qout


def first_lock_after(conn, product_id: int, branch_code: str, ts: Any) -> Optional[InventoryMovement]:
    rows = q(
        conn,
        """
        SELECT * FROM gudang
        WHERE product_id=? AND cabang=? AND tanggal > ? AND is_locked=1
        ORDER BY tanggal ASC, id ASC
        LIMIT 1
        """,
        (int(product_id), str(branch_code), _fmt_ts(ts)),
    )
    return movement_from_row(rows[0]) if rows else None


def _check_period_open(conn, product_id: int, branch_code: str, ts: Any) -> None:
    lock = first_lock_after(conn, product_id, branch_code, ts)
    if lock is not None:
        logger.warning(
            "Rejected ledger write for product=%s cabang=%s at %s: locked by %s from %s",
            product_id, branch_code, _fmt_ts(ts), lock.locked_by, lock.timestamp,
        )
        raise PeriodLockedError(lock.locked_by or "unknown", lock.timestamp)


def _begin_write(conn) -> None:
    # The lock check and the write that follows must see the same ledger.
    conn.execute("BEGIN IMMEDIATE")


def _recalculate(conn, product_id: int, branch_code: str) -> Decimal:
    rows = conn.execute(
        """
        SELECT id, jumlah_masuk, jumlah_keluar FROM gudang
        WHERE product_id=? AND cabang=?
        ORDER BY tanggal ASC, id ASC
        """,
        (int(product_id), str(branch_code)),
    ).fetchall()

    total = ZERO
    for r in rows:
        total += to_decimal(r["jumlah_masuk"]) - to_decimal(r["jumlah_keluar"])
        conn.execute("UPDATE gudang SET running_total=? WHERE id=?", (float(total), int(r["id"])))
    return total


def recalculate_running_totals(conn, product_id: int, branch_code: str) -> Decimal:
    """Rebuild running_total for one key; returns the closing balance."""
    with conn:
        return _recalculate(conn, product_id, branch_code)


def get_movement(conn, movement_id: int) -> Optional[InventoryMovement]:
    rows = q(conn, "SELECT * FROM gudang WHERE id=?", (int(movement_id),))
    return movement_from_row(rows[0]) if rows else None


def record_movement(
    conn,
    *,
    product_id: int,
    branch_code: str,
    timestamp: Any,
    quantity_in: Any = 0,
    quantity_out: Any = 0,
    taker: Optional[str] = None,
    source_type: str = "manual",
    source_reference: Optional[str] = None,
    user_name: Optional[str] = None,
) -> int:
    qin, qout = _validate_quantities(quantity_in, quantity_out)
    if source_type not in SOURCE_TYPES:
        raise ValueError(f"Invalid source_type {source_type!r}.")
    branch_code = str(branch_code).strip()
    if not branch_code:
        raise ValueError("Branch is required.")

    ts = _fmt_ts(timestamp)
    with conn:
        _begin_write(conn)
        _check_period_open(conn, product_id, branch_code, timestamp)
        cur = conn.execute(
            """
            INSERT INTO gudang (
                product_id, cabang, tanggal, jumlah_masuk, jumlah_keluar, running_total,
                nama_pengambil_barang, source_type, source_reference, created_by
            ) VALUES (?, ?, ?, ?, ?, 0, ?, ?, ?, ?)
            """,
            (
                int(product_id), branch_code, ts, float(qin), float(qout),
                (taker or "").strip() or user_name, source_type, source_reference, user_name,
            ),
        )
        movement_id = int(cur.lastrowid)
        _recalculate(conn, product_id, branch_code)

    log_audit(
        conn,
        table_name="gudang",
        record_id=movement_id,
        action="INSERT",
        user_name=user_name,
        new_values={"product_id": product_id, "cabang": branch_code, "tanggal": ts,
                    "jumlah_masuk": str(qin), "jumlah_keluar": str(qout), "source_type": source_type},
    )
    logger.info("Ledger +%s -%s product=%s cabang=%s at %s (id=%s)", qin, qout, product_id, branch_code, ts, movement_id)
    return movement_id


def _require_editable(conn, movement_id: int) -> InventoryMovement:
    m = get_movement(conn, movement_id)
    if m is None:
        raise ValueError("Movement not found.")
    if m.is_locked:
        raise LockedMovementError(movement_id, f"locked by {m.locked_by}")
    if m.is_protected:
        raise LockedMovementError(movement_id, f"{m.source_type} protected")
    return m


def update_movement(
    conn,
    movement_id: int,
    *,
    quantity_in: Any,
    quantity_out: Any,
    timestamp: Any = None,
    taker: Optional[str] = None,
    user_name: Optional[str] = None,
) -> None:
    qin, qout = _validate_quantities(quantity_in, quantity_out)

    with conn:
        _begin_write(conn)
        m = _require_editable(conn, movement_id)
        new_ts = to_datetime(timestamp) if timestamp is not None else m.timestamp
        # Changing a row shifts every running total after the earlier of its old/new position.
        _check_period_open(conn, m.product_id, m.branch_code, min(m.timestamp, new_ts))
        conn.execute(
            """
            UPDATE gudang
            SET tanggal=?, jumlah_masuk=?, jumlah_keluar=?, nama_pengambil_barang=COALESCE(?, nama_pengambil_barang)
            WHERE id=?
            """,
            (_fmt_ts(new_ts), float(qin), float(qout), (taker or "").strip() or None, int(movement_id)),
        )
        _recalculate(conn, m.product_id, m.branch_code)

    log_audit(
        conn,
        table_name="gudang",
        record_id=movement_id,
        action="UPDATE",
        user_name=user_name,
        old_values={"tanggal": _fmt_ts(m.timestamp), "jumlah_masuk": str(m.quantity_in), "jumlah_keluar": str(m.quantity_out)},
        new_values={"tanggal": _fmt_ts(new_ts), "jumlah_masuk": str(qin), "jumlah_keluar": str(qout)},
    )


def delete_movement(conn, movement_id: int, *, user_name: Optional[str] = None) -> None:
    with conn:
        _begin_write(conn)
        m = _require_editable(conn, movement_id)
        _check_period_open(conn, m.product_id, m.branch_code, m.timestamp)
        conn.execute("DELETE FROM gudang WHERE id=?", (int(movement_id),))
        _recalculate(conn, m.product_id, m.branch_code)

    log_audit(
        conn,
        table_name="gudang",
        record_id=movement_id,
        action="DELETE",
        user_name=user_name,
        old_values={"tanggal": _fmt_ts(m.timestamp), "jumlah_masuk": str(m.quantity_in), "jumlah_keluar": str(m.quantity_out)},
    )


def delete_movements(conn, movement_ids: list[int], *, user_name: Optional[str] = None) -> dict:
    """
    Bulk delete from the ledger page: locked/protected rows are skipped, not fatal.
    """
    deleted: list[int] = []
    skipped: list[int] = []
    for mid in movement_ids:
        try:
            delete_movement(conn, int(mid), user_name=user_name)
            deleted.append(int(mid))
        except (LockedMovementError, PeriodLockedError):
            skipped.append(int(mid))
    return {"deleted": deleted, "skipped": skipped}


def lock_movements(conn, *, product_id: int, branch_code: str, up_to: Any, locked_by: str) -> int:
    """
    Freeze every movement of the key at or before ``up_to`` (stock-count batch,
    PO receipt or transfer). Returns the number of rows newly locked.
    """
    if not str(locked_by).strip():
        raise ValueError("locked_by is required.")
    with conn:
        cur = conn.execute(
            """
            UPDATE gudang
            SET is_locked=1, locked_by=?, locked_at=?
            WHERE product_id=? AND cabang=? AND tanggal <= ? AND is_locked=0
            """,
            (str(locked_by).strip(), iso_now(), int(product_id), str(branch_code), _fmt_ts(up_to)),
        )
        n = int(cur.rowcount)
    logger.info("Locked %d movement(s) product=%s cabang=%s up to %s by %s", n, product_id, branch_code, _fmt_ts(up_to), locked_by)
    return n


def list_movements(
    conn,
    *,
    product_id: Optional[int] = None,
    branch_code: Optional[str] = None,
    start: Any = None,
    end: Any = None,
    limit: int = 1000,
) -> list[InventoryMovement]:
    where = ["1=1"]
    params: list[Any] = []
    if product_id is not None:
        where.append("product_id=?")
        params.append(int(product_id))
    if branch_code:
        where.append("cabang=?")
        params.append(str(branch_code))
    if start is not None:
        where.append("tanggal >= ?")
        params.append(_fmt_ts(start))
    if end is not None:
        # inclusive end date: everything before the next midnight
        where.append("substr(tanggal, 1, 10) <= ?")
        params.append(to_datetime(end).date().isoformat())
    params.append(int(limit))

    rows = q(
        conn,
        f"""
        SELECT * FROM gudang
        WHERE {' AND '.join(where)}
        ORDER BY tanggal DESC, id DESC
        LIMIT ?
        """,
        params,
    )
    return [movement_from_row(r) for r in rows]


def current_balance(conn, product_id: int, branch_code: str, as_of: Optional[datetime] = None) -> Decimal:
    sql = "SELECT running_total FROM gudang WHERE product_id=? AND cabang=?"
    params: list[Any] = [int(product_id), str(branch_code)]
    if as_of is not None:
        sql += " AND tanggal <= ?"
        params.append(_fmt_ts(as_of))
    sql += " ORDER BY tanggal DESC, id DESC LIMIT 1"
    rows = q(conn, sql, params)
    return to_decimal(rows[0]["running_total"]) if rows else ZERO
