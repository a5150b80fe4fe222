from __future__ import annotations

import logging
from typing import Any, Optional

import pandas as pd

from core.db import q, x
from core.utils import to_date, to_decimal

logger = logging.getLogger(__name__)

ESB_IMPORT_COLUMNS = ("sales_date", "product", "branch", "qty_total")


# -------------------------
# Ready stock
# -------------------------

def upsert_ready(
    conn,
    *,
    product_id: int,
    branch_id: int,
    day: Any,
    on_hand: Any,
    waste: Any = 0,
) -> int:
    """
    One ready-stock snapshot per product/branch/day; re-entering a day replaces it.
    """
    on_hand_d = to_decimal(on_hand)
    waste_d = to_decimal(waste)
    if on_hand_d < 0 or waste_d < 0:
        raise ValueError("Ready and waste must be >= 0.")

    iso_day = to_date(day).isoformat()
    x(
        conn,
        """
        INSERT INTO ready (product_id, branch_id, tanggal_input, ready, waste)
        VALUES (?, ?, ?, ?, ?)
        ON CONFLICT (product_id, branch_id, tanggal_input)
        DO UPDATE SET ready=excluded.ready, waste=excluded.waste
        """,
        (int(product_id), int(branch_id), iso_day, float(on_hand_d), float(waste_d)),
    )
    rows = q(
        conn,
        "SELECT id FROM ready WHERE product_id=? AND branch_id=? AND tanggal_input=?",
        (int(product_id), int(branch_id), iso_day),
    )
    return int(rows[0]["id"])


def list_ready(conn, *, start: Any, end: Any, branch_id: Optional[int] = None):
    params: list[Any] = [to_date(start).isoformat(), to_date(end).isoformat()]
    extra = ""
    if branch_id is not None:
        extra = " AND r.branch_id = ?"
        params.append(int(branch_id))
    return q(
        conn,
        f"""
        SELECT r.id, r.tanggal_input, p.name AS product, br.name AS branch, r.ready, r.waste
        FROM ready r
        JOIN products p ON p.id = r.product_id
        JOIN branches br ON br.id = r.branch_id
        WHERE r.tanggal_input BETWEEN ? AND ? {extra}
        ORDER BY r.tanggal_input DESC, br.name, p.name
        """,
        params,
    )


# -------------------------
# ESB (point-of-sale) feed
# -------------------------

def record_esb(conn, *, day: Any, product_id: int, branch: str, quantity: Any) -> int:
    qty = to_decimal(quantity)
    if qty < 0:
        raise ValueError("ESB quantity must be >= 0.")
    branch = str(branch).strip()
    if not branch:
        raise ValueError("Branch is required.")

    iso_day = to_date(day).isoformat()
    x(
        conn,
        """
        INSERT INTO esb_harian (sales_date, product_id, branch, qty_total)
        VALUES (?, ?, ?, ?)
        ON CONFLICT (sales_date, product_id, branch)
        DO UPDATE SET qty_total=excluded.qty_total
        """,
        (iso_day, int(product_id), branch, float(qty)),
    )
    rows = q(
        conn,
        "SELECT id FROM esb_harian WHERE sales_date=? AND product_id=? AND branch=?",
        (iso_day, int(product_id), branch),
    )
    return int(rows[0]["id"])


def import_esb(conn, df: pd.DataFrame) -> dict:
    """
    Import an ESB export (columns: sales_date, product, branch, qty_total).

    Rows whose product or branch is unknown are reported back, not fatal.
    """
    missing = [c for c in ESB_IMPORT_COLUMNS if c not in df.columns]
    if missing:
        raise ValueError(f"Missing column(s): {', '.join(missing)}")

    products = {str(r["name"]).strip().lower(): int(r["id"]) for r in q(conn, "SELECT id, name FROM products")}
    branches = {str(r["name"]).strip() for r in q(conn, "SELECT name FROM branches")}

    imported = 0
    errors: list[str] = []
    for i, row in df.iterrows():
        line = int(i) + 2  # header is spreadsheet row 1
        product_id = products.get(str(row["product"]).strip().lower())
        branch = str(row["branch"]).strip()
        if product_id is None:
            errors.append(f"Row {line}: unknown product '{row['product']}'")
            continue
        if branch not in branches:
            errors.append(f"Row {line}: unknown branch '{branch}'")
            continue
        blank = [c for c in ("sales_date", "qty_total") if pd.isna(row[c]) or str(row[c]).strip() == ""]
        if blank:
            errors.append(f"Row {line}: missing {', '.join(blank)}")
            continue
        try:
            record_esb(conn, day=pd.to_datetime(row["sales_date"]).date(), product_id=product_id,
                       branch=branch, quantity=row["qty_total"])
            imported += 1
        except ValueError as e:
            errors.append(f"Row {line}: {e}")

    logger.info("ESB import: %d row(s) imported, %d rejected", imported, len(errors))
    return {"imported": imported, "errors": errors}


def list_esb(conn, *, start: Any, end: Any):
    return q(
        conn,
        """
        SELECT e.sales_date, p.name AS product, e.branch, e.qty_total
        FROM esb_harian e
        JOIN products p ON p.id = e.product_id
        WHERE e.sales_date BETWEEN ? AND ?
        ORDER BY e.sales_date DESC, e.branch, p.name
        """,
        (to_date(start).isoformat(), to_date(end).isoformat()),
    )
