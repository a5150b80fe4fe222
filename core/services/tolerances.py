from __future__ import annotations

from decimal import Decimal
from typing import Any, Optional

from core.db import q, x
from core.entities import DEFAULT_TOLERANCE_PCT, ToleranceSetting
from core.normalize import tolerance_from_row
from core.services.audit import log_audit
from core.utils import iso_now, to_decimal


def set_tolerance(conn, *, product_id: int, percentage: Any, user_name: Optional[str] = None) -> ToleranceSetting:
    pct = to_decimal(percentage)
    if pct < 0 or pct > 100:
        raise ValueError("Tolerance must be between 0 and 100 %.")

    old = get_tolerance(conn, product_id)
    x(
        conn,
        """
        INSERT INTO product_tolerances (product_id, tolerance_percentage, updated_at)
        VALUES (?, ?, ?)
        ON CONFLICT (product_id) DO UPDATE SET
          tolerance_percentage=excluded.tolerance_percentage,
          updated_at=excluded.updated_at
        """,
        (int(product_id), float(pct), iso_now()),
    )
    log_audit(
        conn,
        table_name="product_tolerances",
        record_id=int(product_id),
        action="UPDATE" if old is not None else "INSERT",
        user_name=user_name,
        old_values={"tolerance_percentage": str(old.tolerance_percentage)} if old else None,
        new_values={"tolerance_percentage": str(pct)},
    )
    return ToleranceSetting(product_id=int(product_id), tolerance_percentage=pct)


def get_tolerance(conn, product_id: int) -> Optional[ToleranceSetting]:
    rows = q(conn, "SELECT * FROM product_tolerances WHERE product_id=?", (int(product_id),))
    return tolerance_from_row(rows[0]) if rows else None


def effective_tolerance(conn, product_id: int, default: Decimal = DEFAULT_TOLERANCE_PCT) -> Decimal:
    t = get_tolerance(conn, product_id)
    return t.tolerance_percentage if t is not None else default


def list_tolerances(conn):
    """All products with their tolerance; products without a row show NULL (default applies)."""
    return q(
        conn,
        """
        SELECT p.id AS product_id, p.name AS product, p.sub_category,
               t.tolerance_percentage, t.updated_at
        FROM products p
        LEFT JOIN product_tolerances t ON t.product_id = p.id
        ORDER BY p.sub_category, p.name
        """,
    )
