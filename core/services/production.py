from __future__ import annotations

import logging
from dataclasses import dataclass
from decimal import Decimal
from typing import Any, Optional

from core.db import q, x
from core.entities import Recipe
from core.normalize import recipe_from_row
from core.utils import to_date, to_decimal

logger = logging.getLogger(__name__)


@dataclass
class ProductionResult:
    produksi_id: int
    total_conversion: Decimal
    detail_lines: int


def set_recipe_line(conn, *, product_id: int, item_id: int, grams_per_unit: Any) -> None:
    gramasi = to_decimal(grams_per_unit)
    if gramasi <= 0:
        raise ValueError("Gramasi must be > 0.")
    if int(product_id) == int(item_id):
        raise ValueError("A product can't be a component of itself.")
    x(
        conn,
        """
        INSERT INTO recipes (product_id, item_id, gramasi)
        VALUES (?, ?, ?)
        ON CONFLICT (product_id, item_id) DO UPDATE SET gramasi=excluded.gramasi
        """,
        (int(product_id), int(item_id), float(gramasi)),
    )


def remove_recipe_line(conn, *, product_id: int, item_id: int) -> None:
    x(conn, "DELETE FROM recipes WHERE product_id=? AND item_id=?", (int(product_id), int(item_id)))


def list_recipe(conn, product_id: int) -> list[Recipe]:
    rows = q(conn, "SELECT * FROM recipes WHERE product_id=? ORDER BY item_id", (int(product_id),))
    return [recipe_from_row(r) for r in rows]


def record_production_run(
    conn,
    *,
    product_id: int,
    branch: str,
    day: Any,
    quantity_produced: Any,
    conversion: Any = 1,
) -> ProductionResult:
    """
    Store a production run and explode its recipe into produksi_detail:

      total_konversi = jumlah_buat * konversi
      total_pakai    = jumlah_buat * gramasi   (per component)
    """
    qty = to_decimal(quantity_produced)
    konversi = to_decimal(conversion)
    if qty <= 0:
        raise ValueError("Jumlah buat must be > 0.")
    if konversi <= 0:
        raise ValueError("Konversi must be > 0.")
    branch = str(branch).strip()
    if not branch:
        raise ValueError("Branch is required.")

    iso_day = to_date(day).isoformat()
    total_konversi = qty * konversi
    recipe = list_recipe(conn, product_id)

    with conn:
        cur = conn.execute(
            """
            INSERT INTO produksi (product_id, branch, tanggal_input, jumlah_buat, konversi, total_konversi)
            VALUES (?, ?, ?, ?, ?, ?)
            """,
            (int(product_id), branch, iso_day, float(qty), float(konversi), float(total_konversi)),
        )
        produksi_id = int(cur.lastrowid)
        for line in recipe:
            conn.execute(
                """
                INSERT INTO produksi_detail (produksi_id, item_id, branch, tanggal_input, jumlah_buat, gramasi, total_pakai)
                VALUES (?, ?, ?, ?, ?, ?, ?)
                """,
                (
                    produksi_id, line.component_item_id, branch, iso_day,
                    float(qty), float(line.grams_per_unit), float(qty * line.grams_per_unit),
                ),
            )

    if not recipe:
        logger.warning("Production run %s for product %s has no recipe; no component usage recorded", produksi_id, product_id)
    return ProductionResult(produksi_id=produksi_id, total_conversion=total_konversi, detail_lines=len(recipe))


def delete_production_run(conn, produksi_id: int) -> None:
    # produksi_detail goes with it (ON DELETE CASCADE)
    x(conn, "DELETE FROM produksi WHERE id=?", (int(produksi_id),))


def list_production(conn, *, start: Any, end: Any, branch: Optional[str] = None):
    params: list[Any] = [to_date(start).isoformat(), to_date(end).isoformat()]
    extra = ""
    if branch:
        extra = " AND pr.branch = ?"
        params.append(branch)
    return q(
        conn,
        f"""
        SELECT pr.id, pr.tanggal_input, p.name AS product, pr.branch,
               pr.jumlah_buat, pr.konversi, pr.total_konversi
        FROM produksi pr
        JOIN products p ON p.id = pr.product_id
        WHERE pr.tanggal_input BETWEEN ? AND ? {extra}
        ORDER BY pr.tanggal_input DESC, pr.id DESC
        """,
        params,
    )


def list_production_detail(conn, *, start: Any, end: Any):
    return q(
        conn,
        """
        SELECT d.tanggal_input, p.name AS product, i.name AS item, d.branch,
               d.jumlah_buat, d.gramasi, d.total_pakai
        FROM produksi_detail d
        JOIN produksi pr ON pr.id = d.produksi_id
        JOIN products p ON p.id = pr.product_id
        JOIN products i ON i.id = d.item_id
        WHERE d.tanggal_input BETWEEN ? AND ?
        ORDER BY d.tanggal_input DESC, d.id DESC
        """,
        (to_date(start).isoformat(), to_date(end).isoformat()),
    )
