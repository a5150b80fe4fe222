from __future__ import annotations

import logging
import sqlite3
from datetime import date
from decimal import Decimal
from typing import Any, Optional

from core.db import q
from core.entities import DEFAULT_TOLERANCE_PCT, DiscrepancyResult
from core.errors import ReportFetchError
from core.normalize import (
    branch_from_row,
    movement_from_row,
    pos_from_row,
    product_from_row,
    production_detail_from_row,
    production_run_from_row,
    ready_from_row,
    tolerance_from_row,
)
from core.services.reconciliation import ReportWindow, reconcile
from core.services.report_cache import ReportCache
from core.utils import previous_day, to_date

logger = logging.getLogger(__name__)

READY_ROW_LIMIT = 1000


def _placeholders(n: int) -> str:
    return ",".join("?" for _ in range(n))


def _fetch(conn, start: date, end: date, branch_filter: Optional[str]) -> ReportWindow:
    branches = tuple(branch_from_row(r) for r in q(conn, "SELECT * FROM branches ORDER BY id"))

    branch_id = None
    if branch_filter:
        match = [b for b in branches if b.name == branch_filter or b.code == branch_filter]
        if not match:
            raise ValueError(f"Unknown branch {branch_filter!r}")
        branch_id = match[0].id

    # Day before start is loaded only to serve as "yesterday" for the first day.
    params: list[Any] = [previous_day(start).isoformat(), end.isoformat()]
    extra = ""
    if branch_id is not None:
        extra = " AND branch_id = ?"
        params.append(branch_id)
    # One extra row tells a full window apart from a truncated one.
    params.append(READY_ROW_LIMIT + 1)
    rows = q(
        conn,
        f"""
        SELECT * FROM ready
        WHERE tanggal_input BETWEEN ? AND ? {extra}
        ORDER BY tanggal_input ASC, id ASC
        LIMIT ?
        """,
        params,
    )
    if len(rows) > READY_ROW_LIMIT:
        raise ReportFetchError(
            f"Window too large (more than {READY_ROW_LIMIT} ready rows), narrow the date range or branch"
        )
    ready = tuple(ready_from_row(r) for r in rows)

    product_ids = sorted({r.product_id for r in ready})
    if not product_ids:
        return ReportWindow(start=start, end=end, branch_filter=branch_filter, branches=branches)

    ph = _placeholders(len(product_ids))
    products = tuple(
        product_from_row(r) for r in q(conn, f"SELECT * FROM products WHERE id IN ({ph})", product_ids)
    )

    # Every movement up to the end date: the latest one before the window still sets the opening balance.
    movements = tuple(
        movement_from_row(r)
        for r in q(
            conn,
            f"""
            SELECT * FROM gudang
            WHERE product_id IN ({ph}) AND substr(tanggal, 1, 10) <= ?
            ORDER BY tanggal ASC, id ASC
            """,
            [*product_ids, end.isoformat()],
        )
    )

    window_params = [start.isoformat(), end.isoformat(), *product_ids]
    pos = tuple(
        pos_from_row(r)
        for r in q(
            conn,
            f"SELECT * FROM esb_harian WHERE sales_date BETWEEN ? AND ? AND product_id IN ({ph})",
            window_params,
        )
    )
    runs = tuple(
        production_run_from_row(r)
        for r in q(
            conn,
            f"SELECT * FROM produksi WHERE tanggal_input BETWEEN ? AND ? AND product_id IN ({ph})",
            window_params,
        )
    )
    details = tuple(
        production_detail_from_row(r)
        for r in q(
            conn,
            f"SELECT * FROM produksi_detail WHERE tanggal_input BETWEEN ? AND ? AND item_id IN ({ph})",
            window_params,
        )
    )
    tolerances = tuple(
        tolerance_from_row(r)
        for r in q(conn, f"SELECT * FROM product_tolerances WHERE product_id IN ({ph})", product_ids)
    )

    return ReportWindow(
        start=start,
        end=end,
        branch_filter=branch_filter,
        branches=branches,
        products=products,
        movements=movements,
        ready=ready,
        pos=pos,
        production_runs=runs,
        production_details=details,
        tolerances=tolerances,
    )


def load_window(conn, start: Any, end: Any, branch_filter: Optional[str] = None) -> ReportWindow:
    """
    Read every input of a report for the inclusive [start, end] range.

    Either the complete window comes back or ReportFetchError is raised;
    there is no partial result.
    """
    start_d, end_d = to_date(start), to_date(end)
    if start_d > end_d:
        raise ReportFetchError(f"Start date {start_d} is after end date {end_d}")

    try:
        window = _fetch(conn, start_d, end_d, branch_filter)
    except sqlite3.Error as e:
        logger.exception("Report fetch failed for %s..%s", start_d, end_d)
        raise ReportFetchError(f"Failed to fetch report data: {e}") from e
    except (ValueError, TypeError, KeyError) as e:
        logger.exception("Malformed row while loading %s..%s", start_d, end_d)
        raise ReportFetchError(f"Malformed report data: {e}") from e

    logger.info(
        "Loaded window %s..%s branch=%s: %d ready, %d movements, %d esb, %d produksi",
        start_d, end_d, branch_filter or "all",
        len(window.ready), len(window.movements), len(window.pos), len(window.production_runs),
    )
    return window


def run_report(
    conn,
    start: Any,
    end: Any,
    branch_filter: Optional[str] = None,
    *,
    cache: Optional[ReportCache] = None,
    default_tolerance_pct: Decimal = DEFAULT_TOLERANCE_PCT,
) -> list[DiscrepancyResult]:
    key = (to_date(start), to_date(end), branch_filter or None)
    if cache is not None:
        hit = cache.get(key)
        if hit is not None:
            return hit

    window = load_window(conn, key[0], key[1], key[2])
    results = reconcile(window, default_tolerance_pct=default_tolerance_pct)

    if cache is not None:
        cache.put(key, results)
    return results
