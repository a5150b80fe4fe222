"""
Stock reconciliation ("selisih").

For every ready-stock snapshot in the window:

    keluar_form = (yesterday_balance + today_inbound) - (today_balance + waste) + production_offset
    selisih     = esb - keluar_form + component_usage

and the selisih is graded against a tolerance band of +/- (esb * pct / 100).
component_usage is the stored produksi_detail total_pakai; recipes are only
read when a production run is recorded.

Everything here is a pure function over already-loaded entities; loading the
window lives in ``core.services.report_data``.
"""

from __future__ import annotations

import logging
from collections import defaultdict
from dataclasses import dataclass
from datetime import date
from decimal import Decimal
from typing import Iterable, Optional

from core.entities import (
    Branch,
    DEFAULT_TOLERANCE_PCT,
    DiscrepancyResult,
    InventoryMovement,
    PointOfSaleConsumption,
    Product,
    ProductionDetail,
    ProductionRun,
    ReadyStock,
    Status,
    ToleranceSetting,
)
from core.utils import ZERO, previous_day

logger = logging.getLogger(__name__)

HUNDRED = Decimal("100")


@dataclass(frozen=True)
class ReportWindow:
    start: date
    end: date
    branch_filter: Optional[str] = None
    branches: tuple[Branch, ...] = ()
    products: tuple[Product, ...] = ()
    movements: tuple[InventoryMovement, ...] = ()
    ready: tuple[ReadyStock, ...] = ()
    pos: tuple[PointOfSaleConsumption, ...] = ()
    production_runs: tuple[ProductionRun, ...] = ()
    production_details: tuple[ProductionDetail, ...] = ()
    tolerances: tuple[ToleranceSetting, ...] = ()


# -------------------------
# Running balance
# -------------------------

def resolve_balance(
    movements: Iterable[InventoryMovement],
    product_id: int,
    branch_code: Optional[str],
    target_date: date,
) -> Decimal:
    """
    Running total of the latest movement for (product_id, branch_code) whose
    ledger date is on or before target_date. Same-day ties go to the latest
    timestamp. No movement (or no branch mapping) resolves to 0.
    """
    if not branch_code:
        return ZERO

    latest: Optional[tuple] = None
    latest_total = ZERO
    for pos, m in enumerate(movements):
        if m.product_id != product_id or m.branch_code != branch_code:
            continue
        if m.ledger_date > target_date:
            continue
        # later timestamp wins; equal timestamps fall back to insertion id, then input order
        rank = (m.timestamp, m.id if m.id is not None else -1, pos)
        if latest is None or rank > latest:
            latest = rank
            latest_total = m.running_total
    return latest_total


def inbound_on(
    movements: Iterable[InventoryMovement],
    product_id: int,
    branch_code: Optional[str],
    day: date,
) -> Decimal:
    if not branch_code:
        return ZERO
    return sum(
        (
            m.quantity_in
            for m in movements
            if m.product_id == product_id and m.branch_code == branch_code and m.ledger_date == day
        ),
        ZERO,
    )


# -------------------------
# Keluar form / selisih
# -------------------------

def implied_consumption(
    *,
    yesterday_balance: Decimal,
    today_inbound: Decimal,
    today_balance: Decimal,
    waste: Decimal,
    production_offset: Decimal = ZERO,
) -> Decimal:
    return (yesterday_balance + today_inbound) - (today_balance + waste) + production_offset


def keluar_form(
    today: ReadyStock,
    yesterday: Optional[ReadyStock],
    movements: Iterable[InventoryMovement],
    branch_code: Optional[str],
    production_offset: Decimal = ZERO,
) -> Decimal:
    """
    Implied consumption for one ready-stock snapshot.

    Without a ready-stock row for the previous day the opening balance is 0
    (first day with history).
    """
    movements = tuple(movements)
    d = today.date

    if yesterday is None:
        yesterday_balance = ZERO
    else:
        yesterday_balance = yesterday.on_hand_quantity + resolve_balance(
            movements, today.product_id, branch_code, previous_day(d)
        )

    today_balance = today.on_hand_quantity + resolve_balance(movements, today.product_id, branch_code, d)

    return implied_consumption(
        yesterday_balance=yesterday_balance,
        today_inbound=inbound_on(movements, today.product_id, branch_code, d),
        today_balance=today_balance,
        waste=today.waste_quantity,
        production_offset=production_offset,
    )


def discrepancy(actual: Decimal, implied: Decimal, component_usage: Decimal = ZERO) -> Decimal:
    return actual - implied + component_usage


def tolerance_value(actual: Decimal, tolerance_pct: Decimal = DEFAULT_TOLERANCE_PCT) -> Decimal:
    return actual * (tolerance_pct / HUNDRED)


def classify(selisih: Decimal, tol: Decimal) -> Status:
    if abs(selisih) <= tol:
        return Status.OK
    if selisih < -tol:
        return Status.KURANG
    return Status.LEBIH


# -------------------------
# Whole window
# -------------------------

class _Index:
    """Lookups over one window, built once per reconcile() call."""

    def __init__(self, window: ReportWindow):
        self.branches = {b.id: b for b in window.branches}
        self.products = {p.id: p for p in window.products}
        self.tolerances = {t.product_id: t.tolerance_percentage for t in window.tolerances}

        self.ready: dict[tuple[int, int, date], ReadyStock] = {}
        for r in window.ready:
            self.ready[(r.product_id, r.branch_id, r.date)] = r

        self.movements: dict[tuple[int, str], list[InventoryMovement]] = defaultdict(list)
        for m in window.movements:
            self.movements[(m.product_id, m.branch_code)].append(m)

        self.pos: dict[tuple[date, int, str], Decimal] = defaultdict(lambda: ZERO)
        for e in window.pos:
            self.pos[(e.date, e.product_id, e.branch)] += e.quantity

        self.offsets: dict[tuple[int, date], Decimal] = defaultdict(lambda: ZERO)
        for p in window.production_runs:
            self.offsets[(p.product_id, p.date)] += p.total_conversion

        self.usage: dict[tuple[int, date, str], Decimal] = defaultdict(lambda: ZERO)
        for pd_ in window.production_details:
            self.usage[(pd_.component_item_id, pd_.date, pd_.branch)] += pd_.quantity_used


def _result_for(ready: ReadyStock, idx: _Index, default_pct: Decimal) -> DiscrepancyResult:
    branch = idx.branches.get(ready.branch_id)
    branch_code = branch.code if branch else None
    branch_name = branch.name if branch else f"Branch {ready.branch_id}"
    product = idx.products.get(ready.product_id)

    movements = idx.movements.get((ready.product_id, branch_code), []) if branch_code else []
    offset = idx.offsets.get((ready.product_id, ready.date), ZERO)

    implied = keluar_form(
        ready,
        idx.ready.get((ready.product_id, ready.branch_id, previous_day(ready.date))),
        movements,
        branch_code,
        production_offset=offset,
    )
    actual = idx.pos.get((ready.date, ready.product_id, branch_name), ZERO)
    usage = idx.usage.get((ready.product_id, ready.date, branch_name), ZERO)
    selisih = discrepancy(actual, implied, usage)

    pct = idx.tolerances.get(ready.product_id, default_pct)
    tol = tolerance_value(actual, pct)

    return DiscrepancyResult(
        product_id=ready.product_id,
        branch=branch_name,
        date=ready.date,
        implied_consumption=implied,
        actual_consumption=actual,
        discrepancy=selisih,
        tolerance_value=tol,
        tolerance_percentage=pct,
        status=classify(selisih, tol),
        product_name=product.name if product else f"Product {ready.product_id}",
        sub_category=product.sub_category if product else "Unknown",
        component_usage=usage,
        production_offset=offset,
    )


def reconcile(window: ReportWindow, default_tolerance_pct: Decimal = DEFAULT_TOLERANCE_PCT) -> list[DiscrepancyResult]:
    """
    One DiscrepancyResult per ready-stock row dated inside [start, end].

    Ready rows before ``start`` only serve as the previous-day snapshot.
    Output is ordered by (date, branch, product_id) so two runs over the same
    window are identical.
    """
    idx = _Index(window)
    results = [
        _result_for(r, idx, default_tolerance_pct)
        for r in window.ready
        if window.start <= r.date <= window.end
    ]
    results.sort(key=lambda r: (r.date, r.branch, r.product_id))

    flagged = sum(1 for r in results if r.status is not Status.OK)
    logger.info(
        "Reconciled %s..%s branch=%s: %d rows, %d outside tolerance",
        window.start, window.end, window.branch_filter or "all", len(results), flagged,
    )
    return results
