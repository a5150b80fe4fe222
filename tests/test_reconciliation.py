from datetime import date, timedelta
from decimal import Decimal

import pytest

from conftest import at, movement, ready
from core.entities import (
    Branch,
    PointOfSaleConsumption,
    Product,
    ProductionDetail,
    ProductionRun,
    Status,
    ToleranceSetting,
)
from core.services.reconciliation import (
    ReportWindow,
    classify,
    discrepancy,
    implied_consumption,
    inbound_on,
    keluar_form,
    reconcile,
    resolve_balance,
    tolerance_value,
)

D = date(2024, 5, 10)
YESTERDAY = D - timedelta(days=1)
SBY = Branch(id=1, code="SBY", name="Surabaya")
SALMON = Product(id=1, name="Salmon Fillet", sub_category="Seafood")


def _scenario_window(**overrides) -> ReportWindow:
    """yesterday on-hand 100, 20 in and out again today, today on-hand 80, waste 5, ESB 40."""
    base = dict(
        start=D,
        end=D,
        branches=(SBY,),
        products=(SALMON,),
        movements=(
            movement(ts=at(D, 9), qin="20", total="20", id=1),
            movement(ts=at(D, 10), qout="20", total="0", id=2),
        ),
        ready=(
            ready(d=YESTERDAY, on_hand="100"),
            ready(d=D, on_hand="80", waste="5"),
        ),
        pos=(PointOfSaleConsumption(date=D, product_id=1, branch="Surabaya", quantity=Decimal("40")),),
    )
    base.update(overrides)
    return ReportWindow(**base)


# -------------------------
# resolve_balance
# -------------------------

def test_resolve_balance_takes_latest_on_or_before_date():
    movements = [
        movement(ts=at(D - timedelta(days=3)), total="10"),
        movement(ts=at(D - timedelta(days=1)), total="25"),
        movement(ts=at(D + timedelta(days=1)), total="99"),
    ]
    assert resolve_balance(movements, 1, "SBY", D) == Decimal("25")
    assert resolve_balance(movements, 1, "SBY", D - timedelta(days=2)) == Decimal("10")


def test_resolve_balance_same_day_latest_timestamp_wins_regardless_of_order():
    movements = [
        movement(ts=at(D, 17), total="7"),
        movement(ts=at(D, 8), total="30"),
        movement(ts=at(D, 12), total="15"),
    ]
    assert resolve_balance(movements, 1, "SBY", D) == Decimal("7")


def test_resolve_balance_is_zero_without_history_or_mapping():
    movements = [movement(ts=at(D), total="12")]
    assert resolve_balance(movements, 1, "SBY", D - timedelta(days=1)) == 0
    assert resolve_balance(movements, 2, "SBY", D) == 0
    assert resolve_balance(movements, 1, "MLG", D) == 0
    assert resolve_balance(movements, 1, None, D) == 0
    assert resolve_balance([], 1, "SBY", D) == 0


def test_inbound_on_sums_only_that_day_and_key():
    movements = [
        movement(ts=at(D, 8), qin="5"),
        movement(ts=at(D, 9), qin="2.5"),
        movement(ts=at(D - timedelta(days=1)), qin="100"),
        movement(branch_code="MLG", ts=at(D), qin="100"),
    ]
    assert inbound_on(movements, 1, "SBY", D) == Decimal("7.5")


# -------------------------
# keluar form / selisih
# -------------------------

def test_scenario_implied_consumption_and_excess():
    implied = implied_consumption(
        yesterday_balance=Decimal("100") + Decimal("0"),
        today_inbound=Decimal("20"),
        today_balance=Decimal("80") + Decimal("0"),
        waste=Decimal("5"),
        production_offset=Decimal("0"),
    )
    assert implied == Decimal("35")

    selisih = discrepancy(Decimal("40"), implied, Decimal("0"))
    assert selisih == Decimal("5")

    tol = tolerance_value(Decimal("40"), Decimal("5"))
    assert tol == Decimal("2")
    assert classify(selisih, tol) is Status.LEBIH


def test_keluar_form_from_entities_matches_scenario():
    w = _scenario_window()
    implied = keluar_form(w.ready[1], w.ready[0], w.movements, "SBY")
    assert implied == Decimal("35")


def test_keluar_form_adds_production_offset():
    w = _scenario_window()
    implied = keluar_form(w.ready[1], w.ready[0], w.movements, "SBY", production_offset=Decimal("12.5"))
    assert implied == Decimal("47.5")


def test_keluar_form_counts_warehouse_balances():
    movements = [
        movement(ts=at(YESTERDAY, 8), qin="50", total="50"),
        movement(ts=at(D, 8), qin="10", total="60"),
        movement(ts=at(D, 15), qout="15", total="45"),
    ]
    today = ready(d=D, on_hand="30", waste="1")
    yesterday = ready(d=YESTERDAY, on_hand="20")
    # (20 + 50 + 10) - (30 + 45 + 1)
    assert keluar_form(today, yesterday, movements, "SBY") == Decimal("4")


def test_first_day_without_prior_snapshot_opens_at_zero():
    movements = [
        movement(ts=at(YESTERDAY), qin="50", total="50"),
        movement(ts=at(D), qin="20", total="70"),
    ]
    today = ready(d=D, on_hand="80", waste="5")
    # yesterday_balance = 0; (0 + 20) - (80 + 70 + 5)
    assert keluar_form(today, None, movements, "SBY") == Decimal("-135")


def test_stock_flow_identity_is_exact_for_fractional_quantities():
    parts = dict(
        yesterday_balance=Decimal("0.1"),
        today_inbound=Decimal("0.2"),
        today_balance=Decimal("0.15"),
        waste=Decimal("0.05"),
        production_offset=Decimal("0.3"),
    )
    implied = implied_consumption(**parts)
    assert implied == Decimal("0.4")
    assert (
        parts["yesterday_balance"] + parts["today_inbound"] - parts["today_balance"]
        - parts["waste"] + parts["production_offset"]
    ) == implied


@pytest.mark.parametrize(
    "selisih, tol, expected",
    [
        ("0", "2", Status.OK),
        ("2", "2", Status.OK),
        ("-2", "2", Status.OK),
        ("2.01", "2", Status.LEBIH),
        ("-2.01", "2", Status.KURANG),
        ("0", "0", Status.OK),
        ("-0.5", "0", Status.KURANG),
    ],
)
def test_classify(selisih, tol, expected):
    assert classify(Decimal(selisih), Decimal(tol)) is expected


# -------------------------
# reconcile()
# -------------------------

def test_reconcile_scenario_end_to_end():
    results = reconcile(_scenario_window())
    assert len(results) == 1
    r = results[0]
    assert r.date == D
    assert r.branch == "Surabaya"
    assert r.product_name == "Salmon Fillet"
    assert r.implied_consumption == Decimal("35")
    assert r.actual_consumption == Decimal("40")
    assert r.discrepancy == Decimal("5")
    assert r.tolerance_range == (Decimal("-2"), Decimal("2"))
    assert r.status is Status.LEBIH


def test_reconcile_only_reports_rows_inside_window():
    # the D-1 snapshot is only there as "yesterday"
    results = reconcile(_scenario_window())
    assert [r.date for r in results] == [D]


def test_reconcile_component_usage_matches_branch_name():
    w = _scenario_window(
        production_details=(
            ProductionDetail(component_item_id=1, date=D, branch="Surabaya", quantity_used=Decimal("3")),
            ProductionDetail(component_item_id=1, date=D, branch="Surabaya", quantity_used=Decimal("1.5")),
            ProductionDetail(component_item_id=1, date=D, branch="Malang", quantity_used=Decimal("100")),
        ),
    )
    r = reconcile(w)[0]
    assert r.component_usage == Decimal("4.5")
    assert r.discrepancy == Decimal("9.5")


def test_reconcile_production_offset_is_per_product_and_day():
    w = _scenario_window(
        production_runs=(
            ProductionRun(product_id=1, date=D, quantity_produced=Decimal("2"), total_conversion=Decimal("4")),
            ProductionRun(product_id=1, date=YESTERDAY, quantity_produced=Decimal("9"), total_conversion=Decimal("9")),
        ),
    )
    r = reconcile(w)[0]
    assert r.production_offset == Decimal("4")
    assert r.implied_consumption == Decimal("39")
    assert r.discrepancy == Decimal("1")
    assert r.status is Status.OK


def test_missing_tolerance_setting_behaves_like_explicit_five_percent():
    implicit = reconcile(_scenario_window())
    explicit = reconcile(_scenario_window(tolerances=(ToleranceSetting(product_id=1, tolerance_percentage=Decimal("5")),)))
    assert [(r.tolerance_value, r.status) for r in implicit] == [(r.tolerance_value, r.status) for r in explicit]
    assert implicit[0].tolerance_percentage == explicit[0].tolerance_percentage


def test_explicit_tolerance_widens_band():
    w = _scenario_window(tolerances=(ToleranceSetting(product_id=1, tolerance_percentage=Decimal("20")),))
    r = reconcile(w)[0]
    assert r.tolerance_value == Decimal("8")
    assert r.status is Status.OK


def test_unknown_branch_resolves_to_zero_balances():
    w = _scenario_window(branches=())
    r = reconcile(w)[0]
    # no warehouse rows and no ESB match: (100 + 0) - (80 + 5)
    assert r.branch == "Branch 1"
    assert r.implied_consumption == Decimal("15")
    assert r.actual_consumption == 0


def test_tolerance_range_is_symmetric_and_status_consistent():
    days = [D + timedelta(days=i) for i in range(4)]
    w = ReportWindow(
        start=days[0],
        end=days[-1],
        branches=(SBY,),
        products=(SALMON,),
        ready=tuple(ready(d=d, on_hand=str(100 - 10 * i), waste="1") for i, d in enumerate(days)),
        pos=tuple(
            PointOfSaleConsumption(date=d, product_id=1, branch="Surabaya", quantity=Decimal(q))
            for d, q in zip(days, ["0", "11", "30", "5"])
        ),
    )
    for r in reconcile(w):
        lo, hi = r.tolerance_range
        assert hi == -lo
        assert (r.status is Status.OK) == (abs(r.discrepancy) <= r.tolerance_value)
        assert r.status in (Status.OK, Status.KURANG, Status.LEBIH)


def test_reconcile_is_idempotent_and_ordered():
    w = _scenario_window(
        branches=(SBY, Branch(id=2, code="MLG", name="Malang")),
        ready=(
            ready(branch_id=2, d=D, on_hand="3"),
            ready(d=D, on_hand="80", waste="5"),
            ready(d=YESTERDAY, on_hand="100"),
        ),
    )
    first = reconcile(w)
    second = reconcile(w)
    assert first == second
    assert [(r.date, r.branch) for r in first] == [(D, "Malang"), (D, "Surabaya")]
