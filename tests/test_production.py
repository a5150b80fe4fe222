from datetime import date
from decimal import Decimal

import pytest

from core.db import q
from core.services.production import (
    delete_production_run,
    list_production,
    list_production_detail,
    list_recipe,
    record_production_run,
    remove_recipe_line,
    set_recipe_line,
)

D = date(2024, 5, 10)


@pytest.fixture
def bowl_recipe(conn, seeded):
    set_recipe_line(conn, product_id=seeded["bowl"], item_id=seeded["salmon"], grams_per_unit=120)
    set_recipe_line(conn, product_id=seeded["bowl"], item_id=seeded["nasi"], grams_per_unit="150.5")
    return seeded


def test_recipe_lines_upsert(conn, bowl_recipe):
    set_recipe_line(conn, product_id=bowl_recipe["bowl"], item_id=bowl_recipe["salmon"], grams_per_unit=100)
    lines = {r.component_item_id: r.grams_per_unit for r in list_recipe(conn, bowl_recipe["bowl"])}
    assert lines == {bowl_recipe["salmon"]: Decimal("100"), bowl_recipe["nasi"]: Decimal("150.5")}

    remove_recipe_line(conn, product_id=bowl_recipe["bowl"], item_id=bowl_recipe["nasi"])
    assert len(list_recipe(conn, bowl_recipe["bowl"])) == 1


def test_recipe_line_validation(conn, seeded):
    with pytest.raises(ValueError):
        set_recipe_line(conn, product_id=seeded["bowl"], item_id=seeded["salmon"], grams_per_unit=0)
    with pytest.raises(ValueError):
        set_recipe_line(conn, product_id=seeded["bowl"], item_id=seeded["bowl"], grams_per_unit=1)


def test_production_run_explodes_recipe(conn, bowl_recipe):
    out = record_production_run(
        conn, product_id=bowl_recipe["bowl"], branch="Surabaya", day=D, quantity_produced=4, conversion="0.5"
    )
    assert out.total_conversion == Decimal("2.0")
    assert out.detail_lines == 2

    used = {
        r["item_id"]: Decimal(str(r["total_pakai"]))
        for r in q(conn, "SELECT item_id, total_pakai FROM produksi_detail WHERE produksi_id=?", (out.produksi_id,))
    }
    assert used == {bowl_recipe["salmon"]: Decimal("480.0"), bowl_recipe["nasi"]: Decimal("602.0")}

    assert len(list_production(conn, start=D, end=D, branch="Surabaya")) == 1
    assert list_production(conn, start=D, end=D, branch="Malang") == []
    assert len(list_production_detail(conn, start=D, end=D)) == 2


def test_production_without_recipe_has_no_detail(conn, seeded):
    out = record_production_run(conn, product_id=seeded["nasi"], branch="Surabaya", day=D, quantity_produced=2)
    assert out.detail_lines == 0
    assert out.total_conversion == Decimal("2")


@pytest.mark.parametrize(
    "kw",
    [
        {"quantity_produced": 0},
        {"quantity_produced": 1, "conversion": 0},
        {"quantity_produced": 1, "branch": "  "},
    ],
)
def test_production_run_validation(conn, seeded, kw):
    args = {"product_id": seeded["bowl"], "branch": "Surabaya", "day": D, **kw}
    with pytest.raises(ValueError):
        record_production_run(conn, **args)
    assert q(conn, "SELECT COUNT(*) AS n FROM produksi")[0]["n"] == 0


def test_delete_run_cascades_to_detail(conn, bowl_recipe):
    out = record_production_run(conn, product_id=bowl_recipe["bowl"], branch="Surabaya", day=D, quantity_produced=1)
    delete_production_run(conn, out.produksi_id)
    assert q(conn, "SELECT COUNT(*) AS n FROM produksi_detail")[0]["n"] == 0
