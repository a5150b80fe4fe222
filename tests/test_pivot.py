from datetime import date, timedelta
from decimal import Decimal
from io import BytesIO

import pandas as pd
import pytest

from conftest import result
from core.entities import DiscrepancyResult, Status
from core.services.pivot import (
    EXPORT_COLUMNS,
    build_pivot,
    export_frame,
    export_pivot_xlsx,
    export_results_xlsx,
    format_tolerance_range,
    investigation_list,
    results_frame,
)

D = date(2024, 5, 10)


def _rows():
    return [
        result(product_id=1, d=D + timedelta(days=1), selisih="-3", implied="10", product_name="Salmon", sub_category="Seafood"),
        result(product_id=1, d=D, selisih="2", implied="8", product_name="Salmon", sub_category="Seafood"),
        result(product_id=1, d=D, selisih="1", implied="4", product_name="Salmon", sub_category="Seafood", branch="Malang"),
        result(product_id=2, d=D, selisih="-7", implied="1", product_name="Nasi", sub_category="Carbo"),
    ]


def test_build_pivot_sums_across_branches_and_sorts_dates():
    pivot = build_pivot(_rows())
    assert list(pivot.columns) == [D.isoformat(), (D + timedelta(days=1)).isoformat()]
    assert pivot.loc[("Seafood", "Salmon"), D.isoformat()] == 3.0
    assert pivot.loc[("Seafood", "Salmon"), (D + timedelta(days=1)).isoformat()] == -3.0
    assert pd.isna(pivot.loc[("Carbo", "Nasi"), (D + timedelta(days=1)).isoformat()])


def test_build_pivot_on_implied_consumption():
    pivot = build_pivot(_rows(), value="implied_consumption")
    assert pivot.loc[("Seafood", "Salmon"), D.isoformat()] == 12.0


def test_build_pivot_rejects_unknown_value():
    with pytest.raises(ValueError):
        build_pivot(_rows(), value="status")


def test_build_pivot_empty():
    assert build_pivot([]).empty


def test_investigation_list_is_negative_rows_worst_first():
    out = investigation_list(_rows())
    assert [r.discrepancy for r in out] == [Decimal("-7"), Decimal("-3")]


def test_format_tolerance_range():
    r = DiscrepancyResult(
        product_id=1, branch="Surabaya", date=D,
        implied_consumption=Decimal("35"), actual_consumption=Decimal("40"), discrepancy=Decimal("5"),
        tolerance_value=Decimal("2"), tolerance_percentage=Decimal("5"), status=Status.LEBIH,
    )
    assert format_tolerance_range(r) == "-2.0 ~ 2.0"
    assert format_tolerance_range(result(d=D)) == "0.0 ~ 0.0"


def test_results_frame_has_one_row_per_result():
    df = results_frame(_rows())
    assert len(df) == 4
    assert set(df["status"]) == {"Kurang", "Lebih"}


def test_export_frame_columns_and_rounding():
    r = result(d=D, selisih="-1.23456", implied="2.345")
    df = export_frame([r])
    assert list(df.columns) == EXPORT_COLUMNS
    assert df.loc[0, "Discrepancy"] == -1.23
    assert df.loc[0, "Date"] == D.isoformat()


def test_xlsx_exports_are_readable():
    df = pd.read_excel(BytesIO(export_results_xlsx(_rows())), sheet_name="Analysis")
    assert list(df.columns) == EXPORT_COLUMNS
    assert len(df) == 4

    pivot = pd.read_excel(BytesIO(export_pivot_xlsx(build_pivot(_rows()))), sheet_name="Pivot")
    assert list(pivot.columns[:2]) == ["sub_category", "product"]
    assert len(pivot) == 2
