from __future__ import annotations

from io import BytesIO
from typing import Iterable

import pandas as pd

from core.entities import DiscrepancyResult

PIVOT_VALUES = {
    "discrepancy": "Selisih",
    "implied_consumption": "Keluar Form",
}

EXPORT_COLUMNS = [
    "Date",
    "Product",
    "Branch",
    "Implied Consumption",
    "Actual Consumption",
    "Discrepancy",
    "Tolerance Range",
    "Status",
]


def format_tolerance_range(r: DiscrepancyResult) -> str:
    lo, hi = r.tolerance_range
    # avoid "-0.0 ~ 0.0"
    return f"{float(lo) + 0.0:.1f} ~ {float(hi) + 0.0:.1f}"


def results_frame(results: Iterable[DiscrepancyResult]) -> pd.DataFrame:
    """Table view of the results; numbers stay unrounded here."""
    rows = [
        {
            "result_id": r.result_id,
            "date": r.date,
            "sub_category": r.sub_category,
            "product": r.product_name,
            "branch": r.branch,
            "keluar_form": float(r.implied_consumption),
            "hasil_esb": float(r.actual_consumption),
            "total_production": float(r.component_usage),
            "production_offset": float(r.production_offset),
            "selisih": float(r.discrepancy),
            "tolerance_percentage": float(r.tolerance_percentage),
            "tolerance_range": format_tolerance_range(r),
            "status": r.status.value,
        }
        for r in results
    ]
    columns = [
        "result_id", "date", "sub_category", "product", "branch", "keluar_form", "hasil_esb",
        "total_production", "production_offset", "selisih", "tolerance_percentage", "tolerance_range", "status",
    ]
    return pd.DataFrame(rows, columns=columns)


def build_pivot(results: Iterable[DiscrepancyResult], value: str = "discrepancy") -> pd.DataFrame:
    """
    Rows = (sub_category, product), columns = dates, cells = summed value.
    Days without a reading stay empty (NaN), not 0.
    """
    if value not in PIVOT_VALUES:
        raise ValueError(f"Invalid pivot value {value!r}. Use one of {', '.join(PIVOT_VALUES)}.")

    records = [
        {
            "sub_category": r.sub_category,
            "product": r.product_name,
            "date": r.date.isoformat(),
            "value": float(getattr(r, value)),
        }
        for r in results
    ]
    if not records:
        return pd.DataFrame()

    df = pd.DataFrame(records)
    pivot = df.pivot_table(
        index=["sub_category", "product"],
        columns="date",
        values="value",
        aggfunc="sum",
    )
    pivot = pivot.reindex(sorted(pivot.columns), axis=1)
    pivot.columns.name = None
    return pivot


def investigation_list(results: Iterable[DiscrepancyResult]) -> list[DiscrepancyResult]:
    """Negative selisih rows, worst first."""
    neg = [r for r in results if r.discrepancy < 0]
    neg.sort(key=lambda r: (r.discrepancy, r.date, r.branch, r.product_id))
    return neg


def export_frame(results: Iterable[DiscrepancyResult]) -> pd.DataFrame:
    rows = [
        {
            "Date": r.date.isoformat(),
            "Product": r.product_name,
            "Branch": r.branch,
            "Implied Consumption": round(float(r.implied_consumption), 2),
            "Actual Consumption": round(float(r.actual_consumption), 2),
            "Discrepancy": round(float(r.discrepancy), 2),
            "Tolerance Range": format_tolerance_range(r),
            "Status": r.status.value,
        }
        for r in results
    ]
    return pd.DataFrame(rows, columns=EXPORT_COLUMNS)


def export_results_xlsx(results: Iterable[DiscrepancyResult]) -> bytes:
    buf = BytesIO()
    with pd.ExcelWriter(buf, engine="openpyxl") as writer:
        export_frame(results).to_excel(writer, sheet_name="Analysis", index=False)
    return buf.getvalue()


def export_pivot_xlsx(pivot: pd.DataFrame, sheet_name: str = "Pivot") -> bytes:
    buf = BytesIO()
    with pd.ExcelWriter(buf, engine="openpyxl") as writer:
        pivot.round(2).reset_index().to_excel(writer, sheet_name=sheet_name, index=False)
    return buf.getvalue()
