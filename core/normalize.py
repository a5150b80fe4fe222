"""
Row -> entity normalisation.

Storage rows are loosely typed and their naming drifts between tables and
between older and newer exports (``cabang`` vs ``branch_code``,
``tanggal_input`` vs ``date``, ``qty_total`` vs ``quantity`` ...). Everything
past this module works on the frozen dataclasses in ``core.entities``.
"""

from __future__ import annotations

from collections.abc import Mapping
from typing import Any

from core.entities import (
    Branch,
    DEFAULT_TOLERANCE_PCT,
    InventoryMovement,
    PointOfSaleConsumption,
    Product,
    ProductionDetail,
    ProductionRun,
    ReadyStock,
    Recipe,
    ToleranceSetting,
)
from core.utils import to_date, to_datetime, to_decimal

_MISSING = object()


def _as_dict(row: Any) -> dict:
    # sqlite3.Row has keys() but `in` checks values, so always go through a dict
    if isinstance(row, Mapping):
        return dict(row)
    return {k: row[k] for k in row.keys()}


def _pick(row: dict, *names: str, default: Any = _MISSING) -> Any:
    for n in names:
        if n in row and row[n] is not None:
            return row[n]
    if default is _MISSING:
        raise ValueError(f"Row is missing field {names[0]!r} (tried {', '.join(names)})")
    return default


def _text(v: Any) -> str:
    return str(v).strip()


def branch_from_row(row: Any) -> Branch:
    r = _as_dict(row)
    return Branch(
        id=int(_pick(r, "id", "id_branch")),
        code=_text(_pick(r, "code", "kode_branch", "branch_code")),
        name=_text(_pick(r, "name", "nama_branch", "branch_name")),
    )


def product_from_row(row: Any) -> Product:
    r = _as_dict(row)
    return Product(
        id=int(_pick(r, "id", "id_product", "product_id")),
        name=_text(_pick(r, "name", "product_name")),
        sub_category=_text(_pick(r, "sub_category", default="Unknown")) or "Unknown",
        unit=_text(_pick(r, "unit", "unit_kecil", default="")),
    )


def movement_from_row(row: Any) -> InventoryMovement:
    r = _as_dict(row)
    return InventoryMovement(
        id=int(r["id"]) if r.get("id") is not None else None,
        product_id=int(_pick(r, "product_id", "id_product")),
        branch_code=_text(_pick(r, "branch_code", "cabang")),
        timestamp=to_datetime(_pick(r, "timestamp", "tanggal")),
        quantity_in=to_decimal(_pick(r, "quantity_in", "jumlah_masuk", default=0)),
        quantity_out=to_decimal(_pick(r, "quantity_out", "jumlah_keluar", default=0)),
        running_total=to_decimal(_pick(r, "running_total", "total_gudang", default=0)),
        source_type=_text(_pick(r, "source_type", default="manual")),
        source_reference=_pick(r, "source_reference", default=None),
        taker=_pick(r, "taker", "nama_pengambil_barang", default=None),
        is_locked=bool(_pick(r, "is_locked", default=False)),
        locked_by=_pick(r, "locked_by", "locked_by_so", default=None),
    )


def ready_from_row(row: Any) -> ReadyStock:
    r = _as_dict(row)
    return ReadyStock(
        product_id=int(_pick(r, "product_id", "id_product")),
        branch_id=int(_pick(r, "branch_id", "id_branch")),
        date=to_date(_pick(r, "date", "tanggal_input")),
        on_hand_quantity=to_decimal(_pick(r, "on_hand_quantity", "ready", default=0)),
        waste_quantity=to_decimal(_pick(r, "waste_quantity", "waste", default=0)),
    )


def pos_from_row(row: Any) -> PointOfSaleConsumption:
    r = _as_dict(row)
    return PointOfSaleConsumption(
        date=to_date(_pick(r, "date", "sales_date", "tanggal_input")),
        product_id=int(_pick(r, "product_id", "id_product")),
        branch=_text(_pick(r, "branch", "cabang")),
        quantity=to_decimal(_pick(r, "quantity", "qty_total", "total", default=0)),
    )


def production_run_from_row(row: Any) -> ProductionRun:
    r = _as_dict(row)
    return ProductionRun(
        product_id=int(_pick(r, "product_id", "id_product")),
        date=to_date(_pick(r, "date", "tanggal_input")),
        quantity_produced=to_decimal(_pick(r, "quantity_produced", "jumlah_buat", default=0)),
        total_conversion=to_decimal(_pick(r, "total_conversion", "total_konversi", default=0)),
    )


def production_detail_from_row(row: Any) -> ProductionDetail:
    r = _as_dict(row)
    return ProductionDetail(
        component_item_id=int(_pick(r, "component_item_id", "item_id")),
        date=to_date(_pick(r, "date", "tanggal_input")),
        branch=_text(_pick(r, "branch", "cabang")),
        quantity_used=to_decimal(_pick(r, "quantity_used", "total_pakai", default=0)),
    )


def recipe_from_row(row: Any) -> Recipe:
    r = _as_dict(row)
    return Recipe(
        product_id=int(_pick(r, "product_id", "id_product")),
        component_item_id=int(_pick(r, "component_item_id", "item_id")),
        grams_per_unit=to_decimal(_pick(r, "grams_per_unit", "gramasi")),
    )


def tolerance_from_row(row: Any) -> ToleranceSetting:
    r = _as_dict(row)
    return ToleranceSetting(
        product_id=int(_pick(r, "product_id", "id_product")),
        tolerance_percentage=to_decimal(_pick(r, "tolerance_percentage", default=DEFAULT_TOLERANCE_PCT)),
    )
