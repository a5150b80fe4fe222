"""
Pytest fixtures: in-memory SQLite with the full schema plus a small set of
branches and products.
"""

from datetime import date, datetime, time
from decimal import Decimal

import pytest

from core.db import connect, ensure_schema
from core.entities import DiscrepancyResult, InventoryMovement, ReadyStock, Status
from core.services.reference import add_branch, add_product


@pytest.fixture
def conn():
    """Fresh in-memory database per test."""
    c = connect(":memory:")
    ensure_schema(c)
    yield c
    c.close()


@pytest.fixture
def seeded(conn):
    """Two branches and three products; returns their ids."""
    ids = {
        "sby": add_branch(conn, code="SBY", name="Surabaya"),
        "mlg": add_branch(conn, code="MLG", name="Malang"),
        "salmon": add_product(conn, name="Salmon Fillet", sub_category="Seafood", unit="gr"),
        "nasi": add_product(conn, name="Nasi Putih", sub_category="Carbo", unit="gr"),
        "bowl": add_product(conn, name="Salmon Bowl", sub_category="Menu", unit="pcs"),
    }
    return ids


def at(d: date, hh: int = 8, mm: int = 0) -> datetime:
    return datetime.combine(d, time(hh, mm))


def movement(product_id=1, branch_code="SBY", ts=None, qin="0", qout="0", total="0", id=None, **kw):
    return InventoryMovement(
        id=id,
        product_id=product_id,
        branch_code=branch_code,
        timestamp=ts,
        quantity_in=Decimal(qin),
        quantity_out=Decimal(qout),
        running_total=Decimal(total),
        **kw,
    )


def ready(product_id=1, branch_id=1, d=None, on_hand="0", waste="0"):
    return ReadyStock(
        product_id=product_id,
        branch_id=branch_id,
        date=d,
        on_hand_quantity=Decimal(on_hand),
        waste_quantity=Decimal(waste),
    )


def result(product_id=1, d=None, selisih="0", implied="0", product_name="P", sub_category="Cat", branch="Surabaya"):
    return DiscrepancyResult(
        product_id=product_id,
        branch=branch,
        date=d,
        implied_consumption=Decimal(implied),
        actual_consumption=Decimal("0"),
        discrepancy=Decimal(selisih),
        tolerance_value=Decimal("0"),
        tolerance_percentage=Decimal("5"),
        status=Status.OK if Decimal(selisih) == 0 else (Status.KURANG if Decimal(selisih) < 0 else Status.LEBIH),
        product_name=product_name,
        sub_category=sub_category,
    )
