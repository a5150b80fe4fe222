from __future__ import annotations

from dataclasses import dataclass
from datetime import date, datetime
from decimal import Decimal
from enum import Enum
from typing import Optional

DEFAULT_TOLERANCE_PCT = Decimal("5")

# source_type values whose rows are protected even without is_locked
PROTECTED_SOURCE_TYPES = ("PO", "stock_opname_batch")
TRANSFER_REFERENCE_PREFIX = "TRF-"


class Status(str, Enum):
    OK = "OK"
    KURANG = "Kurang"
    LEBIH = "Lebih"


@dataclass(frozen=True)
class Branch:
    id: int
    code: str
    name: str


@dataclass(frozen=True)
class Product:
    id: int
    name: str
    sub_category: str = "Unknown"
    unit: str = ""


@dataclass(frozen=True)
class InventoryMovement:
    product_id: int
    branch_code: str
    timestamp: datetime
    quantity_in: Decimal
    quantity_out: Decimal
    running_total: Decimal
    id: Optional[int] = None
    source_type: str = "manual"
    source_reference: Optional[str] = None
    taker: Optional[str] = None
    is_locked: bool = False
    locked_by: Optional[str] = None

    @property
    def ledger_date(self) -> date:
        return self.timestamp.date()

    @property
    def is_protected(self) -> bool:
        if self.is_locked or self.source_type in PROTECTED_SOURCE_TYPES:
            return True
        return bool(self.source_reference and self.source_reference.startswith(TRANSFER_REFERENCE_PREFIX))


@dataclass(frozen=True)
class ReadyStock:
    product_id: int
    branch_id: int
    date: date
    on_hand_quantity: Decimal
    waste_quantity: Decimal


@dataclass(frozen=True)
class PointOfSaleConsumption:
    date: date
    product_id: int
    branch: str
    quantity: Decimal


@dataclass(frozen=True)
class ProductionRun:
    product_id: int
    date: date
    quantity_produced: Decimal
    total_conversion: Decimal


@dataclass(frozen=True)
class ProductionDetail:
    component_item_id: int
    date: date
    branch: str
    quantity_used: Decimal


@dataclass(frozen=True)
class Recipe:
    product_id: int
    component_item_id: int
    grams_per_unit: Decimal


@dataclass(frozen=True)
class ToleranceSetting:
    product_id: int
    tolerance_percentage: Decimal = DEFAULT_TOLERANCE_PCT


@dataclass(frozen=True)
class DiscrepancyResult:
    product_id: int
    branch: str
    date: date
    implied_consumption: Decimal
    actual_consumption: Decimal
    discrepancy: Decimal
    tolerance_value: Decimal
    tolerance_percentage: Decimal
    status: Status
    product_name: str = ""
    sub_category: str = "Unknown"
    component_usage: Decimal = Decimal("0")
    production_offset: Decimal = Decimal("0")

    @property
    def tolerance_range(self) -> tuple[Decimal, Decimal]:
        return (-self.tolerance_value, self.tolerance_value)

    @property
    def result_id(self) -> str:
        """Stable key used by investigation notes."""
        return f"{self.date.isoformat()}|{self.branch}|{self.product_id}"
