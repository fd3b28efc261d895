"""Inventory model type definitions for database operations."""

from typing import Literal, TypedDict

AdjustmentType = Literal["loss", "damage", "correction", "count", "return"]

ADJUSTMENT_TYPES: tuple[str, ...] = ("loss", "damage", "correction", "count", "return")


class InventoryBatchRow(TypedDict, total=False):
    """inventory_batches table row (only the columns the ledger touches)."""

    id: str
    batch_number: str
    product_id: str
    quantity_actual: int
    quantity_available: int
    low_stock_threshold: int | None
    updated_at: str


class ProductStockRow(TypedDict, total=False):
    """products table row stock columns."""

    id: str
    name: str
    quantity_available: int


class InventoryAdjustmentRow(TypedDict, total=False):
    """inventory_adjustments table row.

    Rows are immutable once inserted. Either batch_id or product_id is set.
    """

    id: str
    batch_id: str | None
    product_id: str | None
    adjustment_type: AdjustmentType
    quantity: int
    reason_code: str
    notes: str | None
    adjusted_by: str
    created_at: str
