"""Database model type definitions."""

from src.models.inventory import (
    ADJUSTMENT_TYPES,
    AdjustmentType,
    InventoryAdjustmentRow,
    InventoryBatchRow,
    ProductStockRow,
)
from src.models.order import (
    ACCEPTED_REFUND_STATUSES,
    ORDER_STATUSES,
    OrderItemRow,
    OrderRow,
    OrderStatus,
    PickupReservationRow,
    RefundItemRow,
    RefundRow,
    StatusHistoryRow,
)
from src.models.shipment import ShipmentCreate, ShipmentRow, TrackingEventRow

__all__ = [
    "ACCEPTED_REFUND_STATUSES",
    "ADJUSTMENT_TYPES",
    "AdjustmentType",
    "InventoryAdjustmentRow",
    "InventoryBatchRow",
    "ProductStockRow",
    "ORDER_STATUSES",
    "OrderItemRow",
    "OrderRow",
    "OrderStatus",
    "PickupReservationRow",
    "RefundItemRow",
    "RefundRow",
    "StatusHistoryRow",
    "ShipmentCreate",
    "ShipmentRow",
    "TrackingEventRow",
]
