"""Order model type definitions for database operations."""

from typing import Literal, TypedDict

# Order status values matching the orders.status check constraint
OrderStatus = Literal[
    "pending_payment",
    "processing",
    "on_hold",
    "completed",
    "cancelled",
    "refunded",
    "failed",
]

ORDER_STATUSES: tuple[str, ...] = (
    "pending_payment",
    "processing",
    "on_hold",
    "completed",
    "cancelled",
    "refunded",
    "failed",
)

PaymentStatus = Literal["pending", "paid", "succeeded", "partial", "refunded", "failed"]

RefundStatus = Literal["pending", "succeeded", "failed", "canceled"]

# Refunds the processor has accepted; both count against the refundable balance
ACCEPTED_REFUND_STATUSES: tuple[str, ...] = ("pending", "succeeded")

PickupStatus = Literal["scheduled", "picked_up", "missed", "cancelled"]


class OrderItemRow(TypedDict):
    """order_items table row."""

    id: str
    order_id: str
    product_id: str | None
    product_name: str | None
    product_price: float
    quantity: int
    line_total: float


class RefundItemRow(TypedDict, total=False):
    """Single entry of the order_refunds.items JSONB array."""

    order_item_id: str
    quantity: int
    amount: float
    description: str | None


class RefundRow(TypedDict):
    """order_refunds table row."""

    id: str
    order_id: str
    amount: float
    reason: str | None
    status: RefundStatus
    stripe_refund_id: str | None
    items: list[RefundItemRow] | None
    created_by: str | None
    created_at: str


class StatusHistoryRow(TypedDict):
    """order_status_history table row.

    The status column holds the status transitioned to.
    """

    id: str
    order_id: str
    status: str
    from_status: str | None
    note: str | None
    changed_by: str | None
    created_at: str


class PickupReservationRow(TypedDict, total=False):
    """pickup_reservations table row."""

    id: str
    order_id: str
    pickup_date: str
    pickup_time_start: str
    pickup_time_end: str
    status: PickupStatus
    notes: str | None


class OrderRow(TypedDict, total=False):
    """orders table row with the embedded relations the detail query selects."""

    id: str
    order_number: str
    status: str
    payment_status: str | None
    stripe_payment_intent_id: str | None
    subtotal: float
    shipping_cost: float
    tax: float
    total: float
    refunded_total: float
    tracking_number: str | None
    internal_notes: str | None
    is_pickup: bool
    created_at: str
    updated_at: str
    order_items: list[OrderItemRow]
    order_refunds: list[RefundRow]
    pickup_reservations: list[PickupReservationRow]
