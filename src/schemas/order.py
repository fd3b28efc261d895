"""Order Pydantic schemas for API request/response models."""

from datetime import datetime
from decimal import Decimal
from typing import Any

from pydantic import BaseModel, ConfigDict, Field

from src.core.money import to_money
from src.models.order import ACCEPTED_REFUND_STATUSES
from src.schemas.refund import RefundResponse, RefundResult
from src.schemas.shipment import LabelResult, ShipmentResponse, TrackingEventResponse, VoidResult


class OrderItemResponse(BaseModel):
    """Schema for a single order line."""

    model_config = ConfigDict(from_attributes=True)

    id: str = Field(description="Order item ID")
    product_id: str | None = Field(default=None, description="Product reference")
    product_name: str = Field(default="Unknown Product", description="Product name")
    quantity: int = Field(ge=1, description="Quantity ordered")
    unit_price: Decimal = Field(description="Unit price")
    line_total: Decimal = Field(description="unit price x quantity")
    refunded_quantity: int = Field(default=0, ge=0, description="Quantity covered by accepted refunds")

    @property
    def remaining_refundable_quantity(self) -> int:
        """Quantity not yet covered by an accepted refund."""
        return max(0, self.quantity - self.refunded_quantity)


class StatusHistoryResponse(BaseModel):
    """Schema for a status history entry."""

    model_config = ConfigDict(from_attributes=True)

    id: str | None = Field(default=None, description="Entry ID")
    from_status: str | None = Field(default=None, description="Status before the transition")
    to_status: str = Field(description="Status after the transition")
    note: str | None = Field(default=None, description="Operator note")
    changed_by: str | None = Field(default=None, description="Actor ID")
    created_at: datetime | None = Field(default=None, description="Transition timestamp")


class PickupReservationResponse(BaseModel):
    """Schema for a pickup reservation."""

    model_config = ConfigDict(from_attributes=True)

    id: str = Field(description="Reservation ID")
    pickup_date: str | None = Field(default=None, description="Pickup date")
    pickup_time_start: str | None = Field(default=None, description="Window start")
    pickup_time_end: str | None = Field(default=None, description="Window end")
    status: str = Field(description="scheduled, picked_up, missed or cancelled")
    notes: str | None = Field(default=None, description="Reservation notes")


class OrderResponse(BaseModel):
    """Schema for the full order read (items, history, refunds, pickup)."""

    model_config = ConfigDict(from_attributes=True)

    id: str = Field(description="Order ID")
    order_number: str | None = Field(default=None, description="Human-readable order number")
    status: str = Field(description="Order status")
    payment_status: str | None = Field(default=None, description="Payment status")
    stripe_payment_intent_id: str | None = Field(default=None, description="Payment reference")
    subtotal: Decimal = Field(default=Decimal("0.00"), description="Subtotal")
    shipping_cost: Decimal = Field(default=Decimal("0.00"), description="Shipping cost")
    tax: Decimal = Field(default=Decimal("0.00"), description="Tax")
    total: Decimal = Field(default=Decimal("0.00"), description="Order total")
    refunded_total: Decimal = Field(default=Decimal("0.00"), description="Sum of accepted refunds")
    tracking_number: str | None = Field(default=None, description="Tracking number")
    internal_notes: str | None = Field(default=None, description="Internal notes")
    is_pickup: bool = Field(default=False, description="Pickup fulfillment")
    items: list[OrderItemResponse] = Field(default_factory=list, description="Order lines")
    status_history: list[StatusHistoryResponse] = Field(default_factory=list, description="Oldest first")
    refunds: list[RefundResponse] = Field(default_factory=list, description="Refunds")
    pickup_reservation: PickupReservationResponse | None = Field(default=None, description="Pickup reservation")
    created_at: datetime | None = Field(default=None, description="Creation timestamp")
    updated_at: datetime | None = Field(default=None, description="Update timestamp")

    @property
    def remaining_refundable(self) -> Decimal:
        """Order total minus the sum of accepted refunds, never negative."""
        return max(Decimal("0.00"), self.total - self.refunded_total)

    @property
    def has_payment_reference(self) -> bool:
        """Check whether the order can be refunded through the processor."""
        return bool(self.stripe_payment_intent_id)

    def item(self, order_item_id: str) -> OrderItemResponse | None:
        """Find an order line by ID."""
        return next((item for item in self.items if item.id == order_item_id), None)

    @classmethod
    def from_row(cls, row: dict[str, Any], history: list[dict[str, Any]] | None = None) -> "OrderResponse":
        """Build from an orders row with embedded relations.

        Per-item refunded quantities are accumulated across accepted refunds (pending or succeeded).

        Args:
            row: orders row with order_items, order_refunds and pickup_reservations embedded.
            history: order_status_history rows, oldest first.

        Returns:
            OrderResponse: The order view.
        """
        refunds = [RefundResponse.from_row(r) for r in row.get("order_refunds") or []]
        refunds.sort(key=lambda r: r.created_at.isoformat() if r.created_at else "")

        refunded_quantities: dict[str, int] = {}
        for refund in refunds:
            if refund.status not in ACCEPTED_REFUND_STATUSES:
                continue
            for line in refund.items:
                refunded_quantities[line.order_item_id] = (
                    refunded_quantities.get(line.order_item_id, 0) + line.quantity
                )

        items = []
        for item in row.get("order_items") or []:
            unit_price = to_money(item.get("product_price", item.get("unit_price")))
            quantity = int(item["quantity"])
            line_total = item.get("line_total")
            items.append(
                OrderItemResponse(
                    id=item["id"],
                    product_id=item.get("product_id"),
                    product_name=item.get("product_name") or "Unknown Product",
                    quantity=quantity,
                    unit_price=unit_price,
                    line_total=to_money(line_total) if line_total is not None else to_money(unit_price * quantity),
                    refunded_quantity=min(quantity, refunded_quantities.get(item["id"], 0)),
                )
            )

        reservations = row.get("pickup_reservations") or []
        reservation = reservations[0] if reservations else None

        return cls(
            id=row["id"],
            order_number=row.get("order_number"),
            status=row["status"],
            payment_status=row.get("payment_status"),
            stripe_payment_intent_id=row.get("stripe_payment_intent_id"),
            subtotal=to_money(row.get("subtotal")),
            shipping_cost=to_money(row.get("shipping_cost")),
            tax=to_money(row.get("tax")),
            total=to_money(row.get("total")),
            refunded_total=to_money(row.get("refunded_total")),
            tracking_number=row.get("tracking_number"),
            internal_notes=row.get("internal_notes"),
            is_pickup=bool(row.get("is_pickup")),
            items=items,
            status_history=[
                StatusHistoryResponse(
                    id=h.get("id"),
                    from_status=h.get("from_status"),
                    to_status=h["status"],
                    note=h.get("note"),
                    changed_by=h.get("changed_by"),
                    created_at=h.get("created_at"),
                )
                for h in history or []
            ],
            refunds=refunds,
            pickup_reservation=(
                PickupReservationResponse(
                    id=reservation["id"],
                    pickup_date=reservation.get("pickup_date"),
                    pickup_time_start=reservation.get("pickup_time_start"),
                    pickup_time_end=reservation.get("pickup_time_end"),
                    status=reservation.get("status") or "scheduled",
                    notes=reservation.get("notes"),
                )
                if reservation
                else None
            ),
            created_at=row.get("created_at"),
            updated_at=row.get("updated_at"),
        )


class OrderActions(BaseModel):
    """Actions the operator may take on the order in its current state."""

    can_create_label: bool = Field(description="No shipment, or the latest one is voided")
    can_void_label: bool = Field(description="Latest shipment has a label and is not voided")
    can_refund: bool = Field(description="Payment reference, paid status and a positive balance")
    can_cancel: bool = Field(description="Not cancelled, completed or refunded")
    can_mark_picked_up: bool = Field(description="Pickup reservation is scheduled")


class OrderDetailResponse(BaseModel):
    """Everything the order detail screen renders."""

    order: OrderResponse = Field(description="Order with items, history and refunds")
    shipment: ShipmentResponse | None = Field(default=None, description="Active shipment")
    tracking_events: list[TrackingEventResponse] = Field(default_factory=list, description="Newest first")
    actions: OrderActions = Field(description="Available actions")
    remaining_refundable: Decimal = Field(description="Remaining refundable balance")
    remaining_quantities: dict[str, int] = Field(
        default_factory=dict,
        description="Remaining refundable quantity keyed by order item ID",
    )


class StatusUpdateRequest(BaseModel):
    """Schema for POST /orders/{id}/status."""

    status: str = Field(description="Target status")
    note: str | None = Field(default=None, description="Optional note")


class CancelOrderRequest(BaseModel):
    """Schema for POST /orders/{id}/cancel."""

    reason: str | None = Field(default=None, description="Optional cancellation reason")


class PickupCompleteRequest(BaseModel):
    """Schema for POST /orders/{id}/pickup/complete."""

    note: str | None = Field(default=None, description="Optional note")


class OrderNoteCreate(BaseModel):
    """Schema for POST /orders/{id}/notes."""

    note: str = Field(min_length=1, description="Note text")


class RefundActionResponse(BaseModel):
    """Refund outcome with the refreshed order detail."""

    result: RefundResult = Field(description="Refund outcome")
    detail: OrderDetailResponse = Field(description="Order detail after the refund")


class LabelActionResponse(BaseModel):
    """Label creation outcome with the refreshed order detail."""

    result: LabelResult = Field(description="Label creation outcome")
    detail: OrderDetailResponse = Field(description="Order detail after the attempt")


class VoidActionResponse(BaseModel):
    """Label void outcome with the refreshed order detail."""

    result: VoidResult = Field(description="Void outcome")
    detail: OrderDetailResponse = Field(description="Order detail after the attempt")
