"""Order detail service composing shipments, refunds and status transitions."""

import logging
from typing import Any

from src.api.middleware.error_handler import NotFoundError
from src.core.money import format_usd
from src.core.supabase import get_supabase_client
from src.schemas.order import (
    LabelActionResponse,
    OrderActions,
    OrderDetailResponse,
    OrderResponse,
    RefundActionResponse,
    VoidActionResponse,
)
from src.schemas.refund import RefundPreview, RefundRequest
from src.schemas.shipment import ServiceError, ShipmentResponse, TrackingEventResponse, VoidResult
from src.services.order_status_service import OrderStatusMachine, can_cancel, can_mark_picked_up
from src.services.refund_service import RefundService, remaining_item_quantities
from src.services.shipment_service import ShipmentService, can_create_label, can_void_label

logger = logging.getLogger(__name__)

ORDER_DETAIL_SELECT = "*, order_items(*), order_refunds(*), pickup_reservations(*)"


class OrderDetailService:
    """Service behind the order detail screen.

    Every mutating action calls one component and then re-reads the order
    and shipment, so server-computed fields such as refunded_total are
    never merged locally.
    """

    def __init__(
        self,
        shipment_service: ShipmentService | None = None,
        refund_service: RefundService | None = None,
        status_machine: OrderStatusMachine | None = None,
    ) -> None:
        """Initialize order detail service.

        Args:
            shipment_service: Optional ShipmentService for dependency injection.
            refund_service: Optional RefundService for dependency injection.
            status_machine: Optional OrderStatusMachine for dependency injection.
        """
        self.client = get_supabase_client()
        self.shipment_service = shipment_service or ShipmentService()
        self.refund_service = refund_service or RefundService()
        self.status_machine = status_machine or OrderStatusMachine()

    async def get_order(self, order_id: str) -> OrderResponse:
        """Get an order with items, refunds, pickup reservation and history.

        Raises:
            NotFoundError: If the order does not exist.
        """
        response = (
            self.client.table("orders")
            .select(ORDER_DETAIL_SELECT)
            .eq("id", order_id)
            .maybe_single()
            .execute()
        )
        if not response or not response.data:
            raise NotFoundError("Order not found")

        history = await self.get_status_history(order_id)
        return OrderResponse.from_row(response.data, history)

    async def get_status_history(self, order_id: str) -> list[dict[str, Any]]:
        """Get status history oldest first; failures yield an empty history."""
        try:
            response = (
                self.client.table("order_status_history")
                .select("*")
                .eq("order_id", order_id)
                .order("created_at", desc=False)
                .execute()
            )
        except Exception as e:
            logger.warning("Status history fetch failed for order %s (non-critical): %s", order_id, e)
            return []
        return response.data or []

    def build_actions(self, order: OrderResponse, shipment: dict[str, Any] | None) -> OrderActions:
        """Derive the available actions from the order and its active shipment."""
        reservation = order.pickup_reservation.model_dump() if order.pickup_reservation else None
        return OrderActions(
            can_create_label=can_create_label(shipment),
            can_void_label=can_void_label(shipment),
            can_refund=self.refund_service.can_refund(order),
            can_cancel=can_cancel(order.status),
            can_mark_picked_up=can_mark_picked_up(reservation),
        )

    async def get_order_detail(self, order_id: str) -> OrderDetailResponse:
        """Load everything the order detail screen renders.

        Shipment and tracking reads are optional; the order renders without them.
        """
        order = await self.get_order(order_id)
        shipment = await self.shipment_service.fetch_active_shipment(order_id)

        tracking_events: list[dict[str, Any]] = []
        if shipment:
            tracking_events = await self.shipment_service.list_tracking_events(shipment["id"])

        return OrderDetailResponse(
            order=order,
            shipment=ShipmentResponse(**shipment) if shipment else None,
            tracking_events=[TrackingEventResponse(**event) for event in tracking_events],
            actions=self.build_actions(order, shipment),
            remaining_refundable=order.remaining_refundable,
            remaining_quantities=remaining_item_quantities(order),
        )

    async def update_status(
        self,
        order_id: str,
        target: str,
        actor_id: str,
        note: str | None = None,
    ) -> OrderDetailResponse:
        """Move the order to a new status and return the refreshed detail."""
        await self.status_machine.transition(order_id, target, actor_id, note)
        return await self.get_order_detail(order_id)

    async def cancel_order(self, order_id: str, actor_id: str, reason: str | None = None) -> OrderDetailResponse:
        """Cancel the order and return the refreshed detail."""
        await self.status_machine.cancel(order_id, actor_id, reason)
        return await self.get_order_detail(order_id)

    async def complete_pickup(self, order_id: str, actor_id: str, note: str | None = None) -> OrderDetailResponse:
        """Mark the pickup collected and return the refreshed detail."""
        await self.status_machine.mark_picked_up(order_id, actor_id, note)
        return await self.get_order_detail(order_id)

    async def add_note(self, order_id: str, note: str, actor_id: str) -> OrderDetailResponse:
        """Append an internal note and return the refreshed detail."""
        await self.status_machine.add_internal_note(order_id, note, actor_id)
        return await self.get_order_detail(order_id)

    async def preview_refund(self, order_id: str, request: RefundRequest) -> RefundPreview:
        """Compute a refund for the current order state without submitting it."""
        order = await self.get_order(order_id)
        return self.refund_service.preview(order, request)

    async def refund_order(self, order_id: str, request: RefundRequest, actor_id: str) -> RefundActionResponse:
        """Submit a refund and return its outcome with the refreshed detail.

        A refund that covers the remaining balance also moves the order to
        refunded, with one history entry.
        """
        order = await self.get_order(order_id)
        result = await self.refund_service.submit_refund(order, request, actor_id)

        if result.fully_refunded and order.status != "refunded":
            note = f"Refunded {format_usd(result.refund.amount)}"
            if request.reason:
                note = f"{note} - Reason: {request.reason}"
            await self.status_machine.transition(order_id, "refunded", actor_id, note)

        return RefundActionResponse(result=result, detail=await self.get_order_detail(order_id))

    async def reconcile_refunds(self, order_id: str) -> OrderDetailResponse:
        """Rebuild refunded_total from refund rows and return the refreshed detail."""
        order = await self.get_order(order_id)
        refunded_total = await self.refund_service.reconcile_refunded_total(order.id, order.total)
        if refunded_total != order.refunded_total:
            logger.warning(
                "Order %s refunded_total reconciled from %s to %s",
                order_id,
                order.refunded_total,
                refunded_total,
            )
        return await self.get_order_detail(order_id)

    async def create_label(self, order_id: str, actor_id: str) -> LabelActionResponse:
        """Purchase a label for the order and return the refreshed detail."""
        await self.get_order(order_id)
        result = await self.shipment_service.create_label(order_id, actor_id)
        return LabelActionResponse(result=result, detail=await self.get_order_detail(order_id))

    async def void_label(self, order_id: str, actor_id: str, label_id: str | None = None) -> VoidActionResponse:
        """Void the order's active label, or the given one, and return the refreshed detail."""
        if label_id is None:
            shipment = await self.shipment_service.fetch_active_shipment(order_id)
            if not can_void_label(shipment):
                result = VoidResult(
                    success=False,
                    error=ServiceError(code="no_active_label", message="Order has no active label to void"),
                )
                return VoidActionResponse(result=result, detail=await self.get_order_detail(order_id))
            label_id = shipment["label_id"]

        result = await self.shipment_service.void_label(label_id, actor_id)
        return VoidActionResponse(result=result, detail=await self.get_order_detail(order_id))
