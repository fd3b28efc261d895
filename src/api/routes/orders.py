"""Order detail, status, refund and shipment routes."""

from fastapi import APIRouter

from src.api.deps import CurrentUser
from src.schemas.order import (
    CancelOrderRequest,
    LabelActionResponse,
    OrderDetailResponse,
    OrderNoteCreate,
    PickupCompleteRequest,
    RefundActionResponse,
    StatusUpdateRequest,
    VoidActionResponse,
)
from src.schemas.refund import RefundPreview, RefundRequest
from src.schemas.shipment import VoidLabelRequest
from src.services.order_detail_service import OrderDetailService

router = APIRouter(prefix="/orders", tags=["orders"])


@router.get(
    "/{order_id}",
    response_model=OrderDetailResponse,
    summary="Get order detail",
    description="Returns the order with items, history, refunds, active shipment, tracking events and available actions.",
)
async def get_order_detail(order_id: str, user: CurrentUser) -> OrderDetailResponse:
    """Get everything the order detail screen renders.

    Raises:
        NotFoundError: If the order does not exist.
    """
    service = OrderDetailService()
    return await service.get_order_detail(order_id)


@router.post(
    "/{order_id}/status",
    response_model=OrderDetailResponse,
    summary="Change order status",
)
async def update_order_status(
    order_id: str,
    data: StatusUpdateRequest,
    user: CurrentUser,
) -> OrderDetailResponse:
    """Move the order to another status and record a history entry."""
    service = OrderDetailService()
    return await service.update_status(order_id, data.status, user.actor_id, data.note)


@router.post(
    "/{order_id}/cancel",
    response_model=OrderDetailResponse,
    summary="Cancel order",
)
async def cancel_order(
    order_id: str,
    data: CancelOrderRequest,
    user: CurrentUser,
) -> OrderDetailResponse:
    """Cancel an order that is not already cancelled, completed or refunded."""
    service = OrderDetailService()
    return await service.cancel_order(order_id, user.actor_id, data.reason)


@router.post(
    "/{order_id}/pickup/complete",
    response_model=OrderDetailResponse,
    summary="Mark pickup collected",
)
async def complete_pickup(
    order_id: str,
    data: PickupCompleteRequest,
    user: CurrentUser,
) -> OrderDetailResponse:
    """Mark a scheduled pickup as collected and complete the order."""
    service = OrderDetailService()
    return await service.complete_pickup(order_id, user.actor_id, data.note)


@router.post(
    "/{order_id}/notes",
    response_model=OrderDetailResponse,
    summary="Add internal note",
)
async def add_order_note(
    order_id: str,
    data: OrderNoteCreate,
    user: CurrentUser,
) -> OrderDetailResponse:
    """Append a timestamped internal note to the order."""
    service = OrderDetailService()
    return await service.add_note(order_id, data.note, user.actor_id)


@router.post(
    "/{order_id}/refunds/preview",
    response_model=RefundPreview,
    summary="Preview refund",
    description="Computes and validates a refund selection without submitting it.",
)
async def preview_refund(
    order_id: str,
    data: RefundRequest,
    user: CurrentUser,
) -> RefundPreview:
    """Compute the refund a selection describes."""
    service = OrderDetailService()
    return await service.preview_refund(order_id, data)


@router.post(
    "/{order_id}/refunds",
    response_model=RefundActionResponse,
    summary="Refund order",
    description="Submits a refund to Stripe, records it and updates the order totals.",
)
async def refund_order(
    order_id: str,
    data: RefundRequest,
    user: CurrentUser,
) -> RefundActionResponse:
    """Submit a refund for the order.

    Raises:
        ValidationError: 422 if the selection is rejected.
        ConflictError: 409 if the order is not refundable.
        ExternalServiceError: 502 if Stripe rejects the refund.
        PartialFailureError: 500 if a write after the Stripe call fails.
    """
    service = OrderDetailService()
    return await service.refund_order(order_id, data, user.actor_id)


@router.post(
    "/{order_id}/refunds/reconcile",
    response_model=OrderDetailResponse,
    summary="Reconcile refunded total",
    description="Recomputes refunded_total and payment_status from succeeded refunds.",
)
async def reconcile_refunds(order_id: str, user: CurrentUser) -> OrderDetailResponse:
    """Rebuild the order's refunded total from its refund rows."""
    service = OrderDetailService()
    return await service.reconcile_refunds(order_id)


@router.post(
    "/{order_id}/shipment/label",
    response_model=LabelActionResponse,
    summary="Create shipping label",
)
async def create_label(order_id: str, user: CurrentUser) -> LabelActionResponse:
    """Purchase a carrier label for the order.

    Carrier failures are returned in result.error rather than raised.
    """
    service = OrderDetailService()
    return await service.create_label(order_id, user.actor_id)


@router.post(
    "/{order_id}/shipment/void",
    response_model=VoidActionResponse,
    summary="Void shipping label",
)
async def void_label(
    order_id: str,
    data: VoidLabelRequest,
    user: CurrentUser,
) -> VoidActionResponse:
    """Void the order's active label.

    A carrier refusal is returned as result.approved = false.
    """
    service = OrderDetailService()
    return await service.void_label(order_id, user.actor_id, data.label_id)
