"""Refund computation and submission service."""

import logging
from datetime import datetime, timezone
from decimal import Decimal, InvalidOperation
from typing import Any

import stripe
from fastapi import status

from src.api.middleware.error_handler import (
    APIError,
    ConflictError,
    ExternalServiceError,
    PartialFailureError,
    ValidationError,
)
from src.core.config import get_settings
from src.core.money import ZERO, to_cents, to_money
from src.core.stripe import get_stripe
from src.core.supabase import get_supabase_client
from src.models.order import ACCEPTED_REFUND_STATUSES
from src.schemas.order import OrderResponse
from src.schemas.refund import (
    RefundItemLine,
    RefundPreview,
    RefundRequest,
    RefundResponse,
    RefundResult,
)

logger = logging.getLogger(__name__)

REFUND_STATUSES = ("pending", "succeeded", "failed", "canceled")


def parse_manual_amount(value: Decimal | str | None) -> Decimal | None:
    """Parse an operator-entered amount.

    Returns:
        Decimal | None: The amount in cents precision, or None if left blank.

    Raises:
        ValidationError: invalid_amount if the value is not a non-negative number.
    """
    if value is None or (isinstance(value, str) and not value.strip()):
        return None
    try:
        amount = to_money(value.strip() if isinstance(value, str) else value)
    except (InvalidOperation, ValueError) as e:
        raise ValidationError("Refund amount must be a valid number", error_type="invalid_amount") from e
    if amount < ZERO:
        raise ValidationError("Refund amount cannot be negative", error_type="invalid_amount")
    return amount


def remaining_item_quantities(order: OrderResponse) -> dict[str, int]:
    """Quantity still refundable per order item, after accepted refunds."""
    return {item.id: item.remaining_refundable_quantity for item in order.items}


def compute_refund(order: OrderResponse, request: RefundRequest) -> RefundPreview:
    """Compute and validate the refund a selection describes.

    Checks run in order and each raises its own code: no_selection,
    invalid_amount, invalid_quantity, exceeds_remaining_balance,
    amount_not_positive.

    Args:
        order: The order as last read.
        request: Item selection, full-order flag and/or manual amount.

    Returns:
        RefundPreview: Computed and final amounts with the refunded lines.

    Raises:
        ValidationError: If the selection is rejected.
    """
    has_manual = request.manual_amount is not None and not (
        isinstance(request.manual_amount, str) and not request.manual_amount.strip()
    )
    if not request.items and not request.full_order and not has_manual:
        raise ValidationError(
            "Select items to refund, choose a full refund, or enter an amount",
            error_type="no_selection",
        )

    manual_amount = parse_manual_amount(request.manual_amount)

    lines: list[RefundItemLine] = []
    if request.full_order:
        for item in order.items:
            remaining = item.remaining_refundable_quantity
            if remaining > 0:
                lines.append(
                    RefundItemLine(
                        order_item_id=item.id,
                        quantity=remaining,
                        amount=to_money(item.unit_price * remaining),
                        description=item.product_name,
                    )
                )
    else:
        requested: dict[str, int] = {}
        for selection in request.items:
            if selection.quantity < 1:
                raise ValidationError(
                    "Refund quantities must be at least 1",
                    error_type="invalid_quantity",
                    details=[{"loc": ["items", selection.order_item_id], "msg": f"Got {selection.quantity}", "type": "invalid_quantity"}],
                )
            requested[selection.order_item_id] = requested.get(selection.order_item_id, 0) + selection.quantity

        for order_item_id, quantity in requested.items():
            item = order.item(order_item_id)
            if item is None:
                raise ValidationError(
                    f"Order item {order_item_id} is not part of this order",
                    error_type="invalid_quantity",
                )
            remaining = item.remaining_refundable_quantity
            if quantity < 1 or quantity > remaining:
                raise ValidationError(
                    f"Quantity for {item.product_name} must be between 1 and {remaining}",
                    error_type="invalid_quantity",
                    details=[{"loc": ["items", order_item_id], "msg": f"Remaining refundable quantity is {remaining}", "type": "invalid_quantity"}],
                )
            lines.append(
                RefundItemLine(
                    order_item_id=item.id,
                    quantity=quantity,
                    amount=to_money(item.unit_price * quantity),
                    description=item.product_name,
                )
            )

    computed_amount = to_money(sum((line.amount for line in lines), ZERO))
    remaining_refundable = order.remaining_refundable

    if manual_amount is not None:
        amount = manual_amount
    elif request.full_order:
        amount = remaining_refundable
    else:
        amount = computed_amount

    if amount > remaining_refundable:
        raise ValidationError(
            f"Refund amount {amount} exceeds remaining balance {remaining_refundable}",
            error_type="exceeds_remaining_balance",
        )
    if amount <= ZERO:
        raise ValidationError("Refund amount must be greater than zero", error_type="amount_not_positive")

    return RefundPreview(
        computed_amount=computed_amount,
        amount=amount,
        remaining_refundable=remaining_refundable,
        items=lines,
    )


class RefundService:
    """Service for refunding orders through Stripe.

    Submission is two writes after the processor call: the refund row,
    then the order's refunded_total and payment_status. Either write can
    fail independently and is reported with its own error code; the
    refunded_total can be rebuilt from the refund rows with
    reconcile_refunded_total.
    """

    def __init__(self) -> None:
        """Initialize refund service with clients."""
        self.client = get_supabase_client()
        self.stripe = get_stripe()
        self.settings = get_settings()

    def is_paid_status(self, order: OrderResponse) -> bool:
        """Check whether the order's payment status allows refunds."""
        return (order.payment_status or "").lower() in self.settings.refundable_payment_statuses_list

    def can_refund(self, order: OrderResponse) -> bool:
        """Check the refund guard: payment reference, paid status and balance left."""
        return order.has_payment_reference and order.remaining_refundable > ZERO and self.is_paid_status(order)

    def preview(self, order: OrderResponse, request: RefundRequest) -> RefundPreview:
        """Compute a refund without submitting it."""
        return compute_refund(order, request)

    async def submit_refund(
        self,
        order: OrderResponse,
        request: RefundRequest,
        actor_id: str,
    ) -> RefundResult:
        """Validate, submit to Stripe and record a refund.

        Args:
            order: The order as last read.
            request: The refund selection.
            actor_id: ID of the operator issuing the refund.

        Returns:
            RefundResult: The stored refund and the order's new totals.

        Raises:
            ValidationError: If the selection is rejected (nothing submitted).
            ConflictError: not_refundable if the order cannot be refunded.
            ExternalServiceError: If Stripe rejects the refund (nothing recorded).
            PartialFailureError: refund_not_recorded or refund_totals_not_updated.
        """
        preview = compute_refund(order, request)

        if not self.can_refund(order):
            raise ConflictError(
                "Order cannot be refunded: it needs a payment reference, a paid status and a remaining balance",
                error_type="not_refundable",
            )
        if not self.settings.stripe_secret_key:
            raise APIError(
                message="Stripe is not configured. Please set STRIPE_SECRET_KEY environment variable.",
                status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
                error_type="payment_processor_not_configured",
            )

        amount_cents = to_cents(preview.amount)
        try:
            refund = self.stripe.Refund.create(
                payment_intent=order.stripe_payment_intent_id,
                amount=amount_cents,
                reason="requested_by_customer",
                metadata={
                    "order_id": order.id,
                    "order_number": order.order_number or "",
                    "admin_user_id": actor_id,
                    "refund_reason": request.reason or "",
                },
                idempotency_key=f"refund-{order.id}-{to_cents(order.refunded_total)}-{amount_cents}",
            )
        except stripe.StripeError as e:
            logger.warning("Stripe refund failed for order %s: %s", order.id, e)
            raise ExternalServiceError(
                message=e.user_message or str(e),
                code=e.code or "payment_processor_error",
            ) from e

        refund_status = refund.status if refund.status in REFUND_STATUSES else "pending"
        if refund_status in ("failed", "canceled"):
            raise ExternalServiceError(
                message=f"Refund was {refund_status} by the payment processor",
                code=f"refund_{refund_status}",
            )

        try:
            refund_row = await self.find_recorded_refund(refund.id)
            if refund_row:
                logger.info("Stripe refund %s already recorded for order %s", refund.id, order.id)
            else:
                insert_response = (
                    self.client.table("order_refunds")
                    .insert(
                        {
                            "order_id": order.id,
                            "amount": float(preview.amount),
                            "reason": request.reason or None,
                            "items": [
                                {
                                    "order_item_id": line.order_item_id,
                                    "quantity": line.quantity,
                                    "amount": float(line.amount),
                                    "description": line.description,
                                }
                                for line in preview.items
                            ]
                            or None,
                            "stripe_refund_id": refund.id,
                            "status": refund_status,
                            "created_by": actor_id,
                        }
                    )
                    .execute()
                )
                refund_row = insert_response.data[0]
        except Exception as e:
            logger.error(
                "Stripe refund %s issued for order %s but not recorded: %s",
                refund.id,
                order.id,
                e,
            )
            raise PartialFailureError(
                message="Refund was issued by the payment processor but could not be recorded",
                error_type="refund_not_recorded",
                details=[{"loc": ["stripe_refund_id"], "msg": str(refund.id), "type": "processor_refund"}],
            ) from e

        try:
            refunded_total = await self.reconcile_refunded_total(order.id, order.total)
        except Exception as e:
            logger.error("Refund %s recorded but order %s totals not updated: %s", refund_row["id"], order.id, e)
            raise PartialFailureError(
                message="Refund recorded but order totals could not be updated",
                error_type="refund_totals_not_updated",
                details=[{"loc": ["refund_id"], "msg": str(refund_row["id"]), "type": "refund"}],
            ) from e

        fully_refunded = refunded_total >= order.total
        logger.info(
            "Refunded %s on order %s by %s (refunded total %s)",
            preview.amount,
            order.id,
            actor_id,
            refunded_total,
        )
        return RefundResult(
            refund=RefundResponse.from_row(refund_row),
            refunded_total=refunded_total,
            remaining_refundable=max(ZERO, order.total - refunded_total),
            payment_status="refunded" if fully_refunded else "partial",
            fully_refunded=fully_refunded,
        )

    async def find_recorded_refund(self, stripe_refund_id: str) -> dict[str, Any] | None:
        """Get the order_refunds row already stored for a Stripe refund, if any.

        A retried submission reuses its idempotency key and Stripe replays
        the original refund, which must not be recorded twice.
        """
        response = (
            self.client.table("order_refunds")
            .select("*")
            .eq("stripe_refund_id", stripe_refund_id)
            .limit(1)
            .execute()
        )
        return response.data[0] if response and response.data else None

    async def reconcile_refunded_total(self, order_id: str, order_total: Decimal) -> Decimal:
        """Recompute refunded_total and payment_status from accepted refund rows.

        Pending refunds count alongside succeeded ones.

        Args:
            order_id: The order's ID.
            order_total: The order's total, used to derive payment_status.

        Returns:
            Decimal: The refunded total written to the order.
        """
        response = (
            self.client.table("order_refunds")
            .select("amount")
            .eq("order_id", order_id)
            .in_("status", list(ACCEPTED_REFUND_STATUSES))
            .execute()
        )
        refunded_total = to_money(sum((to_money(row.get("amount")) for row in response.data or []), ZERO))

        update: dict[str, Any] = {
            "refunded_total": float(refunded_total),
            "updated_at": datetime.now(timezone.utc).isoformat(),
        }
        if refunded_total > ZERO:
            update["payment_status"] = "refunded" if refunded_total >= order_total else "partial"

        self.client.table("orders").update(update).eq("id", order_id).execute()
        return refunded_total
