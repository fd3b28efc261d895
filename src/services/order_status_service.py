"""Order status transitions, pickup completion and internal notes."""

import logging
from datetime import datetime, timezone
from typing import Any

from src.api.middleware.error_handler import (
    ConflictError,
    NotFoundError,
    PartialFailureError,
    ValidationError,
)
from src.core.config import get_settings
from src.core.supabase import get_supabase_client
from src.models.order import ORDER_STATUSES

logger = logging.getLogger(__name__)

# Statuses from which cancellation is not offered
NON_CANCELLABLE_STATUSES = frozenset({"cancelled", "completed", "refunded"})


def is_transition_allowed(current: str, target: str) -> bool:
    """Check whether an order may move from current to target.

    Every pair of distinct statuses is allowed so operators can correct
    mis-clicks; callers go through this check so the rule can be tightened
    in one place.
    """
    return current != target


def can_cancel(status: str) -> bool:
    """Cancellation is offered unless the order is cancelled, completed or refunded."""
    return status not in NON_CANCELLABLE_STATUSES


def can_mark_picked_up(reservation: dict[str, Any] | None) -> bool:
    """Pickup completion is offered only for a scheduled reservation."""
    return reservation is not None and reservation.get("status") == "scheduled"


class OrderStatusMachine:
    """Service for applying order status transitions.

    Each transition is two writes: the orders row, then one
    order_status_history entry recording from_status and to_status.
    """

    def __init__(self) -> None:
        """Initialize status machine with Supabase client."""
        self.client = get_supabase_client()
        self.settings = get_settings()

    @property
    def statuses(self) -> tuple[str, ...]:
        """Known statuses: the base set plus configured extensions."""
        extra = [s for s in self.settings.extra_order_statuses_list if s not in ORDER_STATUSES]
        return ORDER_STATUSES + tuple(extra)

    def check_transition(self, current: str, target: str) -> None:
        """Reject a transition before anything is written.

        Raises:
            ValidationError: invalid_status for an unknown target, or
                same_status when target equals current.
            ConflictError: transition_not_allowed.
        """
        if target not in self.statuses:
            raise ValidationError(
                f"Unknown order status: {target}",
                error_type="invalid_status",
                details=[{"loc": ["status"], "msg": f"Expected one of {', '.join(self.statuses)}", "type": "invalid_status"}],
            )
        if target == current:
            raise ValidationError(f"Order is already {current}", error_type="same_status")
        if not is_transition_allowed(current, target):
            raise ConflictError(
                f"Cannot move order from {current} to {target}",
                error_type="transition_not_allowed",
            )

    async def get_order_state(self, order_id: str) -> dict[str, Any]:
        """Get the fields transitions read: id, status and internal_notes.

        Raises:
            NotFoundError: If the order does not exist.
        """
        response = (
            self.client.table("orders")
            .select("id, status, internal_notes")
            .eq("id", order_id)
            .maybe_single()
            .execute()
        )
        if not response or not response.data:
            raise NotFoundError("Order not found")
        return response.data

    async def transition(
        self,
        order_id: str,
        target: str,
        actor_id: str,
        note: str | None = None,
    ) -> dict[str, Any]:
        """Move an order to a new status and record it in the history.

        Args:
            order_id: The order's ID.
            target: Status to move to.
            actor_id: ID of the operator making the change.
            note: Optional note stored on the history entry.

        Returns:
            dict: The inserted order_status_history row.
        """
        order = await self.get_order_state(order_id)
        self.check_transition(order["status"], target)
        return await self._apply(order_id, order["status"], target, note, actor_id)

    async def cancel(self, order_id: str, actor_id: str, reason: str | None = None) -> dict[str, Any]:
        """Cancel an order.

        Raises:
            ConflictError: transition_not_allowed if the order is already
                cancelled, completed or refunded.
        """
        order = await self.get_order_state(order_id)
        if not can_cancel(order["status"]):
            raise ConflictError(
                f"Order cannot be cancelled while {order['status']}",
                error_type="transition_not_allowed",
            )
        note = f"Order cancelled: {reason}" if reason else "Order cancelled"
        return await self._apply(order_id, order["status"], "cancelled", note, actor_id)

    async def get_pickup_reservation(self, order_id: str) -> dict[str, Any] | None:
        """Get the order's most recent pickup reservation, if any."""
        response = (
            self.client.table("pickup_reservations")
            .select("*")
            .eq("order_id", order_id)
            .order("created_at", desc=True)
            .limit(1)
            .execute()
        )
        return response.data[0] if response and response.data else None

    async def mark_picked_up(self, order_id: str, actor_id: str, note: str | None = None) -> dict[str, Any] | None:
        """Mark the pickup reservation picked up and complete the order.

        Returns:
            dict | None: The history row, or None when the order was
                already completed.

        Raises:
            ConflictError: pickup_not_scheduled if there is no scheduled reservation.
        """
        order = await self.get_order_state(order_id)
        reservation = await self.get_pickup_reservation(order_id)
        if not can_mark_picked_up(reservation):
            raise ConflictError(
                "Order has no scheduled pickup reservation",
                error_type="pickup_not_scheduled",
            )

        now = datetime.now(timezone.utc).isoformat()
        (
            self.client.table("pickup_reservations")
            .update({"status": "picked_up", "picked_up_at": now, "updated_at": now})
            .eq("id", reservation["id"])
            .execute()
        )
        logger.info("Pickup reservation %s marked picked up by %s", reservation["id"], actor_id)

        if order["status"] == "completed":
            return None
        return await self._apply(
            order_id,
            order["status"],
            "completed",
            note or "Order picked up by customer",
            actor_id,
        )

    async def add_internal_note(self, order_id: str, note: str, actor_id: str) -> str:
        """Append a timestamped note to the order's internal notes.

        Returns:
            str: The full internal notes after the append.
        """
        order = await self.get_order_state(order_id)
        timestamp = datetime.now(timezone.utc).strftime("%Y-%m-%d %H:%M UTC")
        existing = order.get("internal_notes") or ""
        entry = f"[{timestamp}]\n{note}"
        notes = f"{existing}\n\n{entry}" if existing else entry

        (
            self.client.table("orders")
            .update(
                {
                    "internal_notes": notes,
                    "updated_at": datetime.now(timezone.utc).isoformat(),
                }
            )
            .eq("id", order_id)
            .execute()
        )
        logger.info("Internal note added to order %s by %s", order_id, actor_id)
        return notes

    async def _apply(
        self,
        order_id: str,
        from_status: str,
        to_status: str,
        note: str | None,
        actor_id: str,
    ) -> dict[str, Any]:
        (
            self.client.table("orders")
            .update(
                {
                    "status": to_status,
                    "updated_at": datetime.now(timezone.utc).isoformat(),
                }
            )
            .eq("id", order_id)
            .execute()
        )

        try:
            response = (
                self.client.table("order_status_history")
                .insert(
                    {
                        "order_id": order_id,
                        "status": to_status,
                        "from_status": from_status,
                        "note": note or None,
                        "changed_by": actor_id,
                    }
                )
                .execute()
            )
        except Exception as e:
            logger.error(
                "Order %s moved %s -> %s but history not recorded: %s",
                order_id,
                from_status,
                to_status,
                e,
            )
            raise PartialFailureError(
                message="Status updated but the history entry could not be recorded",
                error_type="history_not_recorded",
            ) from e

        logger.info("Order %s moved %s -> %s by %s", order_id, from_status, to_status, actor_id)
        return response.data[0] if response.data else {}
