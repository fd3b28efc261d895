"""Shipment label lifecycle service."""

import logging
from datetime import datetime, timezone
from typing import Any

from src.core.carrier import CarrierError, get_carrier_client
from src.core.money import to_money
from src.core.supabase import get_supabase_client, is_no_rows_error
from src.schemas.shipment import LabelDetails, LabelResult, ServiceError, ShipmentResponse, VoidResult

logger = logging.getLogger(__name__)


def can_create_label(shipment: dict[str, Any] | None) -> bool:
    """A label may be bought when there is no shipment or the latest one is voided."""
    return shipment is None or bool(shipment.get("voided"))


def can_void_label(shipment: dict[str, Any] | None) -> bool:
    """A label may be voided when the latest shipment has one and it is not voided."""
    return shipment is not None and bool(shipment.get("label_id")) and not shipment.get("voided")


class ShipmentService:
    """Service for creating and voiding carrier labels.

    The create/void guards are computed from the latest shipment row as read
    at call time. They are not a lock: two concurrent create calls that both
    see no active shipment will both purchase a label.
    """

    def __init__(self) -> None:
        """Initialize shipment service with clients."""
        self.client = get_supabase_client()
        self.carrier = get_carrier_client()

    async def fetch_active_shipment(self, order_id: str) -> dict[str, Any] | None:
        """Get the most recently created shipment for an order.

        Shipment data is supplementary, so lookup failures are logged and
        treated as no shipment.

        Args:
            order_id: The order's ID.

        Returns:
            dict | None: The latest shipment row, voided or not.
        """
        try:
            response = (
                self.client.table("shipments")
                .select("*")
                .eq("order_id", order_id)
                .order("created_at", desc=True)
                .limit(1)
                .execute()
            )
        except Exception as e:
            if not is_no_rows_error(e):
                logger.warning("Shipment fetch failed for order %s (non-critical): %s", order_id, e)
            return None

        return response.data[0] if response and response.data else None

    async def create_label(self, order_id: str, actor_id: str) -> LabelResult:
        """Purchase a label and store it as a new shipment row.

        Args:
            order_id: The order's ID.
            actor_id: ID of the operator requesting the label.

        Returns:
            LabelResult: success with the label and refreshed shipment, or a
                structured error.
        """
        current = await self.fetch_active_shipment(order_id)
        if not can_create_label(current):
            return LabelResult(
                success=False,
                error=ServiceError(code="label_exists", message="A label already exists for this order"),
            )

        try:
            label = await self.carrier.create_label(order_id)
        except CarrierError as e:
            logger.warning("Label creation failed for order %s: %s", order_id, e)
            return LabelResult(
                success=False,
                error=ServiceError(code=e.code, message=e.message, details=e.details),
            )

        details = LabelDetails(
            label_id=label["label_id"],
            tracking_number=label.get("tracking_number"),
            label_url=label.get("label_url"),
            cost=to_money(label["cost"]) if label.get("cost") is not None else None,
            carrier_id=label.get("carrier_id"),
            carrier_code=label.get("carrier_code"),
            service_code=label.get("service_code"),
        )

        try:
            (
                self.client.table("shipments")
                .insert(
                    {
                        "order_id": order_id,
                        "label_id": details.label_id,
                        "tracking_number": details.tracking_number,
                        "carrier_id": details.carrier_id,
                        "carrier_code": details.carrier_code,
                        "service_code": details.service_code,
                        "label_url": details.label_url,
                        "label_format": "pdf",
                        "shipment_cost": float(details.cost) if details.cost is not None else None,
                        "status": "label_created",
                        "voided": False,
                    }
                )
                .execute()
            )
        except Exception as e:
            logger.error(
                "Label %s purchased for order %s but shipment not saved: %s",
                details.label_id,
                order_id,
                e,
            )
            return LabelResult(
                success=False,
                label=details,
                error=ServiceError(
                    code="shipment_not_saved",
                    message="Label purchased but the shipment record could not be saved",
                    details=str(e),
                ),
            )

        await self._set_order_tracking_number(order_id, details.tracking_number)
        logger.info("Label %s created for order %s by %s", details.label_id, order_id, actor_id)

        shipment = await self.fetch_active_shipment(order_id)
        return LabelResult(
            success=True,
            label=details,
            shipment=ShipmentResponse(**shipment) if shipment else None,
        )

    async def void_label(self, label_id: str, actor_id: str) -> VoidResult:
        """Void a label with the carrier and mark its shipment voided.

        A carrier refusal is a successful call with approved=False; the
        shipment is left untouched in that case.

        Args:
            label_id: The carrier label ID.
            actor_id: ID of the operator requesting the void.

        Returns:
            VoidResult: The carrier's answer or a structured error.
        """
        if not label_id:
            return VoidResult(success=False, error=ServiceError(code="no_label", message="No label ID provided"))

        try:
            response = (
                self.client.table("shipments")
                .select("*")
                .eq("label_id", label_id)
                .order("created_at", desc=True)
                .limit(1)
                .execute()
            )
            shipment = response.data[0] if response and response.data else None
        except Exception as e:
            if not is_no_rows_error(e):
                logger.warning("Shipment lookup failed for label %s: %s", label_id, e)
            shipment = None

        if not shipment:
            return VoidResult(
                success=False,
                error=ServiceError(code="shipment_not_found", message="Shipment not found for this label"),
            )
        if not can_void_label(shipment):
            return VoidResult(
                success=False,
                error=ServiceError(code="no_active_label", message="Label has already been voided"),
            )

        try:
            outcome = await self.carrier.void_label(label_id)
        except CarrierError as e:
            logger.warning("Label void failed for %s: %s", label_id, e)
            return VoidResult(
                success=False,
                error=ServiceError(code=e.code, message=e.message, details=e.details),
            )

        if not outcome["approved"]:
            logger.info("Carrier declined void of label %s: %s", label_id, outcome["message"])
            return VoidResult(success=True, approved=False, message=outcome["message"])

        try:
            (
                self.client.table("shipments")
                .update(
                    {
                        "voided": True,
                        "voided_at": datetime.now(timezone.utc).isoformat(),
                        "status": "voided",
                    }
                )
                .eq("id", shipment["id"])
                .execute()
            )
        except Exception as e:
            logger.error("Label %s voided at carrier but shipment not updated: %s", label_id, e)
            return VoidResult(
                success=False,
                approved=True,
                message=outcome["message"],
                error=ServiceError(
                    code="void_not_recorded",
                    message="Label voided with the carrier but the shipment could not be updated",
                    details=str(e),
                ),
            )

        await self._set_order_tracking_number(shipment["order_id"], None)
        logger.info("Label %s voided by %s", label_id, actor_id)
        return VoidResult(success=True, approved=True, message=outcome["message"])

    async def list_tracking_events(self, shipment_id: str) -> list[dict[str, Any]]:
        """Get carrier tracking events for a shipment, newest first.

        Failures are logged and yield an empty list.
        """
        try:
            response = (
                self.client.table("tracking_events")
                .select("*")
                .eq("shipment_id", shipment_id)
                .order("occurred_at", desc=True)
                .execute()
            )
        except Exception as e:
            logger.warning("Tracking events fetch failed for shipment %s: %s", shipment_id, e)
            return []
        return response.data or []

    async def _set_order_tracking_number(self, order_id: str, tracking_number: str | None) -> None:
        try:
            (
                self.client.table("orders")
                .update(
                    {
                        "tracking_number": tracking_number,
                        "updated_at": datetime.now(timezone.utc).isoformat(),
                    }
                )
                .eq("id", order_id)
                .execute()
            )
        except Exception as e:
            logger.warning("Could not update tracking number on order %s: %s", order_id, e)
