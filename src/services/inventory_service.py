"""Inventory adjustment ledger service."""

import logging
from datetime import datetime, timezone
from typing import Any

from src.api.middleware.error_handler import APIError, NotFoundError, PartialFailureError, ValidationError
from src.core.config import get_settings
from src.core.supabase import get_supabase_client
from src.models.inventory import ADJUSTMENT_TYPES
from src.schemas.inventory import AdjustmentResult, BulkUpdateFailure, BulkUpdateResult

logger = logging.getLogger(__name__)


def clamp_quantity(current: int, delta: int) -> int:
    """Apply a signed delta, flooring the result at zero."""
    return max(0, current + delta)


def compute_adjusted_quantities(batch: dict[str, Any], delta: int) -> tuple[int, int]:
    """Compute a batch's actual and available quantities after a delta.

    Each quantity is clamped independently.

    Args:
        batch: inventory_batches row.
        delta: Signed quantity change.

    Returns:
        tuple: (quantity_actual, quantity_available)
    """
    return (
        clamp_quantity(int(batch.get("quantity_actual") or 0), delta),
        clamp_quantity(int(batch.get("quantity_available") or 0), delta),
    )


class InventoryLedgerService:
    """Service for reason-coded stock adjustments.

    Every quantity change is written to the inventory_adjustments ledger
    before the batch or product row is touched. The two writes are not
    transactional: a failed second write leaves a ledger entry without its
    quantity change and is reported as stock_not_updated.
    """

    def __init__(self) -> None:
        """Initialize inventory service with Supabase client."""
        self.client = get_supabase_client()
        self.settings = get_settings()

    def validate_adjustment(self, quantity: int, adjustment_type: str, reason_code: str) -> None:
        """Reject an adjustment before anything is written.

        Raises:
            ValidationError: zero_quantity, invalid_adjustment_type or invalid_reason_code.
        """
        if quantity == 0:
            raise ValidationError("Quantity cannot be zero", error_type="zero_quantity")
        if adjustment_type not in ADJUSTMENT_TYPES:
            raise ValidationError(
                f"Unknown adjustment type: {adjustment_type}",
                error_type="invalid_adjustment_type",
                details=[{"loc": ["adjustment_type"], "msg": f"Expected one of {', '.join(ADJUSTMENT_TYPES)}", "type": "invalid_adjustment_type"}],
            )
        if reason_code not in self.settings.inventory_reason_codes_list:
            raise ValidationError(
                f"Unknown reason code: {reason_code}",
                error_type="invalid_reason_code",
            )

    async def get_batch(self, batch_id: str) -> dict[str, Any]:
        """Get an inventory batch by ID.

        Raises:
            NotFoundError: If the batch does not exist.
        """
        response = (
            self.client.table("inventory_batches")
            .select("*")
            .eq("id", batch_id)
            .maybe_single()
            .execute()
        )
        if not response or not response.data:
            raise NotFoundError("Inventory batch not found")
        return response.data

    async def apply_adjustment(
        self,
        batch: dict[str, Any],
        quantity: int,
        adjustment_type: str,
        reason_code: str,
        notes: str | None,
        actor_id: str,
    ) -> AdjustmentResult:
        """Record a ledger entry and apply its delta to the batch.

        Args:
            batch: inventory_batches row as last read.
            quantity: Signed quantity delta.
            adjustment_type: loss, damage, correction, count or return.
            reason_code: Code from the configured allow-list.
            notes: Optional operator notes.
            actor_id: ID of the operator making the change.

        Returns:
            AdjustmentResult: New quantities for display.

        Raises:
            ValidationError: If the adjustment is rejected before submission.
            APIError: ledger_write_failed if the ledger insert fails (batch untouched).
            PartialFailureError: stock_not_updated if the batch update fails.
        """
        self.validate_adjustment(quantity, adjustment_type, reason_code)
        batch_id = batch["id"]

        try:
            ledger_response = (
                self.client.table("inventory_adjustments")
                .insert(
                    {
                        "batch_id": batch_id,
                        "adjustment_type": adjustment_type,
                        "quantity": quantity,
                        "reason_code": reason_code,
                        "notes": notes or None,
                        "adjusted_by": actor_id,
                    }
                )
                .execute()
            )
        except Exception as e:
            logger.warning("Ledger insert failed for batch %s: %s", batch_id, e)
            raise APIError(
                message=f"Failed to record adjustment: {e}",
                error_type="ledger_write_failed",
            ) from e

        adjustment_id = ledger_response.data[0]["id"] if ledger_response.data else None
        new_actual, new_available = compute_adjusted_quantities(batch, quantity)

        try:
            (
                self.client.table("inventory_batches")
                .update(
                    {
                        "quantity_actual": new_actual,
                        "quantity_available": new_available,
                        "updated_at": datetime.now(timezone.utc).isoformat(),
                    }
                )
                .eq("id", batch_id)
                .execute()
            )
        except Exception as e:
            logger.error(
                "Adjustment %s logged but batch %s stock not updated: %s",
                adjustment_id,
                batch_id,
                e,
            )
            raise PartialFailureError(
                message="Adjustment logged but stock not updated",
                error_type="stock_not_updated",
                details=[
                    {"loc": ["adjustment_id"], "msg": str(adjustment_id), "type": "ledger_entry"},
                    {"loc": ["batch_id"], "msg": str(e), "type": "batch_update_failed"},
                ],
            ) from e

        threshold = batch.get("low_stock_threshold")
        logger.info(
            "Batch %s adjusted by %d (%s/%s) by %s",
            batch_id,
            quantity,
            adjustment_type,
            reason_code,
            actor_id,
        )
        return AdjustmentResult(
            adjustment_id=adjustment_id,
            batch_id=batch_id,
            quantity_delta=quantity,
            quantity_actual=new_actual,
            quantity_available=new_available,
            is_low_stock=threshold is not None and new_available <= int(threshold),
        )

    async def adjust_batch(
        self,
        batch_id: str,
        quantity: int,
        adjustment_type: str,
        reason_code: str,
        notes: str | None,
        actor_id: str,
    ) -> AdjustmentResult:
        """Load a batch and apply an adjustment to it."""
        # Rejected adjustments never read the store
        self.validate_adjustment(quantity, adjustment_type, reason_code)
        batch = await self.get_batch(batch_id)
        return await self.apply_adjustment(batch, quantity, adjustment_type, reason_code, notes, actor_id)

    async def list_adjustments(self, batch_id: str) -> list[dict[str, Any]]:
        """Get the ledger for a batch, newest first."""
        response = (
            self.client.table("inventory_adjustments")
            .select("*")
            .eq("batch_id", batch_id)
            .order("created_at", desc=True)
            .execute()
        )
        return response.data or []

    async def bulk_update_quantities(
        self,
        targets: dict[str, int],
        originals: dict[str, int],
        actor_id: str,
        notes: str | None = None,
    ) -> BulkUpdateResult:
        """Set each product's available quantity to its target independently.

        The delta recorded in the ledger is target minus original. A failure
        on one product never prevents the others from being attempted.

        Args:
            targets: Target quantity keyed by product ID.
            originals: Quantity the operator started from, keyed by product ID.
                Missing entries are read from the store.
            actor_id: ID of the operator making the change.
            notes: Optional notes for each ledger entry.

        Returns:
            BulkUpdateResult: Updated IDs, skipped IDs and per-product failures.
        """
        result = BulkUpdateResult(updated_count=0)

        for product_id, target in targets.items():
            try:
                outcome = await self._update_product_quantity(
                    product_id, target, originals.get(product_id), actor_id, notes
                )
            except APIError as e:
                logger.warning("Bulk update failed for product %s: %s", product_id, e.message)
                result.failures.append(BulkUpdateFailure(product_id=product_id, message=e.message))
                continue

            if outcome:
                result.updated.append(product_id)
                result.updated_count += 1
            else:
                result.skipped.append(product_id)

        logger.info("Bulk inventory update by %s: %s", actor_id, result.summary())
        return result

    async def _update_product_quantity(
        self,
        product_id: str,
        target: int,
        original: int | None,
        actor_id: str,
        notes: str | None,
    ) -> bool:
        """Update one product. Returns False when there is nothing to change."""
        if target < 0:
            raise ValidationError("Quantity cannot be negative", error_type="negative_quantity")

        if original is None:
            try:
                response = (
                    self.client.table("products")
                    .select("id, quantity_available")
                    .eq("id", product_id)
                    .maybe_single()
                    .execute()
                )
            except Exception as e:
                raise APIError(message=f"Failed to read product: {e}", error_type="product_read_failed") from e
            if not response or not response.data:
                raise NotFoundError("Product not found")
            original = int(response.data.get("quantity_available") or 0)

        delta = target - original
        if delta == 0:
            return False

        try:
            (
                self.client.table("inventory_adjustments")
                .insert(
                    {
                        "product_id": product_id,
                        "adjustment_type": "count" if delta > 0 else "correction",
                        "quantity": delta,
                        "reason_code": self.settings.bulk_inventory_reason_code,
                        "notes": notes or None,
                        "adjusted_by": actor_id,
                    }
                )
                .execute()
            )
        except Exception as e:
            raise APIError(message=f"Failed to record adjustment: {e}", error_type="ledger_write_failed") from e

        try:
            response = (
                self.client.table("products")
                .update(
                    {
                        "quantity_available": target,
                        "updated_at": datetime.now(timezone.utc).isoformat(),
                    }
                )
                .eq("id", product_id)
                .execute()
            )
        except Exception as e:
            logger.error("Adjustment logged but product %s stock not updated: %s", product_id, e)
            raise PartialFailureError(
                message=f"Adjustment logged but stock not updated: {e}",
                error_type="stock_not_updated",
            ) from e

        if not response.data:
            raise PartialFailureError(
                message="Adjustment logged but stock not updated: product not found",
                error_type="stock_not_updated",
            )
        return True
