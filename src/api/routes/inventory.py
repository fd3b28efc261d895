"""Inventory adjustment ledger routes."""

from fastapi import APIRouter, status

from src.api.deps import CurrentUser
from src.schemas.inventory import (
    AdjustmentCreate,
    AdjustmentListResponse,
    AdjustmentResponse,
    AdjustmentResult,
    BulkInventoryUpdate,
    BulkUpdateResult,
)
from src.services.inventory_service import InventoryLedgerService

router = APIRouter(prefix="/inventory", tags=["inventory"])


@router.post(
    "/batches/{batch_id}/adjustments",
    response_model=AdjustmentResult,
    status_code=status.HTTP_201_CREATED,
    summary="Adjust batch stock",
    description="Records a reason-coded ledger entry and applies its delta to the batch, clamping at zero.",
)
async def create_adjustment(
    batch_id: str,
    data: AdjustmentCreate,
    user: CurrentUser,
) -> AdjustmentResult:
    """Apply a signed stock adjustment to a batch.

    Raises:
        ValidationError: 422 for zero quantity, unknown type or reason code.
        NotFoundError: 404 if the batch does not exist.
        PartialFailureError: 500 stock_not_updated if the ledger entry was
            written but the batch update failed.
    """
    service = InventoryLedgerService()
    return await service.adjust_batch(
        batch_id=batch_id,
        quantity=data.quantity,
        adjustment_type=data.adjustment_type,
        reason_code=data.reason_code,
        notes=data.notes,
        actor_id=user.actor_id,
    )


@router.get(
    "/batches/{batch_id}/adjustments",
    response_model=AdjustmentListResponse,
    summary="List batch adjustments",
)
async def list_adjustments(batch_id: str, user: CurrentUser) -> AdjustmentListResponse:
    """Get the adjustment ledger for a batch, newest first."""
    service = InventoryLedgerService()
    rows = await service.list_adjustments(batch_id)
    return AdjustmentListResponse(items=[AdjustmentResponse(**row) for row in rows])


@router.post(
    "/products/bulk",
    response_model=BulkUpdateResult,
    summary="Bulk update product stock",
    description="Sets each product's available quantity to its target. Products are updated independently.",
)
async def bulk_update_products(data: BulkInventoryUpdate, user: CurrentUser) -> BulkUpdateResult:
    """Apply a bulk stock edit and report per-product outcomes."""
    service = InventoryLedgerService()
    return await service.bulk_update_quantities(
        targets=data.targets,
        originals=data.originals,
        actor_id=user.actor_id,
        notes=data.notes,
    )
