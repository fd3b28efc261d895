"""Inventory ledger Pydantic schemas for API request/response models."""

from datetime import datetime

from pydantic import BaseModel, ConfigDict, Field


class AdjustmentCreate(BaseModel):
    """Schema for recording a stock adjustment via POST /inventory/batches/{id}/adjustments.

    Type and reason code are validated by the ledger against the configured
    sets so each rejection carries its own error code.
    """

    model_config = ConfigDict(from_attributes=True)

    quantity: int = Field(description="Signed quantity delta (non-zero)")
    adjustment_type: str = Field(description="One of loss, damage, correction, count, return")
    reason_code: str = Field(description="Reason code from the configured allow-list")
    notes: str | None = Field(default=None, description="Optional operator notes")


class AdjustmentResult(BaseModel):
    """Quantities after an adjustment, for optimistic display."""

    model_config = ConfigDict(from_attributes=True)

    adjustment_id: str | None = Field(default=None, description="Ledger entry ID")
    batch_id: str = Field(description="Adjusted batch ID")
    quantity_delta: int = Field(description="Applied signed delta")
    quantity_actual: int = Field(ge=0, description="New actual quantity")
    quantity_available: int = Field(ge=0, description="New available quantity")
    is_low_stock: bool = Field(default=False, description="Available quantity at or below threshold")


class AdjustmentResponse(BaseModel):
    """Schema for a ledger entry."""

    model_config = ConfigDict(from_attributes=True)

    id: str = Field(description="Ledger entry ID")
    batch_id: str | None = Field(default=None, description="Batch reference")
    product_id: str | None = Field(default=None, description="Product reference for bulk edits")
    adjustment_type: str = Field(description="Adjustment type")
    quantity: int = Field(description="Signed quantity delta")
    reason_code: str = Field(description="Reason code")
    notes: str | None = Field(default=None, description="Operator notes")
    adjusted_by: str = Field(description="Actor ID")
    created_at: datetime = Field(description="Creation timestamp")


class AdjustmentListResponse(BaseModel):
    """Schema for ledger list responses."""

    model_config = ConfigDict(from_attributes=True)

    items: list[AdjustmentResponse] = Field(description="Ledger entries, newest first")


class BulkInventoryUpdate(BaseModel):
    """Schema for a bulk stock edit via POST /inventory/products/bulk.

    Only target quantities are tracked; each delta is target minus the
    quantity the operator started from.
    """

    model_config = ConfigDict(from_attributes=True)

    targets: dict[str, int] = Field(description="Target available quantity keyed by product ID")
    originals: dict[str, int] = Field(
        default_factory=dict,
        description="Quantity shown to the operator when editing began, keyed by product ID",
    )
    notes: str | None = Field(default=None, description="Optional notes recorded on each ledger entry")


class BulkUpdateFailure(BaseModel):
    """A single product that could not be updated."""

    product_id: str = Field(description="Product ID")
    message: str = Field(description="Failure reason")


class BulkUpdateResult(BaseModel):
    """Per-product outcome of a bulk stock edit."""

    model_config = ConfigDict(from_attributes=True)

    updated_count: int = Field(ge=0, description="Number of products updated")
    updated: list[str] = Field(default_factory=list, description="IDs of updated products")
    skipped: list[str] = Field(default_factory=list, description="IDs whose target equals the original")
    failures: list[BulkUpdateFailure] = Field(default_factory=list, description="Products that failed")

    @property
    def has_failures(self) -> bool:
        """Check whether any product failed."""
        return bool(self.failures)

    def summary(self) -> str:
        """Operator-facing summary line."""
        if not self.failures:
            return f"Successfully updated {self.updated_count} product(s)"
        failed = "; ".join(f"{f.product_id}: {f.message}" for f in self.failures)
        return f"Updated {self.updated_count} product(s). Some failed: {failed}"
