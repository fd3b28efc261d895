"""Refund Pydantic schemas for API request/response models."""

from datetime import datetime
from decimal import Decimal

from pydantic import BaseModel, ConfigDict, Field

from src.core.money import to_money


class RefundItemSelection(BaseModel):
    """A line item and the quantity to refund from it."""

    order_item_id: str = Field(description="Order item ID")
    quantity: int = Field(description="Quantity to refund")


class RefundRequest(BaseModel):
    """Schema for POST /orders/{id}/refunds and /refunds/preview.

    A manual amount supersedes the item sum. full_order selects every item
    at its remaining quantity and defaults the amount to the remaining
    refundable balance.
    """

    model_config = ConfigDict(from_attributes=True)

    items: list[RefundItemSelection] = Field(default_factory=list, description="Per-item selection")
    full_order: bool = Field(default=False, description="Refund everything still refundable")
    manual_amount: Decimal | str | None = Field(
        default=None,
        description="Manual override amount (parsed and validated server-side)",
    )
    reason: str | None = Field(default=None, description="Optional refund reason")


class RefundItemLine(BaseModel):
    """A refunded line, as stored in order_refunds.items."""

    model_config = ConfigDict(from_attributes=True)

    order_item_id: str = Field(description="Order item ID")
    quantity: int = Field(ge=1, description="Quantity refunded")
    amount: Decimal = Field(description="unit price x quantity, rounded to cents")
    description: str | None = Field(default=None, description="Line description")


class RefundResponse(BaseModel):
    """Schema for a stored refund."""

    model_config = ConfigDict(from_attributes=True)

    id: str = Field(description="Refund ID")
    amount: Decimal = Field(description="Refunded amount")
    reason: str | None = Field(default=None, description="Refund reason")
    status: str = Field(description="pending, succeeded, failed or canceled")
    stripe_refund_id: str | None = Field(default=None, description="Processor refund ID")
    items: list[RefundItemLine] = Field(default_factory=list, description="Refunded lines")
    created_by: str | None = Field(default=None, description="Actor ID")
    created_at: datetime | None = Field(default=None, description="Creation timestamp")

    @classmethod
    def from_row(cls, row: dict) -> "RefundResponse":
        """Build from an order_refunds row."""
        return cls(
            id=row["id"],
            amount=to_money(row.get("amount")),
            reason=row.get("reason"),
            status=row.get("status") or "pending",
            stripe_refund_id=row.get("stripe_refund_id"),
            items=[
                RefundItemLine(
                    order_item_id=item["order_item_id"],
                    quantity=item["quantity"],
                    amount=to_money(item.get("amount")),
                    description=item.get("description"),
                )
                for item in row.get("items") or []
            ],
            created_by=row.get("created_by"),
            created_at=row.get("created_at"),
        )


class RefundPreview(BaseModel):
    """Side-effect-free computation for a refund selection."""

    computed_amount: Decimal = Field(description="Sum of per-item amounts")
    amount: Decimal = Field(description="Amount that would be submitted")
    remaining_refundable: Decimal = Field(description="Order total minus refunded total")
    items: list[RefundItemLine] = Field(default_factory=list, description="Lines that would be refunded")


class RefundResult(BaseModel):
    """Outcome of a submitted refund."""

    refund: RefundResponse = Field(description="Stored refund")
    refunded_total: Decimal = Field(description="Order refunded total after the refund")
    remaining_refundable: Decimal = Field(description="Remaining refundable balance")
    payment_status: str = Field(description="partial or refunded")
    fully_refunded: bool = Field(description="Whether the order is now fully refunded")
