"""Shipment and label Pydantic schemas for API request/response models."""

from datetime import datetime
from decimal import Decimal

from pydantic import BaseModel, ConfigDict, Field


class ServiceError(BaseModel):
    """Structured error returned by an external service."""

    code: str = Field(description="Machine-readable error code")
    message: str = Field(description="Human-readable message")
    details: str | None = Field(default=None, description="Optional raw details")


class ShipmentResponse(BaseModel):
    """Schema for a shipment row."""

    model_config = ConfigDict(from_attributes=True)

    id: str = Field(description="Shipment ID")
    order_id: str = Field(description="Order reference")
    label_id: str | None = Field(default=None, description="Carrier label ID")
    tracking_number: str | None = Field(default=None, description="Tracking number")
    carrier_code: str | None = Field(default=None, description="Carrier code")
    service_code: str | None = Field(default=None, description="Carrier service code")
    label_url: str | None = Field(default=None, description="Label download URL")
    shipment_cost: Decimal | None = Field(default=None, description="Label cost")
    status: str | None = Field(default=None, description="Shipment status")
    voided: bool = Field(default=False, description="Whether the label was voided")
    voided_at: datetime | None = Field(default=None, description="Void timestamp")
    created_at: datetime | None = Field(default=None, description="Creation timestamp")


class LabelDetails(BaseModel):
    """Label data returned by the carrier service."""

    label_id: str = Field(description="Carrier label ID")
    tracking_number: str | None = Field(default=None, description="Tracking number")
    label_url: str | None = Field(default=None, description="Label download URL")
    cost: Decimal | None = Field(default=None, description="Label cost")
    carrier_id: str | None = Field(default=None, description="Carrier account ID")
    carrier_code: str | None = Field(default=None, description="Carrier code")
    service_code: str | None = Field(default=None, description="Service code")


class LabelResult(BaseModel):
    """Outcome of a label creation attempt."""

    success: bool = Field(description="Whether a label was purchased and stored")
    label: LabelDetails | None = Field(default=None, description="Purchased label")
    shipment: ShipmentResponse | None = Field(default=None, description="Active shipment after creation")
    error: ServiceError | None = Field(default=None, description="Failure description")


class VoidResult(BaseModel):
    """Outcome of a label void attempt.

    success with approved=False means the carrier answered but refused the
    void (e.g. past the void window).
    """

    success: bool = Field(description="Whether the carrier answered the request")
    approved: bool | None = Field(default=None, description="Whether the carrier approved the void")
    message: str | None = Field(default=None, description="Carrier message")
    error: ServiceError | None = Field(default=None, description="Failure description")


class VoidLabelRequest(BaseModel):
    """Schema for POST /orders/{id}/shipment/void."""

    label_id: str | None = Field(default=None, description="Label to void; defaults to the active shipment's label")


class TrackingEventResponse(BaseModel):
    """Schema for a carrier tracking event."""

    model_config = ConfigDict(from_attributes=True)

    id: str = Field(description="Event ID")
    occurred_at: datetime = Field(description="When the event happened")
    status_code: str | None = Field(default=None, description="Carrier status code")
    description: str | None = Field(default=None, description="Event description")
    city_locality: str | None = Field(default=None, description="City")
    state_province: str | None = Field(default=None, description="State")
    country_code: str | None = Field(default=None, description="Country")
