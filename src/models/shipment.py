"""Shipment model type definitions for database operations."""

from typing import TypedDict


class ShipmentRow(TypedDict, total=False):
    """shipments table row.

    A void never deletes the row; it sets voided and voided_at.
    """

    id: str
    order_id: str
    label_id: str | None
    tracking_number: str | None
    carrier_id: str | None
    carrier_code: str | None
    service_code: str | None
    label_url: str | None
    label_format: str | None
    shipment_cost: float | None
    status: str
    voided: bool
    voided_at: str | None
    created_at: str
    updated_at: str


class ShipmentCreate(TypedDict, total=False):
    """Data inserted after a label purchase."""

    order_id: str
    label_id: str
    tracking_number: str | None
    carrier_id: str | None
    carrier_code: str | None
    service_code: str | None
    label_url: str | None
    label_format: str
    shipment_cost: float | None
    status: str
    voided: bool


class TrackingEventRow(TypedDict, total=False):
    """tracking_events table row."""

    id: str
    shipment_id: str
    occurred_at: str
    status_code: str | None
    description: str | None
    city_locality: str | None
    state_province: str | None
    country_code: str | None
