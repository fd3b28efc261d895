"""Integration tests for inventory ledger endpoints."""

from collections.abc import Generator
from unittest.mock import AsyncMock, MagicMock, patch

import pytest
from fastapi.testclient import TestClient

from src.api.middleware.error_handler import NotFoundError, PartialFailureError, ValidationError
from src.schemas.inventory import AdjustmentResult, BulkUpdateFailure, BulkUpdateResult

OPERATOR_ID = "550e8400-e29b-41d4-a716-446655440000"


@pytest.fixture
def ledger_service() -> Generator[MagicMock, None, None]:
    """Patch the inventory ledger service used by the routes."""
    with patch("src.api.routes.inventory.InventoryLedgerService") as mock_class:
        service = mock_class.return_value
        service.adjust_batch = AsyncMock()
        service.list_adjustments = AsyncMock(return_value=[])
        service.bulk_update_quantities = AsyncMock()
        yield service


class TestCreateAdjustment:
    """Tests for POST /api/v1/inventory/batches/{batch_id}/adjustments."""

    def test_records_adjustment(self, auth_client: TestClient, ledger_service: MagicMock) -> None:
        """Test a negative adjustment clamped at zero."""
        ledger_service.adjust_batch.return_value = AdjustmentResult(
            adjustment_id="adj-1",
            batch_id="batch-1",
            quantity_delta=-5,
            quantity_actual=0,
            quantity_available=0,
            is_low_stock=True,
        )

        response = auth_client.post(
            "/api/v1/inventory/batches/batch-1/adjustments",
            json={"quantity": -5, "adjustment_type": "damage", "reason_code": "damaged_in_storage"},
        )

        assert response.status_code == 201
        data = response.json()
        assert data["quantity_actual"] == 0
        assert data["is_low_stock"] is True
        ledger_service.adjust_batch.assert_awaited_once_with(
            batch_id="batch-1",
            quantity=-5,
            adjustment_type="damage",
            reason_code="damaged_in_storage",
            notes=None,
            actor_id=OPERATOR_ID,
        )

    def test_zero_quantity_rejected(self, auth_client: TestClient, ledger_service: MagicMock) -> None:
        """Test the zero-quantity error code."""
        ledger_service.adjust_batch.side_effect = ValidationError(
            "Adjustment quantity must be non-zero", error_type="zero_quantity"
        )

        response = auth_client.post(
            "/api/v1/inventory/batches/batch-1/adjustments",
            json={"quantity": 0, "adjustment_type": "count", "reason_code": "cycle_count"},
        )

        assert response.status_code == 422
        assert response.json()["error"] == "zero_quantity"

    def test_missing_batch(self, auth_client: TestClient, ledger_service: MagicMock) -> None:
        """Test an adjustment against an unknown batch."""
        ledger_service.adjust_batch.side_effect = NotFoundError("Batch not found")

        response = auth_client.post(
            "/api/v1/inventory/batches/missing/adjustments",
            json={"quantity": 3, "adjustment_type": "return", "reason_code": "customer_return"},
        )

        assert response.status_code == 404

    def test_stock_not_updated(self, auth_client: TestClient, ledger_service: MagicMock) -> None:
        """Test that a ledger entry without a batch update is reported."""
        ledger_service.adjust_batch.side_effect = PartialFailureError(
            "Adjustment recorded but stock was not updated",
            error_type="stock_not_updated",
        )

        response = auth_client.post(
            "/api/v1/inventory/batches/batch-1/adjustments",
            json={"quantity": 3, "adjustment_type": "correction", "reason_code": "data_entry_error"},
        )

        assert response.status_code == 500
        assert response.json()["error"] == "stock_not_updated"

    def test_requires_auth(self, client: TestClient, ledger_service: MagicMock) -> None:
        """Test that adjustments require an operator."""
        response = client.post(
            "/api/v1/inventory/batches/batch-1/adjustments",
            json={"quantity": 3, "adjustment_type": "correction", "reason_code": "data_entry_error"},
        )

        assert response.status_code == 401
        ledger_service.adjust_batch.assert_not_called()


class TestListAdjustments:
    """Tests for GET /api/v1/inventory/batches/{batch_id}/adjustments."""

    def test_lists_newest_first(self, auth_client: TestClient, ledger_service: MagicMock) -> None:
        """Test that ledger rows are returned in service order."""
        ledger_service.list_adjustments.return_value = [
            {
                "id": "adj-2",
                "batch_id": "batch-1",
                "adjustment_type": "count",
                "quantity": 2,
                "reason_code": "cycle_count",
                "adjusted_by": OPERATOR_ID,
                "created_at": "2026-01-02T10:00:00+00:00",
            },
            {
                "id": "adj-1",
                "batch_id": "batch-1",
                "adjustment_type": "loss",
                "quantity": -1,
                "reason_code": "theft",
                "adjusted_by": OPERATOR_ID,
                "created_at": "2026-01-01T10:00:00+00:00",
            },
        ]

        response = auth_client.get("/api/v1/inventory/batches/batch-1/adjustments")

        assert response.status_code == 200
        assert [item["id"] for item in response.json()["items"]] == ["adj-2", "adj-1"]


class TestBulkUpdate:
    """Tests for POST /api/v1/inventory/products/bulk."""

    def test_reports_per_product_outcome(self, auth_client: TestClient, ledger_service: MagicMock) -> None:
        """Test that one failing product does not fail the request."""
        ledger_service.bulk_update_quantities.return_value = BulkUpdateResult(
            updated_count=2,
            updated=["prod-1", "prod-3"],
            failures=[BulkUpdateFailure(product_id="prod-2", message="Product not found")],
        )

        response = auth_client.post(
            "/api/v1/inventory/products/bulk",
            json={
                "targets": {"prod-1": 10, "prod-2": 4, "prod-3": 0},
                "originals": {"prod-1": 8, "prod-2": 5, "prod-3": 2},
            },
        )

        assert response.status_code == 200
        data = response.json()
        assert data["updated_count"] == 2
        assert data["failures"] == [{"product_id": "prod-2", "message": "Product not found"}]
        ledger_service.bulk_update_quantities.assert_awaited_once_with(
            targets={"prod-1": 10, "prod-2": 4, "prod-3": 0},
            originals={"prod-1": 8, "prod-2": 5, "prod-3": 2},
            actor_id=OPERATOR_ID,
            notes=None,
        )
