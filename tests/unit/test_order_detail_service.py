"""Unit tests for OrderDetailService."""

from decimal import Decimal
from unittest.mock import AsyncMock, MagicMock, patch

import pytest

from src.api.middleware.error_handler import NotFoundError
from src.schemas.refund import RefundItemSelection, RefundRequest, RefundResponse, RefundResult
from src.schemas.shipment import LabelResult, VoidResult
from src.services.order_detail_service import ORDER_DETAIL_SELECT, OrderDetailService

OPERATOR_ID = "550e8400-e29b-41d4-a716-446655440000"


def order_row(**overrides) -> dict:
    """Build an orders row with embedded relations."""
    row = {
        "id": "order-1",
        "order_number": "ORD-1001",
        "status": "processing",
        "payment_status": "paid",
        "stripe_payment_intent_id": "pi_123",
        "total": 100.0,
        "refunded_total": 0.0,
        "order_items": [
            {"id": "item-1", "product_name": "Honey Jar", "product_price": 20.0, "quantity": 3},
            {"id": "item-2", "product_name": "Gift Box", "product_price": 40.0, "quantity": 1},
        ],
        "order_refunds": [],
        "pickup_reservations": [],
    }
    row.update(overrides)
    return row


def single(data: dict | None) -> MagicMock:
    """Build a maybe_single response."""
    response = MagicMock()
    response.data = data
    return response


def rows(*data: dict) -> MagicMock:
    """Build a query response."""
    response = MagicMock()
    response.data = list(data)
    return response


def shipment_row(**overrides) -> dict:
    """Build a shipments row."""
    row = {
        "id": "ship-1",
        "order_id": "order-1",
        "label_id": "se-1",
        "tracking_number": "1Z999",
        "voided": False,
    }
    row.update(overrides)
    return row


@pytest.fixture
def mock_supabase() -> MagicMock:
    """Create a mock Supabase client returning order-1 with an empty history."""
    client = MagicMock()
    client.table.return_value.select.return_value.eq.return_value.maybe_single.return_value.execute.return_value = single(
        order_row()
    )
    client.table.return_value.select.return_value.eq.return_value.order.return_value.execute.return_value = rows()
    return client


@pytest.fixture
def shipment_service() -> MagicMock:
    """Create a shipment service without an active shipment."""
    service = MagicMock()
    service.fetch_active_shipment = AsyncMock(return_value=None)
    service.list_tracking_events = AsyncMock(return_value=[])
    service.create_label = AsyncMock()
    service.void_label = AsyncMock()
    return service


@pytest.fixture
def refund_service() -> MagicMock:
    """Create a refund service that allows refunds."""
    service = MagicMock()
    service.can_refund.return_value = True
    service.submit_refund = AsyncMock()
    service.reconcile_refunded_total = AsyncMock()
    return service


@pytest.fixture
def status_machine() -> MagicMock:
    """Create a status machine with async actions."""
    machine = MagicMock()
    machine.transition = AsyncMock(return_value={"id": "hist-1"})
    machine.cancel = AsyncMock(return_value={"id": "hist-1"})
    machine.mark_picked_up = AsyncMock(return_value={"id": "hist-1"})
    machine.add_internal_note = AsyncMock(return_value="[2026-01-01 09:00 UTC]\nnote")
    return machine


@pytest.fixture
def service(
    mock_supabase: MagicMock,
    shipment_service: MagicMock,
    refund_service: MagicMock,
    status_machine: MagicMock,
) -> OrderDetailService:
    """Create OrderDetailService with mocked components."""
    with patch("src.services.order_detail_service.get_supabase_client", return_value=mock_supabase):
        return OrderDetailService(
            shipment_service=shipment_service,
            refund_service=refund_service,
            status_machine=status_machine,
        )


class TestGetOrder:
    """Tests for get_order."""

    @pytest.mark.asyncio
    async def test_reads_embedded_relations(self, service: OrderDetailService, mock_supabase: MagicMock) -> None:
        """Test that items, refunds and pickup reservations are read in one query."""
        order = await service.get_order("order-1")

        mock_supabase.table.return_value.select.assert_any_call(ORDER_DETAIL_SELECT)
        assert order.id == "order-1"
        assert [item.id for item in order.items] == ["item-1", "item-2"]
        assert order.total == Decimal("100.00")

    @pytest.mark.asyncio
    async def test_includes_history_oldest_first(self, service: OrderDetailService, mock_supabase: MagicMock) -> None:
        """Test that status history is attached."""
        mock_supabase.table.return_value.select.return_value.eq.return_value.order.return_value.execute.return_value = rows(
            {"id": "h-1", "status": "pending_payment", "from_status": None},
            {"id": "h-2", "status": "processing", "from_status": "pending_payment"},
        )

        order = await service.get_order("order-1")

        assert [h.to_status for h in order.status_history] == ["pending_payment", "processing"]
        mock_supabase.table.return_value.select.return_value.eq.return_value.order.assert_called_with(
            "created_at", desc=False
        )

    @pytest.mark.asyncio
    async def test_history_failure_degrades(self, service: OrderDetailService, mock_supabase: MagicMock) -> None:
        """Test that a failing history read leaves the order readable."""
        mock_supabase.table.return_value.select.return_value.eq.return_value.order.return_value.execute.side_effect = Exception(
            "timeout"
        )

        order = await service.get_order("order-1")

        assert order.status_history == []

    @pytest.mark.asyncio
    async def test_missing_order(self, service: OrderDetailService, mock_supabase: MagicMock) -> None:
        """Test that an unknown order raises NotFoundError."""
        mock_supabase.table.return_value.select.return_value.eq.return_value.maybe_single.return_value.execute.return_value = None

        with pytest.raises(NotFoundError):
            await service.get_order("missing")


class TestGetOrderDetail:
    """Tests for get_order_detail."""

    @pytest.mark.asyncio
    async def test_without_shipment(
        self, service: OrderDetailService, shipment_service: MagicMock
    ) -> None:
        """Test the detail of an order that has never been shipped."""
        detail = await service.get_order_detail("order-1")

        assert detail.shipment is None
        assert detail.tracking_events == []
        shipment_service.list_tracking_events.assert_not_called()
        assert detail.actions.can_create_label is True
        assert detail.actions.can_void_label is False
        assert detail.actions.can_cancel is True
        assert detail.actions.can_mark_picked_up is False
        assert detail.remaining_refundable == Decimal("100.00")
        assert detail.remaining_quantities == {"item-1": 3, "item-2": 1}

    @pytest.mark.asyncio
    async def test_with_active_shipment(
        self, service: OrderDetailService, shipment_service: MagicMock
    ) -> None:
        """Test that the active shipment and its tracking events are included."""
        shipment_service.fetch_active_shipment.return_value = shipment_row()
        shipment_service.list_tracking_events.return_value = [
            {"id": "ev-2", "occurred_at": "2026-01-02T10:00:00+00:00", "description": "Out for delivery"},
            {"id": "ev-1", "occurred_at": "2026-01-01T10:00:00+00:00", "description": "Picked up"},
        ]

        detail = await service.get_order_detail("order-1")

        assert detail.shipment.label_id == "se-1"
        assert [e.id for e in detail.tracking_events] == ["ev-2", "ev-1"]
        shipment_service.list_tracking_events.assert_awaited_once_with("ship-1")
        assert detail.actions.can_create_label is False
        assert detail.actions.can_void_label is True

    @pytest.mark.asyncio
    async def test_voided_shipment_allows_new_label(
        self, service: OrderDetailService, shipment_service: MagicMock
    ) -> None:
        """Test the actions after a label is voided."""
        shipment_service.fetch_active_shipment.return_value = shipment_row(voided=True)

        detail = await service.get_order_detail("order-1")

        assert detail.actions.can_create_label is True
        assert detail.actions.can_void_label is False

    @pytest.mark.asyncio
    async def test_scheduled_pickup_can_be_completed(
        self, service: OrderDetailService, mock_supabase: MagicMock
    ) -> None:
        """Test that a scheduled pickup enables the pickup action."""
        mock_supabase.table.return_value.select.return_value.eq.return_value.maybe_single.return_value.execute.return_value = single(
            order_row(is_pickup=True, pickup_reservations=[{"id": "res-1", "status": "scheduled"}])
        )

        detail = await service.get_order_detail("order-1")

        assert detail.actions.can_mark_picked_up is True

    @pytest.mark.asyncio
    async def test_refunded_order_cannot_be_cancelled(
        self, service: OrderDetailService, mock_supabase: MagicMock
    ) -> None:
        """Test the cancel action for a refunded order."""
        mock_supabase.table.return_value.select.return_value.eq.return_value.maybe_single.return_value.execute.return_value = single(
            order_row(status="refunded")
        )

        detail = await service.get_order_detail("order-1")

        assert detail.actions.can_cancel is False


class TestStatusActions:
    """Tests for the status actions."""

    @pytest.mark.asyncio
    async def test_update_status_refreshes_detail(
        self, service: OrderDetailService, status_machine: MagicMock
    ) -> None:
        """Test that a status change returns the re-read detail."""
        detail = await service.update_status("order-1", "on_hold", OPERATOR_ID, "Waiting")

        status_machine.transition.assert_awaited_once_with("order-1", "on_hold", OPERATOR_ID, "Waiting")
        assert detail.order.id == "order-1"

    @pytest.mark.asyncio
    async def test_cancel_order(self, service: OrderDetailService, status_machine: MagicMock) -> None:
        """Test that cancel delegates with the reason."""
        await service.cancel_order("order-1", OPERATOR_ID, "Customer request")

        status_machine.cancel.assert_awaited_once_with("order-1", OPERATOR_ID, "Customer request")

    @pytest.mark.asyncio
    async def test_complete_pickup(self, service: OrderDetailService, status_machine: MagicMock) -> None:
        """Test that pickup completion delegates to the status machine."""
        await service.complete_pickup("order-1", OPERATOR_ID)

        status_machine.mark_picked_up.assert_awaited_once_with("order-1", OPERATOR_ID, None)

    @pytest.mark.asyncio
    async def test_add_note(self, service: OrderDetailService, status_machine: MagicMock) -> None:
        """Test that notes are appended through the status machine."""
        await service.add_note("order-1", "Called customer", OPERATOR_ID)

        status_machine.add_internal_note.assert_awaited_once_with("order-1", "Called customer", OPERATOR_ID)


class TestRefundOrder:
    """Tests for refund_order."""

    @staticmethod
    def refund_result(amount: str, fully_refunded: bool) -> RefundResult:
        """Build a submitted refund outcome."""
        refunded = Decimal(amount)
        return RefundResult(
            refund=RefundResponse(id="refund-1", amount=refunded, status="succeeded", stripe_refund_id="re_1"),
            refunded_total=refunded,
            remaining_refundable=Decimal("100.00") - refunded,
            payment_status="refunded" if fully_refunded else "partial",
            fully_refunded=fully_refunded,
        )

    @pytest.mark.asyncio
    async def test_partial_refund_keeps_status(
        self,
        service: OrderDetailService,
        refund_service: MagicMock,
        status_machine: MagicMock,
    ) -> None:
        """Test that a partial refund does not transition the order."""
        refund_service.submit_refund.return_value = self.refund_result("40.00", fully_refunded=False)
        request = RefundRequest(items=[RefundItemSelection(order_item_id="item-1", quantity=2)])

        response = await service.refund_order("order-1", request, OPERATOR_ID)

        assert response.result.payment_status == "partial"
        status_machine.transition.assert_not_called()
        order_arg = refund_service.submit_refund.call_args[0][0]
        assert order_arg.id == "order-1"

    @pytest.mark.asyncio
    async def test_full_refund_moves_order_to_refunded(
        self,
        service: OrderDetailService,
        refund_service: MagicMock,
        status_machine: MagicMock,
    ) -> None:
        """Test the single history entry written by a full refund."""
        refund_service.submit_refund.return_value = self.refund_result("100.00", fully_refunded=True)
        request = RefundRequest(full_order=True, reason="Damaged")

        await service.refund_order("order-1", request, OPERATOR_ID)

        status_machine.transition.assert_awaited_once_with(
            "order-1", "refunded", OPERATOR_ID, "Refunded $100.00 - Reason: Damaged"
        )

    @pytest.mark.asyncio
    async def test_full_refund_of_refunded_order_skips_transition(
        self,
        service: OrderDetailService,
        mock_supabase: MagicMock,
        refund_service: MagicMock,
        status_machine: MagicMock,
    ) -> None:
        """Test that an order already marked refunded is not transitioned again."""
        mock_supabase.table.return_value.select.return_value.eq.return_value.maybe_single.return_value.execute.return_value = single(
            order_row(status="refunded", refunded_total=60.0)
        )
        refund_service.submit_refund.return_value = self.refund_result("100.00", fully_refunded=True)

        await service.refund_order("order-1", RefundRequest(full_order=True), OPERATOR_ID)

        status_machine.transition.assert_not_called()

    @pytest.mark.asyncio
    async def test_reconcile_returns_detail(
        self, service: OrderDetailService, refund_service: MagicMock
    ) -> None:
        """Test that reconcile recomputes from the order total."""
        refund_service.reconcile_refunded_total.return_value = Decimal("0.00")

        detail = await service.reconcile_refunds("order-1")

        refund_service.reconcile_refunded_total.assert_awaited_once_with("order-1", Decimal("100.00"))
        assert detail.order.id == "order-1"


class TestLabelActions:
    """Tests for create_label and void_label."""

    @pytest.mark.asyncio
    async def test_create_label_for_missing_order(
        self, service: OrderDetailService, mock_supabase: MagicMock, shipment_service: MagicMock
    ) -> None:
        """Test that no carrier call is made for an unknown order."""
        mock_supabase.table.return_value.select.return_value.eq.return_value.maybe_single.return_value.execute.return_value = None

        with pytest.raises(NotFoundError):
            await service.create_label("missing", OPERATOR_ID)

        shipment_service.create_label.assert_not_called()

    @pytest.mark.asyncio
    async def test_create_label_returns_result_and_detail(
        self, service: OrderDetailService, shipment_service: MagicMock
    ) -> None:
        """Test that the label outcome is returned with the refreshed detail."""
        shipment_service.create_label.return_value = LabelResult(success=True)

        response = await service.create_label("order-1", OPERATOR_ID)

        assert response.result.success is True
        shipment_service.create_label.assert_awaited_once_with("order-1", OPERATOR_ID)
        assert response.detail.order.id == "order-1"

    @pytest.mark.asyncio
    async def test_void_without_active_label(
        self, service: OrderDetailService, shipment_service: MagicMock
    ) -> None:
        """Test that voiding an order without a label makes no carrier call."""
        response = await service.void_label("order-1", OPERATOR_ID)

        assert response.result.success is False
        assert response.result.error.code == "no_active_label"
        shipment_service.void_label.assert_not_called()

    @pytest.mark.asyncio
    async def test_void_uses_active_label(
        self, service: OrderDetailService, shipment_service: MagicMock
    ) -> None:
        """Test that the active shipment's label is voided by default."""
        shipment_service.fetch_active_shipment.return_value = shipment_row()
        shipment_service.void_label.return_value = VoidResult(success=True, approved=True)

        response = await service.void_label("order-1", OPERATOR_ID)

        shipment_service.void_label.assert_awaited_once_with("se-1", OPERATOR_ID)
        assert response.result.approved is True

    @pytest.mark.asyncio
    async def test_void_explicit_label(
        self, service: OrderDetailService, shipment_service: MagicMock
    ) -> None:
        """Test voiding a label given by ID."""
        shipment_service.void_label.return_value = VoidResult(success=True, approved=False, message="Too late")

        response = await service.void_label("order-1", OPERATOR_ID, label_id="se-9")

        shipment_service.void_label.assert_awaited_once_with("se-9", OPERATOR_ID)
        assert response.result.approved is False
