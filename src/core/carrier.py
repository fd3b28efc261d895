"""HTTP client for the carrier label service."""

import logging
from functools import lru_cache
from typing import Any

import httpx

from src.core.config import get_settings

logger = logging.getLogger(__name__)


class CarrierError(Exception):
    """Structured failure from the carrier label service.

    Carries the service's code and message unchanged so they can be shown
    to the operator verbatim.
    """

    def __init__(self, code: str, message: str, details: str | None = None) -> None:
        """Initialize carrier error.

        Args:
            code: Machine-readable error code (e.g. LABEL_CREATION_FAILED).
            message: Human-readable message.
            details: Optional raw details from the carrier.
        """
        self.code = code
        self.message = message
        self.details = details
        super().__init__(f"{code}: {message}")


class CarrierClient:
    """Client for the label create/void endpoints.

    No retries are attempted; a failed purchase is retried by the operator.
    """

    def __init__(
        self,
        base_url: str,
        api_key: str,
        create_label_path: str = "shipengine-create-label",
        void_label_path: str = "shipengine-void-label",
        timeout: float = 30.0,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self._base_url = base_url.rstrip("/")
        self._api_key = api_key
        self._create_label_path = create_label_path
        self._void_label_path = void_label_path
        self._timeout = timeout
        self._transport = transport

    async def create_label(self, order_id: str) -> dict[str, Any]:
        """Purchase a shipping label for an order.

        Args:
            order_id: The order's ID.

        Returns:
            dict: label_id, tracking_number, label_url, cost, carrier_id,
                carrier_code and service_code.

        Raises:
            CarrierError: If the service is unreachable or rejects the request.
        """
        body = await self._post(self._create_label_path, {"order_id": order_id}, "CREATE_FAILED")
        label = body.get("label") or body
        if not label.get("label_id"):
            raise CarrierError("CREATE_FAILED", "Carrier response did not include a label")

        cost = label.get("cost", label.get("shipment_cost"))
        if isinstance(cost, dict):
            cost = cost.get("amount")

        return {
            "label_id": label["label_id"],
            "tracking_number": label.get("tracking_number"),
            "label_url": label.get("label_url"),
            "cost": cost,
            "carrier_id": label.get("carrier_id"),
            "carrier_code": label.get("carrier_code"),
            "service_code": label.get("service_code"),
        }

    async def void_label(self, label_id: str) -> dict[str, Any]:
        """Ask the carrier to void a label.

        Args:
            label_id: The carrier label ID.

        Returns:
            dict: approved (bool) and message.

        Raises:
            CarrierError: If the service is unreachable or rejects the request.
        """
        body = await self._post(self._void_label_path, {"label_id": label_id}, "VOID_FAILED")
        approved = bool(body.get("approved", False))
        message = body.get("message") or ("Label voided successfully" if approved else "Void request was not approved")
        return {"approved": approved, "message": message}

    async def _post(self, path: str, payload: dict[str, Any], fallback_code: str) -> dict[str, Any]:
        url = f"{self._base_url}/{path}"
        try:
            async with httpx.AsyncClient(transport=self._transport, timeout=self._timeout) as client:
                response = await client.post(
                    url,
                    json=payload,
                    headers={
                        "Authorization": f"Bearer {self._api_key}",
                        "apikey": self._api_key,
                        "Content-Type": "application/json",
                    },
                )
        except httpx.RequestError as e:
            logger.error("Carrier service connection error on %s: %s", path, e)
            raise CarrierError(fallback_code, f"Carrier service unavailable: {e}") from e

        try:
            body = response.json()
        except ValueError:
            body = {}

        if not isinstance(body, dict):
            body = {}

        if response.is_success and body.get("success", True):
            return body

        error = body.get("error")
        if isinstance(error, dict):
            raise CarrierError(
                error.get("code") or fallback_code,
                error.get("message") or f"Carrier service returned {response.status_code}",
                error.get("details"),
            )
        message = error if isinstance(error, str) else f"Carrier service returned {response.status_code}"
        raise CarrierError(fallback_code, message, response.text or None)


@lru_cache
def get_carrier_client() -> CarrierClient:
    """Get cached carrier client configured from settings.

    Returns:
        CarrierClient: Carrier label service client.
    """
    settings = get_settings()
    return CarrierClient(
        base_url=settings.carrier_service_url,
        api_key=settings.supabase_secret_key,
        create_label_path=settings.carrier_create_label_path,
        void_label_path=settings.carrier_void_label_path,
        timeout=settings.carrier_timeout_seconds,
    )
