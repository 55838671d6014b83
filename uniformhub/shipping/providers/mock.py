"""
In-process provider for development and tests.

Behaviour is driven by the credential bundle so tests can configure it
through the normal company provider setup:

    fail_create          every create call fails with a validation error
    awb_delay_polls      tracking polls before the AWB is assigned (default 0)
    delivered_after_polls
                         tracking polls before the shipment is delivered (default 3)

Shipments live in a module-level dict shared by every instance; call
``reset_mock_provider()`` between tests.
"""

import logging
from decimal import Decimal
from typing import Any, Dict, Optional

from ..exceptions import ProviderError
from .base import (
    BaseShippingProvider, CancellationResult, CourierQuote, HealthCheckResult, ServiceabilityResult,
    ShipmentCreationResult, ShipmentPayload, TrackingResult,
)

logger = logging.getLogger(__name__)

UNSERVICEABLE_PINCODES = ("999999", "000000")

MOCK_COURIERS = (
    CourierQuote(courier_code="MOCK1", courier_name="Mock Courier Express", rate=Decimal("120.00"), estimated_days=2),
    CourierQuote(courier_code="MOCK2", courier_name="Mock Courier Standard", rate=Decimal("80.00"), estimated_days=5),
    CourierQuote(courier_code="MOCK3", courier_name="Mock Courier Economy", rate=Decimal("50.00"), estimated_days=7),
)

_shipments: Dict[str, Dict[str, Any]] = {}


def reset_mock_provider() -> None:
    _shipments.clear()


class MockShippingProvider(BaseShippingProvider):
    provider_code = "MOCK"
    provider_name = "Mock logistics provider"

    def _option(self, key: str, default: int) -> int:
        return int(self.credentials.get(key, default))

    def create_shipment(self, payload: ShipmentPayload) -> ShipmentCreationResult:
        if self.credentials.get("fail_create"):
            raise ProviderError(
                "Mock provider rejected the shipment",
                provider_code=self.provider_code,
                status_code=422,
                error_code="validation_error",
                payload={"error": "Simulated failure", "order_id": payload.idempotency_key},
            )

        reference = f"MOCK-{payload.idempotency_key}"
        existing = _shipments.get(reference)
        if existing is None:
            existing = {
                "reference": reference,
                "awb": f"AWB-{payload.idempotency_key}",
                "status": "NEW",
                "polls": 0,
                "courier": payload.courier_code or MOCK_COURIERS[0].courier_code,
            }
            _shipments[reference] = existing

        awb_ready = self._option("awb_delay_polls", 0) == 0
        body = {
            "shipment_id": reference,
            "order_id": payload.idempotency_key,
            "status": existing["status"],
            "awb_code": existing["awb"] if awb_ready else "",
        }
        return ShipmentCreationResult(
            provider_reference=reference,
            tracking_number=existing["awb"] if awb_ready else None,
            courier_name=existing["courier"],
            tracking_url=f"https://track.mock.local/{existing['awb']}" if awb_ready else "",
            carrier_status=existing["status"],
            raw_response=body,
        )

    def _get(self, reference: str) -> Dict[str, Any]:
        shipment = _shipments.get(reference)
        if shipment is None:
            raise ProviderError(
                f"Mock shipment {reference} not found",
                provider_code=self.provider_code,
                status_code=404,
                error_code="resource_not_found",
            )
        return shipment

    def fetch_tracking(self, provider_reference: str) -> TrackingResult:
        shipment = self._get(provider_reference)
        if shipment["status"] not in ("DELIVERED", "CANCELLED"):
            shipment["polls"] += 1
            if shipment["polls"] >= self._option("delivered_after_polls", 3):
                shipment["status"] = "DELIVERED"
            else:
                shipment["status"] = "IN TRANSIT"

        awb = shipment["awb"] if shipment["polls"] >= self._option("awb_delay_polls", 0) else None
        status = {"NEW": "CREATED", "IN TRANSIT": "IN_TRANSIT"}.get(shipment["status"], shipment["status"])
        return TrackingResult(
            provider_reference=provider_reference,
            status=status,
            carrier_status=shipment["status"],
            tracking_number=awb,
            courier_name=shipment["courier"],
            tracking_url=f"https://track.mock.local/{awb}" if awb else "",
            raw_response={"shipment_id": provider_reference, "status": shipment["status"], "awb_code": awb or ""},
        )

    def check_serviceability(self, from_pincode: str, to_pincode: str, weight_kg: Decimal) -> ServiceabilityResult:
        serviceable = to_pincode not in UNSERVICEABLE_PINCODES and from_pincode not in UNSERVICEABLE_PINCODES
        couriers = list(MOCK_COURIERS) if serviceable else []
        return ServiceabilityResult(
            serviceable=serviceable,
            couriers=couriers,
            raw_response={"serviceable": serviceable, "pincode": to_pincode},
        )

    def cancel_shipment(self, provider_reference: str, tracking_number: Optional[str] = None) -> CancellationResult:
        shipment = self._get(provider_reference)
        if shipment["status"] == "DELIVERED":
            return CancellationResult(
                cancelled=False,
                message="Cannot cancel delivered shipment",
                raw_response={"error": "Already delivered"},
            )
        shipment["status"] = "CANCELLED"
        return CancellationResult(cancelled=True, message="Shipment cancelled", raw_response={"status": "CANCELLED"})

    def health_check(self) -> HealthCheckResult:
        return HealthCheckResult(healthy=True, latency_ms=0, message="Mock provider is always available")
