"""Shipway adapter."""

import logging
import time
from decimal import Decimal
from typing import Any, Dict, Optional

from ..exceptions import ProviderError
from .base import (
    CancellationResult, CourierQuote, HealthCheckResult, HttpShippingProvider, ServiceabilityResult,
    ShipmentCreationResult, ShipmentPayload, TrackingResult, extract_awb, extract_carrier_status,
    normalize_carrier_status, parse_estimated_days,
)

logger = logging.getLogger(__name__)


class ShipwayProvider(HttpShippingProvider):
    provider_code = "SHIPWAY"
    provider_name = "Shipway"
    REQUIRED_CREDENTIALS = ("api_key", "api_secret")

    def default_base_url(self) -> str:
        return "https://app.shipway.com/api"

    def _headers(self) -> Dict[str, str]:
        headers = super()._headers()
        headers.update({
            "Authorization": f"Bearer {self.credentials.get('access_token') or self.credentials['api_key']}",
            "X-API-Key": self.credentials["api_key"],
            "X-API-Secret": self.credentials["api_secret"],
        })
        return headers

    def _build_shipment(self, payload: ShipmentPayload) -> Dict[str, Any]:
        pickup, delivery = payload.pickup, payload.delivery
        return {
            "order_id": payload.idempotency_key,
            "from_name": pickup.name,
            "from_address": pickup.address,
            "from_city": pickup.city,
            "from_state": pickup.state,
            "from_pincode": pickup.pincode,
            "from_phone": pickup.phone,
            "from_email": pickup.email,
            "to_name": delivery.name,
            "to_address": delivery.address,
            "to_city": delivery.city,
            "to_state": delivery.state,
            "to_pincode": delivery.pincode,
            "to_phone": delivery.phone,
            "to_email": delivery.email,
            "items": [
                {"name": item.name, "sku": item.sku, "size": item.size, "quantity": item.quantity}
                for item in payload.items
            ],
            "weight": float(payload.weight_kg),
            "payment_mode": payload.payment_method.lower(),
            "shipment_value": float(payload.declared_value),
            "courier_code": payload.courier_code or "",
        }

    def create_shipment(self, payload: ShipmentPayload) -> ShipmentCreationResult:
        body = self._as_dict(self._request("POST", "/shipments", json=self._build_shipment(payload)))
        reference = body.get("shipment_id") or body.get("id") or body.get("reference")
        if not reference:
            raise ProviderError(
                str(body.get("message") or "Shipway did not return a shipment reference"),
                provider_code=self.provider_code,
                error_code="validation_error",
                payload=body,
            )
        awb = extract_awb(body)
        logger.info(f"Shipway shipment {reference} created for {payload.reference}, AWB {awb or 'pending'}")
        return ShipmentCreationResult(
            provider_reference=str(reference),
            tracking_number=awb,
            courier_name=str(body.get("courier_name") or ""),
            tracking_url=str(body.get("tracking_url") or body.get("tracking_link") or ""),
            carrier_status=extract_carrier_status(body),
            raw_response=body,
        )

    def fetch_tracking(self, provider_reference: str) -> TrackingResult:
        body = self._as_dict(self._request("GET", f"/shipments/{provider_reference}/status"))
        carrier_status = extract_carrier_status(body)
        return TrackingResult(
            provider_reference=provider_reference,
            status=normalize_carrier_status(carrier_status),
            carrier_status=carrier_status,
            tracking_number=extract_awb(body),
            courier_name=str(body.get("courier_name") or ""),
            tracking_url=str(body.get("tracking_url") or body.get("tracking_link") or ""),
            raw_response=body,
        )

    def check_serviceability(self, from_pincode: str, to_pincode: str, weight_kg: Decimal) -> ServiceabilityResult:
        params = {"pincode": to_pincode, "from_pincode": from_pincode, "weight": float(weight_kg)}
        body = self._as_dict(self._request("GET", "/serviceability", params=params))

        couriers = [
            CourierQuote(
                courier_code=str(courier.get("courier_code") or courier.get("id") or ""),
                courier_name=str(courier.get("courier_name") or courier.get("name") or ""),
                rate=Decimal(str(courier.get("rate") or 0)),
                estimated_days=parse_estimated_days(courier.get("estimated_days")),
            )
            for courier in body.get("couriers") or []
        ]
        serviceable = body.get("serviceable") is True or body.get("is_serviceable") is True or bool(couriers)
        return ServiceabilityResult(serviceable=serviceable, couriers=couriers, raw_response=body)

    def cancel_shipment(self, provider_reference: str, tracking_number: Optional[str] = None) -> CancellationResult:
        body = self._as_dict(self._request("POST", f"/shipments/{provider_reference}/cancel"))
        cancelled = body.get("cancelled") is True or str(body.get("status", "")).upper() == "CANCELLED"
        return CancellationResult(
            cancelled=cancelled,
            message=str(body.get("message") or ""),
            raw_response=body,
        )

    def health_check(self) -> HealthCheckResult:
        started = time.monotonic()
        body = self._as_dict(self._request("GET", "/health"))
        latency = int((time.monotonic() - started) * 1000)
        healthy = body.get("status") == "ok" or body.get("healthy") is True
        return HealthCheckResult(healthy=healthy, latency_ms=latency, message=str(body.get("message") or ""))
