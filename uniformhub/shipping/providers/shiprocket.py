"""
Shiprocket adapter.

Shiprocket answers a create call with both an ``order_id`` and a
``shipment_id``; the ``shipment_id`` is the provider reference used for
every later call. The AWB is often assigned asynchronously, so a create
without one succeeds with ``tracking_number=None``.
"""

import logging
import re
import time
from decimal import Decimal
from typing import Any, Dict, Optional

from django.utils import timezone

from order_fulfillment.exceptions import ValidationException
from ..exceptions import ProviderError
from .base import (
    CancellationResult, CourierQuote, HealthCheckResult, HttpShippingProvider, ServiceabilityResult,
    ShipmentCreationResult, ShipmentPayload, TrackingResult, extract_awb, extract_carrier_status,
    normalize_carrier_status, parse_estimated_days,
)

logger = logging.getLogger(__name__)

PINCODE_RE = re.compile(r"^\d{6}$")


def format_phone(phone: str) -> str:
    """Shiprocket wants a bare 10-digit Indian mobile number."""
    digits = re.sub(r"\D", "", phone or "")
    if len(digits) == 12 and digits.startswith("91"):
        digits = digits[2:]
    elif len(digits) == 11 and digits.startswith("0"):
        digits = digits[1:]
    return digits[-10:] if len(digits) >= 10 else digits


def _courier_name(body: Any) -> str:
    node = body
    for key in ("response", "data"):
        node = node.get(key) if isinstance(node, dict) else None
    if isinstance(node, dict):
        return str(node.get("courier_name") or "")
    return ""


def validate_pincode(value: str, field: str) -> str:
    value = (value or "").strip()
    if not PINCODE_RE.match(value):
        raise ValidationException(f"{field} must be a 6 digit pincode", {field: value})
    return value


class ShiprocketProvider(HttpShippingProvider):
    provider_code = "SHIPROCKET"
    provider_name = "Shiprocket"
    REQUIRED_CREDENTIALS = ("email", "password")

    def __init__(self, *args, **kwargs):
        super().__init__(*args, **kwargs)
        self._token: Optional[str] = None

    def default_base_url(self) -> str:
        return "https://apiv2.shiprocket.in"

    def _authenticate(self) -> str:
        if self._token is None:
            body = self._request(
                "POST",
                "/v1/external/auth/login",
                json={"email": self.credentials["email"], "password": self.credentials["password"]},
            )
            token = body.get("token") if isinstance(body, dict) else None
            if not token:
                raise ProviderError(
                    "Shiprocket login returned no token",
                    provider_code=self.provider_code,
                    error_code="authentication_error",
                    payload=self._as_dict(body),
                )
            self._token = token
        return self._token

    def _api(self, method: str, path: str, **kwargs) -> Any:
        token = self._authenticate()
        return self._request(method, path, headers={"Authorization": f"Bearer {token}"}, **kwargs)

    def _build_order(self, payload: ShipmentPayload) -> Dict[str, Any]:
        delivery = payload.delivery
        first_name, _, last_name = delivery.name.partition(" ")
        order = {
            "order_id": payload.idempotency_key,
            "order_date": timezone.localtime().strftime("%Y-%m-%d %H:%M"),
            "pickup_location": payload.pickup_location,
            "comment": f"PR {payload.pr_number}" if payload.pr_number else payload.reference,
            "billing_customer_name": first_name or delivery.name,
            "billing_last_name": last_name,
            "billing_address": delivery.address,
            "billing_city": delivery.city,
            "billing_state": delivery.state,
            "billing_pincode": delivery.pincode,
            "billing_country": delivery.country,
            "billing_email": delivery.email,
            "billing_phone": format_phone(delivery.phone),
            "shipping_is_billing": True,
            "order_items": [
                {
                    "name": f"{item.name} ({item.size})" if item.size else item.name,
                    "sku": f"{item.sku}-{item.size}" if item.size else item.sku,
                    "units": item.quantity,
                    "selling_price": float(item.unit_price),
                }
                for item in payload.items
            ],
            "payment_method": payload.payment_method,
            "sub_total": float(payload.declared_value),
            "weight": float(payload.weight_kg),
            "length": float(payload.length_cm or 10),
            "breadth": float(payload.breadth_cm or 10),
            "height": float(payload.height_cm or 10),
        }
        return order

    def create_shipment(self, payload: ShipmentPayload) -> ShipmentCreationResult:
        body = self._api("POST", "/v1/external/orders/create/adhoc", json=self._build_order(payload))
        body = self._as_dict(body)

        shipment_id = body.get("shipment_id")
        if not shipment_id:
            raise ProviderError(
                str(body.get("message") or "Shiprocket did not return a shipment_id"),
                provider_code=self.provider_code,
                error_code="validation_error",
                payload=body,
            )
        reference = str(shipment_id)

        awb = extract_awb(body)
        courier_name = str(body.get("courier_name") or "")
        if awb is None:
            assign_payload = {"shipment_id": reference}
            if payload.courier_code:
                assign_payload["courier_id"] = payload.courier_code
            try:
                assigned = self._api("POST", "/v1/external/courier/assign/awb", json=assign_payload)
            except ProviderError as exc:
                # The order exists on Shiprocket; the AWB is picked up on reconcile
                logger.warning(f"AWB assignment for Shiprocket shipment {reference} failed: {exc.message}")
            else:
                awb = extract_awb(assigned)
                courier_name = courier_name or _courier_name(assigned)

        logger.info(f"Shiprocket shipment {reference} created for {payload.reference}, AWB {awb or 'pending'}")
        return ShipmentCreationResult(
            provider_reference=reference,
            tracking_number=awb,
            courier_name=courier_name,
            tracking_url=f"https://shiprocket.co/tracking/{awb}" if awb else "",
            carrier_status=str(body.get("status") or ""),
            raw_response=body,
        )

    def fetch_tracking(self, provider_reference: str) -> TrackingResult:
        try:
            body = self._api("GET", f"/v1/external/orders/show/{provider_reference}")
        except ProviderError as exc:
            if exc.status_code != 404:
                raise
            body = self._api("GET", f"/v1/external/courier/track/awb/{provider_reference}")
        body = self._as_dict(body)

        carrier_status = extract_carrier_status(body)
        awb = extract_awb(body)
        data = body.get("data") if isinstance(body.get("data"), dict) else body
        return TrackingResult(
            provider_reference=provider_reference,
            status=normalize_carrier_status(carrier_status),
            carrier_status=carrier_status,
            tracking_number=awb,
            courier_name=str(data.get("courier_name") or ""),
            tracking_url=f"https://shiprocket.co/tracking/{awb}" if awb else "",
            raw_response=body,
        )

    def check_serviceability(self, from_pincode: str, to_pincode: str, weight_kg: Decimal) -> ServiceabilityResult:
        params = {
            "pickup_postcode": validate_pincode(from_pincode, "from_pincode"),
            "delivery_postcode": validate_pincode(to_pincode, "to_pincode"),
            "weight": float(weight_kg),
            "cod": 0,
        }
        body = self._as_dict(self._api("GET", "/v1/external/courier/serviceability/", params=params))
        data = body.get("data") if isinstance(body.get("data"), dict) else {}

        couriers = []
        for courier in data.get("available_courier_companies") or []:
            couriers.append(CourierQuote(
                courier_code=str(courier.get("courier_company_id") or courier.get("courier_name") or ""),
                courier_name=str(courier.get("courier_name") or ""),
                rate=Decimal(str(courier.get("rate") or courier.get("freight_charge") or 0)),
                estimated_days=parse_estimated_days(courier.get("estimated_delivery_days")),
            ))
        return ServiceabilityResult(serviceable=bool(couriers), couriers=couriers, raw_response=body)

    def cancel_shipment(self, provider_reference: str, tracking_number: Optional[str] = None) -> CancellationResult:
        if tracking_number:
            body = self._api("POST", "/v1/external/orders/cancel/shipment/awbs", json={"awbs": [tracking_number]})
        else:
            body = self._api("POST", "/v1/external/orders/cancel", json={"ids": [provider_reference]})
        body = self._as_dict(body)
        return CancellationResult(
            cancelled=True,
            message=str(body.get("message") or "Cancellation requested"),
            raw_response=body,
        )

    def health_check(self) -> HealthCheckResult:
        started = time.monotonic()
        self._token = None
        self._authenticate()
        latency = int((time.monotonic() - started) * 1000)
        return HealthCheckResult(healthy=True, latency_ms=latency, message="Authenticated")

