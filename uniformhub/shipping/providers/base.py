"""
Provider adapter interface.

Every carrier integration implements the same five operations. Adapters
take plain dataclasses in and return plain dataclasses out; they never
touch the database. Results carry the raw provider response so callers
can persist it for audit.
"""

import logging
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from decimal import Decimal
from typing import Any, Dict, List, Optional

import requests
from django.conf import settings

from ..error_codes import extract_error_message, map_status
from ..exceptions import InvalidProviderCredentialsError, ProviderError, TransientProviderError

logger = logging.getLogger(__name__)


# =============================================================================
# Carrier-agnostic data classes
# =============================================================================

@dataclass
class Address:
    name: str
    address: str
    city: str
    state: str
    pincode: str
    phone: str = ""
    email: str = ""
    country: str = "India"


@dataclass
class ShipmentItem:
    sku: str
    name: str
    quantity: int
    unit_price: Decimal
    size: str = ""


@dataclass
class ShipmentPayload:
    """Everything an adapter needs to book one shipment."""
    reference: str  # our order number
    idempotency_key: str  # sent to the carrier as its merchant order id
    pickup: Address
    delivery: Address
    items: List[ShipmentItem]
    weight_kg: Decimal
    declared_value: Decimal
    pr_number: str = ""
    pickup_location: str = "Primary"
    length_cm: Optional[Decimal] = None
    breadth_cm: Optional[Decimal] = None
    height_cm: Optional[Decimal] = None
    payment_method: str = "Prepaid"
    courier_code: Optional[str] = None


@dataclass
class ShipmentCreationResult:
    provider_reference: str
    tracking_number: Optional[str] = None  # None when the AWB is not assigned yet
    courier_name: str = ""
    tracking_url: str = ""
    carrier_status: str = ""
    raw_response: Dict[str, Any] = field(default_factory=dict)


@dataclass
class TrackingResult:
    provider_reference: str
    status: Optional[str] = None  # normalized ShipmentStatus, None when unknown
    carrier_status: str = ""
    tracking_number: Optional[str] = None
    courier_name: str = ""
    tracking_url: str = ""
    raw_response: Dict[str, Any] = field(default_factory=dict)


@dataclass
class CourierQuote:
    courier_code: str
    courier_name: str
    rate: Decimal
    estimated_days: Optional[int] = None


@dataclass
class ServiceabilityResult:
    serviceable: bool
    couriers: List[CourierQuote] = field(default_factory=list)
    raw_response: Dict[str, Any] = field(default_factory=dict)


@dataclass
class CancellationResult:
    cancelled: bool
    message: str = ""
    raw_response: Dict[str, Any] = field(default_factory=dict)


@dataclass
class HealthCheckResult:
    healthy: bool
    latency_ms: Optional[int] = None
    message: str = ""


# =============================================================================
# Response helpers
# =============================================================================

AWB_KEYS = ("awb_code", "awbCode", "awb", "awb_number", "tracking_number", "trackingNumber")
STATUS_KEYS = ("current_status", "shipment_status", "status")
_WRAPPER_KEYS = ("response", "data", "payload", "shipment", "shipment_track", "tracking_data")


def extract_awb(body: Any) -> Optional[str]:
    """
    Find the AWB in a carrier response.

    Carriers nest it under varying wrappers; the first non-empty AWB-like
    key found breadth-first wins. Docket or order ids are never returned
    as a tracking number.
    """
    queue = [body]
    while queue:
        node = queue.pop(0)
        if isinstance(node, list):
            queue.extend(node)
            continue
        if not isinstance(node, dict):
            continue
        for key in AWB_KEYS:
            value = node.get(key)
            if isinstance(value, (str, int)) and not isinstance(value, bool) and str(value).strip():
                return str(value).strip()
        for key in _WRAPPER_KEYS:
            if key in node:
                queue.append(node[key])
    return None


def extract_carrier_status(body: Any) -> str:
    queue = [body]
    while queue:
        node = queue.pop(0)
        if isinstance(node, list):
            queue.extend(node)
            continue
        if not isinstance(node, dict):
            continue
        for key in STATUS_KEYS:
            value = node.get(key)
            if isinstance(value, str) and value.strip():
                return value.strip()
        for key in _WRAPPER_KEYS:
            if key in node:
                queue.append(node[key])
    return ""


# Checked in order; the first matching rule wins
_STATUS_RULES = (
    (("CANCEL", "RTO"), "CANCELLED"),
    (("UNDELIVERED", "NOT DELIVERED"), "IN_TRANSIT"),
    (("DELIVERED", "COMPLETED"), "DELIVERED"),
    (("FAILED", "REJECTED", "LOST", "DAMAGED"), "FAILED"),
    (("PICKED UP", "PICKED_UP", "PICKEDUP"), "PICKED_UP"),
    (("TRANSIT", "SHIPPED", "OUT FOR DELIVERY", "OUT_FOR_DELIVERY", "DISPATCHED", "REACHED"), "IN_TRANSIT"),
    (("CREATED", "NEW", "BOOKED", "PICKUP SCHEDULED", "PICKUP_SCHEDULED", "AWB ASSIGNED",
      "AWB_ASSIGNED", "MANIFEST", "PENDING"), "CREATED"),
)


def normalize_carrier_status(carrier_status: Optional[str]) -> Optional[str]:
    """
    Map a free-text carrier status onto ShipmentStatus.

    Unrecognised statuses return None so the stored status is left alone.
    """
    if not carrier_status:
        return None
    text = str(carrier_status).strip().upper()
    for needles, status in _STATUS_RULES:
        if any(needle in text for needle in needles):
            return status
    return None


def parse_estimated_days(value: Any) -> Optional[int]:
    """Carriers send delivery estimates as ints, digit strings or blanks."""
    text = str(value).strip() if value is not None else ""
    return int(text) if text.isdigit() else None


# =============================================================================
# Adapter interface
# =============================================================================

class BaseShippingProvider(ABC):
    """Abstract base class for all shipping provider adapters."""

    provider_code: str = ""
    provider_name: str = ""
    REQUIRED_CREDENTIALS: tuple = ()

    def __init__(self, credentials: Dict[str, Any], base_url: Optional[str] = None,
                 timeout: Optional[float] = None, session: Optional[requests.Session] = None):
        missing = [key for key in self.REQUIRED_CREDENTIALS if not credentials.get(key)]
        if missing:
            raise InvalidProviderCredentialsError(
                f"Missing credential fields for {self.provider_code}: {', '.join(missing)}",
                provider_code=self.provider_code,
            )
        self.credentials = credentials
        self.base_url = (base_url or self.default_base_url()).rstrip("/")
        self.timeout = timeout if timeout is not None else settings.SHIPPING_PROVIDER_TIMEOUT
        self.session = session or requests.Session()

    def default_base_url(self) -> str:
        return ""

    @abstractmethod
    def create_shipment(self, payload: ShipmentPayload) -> ShipmentCreationResult:
        """Book a shipment. Raises ProviderError on an explicit carrier failure."""

    @abstractmethod
    def fetch_tracking(self, provider_reference: str) -> TrackingResult:
        """Current status and AWB for a shipment booked earlier."""

    @abstractmethod
    def check_serviceability(self, from_pincode: str, to_pincode: str, weight_kg: Decimal) -> ServiceabilityResult:
        """Couriers able to carry a parcel between two pincodes."""

    @abstractmethod
    def cancel_shipment(self, provider_reference: str, tracking_number: Optional[str] = None) -> CancellationResult:
        """Ask the carrier to cancel a shipment."""

    @abstractmethod
    def health_check(self) -> HealthCheckResult:
        """Cheap authenticated call used to verify credentials and reachability."""


class HttpShippingProvider(BaseShippingProvider):
    """Shared JSON-over-HTTP plumbing for carrier REST APIs."""

    def _headers(self) -> Dict[str, str]:
        return {"Accept": "application/json", "Content-Type": "application/json"}

    def _build_url(self, path: str) -> str:
        return f"{self.base_url}/{path.lstrip('/')}"

    @staticmethod
    def _parse_response_body(response: requests.Response) -> Any:
        if not response.content:
            return {}
        try:
            return response.json()
        except ValueError:
            return response.text

    def _request(self, method: str, path: str, *, json: Any = None, params: Optional[Dict[str, Any]] = None,
                 headers: Optional[Dict[str, str]] = None) -> Any:
        url = self._build_url(path)
        request_headers = self._headers()
        if headers:
            request_headers.update(headers)

        try:
            response = self.session.request(
                method,
                url,
                json=json,
                params=params,
                headers=request_headers,
                timeout=self.timeout,
            )
        except requests.RequestException as exc:
            logger.warning(f"{self.provider_code} {method} {path} failed: {exc}")
            raise TransientProviderError(
                f"Could not reach {self.provider_name}: {exc}", provider_code=self.provider_code
            ) from exc

        body = self._parse_response_body(response)
        if not response.ok:
            error_code, retryable = map_status(response.status_code)
            message = extract_error_message(body)
            logger.warning(f"{self.provider_code} {method} {path} returned {response.status_code}: {message}")
            raise ProviderError(
                message or f"{self.provider_name} returned HTTP {response.status_code}",
                provider_code=self.provider_code,
                status_code=response.status_code,
                error_code=error_code,
                retryable=retryable,
                payload=body if isinstance(body, dict) else {"body": body},
            )
        return body

    def _as_dict(self, body: Any) -> Dict[str, Any]:
        if isinstance(body, dict):
            return body
        return {"body": body}
