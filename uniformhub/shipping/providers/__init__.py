from .base import (
    Address, BaseShippingProvider, CancellationResult, CourierQuote, HealthCheckResult, ServiceabilityResult,
    ShipmentCreationResult, ShipmentItem, ShipmentPayload, TrackingResult, normalize_carrier_status,
)
from .mock import MockShippingProvider
from .shiprocket import ShiprocketProvider
from .shipway import ShipwayProvider

PROVIDER_CLASSES = {
    ShiprocketProvider.provider_code: ShiprocketProvider,
    ShipwayProvider.provider_code: ShipwayProvider,
    MockShippingProvider.provider_code: MockShippingProvider,
}

__all__ = [
    'Address', 'BaseShippingProvider', 'CancellationResult', 'CourierQuote', 'HealthCheckResult',
    'ServiceabilityResult', 'ShipmentCreationResult', 'ShipmentItem', 'ShipmentPayload', 'TrackingResult',
    'normalize_carrier_status', 'MockShippingProvider', 'ShiprocketProvider', 'ShipwayProvider',
    'PROVIDER_CLASSES',
]
