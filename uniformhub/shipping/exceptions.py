"""
Exceptions raised by shipping providers, the provider registry and the reconciler.
"""

from typing import Any, Dict, Optional

from order_fulfillment.exceptions import BusinessException


class ProviderError(BusinessException):
    """The carrier answered with an explicit failure; the carrier's detail is attached."""

    http_status = 502

    def __init__(self, message: str, provider_code: str = "", status_code: Optional[int] = None,
                 error_code: str = "provider_error", retryable: bool = False,
                 payload: Optional[Dict[str, Any]] = None):
        super().__init__(message, "PROVIDER_ERROR", {
            "provider": provider_code,
            "status_code": status_code,
            "error_code": error_code,
            "payload": payload or {},
        })
        self.provider_code = provider_code
        self.status_code = status_code
        self.error_code = error_code
        self.retryable = retryable
        self.payload = payload or {}


class TransientProviderError(ProviderError):
    """Timeout or connection failure; nothing is known about the carrier side."""

    http_status = 503

    def __init__(self, message: str, provider_code: str = "", error_code: str = "network_error"):
        super().__init__(message, provider_code=provider_code, error_code=error_code, retryable=True)
        self.code = "PROVIDER_UNAVAILABLE"


class NoShippingProviderError(BusinessException):
    """No enabled provider is configured; the caller falls back to a manual shipment."""

    http_status = 422

    def __init__(self, company_code: str, provider_code: Optional[str] = None, reason: str = ""):
        target = f"provider {provider_code}" if provider_code else "shipping provider"
        message = f"No enabled {target} for company {company_code}"
        if reason:
            message = f"{message}: {reason}"
        super().__init__(message, "NO_SHIPPING_PROVIDER", {
            "company": company_code,
            "provider": provider_code,
        })


class InvalidProviderCredentialsError(BusinessException):
    """Stored credentials could not be decrypted or are incomplete."""

    http_status = 422

    def __init__(self, message: str, provider_code: str = "", company_code: str = ""):
        super().__init__(message, "INVALID_PROVIDER_CREDENTIALS", {
            "provider": provider_code,
            "company": company_code,
        })
