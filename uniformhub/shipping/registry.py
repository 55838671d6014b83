"""
Resolve which provider adapter serves a company.

Resolution reads the company's ``CompanyShippingProvider`` rows, decrypts
the credential bundle and builds the adapter. It never falls back to
another company's configuration or to a hard-coded provider.
"""

import logging
from dataclasses import dataclass
from typing import Optional

import requests
from django.conf import settings

from order_fulfillment.identity import canonical_ref
from .crypto import decrypt_credentials
from .exceptions import InvalidProviderCredentialsError, NoShippingProviderError, ProviderError
from .models import CompanyShippingProvider
from .providers import PROVIDER_CLASSES, BaseShippingProvider, HealthCheckResult

logger = logging.getLogger(__name__)


@dataclass
class ResolvedProvider:
    config: CompanyShippingProvider
    adapter: BaseShippingProvider

    @property
    def provider_code(self) -> str:
        return self.config.provider_id

    @property
    def company_code(self) -> str:
        return self.config.company_id


class ProviderRegistry:
    """Service class for provider resolution."""

    @staticmethod
    def enabled_configs(company_code: str):
        return CompanyShippingProvider.objects.select_related('provider').filter(
            company_id=company_code,
            is_enabled=True,
            provider__is_active=True,
        ).order_by('created_at', 'id')

    @staticmethod
    def select_config(company_code: str, provider_code: Optional[str] = None) -> CompanyShippingProvider:
        """
        Pick the configuration to use.

        An explicitly named provider wins; otherwise the company default,
        otherwise the only enabled provider. With several enabled and no
        default the earliest configured one is used and a warning logged.
        """
        company_code = canonical_ref(company_code, 'company_code')
        if not settings.SHIPPING_INTEGRATION_ENABLED:
            raise NoShippingProviderError(company_code, provider_code, reason="shipping integration is disabled")

        configs = list(ProviderRegistry.enabled_configs(company_code))
        if provider_code:
            for config in configs:
                if config.provider_id == provider_code:
                    return config
            raise NoShippingProviderError(company_code, provider_code)

        if not configs:
            raise NoShippingProviderError(company_code)
        defaults = [config for config in configs if config.is_default]
        if defaults:
            return defaults[0]
        if len(configs) > 1:
            logger.warning(
                f"Company {company_code} has {len(configs)} enabled shipping providers and no default; "
                f"using {configs[0].provider_id}"
            )
        return configs[0]

    @staticmethod
    def build_adapter(config: CompanyShippingProvider,
                      session: Optional[requests.Session] = None) -> BaseShippingProvider:
        provider_class = PROVIDER_CLASSES.get(config.provider_id)
        if provider_class is None:
            raise NoShippingProviderError(
                config.company_id, config.provider_id, reason="no adapter is registered for this provider"
            )
        credentials = decrypt_credentials(
            config.encrypted_credentials, provider_code=config.provider_id, company_code=config.company_id
        )
        try:
            return provider_class(
                credentials,
                base_url=config.provider.api_base_url or None,
                session=session,
            )
        except InvalidProviderCredentialsError as exc:
            raise InvalidProviderCredentialsError(
                exc.message, provider_code=config.provider_id, company_code=config.company_id
            ) from exc

    @staticmethod
    def resolve(company_code: str, provider_code: Optional[str] = None,
                session: Optional[requests.Session] = None) -> ResolvedProvider:
        """
        Resolve the adapter for ``company_code``.

        Raises:
            NoShippingProviderError: Integration disabled or nothing enabled for the company
            InvalidProviderCredentialsError: Credentials missing, undecryptable or incomplete
        """
        config = ProviderRegistry.select_config(company_code, provider_code)
        adapter = ProviderRegistry.build_adapter(config, session=session)
        logger.debug(f"Resolved provider {config.provider_id} for company {config.company_id}")
        return ResolvedProvider(config=config, adapter=adapter)

    @staticmethod
    def health_check(company_code: str, provider_code: Optional[str] = None,
                     session: Optional[requests.Session] = None) -> HealthCheckResult:
        from .services.api_log import call_provider

        resolved = ProviderRegistry.resolve(company_code, provider_code, session=session)
        try:
            return call_provider(resolved, 'HEALTH_CHECK', company_code, {}, resolved.adapter.health_check)
        except ProviderError as exc:
            return HealthCheckResult(healthy=False, message=exc.message)
