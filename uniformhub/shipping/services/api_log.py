"""
Provider call logging.

Every adapter call made by the services goes through ``call_provider`` so
that one ``ShipmentApiLog`` row records the request, the outcome and the
latency, whether the call succeeded or the carrier refused it.
"""

import dataclasses
import json
import logging
import time
from typing import Any, Callable, Dict

from django.core.serializers.json import DjangoJSONEncoder

from ..exceptions import ProviderError
from ..models import ShipmentApiLog

logger = logging.getLogger(__name__)


def json_safe(value: Any) -> Dict[str, Any]:
    """Convert dataclasses, Decimals and dates into something a JSONField accepts."""
    if dataclasses.is_dataclass(value) and not isinstance(value, type):
        value = dataclasses.asdict(value)
    if value is None:
        return {}
    value = json.loads(json.dumps(value, cls=DjangoJSONEncoder))
    return value if isinstance(value, dict) else {"value": value}


def call_provider(resolved, operation: str, entity_ref: str, request_payload: Any,
                  func: Callable[..., Any], *args, **kwargs) -> Any:
    """
    Invoke ``func`` and record the call.

    ProviderError is logged and re-raised; any other exception propagates
    without a log row.
    """
    started = time.monotonic()
    try:
        result = func(*args, **kwargs)
    except ProviderError as exc:
        latency = int((time.monotonic() - started) * 1000)
        ShipmentApiLog.objects.create(
            company_id=resolved.company_code,
            provider_id=resolved.provider_code,
            operation=operation,
            entity_ref=entity_ref,
            request_payload=json_safe(request_payload),
            response_payload=json_safe(exc.payload),
            success=False,
            http_status=exc.status_code,
            error_code=exc.error_code,
            error_detail=exc.message,
            latency_ms=latency,
        )
        logger.warning(
            f"{resolved.provider_code} {operation} for {entity_ref} failed "
            f"({exc.error_code}, retryable={exc.retryable}): {exc.message}"
        )
        raise

    latency = int((time.monotonic() - started) * 1000)
    response = json_safe(result)
    response.pop("raw_response", None)
    ShipmentApiLog.objects.create(
        company_id=resolved.company_code,
        provider_id=resolved.provider_code,
        operation=operation,
        entity_ref=entity_ref,
        request_payload=json_safe(request_payload),
        response_payload=json_safe(getattr(result, "raw_response", None)) or response,
        success=True,
        latency_ms=latency,
    )
    logger.info(f"{resolved.provider_code} {operation} for {entity_ref} succeeded in {latency}ms")
    return result
