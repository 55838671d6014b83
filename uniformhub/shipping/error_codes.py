"""Classify carrier HTTP responses and decide whether a call may be retried."""

from typing import Any, Optional, Tuple

CARRIER_STATUS_MAP = {
    400: ("validation_error", False),
    401: ("authentication_error", False),
    403: ("forbidden", False),
    404: ("resource_not_found", False),
    409: ("conflict_error", False),
    422: ("validation_error", False),
    429: ("rate_limited", True),
}


def map_status(status_code: Optional[int]) -> Tuple[str, bool]:
    if status_code is None:
        return "network_error", True
    if status_code >= 500:
        return "server_error", True
    return CARRIER_STATUS_MAP.get(status_code, ("unknown_error", False))


def extract_error_message(body: Any) -> str:
    if isinstance(body, str):
        return body
    if isinstance(body, dict):
        for key in ("message", "error", "detail", "errors"):
            if body.get(key):
                return str(body[key])
        return str(body)
    return str(body)
