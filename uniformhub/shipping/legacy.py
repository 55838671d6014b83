"""
Legacy tracking identifiers.

Shipments imported from the previous system may carry the AWB under any
of several keys. They are read here once, when a shipment is loaded
without a canonical ``tracking_number``; nothing else reads them.

TODO: drop once every imported shipment has been re-saved with its
canonical tracking number and the legacy_tracking_fields column is empty.
"""

from typing import Any, Mapping, Optional

# Most to least trustworthy
LEGACY_TRACKING_KEYS = (
    "courier_awb_number",
    "courierAwbNumber",
    "tracking_number",
    "trackingNumber",
    "shipment_number",
    "shipmentNumber",
)


def resolve_legacy_tracking_number(fields: Optional[Mapping[str, Any]]) -> Optional[str]:
    if not fields:
        return None
    for key in LEGACY_TRACKING_KEYS:
        value = fields.get(key)
        if value is not None and str(value).strip():
            return str(value).strip()
    return None
