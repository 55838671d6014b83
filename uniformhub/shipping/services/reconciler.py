"""
Shipment creation and tracking reconciliation.

A vendor sub-order ships once its requisition has cleared
(``LINKED_TO_PO`` or ``NOT_REQUIRED``). API shipments are booked through
the company's resolved provider and later reconciled against the
carrier; manual shipments carry an operator-entered tracking number and
are never reconciled.
"""

import logging
from decimal import Decimal
from typing import Any, Dict, Optional

from django.conf import settings
from django.db import transaction
from django.db.models import F
from django.utils import timezone

from order_fulfillment.exceptions import BusinessException, StateConflictException, ValidationException
from order_fulfillment.models import Order, OrderStatus, PRStatus, AuditLog
from order_fulfillment.services.workflow import transition_order_status, transition_pr_status
from ..exceptions import ProviderError
from ..models import Shipment, ShipmentMode, ShipmentStatus, ShipmentStatusEvent
from ..providers import Address, ServiceabilityResult, ShipmentItem, ShipmentPayload
from ..registry import ProviderRegistry
from .api_log import call_provider

logger = logging.getLogger(__name__)


class ShipmentWorkflow:
    """Shipment status ordering; carriers may skip steps but never go back."""

    PROGRESSION = [
        ShipmentStatus.CREATED,
        ShipmentStatus.PICKED_UP,
        ShipmentStatus.IN_TRANSIT,
        ShipmentStatus.DELIVERED,
    ]
    REVOCATIONS = (ShipmentStatus.FAILED, ShipmentStatus.CANCELLED)

    @classmethod
    def can_advance(cls, current: str, new: Optional[str]) -> bool:
        if not new or new == current or current in Shipment.TERMINAL_STATUSES:
            return False
        if new in cls.REVOCATIONS:
            return True
        return cls.PROGRESSION.index(new) > cls.PROGRESSION.index(current)


def _record_event(shipment: Shipment, old_status: str, old_tracking: str, source: str, carrier_status: str = ""):
    ShipmentStatusEvent.objects.create(
        shipment=shipment,
        from_status=old_status,
        to_status=shipment.shipment_status,
        old_tracking_number=old_tracking,
        new_tracking_number=shipment.tracking_number,
        carrier_status=carrier_status,
        source=source,
    )


def _fulfil_unrequisitioned_order(order_number: str, user=None) -> None:
    """Delivery closes a sub-order that never had a purchase order."""
    order = Order.objects.select_for_update().get(order_number=order_number)
    if order.pr_status != PRStatus.NOT_REQUIRED:
        return
    transition_pr_status(order, PRStatus.FULFILLED, user=user, notes="Shipment delivered")
    transition_order_status(order, OrderStatus.FULFILLED, user=user, notes="Shipment delivered")


class ShipmentReconciler:
    """Service class for shipment operations."""

    @staticmethod
    def _lock_shippable_order(order_number: str) -> Order:
        try:
            order = Order.objects.select_for_update().get(order_number=order_number)
        except Order.DoesNotExist:
            raise ValidationException(f"Order {order_number} does not exist", {"order_number": order_number})

        if not order.is_ready_to_ship:
            raise StateConflictException(
                f"Order {order_number} cannot ship while its requisition is {order.pr_status}",
                "SHIPMENT_NOT_ALLOWED",
                {"order_number": order_number, "pr_status": order.pr_status},
            )
        if not order.vendor_id:
            raise StateConflictException(
                f"Order {order_number} is not a vendor sub-order",
                "SHIPMENT_NOT_ALLOWED",
                {"order_number": order_number},
            )
        live = order.shipments.exclude(
            shipment_status__in=[ShipmentStatus.FAILED, ShipmentStatus.CANCELLED]
        ).first()
        if live is not None:
            raise StateConflictException(
                f"Order {order_number} already has shipment {live.shipment_number}",
                "SHIPMENT_EXISTS",
                {"order_number": order_number, "shipment_number": live.shipment_number},
            )
        return order

    @staticmethod
    def chargeable_weight(order: Order) -> Decimal:
        """Greater of dead weight and volumetric weight, in kg."""
        dead = Decimal("0")
        volume = Decimal("0")
        for item in order.items.select_related('product'):
            dead += item.total_weight
            product = item.product
            if product.length and product.width and product.height:
                volume += product.length * product.width * product.height * item.quantity
        volumetric = volume / Decimal(settings.SHIPPING_VOLUMETRIC_DIVISOR)
        return max(dead, volumetric).quantize(Decimal("0.001"))

    @staticmethod
    def build_payload(order: Order, idempotency_key: str, weight: Decimal,
                      courier_code: Optional[str] = None) -> ShipmentPayload:
        vendor = order.vendor
        employee = order.employee
        pickup = Address(
            name=vendor.contact_person or vendor.name,
            address=vendor.address,
            city=vendor.city,
            state=vendor.state,
            pincode=vendor.pincode,
            phone=vendor.phone,
            email=vendor.email,
            country=vendor.country,
        )
        delivery = Address(
            name=employee.get_full_name() or employee.username,
            address=order.delivery_address,
            city=order.delivery_city,
            state=order.delivery_state,
            pincode=order.delivery_pincode,
            phone=order.delivery_phone,
            email=employee.email,
        )
        items = [
            ShipmentItem(
                sku=item.product_id,
                name=item.product_name,
                quantity=item.quantity,
                unit_price=item.unit_price,
                size=item.size,
            )
            for item in order.items.all()
        ]
        return ShipmentPayload(
            reference=order.order_number,
            idempotency_key=idempotency_key,
            pr_number=order.pr_number,
            pickup=pickup,
            pickup_location=vendor.pickup_location_name,
            delivery=delivery,
            items=items,
            weight_kg=weight,
            declared_value=order.total_amount,
            courier_code=courier_code,
        )

    @staticmethod
    def create_shipment(order_number: str, actor=None, provider_code: Optional[str] = None,
                        courier_code: Optional[str] = None) -> str:
        """
        Book a shipment for a cleared vendor sub-order through its company's provider.

        A carrier failure is not raised: the attempt is stored as a FAILED
        shipment carrying the error detail and is not retried. The carrier
        may still have booked it, so the stored failure is never marked
        retryable. A later call makes a new attempt under the same
        idempotency key so the carrier can deduplicate it; only a
        confirmed cancellation moves the order to a fresh key.

        Returns:
            The shipment number

        Raises:
            StateConflictException: Requisition not cleared, or a live shipment exists
            NoShippingProviderError: Nothing configured; ship manually instead
            InvalidProviderCredentialsError: Stored credentials unusable
        """
        with transaction.atomic():
            order = ShipmentReconciler._lock_shippable_order(order_number)
            resolved = ProviderRegistry.resolve(order.company_id, provider_code)

            attempt = order.shipments.count() + 1
            cancelled = order.shipments.filter(shipment_status=ShipmentStatus.CANCELLED).count()
            idempotency_key = order.order_number if not cancelled else f"{order.order_number}-R{cancelled}"
            weight = ShipmentReconciler.chargeable_weight(order)
            payload = ShipmentReconciler.build_payload(order, idempotency_key, weight, courier_code)

            shipment = Shipment(
                order=order,
                pr_number=order.pr_number,
                vendor_id=order.vendor_id,
                attempt=attempt,
                idempotency_key=idempotency_key,
                shipment_mode=ShipmentMode.API,
                provider_id=resolved.provider_code,
                company_provider=resolved.config,
                chargeable_weight=weight,
                created_by=actor,
            )

            try:
                result = call_provider(
                    resolved, 'CREATE', order.order_number, payload,
                    resolved.adapter.create_shipment, payload,
                )
            except ProviderError as exc:
                shipment.shipment_status = ShipmentStatus.FAILED
                shipment.failure_code = exc.error_code
                shipment.failure_detail = {
                    "message": exc.message,
                    "status_code": exc.status_code,
                    # Outcome at the carrier is unknown
                    "retryable": False,
                    "transient": exc.retryable,
                    "provider_response": exc.payload,
                }
                shipment.save()
                _record_event(shipment, "", "", 'CREATE')
                AuditLog.log_change(
                    entity=shipment,
                    action='shipment_failed',
                    user=actor,
                    new_values={'order': order.order_number, 'error_code': exc.error_code},
                    notes=exc.message,
                )
                logger.error(
                    f"Shipment attempt {attempt} for order {order.order_number} failed "
                    f"at {resolved.provider_code}: {exc.message}"
                )
                return shipment.shipment_number

            shipment.provider_reference = result.provider_reference
            shipment.tracking_number = result.tracking_number or ""
            shipment.tracking_url = result.tracking_url
            shipment.courier_name = result.courier_name
            shipment.carrier_status = result.carrier_status
            shipment.raw_provider_response = result.raw_response
            shipment.last_synced_at = timezone.now()
            shipment.save()
            _record_event(shipment, "", "", 'CREATE', result.carrier_status)

            AuditLog.log_change(
                entity=shipment,
                action='created',
                user=actor,
                new_values={
                    'order': order.order_number,
                    'provider': resolved.provider_code,
                    'provider_reference': shipment.provider_reference,
                    'tracking_number': shipment.tracking_number,
                },
            )
            logger.info(
                f"Shipment {shipment.shipment_number} created for order {order.order_number} "
                f"via {resolved.provider_code}, AWB {shipment.tracking_number or 'pending'}"
            )
            return shipment.shipment_number

    @staticmethod
    def create_manual_shipment(order_number: str, tracking_number: str, courier_name: str,
                               actor=None, tracking_url: str = "") -> str:
        """Record a shipment dispatched outside any provider integration."""
        tracking_number = (tracking_number or "").strip()
        courier_name = (courier_name or "").strip()
        if not tracking_number:
            raise ValidationException("A tracking number is required", {"tracking_number": "required"})
        if not courier_name:
            raise ValidationException("A courier name is required", {"courier_name": "required"})

        with transaction.atomic():
            order = ShipmentReconciler._lock_shippable_order(order_number)
            attempt = order.shipments.count() + 1
            shipment = Shipment.objects.create(
                order=order,
                pr_number=order.pr_number,
                vendor_id=order.vendor_id,
                attempt=attempt,
                idempotency_key=f"{order.order_number}-{attempt}",
                shipment_mode=ShipmentMode.MANUAL,
                tracking_number=tracking_number,
                tracking_url=tracking_url,
                courier_name=courier_name,
                chargeable_weight=ShipmentReconciler.chargeable_weight(order),
                created_by=actor,
            )
            _record_event(shipment, "", "", 'MANUAL')
            AuditLog.log_change(
                entity=shipment,
                action='created',
                user=actor,
                new_values={'order': order.order_number, 'mode': ShipmentMode.MANUAL,
                            'tracking_number': tracking_number, 'courier': courier_name},
            )
            logger.info(f"Manual shipment {shipment.shipment_number} recorded for order {order.order_number}")
            return shipment.shipment_number

    @staticmethod
    def _get_shipment(shipment_number: str, lock: bool = False) -> Shipment:
        queryset = Shipment.objects.select_for_update() if lock else Shipment.objects.all()
        try:
            return queryset.get(shipment_number=shipment_number)
        except Shipment.DoesNotExist:
            raise ValidationException(
                f"Shipment {shipment_number} does not exist", {"shipment_number": shipment_number}
            )

    @staticmethod
    def _apply_status(shipment: Shipment, new_status: str, user=None) -> None:
        old_status = shipment.shipment_status
        shipment.shipment_status = new_status
        if new_status == ShipmentStatus.DELIVERED:
            shipment.delivered_at = timezone.now()
            _fulfil_unrequisitioned_order(shipment.order_id, user=user)
        AuditLog.log_status_change(
            entity=shipment,
            old_status=old_status,
            new_status=new_status,
            user=user,
            field='shipment_status',
        )

    @staticmethod
    def update_manual_status(shipment_number: str, new_status: str, actor=None) -> str:
        """Operator status update for a manual shipment; the same no-regression rule applies."""
        if new_status not in ShipmentStatus.values:
            raise ValidationException(f"Unknown shipment status {new_status}", {"status": new_status})

        with transaction.atomic():
            shipment = ShipmentReconciler._get_shipment(shipment_number, lock=True)
            if shipment.is_api:
                raise StateConflictException(
                    f"Shipment {shipment_number} is tracked by its provider",
                    "API_SHIPMENT",
                    {"shipment_number": shipment_number},
                )
            if not ShipmentWorkflow.can_advance(shipment.shipment_status, new_status):
                raise StateConflictException(
                    f"Shipment {shipment_number} cannot move from {shipment.shipment_status} to {new_status}",
                    "INVALID_TRANSITION",
                    {"shipment_number": shipment_number, "current_status": shipment.shipment_status},
                )
            old_status = shipment.shipment_status
            ShipmentReconciler._apply_status(shipment, new_status, user=actor)
            shipment.save()
            _record_event(shipment, old_status, shipment.tracking_number, 'MANUAL')
            return shipment.shipment_status

    @staticmethod
    def reconcile_tracking(shipment_number: str) -> Dict[str, Any]:
        """
        Pull the carrier's current tracking state into the shipment.

        An AWB the carrier has not assigned yet is not an error; the
        shipment simply stays without one until a later poll. Status never
        moves backwards except to an explicit FAILED or CANCELLED.

        Returns:
            ``{"shipment_number", "tracking_number", "status", "changed"}``

        Raises:
            StateConflictException: Manual shipment, or the order was rejected
            ProviderError: The carrier call failed; nothing is changed
        """
        shipment = ShipmentReconciler._get_shipment(shipment_number)
        if not shipment.is_api:
            raise StateConflictException(
                f"Shipment {shipment_number} is manual and is not reconciled",
                "MANUAL_SHIPMENT",
                {"shipment_number": shipment_number},
            )
        order = shipment.order
        if order.is_rejected:
            raise StateConflictException(
                f"Order {order.order_number} was rejected; shipment {shipment_number} is frozen",
                "ORDER_REJECTED",
                {"shipment_number": shipment_number, "order_number": order.order_number},
            )
        if shipment.is_terminal:
            return {
                "shipment_number": shipment_number,
                "tracking_number": shipment.tracking_number or None,
                "status": shipment.shipment_status,
                "changed": False,
            }

        resolved = ProviderRegistry.resolve(order.company_id, shipment.provider_id)
        result = call_provider(
            resolved, 'TRACK', shipment_number, {"provider_reference": shipment.provider_reference},
            resolved.adapter.fetch_tracking, shipment.provider_reference,
        )

        with transaction.atomic():
            shipment = ShipmentReconciler._get_shipment(shipment_number, lock=True)
            # Cancelled or rejected while the carrier was being polled
            if shipment.is_terminal or shipment.order.is_rejected:
                logger.info(f"Shipment {shipment_number} changed during tracking poll, result discarded")
                return {
                    "shipment_number": shipment_number,
                    "tracking_number": shipment.tracking_number or None,
                    "status": shipment.shipment_status,
                    "changed": False,
                }
            old_status = shipment.shipment_status
            old_tracking = shipment.tracking_number

            changed = False
            if result.tracking_number and result.tracking_number != shipment.tracking_number:
                shipment.tracking_number = result.tracking_number
                shipment.tracking_url = result.tracking_url or shipment.tracking_url
                changed = True
            if result.courier_name and not shipment.courier_name:
                shipment.courier_name = result.courier_name

            if ShipmentWorkflow.can_advance(shipment.shipment_status, result.status):
                ShipmentReconciler._apply_status(shipment, result.status)
                changed = True
            elif result.status and result.status != shipment.shipment_status:
                logger.info(
                    f"Ignoring carrier status {result.carrier_status} for shipment {shipment_number} "
                    f"in {shipment.shipment_status}"
                )

            shipment.carrier_status = result.carrier_status
            shipment.raw_provider_response = result.raw_response
            shipment.last_synced_at = timezone.now()
            shipment.save()

            if changed:
                _record_event(shipment, old_status, old_tracking, 'RECONCILE', result.carrier_status)
                logger.info(
                    f"Shipment {shipment_number} reconciled: {old_status} -> {shipment.shipment_status}, "
                    f"AWB {shipment.tracking_number or 'pending'}"
                )

            return {
                "shipment_number": shipment_number,
                "tracking_number": shipment.tracking_number or None,
                "status": shipment.shipment_status,
                "changed": changed,
            }

    @staticmethod
    def cancel_shipment(shipment_number: str, actor=None, reason: str = "") -> str:
        """
        Cancel a shipment that has not reached a terminal state.

        Raises:
            StateConflictException: Already terminal, or the carrier refused
        """
        with transaction.atomic():
            shipment = ShipmentReconciler._get_shipment(shipment_number, lock=True)
            if shipment.is_terminal:
                raise StateConflictException(
                    f"Shipment {shipment_number} is already {shipment.shipment_status}",
                    "INVALID_TRANSITION",
                    {"shipment_number": shipment_number, "current_status": shipment.shipment_status},
                )

            if shipment.is_api:
                resolved = ProviderRegistry.resolve(shipment.order.company_id, shipment.provider_id)
                result = call_provider(
                    resolved, 'CANCEL', shipment_number,
                    {"provider_reference": shipment.provider_reference, "tracking_number": shipment.tracking_number},
                    resolved.adapter.cancel_shipment, shipment.provider_reference, shipment.tracking_number or None,
                )
                if not result.cancelled:
                    raise StateConflictException(
                        f"{resolved.provider_code} refused to cancel shipment {shipment_number}: {result.message}",
                        "CANCEL_REFUSED",
                        {"shipment_number": shipment_number},
                    )

            old_status = shipment.shipment_status
            ShipmentReconciler._apply_status(shipment, ShipmentStatus.CANCELLED, user=actor)
            shipment.failure_detail = dict(shipment.failure_detail, cancellation_reason=reason)
            shipment.save()
            _record_event(shipment, old_status, shipment.tracking_number, 'CANCEL')
            logger.info(f"Shipment {shipment_number} cancelled: {reason or 'no reason given'}")
            return shipment.shipment_status

    @staticmethod
    def check_serviceability(company_code: str, from_pincode: str, to_pincode: str, weight_kg: Decimal,
                             provider_code: Optional[str] = None) -> ServiceabilityResult:
        """Ask the company's provider which couriers serve a route."""
        resolved = ProviderRegistry.resolve(company_code, provider_code)
        request = {"from_pincode": from_pincode, "to_pincode": to_pincode, "weight_kg": weight_kg}
        return call_provider(
            resolved, 'SERVICEABILITY', f"{from_pincode}-{to_pincode}", request,
            resolved.adapter.check_serviceability, from_pincode, to_pincode, weight_kg,
        )

    @staticmethod
    def reconcile_pending(limit: int = 100) -> Dict[str, int]:
        """
        Reconcile open API shipments, least recently synced first.

        One shipment's failure does not stop the batch.
        """
        shipment_numbers = list(
            Shipment.objects.filter(shipment_mode=ShipmentMode.API)
            .exclude(shipment_status__in=Shipment.TERMINAL_STATUSES)
            .exclude(order__pr_status=PRStatus.REJECTED)
            .order_by(F('last_synced_at').asc(nulls_first=True), 'created_at')
            .values_list('shipment_number', flat=True)[:limit]
        )

        summary = {"checked": 0, "updated": 0, "failed": 0}
        for shipment_number in shipment_numbers:
            summary["checked"] += 1
            try:
                outcome = ShipmentReconciler.reconcile_tracking(shipment_number)
            except BusinessException as exc:
                summary["failed"] += 1
                logger.warning(f"Reconciliation of shipment {shipment_number} failed ({exc.code}): {exc.message}")
                continue
            if outcome["changed"]:
                summary["updated"] += 1
        return summary
