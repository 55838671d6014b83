"""
Purchase order issuance for approved vendor sub-orders.
"""

import logging
from typing import Optional

from django.db import transaction
from django.utils import timezone

from order_fulfillment.exceptions import ValidationException
from order_fulfillment.models import Order, OrderStatus, PRStatus, AuditLog
from order_fulfillment.services.workflow import transition_pr_status, transition_order_status
from ..models import PurchaseOrder

logger = logging.getLogger(__name__)


class PurchaseOrderService:
    """Service class for purchase order operations."""

    @staticmethod
    def issue_purchase_order(order_number: str, issued_by=None) -> str:
        """
        Issue the purchase order for a sub-order that has cleared approval.

        Returns the existing PO number when one is already live.

        Raises:
            ValidationException: If the order does not exist or has no vendor
            InvalidTransitionException: If the order has not cleared approval
        """
        with transaction.atomic():
            try:
                order = Order.objects.select_for_update().get(order_number=order_number)
            except Order.DoesNotExist:
                raise ValidationException(f"Order {order_number} does not exist", {"order_number": order_number})
            return PurchaseOrderService.issue_for_locked_order(order, issued_by).po_number

    @staticmethod
    def issue_for_locked_order(order: Order, issued_by=None) -> PurchaseOrder:
        """
        Issue the PO for an order row already locked by the caller's transaction.

        Moves ``pr_status`` to LINKED_TO_PO and the order to awaiting fulfilment.
        """
        existing = PurchaseOrder.objects.filter(order=order).exclude(status='CANCELLED').first()
        if existing and order.pr_status == PRStatus.LINKED_TO_PO:
            return existing

        if not order.vendor_id:
            raise ValidationException(
                f"Order {order.order_number} has no vendor; only vendor sub-orders get purchase orders",
                {"order_number": order.order_number}
            )

        purchase_order = PurchaseOrder.objects.create(
            order=order,
            vendor_id=order.vendor_id,
            company_id=order.company_id,
            pr_number=order.pr_number,
            total_amount=order.total_amount,
            issued_by=issued_by,
        )
        transition_pr_status(
            order, PRStatus.LINKED_TO_PO, user=issued_by,
            notes=f"Purchase order {purchase_order.po_number} issued"
        )
        transition_order_status(order, OrderStatus.AWAITING_FULFILMENT, user=issued_by)

        AuditLog.log_change(
            entity=purchase_order,
            action='created',
            user=issued_by,
            new_values={
                'order_number': order.order_number,
                'vendor': order.vendor_id,
                'total_amount': purchase_order.total_amount,
            },
        )
        logger.info(
            f"Purchase order {purchase_order.po_number} issued to {order.vendor_id} "
            f"for order {order.order_number}"
        )
        return purchase_order

    @staticmethod
    def cancel_for_order(order: Order, reason: str, cancelled_by=None) -> Optional[PurchaseOrder]:
        """Cancel the live PO of a rejected order, if there is one."""
        purchase_order = (
            PurchaseOrder.objects.select_for_update()
            .filter(order=order, status='ISSUED')
            .first()
        )
        if purchase_order is None:
            return None

        purchase_order.status = 'CANCELLED'
        purchase_order.cancelled_at = timezone.now()
        purchase_order.cancellation_reason = reason
        purchase_order.save(update_fields=['status', 'cancelled_at', 'cancellation_reason', 'updated_at'])

        AuditLog.log_status_change(
            entity=purchase_order,
            old_status='ISSUED',
            new_status='CANCELLED',
            user=cancelled_by,
            notes=reason,
        )
        logger.info(f"Purchase order {purchase_order.po_number} cancelled: {reason}")
        return purchase_order
