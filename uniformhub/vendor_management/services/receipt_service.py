"""
Goods receipt acknowledgement.

Closes the loop on a purchase order: the company confirms the goods
arrived, the GRN is approved, the PO completes and the sub-order is
fulfilled.
"""

import logging

from django.db import transaction
from django.utils import timezone

from order_fulfillment.exceptions import (
    ApprovalScopeException, StateConflictException, ValidationException,
)
from order_fulfillment.identity import canonical_ref
from order_fulfillment.models import Order, OrderStatus, PRStatus, AuditLog
from order_fulfillment.services.workflow import transition_pr_status, transition_order_status
from ..models import PurchaseOrder, GoodsReceiptNote

logger = logging.getLogger(__name__)


class ReceiptService:
    """Service class for goods receipt operations."""

    @staticmethod
    def _lock_purchase_order(po_number: str) -> PurchaseOrder:
        try:
            return PurchaseOrder.objects.select_for_update().get(po_number=po_number)
        except PurchaseOrder.DoesNotExist:
            raise ValidationException(
                f"Purchase order {po_number} does not exist; a GRN needs an issued purchase order",
                {"po_number": po_number}
            )

    @staticmethod
    def _check_company_scope(purchase_order: PurchaseOrder, actor) -> None:
        if actor.is_super_admin:
            return
        if actor.company_id is None or not (actor.is_company_admin or actor.is_employee):
            raise ApprovalScopeException(
                f"{actor.employee_code} cannot acknowledge receipts",
                {"po_number": purchase_order.po_number}
            )
        if canonical_ref(actor.company_id, 'company_code') != canonical_ref(purchase_order.company_id, 'company_code'):
            raise ApprovalScopeException(
                f"{actor.employee_code} cannot acknowledge receipts for company {purchase_order.company_id}",
                {"po_number": purchase_order.po_number}
            )

    @staticmethod
    def raise_grn(po_number: str, actor) -> GoodsReceiptNote:
        """
        Vendor raises the GRN for a dispatched purchase order.

        Raising twice returns the existing note.
        """
        with transaction.atomic():
            purchase_order = ReceiptService._lock_purchase_order(po_number)

            if not actor.is_super_admin and (
                actor.vendor_id is None
                or canonical_ref(actor.vendor_id, 'vendor_code') != canonical_ref(purchase_order.vendor_id, 'vendor_code')
            ):
                raise ApprovalScopeException(
                    f"{actor.employee_code} is not a user of vendor {purchase_order.vendor_id}",
                    {"po_number": po_number}
                )
            if purchase_order.status == 'CANCELLED':
                raise StateConflictException(
                    f"Purchase order {po_number} is cancelled", "PO_CANCELLED", {"po_number": po_number}
                )

            grn, created = GoodsReceiptNote.objects.get_or_create(
                purchase_order=purchase_order,
                defaults={'raised_by': actor},
            )
            if created:
                AuditLog.log_change(entity=grn, action='created', user=actor, new_values={'status': grn.status})
                logger.info(f"GRN {grn.grn_number} raised for {po_number} by {actor.employee_code}")
            return grn

    @staticmethod
    def acknowledge_receipt(po_number: str, actor) -> GoodsReceiptNote:
        """
        Acknowledge receipt of a purchase order.

        Records the GRN as APPROVED, completes the PO and fulfils the
        sub-order. Idempotent: an already-approved GRN is returned
        unchanged, and a GRN that was acknowledged without ever being
        approved is repaired rather than rejected.

        Raises:
            ValidationException: If the purchase order does not exist
            ApprovalScopeException: If the actor belongs to another company
            StateConflictException: If the purchase order was cancelled
        """
        with transaction.atomic():
            purchase_order = ReceiptService._lock_purchase_order(po_number)
            ReceiptService._check_company_scope(purchase_order, actor)

            if purchase_order.status == 'CANCELLED':
                raise StateConflictException(
                    f"Purchase order {po_number} is cancelled", "PO_CANCELLED", {"po_number": po_number}
                )

            grn, created = GoodsReceiptNote.objects.get_or_create(
                purchase_order=purchase_order,
                defaults={'raised_by': actor},
            )

            if grn.is_approved and purchase_order.status == 'COMPLETED':
                logger.info(f"GRN {grn.grn_number} already approved; nothing to do")
                return grn

            now = timezone.now()
            old_status = grn.status
            if not grn.acknowledged:
                grn.acknowledged = True
                grn.acknowledged_by = actor
                grn.acknowledged_at = now
            elif not grn.is_approved:
                logger.warning(
                    f"GRN {grn.grn_number} was acknowledged on {grn.acknowledged_at} but never approved; repairing"
                )
            if not grn.is_approved:
                grn.status = 'APPROVED'
                grn.approved_by = actor
                grn.approved_at = now
            grn.save()

            if old_status != grn.status:
                AuditLog.log_status_change(entity=grn, old_status=old_status, new_status=grn.status, user=actor)

            ReceiptService._complete_purchase_order(purchase_order, grn, actor)
            ReceiptService._fulfil_order(purchase_order.order_id, actor)

            logger.info(f"Receipt for {po_number} acknowledged by {actor.employee_code}")
            return grn

    @staticmethod
    def _complete_purchase_order(purchase_order: PurchaseOrder, grn: GoodsReceiptNote, actor) -> None:
        if purchase_order.status == 'COMPLETED':
            return
        if not grn.is_approved:
            raise StateConflictException(
                f"Purchase order {purchase_order.po_number} cannot complete without an approved GRN",
                "GRN_NOT_APPROVED",
            )
        purchase_order.status = 'COMPLETED'
        purchase_order.completed_at = timezone.now()
        purchase_order.save(update_fields=['status', 'completed_at', 'updated_at'])
        AuditLog.log_status_change(entity=purchase_order, old_status='ISSUED', new_status='COMPLETED', user=actor)

    @staticmethod
    def _fulfil_order(order_number: str, actor) -> None:
        order = Order.objects.select_for_update().get(order_number=order_number)
        if order.pr_status == PRStatus.FULFILLED:
            return
        transition_pr_status(order, PRStatus.FULFILLED, user=actor, notes="Goods receipt acknowledged")
        transition_order_status(order, OrderStatus.FULFILLED, user=actor)
