"""
Approval state machine for vendor sub-orders.

Each sub-order carries the approval policy captured at split time. The
policy decides the first gate; ``approve`` walks the gates in order and
issues the purchase order after the last one. Every ``pr_status`` write
is a compare-and-set under a row lock, so two concurrent approvals can
never both advance the same order.
"""

import logging
import uuid
from datetime import date
from typing import List, Optional

from django.conf import settings
from django.db import transaction
from django.utils import timezone

from companies.models import ApprovalPolicySnapshot
from ..exceptions import (
    ApprovalScopeException, InvalidTransitionException, StaleApprovalException, ValidationException,
)
from ..identity import canonical_ref, canonical_refs
from ..models import Order, OrderStatus, PRStatus, OrderApproval, ApprovalGate, RejectionReason
from .workflow import PRWorkflow, transition_pr_status, transition_order_status, validate_order_workflow

logger = logging.getLogger(__name__)


def initial_pr_status(policy: ApprovalPolicySnapshot) -> str:
    """First ``pr_status`` after DRAFT for a sub-order split under ``policy``."""
    if not policy.pr_po_workflow_enabled:
        return PRStatus.NOT_REQUIRED
    if policy.site_admin_approval_required:
        return PRStatus.PENDING_SITE_ADMIN_APPROVAL
    if policy.company_admin_approval_required:
        return PRStatus.PENDING_COMPANY_ADMIN_APPROVAL
    return PRStatus.LINKED_TO_PO


def generate_pr_number() -> str:
    return f"{settings.PR_NUMBER_PREFIX}-{timezone.localdate():%Y%m%d}-{uuid.uuid4().hex[:6].upper()}"


class ApprovalService:
    """Service class for the purchase requisition approval chain."""

    GATE_FOR_STATUS = {
        PRStatus.PENDING_SITE_ADMIN_APPROVAL: ApprovalGate.SITE_ADMIN,
        PRStatus.PENDING_COMPANY_ADMIN_APPROVAL: ApprovalGate.COMPANY_ADMIN,
    }
    APPROVED_STATUS_FOR_GATE = {
        ApprovalGate.SITE_ADMIN: PRStatus.SITE_ADMIN_APPROVED,
        ApprovalGate.COMPANY_ADMIN: PRStatus.COMPANY_ADMIN_APPROVED,
    }

    @staticmethod
    def _lock_order(order_number: str) -> Order:
        try:
            return Order.objects.select_for_update().get(order_number=order_number)
        except Order.DoesNotExist:
            raise ValidationException(f"Order {order_number} does not exist", {"order_number": order_number})

    @staticmethod
    def start_approval(order: Order, actor=None) -> str:
        """
        Move a freshly split sub-order out of DRAFT according to its policy snapshot.

        With no approval gate the purchase order is issued straight away.
        """
        from vendor_management.services.purchase_order_service import PurchaseOrderService

        target = initial_pr_status(order.policy)
        if target == PRStatus.LINKED_TO_PO:
            PurchaseOrderService.issue_for_locked_order(order, issued_by=actor)
        else:
            transition_pr_status(order, target, user=actor, notes="Initial approval state from company policy")
            if target == PRStatus.NOT_REQUIRED:
                transition_order_status(order, OrderStatus.AWAITING_FULFILMENT, user=actor)
        return order.pr_status

    @staticmethod
    def _managed_location_codes(actor) -> List[str]:
        return canonical_refs(
            actor.managed_locations.values_list('location_code', flat=True), 'location_code'
        )

    @staticmethod
    def _check_gate_scope(order: Order, actor, gate: str) -> None:
        if gate == ApprovalGate.SITE_ADMIN:
            if not actor.is_site_admin:
                raise ApprovalScopeException(
                    f"Order {order.order_number} is waiting for a site admin",
                    {"order_number": order.order_number, "gate": gate}
                )
            location = canonical_ref(order.location_id, 'order.location')
            if location not in ApprovalService._managed_location_codes(actor):
                raise ApprovalScopeException(
                    f"{actor.employee_code} does not manage location {location}",
                    {"order_number": order.order_number, "gate": gate}
                )
        else:
            if not actor.is_company_admin:
                raise ApprovalScopeException(
                    f"Order {order.order_number} is waiting for a company admin",
                    {"order_number": order.order_number, "gate": gate}
                )
            if canonical_ref(actor.company_id, 'actor.company') != canonical_ref(order.company_id, 'order.company'):
                raise ApprovalScopeException(
                    f"{actor.employee_code} is not an admin of company {order.company_id}",
                    {"order_number": order.order_number, "gate": gate}
                )

    @staticmethod
    def approve(order_number: str, actor, pr_number: Optional[str] = None, pr_date: Optional[date] = None,
                expected_status: Optional[str] = None, remarks: str = "") -> str:
        """
        Approve the order at its current gate.

        The first approval assigns the PR number (the one supplied, or a
        generated one) and PR date; later gates keep them. After the last
        required gate the purchase order is issued.

        Args:
            order_number: Sub-order to approve
            actor: Approving site or company admin
            pr_number: PR number to assign on the first approval
            pr_date: PR date to assign on the first approval (defaults to today)
            expected_status: ``pr_status`` the caller last saw; a mismatch is stale
            remarks: Approver remarks

        Returns:
            The order's new ``pr_status``

        Raises:
            StaleApprovalException: The actor already approved, or the order moved on
            InvalidTransitionException: The order is not waiting for approval
            ApprovalScopeException: The actor may not approve this gate
        """
        from vendor_management.services.purchase_order_service import PurchaseOrderService

        with transaction.atomic():
            order = ApprovalService._lock_order(order_number)
            current = order.pr_status

            if expected_status and expected_status != current:
                raise StaleApprovalException(order_number, expected_status, current)
            if OrderApproval.objects.filter(order=order, approver=actor).exists():
                raise StaleApprovalException(
                    order_number, current, current, reason=f"already approved by {actor.employee_code}"
                )
            if current not in PRWorkflow.PENDING_STATES:
                raise InvalidTransitionException(current, "APPROVED", "PurchaseRequisition")

            gate = ApprovalService.GATE_FOR_STATUS[current]
            ApprovalService._check_gate_scope(order, actor, gate)

            fields = {}
            if not order.pr_number:
                fields['pr_number'] = pr_number or generate_pr_number()
                fields['pr_date'] = pr_date or timezone.localdate()
            elif pr_number and pr_number != order.pr_number:
                logger.warning(
                    f"Ignoring PR number {pr_number} for order {order_number}; "
                    f"keeping {order.pr_number} from the first approval"
                )

            approved_status = ApprovalService.APPROVED_STATUS_FOR_GATE[gate]
            transition_pr_status(
                order, approved_status, user=actor,
                notes=remarks or f"Approved by {actor.employee_code}", **fields
            )
            OrderApproval.objects.create(
                order=order,
                gate=gate,
                approver=actor,
                from_status=current,
                to_status=approved_status,
                pr_number=order.pr_number,
                remarks=remarks,
            )

            if gate == ApprovalGate.SITE_ADMIN and order.policy.company_admin_approval_required:
                transition_pr_status(
                    order, PRStatus.PENDING_COMPANY_ADMIN_APPROVAL, user=actor,
                    notes="Forwarded for company admin approval"
                )
            else:
                PurchaseOrderService.issue_for_locked_order(order, issued_by=actor)

            logger.info(
                f"Order {order_number} approved at {gate} by {actor.employee_code}, now {order.pr_status}"
            )
            return order.pr_status

    @staticmethod
    def _check_reject_scope(order: Order, actor) -> None:
        if actor.is_super_admin:
            return
        if actor.is_company_admin and actor.company_id is not None:
            if canonical_ref(actor.company_id, 'actor.company') == canonical_ref(order.company_id, 'order.company'):
                return
        if actor.is_site_admin and order.location_id is not None:
            if canonical_ref(order.location_id, 'order.location') in ApprovalService._managed_location_codes(actor):
                return
        raise ApprovalScopeException(
            f"{actor.employee_code} may not reject order {order.order_number}",
            {"order_number": order.order_number}
        )

    @staticmethod
    def reject(order_number: str, actor, reason: str, reason_code: Optional[str] = None) -> str:
        """
        Reject an order from any non-terminal state.

        Rejection is final: the order is cancelled, a live purchase order is
        cancelled with it, and shipments can no longer be created or
        reconciled for it.

        Raises:
            ValidationException: Missing reason or unknown reason code
            InvalidTransitionException: The order is already fulfilled or rejected
            ApprovalScopeException: The actor has no authority over the order
        """
        from vendor_management.services.purchase_order_service import PurchaseOrderService

        reason = (reason or "").strip()
        if not reason:
            raise ValidationException("A rejection reason is required", {"reason": "required"})
        if reason_code and reason_code not in RejectionReason.values:
            raise ValidationException(f"Unknown rejection reason code {reason_code}", {"reason_code": reason_code})

        with transaction.atomic():
            order = ApprovalService._lock_order(order_number)
            if PRWorkflow.is_terminal(order.pr_status):
                raise InvalidTransitionException(order.pr_status, PRStatus.REJECTED, "PurchaseRequisition")
            validate_order_workflow(order, OrderStatus.CANCELLED)
            ApprovalService._check_reject_scope(order, actor)

            transition_pr_status(
                order, PRStatus.REJECTED, user=actor, notes=reason,
                rejection_reason=reason,
                rejection_reason_code=reason_code or RejectionReason.OTHER,
                rejected_by=actor,
                rejected_at=timezone.now(),
            )
            transition_order_status(order, OrderStatus.CANCELLED, user=actor, notes=reason)
            PurchaseOrderService.cancel_for_order(order, f"Order rejected: {reason}", cancelled_by=actor)

            logger.info(f"Order {order_number} rejected by {actor.employee_code}: {reason}")
            return order.pr_status

    @staticmethod
    def pending_approvals(actor):
        """
        Orders waiting on ``actor``'s gate within ``actor``'s scope.

        Site admins see site-admin-pending orders from locations they
        manage; company admins see company-admin-pending orders of their
        company. Anyone else sees nothing.
        """
        if actor.is_site_admin:
            return Order.objects.filter(
                pr_status=PRStatus.PENDING_SITE_ADMIN_APPROVAL,
                location_id__in=ApprovalService._managed_location_codes(actor),
            ).order_by('created_at')
        if actor.is_company_admin:
            return Order.objects.filter(
                pr_status=PRStatus.PENDING_COMPANY_ADMIN_APPROVAL,
                company_id=canonical_ref(actor.company_id, 'actor.company'),
            ).order_by('created_at')
        return Order.objects.none()

    @staticmethod
    def list_pending_approvals(actor) -> List[str]:
        return list(ApprovalService.pending_approvals(actor).values_list('order_number', flat=True))
