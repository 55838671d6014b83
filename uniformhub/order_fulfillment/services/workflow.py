"""
Workflow service for uniform orders.

Manages allowed state transitions for the coarse order status and the
purchase requisition (``pr_status``) chain, and applies ``pr_status``
changes as compare-and-set updates.
"""

import logging

from django.utils import timezone

from ..exceptions import InvalidTransitionException, StaleApprovalException
from ..models import Order, OrderStatus, PRStatus, AuditLog

logger = logging.getLogger(__name__)


class OrderWorkflow:
    """Workflow rules for Order status transitions."""

    ALLOWED_TRANSITIONS = {
        OrderStatus.AWAITING_APPROVAL: [
            OrderStatus.AWAITING_FULFILMENT, OrderStatus.SPLIT, OrderStatus.CANCELLED
        ],
        OrderStatus.AWAITING_FULFILMENT: [OrderStatus.FULFILLED, OrderStatus.CANCELLED],
        OrderStatus.SPLIT: [],  # Final state, work continues on sub-orders
        OrderStatus.FULFILLED: [],  # Final state
        OrderStatus.CANCELLED: [],  # Final state
    }

    @classmethod
    def validate_transition(cls, order: Order, new_status: str) -> None:
        """
        Validate if a status transition is allowed.

        Args:
            order: Order instance
            new_status: New status to transition to

        Raises:
            InvalidTransitionException: If transition is not allowed
        """
        current_status = order.status

        if current_status == new_status:
            return  # Allow no-op transitions

        allowed_transitions = cls.ALLOWED_TRANSITIONS.get(current_status, [])

        if new_status not in allowed_transitions:
            raise InvalidTransitionException(
                current_status=current_status,
                attempted_status=new_status,
                entity_type="Order"
            )


class PRWorkflow:
    """Workflow rules for the purchase requisition chain."""

    ALLOWED_TRANSITIONS = {
        PRStatus.DRAFT: [
            PRStatus.PENDING_SITE_ADMIN_APPROVAL,
            PRStatus.PENDING_COMPANY_ADMIN_APPROVAL,
            PRStatus.LINKED_TO_PO,
            PRStatus.NOT_REQUIRED,
            PRStatus.REJECTED,
        ],
        PRStatus.PENDING_SITE_ADMIN_APPROVAL: [PRStatus.SITE_ADMIN_APPROVED, PRStatus.REJECTED],
        PRStatus.SITE_ADMIN_APPROVED: [
            PRStatus.PENDING_COMPANY_ADMIN_APPROVAL, PRStatus.LINKED_TO_PO, PRStatus.REJECTED
        ],
        PRStatus.PENDING_COMPANY_ADMIN_APPROVAL: [PRStatus.COMPANY_ADMIN_APPROVED, PRStatus.REJECTED],
        PRStatus.COMPANY_ADMIN_APPROVED: [PRStatus.LINKED_TO_PO, PRStatus.REJECTED],
        PRStatus.LINKED_TO_PO: [PRStatus.FULFILLED, PRStatus.REJECTED],
        PRStatus.NOT_REQUIRED: [PRStatus.FULFILLED, PRStatus.REJECTED],
        PRStatus.FULFILLED: [],  # Final state
        PRStatus.REJECTED: [],  # Final state
    }

    PENDING_STATES = (
        PRStatus.PENDING_SITE_ADMIN_APPROVAL,
        PRStatus.PENDING_COMPANY_ADMIN_APPROVAL,
    )
    TERMINAL_STATES = (PRStatus.FULFILLED, PRStatus.REJECTED)

    @classmethod
    def validate_transition(cls, order: Order, new_status: str) -> None:
        """
        Validate a ``pr_status`` transition. Unlike order status, staying
        in the same state is not a valid transition.

        Raises:
            InvalidTransitionException: If transition is not allowed
        """
        if new_status not in cls.ALLOWED_TRANSITIONS.get(order.pr_status, []):
            raise InvalidTransitionException(
                current_status=order.pr_status,
                attempted_status=new_status,
                entity_type="PurchaseRequisition"
            )

    @classmethod
    def is_terminal(cls, pr_status: str) -> bool:
        return pr_status in cls.TERMINAL_STATES


def validate_order_workflow(order: Order, new_status: str) -> None:
    """
    Validate order workflow transition.

    Raises:
        InvalidTransitionException: If transition is not allowed
    """
    OrderWorkflow.validate_transition(order, new_status)


def validate_pr_workflow(order: Order, new_status: str) -> None:
    PRWorkflow.validate_transition(order, new_status)


def transition_pr_status(order: Order, new_status: str, user=None, notes: str = "", **fields) -> Order:
    """
    Move ``order`` to ``new_status`` only if the row still holds the
    ``pr_status`` the in-memory instance was read with.

    Extra keyword arguments are written in the same UPDATE. Must run
    inside the caller's ``transaction.atomic()`` block.

    Raises:
        InvalidTransitionException: If the edge is not allowed
        StaleApprovalException: If another writer moved the row first
    """
    expected = order.pr_status
    validate_pr_workflow(order, new_status)

    updates = dict(fields, pr_status=new_status, updated_at=timezone.now())
    updated = Order.objects.filter(pk=order.pk, pr_status=expected).update(**updates)
    if updated != 1:
        current = Order.objects.filter(pk=order.pk).values_list('pr_status', flat=True).first()
        raise StaleApprovalException(order.order_number, expected, current)

    for field, value in updates.items():
        setattr(order, field, value)

    AuditLog.log_status_change(
        entity=order,
        old_status=expected,
        new_status=new_status,
        user=user,
        notes=notes,
        field='pr_status',
    )
    logger.info(f"Order {order.order_number} pr_status {expected} -> {new_status}")
    return order


def transition_order_status(order: Order, new_status: str, user=None, notes: str = "") -> Order:
    """Apply a coarse status change after validating it."""
    old_status = order.status
    if old_status == new_status:
        return order

    validate_order_workflow(order, new_status)
    order.status = new_status
    order.save(update_fields=['status', 'updated_at'])

    AuditLog.log_status_change(
        entity=order,
        old_status=old_status,
        new_status=new_status,
        user=user,
        notes=notes,
    )
    return order
