"""
Order model for uniform orders.
"""

import uuid
from decimal import Decimal
from django.db import models
from django.conf import settings
from django.utils import timezone

from companies.models import ApprovalPolicySnapshot


class OrderStatus(models.TextChoices):
    """Coarse lifecycle status shown to employees."""
    AWAITING_APPROVAL = 'AWAITING_APPROVAL', 'Awaiting approval'
    AWAITING_FULFILMENT = 'AWAITING_FULFILMENT', 'Awaiting fulfilment'
    SPLIT = 'SPLIT', 'Split into vendor orders'
    FULFILLED = 'FULFILLED', 'Fulfilled'
    CANCELLED = 'CANCELLED', 'Cancelled'


class PRStatus(models.TextChoices):
    """Position of a vendor sub-order in the purchase requisition chain."""
    DRAFT = 'DRAFT', 'Draft'
    PENDING_SITE_ADMIN_APPROVAL = 'PENDING_SITE_ADMIN_APPROVAL', 'Pending site admin approval'
    SITE_ADMIN_APPROVED = 'SITE_ADMIN_APPROVED', 'Site admin approved'
    PENDING_COMPANY_ADMIN_APPROVAL = 'PENDING_COMPANY_ADMIN_APPROVAL', 'Pending company admin approval'
    COMPANY_ADMIN_APPROVED = 'COMPANY_ADMIN_APPROVED', 'Company admin approved'
    LINKED_TO_PO = 'LINKED_TO_PO', 'Linked to purchase order'
    NOT_REQUIRED = 'NOT_REQUIRED', 'PR/PO not required'
    FULFILLED = 'FULFILLED', 'Fulfilled'
    REJECTED = 'REJECTED', 'Rejected'


class Order(models.Model):
    """
    An employee's uniform order.

    A submitted cart is stored as a parent order; the splitter turns it into
    one sub-order per vendor (``parent_order`` set). Approval, purchase
    orders and shipments all work on sub-orders.
    """

    id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)
    order_number = models.CharField(
        max_length=60,
        unique=True,
        help_text="Unique order identifier (auto-generated)"
    )

    employee = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        to_field='employee_code',
        on_delete=models.PROTECT,
        related_name='orders',
        help_text="Employee the uniforms are for"
    )
    company = models.ForeignKey(
        'companies.Company',
        to_field='company_code',
        on_delete=models.PROTECT,
        related_name='orders'
    )
    location = models.ForeignKey(
        'companies.Location',
        to_field='location_code',
        on_delete=models.PROTECT,
        null=True,
        blank=True,
        related_name='orders',
        help_text="Employee location at order time; drives site admin scope"
    )
    parent_order = models.ForeignKey(
        'self',
        to_field='order_number',
        on_delete=models.PROTECT,
        null=True,
        blank=True,
        related_name='sub_orders',
        help_text="Cart order this vendor sub-order was split from"
    )
    vendor = models.ForeignKey(
        'vendor_management.Vendor',
        to_field='vendor_code',
        on_delete=models.PROTECT,
        null=True,
        blank=True,
        related_name='orders',
        help_text="Supplying vendor (sub-orders only)"
    )

    status = models.CharField(
        max_length=25,
        choices=OrderStatus.choices,
        default=OrderStatus.AWAITING_APPROVAL,
    )
    pr_status = models.CharField(
        max_length=40,
        choices=PRStatus.choices,
        default=PRStatus.DRAFT,
        help_text="Single source of truth for the approval chain position"
    )
    pr_number = models.CharField(max_length=50, blank=True, db_index=True)
    pr_date = models.DateField(null=True, blank=True)

    # Approval policy captured when the order was split
    policy_workflow_enabled = models.BooleanField(default=True)
    policy_site_admin_required = models.BooleanField(default=False)
    policy_company_admin_required = models.BooleanField(default=False)

    total_amount = models.DecimalField(
        max_digits=12,
        decimal_places=2,
        default=Decimal('0.00'),
    )

    rejection_reason = models.TextField(blank=True)
    rejection_reason_code = models.CharField(max_length=50, blank=True)
    rejected_by = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        to_field='employee_code',
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name='rejected_orders'
    )
    rejected_at = models.DateTimeField(null=True, blank=True)

    delivery_address = models.TextField(blank=True)
    delivery_city = models.CharField(max_length=100, blank=True)
    delivery_state = models.CharField(max_length=100, blank=True)
    delivery_pincode = models.CharField(max_length=10, blank=True)
    delivery_phone = models.CharField(max_length=20, blank=True)

    notes = models.TextField(blank=True)

    created_by = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        to_field='employee_code',
        on_delete=models.SET_NULL,
        null=True,
        related_name='created_orders'
    )
    created_at = models.DateTimeField(default=timezone.now)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        ordering = ['-created_at']
        indexes = [
            models.Index(fields=['pr_status', 'location']),
            models.Index(fields=['pr_status', 'company']),
            models.Index(fields=['employee', 'status']),
            models.Index(fields=['created_at']),
        ]

    def __str__(self):
        return f"Order {self.order_number} - {self.employee_id}"

    def save(self, *args, **kwargs):
        if not self.order_number:
            timestamp = timezone.now().strftime('%Y%m%d%H%M%S')
            self.order_number = f"ORD-{timestamp}-{str(self.id)[:8].upper()}"
        super().save(*args, **kwargs)

    @property
    def policy(self) -> ApprovalPolicySnapshot:
        return ApprovalPolicySnapshot(
            pr_po_workflow_enabled=self.policy_workflow_enabled,
            site_admin_approval_required=self.policy_site_admin_required,
            company_admin_approval_required=self.policy_company_admin_required,
        )

    @property
    def is_sub_order(self):
        return self.parent_order_id is not None

    @property
    def is_rejected(self):
        return self.pr_status == PRStatus.REJECTED

    @property
    def is_ready_to_ship(self):
        """Approval chain finished with either a PO or no PO required."""
        return self.pr_status in (PRStatus.LINKED_TO_PO, PRStatus.NOT_REQUIRED)
