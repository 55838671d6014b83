"""
Approval records for the purchase requisition chain.
"""

import uuid
from django.db import models
from django.conf import settings
from django.utils import timezone


class RejectionReason(models.TextChoices):
    BUDGET_EXCEEDED = 'BUDGET_EXCEEDED', 'Budget exceeded'
    NOT_ELIGIBLE = 'NOT_ELIGIBLE', 'Employee not eligible'
    DUPLICATE_REQUEST = 'DUPLICATE_REQUEST', 'Duplicate request'
    INCORRECT_DETAILS = 'INCORRECT_DETAILS', 'Incorrect size or quantity'
    OTHER = 'OTHER', 'Other'


class ApprovalGate(models.TextChoices):
    SITE_ADMIN = 'SITE_ADMIN', 'Site admin'
    COMPANY_ADMIN = 'COMPANY_ADMIN', 'Company admin'


class OrderApproval(models.Model):
    """One row per approval gate passed; a gate can be passed once."""

    id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)
    order = models.ForeignKey(
        'Order',
        to_field='order_number',
        on_delete=models.CASCADE,
        related_name='approvals'
    )
    gate = models.CharField(max_length=20, choices=ApprovalGate.choices)
    approver = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        to_field='employee_code',
        on_delete=models.PROTECT,
        related_name='order_approvals'
    )
    from_status = models.CharField(max_length=40)
    to_status = models.CharField(max_length=40)
    pr_number = models.CharField(max_length=50)
    remarks = models.TextField(blank=True)
    approved_at = models.DateTimeField(default=timezone.now)

    class Meta:
        ordering = ['approved_at']
        constraints = [
            models.UniqueConstraint(fields=['order', 'gate'], name='unique_approval_per_gate'),
        ]

    def __str__(self):
        return f"{self.order_id} {self.gate} by {self.approver_id}"
