"""
Audit log model for orders, purchase orders and shipments.
"""

from decimal import Decimal
from django.db import models
from django.conf import settings
from django.utils import timezone

# Business key fields, checked in order, used to reference the audited entity
ENTITY_REF_FIELDS = ('order_number', 'po_number', 'grn_number', 'shipment_number')


class AuditLog(models.Model):
    """
    Generic audit log for tracking changes to orders, purchase orders and shipments.

    Every ``pr_status`` transition is written here, which makes the log the
    record of the path an order actually took through the approval chain.
    """

    entity_type = models.CharField(
        max_length=50,
        help_text="Type of entity (Order, PurchaseOrder, Shipment, etc.)"
    )
    entity_ref = models.CharField(
        max_length=60,
        help_text="Business identifier of the audited entity"
    )

    action = models.CharField(
        max_length=50,
        help_text="Action performed (created, status_changed, pr_status_changed, etc.)"
    )

    user = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        to_field='employee_code',
        on_delete=models.SET_NULL,
        null=True,
        related_name='audit_logs',
        help_text="User who performed the action"
    )

    old_values = models.JSONField(default=dict, blank=True)
    new_values = models.JSONField(default=dict, blank=True)
    field_changes = models.JSONField(default=dict, blank=True)

    timestamp = models.DateTimeField(default=timezone.now)
    notes = models.TextField(blank=True)
    metadata = models.JSONField(default=dict, blank=True)

    class Meta:
        ordering = ['timestamp', 'id']
        indexes = [
            models.Index(fields=['entity_type', 'entity_ref', 'timestamp']),
            models.Index(fields=['action', 'timestamp']),
            models.Index(fields=['user', 'timestamp']),
        ]

    def __str__(self):
        return f"{self.entity_type} {self.entity_ref} - {self.action} by {self.user_id} at {self.timestamp}"

    @staticmethod
    def entity_ref_for(entity) -> str:
        for field in ENTITY_REF_FIELDS:
            value = getattr(entity, field, None)
            if value:
                return value
        return str(entity.pk)

    @classmethod
    def log_change(cls, entity, action: str, user=None, old_values=None,
                   new_values=None, field_changes=None, notes="", metadata=None):
        """
        Create an audit log entry for an entity change.

        Args:
            entity: The model instance being audited
            action: The action performed
            user: User who performed the action
            old_values: Previous state
            new_values: New state
            field_changes: Specific field changes
            notes: Additional notes
            metadata: Additional metadata
        """
        def convert_decimals(obj):
            if isinstance(obj, dict):
                return {k: convert_decimals(v) for k, v in obj.items()}
            elif isinstance(obj, list):
                return [convert_decimals(item) for item in obj]
            elif isinstance(obj, Decimal):
                return str(obj)
            else:
                return obj

        return cls.objects.create(
            entity_type=entity.__class__.__name__,
            entity_ref=cls.entity_ref_for(entity),
            action=action,
            user=user,
            old_values=convert_decimals(old_values or {}),
            new_values=convert_decimals(new_values or {}),
            field_changes=convert_decimals(field_changes or {}),
            notes=notes,
            metadata=convert_decimals(metadata or {})
        )

    @classmethod
    def log_status_change(cls, entity, old_status: str, new_status: str, user=None,
                          notes="", field: str = 'status'):
        """
        Log a status change for an entity.

        ``field`` names the status column; ``pr_status`` changes are logged
        with action ``pr_status_changed``.
        """
        action = 'status_changed' if field == 'status' else f'{field}_changed'
        return cls.log_change(
            entity=entity,
            action=action,
            user=user,
            old_values={field: old_status},
            new_values={field: new_status},
            field_changes={field: {'old': old_status, 'new': new_status}},
            notes=notes
        )

    @classmethod
    def transitions_for(cls, entity, field: str = 'pr_status'):
        """Ordered (old, new) pairs recorded for ``field`` on ``entity``."""
        logs = cls.objects.filter(
            entity_type=entity.__class__.__name__,
            entity_ref=cls.entity_ref_for(entity),
            action=f'{field}_changed' if field != 'status' else 'status_changed',
        ).order_by('id')
        return [(log.old_values.get(field), log.new_values.get(field)) for log in logs]
