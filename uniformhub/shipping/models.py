import uuid

from django.conf import settings
from django.db import models
from django.utils import timezone

from .legacy import resolve_legacy_tracking_number


class ShippingProvider(models.Model):
    """A courier integration the platform knows how to talk to."""

    PROVIDER_CHOICES = [
        ('SHIPROCKET', 'Shiprocket'),
        ('SHIPWAY', 'Shipway'),
        ('MOCK', 'Mock provider'),
    ]

    provider_code = models.CharField(max_length=30, unique=True, choices=PROVIDER_CHOICES)
    name = models.CharField(max_length=100)
    api_base_url = models.URLField(blank=True, help_text='Overrides the adapter default base URL')
    is_active = models.BooleanField(default=True)
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        ordering = ['provider_code']

    def __str__(self):
        return f"{self.name} ({self.provider_code})"


class CompanyShippingProvider(models.Model):
    """A company's credentials for one provider, plus enable/default flags."""

    company = models.ForeignKey(
        'companies.Company', to_field='company_code', on_delete=models.CASCADE, related_name='shipping_providers'
    )
    provider = models.ForeignKey(
        ShippingProvider, to_field='provider_code', on_delete=models.PROTECT, related_name='company_configs'
    )
    encrypted_credentials = models.TextField(
        blank=True, help_text='Fernet token of the JSON credential bundle'
    )
    is_enabled = models.BooleanField(default=True)
    is_default = models.BooleanField(default=False)
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        ordering = ['company', '-is_default', 'created_at']
        unique_together = ['company', 'provider']
        verbose_name = 'Company shipping provider'

    def __str__(self):
        return f"{self.company_id} / {self.provider_id}"

    def set_credentials(self, bundle):
        from .crypto import encrypt_credentials

        self.encrypted_credentials = encrypt_credentials(bundle)


class ShipmentMode(models.TextChoices):
    API = 'API', 'Provider API'
    MANUAL = 'MANUAL', 'Manual'


class ShipmentStatus(models.TextChoices):
    CREATED = 'CREATED', 'Created'
    PICKED_UP = 'PICKED_UP', 'Picked up'
    IN_TRANSIT = 'IN_TRANSIT', 'In transit'
    DELIVERED = 'DELIVERED', 'Delivered'
    FAILED = 'FAILED', 'Failed'
    CANCELLED = 'CANCELLED', 'Cancelled'


class Shipment(models.Model):
    """
    One dispatch of a vendor sub-order, through a provider or entered manually.

    ``tracking_number`` is the only tracking identifier read by the
    application. It may be blank for an API shipment whose AWB the
    carrier has not assigned yet.
    """

    TERMINAL_STATUSES = (ShipmentStatus.DELIVERED, ShipmentStatus.FAILED, ShipmentStatus.CANCELLED)

    id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)
    shipment_number = models.CharField(max_length=60, unique=True)
    order = models.ForeignKey(
        'order_fulfillment.Order', to_field='order_number', on_delete=models.PROTECT, related_name='shipments'
    )
    pr_number = models.CharField(max_length=50, blank=True)
    vendor = models.ForeignKey(
        'vendor_management.Vendor', to_field='vendor_code', on_delete=models.PROTECT, related_name='shipments'
    )
    attempt = models.PositiveIntegerField(default=1, help_text='Creation attempt number for the order')
    idempotency_key = models.CharField(
        max_length=80, help_text='Sent to carriers as the merchant order reference'
    )

    shipment_mode = models.CharField(max_length=10, choices=ShipmentMode.choices, default=ShipmentMode.API)
    provider = models.ForeignKey(
        ShippingProvider, to_field='provider_code', on_delete=models.PROTECT,
        null=True, blank=True, related_name='shipments'
    )
    company_provider = models.ForeignKey(
        CompanyShippingProvider, on_delete=models.SET_NULL, null=True, blank=True, related_name='shipments'
    )
    provider_reference = models.CharField(max_length=100, blank=True, help_text="Carrier's shipment id")
    tracking_number = models.CharField(max_length=100, blank=True, db_index=True)
    tracking_url = models.URLField(max_length=500, blank=True)
    courier_name = models.CharField(max_length=100, blank=True)

    shipment_status = models.CharField(
        max_length=20, choices=ShipmentStatus.choices, default=ShipmentStatus.CREATED
    )
    carrier_status = models.CharField(max_length=100, blank=True, help_text='Last raw status from the carrier')
    chargeable_weight = models.DecimalField(max_digits=10, decimal_places=3, null=True, blank=True)

    failure_code = models.CharField(max_length=50, blank=True)
    failure_detail = models.JSONField(default=dict, blank=True)
    raw_provider_response = models.JSONField(default=dict, blank=True)
    legacy_tracking_fields = models.JSONField(
        default=dict, blank=True,
        help_text='Tracking identifiers imported from the previous system'
    )

    last_synced_at = models.DateTimeField(null=True, blank=True)
    delivered_at = models.DateTimeField(null=True, blank=True)
    created_by = models.ForeignKey(
        settings.AUTH_USER_MODEL, to_field='employee_code', on_delete=models.SET_NULL,
        null=True, blank=True, related_name='created_shipments'
    )
    created_at = models.DateTimeField(default=timezone.now)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        ordering = ['-created_at']
        indexes = [
            models.Index(fields=['shipment_mode', 'shipment_status']),
            models.Index(fields=['order', 'created_at']),
        ]
        constraints = [
            models.UniqueConstraint(fields=['order', 'attempt'], name='unique_shipment_attempt_per_order'),
        ]

    def __str__(self):
        return f"Shipment {self.shipment_number} ({self.shipment_status})"

    @classmethod
    def from_db(cls, db, field_names, values):
        instance = super().from_db(db, field_names, values)
        if 'tracking_number' in field_names and not instance.tracking_number:
            legacy = instance.__dict__.get('legacy_tracking_fields')
            instance.tracking_number = resolve_legacy_tracking_number(legacy) or ''
        return instance

    def save(self, *args, **kwargs):
        if not self.shipment_number:
            timestamp = timezone.now().strftime('%Y%m%d%H%M%S')
            self.shipment_number = f"SHP-{timestamp}-{str(self.id)[:8].upper()}"
        super().save(*args, **kwargs)

    @property
    def is_terminal(self):
        return self.shipment_status in self.TERMINAL_STATUSES

    @property
    def is_api(self):
        return self.shipment_mode == ShipmentMode.API


class ShipmentStatusEvent(models.Model):
    """A recorded change of status or tracking number."""

    SOURCE_CHOICES = [
        ('CREATE', 'Creation'),
        ('RECONCILE', 'Reconciliation'),
        ('CANCEL', 'Cancellation'),
        ('MANUAL', 'Manual update'),
    ]

    shipment = models.ForeignKey(
        Shipment, to_field='shipment_number', on_delete=models.CASCADE, related_name='events'
    )
    from_status = models.CharField(max_length=20, blank=True)
    to_status = models.CharField(max_length=20)
    old_tracking_number = models.CharField(max_length=100, blank=True)
    new_tracking_number = models.CharField(max_length=100, blank=True)
    carrier_status = models.CharField(max_length=100, blank=True)
    source = models.CharField(max_length=20, choices=SOURCE_CHOICES)
    created_at = models.DateTimeField(default=timezone.now)

    class Meta:
        ordering = ['created_at', 'id']

    def __str__(self):
        return f"{self.shipment_id}: {self.from_status or '-'} -> {self.to_status}"


class ShipmentApiLog(models.Model):
    """One row per call made to a provider adapter."""

    OPERATION_CHOICES = [
        ('CREATE', 'Create shipment'),
        ('TRACK', 'Fetch tracking'),
        ('SERVICEABILITY', 'Check serviceability'),
        ('CANCEL', 'Cancel shipment'),
        ('HEALTH_CHECK', 'Health check'),
    ]

    company = models.ForeignKey(
        'companies.Company', to_field='company_code', on_delete=models.CASCADE, related_name='shipping_api_logs'
    )
    provider = models.ForeignKey(
        ShippingProvider, to_field='provider_code', on_delete=models.CASCADE, related_name='api_logs'
    )
    operation = models.CharField(max_length=20, choices=OPERATION_CHOICES)
    entity_ref = models.CharField(max_length=60, blank=True, help_text='Order or shipment number')
    request_payload = models.JSONField(default=dict, blank=True)
    response_payload = models.JSONField(default=dict, blank=True)
    success = models.BooleanField(default=False)
    http_status = models.PositiveIntegerField(null=True, blank=True)
    error_code = models.CharField(max_length=50, blank=True)
    error_detail = models.TextField(blank=True)
    latency_ms = models.PositiveIntegerField(null=True, blank=True)
    created_at = models.DateTimeField(default=timezone.now)

    class Meta:
        ordering = ['-created_at']
        indexes = [
            models.Index(fields=['company', 'operation', 'created_at']),
            models.Index(fields=['entity_ref']),
        ]

    def __str__(self):
        outcome = 'ok' if self.success else self.error_code or 'failed'
        return f"{self.provider_id} {self.operation} {self.entity_ref} [{outcome}]"
