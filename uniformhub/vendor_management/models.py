from django.db import models
from django.conf import settings
from django.utils import timezone


class Vendor(models.Model):
    """Uniform supplier; its address is the pickup origin for shipments."""
    STATUS_CHOICES = [
        ('ACTIVE', 'Active'),
        ('INACTIVE', 'Inactive'),
        ('SUSPENDED', 'Suspended'),
    ]

    name = models.CharField(max_length=200, unique=True)
    vendor_code = models.CharField(max_length=20, unique=True, help_text='Unique vendor identifier')
    contact_person = models.CharField(max_length=100, blank=True)
    email = models.EmailField(blank=True)
    phone = models.CharField(max_length=15)
    address = models.TextField()
    city = models.CharField(max_length=100)
    state = models.CharField(max_length=100, blank=True)
    country = models.CharField(max_length=100, default='India')
    pincode = models.CharField(max_length=10, help_text='Pickup pincode for courier shipments')
    pickup_location_name = models.CharField(
        max_length=100, default='Primary', help_text='Pickup location name registered with the courier'
    )

    status = models.CharField(max_length=20, choices=STATUS_CHOICES, default='ACTIVE')
    is_preferred = models.BooleanField(default=False, help_text='Preferred vendor status')

    created_by = models.ForeignKey(
        settings.AUTH_USER_MODEL, to_field='employee_code', on_delete=models.SET_NULL,
        null=True, blank=True, related_name='created_vendors'
    )
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    def __str__(self):
        return f"{self.name} ({self.vendor_code})"

    class Meta:
        ordering = ['name']
        indexes = [
            models.Index(fields=['status']),
            models.Index(fields=['is_preferred']),
        ]


class VendorProduct(models.Model):
    """A vendor supplies a product to a company."""
    vendor = models.ForeignKey(Vendor, to_field='vendor_code', on_delete=models.CASCADE, related_name='product_links')
    product = models.ForeignKey(
        'products.Product', to_field='product_code', on_delete=models.CASCADE, related_name='vendor_links'
    )
    company = models.ForeignKey(
        'companies.Company', to_field='company_code', on_delete=models.CASCADE, related_name='vendor_links'
    )
    is_active = models.BooleanField(default=True)
    created_at = models.DateTimeField(auto_now_add=True)

    def __str__(self):
        return f"{self.vendor_id} -> {self.product_id} for {self.company_id}"

    class Meta:
        unique_together = ['vendor', 'product', 'company']
        indexes = [
            models.Index(fields=['product', 'company', 'is_active']),
        ]


class PurchaseOrder(models.Model):
    """Purchase order issued to a vendor once a sub-order clears approval."""
    STATUS_CHOICES = [
        ('ISSUED', 'Issued'),
        ('COMPLETED', 'Completed'),
        ('CANCELLED', 'Cancelled'),
    ]

    po_number = models.CharField(max_length=80, unique=True, help_text='Unique PO number')
    order = models.ForeignKey(
        'order_fulfillment.Order', to_field='order_number', on_delete=models.PROTECT,
        related_name='purchase_orders', help_text='Vendor sub-order this PO fulfils'
    )
    vendor = models.ForeignKey(Vendor, to_field='vendor_code', on_delete=models.PROTECT, related_name='purchase_orders')
    company = models.ForeignKey(
        'companies.Company', to_field='company_code', on_delete=models.PROTECT, related_name='purchase_orders'
    )
    pr_number = models.CharField(max_length=50, blank=True)

    order_date = models.DateField(default=timezone.localdate)
    total_amount = models.DecimalField(max_digits=12, decimal_places=2, default=0)

    status = models.CharField(max_length=20, choices=STATUS_CHOICES, default='ISSUED')
    issued_by = models.ForeignKey(
        settings.AUTH_USER_MODEL, to_field='employee_code', on_delete=models.SET_NULL,
        null=True, blank=True, related_name='issued_pos'
    )
    completed_at = models.DateTimeField(null=True, blank=True)
    cancelled_at = models.DateTimeField(null=True, blank=True)
    cancellation_reason = models.TextField(blank=True)

    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    def __str__(self):
        return f"{self.po_number} - {self.vendor_id}"

    def save(self, *args, **kwargs):
        # One PO per sub-order, so its number follows the order number
        if not self.po_number:
            self.po_number = f"{settings.PO_NUMBER_PREFIX}-{self.order_id}"
        super().save(*args, **kwargs)

    @property
    def is_open(self):
        return self.status == 'ISSUED'

    class Meta:
        ordering = ['-created_at']
        indexes = [
            models.Index(fields=['status']),
            models.Index(fields=['vendor', 'status']),
            models.Index(fields=['order_date']),
        ]
        constraints = [
            # At most one live purchase order per sub-order
            models.UniqueConstraint(
                fields=['order'],
                condition=~models.Q(status='CANCELLED'),
                name='unique_active_po_per_order',
            ),
        ]


class GoodsReceiptNote(models.Model):
    """Receipt confirmation for a purchase order; one per PO."""
    STATUS_CHOICES = [
        ('RAISED', 'Raised'),
        ('APPROVED', 'Approved'),
    ]

    grn_number = models.CharField(max_length=90, unique=True)
    purchase_order = models.OneToOneField(
        PurchaseOrder, to_field='po_number', on_delete=models.PROTECT, related_name='grn'
    )
    status = models.CharField(max_length=20, choices=STATUS_CHOICES, default='RAISED')
    raised_by = models.ForeignKey(
        settings.AUTH_USER_MODEL, to_field='employee_code', on_delete=models.SET_NULL,
        null=True, blank=True, related_name='raised_grns'
    )
    acknowledged = models.BooleanField(default=False)
    acknowledged_by = models.ForeignKey(
        settings.AUTH_USER_MODEL, to_field='employee_code', on_delete=models.SET_NULL,
        null=True, blank=True, related_name='acknowledged_grns'
    )
    acknowledged_at = models.DateTimeField(null=True, blank=True)
    approved_by = models.ForeignKey(
        settings.AUTH_USER_MODEL, to_field='employee_code', on_delete=models.SET_NULL,
        null=True, blank=True, related_name='approved_grns'
    )
    approved_at = models.DateTimeField(null=True, blank=True)
    remarks = models.TextField(blank=True)

    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    def __str__(self):
        return f"{self.grn_number} for {self.purchase_order_id}"

    def save(self, *args, **kwargs):
        if not self.grn_number:
            self.grn_number = f"GRN-{self.purchase_order_id}"
        super().save(*args, **kwargs)

    @property
    def is_approved(self):
        return self.status == 'APPROVED'

    class Meta:
        ordering = ['-created_at']
        verbose_name = 'Goods Receipt Note'
